"""Scrub credentials out of values before they reach a DEBUG log.

Sign-in replies and store requests carry ID tokens, refresh tokens and
the web API key. Anything logged by the transport goes through
:func:`redact_for_log` first, and URLs go through :func:`redact_url`.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

REDACTED = "<redacted>"

#: Lower-cased keys whose values are never logged.
SECRET_KEYS: frozenset[str] = frozenset(
    {
        "key",
        "apikey",
        "api_key",
        "password",
        "token",
        "idtoken",
        "id_token",
        "refreshtoken",
        "refresh_token",
        "accesstoken",
        "authorization",
        "cookie",
    }
)

#: Items kept from a long list, e.g. a batch commit's ``writes``.
MAX_ITEMS = 20
MAX_DEPTH = 20


def _scrub_mapping(value: Mapping[Any, Any], max_string: int, depth: int) -> dict[str, Any]:
    scrubbed: dict[str, Any] = {}
    for key, item in value.items():
        name = str(key)
        if name.lower() in SECRET_KEYS:
            scrubbed[name] = REDACTED
        else:
            scrubbed[name] = redact_for_log(item, max_string=max_string, _depth=depth + 1)
    return scrubbed


def _scrub_sequence(value: Sequence[Any], max_string: int, depth: int) -> list[Any]:
    items = list(value)
    head = [redact_for_log(item, max_string=max_string, _depth=depth + 1) for item in items[:MAX_ITEMS]]
    if len(items) > MAX_ITEMS:
        head.append(f"<{len(items) - MAX_ITEMS} more>")
    return head


def redact_for_log(value: Any, *, max_string: int = 512, _depth: int = 0) -> Any:
    """Copy *value* with secret keys masked and long payloads shortened."""
    if _depth > MAX_DEPTH:
        return "<max-depth>"
    if value is None or isinstance(value, (bool, int, float)):
        return value
    if isinstance(value, str):
        return value if len(value) <= max_string else f"{value[:max_string]}…<truncated>"
    if isinstance(value, (bytes, bytearray)):
        return f"<bytes:{len(value)}b>"
    if isinstance(value, Mapping):
        return _scrub_mapping(value, max_string, _depth)
    if isinstance(value, Sequence):
        return _scrub_sequence(value, max_string, _depth)
    return repr(value)


def redact_url(url: str) -> str:
    """Drop the query string, which carries the API key on sign-in calls."""
    base, sep, _query = url.partition("?")
    return f"{base}?{REDACTED}" if sep else base
