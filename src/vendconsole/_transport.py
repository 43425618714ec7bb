"""JSON-over-HTTP transport with bearer identity."""

from __future__ import annotations

import json
import logging
from collections.abc import Awaitable, Callable, Mapping
from typing import Any, Protocol

import aiohttp

from vendconsole._constants import USER_AGENT
from vendconsole._redact import redact_for_log, redact_url
from vendconsole.exceptions import VendTransportError

_logger = logging.getLogger(__name__)


class Transport(Protocol):
    """Structural transport interface used by the REST store and identity.

    Having a protocol here makes it easy to pass test doubles while
    keeping the production implementation (`JsonTransport`) concrete.
    """

    async def request_json(
        self,
        method: str,
        url: str,
        payload: Mapping[str, Any] | None = None,
    ) -> Any: ...


class JsonTransport:
    """aiohttp transport that sends JSON and decodes JSON replies.

    ``token_provider`` is awaited on every call, so it may renew an expired
    session first. When it yields a token the request carries an
    ``Authorization: Bearer`` header.
    """

    def __init__(
        self,
        http_session: aiohttp.ClientSession,
        *,
        token_provider: Callable[[], Awaitable[str | None]] | None = None,
        timeout: float = 30.0,
    ) -> None:
        self._http = http_session
        self._token_provider = token_provider
        self._timeout = aiohttp.ClientTimeout(total=timeout)

    async def _headers(self) -> dict[str, str]:
        headers: dict[str, str] = {
            "content-type": "application/json; charset=UTF-8",
            "user-agent": USER_AGENT,
        }
        token = await self._token_provider() if self._token_provider is not None else None
        if token:
            headers["authorization"] = f"Bearer {token}"
        return headers

    async def request_json(
        self,
        method: str,
        url: str,
        payload: Mapping[str, Any] | None = None,
    ) -> Any:
        """Send *payload* as JSON and return the decoded reply.

        Raises :class:`VendTransportError` on network failure, any non-2xx
        status, or a body that is not JSON. Empty bodies decode to ``{}``.
        """
        endpoint = redact_url(url)
        body = json.dumps(payload, separators=(",", ":")) if payload is not None else None
        _logger.debug("%s %s payload=%s", method, endpoint, redact_for_log(payload))
        headers = await self._headers()

        try:
            async with self._http.request(
                method,
                url,
                data=body,
                headers=headers,
                timeout=self._timeout,
            ) as resp:
                text = await resp.text()
                if resp.status < 200 or resp.status >= 300:
                    raise VendTransportError(
                        f"HTTP {resp.status} from {endpoint}: {text[:200]}",
                        status_code=resp.status,
                        endpoint=endpoint,
                    )
        except VendTransportError:
            raise
        except (aiohttp.ClientError, TimeoutError) as exc:
            raise VendTransportError(
                f"Request to {endpoint} failed: {exc}",
                endpoint=endpoint,
            ) from exc

        if not text.strip():
            return {}
        try:
            return json.loads(text)
        except json.JSONDecodeError as exc:
            raise VendTransportError(
                f"Invalid JSON from {endpoint}: {text[:200]}",
                endpoint=endpoint,
            ) from exc
