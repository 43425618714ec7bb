"""Console configuration for vendconsole."""

from __future__ import annotations

import dataclasses
import os
from typing import Any

from vendconsole._constants import (
    DEFAULT_PLAN,
    FIRESTORE_BASE_URL,
    IDENTITY_BASE_URL,
    LOW_PAPER_THRESHOLD,
    PAPER_WARNING_THRESHOLD,
    PRICE_TIERS,
    SALES_COLLECTION,
    SECURETOKEN_BASE_URL,
    TERMINALS_COLLECTION,
    TOKENS_COLLECTION,
    WINDOW_LIMIT,
    collection_path,
)
from vendconsole.exceptions import VendConfigError


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


def _env_tiers(value: str) -> tuple[int, ...]:
    try:
        tiers = tuple(sorted({int(part) for part in value.split(",") if part.strip()}))
    except ValueError as exc:
        raise VendConfigError(f"VEND_PRICE_TIERS must be comma-separated integers, got {value!r}") from exc
    if not tiers:
        raise VendConfigError("VEND_PRICE_TIERS must list at least one price")
    return tiers


@dataclasses.dataclass(frozen=True)
class ConsoleConfig:
    """Console configuration.

    Parameters
    ----------
    project_id : str
        Firebase/Firestore project identifier.
    api_key : str
        Web API key used for Identity Toolkit sign-in.
    app_id : str
        Application namespace. Collections live under
        ``artifacts/{app_id}/public/data/``.
    initial_auth_token : str or None
        Custom sign-in token. Anonymous sign-in is used when absent.
    firestore_base_url : str
        Firestore REST base URL.
    identity_base_url : str
        Identity Toolkit REST base URL.
    securetoken_base_url : str
        Secure Token REST base URL, used to renew expired ID tokens.
    window_limit : int
        Maximum number of documents fetched per live query.
    low_paper_threshold : int
        Terminals strictly below this paper level count as low stock.
    paper_warning_threshold : int
        Terminals strictly below this level (and not low) are flagged.
    poll_interval : float
        Seconds between snapshot polls for the REST record store.
    session_ttl : float
        Identity token lifetime in seconds when the server omits one.
    price_tiers : tuple of int
        Sale prices an operator may assign to an imported batch.
    default_plan : str
        Plan label used when a batch file has no ``Plan`` column.
    guard_sold_reimport : bool
        Reject batches that would reset already-sold tokens to unsold.
    """

    project_id: str = ""
    api_key: str = ""
    app_id: str = "default-app-id"
    initial_auth_token: str | None = None
    firestore_base_url: str = FIRESTORE_BASE_URL
    identity_base_url: str = IDENTITY_BASE_URL
    securetoken_base_url: str = SECURETOKEN_BASE_URL
    window_limit: int = WINDOW_LIMIT
    low_paper_threshold: int = LOW_PAPER_THRESHOLD
    paper_warning_threshold: int = PAPER_WARNING_THRESHOLD
    poll_interval: float = 5.0
    session_ttl: float = 3600.0
    price_tiers: tuple[int, ...] = PRICE_TIERS
    default_plan: str = DEFAULT_PLAN
    guard_sold_reimport: bool = False
    terminals_collection: str = TERMINALS_COLLECTION
    tokens_collection: str = TOKENS_COLLECTION
    sales_collection: str = SALES_COLLECTION

    @property
    def terminals_path(self) -> str:
        return collection_path(self.app_id, self.terminals_collection)

    @property
    def tokens_path(self) -> str:
        return collection_path(self.app_id, self.tokens_collection)

    @property
    def sales_path(self) -> str:
        return collection_path(self.app_id, self.sales_collection)

    @property
    def database_url(self) -> str:
        """Root of the default database's document tree."""
        if not self.project_id:
            raise VendConfigError("project_id is required for the Firestore record store")
        return f"{self.firestore_base_url}/projects/{self.project_id}/databases/(default)/documents"

    @classmethod
    def from_env(cls, **overrides: Any) -> ConsoleConfig:
        """Create configuration from environment variables.

        Reads ``VEND_PROJECT_ID``, ``VEND_API_KEY`` and the optional
        ``VEND_*`` variables below. Explicit keyword arguments override
        environment values.

        Parameters
        ----------
        **overrides
            Explicit field values that take precedence over env vars.

        Returns
        -------
        ConsoleConfig
            Populated configuration.
        """
        env = os.environ

        _ENV_CONFIG_MAP = {
            "VEND_PROJECT_ID": "project_id",
            "VEND_API_KEY": "api_key",
            "VEND_APP_ID": "app_id",
            "VEND_AUTH_TOKEN": "initial_auth_token",
            "VEND_FIRESTORE_URL": "firestore_base_url",
            "VEND_IDENTITY_URL": "identity_base_url",
            "VEND_SECURETOKEN_URL": "securetoken_base_url",
            "VEND_DEFAULT_PLAN": "default_plan",
        }
        config_kwargs: dict[str, Any] = {}
        for env_key, field_name in _ENV_CONFIG_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        _ENV_INT_MAP = {
            "VEND_WINDOW_LIMIT": "window_limit",
            "VEND_LOW_PAPER_THRESHOLD": "low_paper_threshold",
            "VEND_PAPER_WARNING_THRESHOLD": "paper_warning_threshold",
        }
        for env_key, field_name in _ENV_INT_MAP.items():
            val = env.get(env_key)
            if val is not None and field_name not in overrides:
                config_kwargs[field_name] = int(val)

        poll_env = env.get("VEND_POLL_INTERVAL")
        if poll_env is not None and "poll_interval" not in overrides:
            config_kwargs["poll_interval"] = float(poll_env)

        ttl_env = env.get("VEND_SESSION_TTL")
        if ttl_env is not None and "session_ttl" not in overrides:
            config_kwargs["session_ttl"] = float(ttl_env)

        tiers_env = env.get("VEND_PRICE_TIERS")
        if tiers_env is not None and "price_tiers" not in overrides:
            config_kwargs["price_tiers"] = _env_tiers(tiers_env)

        if "guard_sold_reimport" not in overrides:
            config_kwargs["guard_sold_reimport"] = _env_bool(env.get("VEND_GUARD_SOLD_REIMPORT"), False)

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
