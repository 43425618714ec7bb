"""Identity collaborator.

Synchronization must not start before an actor identifier exists. This
module yields that identifier, either through Identity Toolkit sign-in
or from a fixed value.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Protocol

from pydantic import BaseModel, ConfigDict, Field

from vendconsole._transport import Transport
from vendconsole.config import ConsoleConfig
from vendconsole.exceptions import VendAuthenticationError, VendConfigError, VendTransportError

_logger = logging.getLogger(__name__)


class Session(BaseModel):
    """Authenticated actor after successful sign-in.

    Parameters
    ----------
    actor_id : str
        Opaque identifier of the signed-in actor.
    id_token : str
        Bearer token for record-store requests. Empty for static actors.
    refresh_token : str
        Token for renewing ``id_token`` without changing ``actor_id``.
    created_at : float
        Monotonic timestamp (``time.monotonic()``) when the session
        was created.
    ttl : float
        Time-to-live in seconds.
    """

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        validate_default=True,
        str_strip_whitespace=True,
    )

    actor_id: str = Field(min_length=1)
    id_token: str = ""
    refresh_token: str = ""
    created_at: float = Field(default_factory=time.monotonic)
    ttl: float = float("inf")

    @property
    def is_expired(self) -> bool:
        """Whether the session has exceeded its TTL."""
        return (time.monotonic() - self.created_at) >= self.ttl

    @property
    def age(self) -> float:
        """Seconds since the session was created."""
        return time.monotonic() - self.created_at


class IdentityProvider(Protocol):
    async def sign_in(self) -> Session: ...

    async def refresh(self, session: Session) -> Session:
        """Renew *session* for the same actor."""
        ...


class StaticIdentity:
    """Identity provider that always yields the same actor."""

    def __init__(self, actor_id: str, *, id_token: str = "") -> None:
        self._actor_id = actor_id
        self._id_token = id_token

    async def sign_in(self) -> Session:
        return Session(actor_id=self._actor_id, id_token=self._id_token)

    async def refresh(self, session: Session) -> Session:
        return Session(actor_id=session.actor_id, id_token=self._id_token)


class FirebaseIdentity:
    """Identity Toolkit REST sign-in.

    Uses ``accounts:signInWithCustomToken`` when the config carries an
    initial auth token and anonymous ``accounts:signUp`` otherwise.
    Expired sessions are renewed through the Secure Token endpoint, which
    keeps the actor id.
    """

    def __init__(self, config: ConsoleConfig, transport: Transport) -> None:
        self._config = config
        self._transport = transport

    def _endpoint(self, action: str) -> str:
        if not self._config.api_key:
            raise VendConfigError("api_key is required for sign-in")
        return f"{self._config.identity_base_url}/accounts:{action}?key={self._config.api_key}"

    async def sign_in(self) -> Session:
        token = self._config.initial_auth_token
        if token:
            action = "signInWithCustomToken"
            payload: dict[str, object] = {"token": token, "returnSecureToken": True}
        else:
            action = "signUp"
            payload = {"returnSecureToken": True}

        try:
            response = await self._transport.request_json("POST", self._endpoint(action), payload)
        except VendTransportError as exc:
            raise VendAuthenticationError(f"Sign-in via {action} failed: {exc}") from exc

        if not isinstance(response, dict) or not response.get("localId") or not response.get("idToken"):
            raise VendAuthenticationError(f"Sign-in via {action} returned no identity")

        _logger.debug("Signed in via %s", action)
        return Session(
            actor_id=str(response["localId"]),
            id_token=str(response["idToken"]),
            refresh_token=str(response.get("refreshToken", "")),
            ttl=self._ttl(response.get("expiresIn")),
        )

    def _ttl(self, expires_in: Any) -> float:
        if expires_in is None:
            return self._config.session_ttl
        try:
            return float(expires_in)
        except (TypeError, ValueError):
            _logger.debug("Ignoring non-numeric expiry=%r", expires_in)
            return self._config.session_ttl

    async def refresh(self, session: Session) -> Session:
        """Exchange the refresh token for a new ID token.

        The actor stays the same, so live subscriptions survive renewal.
        Without a refresh token this falls back to a full sign-in.
        """
        if not session.refresh_token:
            _logger.debug("No refresh token; signing in again")
            return await self.sign_in()
        if not self._config.api_key:
            raise VendConfigError("api_key is required for token refresh")

        url = f"{self._config.securetoken_base_url}/token?key={self._config.api_key}"
        payload = {"grant_type": "refresh_token", "refresh_token": session.refresh_token}
        try:
            response = await self._transport.request_json("POST", url, payload)
        except VendTransportError as exc:
            raise VendAuthenticationError(f"Token refresh failed: {exc}") from exc

        if not isinstance(response, dict) or not response.get("id_token"):
            raise VendAuthenticationError("Token refresh returned no ID token")
        user_id = response.get("user_id")
        if user_id and str(user_id) != session.actor_id:
            raise VendAuthenticationError("Token refresh returned a different actor")

        _logger.debug("Refreshed ID token")
        return Session(
            actor_id=session.actor_id,
            id_token=str(response["id_token"]),
            refresh_token=str(response.get("refresh_token") or session.refresh_token),
            ttl=self._ttl(response.get("expires_in")),
        )
