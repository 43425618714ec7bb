from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import pytest
from pydantic import ValidationError

from vendconsole.config import ConsoleConfig
from vendconsole.exceptions import VendAuthenticationError, VendConfigError, VendTransportError
from vendconsole.identity import FirebaseIdentity, Session, StaticIdentity


class _ScriptedTransport:
    def __init__(self, reply: Any) -> None:
        self.reply = reply
        self.calls: list[tuple[str, str, Mapping[str, Any] | None]] = []

    async def request_json(self, method: str, url: str, payload: Mapping[str, Any] | None = None) -> Any:
        self.calls.append((method, url, payload))
        if isinstance(self.reply, Exception):
            raise self.reply
        return self.reply


_OK = {"localId": "uid-1", "idToken": "ID", "refreshToken": "RT", "expiresIn": "3600"}


@pytest.mark.asyncio
async def test_anonymous_sign_up_without_custom_token() -> None:
    transport = _ScriptedTransport(_OK)
    identity = FirebaseIdentity(ConsoleConfig(api_key="AIza"), transport)

    session = await identity.sign_in()

    assert session.actor_id == "uid-1"
    assert session.id_token == "ID"
    assert session.ttl == 3600.0
    method, url, payload = transport.calls[0]
    assert method == "POST"
    assert url.endswith("/accounts:signUp?key=AIza")
    assert payload == {"returnSecureToken": True}


@pytest.mark.asyncio
async def test_custom_token_sign_in() -> None:
    transport = _ScriptedTransport({"localId": "uid-2", "idToken": "ID2"})
    config = ConsoleConfig(api_key="AIza", initial_auth_token="custom", session_ttl=120.0)

    session = await FirebaseIdentity(config, transport).sign_in()

    assert session.actor_id == "uid-2"
    assert session.ttl == 120.0
    _, url, payload = transport.calls[0]
    assert "accounts:signInWithCustomToken" in url
    assert payload == {"token": "custom", "returnSecureToken": True}


@pytest.mark.asyncio
async def test_transport_failure_is_authentication_error() -> None:
    cause = VendTransportError("HTTP 400", status_code=400)
    identity = FirebaseIdentity(ConsoleConfig(api_key="AIza"), _ScriptedTransport(cause))

    with pytest.raises(VendAuthenticationError) as excinfo:
        await identity.sign_in()

    assert excinfo.value.__cause__ is cause


@pytest.mark.asyncio
async def test_reply_without_identity_is_rejected() -> None:
    identity = FirebaseIdentity(ConsoleConfig(api_key="AIza"), _ScriptedTransport({"kind": "x"}))

    with pytest.raises(VendAuthenticationError):
        await identity.sign_in()


@pytest.mark.asyncio
async def test_missing_api_key() -> None:
    transport = _ScriptedTransport(_OK)

    with pytest.raises(VendConfigError):
        await FirebaseIdentity(ConsoleConfig(), transport).sign_in()
    assert transport.calls == []


@pytest.mark.asyncio
async def test_static_identity() -> None:
    session = await StaticIdentity("operator-1").sign_in()

    assert session.actor_id == "operator-1"
    assert not session.is_expired


def test_session_expiry_and_validation() -> None:
    assert Session(actor_id="a", ttl=0.0).is_expired
    with pytest.raises(ValidationError):
        Session(actor_id="   ")


@pytest.mark.asyncio
async def test_refresh_keeps_actor_and_uses_secure_token_endpoint() -> None:
    transport = _ScriptedTransport(
        {"user_id": "uid-1", "id_token": "ID-2", "refresh_token": "RT-2", "expires_in": "1800"}
    )
    identity = FirebaseIdentity(ConsoleConfig(api_key="AIza"), transport)
    expired = Session(actor_id="uid-1", id_token="ID", refresh_token="RT", ttl=0.0)

    renewed = await identity.refresh(expired)

    assert renewed.actor_id == "uid-1"
    assert renewed.id_token == "ID-2"
    assert renewed.refresh_token == "RT-2"
    assert renewed.ttl == 1800.0
    assert not renewed.is_expired
    method, url, payload = transport.calls[0]
    assert method == "POST"
    assert url == "https://securetoken.googleapis.com/v1/token?key=AIza"
    assert payload == {"grant_type": "refresh_token", "refresh_token": "RT"}


@pytest.mark.asyncio
async def test_refresh_rejects_a_different_actor() -> None:
    transport = _ScriptedTransport({"user_id": "uid-9", "id_token": "ID-2"})
    identity = FirebaseIdentity(ConsoleConfig(api_key="AIza"), transport)

    with pytest.raises(VendAuthenticationError):
        await identity.refresh(Session(actor_id="uid-1", refresh_token="RT", ttl=0.0))


@pytest.mark.asyncio
async def test_refresh_failure_is_authentication_error() -> None:
    cause = VendTransportError("HTTP 400", status_code=400)
    identity = FirebaseIdentity(ConsoleConfig(api_key="AIza"), _ScriptedTransport(cause))

    with pytest.raises(VendAuthenticationError) as excinfo:
        await identity.refresh(Session(actor_id="uid-1", refresh_token="RT", ttl=0.0))

    assert excinfo.value.__cause__ is cause


@pytest.mark.asyncio
async def test_refresh_without_refresh_token_signs_in_again() -> None:
    transport = _ScriptedTransport(_OK)
    identity = FirebaseIdentity(ConsoleConfig(api_key="AIza"), transport)

    session = await identity.refresh(Session(actor_id="uid-1", ttl=0.0))

    assert session.actor_id == "uid-1"
    assert transport.calls[0][1].endswith("/accounts:signUp?key=AIza")


@pytest.mark.asyncio
async def test_static_identity_refresh_keeps_actor() -> None:
    identity = StaticIdentity("operator-1")

    session = await identity.refresh(Session(actor_id="operator-1", ttl=0.0))

    assert session.actor_id == "operator-1"
    assert not session.is_expired
