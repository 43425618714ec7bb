from __future__ import annotations

from typing import Any

import pytest

from vendconsole._transport import JsonTransport
from vendconsole.exceptions import VendTransportError


class _FakeResponse:
    def __init__(self, status: int, body: str) -> None:
        self.status = status
        self._body = body

    async def text(self) -> str:
        return self._body

    async def __aenter__(self) -> _FakeResponse:
        return self

    async def __aexit__(self, *exc: Any) -> None:
        return None


class _FakeHttpSession:
    """Stands in for ``aiohttp.ClientSession.request``."""

    def __init__(self, status: int = 200, body: str = '{"ok": true}') -> None:
        self.status = status
        self.body = body
        self.requests: list[dict[str, Any]] = []

    def request(self, method: str, url: str, **kwargs: Any) -> _FakeResponse:
        self.requests.append({"method": method, "url": url, **kwargs})
        return _FakeResponse(self.status, self.body)


@pytest.mark.asyncio
async def test_token_provider_is_awaited_per_request() -> None:
    tokens = iter(["ID-1", "ID-2"])

    async def _provider() -> str | None:
        return next(tokens)

    http = _FakeHttpSession()
    transport = JsonTransport(http, token_provider=_provider)  # type: ignore[arg-type]

    assert await transport.request_json("POST", "https://db.example/documents:commit", {"writes": []}) == {"ok": True}
    await transport.request_json("GET", "https://db.example/documents/a/b")

    assert [r["headers"]["authorization"] for r in http.requests] == ["Bearer ID-1", "Bearer ID-2"]
    assert http.requests[0]["data"] == '{"writes":[]}'
    assert http.requests[1]["data"] is None


@pytest.mark.asyncio
async def test_no_token_means_no_authorization_header() -> None:
    async def _provider() -> str | None:
        return None

    http = _FakeHttpSession(body="")
    transport = JsonTransport(http, token_provider=_provider)  # type: ignore[arg-type]

    assert await transport.request_json("POST", "https://id.example/accounts:signUp?key=k", {}) == {}
    assert "authorization" not in http.requests[0]["headers"]


@pytest.mark.asyncio
async def test_non_2xx_is_transport_error_without_query_string() -> None:
    transport = JsonTransport(_FakeHttpSession(status=401, body="denied"))  # type: ignore[arg-type]

    with pytest.raises(VendTransportError) as excinfo:
        await transport.request_json("POST", "https://id.example/accounts:signUp?key=secret", {})

    assert excinfo.value.status_code == 401
    assert excinfo.value.is_permission_denied
    assert "secret" not in str(excinfo.value)
    assert excinfo.value.endpoint == "https://id.example/accounts:signUp?<redacted>"


@pytest.mark.asyncio
async def test_invalid_json_is_transport_error() -> None:
    transport = JsonTransport(_FakeHttpSession(body="<html>"))  # type: ignore[arg-type]

    with pytest.raises(VendTransportError):
        await transport.request_json("GET", "https://db.example/documents/a/b")
