from __future__ import annotations

from vendconsole._redact import redact_for_log, redact_url


def test_redact_for_log_redacts_sensitive_keys() -> None:
    payload = {
        "returnSecureToken": True,
        "token": "custom-token",
        "idToken": "ID",
        "nested": {"refreshToken": "RT", "localId": "uid-1"},
        "Authorization": "Bearer abc",
    }

    redacted = redact_for_log(payload)
    assert redacted["returnSecureToken"] is True
    assert redacted["token"] == "<redacted>"
    assert redacted["idToken"] == "<redacted>"
    assert redacted["nested"]["refreshToken"] == "<redacted>"
    assert redacted["nested"]["localId"] == "uid-1"
    assert redacted["Authorization"] == "<redacted>"


def test_redact_for_log_truncates_long_strings() -> None:
    long_value = "x" * 600
    redacted = redact_for_log({"value": long_value}, max_string=10)
    assert redacted["value"].startswith("x" * 10)
    assert "<truncated>" in redacted["value"]


def test_redact_for_log_shortens_long_sequences() -> None:
    writes = [{"code": f"T{i}"} for i in range(25)]

    redacted = redact_for_log({"writes": writes})

    assert len(redacted["writes"]) == 21
    assert redacted["writes"][-1] == "<5 more>"


def test_redact_url_hides_query_string() -> None:
    url = "https://id.example/v1/accounts:signUp"
    assert redact_url(f"{url}?key=AIza") == f"{url}?<redacted>"
    assert redact_url("https://db.example/documents:commit") == "https://db.example/documents:commit"
