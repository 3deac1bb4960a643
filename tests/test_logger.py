import pytest

from core.logger import REDACTED, DiagnosticsLog, sanitize


def test_sanitize_redacts_nested_keys():
    data = {
        "apiKey": "abc",
        "nested": {"password": "p", "ok": 1},
        "items": [{"secret": "s"}, {"address": "W"}],
        "privateKey": "k",
    }
    out = sanitize(data)
    assert out["apiKey"] == REDACTED
    assert out["privateKey"] == REDACTED
    assert out["nested"] == {"password": REDACTED, "ok": 1}
    assert out["items"] == [{"secret": REDACTED}, {"address": "W"}]
    assert data["apiKey"] == "abc"


def test_sanitize_formats_exceptions():
    assert sanitize(ValueError("bad")) == "ValueError: bad"


def test_ring_buffer_is_bounded():
    diag = DiagnosticsLog(capacity=3, name="test.bounded", console=False)
    log = diag.get_logger("unit")
    for i in range(5):
        log.info(f"message {i}")
    entries = diag.get_logs()
    assert [e["message"] for e in entries] == ["message 2", "message 3", "message 4"]
    assert entries[0]["logger"] == "test.bounded.unit"


def test_entries_carry_sanitized_context_and_level_filter():
    diag = DiagnosticsLog(capacity=10, name="test.levels", console=False)
    log = diag.get_logger("unit")
    log.debug("debug line")
    log.warning("careful", extra={"data": {"token": "t", "address": "W"}})
    log.error("broken")

    warnings = diag.get_logs("warn")
    assert len(warnings) == 1
    assert warnings[0]["data"] == {"token": REDACTED, "address": "W"}
    assert [e["level"] for e in diag.get_logs()] == ["debug", "warning", "error"]
    assert len(diag.get_logs("error")) == 1

    diag.clear()
    assert diag.get_logs() == []


def test_secret_query_params_are_scrubbed_from_text():
    err = ConnectionError("Max retries exceeded with url: /v0/tx?limit=5&api-key=abc123")
    assert "abc123" not in sanitize(err)
    assert sanitize("https://rpc.local/?api-key=abc123") == f"https://rpc.local/?api-key={REDACTED}"

    diag = DiagnosticsLog(capacity=10, name="test.scrub", console=False)
    diag.get_logger("unit").error("failed at https://rpc.local/?api-key=abc123", extra={"data": {"error": err}})
    assert "abc123" not in str(diag.get_logs())


def test_unknown_level_is_rejected():
    diag = DiagnosticsLog(capacity=10, name="test.unknown", console=False)
    with pytest.raises(ValueError):
        diag.get_logs("loud")
