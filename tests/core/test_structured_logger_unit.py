import logging

from core.error_handler import StructuredLogger, set_correlation_id


def test_browsing_data_and_credentials_are_redacted():
    logger = StructuredLogger("tests")

    data = {
        "context_id": "ctx_0123456789ab",
        "signals": [{"type": "page_view", "data": {"h1": "Ascent X5"}}],
        "profile": {"segments": ["gift_buyer"]},
        "provider": {"api_key": "placeholder", "model": "gemini-2.5-flash"},
        "blocks": [{"type": "faq", "token": "placeholder"}],
    }
    sanitized = logger._sanitize_data(data)

    assert sanitized["context_id"] == "ctx_0123456789ab"
    assert sanitized["signals"] == "[REDACTED]"
    assert sanitized["profile"] == "[REDACTED]"
    assert sanitized["provider"] == {
        "api_key": "[REDACTED]",
        "model": "gemini-2.5-flash",
    }
    assert sanitized["blocks"] == [{"type": "faq", "token": "[REDACTED]"}]


def test_log_records_carry_the_correlation_id(caplog):
    logger = StructuredLogger("tests.context")
    set_correlation_id("cid-42")

    try:
        with caplog.at_level(logging.INFO, logger="tests.context"):
            logger.info("Stored context", context_id="ctx_1", profile={"a": 1})
    finally:
        set_correlation_id(None)

    record = caplog.records[-1]
    assert record.getMessage() == "[cid-42] Stored context"
    assert record.structured_data == {
        "correlation_id": "cid-42",
        "message": "Stored context",
        "context_id": "ctx_1",
        "profile": "[REDACTED]",
    }
