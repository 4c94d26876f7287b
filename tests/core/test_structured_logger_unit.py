import logging

from core.error_handler import (
    StructuredLogger,
    get_correlation_id,
    set_correlation_id,
)


def test_structured_logger_redacts_sensitive_keys():
    logger = StructuredLogger("tests")

    # use non-sensitive placeholder values to avoid secret-detection false positives
    data = {
        "openai_api_key": "placeholder_key",  # pragma: allowlist secret
        "Authorization": "Bearer placeholder",
        "model_id": "gpt-4o",
        "tokens_used": 1200,
    }
    sanitized = logger._sanitize_data(data)

    assert sanitized["openai_api_key"] == "[REDACTED]"
    assert sanitized["Authorization"] == "[REDACTED]"
    assert sanitized["model_id"] == "gpt-4o"
    assert sanitized["tokens_used"] == 1200


def test_structured_logger_never_logs_image_payloads():
    logger = StructuredLogger("tests")

    sanitized = logger._sanitize_data(
        {
            "image_bytes": b"\xff\xd8\xff",
            "upload": {"content": b"\x89PNG" * 10, "filename": "shirt.png"},
            "parts": [b"abc", "text"],
        }
    )

    assert sanitized["image_bytes"] == "[REDACTED]"
    assert sanitized["upload"]["content"] == "<40 bytes>"
    assert sanitized["upload"]["filename"] == "shirt.png"
    assert sanitized["parts"] == ["<3 bytes>", "text"]


def test_structured_logger_header_like_redaction():
    logger = StructuredLogger("tests")

    # header value uses a benign placeholder
    header = {"name": "Authorization", "value": "Bearer placeholder"}
    redacted = logger._redact_header_like(header)
    # header-like should be redacted
    assert redacted["value"] == "[REDACTED]"
    assert redacted["name"] == "Authorization"


def test_non_sensitive_header_like_is_left_alone():
    logger = StructuredLogger("tests")

    assert logger._redact_header_like({"name": "Accept", "value": "image/*"}) is None


def test_log_includes_correlation_id(caplog):
    logger = StructuredLogger("tests.structured")
    set_correlation_id("corr-1")

    with caplog.at_level(logging.INFO, logger="tests.structured"):
        logger.info("Job queued", job_id="job-1")

    record = caplog.records[-1]
    assert "[corr-1] Job queued" in record.getMessage()
    assert record.structured_data["correlation_id"] == "corr-1"
    assert record.structured_data["job_id"] == "job-1"
    set_correlation_id(None)


def test_correlation_id_generated_when_missing():
    set_correlation_id(None)

    first = get_correlation_id()

    assert first
    assert get_correlation_id() == first
    set_correlation_id(None)
