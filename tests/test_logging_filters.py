"""Tests for sensitive data filtering and JSON formatting in logs."""

from __future__ import annotations

import json
import logging
from io import StringIO

import pytest

from httprate_redis.core.logging import (
    JsonFormatter,
    RequestIdFilter,
    SensitiveDataFilter,
    clear_request_id,
    set_request_id,
)


@pytest.fixture
def log_stream() -> tuple[logging.Logger, StringIO]:
    logger = logging.getLogger("test_redaction")
    logger.setLevel(logging.INFO)
    logger.handlers.clear()
    logger.propagate = False

    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.addFilter(RequestIdFilter())
    handler.addFilter(SensitiveDataFilter())
    handler.setFormatter(JsonFormatter())
    logger.addHandler(handler)
    return logger, stream


def test_redacts_credentials_and_raw_keys(log_stream):
    logger, stream = log_stream

    logger.info(
        "redis_counter.connected",
        extra={
            "password": "hunter2",
            "x-api-key": "sk-secret-123",
            "rate_limit_key": "api_key:sk-secret-123",
            "key_hash": "abcd1234",
        },
    )

    output = stream.getvalue()
    assert "hunter2" not in output
    assert "sk-secret-123" not in output
    assert "[REDACTED]" in output
    assert "abcd1234" in output


def test_redacts_nested_values(log_stream):
    logger, stream = log_stream

    logger.info(
        "nested_event",
        extra={"headers": {"Authorization": "Bearer t0k3n", "user-agent": "pytest"}},
    )

    output = stream.getvalue()
    assert "t0k3n" not in output
    assert "pytest" in output


def test_safe_fields_pass_through(log_stream):
    logger, stream = log_stream

    logger.warning(
        "rate_limit.exceeded",
        extra={"key_type": "ip", "limit": 10, "remaining": 0, "retry_after_s": 12},
    )

    record = json.loads(stream.getvalue())
    assert record["message"] == "rate_limit.exceeded"
    assert record["level"] == "warning"
    assert record["limit"] == 10
    assert record["retry_after_s"] == 12


def test_request_id_from_context(log_stream):
    logger, stream = log_stream

    set_request_id("req-123")
    try:
        logger.info("http.request")
    finally:
        clear_request_id()

    assert json.loads(stream.getvalue())["request_id"] == "req-123"
