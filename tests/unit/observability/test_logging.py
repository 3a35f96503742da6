"""
specguard — unit tests for observability logging

File: tests/unit/observability/test_logging.py

Purpose
- Validate structured JSON logging with redaction, correlation metadata, and structlog routing.

What this test file should cover
- JSON line validity and redaction guarantees.
- Correlation field propagation through ``correlation_scope``.
- structlog events landing in the stdlib sinks.
- Handler replacement and shutdown behavior.

Functional requirements
- Offline operation.

Non-functional requirements
- Deterministic and non-flaky.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING
from uuid import uuid4

import pytest
import structlog

from specguard.observability.logging import (
    correlation_scope,
    redact,
    setup_logging,
    shutdown_logging,
)

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path

pytestmark = pytest.mark.unit


@pytest.fixture(autouse=True)
def _cleanup_logging() -> Iterator[None]:
    yield
    shutdown_logging()


def _logger_name() -> str:
    return f"specguard.tests.logging.{uuid4().hex}"


def _read_json_lines(path: Path) -> list[dict[str, object]]:
    lines = path.read_text(encoding="utf-8").splitlines()
    return [json.loads(line) for line in lines]


def test_json_logging_redacts_secrets_in_message_and_fields(tmp_path: Path) -> None:
    logger_name = _logger_name()
    handle = setup_logging(log_dir=tmp_path, logger_name=logger_name)
    logger = logging.getLogger(logger_name)

    logger.info(
        "payload token=tok-FAKE and key sk-FAKE123456789012345",
        extra={"nested": {"password": "hunter2", "safe": "ok"}, "raw_response": "diff text"},
    )
    shutdown_logging(handle)

    assert handle.log_path == tmp_path / "specguard.jsonl"
    parsed = _read_json_lines(handle.log_path)
    assert len(parsed) == 1
    record = parsed[0]
    assert record["level"] == "INFO"
    assert record["logger"] == logger_name
    assert str(record["timestamp"]).endswith("Z")
    assert record["fields"] == {
        "nested": {"password": "***REDACTED***", "safe": "ok"},
        "raw_response": "***REDACTED***",
    }

    line = handle.log_path.read_text(encoding="utf-8")
    assert "tok-FAKE" not in line
    assert "sk-FAKE" not in line
    assert "hunter2" not in line
    assert "diff text" not in line


def test_structlog_events_route_through_stdlib_with_correlation(tmp_path: Path) -> None:
    logger_name = _logger_name()
    handle = setup_logging(log_dir=tmp_path, logger_name=logger_name)
    logger = structlog.get_logger(logger_name)

    with correlation_scope(spec_id="spec0001"):
        logger.info("verification_completed", issues=1, use_ai=False)
    logger.info("outside_scope")
    shutdown_logging(handle)

    first, second = _read_json_lines(handle.log_path)
    assert first["message"] == "verification_completed"
    assert first["fields"] == {"issues": 1, "spec_id": "spec0001", "use_ai": False}
    assert second["message"] == "outside_scope"
    assert "fields" not in second


def test_level_threshold_filters_records(tmp_path: Path) -> None:
    logger_name = _logger_name()
    handle = setup_logging(
        {"log_level": "warning", "log_dir": str(tmp_path)}, logger_name=logger_name
    )
    logger = structlog.get_logger(logger_name)

    logger.debug("ignored_debug")
    logger.info("ignored_info")
    logger.warning("kept_warning", file="src/app.py")
    shutdown_logging(handle)

    assert handle.log_path is not None
    parsed = _read_json_lines(handle.log_path)
    assert [record["message"] for record in parsed] == ["kept_warning"]


def test_text_format_renders_sorted_key_values(tmp_path: Path) -> None:
    logger_name = _logger_name()
    handle = setup_logging({"log_format": "text"}, log_dir=tmp_path, logger_name=logger_name)
    logging.getLogger(logger_name).info(
        "spec_store_created", extra={"spec_id": "abc12345", "api_key": "sk-x", "count": 2}
    )
    shutdown_logging(handle)

    line = (tmp_path / "specguard.jsonl").read_text(encoding="utf-8").strip()
    assert "INFO" in line
    assert line.endswith("spec_store_created api_key=***REDACTED*** count=2 spec_id=abc12345")


def test_setup_logging_uses_observability_config(tmp_path: Path) -> None:
    logger_name = _logger_name()
    handle = setup_logging(
        {"log_level": "INFO", "log_dir": str(tmp_path / "logs"), "redact_secrets": True},
        logger_name=logger_name,
    )

    handle.logger.info("hello", extra={"token": "t-123"})
    shutdown_logging()

    assert handle.log_path == tmp_path / "logs" / "specguard.jsonl"
    content = handle.log_path.read_text(encoding="utf-8")
    assert "t-123" not in content
    assert "hello" in content


def test_setup_logging_can_disable_redaction(tmp_path: Path) -> None:
    logger_name = _logger_name()
    handle = setup_logging(
        {"log_dir": str(tmp_path), "redact_secrets": False}, logger_name=logger_name
    )

    handle.logger.info("hello", extra={"token": "t-123"})
    shutdown_logging()

    content = (tmp_path / "specguard.jsonl").read_text(encoding="utf-8")
    assert "t-123" in content


def test_setup_replaces_previous_handle(tmp_path: Path) -> None:
    logger_name = _logger_name()
    first = setup_logging(log_dir=tmp_path / "a", logger_name=logger_name)
    second = setup_logging(log_dir=tmp_path / "b", logger_name=logger_name)

    assert first.closed
    assert not second.closed
    assert len(logging.getLogger(logger_name).handlers) == 1

    shutdown_logging()
    assert second.closed
    assert logging.getLogger(logger_name).handlers == []
    shutdown_logging()


def test_no_sinks_installs_null_handler() -> None:
    logger_name = _logger_name()
    handle = setup_logging({"log_to_stdout": False}, logger_name=logger_name)

    assert handle.log_path is None
    assert handle.handlers == ()
    handlers = logging.getLogger(logger_name).handlers
    assert len(handlers) == 1
    assert isinstance(handlers[0], logging.NullHandler)


@pytest.mark.parametrize(
    ("observability", "logger_name", "message"),
    [
        ({"log_format": "xml"}, "specguard", "unsupported log format"),
        ({"log_level": "TRACE"}, "specguard", "unsupported logging level"),
        ({}, "  ", "logger_name must not be empty"),
    ],
)
def test_invalid_logging_settings_are_rejected(
    observability: dict[str, object], logger_name: str, message: str
) -> None:
    with pytest.raises(ValueError, match=message):
        setup_logging(observability, logger_name=logger_name)


def test_redact_handles_nested_structures() -> None:
    redacted = redact(
        {
            "items": [{"client_secret": "abc"}, "sent Bearer abc.def"],
            "max_tokens": 2048,
            "model": "claude",
        }
    )
    assert redacted == {
        "items": [{"client_secret": "***REDACTED***"}, "sent Bearer ***REDACTED***"],
        "max_tokens": 2048,
        "model": "claude",
    }
