"""
specguard — structured logging setup.

File: src/specguard/observability/logging.py

Purpose
- Apply the ``[observability]`` config section: route ``structlog`` events through stdlib
  ``logging`` into a JSON-lines (or text) file under ``log_dir`` and optionally stdout.

Functional requirements
- Secrets in event fields and messages are redacted before they reach any sink.
- Calling ``setup_logging`` again replaces the previous handlers.
- Correlation fields bound with ``correlation_scope`` appear on every record in scope.

Non-functional requirements
- Library code only calls ``structlog.get_logger``; nothing is configured at import time.
"""

from __future__ import annotations

import json
import logging
import re
import threading
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Final

import structlog

LOG_FILENAME: Final[str] = "specguard.jsonl"
REDACTED: Final[str] = "***REDACTED***"

_SENSITIVE_KEY_PARTS: Final[tuple[str, ...]] = (
    "secret",
    "token",
    "password",
    "passphrase",
    "api_key",
    "apikey",
    "authorization",
    "credential",
    "cookie",
    "private_key",
    # Provider traffic carries diff text and is never logged verbatim.
    "transcript",
    "provider_prompt",
    "provider_response",
    "raw_response",
)
_NON_SENSITIVE_KEYS: Final[frozenset[str]] = frozenset({"max_tokens"})

_SECRET_TEXT_PATTERNS: Final[tuple[tuple[re.Pattern[str], str], ...]] = (
    (
        re.compile(
            r"(?i)\b(api[_-]?key|token|password|secret|authorization)\b\s*([:=])\s*[^\s,;]+"
        ),
        rf"\1\2{REDACTED}",
    ),
    (re.compile(r"(?i)\bbearer\s+[A-Za-z0-9._~+/-]+=*"), f"Bearer {REDACTED}"),
    (re.compile(r"\bsk-ant-[A-Za-z0-9_-]{12,}\b"), REDACTED),
    (re.compile(r"\bsk-[A-Za-z0-9]{12,}\b"), REDACTED),
)

# Attributes every LogRecord carries; anything else arrived via ``extra=`` or structlog.
_RECORD_ATTRIBUTES: Final[frozenset[str]] = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", None, None))
) | {"message", "asctime"}

_lock = threading.Lock()
_active: LoggingHandle | None = None


@dataclass(slots=True)
class LoggingHandle:
    """Handlers attached by one ``setup_logging`` call."""

    logger: logging.Logger
    log_path: Path | None
    handlers: tuple[logging.Handler, ...]
    closed: bool = False

    def close(self) -> None:
        if self.closed:
            return
        for handler in self.handlers:
            self.logger.removeHandler(handler)
            handler.close()
        self.closed = True


class _RecordFormatter(logging.Formatter):
    """One record per line: a JSON object, or ``key=value`` text for terminals."""

    def __init__(self, *, as_json: bool, redact_secrets: bool) -> None:
        super().__init__()
        self._as_json = as_json
        self._redact = redact if redact_secrets else _unchanged

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created, tz=UTC)
        stamp = timestamp.isoformat(timespec="milliseconds").replace("+00:00", "Z")
        message = self._redact(record.getMessage())
        fields = self._redact(
            {
                key: _jsonable(value)
                for key, value in record.__dict__.items()
                if key not in _RECORD_ATTRIBUTES and not key.startswith("_")
            }
        )
        error = self._redact(self.formatException(record.exc_info)) if record.exc_info else None

        if self._as_json:
            event: dict[str, Any] = {
                "timestamp": stamp,
                "level": record.levelname,
                "logger": record.name,
                "message": message,
            }
            if fields:
                event["fields"] = fields
            if error:
                event["exception"] = error
            return json.dumps(event, sort_keys=True, separators=(",", ":"), ensure_ascii=False)

        parts = [stamp, f"{record.levelname:<7}", record.name, message]
        parts.extend(f"{key}={_text(fields[key])}" for key in sorted(fields))
        line = " ".join(parts)
        return f"{line}\n{error}" if error else line


def setup_logging(
    observability: Mapping[str, Any] | None = None,
    *,
    log_dir: str | Path | None = None,
    logger_name: str = "specguard",
) -> LoggingHandle:
    """Attach sinks described by an ``[observability]`` section to ``logger_name``.

    Without ``log_dir`` (argument or config key) and without ``log_to_stdout`` the
    logger gets a ``NullHandler``.
    """

    global _active

    settings = dict(observability or {})
    level = logging.getLevelName(str(settings.get("log_level", "INFO")).upper())
    if not isinstance(level, int):
        raise ValueError(f"unsupported logging level {settings['log_level']!r}")
    log_format = settings.get("log_format", "json")
    if log_format not in ("json", "text"):
        raise ValueError(f"unsupported log format {log_format!r}")
    if not logger_name.strip():
        raise ValueError("logger_name must not be empty")

    formatter = _RecordFormatter(
        as_json=log_format == "json",
        redact_secrets=bool(settings.get("redact_secrets", True)),
    )
    directory = log_dir if log_dir is not None else settings.get("log_dir")
    handlers: list[logging.Handler] = []
    log_path: Path | None = None
    if directory:
        log_path = Path(directory) / LOG_FILENAME
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path, encoding="utf-8"))
    if settings.get("log_to_stdout", False):
        handlers.append(logging.StreamHandler())
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)

    logger = logging.getLogger(logger_name.strip())
    with _lock:
        if _active is not None:
            _active.close()
        for existing in list(logger.handlers):
            logger.removeHandler(existing)
            existing.close()
        logger.setLevel(level)
        logger.propagate = False
        for handler in handlers or [logging.NullHandler()]:
            logger.addHandler(handler)
        structlog.configure(
            processors=[
                structlog.contextvars.merge_contextvars,
                structlog.stdlib.filter_by_level,
                structlog.stdlib.PositionalArgumentsFormatter(),
                structlog.stdlib.render_to_log_kwargs,
            ],
            logger_factory=structlog.stdlib.LoggerFactory(),
            wrapper_class=structlog.stdlib.BoundLogger,
            cache_logger_on_first_use=False,
        )
        _active = LoggingHandle(logger=logger, log_path=log_path, handlers=tuple(handlers))
        return _active


def shutdown_logging(handle: LoggingHandle | None = None) -> None:
    """Close ``handle``, or the most recently configured one."""

    global _active

    with _lock:
        target = handle if handle is not None else _active
        if target is None:
            return
        target.close()
        if target is _active:
            _active = None


@contextmanager
def correlation_scope(**fields: str) -> Iterator[None]:
    """Bind correlation fields (``spec_id``, ...) to every record logged in scope."""

    with structlog.contextvars.bound_contextvars(**fields):
        yield


def redact(value: Any) -> Any:
    """Deep-redact secret-looking keys and secret patterns inside strings."""

    if isinstance(value, str):
        for pattern, replacement in _SECRET_TEXT_PATTERNS:
            value = pattern.sub(replacement, value)
        return value
    if isinstance(value, list):
        return [redact(item) for item in value]
    if isinstance(value, dict):
        return {
            key: REDACTED if _sensitive_key(key) else redact(item) for key, item in value.items()
        }
    return value


def _sensitive_key(key: str) -> bool:
    lowered = key.lower()
    return lowered not in _NON_SENSITIVE_KEYS and any(
        part in lowered for part in _SENSITIVE_KEY_PARTS
    )


def _unchanged(value: Any) -> Any:
    return value


def _jsonable(value: object) -> Any:
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, Mapping):
        return {str(key): _jsonable(item) for key, item in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_jsonable(item) for item in value]
    return str(value)


def _text(value: Any) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


__all__ = [
    "LOG_FILENAME",
    "REDACTED",
    "LoggingHandle",
    "correlation_scope",
    "redact",
    "setup_logging",
    "shutdown_logging",
]
