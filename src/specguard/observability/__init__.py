"""specguard observability: structured logging setup and redaction."""

from specguard.observability.logging import (
    LoggingHandle,
    correlation_scope,
    redact,
    setup_logging,
    shutdown_logging,
)

__all__ = [
    "LoggingHandle",
    "correlation_scope",
    "redact",
    "setup_logging",
    "shutdown_logging",
]
