"""Stable constants shared across specguard planes."""

from __future__ import annotations

from pathlib import PurePosixPath
from typing import Final

# Schema versions for persisted contracts.
CONFIG_SCHEMA_VERSION: Final[int] = 1

# Project-local directory holding one JSON record per spec.
SPEC_DIR: Final[PurePosixPath] = PurePosixPath(".agentic-plan")
SPEC_RECORD_SUFFIX: Final[str] = ".json"

# Diff collection bounds.
DEFAULT_GIT_TIMEOUT_SECONDS: Final[float] = 10.0
DEFAULT_MAX_PATCH_CHARS: Final[int] = 4000
DEFAULT_MAX_UNTRACKED_BYTES: Final[int] = 256 * 1024

# Risk classification.
DEFAULT_LARGE_DELETION_THRESHOLD: Final[int] = 300
SEVERITY_ORDER: Final[tuple[str, ...]] = ("critical", "major", "minor")

# Local verification keywords must be longer than this many characters.
KEYWORD_MIN_EXCLUSIVE_LENGTH: Final[int] = 3

# Deep verification attempt budget.
DEFAULT_DEEP_VERIFY_MAX_ATTEMPTS: Final[int] = 2

__all__ = [
    "CONFIG_SCHEMA_VERSION",
    "DEFAULT_DEEP_VERIFY_MAX_ATTEMPTS",
    "DEFAULT_GIT_TIMEOUT_SECONDS",
    "DEFAULT_LARGE_DELETION_THRESHOLD",
    "DEFAULT_MAX_PATCH_CHARS",
    "DEFAULT_MAX_UNTRACKED_BYTES",
    "KEYWORD_MIN_EXCLUSIVE_LENGTH",
    "SEVERITY_ORDER",
    "SPEC_DIR",
    "SPEC_RECORD_SUFFIX",
]
