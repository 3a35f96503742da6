"""
specguard — integration plane

File: src/specguard/integration_plane/__init__.py

Purpose
- Read-only access to the version-control working tree.
"""

from specguard.integration_plane.diff_collector import (
    DiffCollector,
    StatusEntry,
    parse_status_porcelain,
    parse_unified_diff,
)
from specguard.integration_plane.git_engine import (
    CommandResult,
    GitCommandError,
    GitEngine,
    GitEngineError,
    GitTimeoutError,
    GitUnavailableError,
)

__all__ = [
    "CommandResult",
    "DiffCollector",
    "GitCommandError",
    "GitEngine",
    "GitEngineError",
    "GitTimeoutError",
    "GitUnavailableError",
    "StatusEntry",
    "parse_status_porcelain",
    "parse_unified_diff",
]
