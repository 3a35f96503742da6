"""Short ID generation and validation for specs, phases, and verification issues."""

from __future__ import annotations

import re
import secrets
from collections.abc import Callable
from typing import Final

SHORT_ID_BYTES: Final[int] = 4
SHORT_ID_LENGTH: Final[int] = SHORT_ID_BYTES * 2
_PREFIX_SEPARATOR: Final[str] = "-"

# Stable entity ID prefixes.
ISSUE_ID_PREFIX: Final[str] = "iss"

_SHORT_ID_RE: Final[re.Pattern[str]] = re.compile(r"^[0-9a-f]{8}$")
_PREFIX_RE: Final[re.Pattern[str]] = re.compile(r"^[a-z][a-z0-9]{0,15}$")
# Any ID used as a record file name: no separators, no traversal, bounded length.
_RECORD_ID_RE: Final[re.Pattern[str]] = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_-]{0,63}$")

_RandBytes = Callable[[int], bytes]

__all__ = [
    "ISSUE_ID_PREFIX",
    "SHORT_ID_LENGTH",
    "generate_issue_id",
    "generate_prefixed_id",
    "generate_short_id",
    "generate_unique_issue_id",
    "is_record_id",
    "is_short_id",
    "validate_issue_id",
    "validate_prefixed_id",
    "validate_record_id",
    "validate_short_id",
]


def generate_short_id(*, randbytes: _RandBytes | None = None) -> str:
    """Generate an 8-character lowercase hex identifier."""
    raw = _resolve_random_bytes(randbytes)
    return raw.hex()


def validate_short_id(id_str: str) -> None:
    """Validate a short ID and raise ``ValueError`` with precise context on failure."""
    if not isinstance(id_str, str):
        raise ValueError(f"short id must be a string, got {type(id_str).__name__}")
    if not _SHORT_ID_RE.fullmatch(id_str):
        raise ValueError(
            f"short id must be {SHORT_ID_LENGTH} lowercase hex characters, got {id_str!r}"
        )


def is_short_id(id_str: object) -> bool:
    return isinstance(id_str, str) and _SHORT_ID_RE.fullmatch(id_str) is not None


def validate_record_id(id_str: str) -> None:
    """Validate an ID that doubles as a record file name."""
    if not isinstance(id_str, str):
        raise ValueError(f"id must be a string, got {type(id_str).__name__}")
    if not _RECORD_ID_RE.fullmatch(id_str):
        raise ValueError(f"id must match {_RECORD_ID_RE.pattern}, got {id_str!r}")


def is_record_id(id_str: object) -> bool:
    return isinstance(id_str, str) and _RECORD_ID_RE.fullmatch(id_str) is not None


def generate_prefixed_id(prefix: str, *, randbytes: _RandBytes | None = None) -> str:
    """Generate a prefixed ID in the form ``<prefix>-<short id>``."""
    _validate_prefix(prefix)
    return f"{prefix}{_PREFIX_SEPARATOR}{generate_short_id(randbytes=randbytes)}"


def validate_prefixed_id(id_str: str, expected_prefix: str) -> None:
    """Validate ``<prefix>-<short id>`` format and enforce ``expected_prefix``."""
    _validate_prefix(expected_prefix)
    if not isinstance(id_str, str):
        raise ValueError(f"prefixed id must be a string, got {type(id_str).__name__}")

    expected_lead = f"{expected_prefix}{_PREFIX_SEPARATOR}"
    if not id_str.startswith(expected_lead):
        raise ValueError(f"expected prefix '{expected_lead}'")

    try:
        validate_short_id(id_str[len(expected_lead) :])
    except ValueError as exc:
        raise ValueError(f"invalid id part for prefix '{expected_prefix}': {exc}") from exc


def generate_issue_id(*, randbytes: _RandBytes | None = None) -> str:
    return generate_prefixed_id(ISSUE_ID_PREFIX, randbytes=randbytes)


def validate_issue_id(id_str: str) -> None:
    validate_prefixed_id(id_str, ISSUE_ID_PREFIX)


def generate_unique_issue_id(
    taken: set[str],
    *,
    factory: Callable[[], str] | None = None,
    max_attempts: int = 64,
) -> str:
    """Generate an issue ID not in ``taken`` and record it there."""
    generate = factory if factory is not None else generate_issue_id
    for _ in range(max_attempts):
        candidate = generate()
        if candidate not in taken:
            taken.add(candidate)
            return candidate
    raise RuntimeError(f"could not allocate a unique issue id after {max_attempts} attempts")


def _resolve_random_bytes(randbytes: _RandBytes | None) -> bytes:
    generator = randbytes if randbytes is not None else secrets.token_bytes
    raw = generator(SHORT_ID_BYTES)
    if not isinstance(raw, (bytes, bytearray)):
        raise ValueError(f"randbytes must return bytes, got {type(raw).__name__}")
    if len(raw) != SHORT_ID_BYTES:
        raise ValueError(f"randbytes must return exactly {SHORT_ID_BYTES} bytes, got {len(raw)}")
    return bytes(raw)


def _validate_prefix(prefix: str) -> None:
    if not isinstance(prefix, str):
        raise ValueError(f"prefix must be a string, got {type(prefix).__name__}")
    if not _PREFIX_RE.fullmatch(prefix):
        raise ValueError("prefix must match ^[a-z][a-z0-9]{0,15}$")
