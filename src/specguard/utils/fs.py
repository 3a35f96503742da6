"""
specguard — filesystem utilities

File: src/specguard/utils/fs.py

Purpose
- Atomic record writes and bounded, containment-checked reads.

Functional requirements
- Atomic writes use temp files in the destination directory and replace in a single step.
- Bounded reads never load more than the requested number of bytes.

Non-functional requirements
- Standard library only and cross-platform behavior where feasible.
"""

from __future__ import annotations

import contextlib
import os
import tempfile
from pathlib import Path

PathLike = str | os.PathLike[str]

__all__ = [
    "atomic_write",
    "is_within",
    "read_prefix",
]


def atomic_write(path: PathLike, data: bytes | str, *, encoding: str = "utf-8") -> None:
    """
    Atomically write ``data`` to ``path``.

    The write strategy is:
    1. create temp file in the same directory,
    2. write + flush + fsync file data,
    3. replace target via ``os.replace``.

    Readers observe either the previous record or the new one, never a partial write.
    """

    target = Path(path)
    target_parent = target.parent.resolve(strict=True)
    if not target_parent.is_dir():
        raise NotADirectoryError(f"{target_parent!s} is not a directory")

    fd, temp_name = tempfile.mkstemp(
        prefix=f".{target.name}.",
        suffix=".tmp",
        dir=str(target_parent),
    )
    temp_path = Path(temp_name)
    payload = data if isinstance(data, bytes) else data.encode(encoding)

    try:
        with os.fdopen(fd, "wb") as file_handle:
            file_handle.write(payload)
            file_handle.flush()
            os.fsync(file_handle.fileno())
        os.replace(temp_path, target)
        _fsync_directory(target_parent)
    except Exception:
        with contextlib.suppress(OSError):
            temp_path.unlink(missing_ok=True)
        raise


def is_within(child: PathLike, parent: PathLike) -> bool:
    """Return ``True`` if resolved ``child`` is within resolved ``parent``."""

    try:
        resolved_parent = Path(parent).resolve(strict=True)
        resolved_child = Path(child).resolve(strict=True)
    except (FileNotFoundError, RuntimeError):
        return False
    if not resolved_parent.is_dir():
        return False

    try:
        resolved_child.relative_to(resolved_parent)
    except ValueError:
        return False
    return True


def read_prefix(path: PathLike, limit: int) -> tuple[bytes, bool]:
    """Read at most ``limit`` bytes; the flag reports whether the file was longer."""

    if limit < 0:
        raise ValueError("limit must be >= 0")
    with Path(path).open("rb") as handle:
        data = handle.read(limit + 1)
    return data[:limit], len(data) > limit


def _fsync_directory(path: Path) -> None:
    """Best-effort directory fsync; some filesystems do not support it."""

    if os.name == "nt":
        return

    flags = os.O_RDONLY
    if hasattr(os, "O_DIRECTORY"):
        flags |= os.O_DIRECTORY

    try:
        dir_fd = os.open(path, flags)
    except OSError:
        return

    try:
        os.fsync(dir_fd)
    except OSError:
        return
    finally:
        os.close(dir_fd)
