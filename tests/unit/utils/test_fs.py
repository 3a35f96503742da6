"""Unit tests for filesystem helpers."""

from __future__ import annotations

from pathlib import Path

import pytest

from specguard.utils.fs import atomic_write, is_within, read_prefix

pytestmark = pytest.mark.unit


def test_atomic_write_replaces_content_and_leaves_no_temp_files(tmp_path: Path) -> None:
    target = tmp_path / "record.json"
    atomic_write(target, "first\n")
    atomic_write(target, b"second\n")

    assert target.read_text(encoding="utf-8") == "second\n"
    assert sorted(path.name for path in tmp_path.iterdir()) == ["record.json"]


def test_atomic_write_requires_existing_parent(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        atomic_write(tmp_path / "missing" / "record.json", "x")


def test_is_within(tmp_path: Path) -> None:
    inner = tmp_path / "a" / "b.txt"
    inner.parent.mkdir()
    inner.write_text("x", encoding="utf-8")
    outside = tmp_path.parent

    assert is_within(inner, tmp_path)
    assert is_within(tmp_path / "a" / ".." / "a" / "b.txt", tmp_path)
    assert not is_within(outside, tmp_path)
    assert not is_within(tmp_path / "nope.txt", tmp_path)
    assert not is_within(inner, inner)


def test_read_prefix_bounds_the_read(tmp_path: Path) -> None:
    target = tmp_path / "blob.bin"
    target.write_bytes(b"0123456789")

    assert read_prefix(target, 4) == (b"0123", True)
    assert read_prefix(target, 10) == (b"0123456789", False)
    assert read_prefix(target, 0) == (b"", True)
    with pytest.raises(ValueError, match="limit must be >= 0"):
        read_prefix(target, -1)
