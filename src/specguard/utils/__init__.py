"""Small IO helpers shared by the persistence and integration planes."""

from specguard.utils.fs import atomic_write, is_within

__all__ = ["atomic_write", "is_within"]
