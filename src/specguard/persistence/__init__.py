"""
specguard — persistence layer

File: src/specguard/persistence/__init__.py

Purpose
- File-backed storage for plan contracts.

Functional requirements
- One pretty-printed JSON record per spec, written atomically.

Non-functional requirements
- Standard library JSON; no database dependency.
"""

from specguard.persistence.spec_store import SpecStore

__all__ = ["SpecStore"]
