"""
specguard — spec-driven change verification.

Stores development plan contracts, inspects the working tree's actual changes,
and reports a deterministic risk assessment plus the discrepancies between
declared intent and real edits.

Import boundary: this module must stay free of side effects (no config loading,
no logging setup). Heavy submodules are imported lazily by callers.
"""

__version__ = "0.3.0"

__all__ = ["__version__"]
