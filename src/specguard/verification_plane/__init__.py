"""
specguard verification plane.

File: src/specguard/verification_plane/__init__.py

Purpose
- Deterministic checks of working-tree changes against a spec: file boundaries, risky patterns,
  acceptance-criteria keywords, and the orchestrator that combines them.
"""

from specguard.verification_plane.boundaries import BoundaryRuleSet, compile_glob, matches_any
from specguard.verification_plane.local_verifier import (
    criterion_addressed,
    extract_keywords,
    local_verify,
)
from specguard.verification_plane.orchestrator import VerificationOrchestrator
from specguard.verification_plane.risk_classifier import (
    LARGE_DELETION_CODE,
    MISSING_TESTS_CODE,
    RiskClassifier,
)
from specguard.verification_plane.risk_patterns import (
    DEFAULT_PATTERN_LIBRARY,
    PatternLibraryError,
    RiskPatternRule,
    load_pattern_library,
    merge_pattern_libraries,
)

__all__ = [
    "BoundaryRuleSet",
    "DEFAULT_PATTERN_LIBRARY",
    "LARGE_DELETION_CODE",
    "MISSING_TESTS_CODE",
    "PatternLibraryError",
    "RiskClassifier",
    "RiskPatternRule",
    "VerificationOrchestrator",
    "compile_glob",
    "criterion_addressed",
    "extract_keywords",
    "load_pattern_library",
    "local_verify",
    "matches_any",
    "merge_pattern_libraries",
]
