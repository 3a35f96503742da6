"""
specguard — domain layer

File: src/specguard/domain/__init__.py

Purpose
- Domain types shared across planes: Spec, Phase, DiffFile, RiskScore, VerificationIssue.

Functional requirements
- Domain objects must be serializable with stable camelCase keys.

Non-functional requirements
- Domain layer stays free of IO side effects.
"""

from specguard.domain import ids
from specguard.domain.models import (
    AuditResult,
    ChangeStatus,
    DiffFile,
    InvalidStatusTransitionError,
    IssuePriority,
    Phase,
    PhaseStatus,
    RiskScore,
    RiskyPattern,
    ScopeViolation,
    Severity,
    Spec,
    SpecStatus,
    VerificationIssue,
    VerificationResult,
)

__all__ = [
    "AuditResult",
    "ChangeStatus",
    "DiffFile",
    "InvalidStatusTransitionError",
    "IssuePriority",
    "Phase",
    "PhaseStatus",
    "RiskScore",
    "RiskyPattern",
    "ScopeViolation",
    "Severity",
    "Spec",
    "SpecStatus",
    "VerificationIssue",
    "VerificationResult",
    "ids",
]
