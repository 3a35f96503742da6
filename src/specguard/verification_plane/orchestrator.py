"""
specguard — verification orchestrator

File: src/specguard/verification_plane/orchestrator.py

Purpose
- Combine the risk audit of the current working tree with acceptance-criteria checks into one
  ``VerificationResult``.

Functional requirements
- ``verify`` returns ``None`` for an unknown spec id and never writes spec data.
- Local risk scoring always completes, even when deep verification fails.
- ``risk`` equals the audit score plus a tally of issue priorities; ``audit_risk`` is the
  unmodified audit score.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from datetime import datetime
from typing import Any, Protocol

import structlog

from specguard.domain.models import (
    DiffFile,
    Spec,
    VerificationIssue,
    VerificationResult,
    utcnow,
)
from specguard.observability.logging import correlation_scope
from specguard.synthesis_plane.deep_verifier import DeepVerifier
from specguard.verification_plane.local_verifier import local_verify
from specguard.verification_plane.risk_classifier import RiskClassifier

__all__ = ["SpecLookup", "VerificationOrchestrator"]


class SpecLookup(Protocol):
    def get_spec(self, spec_id: str) -> Spec | None:
        """Return the stored spec or ``None``."""


class VerificationOrchestrator:
    """Read-only verification pipeline over a spec store and a risk classifier."""

    def __init__(
        self,
        store: SpecLookup,
        classifier: RiskClassifier,
        *,
        deep_verifier: DeepVerifier | None = None,
        require_in_scope: bool = False,
        clock: Callable[[], datetime] | None = None,
        logger: Any | None = None,
    ) -> None:
        self._store = store
        self._classifier = classifier
        self._deep_verifier = deep_verifier
        self._require_in_scope = require_in_scope
        self._clock = clock or utcnow
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    def verify(self, spec_id: str, use_ai: bool = False) -> VerificationResult | None:
        spec = self._store.get_spec(spec_id)
        if spec is None:
            self._logger.info("verification_spec_missing", spec_id=spec_id)
            return None
        return self.verify_current_changes(spec, use_ai=use_ai)

    def verify_current_changes(self, spec: Spec, use_ai: bool = False) -> VerificationResult:
        with correlation_scope(spec_id=spec.id):
            audit = self._classifier.audit_with_spec(spec)
            issues = self._collect_issues(spec, audit.files, use_ai=use_ai)
            risk = audit.risk.with_issue_tally(issues)
            self._logger.info(
                "verification_completed",
                spec_id=spec.id,
                use_ai=use_ai,
                file_count=len(audit.files),
                issue_count=len(issues),
                critical=risk.critical,
                major=risk.major,
                minor=risk.minor,
            )
            return VerificationResult(
                spec=spec,
                issues=tuple(issues),
                risk=risk,
                files=audit.files,
                audit_risk=audit.risk,
            )

    def _collect_issues(
        self, spec: Spec, files: Sequence[DiffFile], *, use_ai: bool
    ) -> list[VerificationIssue]:
        issue_ids: set[str] = set()
        if use_ai:
            if self._deep_verifier is None:
                self._logger.warning(
                    "deep_verify_skipped", spec_id=spec.id, reason="no_deep_verifier"
                )
                return []
            return self._deep_verifier.verify(spec, files, issue_ids=issue_ids)
        return local_verify(
            spec,
            files,
            require_in_scope=self._require_in_scope,
            clock=self._clock,
            issue_ids=issue_ids,
        )
