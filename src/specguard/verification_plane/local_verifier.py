"""Keyword heuristic that flags acceptance criteria with no related changed path."""

from __future__ import annotations

import re
from collections.abc import Callable, Sequence
from datetime import datetime
from typing import Final

from specguard.constants import KEYWORD_MIN_EXCLUSIVE_LENGTH
from specguard.domain import ids as domain_ids
from specguard.domain.models import (
    DiffFile,
    IssuePriority,
    Spec,
    VerificationIssue,
    utcnow,
)

MISSING_FEATURE_CATEGORY: Final[str] = "missing_feature"
MISSING_FEATURE_SUGGESTION: Final[str] = "Verify this criterion is addressed in the changes"

_TOKEN_RE: Final[re.Pattern[str]] = re.compile(r"[a-z0-9_-]+")

__all__ = [
    "MISSING_FEATURE_CATEGORY",
    "MISSING_FEATURE_SUGGESTION",
    "criterion_addressed",
    "extract_keywords",
    "local_verify",
]


def extract_keywords(criterion: str) -> tuple[str, ...]:
    """Lowercase word tokens longer than three characters, in order, without repeats."""

    seen: dict[str, None] = {}
    for token in _TOKEN_RE.findall(criterion.lower()):
        if len(token) > KEYWORD_MIN_EXCLUSIVE_LENGTH:
            seen.setdefault(token, None)
    return tuple(seen)


def criterion_addressed(criterion: str, paths: Sequence[str]) -> bool:
    """True when there are no changes, or some keyword occurs in some changed path.

    A criterion without keywords is never matched by a non-empty change set.
    """

    if not paths:
        return True
    lowered = [path.lower() for path in paths]
    return any(keyword in path for keyword in extract_keywords(criterion) for path in lowered)


def local_verify(
    spec: Spec,
    files: Sequence[DiffFile],
    *,
    require_in_scope: bool = False,
    clock: Callable[[], datetime] | None = None,
    issue_ids: set[str] | None = None,
) -> list[VerificationIssue]:
    if require_in_scope and not spec.in_scope:
        return []

    now = (clock or utcnow)()
    taken = issue_ids if issue_ids is not None else set()
    paths = [item.path for item in files]
    issues: list[VerificationIssue] = []
    for criterion in spec.acceptance_criteria:
        if criterion_addressed(criterion, paths):
            continue
        issues.append(
            VerificationIssue(
                id=domain_ids.generate_unique_issue_id(taken),
                spec_id=spec.id,
                priority=IssuePriority.MAJOR,
                category=MISSING_FEATURE_CATEGORY,
                description=f"Acceptance criterion may not be addressed: {criterion}",
                suggestion=MISSING_FEATURE_SUGGESTION,
                created_at=now,
            )
        )
    return issues
