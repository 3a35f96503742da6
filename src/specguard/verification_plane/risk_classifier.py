"""
specguard — deterministic risk classification

File: src/specguard/verification_plane/risk_classifier.py

Purpose
- Score the working tree's changes against a spec's file boundaries and the risky-pattern
  library.

Functional requirements
- Empty file boundaries skip the scope check entirely.
- With boundaries declared, a changed file matching an ``outOfScope`` entry is a critical
  violation instead of a boundary violation; a file outside the boundaries whose path
  mentions no ``inScope`` entry additionally gets a minor "unrelated" flag.
- At most one risky-pattern entry per (file, pattern); ordering follows collector order,
  then library order.
- Severity counts always equal the counts of the itemized findings.

Non-functional requirements
- Deterministic: same spec + same working tree yields identical output.
"""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import PurePosixPath
from typing import Any, Final, Protocol

import structlog

from specguard.constants import DEFAULT_LARGE_DELETION_THRESHOLD
from specguard.domain.models import (
    AuditResult,
    ChangeStatus,
    DiffFile,
    RiskScore,
    RiskyPattern,
    ScopeViolation,
    Severity,
    Spec,
)
from specguard.verification_plane.boundaries import BoundaryRuleSet, normalize_path
from specguard.verification_plane.risk_patterns import (
    DEFAULT_PATTERN_LIBRARY,
    RiskPatternRule,
    added_lines,
)

OUTSIDE_BOUNDARIES_DESCRIPTION: Final[str] = "outside declared file boundaries"
OUT_OF_SCOPE_DESCRIPTION: Final[str] = "explicitly marked out of scope"
UNRELATED_DESCRIPTION: Final[str] = "does not appear related to the planned work"
LARGE_DELETION_CODE: Final[str] = "risk.deletion.large_blanket"
MISSING_TESTS_CODE: Final[str] = "risk.tests.missing"

_SOURCE_SUFFIXES: Final[frozenset[str]] = frozenset(
    {
        ".c",
        ".cpp",
        ".cs",
        ".go",
        ".java",
        ".js",
        ".jsx",
        ".kt",
        ".php",
        ".py",
        ".rb",
        ".rs",
        ".swift",
        ".ts",
        ".tsx",
    }
)
_TEST_DIR_NAMES: Final[frozenset[str]] = frozenset({"test", "tests", "__tests__", "spec", "specs"})
_GLOB_CHARS: Final[frozenset[str]] = frozenset("*?[")

__all__ = [
    "ChangeSource",
    "LARGE_DELETION_CODE",
    "MISSING_TESTS_CODE",
    "OUTSIDE_BOUNDARIES_DESCRIPTION",
    "OUT_OF_SCOPE_DESCRIPTION",
    "UNRELATED_DESCRIPTION",
    "RiskClassifier",
    "is_source_file",
    "is_test_file",
]


class ChangeSource(Protocol):
    """Anything that can enumerate the current changed files."""

    def collect_changed_files(self) -> list[DiffFile]:
        """Return changed files in a stable order."""


class RiskClassifier:
    """Scores changed files against a spec's boundaries and the pattern library."""

    def __init__(
        self,
        collector: ChangeSource,
        *,
        pattern_library: Sequence[RiskPatternRule] | None = None,
        large_deletion_threshold: int = DEFAULT_LARGE_DELETION_THRESHOLD,
        flag_missing_tests: bool = False,
        logger: Any | None = None,
    ) -> None:
        if large_deletion_threshold < 1:
            raise ValueError("large_deletion_threshold must be >= 1")
        self._collector = collector
        self._library = tuple(
            pattern_library if pattern_library is not None else DEFAULT_PATTERN_LIBRARY
        )
        self._large_deletion_threshold = large_deletion_threshold
        self._flag_missing_tests = flag_missing_tests
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    @property
    def pattern_library(self) -> tuple[RiskPatternRule, ...]:
        return self._library

    def audit_with_spec(self, spec: Spec) -> AuditResult:
        files = tuple(self._collector.collect_changed_files())
        risk = self.score(spec, files)
        self._logger.info(
            "risk_classifier_audit",
            spec_id=spec.id,
            file_count=len(files),
            critical=risk.critical,
            major=risk.major,
            minor=risk.minor,
            scope_violations=len(risk.scope_violations),
            risky_patterns=len(risk.risky_patterns),
        )
        return AuditResult(files=files, risk=risk)

    def score(self, spec: Spec, files: Sequence[DiffFile]) -> RiskScore:
        return RiskScore.from_findings(
            self.scope_violations(spec, files),
            self.risky_patterns(files),
        )

    def scope_violations(self, spec: Spec, files: Sequence[DiffFile]) -> list[ScopeViolation]:
        rules = BoundaryRuleSet.from_patterns(spec.file_boundaries)
        if rules.empty:
            return []
        out_of_scope = _OutOfScopeMatcher.from_entries(spec.out_of_scope)
        related_terms = [term.lower() for term in spec.in_scope if term.strip()]

        violations: list[ScopeViolation] = []
        for item in files:
            if out_of_scope.matches(item.path):
                violations.append(
                    ScopeViolation(
                        file=item.path,
                        description=OUT_OF_SCOPE_DESCRIPTION,
                        severity=Severity.CRITICAL,
                    )
                )
                continue
            if rules.matches(item.path):
                continue
            violations.append(
                ScopeViolation(
                    file=item.path,
                    description=OUTSIDE_BOUNDARIES_DESCRIPTION,
                    severity=Severity.MAJOR,
                )
            )
            lowered = item.path.lower()
            if related_terms and not any(term in lowered for term in related_terms):
                violations.append(
                    ScopeViolation(
                        file=item.path,
                        description=UNRELATED_DESCRIPTION,
                        severity=Severity.MINOR,
                    )
                )
        return violations

    def risky_patterns(self, files: Sequence[DiffFile]) -> list[RiskyPattern]:
        test_names = [
            PurePosixPath(item.path).name for item in files if is_test_file(item.path)
        ]
        findings: list[RiskyPattern] = []
        for item in files:
            findings.extend(self._scan_patch(item))
            if item.deletions >= self._large_deletion_threshold and item.additions == 0:
                findings.append(
                    RiskyPattern(
                        file=item.path,
                        description=f"large blanket deletion ({item.deletions} lines removed)",
                        severity=Severity.MAJOR,
                        pattern=LARGE_DELETION_CODE,
                    )
                )
            if self._flag_missing_tests and _lacks_tests(item, test_names):
                findings.append(
                    RiskyPattern(
                        file=item.path,
                        description="source change without an accompanying test change",
                        severity=Severity.MINOR,
                        pattern=MISSING_TESTS_CODE,
                    )
                )
        return findings

    def _scan_patch(self, item: DiffFile) -> list[RiskyPattern]:
        if not item.patch:
            return []
        lines = list(added_lines(item.patch))
        matched: list[RiskyPattern] = []
        for rule in self._library:
            if any(rule.search(line) for line in lines):
                matched.append(
                    RiskyPattern(
                        file=item.path,
                        description=rule.description,
                        severity=rule.severity,
                        pattern=rule.code,
                    )
                )
        return matched


def is_test_file(path: str) -> bool:
    posix = PurePosixPath(path)
    if any(part in _TEST_DIR_NAMES for part in posix.parts[:-1]):
        return True
    name = posix.name
    stem = name.split(".", 1)[0]
    return (
        stem.startswith("test_")
        or stem.endswith("_test")
        or ".test." in name
        or ".spec." in name
    )


def is_source_file(path: str) -> bool:
    return PurePosixPath(path).suffix in _SOURCE_SUFFIXES and not is_test_file(path)


def _lacks_tests(item: DiffFile, test_names: Sequence[str]) -> bool:
    if item.status is ChangeStatus.DELETED or not is_source_file(item.path):
        return False
    stem = PurePosixPath(item.path).stem
    return not any(stem in name for name in test_names)


class _OutOfScopeMatcher:
    """``outOfScope`` entries that name paths.

    Entries containing ``/`` or glob characters are boundary patterns; a single word such as
    ``billing`` or ``README.md`` matches a path segment (or its stem) case-insensitively.
    Prose entries (containing whitespace) never match a path.
    """

    def __init__(self, rules: BoundaryRuleSet, words: frozenset[str]) -> None:
        self._rules = rules
        self._words = words

    @classmethod
    def from_entries(cls, entries: Sequence[str]) -> _OutOfScopeMatcher:
        patterns: list[str] = []
        words: set[str] = set()
        for entry in entries:
            text = entry.strip()
            if not text or any(char.isspace() for char in text):
                continue
            if "/" in text or any(char in _GLOB_CHARS for char in text):
                patterns.append(text)
            else:
                words.add(text.lower())
        return cls(BoundaryRuleSet.from_patterns(patterns), frozenset(words))

    def matches(self, path: str) -> bool:
        if not self._rules.empty and self._rules.matches(path):
            return True
        if not self._words:
            return False
        for segment in normalize_path(path).lower().split("/"):
            if segment in self._words or segment.split(".", 1)[0] in self._words:
                return True
        return False
