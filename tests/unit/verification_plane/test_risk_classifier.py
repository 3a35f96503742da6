"""
specguard — unit tests for the risk classifier

File: tests/unit/verification_plane/test_risk_classifier.py

Purpose
- Validate scope violations, risky-pattern findings, heuristics, and count consistency.

Functional requirements
- No git: changed files come from an in-memory collector.
"""

from __future__ import annotations

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from specguard.domain.models import ChangeStatus, DiffFile, Severity
from specguard.verification_plane.risk_classifier import (
    LARGE_DELETION_CODE,
    MISSING_TESTS_CODE,
    OUT_OF_SCOPE_DESCRIPTION,
    OUTSIDE_BOUNDARIES_DESCRIPTION,
    UNRELATED_DESCRIPTION,
    RiskClassifier,
    is_source_file,
    is_test_file,
)
from specguard.verification_plane.risk_patterns import parse_pattern_library
from tests import FakeCollector, added_patch, make_spec

pytestmark = pytest.mark.unit


class _RecordingLogger:
    def __init__(self) -> None:
        self.events: list[tuple[str, dict[str, object]]] = []

    def info(self, event: str, **fields: object) -> None:
        self.events.append((event, fields))


def test_files_inside_boundaries_produce_no_findings() -> None:
    login = DiffFile(
        path="src/auth/login.ts",
        status=ChangeStatus.ADDED,
        additions=1,
        patch=added_patch("src/auth/login.ts", "export const login = () => true;"),
    )
    classifier = RiskClassifier(FakeCollector([login]))

    audit = classifier.audit_with_spec(make_spec())

    assert audit.files == (login,)
    assert audit.risk.scope_violations == ()
    assert audit.risk.risky_patterns == ()
    assert (audit.risk.critical, audit.risk.major, audit.risk.minor) == (0, 0, 0)


def test_out_of_bounds_files_are_major_scope_violations() -> None:
    files = [
        DiffFile(path="src/auth/login.ts"),
        DiffFile(path="README.md"),
        DiffFile(path="src/billing/pay.ts"),
    ]
    classifier = RiskClassifier(FakeCollector(files))

    risk = classifier.audit_with_spec(make_spec(in_scope=())).risk

    assert [item.file for item in risk.scope_violations] == ["README.md", "src/billing/pay.ts"]
    assert all(item.severity is Severity.MAJOR for item in risk.scope_violations)
    assert risk.scope_violations[0].description == OUTSIDE_BOUNDARIES_DESCRIPTION
    assert risk.major == 2


def test_empty_boundaries_skip_scope_check() -> None:
    classifier = RiskClassifier(FakeCollector([DiffFile(path="anywhere/at/all.py")]))
    risk = classifier.audit_with_spec(make_spec(file_boundaries=())).risk
    assert risk.scope_violations == ()


def test_out_of_scope_entries_are_critical_violations() -> None:
    files = [
        DiffFile(path="src/auth/login.ts"),
        DiffFile(path="src/auth/billing/charge.ts"),
        DiffFile(path="payments/stripe.ts"),
        DiffFile(path="docs/Billing.md"),
    ]
    spec = make_spec(
        in_scope=(),
        out_of_scope=("payments/**", "billing", "multi-factor login flows"),
    )

    risk = RiskClassifier(FakeCollector(files)).audit_with_spec(spec).risk

    assert [(item.file, item.severity) for item in risk.scope_violations] == [
        ("src/auth/billing/charge.ts", Severity.CRITICAL),
        ("payments/stripe.ts", Severity.CRITICAL),
        ("docs/Billing.md", Severity.CRITICAL),
    ]
    assert {item.description for item in risk.scope_violations} == {OUT_OF_SCOPE_DESCRIPTION}
    assert (risk.critical, risk.major, risk.minor) == (3, 0, 0)


def test_files_unrelated_to_in_scope_terms_get_a_minor_flag() -> None:
    files = [
        DiffFile(path="src/auth/session.ts"),
        DiffFile(path="web/LoginForm.tsx"),
        DiffFile(path="infra/deploy.sh"),
    ]

    risk = RiskClassifier(FakeCollector(files)).audit_with_spec(make_spec()).risk

    assert [(item.file, item.description) for item in risk.scope_violations] == [
        ("web/LoginForm.tsx", OUTSIDE_BOUNDARIES_DESCRIPTION),
        ("infra/deploy.sh", OUTSIDE_BOUNDARIES_DESCRIPTION),
        ("infra/deploy.sh", UNRELATED_DESCRIPTION),
    ]
    assert risk.scope_violations[-1].severity is Severity.MINOR
    assert (risk.critical, risk.major, risk.minor) == (0, 2, 1)


def test_scope_descriptions_are_distinct() -> None:
    descriptions = {OUTSIDE_BOUNDARIES_DESCRIPTION, OUT_OF_SCOPE_DESCRIPTION, UNRELATED_DESCRIPTION}
    assert len(descriptions) == 3


def test_empty_boundaries_also_skip_out_of_scope_entries() -> None:
    spec = make_spec(file_boundaries=(), out_of_scope=("payments/**",))
    classifier = RiskClassifier(FakeCollector([DiffFile(path="payments/stripe.ts")]))

    assert classifier.audit_with_spec(spec).risk.scope_violations == ()


def test_risky_pattern_reported_once_per_file_and_rule() -> None:
    patch = added_patch("scripts/clean.sh", "rm -rf build", "rm -rf dist", "git push --force")
    files = [DiffFile(path="scripts/clean.sh", status=ChangeStatus.ADDED, additions=3, patch=patch)]
    classifier = RiskClassifier(FakeCollector(files))

    risk = classifier.audit_with_spec(make_spec(file_boundaries=())).risk

    assert [item.pattern for item in risk.risky_patterns] == [
        "risk.destructive.recursive_delete",
        "risk.destructive.force_push",
    ]
    assert risk.critical == 2
    assert all(item.file == "scripts/clean.sh" for item in risk.risky_patterns)


def test_removed_lines_do_not_trigger_patterns() -> None:
    patch = (
        "diff --git a/run.sh b/run.sh\n"
        "--- a/run.sh\n"
        "+++ b/run.sh\n"
        "@@ -1 +1 @@\n"
        "-rm -rf build\n"
        "+make clean\n"
    )
    files = [DiffFile(path="run.sh", additions=1, deletions=1, patch=patch)]
    risk = RiskClassifier(FakeCollector(files)).audit_with_spec(make_spec(file_boundaries=())).risk
    assert risk.risky_patterns == ()


def test_large_blanket_deletion_is_major() -> None:
    files = [
        DiffFile(path="src/legacy.py", status=ChangeStatus.DELETED, deletions=450),
        DiffFile(path="src/partial.py", additions=1, deletions=900),
        DiffFile(path="src/small.py", status=ChangeStatus.DELETED, deletions=12),
    ]
    classifier = RiskClassifier(FakeCollector(files), large_deletion_threshold=300)

    risk = classifier.audit_with_spec(make_spec(file_boundaries=())).risk

    assert [(item.file, item.pattern) for item in risk.risky_patterns] == [
        ("src/legacy.py", LARGE_DELETION_CODE)
    ]
    assert risk.risky_patterns[0].severity is Severity.MAJOR
    assert "450 lines removed" in risk.risky_patterns[0].description


def test_missing_tests_heuristic_is_opt_in() -> None:
    files = [
        DiffFile(path="src/auth/login.py", additions=5),
        DiffFile(path="src/auth/session.py", additions=5),
        DiffFile(path="tests/test_login.py", additions=5),
        DiffFile(path="docs/guide.md", additions=5),
    ]

    quiet = RiskClassifier(FakeCollector(files))
    assert quiet.audit_with_spec(make_spec(file_boundaries=())).risk.risky_patterns == ()

    strict = RiskClassifier(FakeCollector(files), flag_missing_tests=True)
    risk = strict.audit_with_spec(make_spec(file_boundaries=())).risk

    assert [(item.file, item.pattern) for item in risk.risky_patterns] == [
        ("src/auth/session.py", MISSING_TESTS_CODE)
    ]
    assert risk.minor == 1


def test_custom_library_replaces_defaults() -> None:
    library = parse_pattern_library(
        [{"code": "team.todo", "regex": "TODO", "description": "todo left", "severity": "minor"}]
    )
    patch = added_patch("a.py", "# TODO: finish", "rm -rf /")
    classifier = RiskClassifier(
        FakeCollector([DiffFile(path="a.py", additions=2, patch=patch)]),
        pattern_library=library,
    )

    risk = classifier.audit_with_spec(make_spec(file_boundaries=())).risk

    assert [item.pattern for item in risk.risky_patterns] == ["team.todo"]
    assert classifier.pattern_library == library


def test_threshold_must_be_positive() -> None:
    with pytest.raises(ValueError, match="large_deletion_threshold"):
        RiskClassifier(FakeCollector(), large_deletion_threshold=0)


def test_audit_logs_summary() -> None:
    logger = _RecordingLogger()
    classifier = RiskClassifier(FakeCollector([DiffFile(path="README.md")]), logger=logger)

    classifier.audit_with_spec(make_spec())

    assert logger.events == [
        (
            "risk_classifier_audit",
            {
                "spec_id": "spec0001",
                "file_count": 1,
                "critical": 0,
                "major": 1,
                "minor": 1,
                "scope_violations": 2,
                "risky_patterns": 0,
            },
        )
    ]


@pytest.mark.parametrize(
    ("path", "test_file", "source_file"),
    [
        ("tests/test_login.py", True, False),
        ("src/login_test.go", True, False),
        ("web/login.test.ts", True, False),
        ("web/__tests__/login.tsx", True, False),
        ("src/login.py", False, True),
        ("README.md", False, False),
    ],
)
def test_file_kind_helpers(path: str, test_file: bool, source_file: bool) -> None:
    assert is_test_file(path) is test_file
    assert is_source_file(path) is source_file


_PATHS = st.lists(
    st.sampled_from(
        ["src/auth/login.ts", "README.md", "src/auth/keys.ts", "infra/deploy.sh", "docs/a.md"]
    ),
    unique=True,
    max_size=5,
)
_LINES = st.lists(
    st.sampled_from(
        ["ok()", "rm -rf /", 'password = "supersecret1"', "verify=False", "# noqa", "x = 1"]
    ),
    max_size=4,
)


@settings(max_examples=25, derandomize=True, deadline=None)
@given(paths=_PATHS, lines=_LINES, deletions=st.integers(min_value=0, max_value=600))
def test_counts_always_match_findings(paths: list[str], lines: list[str], deletions: int) -> None:
    files = [
        DiffFile(
            path=path,
            additions=len(lines),
            deletions=deletions,
            patch=added_patch(path, *lines) if lines else "",
        )
        for path in paths
    ]
    classifier = RiskClassifier(FakeCollector(files), flag_missing_tests=True)

    risk = classifier.audit_with_spec(make_spec()).risk
    findings = [*risk.scope_violations, *risk.risky_patterns]

    assert risk.critical == sum(1 for item in findings if item.severity is Severity.CRITICAL)
    assert risk.major == sum(1 for item in findings if item.severity is Severity.MAJOR)
    assert risk.minor == sum(1 for item in findings if item.severity is Severity.MINOR)
    keys = [(item.file, item.pattern) for item in risk.risky_patterns]
    assert len(keys) == len(set(keys))
    assert classifier.audit_with_spec(make_spec()) == classifier.audit_with_spec(make_spec())
