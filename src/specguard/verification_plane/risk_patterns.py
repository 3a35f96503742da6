"""
specguard — risky-pattern library

File: src/specguard/verification_plane/risk_patterns.py

Purpose
- Ordered library of regex rules applied to the added lines of a patch excerpt.

Functional requirements
- Built-in rules cover destructive shell and SQL invocations and secret-shaped tokens
  (critical) and disabled safety checks (major).
- Extra rules load from YAML (``{code, regex, description, severity}`` entries); a rule
  whose code matches a built-in replaces it in place, new codes are appended.
- Invalid entries raise ``PatternLibraryError`` naming the file and entry index.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Iterator, Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Final

import yaml

from specguard.domain.models import Severity

if TYPE_CHECKING:
    import os

_CODE_RE: Final[re.Pattern[str]] = re.compile(r"^[a-z][a-z0-9_.-]{0,127}$")
_DIFF_FILE_HEADERS: Final[tuple[str, ...]] = ("+++ ", "--- ")

__all__ = [
    "DEFAULT_PATTERN_LIBRARY",
    "PatternLibraryError",
    "RiskPatternRule",
    "added_lines",
    "load_pattern_library",
    "merge_pattern_libraries",
    "parse_pattern_library",
]


class PatternLibraryError(ValueError):
    """Raised when a pattern library file or entry is invalid."""


@dataclass(frozen=True, slots=True)
class RiskPatternRule:
    code: str
    regex: re.Pattern[str]
    description: str
    severity: Severity

    def search(self, line: str) -> bool:
        return self.regex.search(line) is not None


def _rule(code: str, pattern: str, description: str, severity: Severity) -> RiskPatternRule:
    return RiskPatternRule(
        code=code,
        regex=re.compile(pattern),
        description=description,
        severity=severity,
    )


DEFAULT_PATTERN_LIBRARY: Final[tuple[RiskPatternRule, ...]] = (
    _rule(
        "risk.destructive.recursive_delete",
        r"\brm\s+(?:-[A-Za-z]*[rR][A-Za-z]*f[A-Za-z]*|-[A-Za-z]*f[A-Za-z]*[rR][A-Za-z]*)\b",
        "destructive shell command: recursive forced delete",
        Severity.CRITICAL,
    ),
    _rule(
        "risk.destructive.force_push",
        r"\bgit\s+push\b.*(?:--force\b|--force-with-lease\b|\s-f\b)",
        "destructive shell command: force push",
        Severity.CRITICAL,
    ),
    _rule(
        "risk.destructive.sql_drop",
        r"(?i)\b(?:drop\s+(?:table|database|schema)|truncate\s+table)\b",
        "destructive SQL statement",
        Severity.CRITICAL,
    ),
    _rule(
        "risk.destructive.disk_write",
        r"\bmkfs(?:\.[a-z0-9]+)?\b|\bdd\s+if=|\bchmod\s+-R\s+777\b",
        "destructive shell command: raw disk or permission change",
        Severity.CRITICAL,
    ),
    _rule(
        "risk.secret.api_key",
        r"\bsk-[A-Za-z0-9_-]{20,}\b",
        "possible API key",
        Severity.CRITICAL,
    ),
    _rule(
        "risk.secret.aws_access_key",
        r"\bAKIA[0-9A-Z]{16}\b",
        "possible AWS access key",
        Severity.CRITICAL,
    ),
    _rule(
        "risk.secret.github_token",
        r"\bgh[pousr]_[A-Za-z0-9]{36,}\b",
        "possible GitHub token",
        Severity.CRITICAL,
    ),
    _rule(
        "risk.secret.private_key",
        r"-----BEGIN (?:[A-Z]+ )?PRIVATE KEY-----",
        "private key material",
        Severity.CRITICAL,
    ),
    _rule(
        "risk.secret.hardcoded_assignment",
        r"(?i)\b(api[_-]?key|secret|password|token|private[_-]?key)\b"
        r"\s*[:=]\s*['\"][^'\"]{8,}['\"]",
        "possible hard-coded secret assignment",
        Severity.CRITICAL,
    ),
    _rule(
        "risk.safety.tls_verification_disabled",
        r"\bverify\s*=\s*False\b|\brejectUnauthorized\s*:\s*false\b"
        r"|\bNODE_TLS_REJECT_UNAUTHORIZED\s*=\s*['\"]?0\b|\bInsecureSkipVerify\s*:\s*true\b",
        "TLS certificate verification disabled",
        Severity.MAJOR,
    ),
    _rule(
        "risk.safety.hook_bypass",
        r"--no-verify\b",
        "git hooks bypassed",
        Severity.MAJOR,
    ),
    _rule(
        "risk.safety.check_suppressed",
        r"#\s*noqa\b|#\s*type:\s*ignore\b|@ts-(?:ignore|nocheck)\b|\beslint-disable\b",
        "lint or type check suppressed",
        Severity.MAJOR,
    ),
    _rule(
        "risk.safety.test_skipped",
        r"@pytest\.mark\.skip\b|\bpytest\.skip\("
        r"|\b(?:it|describe|test)\.skip\(|\bx(?:it|describe)\(",
        "test skipped",
        Severity.MAJOR,
    ),
)


def added_lines(patch: str) -> Iterator[str]:
    """Yield the content of added lines; removed lines, context and headers are skipped."""

    for line in patch.splitlines():
        if not line.startswith("+") or line.startswith(_DIFF_FILE_HEADERS):
            continue
        yield line[1:]


def parse_pattern_library(raw: object, *, source: str = "<memory>") -> tuple[RiskPatternRule, ...]:
    """Validate YAML-decoded data: a list of entries, or a mapping with a ``patterns`` list."""

    if isinstance(raw, Mapping):
        unknown = sorted(str(key) for key in raw if key != "patterns")
        if unknown:
            raise PatternLibraryError(f"{source}: unexpected top-level keys: {unknown}")
        raw = raw.get("patterns", [])
    if raw is None:
        return ()
    if isinstance(raw, (str, bytes)) or not isinstance(raw, Sequence):
        raise PatternLibraryError(f"{source}: expected a list of pattern entries")

    rules: list[RiskPatternRule] = []
    seen: set[str] = set()
    for index, item in enumerate(raw):
        rule = _parse_entry(item, f"{source}: patterns[{index}]")
        if rule.code in seen:
            raise PatternLibraryError(f"{source}: patterns[{index}]: duplicate code {rule.code!r}")
        seen.add(rule.code)
        rules.append(rule)
    return tuple(rules)


def _parse_entry(item: object, path: str) -> RiskPatternRule:
    if not isinstance(item, Mapping):
        raise PatternLibraryError(f"{path}: expected mapping, got {type(item).__name__}")
    allowed = {"code", "regex", "description", "severity"}
    unknown = sorted(str(key) for key in item if key not in allowed)
    if unknown:
        raise PatternLibraryError(f"{path}: unexpected fields: {unknown}")

    code = item.get("code")
    if not isinstance(code, str) or not _CODE_RE.fullmatch(code.strip()):
        raise PatternLibraryError(f"{path}.code: must match {_CODE_RE.pattern}")
    regex_raw = item.get("regex")
    if not isinstance(regex_raw, str) or not regex_raw.strip():
        raise PatternLibraryError(f"{path}.regex: must be a non-empty string")
    try:
        compiled = re.compile(regex_raw)
    except re.error as exc:
        raise PatternLibraryError(f"{path}.regex: invalid regular expression: {exc}") from exc
    description = item.get("description")
    if not isinstance(description, str) or not description.strip():
        raise PatternLibraryError(f"{path}.description: must be a non-empty string")
    severity_raw = item.get("severity", Severity.MAJOR.value)
    try:
        severity = Severity(severity_raw)
    except ValueError as exc:
        allowed_values = ", ".join(member.value for member in Severity)
        raise PatternLibraryError(
            f"{path}.severity: invalid value {severity_raw!r}; expected one of: {allowed_values}"
        ) from exc

    return RiskPatternRule(
        code=code.strip(),
        regex=compiled,
        description=description.strip(),
        severity=severity,
    )


def load_pattern_library(path: str | os.PathLike[str]) -> tuple[RiskPatternRule, ...]:
    source = Path(path)
    try:
        text = source.read_text(encoding="utf-8")
    except OSError as exc:
        raise PatternLibraryError(f"{source}: cannot read pattern library: {exc}") from exc
    try:
        raw = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise PatternLibraryError(f"{source}: invalid YAML: {exc}") from exc
    return parse_pattern_library(raw, source=str(source))


def merge_pattern_libraries(
    base: Iterable[RiskPatternRule],
    extra: Iterable[RiskPatternRule],
) -> tuple[RiskPatternRule, ...]:
    merged = list(base)
    positions = {rule.code: index for index, rule in enumerate(merged)}
    for rule in extra:
        if rule.code in positions:
            merged[positions[rule.code]] = rule
        else:
            positions[rule.code] = len(merged)
            merged.append(rule)
    return tuple(merged)
