"""Dataclass domain models with strict validation and canonical serialization.

Persisted and serialized keys use camelCase (``inScope``, ``createdAt``); Python
attributes stay snake_case. The mapping lives in each field's ``json`` metadata.
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, fields, is_dataclass, replace
from datetime import UTC, datetime
from enum import Enum, StrEnum
from typing import Final, NoReturn, TypeVar, cast

from specguard.domain import ids as domain_ids

JSONScalar = str | int | float | bool | None
JSONValue = JSONScalar | list["JSONValue"] | dict[str, "JSONValue"]

TModel = TypeVar("TModel", bound="CanonicalModel")
TEnum = TypeVar("TEnum", bound=Enum)

_MAX_TEXT: Final[int] = 8192
_MAX_TITLE: Final[int] = 256
_MAX_PATH: Final[int] = 1024
# Paths reported by git are bounded by the filesystem limit (PATH_MAX).
_MAX_CHANGED_PATH: Final[int] = 4096
_MAX_COLLECTION: Final[int] = 512


class SpecStatus(StrEnum):
    DRAFT = "draft"
    ACTIVE = "active"
    COMPLETED = "completed"
    ARCHIVED = "archived"


class PhaseStatus(StrEnum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class ChangeStatus(StrEnum):
    ADDED = "added"
    MODIFIED = "modified"
    DELETED = "deleted"
    RENAMED = "renamed"


class Severity(StrEnum):
    CRITICAL = "critical"
    MAJOR = "major"
    MINOR = "minor"


class IssuePriority(StrEnum):
    CRITICAL = "critical"
    MAJOR = "major"
    MINOR = "minor"
    OUTDATED = "outdated"


# Explicit lifecycle edges; there are no automatic transitions.
SPEC_STATUS_TRANSITIONS: Final[Mapping[SpecStatus, frozenset[SpecStatus]]] = {
    SpecStatus.DRAFT: frozenset({SpecStatus.ACTIVE, SpecStatus.COMPLETED, SpecStatus.ARCHIVED}),
    SpecStatus.ACTIVE: frozenset({SpecStatus.COMPLETED, SpecStatus.ARCHIVED}),
    SpecStatus.COMPLETED: frozenset({SpecStatus.ARCHIVED}),
    SpecStatus.ARCHIVED: frozenset(),
}


class InvalidStatusTransitionError(ValueError):
    """Raised when a spec status change is not an allowed lifecycle edge."""

    def __init__(self, current: SpecStatus, target: SpecStatus) -> None:
        self.current = current
        self.target = target
        super().__init__(
            f"Spec.status: cannot transition from {current.value!r} to {target.value!r}"
        )


def ensure_status_transition(current: SpecStatus, target: SpecStatus | str) -> SpecStatus:
    """Return ``target`` as a ``SpecStatus`` if ``current -> target`` is allowed."""

    resolved = _as_enum(SpecStatus, target, "Spec.status")
    if resolved is current:
        return resolved
    if resolved not in SPEC_STATUS_TRANSITIONS[current]:
        raise InvalidStatusTransitionError(current, resolved)
    return resolved


def utcnow() -> datetime:
    return datetime.now(UTC)


class CanonicalModel:
    """Mixin for canonical dict/json serialization."""

    def to_dict(self) -> dict[str, JSONValue]:
        serialized = _serialize_value(self, self.__class__.__name__)
        if not isinstance(serialized, dict):
            _fail(self.__class__.__name__, "serialized model must be an object")
        return serialized

    def to_json(self) -> str:
        return _canonical_json(self.to_dict())

    @classmethod
    def from_json(cls: type[TModel], raw: str) -> TModel:
        if not isinstance(raw, str):
            _fail(cls.__name__, f"expected JSON string, got {type(raw).__name__}")
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError as exc:
            _fail(cls.__name__, f"invalid JSON: {exc}")
        if not isinstance(parsed, dict):
            _fail(cls.__name__, "JSON root must be an object")
        return cls.from_dict(parsed)

    @classmethod
    def from_dict(cls: type[TModel], data: Mapping[str, object]) -> TModel:
        _fail(cls.__name__, "from_dict is not implemented for this model type")


def json_key(name: str, **kwargs: object) -> dict[str, object]:
    """Field metadata declaring the serialized key for an attribute."""

    return {"json": name, **kwargs}


def field_aliases(model_cls: type[object]) -> dict[str, str]:
    """Map both serialized and attribute names of ``model_cls`` fields to attribute names."""

    if not is_dataclass(model_cls):
        raise TypeError(f"{model_cls!r} is not a dataclass")
    aliases: dict[str, str] = {}
    for model_field in fields(model_cls):
        aliases[model_field.name] = model_field.name
        aliases[str(model_field.metadata.get("json", model_field.name))] = model_field.name
    return aliases


def _fail(path: str, message: str) -> NoReturn:
    raise ValueError(f"{path}: {message}")


def _canonical_json(value: JSONValue) -> str:
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def _expect_object(
    value: object,
    path: str,
    *,
    required: set[str],
    optional: set[str] | None = None,
) -> dict[str, object]:
    if not isinstance(value, Mapping):
        _fail(path, f"expected object, got {type(value).__name__}")

    parsed: dict[str, object] = {}
    for key, item in value.items():
        if not isinstance(key, str):
            _fail(path, f"object keys must be strings, got {type(key).__name__}")
        parsed[key] = item

    allowed = required | (optional or set())
    unknown = sorted(key for key in parsed if key not in allowed)
    if unknown:
        _fail(path, f"unexpected fields: {unknown}")

    missing = sorted(key for key in required if key not in parsed)
    if missing:
        _fail(path, f"missing required fields: {missing}")

    return parsed


def _as_str(
    value: object,
    path: str,
    *,
    min_len: int = 1,
    max_len: int = _MAX_TEXT,
    strip: bool = True,
) -> str:
    if not isinstance(value, str):
        _fail(path, f"expected string, got {type(value).__name__}")
    normalized = value.strip() if strip else value
    if len(normalized) < min_len:
        _fail(path, f"must be at least {min_len} character(s)")
    if len(normalized) > max_len:
        _fail(path, f"must be <= {max_len} characters")
    return normalized


def _as_optional_str(
    value: object, path: str, *, max_len: int = _MAX_TEXT, strip: bool = True
) -> str | None:
    if value is None:
        return None
    return _as_str(value, path, max_len=max_len, strip=strip)


def _as_bool(value: object, path: str) -> bool:
    if isinstance(value, bool):
        return value
    _fail(path, f"expected boolean, got {type(value).__name__}")


def _as_int(value: object, path: str, *, minimum: int | None = None) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        _fail(path, f"expected integer, got {type(value).__name__}")
    if minimum is not None and value < minimum:
        _fail(path, f"must be >= {minimum}")
    return value


def _as_optional_int(value: object, path: str, *, minimum: int | None = None) -> int | None:
    if value is None:
        return None
    return _as_int(value, path, minimum=minimum)


def _as_datetime(value: object, path: str) -> datetime:
    parsed: datetime
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        text = value[:-1] + "+00:00" if value.endswith("Z") else value
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError as exc:
            _fail(path, f"invalid ISO-8601 datetime: {value!r} ({exc})")
    else:
        _fail(path, f"expected datetime or ISO-8601 string, got {type(value).__name__}")

    if parsed.tzinfo is None or parsed.utcoffset() is None:
        _fail(path, "datetime must be timezone-aware UTC")
    return parsed.astimezone(UTC)


def _datetime_to_iso8601z(value: datetime) -> str:
    normalized = _as_datetime(value, "datetime")
    return normalized.isoformat(timespec="microseconds").replace("+00:00", "Z")


def _as_enum(enum_type: type[TEnum], value: object, path: str) -> TEnum:
    if isinstance(value, enum_type):
        return value
    if not isinstance(value, str):
        _fail(path, f"expected string enum value, got {type(value).__name__}")
    try:
        return enum_type(value)
    except ValueError:
        allowed = ", ".join(sorted(item.value for item in enum_type))
        _fail(path, f"invalid value {value!r}; expected one of: {allowed}")


def _as_sequence(value: object, path: str) -> list[object]:
    if isinstance(value, (list, tuple)):
        return list(value)
    _fail(path, f"expected array, got {type(value).__name__}")


def _as_str_tuple(
    value: object,
    path: str,
    *,
    max_len: int = _MAX_TEXT,
) -> tuple[str, ...]:
    values = _as_sequence(value, path)
    if len(values) > _MAX_COLLECTION:
        _fail(path, f"too many items (>{_MAX_COLLECTION})")
    return tuple(
        _as_str(item, f"{path}[{index}]", max_len=max_len) for index, item in enumerate(values)
    )


def _as_model_tuple(
    model_cls: type[TModel],
    value: object,
    path: str,
) -> tuple[TModel, ...]:
    values = _as_sequence(value, path)
    if len(values) > _MAX_COLLECTION:
        _fail(path, f"too many items (>{_MAX_COLLECTION})")
    parsed: list[TModel] = []
    for index, item in enumerate(values):
        if isinstance(item, model_cls):
            parsed.append(item)
        elif isinstance(item, Mapping):
            parsed.append(model_cls.from_dict(item))
        else:
            _fail(f"{path}[{index}]", f"expected {model_cls.__name__} or object")
    return tuple(parsed)


def _as_record_id(value: object, path: str) -> str:
    parsed = _as_str(value, path, max_len=64)
    try:
        domain_ids.validate_record_id(parsed)
    except ValueError as exc:
        _fail(path, str(exc))
    return parsed


def _serialize_value(value: object, path: str) -> JSONValue:
    if value is None or isinstance(value, bool):
        return cast("JSONValue", value)
    if isinstance(value, (int, float, str)) and not isinstance(value, Enum):
        return value
    if isinstance(value, Enum):
        raw = value.value
        if not isinstance(raw, str):
            _fail(path, "enum value must be string")
        return raw
    if isinstance(value, datetime):
        return _datetime_to_iso8601z(value)
    if isinstance(value, (tuple, list)):
        return [_serialize_value(item, f"{path}[]") for item in value]
    if isinstance(value, Mapping):
        out: dict[str, JSONValue] = {}
        for key, item in value.items():
            if not isinstance(key, str):
                _fail(path, "dict keys must be strings")
            out[key] = _serialize_value(item, f"{path}.{key}")
        return out
    if is_dataclass(value):
        out_obj: dict[str, JSONValue] = {}
        for dataclass_field in fields(value):
            key = str(dataclass_field.metadata.get("json", dataclass_field.name))
            out_obj[key] = _serialize_value(
                getattr(value, dataclass_field.name),
                f"{path}.{dataclass_field.name}",
            )
        return out_obj

    _fail(path, f"cannot serialize value of type {type(value).__name__}")


@dataclass(slots=True)
class Phase(CanonicalModel):
    id: str
    title: str = "New Phase"
    description: str = ""
    status: PhaseStatus = PhaseStatus.PENDING
    tasks: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        self.id = _as_record_id(self.id, "Phase.id")
        self.title = _as_str(self.title, "Phase.title", max_len=_MAX_TITLE)
        self.description = _as_str(self.description, "Phase.description", min_len=0)
        self.status = _as_enum(PhaseStatus, self.status, "Phase.status")
        self.tasks = _as_str_tuple(self.tasks, "Phase.tasks")

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> Phase:
        parsed = _expect_object(
            data,
            "Phase",
            required={"id"},
            optional={"title", "description", "status", "tasks"},
        )
        return cls(
            id=_as_str(parsed["id"], "Phase.id"),
            title=_as_str(parsed.get("title", "New Phase"), "Phase.title", max_len=_MAX_TITLE),
            description=_as_str(parsed.get("description", ""), "Phase.description", min_len=0),
            status=_as_enum(PhaseStatus, parsed.get("status", PhaseStatus.PENDING), "Phase.status"),
            tasks=_as_str_tuple(parsed.get("tasks", ()), "Phase.tasks"),
        )


_SPEC_REQUIRED_KEYS: Final[set[str]] = {"id", "title", "status", "createdAt", "updatedAt"}
_SPEC_OPTIONAL_KEYS: Final[set[str]] = {
    "description",
    "goal",
    "inScope",
    "outOfScope",
    "acceptanceCriteria",
    "fileBoundaries",
    "phases",
}


@dataclass(slots=True)
class Spec(CanonicalModel):
    """A declared development-plan contract."""

    id: str
    title: str = "Untitled Plan"
    description: str = ""
    status: SpecStatus = SpecStatus.DRAFT
    goal: str = ""
    in_scope: tuple[str, ...] = field(default=(), metadata=json_key("inScope"))
    out_of_scope: tuple[str, ...] = field(default=(), metadata=json_key("outOfScope"))
    acceptance_criteria: tuple[str, ...] = field(
        default=(), metadata=json_key("acceptanceCriteria")
    )
    file_boundaries: tuple[str, ...] = field(default=(), metadata=json_key("fileBoundaries"))
    phases: tuple[Phase, ...] = ()
    created_at: datetime = field(default_factory=utcnow, metadata=json_key("createdAt"))
    updated_at: datetime = field(default_factory=utcnow, metadata=json_key("updatedAt"))

    def __post_init__(self) -> None:
        self.id = _as_record_id(self.id, "Spec.id")
        self.title = _as_str(self.title, "Spec.title", max_len=_MAX_TITLE)
        self.description = _as_str(self.description, "Spec.description", min_len=0)
        self.status = _as_enum(SpecStatus, self.status, "Spec.status")
        self.goal = _as_str(self.goal, "Spec.goal", min_len=0)
        self.in_scope = _as_str_tuple(self.in_scope, "Spec.in_scope")
        self.out_of_scope = _as_str_tuple(self.out_of_scope, "Spec.out_of_scope")
        self.acceptance_criteria = _as_str_tuple(
            self.acceptance_criteria, "Spec.acceptance_criteria"
        )
        self.file_boundaries = _as_str_tuple(
            self.file_boundaries, "Spec.file_boundaries", max_len=_MAX_PATH
        )
        self.phases = _as_model_tuple(Phase, self.phases, "Spec.phases")
        phase_ids = [phase.id for phase in self.phases]
        if len(set(phase_ids)) != len(phase_ids):
            _fail("Spec.phases", "phase ids must be unique")

        self.created_at = _as_datetime(self.created_at, "Spec.created_at")
        self.updated_at = _as_datetime(self.updated_at, "Spec.updated_at")
        if self.updated_at < self.created_at:
            _fail("Spec.updated_at", "must be >= Spec.created_at")

    def find_phase(self, phase_id: str) -> Phase | None:
        for phase in self.phases:
            if phase.id == phase_id:
                return phase
        return None

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> Spec:
        parsed = _expect_object(
            data, "Spec", required=_SPEC_REQUIRED_KEYS, optional=_SPEC_OPTIONAL_KEYS
        )
        return cls(
            id=_as_str(parsed["id"], "Spec.id"),
            title=_as_str(parsed["title"], "Spec.title", max_len=_MAX_TITLE),
            description=_as_str(parsed.get("description", ""), "Spec.description", min_len=0),
            status=_as_enum(SpecStatus, parsed["status"], "Spec.status"),
            goal=_as_str(parsed.get("goal", ""), "Spec.goal", min_len=0),
            in_scope=_as_str_tuple(parsed.get("inScope", ()), "Spec.inScope"),
            out_of_scope=_as_str_tuple(parsed.get("outOfScope", ()), "Spec.outOfScope"),
            acceptance_criteria=_as_str_tuple(
                parsed.get("acceptanceCriteria", ()), "Spec.acceptanceCriteria"
            ),
            file_boundaries=_as_str_tuple(
                parsed.get("fileBoundaries", ()), "Spec.fileBoundaries", max_len=_MAX_PATH
            ),
            phases=_as_model_tuple(Phase, parsed.get("phases", ()), "Spec.phases"),
            created_at=_as_datetime(parsed["createdAt"], "Spec.createdAt"),
            updated_at=_as_datetime(parsed["updatedAt"], "Spec.updatedAt"),
        )


@dataclass(slots=True)
class DiffFile(CanonicalModel):
    """One changed file with counts and a size-bounded patch excerpt."""

    path: str
    status: ChangeStatus = ChangeStatus.MODIFIED
    additions: int = 0
    deletions: int = 0
    patch: str = ""
    old_path: str | None = field(default=None, metadata=json_key("oldPath"))
    truncated: bool = False

    def __post_init__(self) -> None:
        self.path = _as_str(
            self.path, "DiffFile.path", max_len=_MAX_CHANGED_PATH, strip=False
        ).replace("\\", "/")
        self.status = _as_enum(ChangeStatus, self.status, "DiffFile.status")
        self.additions = _as_int(self.additions, "DiffFile.additions", minimum=0)
        self.deletions = _as_int(self.deletions, "DiffFile.deletions", minimum=0)
        if not isinstance(self.patch, str):
            _fail("DiffFile.patch", f"expected string, got {type(self.patch).__name__}")
        self.old_path = _as_optional_str(
            self.old_path, "DiffFile.old_path", max_len=_MAX_CHANGED_PATH, strip=False
        )
        self.truncated = _as_bool(self.truncated, "DiffFile.truncated")

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> DiffFile:
        parsed = _expect_object(
            data,
            "DiffFile",
            required={"path"},
            optional={"status", "additions", "deletions", "patch", "oldPath", "truncated"},
        )
        patch = parsed.get("patch", "")
        return cls(
            path=_as_str(parsed["path"], "DiffFile.path", max_len=_MAX_CHANGED_PATH, strip=False),
            status=_as_enum(
                ChangeStatus, parsed.get("status", ChangeStatus.MODIFIED), "DiffFile.status"
            ),
            additions=_as_int(parsed.get("additions", 0), "DiffFile.additions", minimum=0),
            deletions=_as_int(parsed.get("deletions", 0), "DiffFile.deletions", minimum=0),
            patch=_as_str(patch, "DiffFile.patch", min_len=0, max_len=1 << 20, strip=False),
            old_path=_as_optional_str(
                parsed.get("oldPath"), "DiffFile.oldPath", max_len=_MAX_CHANGED_PATH, strip=False
            ),
            truncated=_as_bool(parsed.get("truncated", False), "DiffFile.truncated"),
        )


@dataclass(frozen=True, slots=True)
class ScopeViolation(CanonicalModel):
    file: str
    description: str
    severity: Severity = Severity.MAJOR

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> ScopeViolation:
        parsed = _expect_object(
            data, "ScopeViolation", required={"file", "description"}, optional={"severity"}
        )
        return cls(
            file=_as_str(parsed["file"], "ScopeViolation.file", max_len=_MAX_CHANGED_PATH),
            description=_as_str(parsed["description"], "ScopeViolation.description"),
            severity=_as_enum(
                Severity, parsed.get("severity", Severity.MAJOR), "ScopeViolation.severity"
            ),
        )


@dataclass(frozen=True, slots=True)
class RiskyPattern(CanonicalModel):
    file: str
    description: str
    severity: Severity
    pattern: str

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> RiskyPattern:
        parsed = _expect_object(
            data, "RiskyPattern", required={"file", "description", "severity", "pattern"}
        )
        return cls(
            file=_as_str(parsed["file"], "RiskyPattern.file", max_len=_MAX_CHANGED_PATH),
            description=_as_str(parsed["description"], "RiskyPattern.description"),
            severity=_as_enum(Severity, parsed["severity"], "RiskyPattern.severity"),
            pattern=_as_str(parsed["pattern"], "RiskyPattern.pattern"),
        )


_SEVERITY_WEIGHTS: Final[Mapping[Severity, int]] = {
    Severity.CRITICAL: 10,
    Severity.MAJOR: 5,
    Severity.MINOR: 1,
}


@dataclass(frozen=True, slots=True)
class RiskScore(CanonicalModel):
    """Aggregated severity counts plus itemized findings for one diff."""

    critical: int = 0
    major: int = 0
    minor: int = 0
    scope_violations: tuple[ScopeViolation, ...] = field(
        default=(), metadata=json_key("scopeViolations")
    )
    risky_patterns: tuple[RiskyPattern, ...] = field(
        default=(), metadata=json_key("riskyPatterns")
    )

    @classmethod
    def from_findings(
        cls,
        scope_violations: Iterable[ScopeViolation],
        risky_patterns: Iterable[RiskyPattern],
    ) -> RiskScore:
        violations = tuple(scope_violations)
        patterns = tuple(risky_patterns)
        counts = {severity: 0 for severity in Severity}
        for item in (*violations, *patterns):
            counts[item.severity] += 1
        return cls(
            critical=counts[Severity.CRITICAL],
            major=counts[Severity.MAJOR],
            minor=counts[Severity.MINOR],
            scope_violations=violations,
            risky_patterns=patterns,
        )

    def with_issue_tally(self, issues: Iterable[VerificationIssue]) -> RiskScore:
        """Return a copy whose counts also include issue priorities (``outdated`` ignored)."""

        extra = {priority: 0 for priority in IssuePriority}
        for issue in issues:
            extra[issue.priority] += 1
        return replace(
            self,
            critical=self.critical + extra[IssuePriority.CRITICAL],
            major=self.major + extra[IssuePriority.MAJOR],
            minor=self.minor + extra[IssuePriority.MINOR],
        )

    @property
    def weighted_total(self) -> int:
        return (
            self.critical * _SEVERITY_WEIGHTS[Severity.CRITICAL]
            + self.major * _SEVERITY_WEIGHTS[Severity.MAJOR]
            + self.minor * _SEVERITY_WEIGHTS[Severity.MINOR]
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> RiskScore:
        parsed = _expect_object(
            data,
            "RiskScore",
            required=set(),
            optional={"critical", "major", "minor", "scopeViolations", "riskyPatterns"},
        )
        return cls(
            critical=_as_int(parsed.get("critical", 0), "RiskScore.critical", minimum=0),
            major=_as_int(parsed.get("major", 0), "RiskScore.major", minimum=0),
            minor=_as_int(parsed.get("minor", 0), "RiskScore.minor", minimum=0),
            scope_violations=_as_model_tuple(
                ScopeViolation, parsed.get("scopeViolations", ()), "RiskScore.scopeViolations"
            ),
            risky_patterns=_as_model_tuple(
                RiskyPattern, parsed.get("riskyPatterns", ()), "RiskScore.riskyPatterns"
            ),
        )


@dataclass(slots=True)
class VerificationIssue(CanonicalModel):
    """A single detected discrepancy between implementation and spec."""

    id: str
    spec_id: str = field(metadata=json_key("specId"))
    priority: IssuePriority
    category: str
    description: str
    file: str | None = None
    line: int | None = None
    suggestion: str | None = None
    resolved: bool = False
    created_at: datetime = field(default_factory=utcnow, metadata=json_key("createdAt"))

    def __post_init__(self) -> None:
        self.id = _as_record_id(self.id, "VerificationIssue.id")
        self.spec_id = _as_record_id(self.spec_id, "VerificationIssue.spec_id")
        self.priority = _as_enum(IssuePriority, self.priority, "VerificationIssue.priority")
        self.category = _as_str(self.category, "VerificationIssue.category", max_len=128)
        self.description = _as_str(self.description, "VerificationIssue.description")
        self.file = _as_optional_str(self.file, "VerificationIssue.file", max_len=_MAX_PATH)
        self.line = _as_optional_int(self.line, "VerificationIssue.line", minimum=1)
        self.suggestion = _as_optional_str(self.suggestion, "VerificationIssue.suggestion")
        self.resolved = _as_bool(self.resolved, "VerificationIssue.resolved")
        self.created_at = _as_datetime(self.created_at, "VerificationIssue.created_at")

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> VerificationIssue:
        parsed = _expect_object(
            data,
            "VerificationIssue",
            required={"id", "specId", "priority", "category", "description", "createdAt"},
            optional={"file", "line", "suggestion", "resolved"},
        )
        return cls(
            id=_as_str(parsed["id"], "VerificationIssue.id"),
            spec_id=_as_str(parsed["specId"], "VerificationIssue.specId"),
            priority=_as_enum(IssuePriority, parsed["priority"], "VerificationIssue.priority"),
            category=_as_str(parsed["category"], "VerificationIssue.category"),
            description=_as_str(parsed["description"], "VerificationIssue.description"),
            file=_as_optional_str(parsed.get("file"), "VerificationIssue.file"),
            line=_as_optional_int(parsed.get("line"), "VerificationIssue.line", minimum=1),
            suggestion=_as_optional_str(parsed.get("suggestion"), "VerificationIssue.suggestion"),
            resolved=_as_bool(parsed.get("resolved", False), "VerificationIssue.resolved"),
            created_at=_as_datetime(parsed["createdAt"], "VerificationIssue.createdAt"),
        )


@dataclass(frozen=True, slots=True)
class AuditResult(CanonicalModel):
    """Changed files plus the deterministic risk score computed from them."""

    files: tuple[DiffFile, ...]
    risk: RiskScore


@dataclass(frozen=True, slots=True)
class VerificationResult(CanonicalModel):
    """Outcome of one verification call.

    ``audit_risk`` is the classifier's score; ``risk`` additionally tallies the
    issue priorities into its counts.
    """

    spec: Spec
    issues: tuple[VerificationIssue, ...]
    risk: RiskScore
    files: tuple[DiffFile, ...]
    audit_risk: RiskScore = field(default_factory=RiskScore, metadata=json_key("auditRisk"))


__all__ = [
    "AuditResult",
    "CanonicalModel",
    "ChangeStatus",
    "DiffFile",
    "InvalidStatusTransitionError",
    "IssuePriority",
    "JSONValue",
    "Phase",
    "PhaseStatus",
    "RiskScore",
    "RiskyPattern",
    "SPEC_STATUS_TRANSITIONS",
    "ScopeViolation",
    "Severity",
    "Spec",
    "SpecStatus",
    "VerificationIssue",
    "VerificationResult",
    "ensure_status_transition",
    "field_aliases",
    "json_key",
    "utcnow",
]
