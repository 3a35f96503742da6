"""
specguard — spec record store

File: src/specguard/persistence/spec_store.py

Purpose
- Persist plan contracts as one JSON record per spec under ``<base_dir>/.agentic-plan``.

Functional requirements
- CRUD over specs plus phase append/status updates and explicit lifecycle transitions.
- Records are written atomically; the record directory is created lazily on first write.
- Missing, unsafe, or corrupt records resolve to ``None``/``False`` and never raise.

Non-functional requirements
- Single writer per project directory; no cross-process locking.
"""

from __future__ import annotations

import json
from collections.abc import Callable, Mapping, Sequence
from dataclasses import replace
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any, Final

import structlog

from specguard.constants import SPEC_DIR, SPEC_RECORD_SUFFIX
from specguard.domain import ids as domain_ids
from specguard.domain.models import (
    Phase,
    PhaseStatus,
    Spec,
    SpecStatus,
    ensure_status_transition,
    field_aliases,
    utcnow,
)
from specguard.utils.fs import atomic_write

if TYPE_CHECKING:
    import os

Clock = Callable[[], datetime]
IdFactory = Callable[[], str]

_MAX_ID_ATTEMPTS: Final[int] = 32
_DEFAULT_SPEC_TITLE: Final[str] = "Untitled Plan"
_DEFAULT_PHASE_TITLE: Final[str] = "New Phase"

# Fields update_spec never changes.
_PRESERVED_SPEC_FIELDS: Final[frozenset[str]] = frozenset({"id", "created_at", "updated_at"})
_CREATE_PHASE_FIELDS: Final[frozenset[str]] = frozenset({"title", "description", "tasks"})
_STORE_OWNED_PHASE_FIELDS: Final[frozenset[str]] = frozenset({"id", "status"})

__all__ = ["SpecStore"]


class SpecStore:
    """File-backed spec repository bound to one project directory."""

    def __init__(
        self,
        base_dir: str | os.PathLike[str],
        *,
        spec_dir: str | os.PathLike[str] = SPEC_DIR,
        clock: Clock | None = None,
        id_factory: IdFactory | None = None,
        logger: Any | None = None,
    ) -> None:
        relative = Path(spec_dir)
        if relative.is_absolute() or ".." in relative.parts:
            raise ValueError(f"spec_dir must be a relative path inside base_dir: {spec_dir!s}")
        self._base_dir = Path(base_dir)
        self._spec_dir = self._base_dir / relative
        self._clock = clock if clock is not None else utcnow
        self._id_factory = id_factory if id_factory is not None else domain_ids.generate_short_id
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    @property
    def base_dir(self) -> Path:
        return self._base_dir

    @property
    def spec_dir(self) -> Path:
        return self._spec_dir

    # ------------------------------------------------------------------ specs

    def create_spec(self, data: Mapping[str, object] | None = None) -> Spec:
        """Create and persist a new draft spec.

        ``data`` may use camelCase or snake_case keys. ``id``, ``status`` and the
        timestamps are always assigned here; any supplied values are ignored.
        """

        fields_in = _normalize_keys(data or {}, "Spec")
        now = self._clock()
        spec_id = self._new_spec_id()

        phases: list[Phase] = []
        for raw_phase in _as_phase_inputs(fields_in.get("phases", ())):
            phases.append(self._build_phase(raw_phase, taken={phase.id for phase in phases}))

        spec = Spec(
            id=spec_id,
            title=_text_or_default(fields_in.get("title"), _DEFAULT_SPEC_TITLE),
            description=_text_or_default(fields_in.get("description"), ""),
            status=SpecStatus.DRAFT,
            goal=_text_or_default(fields_in.get("goal"), ""),
            in_scope=_list_or_empty(fields_in.get("in_scope")),
            out_of_scope=_list_or_empty(fields_in.get("out_of_scope")),
            acceptance_criteria=_list_or_empty(fields_in.get("acceptance_criteria")),
            file_boundaries=_list_or_empty(fields_in.get("file_boundaries")),
            phases=tuple(phases),
            created_at=now,
            updated_at=now,
        )
        self._write(spec)
        self._logger.info(
            "spec_store_created", spec_id=spec.id, path=str(self._record_path(spec.id))
        )
        return spec

    def get_spec(self, spec_id: str) -> Spec | None:
        if not domain_ids.is_record_id(spec_id):
            return None
        return self._read(self._record_path(spec_id), expected_id=spec_id)

    def list_specs(self) -> list[Spec]:
        """Return every readable spec, most recently updated first."""

        if not self._spec_dir.is_dir():
            return []

        specs: list[Spec] = []
        for record_path in sorted(self._spec_dir.glob(f"*{SPEC_RECORD_SUFFIX}")):
            record_id = record_path.name[: -len(SPEC_RECORD_SUFFIX)]
            if not domain_ids.is_record_id(record_id):
                continue
            spec = self._read(record_path, expected_id=record_id)
            if spec is not None:
                specs.append(spec)

        specs.sort(key=lambda item: item.id)
        specs.sort(key=lambda item: item.updated_at, reverse=True)
        return specs

    def update_spec(self, spec_id: str, partial: Mapping[str, object]) -> Spec | None:
        """Merge ``partial`` into the stored spec.

        ``id`` and ``createdAt`` are preserved whatever ``partial`` says; ``updatedAt``
        is refreshed and never moves backwards. A ``status`` change must follow the
        lifecycle table.
        """

        current = self.get_spec(spec_id)
        if current is None:
            return None

        fields_in = _normalize_keys(partial, "Spec")
        changes: dict[str, object] = {}
        for name, value in fields_in.items():
            if name in _PRESERVED_SPEC_FIELDS:
                continue
            if name == "status":
                changes["status"] = ensure_status_transition(current.status, _as_status(value))
            elif name == "phases":
                changes["phases"] = self._merge_phases(value)
            elif name in {"title", "description", "goal"}:
                changes[name] = value
            else:
                changes[name] = _list_or_empty(value)

        updated = replace(current, **changes, updated_at=self._next_updated_at(current))
        self._write(updated)
        self._logger.info(
            "spec_store_updated",
            spec_id=updated.id,
            fields=sorted(changes),
            status=updated.status.value,
        )
        return updated

    def delete_spec(self, spec_id: str) -> bool:
        if not domain_ids.is_record_id(spec_id):
            return False
        record_path = self._record_path(spec_id)
        try:
            record_path.unlink()
        except FileNotFoundError:
            return False
        self._logger.info("spec_store_deleted", spec_id=spec_id, path=str(record_path))
        return True

    # ---------------------------------------------------------------- phases

    def add_phase(self, spec_id: str, phase: Mapping[str, object] | None = None) -> Phase | None:
        spec = self.get_spec(spec_id)
        if spec is None:
            return None

        new_phase = self._build_phase(
            _normalize_phase_keys(phase or {}), taken={item.id for item in spec.phases}
        )
        updated = replace(
            spec,
            phases=(*spec.phases, new_phase),
            updated_at=self._next_updated_at(spec),
        )
        self._write(updated)
        self._logger.info("spec_store_phase_added", spec_id=spec.id, phase_id=new_phase.id)
        return new_phase

    def update_phase_status(
        self,
        spec_id: str,
        phase_id: str,
        status: PhaseStatus | str,
    ) -> bool:
        resolved = PhaseStatus(status)
        spec = self.get_spec(spec_id)
        if spec is None or spec.find_phase(phase_id) is None:
            return False

        phases = tuple(
            replace(item, status=resolved) if item.id == phase_id else item for item in spec.phases
        )
        self._write(replace(spec, phases=phases, updated_at=self._next_updated_at(spec)))
        self._logger.info(
            "spec_store_phase_status",
            spec_id=spec.id,
            phase_id=phase_id,
            status=resolved.value,
        )
        return True

    # ------------------------------------------------------------- lifecycle

    def transition_status(self, spec_id: str, status: SpecStatus | str) -> Spec | None:
        return self.update_spec(spec_id, {"status": _as_status(status)})

    def activate_spec(self, spec_id: str) -> Spec | None:
        return self.transition_status(spec_id, SpecStatus.ACTIVE)

    def complete_spec(self, spec_id: str) -> Spec | None:
        return self.transition_status(spec_id, SpecStatus.COMPLETED)

    def archive_spec(self, spec_id: str) -> Spec | None:
        return self.transition_status(spec_id, SpecStatus.ARCHIVED)

    # -------------------------------------------------------------- internals

    def _record_path(self, spec_id: str) -> Path:
        return self._spec_dir / f"{spec_id}{SPEC_RECORD_SUFFIX}"

    def _new_spec_id(self) -> str:
        for _ in range(_MAX_ID_ATTEMPTS):
            candidate = self._id_factory()
            domain_ids.validate_record_id(candidate)
            if not self._record_path(candidate).exists():
                return candidate
        raise RuntimeError(f"could not allocate a unique spec id after {_MAX_ID_ATTEMPTS} attempts")

    def _new_phase_id(self, taken: set[str]) -> str:
        for _ in range(_MAX_ID_ATTEMPTS):
            candidate = self._id_factory()
            domain_ids.validate_record_id(candidate)
            if candidate not in taken:
                return candidate
        raise RuntimeError(
            f"could not allocate a unique phase id after {_MAX_ID_ATTEMPTS} attempts"
        )

    def _build_phase(self, data: Mapping[str, object] | Phase, *, taken: set[str]) -> Phase:
        if isinstance(data, Phase):
            data = {"title": data.title, "description": data.description, "tasks": data.tasks}
        return Phase(
            id=self._new_phase_id(taken),
            title=_text_or_default(data.get("title"), _DEFAULT_PHASE_TITLE),
            description=_text_or_default(data.get("description"), ""),
            status=PhaseStatus.PENDING,
            tasks=_list_or_empty(data.get("tasks")),
        )

    def _merge_phases(self, value: object) -> tuple[Phase, ...]:
        """Keep phases that carry an id; phases without one are built like ``add_phase``."""

        merged: list[Phase] = []
        for item in _as_phase_inputs(value):
            if isinstance(item, Phase):
                merged.append(item)
            elif "id" in item:
                merged.append(Phase.from_dict(item))
            else:
                merged.append(self._build_phase(item, taken={phase.id for phase in merged}))
        return tuple(merged)

    def _next_updated_at(self, spec: Spec) -> datetime:
        now = self._clock()
        return now if now >= spec.updated_at else spec.updated_at

    def _write(self, spec: Spec) -> None:
        self._spec_dir.mkdir(parents=True, exist_ok=True)
        payload = json.dumps(spec.to_dict(), indent=2, ensure_ascii=False) + "\n"
        atomic_write(self._record_path(spec.id), payload)

    def _read(self, record_path: Path, *, expected_id: str) -> Spec | None:
        try:
            raw = record_path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as exc:
            self._logger.warning(
                "spec_store_record_unreadable", path=str(record_path), error=str(exc)
            )
            return None

        try:
            spec = Spec.from_json(raw)
        except ValueError as exc:
            self._logger.warning(
                "spec_store_record_corrupt", path=str(record_path), error=str(exc)
            )
            return None

        if spec.id != expected_id:
            self._logger.warning(
                "spec_store_record_id_mismatch",
                path=str(record_path),
                record_id=spec.id,
            )
            return None
        return spec


def _normalize_keys(data: Mapping[str, object], model_name: str) -> dict[str, object]:
    if not isinstance(data, Mapping):
        raise ValueError(f"{model_name}: expected mapping, got {type(data).__name__}")
    aliases = field_aliases(Spec)
    normalized: dict[str, object] = {}
    unknown: list[str] = []
    for key, value in data.items():
        name = aliases.get(key) if isinstance(key, str) else None
        if name is None:
            unknown.append(str(key))
            continue
        normalized[name] = value
    if unknown:
        raise ValueError(f"{model_name}: unexpected fields: {sorted(unknown)}")
    return normalized


def _normalize_phase_keys(data: Mapping[str, object] | Phase) -> Mapping[str, object] | Phase:
    if isinstance(data, Phase):
        return data
    if not isinstance(data, Mapping):
        raise ValueError(f"Phase: expected mapping, got {type(data).__name__}")
    unknown = sorted(
        str(key)
        for key in data
        if key not in _CREATE_PHASE_FIELDS and key not in _STORE_OWNED_PHASE_FIELDS
    )
    if unknown:
        raise ValueError(f"Phase: unexpected fields: {unknown}")
    return data


def _as_phase_inputs(value: object) -> list[Mapping[str, object] | Phase]:
    if value is None:
        return []
    if isinstance(value, (str, bytes)) or not isinstance(value, Sequence):
        raise ValueError(f"Spec.phases: expected array, got {type(value).__name__}")
    return [_normalize_phase_keys(item) for item in value]  # type: ignore[arg-type]


def _as_status(value: object) -> SpecStatus:
    if isinstance(value, SpecStatus):
        return value
    if isinstance(value, str):
        try:
            return SpecStatus(value)
        except ValueError:
            pass
    allowed = ", ".join(item.value for item in SpecStatus)
    raise ValueError(f"Spec.status: invalid value {value!r}; expected one of: {allowed}")


def _text_or_default(value: object, default: str) -> str:
    if value is None:
        return default
    if not isinstance(value, str):
        raise ValueError(f"expected string, got {type(value).__name__}")
    return value if value.strip() else default


def _list_or_empty(value: object) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, (str, bytes)) or not isinstance(value, Sequence):
        raise ValueError(f"expected array of strings, got {type(value).__name__}")
    return tuple(value)  # type: ignore[arg-type]
