"""
specguard — programmatic facade

File: src/specguard/engine.py

Purpose
- Wire the spec store, diff collector, risk classifier, deep verifier and orchestrator for one
  project directory from a validated config, and expose a single call surface to front ends.

Functional requirements
- ``Engine.from_config`` performs no git or network I/O.
- The spec store directory and the log directory are excluded from collected changes.
- Logging sinks are attached only on request (``configure_logging=True``); front ends that
  configure logging themselves leave it off.
- A configured pattern library extends the built-in library; same codes replace built-ins.
"""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import TYPE_CHECKING, Any

import structlog

from specguard.config.loader import dump_effective_config, load_config
from specguard.integration_plane.diff_collector import DiffCollector
from specguard.observability.logging import LoggingHandle, setup_logging, shutdown_logging
from specguard.persistence.spec_store import SpecStore
from specguard.synthesis_plane.deep_verifier import DeepVerifier
from specguard.synthesis_plane.providers import build_text_generator
from specguard.verification_plane.orchestrator import VerificationOrchestrator
from specguard.verification_plane.risk_classifier import RiskClassifier
from specguard.verification_plane.risk_patterns import (
    DEFAULT_PATTERN_LIBRARY,
    load_pattern_library,
    merge_pattern_libraries,
)

if TYPE_CHECKING:
    import os

    from specguard.domain.models import (
        AuditResult,
        DiffFile,
        Phase,
        PhaseStatus,
        Spec,
        VerificationResult,
    )

__all__ = ["Engine"]


class Engine:
    """One project directory's specs and working tree behind a single object."""

    def __init__(
        self,
        *,
        store: SpecStore,
        collector: DiffCollector,
        classifier: RiskClassifier,
        orchestrator: VerificationOrchestrator,
        config: Mapping[str, Any] | None = None,
    ) -> None:
        self.store = store
        self.collector = collector
        self.classifier = classifier
        self.orchestrator = orchestrator
        self.config = dict(config or {})
        self.logging_handle: LoggingHandle | None = None

    @classmethod
    def from_config(
        cls,
        base_dir: str | os.PathLike[str],
        config: Mapping[str, Any] | None = None,
        *,
        configure_logging: bool = False,
    ) -> Engine:
        root = Path(base_dir)
        resolved = dict(config) if config is not None else load_config(base_dir=root)

        storage = resolved["storage"]
        git = resolved["git"]
        risk = resolved["risk"]
        providers = resolved["providers"]
        observability = resolved["observability"]
        log_dir = root / observability["log_dir"]

        handle = setup_logging(observability, log_dir=log_dir) if configure_logging else None
        logger = structlog.get_logger(__name__)

        store = SpecStore(root, spec_dir=storage["spec_dir"])
        collector = DiffCollector(
            root,
            timeout_seconds=git["timeout_seconds"],
            max_patch_chars=git["max_patch_chars"],
            max_untracked_bytes=git["max_untracked_bytes"],
            git_binary=git["binary"],
            exclude_dirs=(store.spec_dir, log_dir),
        )

        library = DEFAULT_PATTERN_LIBRARY
        library_path = risk.get("pattern_library")
        if library_path:
            library = merge_pattern_libraries(library, load_pattern_library(library_path))

        classifier = RiskClassifier(
            collector,
            pattern_library=library,
            large_deletion_threshold=risk["large_deletion_threshold"],
            flag_missing_tests=risk["flag_missing_tests"],
        )
        deep_verifier = DeepVerifier(
            build_text_generator(resolved), max_attempts=providers["max_attempts"]
        )
        orchestrator = VerificationOrchestrator(
            store,
            classifier,
            deep_verifier=deep_verifier,
            require_in_scope=resolved["verification"]["require_in_scope"],
        )
        logger.debug(
            "engine_configured",
            base_dir=str(root),
            pattern_count=len(library),
            config=dump_effective_config(resolved),
        )
        engine = cls(
            store=store,
            collector=collector,
            classifier=classifier,
            orchestrator=orchestrator,
            config=resolved,
        )
        engine.logging_handle = handle
        return engine

    def close(self) -> None:
        """Detach logging sinks attached by ``from_config``."""

        if self.logging_handle is not None:
            shutdown_logging(self.logging_handle)
            self.logging_handle = None

    # ------------------------------------------------------------------ specs

    def create_spec(self, data: Mapping[str, object] | None = None) -> Spec:
        return self.store.create_spec(data)

    def get_spec(self, spec_id: str) -> Spec | None:
        return self.store.get_spec(spec_id)

    def list_specs(self) -> list[Spec]:
        return self.store.list_specs()

    def update_spec(self, spec_id: str, partial: Mapping[str, object]) -> Spec | None:
        return self.store.update_spec(spec_id, partial)

    def delete_spec(self, spec_id: str) -> bool:
        return self.store.delete_spec(spec_id)

    def add_phase(self, spec_id: str, phase: Mapping[str, object] | None = None) -> Phase | None:
        return self.store.add_phase(spec_id, phase)

    def update_phase_status(self, spec_id: str, phase_id: str, status: PhaseStatus | str) -> bool:
        return self.store.update_phase_status(spec_id, phase_id, status)

    def activate_spec(self, spec_id: str) -> Spec | None:
        return self.store.activate_spec(spec_id)

    # ----------------------------------------------------------- working tree

    def has_uncommitted_changes(self) -> bool:
        return self.collector.has_uncommitted_changes()

    def collect_changed_files(self) -> list[DiffFile]:
        return self.collector.collect_changed_files()

    # ----------------------------------------------------------- verification

    def audit_with_spec(self, spec: Spec) -> AuditResult:
        return self.classifier.audit_with_spec(spec)

    def verify(self, spec_id: str, use_ai: bool = False) -> VerificationResult | None:
        return self.orchestrator.verify(spec_id, use_ai=use_ai)

    def verify_current_changes(self, spec: Spec, use_ai: bool = False) -> VerificationResult:
        return self.orchestrator.verify_current_changes(spec, use_ai=use_ai)
