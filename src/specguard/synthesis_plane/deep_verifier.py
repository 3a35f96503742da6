"""
specguard — model-assisted acceptance review

File: src/specguard/synthesis_plane/deep_verifier.py

Purpose
- Ask a ``TextGenerator`` to compare changed files against a spec and turn its JSON answer
  into ``VerificationIssue`` records.

Functional requirements
- One bounded request per call; retryable provider errors consume the attempt budget.
- Never raises: a missing provider, transport error or unparsable answer yields ``[]``.
- Unknown priorities become ``minor``; a missing category becomes ``incomplete``; items
  without a description are skipped.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Mapping, Sequence
from datetime import datetime
from functools import partial
from typing import Any, Final

import structlog

from specguard.constants import DEFAULT_DEEP_VERIFY_MAX_ATTEMPTS
from specguard.domain import ids as domain_ids
from specguard.domain.models import DiffFile, IssuePriority, Spec, VerificationIssue, utcnow
from specguard.synthesis_plane.json_extraction import JsonExtractionError, extract_json_array
from specguard.synthesis_plane.prompt_templates import render_verification_prompt
from specguard.synthesis_plane.providers.base import (
    ProviderError,
    TextGenerator,
    map_provider_exception,
    run_with_attempts,
)

DEFAULT_CATEGORY: Final[str] = "incomplete"
_ACCEPTED_PRIORITIES: Final[frozenset[str]] = frozenset(
    {IssuePriority.CRITICAL.value, IssuePriority.MAJOR.value, IssuePriority.MINOR.value}
)
_MAX_CATEGORY_LENGTH: Final[int] = 128

__all__ = ["DEFAULT_CATEGORY", "DeepVerifier", "coerce_issue"]


class DeepVerifier:
    """Failure-tolerant wrapper around one text-generation request."""

    def __init__(
        self,
        generator: TextGenerator | None,
        *,
        max_attempts: int = DEFAULT_DEEP_VERIFY_MAX_ATTEMPTS,
        retry_delay_seconds: float = 0.0,
        clock: Callable[[], datetime] | None = None,
        sleep: Callable[[float], None] = time.sleep,
        logger: Any | None = None,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if retry_delay_seconds < 0:
            raise ValueError("retry_delay_seconds must be >= 0")
        self._generator = generator
        self._max_attempts = max_attempts
        self._retry_delay_seconds = retry_delay_seconds
        self._clock = clock or utcnow
        self._sleep = sleep
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    @property
    def available(self) -> bool:
        return self._generator is not None

    def verify(
        self,
        spec: Spec,
        files: Sequence[DiffFile],
        *,
        issue_ids: set[str] | None = None,
    ) -> list[VerificationIssue]:
        generator = self._generator
        if generator is None:
            self._logger.warning("deep_verify_skipped", spec_id=spec.id, reason="no_provider")
            return []

        rendered = render_verification_prompt(spec, files)
        provider = str(getattr(generator, "provider_name", type(generator).__name__))
        map_exception = getattr(generator, "map_exception", None)
        if not callable(map_exception):
            map_exception = partial(map_provider_exception, provider=provider)

        def on_retry(attempt: int, error: ProviderError) -> None:
            self._logger.info(
                "deep_verify_retry",
                spec_id=spec.id,
                provider=provider,
                attempt=attempt,
                code=error.code,
            )

        try:
            text = run_with_attempts(
                lambda: generator.generate(system=rendered.system, prompt=rendered.prompt),
                max_attempts=self._max_attempts,
                map_exception=map_exception,
                sleep=self._sleep,
                delay_seconds=self._retry_delay_seconds,
                on_retry=on_retry,
            )
        except ProviderError as exc:
            self._logger.warning(
                "deep_verify_failed",
                spec_id=spec.id,
                provider=exc.provider,
                code=exc.code,
                retryable=exc.retryable,
                error=exc.detail,
            )
            return []

        try:
            items = extract_json_array(text)
        except JsonExtractionError as exc:
            self._logger.warning(
                "deep_verify_unparsable", spec_id=spec.id, provider=provider, error=str(exc)
            )
            return []

        now = self._clock()
        taken = issue_ids if issue_ids is not None else set()
        issues: list[VerificationIssue] = []
        skipped = 0
        for item in items:
            issue = coerce_issue(item, spec_id=spec.id, created_at=now, taken=taken)
            if issue is None:
                skipped += 1
                continue
            issues.append(issue)

        self._logger.info(
            "deep_verify_completed",
            spec_id=spec.id,
            provider=provider,
            prompt_hash=rendered.prompt_hash,
            issue_count=len(issues),
            skipped=skipped,
        )
        return issues


def coerce_issue(
    item: object,
    *,
    spec_id: str,
    created_at: datetime,
    taken: set[str],
) -> VerificationIssue | None:
    """Best-effort conversion of one model-supplied object; ``None`` when unusable."""

    if not isinstance(item, Mapping):
        return None
    description = _text(item.get("description"))
    if description is None:
        return None

    raw_priority = _text(item.get("priority"))
    priority = (
        IssuePriority(raw_priority.lower())
        if raw_priority is not None and raw_priority.lower() in _ACCEPTED_PRIORITIES
        else IssuePriority.MINOR
    )
    category = (_text(item.get("category")) or DEFAULT_CATEGORY)[:_MAX_CATEGORY_LENGTH]

    raw_line = item.get("line")
    line = raw_line if isinstance(raw_line, int) and not isinstance(raw_line, bool) else None
    if line is not None and line < 1:
        line = None

    try:
        return VerificationIssue(
            id=domain_ids.generate_unique_issue_id(taken),
            spec_id=spec_id,
            priority=priority,
            category=category,
            description=description,
            file=_text(item.get("file")),
            line=line,
            suggestion=_text(item.get("suggestion")),
            created_at=created_at,
        )
    except ValueError:
        return None


def _text(value: object) -> str | None:
    if not isinstance(value, str):
        return None
    stripped = value.strip()
    return stripped or None
