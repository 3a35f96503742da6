"""
specguard — text-generation provider contract and shared utilities

File: src/specguard/synthesis_plane/providers/base.py

Purpose
- The ``TextGenerator`` protocol used by deep verification, the normalized provider error
  taxonomy, and a bounded synchronous attempt loop.

Functional requirements
- SDK exceptions are mapped onto ``ProviderError`` subclasses with a retryability flag.
- The attempt loop never exceeds its budget and only retries retryable errors.

Non-functional requirements
- Must never log secrets or raw API keys.
"""

from __future__ import annotations

import os
import time
from collections.abc import Callable, Mapping, Sequence
from typing import Protocol, TypeAlias, TypeVar, cast, runtime_checkable

SleepFn: TypeAlias = Callable[[float], None]
RetryCallback: TypeAlias = Callable[[int, "ProviderError"], None]

_ResultT = TypeVar("_ResultT")

__all__ = [
    "ProviderAuthenticationError",
    "ProviderError",
    "ProviderRateLimitError",
    "ProviderResponseError",
    "ProviderServiceError",
    "ProviderTimeoutError",
    "ProviderUnavailableError",
    "TextGenerator",
    "exception_detail",
    "is_retryable_error",
    "map_provider_exception",
    "read_sequence",
    "read_str",
    "read_value",
    "resolve_api_key",
    "run_with_attempts",
]


@runtime_checkable
class TextGenerator(Protocol):
    """System + user prompt in, free-form text out."""

    def generate(self, *, system: str, prompt: str) -> str:
        """Return the model's text response."""


class ProviderError(RuntimeError):
    """Base normalized provider error with deterministic machine-readable fields."""

    def __init__(
        self,
        *,
        provider: str,
        code: str,
        detail: str,
        retryable: bool,
        http_status: int | None = None,
    ) -> None:
        self.provider = provider.strip() or "provider"
        self.code = code
        self.detail = " ".join(detail.split()) or code
        self.retryable = bool(retryable)
        self.http_status = http_status

        parts = [
            f"provider={self.provider}",
            f"code={self.code}",
            f"retryable={str(self.retryable).lower()}",
        ]
        if self.http_status is not None:
            parts.append(f"http_status={self.http_status}")
        parts.append(f"detail={self.detail}")
        super().__init__(" ".join(parts))


class ProviderUnavailableError(ProviderError):
    """Raised when provider runtime/SDK is unavailable."""

    def __init__(self, detail: str, *, provider: str = "provider") -> None:
        super().__init__(provider=provider, code="unavailable", detail=detail, retryable=False)


class ProviderAuthenticationError(ProviderError):
    """Authentication/authorization failures."""

    def __init__(
        self,
        detail: str,
        *,
        provider: str = "provider",
        http_status: int | None = None,
    ) -> None:
        super().__init__(
            provider=provider,
            code="auth",
            detail=detail,
            retryable=False,
            http_status=http_status,
        )


class ProviderRateLimitError(ProviderError):
    """Provider rate-limit responses (retryable)."""

    def __init__(
        self,
        detail: str,
        *,
        provider: str = "provider",
        http_status: int | None = 429,
    ) -> None:
        super().__init__(
            provider=provider,
            code="rate_limit",
            detail=detail,
            retryable=True,
            http_status=http_status,
        )


class ProviderTimeoutError(ProviderError):
    """Provider timeout failures (retryable)."""

    def __init__(self, detail: str, *, provider: str = "provider") -> None:
        super().__init__(provider=provider, code="timeout", detail=detail, retryable=True)


class ProviderServiceError(ProviderError):
    """Provider API/service failures."""

    def __init__(
        self,
        detail: str,
        *,
        provider: str = "provider",
        retryable: bool = True,
        http_status: int | None = None,
    ) -> None:
        super().__init__(
            provider=provider,
            code="service",
            detail=detail,
            retryable=retryable,
            http_status=http_status,
        )


class ProviderResponseError(ProviderError):
    """Raised when provider response normalization fails."""

    def __init__(self, detail: str, *, provider: str = "provider") -> None:
        super().__init__(provider=provider, code="response_invalid", detail=detail, retryable=False)


def is_retryable_error(error: BaseException) -> bool:
    return isinstance(error, ProviderError) and error.retryable


def map_provider_exception(exc: Exception, *, provider: str) -> ProviderError:
    """Classify an SDK exception by HTTP status and exception class name."""

    if isinstance(exc, ProviderError):
        return exc

    status_code = _read_status_code(exc)
    class_name = exc.__class__.__name__.lower()
    detail = exception_detail(exc)

    if status_code in {401, 403} or "auth" in class_name or "permission" in class_name:
        return ProviderAuthenticationError(detail, provider=provider, http_status=status_code)

    if status_code == 429 or "ratelimit" in class_name:
        return ProviderRateLimitError(detail, provider=provider, http_status=status_code)

    if isinstance(exc, TimeoutError) or "timeout" in class_name:
        return ProviderTimeoutError(detail, provider=provider)

    if status_code is not None and 400 <= status_code < 500:
        return ProviderServiceError(
            detail, provider=provider, retryable=False, http_status=status_code
        )

    if "badrequest" in class_name or "invalidrequest" in class_name:
        return ProviderServiceError(detail, provider=provider, retryable=False)

    return ProviderServiceError(detail, provider=provider, retryable=True, http_status=status_code)


def run_with_attempts(
    operation: Callable[[], _ResultT],
    *,
    max_attempts: int,
    map_exception: Callable[[Exception], ProviderError],
    sleep: SleepFn = time.sleep,
    delay_seconds: float = 0.0,
    on_retry: RetryCallback | None = None,
) -> _ResultT:
    """Run ``operation`` at most ``max_attempts`` times, retrying retryable errors only."""

    if max_attempts < 1:
        raise ValueError("max_attempts must be >= 1")

    attempt = 1
    while True:
        try:
            return operation()
        except Exception as exc:  # noqa: BLE001
            mapped = map_exception(exc)
            if not isinstance(mapped, ProviderError):
                raise TypeError("map_exception must return ProviderError") from exc

            if not mapped.retryable or attempt >= max_attempts:
                if mapped is exc:
                    raise
                raise mapped from exc

            if on_retry is not None:
                on_retry(attempt, mapped)
            attempt += 1
            if delay_seconds > 0:
                sleep(delay_seconds)


def resolve_api_key(
    *,
    provider: str,
    api_key: str | None,
    api_key_env: str | None,
    fallback_envs: Sequence[str] = (),
    environ: Mapping[str, str] | None = None,
) -> str:
    """Return an explicit key, else the configured env var, else the first fallback env var."""

    env = environ if environ is not None else os.environ
    if api_key is not None and api_key.strip():
        return api_key

    if api_key_env is not None:
        configured = env.get(api_key_env)
        if configured is None or not configured.strip():
            raise ProviderAuthenticationError(
                f"missing API key in configured env var {api_key_env}",
                provider=provider,
                http_status=401,
            )
        return configured

    for name in fallback_envs:
        candidate = env.get(name)
        if candidate is not None and candidate.strip():
            return candidate
    names = " or ".join(fallback_envs) or "an API key env var"
    raise ProviderAuthenticationError(
        f"missing API key; set {names}", provider=provider, http_status=401
    )


def exception_detail(exc: BaseException) -> str:
    text = str(exc).strip()
    if text:
        return " ".join(text.split())
    return exc.__class__.__name__


def _read_status_code(exc: BaseException) -> int | None:
    for key in ("status_code", "status", "http_status"):
        value = getattr(exc, key, None)
        if isinstance(value, int):
            return value
    response = getattr(exc, "response", None)
    if response is not None:
        nested = getattr(response, "status_code", None)
        if isinstance(nested, int):
            return nested
    return None


def read_value(value: object, key: str, *, default: object | None = None) -> object | None:
    if isinstance(value, Mapping):
        return cast("object | None", value.get(key, default))
    return cast("object | None", getattr(value, key, default))


def read_sequence(value: object, key: str) -> tuple[object, ...]:
    candidate = read_value(value, key)
    if isinstance(candidate, Sequence) and not isinstance(candidate, (str, bytes, bytearray)):
        return tuple(candidate)
    return ()


def read_str(value: object, key: str) -> str | None:
    candidate = read_value(value, key)
    if isinstance(candidate, str) and candidate.strip():
        return candidate
    return None
