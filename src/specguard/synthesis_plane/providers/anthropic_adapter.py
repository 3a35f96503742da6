"""
specguard — Anthropic text generator

File: src/specguard/synthesis_plane/providers/anthropic_adapter.py

Purpose
- ``TextGenerator`` backed by the Anthropic messages API.

Functional requirements
- The SDK is imported lazily; a missing SDK raises ``ProviderUnavailableError``.
- The API key is read from the configured environment variable, never from config.

Non-functional requirements
- One request per ``generate`` call; the caller owns the attempt budget.
"""

from __future__ import annotations

import importlib
from typing import Protocol, cast

from specguard.synthesis_plane.providers.base import (
    ProviderError,
    ProviderResponseError,
    ProviderUnavailableError,
    map_provider_exception,
    read_sequence,
    read_str,
    resolve_api_key,
)

DEFAULT_ANTHROPIC_MODEL = "claude-sonnet-4-5"


class _AnthropicMessagesAPI(Protocol):
    def create(self, **kwargs: object) -> object: ...


class _AnthropicClient(Protocol):
    messages: _AnthropicMessagesAPI


class AnthropicTextGenerator:
    """Anthropic messages adapter with optional SDK dependency and injected client support."""

    provider_name = "anthropic"

    def __init__(
        self,
        *,
        model: str = DEFAULT_ANTHROPIC_MODEL,
        api_key: str | None = None,
        api_key_env: str | None = "ANTHROPIC_API_KEY",
        base_url: str | None = None,
        timeout_seconds: float | None = None,
        max_tokens: int = 2048,
        client: _AnthropicClient | None = None,
    ) -> None:
        if not model.strip():
            raise ValueError("model cannot be empty")
        if timeout_seconds is not None and timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be > 0")
        if max_tokens <= 0:
            raise ValueError("max_tokens must be > 0")
        self.model = model.strip()
        self._api_key = api_key
        self._api_key_env = api_key_env
        self._base_url = base_url
        self._timeout_seconds = timeout_seconds
        self._max_tokens = max_tokens
        self._client = client

    def generate(self, *, system: str, prompt: str) -> str:
        client = self._ensure_client()
        try:
            raw = client.messages.create(
                model=self.model,
                max_tokens=self._max_tokens,
                system=system,
                messages=[{"role": "user", "content": prompt}],
            )
        except Exception as exc:  # noqa: BLE001
            raise self.map_exception(exc) from exc
        return _extract_text(raw)

    def map_exception(self, exc: Exception) -> ProviderError:
        return map_provider_exception(exc, provider=self.provider_name)

    def _ensure_client(self) -> _AnthropicClient:
        if self._client is None:
            self._client = self._create_default_client()
        return self._client

    def _create_default_client(self) -> _AnthropicClient:
        try:
            anthropic_module = importlib.import_module("anthropic")
        except ImportError as exc:
            raise ProviderUnavailableError(
                "anthropic SDK is not installed", provider=self.provider_name
            ) from exc

        client_cls = getattr(anthropic_module, "Anthropic", None)
        if client_cls is None:
            raise ProviderUnavailableError(
                "anthropic SDK does not expose Anthropic", provider=self.provider_name
            )

        init_kwargs: dict[str, object] = {
            "api_key": resolve_api_key(
                provider=self.provider_name,
                api_key=self._api_key,
                api_key_env=self._api_key_env,
                fallback_envs=("ANTHROPIC_API_KEY", "SPECGUARD_ANTHROPIC_API_KEY"),
            ),
            # Retries are owned by the caller's attempt budget.
            "max_retries": 0,
        }
        if self._base_url is not None:
            init_kwargs["base_url"] = self._base_url
        if self._timeout_seconds is not None:
            init_kwargs["timeout"] = self._timeout_seconds

        client = client_cls(**init_kwargs)
        if not hasattr(client, "messages"):
            raise ProviderUnavailableError(
                "anthropic client missing messages API", provider=self.provider_name
            )
        return cast("_AnthropicClient", client)


def _extract_text(raw_response: object) -> str:
    chunks: list[str] = []
    for item in read_sequence(raw_response, "content"):
        if (read_str(item, "type") or "").lower() == "text":
            text = read_str(item, "text")
            if text:
                chunks.append(text)
    if not chunks:
        raise ProviderResponseError("response does not contain text", provider="anthropic")
    return "\n".join(chunks)


__all__ = ["DEFAULT_ANTHROPIC_MODEL", "AnthropicTextGenerator"]
