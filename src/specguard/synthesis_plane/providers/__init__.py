"""
specguard — text-generation provider adapters

File: src/specguard/synthesis_plane/providers/__init__.py

Purpose
- Export the ``TextGenerator`` protocol, concrete adapters and the config-driven factory.

Functional requirements
- ``build_text_generator`` returns ``None`` when ``providers.default`` is ``none``.
- Constructing an adapter performs no network I/O and does not import the vendor SDK.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from specguard.synthesis_plane.providers.anthropic_adapter import (
    DEFAULT_ANTHROPIC_MODEL,
    AnthropicTextGenerator,
)
from specguard.synthesis_plane.providers.base import (
    ProviderAuthenticationError,
    ProviderError,
    ProviderRateLimitError,
    ProviderResponseError,
    ProviderServiceError,
    ProviderTimeoutError,
    ProviderUnavailableError,
    TextGenerator,
    is_retryable_error,
    map_provider_exception,
    run_with_attempts,
)
from specguard.synthesis_plane.providers.openai_adapter import (
    DEFAULT_OPENAI_MODEL,
    OpenAITextGenerator,
)

_ADAPTERS: dict[str, type[AnthropicTextGenerator] | type[OpenAITextGenerator]] = {
    "anthropic": AnthropicTextGenerator,
    "openai": OpenAITextGenerator,
}


def build_text_generator(config: Mapping[str, Any]) -> TextGenerator | None:
    """Build the adapter selected by ``config["providers"]["default"]``.

    ``config`` is a validated config mapping as returned by ``load_config``.
    """

    providers = config.get("providers")
    if not isinstance(providers, Mapping):
        return None
    selected = providers.get("default", "none")
    if selected == "none":
        return None

    adapter_cls = _ADAPTERS.get(str(selected))
    if adapter_cls is None:
        raise ValueError(f"unknown provider {selected!r}")

    settings = providers.get(selected)
    if not isinstance(settings, Mapping):
        settings = {}

    kwargs: dict[str, Any] = {
        "timeout_seconds": providers.get("timeout_seconds"),
        "max_tokens": providers.get("max_tokens", 2048),
    }
    if "model" in settings:
        kwargs["model"] = settings["model"]
    if "api_key_env" in settings:
        kwargs["api_key_env"] = settings["api_key_env"]
    if "base_url" in settings:
        kwargs["base_url"] = settings["base_url"]
    return adapter_cls(**kwargs)


__all__ = [
    "DEFAULT_ANTHROPIC_MODEL",
    "DEFAULT_OPENAI_MODEL",
    "AnthropicTextGenerator",
    "OpenAITextGenerator",
    "ProviderAuthenticationError",
    "ProviderError",
    "ProviderRateLimitError",
    "ProviderResponseError",
    "ProviderServiceError",
    "ProviderTimeoutError",
    "ProviderUnavailableError",
    "TextGenerator",
    "build_text_generator",
    "is_retryable_error",
    "map_provider_exception",
    "run_with_attempts",
]
