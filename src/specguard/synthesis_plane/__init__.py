"""specguard synthesis plane: prompt rendering, provider adapters and deep verification."""

from specguard.synthesis_plane.deep_verifier import DEFAULT_CATEGORY, DeepVerifier, coerce_issue
from specguard.synthesis_plane.json_extraction import JsonExtractionError, extract_json_array
from specguard.synthesis_plane.prompt_templates import (
    VERIFICATION_SYSTEM_PROMPT,
    RenderedPrompt,
    render_verification_prompt,
)
from specguard.synthesis_plane.providers import TextGenerator, build_text_generator

__all__ = [
    "DEFAULT_CATEGORY",
    "DeepVerifier",
    "JsonExtractionError",
    "RenderedPrompt",
    "TextGenerator",
    "VERIFICATION_SYSTEM_PROMPT",
    "build_text_generator",
    "coerce_issue",
    "extract_json_array",
    "render_verification_prompt",
]
