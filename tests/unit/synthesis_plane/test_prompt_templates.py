"""
specguard — unit tests for deep verification prompt rendering

File: tests/unit/synthesis_plane/test_prompt_templates.py

Purpose
- Validate deterministic rendering, section layout, and that patch text is never embedded.
"""

from __future__ import annotations

import hashlib

import pytest

from specguard.domain.models import ChangeStatus, DiffFile
from specguard.synthesis_plane.prompt_templates import (
    VERIFICATION_SYSTEM_PROMPT,
    render_verification_prompt,
)
from tests import make_spec

pytestmark = pytest.mark.unit


def _files() -> list[DiffFile]:
    return [
        DiffFile(
            path="src/auth/login.ts",
            status=ChangeStatus.ADDED,
            additions=12,
            patch="+const SECRET_PATCH_LINE = 1;\n",
        ),
        DiffFile(path="src/auth/old.ts", status=ChangeStatus.DELETED, deletions=4),
    ]


def test_prompt_lists_spec_sections_and_file_metadata() -> None:
    rendered = render_verification_prompt(make_spec(out_of_scope=("billing",)), _files())

    assert rendered.system == VERIFICATION_SYSTEM_PROMPT
    prompt = rendered.prompt
    assert "- Goal: Users can sign in\n" in prompt
    assert "- In Scope: login, logout\n" in prompt
    assert "- Out of Scope: billing\n" in prompt
    assert "- Acceptance Criteria:\n  - login works\n  - logout works\n" in prompt
    assert "## Changed Files:\n- src/auth/login.ts (added): +12 -0\n" in prompt
    assert "- src/auth/old.ts (deleted): +0 -4\n" in prompt
    assert '"priority": "critical|major|minor"' in prompt
    assert prompt.rstrip().endswith("Only return the JSON array, nothing else.")


def test_patch_text_is_not_embedded() -> None:
    rendered = render_verification_prompt(make_spec(), _files())
    assert "SECRET_PATCH_LINE" not in rendered.prompt


def test_empty_change_set_renders_placeholder() -> None:
    rendered = render_verification_prompt(make_spec(), [])
    assert "## Changed Files:\n(none)\n" in rendered.prompt


def test_rendering_is_deterministic_and_hashed() -> None:
    first = render_verification_prompt(make_spec(), _files())
    second = render_verification_prompt(make_spec(), _files())

    assert first == second
    assert first.prompt_hash == hashlib.sha256(first.prompt.encode("utf-8")).hexdigest()
    other = render_verification_prompt(make_spec(goal="Something else"), _files())
    assert other.prompt_hash != first.prompt_hash
