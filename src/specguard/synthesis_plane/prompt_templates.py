"""
specguard — deep verification prompt rendering

File: src/specguard/synthesis_plane/prompt_templates.py

Purpose
- Render the fixed system prompt and the per-spec user prompt sent to a text generator.

Functional requirements
- Must render prompts deterministically for same inputs.
- Only file metadata (path, status, counts) is embedded; patch text never leaves the process.
"""

from __future__ import annotations

import hashlib
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Final

from jinja2 import Environment, StrictUndefined

from specguard.domain.models import DiffFile, Spec

VERIFICATION_SYSTEM_PROMPT: Final[str] = (
    "You are a strict spec verification engine. Return only valid JSON."
)

VERIFICATION_USER_TEMPLATE: Final[str] = """\
You are a spec verification engine. Analyze the code changes against the specification \
and identify issues.

## Your Task:
1. Compare the diff against the spec's acceptance criteria
2. Identify what's implemented vs what's missing
3. Categorize issues by severity

## Spec:
- Goal: {{ goal }}
- In Scope: {{ in_scope | join(", ") }}
- Out of Scope: {{ out_of_scope | join(", ") }}
- Acceptance Criteria:
{% for criterion in acceptance_criteria %}  - {{ criterion }}
{% endfor %}
## Changed Files:
{% for file in files %}- {{ file.path }} ({{ file.status }}): +{{ file.additions }} \
-{{ file.deletions }}
{% else %}(none)
{% endfor %}
## Your Output Format:
Return a JSON array of issues in this exact format:
[
  {
    "priority": "critical|major|minor",
    "category": "missing_feature|scope_violation|incomplete|incorrect",
    "description": "Clear description of the issue",
    "file": "optional file path",
    "suggestion": "How to fix it"
  }
]

Only return the JSON array, nothing else.
"""

_ENVIRONMENT = Environment(
    undefined=StrictUndefined,
    autoescape=False,
    trim_blocks=False,
    lstrip_blocks=False,
    newline_sequence="\n",
    keep_trailing_newline=True,
)
_TEMPLATE = _ENVIRONMENT.from_string(VERIFICATION_USER_TEMPLATE)


@dataclass(frozen=True, slots=True)
class RenderedPrompt:
    """Rendered prompt pair plus a hash for log correlation."""

    system: str
    prompt: str
    prompt_hash: str


def render_verification_prompt(spec: Spec, files: Sequence[DiffFile]) -> RenderedPrompt:
    prompt = _TEMPLATE.render(
        goal=spec.goal,
        in_scope=list(spec.in_scope),
        out_of_scope=list(spec.out_of_scope),
        acceptance_criteria=list(spec.acceptance_criteria),
        files=[
            {
                "path": item.path,
                "status": str(item.status),
                "additions": item.additions,
                "deletions": item.deletions,
            }
            for item in files
        ],
    )
    digest = hashlib.sha256(prompt.encode("utf-8")).hexdigest()
    return RenderedPrompt(system=VERIFICATION_SYSTEM_PROMPT, prompt=prompt, prompt_hash=digest)


__all__ = [
    "RenderedPrompt",
    "VERIFICATION_SYSTEM_PROMPT",
    "VERIFICATION_USER_TEMPLATE",
    "render_verification_prompt",
]
