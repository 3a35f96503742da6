"""
specguard — file-boundary matching

File: src/specguard/verification_plane/boundaries.py

Purpose
- Decide whether a repository-relative path lies inside a spec's declared file boundaries.

Functional requirements
- ``*`` matches within one path segment; ``**`` matches zero or more whole segments.
- ``?`` matches one non-separator character; ``[...]`` classes are supported.
- A pattern without glob characters, or one ending in ``/``, matches the path itself and
  everything beneath it.
- Matching is case-sensitive and never touches the filesystem.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Final

_GLOB_CHARS: Final[frozenset[str]] = frozenset("*?[")

__all__ = [
    "BoundaryRuleSet",
    "compile_glob",
    "matches_any",
    "normalize_path",
]


def normalize_path(raw: str) -> str:
    """Normalize to a POSIX, repository-relative form (``./`` and leading ``/`` removed)."""

    path = raw.strip().replace("\\", "/")
    while path.startswith("./"):
        path = path[2:]
    path = path.lstrip("/")
    while "//" in path:
        path = path.replace("//", "/")
    return path


def compile_glob(pattern: str) -> re.Pattern[str]:
    """Translate a segment-aware glob into an anchored regular expression."""

    out: list[str] = []
    index = 0
    size = len(pattern)
    while index < size:
        if pattern.startswith("**", index):
            at_segment_start = index == 0 or pattern[index - 1] == "/"
            after = index + 2
            if at_segment_start and after < size and pattern[after] == "/":
                out.append("(?:[^/]+/)*")
                index = after + 1
                continue
            if at_segment_start and after == size:
                if index == 0:
                    out.append(".*")
                else:
                    out.pop()
                    out.append("(?:/.*)?")
                index = after
                continue
            out.append("[^/]*")
            index = after
            continue

        char = pattern[index]
        if char == "*":
            out.append("[^/]*")
        elif char == "?":
            out.append("[^/]")
        elif char == "[":
            closing = pattern.find("]", index + 2)
            if closing == -1:
                out.append(re.escape(char))
            else:
                body = pattern[index + 1 : closing]
                if body.startswith("!"):
                    body = "^" + body[1:]
                out.append("[" + body.replace("\\", "\\\\") + "]")
                index = closing + 1
                continue
        else:
            out.append(re.escape(char))
        index += 1

    return re.compile("".join(out))


@dataclass(frozen=True, slots=True)
class BoundaryRuleSet:
    """Normalized boundary rules: literal directory/file prefixes plus compiled globs."""

    prefix_rules: tuple[str, ...]
    glob_patterns: tuple[re.Pattern[str], ...]

    @classmethod
    def from_patterns(cls, patterns: Iterable[str]) -> BoundaryRuleSet:
        prefixes: list[str] = []
        globs: list[re.Pattern[str]] = []
        for raw in patterns:
            pattern = normalize_path(raw)
            if not pattern:
                continue
            if pattern.endswith("/"):
                pattern = pattern.rstrip("/") + "/**"
            if any(char in _GLOB_CHARS for char in pattern):
                globs.append(compile_glob(pattern))
            else:
                prefixes.append(pattern)
        return cls(prefix_rules=tuple(prefixes), glob_patterns=tuple(globs))

    @property
    def empty(self) -> bool:
        return not self.prefix_rules and not self.glob_patterns

    def matches(self, path: str) -> bool:
        candidate = normalize_path(path)
        if any(
            candidate == prefix or candidate.startswith(prefix + "/")
            for prefix in self.prefix_rules
        ):
            return True
        return any(regex.fullmatch(candidate) is not None for regex in self.glob_patterns)


def matches_any(path: str, patterns: Iterable[str]) -> bool:
    return BoundaryRuleSet.from_patterns(patterns).matches(path)
