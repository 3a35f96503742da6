"""
specguard — working-tree diff collection

File: src/specguard/integration_plane/diff_collector.py

Purpose
- Enumerate staged, unstaged, deleted, renamed and untracked changes of a git working tree
  as ``DiffFile`` records with line counts and a bounded patch excerpt.

Functional requirements
- Staged and unstaged edits are diffed against ``HEAD``, or the empty tree on an unborn branch.
- Untracked files are read from disk with a byte bound; binary files get zero counts.
- Output is sorted by path.
- "Not a repository", a missing git binary, non-zero exits and timeouts degrade to an
  empty result or ``False`` and are logged as warnings.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any, Final

import structlog

from specguard.constants import (
    DEFAULT_GIT_TIMEOUT_SECONDS,
    DEFAULT_MAX_PATCH_CHARS,
    DEFAULT_MAX_UNTRACKED_BYTES,
)
from specguard.domain.models import ChangeStatus, DiffFile
from specguard.integration_plane.git_engine import EMPTY_TREE_SHA, GitEngine, GitEngineError
from specguard.utils.fs import is_within, read_prefix

if TYPE_CHECKING:
    import os
    from collections.abc import Callable, Iterable

_DIFF_HEADER: Final[str] = "diff --git "
_DEV_NULL: Final[str] = "/dev/null"
_QUOTE_ESCAPES: Final[dict[str, str]] = {
    "\\": "\\",
    '"': '"',
    "n": "\n",
    "t": "\t",
}

__all__ = [
    "DiffCollector",
    "StatusEntry",
    "parse_status_porcelain",
    "parse_unified_diff",
]


@dataclass(frozen=True, slots=True)
class StatusEntry:
    """One ``git status --porcelain=v1`` entry."""

    index_status: str
    worktree_status: str
    path: str
    orig_path: str | None = None

    @property
    def untracked(self) -> bool:
        return self.index_status == "?" and self.worktree_status == "?"

    @property
    def change_status(self) -> ChangeStatus:
        codes = self.index_status + self.worktree_status
        if self.untracked or "A" in codes:
            return ChangeStatus.ADDED
        if "R" in codes:
            return ChangeStatus.RENAMED
        if "D" in codes:
            return ChangeStatus.DELETED
        return ChangeStatus.MODIFIED


def parse_status_porcelain(text: str) -> list[StatusEntry]:
    """Parse NUL-separated ``git status --porcelain=v1 -z`` output.

    Ignored (``!!``) entries are dropped.
    """

    tokens = text.split("\0")
    entries: list[StatusEntry] = []
    index = 0
    while index < len(tokens):
        token = tokens[index]
        index += 1
        if len(token) < 4 or token[2] != " ":
            continue
        index_status, worktree_status, path = token[0], token[1], token[3:]
        if index_status == "!" and worktree_status == "!":
            continue
        orig_path: str | None = None
        if index_status in "RC" or worktree_status in "RC":
            if index < len(tokens) and tokens[index]:
                orig_path = tokens[index]
            index += 1
        entries.append(
            StatusEntry(
                index_status=index_status,
                worktree_status=worktree_status,
                path=path,
                orig_path=orig_path,
            )
        )
    return entries


def parse_unified_diff(
    text: str,
    *,
    max_patch_chars: int = DEFAULT_MAX_PATCH_CHARS,
    on_invalid: Callable[[str, ValueError], None] | None = None,
) -> list[DiffFile]:
    """Split ``git diff`` output into per-file ``DiffFile`` records.

    Counts cover every hunk line regardless of the excerpt cap; ``patch`` holds the
    first ``max_patch_chars`` characters of the file's section. A section whose path
    fails ``DiffFile`` validation raises ``ValueError`` unless ``on_invalid`` is given,
    in which case it is reported there and skipped.
    """

    if max_patch_chars < 0:
        raise ValueError("max_patch_chars must be >= 0")

    blocks: list[list[str]] = []
    for line in text.splitlines(keepends=True):
        if line.startswith(_DIFF_HEADER) or not blocks:
            blocks.append([])
        blocks[-1].append(line)

    files: list[DiffFile] = []
    for block in blocks:
        try:
            parsed = _parse_file_block(block, max_patch_chars)
        except ValueError as exc:
            if on_invalid is None:
                raise
            on_invalid(block[0].rstrip("\n")[len(_DIFF_HEADER) :], exc)
            continue
        if parsed is not None:
            files.append(parsed)
    return files


def _parse_file_block(lines: list[str], max_patch_chars: int) -> DiffFile | None:
    header = lines[0].rstrip("\n")
    if not header.startswith(_DIFF_HEADER):
        return None

    status = ChangeStatus.MODIFIED
    old_path: str | None = None
    new_path: str | None = None
    rename_from: str | None = None
    rename_to: str | None = None
    additions = 0
    deletions = 0
    in_hunk = False

    for raw in lines[1:]:
        line = raw.rstrip("\n")
        if in_hunk:
            if line.startswith("+"):
                additions += 1
            elif line.startswith("-"):
                deletions += 1
            continue
        if line.startswith("@@"):
            in_hunk = True
        elif line.startswith("new file mode"):
            status = ChangeStatus.ADDED
        elif line.startswith("deleted file mode"):
            status = ChangeStatus.DELETED
        elif line.startswith("rename from "):
            rename_from = _unquote(line[len("rename from ") :])
        elif line.startswith("rename to "):
            rename_to = _unquote(line[len("rename to ") :])
        elif line.startswith("--- "):
            old_path = _strip_prefix(_unquote(line[4:].split("\t", 1)[0]), "a/")
        elif line.startswith("+++ "):
            new_path = _strip_prefix(_unquote(line[4:].split("\t", 1)[0]), "b/")

    if rename_to is not None:
        status = ChangeStatus.RENAMED
        path = rename_to
        old_path = rename_from
    elif new_path is not None and new_path != _DEV_NULL:
        path = new_path
        old_path = None
    elif old_path is not None and old_path != _DEV_NULL:
        path = old_path
        old_path = None
    else:
        header_path = _path_from_header(header[len(_DIFF_HEADER) :])
        if header_path is None:
            return None
        path = header_path
        old_path = None

    section = "".join(lines)
    truncated = len(section) > max_patch_chars
    return DiffFile(
        path=path,
        status=status,
        additions=additions,
        deletions=deletions,
        patch=section[:max_patch_chars],
        old_path=old_path,
        truncated=truncated,
    )


def _path_from_header(rest: str) -> str | None:
    """Recover the path from ``a/<p> b/<p>`` when both sides are the same path."""

    if rest.startswith('"'):
        closing = rest.find('" ', 1)
        if closing == -1:
            return None
        return _strip_prefix(_unquote(rest[: closing + 1]), "a/")
    if not rest.startswith("a/") or len(rest) < 5:
        return None
    half = (len(rest) - 1) // 2
    left, right = rest[:half], rest[half + 1 :]
    if left[2:] == right[2:] and right.startswith("b/"):
        return left[2:]
    return None


def _strip_prefix(value: str, prefix: str) -> str:
    return value[len(prefix) :] if value.startswith(prefix) else value


def _unquote(value: str) -> str:
    if len(value) < 2 or not (value.startswith('"') and value.endswith('"')):
        return value
    body = value[1:-1]
    out: list[str] = []
    index = 0
    while index < len(body):
        char = body[index]
        if char == "\\" and index + 1 < len(body):
            out.append(_QUOTE_ESCAPES.get(body[index + 1], body[index + 1]))
            index += 2
            continue
        out.append(char)
        index += 1
    return "".join(out)


class DiffCollector:
    """Collects the current working-tree changes of one repository.

    ``exclude_dirs`` names directories (absolute, or relative to ``repo_path``) whose
    contents are never reported, such as the spec store and the log directory.
    """

    def __init__(
        self,
        repo_path: str | os.PathLike[str],
        *,
        timeout_seconds: float = DEFAULT_GIT_TIMEOUT_SECONDS,
        max_patch_chars: int = DEFAULT_MAX_PATCH_CHARS,
        max_untracked_bytes: int = DEFAULT_MAX_UNTRACKED_BYTES,
        git_binary: str = "git",
        exclude_dirs: Iterable[str | os.PathLike[str]] = (),
        engine: GitEngine | None = None,
        logger: Any | None = None,
    ) -> None:
        if max_patch_chars < 0:
            raise ValueError("max_patch_chars must be >= 0")
        if max_untracked_bytes < 0:
            raise ValueError("max_untracked_bytes must be >= 0")
        self.repo_path = Path(repo_path)
        self.max_patch_chars = max_patch_chars
        self.max_untracked_bytes = max_untracked_bytes
        self.exclude_dirs = tuple(Path(item) for item in exclude_dirs)
        self._exclude_prefixes: tuple[str, ...] | None = None
        self._engine = (
            engine
            if engine is not None
            else GitEngine(self.repo_path, git_binary=git_binary, timeout_seconds=timeout_seconds)
        )
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    def status_entries(self) -> list[StatusEntry]:
        try:
            return self._read_status()
        except GitEngineError as exc:
            self._log_unavailable("status", exc)
            return []

    def has_uncommitted_changes(self) -> bool:
        return bool(self.status_entries())

    def changed_paths(self) -> list[str]:
        return sorted({entry.path for entry in self.status_entries()})

    def collect_changed_files(self) -> list[DiffFile]:
        try:
            entries = self._read_status()
            if not entries:
                return []
            base = "HEAD" if self._engine.has_head() else EMPTY_TREE_SHA
            diff_text = self._engine.diff_against(base)
            toplevel = self._engine.toplevel()
        except GitEngineError as exc:
            self._log_unavailable("diff", exc)
            return []

        excluded = self._excluded_prefixes()
        by_path = {
            item.path: item
            for item in parse_unified_diff(
                diff_text, max_patch_chars=self.max_patch_chars, on_invalid=self._log_rejected
            )
            if not _under_any(item.path, excluded)
        }
        for entry in entries:
            if entry.path in by_path:
                continue
            try:
                if entry.untracked:
                    by_path[entry.path] = self._untracked_file(toplevel, entry.path)
                else:
                    # Listed by status but without a worktree diff, e.g. staged then reverted.
                    by_path[entry.path] = DiffFile(
                        path=entry.path,
                        status=entry.change_status,
                        old_path=entry.orig_path,
                    )
            except ValueError as exc:
                self._log_rejected(entry.path, exc)

        files = [by_path[path] for path in sorted(by_path)]
        self._logger.debug(
            "diff_collector_collected",
            repo=str(self.repo_path),
            base=base,
            file_count=len(files),
        )
        return files

    def _read_status(self) -> list[StatusEntry]:
        entries = parse_status_porcelain(self._engine.status_porcelain())
        excluded = self._excluded_prefixes()
        if not excluded:
            return entries
        return [entry for entry in entries if not _under_any(entry.path, excluded)]

    def _excluded_prefixes(self) -> tuple[str, ...]:
        """Translate ``exclude_dirs`` into prefixes relative to the repository top level."""

        if not self.exclude_dirs:
            return ()
        if self._exclude_prefixes is None:
            toplevel = self._engine.toplevel().resolve()
            prefixes: list[str] = []
            for directory in self.exclude_dirs:
                # Non-strict resolve: the directory may not exist yet.
                target = (self.repo_path / directory).resolve()
                try:
                    relative = target.relative_to(toplevel).as_posix()
                except ValueError:
                    continue
                if relative != ".":
                    prefixes.append(relative)
            self._exclude_prefixes = tuple(prefixes)
        return self._exclude_prefixes

    def _untracked_file(self, toplevel: Path, relative: str) -> DiffFile:
        target = toplevel / relative
        if not target.is_file() or not is_within(target, toplevel):
            return DiffFile(path=relative, status=ChangeStatus.ADDED)
        try:
            data, cut = read_prefix(target, self.max_untracked_bytes)
            if b"\0" in data:
                return DiffFile(path=relative, status=ChangeStatus.ADDED)
            text = data.decode("utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            self._logger.warning(
                "diff_collector_untracked_unreadable", path=relative, error=str(exc)
            )
            return DiffFile(path=relative, status=ChangeStatus.ADDED)

        lines = text.splitlines()
        header = (
            f"{_DIFF_HEADER}a/{relative} b/{relative}\n"
            "new file mode 100644\n"
            f"--- {_DEV_NULL}\n"
            f"+++ b/{relative}\n"
            f"@@ -0,0 +1,{len(lines)} @@\n"
        )
        section = header + "".join(f"+{line}\n" for line in lines)
        return DiffFile(
            path=relative,
            status=ChangeStatus.ADDED,
            additions=len(lines),
            patch=section[: self.max_patch_chars],
            truncated=cut or len(section) > self.max_patch_chars,
        )

    def _log_rejected(self, path: str, exc: ValueError) -> None:
        self._logger.warning(
            "diff_collector_path_rejected",
            path=path[:200],
            path_length=len(path),
            error=str(exc),
        )

    def _log_unavailable(self, operation: str, exc: GitEngineError) -> None:
        self._logger.warning(
            "diff_collector_git_unavailable",
            operation=operation,
            repo=str(self.repo_path),
            error_type=type(exc).__name__,
            error=str(exc),
        )


def _under_any(path: str, prefixes: tuple[str, ...]) -> bool:
    return any(path == prefix or path.startswith(prefix + "/") for prefix in prefixes)
