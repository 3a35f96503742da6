"""Read-only, time-bounded git subprocess runner used for diff collection."""

from __future__ import annotations

import os
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from specguard.constants import DEFAULT_GIT_TIMEOUT_SECONDS

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

# Hash of git's canonical empty tree; valid in every repository.
EMPTY_TREE_SHA = "4b825dc642cb6eb9a060e54bf8d69288fbee4904"


class GitEngineError(RuntimeError):
    """Base error for git engine failures."""


class GitUnavailableError(GitEngineError):
    """Raised when the git binary cannot be executed."""


class GitTimeoutError(GitEngineError):
    """Raised when a git subprocess exceeds its timeout."""

    def __init__(self, *, command: Sequence[str], timeout_seconds: float) -> None:
        self.command = tuple(command)
        self.timeout_seconds = timeout_seconds
        super().__init__(f"git command timed out after {timeout_seconds}s: {' '.join(command)}")


class GitCommandError(GitEngineError):
    """Raised when a git subprocess command exits non-zero."""

    def __init__(
        self,
        *,
        command: Sequence[str],
        returncode: int,
        stdout: str,
        stderr: str,
    ) -> None:
        self.command = tuple(command)
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        message = f"git command failed ({returncode}): {' '.join(command)}"
        if stderr.strip():
            message = f"{message}: {stderr.strip()}"
        super().__init__(message)


@dataclass(frozen=True, slots=True)
class CommandResult:
    """Normalized subprocess result for deterministic git wrapper behavior."""

    command: tuple[str, ...]
    cwd: str
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class GitEngine:
    """Runs git commands against one repository path; never mutates the repository."""

    def __init__(
        self,
        repo_path: str | os.PathLike[str],
        *,
        git_binary: str = "git",
        timeout_seconds: float = DEFAULT_GIT_TIMEOUT_SECONDS,
        env_overrides: Mapping[str, str] | None = None,
    ) -> None:
        if timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be > 0")
        if not git_binary.strip():
            raise ValueError("git_binary must be a non-empty string")
        self.repo_path = Path(repo_path)
        self.git_binary = git_binary
        self.timeout_seconds = float(timeout_seconds)
        self._env_overrides = dict(env_overrides or {})

    def run(self, args: Sequence[str], *, check: bool = True) -> CommandResult:
        command = (self.git_binary, "-c", "core.quotepath=false", *args)
        run_cwd = self.repo_path.resolve()
        env = os.environ.copy()
        env["GIT_TERMINAL_PROMPT"] = "0"
        env.setdefault("GIT_CONFIG_NOSYSTEM", "1")
        # Status must not take the index lock or rewrite the index.
        env["GIT_OPTIONAL_LOCKS"] = "0"
        env.update(self._env_overrides)

        try:
            completed = subprocess.run(
                command,
                cwd=run_cwd,
                env=env,
                text=True,
                encoding="utf-8",
                errors="replace",
                capture_output=True,
                timeout=self.timeout_seconds,
                check=False,
            )
        except FileNotFoundError as exc:
            # Raised both for a missing binary and for a missing cwd.
            raise GitUnavailableError(
                f"cannot run {self.git_binary!r} in {run_cwd}: {exc}"
            ) from exc
        except subprocess.TimeoutExpired as exc:
            raise GitTimeoutError(command=command, timeout_seconds=self.timeout_seconds) from exc
        except OSError as exc:
            raise GitUnavailableError(f"cannot run {self.git_binary!r}: {exc}") from exc

        result = CommandResult(
            command=command,
            cwd=run_cwd.as_posix(),
            returncode=completed.returncode,
            stdout=completed.stdout or "",
            stderr=completed.stderr or "",
        )

        if check and result.returncode != 0:
            raise GitCommandError(
                command=result.command,
                returncode=result.returncode,
                stdout=result.stdout,
                stderr=result.stderr,
            )

        return result

    def is_repository(self) -> bool:
        result = self.run(("rev-parse", "--is-inside-work-tree"), check=False)
        return result.ok and result.stdout.strip() == "true"

    def toplevel(self) -> Path:
        return Path(self.run(("rev-parse", "--show-toplevel")).stdout.strip())

    def has_head(self) -> bool:
        """``False`` on an unborn branch (no commits yet)."""

        return self.run(("rev-parse", "--verify", "--quiet", "HEAD"), check=False).ok

    def status_porcelain(self) -> str:
        return self.run(
            ("status", "--porcelain=v1", "-z", "--untracked-files=all", "--ignore-submodules")
        ).stdout

    def diff_against(self, base: str) -> str:
        """Unified diff of the working tree (staged and unstaged) against ``base``."""

        return self.run(("diff", "--no-color", "--no-ext-diff", "-M", base, "--")).stdout


__all__ = [
    "EMPTY_TREE_SHA",
    "CommandResult",
    "GitCommandError",
    "GitEngine",
    "GitEngineError",
    "GitTimeoutError",
    "GitUnavailableError",
]
