"""Shared builders and fakes for the specguard test suite."""

from __future__ import annotations

import os
import subprocess
from collections.abc import Callable, Iterator, Sequence
from datetime import UTC, datetime, timedelta
from pathlib import Path

from specguard.domain.models import DiffFile, Spec

BASE_TIME = datetime(2026, 1, 2, 3, 4, 5, tzinfo=UTC)


def make_clock(start: datetime = BASE_TIME, step_seconds: float = 1.0) -> Callable[[], datetime]:
    """Clock that advances ``step_seconds`` on every call."""

    state = {"now": start - timedelta(seconds=step_seconds)}

    def clock() -> datetime:
        state["now"] = state["now"] + timedelta(seconds=step_seconds)
        return state["now"]

    return clock


def frozen_clock(at: datetime = BASE_TIME) -> Callable[[], datetime]:
    return lambda: at


def sequence_ids(*values: str) -> Callable[[], str]:
    """ID factory yielding ``values`` in order, then ``id00000001``-style fallbacks."""

    pending: Iterator[str] = iter(values)
    counter = {"n": 0}

    def factory() -> str:
        for value in pending:
            return value
        counter["n"] += 1
        return f"id{counter['n']:08d}"

    return factory


def make_spec(**overrides: object) -> Spec:
    fields: dict[str, object] = {
        "id": "spec0001",
        "title": "Add auth",
        "goal": "Users can sign in",
        "in_scope": ("login", "logout"),
        "acceptance_criteria": ("login works", "logout works"),
        "file_boundaries": ("src/auth/**",),
        "created_at": BASE_TIME,
        "updated_at": BASE_TIME,
    }
    fields.update(overrides)
    return Spec(**fields)  # type: ignore[arg-type]


def added_patch(path: str, *lines: str) -> str:
    body = "".join(f"+{line}\n" for line in lines)
    return (
        f"diff --git a/{path} b/{path}\n"
        "new file mode 100644\n"
        "--- /dev/null\n"
        f"+++ b/{path}\n"
        f"@@ -0,0 +1,{len(lines)} @@\n"
        f"{body}"
    )


class FakeCollector:
    """Change source returning a fixed file list."""

    def __init__(self, files: Sequence[DiffFile] = ()) -> None:
        self.files = list(files)
        self.calls = 0

    def collect_changed_files(self) -> list[DiffFile]:
        self.calls += 1
        return list(self.files)


class ScriptedGenerator:
    """Text generator replaying scripted responses; exceptions in the script are raised."""

    provider_name = "scripted"

    def __init__(self, *responses: str | Exception) -> None:
        self._responses = list(responses)
        self.calls: list[tuple[str, str]] = []

    def generate(self, *, system: str, prompt: str) -> str:
        self.calls.append((system, prompt))
        if not self._responses:
            raise AssertionError("unexpected generate() call")
        response = self._responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def run_git(cwd: Path, *args: str, check: bool = True) -> subprocess.CompletedProcess[str]:
    env = os.environ.copy()
    env["GIT_TERMINAL_PROMPT"] = "0"
    env.setdefault("GIT_CONFIG_NOSYSTEM", "1")
    completed = subprocess.run(
        ["git", *args],
        cwd=cwd,
        env=env,
        text=True,
        capture_output=True,
        check=False,
    )
    if check and completed.returncode != 0:
        msg = (
            f"git command failed: git {' '.join(args)}\n"
            f"stdout:\n{completed.stdout}\nstderr:\n{completed.stderr}"
        )
        raise AssertionError(msg)
    return completed


def init_repo(path: Path) -> Path:
    path.mkdir(parents=True, exist_ok=True)
    run_git(path, "init", "-q")
    run_git(path, "config", "user.email", "dev@example.com")
    run_git(path, "config", "user.name", "Dev")
    run_git(path, "config", "commit.gpgsign", "false")
    return path


def write_file(root: Path, rel_path: str, content: str | bytes) -> Path:
    target = root / rel_path
    target.parent.mkdir(parents=True, exist_ok=True)
    if isinstance(content, bytes):
        target.write_bytes(content)
    else:
        target.write_text(content, encoding="utf-8")
    return target


def commit_all(root: Path, message: str = "commit") -> None:
    run_git(root, "add", "--all")
    run_git(root, "commit", "-q", "-m", message)


__all__ = [
    "BASE_TIME",
    "FakeCollector",
    "ScriptedGenerator",
    "added_patch",
    "commit_all",
    "frozen_clock",
    "init_repo",
    "make_clock",
    "make_spec",
    "run_git",
    "sequence_ids",
    "write_file",
]
