"""
specguard — integration tests for working-tree diff collection

File: tests/integration/test_diff_collector_git.py

Purpose
- Exercise ``DiffCollector`` against real temporary git repositories.

What this test file should cover
- Unborn branches, modifications, deletions, renames, binary and untracked files.
- Graceful degradation outside a repository and without a git binary.

Functional requirements
- Offline; repositories live under ``tmp_path`` with isolated git config.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from specguard.domain.models import ChangeStatus
from specguard.integration_plane.diff_collector import DiffCollector
from specguard.integration_plane.git_engine import GitEngine, GitUnavailableError
from tests import commit_all, init_repo, run_git, write_file

if TYPE_CHECKING:
    from pathlib import Path

pytestmark = [pytest.mark.integration, pytest.mark.usefixtures("isolated_git_env")]


class _RecordingLogger:
    def __init__(self) -> None:
        self.events: list[tuple[str, str, dict[str, object]]] = []

    def debug(self, event: str, **fields: object) -> None:
        self.events.append(("debug", event, fields))

    def info(self, event: str, **fields: object) -> None:
        self.events.append(("info", event, fields))

    def warning(self, event: str, **fields: object) -> None:
        self.events.append(("warning", event, fields))


def test_unborn_branch_reports_untracked_and_staged_files(tmp_path: Path) -> None:
    repo = init_repo(tmp_path / "repo")
    write_file(repo, "src/auth/login.ts", "export function login() {}\nexport const x = 1;\n")
    write_file(repo, "README.md", "# demo\n")
    run_git(repo, "add", "README.md")

    collector = DiffCollector(repo)
    files = collector.collect_changed_files()

    assert [item.path for item in files] == ["README.md", "src/auth/login.ts"]
    readme, login = files
    assert readme.status is ChangeStatus.ADDED
    assert readme.additions == 1
    assert login.status is ChangeStatus.ADDED
    assert login.additions == 2
    assert "+export function login() {}" in login.patch
    assert collector.has_uncommitted_changes()


def test_clean_repository_has_no_changes(tmp_path: Path) -> None:
    repo = init_repo(tmp_path / "repo")
    write_file(repo, "app.py", "print('hi')\n")
    commit_all(repo)

    collector = DiffCollector(repo)

    assert collector.collect_changed_files() == []
    assert not collector.has_uncommitted_changes()
    assert collector.changed_paths() == []


def test_modifications_deletions_and_untracked_after_commit(tmp_path: Path) -> None:
    repo = init_repo(tmp_path / "repo")
    write_file(repo, "app.py", "a\nb\nc\n")
    write_file(repo, "old_notes.txt", "one\ntwo\n")
    commit_all(repo)

    write_file(repo, "app.py", "a\nB\nc\nd\n")
    (repo / "old_notes.txt").unlink()
    write_file(repo, "tests/test_app.py", "def test_app():\n    assert True\n")

    collector = DiffCollector(repo)
    files = {item.path: item for item in collector.collect_changed_files()}

    assert set(files) == {"app.py", "old_notes.txt", "tests/test_app.py"}
    assert files["app.py"].status is ChangeStatus.MODIFIED
    assert (files["app.py"].additions, files["app.py"].deletions) == (2, 1)
    assert files["old_notes.txt"].status is ChangeStatus.DELETED
    assert files["old_notes.txt"].deletions == 2
    assert files["tests/test_app.py"].status is ChangeStatus.ADDED
    assert collector.changed_paths() == ["app.py", "old_notes.txt", "tests/test_app.py"]


def test_staged_rename_keeps_old_path(tmp_path: Path) -> None:
    repo = init_repo(tmp_path / "repo")
    body = "".join(f"value_{index} = {index}\n" for index in range(20))
    write_file(repo, "src/old_name.py", body)
    commit_all(repo)
    run_git(repo, "mv", "src/old_name.py", "src/new_name.py")

    (renamed,) = DiffCollector(repo).collect_changed_files()

    assert renamed.path == "src/new_name.py"
    assert renamed.status is ChangeStatus.RENAMED
    assert renamed.old_path == "src/old_name.py"


def test_binary_files_have_zero_counts(tmp_path: Path) -> None:
    repo = init_repo(tmp_path / "repo")
    write_file(repo, "tracked.bin", b"\x00\x01\x02")
    commit_all(repo)
    write_file(repo, "tracked.bin", b"\x00\x01\x03\x04")
    write_file(repo, "fresh.bin", b"\x89PNG\x00\x00data")

    files = {item.path: item for item in DiffCollector(repo).collect_changed_files()}

    assert (files["tracked.bin"].additions, files["tracked.bin"].deletions) == (0, 0)
    assert files["tracked.bin"].status is ChangeStatus.MODIFIED
    assert (files["fresh.bin"].additions, files["fresh.bin"].deletions) == (0, 0)
    assert files["fresh.bin"].patch == ""


def test_untracked_reads_are_bounded(tmp_path: Path) -> None:
    repo = init_repo(tmp_path / "repo")
    write_file(repo, "big.txt", "".join(f"row {index}\n" for index in range(100)))

    collector = DiffCollector(repo, max_untracked_bytes=64, max_patch_chars=1000)
    (big,) = collector.collect_changed_files()

    assert big.truncated is True
    assert 0 < big.additions < 100


def test_outside_a_repository_degrades_to_empty(tmp_path: Path) -> None:
    plain = tmp_path / "plain"
    plain.mkdir()
    logger = _RecordingLogger()

    collector = DiffCollector(plain, logger=logger)

    assert collector.collect_changed_files() == []
    assert collector.has_uncommitted_changes() is False
    assert not GitEngine(plain).is_repository()
    warnings = [event for level, event, _ in logger.events if level == "warning"]
    assert warnings == ["diff_collector_git_unavailable", "diff_collector_git_unavailable"]


def test_missing_git_binary_degrades_to_empty(tmp_path: Path) -> None:
    repo = init_repo(tmp_path / "repo")
    write_file(repo, "a.txt", "x\n")
    logger = _RecordingLogger()

    collector = DiffCollector(repo, git_binary="specguard-no-such-git", logger=logger)

    assert collector.collect_changed_files() == []
    (record,) = logger.events
    assert record[1] == "diff_collector_git_unavailable"
    assert record[2]["error_type"] == GitUnavailableError.__name__
    with pytest.raises(GitUnavailableError):
        GitEngine(repo, git_binary="specguard-no-such-git").status_porcelain()


def test_deeply_nested_untracked_path_is_collected(tmp_path: Path) -> None:
    repo = init_repo(tmp_path / "repo")
    relative = "/".join(f"level{index:02d}_" + "d" * 90 for index in range(11)) + "/deep.txt"
    assert len(relative) > 1024
    write_file(repo, relative, "hello\n")

    collector = DiffCollector(repo)
    (deep,) = collector.collect_changed_files()

    assert deep.path == relative
    assert deep.status is ChangeStatus.ADDED
    assert deep.additions == 1
    assert collector.changed_paths() == [relative]


def test_paths_with_surrounding_spaces_are_preserved(tmp_path: Path) -> None:
    repo = init_repo(tmp_path / "repo")
    write_file(repo, " notes.md ", "one\n")
    write_file(repo, "tracked.txt", "a\n")
    commit_all(repo)
    write_file(repo, " notes.md ", "one\ntwo\n")

    (notes,) = DiffCollector(repo).collect_changed_files()

    assert notes.path == " notes.md "
    assert notes.status is ChangeStatus.MODIFIED
    assert (notes.additions, notes.deletions) == (1, 0)


def test_excluded_directories_stay_invisible(tmp_path: Path) -> None:
    repo = init_repo(tmp_path / "repo")
    write_file(repo, "README.md", "# demo\n")
    commit_all(repo)
    write_file(repo, ".agentic-plan/spec0001.json", "{}\n")
    write_file(repo, "var/logs/specguard.jsonl", "{}\n")

    collector = DiffCollector(repo, exclude_dirs=[".agentic-plan", repo / "var" / "logs"])

    assert not collector.has_uncommitted_changes()
    assert collector.collect_changed_files() == []

    write_file(repo, "var/other.txt", "x\n")
    assert collector.changed_paths() == ["var/other.txt"]
