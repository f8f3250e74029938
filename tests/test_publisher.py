"""Tests for the stage/commit/push cycle."""

import datetime
import logging
import re
import shutil
import subprocess
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from dev_uploader.git_wrapper import GitRepo
from dev_uploader.publisher import (
    Publisher,
    PublishResult,
    PublishStatus,
    commit_message,
    log_result,
)


@pytest.fixture
def repo() -> MagicMock:
    """A GitRepo double that always has something staged."""
    repo = MagicMock()
    repo.has_staged_changes.return_value = True
    return repo


def test_publish_stages_commits_and_pushes(repo: MagicMock) -> None:
    """Verifies the full cycle and the timestamped commit message."""
    publisher = Publisher(repo, remote="origin", branch="main")
    files = [Path("/proj/dist/a.txt")]

    result = publisher.publish(files)

    assert result.status is PublishStatus.PUBLISHED
    assert result.files == files
    repo.add_all.assert_called_once()
    repo.commit.assert_called_once_with(result.message)
    repo.push.assert_called_once_with("origin", "main")
    assert re.fullmatch(r"Auto-commit: \d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\+00:00", result.message)


def test_publish_with_nothing_to_commit_is_a_no_op(repo: MagicMock) -> None:
    """Verifies that a clean tree neither commits nor pushes nor fails."""
    repo.has_staged_changes.return_value = False

    result = Publisher(repo).publish([])

    assert result.status is PublishStatus.NOTHING_TO_COMMIT
    assert result.ok
    repo.commit.assert_not_called()
    repo.push.assert_not_called()


@pytest.mark.parametrize("failing", ["add_all", "commit", "push"])
def test_publish_never_raises(repo: MagicMock, failing: str) -> None:
    """Verifies that git failures at any step become a FAILED result."""
    getattr(repo, failing).side_effect = RuntimeError(f"Git error: {failing} broke")

    result = Publisher(repo).publish([Path("x")])

    assert result.status is PublishStatus.FAILED
    assert not result.ok
    assert f"{failing} broke" in result.message


def test_publish_never_raises_on_unexpected_errors(repo: MagicMock) -> None:
    """Verifies that errors outside the git wrapper also become a FAILED result."""
    repo.push.side_effect = TypeError("expected str, bytes or os.PathLike object, not int")

    result = Publisher(repo, remote=1).publish([Path("x")])

    assert result.status is PublishStatus.FAILED
    assert "PathLike" in result.message


def test_commit_message_is_sortable() -> None:
    """Verifies the ISO-8601 timestamp format of commit messages."""
    ts = datetime.datetime(2024, 5, 1, 9, 30, 5, tzinfo=datetime.timezone.utc)
    assert commit_message(ts) == "Auto-commit: 2024-05-01T09:30:05+00:00"


def test_log_result_levels(caplog: pytest.LogCaptureFixture) -> None:
    """Verifies that only failures are logged as errors."""
    caplog.set_level(logging.INFO)

    log_result(PublishResult(PublishStatus.PUBLISHED, "Auto-commit: t", [Path("a")]))
    log_result(PublishResult(PublishStatus.NOTHING_TO_COMMIT))
    log_result(PublishResult(PublishStatus.FAILED, "Git error: rejected"))

    levels = [(r.levelname, r.getMessage()) for r in caplog.records]
    assert levels == [
        ("INFO", "PUBLISHED 1 file(s): Auto-commit: t"),
        ("INFO", "PUBLISH SKIPPED: nothing to commit (0 file(s) unchanged)."),
        ("ERROR", "PUBLISH ERROR: Git error: rejected"),
    ]


def git(cwd: Path, *args: str) -> str:
    res = subprocess.run(
        ["git", *args], cwd=cwd, check=True, capture_output=True, text=True
    )
    return res.stdout.strip()


@pytest.fixture
def work_tree(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """A real repository with a bare `origin`, isolated from user git config."""
    monkeypatch.setenv("GIT_CONFIG_GLOBAL", str(tmp_path / "gitconfig"))
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    for var in ("GIT_AUTHOR", "GIT_COMMITTER"):
        monkeypatch.setenv(f"{var}_NAME", "Dev Uploader")
        monkeypatch.setenv(f"{var}_EMAIL", "dev@example.com")

    remote = tmp_path / "origin.git"
    work = tmp_path / "work"
    git(tmp_path, "init", "--bare", "-b", "main", str(remote))
    git(tmp_path, "init", "-b", "main", str(work))
    git(work, "remote", "add", "origin", str(remote))
    return work


@pytest.mark.skipif(shutil.which("git") is None, reason="git is not installed")
@pytest.mark.parametrize("subdir", ["dist", ""])
def test_publish_twice_against_real_git(work_tree: Path, subdir: str) -> None:
    """Verifies a real commit and push, then NOTHING_TO_COMMIT, scoped to the mirror."""
    mirror = work_tree / subdir if subdir else work_tree
    mirror.mkdir(exist_ok=True)
    (mirror / "a.txt").write_text("a")
    if subdir:
        (work_tree / "notes.txt").write_text("unrelated")
        git(work_tree, "add", "notes.txt")
    publisher = Publisher(GitRepo(mirror), remote="origin", branch="main")

    first = publisher.publish([mirror / "a.txt"])
    second = publisher.publish([mirror / "a.txt"])

    assert first.status is PublishStatus.PUBLISHED, first.message
    assert second.status is PublishStatus.NOTHING_TO_COMMIT
    committed = git(work_tree, "show", "--name-only", "--format=", "HEAD").splitlines()
    assert committed == [f"{subdir}/a.txt" if subdir else "a.txt"]
    origin = work_tree.parent / "origin.git"
    assert git(origin, "log", "-1", "--format=%s", "main") == first.message
    if subdir:
        assert git(work_tree, "diff", "--cached", "--name-only") == "notes.txt"
