import datetime
import logging
import threading
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from .constants import APP_NAME, COMMIT_PREFIX
from .git_wrapper import GitRepo

logger = logging.getLogger(APP_NAME)


class PublishStatus(str, Enum):
    """Outcome of one stage/commit/push cycle."""

    PUBLISHED = "published"
    NOTHING_TO_COMMIT = "nothing_to_commit"
    FAILED = "failed"


@dataclass
class PublishResult:
    """The result of `Publisher.publish`.

    Attributes:
        status (PublishStatus): What happened.
        message (str): The commit message, or the error text on failure.
        files (list[Path]): The files the caller asked to publish.
    """

    status: PublishStatus
    message: str = ""
    files: list[Path] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        """True unless the cycle failed."""
        return self.status is not PublishStatus.FAILED


def commit_message(now: datetime.datetime | None = None) -> str:
    """Builds the timestamped commit message, e.g. 'Auto-commit: 2024-05-01T10:00:00+00:00'."""
    now = now or datetime.datetime.now(datetime.timezone.utc)
    return f"{COMMIT_PREFIX}: {now.isoformat(timespec='seconds')}"


class Publisher:
    """Commits and pushes the whole mirror working tree.

    Every call stages everything below the mirror root, not only the files it
    is given. Calls are serialized so two flushes never race on the index.

    Attributes:
        repo (GitRepo): The git wrapper bound to the mirror root.
        remote (str | None): Remote to push to; None uses the upstream.
        branch (str | None): Branch to push together with `remote`.
    """

    def __init__(
        self, repo: GitRepo, remote: str | None = None, branch: str | None = None
    ):
        self.repo = repo
        self.remote = remote
        self.branch = branch
        self._lock = threading.Lock()

    def publish(self, files: list[Path]) -> PublishResult:
        """Runs one stage/commit/push cycle.

        Never raises: git failures are returned as a FAILED result and a
        clean tree as NOTHING_TO_COMMIT. Nothing is retried; the next
        successful cycle picks up whatever this one missed.

        Args:
            files (list[Path]): The files that triggered this cycle.

        Returns:
            PublishResult: The outcome of the cycle.
        """
        with self._lock:
            try:
                self.repo.add_all()
                if not self.repo.has_staged_changes():
                    return PublishResult(PublishStatus.NOTHING_TO_COMMIT, files=files)

                message = commit_message()
                self.repo.commit(message)
                self.repo.push(self.remote, self.branch)
                return PublishResult(PublishStatus.PUBLISHED, message, files)
            except Exception as e:
                return PublishResult(PublishStatus.FAILED, str(e), files)


def log_result(result: PublishResult) -> None:
    """Logs a publish outcome at the level it deserves."""
    count = len(result.files)
    if result.status is PublishStatus.PUBLISHED:
        logger.info(f"PUBLISHED {count} file(s): {result.message}")
    elif result.status is PublishStatus.NOTHING_TO_COMMIT:
        logger.info(f"PUBLISH SKIPPED: nothing to commit ({count} file(s) unchanged).")
    else:
        logger.error(f"PUBLISH ERROR: {result.message}")
