import logging
import os
import subprocess
from pathlib import Path

from .constants import APP_NAME, GIT_TIMEOUT_SECONDS

logger = logging.getLogger(APP_NAME)


class GitRepo:
    """A wrapper around the Git command-line interface for the mirror directory.

    Every command runs with the mirror directory as its working directory, so
    the mirror may be a repository root or a subdirectory of a larger work
    tree. In the latter case `add .` only stages the mirror's contents.

    Attributes:
        path (Path): The directory commands are executed in.
        timeout (float): Upper bound for a single git invocation.
    """

    def __init__(self, path: Path, timeout: float = GIT_TIMEOUT_SECONDS):
        """Initializes the GitRepo instance.

        Args:
            path (Path): The directory to run git in.
            timeout (float, optional): Seconds before a git command is killed.
        """
        self.path = path
        self.timeout = timeout

    def _run(
        self, args: list[str], capture: bool = True, env: dict | None = None
    ) -> str:
        """Executes a Git command within the repository context.

        Args:
            args (list[str]): A list of arguments to pass to the git command.
            capture (bool, optional):   Whether to capture and return stdout.
                                        Defaults to True.
            env (Optional[dict], optional): Environment variables to pass to the
                                            subprocess. Defaults to None.

        Returns:
            str:    The stripped stdout of the command if capture is True,
                    otherwise an empty string.

        Raises:
            RuntimeError: If the git command fails, times out, or git is missing.
        """
        try:
            res = subprocess.run(
                ["git", *args],
                cwd=self.path,
                capture_output=capture,
                text=True,
                check=True,
                env=env,
                timeout=self.timeout,
            )
            return res.stdout.strip() if capture else ""
        except subprocess.CalledProcessError as e:
            raise RuntimeError(f"Git error: {(e.stderr or '').strip() or e}") from e
        except subprocess.TimeoutExpired as e:
            raise RuntimeError(
                f"Git timeout: 'git {' '.join(args)}' exceeded {self.timeout}s"
            ) from e
        except FileNotFoundError as e:
            raise RuntimeError(f"Git unavailable: {e}") from e

    def is_work_tree(self) -> bool:
        """Checks whether the directory is inside a git work tree.

        Returns:
            bool: True if git recognizes the directory, False otherwise.
        """
        if not self.path.is_dir():
            return False
        try:
            return self._run(["rev-parse", "--is-inside-work-tree"]) == "true"
        except RuntimeError as e:
            logger.debug(f"rev-parse failed in {self.path}: {e}")
            return False

    def add_all(self) -> None:
        """
        Stages all changes (modified, deleted, and untracked files)
        below the working directory.
        """
        self._run(["add", "."], capture=False)

    def has_staged_changes(self) -> bool:
        """Returns True if the index differs from HEAD below the working directory."""
        # Limited to '.' so a parent repository's unrelated staged files don't count.
        output = self._run(["diff", "--cached", "--name-only", "--", "."])
        return bool(output)

    def commit(self, message: str) -> None:
        """Creates a new commit from the staged changes below the working directory.

        Args:
            message (str): The commit message.
        """
        self._run(["commit", "-m", message, "--", "."])

    def push(self, remote: str | None = None, branch: str | None = None) -> None:
        """Pushes the current branch.

        Without a remote, git's configured upstream is used. Interactive SSH
        prompts are disabled so a missing key fails instead of hanging.

        Args:
            remote (str | None): The remote name.
            branch (str | None): The branch to push. Ignored without a remote.
        """
        env = os.environ.copy()
        env["GIT_SSH_COMMAND"] = "ssh -o BatchMode=yes"
        env["GIT_TERMINAL_PROMPT"] = "0"
        cmd = ["push"]
        if remote:
            cmd.append(remote)
            if branch:
                cmd.append(branch)
        # capture=True suppresses verbose "Enumerating objects..." output.
        self._run(cmd, capture=True, env=env)
