"""
Git-backed history for tasks.md.

Every successful store mutation is staged and committed so the repository
works as an append-only audit log. A failed commit is an error the store
acts on (it rolls the mutation back); a failed push is not. Push failures
are remembered and retried on the next commit or by the daemon.
"""

import logging
import os
import subprocess
from datetime import datetime
from pathlib import Path
from typing import Optional, Protocol

from yarmtl.errors import VersioningFailure

log = logging.getLogger(__name__)

GIT_USER_NAME = "YARMTL"
GIT_USER_EMAIL = "yarmtl@local"

_DEFAULT_TIMEOUT = 30.0


class Versioning(Protocol):
    """What the task store needs from a versioning backend."""

    def commit_change(self, file_path: Path, message: str) -> bool:
        ...

    def retry_push(self) -> bool:
        ...


class GitVersioning:
    """
    Commit tasks.md to the git repository containing it.

    Usage:
        versioning = GitVersioning(working_dir)
        versioning.commit_change(working_dir / "tasks.md", 'Added task: "x"')
    """

    def __init__(
        self,
        repo_dir: Path,
        *,
        push: bool = True,
        timeout: Optional[float] = None,
    ) -> None:
        self._repo_dir = Path(repo_dir)
        self._push_enabled = push
        self._timeout = timeout or _DEFAULT_TIMEOUT
        self._pending_push = False

    @property
    def repo_dir(self) -> Path:
        return self._repo_dir

    @property
    def pending_push(self) -> bool:
        """True when an earlier push failed and has not been retried successfully."""
        return self._pending_push

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _git(self, *args: str) -> subprocess.CompletedProcess:
        if not self._repo_dir.is_dir():
            raise VersioningFailure(f"Repository directory {self._repo_dir} does not exist")
        env = dict(os.environ, GIT_TERMINAL_PROMPT="0")
        try:
            return subprocess.run(
                ["git", *args],
                cwd=self._repo_dir,
                capture_output=True,
                text=True,
                timeout=self._timeout,
                env=env,
            )
        except FileNotFoundError as e:
            raise VersioningFailure("git executable not found") from e
        except subprocess.TimeoutExpired as e:
            raise VersioningFailure(f"git {args[0]} timed out after {self._timeout:.0f}s") from e

    def _git_checked(self, *args: str) -> subprocess.CompletedProcess:
        result = self._git(*args)
        if result.returncode != 0:
            raise VersioningFailure(f"git {args[0]} failed", result.stderr.strip())
        return result

    # ------------------------------------------------------------------
    # Repository setup
    # ------------------------------------------------------------------

    def is_repo(self) -> bool:
        result = self._git("rev-parse", "--is-inside-work-tree")
        return result.returncode == 0 and result.stdout.strip() == "true"

    def ensure_repo(self) -> None:
        """Initialise a repository (with a local identity) if there is none yet."""
        if self.is_repo():
            return
        self._git_checked("init")
        self._git_checked("config", "user.email", GIT_USER_EMAIL)
        self._git_checked("config", "user.name", GIT_USER_NAME)
        log.info("Initialized git repository for task versioning in %s", self._repo_dir)

    def has_remote(self) -> bool:
        result = self._git("remote")
        return result.returncode == 0 and bool(result.stdout.strip())

    # ------------------------------------------------------------------
    # Commit / push
    # ------------------------------------------------------------------

    def commit_change(self, file_path: Path, message: str) -> bool:
        """
        Stage and commit ``file_path``, then push if a remote is configured.

        Args:
            file_path: The tasks file that was just written
            message: Commit summary; a timestamp is appended

        Returns:
            True if a commit was created, False if there was nothing to commit

        Raises:
            VersioningFailure: if staging or committing fails
        """
        self.ensure_repo()
        path = str(Path(file_path).resolve())

        self._git_checked("add", "--", path)

        status = self._git_checked("status", "--porcelain", "--", path)
        if not status.stdout.strip():
            log.debug("No changes to commit for %s", path)
            return False

        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        result = self._git("commit", "-m", f"{message} - {timestamp}", "--", path)
        if result.returncode != 0:
            self._git("reset", "-q", "--", path)
            raise VersioningFailure("git commit failed", (result.stderr or result.stdout).strip())

        log.debug("Committed %s: %s", path, message)
        self._push_after_commit()
        return True

    def _push_after_commit(self) -> None:
        if not self._push_enabled or not self.has_remote():
            return
        self.push()

    def push(self) -> bool:
        """Best-effort push. Failures are logged and queued, never raised."""
        try:
            result = self._git("push")
        except VersioningFailure as e:
            log.warning("git push failed: %s", e)
            self._pending_push = True
            return False

        if result.returncode != 0:
            log.warning("git push failed: %s", result.stderr.strip())
            self._pending_push = True
            return False

        self._pending_push = False
        return True

    def retry_push(self) -> bool:
        """Push again if an earlier push failed. Returns True when nothing is pending."""
        if not self._pending_push:
            return True
        log.info("Retrying queued git push")
        return self.push()
