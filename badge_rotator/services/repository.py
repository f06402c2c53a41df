"""Local mutation of the target repository through the ``git`` executable.

A :class:`RepositoryMutator` owns one ephemeral clone and walks it through a
fixed sequence of states::

    UNCLONED -> CLONED -> BRANCH_CREATED -> FILE_UPDATED -> COMMITTED -> PUSHED

Each operation is only valid in the state before it and raises
:class:`~badge_rotator.errors.SequencingError` otherwise.  Nothing reaches the
remote until :meth:`RepositoryMutator.push`; a failure before that leaves only
a throwaway directory behind.

Credentials are handed to git as an ``http.extraHeader`` through
``GIT_CONFIG_*`` environment entries so the token never shows up in the
command line, the remote URL or ``.git/config``.
"""

import base64
import enum
import logging
import os
import shutil
import subprocess
import tempfile
from pathlib import Path
from typing import Dict, List, Optional, Type

from badge_rotator.errors import (
    BranchError,
    BranchExistsError,
    CloneError,
    CommitError,
    PushError,
    RepositoryError,
    SequencingError,
    UpdateError,
)
from badge_rotator.models.repository import ChangeSet, CommitAuthor

logger = logging.getLogger(__name__)

REMOTE = "origin"
WORKSPACE_PREFIX = "badge-rotator-"
GIT_TIMEOUT = 120  # seconds


class RepositoryState(enum.Enum):
    UNCLONED = "uncloned"
    CLONED = "cloned"
    BRANCH_CREATED = "branch_created"
    FILE_UPDATED = "file_updated"
    COMMITTED = "committed"
    PUSHED = "pushed"


def branch_name_for(prefix: str, month: str) -> str:
    return f"{prefix}-{month}"


class RepositoryMutator:
    def __init__(
        self,
        clone_url: str,
        *,
        username: str = "",
        token: Optional[str] = None,
        branch_prefix: str = "update-badge",
        workspace_root: Optional[str] = None,
    ) -> None:
        self.clone_url = clone_url
        self.branch_prefix = branch_prefix
        self._username = username
        self._token = token
        self._workspace_root = workspace_root

        self.state = RepositoryState.UNCLONED
        self.workspace: Optional[Path] = None
        self.base_branch: Optional[str] = None
        self.branch_name: Optional[str] = None
        self.head_sha: Optional[str] = None
        self.change_set: Optional[ChangeSet] = None

    # ------------------------------------------------------------------
    # git plumbing
    # ------------------------------------------------------------------

    def _redact(self, text: str) -> str:
        if self._token:
            text = text.replace(self._token, "***")
        return text

    def _env(self, authenticated: bool, extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        env = dict(os.environ)
        env["GIT_TERMINAL_PROMPT"] = "0"
        if authenticated and self._token:
            credentials = f"{self._username}:{self._token}".encode()
            header = "Authorization: Basic " + base64.b64encode(credentials).decode("ascii")
            env["GIT_CONFIG_COUNT"] = "1"
            env["GIT_CONFIG_KEY_0"] = "http.extraHeader"
            env["GIT_CONFIG_VALUE_0"] = header
        if extra:
            env.update(extra)
        return env

    def _git(
        self,
        *args: str,
        error: Type[RepositoryError],
        cwd: Optional[Path] = None,
        authenticated: bool = False,
        env: Optional[Dict[str, str]] = None,
    ) -> str:
        """Run ``git *args`` and return stdout; raise *error* on failure."""
        try:
            proc = subprocess.run(
                ["git", *args],
                cwd=cwd if cwd is not None else self.workspace,
                env=self._env(authenticated, env),
                capture_output=True,
                text=True,
                timeout=GIT_TIMEOUT,
            )
        except (OSError, subprocess.TimeoutExpired) as exc:
            logger.error("git %s could not run: %s", args[0], exc)
            raise error(f"git {args[0]} failed: {exc}") from exc

        if proc.returncode != 0:
            stderr = self._redact(proc.stderr.strip())
            logger.error("git %s exited %s: %s", args[0], proc.returncode, stderr)
            raise error(f"git {args[0]} failed: {stderr or 'exit status ' + str(proc.returncode)}")
        return proc.stdout

    def _ref_exists(self, ref: str) -> bool:
        proc = subprocess.run(
            ["git", "show-ref", "--verify", "--quiet", ref],
            cwd=self.workspace,
            env=self._env(False),
            capture_output=True,
            text=True,
        )
        return proc.returncode == 0

    def _require(self, expected: RepositoryState, operation: str) -> None:
        if self.state is not expected:
            raise SequencingError(
                f"Cannot {operation} while repository is {self.state.value}; "
                f"expected {expected.value}."
            )

    # ------------------------------------------------------------------
    # state transitions
    # ------------------------------------------------------------------

    def clone(self) -> Path:
        """Clone the remote into a fresh, uniquely named temp directory."""
        self._require(RepositoryState.UNCLONED, "clone")

        try:
            workspace = Path(tempfile.mkdtemp(prefix=WORKSPACE_PREFIX, dir=self._workspace_root))
        except OSError as exc:
            logger.error("Could not create workspace directory: %s", exc)
            raise CloneError(f"Could not create workspace directory: {exc}") from exc

        self._git(
            "clone", "--quiet", self.clone_url, str(workspace),
            error=CloneError, cwd=workspace, authenticated=True,
        )
        self.workspace = workspace
        self.base_branch = self._git("rev-parse", "--abbrev-ref", "HEAD", error=CloneError).strip()
        self.state = RepositoryState.CLONED
        logger.info("Cloned %s into %s (default branch %s)", self.clone_url, workspace, self.base_branch)
        return workspace

    def branch(self, month: str) -> str:
        """Create and check out ``<prefix>-<month>`` from the current HEAD.

        Raises:
            BranchExistsError: if the branch already exists locally or on origin.
        """
        self._require(RepositoryState.CLONED, "branch")

        head_sha = self._git("rev-parse", "HEAD", error=BranchError).strip()
        name = branch_name_for(self.branch_prefix, month)

        if self._ref_exists(f"refs/heads/{name}") or self._ref_exists(f"refs/remotes/{REMOTE}/{name}"):
            logger.error("Branch %s already exists", name)
            raise BranchExistsError(f"Branch {name} already exists; refusing to recreate it.")

        self._git("checkout", "--quiet", "-b", name, head_sha, error=BranchError)
        self.head_sha = head_sha
        self.branch_name = name
        self.state = RepositoryState.BRANCH_CREATED
        logger.info("Checked out branch %s at %s", name, head_sha)
        return name

    def overwrite_file(self, target_relative_path: str, source_local_path: str) -> Path:
        """Replace the tracked file at *target_relative_path* with *source_local_path*."""
        self._require(RepositoryState.BRANCH_CREATED, "overwrite a file")

        root = self.workspace.resolve()
        target = (root / target_relative_path).resolve()
        try:
            target.relative_to(root)
        except ValueError:
            raise UpdateError(f"{target_relative_path} is outside the workspace.") from None

        if not target.is_file():
            logger.error("Tracked file %s not found in workspace", target_relative_path)
            raise UpdateError(f"{target_relative_path} does not exist in the repository.")

        try:
            shutil.copyfile(source_local_path, target)
        except OSError as exc:
            logger.error("Error overwriting %s: %s", target_relative_path, exc)
            raise UpdateError(f"Error overwriting {target_relative_path}: {exc}") from exc

        self.state = RepositoryState.FILE_UPDATED
        logger.info("Overwrote %s with %s", target_relative_path, source_local_path)
        return target

    def commit(self, message: str, author: CommitAuthor) -> ChangeSet:
        """Stage every change in the workspace and commit it as *author*."""
        self._require(RepositoryState.FILE_UPDATED, "commit")

        identity = {
            "GIT_AUTHOR_NAME": author.name,
            "GIT_AUTHOR_EMAIL": author.email,
            "GIT_COMMITTER_NAME": author.name,
            "GIT_COMMITTER_EMAIL": author.email,
        }
        self._git("add", "--all", error=CommitError)
        self._git("commit", "--quiet", "--no-verify", "-m", message, error=CommitError, env=identity)

        sha = self._git("rev-parse", "HEAD", error=CommitError).strip()
        output = self._git(
            "diff-tree", "-z", "--no-commit-id", "--name-only", "-r", sha, error=CommitError
        )
        files: List[str] = [path for path in output.split("\0") if path]

        self.change_set = ChangeSet(
            branch=self.branch_name,
            commit_sha=sha,
            message=message,
            author=author,
            files=files,
        )
        self.state = RepositoryState.COMMITTED
        logger.info("Committed %s on %s touching %s", sha, self.branch_name, files)
        return self.change_set

    def push(self) -> str:
        """Push the working branch to ``origin``; no force, no retry."""
        self._require(RepositoryState.COMMITTED, "push")

        refspec = f"refs/heads/{self.branch_name}:refs/heads/{self.branch_name}"
        self._git("push", "--quiet", REMOTE, refspec, error=PushError, authenticated=True)

        self.state = RepositoryState.PUSHED
        logger.info("Pushed %s to %s", self.branch_name, REMOTE)
        return self.branch_name
