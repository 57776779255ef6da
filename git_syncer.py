#!/usr/bin/env python3
"""Clone or fast-forward a single repository into the backup directory."""

from __future__ import annotations

import os
import subprocess
import tempfile
from typing import List, Optional, Protocol

from errors import GitCommandError, InvalidLocalRepositoryError, SyncError
from logging_utils import Logger
from models import RepositoryDescriptor, SyncAction, SyncOutcome
from security import SecurityValidator
from utils import local_path_for, repository_identity

DEFAULT_GIT_TIMEOUT_S = 600.0

# Errors that stay inside one repository's outcome
SYNC_ERRORS = (SyncError, subprocess.SubprocessError, OSError)


class GitBackend(Protocol):
    """The version control operations the syncer needs."""

    def clone(self, url: str, path: str) -> None: ...

    def update(self, path: str, branch: Optional[str]) -> None: ...

    def is_repository(self, path: str) -> bool: ...

    def remote_url(self, path: str) -> Optional[str]: ...


class GitCli:
    """GitBackend driving the ``git`` executable."""

    ASKPASS_USERNAME_VAR = "GHBACKUP_GIT_USERNAME"
    ASKPASS_PASSWORD_VAR = "GHBACKUP_GIT_PASSWORD"

    def __init__(
        self,
        username: Optional[str] = None,
        secret: Optional[str] = None,
        timeout_s: float = DEFAULT_GIT_TIMEOUT_S,
        logger: Optional[Logger] = None,
    ) -> None:
        self.username = username or "x-access-token"
        self.secret = secret
        self.timeout_s = timeout_s
        self.logger = logger

    def clone(self, url: str, path: str) -> None:
        self._run(["git", "clone", "--quiet", "--", url, path])

    def update(self, path: str, branch: Optional[str]) -> None:
        """Fetch and fast-forward the default branch.

        Local commits that diverge from the remote make the merge fail; they
        are never overwritten.
        """
        self._run(["git", "fetch", "--quiet", "--prune", "origin"], cwd=path)

        branch = branch or self._remote_head(path)
        if not branch or not self._has_ref(path, f"refs/remotes/origin/{branch}"):
            # Empty remote, nothing to integrate
            return

        if self._current_branch(path) == branch:
            self._run(
                ["git", "merge", "--ff-only", "--quiet", f"origin/{branch}"],
                cwd=path,
            )
        else:
            self._run(
                ["git", "fetch", "--quiet", "origin", f"{branch}:{branch}"],
                cwd=path,
            )

    def is_repository(self, path: str) -> bool:
        """True only when ``path`` is the top level of a git work tree."""
        try:
            toplevel = self._output(["git", "rev-parse", "--show-toplevel"], cwd=path)
        except GitCommandError:
            return False
        return bool(toplevel) and os.path.samefile(toplevel, path)

    def remote_url(self, path: str) -> Optional[str]:
        try:
            return self._output(["git", "remote", "get-url", "origin"], cwd=path) or None
        except GitCommandError:
            return None

    def _remote_head(self, path: str) -> Optional[str]:
        try:
            ref = self._output(
                ["git", "symbolic-ref", "--short", "refs/remotes/origin/HEAD"],
                cwd=path,
            )
        except GitCommandError:
            return None
        return ref.split("/", 1)[1] if "/" in ref else None

    def _has_ref(self, path: str, ref: str) -> bool:
        try:
            self._output(["git", "rev-parse", "--verify", "--quiet", ref], cwd=path)
        except GitCommandError:
            return False
        return True

    def _current_branch(self, path: str) -> Optional[str]:
        try:
            return self._output(["git", "symbolic-ref", "--short", "HEAD"], cwd=path)
        except GitCommandError:
            # Detached HEAD
            return None

    def _output(self, cmd: List[str], cwd: Optional[str] = None) -> str:
        return self._run(cmd, cwd=cwd).strip()

    def _run(self, cmd: List[str], cwd: Optional[str] = None) -> str:
        env = os.environ.copy()
        env["GIT_TERMINAL_PROMPT"] = "0"
        askpass_script: Optional[str] = None
        try:
            if self.secret:
                askpass_script = self._create_askpass_script()
                env.update(
                    {
                        "GIT_ASKPASS": askpass_script,
                        self.ASKPASS_USERNAME_VAR: self.username,
                        self.ASKPASS_PASSWORD_VAR: self.secret,
                    }
                )
            completed = subprocess.run(
                cmd,
                cwd=cwd,
                check=True,
                capture_output=True,
                text=True,
                timeout=self.timeout_s,
                env=env,
            )
            return completed.stdout
        except subprocess.TimeoutExpired as e:
            raise GitCommandError(
                cmd, None, f"no response after {self.timeout_s:.0f}s"
            ) from e
        except subprocess.CalledProcessError as e:
            safe_stderr = SecurityValidator.sanitize_for_logging(
                e.stderr or e.stdout or ""
            )
            raise GitCommandError(cmd, e.returncode, safe_stderr) from None
        finally:
            self._cleanup_askpass_script(askpass_script)

    def _create_askpass_script(self) -> str:
        """Create a temporary askpass script that reads credentials from env."""
        fd, path = tempfile.mkstemp(prefix="ghbackup_askpass_", text=True)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as script:
                script.write("#!/bin/sh\n")
                script.write('case "$1" in\n')
                script.write(
                    f"  *Username*) printf '%s\\n' \"${self.ASKPASS_USERNAME_VAR}\" ;;\n"
                )
                script.write(
                    f"  *Password*) printf '%s\\n' \"${self.ASKPASS_PASSWORD_VAR}\" ;;\n"
                )
                script.write("  *) exit 1 ;;\n")
                script.write("esac\n")
            os.chmod(path, 0o700)
        except OSError:
            os.unlink(path)
            raise
        return path

    def _cleanup_askpass_script(self, path: Optional[str]) -> None:
        """Remove temporary askpass script if it exists."""
        if not path:
            return
        try:
            if os.path.exists(path):
                os.remove(path)
        except OSError as error:
            if self.logger is not None:
                self.logger.warn(
                    f"failed to clean up temporary credential helper: {error}"
                )


class RepositorySyncer:
    """Brings one local copy in line with its remote repository."""

    def __init__(self, backend: GitBackend, logger: Optional[Logger] = None) -> None:
        self.backend = backend
        self.logger = logger

    def sync(self, repository: RepositoryDescriptor, base_dir: str) -> SyncOutcome:
        """Clone when the local copy is absent, update it otherwise.

        Never raises for per-repository problems: they are returned as a
        failed outcome carrying the original exception.
        """
        local_path = local_path_for(base_dir, repository)
        action = planned_action(repository, base_dir)

        if action == SyncAction.CLONE:
            if os.path.lexists(local_path):
                error = InvalidLocalRepositoryError(
                    f"{local_path} exists and is not a directory"
                )
                return SyncOutcome(repository.name, action, False, error)
            return self._attempt(action, repository, self._clone, local_path)

        if os.path.islink(local_path):
            # Updating through the link would touch a tree outside base_dir
            error = InvalidLocalRepositoryError(f"{local_path} is a symbolic link")
            return SyncOutcome(repository.name, action, False, error)

        return self._attempt(action, repository, self._update, local_path)

    def _attempt(self, action, repository, operation, local_path) -> SyncOutcome:
        try:
            operation(repository, local_path)
        except SYNC_ERRORS as e:
            return SyncOutcome(repository.name, action, False, e)
        return SyncOutcome(repository.name, action, True)

    def _clone(self, repository: RepositoryDescriptor, local_path: str) -> None:
        if self.logger is not None:
            self.logger.debug(f"cloning {repository.full_name} into {local_path}")
        self.backend.clone(repository.clone_url, local_path)

    def _update(self, repository: RepositoryDescriptor, local_path: str) -> None:
        if not self.backend.is_repository(local_path):
            # Re-cloning here would destroy whatever the directory holds
            raise InvalidLocalRepositoryError(
                f"{local_path} exists but is not a git repository"
            )

        origin = self.backend.remote_url(local_path)
        if origin is None or repository_identity(origin) != repository_identity(
            repository.clone_url
        ):
            raise InvalidLocalRepositoryError(
                f"{local_path} mirrors {origin or 'no origin remote'}, "
                f"not {repository.full_name}"
            )

        if self.logger is not None:
            self.logger.debug(f"updating {repository.full_name} in {local_path}")
        self.backend.update(local_path, repository.default_branch)


def planned_action(repository: RepositoryDescriptor, base_dir: str) -> SyncAction:
    """UPDATE when a directory already sits at the local path, CLONE otherwise."""
    if os.path.isdir(local_path_for(base_dir, repository)):
        return SyncAction.UPDATE
    return SyncAction.CLONE
