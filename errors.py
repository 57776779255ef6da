#!/usr/bin/env python3
"""Exception hierarchy for ghbackup."""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional, Sequence

if TYPE_CHECKING:
    from models import RunResult


class GhBackupError(Exception):
    """Base class for all ghbackup errors."""


class ConfigError(GhBackupError):
    """Invalid or insufficient configuration; raised before any sync."""


class ListingError(GhBackupError):
    """The remote repository set could not be listed completely."""


class AuthError(ListingError):
    """GitHub rejected the credentials or denied access."""


class RateLimitError(ListingError):
    """GitHub API rate limit exhausted."""

    def __init__(self, message: str, reset_at: Optional[int] = None) -> None:
        super().__init__(message)
        self.reset_at = reset_at


class NetworkError(ListingError):
    """Transport failure while talking to the GitHub API."""


class SyncError(GhBackupError):
    """A single repository could not be cloned or updated."""


class GitCommandError(SyncError):
    """A git command exited with an error or timed out."""

    def __init__(
        self, command: Sequence[str], returncode: Optional[int], stderr: str
    ) -> None:
        self.command = list(command)
        self.returncode = returncode
        self.stderr = stderr
        detail = stderr.strip() or "no output"
        if returncode is None:
            status = "timed out"
        else:
            status = f"exited with {returncode}"
        subcommand = self.command[1] if len(self.command) > 1 else "git"
        super().__init__(f"git {subcommand} {status}: {detail}")


class InvalidLocalRepositoryError(SyncError):
    """The local path exists but is not a repository we can update."""


class SyncFailuresError(GhBackupError):
    """Aggregate error raised when one or more repositories failed."""

    def __init__(self, result: "RunResult") -> None:
        self.result = result
        names = ", ".join(result.failed_names)
        super().__init__(
            f"{result.failure_count} of {len(result.outcomes)} repositories "
            f"failed to sync: {names}"
        )
