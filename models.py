#!/usr/bin/env python3
"""Repository descriptors and sync results."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from config import Visibility


@dataclass(frozen=True)
class RepositoryDescriptor:
    """One remote repository as returned by the listing API."""
    name: str
    full_name: str
    clone_url: str
    visibility: Visibility = Visibility.PUBLIC
    default_branch: Optional[str] = None

    @property
    def private(self) -> bool:
        return self.visibility != Visibility.PUBLIC


class SyncAction(Enum):
    """What was done to the local copy."""
    CLONE = "clone"
    UPDATE = "update"


@dataclass(frozen=True)
class SyncOutcome:
    """Result of syncing a single repository."""
    name: str
    action: SyncAction
    success: bool
    error: Optional[BaseException] = None

    @property
    def detail(self) -> str:
        if self.error is None:
            return ""
        return str(self.error) or type(self.error).__name__


@dataclass
class RunResult:
    """Aggregate over all outcomes of one run."""
    outcomes: List[SyncOutcome] = field(default_factory=list)

    @property
    def failures(self) -> List[SyncOutcome]:
        return [outcome for outcome in self.outcomes if not outcome.success]

    @property
    def failure_count(self) -> int:
        return len(self.failures)

    @property
    def success_count(self) -> int:
        return len(self.outcomes) - self.failure_count

    @property
    def failed_names(self) -> List[str]:
        return sorted(outcome.name for outcome in self.failures)

    @property
    def succeeded(self) -> bool:
        return self.failure_count == 0
