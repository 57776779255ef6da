"""Shared fixtures and test doubles."""

from __future__ import annotations

import io
import threading
from typing import Callable, Dict, List, Optional

import pytest

from config import BackupConfig, CloneMethod, Config, GitHubConfig, OutputConfig
from logging_utils import Logger
from models import RepositoryDescriptor, SyncAction, SyncOutcome


def make_repo(name: str, owner: str = "example") -> RepositoryDescriptor:
    return RepositoryDescriptor(
        name=name,
        full_name=f"{owner}/{name}",
        clone_url=f"https://github.com/{owner}/{name}.git",
        default_branch="main",
    )


def make_config(
    directory,
    account: Optional[str] = "example",
    secret: Optional[str] = None,
    exclude=frozenset(),
    workers: int = 4,
    dry_run: bool = False,
) -> Config:
    return Config(
        github=GitHubConfig(
            api_url="https://api.github.com",
            account=account,
            secret=secret,
            clone_method=CloneMethod.HTTPS,
        ),
        backup=BackupConfig(
            directory=str(directory),
            exclude=frozenset(exclude),
            workers=workers,
            dry_run=dry_run,
        ),
        output=OutputConfig(out=io.StringIO(), err=io.StringIO()),
    )


class FakeSource:
    """Stands in for GitHubSource."""

    def __init__(self, repositories=None, error: Optional[Exception] = None) -> None:
        self.repositories = list(repositories or [])
        self.error = error
        self.connected = False

    def connect(self) -> None:
        self.connected = True

    def list_repositories(self) -> List[RepositoryDescriptor]:
        if self.error is not None:
            raise self.error
        return list(self.repositories)


class FakeSyncer:
    """Records sync calls; outcomes can be scripted per repository name."""

    def __init__(
        self,
        failures: Optional[Dict[str, Exception]] = None,
        hook: Optional[Callable[[RepositoryDescriptor], None]] = None,
    ) -> None:
        self.failures = failures or {}
        self.hook = hook
        self.calls: List[str] = []
        self._lock = threading.Lock()

    def sync(self, repository: RepositoryDescriptor, base_dir: str) -> SyncOutcome:
        with self._lock:
            self.calls.append(repository.name)
        if self.hook is not None:
            self.hook(repository)
        error = self.failures.get(repository.name)
        if error is not None:
            return SyncOutcome(repository.name, SyncAction.CLONE, False, error)
        return SyncOutcome(repository.name, SyncAction.CLONE, True)


@pytest.fixture
def logger() -> Logger:
    return Logger(io.StringIO(), io.StringIO())
