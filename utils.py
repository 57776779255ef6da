#!/usr/bin/env python3
"""Utility functions for ghbackup."""

from __future__ import annotations

import os
import re
import threading
import time
from typing import TYPE_CHECKING, FrozenSet, Iterable, List, Optional
from urllib.parse import urlparse

from models import RepositoryDescriptor

if TYPE_CHECKING:
    from logging_utils import Logger

WORKERS_PER_CPU = 3
MAX_DEFAULT_WORKERS = 32

# git@host:owner/name.git
SCP_LIKE_URL = re.compile(r"^(?:[^@/:]+@)?([^:/]+):(.+)$")


class RateLimiter:
    """Rate limiter to prevent abuse and respect API limits."""

    def __init__(
        self, logger: Optional["Logger"] = None, max_requests_per_minute: int = 60
    ):
        self.logger = logger
        self.max_requests = max_requests_per_minute
        self.requests: List[float] = []
        self.lock = threading.Lock()

    def wait_if_needed(self, operation_type: str = "API") -> None:
        """Wait if necessary to respect rate limits."""
        current_time = time.time()

        with self.lock:
            self._clean_old_requests(current_time)
            if len(self.requests) >= self.max_requests:
                wait_time = 60 - (current_time - self.requests[0])
                if wait_time > 0:
                    if self.logger is not None:
                        self.logger.security_event(
                            "RATE_LIMIT_HIT",
                            f"rate limit reached for {operation_type}, "
                            f"waiting {wait_time:.2f}s",
                        )
                    time.sleep(wait_time)
                    current_time = time.time()
                    self._clean_old_requests(current_time)
            self.requests.append(current_time)

    def _clean_old_requests(self, current_time: float) -> None:
        """Remove requests older than 1 minute."""
        cutoff_time = current_time - 60
        self.requests = [
            req_time for req_time in self.requests if req_time > cutoff_time
        ]


def default_worker_count() -> int:
    """Pool size scaled to the machine, bounded to spare the API and disk."""
    return max(1, min(MAX_DEFAULT_WORKERS, (os.cpu_count() or 1) * WORKERS_PER_CPU))


def parse_exclusions(skip: Optional[str]) -> FrozenSet[str]:
    """Turn a comma separated skip list into a set of repository names.

    Names must match exactly. Empty entries are dropped, so an empty skip
    list excludes nothing.
    """
    if not skip:
        return frozenset()
    return frozenset(name for name in skip.split(",") if name)


def filter_repositories(
    repositories: Iterable[RepositoryDescriptor], exclusions: FrozenSet[str]
) -> List[RepositoryDescriptor]:
    """Drop repositories whose name is in ``exclusions``, keeping order."""
    return [repo for repo in repositories if repo.name not in exclusions]


def local_path_for(base_dir: str, repository: RepositoryDescriptor) -> str:
    return os.path.join(base_dir, repository.name)


def repository_identity(url: str) -> str:
    """Reduce a clone URL to ``host/owner/name`` for comparison.

    The https and ssh URLs of one repository map to the same identity;
    credentials, ports and a trailing ``.git`` are ignored. Anything that is
    not a URL is treated as a local path.
    """
    if "://" in url:
        parsed = urlparse(url)
        host, path = parsed.hostname or "", parsed.path
    else:
        match = SCP_LIKE_URL.match(url)
        if match is None:
            return os.path.realpath(url)
        host, path = match.group(1), match.group(2)

    path = path.strip("/")
    if path.endswith(".git"):
        path = path[: -len(".git")]
    return f"{host}/{path}".lower()
