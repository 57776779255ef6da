#!/usr/bin/env python3
"""Main orchestrator for mirroring GitHub repositories into a local directory."""

from __future__ import annotations

import os
from concurrent import futures
from typing import Dict, List, Optional

from config import Config
from errors import (AuthError, ConfigError, ListingError, RateLimitError,
                    SyncFailuresError)
from git_syncer import GitCli, RepositorySyncer, planned_action
from github_source import GitHubSource
from logging_utils import Logger
from models import RepositoryDescriptor, RunResult, SyncOutcome
from security import SecurityValidator
from utils import filter_repositories, local_path_for

# Exit codes
EXIT_SUCCESS = 0
EXIT_EXECUTION_ERROR = 1
EXIT_CONFIG_ERROR = 2
EXIT_LISTING_ERROR = 30
EXIT_AUTH_ERROR = 40
EXIT_RATE_LIMIT_ERROR = 41


class SyncOrchestrator:
    def __init__(
        self,
        cfg: Config,
        source: Optional[GitHubSource] = None,
        syncer: Optional[RepositorySyncer] = None,
        logger: Optional[Logger] = None,
    ) -> None:
        self.cfg = cfg
        self.logger = logger or Logger.from_config(cfg.output)
        self.gh = source or GitHubSource(cfg.github, self.logger)
        self.syncer = syncer or RepositorySyncer(
            GitCli(
                username=cfg.github.account,
                secret=cfg.github.secret,
                timeout_s=cfg.backup.git_timeout_s,
                logger=self.logger,
            ),
            self.logger,
        )

    def run(self) -> int:
        """Run a full backup and map the result to a process exit code."""
        try:
            self.execute()
            return EXIT_SUCCESS
        except ConfigError as e:
            self.logger.error(f"configuration error: {e}")
            return EXIT_CONFIG_ERROR
        except AuthError as e:
            self.logger.error(f"authentication error: {e}")
            return EXIT_AUTH_ERROR
        except RateLimitError as e:
            self.logger.error(f"rate limit error: {e}")
            return EXIT_RATE_LIMIT_ERROR
        except ListingError as e:
            self.logger.error(f"failed to list repositories: {e}")
            return EXIT_LISTING_ERROR
        except SyncFailuresError as e:
            self.logger.error(str(e))
            return EXIT_EXECUTION_ERROR
        except Exception as e:
            self.logger.error(f"unexpected error: {e}")
            return EXIT_EXECUTION_ERROR

    def execute(self) -> RunResult:
        """Discover, filter, then sync every repository.

        Raises ConfigError or ListingError before anything is synced, and
        SyncFailuresError after all repositories were attempted if any failed.
        """
        self._validate_config()

        self.gh.connect()
        repositories = self.gh.list_repositories()

        selected = filter_repositories(repositories, self.cfg.backup.exclude)
        for repo in repositories:
            if repo.name in self.cfg.backup.exclude:
                self.logger.debug(f"skipping: {repo.full_name}")

        plan = self._plan_targets(selected)

        if self.cfg.backup.dry_run:
            self._report_plan(plan)
            self.logger.info("dry-run completed")
            return RunResult()

        self._ensure_directory()
        result = self._sync_all(plan)
        if not result.succeeded:
            raise SyncFailuresError(result)

        self.logger.debug(f"synced {result.success_count} repositories")
        return result

    def _validate_config(self) -> None:
        if not self.cfg.github.account and not self.cfg.github.secret:
            raise ConfigError("at least one of account or secret must be specified")
        if self.cfg.backup.workers < 1:
            raise ConfigError("worker count must be at least 1")

    def _plan_targets(
        self, repositories: List[RepositoryDescriptor]
    ) -> List[RepositoryDescriptor]:
        """Check every repository maps to its own, safe local directory."""
        owners: Dict[str, str] = {}
        for repo in repositories:
            try:
                SecurityValidator.validate_repo_name(repo.name)
            except ValueError as e:
                raise ConfigError(f"cannot back up '{repo.full_name}': {e}") from e

            path = local_path_for(self.cfg.backup.directory, repo)
            if path in owners:
                raise ConfigError(
                    f"'{repo.full_name}' and '{owners[path]}' would both be "
                    f"stored in {path}; exclude one of them with --skip"
                )
            owners[path] = repo.full_name
        return repositories

    def _report_plan(self, plan: List[RepositoryDescriptor]) -> None:
        total = len(plan)
        for idx, repo in enumerate(plan, start=1):
            path = local_path_for(self.cfg.backup.directory, repo)
            verb = planned_action(repo, self.cfg.backup.directory).value
            self.logger.info(f"[{idx}/{total}] would {verb}: {repo.full_name} -> {path}")

    def _ensure_directory(self) -> None:
        directory = self.cfg.backup.directory
        try:
            os.makedirs(directory, exist_ok=True)
        except OSError as e:
            raise ConfigError(f"cannot create directory {directory}: {e}") from e
        if not os.access(directory, os.W_OK | os.X_OK):
            raise ConfigError(f"directory {directory} is not writable")

    def _sync_all(self, plan: List[RepositoryDescriptor]) -> RunResult:
        """Fan the plan out over the worker pool and collect the outcomes.

        Outcomes are gathered in this thread only, in completion order.
        """
        result = RunResult()
        if not plan:
            return result

        total = len(plan)
        workers = min(self.cfg.backup.workers, total)
        with futures.ThreadPoolExecutor(
            max_workers=workers, thread_name_prefix="ghbackup-sync"
        ) as pool:
            pending = [pool.submit(self._sync_one, repo) for repo in plan]
            for idx, future in enumerate(futures.as_completed(pending), start=1):
                outcome = future.result()
                result.outcomes.append(outcome)
                self._report_outcome(outcome, idx, total)
        return result

    def _sync_one(self, repo: RepositoryDescriptor) -> SyncOutcome:
        try:
            return self.syncer.sync(repo, self.cfg.backup.directory)
        except Exception as e:
            action = planned_action(repo, self.cfg.backup.directory)
            return SyncOutcome(repo.name, action, False, e)

    def _report_outcome(self, outcome: SyncOutcome, idx: int, total: int) -> None:
        status = "ok" if outcome.success else "failed"
        self.logger.info(
            f"[{idx}/{total}] {outcome.action.value} {outcome.name}: {status}"
        )
        if not outcome.success:
            self.logger.error(
                f"{outcome.action.value} {outcome.name} failed: {outcome.detail}"
            )
