#!/usr/bin/env python3
"""
ghbackup - Mirror all repositories of a GitHub account into a directory.

This tool lists every repository owned by a GitHub user or organization (or
visible to the authenticated user), clones the ones missing locally and
fast-forwards the ones already present. It is meant to run unattended, e.g.
from cron, and never deletes local repositories.
"""

from __future__ import annotations

import sys
from typing import NoReturn, Optional, Sequence

from argument_parser import parse_arguments
from sync_orchestrator import SyncOrchestrator


def main(argv: Optional[Sequence[str]] = None) -> NoReturn:
    cfg = parse_arguments(argv)
    orchestrator = SyncOrchestrator(cfg)
    sys.exit(orchestrator.run())


if __name__ == "__main__":
    main()
