#!/usr/bin/env python3
"""Configuration dataclasses for ghbackup."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import FrozenSet, Optional, TextIO

VERSION = "1.3.0"

DEFAULT_API_URL = "https://api.github.com"


class CloneMethod(Enum):
    """Enumeration for git clone methods."""
    HTTPS = "https"
    SSH = "ssh"


class Visibility(Enum):
    """Enumeration for repository visibility levels."""
    PRIVATE = "private"
    PUBLIC = "public"
    INTERNAL = "internal"


@dataclass(frozen=True)
class GitHubConfig:
    """GitHub-specific configuration."""
    api_url: str
    account: Optional[str]
    secret: Optional[str]
    clone_method: CloneMethod = CloneMethod.HTTPS


@dataclass(frozen=True)
class BackupConfig:
    """Where and how repositories are mirrored."""
    directory: str
    exclude: FrozenSet[str]
    workers: int
    git_timeout_s: float = 600.0
    dry_run: bool = False


@dataclass(frozen=True)
class OutputConfig:
    """Progress and error sinks. None means the process stdout/stderr."""
    out: Optional[TextIO] = None
    err: Optional[TextIO] = None
    silent: bool = False
    verbose: bool = False


@dataclass(frozen=True)
class Config:
    """Main configuration for a backup run."""
    github: GitHubConfig
    backup: BackupConfig
    output: OutputConfig = field(default_factory=OutputConfig)
