#!/usr/bin/env python3
"""Command line argument parsing and configuration building."""

from __future__ import annotations

import argparse
import os
import platform
import sys
from typing import Optional, Sequence, Tuple

from config import (DEFAULT_API_URL, VERSION, BackupConfig, CloneMethod,
                    Config, GitHubConfig, OutputConfig)
from logging_utils import Logger
from security import SecurityValidator
from utils import default_worker_count, parse_exclusions

# Exit codes
EXIT_MISSING_ARGUMENTS = 2

MAX_WORKERS = 64


def _create_argument_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser."""
    parser = argparse.ArgumentParser(
        prog="ghbackup",
        description="Embarrassingly simple GitHub backup tool: clone or "
        "update every repository of an account into a directory.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
At least one of --account or --secret must be specified.

Examples:
  %(prog)s --account qvl /backups/github
  %(prog)s --secret $GITHUB_TOKEN /backups/github
  %(prog)s --account my-org --secret $GITHUB_TOKEN --skip big-repo,scratch /backups
  %(prog)s --api-url https://github.company.com/api/v3 --secret $TOKEN /backups
        """,
    )
    parser.add_argument(
        "directory",
        help="Path to save the repositories to",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {VERSION} {platform.system().lower()} {platform.machine()}",
    )
    return parser


def _add_github_arguments(parser: argparse.ArgumentParser) -> None:
    """Add GitHub-related arguments to parser."""
    parser.add_argument(
        "--account",
        dest="account",
        help="GitHub user or organization name to get repositories from "
        "(or set GITHUB_ACCOUNT env var). If not specified, all repositories "
        "the authenticated user has access to are loaded.",
    )
    parser.add_argument(
        "--secret",
        dest="secret",
        help="GitHub personal access token (or set GITHUB_TOKEN env var). "
        "Authentication increases rate limits and enables backup of private "
        "repositories.",
    )
    parser.add_argument(
        "--api-url",
        dest="api_url",
        default=DEFAULT_API_URL,
        help=f"Base URL of the GitHub API (default: {DEFAULT_API_URL})",
    )
    parser.add_argument(
        "--clone-method",
        dest="clone_method",
        choices=[method.value for method in CloneMethod],
        default=CloneMethod.HTTPS.value,
        help="Clone over https or ssh (default: https)",
    )


def _add_behavior_arguments(parser: argparse.ArgumentParser) -> None:
    """Add behavior and output arguments to parser."""
    parser.add_argument(
        "--skip",
        dest="skip",
        default="",
        help="Skip backup of these repositories, like repo-a,repo-b,repo-c",
    )
    parser.add_argument(
        "--workers",
        dest="workers",
        type=int,
        default=default_worker_count(),
        help="Number of repositories synced in parallel "
        "(default: 3 per CPU, at most 32)",
    )
    parser.add_argument(
        "--git-timeout",
        dest="git_timeout_s",
        type=float,
        default=600.0,
        help="Seconds before a single git command is abandoned (default: 600)",
    )
    parser.add_argument(
        "-d",
        "--dry-run",
        action="store_true",
        dest="dry_run",
        help="List actions without doing them",
    )
    parser.add_argument(
        "--silent",
        action="store_true",
        dest="silent",
        help="Suppress all progress output; errors are still printed",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        dest="verbose",
        help="Print debug and security events",
    )


def _validate_parsed_arguments(
    args, logger: Logger
) -> Tuple[str, Optional[str], str]:
    """Validate and sanitize parsed arguments for security."""
    try:
        validated_api_url = SecurityValidator.validate_url(
            args.api_url, ["https", "http"]
        )

        validated_account = None
        account = args.account or os.getenv("GITHUB_ACCOUNT")
        if account:
            validated_account = SecurityValidator.validate_username(account)

        validated_directory = SecurityValidator.validate_file_path(args.directory)

        if args.workers < 1 or args.workers > MAX_WORKERS:
            raise ValueError(f"workers must be between 1 and {MAX_WORKERS}")

        if args.git_timeout_s <= 0:
            raise ValueError("git timeout must be positive")

        logger.security_event(
            "CONFIG_VALIDATION", "successfully validated all configuration inputs"
        )
        return validated_api_url, validated_account, validated_directory

    except ValueError as e:
        logger.security_event(
            "CONFIG_VALIDATION_FAILED", f"configuration validation failed: {e}"
        )
        logger.error(f"configuration validation error: {e}")
        sys.exit(EXIT_MISSING_ARGUMENTS)


def parse_arguments(argv: Optional[Sequence[str]] = None) -> Config:
    """Parse command line arguments and return configuration object."""
    parser = _create_argument_parser()
    _add_github_arguments(parser)
    _add_behavior_arguments(parser)

    args = parser.parse_args(argv)
    logger = Logger(silent=args.silent, verbose=args.verbose)

    validated_api_url, validated_account, validated_directory = (
        _validate_parsed_arguments(args, logger)
    )

    secret = args.secret or os.getenv("GITHUB_TOKEN") or None
    if not validated_account and not secret:
        parser.print_usage(sys.stderr)
        logger.error("error: at least one of --account or --secret must be specified")
        sys.exit(EXIT_MISSING_ARGUMENTS)

    return Config(
        github=GitHubConfig(
            api_url=validated_api_url,
            account=validated_account,
            secret=secret,
            clone_method=CloneMethod(args.clone_method),
        ),
        backup=BackupConfig(
            directory=validated_directory,
            exclude=parse_exclusions(args.skip),
            workers=args.workers,
            git_timeout_s=args.git_timeout_s,
            dry_run=args.dry_run,
        ),
        output=OutputConfig(silent=args.silent, verbose=args.verbose),
    )
