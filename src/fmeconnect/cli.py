"""Command-line interface argument parsing for FME Connect.

This module provides the CLI argument parser that handles:
- The ``test`` and ``repos`` commands
- Connection overrides (server URL, token, repository)
- Log level and log format overrides
- The ``.env`` file location
"""

from __future__ import annotations

import argparse
from pathlib import Path


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--server-url",
        default=None,
        help="FME Flow base URL (overrides FMECONNECT_SERVER_URL)",
    )
    parser.add_argument(
        "--token",
        default=None,
        help="FME Flow API token (overrides FMECONNECT_TOKEN)",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Log level (overrides FMECONNECT_LOG_LEVEL)",
    )
    parser.add_argument(
        "--json-logs",
        action="store_true",
        help="Emit JSON log lines (overrides FMECONNECT_LOG_JSON)",
    )
    parser.add_argument(
        "--env-file",
        type=Path,
        default=None,
        help="Path to .env file (default: ./.env)",
    )


def parse_args(args: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments.

    Args:
        args: Optional list of arguments to parse. If None, uses sys.argv.

    Returns:
        Parsed arguments namespace with the following attributes:
        - command: ``test`` or ``repos``
        - server_url, token: Connection overrides
        - repository: Repository override (``test`` only)
        - log_level, json_logs, env_file: Logging and environment options
    """
    parser = argparse.ArgumentParser(
        prog="fmeconnect",
        description="FME Connect - validate FME Flow connection settings",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    test_parser = subparsers.add_parser(
        "test", help="Run a full connection test against FME Flow"
    )
    _add_common_arguments(test_parser)
    test_parser.add_argument(
        "--repository",
        default=None,
        help="Repository to confirm (overrides FMECONNECT_REPOSITORY)",
    )

    repos_parser = subparsers.add_parser("repos", help="List the repositories on FME Flow")
    _add_common_arguments(repos_parser)

    return parser.parse_args(args)


__all__ = ["parse_args"]
