"""Application entry point for the fmeconnect command.

This module wires configuration, logging and the FME Flow client together
and runs one command against a throwaway in-memory settings store.
"""

from __future__ import annotations

import argparse
import asyncio
from dataclasses import replace

from fmeconnect.cli import parse_args
from fmeconnect.config import Config, load_config
from fmeconnect.flow_client import FmeFlowClient
from fmeconnect.logging import get_logger, setup_logging
from fmeconnect.messages import translate
from fmeconnect.panel import ConnectionPanel
from fmeconnect.repository_loader import RepositoryLoadError
from fmeconnect.state import SettingsState
from fmeconnect.store import InMemoryConfigStore
from fmeconnect.types import TestStatus

logger = get_logger(__name__)


def build_config(parsed: argparse.Namespace) -> Config:
    """Load configuration and apply command-line overrides.

    Args:
        parsed: Parsed command-line arguments.

    Returns:
        The effective configuration.
    """
    config = load_config(parsed.env_file)
    overrides: dict[str, object] = {}
    if parsed.server_url is not None:
        overrides["server_url"] = parsed.server_url
    if parsed.token is not None:
        overrides["token"] = parsed.token
    if getattr(parsed, "repository", None) is not None:
        overrides["repository"] = parsed.repository
    if parsed.log_level is not None:
        overrides["log_level"] = parsed.log_level
    if parsed.json_logs:
        overrides["log_json"] = True
    return replace(config, **overrides) if overrides else config


def format_report(state: SettingsState) -> str:
    """Render the panel state as plain text.

    Args:
        state: State after a command ran.

    Returns:
        Multi-line report.
    """
    steps = state.steps
    lines = [
        f"Server URL:  {steps.server_url}",
        f"Token:       {steps.token}",
        f"Repository:  {steps.repository}",
    ]
    if steps.version:
        lines.append(f"Version:     {steps.version}")
    for field_name, message in state.field_errors.as_dict().items():
        lines.append(f"  {field_name}: {translate(message)}")
    if state.test.message:
        lines.append(translate(state.test.message))
    if state.repository_hint:
        lines.append(translate(state.repository_hint))
    return "\n".join(lines)


async def run_test(config: Config) -> int:
    """Run a full connection test.

    Args:
        config: Effective configuration.

    Returns:
        Exit code: 0 if the test succeeded, 1 otherwise.
    """
    store = InMemoryConfigStore(config.server_url, config.token, config.repository)
    async with FmeFlowClient(timeout=config.request_timeout) as client:
        panel = ConnectionPanel(client, store, require_https=config.require_https)
        try:
            await panel.test_connection()
            print(format_report(panel.state))
            return 0 if panel.state.test.status == TestStatus.SUCCESS else 1
        finally:
            panel.teardown()


async def run_repos(config: Config) -> int:
    """List the repositories on the configured server.

    Args:
        config: Effective configuration.

    Returns:
        Exit code: 0 if the list was loaded, 1 otherwise.
    """
    store = InMemoryConfigStore(config.server_url, config.token)
    async with FmeFlowClient(timeout=config.request_timeout) as client:
        panel = ConnectionPanel(client, store, require_https=config.require_https)
        sync = panel.synchronizer
        try:
            url_ok = sync.commit_server_url()
            token_ok = sync.commit_token()
            if not (url_ok and token_ok):
                print(format_report(panel.state))
                return 1
            repositories = await panel.refresh_repositories()
            for name in repositories or []:
                print(name)
            if not repositories:
                print(translate(panel.repository_placeholder()))
            return 0
        except RepositoryLoadError as e:
            logger.error("Could not list repositories: %s", e.outcome.kind)
            print(translate(panel.state.repository_hint))
            return 1
        finally:
            panel.teardown()


def main(args: list[str] | None = None) -> int:
    """Main entry point for the application.

    Args:
        args: Optional list of command-line arguments.

    Returns:
        Exit code for the application.
    """
    parsed = parse_args(args)
    config = build_config(parsed)
    setup_logging(
        config.log_level, json_format=config.log_json, diagnostic_tags=config.diagnostic_tags
    )

    if parsed.command == "repos":
        return asyncio.run(run_repos(config))
    return asyncio.run(run_test(config))


__all__ = [
    "build_config",
    "format_report",
    "main",
    "run_repos",
    "run_test",
]
