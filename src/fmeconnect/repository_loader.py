"""Repository list loading outside of a full connection test.

Used for the manual "refresh repositories" action and for automatic loads
when persisted credentials become valid. Loads have their own cancellation
domain: a new load supersedes the previous load but never a running
connection test.
"""

from __future__ import annotations

from collections.abc import Sequence

from fmeconnect.cancellation import CancellationScope, OperationCancelled
from fmeconnect.errors import FailureOutcome, map_failure
from fmeconnect.logging import get_logger
from fmeconnect.messages import (
    ERROR_REPOSITORIES,
    LOADING_REPOSITORIES,
    NO_REPOSITORIES_FOUND,
    REPO_PLACEHOLDER,
    TEST_CONNECTION_FIRST,
)
from fmeconnect.probe import FlowService, clean_repository_names
from fmeconnect.sanitizer import sanitize_server_url
from fmeconnect.state import SettingsState
from fmeconnect.types import FieldName

logger = get_logger(__name__)


class RepositoryLoadError(Exception):
    """Raised when a repository load fails for a reason other than cancellation.

    Attributes:
        outcome: The mapped failure.
    """

    def __init__(self, outcome: FailureOutcome) -> None:
        super().__init__(f"Repository load failed: {outcome.kind}")
        self.outcome = outcome


def repository_placeholder_key(available_repos: Sequence[str] | None, is_loading: bool) -> str:
    """Pick the placeholder for the repository selector.

    A list that was never loaded and an empty loaded list give different
    placeholders.

    Args:
        available_repos: Loaded repositories, or None if never loaded.
        is_loading: Whether a load is in flight.

    Returns:
        Message key for the placeholder.
    """
    if is_loading:
        return LOADING_REPOSITORIES
    if available_repos is None:
        return TEST_CONNECTION_FIRST
    if not available_repos:
        return NO_REPOSITORIES_FOUND
    return REPO_PLACEHOLDER


def build_repository_options(
    available_repos: Sequence[str] | None, current: str = ""
) -> list[str]:
    """Build the options for the repository selector.

    The current selection is kept even when the server does not list it, so
    a manually entered repository stays visible.

    Args:
        available_repos: Loaded repositories, or None if never loaded.
        current: Currently selected repository.

    Returns:
        Deduplicated option names.
    """
    options = clean_repository_names(available_repos or [])
    selected = (current or "").strip()
    if selected and selected not in options:
        options.append(selected)
    return options


class RepositoryLoader:
    """Loads the repository list into ``SettingsState.available_repos``."""

    def __init__(self, state: SettingsState, service: FlowService) -> None:
        """Initialize the loader.

        Args:
            state: State container to write results into.
            service: Remote operations used for listing.
        """
        self.state = state
        self.service = service
        self._scope = CancellationScope("repositories")

    def cancel(self) -> None:
        """Cancel the in-flight load, if any."""
        self._scope.cancel()

    async def load(
        self, server_url: str, token: str, *, show_loading_indicator: bool = True
    ) -> list[str] | None:
        """Load repositories and write them into state.

        Args:
            server_url: Server URL; it is sanitized first.
            token: API token.
            show_loading_indicator: Flag the state as loading while the
                request runs.

        Returns:
            The cleaned repository list, or None if the inputs were empty or
            the load was superseded.

        Raises:
            RepositoryLoadError: If the load failed. State already reflects
                the failure when this is raised.
        """
        cancel = self._scope.renew()
        state = self.state
        sanitized = sanitize_server_url(server_url)

        if not sanitized.valid or not sanitized.cleaned or not token:
            state.available_repos = None
            state.repository_hint = None
            state.is_loading_repositories = False
            self._scope.release(cancel)
            return None

        previous = state.available_repos
        if show_loading_indicator:
            state.is_loading_repositories = True
            state.repository_hint = None

        log = logger.with_context(server_url=sanitized.cleaned, generation=cancel.generation)
        log.debug("Loading repositories", extra={"diagnostic_tag": "repositories"})
        try:
            listed = await cancel.guard(
                self.service.list_repositories(sanitized.cleaned, token, cancel)
            )
        except OperationCancelled:
            log.debug("Repository load cancelled", extra={"diagnostic_tag": "repositories"})
            return None
        except Exception as e:
            outcome = map_failure(e)
            if outcome.is_cancelled or not self._scope.is_current(cancel):
                return None
            state.available_repos = list(previous) if previous is not None else []
            state.repository_hint = ERROR_REPOSITORIES
            state.is_loading_repositories = False
            self._scope.release(cancel)
            log.warning(
                "Repository load failed: %s", outcome.kind, extra={"status": outcome.status}
            )
            raise RepositoryLoadError(outcome) from e

        if not self._scope.is_current(cancel):
            return None
        repositories = clean_repository_names(listed)
        state.available_repos = repositories
        state.field_errors.set(FieldName.REPOSITORY, None)
        state.repository_hint = None
        state.is_loading_repositories = False
        self._scope.release(cancel)
        log.info("Loaded %s repositories", len(repositories))
        return list(repositories)


__all__ = [
    "RepositoryLoadError",
    "RepositoryLoader",
    "build_repository_options",
    "repository_placeholder_key",
]
