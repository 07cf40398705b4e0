"""One connection settings panel.

``ConnectionPanel`` wires a ``SettingsState`` to its orchestrator, loader
and synchronizer, and owns their lifetime. Hosts create one panel per
settings widget and call :meth:`ConnectionPanel.teardown` when the widget
goes away.
"""

from __future__ import annotations

from fmeconnect.logging import get_logger
from fmeconnect.orchestrator import ConnectionOrchestrator
from fmeconnect.probe import ConnectionValidationResult, FlowService
from fmeconnect.repository_loader import (
    RepositoryLoader,
    build_repository_options,
    repository_placeholder_key,
)
from fmeconnect.state import SettingsState
from fmeconnect.store import ConfigSnapshot, ConfigStore, RepositoryChangeNotifier
from fmeconnect.synchronizer import ConfigSynchronizer
from fmeconnect.types import FieldName

logger = get_logger(__name__)


def _ignore_repository_change(repository: str) -> None:
    logger.debug("Repository changed to %r with no listener", repository)


class ConnectionPanel:
    """Connection settings for a single widget instance.

    Attributes:
        state: The panel's state; read-only for rendering code.
        orchestrator: Runs connection tests.
        loader: Loads repository lists.
        synchronizer: Handles edits, commits and config change events.
    """

    def __init__(
        self,
        service: FlowService,
        store: ConfigStore,
        notify_repository_changed: RepositoryChangeNotifier | None = None,
        *,
        require_https: bool = False,
    ) -> None:
        """Initialize the panel from the persisted configuration.

        Args:
            service: Remote operations.
            store: Settings store port.
            notify_repository_changed: Called when the selected repository
                changes.
            require_https: Reject plain ``http://`` URLs.
        """
        self.store = store
        self.state = SettingsState(
            server_url=store.get(FieldName.SERVER_URL),
            token=store.get(FieldName.TOKEN),
            repository=store.get(FieldName.REPOSITORY),
        )
        self.orchestrator = ConnectionOrchestrator(
            self.state, service, store, require_https=require_https
        )
        self.loader = RepositoryLoader(self.state, service)
        self.synchronizer = ConfigSynchronizer(
            self.state,
            store,
            self.loader,
            notify_repository_changed or _ignore_repository_change,
            require_https=require_https,
        )
        self._closed = False

    async def test_connection(self, silent: bool = False) -> ConnectionValidationResult | None:
        """Run a connection test with the current form values."""
        return await self.orchestrator.test_connection(silent=silent)

    async def refresh_repositories(self) -> list[str] | None:
        """Reload repositories for the current form values."""
        return await self.synchronizer.refresh_repositories()

    async def config_changed(self, snapshot: ConfigSnapshot | None = None) -> list[str] | None:
        """Forward a persisted-config change event.

        Args:
            snapshot: New persisted values; read from the store if omitted.

        Returns:
            Repositories loaded in response, or None.
        """
        if snapshot is None:
            snapshot = ConfigSnapshot(
                server_url=self.store.get(FieldName.SERVER_URL),
                token=self.store.get(FieldName.TOKEN),
                repository=self.store.get(FieldName.REPOSITORY),
            )
        return await self.synchronizer.on_config_changed(snapshot)

    @property
    def can_test(self) -> bool:
        """True if a test can be started right now."""
        return not self._closed and not self.state.test.is_testing

    @property
    def can_refresh(self) -> bool:
        return not self._closed and self.synchronizer.can_refresh

    def repository_placeholder(self) -> str:
        """Message key for the repository selector placeholder."""
        return repository_placeholder_key(
            self.state.available_repos, self.state.is_loading_repositories
        )

    def repository_options(self) -> list[str]:
        return build_repository_options(self.state.available_repos, self.state.repository)

    def teardown(self) -> None:
        """Cancel both cancellation domains and reset the panel's status.

        Form values are kept; test results, check steps, field errors and
        repositories go back to their initial values.
        """
        self.orchestrator.cancel()
        self.loader.cancel()
        self.state.reset()
        self._closed = True


__all__ = ["ConnectionPanel"]
