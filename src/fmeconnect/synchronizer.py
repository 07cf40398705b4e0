"""Reconciles form edits with the persisted connection configuration.

Keystrokes only touch local state. Commits (blur, selection) validate,
persist through the ``ConfigStore`` port and invalidate whatever depended
on the old value. Persisted-config change events are compared against the
previous snapshot, so repository loading is triggered on real credential
changes only.
"""

from __future__ import annotations

from fmeconnect.logging import get_logger
from fmeconnect.messages import message_key_for
from fmeconnect.repository_loader import RepositoryLoader, RepositoryLoadError
from fmeconnect.sanitizer import sanitize_server_url
from fmeconnect.state import SettingsState
from fmeconnect.store import ConfigSnapshot, ConfigStore, RepositoryChangeNotifier
from fmeconnect.types import ErrorKind, FieldName
from fmeconnect.validation import (
    validate_directive,
    validate_email,
    validate_repository,
    validate_server_url,
    validate_token,
)

logger = get_logger(__name__)


def _message(kind: ErrorKind | None) -> str | None:
    return message_key_for(kind) if kind is not None else None


class ConfigSynchronizer:
    """Keeps local form state and the settings store consistent."""

    def __init__(
        self,
        state: SettingsState,
        store: ConfigStore,
        loader: RepositoryLoader,
        notify_repository_changed: RepositoryChangeNotifier,
        *,
        require_https: bool = False,
    ) -> None:
        """Initialize the synchronizer.

        Args:
            state: State container shared with the orchestrator and loader.
            store: Settings store port.
            loader: Repository loader used for automatic and manual loads.
            notify_repository_changed: Called with the new repository when
                the selection changes, to clear repository-scoped state
                elsewhere in the host application.
            require_https: Reject plain ``http://`` URLs during validation.
        """
        self.state = state
        self.store = store
        self.loader = loader
        self.notify_repository_changed = notify_repository_changed
        self.require_https = require_https
        self._previous: ConfigSnapshot | None = None

    # Keystroke-level edits

    def edit_server_url(self, value: str) -> None:
        self.state.server_url = value
        self.state.field_errors.set(FieldName.SERVER_URL, None)
        self.state.reset_connection_progress()
        self.invalidate_repository_state()

    def edit_token(self, value: str) -> None:
        self.state.token = value
        self.state.field_errors.set(FieldName.TOKEN, None)
        self.state.reset_connection_progress()
        self.invalidate_repository_state()

    def edit_support_email(self, value: str) -> None:
        self.state.support_email = value
        self.state.field_errors.set(FieldName.SUPPORT_EMAIL, None)

    # Commits

    def invalidate_repository_state(self) -> None:
        """Drop repository data derived from the previous credentials."""
        self.loader.cancel()
        self.state.clear_repository_state()

    def commit_server_url(self, value: str | None = None) -> bool:
        """Validate, sanitize and persist the server URL on blur.

        Args:
            value: URL to commit; defaults to the current local value.

        Returns:
            True if the committed value is valid.
        """
        raw = self.state.server_url if value is None else value
        sanitized = sanitize_server_url(raw)
        candidate = sanitized.cleaned if sanitized.valid else raw.strip()
        error = validate_server_url(candidate, require_https=self.require_https)
        self.state.field_errors.set(FieldName.SERVER_URL, _message(error))
        self.state.server_url = candidate
        self.store.persist(FieldName.SERVER_URL, candidate)
        self.invalidate_repository_state()
        return error is None

    def commit_token(self, value: str | None = None) -> bool:
        """Validate and persist the token on blur.

        Args:
            value: Token to commit; defaults to the current local value.

        Returns:
            True if the committed value is valid.
        """
        token = self.state.token if value is None else value
        error = validate_token(token)
        self.state.field_errors.set(FieldName.TOKEN, _message(error))
        self.state.token = token
        self.store.persist(FieldName.TOKEN, token)
        self.invalidate_repository_state()
        return error is None

    def select_repository(self, repository: str) -> None:
        """Persist a repository selection.

        Notifies the host exactly once when the selection actually changes.

        Args:
            repository: The newly selected repository.
        """
        selected = (repository or "").strip()
        previous = self.store.get(FieldName.REPOSITORY)
        self.state.repository = selected
        self.store.persist(FieldName.REPOSITORY, selected)

        available = self.state.available_repos
        error = validate_repository(selected, available) if selected else None
        self.state.field_errors.set(FieldName.REPOSITORY, _message(error))

        if selected != previous:
            logger.info("Repository changed from %r to %r", previous, selected)
            self.notify_repository_changed(selected)

    def commit_support_email(self, value: str | None = None) -> bool:
        """Validate the support email on blur.

        Returns:
            True if the value is valid.
        """
        email = (self.state.support_email if value is None else value).strip()
        self.state.support_email = email
        error = validate_email(email)
        self.state.field_errors.set(FieldName.SUPPORT_EMAIL, _message(error))
        return error is None

    def commit_directive(self, field_name: FieldName, raw: str) -> bool:
        """Validate a job-directive field on blur.

        Returns:
            True if the value is valid.
        """
        error = validate_directive(field_name, raw)
        self.state.directives[field_name] = raw
        self.state.field_errors.set(field_name, _message(error))
        return error is None

    # Persisted-config events and repository refresh

    def _credentials_valid(self, server_url: str, token: str) -> bool:
        url_error = validate_server_url(server_url, require_https=self.require_https)
        return url_error is None and validate_token(token) is None

    @property
    def can_refresh(self) -> bool:
        """True if the current local URL and token both validate."""
        return self._credentials_valid(self.state.server_url, self.state.token)

    async def on_config_changed(self, snapshot: ConfigSnapshot) -> list[str] | None:
        """Handle a change event from the persisted configuration.

        Repository state is invalidated and reloaded only when the URL or
        token differ from the previous snapshot. The first snapshot counts
        as a change.

        Args:
            snapshot: Current persisted values.

        Returns:
            The loaded repositories, or None if nothing was loaded.
        """
        previous = self._previous
        self._previous = snapshot
        if previous is not None and previous.credentials() == snapshot.credentials():
            return None

        self.invalidate_repository_state()
        if not self._credentials_valid(snapshot.server_url, snapshot.token):
            return None

        try:
            return await self.loader.load(
                snapshot.server_url, snapshot.token, show_loading_indicator=True
            )
        except RepositoryLoadError as e:
            logger.warning("Automatic repository load failed: %s", e.outcome.kind)
            return None

    async def refresh_repositories(self) -> list[str] | None:
        """Reload repositories for the current local URL and token.

        Returns:
            The loaded repositories, or None if refreshing is not possible
            or was superseded.

        Raises:
            RepositoryLoadError: If the load failed.
        """
        if not self.can_refresh:
            return None
        return await self.loader.load(
            self.state.server_url, self.state.token, show_loading_indicator=True
        )


__all__ = ["ConfigSynchronizer"]
