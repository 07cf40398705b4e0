"""Tests for ConfigSynchronizer."""

from __future__ import annotations

import asyncio

import pytest

from fmeconnect.messages import ERROR_REPOSITORIES
from fmeconnect.repository_loader import RepositoryLoader, RepositoryLoadError
from fmeconnect.state import SettingsState, TestState
from fmeconnect.store import ConfigSnapshot, InMemoryConfigStore
from fmeconnect.synchronizer import ConfigSynchronizer
from fmeconnect.types import FieldName, TestStatus
from tests.mocks import SERVER_URL, TOKEN, FakeFlowService, RecordingNotifier, api_error


class TestEdits:
    """Tests for keystroke-level edits."""

    def test_edit_server_url_resets_dependent_state(
        self, synchronizer: ConfigSynchronizer, state: SettingsState, store: InMemoryConfigStore
    ) -> None:
        state.available_repos = ["A"]
        state.test = TestState.success("connection_ok")
        state.field_errors.set(FieldName.SERVER_URL, "error_invalid_server_url")
        state.field_errors.set(FieldName.REPOSITORY, "error_repository_not_found")

        synchronizer.edit_server_url("https://other.example.com")

        assert state.server_url == "https://other.example.com"
        assert state.available_repos is None
        assert state.test.status == TestStatus.IDLE
        assert len(state.field_errors) == 0
        assert store.writes == []

    def test_edit_token_resets_dependent_state(
        self, synchronizer: ConfigSynchronizer, state: SettingsState
    ) -> None:
        state.available_repos = ["A"]

        synchronizer.edit_token("othertoken123")

        assert state.token == "othertoken123"
        assert state.available_repos is None


class TestCommits:
    """Tests for blur and selection commits."""

    def test_commit_server_url_sanitizes_and_persists(
        self, synchronizer: ConfigSynchronizer, state: SettingsState, store: InMemoryConfigStore
    ) -> None:
        state.available_repos = ["A"]
        synchronizer.edit_server_url("https://fme.example.com/fmerest/v3/")

        assert synchronizer.commit_server_url() is True
        assert state.server_url == SERVER_URL
        assert store.writes == [(FieldName.SERVER_URL, SERVER_URL)]
        assert state.available_repos is None
        assert FieldName.SERVER_URL not in state.field_errors

    def test_commit_invalid_server_url_sets_error(
        self, synchronizer: ConfigSynchronizer, state: SettingsState, store: InMemoryConfigStore
    ) -> None:
        assert synchronizer.commit_server_url("intranet") is False
        assert state.field_errors.get(FieldName.SERVER_URL) == "error_invalid_server_url"
        assert store.get(FieldName.SERVER_URL) == "intranet"

    def test_commit_server_url_cancels_repository_load(
        self, synchronizer: ConfigSynchronizer, loader: RepositoryLoader
    ) -> None:
        token = loader._scope.renew()

        synchronizer.commit_server_url()

        assert token.cancelled is True

    def test_commit_token(
        self, synchronizer: ConfigSynchronizer, state: SettingsState, store: InMemoryConfigStore
    ) -> None:
        assert synchronizer.commit_token("short") is False
        assert state.field_errors.get(FieldName.TOKEN) == "error_token_is_invalid"

        assert synchronizer.commit_token("othertoken123") is True
        assert FieldName.TOKEN not in state.field_errors
        assert store.get(FieldName.TOKEN) == "othertoken123"

    def test_select_repository_notifies_once_per_change(
        self,
        synchronizer: ConfigSynchronizer,
        state: SettingsState,
        store: InMemoryConfigStore,
        notifier: RecordingNotifier,
    ) -> None:
        state.available_repos = ["A", "B"]

        synchronizer.select_repository("A")
        synchronizer.select_repository("A")
        synchronizer.select_repository("B")

        assert notifier.calls == ["A", "B"]
        assert store.get(FieldName.REPOSITORY) == "B"
        assert state.repository == "B"

    def test_select_unlisted_repository_sets_error(
        self, synchronizer: ConfigSynchronizer, state: SettingsState
    ) -> None:
        state.available_repos = ["A"]

        synchronizer.select_repository("Missing")

        assert state.field_errors.get(FieldName.REPOSITORY) == "error_repository_not_found"

    def test_select_repository_with_empty_list_allows_manual_entry(
        self, synchronizer: ConfigSynchronizer, state: SettingsState
    ) -> None:
        state.available_repos = []

        synchronizer.select_repository("Manual")

        assert FieldName.REPOSITORY not in state.field_errors

    def test_support_email_is_validated_not_persisted(
        self, synchronizer: ConfigSynchronizer, state: SettingsState, store: InMemoryConfigStore
    ) -> None:
        synchronizer.edit_support_email("nope")

        assert synchronizer.commit_support_email() is False
        assert state.field_errors.get(FieldName.SUPPORT_EMAIL) == "invalid_email"
        assert store.writes == []

        synchronizer.edit_support_email("support@example.com")

        assert FieldName.SUPPORT_EMAIL not in state.field_errors
        assert synchronizer.commit_support_email() is True

    def test_commit_directive(
        self, synchronizer: ConfigSynchronizer, state: SettingsState
    ) -> None:
        assert synchronizer.commit_directive(FieldName.TM_TTL, "soon") is False
        assert state.field_errors.get(FieldName.TM_TTL) == "error_invalid_directive"

        assert synchronizer.commit_directive(FieldName.TM_TTL, "60") is True
        assert state.directives[FieldName.TM_TTL] == "60"
        assert FieldName.TM_TTL not in state.field_errors


class TestConfigChanges:
    """Tests for persisted-config change events."""

    @pytest.mark.asyncio
    async def test_first_snapshot_loads_repositories(
        self, synchronizer: ConfigSynchronizer, state: SettingsState, service: FakeFlowService
    ) -> None:
        result = await synchronizer.on_config_changed(ConfigSnapshot(SERVER_URL, TOKEN))

        assert result == ["A", "B"]
        assert state.available_repos == ["A", "B"]
        assert service.call_count("list_repositories") == 1

    @pytest.mark.asyncio
    async def test_unchanged_credentials_do_not_reload(
        self, synchronizer: ConfigSynchronizer, state: SettingsState, service: FakeFlowService
    ) -> None:
        await synchronizer.on_config_changed(ConfigSnapshot(SERVER_URL, TOKEN))
        result = await synchronizer.on_config_changed(ConfigSnapshot(SERVER_URL, TOKEN, "A"))

        assert result is None
        assert state.available_repos == ["A", "B"]
        assert service.call_count("list_repositories") == 1

    @pytest.mark.asyncio
    async def test_changed_token_reloads(
        self, synchronizer: ConfigSynchronizer, service: FakeFlowService
    ) -> None:
        await synchronizer.on_config_changed(ConfigSnapshot(SERVER_URL, TOKEN))
        await synchronizer.on_config_changed(ConfigSnapshot(SERVER_URL, "othertoken123"))

        assert service.calls[-1] == ("list_repositories", SERVER_URL, "othertoken123")
        assert service.call_count("list_repositories") == 2

    @pytest.mark.asyncio
    async def test_invalid_credentials_clear_without_loading(
        self, synchronizer: ConfigSynchronizer, state: SettingsState, service: FakeFlowService
    ) -> None:
        state.available_repos = ["Old"]

        result = await synchronizer.on_config_changed(ConfigSnapshot("intranet", TOKEN))

        assert result is None
        assert state.available_repos is None
        assert service.calls == []

    @pytest.mark.asyncio
    async def test_automatic_load_failure_is_absorbed(
        self, state: SettingsState, store: InMemoryConfigStore, notifier: RecordingNotifier
    ) -> None:
        service = FakeFlowService(list_results=[api_error(503)])
        loader = RepositoryLoader(state, service)
        synchronizer = ConfigSynchronizer(state, store, loader, notifier)

        result = await synchronizer.on_config_changed(ConfigSnapshot(SERVER_URL, TOKEN))

        assert result is None
        assert state.available_repos == []
        assert state.repository_hint == ERROR_REPOSITORIES

    @pytest.mark.asyncio
    async def test_credential_change_cancels_running_load(
        self, synchronizer: ConfigSynchronizer, state: SettingsState, service: FakeFlowService
    ) -> None:
        service.hold_next("list_repositories")
        first = asyncio.create_task(
            synchronizer.on_config_changed(ConfigSnapshot(SERVER_URL, TOKEN))
        )
        await service.wait_started("list_repositories")

        await synchronizer.on_config_changed(ConfigSnapshot(SERVER_URL, "othertoken123"))

        assert await first is None
        assert state.available_repos == ["A", "B"]
        assert service.cancel_tokens[0].cancelled is True


class TestRefresh:
    """Tests for manual repository refresh."""

    @pytest.mark.asyncio
    async def test_refresh_uses_local_values(
        self, synchronizer: ConfigSynchronizer, service: FakeFlowService
    ) -> None:
        assert synchronizer.can_refresh is True

        result = await synchronizer.refresh_repositories()

        assert result == ["A", "B"]
        assert service.calls == [("list_repositories", SERVER_URL, TOKEN)]

    @pytest.mark.asyncio
    async def test_refresh_not_possible_with_invalid_values(
        self, synchronizer: ConfigSynchronizer, state: SettingsState, service: FakeFlowService
    ) -> None:
        state.token = ""

        assert synchronizer.can_refresh is False
        assert await synchronizer.refresh_repositories() is None
        assert service.calls == []

    @pytest.mark.asyncio
    async def test_refresh_failure_propagates(
        self, state: SettingsState, store: InMemoryConfigStore, notifier: RecordingNotifier
    ) -> None:
        service = FakeFlowService(list_results=[api_error(500)])
        synchronizer = ConfigSynchronizer(state, store, RepositoryLoader(state, service), notifier)

        with pytest.raises(RepositoryLoadError):
            await synchronizer.refresh_repositories()
