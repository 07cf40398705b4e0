"""Tests for RepositoryLoader and the repository selector helpers."""

from __future__ import annotations

import asyncio

import pytest

from fmeconnect.messages import (
    ERROR_REPOSITORIES,
    LOADING_REPOSITORIES,
    NO_REPOSITORIES_FOUND,
    REPO_PLACEHOLDER,
    TEST_CONNECTION_FIRST,
)
from fmeconnect.repository_loader import (
    RepositoryLoader,
    RepositoryLoadError,
    build_repository_options,
    repository_placeholder_key,
)
from fmeconnect.state import SettingsState
from fmeconnect.types import ErrorKind, FieldName
from tests.mocks import SERVER_URL, TOKEN, FakeFlowService, api_error


class TestPlaceholder:
    """Tests for repository_placeholder_key."""

    def test_never_loaded_differs_from_empty(self) -> None:
        assert repository_placeholder_key(None, False) == TEST_CONNECTION_FIRST
        assert repository_placeholder_key([], False) == NO_REPOSITORIES_FOUND

    def test_loaded(self) -> None:
        assert repository_placeholder_key(["A"], False) == REPO_PLACEHOLDER

    def test_loading_wins(self) -> None:
        assert repository_placeholder_key(None, True) == LOADING_REPOSITORIES


class TestBuildRepositoryOptions:
    """Tests for build_repository_options."""

    def test_dedupes_in_order(self) -> None:
        assert build_repository_options(["A", "B", "A", "B"]) == ["A", "B"]

    def test_keeps_unlisted_selection(self) -> None:
        assert build_repository_options(["A"], "Manual") == ["A", "Manual"]

    def test_never_loaded(self) -> None:
        assert build_repository_options(None) == []
        assert build_repository_options(None, "Manual") == ["Manual"]


class TestRepositoryLoader:
    """Tests for RepositoryLoader.load."""

    @pytest.mark.asyncio
    async def test_loads_clean_list(self, state: SettingsState) -> None:
        service = FakeFlowService(repositories=["A", "B", "A", "", None, "B"])
        loader = RepositoryLoader(state, service)
        state.field_errors.set(FieldName.REPOSITORY, "error_repository_not_found")
        state.repository_hint = ERROR_REPOSITORIES

        result = await loader.load(SERVER_URL, TOKEN)

        assert result == ["A", "B"]
        assert state.available_repos == ["A", "B"]
        assert state.is_loading_repositories is False
        assert state.repository_hint is None
        assert FieldName.REPOSITORY not in state.field_errors

    @pytest.mark.asyncio
    async def test_sanitizes_url(self, state: SettingsState) -> None:
        service = FakeFlowService(repositories=["A"])
        loader = RepositoryLoader(state, service)

        await loader.load("https://fme.example.com/fmerest/v3", TOKEN)

        assert service.calls == [("list_repositories", SERVER_URL, TOKEN)]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(("url", "token"), [("", TOKEN), (SERVER_URL, ""), ("nope", TOKEN)])
    async def test_empty_inputs_reset_to_never_loaded(
        self, state: SettingsState, url: str, token: str
    ) -> None:
        service = FakeFlowService(repositories=["A"])
        loader = RepositoryLoader(state, service)
        state.available_repos = ["Old"]

        result = await loader.load(url, token)

        assert result is None
        assert state.available_repos is None
        assert service.calls == []

    @pytest.mark.asyncio
    async def test_loading_flag_while_in_flight(self, state: SettingsState) -> None:
        service = FakeFlowService(repositories=["A"])
        loader = RepositoryLoader(state, service)
        release = service.hold_next("list_repositories")

        task = asyncio.create_task(loader.load(SERVER_URL, TOKEN))
        await service.wait_started("list_repositories")

        assert state.is_loading_repositories is True

        release.set()
        await task

        assert state.is_loading_repositories is False

    @pytest.mark.asyncio
    async def test_silent_load_keeps_indicator_off(self, state: SettingsState) -> None:
        service = FakeFlowService(repositories=["A"])
        loader = RepositoryLoader(state, service)
        release = service.hold_next("list_repositories")

        task = asyncio.create_task(loader.load(SERVER_URL, TOKEN, show_loading_indicator=False))
        await service.wait_started("list_repositories")

        assert state.is_loading_repositories is False

        release.set()
        assert await task == ["A"]

    @pytest.mark.asyncio
    async def test_failure_keeps_previous_list(self, state: SettingsState) -> None:
        service = FakeFlowService(list_results=[api_error(500)])
        loader = RepositoryLoader(state, service)
        state.available_repos = ["Old"]

        with pytest.raises(RepositoryLoadError) as exc_info:
            await loader.load(SERVER_URL, TOKEN)

        assert exc_info.value.outcome.kind == ErrorKind.SERVER_ERROR
        assert state.available_repos == ["Old"]
        assert state.repository_hint == ERROR_REPOSITORIES
        assert state.is_loading_repositories is False

    @pytest.mark.asyncio
    async def test_failure_without_previous_list_allows_manual_entry(
        self, state: SettingsState
    ) -> None:
        service = FakeFlowService(list_results=[api_error(401)])
        loader = RepositoryLoader(state, service)

        with pytest.raises(RepositoryLoadError):
            await loader.load(SERVER_URL, TOKEN)

        assert state.available_repos == []

    @pytest.mark.asyncio
    async def test_newer_load_supersedes_older(self, state: SettingsState) -> None:
        service = FakeFlowService(list_results=[["Stale"], ["Fresh"]])
        loader = RepositoryLoader(state, service)
        service.hold_next("list_repositories")

        first = asyncio.create_task(loader.load(SERVER_URL, TOKEN))
        await service.wait_started("list_repositories")
        second = await loader.load(SERVER_URL, TOKEN)

        assert await first is None
        assert second == ["Fresh"]
        assert state.available_repos == ["Fresh"]

    @pytest.mark.asyncio
    async def test_cancel_discards_result(self, state: SettingsState) -> None:
        service = FakeFlowService(repositories=["A"])
        loader = RepositoryLoader(state, service)
        service.hold_next("list_repositories")

        task = asyncio.create_task(loader.load(SERVER_URL, TOKEN))
        await service.wait_started("list_repositories")
        loader.cancel()

        assert await task is None
        assert state.available_repos is None
