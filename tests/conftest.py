"""Shared pytest fixtures for FME Connect tests.

Fakes live in ``tests.mocks``; the fixtures here only assemble them into
the components under test. Direct instantiation is fine too when a test
needs non-default wiring.
"""

from __future__ import annotations

import pytest

from fmeconnect.orchestrator import ConnectionOrchestrator
from fmeconnect.repository_loader import RepositoryLoader
from fmeconnect.state import SettingsState
from fmeconnect.store import InMemoryConfigStore
from fmeconnect.synchronizer import ConfigSynchronizer
from tests.mocks import SERVER_URL, TOKEN, FakeFlowService, RecordingNotifier


@pytest.fixture
def service() -> FakeFlowService:
    """FakeFlowService listing repositories A and B."""
    return FakeFlowService(repositories=["A", "B"])


@pytest.fixture
def store() -> InMemoryConfigStore:
    """Store seeded with a valid URL and token."""
    return InMemoryConfigStore(server_url=SERVER_URL, token=TOKEN)


@pytest.fixture
def state() -> SettingsState:
    """State with a valid URL and token typed into the form."""
    return SettingsState(server_url=SERVER_URL, token=TOKEN)


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def orchestrator(
    state: SettingsState, service: FakeFlowService, store: InMemoryConfigStore
) -> ConnectionOrchestrator:
    return ConnectionOrchestrator(state, service, store)


@pytest.fixture
def loader(state: SettingsState, service: FakeFlowService) -> RepositoryLoader:
    return RepositoryLoader(state, service)


@pytest.fixture
def synchronizer(
    state: SettingsState,
    store: InMemoryConfigStore,
    loader: RepositoryLoader,
    notifier: RecordingNotifier,
) -> ConfigSynchronizer:
    return ConfigSynchronizer(state, store, loader, notifier)
