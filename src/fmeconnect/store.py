"""Settings store port.

The persisted configuration belongs to the host application. This module
defines the narrow read/write port the synchronizer uses, plus an
in-memory implementation for the CLI and tests.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

from fmeconnect.types import FieldName

# Callback receiving the newly selected repository
RepositoryChangeNotifier = Callable[[str], None]


@dataclass(frozen=True)
class ConfigSnapshot:
    """The persisted connection fields at one point in time."""

    server_url: str = ""
    token: str = ""
    repository: str = ""

    def credentials(self) -> tuple[str, str]:
        return (self.server_url, self.token)


class ConfigStore(Protocol):
    """Read/write port onto the externally owned configuration."""

    def get(self, key: FieldName) -> str: ...

    def persist(self, key: FieldName, value: str) -> None: ...


class InMemoryConfigStore:
    """Dictionary-backed ConfigStore that records every write.

    Attributes:
        writes: ``(key, value)`` pairs in the order they were persisted.
    """

    def __init__(
        self, server_url: str = "", token: str = "", repository: str = ""
    ) -> None:
        self._values: dict[FieldName, str] = {
            FieldName.SERVER_URL: server_url,
            FieldName.TOKEN: token,
            FieldName.REPOSITORY: repository,
        }
        self.writes: list[tuple[FieldName, str]] = []

    def get(self, key: FieldName) -> str:
        return self._values.get(key, "")

    def persist(self, key: FieldName, value: str) -> None:
        if key not in FieldName.connection_fields():
            raise KeyError(f"Only connection fields are persisted, got {key!r}")
        self._values[key] = value
        self.writes.append((key, value))

    def snapshot(self) -> ConfigSnapshot:
        """Return the current persisted connection fields."""
        return ConfigSnapshot(
            server_url=self.get(FieldName.SERVER_URL),
            token=self.get(FieldName.TOKEN),
            repository=self.get(FieldName.REPOSITORY),
        )


__all__ = [
    "ConfigSnapshot",
    "ConfigStore",
    "InMemoryConfigStore",
    "RepositoryChangeNotifier",
]
