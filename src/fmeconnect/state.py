"""State held by one connection settings panel.

``SettingsState`` is the single container the orchestrator, loader and
synchronizer write to. Rendering code reads it and never mutates it.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any

from fmeconnect.sanitizer import sanitize_server_url
from fmeconnect.types import FieldName, Severity, StepStatus, TestStatus


@dataclass(frozen=True)
class ConnectionSettings:
    """Immutable connection snapshot for a single test run.

    Attributes:
        server_url: Sanitized base URL.
        token: FME Flow API token.
        repository: Selected repository, empty if none.
    """

    server_url: str
    token: str
    repository: str = ""

    @classmethod
    def create(
        cls, server_url: str, token: str, repository: str = ""
    ) -> ConnectionSettings | None:
        """Build a snapshot from raw form values.

        Args:
            server_url: URL as entered; it is sanitized here.
            token: Token as entered.
            repository: Selected repository.

        Returns:
            The snapshot, or None if the sanitized URL or the token is empty.
        """
        sanitized = sanitize_server_url(server_url)
        if not sanitized.valid or not sanitized.cleaned or not token:
            return None
        return cls(server_url=sanitized.cleaned, token=token, repository=(repository or "").strip())


@dataclass(frozen=True)
class TestState:
    """Overall status of the most recent connection test.

    Attributes:
        status: Idle, running, success or error.
        is_testing: True while a test is in flight.
        message: Banner message key, None for no banner.
        severity: Banner severity.
    """

    __test__ = False  # keep pytest from collecting this as a test class

    status: TestStatus = TestStatus.IDLE
    is_testing: bool = False
    message: str | None = None
    severity: Severity = Severity.INFO

    @classmethod
    def running(cls, message: str | None) -> TestState:
        return cls(TestStatus.RUNNING, True, message, Severity.INFO)

    @classmethod
    def success(cls, message: str | None) -> TestState:
        return cls(TestStatus.SUCCESS, False, message, Severity.SUCCESS)

    @classmethod
    def error(cls, message: str | None) -> TestState:
        return cls(TestStatus.ERROR, False, message, Severity.ERROR)


@dataclass(frozen=True)
class CheckSteps:
    """Per-phase progress of the current or most recent test.

    Attributes:
        server_url: Reachability step.
        token: Authentication step.
        repository: Repository confirmation step.
        version: FME Flow version reported by the server, empty if unknown.
    """

    server_url: StepStatus = StepStatus.IDLE
    token: StepStatus = StepStatus.IDLE
    repository: StepStatus = StepStatus.IDLE
    version: str = ""

    @classmethod
    def armed(cls, has_repository: bool) -> CheckSteps:
        """Steps at the start of a test.

        Args:
            has_repository: Whether a repository will be confirmed.

        Returns:
            Steps with the credential checks pending.
        """
        return cls(
            server_url=StepStatus.PENDING,
            token=StepStatus.PENDING,
            repository=StepStatus.PENDING if has_repository else StepStatus.SKIP,
        )

    def update(self, **changes: Any) -> CheckSteps:
        """Return a copy with the given steps changed."""
        return replace(self, **changes)

    def to_dict(self) -> dict[str, str]:
        """Convert to dictionary representation."""
        return {
            "serverUrl": self.server_url.value,
            "token": self.token.value,
            "repository": self.repository.value,
            "version": self.version,
        }


class FieldErrors:
    """At most one message key per form field.

    Setting an error for a field replaces whatever the field held.
    """

    def __init__(self) -> None:
        self._errors: dict[FieldName, str] = {}

    def set(self, field_name: FieldName, message: str | None) -> None:
        """Set or clear a field's error.

        Args:
            field_name: The field.
            message: Message key, or None/empty to clear.
        """
        if message:
            self._errors[field_name] = message
        else:
            self._errors.pop(field_name, None)

    def get(self, field_name: FieldName) -> str | None:
        return self._errors.get(field_name)

    def clear(self, *field_names: FieldName) -> None:
        """Clear the given fields, or every field when none are given."""
        if not field_names:
            self._errors.clear()
            return
        for name in field_names:
            self._errors.pop(name, None)

    def as_dict(self) -> dict[str, str]:
        return {name.value: message for name, message in self._errors.items()}

    def __contains__(self, field_name: object) -> bool:
        return field_name in self._errors

    def __len__(self) -> int:
        return len(self._errors)

    def __repr__(self) -> str:
        return f"FieldErrors({self.as_dict()!r})"


@dataclass
class SettingsState:
    """Local editable values plus the long-lived status of one panel.

    Attributes:
        server_url: Server URL as currently shown in the form.
        token: Token as currently shown in the form.
        repository: Repository as currently selected.
        support_email: Optional support email.
        directives: Raw job-directive inputs keyed by field.
        test: Status of the most recent connection test.
        steps: Check steps of the most recent connection test.
        field_errors: Field-level errors.
        available_repos: Loaded repositories; None means never loaded.
        repository_hint: Advisory message key about repository loading.
        is_loading_repositories: True while a visible repository load runs.
    """

    server_url: str = ""
    token: str = ""
    repository: str = ""
    support_email: str = ""
    directives: dict[FieldName, str] = field(default_factory=dict)
    test: TestState = field(default_factory=TestState)
    steps: CheckSteps = field(default_factory=CheckSteps)
    field_errors: FieldErrors = field(default_factory=FieldErrors)
    available_repos: list[str] | None = None
    repository_hint: str | None = None
    is_loading_repositories: bool = False

    def reset_connection_progress(self) -> None:
        """Forget the outcome of the previous test."""
        self.test = TestState()
        self.steps = CheckSteps()

    def clear_repository_state(self) -> None:
        """Drop everything derived from the previous server and token."""
        self.available_repos = None
        self.repository_hint = None
        self.is_loading_repositories = False
        self.field_errors.clear(FieldName.REPOSITORY)

    def reset(self) -> None:
        """Reset all status back to its initial values, keeping form values."""
        self.reset_connection_progress()
        self.clear_repository_state()
        self.field_errors.clear()

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "status": self.test.status.value,
            "isTesting": self.test.is_testing,
            "message": self.test.message,
            "severity": self.test.severity.value,
            "steps": self.steps.to_dict(),
            "fieldErrors": self.field_errors.as_dict(),
            "availableRepos": None if self.available_repos is None else list(self.available_repos),
            "repositoryHint": self.repository_hint,
        }


__all__ = [
    "CheckSteps",
    "ConnectionSettings",
    "FieldErrors",
    "SettingsState",
    "TestState",
]
