"""Three-phase connection probe.

Phase A checks reachability and authentication, phase B lists the
repositories, and phase C confirms the selected repository. This module is
the only implementation of that sequence; the orchestrator drives it with
a progress callback and ``FmeFlowClient.full_validate`` runs it directly.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass, field, replace
from typing import Any, Protocol

from fmeconnect.cancellation import CancellationToken, OperationCancelled
from fmeconnect.errors import FailureOutcome, map_failure
from fmeconnect.logging import get_logger
from fmeconnect.messages import (
    HINT_REPOSITORIES_UNAVAILABLE,
    REPOSITORY_NOT_ACCESSIBLE,
    message_key_for,
)
from fmeconnect.state import CheckSteps, ConnectionSettings
from fmeconnect.types import ErrorKind, FieldName, StepStatus

logger = get_logger(__name__)

ProgressCallback = Callable[[CheckSteps], None]


@dataclass(frozen=True)
class ServerInfo:
    """Result of a successful basic connection check.

    Attributes:
        version: FME Flow version, e.g. ``2024.1``; empty if unknown.
        build: Raw build string reported by the server.
    """

    version: str = ""
    build: str = ""


class FlowService(Protocol):
    """Remote operations the probe depends on.

    Implementations return success payloads and raise on failure; the
    raised errors are passed through ``map_failure``.
    """

    async def basic_connection_check(
        self, server_url: str, token: str, cancel: CancellationToken
    ) -> ServerInfo: ...

    async def list_repositories(
        self, server_url: str, token: str, cancel: CancellationToken
    ) -> list[str]: ...

    async def repository_exists(
        self, server_url: str, token: str, repository: str, cancel: CancellationToken
    ) -> bool: ...


@dataclass
class ConnectionValidationResult:
    """Outcome of a full probe.

    Attributes:
        steps: Final check steps.
        version: FME Flow version, empty unless phase A passed.
        repositories: Listed repositories; None if phase A failed, empty if
            the listing failed or the server has none.
        failure: First failure encountered, None on success.
        warnings: Advisory message keys that do not fail the test.
    """

    steps: CheckSteps
    version: str = ""
    repositories: list[str] | None = None
    failure: FailureOutcome | None = None
    warnings: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.failure is None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation."""
        result: dict[str, Any] = {
            "success": self.success,
            "version": self.version,
            "repositories": self.repositories,
            "steps": self.steps.to_dict(),
            "warnings": list(self.warnings),
        }
        if self.failure is not None:
            result["error"] = {"kind": self.failure.kind.value, "message": self.failure.message}
        return result


def clean_repository_names(names: Iterable[object]) -> list[str]:
    """Deduplicate repository names, keeping first occurrences in order.

    Non-string and blank entries are dropped and names are stripped.

    Args:
        names: Raw names as returned by the server.

    Returns:
        Clean list of names.
    """
    seen: set[str] = set()
    cleaned: list[str] = []
    for name in names:
        if not isinstance(name, str):
            continue
        stripped = name.strip()
        if stripped and stripped not in seen:
            seen.add(stripped)
            cleaned.append(stripped)
    return cleaned


async def validate_connection(
    service: FlowService,
    settings: ConnectionSettings,
    cancel: CancellationToken,
    on_progress: ProgressCallback | None = None,
) -> ConnectionValidationResult:
    """Run the three probe phases against a server.

    The cancellation token is checked before every phase and every remote
    call is raced against it, so a cancelled probe stops without starting
    dependent phases.

    Args:
        service: Remote operations.
        settings: Connection snapshot to probe.
        cancel: Token of the run.
        on_progress: Called with the new steps after each step change.

    Returns:
        The probe outcome. Remote failures are reported in ``failure``,
        never raised.

    Raises:
        OperationCancelled: If the token was cancelled.
    """
    log = logger.with_context(server_url=settings.server_url, generation=cancel.generation)
    steps = CheckSteps.armed(bool(settings.repository))

    def advance(**changes: Any) -> None:
        nonlocal steps
        steps = steps.update(**changes)
        if on_progress is not None:
            on_progress(steps)

    # Phase A: reachability and authentication
    cancel.raise_if_cancelled()
    log.debug("Basic connection check", extra={"diagnostic_tag": "probe", "phase": "basic"})
    try:
        info = await cancel.guard(
            service.basic_connection_check(settings.server_url, settings.token, cancel)
        )
    except OperationCancelled:
        raise
    except Exception as e:
        failure = map_failure(e)
        if failure.is_cancelled:
            raise OperationCancelled(str(e)) from e
        if failure.field == FieldName.TOKEN:
            # The server answered, so the URL is fine and the token is not
            advance(server_url=StepStatus.OK, token=StepStatus.FAIL, repository=StepStatus.SKIP)
        else:
            advance(server_url=StepStatus.FAIL, token=StepStatus.SKIP, repository=StepStatus.SKIP)
        log.warning(
            "Basic connection check failed: %s", failure.kind, extra={"status": failure.status}
        )
        return ConnectionValidationResult(steps=steps, failure=failure)

    advance(server_url=StepStatus.OK, token=StepStatus.OK, version=info.version)
    result = ConnectionValidationResult(steps=steps, version=info.version)

    # Phase B: repository discovery, never fatal
    cancel.raise_if_cancelled()
    log.debug("Listing repositories", extra={"diagnostic_tag": "probe", "phase": "repositories"})
    try:
        listed = await cancel.guard(
            service.list_repositories(settings.server_url, settings.token, cancel)
        )
        result.repositories = clean_repository_names(listed)
    except OperationCancelled:
        raise
    except Exception as e:
        listing_failure = map_failure(e)
        if listing_failure.is_cancelled:
            raise OperationCancelled(str(e)) from e
        log.warning("Repository listing failed: %s", listing_failure.kind)
        result.repositories = []
        result.warnings.append(HINT_REPOSITORIES_UNAVAILABLE)

    if not settings.repository:
        result.steps = steps
        return result

    # Phase C: confirm the selected repository
    cancel.raise_if_cancelled()
    log.debug(
        "Confirming repository %s",
        settings.repository,
        extra={"diagnostic_tag": "probe", "phase": "repository"},
    )
    if result.repositories:
        exists = settings.repository in result.repositories
    else:
        try:
            exists = await cancel.guard(
                service.repository_exists(
                    settings.server_url, settings.token, settings.repository, cancel
                )
            )
        except OperationCancelled:
            raise
        except Exception as e:
            failure = map_failure(e)
            if failure.is_cancelled:
                raise OperationCancelled(str(e)) from e
            if failure.kind == ErrorKind.UNAUTHORIZED:
                advance(repository=StepStatus.SKIP)
                result.warnings.append(REPOSITORY_NOT_ACCESSIBLE)
                result.steps = steps
                return result
            advance(repository=StepStatus.FAIL)
            result.steps = steps
            result.failure = replace(failure, field=FieldName.REPOSITORY)
            return result

    if exists:
        advance(repository=StepStatus.OK)
    else:
        advance(repository=StepStatus.FAIL)
        result.failure = FailureOutcome(
            kind=ErrorKind.REPOSITORY_NOT_FOUND,
            field=FieldName.REPOSITORY,
            message=message_key_for(ErrorKind.REPOSITORY_NOT_FOUND),
        )
    result.steps = steps
    return result


__all__ = [
    "ConnectionValidationResult",
    "FlowService",
    "ProgressCallback",
    "ServerInfo",
    "clean_repository_names",
    "validate_connection",
]
