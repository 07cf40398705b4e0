"""Connection test orchestration.

``ConnectionOrchestrator.test_connection`` is the state machine behind the
"Test connection" button: it supersedes any running test, validates and
sanitizes the inputs, runs the three-phase probe, and writes the outcome
into ``SettingsState``.

Every state write is preceded by a liveness check of the run's
cancellation token, so a superseded or torn-down run never touches state
after a newer run has started.
"""

from __future__ import annotations

from fmeconnect.cancellation import CancellationScope, CancellationToken, OperationCancelled
from fmeconnect.logging import get_logger
from fmeconnect.messages import (
    CONNECTION_OK,
    CONNECTION_OK_REPOSITORY_WARNING,
    FIX_ERRORS_ABOVE,
    REPOSITORY_NOT_ACCESSIBLE,
    TESTING_CONNECTION,
)
from fmeconnect.probe import ConnectionValidationResult, FlowService, validate_connection
from fmeconnect.sanitizer import sanitize_server_url
from fmeconnect.state import CheckSteps, ConnectionSettings, SettingsState, TestState
from fmeconnect.store import ConfigStore
from fmeconnect.types import FieldName
from fmeconnect.validation import validate_connection_inputs

logger = get_logger(__name__)


class ConnectionOrchestrator:
    """Runs connection tests for one settings panel.

    Only one test is in flight at a time; starting a test cancels the
    previous one. Tests run independently of repository loads.
    """

    def __init__(
        self,
        state: SettingsState,
        service: FlowService,
        store: ConfigStore,
        *,
        require_https: bool = False,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            state: State container to write results into.
            service: Remote operations used by the probe.
            store: Settings store the sanitized values are persisted to.
            require_https: Reject plain ``http://`` URLs during validation.
        """
        self.state = state
        self.service = service
        self.store = store
        self.require_https = require_https
        self._scope = CancellationScope("connection")

    @property
    def is_running(self) -> bool:
        return self.state.test.is_testing

    def cancel(self) -> None:
        """Cancel the in-flight test, if any."""
        self._scope.cancel()

    async def test_connection(self, silent: bool = False) -> ConnectionValidationResult | None:
        """Test the connection described by the current form values.

        Args:
            silent: Background re-validation; banner messages are suppressed
                but steps, field errors and repositories are still updated.

        Returns:
            The probe outcome, or None if the inputs were invalid or the run
            was superseded.
        """
        cancel = self._scope.renew()
        state = self.state
        sanitized = sanitize_server_url(state.server_url)

        validation = validate_connection_inputs(
            sanitized.cleaned if sanitized.valid else state.server_url,
            state.token,
            state.repository,
            state.available_repos,
            skip_repository_check=True,
            require_https=self.require_https,
        )
        for field_name in (FieldName.SERVER_URL, FieldName.TOKEN):
            state.field_errors.set(field_name, validation.message_keys().get(field_name))
        if validation.has_errors:
            logger.info(
                "Connection test blocked by invalid input: %s", sorted(validation.field_errors)
            )
            state.steps = CheckSteps()
            state.test = TestState.error(None if silent else FIX_ERRORS_ABOVE)
            self._scope.release(cancel)
            return None

        if sanitized.changed:
            state.server_url = sanitized.cleaned
            self.store.persist(FieldName.SERVER_URL, sanitized.cleaned)

        settings = ConnectionSettings.create(state.server_url, state.token, state.repository)
        if settings is None:
            state.steps = CheckSteps()
            state.test = TestState.error(None if silent else FIX_ERRORS_ABOVE)
            self._scope.release(cancel)
            return None

        state.test = TestState.running(None if silent else TESTING_CONNECTION)
        state.steps = CheckSteps.armed(bool(settings.repository))

        try:
            result = await validate_connection(
                self.service,
                settings,
                cancel,
                on_progress=lambda steps: self._write_steps(cancel, steps),
            )
        except OperationCancelled:
            logger.debug(
                "Connection test generation %s cancelled",
                cancel.generation,
                extra={"diagnostic_tag": "probe"},
            )
            return None

        if not self._scope.is_current(cancel):
            return None
        self._apply_result(settings, result, silent)
        self._scope.release(cancel)
        return result

    def _write_steps(self, cancel: CancellationToken, steps: CheckSteps) -> None:
        if self._scope.is_current(cancel):
            self.state.steps = steps

    def _apply_result(
        self, settings: ConnectionSettings, result: ConnectionValidationResult, silent: bool
    ) -> None:
        state = self.state
        state.steps = result.steps
        if result.repositories is not None:
            state.available_repos = list(result.repositories)

        for field_name in FieldName.connection_fields():
            state.field_errors.set(field_name, None)

        log = logger.with_context(server_url=settings.server_url, repository=settings.repository)
        failure = result.failure
        if failure is None:
            self.store.persist(FieldName.SERVER_URL, settings.server_url)
            self.store.persist(FieldName.TOKEN, settings.token)
            state.repository_hint = result.warnings[0] if result.warnings else None
            message = (
                CONNECTION_OK_REPOSITORY_WARNING
                if REPOSITORY_NOT_ACCESSIBLE in result.warnings
                else CONNECTION_OK
            )
            state.test = TestState.success(None if silent else message)
            log.info("Connection test succeeded (version %s)", result.version or "unknown")
            return

        if failure.field is not None:
            state.field_errors.set(failure.field, failure.message)
        if result.warnings:
            state.repository_hint = result.warnings[0]
        state.test = TestState.error(None if silent else failure.message)
        log.warning(
            "Connection test failed: %s",
            failure.kind,
            extra={"status": failure.status, "error_kind": failure.kind.value},
        )


__all__ = ["ConnectionOrchestrator"]
