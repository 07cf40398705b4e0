"""Cancellation tokens for superseding in-flight operations.

Each cancellation domain (connection tests, repository loads) owns a
``CancellationScope``. Starting a run calls ``scope.renew()``, which
cancels the previous run's token and hands out a fresh one stamped with
the next generation number. Before committing any state write, a run asks
``scope.is_current(token)``; a superseded run sees False and stays silent.

Usage:
    scope = CancellationScope("connection")
    token = scope.renew()
    info = await token.guard(client.basic_connection_check(url, tok, token))
    if scope.is_current(token):
        state.version = info.version
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable
from typing import TypeVar

from fmeconnect.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class OperationCancelled(Exception):
    """Raised inside a run whose cancellation token has been cancelled."""


class CancellationToken:
    """A one-shot cancellation signal for a single run.

    Attributes:
        generation: Generation number assigned by the owning scope.
    """

    def __init__(self, generation: int = 0) -> None:
        self.generation = generation
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        """True once :meth:`cancel` has been called."""
        return self._event.is_set()

    def cancel(self) -> None:
        """Cancel the token. Idempotent."""
        self._event.set()

    def raise_if_cancelled(self) -> None:
        """Raise OperationCancelled if the token has been cancelled."""
        if self.cancelled:
            raise OperationCancelled(f"generation {self.generation} cancelled")

    async def guard(self, awaitable: Awaitable[T]) -> T:
        """Await an operation, abandoning it as soon as the token is cancelled.

        The wrapped operation runs as its own task and is cancelled when the
        token fires, so a request stuck on the network does not keep a
        superseded run alive.

        Args:
            awaitable: The operation to await.

        Returns:
            The operation's result.

        Raises:
            OperationCancelled: If the token was cancelled before the
                operation finished.
        """
        if self.cancelled:
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            self.raise_if_cancelled()
        task = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            waiter.cancel()
            if not task.done():
                task.cancel()
                await asyncio.gather(task, return_exceptions=True)

        # A result that lands together with the cancel is still discarded
        self.raise_if_cancelled()
        return task.result()


class CancellationScope:
    """Owns the current token of one cancellation domain.

    Attributes:
        name: Domain name, used in log messages.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._generation = 0
        self._current: CancellationToken | None = None

    @property
    def generation(self) -> int:
        """Generation number of the most recently issued token."""
        return self._generation

    def renew(self) -> CancellationToken:
        """Cancel the current token and issue a new one.

        Returns:
            The fresh token for the new run.
        """
        if self._current is not None and not self._current.cancelled:
            logger.debug(
                "Superseding %s run generation %s",
                self.name,
                self._current.generation,
                extra={"diagnostic_tag": "probe"},
            )
            self._current.cancel()
        self._generation += 1
        self._current = CancellationToken(self._generation)
        return self._current

    def is_current(self, token: CancellationToken) -> bool:
        """Check that a token is live and still the scope's current token.

        Args:
            token: The token to check.

        Returns:
            True if state writes from the token's run may be committed.
        """
        return token is self._current and not token.cancelled

    def cancel(self) -> None:
        """Cancel the current token without issuing a new one."""
        if self._current is not None:
            self._current.cancel()

    def release(self, token: CancellationToken) -> None:
        """Forget a finished run's token if it is still the current one.

        Args:
            token: Token of the run that just finished.
        """
        if token is self._current:
            self._current = None


__all__ = ["CancellationScope", "CancellationToken", "OperationCancelled"]
