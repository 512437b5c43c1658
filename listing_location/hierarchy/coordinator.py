"""Generation counters that void superseded asynchronous responses."""

import asyncio
import logging
from collections import defaultdict
from collections.abc import Awaitable, Callable
from typing import Generic, TypeVar

from listing_location.metrics import STALE_RESPONSES_DISCARDED

logger = logging.getLogger(__name__)

R = TypeVar("R")


class RequestCoordinator:
    """Per-key monotonically increasing generation counters.

    Every mutating request calls :meth:`issue` and keeps the returned token.
    When its response arrives it is applied only if :meth:`accept` still
    recognizes the token. Superseded responses are dropped quietly; they
    are routine, not failures.
    """

    def __init__(self) -> None:
        self._generations: defaultdict[str, int] = defaultdict(int)

    def issue(self, key: str) -> int:
        """Start a new request generation for ``key`` and return its token."""
        self._generations[key] += 1
        return self._generations[key]

    def current(self, key: str) -> int:
        return self._generations[key]

    def is_current(self, key: str, token: int) -> bool:
        return self._generations[key] == token

    def invalidate(self, key: str) -> None:
        """Void any in-flight request for ``key`` without starting a new one."""
        self.issue(key)

    def accept(self, key: str, token: int) -> bool:
        """Check a response token, recording it as discarded when stale."""
        if self.is_current(key, token):
            return True
        logger.debug(
            f"Discarding stale {key} response (generation {token}, "
            f"current {self._generations[key]})"
        )
        STALE_RESPONSES_DISCARDED.labels(level=key).inc()
        return False


class Debouncer(Generic[R]):
    """Re-armable delay in front of a fetch, guarded by a generation token.

    Each :meth:`schedule` call re-arms the timer. Only the fetch belonging to
    the most recent call may apply its result; earlier timers wake up, see
    they were superseded and exit without fetching.
    """

    def __init__(self, coordinator: RequestCoordinator, key: str, delay: float) -> None:
        """Initialize the debouncer.

        Args:
            coordinator: Generation counters shared with the owning store
            key: Coordinator key for this input
            delay: Quiet period in seconds before the fetch runs
        """
        self.coordinator = coordinator
        self.key = key
        self.delay = delay
        self._tasks: set[asyncio.Task[bool]] = set()

    def schedule(
        self,
        fetch: Callable[[], Awaitable[R]],
        apply: Callable[[R], None],
    ) -> "asyncio.Task[bool]":
        """Arm the timer for a new fetch.

        Returns:
            Task resolving to True if this call's result was applied
        """
        token = self.coordinator.issue(self.key)
        task = asyncio.create_task(self._run(token, fetch, apply))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def cancel(self) -> None:
        """Void the pending timer and any in-flight fetch."""
        self.coordinator.invalidate(self.key)

    async def _run(
        self,
        token: int,
        fetch: Callable[[], Awaitable[R]],
        apply: Callable[[R], None],
    ) -> bool:
        await asyncio.sleep(self.delay)
        if not self.coordinator.is_current(self.key, token):
            return False

        result = await fetch()
        if not self.coordinator.accept(self.key, token):
            return False

        apply(result)
        return True
