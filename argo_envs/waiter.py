"""
Provides a utility for waiting on multiple cluster resources to become ready.

The waiter polls every pending resource immediately and then once per
interval until all are ready or the timeout elapses. A check that raises is
treated as "not ready yet". A timeout fails the whole wait; there is no
partial success.
"""

import asyncio
from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum
import logging

from .cluster import ClusterHandle, ReadinessCheck
from .exceptions import WaitTimeoutError

__all__ = [
    "ReadinessWaiter",
    "WaitConfig",
    "WaitState",
    "wait_for",
]

_LOGGER = logging.getLogger(__name__)

DEFAULT_INTERVAL_SECONDS = 2.0
DEFAULT_TIMEOUT_SECONDS = 5.0


@dataclass
class WaitConfig:
    """Polling configuration for a wait."""

    interval: float = DEFAULT_INTERVAL_SECONDS
    """Seconds between polls."""

    timeout: float = DEFAULT_TIMEOUT_SECONDS
    """Seconds until the wait fails."""


class WaitState(Enum):
    """Represents the state of a wait."""

    PENDING = "Pending"
    CONVERGED = "Converged"
    TIMED_OUT = "TimedOut"


class ReadinessWaiter:
    """Waits for a set of resources to pass their readiness checks."""

    def __init__(
        self,
        cluster: ClusterHandle,
        checks: Sequence[ReadinessCheck],
        interval: float = DEFAULT_INTERVAL_SECONDS,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        dry_run: bool = False,
    ) -> None:
        """
        Initialize the ReadinessWaiter.

        Args:
            cluster: The cluster handed to every check.
            checks: The resources to wait for.
            interval: Seconds to sleep between polls, the default is used when
                not positive.
            timeout: Seconds until the wait fails, the default is used when not
                positive.
            dry_run: When set the wait converges without running any check.
        """
        self._cluster = cluster
        self._pending: list[ReadinessCheck] = list(checks)
        self._interval = interval if interval > 0 else DEFAULT_INTERVAL_SECONDS
        self._timeout = timeout if timeout > 0 else DEFAULT_TIMEOUT_SECONDS
        self._dry_run = dry_run
        self._state = WaitState.PENDING

    @property
    def state(self) -> WaitState:
        """Return the current state of the wait."""
        return self._state

    @property
    def pending(self) -> list[ReadinessCheck]:
        """Return the resources that have not been observed ready."""
        return list(self._pending)

    async def _poll(self, iteration: int) -> None:
        for check in list(self._pending):
            _LOGGER.debug(
                "[%s] Checking readiness of %s", iteration, check.namespaced_name
            )
            try:
                ready = await check.check(self._cluster)
            except Exception as err:  # pylint: disable=broad-except
                _LOGGER.debug(
                    "[%s] Resource %s not ready: %s", iteration, check.namespaced_name, err
                )
                continue
            if not ready:
                _LOGGER.debug("[%s] Resource %s not ready", iteration, check.namespaced_name)
                continue
            _LOGGER.debug("[%s] Resource %s ready", iteration, check.namespaced_name)
            self._pending.remove(check)

    async def wait(self) -> None:
        """Block until every resource is ready.

        Raises `WaitTimeoutError` with the names of the resources still pending
        when the timeout elapses.
        """
        if self._state != WaitState.PENDING:
            raise ValueError(f"Wait already finished: {self._state.value}")
        if self._dry_run:
            _LOGGER.debug("Running in dry run mode, not waiting")
            self._pending.clear()
            self._state = WaitState.CONVERGED
            return

        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._timeout
        iteration = 0
        while True:
            iteration += 1
            await self._poll(iteration)
            if not self._pending:
                self._state = WaitState.CONVERGED
                return
            if (remaining := deadline - loop.time()) <= 0:
                self._state = WaitState.TIMED_OUT
                raise WaitTimeoutError(
                    [check.namespaced_name for check in self._pending], self._timeout
                )
            await asyncio.sleep(min(self._interval, remaining))


async def wait_for(
    cluster: ClusterHandle,
    checks: Sequence[ReadinessCheck],
    interval: float = DEFAULT_INTERVAL_SECONDS,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
    dry_run: bool = False,
) -> None:
    """Wait for all `checks` to pass, see `ReadinessWaiter`."""
    await ReadinessWaiter(cluster, checks, interval, timeout, dry_run).wait()
