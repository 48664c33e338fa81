"""
Continuous service monitoring with periodic re-polling.
"""

from __future__ import annotations

import asyncio
from enum import Enum
from typing import Awaitable, Callable, List, Optional

from loguru import logger

from devscope.core.models import ServiceRecord

ServiceFetch = Callable[[], Awaitable[List[ServiceRecord]]]
ServiceListener = Callable[[List[ServiceRecord]], None]
ErrorListener = Callable[[Exception], None]

DEFAULT_INTERVAL_MS = 5000


class PollerState(str, Enum):
    IDLE = "idle"
    POLLING = "polling"


class ServicePoller:
    """
    Re-fetch the running-services list on a fixed interval.

    At most one background task exists at any time. Every start() opens a
    new generation and every stop() closes it; a fetch that completes for a
    closed generation is discarded, so nothing is published after stop()
    returns.
    """

    def __init__(
        self,
        fetch: ServiceFetch,
        interval_ms: int = DEFAULT_INTERVAL_MS,
        on_error: Optional[ErrorListener] = None,
    ):
        """
        Initialize the poller.

        Args:
            fetch: Coroutine function returning the current service list
            interval_ms: Delay between poll cycles in milliseconds
            on_error: Optional callback for fetch failures during polling
        """
        self.fetch = fetch
        self.interval_ms = interval_ms
        self.on_error = on_error
        self.state = PollerState.IDLE
        self.fetch_count = 0
        self._generation = 0
        self._task: Optional[asyncio.Task] = None
        self._listeners: List[ServiceListener] = []

    @property
    def is_polling(self) -> bool:
        return self.state is PollerState.POLLING

    def add_listener(self, listener: ServiceListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: ServiceListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    async def start(self) -> None:
        """
        Begin polling: fetch once now, then every interval_ms.

        Calling start() while already polling does nothing.
        """
        if self.state is PollerState.POLLING:
            return

        self.state = PollerState.POLLING
        self._generation += 1
        generation = self._generation
        logger.debug(f"Service polling started (every {self.interval_ms}ms)")

        try:
            await self._poll_once(generation)
        except BaseException:
            # cancelled, or on_error raised: POLLING without a task is not allowed
            if generation == self._generation:
                self.state = PollerState.IDLE
                self._generation += 1
            raise

        # stop() may have been called while the first fetch was in flight
        if generation != self._generation:
            return
        self._task = asyncio.get_running_loop().create_task(self._run(generation))

    def stop(self) -> None:
        """Stop polling. Safe to call when already idle."""
        if self.state is PollerState.IDLE:
            return

        self.state = PollerState.IDLE
        self._generation += 1
        if self._task is not None:
            self._task.cancel()
            self._task = None
        logger.debug("Service polling stopped")

    async def refresh(self) -> List[ServiceRecord]:
        """
        One-shot fetch that notifies listeners without touching the state.

        Unlike a poll cycle, a failed manual refresh propagates to the caller.
        """
        self.fetch_count += 1
        services = await self.fetch()
        self._notify(services)
        return services

    async def _run(self, generation: int) -> None:
        while generation == self._generation:
            await asyncio.sleep(self.interval_ms / 1000)
            if generation != self._generation:
                break
            await self._poll_once(generation)

    async def _poll_once(self, generation: int) -> None:
        self.fetch_count += 1
        try:
            services = await self.fetch()
        except Exception as e:
            logger.warning(f"Service poll failed: {e}")
            if self.on_error is not None and generation == self._generation:
                self.on_error(e)
            return

        if generation == self._generation:
            self._notify(services)

    def _notify(self, services: List[ServiceRecord]) -> None:
        for listener in list(self._listeners):
            try:
                listener(services)
            except Exception as e:
                logger.warning(f"Service listener failed: {e}")
