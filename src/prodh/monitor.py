"""Live process and port monitoring for prodh."""

import asyncio
import logging
from dataclasses import replace
from datetime import datetime
from enum import Enum

from prodh.models import MonitorSnapshot
from prodh.ports import observe_ports
from prodh.query import ProcessQuery

logger = logging.getLogger(__name__)

MIN_INTERVAL = 0.1


class MonitorState(Enum):
    """Lifecycle states of the process monitor."""

    IDLE = "idle"
    REFRESHING = "refreshing"
    DISPLAYING = "displaying"
    STOPPED = "stopped"


class ProcessMonitor:
    """
    View model that keeps a MonitorSnapshot fresh for a fixed set of ports.

    Runs on the caller's asyncio event loop. A refresh is issued right away on
    start() and then once per interval tick until stop(). A tick that fires
    while a refresh is still in flight is skipped, so refreshes never pile up
    behind a slow query.
    """

    def __init__(
        self,
        ports: list[int],
        query: ProcessQuery,
        interval: float = 5.0,
    ) -> None:
        """
        Initialize the ProcessMonitor.

        Args:
            ports: Ports of interest, fixed for the monitor's lifetime.
            query: Query layer used for process listing and port checks.
            interval: Seconds between scheduled refreshes. Default 5.0s.
        """
        self._ports = list(dict.fromkeys(ports))
        self._query = query
        self._interval = max(MIN_INTERVAL, interval)
        self._snapshot = MonitorSnapshot.empty(self._ports)
        self._state = MonitorState.IDLE
        self._ticker: asyncio.Task[None] | None = None
        self._refreshes: set[asyncio.Task[MonitorSnapshot]] = set()
        # Refreshes still running, per generation
        self._in_flight: dict[int, int] = {}
        # Bumped on stop() so late refresh results can be recognised
        self._generation = 0

    @property
    def interval(self) -> float:
        """Get the refresh interval."""
        return self._interval

    @interval.setter
    def interval(self, value: float) -> None:
        """Set the refresh interval, applied from the next tick."""
        self._interval = max(MIN_INTERVAL, value)

    @property
    def ports(self) -> list[int]:
        """Get the monitored ports."""
        return list(self._ports)

    @property
    def snapshot(self) -> MonitorSnapshot:
        """Get the latest published snapshot."""
        return self._snapshot

    @property
    def state(self) -> MonitorState:
        """Get the current lifecycle state."""
        return self._state

    @property
    def is_running(self) -> bool:
        """Check if scheduled refreshes are active."""
        return self._ticker is not None and not self._ticker.done()

    @property
    def pending_refreshes(self) -> int:
        """Get the number of refreshes scheduled by the loop and not yet finished."""
        return len(self._refreshes)

    def start(self) -> None:
        """
        Start monitoring with an immediate refresh.

        Must be called from a running event loop. Starting a running monitor
        does nothing.
        """
        if self.is_running:
            return

        self._state = MonitorState.IDLE
        self._schedule_refresh()
        self._ticker = asyncio.create_task(self._tick_loop(), name="ProcessMonitor")
        logger.info("Started process monitor for ports %s (interval: %ss)", self._ports, self._interval)

    def stop(self) -> None:
        """
        Stop scheduled refreshes.

        Refreshes already in flight run to completion, but their results are
        not published.
        """
        self._generation += 1
        self._state = MonitorState.STOPPED
        if self._ticker is not None:
            self._ticker.cancel()
            self._ticker = None
        if self._snapshot.is_refreshing:
            self._snapshot = replace(self._snapshot, is_refreshing=False)
        logger.info("Stopped process monitor")

    async def refresh(self) -> MonitorSnapshot:
        """
        Run one refresh cycle and publish its snapshot.

        The process listing and the port checks run concurrently and are
        published together. The snapshot is returned but not published if the
        monitor was stopped before or during the cycle.
        """
        generation = self._generation
        self._begin_refresh(generation)
        try:
            processes, port_observations = await asyncio.gather(
                self._query.list_processes(),
                observe_ports(self._ports, self._query),
                return_exceptions=True,
            )
        finally:
            self._end_refresh(generation)

        if isinstance(processes, BaseException):
            logger.debug("Process listing failed: %r", processes)
            processes = []
        if isinstance(port_observations, BaseException):
            logger.debug("Port reconciliation failed: %r", port_observations)
            port_observations = {port: False for port in self._ports}

        snapshot = MonitorSnapshot(
            processes=tuple(processes),
            port_observations=port_observations,
            captured_at=datetime.now(),
            is_refreshing=self._in_flight.get(generation, 0) > 0,
        )

        if generation != self._generation or self._state is MonitorState.STOPPED:
            logger.debug("Discarding refresh that finished after stop")
            return snapshot

        self._snapshot = snapshot
        self._state = MonitorState.REFRESHING if snapshot.is_refreshing else MonitorState.DISPLAYING
        return snapshot

    def _begin_refresh(self, generation: int) -> None:
        self._in_flight[generation] = self._in_flight.get(generation, 0) + 1
        if generation == self._generation and self._state is not MonitorState.STOPPED:
            self._state = MonitorState.REFRESHING
            if not self._snapshot.is_refreshing:
                self._snapshot = replace(self._snapshot, is_refreshing=True)

    def _end_refresh(self, generation: int) -> None:
        remaining = self._in_flight[generation] - 1
        if remaining:
            self._in_flight[generation] = remaining
        else:
            del self._in_flight[generation]

    def _current_in_flight(self) -> int:
        """Get the number of refreshes of the current generation still running."""
        return self._in_flight.get(self._generation, 0)

    def _schedule_refresh(self) -> None:
        task = asyncio.create_task(self.refresh())
        self._refreshes.add(task)
        task.add_done_callback(self._refreshes.discard)

    async def _tick_loop(self) -> None:
        """Issue a refresh every interval until cancelled."""
        while True:
            await asyncio.sleep(self._interval)
            if self._current_in_flight():
                logger.debug("Skipping tick, previous refresh still in flight")
                continue
            self._schedule_refresh()
