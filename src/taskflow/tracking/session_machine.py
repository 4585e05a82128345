# src/taskflow/tracking/session_machine.py

"""
Time-tracking session machine.

    idle --start--> running --pause--> paused --save--> idle
      ^                |  ^              |
      |                |  +----start-----+
      +-----reset------+-----------------+

Elapsed time is always derived from clock instants (anchor = now - accumulated).
The periodic tick only refreshes `display_elapsed_ms` for whoever renders it;
that value is never persisted.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from enum import StrEnum

from ..core.errors import InvalidTransition, NoTaskSelected, SessionTooShort
from ..core.ports import RemoteCollection
from ..tasks.task_models import Owner, Task, TimeLog

logger = logging.getLogger(__name__)

UNKNOWN_TASK_TITLE = "Unknown Task"
MIN_SESSION_MS = 1000


class TrackerState(StrEnum):
    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"


TickCallback = Callable[[int], None]


class TimeTracker:
    def __init__(
        self,
        time_logs: RemoteCollection,
        owner: Owner,
        task_lookup: Callable[[str], Task | None],
        *,
        tick_seconds: float = 1.0,
        min_session_ms: int = 1000,
        clock: Callable[[], float] = time.monotonic,
        wall_clock: Callable[[], float] = time.time,
        on_tick: TickCallback | None = None,
    ) -> None:
        self._time_logs = time_logs
        self._owner = owner
        self._task_lookup = task_lookup
        self._tick_s = max(0.01, float(tick_seconds))
        # TimeLog durations are at least one second; config may only raise the bar.
        self._min_session_ms = max(MIN_SESSION_MS, int(min_session_ms))
        self._clock = clock
        self._wall_clock = wall_clock
        self._on_tick = on_tick

        self._state = TrackerState.IDLE
        self._selected_task_id: str | None = None
        self._anchor: float | None = None  # clock() value at which elapsed would be 0
        self._frozen_ms = 0
        self._display_ms = 0
        self._ticker: asyncio.Task[None] | None = None

    # ---- read side ----

    @property
    def state(self) -> TrackerState:
        return self._state

    @property
    def selected_task_id(self) -> str | None:
        return self._selected_task_id

    @property
    def elapsed_ms(self) -> int:
        """Authoritative elapsed time, computed from instants."""
        if self._state is TrackerState.RUNNING and self._anchor is not None:
            return max(0, int(round((self._clock() - self._anchor) * 1000)))
        return self._frozen_ms

    @property
    def display_elapsed_ms(self) -> int:
        """Last value published by the tick (display only)."""
        return self._display_ms

    @property
    def ticking(self) -> bool:
        return self._ticker is not None and not self._ticker.done()

    # ---- transitions ----

    def select_task(self, task_id: str | None) -> None:
        if self._state is TrackerState.RUNNING:
            raise InvalidTransition("Pause the timer before switching tasks")
        self._selected_task_id = task_id or None
        logger.debug("Tracker selected task=%s", self._selected_task_id)

    def start(self) -> None:
        if self._selected_task_id is None:
            raise NoTaskSelected()
        if self._state is TrackerState.RUNNING:
            return

        # Raises outside an event loop; nothing is changed until it succeeds.
        loop = asyncio.get_running_loop()

        # Resume from the accumulated value instead of zero.
        self._anchor = self._clock() - self._frozen_ms / 1000.0
        self._state = TrackerState.RUNNING
        self._ticker = loop.create_task(self._tick_loop())
        logger.info("Tracker running task=%s from=%dms", self._selected_task_id, self._frozen_ms)

    def pause(self) -> None:
        if self._state is not TrackerState.RUNNING:
            return
        self._frozen_ms = self.elapsed_ms
        self._display_ms = self._frozen_ms
        self._anchor = None
        self._state = TrackerState.PAUSED
        self._stop_ticker()
        logger.info("Tracker paused task=%s elapsed=%dms", self._selected_task_id, self._frozen_ms)

    def reset(self) -> None:
        self._stop_ticker()
        self._anchor = None
        self._frozen_ms = 0
        self._display_ms = 0
        self._state = TrackerState.IDLE
        logger.debug("Tracker reset")

    async def save(self) -> TimeLog:
        """
        Persist the paused session as a TimeLog, then reset to idle.

        Preconditions are checked before any remote call:
        - running -> InvalidTransition (pause first; never auto-paused)
        - no task -> NoTaskSelected
        - elapsed below minimum -> SessionTooShort (elapsed kept)
        A failed write leaves the machine paused with its elapsed value.
        """
        if self._state is TrackerState.RUNNING:
            raise InvalidTransition("Pause the timer before saving")
        task_id = self._selected_task_id
        if task_id is None:
            raise NoTaskSelected()
        duration_ms = self._frozen_ms
        if duration_ms < self._min_session_ms:
            raise SessionTooShort(duration_ms, self._min_session_ms)

        task = self._task_lookup(task_id)
        title = task.title if task is not None else UNKNOWN_TASK_TITLE
        saved_at = self._wall_clock()
        record = {
            "owner_id": self._owner.user_id,
            "task_id": task_id,
            "task_title": title,
            "duration_ms": duration_ms,
            "saved_at": saved_at,
        }
        log_id = await self._time_logs.create(record)
        logger.info("Time log saved id=%s task=%s duration=%dms", log_id, task_id, duration_ms)

        self.reset()
        return TimeLog(
            id=log_id,
            owner_id=self._owner.user_id,
            task_id=task_id,
            task_title=title,
            duration_ms=duration_ms,
            saved_at=saved_at,
        )

    def close(self) -> None:
        """Stop ticking for good (sign-out). Elapsed state is left as is."""
        if self._state is TrackerState.RUNNING:
            self.pause()
        self._stop_ticker()

    # ---- tick ----

    def _stop_ticker(self) -> None:
        ticker, self._ticker = self._ticker, None
        if ticker is not None and not ticker.done():
            ticker.cancel()

    async def _tick_loop(self) -> None:
        """Refresh display_elapsed_ms every tick until cancelled."""
        while True:
            await asyncio.sleep(self._tick_s)
            if self._state is not TrackerState.RUNNING:
                return
            self._display_ms = self.elapsed_ms
            if self._on_tick is not None:
                try:
                    self._on_tick(self._display_ms)
                except Exception:
                    logger.exception("Tracker tick callback failed")

