# src/taskflow/tracking/time_logs.py

from __future__ import annotations

import logging
from collections.abc import Callable

from ..core.live import Listener, LiveSnapshot
from ..core.ports import RemoteCollection
from ..tasks.task_models import TimeLog, time_log_from_record, time_log_sort_key

logger = logging.getLogger(__name__)


def format_duration(ms: int) -> str:
    """HH:MM:SS; hours are not wrapped at 24."""
    total_s = max(0, int(ms)) // 1000
    hours, rem = divmod(total_s, 3600)
    minutes, seconds = divmod(rem, 60)
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}"


class TimeLogFeed:
    """Recent activity: the user's saved time logs, newest first. Read-only."""

    def __init__(self, collection: RemoteCollection, owner_id: str) -> None:
        self._owner_id = owner_id
        self._live: LiveSnapshot[TimeLog] = LiveSnapshot(
            collection,
            owner_id,
            parse=time_log_from_record,
            sort_key=time_log_sort_key,
        )

    def start(self) -> None:
        self._live.start()

    def close(self) -> None:
        self._live.close()

    def resubscribe(self) -> None:
        self._live.resubscribe()

    @property
    def active(self) -> bool:
        return self._live.active

    def logs(self) -> tuple[TimeLog, ...]:
        return self._live.items

    @property
    def degraded(self) -> bool:
        return self._live.degraded

    @property
    def version(self) -> int:
        return self._live.version

    def add_listener(self, listener: Listener) -> Callable[[], None]:
        return self._live.add_listener(listener)

    def total_ms(self, task_id: str | None = None) -> int:
        """Sum of logged durations, optionally for one task."""
        return sum(
            log.duration_ms for log in self._live.items if task_id is None or log.task_id == task_id
        )
