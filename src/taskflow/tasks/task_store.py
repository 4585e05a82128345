# src/taskflow/tasks/task_store.py

from __future__ import annotations

import logging
import time
from collections.abc import Callable

from ..core.errors import NotFoundError
from ..core.live import Listener, LiveSnapshot
from ..core.ports import RemoteCollection
from .task_models import (
    Attachment,
    Owner,
    Task,
    TaskDraft,
    TaskStatus,
    draft_to_record,
    task_from_record,
    task_sort_key,
)

logger = logging.getLogger(__name__)


class TaskStore:
    """
    Live, ordered view of the current user's tasks.

    Reads:
    - current_tasks() returns the tuple built from the latest snapshot
      (created_at descending, ties by id). A new tuple per snapshot, never edited in place.

    Writes:
    - add / toggle_status / remove only talk to the remote collection.
      The local set changes when the resulting snapshot arrives (no optimistic overlay).

    Failure:
    - a stream error keeps the last good snapshot and flags `degraded`.
    """

    def __init__(
        self,
        collection: RemoteCollection,
        owner: Owner,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._collection = collection
        self._owner = owner
        self._clock = clock
        self._last_created_at = 0.0
        self._live: LiveSnapshot[Task] = LiveSnapshot(
            collection,
            owner.user_id,
            parse=task_from_record,
            sort_key=task_sort_key,
        )

    @property
    def owner(self) -> Owner:
        return self._owner

    # ---- lifecycle ----

    def start(self) -> None:
        self._live.start()
        logger.info("TaskStore started owner=%s", self._owner.user_id)

    def close(self) -> None:
        self._live.close()
        logger.info("TaskStore closed owner=%s", self._owner.user_id)

    def resubscribe(self) -> None:
        logger.info("TaskStore resubscribing owner=%s", self._owner.user_id)
        self._live.resubscribe()

    @property
    def active(self) -> bool:
        return self._live.active

    # ---- reads ----

    def current_tasks(self) -> tuple[Task, ...]:
        return self._live.items

    def get(self, task_id: str) -> Task | None:
        for task in self._live.items:
            if task.id == task_id:
                return task
        return None

    @property
    def version(self) -> int:
        return self._live.version

    @property
    def degraded(self) -> bool:
        return self._live.degraded

    @property
    def last_error(self) -> Exception | None:
        return self._live.last_error

    def add_listener(self, listener: Listener) -> Callable[[], None]:
        return self._live.add_listener(listener)

    # ---- writes ----

    def _next_created_at(self) -> float:
        # Strictly increasing per writer even if the wall clock stalls or steps back.
        now = self._clock()
        if now <= self._last_created_at:
            now = self._last_created_at + 0.001
        self._last_created_at = now
        return now

    async def add(self, draft: TaskDraft, attachment: Attachment | None = None) -> str:
        if not draft.title or not draft.title.strip():
            raise ValueError("title is required")
        if (
            draft.start_time is not None
            and draft.end_time is not None
            and draft.end_time < draft.start_time
        ):
            raise ValueError("end_time must not be before start_time")

        record = draft_to_record(
            draft,
            owner=self._owner,
            created_at=self._next_created_at(),
            attachment=attachment,
        )
        task_id = await self._collection.create(record)
        logger.info(
            "Task added id=%s category=%s priority=%s attachment=%s",
            task_id,
            draft.category.value,
            draft.priority.value,
            bool(attachment),
        )
        return task_id

    async def toggle_status(self, task_id: str) -> TaskStatus:
        """
        Flip pending <-> completed and set/clear completed_at accordingly.

        Returns the status that was written. The local snapshot reflects it once
        the collection pushes the next notification.
        """
        task = self.get(task_id)
        if task is None:
            raise NotFoundError(task_id, self._collection.name)

        new_status = task.status.toggled()
        completed_at = self._clock() if new_status is TaskStatus.COMPLETED else None
        await self._collection.update(
            task_id,
            {"status": new_status.value, "completed_at": completed_at},
            owner_id=self._owner.user_id,
        )
        logger.info("Task %s -> %s", task_id, new_status.value)
        return new_status

    async def remove(self, task_id: str) -> None:
        """Delete one of this owner's tasks. Ids owned by anyone else are left untouched."""
        await self._collection.delete(task_id, owner_id=self._owner.user_id)
        logger.info("Task removed id=%s", task_id)
