# src/taskflow/core/session.py

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from ..tasks.attachments import PendingFile, create_task
from ..tasks.task_models import Owner, TaskDraft
from ..tasks.task_store import TaskStore
from ..tasks.task_views import DerivedViews
from ..team.profile_store import ProfileStore
from ..team.roster import TeamRoster
from ..tracking.session_machine import TimeTracker
from ..tracking.time_logs import TimeLogFeed
from .ports import AttachmentStorage, AuthUser, RemoteCollection

logger = logging.getLogger(__name__)


@dataclass
class UserSession:
    """
    Everything that lives exactly as long as one signed-in user.

    Created on sign-in (subscriptions started), closed on sign-out (subscriptions
    cancelled, timer tick stopped). Nothing here outlives close().
    """

    user: AuthUser
    tasks: TaskStore
    views: DerivedViews
    tracker: TimeTracker
    time_logs: TimeLogFeed
    storage: AttachmentStorage
    team: TeamRoster | None = field(default=None)
    profile: ProfileStore | None = field(default=None)
    closed: bool = field(default=False)

    @classmethod
    def open(
        cls,
        user: AuthUser,
        *,
        tasks_collection: RemoteCollection,
        logs_collection: RemoteCollection,
        storage: AttachmentStorage,
        members_collection: RemoteCollection | None = None,
        profiles_collection: RemoteCollection | None = None,
        settings: Any = None,
    ) -> UserSession:
        if not user.uid:
            raise ValueError("cannot open a session without a user id")

        owner = Owner(user_id=user.uid, email=user.email)
        tasks = TaskStore(tasks_collection, owner)
        views = DerivedViews(tasks)
        tracker = TimeTracker(
            logs_collection,
            owner,
            tasks.get,
            tick_seconds=float(getattr(settings, "tick_seconds", 1.0)),
            min_session_ms=int(getattr(settings, "min_session_ms", 1000)),
        )
        time_logs = TimeLogFeed(logs_collection, user.uid)
        team = None
        if members_collection is not None:
            team = TeamRoster(members_collection, str(getattr(settings, "team_id", "default") or "default"))
        profile = ProfileStore(profiles_collection, user) if profiles_collection is not None else None

        session = cls(
            user=user,
            tasks=tasks,
            views=views,
            tracker=tracker,
            time_logs=time_logs,
            storage=storage,
            team=team,
            profile=profile,
        )
        tasks.start()
        time_logs.start()
        if team is not None:
            team.start()
        logger.info("Session opened user=%s", user.uid)
        return session

    async def add_task(self, draft: TaskDraft, file: PendingFile | None = None) -> str:
        return await create_task(self.tasks, self.storage, draft, file)

    async def join(self) -> None:
        """
        Register the user on the team roster and load their profile.

        Done once after sign-in; remote failures are passed to the caller.
        """
        if self.team is not None:
            await self.team.register(self.user)
        if self.profile is not None:
            await self.profile.load()

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self.tracker.close()
        self.tasks.close()
        self.time_logs.close()
        if self.team is not None:
            self.team.close()
        logger.info("Session closed user=%s", self.user.uid)
