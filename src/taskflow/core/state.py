# src/taskflow/core/state.py

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from .ports import AttachmentStorage, AuthUser, RemoteCollection
from .session import UserSession

logger = logging.getLogger(__name__)


@dataclass
class AppState:
    """
    Process-wide wiring: settings, the remote collections (tasks, time logs,
    team members, profiles), attachment storage and at most one live UserSession.
    """

    # Store Settings on the state for easy access in other modules later.
    settings: Any

    tasks_collection: RemoteCollection
    logs_collection: RemoteCollection
    storage: AttachmentStorage
    members_collection: RemoteCollection | None = field(default=None)
    profiles_collection: RemoteCollection | None = field(default=None)

    session: UserSession | None = field(default=None)

    def sign_in(self, user: AuthUser) -> UserSession:
        """Open the session for user (closing any previous one first)."""
        if self.session is not None:
            logger.info("Replacing session user=%s -> %s", self.session.user.uid, user.uid)
            self.sign_out()
        self.session = UserSession.open(
            user,
            tasks_collection=self.tasks_collection,
            logs_collection=self.logs_collection,
            storage=self.storage,
            members_collection=self.members_collection,
            profiles_collection=self.profiles_collection,
            settings=self.settings,
        )
        return self.session

    def sign_out(self) -> None:
        session, self.session = self.session, None
        if session is not None:
            session.close()

    def require_session(self) -> UserSession:
        if self.session is None:
            raise RuntimeError("Not signed in")
        return self.session
