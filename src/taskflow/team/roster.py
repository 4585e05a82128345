# src/taskflow/team/roster.py

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import replace

from ..core.errors import DuplicateMemberError
from ..core.live import Listener, LiveSnapshot
from ..core.ports import AuthUser, RemoteCollection
from .member_models import (
    Member,
    MemberRole,
    email_prefix,
    member_from_record,
    member_sort_key,
    member_to_record,
    normalize_email,
)

logger = logging.getLogger(__name__)


class TeamRoster:
    """
    Live list of everyone on one team (oldest first).

    Member records are owned by the team id, so every member of the team sees
    the same roster. Invitations create placeholder members with the viewer
    role; the invited person claims the placeholder when they first sign in.
    """

    def __init__(
        self,
        collection: RemoteCollection,
        team_id: str,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._collection = collection
        self._team_id = team_id
        self._clock = clock
        self._live: LiveSnapshot[Member] = LiveSnapshot(
            collection,
            team_id,
            parse=member_from_record,
            sort_key=member_sort_key,
        )

    @property
    def team_id(self) -> str:
        return self._team_id

    # ---- lifecycle ----

    def start(self) -> None:
        self._live.start()

    def close(self) -> None:
        self._live.close()

    def resubscribe(self) -> None:
        self._live.resubscribe()

    @property
    def active(self) -> bool:
        return self._live.active

    # ---- reads ----

    def members(self) -> tuple[Member, ...]:
        return self._live.items

    def find(self, email: str) -> Member | None:
        needle = (email or "").strip().lower()
        for member in self._live.items:
            if member.email.lower() == needle:
                return member
        return None

    @property
    def degraded(self) -> bool:
        return self._live.degraded

    @property
    def version(self) -> int:
        return self._live.version

    def add_listener(self, listener: Listener) -> Callable[[], None]:
        return self._live.add_listener(listener)

    # ---- writes ----

    async def _current_members(self) -> list[Member]:
        # Straight from the collection: the snapshot may not have arrived yet.
        members: list[Member] = []
        for rec in await self._collection.fetch(self._team_id):
            try:
                members.append(member_from_record(rec))
            except (KeyError, TypeError, ValueError):
                logger.warning("Skipping malformed member record id=%s", rec.get("id"))
        return members

    async def invite(self, raw_email: str) -> str:
        """
        Add a placeholder member for raw_email with the viewer role.

        Raises ValueError for an unusable address and DuplicateMemberError when
        the address is already on the roster. Returns the new record id.
        """
        email = normalize_email(raw_email)
        if any(m.email.lower() == email for m in await self._current_members()):
            raise DuplicateMemberError(email)

        placeholder = Member(
            id="",
            email=email,
            display_name=email_prefix(email),
            role=MemberRole.VIEWER,
            created_at=self._clock(),
            is_placeholder=True,
        )
        member_id = await self._collection.create(member_to_record(placeholder, team_id=self._team_id))
        logger.info("Invited %s to team=%s id=%s", email, self._team_id, member_id)
        return member_id

    async def register(self, user: AuthUser) -> Member | None:
        """
        Make sure the signed-in user is on the roster.

        - already registered (same uid): returned unchanged
        - invited earlier (placeholder with the same email): the placeholder is claimed
        - otherwise a new member is created; the first member of a team is its owner

        Users without an email address cannot be listed and are skipped.
        """
        if not user.email:
            logger.info("Not registering user=%s on team=%s: no email", user.uid, self._team_id)
            return None
        email = user.email.strip().lower()

        members = await self._current_members()
        for m in members:
            if m.uid == user.uid:
                return m

        for m in members:
            if m.is_placeholder and m.email.lower() == email:
                await self._collection.update(
                    m.id,
                    {"uid": user.uid, "is_placeholder": False},
                    owner_id=self._team_id,
                )
                logger.info("User %s claimed invitation id=%s team=%s", user.uid, m.id, self._team_id)
                return replace(m, is_placeholder=False, uid=user.uid)

        role = MemberRole.MEMBER if members else MemberRole.OWNER
        member = Member(
            id="",
            email=email,
            display_name=email_prefix(email),
            role=role,
            created_at=self._clock(),
            uid=user.uid,
        )
        member_id = await self._collection.create(member_to_record(member, team_id=self._team_id))
        logger.info("Registered user=%s on team=%s role=%s", user.uid, self._team_id, role.value)
        return replace(member, id=member_id)
