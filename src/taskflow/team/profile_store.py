# src/taskflow/team/profile_store.py

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import replace

from ..core.errors import NotFoundError
from ..core.ports import AuthUser, RemoteCollection
from .member_models import (
    Profile,
    Theme,
    default_profile,
    profile_from_record,
    profile_to_record,
)

logger = logging.getLogger(__name__)


class ProfileStore:
    """
    The signed-in user's profile: display name, notification switches, theme.

    Read once with load() and written back with save(). Not live: only the
    user edits their own profile.
    """

    def __init__(
        self,
        collection: RemoteCollection,
        user: AuthUser,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if not user.uid:
            raise ValueError("user id is required")
        self._collection = collection
        self._user = user
        self._clock = clock
        self._record_id: str | None = None
        self._current = default_profile(user.uid, user.email)
        self._loaded = False

    @property
    def current(self) -> Profile:
        return self._current

    @property
    def loaded(self) -> bool:
        return self._loaded

    async def load(self) -> Profile:
        """Read the stored profile; a user without one gets the defaults."""
        records = await self._collection.fetch(self._user.uid)
        if records:
            # Newest first; older duplicates are ignored.
            rec = max(records, key=lambda r: float(r.get("updated_at") or 0.0))
            self._record_id = str(rec["id"])
            self._current = profile_from_record(rec, user_id=self._user.uid, email=self._user.email)
        else:
            self._record_id = None
            self._current = default_profile(self._user.uid, self._user.email)
        self._loaded = True
        logger.debug("Profile loaded user=%s stored=%s", self._user.uid, self._record_id is not None)
        return self._current

    async def save(
        self,
        *,
        display_name: str | None = None,
        notifications: bool | None = None,
        email_digest: bool | None = None,
        theme: Theme | str | None = None,
    ) -> Profile:
        """
        Apply the given changes and write the whole profile.

        Arguments left as None keep their current value. Raises ValueError for an
        empty display name or an unknown theme; nothing is written in that case.
        """
        changes: dict[str, object] = {}
        if display_name is not None:
            name = display_name.strip()
            if not name:
                raise ValueError("display name must not be empty")
            changes["display_name"] = name
        if notifications is not None:
            changes["notifications"] = bool(notifications)
        if email_digest is not None:
            changes["email_digest"] = bool(email_digest)
        if theme is not None:
            changes["theme"] = Theme(str(theme).strip().lower())

        profile = replace(self._current, **changes)
        record = profile_to_record(profile, updated_at=self._clock())

        if self._record_id is not None:
            fields = {k: v for k, v in record.items() if k != "owner_id"}
            try:
                await self._collection.update(self._record_id, fields, owner_id=self._user.uid)
            except NotFoundError:
                logger.info("Profile record %s is gone; writing a new one", self._record_id)
                self._record_id = None
        if self._record_id is None:
            self._record_id = await self._collection.create(record)

        self._current = profile
        logger.info("Profile saved user=%s fields=%s", self._user.uid, sorted(changes))
        return profile
