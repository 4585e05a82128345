# src/taskflow/core/live.py

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Generic, TypeVar

from .errors import SubscriptionError
from .ports import Record, RemoteCollection, Subscription

logger = logging.getLogger(__name__)

T = TypeVar("T")

Listener = Callable[[], None]


class LiveSnapshot(Generic[T]):
    """
    Local, read-only mirror of one owner's records in a remote collection.

    Every notification is treated as the authoritative full set: parsed, sorted
    and swapped in as a new tuple. Readers holding the previous tuple keep a
    complete (old) view; there is no partial state to observe.

    If the stream errors, the last good tuple is kept and `degraded` is set until
    the next good snapshot arrives.
    """

    def __init__(
        self,
        collection: RemoteCollection,
        owner_id: str,
        *,
        parse: Callable[[Record], T],
        sort_key: Callable[[T], object],
    ) -> None:
        if not owner_id:
            raise ValueError("owner_id is required")
        self._collection = collection
        self._owner_id = owner_id
        self._parse = parse
        self._sort_key = sort_key

        self._items: tuple[T, ...] = ()
        self._version = 0
        self._degraded = False
        self._last_error: Exception | None = None
        self._subscription: Subscription | None = None
        self._listeners: list[Listener] = []

    # ---- lifecycle ----

    @property
    def active(self) -> bool:
        return self._subscription is not None and not self._subscription.cancelled

    def start(self) -> None:
        if self.active:
            return
        self._subscription = self._collection.subscribe(
            self._owner_id,
            self._on_snapshot,
            self._on_error,
            descending=True,
        )
        logger.debug("Subscribed collection=%s owner=%s", self._collection.name, self._owner_id)

    def close(self) -> None:
        sub, self._subscription = self._subscription, None
        if sub is not None:
            sub.cancel()
            logger.debug("Unsubscribed collection=%s owner=%s", self._collection.name, self._owner_id)

    def resubscribe(self) -> None:
        """Drop the current stream and open a new one. Local items stay until it delivers."""
        self.close()
        self.start()

    # ---- state ----

    @property
    def items(self) -> tuple[T, ...]:
        return self._items

    @property
    def version(self) -> int:
        """Incremented on every accepted snapshot."""
        return self._version

    @property
    def degraded(self) -> bool:
        return self._degraded

    @property
    def last_error(self) -> Exception | None:
        return self._last_error

    def add_listener(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    # ---- stream callbacks ----

    def _on_snapshot(self, records: list[Record]) -> None:
        parsed: list[T] = []
        for rec in records:
            try:
                parsed.append(self._parse(rec))
            except (AttributeError, KeyError, TypeError, ValueError):
                logger.warning(
                    "Skipping malformed record collection=%s id=%s",
                    self._collection.name,
                    rec.get("id") if isinstance(rec, dict) else None,
                    exc_info=True,
                )

        parsed.sort(key=self._sort_key)
        self._items = tuple(parsed)
        self._version += 1
        if self._degraded:
            logger.info("Snapshot stream recovered collection=%s", self._collection.name)
        self._degraded = False
        self._last_error = None
        logger.debug(
            "Snapshot collection=%s owner=%s items=%d version=%d",
            self._collection.name,
            self._owner_id,
            len(self._items),
            self._version,
        )
        self._notify()

    def _on_error(self, exc: Exception) -> None:
        err = exc if isinstance(exc, SubscriptionError) else SubscriptionError(str(exc))
        if err is not exc:
            err.__cause__ = exc
        self._degraded = True
        self._last_error = err
        logger.warning(
            "Snapshot stream failed collection=%s owner=%s; keeping %d cached items: %s",
            self._collection.name,
            self._owner_id,
            len(self._items),
            exc,
        )
        self._notify()

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener()
            except Exception:
                logger.exception("Snapshot listener failed collection=%s", self._collection.name)
