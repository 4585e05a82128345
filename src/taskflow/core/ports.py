# src/taskflow/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The core depends on Protocols instead of concrete implementations.
This keeps the remote store and the attachment storage swappable and makes testing easier.
"""

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Awaitable, Protocol

Record = dict[str, Any]
# Plain JSON-able document. Snapshot records always carry their "id".

SnapshotCallback = Callable[[list[Record]], None]
ErrorCallback = Callable[[Exception], None]


@dataclass(frozen=True, slots=True)
class AuthUser:
    """What the auth collaborator hands us after sign-in."""

    uid: str
    email: str = ""


class Subscription(Protocol):
    def cancel(self) -> None: ...

    @property
    def cancelled(self) -> bool: ...


class RemoteCollection(Protocol):
    """
    Document collection scoped by owner id.

    subscribe() pushes full snapshots (never diffs): every notification is the
    complete, ordered set of records owned by owner_id. Consumers replace, not merge.

    Writes are scoped the same way: update/delete only touch records whose
    owner_id matches. fetch() is a one-shot read of the same set.
    """

    name: str

    def subscribe(
            self,
            owner_id: str,
            on_snapshot: SnapshotCallback,
            on_error: ErrorCallback | None = None,
            *,
            descending: bool = True,
    ) -> Subscription: ...

    def create(self, record: Record) -> Awaitable[str]: ...

    def fetch(self, owner_id: str) -> Awaitable[list[Record]]: ...

    def update(self, record_id: str, fields: Record, *, owner_id: str) -> Awaitable[None]: ...

    def delete(self, record_id: str, *, owner_id: str) -> Awaitable[None]: ...


class AttachmentStorage(Protocol):
    """Binary storage: returns a URL the stored bytes can be fetched from."""

    def upload(
            self,
            owner_id: str,
            filename: str,
            data: bytes,
            content_type: str | None = None,
    ) -> Awaitable[str]: ...
