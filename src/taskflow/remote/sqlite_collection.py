# src/taskflow/remote/sqlite_collection.py

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import re
import sqlite3
import uuid
from pathlib import Path
from typing import Any

from ..core.errors import NotFoundError, ReadError, SubscriptionError, WriteError
from ..core.ports import ErrorCallback, Record, SnapshotCallback

logger = logging.getLogger(__name__)

_NAME_RE = re.compile(r"^[a-z_][a-z0-9_]*$")


class SqliteSubscription:
    """Handle returned by SqliteCollection.subscribe(); cancel() stops all deliveries."""

    def __init__(
        self,
        collection: SqliteCollection,
        owner_id: str,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback | None,
        descending: bool,
        loop: asyncio.AbstractEventLoop,
    ) -> None:
        self.owner_id = owner_id
        self.descending = descending
        self._collection = collection
        self._on_snapshot = on_snapshot
        self._on_error = on_error
        self._loop = loop
        self._pending: asyncio.Handle | None = None
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None
        self._collection._detach(self)

    def _schedule(self) -> None:
        # Several writes before the next loop turn collapse into one snapshot.
        if self._cancelled or self._pending is not None:
            return
        self._pending = self._loop.call_soon(self._deliver)

    def _deliver(self) -> None:
        self._pending = None
        if self._cancelled:
            return
        try:
            records = self._collection.list_records(self.owner_id, descending=self.descending)
        except sqlite3.Error as e:
            err = SubscriptionError(f"{self._collection.name}: snapshot query failed: {e}")
            err.__cause__ = e
            if self._on_error is None:
                logger.error("Unhandled snapshot error collection=%s: %s", self._collection.name, e)
                return
            self._on_error(err)
            return
        self._on_snapshot(records)


class SqliteCollection:
    """
    SQLite-backed document collection.

    One table per collection:
    - id: remote-assigned opaque id (uuid4 hex)
    - owner_id: access scope, the only subscription filter
    - order_value: copy of the record's order field, the only sort key
    - body: the record as JSON

    Thread-safety:
    - each method opens its own SQLite connection

    Notifications are pushed on the event loop the subscriber was created on.
    Each one is a freshly queried full snapshot, never a diff.
    """

    def __init__(
        self,
        db_path: str | Path,
        name: str,
        *,
        order_field: str = "created_at",
    ) -> None:
        if not _NAME_RE.match(name):
            raise ValueError(f"invalid collection name: {name!r}")
        self.name = name
        self.order_field = order_field
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._subscriptions: list[SqliteSubscription] = []
        self._ensure_schema()
        logger.info("SqliteCollection ready db=%s name=%s", self._db_path, self.name)

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        self._configure_conn(conn)
        return conn

    @staticmethod
    def _configure_conn(conn: sqlite3.Connection) -> None:
        with contextlib.suppress(sqlite3.Error):
            conn.execute("PRAGMA journal_mode=WAL")

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {self.name} (
                    id TEXT PRIMARY KEY,
                    owner_id TEXT NOT NULL,
                    order_value REAL NOT NULL DEFAULT 0,
                    body TEXT NOT NULL DEFAULT '{{}}'
                )
                """
            )
            conn.execute(
                f"CREATE INDEX IF NOT EXISTS idx_{self.name}_owner_order "
                f"ON {self.name}(owner_id, order_value)"
            )
            conn.commit()
        finally:
            conn.close()

    def _order_value(self, record: Record) -> float:
        raw = record.get(self.order_field)
        try:
            return float(raw) if raw is not None else 0.0
        except (TypeError, ValueError):
            return 0.0

    @staticmethod
    def _row_to_record(row: sqlite3.Row) -> Record:
        try:
            body = json.loads(row["body"] or "{}")
        except json.JSONDecodeError:
            logger.warning("Corrupt JSON body id=%s; returning bare record", row["id"])
            body = {}
        if not isinstance(body, dict):
            body = {}
        body["id"] = row["id"]
        body.setdefault("owner_id", row["owner_id"])
        return body

    # ---- reads ----

    def list_records(self, owner_id: str, *, descending: bool = True) -> list[Record]:
        direction = "DESC" if descending else "ASC"
        conn = self._get_conn()
        try:
            cur = conn.execute(
                f"""
                SELECT id, owner_id, body
                FROM {self.name}
                WHERE owner_id = ?
                ORDER BY order_value {direction}, id ASC
                """,
                (owner_id,),
            )
            return [self._row_to_record(r) for r in cur.fetchall()]
        finally:
            conn.close()

    def get(self, record_id: str) -> Record | None:
        conn = self._get_conn()
        try:
            row = conn.execute(
                f"SELECT id, owner_id, body FROM {self.name} WHERE id = ?",
                (record_id,),
            ).fetchone()
            return self._row_to_record(row) if row else None
        finally:
            conn.close()

    # ---- subscriptions ----

    def subscribe(
        self,
        owner_id: str,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback | None = None,
        *,
        descending: bool = True,
    ) -> SqliteSubscription:
        """
        Subscribe to owner_id's records. Must be called from a running event loop.

        The current snapshot is delivered on the next loop turn, then one per change.
        """
        if not owner_id:
            raise ValueError("owner_id is required")
        loop = asyncio.get_running_loop()
        sub = SqliteSubscription(self, owner_id, on_snapshot, on_error, descending, loop)
        self._subscriptions.append(sub)
        sub._schedule()
        return sub

    def _detach(self, sub: SqliteSubscription) -> None:
        if sub in self._subscriptions:
            self._subscriptions.remove(sub)

    def _notify_owner(self, owner_id: str) -> None:
        for sub in list(self._subscriptions):
            if sub.owner_id == owner_id:
                sub._schedule()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    # ---- writes ----

    async def create(self, record: Record) -> str:
        owner_id = str(record.get("owner_id") or "")
        if not owner_id:
            raise ValueError("record.owner_id is required")

        body = {k: v for k, v in record.items() if k != "id"}
        record_id = uuid.uuid4().hex
        try:
            payload = json.dumps(body, ensure_ascii=False)
        except (TypeError, ValueError) as e:
            raise WriteError(f"{self.name}: record is not JSON-serializable: {e}") from e

        conn = self._get_conn()
        try:
            conn.execute(
                f"INSERT INTO {self.name}(id, owner_id, order_value, body) VALUES (?, ?, ?, ?)",
                (record_id, owner_id, self._order_value(body), payload),
            )
            conn.commit()
        except sqlite3.Error as e:
            raise WriteError(f"{self.name}: create failed: {e}") from e
        finally:
            conn.close()

        logger.debug("Created %s id=%s owner=%s", self.name, record_id, owner_id)
        self._notify_owner(owner_id)
        return record_id

    async def fetch(self, owner_id: str) -> list[Record]:
        """One-shot read of owner_id's records (no subscription)."""
        try:
            return self.list_records(owner_id)
        except sqlite3.Error as e:
            raise ReadError(f"{self.name}: fetch failed owner={owner_id}: {e}") from e

    async def update(self, record_id: str, fields: Record, *, owner_id: str) -> None:
        """Merge fields into owner_id's record. A record owned by anyone else is NotFoundError."""
        changes: dict[str, Any] = {k: v for k, v in fields.items() if k not in ("id", "owner_id")}

        conn = self._get_conn()
        try:
            row = conn.execute(
                f"SELECT id, owner_id, body FROM {self.name} WHERE id = ? AND owner_id = ?",
                (record_id, owner_id),
            ).fetchone()
            if row is None:
                raise NotFoundError(record_id, self.name)

            body = self._row_to_record(row)
            body.pop("id", None)
            body.update(changes)

            conn.execute(
                f"UPDATE {self.name} SET order_value = ?, body = ? WHERE id = ? AND owner_id = ?",
                (self._order_value(body), json.dumps(body, ensure_ascii=False), record_id, owner_id),
            )
            conn.commit()
        except sqlite3.Error as e:
            raise WriteError(f"{self.name}: update failed id={record_id}: {e}") from e
        except (TypeError, ValueError) as e:
            raise WriteError(f"{self.name}: fields are not JSON-serializable: {e}") from e
        finally:
            conn.close()

        logger.debug("Updated %s id=%s fields=%s", self.name, record_id, sorted(changes))
        self._notify_owner(owner_id)

    async def delete(self, record_id: str, *, owner_id: str) -> None:
        """Idempotent: a missing record, or one owned by someone else, is left alone."""
        conn = self._get_conn()
        try:
            cur = conn.execute(
                f"DELETE FROM {self.name} WHERE id = ? AND owner_id = ?",
                (record_id, owner_id),
            )
            deleted = cur.rowcount
            conn.commit()
        except sqlite3.Error as e:
            raise WriteError(f"{self.name}: delete failed id={record_id}: {e}") from e
        finally:
            conn.close()

        if deleted == 0:
            logger.debug("Delete of missing %s id=%s owner=%s ignored", self.name, record_id, owner_id)
            return
        logger.debug("Deleted %s id=%s", self.name, record_id)
        self._notify_owner(owner_id)
