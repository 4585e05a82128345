# src/taskflow/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires concrete implementations into AppState (collections/storage),
- exports a user's data as JSON.
"""

from __future__ import annotations

import contextlib
import json
import logging
import os
from datetime import UTC, datetime
from pathlib import Path

from ..config import get_settings
from ..core.ports import AttachmentStorage, AuthUser
from ..core.session import UserSession
from ..core.state import AppState
from ..remote.sqlite_collection import SqliteCollection
from ..remote.storage import LocalAttachmentStorage, S3AttachmentStorage
from ..tasks.task_models import task_to_record, time_log_to_record

logger = logging.getLogger(__name__)

TASKS_COLLECTION = "tasks"
TIME_LOGS_COLLECTION = "time_logs"
MEMBERS_COLLECTION = "members"
PROFILES_COLLECTION = "profiles"


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.db_path.parent.mkdir(parents=True, exist_ok=True)
    settings.attachments_dir.mkdir(parents=True, exist_ok=True)


def build_storage(settings) -> AttachmentStorage:
    backend = str(getattr(settings, "storage_backend", "local")).lower()
    if backend == "s3":
        return S3AttachmentStorage(
            settings.s3_bucket,
            settings.s3_base_url,
            region=settings.s3_region,
        )
    if backend != "local":
        logger.warning("Unknown storage backend %r; using local storage", backend)
    return LocalAttachmentStorage(settings.attachments_dir)


def create_initial_state(*, settings=None) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    return AppState(
        settings=settings,
        tasks_collection=SqliteCollection(settings.db_path, TASKS_COLLECTION, order_field="created_at"),
        logs_collection=SqliteCollection(settings.db_path, TIME_LOGS_COLLECTION, order_field="saved_at"),
        members_collection=SqliteCollection(settings.db_path, MEMBERS_COLLECTION, order_field="created_at"),
        profiles_collection=SqliteCollection(settings.db_path, PROFILES_COLLECTION, order_field="updated_at"),
        storage=build_storage(settings),
    )


def configured_user(settings) -> AuthUser:
    """The auth collaborator for the console: the user named in settings."""
    return AuthUser(uid=settings.user_id, email=settings.user_email)


def build_export(session: UserSession) -> dict:
    user: dict = {"id": session.user.uid, "email": session.user.email}
    data: dict = {"user": user}
    if session.profile is not None and session.profile.loaded:
        profile = session.profile.current
        user["displayName"] = profile.display_name
        data["settings"] = {
            "theme": profile.theme.value,
            "notifications": profile.notifications,
            "emailDigest": profile.email_digest,
        }
    return {
        **data,
        "tasks": [task_to_record(t) for t in session.tasks.current_tasks()],
        "timeLogs": [time_log_to_record(log) for log in session.time_logs.logs()],
        "exportedAt": datetime.now(UTC).isoformat(),
    }


def default_export_path(settings) -> Path:
    stamp = datetime.now().strftime("%Y-%m-%d")
    return Path(settings.data_dir) / f"taskflow-export-{stamp}.json"


def export_user_data(session: UserSession, path: str | Path) -> Path:
    """Write the session's tasks and time logs to path (atomic replace)."""
    path = Path(path).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)
    data = build_export(session)

    tmp = path.with_suffix(".tmp")
    tmp.write_text(json.dumps(data, ensure_ascii=False, indent=2), "utf-8")
    os.replace(tmp, path)
    with contextlib.suppress(OSError):
        # Best-effort: the export contains the user's work log, keep it private on disk.
        os.chmod(path, 0o600)
    logger.info(
        "Exported %d tasks and %d time logs to %s",
        len(data["tasks"]),
        len(data["timeLogs"]),
        path,
    )
    return path
