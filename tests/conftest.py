# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from taskflow.core.state import AppState
from taskflow.remote.sqlite_collection import SqliteCollection
from taskflow.remote.storage import LocalAttachmentStorage
from taskflow.tasks.task_models import Owner

from .fakes import FakeCollection, FakeStorage, ManualClock


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and the CLI helpers.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="taskflow-test",
        log_level="DEBUG",
        data_dir=tmp_path,
        db_path=tmp_path / "taskflow.sqlite3",
        attachments_dir=tmp_path / "attachments",
        storage_backend="local",
        user_id="u1",
        user_email="u1@example.com",
        team_id="default",
        tick_seconds=0.01,
        min_session_ms=1000,
    )


@pytest.fixture()
def owner() -> Owner:
    return Owner(user_id="u1", email="u1@example.com")


@pytest.fixture()
def tasks_collection() -> FakeCollection:
    return FakeCollection("tasks")


@pytest.fixture()
def logs_collection() -> FakeCollection:
    return FakeCollection("time_logs", order_field="saved_at")


@pytest.fixture()
def members_collection() -> FakeCollection:
    return FakeCollection("members")


@pytest.fixture()
def profiles_collection() -> FakeCollection:
    return FakeCollection("profiles", order_field="updated_at")


@pytest.fixture()
def storage() -> FakeStorage:
    return FakeStorage()


@pytest.fixture()
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture()
def state(settings: SimpleNamespace) -> AppState:
    """
    AppState wired with real SQLite collections and local storage.

    Sign-in must happen inside an async test: subscriptions attach to the running loop.
    """
    return AppState(
        settings=settings,
        tasks_collection=SqliteCollection(settings.db_path, "tasks", order_field="created_at"),
        logs_collection=SqliteCollection(settings.db_path, "time_logs", order_field="saved_at"),
        storage=LocalAttachmentStorage(settings.attachments_dir),
        members_collection=SqliteCollection(settings.db_path, "members", order_field="created_at"),
        profiles_collection=SqliteCollection(settings.db_path, "profiles", order_field="updated_at"),
    )
