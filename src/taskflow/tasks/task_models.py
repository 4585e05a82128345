# src/taskflow/tasks/task_models.py

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from datetime import time as clock_time
from enum import StrEnum
from typing import Any

from ..core.ports import Record


class TaskStatus(StrEnum):
    PENDING = "pending"
    COMPLETED = "completed"

    @classmethod
    def from_db(cls, raw: str | None) -> TaskStatus:
        if not raw:
            return cls.PENDING
        try:
            return cls(raw)
        except ValueError:
            return cls.PENDING

    def toggled(self) -> TaskStatus:
        return TaskStatus.COMPLETED if self is TaskStatus.PENDING else TaskStatus.PENDING


class TaskCategory(StrEnum):
    DEVELOPMENT = "development"
    BUG_FIXING = "bug-fixing"
    DOCUMENTATION = "documentation"
    TESTING = "testing"
    CODE_REVIEW = "code-review"
    DESIGN = "design"
    RESEARCH = "research"
    MEETING = "meeting"
    DEPLOYMENT = "deployment"
    LEARNING = "learning"

    @classmethod
    def from_db(cls, raw: str | None) -> TaskCategory:
        if not raw:
            return cls.DEVELOPMENT
        try:
            return cls(raw)
        except ValueError:
            return cls.DEVELOPMENT


class TaskPriority(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"

    @property
    def weight(self) -> int:
        """Display weight, 1 (low) .. 4 (urgent)."""
        return _PRIORITY_WEIGHTS[self]

    @classmethod
    def from_db(cls, raw: str | None) -> TaskPriority:
        if not raw:
            return cls.MEDIUM
        try:
            return cls(raw)
        except ValueError:
            return cls.MEDIUM


_PRIORITY_WEIGHTS = {
    TaskPriority.LOW: 1,
    TaskPriority.MEDIUM: 2,
    TaskPriority.HIGH: 3,
    TaskPriority.URGENT: 4,
}


@dataclass(frozen=True, slots=True)
class Owner:
    user_id: str
    email: str = ""


@dataclass(frozen=True, slots=True)
class Attachment:
    name: str
    url: str


@dataclass(frozen=True, slots=True)
class TaskDraft:
    """What the user typed in, before ids/timestamps/ownership exist."""

    title: str
    description: str = ""
    category: TaskCategory = TaskCategory.DEVELOPMENT
    priority: TaskPriority = TaskPriority.MEDIUM
    project: str = ""
    tags: tuple[str, ...] = ()
    date: date = field(default_factory=date.today)
    start_time: clock_time | None = None
    end_time: clock_time | None = None


@dataclass(frozen=True, slots=True)
class Task:
    id: str
    title: str
    category: TaskCategory
    priority: TaskPriority
    date: date
    status: TaskStatus
    created_at: float
    owner: Owner

    description: str = ""
    project: str = ""
    tags: tuple[str, ...] = ()
    start_time: clock_time | None = None
    end_time: clock_time | None = None
    attachment: Attachment | None = None
    completed_at: float | None = None

    @property
    def is_completed(self) -> bool:
        return self.status is TaskStatus.COMPLETED


@dataclass(frozen=True, slots=True)
class TimeLog:
    id: str
    owner_id: str
    task_id: str
    task_title: str
    duration_ms: int
    saved_at: float


# ---- record conversion ----


def normalize_tags(tags: Any) -> tuple[str, ...]:
    """Accept a list or a comma separated string; keep first occurrence order, drop blanks/dupes."""
    if tags is None:
        return ()
    if isinstance(tags, str):
        tags = tags.split(",")
    out: list[str] = []
    seen: set[str] = set()
    for raw in tags:
        tag = str(raw).strip()
        if tag and tag not in seen:
            seen.add(tag)
            out.append(tag)
    return tuple(out)


def parse_date(raw: Any) -> date:
    if isinstance(raw, date):
        return raw
    return date.fromisoformat(str(raw))


def parse_clock(raw: Any) -> clock_time | None:
    if raw is None or raw == "":
        return None
    if isinstance(raw, clock_time):
        return raw
    return clock_time.fromisoformat(str(raw))


def _format_clock(t: clock_time | None) -> str | None:
    return t.strftime("%H:%M") if t is not None else None


def _attachment_from_record(rec: Record) -> Attachment | None:
    raw = rec.get("attachment")
    if isinstance(raw, dict) and raw.get("url"):
        return Attachment(name=str(raw.get("name") or ""), url=str(raw["url"]))
    # Older records only carried the bare URL.
    legacy_url = rec.get("fileUrl")
    if legacy_url:
        return Attachment(name="", url=str(legacy_url))
    return None


def draft_to_record(
    draft: TaskDraft,
    *,
    owner: Owner,
    created_at: float,
    attachment: Attachment | None = None,
) -> Record:
    return {
        "owner_id": owner.user_id,
        "owner_email": owner.email,
        "title": draft.title.strip(),
        "description": draft.description.strip(),
        "category": draft.category.value,
        "priority": draft.priority.value,
        "project": draft.project.strip(),
        "tags": list(normalize_tags(draft.tags)),
        "date": draft.date.isoformat(),
        "start_time": _format_clock(draft.start_time),
        "end_time": _format_clock(draft.end_time),
        "attachment": {"name": attachment.name, "url": attachment.url} if attachment else None,
        "status": TaskStatus.PENDING.value,
        "created_at": created_at,
        "completed_at": None,
    }


def task_to_record(task: Task) -> Record:
    """Full JSON-able form of a Task (used for export)."""
    return {
        "id": task.id,
        "owner_id": task.owner.user_id,
        "owner_email": task.owner.email,
        "title": task.title,
        "description": task.description,
        "category": task.category.value,
        "priority": task.priority.value,
        "project": task.project,
        "tags": list(task.tags),
        "date": task.date.isoformat(),
        "start_time": _format_clock(task.start_time),
        "end_time": _format_clock(task.end_time),
        "attachment": (
            {"name": task.attachment.name, "url": task.attachment.url} if task.attachment else None
        ),
        "status": task.status.value,
        "created_at": task.created_at,
        "completed_at": task.completed_at,
    }


def task_from_record(rec: Record) -> Task:
    """
    Build a Task from a remote record.

    Raises ValueError/KeyError for records that cannot be a task (no id, no title,
    unparseable date/time). Unknown enum values fall back to defaults.
    """
    if not rec.get("id"):
        raise ValueError("task record without id")
    task_id = str(rec["id"])
    title = str(rec.get("title") or rec.get("content") or "").strip()
    if not title:
        raise ValueError(f"task {task_id} has no title")

    created_at = float(rec.get("created_at") or 0.0)
    status = TaskStatus.from_db(rec.get("status"))
    completed_raw = rec.get("completed_at")
    if status is TaskStatus.COMPLETED:
        # completed_at is set iff completed; fill the gap rather than drop the task.
        completed_at: float | None = float(completed_raw) if completed_raw is not None else created_at
    else:
        completed_at = None

    raw_date = rec.get("date")
    task_date = (
        parse_date(raw_date)
        if raw_date
        else datetime.fromtimestamp(created_at).date()
    )

    return Task(
        id=task_id,
        title=title,
        description=str(rec.get("description") or ""),
        category=TaskCategory.from_db(rec.get("category")),
        priority=TaskPriority.from_db(rec.get("priority")),
        project=str(rec.get("project") or "").strip(),
        tags=normalize_tags(rec.get("tags")),
        date=task_date,
        start_time=parse_clock(rec.get("start_time")),
        end_time=parse_clock(rec.get("end_time")),
        attachment=_attachment_from_record(rec),
        status=status,
        created_at=created_at,
        completed_at=completed_at,
        owner=Owner(
            user_id=str(rec.get("owner_id") or ""),
            email=str(rec.get("owner_email") or ""),
        ),
    )


def task_sort_key(task: Task) -> tuple[float, str]:
    """created_at descending, then id ascending (total order)."""
    return (-task.created_at, task.id)


def time_log_from_record(rec: Record) -> TimeLog:
    if not rec.get("id"):
        raise ValueError("time log record without id")
    log_id = str(rec["id"])
    return TimeLog(
        id=log_id,
        owner_id=str(rec.get("owner_id") or ""),
        task_id=str(rec.get("task_id") or ""),
        task_title=str(rec.get("task_title") or "Unknown Task"),
        duration_ms=max(0, int(rec.get("duration_ms") or 0)),
        saved_at=float(rec.get("saved_at") or 0.0),
    )


def time_log_to_record(log: TimeLog) -> Record:
    return {
        "id": log.id,
        "owner_id": log.owner_id,
        "task_id": log.task_id,
        "task_title": log.task_title,
        "duration_ms": log.duration_ms,
        "saved_at": log.saved_at,
    }


def time_log_sort_key(log: TimeLog) -> tuple[float, str]:
    return (-log.saved_at, log.id)
