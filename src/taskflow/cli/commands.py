# src/taskflow/cli/commands.py

from __future__ import annotations

import inspect
import logging
import shlex
from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import cast

from ..core.errors import NotFoundError
from ..core.session import UserSession
from ..core.state import AppState
from ..tasks.attachments import PendingFile
from ..tasks.task_models import Task, TaskCategory, TaskDraft, TaskPriority, parse_clock, parse_date
from ..tasks.task_views import TaskFilter
from ..team.member_models import Member
from ..tracking.session_machine import TrackerState
from ..tracking.time_logs import format_duration
from .bootstrap import default_export_path, export_user_data

CommandEmitter = Callable[[str], None]
CommandResult = str | Awaitable[str]
CommandHandler2 = Callable[[AppState, list[str]], CommandResult]
CommandHandler3 = Callable[[AppState, list[str], CommandEmitter | None], CommandResult]
CommandHandler = CommandHandler2 | CommandHandler3

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Simple slash-command registry used by the console connector (/help, /add, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    async def handle(
        self,
        state: AppState,
        line: str,
        emit: CommandEmitter | None = None,
    ) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        """
        if not line.startswith("/"):
            return None

        try:
            parts = shlex.split(line[1:])
        except ValueError as e:
            return f"Could not parse command: {e}"
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            nparams = len(inspect.signature(handler).parameters)
        except (TypeError, ValueError):
            nparams = 3

        if nparams >= 3:
            result = cast(CommandHandler3, handler)(state, args, emit)
        else:
            result = cast(CommandHandler2, handler)(state, args)

        if inspect.isawaitable(result):
            return await result
        return result

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


# ---- helpers ----


def _split_kv(args: list[str]) -> tuple[list[str], dict[str, str]]:
    """["Fix", "bug", "category=testing"] -> (["Fix", "bug"], {"category": "testing"})"""
    words: list[str] = []
    opts: dict[str, str] = {}
    for a in args:
        key, sep, value = a.partition("=")
        if sep and key and key.isidentifier():
            opts[key.lower()] = value
        else:
            words.append(a)
    return words, opts


def _resolve_task(session: UserSession, ref: str) -> Task:
    """Accept a full id or a unique prefix (as printed by /list)."""
    matches = [t for t in session.tasks.current_tasks() if t.id.startswith(ref)]
    if len(matches) == 1:
        return matches[0]
    if not matches:
        raise NotFoundError(ref, "tasks")
    raise ValueError(f"Ambiguous task id prefix {ref!r} ({len(matches)} matches)")


def format_task(task: Task) -> str:
    mark = "x" if task.is_completed else " "
    line = f"{task.id[:8]} [{mark}] {task.title} ({task.category}, {task.priority}) {task.date.isoformat()}"
    if task.start_time and task.end_time:
        line += f" {task.start_time:%H:%M}-{task.end_time:%H:%M}"
    if task.project:
        line += f" @{task.project}"
    if task.tags:
        line += " " + " ".join(f"#{t}" for t in task.tags)
    if task.attachment:
        line += f" [file: {task.attachment.name or task.attachment.url}]"
    return line


# ---- commands ----


def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


def cmd_status(state: AppState, args: list[str]) -> str:
    session = state.require_session()
    tasks = session.tasks
    tracker = session.tracker
    stream = "DEGRADED (showing last known tasks)" if tasks.degraded else "live"
    return (
        "Status:\n"
        f"  User: {session.user.email or session.user.uid}\n"
        f"  Task stream: {stream}, {len(tasks.current_tasks())} tasks (snapshot #{tasks.version})\n"
        f"  Filter: {session.views.filter}\n"
        f"  Timer: {tracker.state} {format_duration(tracker.elapsed_ms)}"
        f" task={tracker.selected_task_id or '-'}\n"
        f"  Storage: {getattr(state.settings, 'storage_backend', 'local')}"
    )


async def cmd_add(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """
    /add <title> [desc=..] [category=..] [priority=..] [project=..] [tags=a,b]
         [date=YYYY-MM-DD] [start=HH:MM] [end=HH:MM] [file=path]
    """
    session = state.require_session()
    words, opts = _split_kv(args)
    title = " ".join(words).strip()
    if not title:
        return "Usage: /add <title> [category=..] [priority=..] [project=..] [tags=a,b] [date=..] [start=HH:MM] [end=HH:MM] [file=path]"

    draft = TaskDraft(
        title=title,
        description=opts.get("desc", ""),
        category=TaskCategory(opts["category"]) if "category" in opts else TaskCategory.DEVELOPMENT,
        priority=TaskPriority(opts["priority"]) if "priority" in opts else TaskPriority.MEDIUM,
        project=opts.get("project", ""),
        tags=tuple(opts.get("tags", "").split(",")),
        date=parse_date(opts["date"]) if "date" in opts else datetime.now().date(),
        start_time=parse_clock(opts.get("start")),
        end_time=parse_clock(opts.get("end")),
    )

    file = None
    if opts.get("file"):
        file = PendingFile.from_path(opts["file"])
        if emit:
            emit(f"Uploading {file.filename} ({len(file.data)} bytes)...")

    task_id = await session.add_task(draft, file)
    return f"Task added: {task_id[:8]}"


def cmd_list(state: AppState, args: list[str]) -> str:
    session = state.require_session()
    tasks = session.views.filtered()
    total = len(session.tasks.current_tasks())
    if not tasks:
        return "No tasks found." if total == 0 else f"No tasks match the filter ({total} hidden)."
    header = f"{len(tasks)} of {total} tasks:"
    if session.tasks.degraded:
        header += " (stream degraded, showing last known tasks)"
    return "\n".join([header, *(format_task(t) for t in tasks)])


def cmd_filter(state: AppState, args: list[str]) -> str:
    """
    /filter                -> show current filter
    /filter clear          -> reset all dimensions
    /filter search=bug category=testing status=pending date=2024-01-01
    """
    session = state.require_session()
    views = session.views
    if not args:
        return f"Filter: {views.filter}"
    if args[0].lower() == "clear":
        views.clear_filter()
        return "Filter cleared."

    words, opts = _split_kv(args)
    if words and "search" not in opts:
        opts["search"] = " ".join(words)
    current = views.filter
    parsed = TaskFilter.parse(
        search=opts.get("search", current.search),
        category=opts.get("category", current.category),
        status=opts.get("status", current.status),
        date=opts["date"] if "date" in opts else (current.date.isoformat() if current.date else None),
    )
    views.set_filter(
        search=parsed.search,
        category=parsed.category,
        status=parsed.status,
        date=parsed.date,
    )
    return f"Filter: {views.filter} -> {len(views.filtered())} tasks"


async def cmd_done(state: AppState, args: list[str]) -> str:
    session = state.require_session()
    if not args:
        return "Usage: /done <task id>"
    task = _resolve_task(session, args[0])
    new_status = await session.tasks.toggle_status(task.id)
    return f"{task.title}: {new_status}"


async def cmd_rm(state: AppState, args: list[str]) -> str:
    session = state.require_session()
    if not args:
        return "Usage: /rm <task id> confirm"
    task = _resolve_task(session, args[0])
    if len(args) < 2 or args[1].lower() not in ("confirm", "yes", "y"):
        return f"Delete '{task.title}' permanently? Repeat with: /rm {args[0]} confirm"
    await session.tasks.remove(task.id)
    return f"Deleted: {task.title}"


def cmd_stats(state: AppState, args: list[str]) -> str:
    s = state.require_session().views.stats()
    return (
        "Stats:\n"
        f"  Total: {s.total_tasks} (completed {s.completed_tasks}, pending {s.pending_tasks})\n"
        f"  Today: {s.tasks_today} tasks, {s.completed_today} completed, {s.hours_today:.1f} h"
    )


def cmd_projects(state: AppState, args: list[str]) -> str:
    projects = state.require_session().views.projects()
    if not projects:
        return "No projects yet."
    return "Projects: " + ", ".join(projects)


async def cmd_timer(state: AppState, args: list[str]) -> str:
    """
    /timer status | select <id> | start | pause | reset | save
    """
    session = state.require_session()
    tracker = session.tracker
    sub = args[0].lower() if args else "status"

    if sub == "status":
        selected = session.tasks.get(tracker.selected_task_id) if tracker.selected_task_id else None
        label = selected.title if selected else (tracker.selected_task_id or "-")
        return f"Timer {tracker.state}: {format_duration(tracker.elapsed_ms)} (task: {label})"

    if sub == "select":
        if len(args) < 2:
            return "Usage: /timer select <task id>"
        task = _resolve_task(session, args[1])
        if task.is_completed:
            return f"'{task.title}' is already completed; pick a pending task."
        tracker.select_task(task.id)
        return f"Tracking: {task.title}"

    if sub == "start":
        was_paused = tracker.state is TrackerState.PAUSED
        tracker.start()
        return "Timer resumed." if was_paused else "Timer started."

    if sub == "pause":
        tracker.pause()
        return f"Timer paused at {format_duration(tracker.elapsed_ms)}."

    if sub == "reset":
        tracker.reset()
        return "Timer reset."

    if sub == "save":
        log = await tracker.save()
        return f"Saved {format_duration(log.duration_ms)} on '{log.task_title}'."

    return "Usage: /timer status | select <id> | start | pause | reset | save"


def cmd_logs(state: AppState, args: list[str]) -> str:
    session = state.require_session()
    try:
        limit = int(args[0]) if args else 10
    except ValueError:
        return "Usage: /logs [count]"
    logs = session.time_logs.logs()[: max(1, limit)]
    if not logs:
        return "No time logs yet."
    lines = ["Recent activity:"]
    for log in logs:
        when = datetime.fromtimestamp(log.saved_at).strftime("%Y-%m-%d %H:%M")
        lines.append(f"  {when}  {format_duration(log.duration_ms)}  {log.task_title}")
    return "\n".join(lines)


def cmd_export(state: AppState, args: list[str]) -> str:
    session = state.require_session()
    path = args[0] if args else default_export_path(state.settings)
    out = export_user_data(session, path)
    return f"Exported to {out}"


def cmd_resubscribe(state: AppState, args: list[str]) -> str:
    session = state.require_session()
    session.tasks.resubscribe()
    session.time_logs.resubscribe()
    if session.team is not None:
        session.team.resubscribe()
    return "Resubscribed."


_SWITCH_VALUES = {"on": True, "yes": True, "true": True, "off": False, "no": False, "false": False}


def _switch(name: str, raw: str) -> bool:
    try:
        return _SWITCH_VALUES[raw.strip().lower()]
    except KeyError:
        raise ValueError(f"{name} must be on or off, not {raw!r}") from None


def format_member(member: Member) -> str:
    line = f"  {member.initial}  {member.display_name} <{member.email}> {member.role}"
    if member.is_placeholder:
        line += " (invited)"
    return line


async def cmd_team(state: AppState, args: list[str]) -> str:
    """
    /team                 -> list members
    /team invite <email>  -> add a placeholder member with the viewer role
    """
    session = state.require_session()
    team = session.team
    if team is None:
        return "Team roster is not available."

    if args and args[0].lower() == "invite":
        if len(args) < 2:
            return "Usage: /team invite <email>"
        await team.invite(args[1])
        return f"Invitation sent to {args[1].strip().lower()}"
    if args:
        return "Usage: /team | /team invite <email>"

    members = team.members()
    if not members:
        return "No team members yet."
    header = f"Team {team.team_id}: {len(members)} members"
    if team.degraded:
        header += " (stream degraded, showing last known members)"
    return "\n".join([header, *(format_member(m) for m in members)])


async def cmd_profile(state: AppState, args: list[str]) -> str:
    """
    /profile                                  -> show
    /profile name=.. notifications=on|off digest=on|off theme=light|dark
    """
    session = state.require_session()
    store = session.profile
    if store is None:
        return "Profile is not available."
    if not store.loaded:
        await store.load()

    words, opts = _split_kv(args)
    if words or set(opts) - {"name", "notifications", "digest", "theme"}:
        return "Usage: /profile [name=..] [notifications=on|off] [digest=on|off] [theme=light|dark]"
    if opts:
        await store.save(
            display_name=opts.get("name"),
            notifications=_switch("notifications", opts["notifications"]) if "notifications" in opts else None,
            email_digest=_switch("digest", opts["digest"]) if "digest" in opts else None,
            theme=opts.get("theme"),
        )

    p = store.current
    on_off = {True: "on", False: "off"}
    return (
        ("Profile saved.\n" if opts else "")
        + "Profile:\n"
        f"  Name: {p.display_name}\n"
        f"  Email: {p.email or '-'}\n"
        f"  Notifications: {on_off[p.notifications]}\n"
        f"  Email digest: {on_off[p.email_digest]}\n"
        f"  Theme: {p.theme}"
    )


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("status", cmd_status, help_text="Show user, stream, filter and timer status.")
registry.register(
    "add",
    cmd_add,
    help_text="Add a task: /add <title> [category=..] [priority=..] [project=..] [tags=a,b] "
    "[date=YYYY-MM-DD] [start=HH:MM] [end=HH:MM] [file=path].",
)
registry.register("list", cmd_list, help_text="List tasks matching the current filter.", aliases=["ls"])
registry.register(
    "filter",
    cmd_filter,
    help_text="Filter tasks: /filter search=.. category=.. status=.. date=.. | /filter clear.",
)
registry.register("done", cmd_done, help_text="Toggle a task between pending and completed.")
registry.register("rm", cmd_rm, help_text="Delete a task: /rm <id> confirm.")
registry.register("stats", cmd_stats, help_text="Show totals and today's hours.")
registry.register("projects", cmd_projects, help_text="List known projects.")
registry.register(
    "timer", cmd_timer, help_text="Time tracking: /timer select <id> | start | pause | reset | save."
)
registry.register("logs", cmd_logs, help_text="Show recent time logs: /logs [count].")
registry.register("export", cmd_export, help_text="Export tasks and time logs as JSON: /export [path].")
registry.register("team", cmd_team, help_text="List team members or invite one: /team invite <email>.")
registry.register(
    "profile",
    cmd_profile,
    help_text="Show or edit your profile: /profile name=.. notifications=on|off digest=on|off theme=light|dark.",
)
registry.register("resubscribe", cmd_resubscribe, help_text="Reopen the live task/log streams.")
