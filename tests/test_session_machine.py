# tests/test_session_machine.py

from __future__ import annotations

import asyncio

import pytest

from taskflow.core.errors import InvalidTransition, NoTaskSelected, SessionTooShort, WriteError
from taskflow.tasks.task_models import Owner, Task, task_from_record
from taskflow.tracking.session_machine import TimeTracker, TrackerState

from .fakes import FakeCollection, ManualClock, make_record


def _tracker(
    logs: FakeCollection,
    clock: ManualClock,
    tasks: dict[str, Task] | None = None,
    **kwargs,
) -> TimeTracker:
    known = tasks if tasks is not None else {"t1": task_from_record(make_record("t1", title="Write report"))}
    return TimeTracker(
        logs,
        Owner("u1", "u1@example.com"),
        known.get,
        tick_seconds=kwargs.pop("tick_seconds", 60.0),
        clock=clock,
        wall_clock=lambda: 1_700_000_000.0,
        **kwargs,
    )


@pytest.mark.asyncio
async def test_start_without_selection_stays_idle(logs_collection, clock) -> None:
    tracker = _tracker(logs_collection, clock)

    with pytest.raises(NoTaskSelected):
        tracker.start()

    assert tracker.state is TrackerState.IDLE
    assert not tracker.ticking


@pytest.mark.asyncio
async def test_elapsed_is_derived_from_clock_instants(logs_collection, clock) -> None:
    tracker = _tracker(logs_collection, clock)
    tracker.select_task("t1")
    tracker.start()
    try:
        clock.advance(1.25)
        assert tracker.elapsed_ms == 1250
        clock.advance(0.75)
        assert tracker.elapsed_ms == 2000
    finally:
        tracker.close()


@pytest.mark.asyncio
async def test_save_while_running_is_rejected(logs_collection, clock) -> None:
    tracker = _tracker(logs_collection, clock)
    tracker.select_task("t1")
    tracker.start()
    clock.advance(5)
    try:
        with pytest.raises(InvalidTransition):
            await tracker.save()
        assert tracker.state is TrackerState.RUNNING
        assert logs_collection.writes("create") == []
    finally:
        tracker.close()


@pytest.mark.asyncio
async def test_short_session_is_rejected_and_kept(logs_collection, clock) -> None:
    tracker = _tracker(logs_collection, clock)
    tracker.select_task("t1")
    tracker.start()
    clock.advance(0.5)
    tracker.pause()

    with pytest.raises(SessionTooShort) as excinfo:
        await tracker.save()

    assert excinfo.value.elapsed_ms == 500
    assert tracker.state is TrackerState.PAUSED
    assert tracker.elapsed_ms == 500
    assert logs_collection.writes("create") == []


@pytest.mark.asyncio
async def test_save_writes_one_log_and_resets(logs_collection, clock) -> None:
    tracker = _tracker(logs_collection, clock)
    tracker.select_task("t1")
    tracker.start()
    clock.advance(1.5)
    tracker.pause()

    log = await tracker.save()

    [record] = logs_collection.writes("create")
    assert record == {
        "owner_id": "u1",
        "task_id": "t1",
        "task_title": "Write report",
        "duration_ms": 1500,
        "saved_at": 1_700_000_000.0,
    }
    assert log.duration_ms == 1500
    assert log.id == "time_logs-1"
    assert tracker.state is TrackerState.IDLE
    assert tracker.elapsed_ms == 0
    assert tracker.selected_task_id == "t1"


@pytest.mark.asyncio
async def test_resume_continues_from_accumulated_time(logs_collection, clock) -> None:
    tracker = _tracker(logs_collection, clock)
    tracker.select_task("t1")
    tracker.start()
    clock.advance(3)
    tracker.pause()

    clock.advance(100)  # paused time does not count
    assert tracker.elapsed_ms == 3000

    tracker.start()
    clock.advance(2)
    tracker.pause()

    assert tracker.elapsed_ms == 5000


@pytest.mark.asyncio
async def test_start_while_running_is_a_no_op(logs_collection, clock) -> None:
    tracker = _tracker(logs_collection, clock)
    tracker.select_task("t1")
    tracker.start()
    clock.advance(2)
    try:
        tracker.start()
        assert tracker.elapsed_ms == 2000
    finally:
        tracker.close()


@pytest.mark.asyncio
async def test_reset_discards_elapsed(logs_collection, clock) -> None:
    tracker = _tracker(logs_collection, clock)
    tracker.select_task("t1")
    tracker.start()
    clock.advance(4)

    tracker.reset()

    assert tracker.state is TrackerState.IDLE
    assert tracker.elapsed_ms == 0
    assert not tracker.ticking


@pytest.mark.asyncio
async def test_tick_refreshes_display_value(logs_collection, clock) -> None:
    ticks: list[int] = []
    tracker = _tracker(logs_collection, clock, tick_seconds=0.01, on_tick=ticks.append)
    tracker.select_task("t1")
    tracker.start()
    try:
        assert tracker.display_elapsed_ms == 0
        clock.advance(2)
        await asyncio.sleep(0.05)
        assert tracker.display_elapsed_ms == 2000
        assert ticks and ticks[-1] == 2000
    finally:
        tracker.close()
    assert not tracker.ticking


@pytest.mark.asyncio
async def test_failing_tick_callback_does_not_stop_the_ticker(logs_collection, clock) -> None:
    def boom(_: int) -> None:
        raise RuntimeError("render failed")

    tracker = _tracker(logs_collection, clock, tick_seconds=0.01, on_tick=boom)
    tracker.select_task("t1")
    tracker.start()
    try:
        await asyncio.sleep(0.05)
        assert tracker.ticking
    finally:
        tracker.close()


@pytest.mark.asyncio
async def test_unknown_task_title_fallback(logs_collection, clock) -> None:
    tracker = _tracker(logs_collection, clock, tasks={})
    tracker.select_task("deleted-task")
    tracker.start()
    clock.advance(2)
    tracker.pause()

    log = await tracker.save()

    assert log.task_title == "Unknown Task"


@pytest.mark.asyncio
async def test_failed_write_keeps_the_session_paused(logs_collection, clock) -> None:
    tracker = _tracker(logs_collection, clock)
    tracker.select_task("t1")
    tracker.start()
    clock.advance(2)
    tracker.pause()
    logs_collection.fail_writes = WriteError("offline")

    with pytest.raises(WriteError):
        await tracker.save()

    assert tracker.state is TrackerState.PAUSED
    assert tracker.elapsed_ms == 2000


@pytest.mark.asyncio
async def test_cannot_switch_tasks_while_running(logs_collection, clock) -> None:
    tracker = _tracker(logs_collection, clock)
    tracker.select_task("t1")
    tracker.start()
    try:
        with pytest.raises(InvalidTransition):
            tracker.select_task("t2")
        assert tracker.selected_task_id == "t1"
    finally:
        tracker.close()


@pytest.mark.asyncio
async def test_minimum_session_cannot_be_lowered(logs_collection, clock) -> None:
    tracker = _tracker(logs_collection, clock, min_session_ms=10)
    tracker.select_task("t1")
    tracker.start()
    clock.advance(0.5)
    tracker.pause()

    with pytest.raises(SessionTooShort):
        await tracker.save()


@pytest.mark.asyncio
async def test_close_pauses_and_stops_ticking(logs_collection, clock) -> None:
    tracker = _tracker(logs_collection, clock, tick_seconds=0.01)
    tracker.select_task("t1")
    tracker.start()
    clock.advance(3)

    tracker.close()
    await asyncio.sleep(0)

    assert tracker.state is TrackerState.PAUSED
    assert tracker.elapsed_ms == 3000
    assert not tracker.ticking


def test_start_outside_event_loop_changes_nothing(logs_collection, clock) -> None:
    tracker = _tracker(logs_collection, clock)
    tracker.select_task("t1")

    with pytest.raises(RuntimeError):
        tracker.start()

    assert tracker.state is TrackerState.IDLE
    assert tracker.elapsed_ms == 0
    assert not tracker.ticking
