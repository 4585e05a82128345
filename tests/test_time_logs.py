# tests/test_time_logs.py

from __future__ import annotations

import pytest

from taskflow.tracking.time_logs import TimeLogFeed, format_duration


def _log(log_id: str, saved_at: float, duration_ms: int, task_id: str = "t1") -> dict:
    return {
        "id": log_id,
        "owner_id": "u1",
        "task_id": task_id,
        "task_title": f"Task {task_id}",
        "duration_ms": duration_ms,
        "saved_at": saved_at,
    }


@pytest.mark.parametrize(
    "ms,expected",
    [
        (0, "00:00:00"),
        (999, "00:00:00"),
        (1_500, "00:00:01"),
        (3_723_000, "01:02:03"),
        (90_000_000, "25:00:00"),
        (-5, "00:00:00"),
    ],
)
def test_format_duration(ms, expected) -> None:
    assert format_duration(ms) == expected


def test_feed_lists_newest_first_and_totals(logs_collection) -> None:
    feed = TimeLogFeed(logs_collection, "u1")
    feed.start()

    logs_collection.push(
        [
            _log("l1", 10.0, 1_000),
            _log("l3", 30.0, 5_000, task_id="t2"),
            _log("l2", 20.0, 2_000),
        ]
    )

    assert [log.id for log in feed.logs()] == ["l3", "l2", "l1"]
    assert feed.total_ms() == 8_000
    assert feed.total_ms("t1") == 3_000


def test_feed_degrades_and_recovers(logs_collection) -> None:
    feed = TimeLogFeed(logs_collection, "u1")
    feed.start()
    logs_collection.push([_log("l1", 10.0, 1_000)])

    logs_collection.fail_stream(RuntimeError("offline"))
    assert feed.degraded
    assert [log.id for log in feed.logs()] == ["l1"]

    logs_collection.push([])
    assert not feed.degraded
    assert feed.logs() == ()


def test_feed_close(logs_collection) -> None:
    feed = TimeLogFeed(logs_collection, "u1")
    feed.start()
    assert feed.active

    feed.close()

    assert not feed.active
    assert logs_collection.live() == []
