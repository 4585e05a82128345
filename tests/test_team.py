# tests/test_team.py

from __future__ import annotations

import pytest

from taskflow.core.errors import DuplicateMemberError, WriteError
from taskflow.core.ports import AuthUser
from taskflow.team.member_models import MemberRole, member_from_record
from taskflow.team.roster import TeamRoster


def _roster(members_collection, clock, team_id: str = "team-1") -> TeamRoster:
    roster = TeamRoster(members_collection, team_id, clock=clock)
    roster.start()
    return roster


def _member(record_id: str, email: str, **overrides) -> dict:
    rec = {
        "id": record_id,
        "owner_id": "team-1",
        "email": email,
        "display_name": email.split("@")[0],
        "role": "member",
        "created_at": 10.0,
        "is_placeholder": False,
        "uid": None,
    }
    rec.update(overrides)
    return rec


@pytest.mark.asyncio
async def test_invite_creates_a_viewer_placeholder(members_collection, clock) -> None:
    roster = _roster(members_collection, clock)

    member_id = await roster.invite("  Dana.Lee@Example.com ")

    [record] = members_collection.writes("create")
    assert record == {
        "owner_id": "team-1",
        "email": "dana.lee@example.com",
        "display_name": "dana.lee",
        "role": "viewer",
        "created_at": clock.now,
        "is_placeholder": True,
        "uid": None,
    }
    assert member_id == "members-1"


@pytest.mark.asyncio
async def test_invite_rejects_addresses_already_on_the_team(members_collection, clock) -> None:
    roster = _roster(members_collection, clock)
    await roster.invite("dana@example.com")

    with pytest.raises(DuplicateMemberError):
        await roster.invite("DANA@example.com")

    assert len(members_collection.writes("create")) == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("raw", ["", "dana", "@example.com", "dana@", "da na@example.com"])
async def test_invite_rejects_bad_addresses_without_writing(members_collection, clock, raw) -> None:
    roster = _roster(members_collection, clock)

    with pytest.raises(ValueError):
        await roster.invite(raw)

    assert members_collection.writes("create") == []


@pytest.mark.asyncio
async def test_first_registered_user_owns_the_team(members_collection, clock) -> None:
    roster = _roster(members_collection, clock)

    first = await roster.register(AuthUser("u1", "ada@example.com"))
    clock.advance(1)
    second = await roster.register(AuthUser("u2", "bob@example.com"))

    assert first is not None and first.role is MemberRole.OWNER
    assert second is not None and second.role is MemberRole.MEMBER
    assert [r["uid"] for r in members_collection.writes("create")] == ["u1", "u2"]


@pytest.mark.asyncio
async def test_register_claims_an_invitation(members_collection, clock) -> None:
    roster = _roster(members_collection, clock)
    await roster.register(AuthUser("u1", "ada@example.com"))
    invite_id = await roster.invite("bob@example.com")

    member = await roster.register(AuthUser("u2", "Bob@example.com"))

    assert member is not None
    assert member.id == invite_id
    assert member.role is MemberRole.VIEWER
    assert member.uid == "u2"
    assert not member.is_placeholder
    assert members_collection.writes("update") == [(invite_id, {"uid": "u2", "is_placeholder": False})]
    assert members_collection.records[invite_id]["is_placeholder"] is False


@pytest.mark.asyncio
async def test_register_twice_writes_once(members_collection, clock) -> None:
    roster = _roster(members_collection, clock)
    first = await roster.register(AuthUser("u1", "ada@example.com"))

    again = await roster.register(AuthUser("u1", "ada@example.com"))

    assert again == first
    assert len(members_collection.writes("create")) == 1
    assert members_collection.writes("update") == []


@pytest.mark.asyncio
async def test_user_without_email_is_not_listed(members_collection, clock) -> None:
    roster = _roster(members_collection, clock)

    assert await roster.register(AuthUser("u1")) is None
    assert members_collection.writes("create") == []


@pytest.mark.asyncio
async def test_failed_invite_propagates(members_collection, clock) -> None:
    roster = _roster(members_collection, clock)
    members_collection.fail_writes = WriteError("permission denied")

    with pytest.raises(WriteError):
        await roster.invite("dana@example.com")


def test_roster_lists_oldest_first_and_skips_malformed(members_collection, clock) -> None:
    roster = _roster(members_collection, clock)

    members_collection.push(
        [
            _member("m3", "cy@example.com", created_at=30.0),
            _member("m1", "ada@example.com", created_at=10.0, role="Owner"),
            _member("bad", ""),
            _member("m2", "bob@example.com", created_at=20.0, role="Viewer", is_placeholder=True),
        ]
    )

    assert [m.id for m in roster.members()] == ["m1", "m2", "m3"]
    assert roster.members()[0].role is MemberRole.OWNER
    assert roster.members()[1].is_placeholder
    assert roster.find("BOB@example.com").id == "m2"
    assert roster.find("nobody@example.com") is None


def test_roster_stream_error_keeps_last_members(members_collection, clock) -> None:
    roster = _roster(members_collection, clock)
    members_collection.push([_member("m1", "ada@example.com")])

    members_collection.fail_stream(RuntimeError("offline"))

    assert roster.degraded
    assert [m.id for m in roster.members()] == ["m1"]


def test_member_defaults_for_sparse_records() -> None:
    member = member_from_record({"id": "m1", "email": "eve@example.com"})

    assert member.display_name == "eve"
    assert member.role is MemberRole.VIEWER
    assert member.initial == "E"
    assert member.uid is None
