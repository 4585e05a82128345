# tests/test_profile.py

from __future__ import annotations

import pytest

from taskflow.core.errors import WriteError
from taskflow.core.ports import AuthUser
from taskflow.team.member_models import Theme
from taskflow.team.profile_store import ProfileStore

USER = AuthUser("u1", "ada.l@example.com")


@pytest.mark.asyncio
async def test_missing_profile_loads_defaults(profiles_collection, clock) -> None:
    store = ProfileStore(profiles_collection, USER, clock=clock)

    profile = await store.load()

    assert store.loaded
    assert profile.display_name == "ada.l"
    assert profile.notifications is True
    assert profile.email_digest is False
    assert profile.theme is Theme.LIGHT
    assert profiles_collection.writes("fetch") == ["u1"]


@pytest.mark.asyncio
async def test_first_save_creates_the_record(profiles_collection, clock) -> None:
    store = ProfileStore(profiles_collection, USER, clock=clock)
    await store.load()

    await store.save(display_name="  Ada  ", theme="DARK")

    [record] = profiles_collection.writes("create")
    assert record == {
        "owner_id": "u1",
        "display_name": "Ada",
        "settings": {"notifications": True, "email_digest": False, "theme": "dark"},
        "updated_at": clock.now,
    }


@pytest.mark.asyncio
async def test_later_saves_update_in_place(profiles_collection, clock) -> None:
    store = ProfileStore(profiles_collection, USER, clock=clock)
    await store.load()
    await store.save(display_name="Ada")
    clock.advance(5)

    profile = await store.save(email_digest=True, notifications=False)

    assert len(profiles_collection.writes("create")) == 1
    [(record_id, fields)] = profiles_collection.writes("update")
    assert record_id == "profiles-1"
    assert fields["settings"] == {"notifications": False, "email_digest": True, "theme": "light"}
    assert fields["display_name"] == "Ada"
    assert "owner_id" not in fields
    assert profile.email_digest is True


@pytest.mark.asyncio
async def test_stored_profile_is_read_back(profiles_collection, clock) -> None:
    await ProfileStore(profiles_collection, USER, clock=clock).save(display_name="Ada", theme=Theme.DARK)

    profile = await ProfileStore(profiles_collection, USER, clock=clock).load()

    assert profile.display_name == "Ada"
    assert profile.theme is Theme.DARK


@pytest.mark.asyncio
async def test_partial_settings_fall_back_to_defaults(profiles_collection, clock) -> None:
    profiles_collection.records["p1"] = {
        "id": "p1",
        "owner_id": "u1",
        "display_name": "",
        "settings": {"email_digest": True, "theme": "sepia"},
        "updated_at": 1.0,
    }

    profile = await ProfileStore(profiles_collection, USER, clock=clock).load()

    assert profile.display_name == "ada.l"
    assert profile.notifications is True
    assert profile.email_digest is True
    assert profile.theme is Theme.LIGHT


@pytest.mark.asyncio
@pytest.mark.parametrize("changes", [{"display_name": "   "}, {"theme": "sepia"}])
async def test_invalid_changes_write_nothing(profiles_collection, clock, changes) -> None:
    store = ProfileStore(profiles_collection, USER, clock=clock)
    await store.load()

    with pytest.raises(ValueError):
        await store.save(**changes)

    assert profiles_collection.writes("create") == []
    assert store.current.display_name == "ada.l"


@pytest.mark.asyncio
async def test_failed_save_keeps_the_previous_profile(profiles_collection, clock) -> None:
    store = ProfileStore(profiles_collection, USER, clock=clock)
    await store.load()
    profiles_collection.fail_writes = WriteError("offline")

    with pytest.raises(WriteError):
        await store.save(display_name="Ada")

    assert store.current.display_name == "ada.l"


@pytest.mark.asyncio
async def test_profile_removed_elsewhere_is_recreated(profiles_collection, clock) -> None:
    store = ProfileStore(profiles_collection, USER, clock=clock)
    await store.save(display_name="Ada")
    profiles_collection.records.clear()

    await store.save(theme="dark")

    assert len(profiles_collection.writes("create")) == 2
    [stored] = profiles_collection.records.values()
    assert stored["settings"]["theme"] == "dark"
    assert stored["display_name"] == "Ada"


def test_user_id_is_required(profiles_collection) -> None:
    with pytest.raises(ValueError):
        ProfileStore(profiles_collection, AuthUser(""))
