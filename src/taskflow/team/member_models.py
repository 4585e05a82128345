# src/taskflow/team/member_models.py

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

from ..core.ports import Record


class MemberRole(StrEnum):
    OWNER = "owner"
    MEMBER = "member"
    VIEWER = "viewer"

    @classmethod
    def from_db(cls, raw: str | None) -> MemberRole:
        # Older records carry capitalised roles ("Owner", "Viewer").
        if not raw:
            return cls.VIEWER
        try:
            return cls(str(raw).strip().lower())
        except ValueError:
            return cls.VIEWER


class Theme(StrEnum):
    LIGHT = "light"
    DARK = "dark"


def email_prefix(email: str) -> str:
    return (email or "").split("@", 1)[0]


def normalize_email(raw: str) -> str:
    """Trimmed, lowercased address. Raises ValueError if it cannot be one."""
    email = (raw or "").strip().lower()
    local, at, domain = email.partition("@")
    if not at or not local or not domain or " " in email:
        raise ValueError(f"not an email address: {raw!r}")
    return email


@dataclass(frozen=True, slots=True)
class Member:
    """One entry of the team roster."""

    id: str
    email: str
    display_name: str
    role: MemberRole
    created_at: float
    is_placeholder: bool = False
    uid: str | None = None

    @property
    def initial(self) -> str:
        return (self.display_name or self.email or "U")[:1].upper()


def member_from_record(rec: Record) -> Member:
    if not rec.get("id"):
        raise ValueError("member record without id")
    email = str(rec.get("email") or "").strip()
    if not email:
        raise ValueError(f"member {rec['id']} has no email")
    uid = rec.get("uid")
    return Member(
        id=str(rec["id"]),
        email=email,
        display_name=str(rec.get("display_name") or email_prefix(email)),
        role=MemberRole.from_db(rec.get("role")),
        created_at=float(rec.get("created_at") or 0.0),
        is_placeholder=bool(rec.get("is_placeholder", False)),
        uid=str(uid) if uid else None,
    )


def member_to_record(member: Member, *, team_id: str) -> Record:
    return {
        "owner_id": team_id,
        "email": member.email,
        "display_name": member.display_name,
        "role": member.role.value,
        "created_at": member.created_at,
        "is_placeholder": member.is_placeholder,
        "uid": member.uid,
    }


def member_sort_key(member: Member) -> tuple[float, str]:
    """Roster order: oldest first, ties by id."""
    return (member.created_at, member.id)


@dataclass(frozen=True, slots=True)
class Profile:
    """A user's own display name and preferences."""

    user_id: str
    email: str
    display_name: str
    notifications: bool = True
    email_digest: bool = False
    theme: Theme = Theme.LIGHT

    def settings_record(self) -> Record:
        return {
            "notifications": self.notifications,
            "email_digest": self.email_digest,
            "theme": self.theme.value,
        }


def default_profile(user_id: str, email: str) -> Profile:
    return Profile(user_id=user_id, email=email, display_name=email_prefix(email) or user_id)


def profile_from_record(rec: Record, *, user_id: str, email: str) -> Profile:
    """Missing fields take the defaults a fresh account would have."""
    settings = rec.get("settings") or {}
    if not isinstance(settings, dict):
        settings = {}
    notifications = settings.get("notifications")
    email_digest = settings.get("email_digest")
    try:
        theme = Theme(settings.get("theme") or Theme.LIGHT)
    except ValueError:
        theme = Theme.LIGHT
    return Profile(
        user_id=user_id,
        email=email,
        display_name=str(rec.get("display_name") or email_prefix(email) or user_id),
        notifications=True if notifications is None else bool(notifications),
        email_digest=False if email_digest is None else bool(email_digest),
        theme=theme,
    )


def profile_to_record(profile: Profile, *, updated_at: float) -> Record:
    return {
        "owner_id": profile.user_id,
        "display_name": profile.display_name,
        "settings": profile.settings_record(),
        "updated_at": updated_at,
    }
