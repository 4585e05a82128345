# src/taskflow/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app (normal "settings layer").
- No secrets required at import time.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

ENV_PREFIX = "TASKFLOW"

load_dotenv(override=False)


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _first_env(*names: str, default: str | None = None) -> str | None:
    for n in names:
        v = os.getenv(n)
        if v is not None and v.strip() != "":
            return v
    return default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    db_path: Path
    attachments_dir: Path

    # ---- Attachment storage ----
    storage_backend: str  # "local" | "s3"
    s3_bucket: str
    s3_region: str
    s3_base_url: str

    # ---- Signed-in user (stand-in for the auth collaborator) ----
    user_id: str
    user_email: str
    team_id: str

    # ---- Time tracking ----
    tick_seconds: float
    min_session_ms: int

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "taskflow") or "taskflow"
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/taskflow"))
        db_path = _env_path(_k("DB_PATH"), data_dir / "taskflow.sqlite3")
        attachments_dir = _env_path(_k("ATTACHMENTS_DIR"), data_dir / "attachments")

        storage_backend = _env(_k("STORAGE_BACKEND"), "local").strip().lower() or "local"
        # AWS_* names are accepted as well so a standard AWS env just works.
        s3_bucket = (_first_env(_k("S3_BUCKET"), "AWS_S3_BUCKET", default="") or "").strip()
        s3_region = (_first_env(_k("S3_REGION"), "AWS_REGION", default="us-east-1") or "us-east-1").strip()
        s3_base_url = (_first_env(_k("S3_BASE_URL"), "AWS_S3_BASE_URL", default="") or "").strip()

        user_id = _env(_k("USER_ID"), "local-user").strip()
        user_email = _env(_k("USER_EMAIL"), "").strip()
        team_id = _env(_k("TEAM_ID"), "default").strip() or "default"

        tick_seconds = _env_float(_k("TICK_SECONDS"), 1.0)
        min_session_ms = _env_int(_k("MIN_SESSION_MS"), 1000)

        return Settings(
            app_name=app_name,
            log_level=log_level,
            data_dir=data_dir,
            db_path=db_path,
            attachments_dir=attachments_dir,
            storage_backend=storage_backend,
            s3_bucket=s3_bucket,
            s3_region=s3_region,
            s3_base_url=s3_base_url,
            user_id=user_id,
            user_email=user_email,
            team_id=team_id,
            tick_seconds=tick_seconds,
            min_session_ms=min_session_ms,
        )


_SETTINGS: Settings | None = None


def get_settings() -> Settings:
    global _SETTINGS
    if _SETTINGS is None:
        _SETTINGS = Settings.from_env()
    return _SETTINGS
