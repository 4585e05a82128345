# src/taskflow/logging_setup.py

from __future__ import annotations

import logging
import sys
from pathlib import Path

from slugify import slugify

_FORMAT = "%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s"
_DATEFMT = "%Y-%m-%d %H:%M:%S"

# Third-party loggers that chatter at DEBUG during every S3 call.
_THIRD_PARTY = ("boto3", "botocore", "s3transfer", "urllib3")


class _ConsoleNoiseFilter(logging.Filter):
    """
    Keep the REPL readable while tasks stream in:
    - taskflow logs pass through
    - the remote adapter logs every write, so only WARNING+ from taskflow.remote
    - captured warnings ('py.warnings') and third-party loggers only at ERROR+
    """

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name

        if name.startswith("taskflow."):
            if name.startswith("taskflow.remote."):
                return record.levelno >= logging.WARNING
            return True

        return record.levelno >= logging.ERROR


def resolve_level(name: object, default: int = logging.INFO) -> tuple[int, bool]:
    """
    Map a level name ("debug", "WARNING", "10") to a logging level.

    Returns (level, known). Unknown names resolve to default with known=False.
    """
    raw = str(name or "").strip()
    if raw.isdigit():
        return int(raw), True
    level = logging.getLevelName(raw.upper())
    if isinstance(level, int):
        return level, True
    return default, False


def log_file_name(app_name: str) -> str:
    return f"{slugify(app_name or '') or 'taskflow'}.log"


def setup_logging(
    *,
    log_dir: str | Path = ".local/taskflow",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
    file_name: str = "taskflow.log",
) -> Path:
    """
    Install one filtered console handler and one full-detail file handler on
    the root logger. Existing root handlers are replaced.

    Call this ONCE, before the first log line. Returns the log file path.
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / file_name

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for h in list(root.handlers):
        root.removeHandler(h)

    fmt = logging.Formatter(fmt=_FORMAT, datefmt=_DATEFMT)

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(fmt)
    console.addFilter(_ConsoleNoiseFilter())
    root.addHandler(console)

    to_file = logging.FileHandler(str(log_file), encoding="utf-8")
    to_file.setLevel(file_level)
    to_file.setFormatter(fmt)
    root.addHandler(to_file)

    # warnings.warn(...) ends up under 'py.warnings'
    logging.captureWarnings(True)

    for noisy in _THIRD_PARTY:
        logging.getLogger(noisy).setLevel(logging.INFO)

    return log_file


def setup_logging_from_settings(settings) -> Path:
    """
    Configure logging from Settings: console level from log_level, files
    under data_dir, log file named after app_name.

    An unrecognised log_level falls back to INFO and is reported once the
    handlers are installed.
    """
    requested = getattr(settings, "log_level", "INFO")
    console_level, known = resolve_level(requested)

    log_file = setup_logging(
        log_dir=getattr(settings, "data_dir", ".local/taskflow"),
        console_level=console_level,
        file_name=log_file_name(getattr(settings, "app_name", "taskflow")),
    )
    if not known:
        logging.getLogger(__name__).warning("Unknown log level %r, using INFO", requested)
    return log_file
