"""Configuration constants for the Chorely web frontend."""
from __future__ import annotations

import os
from datetime import date
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


def _env_flag(name: str, default: str = "1") -> bool:
    return os.environ.get(name, default).strip().lower() in {"1", "true", "yes", "on"}


def _env_date(name: str, default: str) -> date:
    raw = os.environ.get(name, default)
    try:
        return date.fromisoformat(raw.strip())
    except ValueError:
        return date.fromisoformat(default)


SHARED_PASSWORD = os.environ.get("CHORELY_PASSWORD", "1234")
SESSION_SECRET = os.environ.get("SESSION_SECRET", "change-this-session-secret")
SQLITE_FILE_NAME = os.environ.get("CHORELY_SQLITE", "chorely.db")
HISTORY_START_DATE = _env_date("CHORELY_HISTORY_START", "2024-11-26")
SEED_DEFAULTS = _env_flag("CHORELY_SEED_DEFAULTS")
_LOG_PATH_RAW = os.environ.get("CHORELY_LOG_PATH", "").strip()
LOG_PATH: Optional[Path] = Path(_LOG_PATH_RAW) if _LOG_PATH_RAW else None

SESSION_USER_KEY = "user_id"
SESSION_ADMIN_KEY = "admin_ok"
SESSION_NOTICE_KEY = "notice"
SESSION_NOTICE_KIND_KEY = "notice_kind"

__all__ = [
    "HISTORY_START_DATE",
    "LOG_PATH",
    "SEED_DEFAULTS",
    "SESSION_ADMIN_KEY",
    "SESSION_NOTICE_KEY",
    "SESSION_NOTICE_KIND_KEY",
    "SESSION_SECRET",
    "SESSION_USER_KEY",
    "SHARED_PASSWORD",
    "SQLITE_FILE_NAME",
]
