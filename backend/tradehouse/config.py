# backend/tradehouse/config.py
from __future__ import annotations
import os


def _env_flag(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/tradehouse.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///tradehouse.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Daily due-date sweep (UTC wall clock)
    SCHEDULER_ENABLED = _env_flag("SCHEDULER_ENABLED", True)
    INVOICE_STATUS_JOB_HOUR = int(os.environ.get("INVOICE_STATUS_JOB_HOUR", "0"))
    INVOICE_STATUS_JOB_MINUTE = int(os.environ.get("INVOICE_STATUS_JOB_MINUTE", "0"))

    # Item code probing: 5-digit codes starting at 10000
    ITEM_CODE_START = 10000
    ITEM_CODE_MAX_ATTEMPTS = 1000


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    SCHEDULER_ENABLED = False
