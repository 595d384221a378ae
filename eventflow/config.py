"""
設定 — 環境変数から読み込む
"""

import os
from datetime import timedelta


def _flag(name: str, default: str) -> bool:
    return os.environ.get(name, default).lower() in ("1", "true", "yes", "on")


REDIS_URL = os.environ.get("REDIS_URL", "redis://localhost:6379")
DATABASE_URL = os.environ.get("DATABASE_URL", "sqlite+aiosqlite:///./eventflow.db")

# API プロセスでイベントルートも動かすか (false なら API のみ)
RUN_EVENTS = _flag("EVENTFLOW_RUN_EVENTS", "true")
SEED_DATA = _flag("EVENTFLOW_SEED_DATA", "true")

STREAM_MAX_MSGS = int(os.environ.get("EVENTFLOW_STREAM_MAX_MSGS", "10"))
INACTIVE_THRESHOLD = timedelta(days=float(os.environ.get("EVENTFLOW_INACTIVE_DAYS", "14")))

API_HOST = os.environ.get("EVENTFLOW_API_HOST", "0.0.0.0")
API_PORT = int(os.environ.get("EVENTFLOW_API_PORT", "8000"))

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
