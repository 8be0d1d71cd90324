"""Runtime configuration from the environment (and an optional .env file)."""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from dotenv import find_dotenv, load_dotenv

from .leaderboard import DEFAULT_LIMIT
from .notifier import DEFAULT_SENDER
from .session import DEFAULT_ADVANCE_DELAY

logger = logging.getLogger("verbtrainer.config")


@dataclass(frozen=True)
class AppConfig:
    """Settings for storage, remote services, and logging."""

    data_dir: Path
    supabase_url: str | None
    supabase_key: str | None
    resend_api_key: str | None
    notify_sender: str
    leaderboard_limit: int
    advance_delay: float
    http_timeout: float
    log_level: str

    @property
    def db_path(self) -> Path:
        """SQLite progress database location."""
        return self.data_dir / "progress.db"


def load_config(environ: Mapping[str, str] | None = None, *, use_dotenv: bool = True) -> AppConfig:
    """Read configuration, loading `.env` into the process environment first."""
    if environ is None:
        if use_dotenv and not load_dotenv(find_dotenv(usecwd=True)):
            logger.debug(".env file not found, using process environment only")
        environ = os.environ

    return AppConfig(
        data_dir=Path(environ.get("VERBTRAINER_DATA_DIR") or ".verbtrainer"),
        supabase_url=environ.get("SUPABASE_URL") or None,
        supabase_key=environ.get("SUPABASE_SERVICE_KEY") or None,
        resend_api_key=environ.get("RESEND_API_KEY") or None,
        notify_sender=environ.get("VERBTRAINER_NOTIFY_FROM") or DEFAULT_SENDER,
        leaderboard_limit=_positive_int(environ.get("VERBTRAINER_LEADERBOARD_LIMIT"), DEFAULT_LIMIT),
        advance_delay=_non_negative_float(environ.get("VERBTRAINER_ADVANCE_DELAY"), DEFAULT_ADVANCE_DELAY),
        http_timeout=_non_negative_float(environ.get("VERBTRAINER_HTTP_TIMEOUT"), 10.0),
        log_level=(environ.get("VERBTRAINER_LOG_LEVEL") or "WARNING").upper(),
    )


def _positive_int(raw: str | None, default: int) -> int:
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning("Ignoring invalid integer setting %r", raw)
        return default
    return value if value > 0 else default


def _non_negative_float(raw: str | None, default: float) -> float:
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning("Ignoring invalid number setting %r", raw)
        return default
    return value if value >= 0 else default
