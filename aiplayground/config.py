"""
Runtime configuration for AI Playground.

Values come from the environment (optionally a .env file):
- AIPLAYGROUND_HOME: directory holding progress.db
- AIPLAYGROUND_CHALLENGE_INTERVAL_MS: challenge sampling interval
- AIPLAYGROUND_STREAK_WINDOW_DAYS: trailing window for the activity calendar
- AIPLAYGROUND_LOG_LEVEL: log level used by the scripts
"""

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()


STORAGE_KEY = "ai-playground-progress"
DEFAULT_PROGRESS_DIR = Path(os.getenv("AIPLAYGROUND_HOME", Path.home() / ".aiplayground"))
DEFAULT_PROGRESS_DB = DEFAULT_PROGRESS_DIR / "progress.db"


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


@dataclass
class EngineConfig:
    """Settings shared by the store, the evaluator and the scripts."""
    progress_db: Path = DEFAULT_PROGRESS_DB
    storage_key: str = STORAGE_KEY
    challenge_interval_ms: int = 100
    activity_window_days: int = 84  # 12 weeks
    log_level: str = "INFO"

    @property
    def challenge_interval(self) -> float:
        """Sampling interval in seconds."""
        return self.challenge_interval_ms / 1000.0

    @classmethod
    def from_env(cls) -> "EngineConfig":
        home = os.getenv("AIPLAYGROUND_HOME")
        return cls(
            progress_db=Path(home) / "progress.db" if home else DEFAULT_PROGRESS_DB,
            challenge_interval_ms=max(1, _env_int("AIPLAYGROUND_CHALLENGE_INTERVAL_MS", 100)),
            activity_window_days=max(1, _env_int("AIPLAYGROUND_STREAK_WINDOW_DAYS", 84)),
            log_level=os.getenv("AIPLAYGROUND_LOG_LEVEL", "INFO").upper(),
        )
