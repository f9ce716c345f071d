from __future__ import annotations

import os
import sys
from dataclasses import dataclass
from pathlib import Path


APP_DIR_NAME = "course-player"
DB_FILENAME = "player.db"


@dataclass(frozen=True)
class Settings:
    data_dir: Path
    database_url: str
    log_level: str = "INFO"
    host: str = "127.0.0.1"
    port: int = 8765


def default_data_dir() -> Path:
    """Per-user application data directory for the current platform."""
    if sys.platform.startswith("win"):
        base = os.getenv("APPDATA", "").strip()
        root = Path(base) if base else Path.home() / "AppData" / "Roaming"
    elif sys.platform == "darwin":
        root = Path.home() / "Library" / "Application Support"
    else:
        xdg = os.getenv("XDG_DATA_HOME", "").strip()
        root = Path(xdg) if xdg else Path.home() / ".local" / "share"
    return root / APP_DIR_NAME


def get_settings() -> Settings:
    data_dir_raw = os.getenv("PLAYER_DATA_DIR", "").strip()
    if data_dir_raw:
        data_dir = Path(data_dir_raw).expanduser().resolve()
    else:
        data_dir = default_data_dir()

    database_url = os.getenv("DATABASE_URL", "").strip()
    if not database_url:
        database_url = f"sqlite:///{data_dir / DB_FILENAME}"
    elif not database_url.startswith("sqlite"):
        # Upserts are written with the SQLite dialect.
        raise ValueError(f"DATABASE_URL must be a sqlite URL, got {database_url!r}")

    return Settings(
        data_dir=data_dir,
        database_url=database_url,
        log_level=os.getenv("LOG_LEVEL", "INFO").strip().upper() or "INFO",
        host=os.getenv("PLAYER_HOST", "127.0.0.1").strip(),
        port=int(os.getenv("PLAYER_PORT", "8765")),
    )
