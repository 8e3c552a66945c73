"""Location of the recorded-state database."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Final

APP_DIR_NAME: Final[str] = "envsync"
DEFAULT_DB_FILENAME: Final[str] = "envsync.db"


@dataclass(frozen=True, slots=True)
class StorageConfig:
    data_dir: Path

    def database_uri(self) -> str:
        data_dir = self.data_dir.expanduser().resolve()
        data_dir.mkdir(parents=True, exist_ok=True)
        return f"sqlite+pysqlite:///{data_dir / DEFAULT_DB_FILENAME}"


def _default_data_dir() -> Path:
    if os.name == "nt":
        base = os.getenv("LOCALAPPDATA")
        base_path = Path(base) if base else (Path.home() / "AppData" / "Local")
    else:
        base = os.getenv("XDG_DATA_HOME")
        base_path = Path(base) if base else (Path.home() / ".local" / "share")
    return base_path / APP_DIR_NAME


def get_storage_config() -> StorageConfig:
    env_dir = os.getenv("ENVSYNC_DATA_DIR")
    return StorageConfig(data_dir=Path(env_dir) if env_dir else _default_data_dir())


def get_database_uri() -> str:
    """``DATABASE_URI`` when set, otherwise a SQLite file in the data directory."""

    return os.getenv("DATABASE_URI") or get_storage_config().database_uri()
