"""Alembic entry points for the recorded-state schema."""

from __future__ import annotations

import tomllib
from pathlib import Path
from typing import TYPE_CHECKING, Final

from alembic import command
from alembic.config import Config

from envsync.config.storage import get_database_uri

PROJECT_ROOT: Final[Path] = Path(__file__).resolve().parents[5]
PYPROJECT_PATH: Final[Path] = PROJECT_ROOT / "pyproject.toml"
MIGRATIONS_PATH: Final[Path] = Path(__file__).resolve().parent

_PATH_OPTIONS: Final[frozenset[str]] = frozenset({"script_location", "prepend_sys_path"})

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine


def _load_pyproject_options() -> dict[str, str]:
    """Return the ``[tool.alembic]`` table, or nothing when running from a wheel."""

    try:
        with PYPROJECT_PATH.open("rb") as pyproject_file:
            document = tomllib.load(pyproject_file)
    except FileNotFoundError:
        return {}
    section = document.get("tool", {}).get("alembic", {})
    return {str(key): str(value) for key, value in section.items()}


def _resolve(option: str | None, default: Path) -> Path:
    if option is None:
        return default
    candidate = Path(option)
    return candidate if candidate.is_absolute() else (PROJECT_ROOT / candidate).resolve()


def _build_config() -> Config:
    options = _load_pyproject_options()
    config = Config(toml_file=str(PYPROJECT_PATH)) if options else Config()

    # Always point at the migrations shipped next to this module unless overridden.
    config.set_main_option(
        "script_location", str(_resolve(options.get("script_location"), MIGRATIONS_PATH))
    )
    config.set_main_option(
        "prepend_sys_path", str(_resolve(options.get("prepend_sys_path"), PROJECT_ROOT))
    )
    for key, value in options.items():
        if key not in _PATH_OPTIONS:
            config.set_main_option(key, value)
    return config


def upgrade_head(*, engine: Engine | None = None, database_uri: str | None = None) -> None:
    """Upgrade the recorded-state schema to the latest revision."""

    config = _build_config()
    if engine is not None:
        with engine.begin() as connection:
            config.attributes["connection"] = connection
            command.upgrade(config, "head")
        return
    config.set_main_option("sqlalchemy.url", database_uri or get_database_uri())
    command.upgrade(config, "head")
