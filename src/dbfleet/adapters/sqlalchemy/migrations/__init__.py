"""Alembic migrations of the desired-state store."""

from __future__ import annotations

import tomllib
from pathlib import Path
from typing import TYPE_CHECKING, Final

from alembic import command
from alembic.config import Config

from dbfleet.config import get_database_config

PROJECT_ROOT: Final[Path] = Path(__file__).resolve().parents[5]
PYPROJECT_PATH: Final[Path] = PROJECT_ROOT / "pyproject.toml"
MIGRATIONS_PATH: Final[Path] = Path(__file__).resolve().parent

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine


def _pyproject_alembic_options() -> dict[str, str]:
    """Read the ``[tool.alembic]`` table; an installed package has no pyproject."""

    try:
        with PYPROJECT_PATH.open("rb") as pyproject_file:
            document = tomllib.load(pyproject_file)
    except FileNotFoundError:
        return {}
    section = document.get("tool", {}).get("alembic", {})
    return {str(key): str(value) for key, value in section.items()}


def _resolve(value: str | None, default: Path) -> Path:
    if value is None:
        return default
    candidate = Path(value)
    resolved = candidate if candidate.is_absolute() else PROJECT_ROOT / candidate
    return resolved.resolve()


def build_config() -> Config:
    """Return an Alembic config pointing at the packaged migration scripts."""

    options = _pyproject_alembic_options()
    config = Config()
    script_path = _resolve(options.pop("script_location", None), MIGRATIONS_PATH)
    if not script_path.exists():
        script_path = MIGRATIONS_PATH
    config.set_main_option("script_location", str(script_path))
    config.set_main_option(
        "prepend_sys_path", str(_resolve(options.pop("prepend_sys_path", None), PROJECT_ROOT))
    )
    for key, value in options.items():
        config.set_main_option(key, value)
    return config


def upgrade_head(*, engine: Engine | None = None, database_uri: str | None = None) -> None:
    """Upgrade the database schema to the latest revision."""

    config = build_config()
    if engine is not None:
        with engine.begin() as connection:
            config.attributes["connection"] = connection
            command.upgrade(config, "head")
        return
    config.set_main_option("sqlalchemy.url", database_uri or get_database_config().uri)
    command.upgrade(config, "head")
