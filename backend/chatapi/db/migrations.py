from __future__ import annotations

from pathlib import Path

from alembic import command
from alembic.config import Config

from chatapi.core.settings import BACKEND_ROOT, Settings, get_settings


def alembic_config(settings: Settings | None = None) -> Config:
    """Alembic config for the bundled migrations; MIGRATIONS_DIR overrides the script location."""
    settings = settings or get_settings()
    cfg = Config(str(BACKEND_ROOT / "alembic.ini"))
    cfg.set_main_option("script_location", str(Path(settings.migrations_dir).resolve()))
    return cfg


def upgrade_to_head(settings: Settings | None = None) -> None:
    command.upgrade(alembic_config(settings), "head")
