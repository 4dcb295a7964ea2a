"""
Alembic migrations for the metadata database.

The migration scripts live in migrations/ at the project root, next to
alembic.ini, so these helpers work from a source checkout or an editable
install.
"""

import logging
from pathlib import Path
from typing import Optional

from alembic import command
from alembic.config import Config

from schemaport.config.settings import get_settings

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).resolve().parents[2]


def alembic_config(database_url: Optional[str] = None) -> Config:
    """
    Build an Alembic config for the metadata database.

    Args:
        database_url: Overrides settings.database_url

    Raises:
        FileNotFoundError: If alembic.ini is not next to the package
    """
    ini_path = PROJECT_ROOT / "alembic.ini"
    if not ini_path.exists():
        raise FileNotFoundError(f"alembic.ini not found at {ini_path}")

    cfg = Config(str(ini_path))
    cfg.set_main_option("script_location", str(PROJECT_ROOT / "migrations"))
    cfg.set_main_option("sqlalchemy.url", database_url or get_settings().database_url)
    # Logging is already configured by the CLI
    cfg.attributes["configure_logger"] = False
    return cfg


def upgrade(revision: str = "head", database_url: Optional[str] = None) -> None:
    logger.info(f"Upgrading metadata database to {revision}")
    command.upgrade(alembic_config(database_url), revision)


def downgrade(revision: str = "-1", database_url: Optional[str] = None) -> None:
    logger.info(f"Downgrading metadata database to {revision}")
    command.downgrade(alembic_config(database_url), revision)
