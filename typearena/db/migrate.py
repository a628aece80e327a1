"""
Auto-apply Alembic migrations on startup (STORAGE_MODE=db).
"""
import asyncio
import logging
from pathlib import Path

from alembic import command
from alembic.config import Config

from typearena.db.config import settings

logger = logging.getLogger(__name__)


def alembic_config() -> Config:
    # typearena/db/migrate.py -> repo root is two levels up
    repo_root = Path(__file__).resolve().parent.parent.parent
    cfg = Config(str(repo_root / "alembic.ini"))
    cfg.set_main_option("script_location", str(repo_root / "migrations"))
    cfg.set_main_option("sqlalchemy.url", settings.database_url)
    return cfg


async def run_migrations() -> None:
    """Apply migrations to head using the runtime DATABASE_URL."""
    cfg = alembic_config()
    logger.info("Applying migrations to head")
    # env.py drives its own event loop, so the upgrade runs in a worker thread.
    await asyncio.to_thread(command.upgrade, cfg, "head")
    logger.info("Migrations up to date.")
