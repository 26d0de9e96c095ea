# src/x4pn_meter/scripts/migrate.py
"""Apply database migrations, or create tables directly for local SQLite use."""
from __future__ import annotations

import argparse
import logging
from pathlib import Path

from alembic import command
from alembic.config import Config

from x4pn_meter.core.settings import settings
from x4pn_meter.db.session import create_tables

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).resolve().parents[3] / "migrations"


def alembic_config(url: str | None = None) -> Config:
    """Return an Alembic config pointing at the project's migrations folder."""
    cfg = Config()
    cfg.set_main_option("script_location", str(MIGRATIONS_DIR))
    cfg.set_main_option("sqlalchemy.url", url or settings.database_url_sync)
    return cfg


def run_upgrade_head(url: str | None = None) -> None:
    command.upgrade(alembic_config(url), "head")


def main() -> None:
    parser = argparse.ArgumentParser(description="Bring the configured database up to date")
    parser.add_argument(
        "--create-all",
        action="store_true",
        help="Create tables from the models instead of running migrations.",
    )
    parser.add_argument(
        "--url",
        default=None,
        help="Override database URL (defaults to effective settings URL)",
    )
    args = parser.parse_args()
    logging.basicConfig(level=settings.log_level.upper())

    if args.create_all:
        create_tables()
        logger.info("Created tables from model metadata")
    else:
        run_upgrade_head(args.url)
        logger.info("Database upgraded to head")


if __name__ == "__main__":
    main()
