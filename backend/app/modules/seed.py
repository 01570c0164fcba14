"""Seed orchestrator: runs every seed step in dependency order.

Order: super admin, countries, ships, ship-country backfill, then (in
development only) the workflow fixtures. Each step commits on its own; the
first error aborts the run. The engine and session are created for the run
and released in every case.

Usage:
    from app.modules.seed import run_seed
    run_seed()
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from app.config import Settings, settings as default_settings
from app.database import init_db, make_engine, make_session_factory
from app.modules.countries import upsert_countries
from app.modules.dev_workflows import upsert_dev_workflows
from app.modules.ship_country_backfill import backfill_ship_countries
from app.modules.ships import upsert_ships
from app.modules.users import upsert_super_admin

logger = logging.getLogger(__name__)


def run_seed(
    settings: Optional[Settings] = None,
    database_url: Optional[str] = None,
    now: Optional[datetime] = None,
    create_tables: bool = True,
) -> dict:
    settings = settings or default_settings
    engine = make_engine(database_url or settings.DATABASE_URL)
    db = make_session_factory(engine)()
    try:
        logger.info("Starting database seeding (APP_ENV=%s)", settings.APP_ENV)
        if create_tables:
            init_db(bind=engine)

        summary: dict = {}
        upsert_super_admin(db, settings.SEED_SUPERADMIN_EMAIL, settings.SEED_SUPERADMIN_PASS)
        summary["countries"] = upsert_countries(db)
        summary["ships"] = upsert_ships(db)
        summary["backfill"] = backfill_ship_countries(db, settings.DEFAULT_COUNTRY_CODE)
        if settings.is_development:
            summary["dev_workflows"] = upsert_dev_workflows(db, settings, now=now)
        else:
            logger.info("APP_ENV=%s: skipping development workflow data", settings.APP_ENV)

        logger.info("Database seeding completed")
        return summary
    finally:
        db.close()
        engine.dispose()
