"""Seed the database: super admin, countries, ships, ship-country backfill.

With APP_ENV=development the run also loads sample users, port calls,
service windows and shifts anchored on today's civil date.

Usage:
    cd backend && python -m scripts.seed
"""
from __future__ import annotations

import logging
import sys

from app.config import settings
from app.modules.seed import run_seed

logger = logging.getLogger(__name__)


def main() -> int:
    logging.basicConfig(level=settings.LOG_LEVEL)
    try:
        run_seed()
    except Exception:
        logger.exception("Error during seeding")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
