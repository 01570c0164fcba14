"""Ship-country backfill: make sure no ship is left without a country.

Ships loaded before the country column was mandatory (or by partial imports)
can have ``country_id IS NULL``. They are repaired in three passes:

1. Majority vote: count port calls per (ship, origin country); the most
   frequent origin country wins. Ties go to the lowest country_id so the
   result does not depend on aggregation order.
2. Default: ships still missing a country get ``DEFAULT_COUNTRY_CODE`` in
   one bulk update. The default country must exist.
3. Verification: any ship still without a country is a data-integrity
   failure and raises ``SeedIntegrityError``.

Once every ship has a country the function is a no-op.
"""
from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.config import settings
from app.errors import SeedIntegrityError
from app.models.country import Country
from app.models.port_call import PortCall
from app.models.ship import Ship

logger = logging.getLogger(__name__)


def majority_origin_country_by_ship(db: Session) -> dict[int, int]:
    """Map ship_id -> most frequent origin_country_id across its port calls."""
    rows = (
        db.query(PortCall.ship_id, PortCall.origin_country_id, func.count(PortCall.port_call_id))
        .group_by(PortCall.ship_id, PortCall.origin_country_id)
        .order_by(PortCall.ship_id, PortCall.origin_country_id)
        .all()
    )
    best: dict[int, tuple[int, int]] = {}
    for ship_id, country_id, count in rows:
        if country_id is None:
            continue
        current = best.get(ship_id)
        # Rows arrive in ascending country_id order, so strict > keeps the lowest id on ties
        if current is None or count > current[1]:
            best[ship_id] = (country_id, count)
    return {ship_id: country_id for ship_id, (country_id, _) in best.items()}


def backfill_ship_countries(db: Session, default_country_code: Optional[str] = None) -> dict:
    default_country_code = default_country_code or settings.DEFAULT_COUNTRY_CODE
    votes = majority_origin_country_by_ship(db)

    inferred = 0
    try:
        missing = db.query(Ship).filter(Ship.country_id.is_(None)).all()
        for ship in missing:
            country_id = votes.get(ship.ship_id)
            if country_id is None:
                continue
            exists = db.query(Country.country_id).filter(Country.country_id == country_id).first()
            if exists is not None:
                ship.country_id = country_id
                inferred += 1
        db.commit()
    except Exception:
        db.rollback()
        raise
    if inferred:
        logger.info("backfill_ship_countries: inferred country from port calls for %d ship(s)", inferred)

    defaulted = 0
    remaining = db.query(Ship).filter(Ship.country_id.is_(None)).count()
    if remaining > 0:
        default_country = db.query(Country).filter(Country.code == default_country_code).first()
        if default_country is None:
            raise SeedIntegrityError(f"Default country code={default_country_code} does not exist")
        defaulted = (
            db.query(Ship)
            .filter(Ship.country_id.is_(None))
            .update({Ship.country_id: default_country.country_id}, synchronize_session=False)
        )
        db.commit()
        if defaulted:
            logger.info(
                "backfill_ship_countries: assigned default country %s to %d ship(s)",
                default_country_code, defaulted,
            )

    final_nulls = db.query(Ship).filter(Ship.country_id.is_(None)).count()
    if final_nulls > 0:
        raise SeedIntegrityError(
            f"{final_nulls} ship(s) still have no country after backfill; check source data"
        )
    return {"inferred": inferred, "defaulted": defaulted}
