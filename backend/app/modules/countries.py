"""Country catalog: idempotent seed upsert and CRUD helpers.

Countries are keyed by their ISO-2-like ``code``; once created the code is
never rewritten by the seed, only the display name.
"""
from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from app.errors import ConflictError, NotFoundError
from app.models.base import StatusEnum
from app.models.country import Country
from app.models.ship import Ship
from app.utils.pagination import paginate

logger = logging.getLogger(__name__)

# (name, code)
COUNTRIES: list[tuple[str, str]] = [
    ("Colombia", "CO"),
    ("Estados Unidos", "US"),
    ("España", "ES"),
    ("Italia", "IT"),
    ("Brasil", "BR"),
]


def upsert_countries(db: Session, countries: list[tuple[str, str]] = COUNTRIES) -> dict:
    """Insert missing countries by code, refresh the name of existing ones.

    Re-running with identical input leaves every row unchanged.
    """
    inserted = 0
    updated = 0
    try:
        for name, code in countries:
            existing = db.query(Country).filter(Country.code == code).first()
            if existing is None:
                db.add(Country(code=code, name=name, status=StatusEnum.ACTIVO))
                inserted += 1
                continue
            if existing.name != name:
                existing.name = name
                updated += 1
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info("upsert_countries: inserted=%d updated=%d total=%d", inserted, updated, len(countries))
    return {"inserted": inserted, "updated": updated, "total": len(countries)}


def find_country_by_code(db: Session, code: str) -> Optional[Country]:
    return db.query(Country).filter(Country.code == code).first()


# ---------------------------------------------------------------------------
# CRUD
# ---------------------------------------------------------------------------

def list_countries(
    db: Session,
    q: Optional[str] = None,
    code: Optional[str] = None,
    status: Optional[StatusEnum] = None,
    page: int = 1,
    page_size: int = 10,
) -> dict:
    query = db.query(Country)
    if status is not None:
        query = query.filter(Country.status == status)
    if code:
        query = query.filter(Country.code == code)
    if q:
        pattern = f"%{q}%"
        query = query.filter(or_(Country.name.ilike(pattern), Country.code.ilike(pattern)))
    query = query.order_by(Country.updated_at.desc(), Country.country_id.desc())
    return paginate(query, page, page_size)


def lookup_countries(db: Session) -> list[Country]:
    return (
        db.query(Country)
        .filter(Country.status == StatusEnum.ACTIVO)
        .order_by(Country.name.asc())
        .all()
    )


def get_country(db: Session, country_id: int) -> Country:
    country = db.query(Country).filter(Country.country_id == country_id).first()
    if country is None:
        raise NotFoundError("Country not found")
    return country


def create_country(db: Session, code: str, name: str, status: Optional[StatusEnum] = None) -> Country:
    if find_country_by_code(db, code) is not None:
        raise ConflictError(f"Country with code={code} already exists")
    country = Country(code=code, name=name, status=status or StatusEnum.ACTIVO)
    db.add(country)
    db.commit()
    db.refresh(country)
    logger.info("country created: country_id=%s code=%s", country.country_id, code)
    return country


def update_country(db: Session, country_id: int, fields: dict) -> Country:
    """Partial update: only keys present in *fields* are written."""
    country = get_country(db, country_id)
    new_code = fields.get("code")
    if new_code is not None and new_code != country.code:
        if find_country_by_code(db, new_code) is not None:
            raise ConflictError(f"Country with code={new_code} already exists")
    for key in ("code", "name", "status"):
        if key in fields and fields[key] is not None:
            setattr(country, key, fields[key])
    db.commit()
    db.refresh(country)
    return country


def delete_country(db: Session, country_id: int) -> dict:
    """Hard delete, refused while any ship references the country."""
    country = get_country(db, country_id)
    ship_count = db.query(Ship).filter(Ship.country_id == country_id).count()
    if ship_count > 0:
        raise ConflictError("Cannot delete country: ships reference it")
    deleted = {"country_id": country.country_id, "code": country.code, "name": country.name}
    db.delete(country)
    db.commit()
    logger.info("country deleted: country_id=%s code=%s", country_id, deleted["code"])
    return deleted
