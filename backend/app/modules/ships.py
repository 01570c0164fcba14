"""Ship catalog: idempotent seed upsert and CRUD helpers.

Seed ships are keyed by name. Each ship's country is resolved from its
country code before anything is written; an unknown code aborts the step
with ``SeedIntegrityError`` and nothing from the step is persisted.
"""
from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session, joinedload

from app.errors import ConflictError, NotFoundError, SeedIntegrityError, ValidationAppError
from app.models.base import StatusEnum
from app.models.country import Country
from app.models.ship import Ship
from app.utils.pagination import paginate

logger = logging.getLogger(__name__)

# (code, name, carrier, capacity, country_code)
SHIPS: list[tuple[str, str, str, int, str]] = [
    ("B-001", "Wonder of the Seas", "Royal Caribbean", 7084, "US"),
    ("B-002", "MSC Meraviglia", "MSC Cruises", 5714, "IT"),
    ("B-003", "Norwegian Epic", "Norwegian Cruise Line", 5183, "US"),
]


def normalize_ship_code(code: str) -> str:
    return code.strip().upper()


def resolve_country_id_or_raise(db: Session, country_code: str) -> int:
    country = db.query(Country).filter(Country.code == country_code).first()
    if country is None:
        raise SeedIntegrityError(f"No country with code={country_code}")
    return country.country_id


def resolve_ship_id_or_raise(db: Session, ship_name: str) -> int:
    ship = db.query(Ship).filter(Ship.name == ship_name).first()
    if ship is None:
        raise SeedIntegrityError(f"No ship with name={ship_name}")
    return ship.ship_id


def upsert_ships(db: Session, ships: list[tuple[str, str, str, int, str]] = SHIPS) -> dict:
    """Insert or refresh seed ships by name.

    Updates rewrite code, carrier, capacity, country and status, so a ship
    left without a country by an earlier load is repaired here too.
    """
    inserted = 0
    updated = 0
    try:
        for code, name, carrier, capacity, country_code in ships:
            country_id = resolve_country_id_or_raise(db, country_code)
            normalized = normalize_ship_code(code)
            existing = db.query(Ship).filter(Ship.name == name).first()
            if existing is None:
                db.add(Ship(
                    code=normalized,
                    name=name,
                    carrier=carrier,
                    capacity=capacity,
                    country_id=country_id,
                    status=StatusEnum.ACTIVO,
                ))
                inserted += 1
                continue
            existing.code = normalized
            existing.carrier = carrier
            existing.capacity = capacity
            existing.country_id = country_id
            existing.status = StatusEnum.ACTIVO
            updated += 1
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info("upsert_ships: inserted=%d updated=%d", inserted, updated)
    return {"inserted": inserted, "updated": updated, "total": len(ships)}


# ---------------------------------------------------------------------------
# CRUD
# ---------------------------------------------------------------------------

def _require_country(db: Session, country_id: int) -> None:
    exists = db.query(Country.country_id).filter(Country.country_id == country_id).first()
    if exists is None:
        raise ValidationAppError("Country (country_id) does not exist")


def list_ships(
    db: Session,
    q: Optional[str] = None,
    country_id: Optional[int] = None,
    status: Optional[StatusEnum] = None,
    page: int = 1,
    page_size: int = 10,
) -> dict:
    query = db.query(Ship).options(joinedload(Ship.country))
    if status is not None:
        query = query.filter(Ship.status == status)
    if country_id is not None:
        query = query.filter(Ship.country_id == country_id)
    if q:
        pattern = f"%{q}%"
        query = query.filter(or_(
            Ship.name.ilike(pattern),
            Ship.carrier.ilike(pattern),
            Ship.code.ilike(pattern),
        ))
    query = query.order_by(Ship.updated_at.desc(), Ship.ship_id.desc())
    return paginate(query, page, page_size)


def lookup_ships(db: Session) -> list[Ship]:
    return (
        db.query(Ship)
        .options(joinedload(Ship.country))
        .filter(Ship.status == StatusEnum.ACTIVO)
        .order_by(Ship.name.asc())
        .all()
    )


def get_ship(db: Session, ship_id: int) -> Ship:
    ship = (
        db.query(Ship)
        .options(joinedload(Ship.country))
        .filter(Ship.ship_id == ship_id)
        .first()
    )
    if ship is None:
        raise NotFoundError("Ship not found")
    return ship


def create_ship(db: Session, fields: dict) -> Ship:
    if fields.get("country_id") is not None:
        _require_country(db, fields["country_id"])
    code = normalize_ship_code(fields["code"])
    clash = db.query(Ship).filter(or_(Ship.code == code, Ship.name == fields["name"])).first()
    if clash is not None:
        raise ConflictError("A ship with this code or name already exists")
    ship = Ship(
        code=code,
        name=fields["name"],
        carrier=fields.get("carrier"),
        capacity=fields.get("capacity"),
        country_id=fields.get("country_id"),
        status=fields.get("status") or StatusEnum.ACTIVO,
    )
    db.add(ship)
    db.commit()
    db.refresh(ship)
    logger.info("ship created: ship_id=%s code=%s", ship.ship_id, ship.code)
    return ship


def update_ship(db: Session, ship_id: int, fields: dict) -> Ship:
    ship = get_ship(db, ship_id)
    if fields.get("country_id") is not None:
        _require_country(db, fields["country_id"])
    if fields.get("code") is not None:
        fields = {**fields, "code": normalize_ship_code(fields["code"])}
    for key in ("code", "name", "carrier", "capacity", "country_id", "status"):
        if key in fields and fields[key] is not None:
            setattr(ship, key, fields[key])
    db.commit()
    db.refresh(ship)
    return ship


def deactivate_ship(db: Session, ship_id: int) -> Ship:
    """Soft delete: mark INACTIVO instead of removing the row."""
    ship = get_ship(db, ship_id)
    if ship.status == StatusEnum.INACTIVO:
        return ship
    ship.status = StatusEnum.INACTIVO
    db.commit()
    db.refresh(ship)
    logger.info("ship deactivated: ship_id=%s", ship_id)
    return ship
