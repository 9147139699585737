from uuid import UUID

from fastapi import HTTPException
from sqlalchemy.orm import Session

from behavior_points.errors import CatalogItemNotFound
from behavior_points.services.award_service import catalog_spec
from behavior_points.services.privilege_service import Capability


def validate_range(min_points, max_points):
    if min_points is None:
        raise HTTPException(status_code=400, detail="min_points is required")

    try:
        min_i = int(min_points)
        max_i = int(max_points) if max_points is not None else None
    except (TypeError, ValueError):
        raise HTTPException(status_code=400, detail="min_points and max_points must be integers")

    if min_i < 0:
        raise HTTPException(status_code=400, detail="min_points must be >= 0")
    if max_i is not None and max_i < min_i:
        raise HTTPException(status_code=400, detail="max_points must be >= min_points")

    return min_i, max_i


def list_items(db: Session, kind: str):
    model = catalog_spec(kind).item_model
    return db.query(model).order_by(model.min_points.asc(), model.name.asc()).all()


def get_item(db: Session, kind: str, item_id: UUID):
    model = catalog_spec(kind).item_model
    item = db.query(model).filter(model.id == item_id).first()
    if not item:
        raise CatalogItemNotFound(kind, item_id)
    return item


def create_item(db: Session, capability: Capability, kind: str, data: dict):
    capability.require_admin()

    min_i, max_i = validate_range(data.get("min_points"), data.get("max_points"))
    data = {**data, "min_points": min_i, "max_points": max_i}

    item = catalog_spec(kind).item_model(**data)
    db.add(item)
    db.commit()
    db.refresh(item)
    return item


def update_item(db: Session, capability: Capability, kind: str, item_id: UUID, data: dict):
    """
    Threshold edits apply to future evaluations only; existing awards stay.
    """
    capability.require_admin()

    item = get_item(db, kind, item_id)

    min_points = data.get("min_points", item.min_points)
    max_points = data["max_points"] if "max_points" in data else item.max_points
    min_i, max_i = validate_range(min_points, max_points)

    for key, value in data.items():
        setattr(item, key, value)
    item.min_points = min_i
    item.max_points = max_i

    db.commit()
    db.refresh(item)
    return item


def delete_item(db: Session, capability: Capability, kind: str, item_id: UUID):
    capability.require_admin()

    spec = catalog_spec(kind)
    item = get_item(db, kind, item_id)

    fk = getattr(spec.award_model, spec.item_fk)
    if db.query(spec.award_model.id).filter(fk == item.id).first():
        raise HTTPException(status_code=409, detail=f"{kind.capitalize()} has already been awarded and cannot be deleted")

    db.delete(item)
    db.commit()
