from fastapi import HTTPException
from sqlalchemy.orm import Session

from behavior_points.errors import CategoryNotFound
from behavior_points.models.point_category import PointCategory
from behavior_points.models.points_transaction import PointsTransaction
from behavior_points.services.privilege_service import Capability


def list_categories(db: Session, is_positive: bool | None = None):
    q = db.query(PointCategory)
    if is_positive is not None:
        q = q.filter(PointCategory.is_positive.is_(is_positive))
    return q.order_by(PointCategory.created_at.desc(), PointCategory.id.desc()).all()


def get_category(db: Session, category_id: int) -> PointCategory:
    category = db.query(PointCategory).filter(PointCategory.id == category_id).first()
    if not category:
        raise CategoryNotFound(category_id)
    return category


def _validate(data: dict):
    name = data.get("name")
    if name is not None and not name.strip():
        raise HTTPException(status_code=400, detail="name is required")
    default_points = data.get("default_points")
    if default_points is not None and int(default_points) < 0:
        raise HTTPException(status_code=400, detail="default_points must be >= 0")


def create_category(db: Session, capability: Capability, data: dict) -> PointCategory:
    capability.require_admin()
    _validate(data)

    category = PointCategory(**data, created_by=capability.actor_id)
    db.add(category)
    db.commit()
    db.refresh(category)
    return category


def update_category(db: Session, capability: Capability, category_id: int, data: dict) -> PointCategory:
    capability.require_admin()
    _validate(data)

    category = get_category(db, category_id)
    for key, value in data.items():
        setattr(category, key, value)

    db.commit()
    db.refresh(category)
    return category


def delete_category(db: Session, capability: Capability, category_id: int) -> None:
    capability.require_admin()

    category = get_category(db, category_id)
    in_use = db.query(PointsTransaction.id).filter(PointsTransaction.category_id == category.id).first()
    if in_use:
        raise HTTPException(status_code=409, detail="Category is referenced by recorded transactions")

    db.delete(category)
    db.commit()
