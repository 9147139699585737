from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from behavior_points.db import get_db
from behavior_points.deps.auth import get_identity
from behavior_points.schemas.point_category import PointCategoryCreate, PointCategoryOut, PointCategoryUpdate
from behavior_points.services import category_service
from behavior_points.services.privilege_service import Identity, authorize


router = APIRouter(tags=["point-categories"])


@router.get("/point-categories", response_model=list[PointCategoryOut])
def list_point_categories(
    isPositive: bool | None = None,
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
):
    return category_service.list_categories(db, is_positive=isPositive)


@router.post("/admin/point-categories", response_model=PointCategoryOut)
def create_point_category(
    payload: PointCategoryCreate,
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
):
    capability = authorize(db, identity, "categories.manage")
    return category_service.create_category(db, capability, payload.model_dump())


@router.patch("/admin/point-categories/{category_id}", response_model=PointCategoryOut)
def update_point_category(
    category_id: int,
    payload: PointCategoryUpdate,
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
):
    capability = authorize(db, identity, "categories.manage")
    return category_service.update_category(db, capability, category_id, payload.model_dump(exclude_unset=True))


@router.delete("/admin/point-categories/{category_id}")
def delete_point_category(
    category_id: int,
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
):
    capability = authorize(db, identity, "categories.manage")
    category_service.delete_category(db, capability, category_id)
    return {"deleted": True}
