from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from behavior_points.db import get_db
from behavior_points.deps.auth import get_identity
from behavior_points.schemas.catalog import BadgeCreate, BadgeOut, BadgeUpdate
from behavior_points.services import catalog_service
from behavior_points.services.privilege_service import Identity, authorize


router = APIRouter(tags=["badges"])


@router.get("/badges", response_model=list[BadgeOut])
def list_badges(
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
):
    return catalog_service.list_items(db, "badge")


@router.get("/badges/{badge_id}", response_model=BadgeOut)
def get_badge(
    badge_id: UUID,
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
):
    return catalog_service.get_item(db, "badge", badge_id)


@router.post("/admin/badges", response_model=BadgeOut)
def create_badge(
    payload: BadgeCreate,
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
):
    capability = authorize(db, identity, "catalog.manage")
    return catalog_service.create_item(db, capability, "badge", payload.model_dump())


@router.patch("/admin/badges/{badge_id}", response_model=BadgeOut)
def update_badge(
    badge_id: UUID,
    payload: BadgeUpdate,
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
):
    capability = authorize(db, identity, "catalog.manage")
    return catalog_service.update_item(db, capability, "badge", badge_id, payload.model_dump(exclude_unset=True))


@router.delete("/admin/badges/{badge_id}")
def delete_badge(
    badge_id: UUID,
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
):
    capability = authorize(db, identity, "catalog.manage")
    catalog_service.delete_item(db, capability, "badge", badge_id)
    return {"deleted": True}
