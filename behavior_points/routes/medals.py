from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from behavior_points.db import get_db
from behavior_points.deps.auth import get_identity
from behavior_points.schemas.catalog import MedalCreate, MedalOut, MedalUpdate
from behavior_points.services import catalog_service
from behavior_points.services.privilege_service import Identity, authorize


router = APIRouter(tags=["medals"])


@router.get("/medals", response_model=list[MedalOut])
def list_medals(
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
):
    return catalog_service.list_items(db, "medal")


@router.get("/medals/{medal_id}", response_model=MedalOut)
def get_medal(
    medal_id: UUID,
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
):
    return catalog_service.get_item(db, "medal", medal_id)


@router.post("/admin/medals", response_model=MedalOut)
def create_medal(
    payload: MedalCreate,
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
):
    capability = authorize(db, identity, "catalog.manage")
    return catalog_service.create_item(db, capability, "medal", payload.model_dump())


@router.patch("/admin/medals/{medal_id}", response_model=MedalOut)
def update_medal(
    medal_id: UUID,
    payload: MedalUpdate,
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
):
    capability = authorize(db, identity, "catalog.manage")
    return catalog_service.update_item(db, capability, "medal", medal_id, payload.model_dump(exclude_unset=True))


@router.delete("/admin/medals/{medal_id}")
def delete_medal(
    medal_id: UUID,
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
):
    capability = authorize(db, identity, "catalog.manage")
    catalog_service.delete_item(db, capability, "medal", medal_id)
    return {"deleted": True}
