from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from behavior_points.db import get_db
from behavior_points.deps.auth import get_identity
from behavior_points.schemas.award import AwardEvaluationOut, AwardGrant
from behavior_points.schemas.balance import BalanceInspectionOut, SyncOutcomeOut
from behavior_points.schemas.notification import DispatchResultOut, RequeueRequest, RequeueResultOut
from behavior_points.services import award_service, balance_service, notification_service
from behavior_points.services.privilege_service import Identity, authorize


router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/points/{subject_id}/inspect", response_model=BalanceInspectionOut)
def inspect_points(
    subject_id: UUID,
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
):
    capability = authorize(db, identity, "balance.inspect", subject_id)
    inspection = balance_service.inspect(db, capability, capability.subject_id)
    return BalanceInspectionOut.model_validate(inspection)


@router.post("/points/sync-all", response_model=list[SyncOutcomeOut])
def sync_all_points(
    force: bool = True,
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
):
    capability = authorize(db, identity, "balance.sync_all")
    outcomes = balance_service.sync_all(db, capability, force=force)
    return [SyncOutcomeOut.model_validate(o) for o in outcomes]


@router.post("/awards/grant", response_model=AwardEvaluationOut)
def grant_award(
    payload: AwardGrant,
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
):
    capability = authorize(db, identity, "awards.grant", payload.subjectId)
    result = award_service.grant(db, capability, payload.subjectId, payload.kind, payload.itemId)
    return AwardEvaluationOut.model_validate(result)


@router.post("/notifications/dispatch", response_model=DispatchResultOut)
def dispatch_notifications(
    batchSize: int | None = None,
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
):
    authorize(db, identity, "notifications.dispatch")
    return notification_service.dispatch_pending(db, batch_size=batchSize)


@router.post("/notifications/requeue", response_model=RequeueResultOut)
def requeue_notifications(
    payload: RequeueRequest,
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
):
    authorize(db, identity, "notifications.dispatch")
    return {"requeued": notification_service.requeue_failed(db, payload.subjectId)}
