from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from behavior_points.db import get_db
from behavior_points.deps.auth import get_identity
from behavior_points.schemas.award import AwardedItemOut, AwardEvaluationOut
from behavior_points.schemas.analytics import PointsAnalyticsOut
from behavior_points.schemas.balance import BalanceOut, BalanceRecordOut, PointsBatchOut, PointsChangeOut, PointsTransferOut
from behavior_points.schemas.points_transaction import (
    PointsBatchCreate,
    PointsChangeCreate,
    PointsTransactionOut,
    PointsTransferCreate,
)
from behavior_points.services import analytics_service, award_service, balance_service, ledger_service, points_service
from behavior_points.services.ledger_service import Sign
from behavior_points.services.privilege_service import Identity, authorize


router = APIRouter(prefix="/points", tags=["points"])


@router.post("", response_model=PointsChangeOut)
def change_points(
    payload: PointsChangeCreate,
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
):
    capability = authorize(db, identity, "points.append", payload.subjectId)
    result = points_service.change_points(
        db,
        capability,
        payload.subjectId,
        payload.points,
        payload.sign,
        description=payload.description,
        category_id=payload.categoryId,
    )
    return PointsChangeOut.model_validate(result)


@router.post("/transfer", response_model=PointsTransferOut)
def transfer_points(
    payload: PointsTransferCreate,
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
):
    capability = authorize(db, identity, "points.transfer")
    result = points_service.transfer_points(
        db,
        capability,
        payload.recipientCode,
        payload.points,
        description=payload.description,
        category_id=payload.categoryId,
    )
    return PointsTransferOut.model_validate(result)


@router.post("/batch", response_model=PointsBatchOut)
def batch_change_points(
    payload: PointsBatchCreate,
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
):
    capability = authorize(db, identity, "points.batch")
    result = points_service.batch_change_points(
        db,
        capability,
        payload.userCodes,
        amount=payload.points,
        sign=payload.sign,
        description=payload.description,
        category_id=payload.categoryId,
    )
    return PointsBatchOut.model_validate(result)


@router.get("/{subject_id}/transactions", response_model=list[PointsTransactionOut])
def list_transactions(
    subject_id: UUID,
    sign: Sign | None = None,
    categoryId: int | None = None,
    createdFrom: datetime | None = None,
    createdTo: datetime | None = None,
    limit: int = 100,
    offset: int = 0,
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
):
    capability = authorize(db, identity, "points.read", subject_id)
    return ledger_service.list_for(
        db,
        capability,
        capability.subject_id,
        sign=sign,
        category_id=categoryId,
        created_from=createdFrom,
        created_to=createdTo,
        limit=limit,
        offset=offset,
    )


@router.get("/{subject_id}/balance", response_model=BalanceOut)
def read_balance(
    subject_id: UUID,
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
):
    capability = authorize(db, identity, "points.read", subject_id)
    points = balance_service.read(db, capability, capability.subject_id)
    return BalanceOut(subject_id=capability.subject_id, points=points)


@router.post("/{subject_id}/sync", response_model=BalanceRecordOut)
def sync_balance(
    subject_id: UUID,
    force: bool = False,
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
):
    capability = authorize(db, identity, "balance.sync", subject_id)
    return balance_service.sync(db, capability, subject_id, force=force)


@router.post("/{subject_id}/awards/evaluate", response_model=AwardEvaluationOut)
def evaluate_awards(
    subject_id: UUID,
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
):
    capability = authorize(db, identity, "awards.evaluate", subject_id)
    record = balance_service.sync(db, capability, subject_id)
    result = award_service.evaluate(db, capability, subject_id, int(record.points))
    return AwardEvaluationOut.model_validate(result)


@router.get("/{subject_id}/medals", response_model=list[AwardedItemOut])
def list_medals(
    subject_id: UUID,
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
):
    capability = authorize(db, identity, "points.read", subject_id)
    items = award_service.list_awards(db, capability, capability.subject_id, "medal")
    return [AwardedItemOut.model_validate(item) for item in items]


@router.get("/{subject_id}/badges", response_model=list[AwardedItemOut])
def list_badges(
    subject_id: UUID,
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
):
    capability = authorize(db, identity, "points.read", subject_id)
    items = award_service.list_awards(db, capability, capability.subject_id, "badge")
    return [AwardedItemOut.model_validate(item) for item in items]


@router.get("/{subject_id}/analytics", response_model=PointsAnalyticsOut)
def points_analytics(
    subject_id: UUID,
    months: int = 6,
    recentLimit: int = 10,
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
):
    capability = authorize(db, identity, "points.read", subject_id)
    result = analytics_service.analytics(
        db,
        capability,
        capability.subject_id,
        months=months,
        recent_limit=recentLimit,
    )
    return PointsAnalyticsOut.model_validate(result)
