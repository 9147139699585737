from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from uuid import UUID

from sqlalchemy import case, func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from behavior_points.db import utcnow
from behavior_points.errors import CacheSyncFailed
from behavior_points.models.points_transaction import PointsTransaction
from behavior_points.models.student_points import StudentPoints
from behavior_points.services.privilege_service import Capability


logger = logging.getLogger(__name__)


@dataclass
class BalanceInspection:
    subject_id: UUID
    cached_points: int | None
    cached_updated_at: datetime | None
    ledger_points: int
    positive_points: int
    negative_points: int
    transactions: list = field(default_factory=list)

    @property
    def drift(self) -> int | None:
        if self.cached_points is None:
            return None
        return self.cached_points - self.ledger_points

    @property
    def in_sync(self) -> bool:
        return self.cached_points is not None and self.cached_points == self.ledger_points


@dataclass
class SyncOutcome:
    subject_id: UUID
    points: int | None
    previous_points: int | None
    error: str | None = None

    @property
    def changed(self) -> bool:
        return self.error is None and self.points != self.previous_points


def _ledger_totals(db: Session, subject_id: UUID) -> tuple[int, int]:
    positive, negative = (
        db.query(
            func.coalesce(func.sum(case((PointsTransaction.is_positive.is_(True), PointsTransaction.points), else_=0)), 0),
            func.coalesce(func.sum(case((PointsTransaction.is_positive.is_(False), PointsTransaction.points), else_=0)), 0),
        )
        .filter(PointsTransaction.user_id == subject_id)
        .one()
    )
    return int(positive or 0), int(negative or 0)


def _get_record(db: Session, subject_id: UUID) -> StudentPoints | None:
    return db.query(StudentPoints).filter(StudentPoints.student_id == subject_id).first()


def _is_stale(db: Session, record: StudentPoints) -> bool:
    latest = (
        db.query(func.max(PointsTransaction.created_at))
        .filter(PointsTransaction.user_id == record.student_id)
        .scalar()
    )
    if latest is None:
        return False
    return record.updated_at is None or latest > record.updated_at


# ============================================================
# RECOMPUTE (only place a balance is derived from scratch)
# ============================================================

def recompute(db: Session, subject_id: UUID) -> int:
    positive, negative = _ledger_totals(db, subject_id)
    return positive - negative


def _write_balance(db: Session, subject_id: UUID, points: int) -> StudentPoints:
    record = _get_record(db, subject_id)
    if record is None:
        try:
            with db.begin_nested():
                record = StudentPoints(student_id=subject_id, points=points, updated_at=utcnow())
                db.add(record)
            return record
        except IntegrityError:
            # a concurrent sync inserted the row first; overwrite it below
            record = db.query(StudentPoints).filter(StudentPoints.student_id == subject_id).one()

    record.points = points
    record.updated_at = utcnow()
    db.flush()
    return record


# ============================================================
# SYNC (only write path to student_points.points)
# ============================================================

def sync(db: Session, capability: Capability, subject_id: UUID, *, force: bool = False) -> StudentPoints:
    capability.require_subject(subject_id)

    record = _get_record(db, subject_id)
    if record is not None and not force and not _is_stale(db, record):
        logger.debug("balance cache fresh", extra={"subject_id": str(subject_id), "points": record.points})
        return record

    points = recompute(db, subject_id)
    previous = record.points if record is not None else None

    try:
        record = _write_balance(db, subject_id, points)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.warning(
            "balance cache sync failed",
            extra={"subject_id": str(subject_id), "points": points, "error": str(e)},
        )
        raise CacheSyncFailed(subject_id, points, str(e)) from e

    db.refresh(record)

    logger.info(
        "balance cache synced",
        extra={"subject_id": str(subject_id), "points": points, "previous_points": previous, "force": force},
    )
    return record


def read(db: Session, capability: Capability, subject_id: UUID) -> int:
    capability.require_subject(subject_id)

    record = _get_record(db, subject_id)
    if record is None:
        return 0
    return int(record.points or 0)


def inspect(db: Session, capability: Capability, subject_id: UUID) -> BalanceInspection:
    """
    Cached total, ledger total and raw ledger side by side so drift between
    the two is visible without trusting either.
    """
    capability.require_subject(subject_id)

    record = _get_record(db, subject_id)
    positive, negative = _ledger_totals(db, subject_id)
    transactions = (
        db.query(PointsTransaction)
        .filter(PointsTransaction.user_id == subject_id)
        .order_by(PointsTransaction.created_at.desc(), PointsTransaction.id.desc())
        .all()
    )

    return BalanceInspection(
        subject_id=subject_id,
        cached_points=int(record.points) if record is not None else None,
        cached_updated_at=record.updated_at if record is not None else None,
        ledger_points=positive - negative,
        positive_points=positive,
        negative_points=negative,
        transactions=transactions,
    )


def sync_all(db: Session, capability: Capability, *, force: bool = True) -> list[SyncOutcome]:
    capability.require_admin()

    ledger_subjects = {row[0] for row in db.query(PointsTransaction.user_id).distinct().all()}
    cached_subjects = {row[0] for row in db.query(StudentPoints.student_id).all()}

    outcomes = []
    for subject_id in sorted(ledger_subjects | cached_subjects, key=str):
        record = _get_record(db, subject_id)
        previous = int(record.points) if record is not None else None
        try:
            synced = sync(db, capability, subject_id, force=force)
        except CacheSyncFailed as e:
            outcomes.append(SyncOutcome(subject_id=subject_id, points=e.points, previous_points=previous, error=e.reason))
            continue
        outcomes.append(SyncOutcome(subject_id=subject_id, points=int(synced.points), previous_points=previous))

    logger.info(
        "balance cache sweep finished",
        extra={
            "subjects": len(outcomes),
            "changed": sum(1 for o in outcomes if o.changed),
            "failed": sum(1 for o in outcomes if o.error),
        },
    )
    return outcomes
