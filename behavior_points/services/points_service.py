from __future__ import annotations

import logging
from dataclasses import dataclass, field
from uuid import UUID

from sqlalchemy.orm import Session

from behavior_points.errors import AwardEvaluationFailed, CacheSyncFailed, Forbidden, InvalidBatch, LedgerWriteFailed, SubjectNotFound
from behavior_points.models.activity_log import ActivityLog
from behavior_points.models.point_transfer import PointTransfer
from behavior_points.models.points_transaction import PointsTransaction
from behavior_points.models.user import User
from behavior_points.services import award_service, balance_service, ledger_service
from behavior_points.services.award_service import AwardEvaluation
from behavior_points.services.ledger_service import Sign
from behavior_points.services.privilege_service import Capability, counterpart


logger = logging.getLogger(__name__)


@dataclass
class Reconciliation:
    subject_id: UUID
    ledger_points: int
    balance: int | None
    cache_synced: bool
    awards: AwardEvaluation | None = None


@dataclass
class PointsChangeResult:
    transaction: PointsTransaction
    ledger_points: int
    balance: int | None
    cache_synced: bool
    awards: AwardEvaluation | None = None
    warnings: list[str] = field(default_factory=list)

    @property
    def partial(self) -> bool:
        return bool(self.warnings)


@dataclass
class PointsTransferResult:
    transfer: PointTransfer
    sender_transaction: PointsTransaction
    recipient_transaction: PointsTransaction
    sender: Reconciliation
    recipient: Reconciliation
    warnings: list[str] = field(default_factory=list)

    @property
    def partial(self) -> bool:
        return bool(self.warnings)


@dataclass
class BatchEntry:
    user_code: str
    result: PointsChangeResult


@dataclass
class BatchChangeResult:
    points: int
    sign: Sign
    category_id: int | None
    entries: list[BatchEntry] = field(default_factory=list)
    missing_user_codes: list[str] = field(default_factory=list)
    failures: list[dict] = field(default_factory=list)

    @property
    def processed_count(self) -> int:
        return len(self.entries)


# ============================================================
# RECONCILE (cache + awards after a committed ledger write)
# ============================================================

def _reconcile(db: Session, capability: Capability, subject_id: UUID, warnings: list[str]) -> Reconciliation:
    try:
        record = balance_service.sync(db, capability, subject_id, force=True)
        points = int(record.points)
        outcome = Reconciliation(subject_id=subject_id, ledger_points=points, balance=points, cache_synced=True)
    except CacheSyncFailed as e:
        outcome = Reconciliation(subject_id=subject_id, ledger_points=e.points, balance=None, cache_synced=False)
        warnings.append(f"points recorded but cached balance is stale: {e.reason}")

    try:
        outcome.awards = award_service.evaluate(db, capability, subject_id, outcome.ledger_points)
    except AwardEvaluationFailed as e:
        # awards committed before the failure stay granted
        outcome.awards = e.evaluation
        warnings.append(f"award evaluation failed: {e.reason}")
    else:
        for failure in outcome.awards.notification_failures:
            warnings.append(f"notification for {failure['kind']} {failure['itemId']} not queued: {failure['error']}")

    return outcome


# ============================================================
# CHANGE POINTS
# ============================================================

def change_points(
    db: Session,
    capability: Capability,
    subject_id: UUID,
    amount: int,
    sign: Sign,
    description: str | None = None,
    category_id: int | None = None,
) -> PointsChangeResult:
    """
    Ledger append, then cache reconciliation, then award evaluation.

    Only a failed append fails the whole call. A stale cache or a failed award
    run is reported in `warnings`; both are repaired by re-running sync or
    evaluate later since each step rebuilds from the ledger.
    """
    # raises on failure; nothing downstream runs without a ledger row
    transaction = ledger_service.append(
        db,
        capability,
        subject_id,
        amount,
        sign,
        description=description,
        category_id=category_id,
    )

    warnings = []
    outcome = _reconcile(db, capability, subject_id, warnings)

    if warnings:
        logger.warning(
            "points change partially applied",
            extra={"transaction_id": str(transaction.id), "subject_id": str(subject_id), "warnings": warnings},
        )

    return PointsChangeResult(
        transaction=transaction,
        ledger_points=outcome.ledger_points,
        balance=outcome.balance,
        cache_synced=outcome.cache_synced,
        awards=outcome.awards,
        warnings=warnings,
    )


# ============================================================
# TRANSFER
# ============================================================

def transfer_points(
    db: Session,
    capability: Capability,
    recipient_code: str,
    amount: int,
    description: str | None = None,
    category_id: int | None = None,
) -> PointsTransferResult:
    record = ledger_service.transfer(
        db,
        capability,
        recipient_code,
        amount,
        description=description,
        category_id=category_id,
    )
    sender_id = record.transfer.sender_id
    recipient_id = record.transfer.recipient_id

    warnings = []
    sender = _reconcile(db, capability, sender_id, warnings)
    recipient = _reconcile(db, counterpart(capability, recipient_id), recipient_id, warnings)

    if warnings:
        logger.warning(
            "points transfer partially applied",
            extra={"transfer_id": str(record.transfer.id), "warnings": warnings},
        )

    return PointsTransferResult(
        transfer=record.transfer,
        sender_transaction=record.sender_transaction,
        recipient_transaction=record.recipient_transaction,
        sender=sender,
        recipient=recipient,
        warnings=warnings,
    )


# ============================================================
# BATCH
# ============================================================

def _clean_codes(user_codes) -> list[str]:
    seen = []
    for code in user_codes or []:
        code = (code or "").strip()
        if code and code not in seen:
            seen.append(code)
    return seen


def batch_change_points(
    db: Session,
    capability: Capability,
    user_codes: list[str],
    amount: int | None = None,
    sign: Sign | None = None,
    description: str | None = None,
    category_id: int | None = None,
) -> BatchChangeResult:
    """
    Applies one points change to every user in `user_codes`.

    With a category, a missing amount falls back to the category's default
    points and a missing sign to its direction. Unknown codes are reported,
    not fatal; each user goes through the same append/sync/evaluate path as a
    single change, so one failed ledger write does not stop the rest.
    """
    if not capability.elevated:
        raise Forbidden("Batch changes require staff access")

    codes = _clean_codes(user_codes)
    if not codes:
        raise InvalidBatch("At least one user code is required")

    category = ledger_service.resolve_category(db, capability, category_id)
    if category is not None:
        if not amount:
            amount = category.default_points
        if sign is None:
            sign = Sign.POSITIVE if category.is_positive else Sign.NEGATIVE

    points = ledger_service.validate_amount(amount)
    sign = Sign(sign or Sign.POSITIVE)

    users = {u.user_code: u.id for u in db.query(User.user_code, User.id).filter(User.user_code.in_(codes)).all()}
    if not users:
        raise SubjectNotFound(codes)

    result = BatchChangeResult(
        points=points,
        sign=sign,
        category_id=category.id if category is not None else None,
        missing_user_codes=[c for c in codes if c not in users],
    )

    for code in codes:
        subject_id = users.get(code)
        if subject_id is None:
            continue
        try:
            change = change_points(
                db,
                capability,
                subject_id,
                points,
                sign,
                description=description,
                category_id=result.category_id,
            )
        except LedgerWriteFailed as e:
            result.failures.append({"userCode": code, "error": e.reason})
            continue
        result.entries.append(BatchEntry(user_code=code, result=change))

    db.add(
        ActivityLog(
            actor_id=capability.actor_id,
            action="points.batch",
            details={
                "points": points,
                "sign": sign.value,
                "category_id": result.category_id,
                "processed": result.processed_count,
                "missing_user_codes": result.missing_user_codes,
                "failed_user_codes": [f["userCode"] for f in result.failures],
            },
        )
    )
    db.commit()

    logger.info(
        "points batch applied",
        extra={
            "actor_id": str(capability.actor_id),
            "processed": result.processed_count,
            "missing": len(result.missing_user_codes),
            "failed": len(result.failures),
        },
    )
    return result
