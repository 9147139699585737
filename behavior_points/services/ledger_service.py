import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from behavior_points.errors import (
    CategoryNotFound,
    Forbidden,
    InsufficientPoints,
    InvalidAmount,
    InvalidTransfer,
    LedgerWriteFailed,
    SubjectNotFound,
)
from behavior_points.models.activity_log import ActivityLog
from behavior_points.models.point_category import PointCategory
from behavior_points.models.point_transfer import PointTransfer
from behavior_points.models.points_transaction import PointsTransaction
from behavior_points.models.user import User
from behavior_points.services import balance_service, notification_service
from behavior_points.services.privilege_service import Capability, Role


logger = logging.getLogger(__name__)


class Sign(str, Enum):
    POSITIVE = "positive"
    NEGATIVE = "negative"

    @property
    def is_positive(self) -> bool:
        return self is Sign.POSITIVE


# points_transactions.points is a 32-bit INTEGER
MAX_POINTS = 2**31 - 1


def validate_amount(amount) -> int:
    # bool is an int subclass; True must not count as one point
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise InvalidAmount(amount)
    if amount <= 0 or amount > MAX_POINTS:
        raise InvalidAmount(amount)
    return amount


def resolve_category(db: Session, capability: Capability, category_id: int | None):
    if category_id is None:
        return None

    category = db.query(PointCategory).filter(PointCategory.id == category_id).first()
    if not category:
        raise CategoryNotFound(category_id)

    if category.is_restricted and not (capability.elevated and capability.role == Role.ADMIN):
        raise Forbidden("This category is reserved for administrators")

    return category


# ============================================================
# APPEND
# ============================================================

def append(
    db: Session,
    capability: Capability,
    subject_id: UUID,
    amount: int,
    sign: Sign,
    description: str | None = None,
    category_id: int | None = None,
) -> PointsTransaction:
    """
    Records one immutable points transaction. Nothing is read back or updated;
    the balance is derived later by the reconciliation step.
    """
    points = validate_amount(amount)
    sign = Sign(sign)
    capability.require_subject(subject_id)

    if not db.query(User.id).filter(User.id == subject_id).first():
        raise SubjectNotFound(subject_id)

    category = resolve_category(db, capability, category_id)

    if not description or not description.strip():
        if category is not None:
            description = category.name
        else:
            description = "Points added" if sign.is_positive else "Points deducted"

    transaction = PointsTransaction(
        user_id=subject_id,
        points=points,
        is_positive=sign.is_positive,
        category_id=category.id if category is not None else None,
        description=description.strip(),
        created_by=capability.actor_id,
    )

    try:
        db.add(transaction)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception(
            "ledger append failed",
            extra={"subject_id": str(subject_id), "actor_id": str(capability.actor_id), "points": points},
        )
        raise LedgerWriteFailed(subject_id, str(e)) from e

    db.refresh(transaction)

    logger.info(
        "ledger append",
        extra={
            "transaction_id": str(transaction.id),
            "subject_id": str(subject_id),
            "actor_id": str(capability.actor_id),
            "points": points,
            "sign": sign.value,
            "tier": capability.tier.value,
        },
    )
    return transaction


# ============================================================
# TRANSFER
# ============================================================

@dataclass
class TransferRecord:
    transfer: PointTransfer
    sender_transaction: PointsTransaction
    recipient_transaction: PointsTransaction


def transfer(
    db: Session,
    capability: Capability,
    recipient_code: str,
    amount: int,
    description: str | None = None,
    category_id: int | None = None,
) -> TransferRecord:
    """
    Moves points from the capability's own subject to the user holding
    `recipient_code`. The transfer record, both ledger rows, the activity
    entry and the recipient's notification are committed together.
    """
    points = validate_amount(amount)
    sender_id = capability.require_subject(capability.subject_id)

    code = (recipient_code or "").strip()
    if not code:
        raise InvalidTransfer("Recipient code is required")

    # serializes concurrent transfers out of the same account
    sender = db.query(User).filter(User.id == sender_id).with_for_update().first()
    if not sender:
        raise SubjectNotFound(sender_id)

    recipient = db.query(User).filter(User.user_code == code).first()
    if not recipient:
        raise SubjectNotFound(code)
    if recipient.id == sender.id:
        raise InvalidTransfer("Points cannot be transferred to yourself")

    available = balance_service.recompute(db, sender.id)
    if available < points:
        raise InsufficientPoints(sender.id, available, points)

    category = resolve_category(db, capability, category_id)
    category_ref = category.id if category is not None else None
    note = description.strip() if description and description.strip() else None

    record = PointTransfer(
        sender_id=sender.id,
        recipient_id=recipient.id,
        points=points,
        description=note or "Points transfer",
        category_id=category_ref,
    )
    sent = PointsTransaction(
        user_id=sender.id,
        points=points,
        is_positive=False,
        category_id=category_ref,
        description=f"Points transferred to {recipient.full_name} ({recipient.user_code})"[:255],
        created_by=capability.actor_id,
    )
    received = PointsTransaction(
        user_id=recipient.id,
        points=points,
        is_positive=True,
        category_id=category_ref,
        description=f"Points received from {sender.full_name} ({sender.user_code})"[:255],
        created_by=capability.actor_id,
    )

    try:
        db.add_all([record, sent, received])
        db.flush()
        db.add(
            ActivityLog(
                actor_id=capability.actor_id,
                action="points.transfer",
                subject_id=recipient.id,
                details={"transfer_id": str(record.id), "points": points, "category_id": category_ref},
            )
        )
        notification_service.emit_event(
            db,
            recipient.id,
            "transfer",
            record.id,
            notification_service.transfer_message(points, sender.full_name, sender.user_code, note),
        )
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception(
            "ledger transfer failed",
            extra={"sender_id": str(sender_id), "recipient_code": code, "points": points},
        )
        raise LedgerWriteFailed(sender_id, str(e)) from e

    for row in (record, sent, received):
        db.refresh(row)

    logger.info(
        "ledger transfer",
        extra={
            "transfer_id": str(record.id),
            "sender_id": str(record.sender_id),
            "recipient_id": str(record.recipient_id),
            "points": points,
        },
    )
    return TransferRecord(transfer=record, sender_transaction=sent, recipient_transaction=received)


# ============================================================
# LIST
# ============================================================

def list_for(
    db: Session,
    capability: Capability,
    subject_id: UUID,
    *,
    sign: Sign | None = None,
    category_id: int | None = None,
    created_from: datetime | None = None,
    created_to: datetime | None = None,
    limit: int = 100,
    offset: int = 0,
) -> list[PointsTransaction]:
    capability.require_subject(subject_id)

    q = db.query(PointsTransaction).filter(PointsTransaction.user_id == subject_id)
    if sign is not None:
        q = q.filter(PointsTransaction.is_positive.is_(Sign(sign).is_positive))
    if category_id is not None:
        q = q.filter(PointsTransaction.category_id == category_id)
    if created_from is not None:
        q = q.filter(PointsTransaction.created_at >= created_from)
    if created_to is not None:
        q = q.filter(PointsTransaction.created_at <= created_to)

    limit = max(1, min(limit, 500))
    offset = max(0, offset)

    return (
        q.order_by(PointsTransaction.created_at.desc(), PointsTransaction.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
