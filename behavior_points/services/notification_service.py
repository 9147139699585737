from __future__ import annotations

import logging
import time
from datetime import timedelta
from typing import Callable
from uuid import UUID

from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from behavior_points import config
from behavior_points.db import SessionLocal, utcnow
from behavior_points.models.notification import Notification
from behavior_points.models.notification_event import NotificationEvent


logger = logging.getLogger(__name__)

NotificationSink = Callable[[Session, dict], None]

_TITLES = {
    "medal": "New medal earned",
    "badge": "New badge earned",
    "transfer": "Points received",
}


def event_payload(event: NotificationEvent) -> dict:
    return {
        "subjectId": str(event.subject_id),
        "kind": event.kind,
        "itemId": str(event.item_id),
        "message": event.message,
    }


# ============================================================
# EMIT (outbox insert, one row per award or transfer)
# ============================================================

def emit_event(db: Session, subject_id: UUID, kind: str, item_id: UUID, message: str) -> NotificationEvent:
    """
    Queues one notification. Runs in its own savepoint so a failure here
    never touches the row that triggered it.
    """
    with db.begin_nested():
        event = NotificationEvent(
            subject_id=subject_id,
            kind=kind,
            item_id=item_id,
            message=message,
            status="PENDING",
        )
        db.add(event)
    return event


def emit_award_event(db: Session, subject_id: UUID, kind: str, item_id: UUID, message: str) -> NotificationEvent:
    return emit_event(db, subject_id, kind, item_id, message)


def transfer_message(points: int, sender_name: str, sender_code: str, description: str | None = None) -> str:
    message = f"You received {points} points from {sender_name} ({sender_code})"
    if description:
        message += f" - {description}"
    return message[:500]


# ============================================================
# SINK
# ============================================================

def store_notification(db: Session, payload: dict) -> None:
    """Default sink: drops the event into the user's notification inbox."""
    db.add(
        Notification(
            user_id=UUID(payload["subjectId"]),
            title=_TITLES.get(payload["kind"], "Notification"),
            content=payload["message"],
            type=payload["kind"],
            reference_id=payload["itemId"],
            is_read=False,
        )
    )
    db.flush()


# ============================================================
# DISPATCH
# ============================================================

def _claim_pending(db: Session, *, now, worker_id: str, batch_size: int, lock_ttl_seconds: int):
    lock_expired_before = now - timedelta(seconds=int(lock_ttl_seconds))

    q = (
        db.query(NotificationEvent)
        .filter(NotificationEvent.status == "PENDING")
        .filter(or_(NotificationEvent.locked_at.is_(None), NotificationEvent.locked_at < lock_expired_before))
        .order_by(NotificationEvent.created_at.asc())
        .limit(batch_size)
    )
    if db.get_bind().dialect.name == "postgresql":
        q = q.with_for_update(skip_locked=True)

    events = q.all()
    for event in events:
        event.locked_at = now
        event.locked_by = worker_id

    return events


def dispatch_pending(
    db: Session,
    sink: NotificationSink = store_notification,
    *,
    batch_size: int | None = None,
    worker_id: str | None = None,
    lock_ttl_seconds: int = 600,
) -> dict:
    batch_size = batch_size or config.NOTIFICATION_DISPATCH_BATCH_SIZE
    worker_id = worker_id or config.NOTIFICATION_WORKER_ID
    now = utcnow()

    events = _claim_pending(db, now=now, worker_id=worker_id, batch_size=batch_size, lock_ttl_seconds=lock_ttl_seconds)
    db.commit()

    delivered = 0
    failed = 0
    for event in events:
        event.attempts = (event.attempts or 0) + 1
        try:
            with db.begin_nested():
                sink(db, event_payload(event))
        except Exception as e:
            # delivery is not retried here; requeue_failed puts it back
            failed += 1
            event.status = "FAILED"
            event.last_error = str(e)
            logger.warning(
                "notification delivery failed",
                extra={"event_id": str(event.id), "subject_id": str(event.subject_id), "error": str(e)},
            )
        else:
            delivered += 1
            event.status = "DELIVERED"
            event.delivered_at = utcnow()
            event.last_error = None
        finally:
            event.locked_at = None
            event.locked_by = None
        db.commit()

    if events:
        logger.info(
            "notification batch dispatched",
            extra={"worker_id": worker_id, "claimed": len(events), "delivered": delivered, "failed": failed},
        )

    return {"claimed": len(events), "delivered": delivered, "failed": failed}


def requeue_failed(db: Session, subject_id: UUID | None = None) -> int:
    q = db.query(NotificationEvent).filter(NotificationEvent.status == "FAILED")
    if subject_id is not None:
        q = q.filter(NotificationEvent.subject_id == subject_id)

    events = q.all()
    for event in events:
        event.status = "PENDING"
        event.locked_at = None
        event.locked_by = None

    db.commit()
    return len(events)


def run_dispatcher_loop(
    *,
    sink: NotificationSink = store_notification,
    worker_id: str | None = None,
    batch_size: int | None = None,
    idle_sleep_seconds: int | None = None,
):
    worker_id = worker_id or config.NOTIFICATION_WORKER_ID
    idle_sleep_seconds = idle_sleep_seconds or config.NOTIFICATION_IDLE_SLEEP_SECONDS

    logger.info(
        "notification dispatcher started",
        extra={"worker_id": worker_id, "batch_size": batch_size, "idle_sleep_seconds": idle_sleep_seconds},
    )

    while True:
        db = SessionLocal()
        try:
            result = dispatch_pending(db, sink, batch_size=batch_size, worker_id=worker_id)
        except SQLAlchemyError:
            db.rollback()
            logger.exception("notification dispatch iteration failed", extra={"worker_id": worker_id})
            result = {"claimed": 0}
        finally:
            db.close()

        if not result["claimed"]:
            time.sleep(idle_sleep_seconds)


if __name__ == "__main__":
    logging.basicConfig(level=config.LOG_LEVEL)
    run_dispatcher_loop()
