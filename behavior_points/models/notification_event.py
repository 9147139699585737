import uuid
from sqlalchemy import Column, Integer, String, Text, TIMESTAMP, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func
from behavior_points.db import Base, utcnow


class NotificationEvent(Base):
    """Outbox row: one per newly-awarded medal/badge or received transfer."""

    __tablename__ = "notification_events"
    __table_args__ = (
        UniqueConstraint("subject_id", "kind", "item_id", name="uq_notification_events_award"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    subject_id = Column(UUID(as_uuid=True), nullable=False, index=True)
    kind = Column(String(20), nullable=False)  # medal / badge / transfer
    item_id = Column(UUID(as_uuid=True), nullable=False)

    message = Column(String(500), nullable=False)

    status = Column(String(20), nullable=False, default="PENDING")  # PENDING / DELIVERED / FAILED
    attempts = Column(Integer, nullable=False, default=0)
    last_error = Column(Text, nullable=True)

    locked_at = Column(TIMESTAMP, nullable=True)
    locked_by = Column(String(100), nullable=True)

    created_at = Column(TIMESTAMP, nullable=False, default=utcnow, server_default=func.now())
    delivered_at = Column(TIMESTAMP, nullable=True)
