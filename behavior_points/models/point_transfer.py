import uuid
from sqlalchemy import CheckConstraint, Column, Integer, String, TIMESTAMP, ForeignKey
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func
from behavior_points.db import Base, utcnow


class PointTransfer(Base):
    """One student-to-student transfer. The points themselves move through two ledger rows."""

    __tablename__ = "point_transfers"
    __table_args__ = (
        CheckConstraint("points > 0", name="ck_point_transfers_points_positive"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    sender_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)
    recipient_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)

    points = Column(Integer, nullable=False)
    description = Column(String(255))

    category_id = Column(Integer, ForeignKey("point_categories.id"), nullable=True)

    created_at = Column(TIMESTAMP, nullable=False, default=utcnow, server_default=func.now())
