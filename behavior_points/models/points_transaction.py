import uuid
from sqlalchemy import Boolean, CheckConstraint, Column, Index, Integer, String, TIMESTAMP, ForeignKey
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func
from behavior_points.db import Base, utcnow


class PointsTransaction(Base):
    __tablename__ = "points_transactions"
    __table_args__ = (
        CheckConstraint("points > 0", name="ck_points_transactions_points_positive"),
        Index("ix_points_transactions_user_created", "user_id", "created_at"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False)

    # always > 0; direction lives in is_positive
    points = Column(Integer, nullable=False)
    is_positive = Column(Boolean, nullable=False)

    category_id = Column(Integer, ForeignKey("point_categories.id"), nullable=True)
    description = Column(String(255))

    created_by = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False)

    created_at = Column(TIMESTAMP, nullable=False, default=utcnow, server_default=func.now())

    @property
    def signed_points(self) -> int:
        return self.points if self.is_positive else -self.points
