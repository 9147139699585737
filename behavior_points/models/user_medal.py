import uuid
from sqlalchemy import Column, TIMESTAMP, ForeignKey, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func
from behavior_points.db import Base, utcnow


class UserMedal(Base):
    __tablename__ = "user_medals"
    __table_args__ = (
        UniqueConstraint("user_id", "medal_id", name="uq_user_medals_user_medal"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False)
    medal_id = Column(UUID(as_uuid=True), ForeignKey("medals.id"), nullable=False)

    awarded_at = Column(TIMESTAMP, nullable=False, default=utcnow, server_default=func.now())
