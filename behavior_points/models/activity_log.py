import uuid
from sqlalchemy import Column, JSON, String, TIMESTAMP
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func
from behavior_points.db import Base, utcnow


class ActivityLog(Base):
    __tablename__ = "activity_log"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    actor_id = Column(UUID(as_uuid=True), nullable=False, index=True)
    action = Column(String(100), nullable=False)
    subject_id = Column(UUID(as_uuid=True), nullable=True)

    details = Column(JSON, nullable=True)

    created_at = Column(TIMESTAMP, nullable=False, default=utcnow, server_default=func.now())
