from sqlalchemy import Boolean, Column, Integer, String, TIMESTAMP, ForeignKey
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func
from behavior_points.db import Base


class PointCategory(Base):
    __tablename__ = "point_categories"

    id = Column(Integer, primary_key=True, autoincrement=True)

    name = Column(String(100), nullable=False)
    description = Column(String(255))

    default_points = Column(Integer, nullable=False, default=0)
    is_positive = Column(Boolean, nullable=False, default=True)

    is_mandatory = Column(Boolean, nullable=False, default=False)
    # only administrators may record points under a restricted category
    is_restricted = Column(Boolean, nullable=False, default=False)

    created_by = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=True)
    created_at = Column(TIMESTAMP, server_default=func.now())
