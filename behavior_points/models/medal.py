import uuid
from sqlalchemy import Column, Integer, String, TIMESTAMP
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func
from behavior_points.db import Base


class Medal(Base):
    __tablename__ = "medals"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    name = Column(String(100), nullable=False)
    description = Column(String(255))
    image_url = Column(String(500))

    # inclusive range; NULL max = no upper bound
    min_points = Column(Integer, nullable=False)
    max_points = Column(Integer, nullable=True)

    created_at = Column(TIMESTAMP, server_default=func.now())
