import uuid
from sqlalchemy import Column, Integer, String, TIMESTAMP
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func
from behavior_points.db import Base


class User(Base):
    __tablename__ = "users"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    full_name = Column(String(200), nullable=False)
    user_code = Column(String(50), nullable=False, unique=True)

    role_id = Column(Integer, nullable=False, default=1)  # 1 student / 2 parent / 3 teacher / 4 admin

    created_at = Column(TIMESTAMP, server_default=func.now())
