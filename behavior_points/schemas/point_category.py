from datetime import datetime
from typing import Optional

from uuid import UUID

from pydantic import BaseModel


class PointCategoryCreate(BaseModel):
    name: str
    description: Optional[str] = None

    default_points: int = 0
    is_positive: bool = True

    is_mandatory: bool = False
    is_restricted: bool = False


class PointCategoryUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None

    default_points: Optional[int] = None
    is_positive: Optional[bool] = None

    is_mandatory: Optional[bool] = None
    is_restricted: Optional[bool] = None


class PointCategoryOut(BaseModel):
    id: int

    name: str
    description: Optional[str] = None

    default_points: int
    is_positive: bool

    is_mandatory: bool
    is_restricted: bool

    created_by: Optional[UUID] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
