from datetime import datetime
from typing import Optional

from uuid import UUID

from pydantic import BaseModel


class MedalCreate(BaseModel):
    name: str
    description: Optional[str] = None
    image_url: Optional[str] = None

    min_points: int
    max_points: Optional[int] = None


class MedalUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    image_url: Optional[str] = None

    min_points: Optional[int] = None
    max_points: Optional[int] = None


class MedalOut(BaseModel):
    id: UUID

    name: str
    description: Optional[str] = None
    image_url: Optional[str] = None

    min_points: int
    max_points: Optional[int] = None

    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class BadgeCreate(MedalCreate):
    badge_type: str = "achievement"


class BadgeUpdate(MedalUpdate):
    badge_type: Optional[str] = None


class BadgeOut(MedalOut):
    badge_type: str
