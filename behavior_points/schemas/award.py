from datetime import datetime
from typing import Dict, List, Literal, Optional

from uuid import UUID

from pydantic import BaseModel


class AwardedItemOut(BaseModel):
    kind: str
    item_id: UUID
    name: str
    awarded_at: Optional[datetime] = None

    min_points: Optional[int] = None
    max_points: Optional[int] = None

    class Config:
        from_attributes = True


class AwardEvaluationOut(BaseModel):
    subject_id: UUID
    points: int

    awarded: List[AwardedItemOut] = []
    notification_failures: List[Dict[str, str]] = []

    class Config:
        from_attributes = True


class AwardGrant(BaseModel):
    subjectId: UUID
    kind: Literal["medal", "badge"]
    itemId: UUID


class LeaderboardEntryOut(BaseModel):
    userId: UUID
    fullName: str
    userCode: str
    badgeCount: int
    points: int
