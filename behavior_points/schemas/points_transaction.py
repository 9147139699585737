from datetime import datetime
from typing import List, Optional

from uuid import UUID

from pydantic import BaseModel, Field

from behavior_points.services.ledger_service import Sign


class PointsChangeCreate(BaseModel):
    subjectId: UUID

    # validated by the ledger so that 0 / negative amounts map to InvalidAmount
    points: int
    sign: Sign = Sign.POSITIVE

    categoryId: Optional[int] = None
    description: Optional[str] = Field(default=None, max_length=255)


class PointsTransactionOut(BaseModel):
    id: UUID
    user_id: UUID

    points: int
    is_positive: bool
    signed_points: int

    category_id: Optional[int] = None
    description: Optional[str] = None

    created_by: UUID
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class PointsTransferCreate(BaseModel):
    recipientCode: str = Field(min_length=1, max_length=50)
    points: int

    categoryId: Optional[int] = None
    description: Optional[str] = Field(default=None, max_length=255)


class PointsBatchCreate(BaseModel):
    userCodes: List[str] = Field(min_length=1)

    # both fall back to the category's defaults when omitted
    points: Optional[int] = None
    sign: Optional[Sign] = None

    categoryId: Optional[int] = None
    description: Optional[str] = Field(default=None, max_length=255)


class PointTransferOut(BaseModel):
    id: UUID
    sender_id: UUID
    recipient_id: UUID

    points: int
    description: Optional[str] = None
    category_id: Optional[int] = None

    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
