from typing import List, Optional

from uuid import UUID

from pydantic import BaseModel

from behavior_points.schemas.points_transaction import PointsTransactionOut


class CategoryBreakdownOut(BaseModel):
    category_id: Optional[int] = None
    category_name: str
    is_positive: bool
    total_points: int
    transaction_count: int

    class Config:
        from_attributes = True


class MonthBreakdownOut(BaseModel):
    month: str
    positive_points: int
    negative_points: int
    net_points: int

    class Config:
        from_attributes = True


class PointsAnalyticsOut(BaseModel):
    subject_id: UUID
    total_points: int

    by_category: List[CategoryBreakdownOut] = []
    by_month: List[MonthBreakdownOut] = []
    recent: List[PointsTransactionOut] = []

    class Config:
        from_attributes = True
