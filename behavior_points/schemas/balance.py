from datetime import datetime
from typing import Dict, List, Optional

from uuid import UUID

from pydantic import BaseModel

from behavior_points.schemas.award import AwardEvaluationOut
from behavior_points.schemas.points_transaction import PointTransferOut, PointsTransactionOut
from behavior_points.services.ledger_service import Sign


class BalanceOut(BaseModel):
    subject_id: UUID
    points: int


class BalanceRecordOut(BaseModel):
    student_id: UUID
    points: int
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class BalanceInspectionOut(BaseModel):
    subject_id: UUID

    cached_points: Optional[int] = None
    cached_updated_at: Optional[datetime] = None

    ledger_points: int
    positive_points: int
    negative_points: int

    drift: Optional[int] = None
    in_sync: bool

    transactions: List[PointsTransactionOut] = []

    class Config:
        from_attributes = True


class SyncOutcomeOut(BaseModel):
    subject_id: UUID
    points: Optional[int] = None
    previous_points: Optional[int] = None
    changed: bool
    error: Optional[str] = None

    class Config:
        from_attributes = True


class PointsChangeOut(BaseModel):
    transaction: PointsTransactionOut

    ledger_points: int
    balance: Optional[int] = None
    cache_synced: bool

    awards: Optional[AwardEvaluationOut] = None

    partial: bool
    warnings: List[str] = []

    class Config:
        from_attributes = True


class ReconciliationOut(BaseModel):
    subject_id: UUID

    ledger_points: int
    balance: Optional[int] = None
    cache_synced: bool

    awards: Optional[AwardEvaluationOut] = None

    class Config:
        from_attributes = True


class PointsTransferOut(BaseModel):
    transfer: PointTransferOut
    sender_transaction: PointsTransactionOut
    recipient_transaction: PointsTransactionOut

    sender: ReconciliationOut
    recipient: ReconciliationOut

    partial: bool
    warnings: List[str] = []

    class Config:
        from_attributes = True


class BatchEntryOut(BaseModel):
    user_code: str
    result: PointsChangeOut

    class Config:
        from_attributes = True


class PointsBatchOut(BaseModel):
    points: int
    sign: Sign
    category_id: Optional[int] = None

    processed_count: int
    entries: List[BatchEntryOut] = []
    missing_user_codes: List[str] = []
    failures: List[Dict[str, str]] = []

    class Config:
        from_attributes = True
