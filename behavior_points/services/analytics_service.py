"""Per-category and per-month breakdowns of one subject's ledger."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from behavior_points.db import utcnow
from behavior_points.models.point_category import PointCategory
from behavior_points.models.points_transaction import PointsTransaction
from behavior_points.services import balance_service, ledger_service
from behavior_points.services.privilege_service import Capability


UNCATEGORIZED = "Uncategorized"


@dataclass
class CategoryBreakdown:
    category_id: int | None
    category_name: str
    is_positive: bool
    total_points: int
    transaction_count: int


@dataclass
class MonthBreakdown:
    month: str  # YYYY-MM
    positive_points: int = 0
    negative_points: int = 0

    @property
    def net_points(self) -> int:
        return self.positive_points - self.negative_points


@dataclass
class PointsAnalytics:
    subject_id: UUID
    total_points: int
    by_category: list[CategoryBreakdown] = field(default_factory=list)
    by_month: list[MonthBreakdown] = field(default_factory=list)
    recent: list = field(default_factory=list)


def _month_window(now: datetime, months: int) -> tuple[datetime, list[str]]:
    """First instant of the window and its month keys, oldest first."""
    year, month = now.year, now.month
    keys = []
    for _ in range(months):
        keys.append(f"{year:04d}-{month:02d}")
        month -= 1
        if month == 0:
            year, month = year - 1, 12

    keys.reverse()
    first_year, first_month = (int(part) for part in keys[0].split("-"))
    return datetime(first_year, first_month, 1), keys


def by_category(db: Session, subject_id: UUID) -> list[CategoryBreakdown]:
    total = func.sum(PointsTransaction.points)
    rows = (
        db.query(
            PointsTransaction.category_id,
            PointCategory.name,
            PointsTransaction.is_positive,
            total,
            func.count(PointsTransaction.id),
        )
        .outerjoin(PointCategory, PointCategory.id == PointsTransaction.category_id)
        .filter(PointsTransaction.user_id == subject_id)
        .group_by(PointsTransaction.category_id, PointCategory.name, PointsTransaction.is_positive)
        .order_by(total.desc(), PointsTransaction.category_id.asc())
        .all()
    )

    return [
        CategoryBreakdown(
            category_id=category_id,
            category_name=name or UNCATEGORIZED,
            is_positive=bool(is_positive),
            total_points=int(points or 0),
            transaction_count=int(count or 0),
        )
        for category_id, name, is_positive, points, count in rows
    ]


def by_month(db: Session, subject_id: UUID, months: int = 6, now: datetime | None = None) -> list[MonthBreakdown]:
    start, keys = _month_window(now or utcnow(), months)
    buckets = {key: MonthBreakdown(month=key) for key in keys}

    rows = (
        db.query(PointsTransaction.created_at, PointsTransaction.points, PointsTransaction.is_positive)
        .filter(PointsTransaction.user_id == subject_id, PointsTransaction.created_at >= start)
        .all()
    )
    for created_at, points, is_positive in rows:
        bucket = buckets.get(created_at.strftime("%Y-%m"))
        if bucket is None:
            # future-dated rows fall outside the window
            continue
        if is_positive:
            bucket.positive_points += int(points)
        else:
            bucket.negative_points += int(points)

    return [buckets[key] for key in keys]


def analytics(
    db: Session,
    capability: Capability,
    subject_id: UUID,
    *,
    months: int = 6,
    recent_limit: int = 10,
) -> PointsAnalytics:
    capability.require_subject(subject_id)

    months = max(1, min(months, 24))
    recent_limit = max(1, min(recent_limit, 50))

    return PointsAnalytics(
        subject_id=subject_id,
        total_points=balance_service.recompute(db, subject_id),
        by_category=by_category(db, subject_id),
        by_month=by_month(db, subject_id, months),
        recent=ledger_service.list_for(db, capability, subject_id, limit=recent_limit),
    )
