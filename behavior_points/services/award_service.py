from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from uuid import UUID

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from behavior_points.errors import AwardEvaluationFailed, CatalogItemNotFound, SubjectNotFound
from behavior_points.models.badge import Badge
from behavior_points.models.medal import Medal
from behavior_points.models.student_points import StudentPoints
from behavior_points.models.user import User
from behavior_points.models.user_badge import UserBadge
from behavior_points.models.user_medal import UserMedal
from behavior_points.services import notification_service
from behavior_points.services.privilege_service import Capability, Role


logger = logging.getLogger(__name__)

KINDS = ("medal", "badge")


@dataclass(frozen=True)
class _CatalogSpec:
    item_model: type
    award_model: type
    item_fk: str


_CATALOGS = {
    "medal": _CatalogSpec(item_model=Medal, award_model=UserMedal, item_fk="medal_id"),
    "badge": _CatalogSpec(item_model=Badge, award_model=UserBadge, item_fk="badge_id"),
}


@dataclass
class AwardedItem:
    kind: str
    item_id: UUID
    name: str
    awarded_at: datetime | None
    min_points: int | None = None
    max_points: int | None = None


@dataclass
class AwardEvaluation:
    subject_id: UUID
    points: int
    awarded: list[AwardedItem] = field(default_factory=list)
    notification_failures: list[dict] = field(default_factory=list)


def catalog_spec(kind: str) -> _CatalogSpec:
    try:
        return _CATALOGS[kind]
    except KeyError:
        raise ValueError(f"Unknown catalog kind: {kind}")


def award_message(kind: str, name: str) -> str:
    return f"Congratulations! You earned a new {kind}: {name}"


# ============================================================
# THRESHOLDS
# ============================================================

def qualifying_items(db: Session, kind: str, points: int) -> list:
    model = catalog_spec(kind).item_model
    points = int(points or 0)

    return (
        db.query(model)
        .filter(model.min_points <= points)
        .filter(or_(model.max_points.is_(None), model.max_points >= points))
        .order_by(model.min_points.asc(), model.name.asc())
        .all()
    )


def _awarded_item_ids(db: Session, kind: str, subject_id: UUID) -> set:
    spec = catalog_spec(kind)
    fk = getattr(spec.award_model, spec.item_fk)
    return {row[0] for row in db.query(fk).filter(spec.award_model.user_id == subject_id).all()}


def _insert_award(db: Session, kind: str, subject_id: UUID, item):
    """
    Inserts the award inside a savepoint. The unique (user, item) key is the
    conflict point: a duplicate means someone else already awarded it.
    """
    spec = catalog_spec(kind)
    try:
        with db.begin_nested():
            award = spec.award_model(user_id=subject_id, **{spec.item_fk: item.id})
            db.add(award)
    except IntegrityError:
        logger.debug(
            "award already present",
            extra={"subject_id": str(subject_id), "kind": kind, "item_id": str(item.id)},
        )
        return None
    return award


def _notify(db: Session, result: AwardEvaluation, awarded: AwardedItem) -> None:
    try:
        notification_service.emit_award_event(
            db,
            result.subject_id,
            awarded.kind,
            awarded.item_id,
            award_message(awarded.kind, awarded.name),
        )
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        result.notification_failures.append(
            {"kind": awarded.kind, "itemId": str(awarded.item_id), "error": str(e)}
        )
        logger.warning(
            "award notification not queued",
            extra={"subject_id": str(result.subject_id), "kind": awarded.kind, "item_id": str(awarded.item_id), "error": str(e)},
        )


def _award(db: Session, result: AwardEvaluation, kind: str, item) -> bool:
    award = _insert_award(db, kind, result.subject_id, item)
    if award is None:
        return False

    # the award must be durable before the notification is attempted
    db.commit()

    awarded = AwardedItem(
        kind=kind,
        item_id=item.id,
        name=item.name,
        awarded_at=award.awarded_at,
        min_points=item.min_points,
        max_points=item.max_points,
    )
    result.awarded.append(awarded)

    logger.info(
        "award granted",
        extra={"subject_id": str(result.subject_id), "kind": kind, "item_id": str(item.id), "points": result.points},
    )

    _notify(db, result, awarded)
    return True


# ============================================================
# EVALUATE
# ============================================================

def evaluate(db: Session, capability: Capability, subject_id: UUID, current_points: int) -> AwardEvaluation:
    capability.require_subject(subject_id)

    result = AwardEvaluation(subject_id=subject_id, points=int(current_points or 0))

    try:
        for kind in KINDS:
            owned = _awarded_item_ids(db, kind, subject_id)
            for item in qualifying_items(db, kind, result.points):
                if item.id in owned:
                    continue
                _award(db, result, kind, item)
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception(
            "award evaluation failed",
            extra={"subject_id": str(subject_id), "points": result.points, "awarded": len(result.awarded)},
        )
        raise AwardEvaluationFailed(subject_id, str(e), evaluation=result) from e

    return result


def grant(db: Session, capability: Capability, subject_id: UUID, kind: str, item_id: UUID) -> AwardEvaluation:
    """Manual award by an administrator; thresholds are not checked."""
    capability.require_admin()

    spec = catalog_spec(kind)
    item = db.query(spec.item_model).filter(spec.item_model.id == item_id).first()
    if not item:
        raise CatalogItemNotFound(kind, item_id)
    if not db.query(User.id).filter(User.id == subject_id).first():
        raise SubjectNotFound(subject_id)

    points = db.query(StudentPoints.points).filter(StudentPoints.student_id == subject_id).scalar()
    result = AwardEvaluation(subject_id=subject_id, points=int(points or 0))

    try:
        _award(db, result, kind, item)
    except SQLAlchemyError as e:
        db.rollback()
        raise AwardEvaluationFailed(subject_id, str(e), evaluation=result) from e

    return result


def list_awards(db: Session, capability: Capability, subject_id: UUID, kind: str) -> list[AwardedItem]:
    capability.require_subject(subject_id)

    spec = catalog_spec(kind)
    fk = getattr(spec.award_model, spec.item_fk)
    rows = (
        db.query(spec.award_model, spec.item_model)
        .join(spec.item_model, spec.item_model.id == fk)
        .filter(spec.award_model.user_id == subject_id)
        .order_by(spec.award_model.awarded_at.desc())
        .all()
    )

    return [
        AwardedItem(
            kind=kind,
            item_id=item.id,
            name=item.name,
            awarded_at=award.awarded_at,
            min_points=item.min_points,
            max_points=item.max_points,
        )
        for award, item in rows
    ]


def leaderboard(db: Session, limit: int = 10) -> list[dict]:
    limit = max(1, min(limit, 100))

    badge_counts = (
        db.query(UserBadge.user_id.label("user_id"), func.count(UserBadge.id).label("badge_count"))
        .group_by(UserBadge.user_id)
        .subquery()
    )

    rows = (
        db.query(
            User,
            func.coalesce(badge_counts.c.badge_count, 0),
            func.coalesce(StudentPoints.points, 0),
        )
        .outerjoin(badge_counts, badge_counts.c.user_id == User.id)
        .outerjoin(StudentPoints, StudentPoints.student_id == User.id)
        .filter(User.role_id == int(Role.STUDENT))
        .order_by(
            func.coalesce(badge_counts.c.badge_count, 0).desc(),
            func.coalesce(StudentPoints.points, 0).desc(),
            User.full_name.asc(),
        )
        .limit(limit)
        .all()
    )

    return [
        {
            "userId": user.id,
            "fullName": user.full_name,
            "userCode": user.user_code,
            "badgeCount": int(badge_count or 0),
            "points": int(points or 0),
        }
        for user, badge_count, points in rows
    ]
