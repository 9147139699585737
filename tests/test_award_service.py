import uuid

import pytest
from sqlalchemy.exc import OperationalError

from behavior_points.errors import AwardEvaluationFailed, CatalogItemNotFound, Forbidden
from behavior_points.models.notification_event import NotificationEvent
from behavior_points.models.user_badge import UserBadge
from behavior_points.models.user_medal import UserMedal
from behavior_points.services import award_service, balance_service, ledger_service, notification_service
from behavior_points.services.ledger_service import Sign
from behavior_points.services.privilege_service import Role


@pytest.fixture
def teacher(make_user, capability_for):
    teacher_id, _ = make_user(Role.TEACHER)

    def _cap(operation, subject_id):
        return capability_for(teacher_id, Role.TEACHER, operation, subject_id)

    return _cap


def _badge_count(db, subject_id):
    count = db.query(UserBadge).filter(UserBadge.user_id == subject_id).count()
    db.commit()
    return count


def test_ledger_to_award_end_to_end(db, make_user, teacher, add_badge):
    student_id, _ = make_user()
    badge_id = add_badge("Good citizen", 25, 100)

    ledger_service.append(db, teacher("points.append", student_id), student_id, 50, Sign.POSITIVE)
    assert balance_service.recompute(db, student_id) == 50
    ledger_service.append(db, teacher("points.append", student_id), student_id, 20, Sign.NEGATIVE)
    assert balance_service.recompute(db, student_id) == 30

    sync_cap = teacher("balance.sync", student_id)
    balance_service.sync(db, sync_cap, student_id)
    assert balance_service.read(db, sync_cap, student_id) == 30

    capability = teacher("awards.evaluate", student_id)
    first = award_service.evaluate(db, capability, student_id, 30)
    assert [(a.kind, a.item_id) for a in first.awarded] == [("badge", badge_id)]
    assert first.notification_failures == []

    second = award_service.evaluate(db, capability, student_id, 30)
    assert second.awarded == []
    assert _badge_count(db, student_id) == 1


def test_awards_are_sticky_when_points_drop(db, make_user, teacher, add_medal):
    student_id, _ = make_user()
    add_medal("Bronze", 10, 49)
    capability = teacher("awards.evaluate", student_id)

    assert len(award_service.evaluate(db, capability, student_id, 20).awarded) == 1
    assert award_service.evaluate(db, capability, student_id, 0).awarded == []

    medals = award_service.list_awards(db, capability, student_id, "medal")
    assert [m.name for m in medals] == ["Bronze"]


def test_every_satisfied_range_is_awarded(db, make_user, teacher, add_badge, add_medal):
    student_id, _ = make_user()
    add_badge("Starter", 0, 50)
    add_badge("Climber", 20, None)
    add_badge("Out of reach", 100, None)
    add_badge("Too late", 0, 10)
    add_medal("Bronze", 25, 25)

    result = award_service.evaluate(db, teacher("awards.evaluate", student_id), student_id, 25)

    awarded = sorted((a.kind, a.name) for a in result.awarded)
    assert awarded == [("badge", "Climber"), ("badge", "Starter"), ("medal", "Bronze")]


def test_negative_balance_awards_nothing(db, make_user, teacher, add_badge):
    student_id, _ = make_user()
    add_badge("Starter", 0, 50)

    result = award_service.evaluate(db, teacher("awards.evaluate", student_id), student_id, -5)

    assert result.awarded == []


def test_unique_key_stops_duplicate_awards(db, make_user, teacher, add_badge, monkeypatch):
    student_id, _ = make_user()
    add_badge("Good citizen", 25, 100)
    capability = teacher("awards.evaluate", student_id)

    assert len(award_service.evaluate(db, capability, student_id, 30).awarded) == 1

    # simulate a concurrent evaluator whose pre-check missed the first award
    monkeypatch.setattr(award_service, "_awarded_item_ids", lambda db, kind, subject_id: set())
    again = award_service.evaluate(db, capability, student_id, 30)

    assert again.awarded == []
    assert _badge_count(db, student_id) == 1


def test_award_stands_when_notification_cannot_be_queued(db, make_user, teacher, add_badge, monkeypatch):
    student_id, _ = make_user()
    add_badge("Good citizen", 25, 100)

    def failing_emit(*args, **kwargs):
        raise OperationalError("INSERT INTO notification_events", {}, Exception("outbox unavailable"))

    monkeypatch.setattr(notification_service, "emit_award_event", failing_emit)
    result = award_service.evaluate(db, teacher("awards.evaluate", student_id), student_id, 30)

    assert len(result.awarded) == 1
    assert len(result.notification_failures) == 1
    assert result.notification_failures[0]["kind"] == "badge"
    assert _badge_count(db, student_id) == 1


def test_failed_evaluation_carries_awards_already_granted(db, make_user, teacher, add_badge, add_medal, monkeypatch):
    student_id, _ = make_user()
    add_medal("Bronze", 10, None)
    add_badge("Good citizen", 25, 100)
    original = award_service.qualifying_items

    def failing_for_badges(db, kind, points):
        if kind == "badge":
            raise OperationalError("SELECT badges", {}, Exception("connection reset"))
        return original(db, kind, points)

    monkeypatch.setattr(award_service, "qualifying_items", failing_for_badges)
    with pytest.raises(AwardEvaluationFailed) as excinfo:
        award_service.evaluate(db, teacher("awards.evaluate", student_id), student_id, 30)
    monkeypatch.undo()

    assert [a.name for a in excinfo.value.evaluation.awarded] == ["Bronze"]
    assert db.query(UserMedal).filter(UserMedal.user_id == student_id).count() == 1
    assert _badge_count(db, student_id) == 0


def test_each_award_queues_one_notification(db, make_user, teacher, add_badge, add_medal):
    student_id, _ = make_user()
    badge_id = add_badge("Good citizen", 25, 100)
    add_medal("Bronze", 10, None)

    award_service.evaluate(db, teacher("awards.evaluate", student_id), student_id, 30)

    events = db.query(NotificationEvent).order_by(NotificationEvent.kind).all()
    assert [(e.kind, e.status) for e in events] == [("badge", "PENDING"), ("medal", "PENDING")]
    assert events[0].item_id == badge_id
    assert events[0].message == "Congratulations! You earned a new badge: Good citizen"


def test_student_evaluates_only_own_awards(db, make_user, capability_for, add_badge):
    student_id, _ = make_user()
    other_id, _ = make_user()
    add_badge("Good citizen", 25, 100)

    capability = capability_for(student_id, Role.STUDENT, "awards.evaluate", student_id)
    with pytest.raises(Forbidden):
        award_service.evaluate(db, capability, other_id, 30)

    assert len(award_service.evaluate(db, capability, student_id, 30).awarded) == 1


def test_admin_grant_ignores_thresholds(db, make_user, capability_for, add_medal):
    admin_id, _ = make_user(Role.ADMIN)
    student_id, _ = make_user()
    medal_id = add_medal("Gold", 500, None)
    capability = capability_for(admin_id, Role.ADMIN, "awards.grant", student_id)

    result = award_service.grant(db, capability, student_id, "medal", medal_id)
    assert [a.item_id for a in result.awarded] == [medal_id]

    # granting twice is a no-op
    assert award_service.grant(db, capability, student_id, "medal", medal_id).awarded == []
    assert db.query(UserMedal).filter(UserMedal.user_id == student_id).count() == 1
    db.commit()

    with pytest.raises(CatalogItemNotFound):
        award_service.grant(db, capability, student_id, "medal", uuid.uuid4())


def test_grant_requires_admin(db, make_user, capability_for, add_medal):
    teacher_id, _ = make_user(Role.TEACHER)
    student_id, _ = make_user()
    medal_id = add_medal("Gold", 500, None)
    capability = capability_for(teacher_id, Role.TEACHER, "awards.evaluate", student_id)

    with pytest.raises(Forbidden):
        award_service.grant(db, capability, student_id, "medal", medal_id)


def test_leaderboard_orders_students_by_badges_then_points(db, make_user, teacher, add_badge):
    leader_id, _ = make_user(name="Amal")
    runner_id, _ = make_user(name="Badr")
    third_id, _ = make_user(name="Cyrine")
    make_user(Role.TEACHER, name="Teacher")
    add_badge("Starter", 0, None)
    add_badge("Climber", 50, None)

    for subject_id, amount in ((leader_id, 60), (runner_id, 45), (third_id, 30)):
        ledger_service.append(db, teacher("points.append", subject_id), subject_id, amount, Sign.POSITIVE)
        record = balance_service.sync(db, teacher("balance.sync", subject_id), subject_id)
        award_service.evaluate(db, teacher("awards.evaluate", subject_id), subject_id, record.points)

    rows = award_service.leaderboard(db)

    assert [r["userId"] for r in rows] == [leader_id, runner_id, third_id]
    assert [r["badgeCount"] for r in rows] == [2, 1, 1]
    assert [r["points"] for r in rows] == [60, 45, 30]
