import pytest
from sqlalchemy.exc import IntegrityError

from behavior_points.models.notification import Notification
from behavior_points.models.notification_event import NotificationEvent
from behavior_points.services import award_service, notification_service
from behavior_points.services.privilege_service import Role


@pytest.fixture
def awarded_student(make_user, capability_for, add_badge, add_medal, db):
    teacher_id, _ = make_user(Role.TEACHER)
    student_id, _ = make_user()
    add_badge("Good citizen", 25, 100)
    add_medal("Bronze", 10, None)

    capability = capability_for(teacher_id, Role.TEACHER, "awards.evaluate", student_id)
    award_service.evaluate(db, capability, student_id, 30)
    return student_id


def _statuses(db):
    rows = db.query(NotificationEvent.kind, NotificationEvent.status).order_by(NotificationEvent.kind).all()
    db.commit()
    return [tuple(r) for r in rows]


def test_dispatch_delivers_pending_events_to_inbox(db, awarded_student):
    result = notification_service.dispatch_pending(db, batch_size=10, worker_id="test-worker")

    assert result == {"claimed": 2, "delivered": 2, "failed": 0}
    assert _statuses(db) == [("badge", "DELIVERED"), ("medal", "DELIVERED")]

    inbox = db.query(Notification).filter(Notification.user_id == awarded_student).order_by(Notification.type).all()
    assert [n.title for n in inbox] == ["New badge earned", "New medal earned"]
    assert inbox[0].content == "Congratulations! You earned a new badge: Good citizen"
    assert all(n.is_read is False for n in inbox)
    db.commit()

    # nothing left to claim
    assert notification_service.dispatch_pending(db, batch_size=10, worker_id="test-worker")["claimed"] == 0


def test_sink_failure_marks_event_failed_and_requeue_retries(db, awarded_student):
    payloads = []

    def flaky_sink(session, payload):
        payloads.append(payload)
        if payload["kind"] == "medal":
            raise RuntimeError("push gateway down")

    result = notification_service.dispatch_pending(db, flaky_sink, batch_size=10, worker_id="test-worker")

    assert result == {"claimed": 2, "delivered": 1, "failed": 1}
    assert {p["subjectId"] for p in payloads} == {str(awarded_student)}

    failed = db.query(NotificationEvent).filter(NotificationEvent.status == "FAILED").one()
    assert failed.kind == "medal"
    assert failed.attempts == 1
    assert failed.last_error == "push gateway down"
    assert failed.locked_by is None
    db.commit()

    assert notification_service.requeue_failed(db, awarded_student) == 1
    retry = notification_service.dispatch_pending(db, batch_size=10, worker_id="test-worker")

    assert retry == {"claimed": 1, "delivered": 1, "failed": 0}
    assert _statuses(db) == [("badge", "DELIVERED"), ("medal", "DELIVERED")]


def test_batch_size_limits_claims(db, awarded_student):
    first = notification_service.dispatch_pending(db, batch_size=1, worker_id="test-worker")
    second = notification_service.dispatch_pending(db, batch_size=1, worker_id="test-worker")

    assert first["claimed"] == 1
    assert second["claimed"] == 1
    assert _statuses(db) == [("badge", "DELIVERED"), ("medal", "DELIVERED")]


def test_emit_is_unique_per_award(db, awarded_student):
    event = db.query(NotificationEvent).filter(NotificationEvent.kind == "badge").one()
    item_id = event.item_id
    db.commit()

    with pytest.raises(IntegrityError):
        notification_service.emit_award_event(db, awarded_student, "badge", item_id, "duplicate")
    db.rollback()

    assert db.query(NotificationEvent).count() == 2
