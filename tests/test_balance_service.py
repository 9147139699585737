import pytest
from sqlalchemy.exc import OperationalError

from behavior_points.errors import CacheSyncFailed, Forbidden
from behavior_points.models.student_points import StudentPoints
from behavior_points.services import balance_service, ledger_service
from behavior_points.services.ledger_service import Sign
from behavior_points.services.privilege_service import Role


@pytest.fixture
def staff(make_user, capability_for):
    teacher_id, _ = make_user(Role.TEACHER)
    admin_id, _ = make_user(Role.ADMIN)

    class Staff:
        def teacher(self, operation, subject_id=None):
            return capability_for(teacher_id, Role.TEACHER, operation, subject_id)

        def admin(self, operation, subject_id=None):
            return capability_for(admin_id, Role.ADMIN, operation, subject_id)

    return Staff()


def _apply(db, capability, subject_id, *changes):
    for amount in changes:
        sign = Sign.POSITIVE if amount > 0 else Sign.NEGATIVE
        ledger_service.append(db, capability, subject_id, abs(amount), sign)


def _set_cached_points(db, subject_id, points):
    db.query(StudentPoints).filter(StudentPoints.student_id == subject_id).update({StudentPoints.points: points})
    db.commit()


@pytest.mark.parametrize(
    "changes, expected",
    [
        ((), 0),
        ((50,), 50),
        ((50, -20), 30),
        ((-20, 50), 30),
        ((-5, -5), -10),
        ((10, -3, 7, -14, 1), 1),
    ],
)
def test_recompute_is_signed_sum_in_any_order(db, make_user, staff, changes, expected):
    student_id, _ = make_user()
    _apply(db, staff.teacher("points.append", student_id), student_id, *changes)

    assert balance_service.recompute(db, student_id) == expected


def test_read_without_record_is_zero(db, make_user, staff):
    student_id, _ = make_user()
    assert balance_service.read(db, staff.teacher("points.read", student_id), student_id) == 0


def test_sync_lazily_creates_record_and_is_idempotent(db, make_user, staff):
    student_id, _ = make_user()
    _apply(db, staff.teacher("points.append", student_id), student_id, 50, -20)
    capability = staff.teacher("balance.sync", student_id)

    first = balance_service.sync(db, capability, student_id)
    assert first.points == 30
    assert balance_service.read(db, capability, student_id) == 30

    for _ in range(3):
        balance_service.sync(db, capability, student_id, force=True)

    assert db.query(StudentPoints).filter(StudentPoints.student_id == student_id).count() == 1
    assert balance_service.read(db, capability, student_id) == 30


def test_sync_picks_up_appends_made_after_last_sync(db, make_user, staff):
    student_id, _ = make_user()
    append_cap = staff.teacher("points.append", student_id)
    sync_cap = staff.teacher("balance.sync", student_id)

    _apply(db, append_cap, student_id, 10)
    balance_service.sync(db, sync_cap, student_id)

    _apply(db, append_cap, student_id, 5)
    record = balance_service.sync(db, sync_cap, student_id)

    assert record.points == 15


def test_forced_sync_repairs_a_tampered_cache(db, make_user, staff):
    student_id, _ = make_user()
    _apply(db, staff.teacher("points.append", student_id), student_id, 50, -20)
    capability = staff.teacher("balance.sync", student_id)
    balance_service.sync(db, capability, student_id)

    _set_cached_points(db, student_id, 999)

    # the cache is newer than every ledger row, so a lazy sync trusts it
    assert balance_service.sync(db, capability, student_id).points == 999
    assert balance_service.sync(db, capability, student_id, force=True).points == 30


def test_inspect_reports_cached_and_ledger_values_separately(db, make_user, staff):
    student_id, _ = make_user()
    _apply(db, staff.teacher("points.append", student_id), student_id, 50, -20)
    balance_service.sync(db, staff.teacher("balance.sync", student_id), student_id)
    _set_cached_points(db, student_id, 999)

    inspection = balance_service.inspect(db, staff.admin("balance.inspect", student_id), student_id)

    assert inspection.cached_points == 999
    assert inspection.ledger_points == 30
    assert inspection.positive_points == 50
    assert inspection.negative_points == 20
    assert inspection.drift == 969
    assert inspection.in_sync is False
    assert [t.signed_points for t in inspection.transactions] == [-20, 50]


def test_inspect_without_cache_record(db, make_user, staff):
    student_id, _ = make_user()
    _apply(db, staff.teacher("points.append", student_id), student_id, 7)

    inspection = balance_service.inspect(db, staff.admin("balance.inspect", student_id), student_id)

    assert inspection.cached_points is None
    assert inspection.drift is None
    assert inspection.ledger_points == 7


def test_cache_write_failure_carries_recomputed_points(db, make_user, staff, monkeypatch):
    student_id, _ = make_user()
    _apply(db, staff.teacher("points.append", student_id), student_id, 40)
    capability = staff.teacher("balance.sync", student_id)

    def failing_write(db, subject_id, points):
        raise OperationalError("UPDATE student_points", {}, Exception("database is locked"))

    monkeypatch.setattr(balance_service, "_write_balance", failing_write)
    with pytest.raises(CacheSyncFailed) as excinfo:
        balance_service.sync(db, capability, student_id)
    monkeypatch.undo()

    assert excinfo.value.points == 40
    assert excinfo.value.status_code == 503
    assert balance_service.read(db, capability, student_id) == 0

    # the ledger row survived; a later sync heals the cache
    assert balance_service.sync(db, capability, student_id).points == 40


def test_sync_all_covers_ledger_and_cached_subjects(db, make_user, staff):
    first_id, _ = make_user()
    second_id, _ = make_user()
    _apply(db, staff.teacher("points.append", first_id), first_id, 12)
    _apply(db, staff.teacher("points.append", second_id), second_id, 8)
    balance_service.sync(db, staff.teacher("balance.sync", second_id), second_id)
    _set_cached_points(db, second_id, 100)

    outcomes = balance_service.sync_all(db, staff.admin("balance.sync_all"))

    by_subject = {o.subject_id: o for o in outcomes}
    assert set(by_subject) == {first_id, second_id}
    assert by_subject[first_id].previous_points is None
    assert by_subject[first_id].points == 12
    assert by_subject[second_id].previous_points == 100
    assert by_subject[second_id].points == 8
    assert all(o.changed for o in outcomes)


def test_sync_all_requires_admin(db, make_user, staff):
    with pytest.raises(Forbidden):
        balance_service.sync_all(db, staff.teacher("balance.sync"))


def test_sync_overwrites_row_inserted_by_a_concurrent_sync(db, make_user, staff, monkeypatch):
    student_id, _ = make_user()
    _apply(db, staff.teacher("points.append", student_id), student_id, 40)
    capability = staff.teacher("balance.sync", student_id)
    balance_service.sync(db, capability, student_id)
    _set_cached_points(db, student_id, 7)

    # the lookup misses the row, so the insert hits the unique key and falls back to update
    monkeypatch.setattr(balance_service, "_get_record", lambda db, subject_id: None)
    record = balance_service.sync(db, capability, student_id, force=True)
    monkeypatch.undo()

    assert record.points == 40
    assert balance_service.read(db, capability, student_id) == 40
    assert db.query(StudentPoints).filter(StudentPoints.student_id == student_id).count() == 1
