from datetime import datetime, timedelta, timezone

import pytest

from rollcall.modules.attendance_ledger import format_timestamp, parse_timestamp
from rollcall.modules.exceptions import StudentNotFoundError, ValidationError


def test_format_timestamp_matches_iso_millis():
    moment = datetime(2024, 1, 1, 9, 0, 0, 123456, tzinfo=timezone.utc)

    assert format_timestamp(moment) == "2024-01-01T09:00:00.123Z"
    assert format_timestamp(moment.replace(tzinfo=None)) == "2024-01-01T09:00:00.123Z"


def test_format_timestamp_converts_to_utc():
    plus_two = timezone(timedelta(hours=2))
    moment = datetime(2024, 1, 1, 1, 30, tzinfo=plus_two)

    assert format_timestamp(moment) == "2023-12-31T23:30:00.000Z"


def test_parse_timestamp_reverses_format():
    assert parse_timestamp("2024-01-01T09:00:00.250Z") == datetime(
        2024, 1, 1, 9, 0, 0, 250000, tzinfo=timezone.utc
    )


def test_append_derives_day_from_timestamp(registry, ledger):
    student = registry.register("A1", "Jane Doe")
    moment = datetime(2024, 3, 5, 23, 59, 59, 999000, tzinfo=timezone.utc)

    event = ledger.append(student.id, moment)

    assert event.student_id == student.id
    assert event.occurred_at == "2024-03-05T23:59:59.999Z"
    assert event.day == "2024-03-05"
    assert ledger.count() == 1


def test_append_does_not_deduplicate(registry, ledger, clock):
    student = registry.register("A1", "Jane Doe")

    first = ledger.append(student.id, clock())
    second = ledger.append(student.id, clock())

    assert first.id != second.id
    assert ledger.count() == 2


def test_append_rejects_unknown_student(ledger, clock):
    with pytest.raises(StudentNotFoundError):
        ledger.append(999, clock())
    assert ledger.count() == 0


def test_append_rejects_removed_student(registry, ledger, clock):
    student = registry.register("A1", "Jane Doe")
    ledger.append(student.id, clock())
    registry.remove("A1")

    with pytest.raises(StudentNotFoundError):
        ledger.append(student.id, clock.advance(minutes=1))
    assert ledger.count() == 1


def test_recent_orders_newest_first_and_truncates(registry, ledger, clock):
    a = registry.register("A1", "Jane Doe")
    b = registry.register("B2", "John Roe")
    t1 = clock()
    t2 = t1 + timedelta(minutes=1)
    t3 = t1 + timedelta(minutes=2)

    # Inserted out of order on purpose
    ledger.append(a.id, t2)
    ledger.append(b.id, t3)
    ledger.append(a.id, t1)

    recent = ledger.recent(2)

    assert [event.occurred_at for event, _ in recent] == [
        format_timestamp(t3), format_timestamp(t2)
    ]
    assert [student.roll for _, student in recent] == ["B2", "A1"]


def test_all_is_unbounded_and_ordered(registry, ledger, clock):
    student = registry.register("A1", "Jane Doe")
    for minutes in range(5):
        ledger.append(student.id, clock() + timedelta(minutes=minutes))

    events = [event for event, _ in ledger.all()]

    assert len(events) == 5
    assert [e.occurred_at for e in events] == sorted(
        (e.occurred_at for e in events), reverse=True
    )


def test_same_instant_ties_break_by_newest_id(registry, ledger, clock):
    student = registry.register("A1", "Jane Doe")
    first = ledger.append(student.id, clock())
    second = ledger.append(student.id, clock())

    assert [event.id for event, _ in ledger.all()] == [second.id, first.id]


@pytest.mark.parametrize("limit", [-1, "5", 2.5, True])
def test_recent_rejects_invalid_limit(ledger, limit):
    with pytest.raises(ValidationError):
        ledger.recent(limit)


def test_recent_zero_limit_is_empty(registry, ledger, clock):
    student = registry.register("A1", "Jane Doe")
    ledger.append(student.id, clock())

    assert ledger.recent(0) == []


def test_orphaned_event_pairs_with_none(db, registry, ledger, clock):
    student = registry.register("A1", "Jane Doe")
    event = ledger.append(student.id, clock())

    # Simulate a student row removed behind the registry's back
    with db.get_connection() as conn:
        conn.execute("PRAGMA foreign_keys = OFF")
        conn.execute("DELETE FROM students WHERE id = ?", (student.id,))
        conn.commit()
        conn.execute("PRAGMA foreign_keys = ON")

    assert ledger.all() == [(event, None)]


def test_latest_for_student(registry, ledger, clock):
    student = registry.register("A1", "Jane Doe")
    assert ledger.latest_for_student(student.id) is None

    ledger.append(student.id, clock())
    latest = ledger.append(student.id, clock.advance(seconds=30))

    assert ledger.latest_for_student(student.id) == latest
