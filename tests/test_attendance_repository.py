from datetime import datetime, timezone

import pytest

from aulux.plugins.attendance.backends import (
    MemoryAttendanceRepository,
    SqlAttendanceRepository,
    get_repository,
)
from aulux.plugins.attendance.service import compute_stats, new_record


@pytest.fixture(params=["memory", "sql"])
def repository(request):
    if request.param == "sql":
        request.getfixturevalue("database")
    return get_repository(request.param, {})


def _record(event_id="e1", student_id="s1", status="present", date="2024-03-09", course_id="c1", by="prof@example.com"):
    return new_record(
        event_id=event_id,
        course_id=course_id,
        student_id=student_id,
        status=status,
        recorded_by=by,
        date=date,
    )


def test_get_repository_backends():
    assert isinstance(get_repository("memory", {}), MemoryAttendanceRepository)
    assert isinstance(get_repository("SQL", {}), SqlAttendanceRepository)
    assert get_repository("redis", {}) is None


def test_second_record_for_same_event_and_student_overwrites(repository):
    first, created = repository.upsert(_record(status="present"))
    assert created is True

    second, created = repository.upsert(_record(status="late", by="coord@example.com"))

    assert created is False
    assert second.id == first.id
    assert second.status == "late"
    assert second.updated_by == "coord@example.com"
    assert second.updated_at is not None
    assert [r.status for r in repository.query(event_id="e1")] == ["late"]


def test_update_changes_status_and_keeps_notes(repository):
    stored, _ = repository.upsert(_record())

    updated = repository.update(stored.id, status="absent", updated_by="prof@example.com")

    assert updated.status == "absent"
    assert updated.notes == ""
    assert updated.updated_by == "prof@example.com"
    assert repository.get(stored.id).status == "absent"
    assert repository.update("missing-id", status="late") is None


def test_delete_returns_removed_record(repository):
    stored, _ = repository.upsert(_record())

    deleted = repository.delete(stored.id)

    assert deleted.id == stored.id
    assert repository.get(stored.id) is None
    assert repository.delete(stored.id) is None


def test_query_filters(repository):
    repository.upsert(_record(event_id="e1", student_id="s1", date="2024-03-01"))
    repository.upsert(_record(event_id="e1", student_id="s2", date="2024-03-01"))
    repository.upsert(_record(event_id="e2", student_id="s1", date="2024-03-08", course_id="c2"))
    repository.upsert(_record(event_id="e3", student_id="s1", date="2024-03-15"))

    assert len(repository.query()) == 4
    assert len(repository.query(course_id="c1")) == 3
    assert len(repository.query(student_id="s1")) == 3
    assert {r.event_id for r in repository.query(date_from="2024-03-01", date_to="2024-03-08")} == {"e1", "e2"}
    assert [r.event_id for r in repository.query(course_id="c1", date_from="2024-03-10")] == ["e3"]


def test_new_record_defaults():
    now = datetime(2024, 3, 9, 14, 30, 5, tzinfo=timezone.utc)

    record = new_record("e1", "c1", "s1", "present", recorded_by=None, now=now)

    assert len(record.id) == 32
    assert record.course_name == "Curso"
    assert record.student_name == "Estudiante"
    assert record.location == "Virtual"
    assert record.recorded_by == "Sistema"
    assert record.date == "2024-03-09"
    assert record.time == "14:30:05"


def test_compute_stats():
    records = [_record(student_id=f"s{i}", status=s) for i, s in enumerate(["present", "present", "late", "absent"])]

    assert compute_stats(records) == {
        "totalRecords": 4,
        "presentCount": 2,
        "lateCount": 1,
        "absentCount": 1,
        "attendanceRate": 75,
    }
    assert compute_stats([])["attendanceRate"] == 0


def test_attendance_rate_rounds_half_up():
    records = [_record(student_id="s0", status="present")]
    records += [_record(student_id=f"s{i}", status="absent") for i in range(1, 8)]

    # 1 of 8 is 12.5%
    assert compute_stats(records)["attendanceRate"] == 13


def test_ids_stay_distinct_for_pairs_that_join_to_the_same_text(repository):
    now = datetime(2024, 3, 9, 14, 30, 5, tzinfo=timezone.utc)
    first = new_record("a-b", "c1", "c", "present", recorded_by=None, now=now)
    second = new_record("a", "c1", "b-c", "present", recorded_by=None, now=now)

    assert first.id != second.id
    repository.upsert(first)
    repository.upsert(second)
    assert len(repository.query()) == 2
