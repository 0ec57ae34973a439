"""
Attendance record type and the repository interface every backend implements.
Backends return AttendanceRecord tuples; no dicts, no ORM rows.
"""
from abc import ABC, abstractmethod
from collections import namedtuple
from typing import List, Optional, Tuple

STATUS_PRESENT = "present"
STATUS_ABSENT = "absent"
STATUS_LATE = "late"
VALID_STATUSES = (STATUS_PRESENT, STATUS_ABSENT, STATUS_LATE)

AttendanceRecord = namedtuple(
    "AttendanceRecord",
    [
        "id",
        "event_id",
        "course_id",
        "course_name",
        "student_id",
        "student_name",
        "student_email",
        "status",       # present | absent | late
        "date",         # YYYY-MM-DD
        "time",         # HH:MM:SS
        "location",
        "notes",
        "timestamp",    # recorded at, naive UTC datetime
        "recorded_by",
        "updated_at",   # naive UTC datetime or None
        "updated_by",
    ],
    defaults=(None,) * 16,
)


class AttendanceRepository(ABC):
    """Attendance store keyed by (event_id, student_id)."""

    @abstractmethod
    def upsert(self, record: AttendanceRecord) -> Tuple[AttendanceRecord, bool]:
        """Insert, or overwrite the record with the same (event_id, student_id).

        The stored record keeps its original id. Returns (stored record, created).
        """

    @abstractmethod
    def get(self, record_id: str) -> Optional[AttendanceRecord]:
        pass

    @abstractmethod
    def update(
        self,
        record_id: str,
        status: Optional[str] = None,
        notes: Optional[str] = None,
        updated_by: Optional[str] = None,
    ) -> Optional[AttendanceRecord]:
        """Change status and/or notes. None when the id is unknown."""

    @abstractmethod
    def delete(self, record_id: str) -> Optional[AttendanceRecord]:
        """Remove and return the record. None when the id is unknown."""

    @abstractmethod
    def query(
        self,
        course_id: Optional[str] = None,
        event_id: Optional[str] = None,
        student_id: Optional[str] = None,
        date_from: Optional[str] = None,
        date_to: Optional[str] = None,
    ) -> List[AttendanceRecord]:
        """Records matching every given filter; dates compare as YYYY-MM-DD strings, inclusive."""


def matches(
    record: AttendanceRecord,
    course_id: Optional[str] = None,
    event_id: Optional[str] = None,
    student_id: Optional[str] = None,
    date_from: Optional[str] = None,
    date_to: Optional[str] = None,
) -> bool:
    if course_id and record.course_id != course_id:
        return False
    if event_id and record.event_id != event_id:
        return False
    if student_id and record.student_id != student_id:
        return False
    if date_from and (record.date or "") < date_from:
        return False
    if date_to and (record.date or "") > date_to:
        return False
    return True
