"""
Attendance service: build records from request input and compute summary stats.
"""
import uuid
from datetime import datetime, timezone
from typing import Dict, Iterable, Optional

from .backends.base import STATUS_ABSENT, STATUS_LATE, STATUS_PRESENT, AttendanceRecord


def new_record(
    event_id: str,
    course_id: str,
    student_id: str,
    status: str,
    recorded_by: Optional[str],
    course_name: Optional[str] = None,
    student_name: Optional[str] = None,
    student_email: Optional[str] = None,
    date: Optional[str] = None,
    time: Optional[str] = None,
    location: Optional[str] = None,
    notes: Optional[str] = None,
    now: Optional[datetime] = None,
) -> AttendanceRecord:
    """A fresh record with display defaults filled in. Date/time default to now (UTC)."""
    now = now or datetime.now(timezone.utc)
    return AttendanceRecord(
        id=uuid.uuid4().hex,
        event_id=event_id,
        course_id=course_id,
        course_name=course_name or "Curso",
        student_id=student_id,
        student_name=student_name or "Estudiante",
        student_email=student_email or "",
        status=status,
        date=date or now.strftime("%Y-%m-%d"),
        time=time or now.strftime("%H:%M:%S"),
        location=location or "Virtual",
        notes=notes or "",
        timestamp=now.astimezone(timezone.utc).replace(tzinfo=None),
        recorded_by=recorded_by or "Sistema",
    )


def compute_stats(records: Iterable[AttendanceRecord]) -> Dict[str, int]:
    """Counts per status and attendance rate = round(100 * (present + late) / total), 0 when empty."""
    records = list(records)
    total = len(records)
    present = sum(1 for r in records if r.status == STATUS_PRESENT)
    late = sum(1 for r in records if r.status == STATUS_LATE)
    absent = sum(1 for r in records if r.status == STATUS_ABSENT)
    # half-up rounding, not banker's
    rate = int(100 * (present + late) / total + 0.5) if total else 0
    return {
        "totalRecords": total,
        "presentCount": present,
        "lateCount": late,
        "absentCount": absent,
        "attendanceRate": rate,
    }
