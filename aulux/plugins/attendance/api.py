"""
Per-plugin API for Attendance. Mounted at /api/attendance/.
- GET: filtered records plus stats.
- POST: record (upsert on eventId + studentId).
- PUT: change status/notes of a record.
- DELETE ?recordId=: remove a record.
"""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from aulux.core.errors import InvalidRequestError, NotFoundError
from aulux.core.sessions import CurrentSession, session_dependency

from .backends.base import VALID_STATUSES, AttendanceRecord
from .service import compute_stats, new_record

logger = logging.getLogger(__name__)


class AttendanceRecordResponse(BaseModel):
    """Pydantic view of AttendanceRecord, camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    event_id: str
    course_id: str
    course_name: Optional[str] = None
    student_id: str
    student_name: Optional[str] = None
    student_email: Optional[str] = None
    status: str
    date: Optional[str] = None
    time: Optional[str] = None
    location: Optional[str] = None
    notes: Optional[str] = None
    timestamp: Optional[datetime] = None
    recorded_by: Optional[str] = None
    updated_at: Optional[datetime] = None
    updated_by: Optional[str] = None

    @classmethod
    def from_record(cls, record: AttendanceRecord) -> "AttendanceRecordResponse":
        return cls(**record._asdict())


class AttendanceStats(BaseModel):
    totalRecords: int
    presentCount: int
    lateCount: int
    absentCount: int
    attendanceRate: int


class AttendanceListResponse(BaseModel):
    records: List[AttendanceRecordResponse]
    stats: AttendanceStats
    filters: Dict[str, Optional[str]]


class AttendanceWriteResponse(BaseModel):
    success: bool
    record: AttendanceRecordResponse
    message: str


class AttendanceDeleteResponse(BaseModel):
    success: bool
    deletedRecord: AttendanceRecordResponse
    message: str


class RecordAttendanceRequest(BaseModel):
    eventId: Optional[str] = None
    courseId: Optional[str] = None
    courseName: Optional[str] = None
    studentId: Optional[str] = None
    studentName: Optional[str] = None
    studentEmail: Optional[str] = None
    status: Optional[str] = None
    date: Optional[str] = None
    time: Optional[str] = None
    location: Optional[str] = None
    notes: Optional[str] = None


class UpdateAttendanceRequest(BaseModel):
    recordId: Optional[str] = None
    status: Optional[str] = None
    notes: Optional[str] = None


def _check_status(status: Optional[str]) -> None:
    if status not in VALID_STATUSES:
        raise InvalidRequestError(f"status must be one of: {', '.join(VALID_STATUSES)}")


def get_router(aulux_app) -> Optional[APIRouter]:
    """Return router for this plugin; mounted with prefix /api/attendance."""
    router = APIRouter(tags=["Attendance"])
    require_session = session_dependency(aulux_app.sessions)

    @router.get("", response_model=AttendanceListResponse, response_model_by_alias=True)
    def list_attendance(
        courseId: Optional[str] = None,
        eventId: Optional[str] = None,
        studentId: Optional[str] = None,
        dateFrom: Optional[str] = None,
        dateTo: Optional[str] = None,
        current: CurrentSession = Depends(require_session),
    ) -> AttendanceListResponse:
        records = aulux_app.attendance.query(
            course_id=courseId,
            event_id=eventId,
            student_id=studentId,
            date_from=dateFrom,
            date_to=dateTo,
        )
        return AttendanceListResponse(
            records=[AttendanceRecordResponse.from_record(r) for r in records],
            stats=AttendanceStats(**compute_stats(records)),
            filters={
                "courseId": courseId,
                "eventId": eventId,
                "studentId": studentId,
                "dateFrom": dateFrom,
                "dateTo": dateTo,
            },
        )

    @router.post("", response_model=AttendanceWriteResponse, response_model_by_alias=True)
    def record_attendance(
        body: RecordAttendanceRequest,
        current: CurrentSession = Depends(require_session),
    ) -> AttendanceWriteResponse:
        """Record one student's attendance; a second post for the same event and student overwrites it."""
        if not (body.eventId and body.courseId and body.studentId and body.status):
            raise InvalidRequestError("Missing required fields: eventId, courseId, studentId, status")
        _check_status(body.status)

        record = new_record(
            event_id=body.eventId,
            course_id=body.courseId,
            student_id=body.studentId,
            status=body.status,
            recorded_by=current.email,
            course_name=body.courseName,
            student_name=body.studentName,
            student_email=body.studentEmail,
            date=body.date,
            time=body.time,
            location=body.location,
            notes=body.notes,
        )
        stored, created = aulux_app.attendance.upsert(record)
        logger.info(
            f"Attendance {'recorded' if created else 'updated'}: event={stored.event_id} "
            f"student={stored.student_id} status={stored.status} by={current.email}"
        )
        return AttendanceWriteResponse(
            success=True,
            record=AttendanceRecordResponse.from_record(stored),
            message="Attendance recorded" if created else "Attendance updated",
        )

    @router.put("", response_model=AttendanceWriteResponse, response_model_by_alias=True)
    def update_attendance(
        body: UpdateAttendanceRequest,
        current: CurrentSession = Depends(require_session),
    ) -> AttendanceWriteResponse:
        if not body.recordId:
            raise InvalidRequestError("recordId is required")
        if body.status:
            _check_status(body.status)
        stored = aulux_app.attendance.update(
            body.recordId,
            status=body.status,
            notes=body.notes,
            updated_by=current.email,
        )
        if stored is None:
            raise NotFoundError("Attendance record not found")
        return AttendanceWriteResponse(
            success=True,
            record=AttendanceRecordResponse.from_record(stored),
            message="Attendance updated",
        )

    @router.delete("", response_model=AttendanceDeleteResponse, response_model_by_alias=True)
    def delete_attendance(
        recordId: Optional[str] = None,
        current: CurrentSession = Depends(require_session),
    ) -> Any:
        if not recordId:
            raise InvalidRequestError("recordId is required")
        deleted = aulux_app.attendance.delete(recordId)
        if deleted is None:
            raise NotFoundError("Attendance record not found")
        logger.info(f"Attendance record {recordId} deleted by {current.email}")
        return AttendanceDeleteResponse(
            success=True,
            deletedRecord=AttendanceRecordResponse.from_record(deleted),
            message="Attendance record deleted",
        )

    return router
