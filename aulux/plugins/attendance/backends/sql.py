"""
SQL attendance store on the shared SQLAlchemy database.
The unique key on (event_id, student_id) makes concurrent upserts of the same pair converge.
"""
import logging
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from aulux.core.db import session_scope
from aulux.plugins.attendance.models import AttendanceRecordRow

from .base import AttendanceRecord, AttendanceRepository

_FIELDS = AttendanceRecord._fields


def _to_record(row: AttendanceRecordRow) -> AttendanceRecord:
    return AttendanceRecord(**{f: getattr(row, f) for f in _FIELDS})


class SqlAttendanceRepository(AttendanceRepository):
    def __init__(self, config: Optional[dict] = None, logger: Optional[logging.Logger] = None):
        self.config = config or {}
        self.logger = logger or logging.getLogger(self.__class__.__name__)

    def _upsert_once(self, record: AttendanceRecord) -> Tuple[AttendanceRecord, bool]:
        with session_scope() as session:
            row = session.execute(
                select(AttendanceRecordRow).where(
                    AttendanceRecordRow.event_id == record.event_id,
                    AttendanceRecordRow.student_id == record.student_id,
                )
            ).scalar_one_or_none()
            if row is None:
                row = AttendanceRecordRow(**record._asdict())
                session.add(row)
                session.flush()
                return _to_record(row), True
            for field in _FIELDS:
                if field != "id":
                    setattr(row, field, getattr(record, field))
            row.updated_at = datetime.now(timezone.utc).replace(tzinfo=None)
            row.updated_by = record.recorded_by
            session.flush()
            return _to_record(row), False

    def upsert(self, record: AttendanceRecord) -> Tuple[AttendanceRecord, bool]:
        try:
            return self._upsert_once(record)
        except IntegrityError:
            # Lost an insert race on the same key; the row exists now
            self.logger.debug(f"Concurrent insert for {record.event_id}/{record.student_id}, updating")
            return self._upsert_once(record)

    def get(self, record_id: str) -> Optional[AttendanceRecord]:
        with session_scope() as session:
            row = session.get(AttendanceRecordRow, record_id)
            return _to_record(row) if row else None

    def update(
        self,
        record_id: str,
        status: Optional[str] = None,
        notes: Optional[str] = None,
        updated_by: Optional[str] = None,
    ) -> Optional[AttendanceRecord]:
        with session_scope() as session:
            row = session.get(AttendanceRecordRow, record_id)
            if row is None:
                return None
            if status:
                row.status = status
            if notes is not None:
                row.notes = notes
            row.updated_at = datetime.now(timezone.utc).replace(tzinfo=None)
            row.updated_by = updated_by
            session.flush()
            return _to_record(row)

    def delete(self, record_id: str) -> Optional[AttendanceRecord]:
        with session_scope() as session:
            row = session.get(AttendanceRecordRow, record_id)
            if row is None:
                return None
            record = _to_record(row)
            session.delete(row)
            return record

    def query(
        self,
        course_id: Optional[str] = None,
        event_id: Optional[str] = None,
        student_id: Optional[str] = None,
        date_from: Optional[str] = None,
        date_to: Optional[str] = None,
    ) -> List[AttendanceRecord]:
        stmt = select(AttendanceRecordRow)
        if course_id:
            stmt = stmt.where(AttendanceRecordRow.course_id == course_id)
        if event_id:
            stmt = stmt.where(AttendanceRecordRow.event_id == event_id)
        if student_id:
            stmt = stmt.where(AttendanceRecordRow.student_id == student_id)
        if date_from:
            stmt = stmt.where(AttendanceRecordRow.date >= date_from)
        if date_to:
            stmt = stmt.where(AttendanceRecordRow.date <= date_to)
        stmt = stmt.order_by(AttendanceRecordRow.timestamp)
        with session_scope() as session:
            return [_to_record(r) for r in session.execute(stmt).scalars().all()]
