"""
Process-local attendance store. Lost on restart; one lock guards every operation.
"""
import logging
import threading
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

from .base import AttendanceRecord, AttendanceRepository, matches


class MemoryAttendanceRepository(AttendanceRepository):
    def __init__(self, config: Optional[dict] = None, logger: Optional[logging.Logger] = None):
        self.config = config or {}
        self.logger = logger or logging.getLogger(self.__class__.__name__)
        self._lock = threading.Lock()
        self._by_key: Dict[Tuple[str, str], AttendanceRecord] = {}

    def _find(self, record_id: str) -> Optional[Tuple[str, str]]:
        for key, rec in self._by_key.items():
            if rec.id == record_id:
                return key
        return None

    def upsert(self, record: AttendanceRecord) -> Tuple[AttendanceRecord, bool]:
        key = (record.event_id, record.student_id)
        with self._lock:
            existing = self._by_key.get(key)
            if existing is None:
                self._by_key[key] = record
                return record, True
            stored = record._replace(
                id=existing.id,
                updated_at=datetime.now(timezone.utc).replace(tzinfo=None),
                updated_by=record.recorded_by,
            )
            self._by_key[key] = stored
            return stored, False

    def get(self, record_id: str) -> Optional[AttendanceRecord]:
        with self._lock:
            key = self._find(record_id)
            return self._by_key[key] if key else None

    def update(
        self,
        record_id: str,
        status: Optional[str] = None,
        notes: Optional[str] = None,
        updated_by: Optional[str] = None,
    ) -> Optional[AttendanceRecord]:
        with self._lock:
            key = self._find(record_id)
            if key is None:
                return None
            current = self._by_key[key]
            stored = current._replace(
                status=status or current.status,
                notes=notes if notes is not None else current.notes,
                updated_at=datetime.now(timezone.utc).replace(tzinfo=None),
                updated_by=updated_by,
            )
            self._by_key[key] = stored
            return stored

    def delete(self, record_id: str) -> Optional[AttendanceRecord]:
        with self._lock:
            key = self._find(record_id)
            if key is None:
                return None
            return self._by_key.pop(key)

    def query(
        self,
        course_id: Optional[str] = None,
        event_id: Optional[str] = None,
        student_id: Optional[str] = None,
        date_from: Optional[str] = None,
        date_to: Optional[str] = None,
    ) -> List[AttendanceRecord]:
        with self._lock:
            records = list(self._by_key.values())
        return [
            r for r in records
            if matches(r, course_id, event_id, student_id, date_from, date_to)
        ]
