"""
SQLAlchemy model for attendance: one row per (event, student).
"""
from sqlalchemy import Column, DateTime, String, Text, UniqueConstraint

from aulux.core.db import Base


class AttendanceRecordRow(Base):
    """Attendance of one student at one class event. (event_id, student_id) is unique."""
    __tablename__ = "attendance_records"
    __table_args__ = (UniqueConstraint("event_id", "student_id", name="uq_attendance_event_student"),)

    id = Column(String(255), primary_key=True)
    event_id = Column(String(255), nullable=False, index=True)
    course_id = Column(String(255), nullable=False, index=True)
    course_name = Column(String(255), nullable=True)
    student_id = Column(String(255), nullable=False, index=True)
    student_name = Column(String(255), nullable=True)
    student_email = Column(String(255), nullable=True)
    status = Column(String(16), nullable=False)  # present | absent | late
    date = Column(String(10), nullable=True, index=True)  # YYYY-MM-DD
    time = Column(String(8), nullable=True)
    location = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)
    timestamp = Column(DateTime(timezone=False), nullable=False)
    recorded_by = Column(String(255), nullable=True)
    updated_at = Column(DateTime(timezone=False), nullable=True)
    updated_by = Column(String(255), nullable=True)
