from .backends import AttendanceRecord, AttendanceRepository, get_repository
from .service import compute_stats, new_record

__all__ = ["AttendanceRecord", "AttendanceRepository", "get_repository", "compute_stats", "new_record"]
