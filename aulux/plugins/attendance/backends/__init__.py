from .base import VALID_STATUSES, AttendanceRecord, AttendanceRepository
from .memory import MemoryAttendanceRepository
from .sql import SqlAttendanceRepository

__all__ = [
    "VALID_STATUSES",
    "AttendanceRecord",
    "AttendanceRepository",
    "MemoryAttendanceRepository",
    "SqlAttendanceRepository",
]

_BACKENDS = {
    "memory": MemoryAttendanceRepository,
    "sql": SqlAttendanceRepository,
}


def get_repository(backend_type: str, config: dict, logger=None):
    """Factory: return repository instance for given type."""
    cls = _BACKENDS.get((backend_type or "").lower())
    if not cls:
        return None
    return cls(config, logger=logger)
