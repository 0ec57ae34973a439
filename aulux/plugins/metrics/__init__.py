from .aggregator import ClassroomSnapshot, classify_submission, coordinator_report, is_at_risk, progress_report, student_view
from .fetcher import ClassroomFetcher

__all__ = [
    "ClassroomSnapshot",
    "ClassroomFetcher",
    "classify_submission",
    "coordinator_report",
    "is_at_risk",
    "progress_report",
    "student_view",
]
