from .classroom_client import ClassroomClient, collect_pages, format_due_date, parse_due_datetime, parse_timestamp

__all__ = ["ClassroomClient", "collect_pages", "format_due_date", "parse_due_datetime", "parse_timestamp"]
