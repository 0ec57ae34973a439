from .calendar_client import CalendarClient, build_event_body, filter_class_events

__all__ = ["CalendarClient", "build_event_body", "filter_class_events"]
