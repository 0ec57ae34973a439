"""
Google Calendar client for one signed-in user (primary calendar).
"""
from typing import Any, Dict, Iterable, List, Optional

from aulux.core.google_api import GoogleApiClient

DEFAULT_TIME_ZONE = "America/Argentina/Buenos_Aires"
MAX_RESULTS = 100

# email one day before, popup 30 minutes before
DEFAULT_REMINDERS = [
    {"method": "email", "minutes": 24 * 60},
    {"method": "popup", "minutes": 30},
]


def filter_class_events(events: Iterable[Dict[str, Any]], keywords: Iterable[str]) -> List[Dict[str, Any]]:
    """Events whose summary or description mentions one of the keywords (case-insensitive)."""
    keys = [k.lower() for k in keywords if k]
    matched = []
    for event in events:
        summary = (event.get("summary") or "").lower()
        description = (event.get("description") or "").lower()
        if any(k in summary or k in description for k in keys):
            matched.append(event)
    return matched


def build_event_body(
    summary: str,
    start_date_time: str,
    end_date_time: str,
    description: Optional[str] = None,
    attendees: Optional[Iterable[str]] = None,
    time_zone: str = DEFAULT_TIME_ZONE,
) -> Dict[str, Any]:
    return {
        "summary": summary,
        "description": description,
        "start": {"dateTime": start_date_time, "timeZone": time_zone},
        "end": {"dateTime": end_date_time, "timeZone": time_zone},
        "attendees": [{"email": email} for email in (attendees or [])],
        "reminders": {"useDefault": False, "overrides": list(DEFAULT_REMINDERS)},
    }


class CalendarClient(GoogleApiClient):
    """Calendar v3 on behalf of one user's OAuth credentials."""

    api_name = "calendar"
    api_version = "v3"
    service_label = "Calendar"

    calendar_id = "primary"

    def list_events(self, time_min: str, time_max: str, page_token: Optional[str] = None) -> Dict[str, Any]:
        """Single (expanded) events in [time_min, time_max), ordered by start time."""
        params: Dict[str, Any] = {
            "calendarId": self.calendar_id,
            "timeMin": time_min,
            "timeMax": time_max,
            "singleEvents": True,
            "orderBy": "startTime",
            "maxResults": MAX_RESULTS,
        }
        if page_token:
            params["pageToken"] = page_token
        return self._execute(self._service.events().list(**params))

    def create_event(self, body: Dict[str, Any]) -> Dict[str, Any]:
        return self._execute(self._service.events().insert(calendarId=self.calendar_id, body=body))
