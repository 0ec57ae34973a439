"""
Per-plugin API for Calendar. Mounted at /api/calendar/.
- GET /events: upcoming events of the primary calendar plus the class-related subset.
- POST /events: create an event with email and popup reminders.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from aulux.core.errors import InvalidRequestError
from aulux.core.sessions import CurrentSession, session_dependency

from .calendar_client import DEFAULT_TIME_ZONE, build_event_body, filter_class_events

logger = logging.getLogger(__name__)


class CreateEventRequest(BaseModel):
    summary: Optional[str] = None
    description: Optional[str] = None
    startDateTime: Optional[str] = None
    endDateTime: Optional[str] = None
    attendees: List[str] = []


def _iso_utc(dt: datetime) -> str:
    return dt.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def get_router(aulux_app) -> Optional[APIRouter]:
    """Return router for this plugin; mounted with prefix /api/calendar."""
    router = APIRouter(tags=["Calendar"])
    require_session = session_dependency(aulux_app.sessions)

    @router.get("/events")
    def list_events(
        timeMin: Optional[str] = None,
        timeMax: Optional[str] = None,
        debug: Optional[str] = None,
        current: CurrentSession = Depends(require_session),
    ) -> Dict[str, Any]:
        """Events in [timeMin, timeMax); defaults to the next window_days days."""
        cal_config = aulux_app.config.section("calendar")
        now = datetime.now(timezone.utc)
        time_min = timeMin or _iso_utc(now)
        time_max = timeMax or _iso_utc(now + timedelta(days=int(cal_config.get("window_days") or 30)))

        data = aulux_app.calendar_client(current).list_events(time_min, time_max)
        if debug == "1":
            logger.debug(f"Calendar events for {current.email}: {data}")

        items = data.get("items") or []
        return {
            "events": items,
            "classEvents": filter_class_events(items, cal_config.get("class_keywords") or []),
            "nextPageToken": data.get("nextPageToken"),
            "timeMin": time_min,
            "timeMax": time_max,
        }

    @router.post("/events")
    def create_event(
        body: CreateEventRequest,
        current: CurrentSession = Depends(require_session),
    ) -> Dict[str, Any]:
        if not body.summary:
            raise InvalidRequestError("summary is required")
        if not body.startDateTime or not body.endDateTime:
            raise InvalidRequestError("startDateTime and endDateTime are required")

        cal_config = aulux_app.config.section("calendar")
        event = build_event_body(
            body.summary,
            body.startDateTime,
            body.endDateTime,
            description=body.description,
            attendees=body.attendees,
            time_zone=cal_config.get("time_zone") or DEFAULT_TIME_ZONE,
        )
        created = aulux_app.calendar_client(current).create_event(event)
        logger.info(f"Calendar event created by {current.email}: {created.get('id')}")
        return {"success": True, "event": created}

    return router
