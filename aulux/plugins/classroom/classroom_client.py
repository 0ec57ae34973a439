"""
Google Classroom API client for one signed-in user.
Lists courses, rosters, coursework and student submissions (one page per call;
collect_pages follows nextPageToken for callers that need everything).
"""
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from dateutil import parser as dateutil_parser

from aulux.core.google_api import GoogleApiClient

DEFAULT_PAGE_SIZE = 50


def parse_due_datetime(due_date: Optional[Dict], due_time: Optional[Dict] = None) -> Optional[datetime]:
    """Convert Classroom dueDate/dueTime (UTC) to an aware datetime.

    Without a dueTime the due instant is the start of that day (00:00 UTC).
    """
    if not due_date:
        return None
    try:
        y = due_date.get("year")
        m = due_date.get("month")
        d = due_date.get("day")
        if y is None or m is None or d is None:
            return None
        due_time = due_time or {}
        return datetime(
            y, m, d,
            due_time.get("hours", 0) or 0,
            due_time.get("minutes", 0) or 0,
            due_time.get("seconds", 0) or 0,
            tzinfo=timezone.utc,
        )
    except (TypeError, ValueError):
        return None


def format_due_date(due_date: Optional[Dict]) -> Optional[str]:
    """Classroom dueDate triple as YYYY-MM-DD."""
    if not due_date or not all(due_date.get(k) for k in ("year", "month", "day")):
        return None
    return f"{due_date['year']:04d}-{due_date['month']:02d}-{due_date['day']:02d}"


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """RFC 3339 timestamp (updateTime, creationTime) to an aware datetime."""
    if not value:
        return None
    try:
        dt = dateutil_parser.isoparse(value)
    except (TypeError, ValueError):
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


class ClassroomClient(GoogleApiClient):
    """Classroom v1 on behalf of one user's OAuth credentials."""

    api_name = "classroom"
    api_version = "v1"
    service_label = "Classroom"

    def __init__(
        self,
        credentials: Any,
        timeout: Optional[float] = 20,
        page_size: int = DEFAULT_PAGE_SIZE,
        logger: Optional[logging.Logger] = None,
    ):
        super().__init__(credentials, timeout=timeout, logger=logger)
        self.page_size = page_size

    def _page(self, page_size: Optional[int], page_token: Optional[str]) -> Dict[str, Any]:
        params: Dict[str, Any] = {"pageSize": page_size or self.page_size}
        if page_token:
            params["pageToken"] = page_token
        return params

    def list_courses(self, page_size: Optional[int] = None, page_token: Optional[str] = None) -> Dict[str, Any]:
        return self._execute(self._service.courses().list(**self._page(page_size, page_token)))

    def list_course_work(
        self,
        course_id: str,
        page_size: Optional[int] = None,
        page_token: Optional[str] = None,
    ) -> Dict[str, Any]:
        return self._execute(
            self._service.courses()
            .courseWork()
            .list(courseId=course_id, **self._page(page_size, page_token))
        )

    def list_students(
        self,
        course_id: str,
        page_size: Optional[int] = None,
        page_token: Optional[str] = None,
    ) -> Dict[str, Any]:
        return self._execute(
            self._service.courses()
            .students()
            .list(courseId=course_id, **self._page(page_size, page_token))
        )

    def list_submissions(
        self,
        course_id: str,
        course_work_id: str,
        user_id: Optional[str] = None,
        page_size: Optional[int] = None,
        page_token: Optional[str] = None,
    ) -> Dict[str, Any]:
        params = self._page(page_size, page_token)
        if user_id:
            params["userId"] = user_id
        return self._execute(
            self._service.courses()
            .courseWork()
            .studentSubmissions()
            .list(courseId=course_id, courseWorkId=course_work_id, **params)
        )


# Upper bound on pages followed per listing
MAX_PAGES = 20


def collect_pages(fetch_page: Callable[..., Dict[str, Any]], key: str) -> List[Dict[str, Any]]:
    """Follow nextPageToken and concatenate the items under key."""
    items: List[Dict[str, Any]] = []
    token = None
    for _ in range(MAX_PAGES):
        data = fetch_page(page_token=token)
        items.extend(data.get(key) or [])
        token = data.get("nextPageToken")
        if not token:
            break
    return items
