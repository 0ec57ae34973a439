"""
Per-plugin API for Classroom. Mounted at /api/classroom/.
Thin proxy over the Classroom API using the caller's session credentials.
"""
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query

from aulux.core.sessions import CurrentSession, session_dependency


def _wrap(data: Dict[str, Any], debug: Optional[str]) -> Dict[str, Any]:
    if debug == "1":
        return {"debug": True, "raw": data}
    return data


def get_router(aulux_app) -> Optional[APIRouter]:
    """Return router for this plugin; mounted with prefix /api/classroom."""
    router = APIRouter(tags=["Classroom"])
    require_session = session_dependency(aulux_app.sessions)

    @router.get("/courses")
    def list_courses(
        pageSize: Optional[int] = Query(default=None, ge=1, le=1000),
        pageToken: Optional[str] = None,
        debug: Optional[str] = None,
        current: CurrentSession = Depends(require_session),
    ) -> Dict[str, Any]:
        """Courses visible to the signed-in user."""
        client = aulux_app.classroom_client(current)
        return _wrap(client.list_courses(page_size=pageSize, page_token=pageToken), debug)

    @router.get("/courses/{course_id}/courseWork")
    def list_course_work(
        course_id: str,
        pageSize: Optional[int] = Query(default=None, ge=1, le=1000),
        pageToken: Optional[str] = None,
        debug: Optional[str] = None,
        current: CurrentSession = Depends(require_session),
    ) -> Dict[str, Any]:
        client = aulux_app.classroom_client(current)
        return _wrap(client.list_course_work(course_id, page_size=pageSize, page_token=pageToken), debug)

    @router.get("/courses/{course_id}/students")
    def list_students(
        course_id: str,
        pageSize: Optional[int] = Query(default=None, ge=1, le=1000),
        pageToken: Optional[str] = None,
        debug: Optional[str] = None,
        current: CurrentSession = Depends(require_session),
    ) -> Dict[str, Any]:
        client = aulux_app.classroom_client(current)
        return _wrap(client.list_students(course_id, page_size=pageSize, page_token=pageToken), debug)

    @router.get("/courses/{course_id}/courseWork/{course_work_id}/studentSubmissions")
    def list_submissions(
        course_id: str,
        course_work_id: str,
        userId: Optional[str] = None,
        pageSize: Optional[int] = Query(default=None, ge=1, le=1000),
        pageToken: Optional[str] = None,
        debug: Optional[str] = None,
        current: CurrentSession = Depends(require_session),
    ) -> Dict[str, Any]:
        client = aulux_app.classroom_client(current)
        data = client.list_submissions(
            course_id,
            course_work_id,
            user_id=userId,
            page_size=pageSize,
            page_token=pageToken,
        )
        return _wrap(data, debug)

    return router
