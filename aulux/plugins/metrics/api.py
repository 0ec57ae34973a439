"""
Per-plugin API for Metrics. Mounted at /api/metrics/.
- /coordinator: institution-wide report (coordinador).
- /progress: course and student progress (profesor, coordinador).
- /student: the caller's own assignments (any role).
Each request gathers a fresh snapshot; nothing is cached.
"""
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends

from aulux.core.roles import Role
from aulux.core.sessions import CurrentSession, role_dependency, session_dependency

from .aggregator import coordinator_report, progress_report, student_view
from .fetcher import ClassroomFetcher


def get_router(aulux_app) -> Optional[APIRouter]:
    """Return router for this plugin; mounted with prefix /api/metrics."""
    router = APIRouter(tags=["Metrics"])
    require_session = session_dependency(aulux_app.sessions)
    require_coordinator = role_dependency(aulux_app.sessions, Role.COORDINATOR)
    require_staff = role_dependency(aulux_app.sessions, *Role.STAFF)

    def _fetcher(current: CurrentSession) -> ClassroomFetcher:
        google_config = aulux_app.config.section("google")
        return ClassroomFetcher(aulux_app.classroom_client(current), max_workers=google_config.get("max_workers"))

    @router.get("/coordinator")
    def coordinator(current: CurrentSession = Depends(require_coordinator)) -> Dict[str, Any]:
        return coordinator_report(_fetcher(current).snapshot())

    @router.get("/progress")
    def progress(current: CurrentSession = Depends(require_staff)) -> Dict[str, Any]:
        return progress_report(_fetcher(current).snapshot())

    @router.get("/student")
    def student(current: CurrentSession = Depends(require_session)) -> Dict[str, Any]:
        snapshot = _fetcher(current).snapshot(include_rosters=False, user_id="me")
        return student_view(snapshot)

    return router
