"""
Per-plugin API for Notifications. Mounted at /api/notifications/.
- /send, /auto, /trigger, /history: signed-in users.
- /detect-new, /cron: external scheduler, authenticated with the cron secret as a bearer token.
"""
import logging
import secrets
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import BaseModel

from aulux.core.errors import InvalidRequestError, NotFoundError
from aulux.core.roles import Role
from aulux.core.sessions import CurrentSession, session_dependency

from .detection import NewTaskNotifier, parse_window
from .dispatcher import Recipient
from .service import recent_attempts

logger = logging.getLogger(__name__)


class RecipientIn(BaseModel):
    email: Optional[str] = None
    phone: Optional[str] = None
    name: Optional[str] = None
    role: Optional[str] = None


class SendRequest(BaseModel):
    recipients: List[RecipientIn] = []
    notificationType: Optional[str] = None
    data: Dict[str, Any] = {}


class TriggerRequest(BaseModel):
    action: str = "check_new_tasks"


class DetectNewRequest(BaseModel):
    teacherEmail: Optional[str] = None
    checkLast: Optional[str] = None


class CronRequest(BaseModel):
    force: bool = False


def get_router(aulux_app) -> Optional[APIRouter]:
    """Return router for this plugin; mounted with prefix /api/notifications."""
    router = APIRouter(tags=["Notifications"])
    require_session = session_dependency(aulux_app.sessions)

    def notifications_config() -> Dict[str, Any]:
        return aulux_app.config.section("notifications")

    def notifier() -> NewTaskNotifier:
        return NewTaskNotifier(aulux_app.dispatcher, phone_book=notifications_config().get("phone_book") or {})

    def require_cron_secret(request: Request) -> None:
        """Bearer <cron_secret>. With no secret configured every call is rejected."""
        secret = notifications_config().get("cron_secret") or ""
        header = request.headers.get("authorization") or ""
        if not secret or not secrets.compare_digest(header.encode(), f"Bearer {secret}".encode()):
            logger.warning(f"Rejected unauthorized call to {request.url.path}")
            raise HTTPException(status_code=401, detail="Unauthorized")

    def detect_for(current: CurrentSession, check_last: Optional[str], teacher_name: str) -> Dict[str, Any]:
        label, window = parse_window(check_last)
        results, errors = notifier().run(aulux_app.classroom_client(current), window, teacher_name)
        return {"timeWindow": label, "results": results, "errors": errors}

    def auto_notify(current: CurrentSession) -> Dict[str, Any]:
        run = detect_for(current, "24h", current.name or "Profesor")
        processed = len(run["results"])
        return {
            "success": True,
            "processed": processed,
            "results": run["results"],
            "errors": run["errors"],
            "message": f"Processed {processed} new tasks",
        }

    def detect_new(teacher_email: Optional[str], check_last: Optional[str]) -> Dict[str, Any]:
        if not teacher_email:
            raise InvalidRequestError("teacherEmail is required")
        current = aulux_app.sessions.for_email(teacher_email.strip().lower())
        if current is None:
            raise NotFoundError(f"No stored credentials for {teacher_email}")
        run = detect_for(current, check_last, current.name or teacher_email.split("@")[0])
        processed = len(run["results"])
        return {
            "success": True,
            "teacherEmail": teacher_email,
            "timeWindow": run["timeWindow"],
            "processed": processed,
            "results": run["results"],
            "errors": run["errors"],
            "message": f"Processed {processed} new tasks for {teacher_email}",
        }

    def cron_pass() -> Dict[str, Any]:
        """Detection for every professor and coordinator, using their stored sessions."""
        provider = aulux_app.role_provider
        teachers: List[str] = []
        for email in provider.emails_with_role(Role.PROFESSOR) + provider.emails_with_role(Role.COORDINATOR):
            if email not in teachers:
                teachers.append(email)
        if not teachers:
            logger.warning("Cron pass skipped: no professor or coordinator emails configured")
            return {"success": False, "message": "No teachers configured"}

        check_last = notifications_config().get("check_last") or "1h"
        results = []
        for email in teachers:
            try:
                current = aulux_app.sessions.for_email(email)
                if current is None:
                    results.append({"teacherEmail": email, "success": False, "error": "no stored credentials"})
                    continue
                run = detect_for(current, check_last, current.name or email.split("@")[0])
            except Exception as e:
                logger.error(f"Cron detection failed for {email}: {e}")
                results.append({"teacherEmail": email, "success": False, "error": str(e)})
                continue
            results.append({
                "teacherEmail": email,
                "success": True,
                "tasksFound": len(run["results"]),
                "details": run["results"],
                "errors": run["errors"],
            })

        successful = sum(1 for r in results if r["success"])
        total_tasks = sum(r.get("tasksFound", 0) for r in results)
        logger.info(f"Cron pass done: {successful}/{len(teachers)} teachers checked, {total_tasks} new tasks")
        return {
            "success": True,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "professorsChecked": len(teachers),
            "successfulChecks": successful,
            "totalNewTasks": total_tasks,
            "results": results,
        }

    @router.post("/send")
    def send(body: SendRequest, current: CurrentSession = Depends(require_session)) -> Dict[str, Any]:
        """Send one notification type to an explicit recipient list."""
        recipients = [Recipient(email=r.email, phone=r.phone, name=r.name, role=r.role or "student") for r in body.recipients]
        report = aulux_app.dispatcher.dispatch(recipients, body.notificationType or "", body.data)
        logger.info(f"{current.email} sent {body.notificationType}: {report['sent']} sent, {report['failed']} failed")
        return {"success": True, **report}

    @router.post("/auto")
    def auto(current: CurrentSession = Depends(require_session)) -> Dict[str, Any]:
        """Notify students of tasks created in the caller's courses in the last 24 hours."""
        return auto_notify(current)

    @router.post("/trigger")
    def trigger(body: Optional[TriggerRequest] = None, current: CurrentSession = Depends(require_session)) -> Dict[str, Any]:
        action = body.action if body else "check_new_tasks"
        if action != "check_new_tasks":
            return {"success": False, "message": f"Unknown action '{action}'"}
        result = auto_notify(current)
        return {
            "success": True,
            "message": f"Notifications sent: {result['processed']} tasks processed",
            "details": result,
        }

    @router.post("/detect-new", dependencies=[Depends(require_cron_secret)])
    def detect_new_post(body: DetectNewRequest) -> Dict[str, Any]:
        return detect_new(body.teacherEmail, body.checkLast)

    @router.get("/detect-new", dependencies=[Depends(require_cron_secret)])
    def detect_new_get(teacherEmail: Optional[str] = None, checkLast: Optional[str] = None) -> Dict[str, Any]:
        return detect_new(teacherEmail, checkLast)

    @router.get("/cron", dependencies=[Depends(require_cron_secret)])
    def cron() -> Dict[str, Any]:
        """Entry point for the external scheduler."""
        return cron_pass()

    @router.post("/cron", dependencies=[Depends(require_cron_secret)])
    def cron_manual(body: Optional[CronRequest] = None) -> Dict[str, Any]:
        if not body or not body.force:
            return {"message": 'Use GET for the scheduled run or POST {"force": true} to run it now'}
        return cron_pass()

    @router.get("/history")
    def history(
        limit: int = Query(default=100, ge=1, le=1000),
        current: CurrentSession = Depends(require_session),
    ) -> Dict[str, Any]:
        rows = recent_attempts(limit=limit)
        return {
            "history": [
                {
                    "id": r.id,
                    "createdAt": r.created_at.isoformat() if r.created_at else None,
                    "notificationType": r.notification_type,
                    "channel": r.channel,
                    "recipient": r.recipient,
                    "success": r.success,
                    "providerId": r.provider_id,
                    "error": r.error,
                    "code": r.code,
                }
                for r in rows
            ]
        }

    return router
