"""
New-task detection: courseWork created within a look-back window is "new" and
its course roster gets a new_task notification.

The window is evaluated against wall-clock now on every call and nothing is
persisted, so consecutive runs with overlapping windows report the same item
again and runs spaced wider than the window miss items.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from aulux.plugins.classroom.classroom_client import ClassroomClient, collect_pages, format_due_date, parse_timestamp

from .dispatcher import NotificationDispatcher, Recipient
from .templates import NEW_TASK

DEFAULT_WINDOW = "1h"
WINDOWS = {
    "30m": timedelta(minutes=30),
    "1h": timedelta(hours=1),
    "2h": timedelta(hours=2),
    "24h": timedelta(hours=24),
}


def parse_window(value: Optional[str]) -> Tuple[str, timedelta]:
    """Known window label and its length; anything else falls back to 1h."""
    if value in WINDOWS:
        return value, WINDOWS[value]
    return DEFAULT_WINDOW, WINDOWS[DEFAULT_WINDOW]


def find_new_course_work(
    works: Iterable[Dict[str, Any]],
    window: timedelta,
    now: Optional[datetime] = None,
) -> List[Dict[str, Any]]:
    """Items whose creationTime >= now - window. Items without creationTime are never new."""
    now = now or datetime.now(timezone.utc)
    cutoff = now - window
    new = []
    for work in works:
        created = parse_timestamp(work.get("creationTime"))
        if created is not None and created >= cutoff:
            new.append(work)
    return new


def task_payload(work: Dict[str, Any], course: Dict[str, Any], teacher_name: str) -> Dict[str, Any]:
    created = parse_timestamp(work.get("creationTime"))
    return {
        "taskTitle": work.get("title") or "Nueva tarea",
        "courseName": course.get("name") or "Curso",
        "teacherName": teacher_name or "Profesor",
        "dueDate": format_due_date(work.get("dueDate")),
        "creationDate": created.isoformat() if created else None,
        "classroomLink": work.get("alternateLink"),
    }


def recipients_from_roster(
    students: Iterable[Dict[str, Any]],
    phone_book: Optional[Mapping[str, str]] = None,
) -> List[Recipient]:
    """Students with an email address; phones come from the phone book (keyed by email)."""
    phones = {str(k).strip().lower(): v for k, v in (phone_book or {}).items() if v}
    recipients = []
    for student in students:
        profile = student.get("profile") or {}
        email = (profile.get("emailAddress") or "").strip()
        if not email:
            continue
        recipients.append(
            Recipient(
                email=email,
                phone=phones.get(email.lower()),
                name=(profile.get("name") or {}).get("fullName") or "Estudiante",
                role="student",
            )
        )
    return recipients


class NewTaskNotifier:
    """Detects new courseWork in a user's courses and notifies each course's students."""

    def __init__(self, dispatcher: NotificationDispatcher, phone_book: Optional[Mapping[str, str]] = None):
        self.dispatcher = dispatcher
        self.phone_book = phone_book or {}
        self.logger = logging.getLogger(self.__class__.__name__)

    def run(
        self,
        client: ClassroomClient,
        window: timedelta,
        teacher_name: str,
        now: Optional[datetime] = None,
    ) -> Tuple[List[Dict[str, Any]], List[Dict[str, Any]]]:
        """Returns (one result per notified task, per-course errors). Listing courses failing raises."""
        now = now or datetime.now(timezone.utc)
        courses = collect_pages(client.list_courses, "courses")
        results: List[Dict[str, Any]] = []
        errors: List[Dict[str, Any]] = []

        for course in courses:
            course_id = course.get("id")
            try:
                works = collect_pages(
                    lambda page_token=None: client.list_course_work(course_id, page_token=page_token),
                    "courseWork",
                )
                new_tasks = find_new_course_work(works, window, now)
                if not new_tasks:
                    continue
                students = collect_pages(
                    lambda page_token=None: client.list_students(course_id, page_token=page_token),
                    "students",
                )
            except Exception as e:
                self.logger.warning(f"Skipping course {course_id} during new-task detection: {e}")
                errors.append({"courseId": course_id, "courseName": course.get("name"), "error": str(e)})
                continue

            recipients = recipients_from_roster(students, self.phone_book)
            for task in new_tasks:
                payload = task_payload(task, course, teacher_name)
                self.logger.info(
                    f"New task '{payload['taskTitle']}' in {payload['courseName']}: notifying {len(recipients)} students"
                )
                report = self.dispatcher.dispatch(recipients, NEW_TASK, payload)
                attempts = report["results"]
                results.append({
                    "courseId": course_id,
                    "courseName": course.get("name"),
                    "taskId": task.get("id"),
                    "taskTitle": payload["taskTitle"],
                    "recipients": len(recipients),
                    "emailsSent": sum(1 for a in attempts if a["type"] == "email" and a["success"]),
                    "whatsappSent": sum(1 for a in attempts if a["type"] == "whatsapp" and a["success"]),
                    "errors": report["failed"],
                })
        return results, errors
