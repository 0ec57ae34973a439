"""
Metrics computed from a Classroom snapshot (courses, rosters, courseWork, submissions).

Everything here is pure: no I/O, no caching. The fetcher gathers the snapshot,
these functions turn it into the coordinator, progress and student reports.
"""
import math
from collections import namedtuple
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional

from aulux.plugins.classroom.classroom_client import format_due_date, parse_due_datetime, parse_timestamp

ON_TIME = "on_time"
LATE = "late"
MISSING = "missing"

STATE_TURNED_IN = "TURNED_IN"
STATE_RETURNED = "RETURNED"
DELIVERED_STATES = (STATE_TURNED_IN, STATE_RETURNED)

PENDING_RISK_THRESHOLD = 3
LATE_RISK_THRESHOLD = 2
LOW_GRADE_THRESHOLD = 70
PROBLEMATIC_SCORE = 2
DUE_SOON_WINDOW = timedelta(hours=48)

# A snapshot of what the user can see in Classroom. Dict keys are course ids;
# submissions is keyed by (course_id, course_work_id).
ClassroomSnapshot = namedtuple(
    "ClassroomSnapshot",
    ["courses", "rosters", "course_work", "submissions", "errors"],
)

# One submission, flattened with its course and assignment and classified.
SubmissionFact = namedtuple(
    "SubmissionFact",
    [
        "course_id",
        "course_name",
        "work_id",
        "work_title",
        "user_id",
        "state",
        "status",       # on_time | late | missing
        "grade",        # float or None
        "resubmission", # RETURNED
        "update_time",  # aware datetime or None
    ],
)


def round_half_up(value: float, digits: int = 0) -> float:
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def _pct(part: int, total: int) -> int:
    return int(round_half_up(100 * part / (total or 1)))


def _last_turn_in(submission: Dict[str, Any]) -> Optional[datetime]:
    """Latest TURNED_IN timestamp from submissionHistory, if present."""
    latest = None
    for entry in submission.get("submissionHistory") or []:
        state_history = entry.get("stateHistory") or {}
        if state_history.get("state") != STATE_TURNED_IN:
            continue
        ts = parse_timestamp(state_history.get("stateTimestamp"))
        if ts and (latest is None or ts > latest):
            latest = ts
    return latest


def classify_submission(submission: Dict[str, Any], work: Dict[str, Any]) -> str:
    """on_time | late | missing for one submission against its courseWork.

    Undelivered states (NEW, CREATED, RECLAIMED_BY_STUDENT, none) are missing.
    TURNED_IN is judged by updateTime; RETURNED by its last turn-in time.
    Without a due date (or a delivery time) a delivered submission is on time.
    """
    state = submission.get("state")
    if state not in DELIVERED_STATES:
        return MISSING
    due = parse_due_datetime(work.get("dueDate"), work.get("dueTime"))
    if due is None:
        return ON_TIME
    if state == STATE_TURNED_IN:
        delivered_at = parse_timestamp(submission.get("updateTime"))
    else:
        delivered_at = _last_turn_in(submission)
    if delivered_at is None:
        return ON_TIME
    return LATE if delivered_at > due else ON_TIME


def is_at_risk(pending: int, late: int) -> bool:
    return pending >= PENDING_RISK_THRESHOLD or late >= LATE_RISK_THRESHOLD


def _grade(submission: Dict[str, Any]) -> Optional[float]:
    value = submission.get("assignedGrade")
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _student_name(student: Dict[str, Any], default: str = "Estudiante") -> str:
    return ((student.get("profile") or {}).get("name") or {}).get("fullName") or default


def _student_email(student: Dict[str, Any]) -> str:
    return (student.get("profile") or {}).get("emailAddress") or ""


def flatten_submissions(snapshot: ClassroomSnapshot) -> List[SubmissionFact]:
    facts = []
    for course in snapshot.courses:
        course_id = course.get("id")
        for work in snapshot.course_work.get(course_id, []):
            for sub in snapshot.submissions.get((course_id, work.get("id")), []):
                facts.append(
                    SubmissionFact(
                        course_id=course_id,
                        course_name=course.get("name") or "Curso",
                        work_id=work.get("id"),
                        work_title=work.get("title") or "Tarea",
                        user_id=sub.get("userId"),
                        state=sub.get("state"),
                        status=classify_submission(sub, work),
                        grade=_grade(sub),
                        resubmission=sub.get("state") == STATE_RETURNED,
                        update_time=parse_timestamp(sub.get("updateTime")),
                    )
                )
    return facts


def _unique_students(rosters: Dict[str, List[Dict[str, Any]]]) -> List[Dict[str, Any]]:
    seen = {}
    for students in rosters.values():
        for student in students:
            user_id = student.get("userId")
            if user_id and user_id not in seen:
                seen[user_id] = student
    return list(seen.values())


def delivery_totals(facts: Iterable[SubmissionFact]) -> Dict[str, int]:
    facts = list(facts)
    return {
        "onTime": sum(1 for f in facts if f.status == ON_TIME),
        "late": sum(1 for f in facts if f.status == LATE),
        "missing": sum(1 for f in facts if f.status == MISSING),
        "total": len(facts),
    }


def course_delivery(courses: List[Dict[str, Any]], facts: List[SubmissionFact]) -> List[Dict[str, Any]]:
    rows = []
    for course in courses:
        totals = delivery_totals(f for f in facts if f.course_id == course.get("id"))
        rows.append({
            "courseId": course.get("id"),
            "courseName": course.get("name"),
            **totals,
            "onTimeRate": _pct(totals["onTime"], totals["total"]),
            "lateRate": _pct(totals["late"], totals["total"]),
            "missingRate": _pct(totals["missing"], totals["total"]),
        })
    return rows


def student_risk(rosters: Dict[str, List[Dict[str, Any]]], facts: List[SubmissionFact]) -> List[Dict[str, Any]]:
    rows = []
    for student in _unique_students(rosters):
        user_id = student.get("userId")
        mine = [f for f in facts if f.user_id == user_id]
        pending = sum(1 for f in mine if f.status == MISSING)
        late = sum(1 for f in mine if f.status == LATE)
        at_risk = is_at_risk(pending, late)
        rows.append({
            "studentId": user_id,
            "studentName": _student_name(student),
            "studentEmail": _student_email(student),
            "pendingTasks": pending,
            "lateTasks": late,
            "isAtRisk": at_risk,
            "status": "at-risk" if at_risk else "on-track",
        })
    return rows


def grades_by_course(courses: List[Dict[str, Any]], facts: List[SubmissionFact]) -> List[Dict[str, Any]]:
    rows = []
    for course in courses:
        grades = [f.grade for f in facts if f.course_id == course.get("id") and f.grade is not None]
        avg = sum(grades) / len(grades) if grades else 0
        rows.append({
            "courseId": course.get("id"),
            "courseName": course.get("name"),
            "avgGrade": round_half_up(avg, 1),
            "totalGrades": len(grades),
            "gradeDistribution": {
                "excellent": sum(1 for g in grades if g >= 90),
                "good": sum(1 for g in grades if 70 <= g < 90),
                "regular": sum(1 for g in grades if 50 <= g < 70),
                "poor": sum(1 for g in grades if g < 50),
            },
        })
    return rows


def task_problems(snapshot: ClassroomSnapshot, facts: List[SubmissionFact]) -> List[Dict[str, Any]]:
    """Assignments ranked by resubmissions + low grades, highest first."""
    names = {c.get("id"): c.get("name") for c in snapshot.courses}
    rows = []
    for course_id, works in snapshot.course_work.items():
        for work in works:
            mine = [f for f in facts if f.course_id == course_id and f.work_id == work.get("id")]
            resubmissions = sum(1 for f in mine if f.resubmission)
            low_grades = sum(1 for f in mine if f.grade is not None and f.grade < LOW_GRADE_THRESHOLD)
            score = resubmissions + low_grades
            rows.append({
                "workId": work.get("id"),
                "workTitle": work.get("title") or "Tarea",
                "courseId": course_id,
                "courseName": names.get(course_id) or "Curso",
                "resubmissions": resubmissions,
                "lowGrades": low_grades,
                "problemScore": score,
                "problematic": score > PROBLEMATIC_SCORE,
                "totalSubmissions": len(mine),
            })
    rows.sort(key=lambda r: r["problemScore"], reverse=True)
    return rows


def participation(rosters: Dict[str, List[Dict[str, Any]]], facts: List[SubmissionFact]) -> List[Dict[str, Any]]:
    rows = []
    for student in _unique_students(rosters):
        user_id = student.get("userId")
        count = sum(1 for f in facts if f.user_id == user_id and f.state == STATE_TURNED_IN)
        rows.append({
            "studentId": user_id,
            "studentName": _student_name(student),
            "submissions": count,
            "participationScore": count,
        })
    rows.sort(key=lambda r: r["participationScore"], reverse=True)
    return rows


def professor_workload(snapshot: ClassroomSnapshot, facts: List[SubmissionFact]) -> List[Dict[str, Any]]:
    rows = []
    for course in snapshot.courses:
        course_id = course.get("id")
        mine = [f for f in facts if f.course_id == course_id]
        rows.append({
            "courseId": course_id,
            "courseName": course.get("name"),
            "assignedTasks": len(snapshot.course_work.get(course_id, [])),
            "pendingReviews": sum(1 for f in mine if f.state == STATE_TURNED_IN and f.grade is None),
            "courseHealth": _pct(sum(1 for f in mine if f.status == ON_TIME), len(mine)),
        })
    return rows


def coordinator_report(snapshot: ClassroomSnapshot) -> Dict[str, Any]:
    """Institution-wide view: delivery, risk, grades, problem tasks, participation, workload."""
    facts = flatten_submissions(snapshot)
    delivery = course_delivery(snapshot.courses, facts)
    risk = student_risk(snapshot.rosters, facts)
    grades = grades_by_course(snapshot.courses, facts)
    tasks = task_problems(snapshot, facts)
    return {
        "deliveryMetrics": delivery,
        "deliveryTotals": delivery_totals(facts),
        "studentRiskAnalysis": risk,
        "gradesByCourse": grades,
        "taskPerformance": tasks,
        "participationByStudent": participation(snapshot.rosters, facts),
        "professorWorkload": professor_workload(snapshot, facts),
        "studentsOnTrack": sum(1 for r in risk if not r["isAtRisk"]),
        "studentsAtRisk": sum(1 for r in risk if r["isAtRisk"]),
        "avgGradeOverall": round_half_up(sum(g["avgGrade"] for g in grades) / (len(grades) or 1), 1),
        "problematicTasks": sum(1 for t in tasks if t["problematic"]),
        "errors": list(snapshot.errors),
    }


def progress_bucket(completed: int, total: int) -> str:
    pct = _pct(completed, total) if total else 0
    if pct >= 85:
        return "excelente"
    if pct >= 70:
        return "bueno"
    if pct >= 50:
        return "requiere-atención"
    return "en-riesgo"


def course_progress_rows(facts: List[SubmissionFact]) -> List[Dict[str, Any]]:
    rows: Dict[str, Dict[str, Any]] = {}
    for f in facts:
        row = rows.setdefault(f.course_id, {
            "courseId": f.course_id,
            "courseName": f.course_name,
            "completed": 0,
            "pending": 0,
            "onTime": 0,
            "total": 0,
        })
        row["total"] += 1
        if f.status == MISSING:
            row["pending"] += 1
        else:
            row["completed"] += 1
        if f.status == ON_TIME:
            row["onTime"] += 1
    for row in rows.values():
        row["status"] = progress_bucket(row["completed"], row["total"])
    return list(rows.values())


def student_progress_rows(rosters: Dict[str, List[Dict[str, Any]]], facts: List[SubmissionFact]) -> List[Dict[str, Any]]:
    """One row per (course, student) seen in the submissions."""
    rows: Dict[tuple, Dict[str, Any]] = {}
    for f in facts:
        key = (f.course_id, f.user_id or "unknown")
        row = rows.get(key)
        if row is None:
            student = next(
                (s for s in rosters.get(f.course_id, []) if s.get("userId") == f.user_id),
                {},
            )
            row = rows[key] = {
                "courseId": f.course_id,
                "courseName": f.course_name,
                "userId": f.user_id or "unknown",
                "name": _student_name(student, default="Desconocido"),
                "email": _student_email(student),
                "completed": 0,
                "onTime": 0,
                "total": 0,
                "lastActivity": None,
            }
        row["total"] += 1
        if f.status != MISSING:
            row["completed"] += 1
        if f.status == ON_TIME:
            row["onTime"] += 1
        if f.update_time and (row["lastActivity"] is None or f.update_time > row["lastActivity"]):
            row["lastActivity"] = f.update_time
    out = []
    for row in rows.values():
        row["lastActivity"] = row["lastActivity"].isoformat() if row["lastActivity"] else None
        out.append(row)
    return out


def progress_report(snapshot: ClassroomSnapshot) -> Dict[str, Any]:
    facts = flatten_submissions(snapshot)
    totals = delivery_totals(facts)
    return {
        "kpis": {
            "total": totals["total"],
            "completed": totals["onTime"] + totals["late"],
            "onTime": totals["onTime"],
            "late": totals["late"],
            "pending": totals["missing"],
        },
        "courses": course_progress_rows(facts),
        "students": student_progress_rows(snapshot.rosters, facts),
        "errors": list(snapshot.errors),
    }


def student_assignment_status(state: Optional[str]) -> str:
    if state == STATE_TURNED_IN:
        return "entregada"
    if state == STATE_RETURNED:
        return "devuelta"
    if state in (None, "NEW", "CREATED", "RECLAIMED_BY_STUDENT"):
        return "pendiente"
    return "desconocido"


def student_view(snapshot: ClassroomSnapshot, now: Optional[datetime] = None) -> Dict[str, Any]:
    """The caller's own assignments; snapshot.submissions holds only their submissions."""
    now = now or datetime.now(timezone.utc)
    assignments = []
    for course in snapshot.courses:
        course_id = course.get("id")
        for work in snapshot.course_work.get(course_id, []):
            subs = snapshot.submissions.get((course_id, work.get("id"))) or []
            status = student_assignment_status(subs[0].get("state") if subs else None)
            due = parse_due_datetime(work.get("dueDate"), work.get("dueTime"))
            delivered = status in ("entregada", "devuelta")
            assignments.append({
                "id": work.get("id"),
                "title": work.get("title") or "Tarea",
                "courseId": course_id,
                "courseName": course.get("name") or "Curso",
                "dueDate": format_due_date(work.get("dueDate")),
                "status": status,
                "alternateLink": work.get("alternateLink"),
                "overdue": bool(due and not delivered and due < now),
                "dueSoon": bool(due and not delivered and now < due <= now + DUE_SOON_WINDOW),
            })
    return {
        "assignments": assignments,
        "courses": [
            {
                "id": c.get("id"),
                "name": c.get("name"),
                "pending": sum(1 for a in assignments if a["courseId"] == c.get("id") and a["status"] == "pendiente"),
            }
            for c in snapshot.courses
        ],
        "kpis": {
            "entregadas": sum(1 for a in assignments if a["status"] == "entregada"),
            "devueltas": sum(1 for a in assignments if a["status"] == "devuelta"),
            "pendientes": sum(1 for a in assignments if a["status"] == "pendiente"),
            "vencidas": sum(1 for a in assignments if a["overdue"]),
        },
        "errors": list(snapshot.errors),
    }
