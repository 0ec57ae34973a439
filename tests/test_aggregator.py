from datetime import datetime, timezone

import pytest

from aulux.plugins.metrics.aggregator import (
    LATE,
    MISSING,
    ON_TIME,
    ClassroomSnapshot,
    classify_submission,
    coordinator_report,
    delivery_totals,
    flatten_submissions,
    is_at_risk,
    progress_bucket,
    progress_report,
    round_half_up,
    student_view,
)

from conftest import student

DUE_MARCH_10 = {"dueDate": {"year": 2024, "month": 3, "day": 10}}


def _work(work_id, title="Tarea", **extra):
    return {"id": work_id, "title": title, **extra}


def _sub(user_id, state, update_time=None, **extra):
    sub = {"userId": user_id, "state": state}
    if update_time:
        sub["updateTime"] = update_time
    sub.update(extra)
    return sub


def _snapshot(course_work, submissions, rosters=None, courses=None, errors=None):
    return ClassroomSnapshot(
        courses=courses or [{"id": "c1", "name": "Matemática"}],
        rosters=rosters or {},
        course_work=course_work,
        submissions=submissions,
        errors=errors or [],
    )


def test_on_time_late_and_missing_are_counted_once_each():
    work = _work("w1", **DUE_MARCH_10)
    snapshot = _snapshot(
        {"c1": [work]},
        {("c1", "w1"): [
            _sub("s1", "TURNED_IN", "2024-03-09T20:00:00Z"),
            _sub("s2", "TURNED_IN", "2024-03-10T01:00:00Z"),
            _sub("s3", "CREATED"),
        ]},
    )

    assert delivery_totals(flatten_submissions(snapshot)) == {"onTime": 1, "late": 1, "missing": 1, "total": 3}


def test_due_date_without_time_means_start_of_day():
    work = _work("w1", **DUE_MARCH_10)
    assert classify_submission(_sub("s1", "TURNED_IN", "2024-03-10T00:00:00Z"), work) == ON_TIME
    assert classify_submission(_sub("s1", "TURNED_IN", "2024-03-10T10:00:00Z"), work) == LATE


def test_due_time_is_respected():
    work = _work("w1", dueTime={"hours": 12, "minutes": 0}, **DUE_MARCH_10)
    assert classify_submission(_sub("s1", "TURNED_IN", "2024-03-10T11:59:00Z"), work) == ON_TIME
    assert classify_submission(_sub("s1", "TURNED_IN", "2024-03-10T13:00:00Z"), work) == LATE


@pytest.mark.parametrize("state", ["NEW", "CREATED", "RECLAIMED_BY_STUDENT", None])
def test_undelivered_states_are_missing(state):
    assert classify_submission(_sub("s1", state), _work("w1", **DUE_MARCH_10)) == MISSING


def test_delivery_without_due_date_is_on_time():
    assert classify_submission(_sub("s1", "TURNED_IN", "2030-01-01T00:00:00Z"), _work("w1")) == ON_TIME


def test_returned_is_judged_by_last_turn_in():
    work = _work("w1", **DUE_MARCH_10)
    history = [
        {"stateHistory": {"state": "CREATED", "stateTimestamp": "2024-03-01T10:00:00Z"}},
        {"stateHistory": {"state": "TURNED_IN", "stateTimestamp": "2024-03-09T10:00:00Z"}},
        {"gradeHistory": {"pointsEarned": 8}},
        {"stateHistory": {"state": "RETURNED", "stateTimestamp": "2024-03-15T10:00:00Z"}},
    ]
    returned = _sub("s1", "RETURNED", "2024-03-15T10:00:00Z", submissionHistory=history)
    assert classify_submission(returned, work) == ON_TIME

    late_history = history + [{"stateHistory": {"state": "TURNED_IN", "stateTimestamp": "2024-03-12T09:00:00Z"}}]
    assert classify_submission(_sub("s1", "RETURNED", submissionHistory=late_history), work) == LATE

    assert classify_submission(_sub("s1", "RETURNED", "2024-03-20T00:00:00Z"), work) == ON_TIME


def test_risk_thresholds():
    assert is_at_risk(pending=3, late=0)
    assert is_at_risk(pending=0, late=2)
    assert not is_at_risk(pending=2, late=1)


def test_round_half_up():
    assert round_half_up(2.5) == 3
    assert round_half_up(85.25, 1) == 85.3
    assert round_half_up(0.4) == 0


@pytest.mark.parametrize(
    "completed,total,bucket",
    [(85, 100, "excelente"), (70, 100, "bueno"), (50, 100, "requiere-atención"), (49, 100, "en-riesgo"), (0, 0, "en-riesgo")],
)
def test_progress_bucket(completed, total, bucket):
    assert progress_bucket(completed, total) == bucket


def _school():
    works = [_work(f"w{i}", f"Tarea {i}", **DUE_MARCH_10) for i in (1, 2, 3)]
    ana = student("s1", "Ana", "ana@example.com")
    luis = student("s2", "Luis", "luis@example.com")
    submissions = {
        ("c1", "w1"): [
            _sub("s1", "TURNED_IN", "2024-03-09T20:00:00Z", assignedGrade=95),
            _sub("s2", "CREATED"),
        ],
        ("c1", "w2"): [
            _sub("s1", "RETURNED", "2024-03-09T08:00:00Z", assignedGrade=60),
            _sub("s2", "NEW"),
        ],
        ("c1", "w3"): [
            _sub("s1", "RETURNED", "2024-03-09T08:00:00Z", assignedGrade=50),
            _sub("s2", "RECLAIMED_BY_STUDENT"),
        ],
    }
    return _snapshot(
        {"c1": works},
        submissions,
        rosters={"c1": [ana, luis], "c2": [ana]},
        courses=[{"id": "c1", "name": "Matemática"}, {"id": "c2", "name": "Lengua"}],
        errors=[{"resource": "courseWork", "courseId": "c2", "error": "403"}],
    )


def test_coordinator_report():
    report = coordinator_report(_school())

    assert report["deliveryTotals"] == {"onTime": 3, "late": 0, "missing": 3, "total": 6}
    math = next(r for r in report["deliveryMetrics"] if r["courseId"] == "c1")
    assert math["onTimeRate"] == 50
    assert math["missingRate"] == 50

    # Ana appears in two rosters but is one student
    risk = {r["studentId"]: r for r in report["studentRiskAnalysis"]}
    assert len(report["studentRiskAnalysis"]) == 2
    assert risk["s2"]["isAtRisk"] and risk["s2"]["pendingTasks"] == 3
    assert risk["s1"]["status"] == "on-track"
    assert report["studentsAtRisk"] == 1
    assert report["studentsOnTrack"] == 1

    grades = {g["courseId"]: g for g in report["gradesByCourse"]}
    assert grades["c1"]["avgGrade"] == 68.3
    assert grades["c1"]["gradeDistribution"] == {"excellent": 1, "good": 0, "regular": 2, "poor": 0}
    assert grades["c2"]["avgGrade"] == 0

    assert report["errors"] == [{"resource": "courseWork", "courseId": "c2", "error": "403"}]


def test_task_problems_rank_resubmissions_and_low_grades():
    snapshot = _snapshot(
        {"c1": [_work("w1"), _work("w2")]},
        {
            ("c1", "w1"): [_sub("s1", "TURNED_IN", assignedGrade=95)],
            ("c1", "w2"): [
                _sub("s1", "RETURNED", assignedGrade=40),
                _sub("s2", "RETURNED", assignedGrade=90),
                _sub("s3", "TURNED_IN", assignedGrade=65),
            ],
        },
    )
    tasks = coordinator_report(snapshot)["taskPerformance"]

    assert tasks[0]["workId"] == "w2"
    assert tasks[0]["resubmissions"] == 2
    assert tasks[0]["lowGrades"] == 2
    assert tasks[0]["problemScore"] == 4
    assert tasks[0]["problematic"] is True
    assert tasks[1]["problematic"] is False


def test_progress_report():
    report = progress_report(_school())

    assert report["kpis"] == {"total": 6, "completed": 3, "onTime": 3, "late": 0, "pending": 3}
    assert report["courses"] == [{
        "courseId": "c1",
        "courseName": "Matemática",
        "completed": 3,
        "pending": 3,
        "onTime": 3,
        "total": 6,
        "status": "requiere-atención",
    }]
    students = {s["userId"]: s for s in report["students"]}
    assert students["s1"]["name"] == "Ana"
    assert students["s1"]["completed"] == 3
    assert students["s1"]["lastActivity"] == "2024-03-09T20:00:00+00:00"
    assert students["s2"]["completed"] == 0


def test_student_view_flags_overdue_and_due_soon():
    works = [
        _work("soon", "Pronto", **DUE_MARCH_10),
        _work("past", "Pasada", dueDate={"year": 2024, "month": 3, "day": 1}),
        _work("done", "Hecha", dueDate={"year": 2024, "month": 3, "day": 1}),
        _work("nodue", "Sin fecha"),
    ]
    snapshot = _snapshot(
        {"c1": works},
        {
            ("c1", "soon"): [_sub("me", "CREATED")],
            ("c1", "past"): [_sub("me", "NEW")],
            ("c1", "done"): [_sub("me", "TURNED_IN", "2024-02-28T10:00:00Z")],
        },
    )
    now = datetime(2024, 3, 9, 12, 0, tzinfo=timezone.utc)

    view = student_view(snapshot, now=now)
    by_id = {a["id"]: a for a in view["assignments"]}

    assert by_id["soon"]["dueSoon"] and not by_id["soon"]["overdue"]
    assert by_id["soon"]["dueDate"] == "2024-03-10"
    assert by_id["past"]["overdue"] and not by_id["past"]["dueSoon"]
    assert by_id["done"]["status"] == "entregada" and not by_id["done"]["overdue"]
    assert by_id["nodue"]["status"] == "pendiente"
    assert not by_id["nodue"]["overdue"] and not by_id["nodue"]["dueSoon"]
    assert view["kpis"] == {"entregadas": 1, "devueltas": 0, "pendientes": 3, "vencidas": 1}
    assert view["courses"] == [{"id": "c1", "name": "Matemática", "pending": 3}]
