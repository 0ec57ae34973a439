from datetime import datetime, timedelta, timezone

from aulux.plugins.notifications.detection import (
    NewTaskNotifier,
    find_new_course_work,
    parse_window,
    recipients_from_roster,
    task_payload,
)
from aulux.plugins.notifications.dispatcher import NotificationDispatcher

from conftest import FakeChannel, FakeClassroomClient, rfc3339, student

NOW = datetime(2024, 3, 9, 12, 0, tzinfo=timezone.utc)


def test_parse_window_accepts_known_labels_only():
    assert parse_window("30m") == ("30m", timedelta(minutes=30))
    assert parse_window("24h") == ("24h", timedelta(hours=24))
    assert parse_window("5h") == ("1h", timedelta(hours=1))
    assert parse_window(None) == ("1h", timedelta(hours=1))


def test_new_course_work_is_created_within_the_window():
    works = [
        {"id": "fresh", "creationTime": rfc3339(NOW - timedelta(minutes=20))},
        {"id": "edge", "creationTime": rfc3339(NOW - timedelta(minutes=30))},
        {"id": "old", "creationTime": rfc3339(NOW - timedelta(minutes=40))},
        {"id": "undated"},
    ]

    new = find_new_course_work(works, timedelta(minutes=30), now=NOW)

    assert [w["id"] for w in new] == ["fresh", "edge"]


def test_recipients_come_from_roster_with_phone_book():
    roster = [
        student("s1", "Ana", "Ana@Example.com"),
        student("s2", "Luis", "luis@example.com"),
        {"userId": "s3", "profile": {"name": {"fullName": "Sin Email"}}},
    ]

    recipients = recipients_from_roster(roster, {"ana@example.com": "+5491100000001"})

    assert [(r.email, r.phone, r.name) for r in recipients] == [
        ("Ana@Example.com", "+5491100000001", "Ana"),
        ("luis@example.com", None, "Luis"),
    ]


def test_task_payload_defaults():
    payload = task_payload({"id": "w1"}, {"id": "c1"}, "")

    assert payload["taskTitle"] == "Nueva tarea"
    assert payload["courseName"] == "Curso"
    assert payload["teacherName"] == "Profesor"
    assert payload["dueDate"] is None


def test_notifier_notifies_each_new_task_roster():
    client = FakeClassroomClient(
        courses=[{"id": "c1", "name": "Lengua"}, {"id": "c2", "name": "Historia"}, {"id": "c3", "name": "Arte"}],
        course_work={
            "c1": [
                {"id": "w1", "title": "Ensayo", "creationTime": rfc3339(NOW - timedelta(minutes=10)),
                 "dueDate": {"year": 2024, "month": 3, "day": 15}},
                {"id": "w0", "title": "Viejo", "creationTime": rfc3339(NOW - timedelta(days=3))},
            ],
            "c2": [{"id": "w2", "creationTime": rfc3339(NOW - timedelta(days=2))}],
        },
        students={"c1": [student("s1", "Ana", "ana@example.com"), student("s2", "Luis", "luis@example.com")]},
        failing={("courseWork", "c3")},
    )
    email, whatsapp = FakeChannel("email", fail_for={"luis@example.com"}), FakeChannel("whatsapp")
    notifier = NewTaskNotifier(NotificationDispatcher(email, whatsapp), {"ana@example.com": "+5491100000001"})

    results, errors = notifier.run(client, timedelta(hours=1), "Profe", now=NOW)

    assert results == [{
        "courseId": "c1",
        "courseName": "Lengua",
        "taskId": "w1",
        "taskTitle": "Ensayo",
        "recipients": 2,
        "emailsSent": 1,
        "whatsappSent": 1,
        "errors": 1,
    }]
    assert [e["courseId"] for e in errors] == ["c3"]
    # rosters are only fetched for courses with something new
    assert ("students", "c2") not in client.calls
    assert email.sent[0][2]["dueDate"] == "2024-03-15"
    assert email.sent[0][2]["teacherName"] == "Profe"
