import pytest

from conftest import FakeClassroomClient, student


@pytest.fixture()
def classroom(aulux_app):
    fake = FakeClassroomClient(
        courses=[{"id": "c1", "name": "Matemática"}],
        course_work={"c1": [{"id": "w1", "title": "Ensayo"}]},
        students={"c1": [student("s1", "Ana", "ana@example.com")]},
        submissions={("c1", "w1"): [{"userId": "s1", "state": "TURNED_IN"}]},
    )
    aulux_app.classroom_client_factory = lambda current: fake
    return fake


def test_requires_a_session(client, classroom):
    assert client.get("/api/classroom/courses").status_code == 401


def test_proxies_listings(client, classroom, sign_in):
    sign_in("prof@example.com")

    assert client.get("/api/classroom/courses").json() == {"courses": [{"id": "c1", "name": "Matemática"}]}
    assert client.get("/api/classroom/courses/c1/courseWork").json()["courseWork"][0]["id"] == "w1"
    assert client.get("/api/classroom/courses/c1/students").json()["students"][0]["userId"] == "s1"

    subs = client.get("/api/classroom/courses/c1/courseWork/w1/studentSubmissions", params={"userId": "me"})
    assert subs.json()["studentSubmissions"][0]["state"] == "TURNED_IN"
    assert ("userId", "me") in classroom.calls


def test_debug_wraps_the_raw_payload(client, classroom, sign_in):
    sign_in("prof@example.com")

    body = client.get("/api/classroom/courses", params={"debug": "1"}).json()

    assert body == {"debug": True, "raw": {"courses": [{"id": "c1", "name": "Matemática"}]}}


def test_upstream_status_is_passed_through(client, classroom, sign_in):
    sign_in("ana@example.com")
    classroom.failing.add(("students", "c1"))

    response = client.get("/api/classroom/courses/c1/students")

    assert response.status_code == 403
    body = response.json()
    assert body["error"] == "Classroom API error: 403"
    assert body["status"] == 403
    assert body["details"]["error"]["message"] == "The caller does not have permission"


def test_page_size_is_validated(client, classroom, sign_in):
    sign_in("prof@example.com")

    response = client.get("/api/classroom/courses", params={"pageSize": 0})

    assert response.status_code == 400
    assert "pageSize" in response.json()["error"]
