from datetime import datetime, timedelta

import pytest


@pytest.fixture
def classroom(client, make_user, make_course):
    instructor = make_user("instructor")
    student = make_user()
    course = make_course(instructor, lessons=2)
    client.post(f"/api/courses/{course['course_id']}/enroll", headers=student["headers"])
    return instructor, student, course


def test_instructor_sees_own_students(client, classroom, make_user):
    instructor, student, course = classroom
    make_user()

    courses = client.get("/api/instructor/courses", headers=instructor["headers"]).json()
    assert courses["count"] == 1
    assert courses["data"][0]["student_count"] == 1
    assert courses["data"][0]["lesson_count"] == 2

    students = client.get("/api/instructor/students", headers=instructor["headers"]).json()
    assert [s["user_id"] for s in students["data"]] == [student["user_id"]]
    assert students["data"][0]["enrolled_in_course_count"] == 1

    progress = client.get(
        f"/api/instructor/students/{student['user_id']}/progress/{course['course_id']}",
        headers=instructor["headers"],
    ).json()
    assert progress["course"]["total_lessons"] == 2
    assert progress["progress"]["completion_percentage"] == 0


def test_instructor_cannot_see_foreign_students(client, classroom, make_user):
    _, student, _ = classroom
    other = make_user("instructor")

    response = client.get(f"/api/instructor/students/{student['user_id']}", headers=other["headers"])
    assert response.status_code == 403
    assert response.json()["message"] == "Student is not enrolled in your courses"

    missing = client.get("/api/instructor/students/USER_NOPE", headers=other["headers"])
    assert missing.status_code == 404


def test_instructor_updates_student_status(client, classroom):
    instructor, student, _ = classroom

    response = client.put(
        f"/api/instructor/students/{student['user_id']}", json={"status": "inactive"}, headers=instructor["headers"]
    )
    assert response.json()["status"] == "inactive"
    assert "password" not in response.json()


def test_assignment_submit_and_grade(client, classroom, make_user):
    instructor, student, course = classroom

    created = client.post("/api/assignments", json={
        "course_id": course["course_id"],
        "title": "Build a CLI",
        "description": "Use argparse",
        "due_date": (datetime.utcnow() + timedelta(days=7)).isoformat() + "Z",
        "total_marks": 20,
    }, headers=instructor["headers"]).json()
    assignment_id = created["assignment_id"]
    assert created["submissions"] == []

    first = client.post(
        f"/api/assignments/{assignment_id}/submit", json={"submission_url": "https://git.example/v1"},
        headers=student["headers"],
    )
    assert first.json()["submission"]["status"] == "submitted"
    client.post(
        f"/api/assignments/{assignment_id}/submit", json={"submission_url": "https://git.example/v2"},
        headers=student["headers"],
    )

    not_student = client.post(
        f"/api/assignments/{assignment_id}/submit", json={"submission_url": "x"}, headers=instructor["headers"]
    )
    assert not_student.status_code == 403

    graded = client.put(
        f"/api/assignments/{assignment_id}/grade/{student['user_id']}",
        json={"marks": 25, "feedback": "Nice"},
        headers=instructor["headers"],
    ).json()["submission"]
    assert graded["marks"] == 20
    assert graded["status"] == "graded"
    assert graded["submission_url"] == "https://git.example/v2"

    stored = client.get(f"/api/assignments/{assignment_id}", headers=student["headers"]).json()
    assert len(stored["submissions"]) == 1

    outsider = make_user()
    missing = client.put(
        f"/api/assignments/{assignment_id}/grade/{outsider['user_id']}",
        json={"marks": 5},
        headers=instructor["headers"],
    )
    assert missing.status_code == 404
