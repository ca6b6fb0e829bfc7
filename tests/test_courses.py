from datetime import datetime, timedelta

import pytest

from academy.courses.course_router import check_course_access


@pytest.fixture
def instructor(make_user):
    return make_user("instructor")


def test_students_cannot_create_courses(client, make_user):
    student = make_user()
    response = client.post("/api/courses", json={"title": "T", "description": "D"}, headers=student["headers"])
    assert response.status_code == 403


def test_catalog_search_and_pagination(client, instructor, make_course):
    for i in range(11):
        make_course(instructor, lessons=0, title=f"Course {i}")
    make_course(instructor, lessons=0, title="Advanced Django")

    first = client.get("/api/courses").json()
    assert first["total"] == 12
    assert first["pages"] == 2
    assert len(first["courses"]) == 10
    assert first["courses"][0]["instructor"]["full_name"] == instructor["full_name"]

    second = client.get("/api/courses", params={"page": 2}).json()
    assert len(second["courses"]) == 2

    found = client.get("/api/courses", params={"keyword": "django"}).json()
    assert [c["title"] for c in found["courses"]] == ["Advanced Django"]


def test_missing_course_is_404(client):
    response = client.get("/api/courses/COURSE_MISSING")
    assert response.status_code == 404
    assert response.json() == {"message": "Course not found"}


def test_unknown_route_is_404(client):
    response = client.get("/api/nothing-here")
    assert response.status_code == 404
    assert response.json()["message"] == "Not Found - /api/nothing-here"


def test_only_owner_updates(client, instructor, make_user, make_course):
    course = make_course(instructor)
    other = make_user("instructor")

    denied = client.put(f"/api/courses/{course['course_id']}", json={"price": 10}, headers=other["headers"])
    assert denied.status_code == 403
    assert denied.json()["message"] == "Not authorized to update this course"

    updated = client.put(f"/api/courses/{course['course_id']}", json={"price": 10}, headers=instructor["headers"])
    assert updated.json()["price"] == 10
    assert updated.json()["title"] == course["title"]


def test_course_detail_lists_lessons_in_order(client, instructor, make_course):
    course = make_course(instructor, lessons=3)
    detail = client.get(f"/api/courses/{course['course_id']}").json()

    assert [lesson["lesson_id"] for lesson in detail["lesson_list"]] == course["lesson_ids"]
    assert detail["lessons"] == course["lesson_ids"]


def test_one_review_per_user(client, instructor, make_user, make_course):
    course = make_course(instructor)
    first, second = make_user(), make_user()

    r = client.post(f"/api/courses/{course['course_id']}/reviews", json={"rating": 5}, headers=first["headers"])
    assert r.status_code == 201
    r = client.post(f"/api/courses/{course['course_id']}/reviews", json={"rating": 2}, headers=second["headers"])
    assert r.json()["rating"] == 3.5
    assert r.json()["num_reviews"] == 2

    again = client.post(f"/api/courses/{course['course_id']}/reviews", json={"rating": 1}, headers=first["headers"])
    assert again.status_code == 400
    assert again.json()["message"] == "Course already reviewed"

    out_of_range = client.post(
        f"/api/courses/{course['course_id']}/reviews", json={"rating": 6}, headers=second["headers"]
    )
    assert out_of_range.status_code == 400


def test_direct_enrollment_free_and_paid(client, instructor, make_user, make_course):
    student = make_user()
    free = make_course(instructor)
    paid = make_course(instructor, price=499, title="Paid")

    ok = client.post(f"/api/courses/{free['course_id']}/enroll", headers=student["headers"])
    assert ok.status_code == 200
    assert ok.json()["enrollment"]["enrollment_status"] == "active"

    again = client.post(f"/api/courses/{free['course_id']}/enroll", headers=student["headers"])
    assert again.status_code == 400

    blocked = client.post(f"/api/courses/{paid['course_id']}/enroll", headers=student["headers"])
    assert blocked.status_code == 402
    assert blocked.json()["message"] == "Payment required to access this course"
    assert blocked.json()["pricing"]["price"] == 499


def test_check_course_access():
    assert check_course_access({"price": 0})["has_access"] is True
    assert check_course_access({"price": 10})["has_access"] is False


def test_course_delete_cascades(client, instructor, make_user, make_course, run, db):
    student = make_user()
    course = make_course(instructor, lessons=2)
    course_id = course["course_id"]

    quiz = client.post("/api/quiz", json={
        "course_id": course_id,
        "title": "Check",
        "questions": [{"question": "1+1?", "options": ["1", "2"], "correct_answer": "2"}],
    }, headers=instructor["headers"])
    assert quiz.status_code == 201

    assignment = client.post("/api/assignments", json={
        "course_id": course_id,
        "title": "Homework",
        "description": "Write code",
        "due_date": (datetime.utcnow() + timedelta(days=7)).isoformat(),
        "total_marks": 10,
    }, headers=instructor["headers"])
    assert assignment.status_code == 201

    event = client.post("/api/events", json={
        "title": "Kickoff",
        "date": (datetime.utcnow() + timedelta(days=3)).isoformat(),
        "start_time": "10:00",
        "end_time": "11:00",
        "location": "Online",
        "course_id": course_id,
    }, headers=instructor["headers"])
    assert event.status_code == 201

    client.post(f"/api/courses/{course_id}/enroll", headers=student["headers"])

    deleted = client.delete(f"/api/courses/{course_id}", headers=instructor["headers"])
    assert deleted.status_code == 200
    assert deleted.json()["message"] == "Course removed"
    assert deleted.json()["removed"] == {"lessons": 2, "quizzes": 1, "assignments": 1, "enrollments": 1}

    assert client.get(f"/api/lessons/{course['lesson_ids'][0]}").status_code == 404
    assert client.get("/api/users/courses", headers=student["headers"]).json() == []
    assert run(db.events.find_one({"event_id": event.json()["event_id"]}))["course_id"] is None


def test_lesson_delete_removes_progress(client, instructor, make_user, make_course):
    student = make_user()
    course = make_course(instructor, lessons=2)
    lesson_id = course["lesson_ids"][0]

    client.post(f"/api/courses/{course['course_id']}/enroll", headers=student["headers"])
    client.post(
        f"/api/student/courses/{course['course_id']}/lessons/{lesson_id}/complete",
        json={"hours_spent": 1},
        headers=student["headers"],
    )

    assert client.delete(f"/api/lessons/{lesson_id}", headers=instructor["headers"]).status_code == 200

    detail = client.get(f"/api/courses/{course['course_id']}").json()
    assert lesson_id not in detail["lessons"]
    progress = client.get(f"/api/student/courses/{course['course_id']}", headers=student["headers"]).json()
    assert progress["progress"]["completed_lessons"] == []
    assert progress["progress"]["completion_percentage"] == 0


def test_lesson_delete_recomputes_completion(client, instructor, make_user, make_course):
    student = make_user()
    course = make_course(instructor, lessons=2)
    done, dropped = course["lesson_ids"]

    client.post(f"/api/courses/{course['course_id']}/enroll", headers=student["headers"])
    half = client.post(
        f"/api/student/courses/{course['course_id']}/lessons/{done}/complete",
        json={"hours_spent": 1},
        headers=student["headers"],
    )
    assert half.json()["completion_percentage"] == 50

    assert client.delete(f"/api/lessons/{dropped}", headers=instructor["headers"]).status_code == 200

    progress = client.get(f"/api/student/courses/{course['course_id']}", headers=student["headers"]).json()
    assert progress["progress"]["completed_lessons"] == [done]
    assert progress["progress"]["completion_percentage"] == 100

    enrollment = client.get(
        f"/api/enrollments/course/{course['course_id']}", headers=student["headers"]
    ).json()["enrollment"]
    assert enrollment["progress_percentage"] == 100
    assert enrollment["enrollment_status"] == "completed"


def test_lesson_create_requires_course_owner(client, instructor, make_user, make_course):
    course = make_course(instructor, lessons=0)
    other = make_user("instructor")

    response = client.post(
        "/api/lessons", json={"course_id": course["course_id"], "title": "Sneaky"}, headers=other["headers"]
    )
    assert response.status_code == 403

    missing = client.post("/api/lessons", json={"course_id": "COURSE_NOPE", "title": "X"}, headers=other["headers"])
    assert missing.status_code == 404
