import pytest


@pytest.fixture
def quiz_setup(client, make_user, make_course):
    instructor = make_user("instructor")
    student = make_user()
    course = make_course(instructor, lessons=1)
    created = client.post("/api/quiz", json={
        "course_id": course["course_id"],
        "lesson_id": course["lesson_ids"][0],
        "title": "Basics Check",
        "passing_score": 50,
        "questions": [
            {"question": "2 + 2?", "options": ["3", "4"], "correct_answer": "4"},
            {"question": "Python is?", "options": ["A snake", "A language"], "correct_answer": 1},
        ],
    }, headers=instructor["headers"])
    assert created.status_code == 201, created.text
    return instructor, student, course, created.json()


def test_quiz_links_to_lesson(client, quiz_setup):
    _, _, course, quiz = quiz_setup
    lesson = client.get(f"/api/lessons/{course['lesson_ids'][0]}").json()
    assert lesson["quiz_id"] == quiz["quiz_id"]
    assert quiz["total_marks"] == 2


def test_students_do_not_see_answers(client, quiz_setup):
    instructor, student, _, quiz = quiz_setup

    as_student = client.get(f"/api/quiz/{quiz['quiz_id']}", headers=student["headers"]).json()
    assert all("is_correct" not in o for q in as_student["questions"] for o in q["options"])

    as_author = client.get(f"/api/quiz/{quiz['quiz_id']}", headers=instructor["headers"]).json()
    assert any(o["is_correct"] for o in as_author["questions"][0]["options"])


def test_submit_records_attempt_and_activity(client, quiz_setup, run, db):
    _, student, _, quiz = quiz_setup

    result = client.post(f"/api/quiz/{quiz['quiz_id']}/submit", json={"answers": [
        {"question_index": 0, "selected_option": "4"},
        {"question_index": 1, "selected_option": 0},
    ]}, headers=student["headers"]).json()

    assert result["score"] == 1
    assert result["percentage"] == 50
    assert result["passed"] is True

    stored = run(db.quizzes.find_one({"quiz_id": quiz["quiz_id"]}))
    assert stored["attempts"][0]["student_id"] == student["user_id"]

    activity = client.get("/api/student/activity", headers=student["headers"]).json()
    assert activity[0]["action"] == "Quiz Passed"
    assert activity[0]["color"] == "#f1c40f"

    overview = client.get("/api/progress/overview", headers=student["headers"]).json()
    assert overview["stats"]["avg_score"] == 50


def test_only_course_owner_edits_quiz(client, quiz_setup, make_user):
    _, _, _, quiz = quiz_setup
    other = make_user("instructor")

    response = client.put(f"/api/quiz/{quiz['quiz_id']}", json={"title": "Hijacked"}, headers=other["headers"])
    assert response.status_code == 403


def test_delete_unlinks_lesson(client, quiz_setup):
    instructor, _, course, quiz = quiz_setup

    assert client.delete(f"/api/quiz/{quiz['quiz_id']}", headers=instructor["headers"]).status_code == 200
    lesson = client.get(f"/api/lessons/{course['lesson_ids'][0]}").json()
    assert lesson["quiz_id"] is None
    assert client.get(f"/api/quiz/{quiz['quiz_id']}", headers=instructor["headers"]).status_code == 404
