import pytest


@pytest.fixture
def enrolled(client, make_user, make_course):
    instructor = make_user("instructor")
    student = make_user()
    course = make_course(instructor, lessons=2, title="Data Science 101")
    client.post(f"/api/courses/{course['course_id']}/enroll", headers=student["headers"])
    return student, course


def complete(client, student, course, lesson_id, hours=0):
    return client.post(
        f"/api/student/courses/{course['course_id']}/lessons/{lesson_id}/complete",
        json={"hours_spent": hours},
        headers=student["headers"],
    )


def test_completion_percentage_advances(client, enrolled):
    student, course = enrolled
    first, second = course["lesson_ids"]

    half = complete(client, student, course, first, hours=1.5)
    assert half.status_code == 200
    assert half.json()["completion_percentage"] == 50
    assert half.json()["achievement"] is None

    repeat = complete(client, student, course, first, hours=0.5)
    assert repeat.json()["completion_percentage"] == 50
    assert repeat.json()["completed_lessons"] == 1
    assert repeat.json()["hours_spent"] == 2

    full = complete(client, student, course, second)
    assert full.json()["completion_percentage"] == 100
    assert full.json()["achievement"]["type"] == "Course Completion"

    enrollment = client.get(
        f"/api/enrollments/course/{course['course_id']}", headers=student["headers"]
    ).json()["enrollment"]
    assert enrollment["enrollment_status"] == "completed"
    assert enrollment["progress_percentage"] == 100


def test_single_completion_achievement(client, enrolled, run, db):
    student, course = enrolled
    for lesson_id in course["lesson_ids"]:
        complete(client, student, course, lesson_id)
    again = complete(client, student, course, course["lesson_ids"][0])
    assert again.json()["achievement"]["type"] == "Course Completion"

    count = run(db.achievements.count_documents({"user_id": student["user_id"], "course_id": course["course_id"]}))
    assert count == 1

    completions = run(db.activity_logs.count_documents({"performed_by": student["user_id"], "action": "Course Completed"}))
    assert completions == 1

    points = client.get("/api/achievements/points", headers=student["headers"]).json()
    assert points["total_points"] == 100


def test_users_route_completes_lessons(client, enrolled):
    student, course = enrolled
    response = client.post(
        f"/api/users/lesson/{course['lesson_ids'][0]}/complete",
        json={"course_id": course["course_id"], "hours_spent": 1},
        headers=student["headers"],
    )
    assert response.status_code == 200
    assert response.json()["completion_percentage"] == 50


def test_not_enrolled_and_unknown_lesson(client, make_user, make_course):
    instructor = make_user("instructor")
    student = make_user()
    course = make_course(instructor)

    response = complete(client, student, course, course["lesson_ids"][0])
    assert response.status_code == 400
    assert response.json()["message"] == "Not enrolled in this course"

    response = complete(client, student, course, "LSN_UNKNOWN")
    assert response.status_code == 404


def test_certificate_flow(client, enrolled):
    student, course = enrolled

    early = client.get(f"/api/courses/{course['course_id']}/certificate", headers=student["headers"])
    assert early.status_code == 400
    assert early.json()["current_progress"] == 0

    for lesson_id in course["lesson_ids"]:
        complete(client, student, course, lesson_id)

    meta = client.get(f"/api/courses/{course['course_id']}/certificate", headers=student["headers"])
    assert meta.status_code == 200
    certificate = meta.json()["certificate"]
    assert certificate["course_title"] == "Data Science 101"
    assert certificate["student_name"] == student["full_name"]
    assert certificate["certificate_id"].startswith("CERT-")

    pdf = client.get(f"/api/progress/certificates/{course['course_id']}/download", headers=student["headers"])
    assert pdf.status_code == 200
    assert pdf.headers["content-type"] == "application/pdf"
    assert pdf.content.startswith(b"%PDF")
    assert pdf.headers["content-disposition"] == 'attachment; filename="Data_Science_101_Certificate.pdf"'

    overview = client.get("/api/progress/overview", headers=student["headers"]).json()
    assert overview["certificates"][0]["status"] == "Downloaded"


def test_certificate_requires_enrollment(client, make_user, make_course):
    instructor = make_user("instructor")
    student = make_user()
    course = make_course(instructor)

    meta = client.get(f"/api/courses/{course['course_id']}/certificate", headers=student["headers"])
    assert meta.status_code == 403

    pdf = client.get(f"/api/progress/certificates/{course['course_id']}/download", headers=student["headers"])
    assert pdf.status_code == 404


def test_overview(client, enrolled):
    student, course = enrolled
    complete(client, student, course, course["lesson_ids"][0], hours=10)

    overview = client.get("/api/progress/overview", headers=student["headers"]).json()
    stats = overview["stats"]
    assert stats["enrolled_courses"] == 1
    assert stats["learning_hours"] == 10
    assert stats["avg_completion"] == 50
    assert stats["avg_score"] == 0
    assert stats["skill_level_label"] == "Intermediate"
    assert stats["skill_level_percent"] == 50

    skills = {s["name"]: s["percent"] for s in overview["skills"]}
    assert skills == {"Course Progress": 50, "Quiz Performance": 0, "Engagement": 20, "Overall Skill": 50}

    assert overview["certificates"][0]["status"] == "Pending"
    actions = [a["action"] for a in overview["recent_activity"]]
    assert "Lesson Completed" in actions


def test_student_dashboard(client, enrolled):
    student, course = enrolled
    complete(client, student, course, course["lesson_ids"][0], hours=2)

    dashboard = client.get("/api/student/dashboard", headers=student["headers"]).json()
    assert dashboard["stats"]["enrolled_courses"] == 1
    assert dashboard["stats"]["total_hours_learned"] == 2
    assert dashboard["courses"][0]["completion_percentage"] == 50
    assert dashboard["courses"][0]["total_lessons"] == 2


def test_leaderboard_ranks_by_points(client, make_user):
    admin = make_user("admin")
    low, high = make_user(), make_user()

    for user, points in ((low, 10), (high, 50), (high, 25)):
        response = client.post("/api/achievements", json={
            "user_id": user["user_id"], "title": "Helper", "type": "Participation", "points": points,
        }, headers=admin["headers"])
        assert response.status_code == 201

    board = client.get("/api/achievements/leaderboard", headers=low["headers"]).json()
    assert [(row["rank"], row["user_id"], row["total_points"]) for row in board] == [
        (1, high["user_id"], 75),
        (2, low["user_id"], 10),
    ]
    assert board[0]["achievements"] == 2

    grouped = client.get("/api/student/achievements", headers=high["headers"]).json()
    assert len(grouped["participation"]) == 2

    denied = client.post("/api/achievements", json={"user_id": low["user_id"], "title": "Self"}, headers=low["headers"])
    assert denied.status_code == 403
