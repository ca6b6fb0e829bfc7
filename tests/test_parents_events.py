from datetime import datetime, timedelta


def test_link_and_report(client, make_user, make_course):
    parent = make_user("parent")
    student = make_user()
    instructor = make_user("instructor")
    course = make_course(instructor, lessons=2)

    client.post(f"/api/courses/{course['course_id']}/enroll", headers=student["headers"])
    client.post(
        f"/api/student/courses/{course['course_id']}/lessons/{course['lesson_ids'][0]}/complete",
        json={"hours_spent": 3},
        headers=student["headers"],
    )

    linked = client.post("/api/parents/link", json={"student_email": student["email"]}, headers=parent["headers"])
    assert linked.status_code == 201
    assert linked.json()["student"]["user_id"] == student["user_id"]

    again = client.post("/api/parents/link", json={"student_id": student["user_id"]}, headers=parent["headers"])
    assert again.status_code == 400
    assert again.json()["message"] == "Student already linked"

    children = client.get("/api/parents/students", headers=parent["headers"]).json()["children"]
    assert children[0]["avg_progress"] == 50
    assert children[0]["enrolled_count"] == 1

    report = client.get(f"/api/parents/student/{student['user_id']}/report", headers=parent["headers"]).json()
    assert report["report"]["total_hours_learned"] == 3
    assert report["report"]["enrolled_courses"][0]["course_title"] == course["title"]
    assert report["report"]["enrolled_courses"][0]["completed_lessons_count"] == 1


def test_link_validation(client, make_user):
    parent = make_user("parent")
    instructor = make_user("instructor")

    assert client.post("/api/parents/link", json={}, headers=parent["headers"]).status_code == 400
    missing = client.post("/api/parents/link", json={"student_id": "USER_NOPE"}, headers=parent["headers"])
    assert missing.status_code == 404

    wrong_role = client.post("/api/parents/link", json={"student_id": instructor["user_id"]}, headers=parent["headers"])
    assert wrong_role.status_code == 400
    assert wrong_role.json()["message"] == "Can only link users with role student"


def test_report_requires_link(client, make_user):
    parent = make_user("parent")
    student = make_user()

    response = client.get(f"/api/parents/student/{student['user_id']}/report", headers=parent["headers"])
    assert response.status_code == 403
    assert response.json()["message"] == "Student not linked to this parent"


def test_unlink(client, make_user):
    parent = make_user("parent")
    student = make_user()
    client.post("/api/parents/link", json={"student_id": student["user_id"]}, headers=parent["headers"])

    assert client.delete(f"/api/parents/child/{student['user_id']}", headers=parent["headers"]).status_code == 200
    assert client.get("/api/parents/students", headers=parent["headers"]).json() == {"children": []}
    assert client.delete(f"/api/parents/child/{student['user_id']}", headers=parent["headers"]).status_code == 404


# ==================== EVENTS ====================

def create_event(client, instructor, days_ahead=2, **extra):
    payload = {
        "title": "Live Q&A",
        "date": (datetime.utcnow() + timedelta(days=days_ahead)).isoformat(),
        "start_time": "18:00",
        "end_time": "19:00",
        "location": "Zoom",
        **extra,
    }
    response = client.post("/api/events", json=payload, headers=instructor["headers"])
    assert response.status_code == 201, response.text
    return response.json()


def test_event_capacity(client, make_user):
    instructor = make_user("instructor")
    first, second = make_user(), make_user()
    event = create_event(client, instructor, max_students=1)
    assert event["status"] == "Scheduled"

    url = f"/api/events/{event['event_id']}/enroll"
    assert client.post(url, headers=first["headers"]).json() == {"message": "Successfully enrolled in event"}

    again = client.post(url, headers=first["headers"])
    assert again.status_code == 400
    assert again.json()["message"] == "Already enrolled in this event"

    full = client.post(url, headers=second["headers"])
    assert full.status_code == 400
    assert full.json()["message"] == "Event is full"

    mine = client.get("/api/events/my", headers=first["headers"]).json()
    assert [e["event_id"] for e in mine] == [event["event_id"]]


def test_upcoming_events(client, make_user):
    instructor = make_user("instructor")
    later = create_event(client, instructor, days_ahead=5, title="Later")
    sooner = create_event(client, instructor, days_ahead=1, title="Sooner")
    create_event(client, instructor, days_ahead=-1, title="Past")

    upcoming = client.get("/api/events/upcoming", headers=instructor["headers"]).json()
    assert [e["event_id"] for e in upcoming] == [sooner["event_id"], later["event_id"]]


def test_event_owner_checks(client, make_user):
    instructor = make_user("instructor")
    other = make_user("instructor")
    event = create_event(client, instructor)

    response = client.put(f"/api/events/{event['event_id']}", json={"title": "Mine now"}, headers=other["headers"])
    assert response.status_code == 403

    response = client.put(f"/api/events/{event['event_id']}", json={"status": "Cancelled"}, headers=instructor["headers"])
    assert response.json()["status"] == "Cancelled"
