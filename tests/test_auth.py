from datetime import datetime, timedelta

from academy.auth.service import calculate_streak
from conftest import auth


def test_register_returns_token_and_sends_welcome(client, services):
    response = client.post("/api/auth/register", json={
        "full_name": "Asha Rao",
        "email": "Asha@Example.com",
        "password": "secret123",
    })

    assert response.status_code == 201
    body = response.json()
    assert body["message"] == "Account successfully created"
    assert body["user"]["email"] == "asha@example.com"
    assert body["user"]["role"] == "student"
    assert body["user"]["token"]
    assert services.mailer.sent == ["asha@example.com"]


def test_register_duplicate_email(client, make_user, run, db):
    user = make_user()
    response = client.post("/api/auth/register", json={
        "full_name": "Someone Else",
        "email": user["email"],
        "password": "secret123",
    })

    assert response.status_code == 400
    assert response.json()["message"] == "User already exists"
    assert run(db.users.count_documents({"email": user["email"]})) == 1


def test_register_short_password_is_validation_error(client):
    response = client.post("/api/auth/register", json={
        "full_name": "Short", "email": "short@example.com", "password": "123",
    })
    assert response.status_code == 400
    assert response.json()["message"] == "Validation failed"


def test_privileged_signup_refused_by_default(client, services):
    services.settings.allow_privileged_signup = False
    response = client.post("/api/auth/register", json={
        "full_name": "Mallory", "email": "mallory@example.com", "password": "secret123", "role": "admin",
    })
    assert response.status_code == 403


def test_login_rejects_bad_password(client, make_user):
    user = make_user()
    response = client.post("/api/auth/login", json={"email": user["email"], "password": "wrong-one"})

    assert response.status_code == 401
    assert response.json() == {"message": "Invalid email or password"}


def test_login_unknown_email(client):
    response = client.post("/api/auth/login", json={"email": "ghost@example.com", "password": "secret123"})
    assert response.status_code == 401


def test_first_login_starts_streak_at_zero(client, make_user):
    user = make_user()
    response = client.post("/api/auth/login", json={"email": user["email"], "password": user["password"]})

    assert response.status_code == 200
    assert response.json()["user"]["streak_days"] == 0
    assert response.json()["user"]["token"]


def test_profile_never_exposes_password(client, make_user):
    user = make_user()
    response = client.get("/api/auth/profile", headers=user["headers"])

    assert response.status_code == 200
    assert "password" not in response.json()
    assert "_id" not in response.json()


def test_profile_update_checks_email_uniqueness(client, make_user):
    first, second = make_user(), make_user()
    response = client.put("/api/auth/profile", json={"email": first["email"]}, headers=second["headers"])
    assert response.status_code == 400

    response = client.put("/api/auth/profile", json={"bio": "Hello"}, headers=second["headers"])
    assert response.json()["bio"] == "Hello"


def test_missing_and_bad_tokens(client):
    assert client.get("/api/auth/profile").json() == {"message": "No token provided"}

    response = client.get("/api/auth/profile", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401
    assert response.json()["message"] == "Not authorized, token failed"


def test_deleted_user_token_is_rejected(client, make_user, run, db):
    user = make_user()
    run(db.users.delete_one({"user_id": user["user_id"]}))

    response = client.get("/api/auth/profile", headers=auth(user))
    assert response.status_code == 401
    assert response.json()["message"] == "User not found"


def test_role_is_read_from_storage(client, make_user, run, db):
    user = make_user()
    denied = client.post("/api/courses", json={"title": "T", "description": "D"}, headers=user["headers"])
    assert denied.status_code == 403
    assert denied.json()["message"] == "User role 'student' is not authorized to access this route"

    run(db.users.update_one({"user_id": user["user_id"]}, {"$set": {"role": "instructor"}}))

    allowed = client.post("/api/courses", json={"title": "T", "description": "D"}, headers=user["headers"])
    assert allowed.status_code == 201


def test_users_alias_routes(client, make_user):
    user = make_user()
    login = client.post("/api/users/login", json={"email": user["email"], "password": user["password"]})
    assert login.status_code == 200

    streak = client.get("/api/users/streak", headers=user["headers"])
    assert streak.json()["streak_days"] == 0
    assert streak.json()["last_login_date"] is not None


def test_upload_photo_saves_avatar(client, make_user, services):
    user = make_user()
    response = client.post(
        "/api/users/upload-photo",
        files={"profile_photo": ("me.png", b"\x89PNG\r\n\x1a\n", "image/png")},
        headers=user["headers"],
    )

    assert response.status_code == 200
    assert response.json()["avatar"].startswith("https://res.cloudinary.com/")
    assert services.storage.uploads == [f"avatar_{user['user_id']}"]

    missing = client.post("/api/users/upload-photo", headers=user["headers"])
    assert missing.status_code == 400


# ==================== STREAK ====================

def test_streak_rules():
    now = datetime(2024, 5, 10, 9, 0)

    assert calculate_streak(None, 0, now) == 0
    assert calculate_streak(now - timedelta(hours=2), 4, now) == 4
    assert calculate_streak(now - timedelta(days=1), 4, now) == 5
    assert calculate_streak(now - timedelta(days=3), 4, now) == 1
