import asyncio
import itertools

import pytest
from fastapi.testclient import TestClient
from mongomock_motor import AsyncMongoMockClient

from academy.config import Settings
from academy.core.services import build_services
from academy.main import create_app


class FakeMailer:
    def __init__(self):
        self.sent = []

    async def send_welcome(self, to, full_name):
        self.sent.append(to)
        return True


class FakeStorage:
    def __init__(self):
        self.uploads = []

    async def upload_image(self, content, public_id):
        self.uploads.append(public_id)
        return f"https://res.cloudinary.com/demo/image/upload/{public_id}.png"


class FakeTutor:
    def __init__(self):
        self.calls = []

    async def reply(self, message, model=None, max_tokens=None, temperature=None, enabled=True):
        self.calls.append({"message": message, "model": model, "enabled": enabled})
        return {"reply": f"echo: {message}", "enabled": enabled}


def make_settings(**overrides):
    values = dict(
        jwt_secret="test-secret",
        rate_limit_enabled=False,
        allow_privileged_signup=True,
        mock_upi_delay=0,
        mock_payment_delay=0,
    )
    values.update(overrides)
    return Settings(**values)


def make_services(settings):
    return build_services(
        settings,
        db=AsyncMongoMockClient()["academy_test"],
        mailer=FakeMailer(),
        tutor=FakeTutor(),
        storage=FakeStorage(),
    )


@pytest.fixture
def services():
    return make_services(make_settings())


@pytest.fixture
def db(services):
    return services.db


@pytest.fixture
def run():
    """Run a coroutine against the mock database from a sync test"""
    return asyncio.run


@pytest.fixture
def client(services):
    with TestClient(create_app(services=services)) as c:
        yield c


def auth(user):
    return {"Authorization": f"Bearer {user['token']}"}


@pytest.fixture
def make_user(client):
    counter = itertools.count()

    def _make(role="student", **extra):
        n = next(counter)
        payload = {
            "full_name": f"{role.title()} {n}",
            "email": f"{role}{n}@example.com",
            "password": "secret123",
            "role": role,
            **extra,
        }
        response = client.post("/api/auth/register", json=payload)
        assert response.status_code == 201, response.text
        user = response.json()["user"]
        user["headers"] = auth(user)
        user["password"] = payload["password"]
        return user

    return _make


@pytest.fixture
def make_course(client):
    def _make(instructor, price=0, lessons=2, title="Python Basics"):
        response = client.post(
            "/api/courses",
            json={"title": title, "description": "Learn the language", "price": price},
            headers=instructor["headers"],
        )
        assert response.status_code == 201, response.text
        course = response.json()

        lesson_ids = []
        for i in range(lessons):
            r = client.post(
                "/api/lessons",
                json={"course_id": course["course_id"], "title": f"Lesson {i + 1}", "order": i},
                headers=instructor["headers"],
            )
            assert r.status_code == 201, r.text
            lesson_ids.append(r.json()["lesson_id"])

        course["lesson_ids"] = lesson_ids
        return course

    return _make
