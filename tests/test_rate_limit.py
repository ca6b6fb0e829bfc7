from fastapi.testclient import TestClient

from academy.core.rate_limit import FixedWindowLimiter
from academy.main import create_app
from conftest import make_services, make_settings


def test_fixed_window():
    limiter = FixedWindowLimiter("test", 2, 10, "slow down")

    assert limiter.hit("k", now=0)
    assert limiter.hit("k", now=1)
    assert not limiter.hit("k", now=2)
    assert limiter.retry_after("k", now=2) == 8

    # other keys have their own window
    assert limiter.hit("other", now=2)

    assert limiter.hit("k", now=11)


def test_disabled_limiter_always_passes():
    limiter = FixedWindowLimiter("test", 1, 10, "slow down", enabled=False)
    assert all(limiter.hit("k", now=0) for _ in range(5))


def test_login_limit_returns_429():
    services = make_services(make_settings(rate_limit_enabled=True, login_limit=(2, 900)))

    with TestClient(create_app(services=services)) as client:
        payload = {"email": "nobody@example.com", "password": "whatever1"}
        assert client.post("/api/auth/login", json=payload).status_code == 401
        assert client.post("/api/auth/login", json=payload).status_code == 401

        blocked = client.post("/api/auth/login", json=payload)
        assert blocked.status_code == 429
        assert blocked.json() == {"message": "Too many login attempts, please try again later"}
        assert int(blocked.headers["retry-after"]) > 0
