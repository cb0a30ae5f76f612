from fastapi import Depends, FastAPI, Request
from fastapi.testclient import TestClient

from swaadgharka.core.errors import AppError, RateLimited
from swaadgharka.core.metrics import InMemoryRequestMetrics
from swaadgharka.core.rate_limiter import InMemoryRateLimiterService
from swaadgharka.deps import rate_limit, reset_rate_limits
from swaadgharka.main import app_error_handler
from swaadgharka.middleware.rate_limit import ClientRateLimitMiddleware, client_address


def test_limiter_isolates_subjects_and_actions():
    limiter = InMemoryRateLimiterService(limit=2, window_seconds=60)

    assert limiter.check(subject="ip:1", action="login").allowed is True
    assert limiter.check(subject="ip:1", action="login").remaining == 0
    blocked = limiter.check(subject="ip:1", action="login")
    assert blocked.allowed is False
    assert 1 <= blocked.retry_after_seconds <= 60

    assert limiter.check(subject="ip:2", action="login").allowed is True
    assert limiter.check(subject="ip:1", action="order_create").allowed is True

    limiter.reset()
    assert limiter.check(subject="ip:1", action="login").allowed is True


def test_rate_limited_envelope_carries_retry_after():
    error = RateLimited(retry_after=42)

    assert error.status_code == 429
    assert error.headers == {"Retry-After": "42"}
    assert error.to_dict() == {
        "success": False,
        "message": "Too many requests, please try again later",
        "code": "rate_limited",
        "retry_after": 42,
    }


def test_client_middleware_returns_429_envelope():
    app = FastAPI()
    app.add_middleware(
        ClientRateLimitMiddleware,
        rate_limiter=InMemoryRateLimiterService(limit=2, window_seconds=60),
    )

    @app.get("/api/ping")
    def ping():
        return {"pong": True}

    @app.get("/health")
    def health():
        return {"status": "healthy"}

    client = TestClient(app)
    first = client.get("/api/ping")
    assert first.status_code == 200
    assert first.headers["X-RateLimit-Limit"] == "2"
    assert first.headers["X-RateLimit-Remaining"] == "1"
    assert client.get("/api/ping").status_code == 200

    blocked = client.get("/api/ping")
    assert blocked.status_code == 429
    assert blocked.json()["code"] == "rate_limited"
    assert blocked.json()["success"] is False
    assert int(blocked.headers["Retry-After"]) >= 1

    # a direct client cannot pick a fresh address by sending X-Forwarded-For
    assert client.get("/api/ping", headers={"X-Forwarded-For": "10.0.0.9"}).status_code == 429
    assert client.get("/health").status_code == 200


def test_forwarded_address_is_used_only_behind_a_trusted_proxy():
    app = FastAPI()
    app.add_middleware(
        ClientRateLimitMiddleware,
        rate_limiter=InMemoryRateLimiterService(limit=1, window_seconds=60),
        trusted_proxies={"testclient"},
    )

    @app.get("/api/ping")
    def ping():
        return {"pong": True}

    client = TestClient(app)
    assert client.get("/api/ping", headers={"X-Forwarded-For": "10.0.0.8"}).status_code == 200
    assert client.get("/api/ping", headers={"X-Forwarded-For": "10.0.0.8"}).status_code == 429
    assert client.get("/api/ping", headers={"X-Forwarded-For": "10.0.0.9"}).status_code == 200


def _request(peer, forwarded=None):
    headers = [(b"x-forwarded-for", forwarded.encode())] if forwarded else []
    return Request({"type": "http", "method": "GET", "path": "/", "headers": headers, "client": (peer, 5000)})


def test_client_address_skips_trusted_hops():
    proxies = frozenset({"10.1.0.1", "10.1.0.2"})

    assert client_address(_request("203.0.113.7", "198.51.100.1")) == "203.0.113.7"
    assert client_address(_request("203.0.113.7", "198.51.100.1"), proxies) == "203.0.113.7"
    assert client_address(_request("10.1.0.1", "198.51.100.1, 10.1.0.2"), proxies) == "198.51.100.1"
    assert client_address(_request("10.1.0.1", "6.6.6.6, 198.51.100.1"), proxies) == "198.51.100.1"
    assert client_address(_request("10.1.0.1"), proxies) == "10.1.0.1"


def test_action_limit_dependency():
    reset_rate_limits()
    app = FastAPI()
    app.add_exception_handler(AppError, app_error_handler)

    @app.post("/api/things", dependencies=[Depends(rate_limit("test_things", limit=1, window_seconds=60))])
    def create_thing():
        return {"ok": True}

    client = TestClient(app)
    assert client.post("/api/things").status_code == 200
    response = client.post("/api/things")
    assert response.status_code == 429
    assert response.json()["retry_after"] >= 1

    reset_rate_limits()
    assert client.post("/api/things").status_code == 200


def test_request_metrics_snapshot():
    metrics = InMemoryRequestMetrics()
    metrics.observe("/api/orders/{order_id}", "GET", 200, 10.0)
    metrics.observe("/api/orders/{order_id}", "GET", 404, 30.0)

    snapshot = metrics.snapshot()

    assert snapshot["GET /api/orders/{order_id}"] == {
        "total_requests": 2,
        "total_duration_ms": 40.0,
        "avg_duration_ms": 20.0,
        "max_duration_ms": 30.0,
        "error_count": 1,
    }
    assert metrics.status_breakdown() == {"200": 1, "404": 1}

    metrics.reset()
    assert metrics.snapshot() == {}
