"""
tests/test_workouts_routes.py — HTTP tests for the public workout endpoints
"""
from __future__ import annotations

from fastapi.testclient import TestClient

from tests.conftest import FakeRepository, make_record, make_settings
from wodnow.main import create_app


def build_client(repository: FakeRepository, **overrides) -> TestClient:
    return TestClient(create_app(make_settings(**overrides), repository=repository))


def test_ping(client):
    response = client.get("/api/ping")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_count_workouts(client):
    response = client.get("/api/workouts")
    assert response.status_code == 200
    assert response.json() == {"count": 1}


def test_random_workout_body_and_headers(client):
    response = client.get("/api/workouts/random")
    assert response.status_code == 200
    body = response.json()
    assert body["id"] == "w1"
    assert body["timeCapSeconds"] == 600
    assert body["equipment"] == ["Dumbbell", "Rower"]
    assert response.headers["Cache-Control"] == "public, s-maxage=30, stale-while-revalidate=120"
    assert response.headers["X-RateLimit-Limit"] == "60"
    assert response.headers["X-Content-Type-Options"] == "nosniff"


def test_equivalent_filters_share_one_query(client, fake_repository):
    first = client.get("/api/workouts/random", params={"equipment": "dumbbells"})
    second = client.get("/api/workouts/random", params={"equipment": "Dumbbell"})
    assert first.status_code == second.status_code == 200
    assert first.json() == second.json()
    assert len(fake_repository.random_calls) == 1


def test_exclude_requests_are_never_cached(client, fake_repository):
    for _ in range(2):
        response = client.get("/api/workouts/random", params={"exclude": "w9"})
        assert response.status_code == 200
        assert response.headers["Cache-Control"] == "private, no-store"
    assert len(fake_repository.random_calls) == 2


def test_invalid_time_cap_is_bad_request(client, fake_repository):
    response = client.get("/api/workouts/random", params={"timeCapMax": "abc"})
    assert response.status_code == 400
    assert response.json() == {
        "error": {"code": "BAD_REQUEST", "message": "timeCapMax must be a positive integer"}
    }
    assert fake_repository.random_calls == []


def test_no_match_is_not_found(client):
    response = client.get("/api/workouts/random", params={"exclude": "w1"})
    assert response.status_code == 404
    assert response.json()["error"]["message"] == "No workout matched the provided filters"
    # rate-limit headers survive errors raised after the gate
    assert "X-RateLimit-Remaining" in response.headers


def test_get_workout_by_id():
    repository = FakeRepository([make_record("w1"), make_record("draft", is_published=False)])
    with build_client(repository) as client:
        assert client.get("/api/workouts/w1").json()["id"] == "w1"
        missing = client.get("/api/workouts/draft")
        assert missing.status_code == 404
        assert missing.json()["error"] == {"code": "NOT_FOUND", "message": "Workout not found"}


def test_corrupt_stored_payload_is_server_error():
    record = make_record("w1").model_copy(update={"data": "{broken"})
    with build_client(FakeRepository([record])) as client:
        response = client.get("/api/workouts/random")
    assert response.status_code == 500
    assert response.json()["error"]["message"] == "Stored workout payload is invalid"


def test_storage_failure_is_generic_server_error(fake_repository):
    fake_repository.fail = True
    with build_client(fake_repository) as client:
        response = client.get("/api/workouts")
    assert response.status_code == 500
    assert response.json() == {
        "error": {"code": "INTERNAL_ERROR", "message": "Internal server error"}
    }


def test_slow_storage_times_out(fake_repository):
    fake_repository.delay = 0.3
    with build_client(fake_repository, api_public_request_timeout_ms=50) as client:
        response = client.get("/api/workouts/random")
    assert response.status_code == 503
    assert response.json() == {
        "error": {"code": "REQUEST_TIMEOUT", "message": "Request timed out. Please retry."}
    }


def test_public_rate_limit(fake_repository):
    with build_client(fake_repository, api_public_rate_limit_per_minute=2) as client:
        statuses = [client.get("/api/workouts").status_code for _ in range(3)]
        limited = client.get("/api/workouts")
    assert statuses == [200, 200, 429]
    assert limited.json()["error"]["code"] == "RATE_LIMITED"
    assert int(limited.headers["Retry-After"]) >= 1
    assert limited.headers["X-RateLimit-Remaining"] == "0"


def test_scanner_is_blocked(client, fake_repository):
    response = client.get("/api/workouts/random", headers={"User-Agent": "sqlmap/1.7"})
    assert response.status_code == 403
    assert response.json()["error"]["code"] == "BOT_BLOCKED"
    assert fake_repository.random_calls == []


def test_production_adds_hsts(fake_repository):
    with build_client(fake_repository, environment="production") as client:
        response = client.get("/api/ping")
    assert "Strict-Transport-Security" in response.headers


def test_huge_time_cap_is_served(client):
    response = client.get("/api/workouts/random", params={"timeCapMax": str(2 ** 63)})
    assert response.status_code == 200
    assert response.json()["id"] == "w1"


def test_unexpected_error_keeps_response_headers(fake_repository):
    async def crash(filters):
        raise RuntimeError("driver exploded")

    fake_repository.find_random = crash
    app = create_app(make_settings(environment="production"), repository=fake_repository)
    with TestClient(app, raise_server_exceptions=False) as client:
        response = client.get("/api/workouts/random")

    assert response.status_code == 500
    assert response.json() == {
        "error": {"code": "INTERNAL_ERROR", "message": "Internal server error"}
    }
    assert response.headers["X-RateLimit-Limit"] == "60"
    assert response.headers["X-RateLimit-Remaining"] == "59"
    assert response.headers["X-Content-Type-Options"] == "nosniff"
    assert response.headers["X-Frame-Options"] == "DENY"
    assert response.headers["Referrer-Policy"] == "strict-origin-when-cross-origin"
    assert "Strict-Transport-Security" in response.headers


def test_first_repeated_time_cap_is_used(client, fake_repository):
    rejected = client.get("/api/workouts/random?timeCapMax=abc&timeCapMax=10")
    assert rejected.status_code == 400
    assert fake_repository.random_calls == []

    accepted = client.get("/api/workouts/random?timeCapMax=900&timeCapMax=abc")
    assert accepted.status_code == 200
    assert fake_repository.random_calls[0].time_cap_max == 900
