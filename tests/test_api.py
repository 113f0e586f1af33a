"""Tests for the FastAPI surface in gazette.api.server."""

import json
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from conftest import FakeClient
from gazette.api.server import create_app
from gazette.config import RateLimitConfig
from gazette.pipeline import create_cache
from gazette.services.ratelimit import RateLimiter
from gazette.storage import SubscriberList

QUESTIONS = [
    "Will the senate confirm the nominee?",
    "Will Russia and Ukraine agree to a ceasefire?",
    "Will openai release a new model?",
    "Will nasa land on mars?",
    "Will the Fed announce a rate cut?",
]


def _write_markets(path, count: int = 25) -> None:
    end = datetime.now(timezone.utc) + timedelta(days=20)
    markets = [
        {
            "id": f"api-{i}",
            "question": f"{QUESTIONS[i % len(QUESTIONS)]} ({i})",
            "endDate": end.isoformat(),
            "yesPrice": 0.3 + (i % 5) * 0.1,
            "noPrice": 0.7 - (i % 5) * 0.1,
            "volume24hr": 10_000 + i * 250,
            "priceChange24h": float(i % 7),
            "category": "SPORTS",
        }
        for i in range(count)
    ]
    path.write_text(json.dumps({"markets": markets}))


@pytest.fixture
def app_client(settings):
    def _build(**overrides) -> TestClient:
        overrides.setdefault("cache", create_cache(settings))
        overrides.setdefault("client", FakeClient())
        overrides.setdefault("subscribers", SubscriberList(settings.data_dir / "subscribers.json"))
        return TestClient(create_app(settings, **overrides))

    return _build


def test_health(app_client):
    response = app_client().get("/api/health")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_edition_generated_then_cached(settings, app_client):
    _write_markets(settings.data_dir / "markets.json")
    client = app_client()

    first = client.get("/api/edition")
    second = client.get("/api/edition")

    assert first.status_code == 200
    body = first.json()
    assert body["source"] == "generated"
    assert body["editorial_note"] == "Tomorrow is already priced in."
    assert len(body["stories"]) > 0
    assert [s["layout"] for s in body["stories"]].count("LEAD") == 1
    assert all(s["headline"] and s["content"] and s["dateline"] for s in body["stories"])

    assert second.json()["source"] == "cache"
    assert second.json()["key"] == body["key"]


def test_edition_without_markets_is_503(settings, app_client):
    (settings.data_dir / "markets.json").write_text("[]")

    response = app_client().get("/api/edition")

    assert response.status_code == 503
    assert response.json()["error"] == "No markets available"


def test_edition_without_api_key_is_500(settings, app_client):
    _write_markets(settings.data_dir / "markets.json")
    no_key = settings.model_copy(update={"gemini_api_key": ""})

    response = TestClient(create_app(no_key, cache=create_cache(no_key))).get("/api/edition")

    assert response.status_code == 500
    assert response.json() == {"error": "Generation service not configured"}


def test_subscribe_validates_email(app_client):
    client = app_client()

    assert client.post("/api/subscribe", json={"email": "not-an-email"}).status_code == 400
    assert client.post("/api/subscribe", json={}).json() == {"error": "Invalid email address"}

    too_long = client.post("/api/subscribe", json={"email": "a" * 250 + "@example.com"})
    assert too_long.status_code == 400
    assert too_long.json() == {"error": "Email address too long"}


def test_subscribe_is_idempotent(app_client):
    client = app_client()

    first = client.post("/api/subscribe", json={"email": "reader@example.com"})
    again = client.post("/api/subscribe", json={"email": "READER@example.com"})

    assert first.json() == {"message": "Subscribed successfully"}
    assert again.json() == {"message": "Already subscribed"}


def test_subscribe_is_rate_limited_per_client_ip(app_client):
    limiter = RateLimiter(RateLimitConfig(window_seconds=900, max_requests=2))
    client = app_client(limiter=limiter)
    headers = {"x-forwarded-for": "203.0.113.7, 10.0.0.1"}

    for i in range(2):
        ok = client.post("/api/subscribe", json={"email": f"r{i}@example.com"}, headers=headers)
        assert ok.status_code == 200

    limited = client.post("/api/subscribe", json={"email": "r3@example.com"}, headers=headers)
    assert limited.status_code == 429
    assert limited.json() == {"error": "Too many requests. Please try again later."}
    assert 0 < int(limited.headers["Retry-After"]) <= 900

    other = client.post(
        "/api/subscribe", json={"email": "r3@example.com"}, headers={"x-real-ip": "198.51.100.2"}
    )
    assert other.status_code == 200
