# tests/test_auth_rate_limit.py
"""
Tests for API key auth and rate limiting.

These tests set MOCK_AUTH off and configure a test API key with a very small
rate limit, patching the auth module directly so the rest of the suite keeps
running with auth bypassed.
"""
import pytest
from fastapi.testclient import TestClient

from promptcraft import auth as authmod
from promptcraft.app import app
from promptcraft.auth import InMemoryFixedWindowLimiter, load_api_keys

HEADERS = {"x-api-key": "test-key-123"}


@pytest.fixture
def client(db_url):
    return TestClient(app, raise_server_exceptions=False)


@pytest.fixture(autouse=True)
def setup_auth(monkeypatch):
    """Configure auth for testing: disable mock, set a test key, small rate limit."""
    monkeypatch.setattr(authmod, "MOCK_AUTH", False)
    monkeypatch.setattr(authmod, "API_KEYS", {"test-key-123"})

    limiter = InMemoryFixedWindowLimiter(limit_per_minute=3)
    monkeypatch.setattr(authmod, "_rate_limiter", limiter)
    yield


def test_missing_api_key_rejected(client):
    r = client.get("/api/saved")
    assert r.status_code == 401
    assert r.json() == {"error": "Missing or invalid API key"}


def test_wrong_api_key_rejected(client):
    r = client.get("/api/saved", headers={"x-api-key": "wrong-key"})
    assert r.status_code == 401


def test_valid_key_accepted(client):
    r = client.get("/api/saved", headers=HEADERS)
    assert r.status_code == 200
    assert r.json() == []


def test_rate_limit_enforced(client):
    # 3 allowed, 4th should be 429
    for i in range(3):
        r = client.get("/api/history", headers=HEADERS)
        assert r.status_code == 200, f"Request {i+1} should succeed"

    r4 = client.get("/api/history", headers=HEADERS)
    assert r4.status_code == 429
    assert r4.json() == {"error": "Rate limit exceeded"}
    assert r4.headers.get("Retry-After") == "60"


def test_rate_limit_resets_in_new_window(client):
    """Rate limit resets after crossing the minute window boundary."""
    for _ in range(3):
        client.get("/api/history", headers=HEADERS)
    assert client.get("/api/history", headers=HEADERS).status_code == 429

    # Force the stored window to an old minute so the next request sees a new window
    limiter = authmod._rate_limiter
    with limiter._lock:
        for key in limiter._store:
            old_window, count = limiter._store[key]
            limiter._store[key] = (old_window - 2, count)

    assert client.get("/api/history", headers=HEADERS).status_code == 200


def test_rejected_requests_do_not_consume_quota(client):
    for _ in range(5):
        client.get("/api/history", headers={"x-api-key": "wrong-key"})
    assert client.get("/api/history", headers=HEADERS).status_code == 200


def test_health_not_rate_limited(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok"}


def test_metrics_not_rate_limited(client):
    r = client.get("/metrics")
    assert r.status_code in (200, 404)  # 200 if prometheus enabled, 404 if not


def test_load_api_keys_merges_file(tmp_path):
    keys_file = tmp_path / "keys.txt"
    keys_file.write_text("file-key-1\n\n  file-key-2  \n")
    keys = load_api_keys([" inline-key ", ""], str(keys_file))
    assert keys == {"inline-key", "file-key-1", "file-key-2"}


def test_load_api_keys_missing_file():
    assert load_api_keys(["k"], "/nonexistent/keys.txt") == {"k"}
