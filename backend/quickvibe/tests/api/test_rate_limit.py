from types import SimpleNamespace
from unittest.mock import patch

import pytest
from fastapi import HTTPException

from quickvibe.core import rate_limit
from quickvibe.core.config import settings
from quickvibe.core.rate_limit import (
    UNLIMITED,
    auth_limiter,
    enforce_rate_limit,
    get_rate_limit_identifier,
    get_storage,
    storage_status,
)


def _request(headers=None, host="10.0.0.1"):
    return SimpleNamespace(
        headers=headers or {},
        client=SimpleNamespace(host=host),
        method="POST",
        url=SimpleNamespace(path="/api/v1/login/access-token"),
    )


@pytest.fixture
def memory_storage():
    get_storage.cache_clear()
    with patch.object(rate_limit.settings, "RATE_LIMIT_STORAGE_URI", "memory://"):
        yield
    get_storage.cache_clear()


def test_identifier_prefers_user_then_forwarded_ip():
    assert get_rate_limit_identifier("abc", _request()) == "user:abc"
    assert get_rate_limit_identifier(None, _request({"x-forwarded-for": "1.2.3.4, 5.6.7.8"})) == "ip:1.2.3.4"
    assert get_rate_limit_identifier(None, _request({"x-real-ip": "9.9.9.9"})) == "ip:9.9.9.9"
    assert get_rate_limit_identifier(None, _request()) == "ip:10.0.0.1"
    assert get_rate_limit_identifier() == "ip:anonymous"


def test_disabled_without_storage():
    with patch.object(rate_limit.settings, "RATE_LIMIT_STORAGE_URI", None):
        result = rate_limit.rate_limit(auth_limiter, "user:x")
        assert result.success
        assert result.limit == result.remaining == UNLIMITED
        assert storage_status() == {"status": "not_configured"}


def test_auth_limiter_blocks_sixth_attempt(memory_storage):
    request = _request(host="192.168.1.20")
    for _ in range(5):
        enforce_rate_limit(request, auth_limiter)

    with pytest.raises(HTTPException) as exc_info:
        enforce_rate_limit(request, auth_limiter)

    exc = exc_info.value
    assert exc.status_code == 429
    assert exc.detail["error"] == "Rate limit exceeded"
    assert exc.detail["limit"] == 5
    assert exc.headers["X-RateLimit-Remaining"] == "0"
    assert int(exc.headers["Retry-After"]) >= 0


def test_limits_are_per_identifier(memory_storage):
    for _ in range(5):
        enforce_rate_limit(_request(host="172.16.0.1"), auth_limiter)
    assert enforce_rate_limit(_request(host="172.16.0.2"), auth_limiter).success
    assert storage_status() == {"status": "healthy"}


def test_login_route_returns_429_with_headers(client, memory_storage):
    url = f"{settings.API_V1_STR}/login/access-token"
    form = {"username": "owner@example.com", "password": "wrong"}
    for _ in range(5):
        assert client.post(url, data=form).status_code == 400

    r = client.post(url, data=form)
    assert r.status_code == 429
    assert r.json()["detail"]["error"] == "Rate limit exceeded"
    assert r.headers["X-RateLimit-Limit"] == "5"
    assert r.headers["X-RateLimit-Remaining"] == "0"
    assert "X-RateLimit-Reset" in r.headers
    assert int(r.headers["Retry-After"]) >= 0
