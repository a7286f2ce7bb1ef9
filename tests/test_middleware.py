from __future__ import annotations

from typing import Any

import pytest
import redis
from fastapi import FastAPI, Request
from fastapi.testclient import TestClient

from backoffice.core.exceptions import RateLimitExceeded
from backoffice.middleware import rate_limit
from backoffice.middleware.organization import OrganizationContextMiddleware, extract_organization_id
from backoffice.middleware.rate_limit import RateLimitMiddleware


class FakeRedis:
    def __init__(self) -> None:
        self.values: dict[str, str] = {}

    def get(self, key: str) -> Any:
        return self.values.get(key)

    def setex(self, key: str, ttl: int, value: Any) -> None:
        self.values[key] = str(value)


class BrokenRedis:
    def get(self, key: str) -> Any:
        raise redis.ConnectionError("redis is down")

    def setex(self, key: str, ttl: int, value: Any) -> None:
        raise redis.ConnectionError("redis is down")


@pytest.mark.parametrize(
    "path, expected",
    [
        ("/api/organizations/org-1/leads", "org-1"),
        ("/api/organizations/org-1", "org-1"),
        ("/api/organizations", None),
        ("/api/billing/webhook", None),
        ("/health", None),
    ],
)
def test_extract_organization_id(path: str, expected) -> None:
    assert extract_organization_id(path) == expected


def _limited_app(backend) -> FastAPI:
    app = FastAPI()

    @app.get("/api/organizations/{org_id}/ping")
    async def ping(org_id: str, request: Request):
        return {"organizationId": request.state.organization_id}

    @app.get("/api/auth/me")
    async def me():
        return {"ok": True}

    # Added last runs first: the organization context must be set before limiting
    app.add_middleware(RateLimitMiddleware, redis_client=backend)
    app.add_middleware(OrganizationContextMiddleware)
    return app


@pytest.fixture()
def limits(monkeypatch):
    monkeypatch.setattr(rate_limit.settings, "RATE_LIMIT_ENABLED", True)
    monkeypatch.setattr(rate_limit.settings, "RATE_LIMIT_BURST", 2)
    monkeypatch.setattr(rate_limit.settings, "RATE_LIMIT_PER_MINUTE", 60)


def test_buckets_are_per_organization(limits) -> None:
    backend = FakeRedis()
    client = TestClient(_limited_app(backend))

    first = client.get("/api/organizations/org-a/ping")
    second = client.get("/api/organizations/org-a/ping")
    third = client.get("/api/organizations/org-a/ping")
    other = client.get("/api/organizations/org-b/ping")

    assert first.json() == {"organizationId": "org-a"}
    assert second.status_code == 200
    assert third.status_code == 429
    assert third.json() == {"error": "Rate limit exceeded. Please try again later."}
    assert int(third.headers["Retry-After"]) >= 1
    assert third.json() == {"error": RateLimitExceeded().detail}
    assert other.status_code == 200
    assert "rate_limit:org:org-a" in backend.values
    assert "rate_limit:org:org-b" in backend.values


def test_requests_outside_organizations_are_keyed_by_address(limits) -> None:
    backend = FakeRedis()
    client = TestClient(_limited_app(backend))

    client.get("/api/auth/me")

    assert [key for key in backend.values if not key.endswith(":timestamp")] == ["rate_limit:ip:testclient"]


def test_redis_errors_let_requests_through(limits) -> None:
    client = TestClient(_limited_app(BrokenRedis()))

    responses = [client.get("/api/organizations/org-a/ping").status_code for _ in range(5)]

    assert responses == [200] * 5


def test_disabled_limiter_never_touches_redis(monkeypatch) -> None:
    monkeypatch.setattr(rate_limit.settings, "RATE_LIMIT_ENABLED", False)
    client = TestClient(_limited_app(BrokenRedis()))

    assert client.get("/api/organizations/org-a/ping").status_code == 200
