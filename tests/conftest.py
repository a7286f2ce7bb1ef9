from __future__ import annotations

import os

# Settings are read once at import time, so configure before importing the app
os.environ["DATABASE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ["ENVIRONMENT"] = "test"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["STRIPE_SECRET_KEY"] = "sk_test_backoffice"
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test_backoffice"
os.environ.pop("AIRTABLE_API_KEY", None)

from collections.abc import Callable, Generator
from typing import Any

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

import backoffice.models  # noqa: F401
from backoffice.api.deps import get_airtable_client_factory, get_notifier, get_stripe_client
from backoffice.database import Base, get_db
from backoffice.main import app
from backoffice.store import Store


class RecordingNotifier:
    def __init__(self) -> None:
        self.sent: list[dict[str, Any]] = []

    def notify_mention(self, author, mentioned, lead, body) -> None:
        self.sent.append({"author_id": author.id, "mentioned_id": mentioned.id, "lead_id": lead.id, "body": body})


class FakeStripeClient:
    def __init__(self) -> None:
        self.customers: list[dict[str, Any]] = []
        self.checkout_sessions: list[dict[str, Any]] = []
        self.portal_sessions: list[dict[str, Any]] = []

    async def create_customer(self, metadata, email=None, name=None) -> str:
        customer_id = f"cus_{len(self.customers) + 1}"
        self.customers.append({"id": customer_id, "metadata": metadata, "email": email, "name": name})
        return customer_id

    async def create_checkout_session(self, *, customer_id, price_id, success_url, cancel_url, metadata) -> str:
        self.checkout_sessions.append({
            "customer_id": customer_id,
            "price_id": price_id,
            "success_url": success_url,
            "cancel_url": cancel_url,
            "metadata": metadata,
        })
        return f"https://checkout.example/{len(self.checkout_sessions)}"

    async def create_portal_session(self, *, customer_id, return_url) -> str:
        self.portal_sessions.append({"customer_id": customer_id, "return_url": return_url})
        return "https://portal.example/session"


class FakeAirtableClient:
    """In-memory base: table name -> list of records ({"id", "fields"})."""

    def __init__(self, api_key: str, tables: dict[str, list[dict[str, Any]]]) -> None:
        self.api_key = api_key
        self.tables = tables

    async def list_tables(self, base_id: str) -> list[dict[str, Any]]:
        return [
            {"id": "tblLeads", "name": "Leads", "fields": ["Lead ID", "Name", "Email", "Source", "Notes", "Stage"]},
            {"id": "tblStages", "name": "Stages", "fields": ["Stage ID", "Name", "Pipeline", "Order"]},
        ]

    async def list_records(self, base_id: str, table: str) -> list[dict[str, Any]]:
        return list(self.tables.setdefault(table, []))

    async def upsert_records(self, base_id, table, rows, merge_on):
        records = self.tables.setdefault(table, [])
        stored = []
        for fields in rows:
            key = tuple(fields.get(name) for name in merge_on)
            existing = next(
                (r for r in records if tuple(r["fields"].get(name) for name in merge_on) == key),
                None,
            )
            if existing is None:
                existing = {"id": f"rec{table}{len(records) + 1}", "fields": {}}
                records.append(existing)
            existing["fields"].update(fields)
            stored.append(existing)
        return stored


class AirtableBackend:
    """Shared storage behind every FakeAirtableClient the factory hands out."""

    def __init__(self) -> None:
        self.tables: dict[str, list[dict[str, Any]]] = {}
        self.keys_used: list[str] = []

    def factory(self, api_key: str) -> FakeAirtableClient:
        self.keys_used.append(api_key)
        return FakeAirtableClient(api_key, self.tables)


@pytest.fixture()
def db_session() -> Generator[Session, None, None]:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def store(db_session: Session) -> Store:
    return Store(db_session)


@pytest.fixture()
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture()
def stripe_client() -> FakeStripeClient:
    return FakeStripeClient()


@pytest.fixture()
def airtable() -> AirtableBackend:
    return AirtableBackend()


@pytest.fixture()
def client(
    db_session: Session,
    notifier: RecordingNotifier,
    stripe_client: FakeStripeClient,
    airtable: AirtableBackend,
) -> Generator[TestClient, None, None]:
    def override_get_db() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notifier] = lambda: notifier
    app.dependency_overrides[get_stripe_client] = lambda: stripe_client
    app.dependency_overrides[get_airtable_client_factory] = lambda: airtable.factory
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture()
def signup(client: TestClient) -> Callable[..., dict[str, Any]]:
    """
    Register a user and return {"user", "headers", "org_id"}.

    The session cookie is turned into a Bearer header so several users can
    share one client.
    """

    def _signup(email: str, name: str, password: str = "pw") -> dict[str, Any]:
        response = client.post("/api/auth/signup", json={"email": email, "password": password, "name": name})
        assert response.status_code == 201, response.text
        token = response.cookies["session"]
        client.cookies.clear()
        headers = {"Authorization": f"Bearer {token}"}

        me = client.get("/api/auth/me", headers=headers).json()
        org_id = me["organizations"][0]["organization"]["id"] if me["organizations"] else None
        return {"user": response.json()["user"], "headers": headers, "org_id": org_id}

    return _signup


@pytest.fixture()
def join(client: TestClient) -> Callable[..., None]:
    """Invite ``member`` into ``owner``'s organization with ``role``."""

    def _join(owner: dict[str, Any], member: dict[str, Any], role: str) -> None:
        response = client.post(
            f"/api/organizations/{owner['org_id']}/members",
            json={"email": member["user"]["email"], "role": role},
            headers=owner["headers"],
        )
        assert response.status_code == 201, response.text

    return _join


@pytest.fixture()
def board(client: TestClient) -> Callable[..., dict[str, Any]]:
    """Create a pipeline with two stages; returns their ids."""

    def _board(owner: dict[str, Any], name: str = "Sales") -> dict[str, Any]:
        org_id = owner["org_id"]
        pipeline = client.post(
            f"/api/organizations/{org_id}/pipelines", json={"name": name}, headers=owner["headers"]
        )
        assert pipeline.status_code == 201, pipeline.text
        pipeline_id = pipeline.json()["id"]
        stages = []
        for stage_name in ("New", "Won"):
            stage = client.post(
                f"/api/organizations/{org_id}/stages",
                json={"pipelineId": pipeline_id, "name": stage_name},
                headers=owner["headers"],
            )
            assert stage.status_code == 201, stage.text
            stages.append(stage.json()["id"])
        return {"pipeline_id": pipeline_id, "stage_ids": stages}

    return _board
