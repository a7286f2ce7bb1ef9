from __future__ import annotations

from fastapi.testclient import TestClient

from backoffice.models import Membership, MemberRole
from backoffice.store import Store


def test_create_organization_admits_owner_as_accepted_admin(client: TestClient, signup, store: Store) -> None:
    ann = signup("ann@x.com", "Ann")

    response = client.post("/api/organizations", json={"name": "Side Project"}, headers=ann["headers"])

    assert response.status_code == 201
    org = response.json()
    assert org["name"] == "Side Project"
    assert org["ownerId"] == ann["user"]["id"]

    memberships = store.db.query(Membership).filter(Membership.org_id == org["id"]).all()
    assert len(memberships) == 1
    assert memberships[0].user_id == ann["user"]["id"]
    assert memberships[0].role == MemberRole.ADMIN
    assert memberships[0].accepted_at is not None


def test_create_organization_requires_name(client: TestClient, signup) -> None:
    ann = signup("ann@x.com", "Ann")

    response = client.post("/api/organizations", json={"name": ""}, headers=ann["headers"])

    assert response.status_code == 400


def test_overview_reports_subscription_stats_and_role(client: TestClient, signup, join) -> None:
    ann = signup("ann@x.com", "Ann")
    bob = signup("bob@x.com", "Bob")
    join(ann, bob, "viewer")

    response = client.get(f"/api/organizations/{ann['org_id']}", headers=bob["headers"])

    assert response.status_code == 200
    body = response.json()
    assert body["organization"]["id"] == ann["org_id"]
    assert body["subscription"]["plan"] == "free"
    assert body["subscription"]["status"] == "active"
    assert body["userRole"] == "viewer"
    assert body["stats"] == {
        "members": 2,
        "operations": 0,
        "tables": 0,
        "apiKeys": 0,
        "pipelines": 0,
        "leads": 0,
    }
    assert body["limits"] == {"members": 3, "operations": 1000, "tableMappings": 1, "pipelines": 1}


def test_member_stat_matches_membership_count(client: TestClient, signup, join, store: Store) -> None:
    ann = signup("ann@x.com", "Ann")
    for index in range(2):
        join(ann, signup(f"m{index}@x.com", f"Member {index}"), "editor")

    stats = client.get(f"/api/organizations/{ann['org_id']}", headers=ann["headers"]).json()["stats"]

    count = store.db.query(Membership).filter(Membership.org_id == ann["org_id"]).count()
    assert stats["members"] == count == 3


def test_non_member_is_rejected_with_403(client: TestClient, signup) -> None:
    ann = signup("ann@x.com", "Ann")
    eve = signup("eve@x.com", "Eve")

    response = client.get(f"/api/organizations/{ann['org_id']}", headers=eve["headers"])

    assert response.status_code == 403
    assert response.json() == {"error": "Access denied to organization"}


def test_unknown_organization_looks_like_non_membership(client: TestClient, signup) -> None:
    ann = signup("ann@x.com", "Ann")

    response = client.get("/api/organizations/does-not-exist", headers=ann["headers"])

    assert response.status_code == 403


def test_health_and_root(client: TestClient) -> None:
    health = client.get("/health")
    assert health.status_code == 200
    assert health.json()["status"] == "healthy"
    assert "X-Process-Time" in health.headers

    assert client.get("/").json()["health"] == "/health"
