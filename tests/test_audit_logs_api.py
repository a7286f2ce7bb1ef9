from __future__ import annotations

import logging

from fastapi.testclient import TestClient
from sqlalchemy.exc import SQLAlchemyError

from backoffice.api.endpoints import audit_logs
from backoffice.store import Store


def _url(org_id: str, path: str) -> str:
    return f"/api/organizations/{org_id}/{path}"


def test_mutations_are_audited_newest_first(client: TestClient, signup) -> None:
    ann = signup("ann@x.com", "Ann")
    client.post(_url(ann["org_id"], "api-keys"), json={"name": "CI"}, headers=ann["headers"])
    client.put(_url(ann["org_id"], "settings/timezone"), json={"value": "UTC"}, headers=ann["headers"])

    logs = client.get(_url(ann["org_id"], "audit-logs"), headers=ann["headers"]).json()

    assert [(log["action"], log["entity"]) for log in logs] == [
        ("update", "setting"),
        ("create", "api_key"),
        ("create", "organization"),
    ]
    assert all(log["actorId"] == ann["user"]["id"] for log in logs)
    assert logs[0]["metadata"] == {"key": "timezone", "value": "UTC"}
    assert [log["id"] for log in logs] == sorted((log["id"] for log in logs), reverse=True)


def test_limit_parameter(client: TestClient, signup) -> None:
    ann = signup("ann@x.com", "Ann")
    for index in range(3):
        client.put(_url(ann["org_id"], f"settings/k{index}"), json={"value": index}, headers=ann["headers"])

    logs = client.get(_url(ann["org_id"], "audit-logs"), params={"limit": 2}, headers=ann["headers"]).json()

    assert len(logs) == 2
    assert logs[0]["entityId"] == "k2"


def test_oversized_limit_is_clamped(client: TestClient, signup, monkeypatch) -> None:
    ann = signup("ann@x.com", "Ann")
    for index in range(3):
        client.put(_url(ann["org_id"], f"settings/k{index}"), json={"value": index}, headers=ann["headers"])
    monkeypatch.setattr(audit_logs.settings, "AUDIT_LOG_MAX_LIMIT", 2)

    response = client.get(_url(ann["org_id"], "audit-logs"), params={"limit": 1000}, headers=ann["headers"])

    assert response.status_code == 200
    assert len(response.json()) == 2


def test_large_limit_is_accepted(client: TestClient, signup) -> None:
    ann = signup("ann@x.com", "Ann")

    response = client.get(_url(ann["org_id"], "audit-logs"), params={"limit": 1000}, headers=ann["headers"])

    assert response.status_code == 200
    assert len(response.json()) == 1


def test_audit_logs_are_scoped_to_organization(client: TestClient, signup) -> None:
    ann = signup("ann@x.com", "Ann")
    bob = signup("bob@x.com", "Bob")
    client.put(_url(ann["org_id"], "settings/timezone"), json={"value": "UTC"}, headers=ann["headers"])

    logs = client.get(_url(bob["org_id"], "audit-logs"), headers=bob["headers"]).json()

    assert [log["entity"] for log in logs] == ["organization"]


def test_failed_audit_write_keeps_mutation_and_logs_error(
    client: TestClient, signup, store: Store, monkeypatch, caplog
) -> None:
    ann = signup("ann@x.com", "Ann")

    def broken_create_audit_log(self, *args, **kwargs):
        raise SQLAlchemyError("audit table unavailable")

    monkeypatch.setattr(Store, "create_audit_log", broken_create_audit_log)

    with caplog.at_level(logging.ERROR, logger="backoffice.services.audit"):
        response = client.put(_url(ann["org_id"], "settings/timezone"), json={"value": "UTC"}, headers=ann["headers"])

    assert response.status_code == 200
    assert store.get_setting(ann["org_id"], "timezone").value == "UTC"
    assert any("Audit write failed" in record.getMessage() for record in caplog.records)
