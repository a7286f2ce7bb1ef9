from __future__ import annotations

from fastapi.testclient import TestClient


def _url(org_id: str, path: str) -> str:
    return f"/api/organizations/{org_id}/{path}"


def _lead(client: TestClient, owner, stage_id: str, name: str) -> dict:
    response = client.post(
        _url(owner["org_id"], "leads"),
        json={"stageId": stage_id, "name": name, "email": f"{name.lower()}@lead.test"},
        headers=owner["headers"],
    )
    assert response.status_code == 201, response.text
    return response.json()


def _connect(client: TestClient, owner) -> None:
    response = client.post(
        _url(owner["org_id"], "airtable/test"),
        json={"apiKey": "patSecretToken", "baseId": "appBase1"},
        headers=owner["headers"],
    )
    assert response.status_code == 200, response.text


def test_sync_without_credentials_is_400(client: TestClient, signup) -> None:
    ann = signup("ann@x.com", "Ann")

    response = client.post(_url(ann["org_id"], "airtable/sync"), json={}, headers=ann["headers"])

    assert response.status_code == 400
    assert response.json() == {"error": "Airtable API key and base ID are required"}


def test_connection_test_lists_tables_and_stores_masked_credentials(client: TestClient, signup, airtable) -> None:
    ann = signup("ann@x.com", "Ann")

    response = client.post(
        _url(ann["org_id"], "airtable/test"),
        json={"apiKey": "patSecretToken", "baseId": "appBase1"},
        headers=ann["headers"],
    )

    assert response.status_code == 200
    assert response.json()["success"] is True
    assert [table["name"] for table in response.json()["tables"]] == ["Leads", "Stages"]
    assert airtable.keys_used == ["patSecretToken"]
    stored = client.get(_url(ann["org_id"], "settings"), headers=ann["headers"]).json()
    assert stored == {"airtable.apiKey": "patS************", "airtable.baseId": "appBase1"}


def test_connection_test_reuses_stored_credentials(client: TestClient, signup, airtable) -> None:
    ann = signup("ann@x.com", "Ann")
    _connect(client, ann)

    response = client.post(_url(ann["org_id"], "airtable/test"), json={}, headers=ann["headers"])

    assert response.status_code == 200
    assert airtable.keys_used == ["patSecretToken", "patSecretToken"]


def test_push_writes_stages_and_leads_and_links_records(client: TestClient, signup, board, airtable) -> None:
    ann = signup("ann@x.com", "Ann")
    stage_ids = board(ann)["stage_ids"]
    acme = _lead(client, ann, stage_ids[0], "Acme")
    _lead(client, ann, stage_ids[1], "Globex")
    _connect(client, ann)

    response = client.post(_url(ann["org_id"], "airtable/sync"), json={"direction": "push"}, headers=ann["headers"])

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["direction"] == "push"
    assert body["syncedStages"] == 2
    assert body["syncedLeads"] == 2
    assert [r["fields"]["Name"] for r in airtable.tables["Stages"]] == ["New", "Won"]
    assert {r["fields"]["Pipeline"] for r in airtable.tables["Stages"]} == {"Sales"}
    leads = {r["fields"]["Name"]: r for r in airtable.tables["Leads"]}
    assert leads["Acme"]["fields"]["Stage"] == "New"
    assert leads["Globex"]["fields"]["Stage"] == "Won"
    assert leads["Acme"]["fields"]["Email"] == "acme@lead.test"

    stored = client.get(_url(ann["org_id"], f"leads/{acme['id']}"), headers=ann["headers"]).json()["lead"]
    assert stored["airtableRecordId"] == leads["Acme"]["id"]

    stats = client.get(f"/api/organizations/{ann['org_id']}", headers=ann["headers"]).json()["stats"]
    assert stats["operations"] == 4


def test_pull_copies_edited_fields_onto_leads(client: TestClient, signup, board, airtable) -> None:
    ann = signup("ann@x.com", "Ann")
    stage_ids = board(ann)["stage_ids"]
    acme = _lead(client, ann, stage_ids[0], "Acme")
    _connect(client, ann)
    client.post(_url(ann["org_id"], "airtable/sync"), json={"direction": "push"}, headers=ann["headers"])

    record = airtable.tables["Leads"][0]
    record["fields"]["Name"] = "Acme Corp"
    record["fields"]["Notes"] = "Called on Monday"
    airtable.tables["Leads"].append({"id": "recOrphan", "fields": {"Name": "Nobody"}})

    response = client.post(_url(ann["org_id"], "airtable/sync"), json={"direction": "pull"}, headers=ann["headers"])

    assert response.status_code == 200
    assert response.json()["syncedLeads"] == 1
    assert response.json()["syncedStages"] == 0
    lead = client.get(_url(ann["org_id"], f"leads/{acme['id']}"), headers=ann["headers"]).json()["lead"]
    assert lead["name"] == "Acme Corp"
    assert lead["notes"] == "Called on Monday"


def test_pull_matches_on_lead_id_column(client: TestClient, signup, board, airtable) -> None:
    ann = signup("ann@x.com", "Ann")
    stage_ids = board(ann)["stage_ids"]
    acme = _lead(client, ann, stage_ids[0], "Acme")
    _connect(client, ann)
    airtable.tables["Leads"] = [{"id": "recManual", "fields": {"Lead ID": acme["id"], "Source": "fair"}}]

    client.post(_url(ann["org_id"], "airtable/sync"), json={"direction": "pull"}, headers=ann["headers"])

    lead = client.get(_url(ann["org_id"], f"leads/{acme['id']}"), headers=ann["headers"]).json()["lead"]
    assert lead["source"] == "fair"
    assert lead["airtableRecordId"] == "recManual"


def test_sync_is_audited(client: TestClient, signup, airtable) -> None:
    ann = signup("ann@x.com", "Ann")
    _connect(client, ann)

    client.post(_url(ann["org_id"], "airtable/sync"), json={"direction": "both"}, headers=ann["headers"])

    logs = client.get(_url(ann["org_id"], "audit-logs"), headers=ann["headers"]).json()
    sync_log = next(log for log in logs if log["action"] == "sync")
    assert sync_log["entity"] == "airtable"
    assert sync_log["entityId"] == "appBase1"
    assert sync_log["metadata"] == {"direction": "both", "syncedLeads": 0, "syncedStages": 0}


def test_invalid_direction_is_400(client: TestClient, signup) -> None:
    ann = signup("ann@x.com", "Ann")
    _connect(client, ann)

    response = client.post(_url(ann["org_id"], "airtable/sync"), json={"direction": "sideways"}, headers=ann["headers"])

    assert response.status_code == 400


def test_airtable_is_admin_only(client: TestClient, signup, join) -> None:
    ann = signup("ann@x.com", "Ann")
    ed = signup("ed@x.com", "Ed")
    join(ann, ed, "editor")

    for path in ("airtable/test", "airtable/sync"):
        response = client.post(_url(ann["org_id"], path), json={}, headers=ed["headers"])
        assert response.status_code == 403
        assert response.json() == {"error": "Admin access required"}
