from __future__ import annotations

import time

from fastapi.testclient import TestClient

from backoffice.store import Store


def _url(org_id: str, path: str) -> str:
    return f"/api/organizations/{org_id}/{path}"


def _create_lead(client: TestClient, owner, stage_id: str, name: str = "Acme") -> dict:
    response = client.post(
        _url(owner["org_id"], "leads"),
        json={"stageId": stage_id, "name": name, "source": "web"},
        headers=owner["headers"],
    )
    assert response.status_code == 201, response.text
    return response.json()


def test_create_and_read_lead(client: TestClient, signup, board) -> None:
    ann = signup("ann@x.com", "Ann")
    stage_id = board(ann)["stage_ids"][0]

    lead = _create_lead(client, ann, stage_id)

    assert lead["stageId"] == stage_id
    assert lead["source"] == "web"
    assert lead["email"] is None
    detail = client.get(_url(ann["org_id"], f"leads/{lead['id']}"), headers=ann["headers"])
    assert detail.status_code == 200
    assert detail.json()["lead"]["name"] == "Acme"
    assert detail.json()["comments"] == []


def test_create_lead_in_unknown_stage_is_404(client: TestClient, signup) -> None:
    ann = signup("ann@x.com", "Ann")

    response = client.post(_url(ann["org_id"], "leads"), json={"stageId": "missing", "name": "Acme"}, headers=ann["headers"])

    assert response.status_code == 404
    assert response.json() == {"error": "Stage not found"}


def test_viewer_cannot_create_lead(client: TestClient, signup, join, board) -> None:
    ann = signup("ann@x.com", "Ann")
    vic = signup("vic@x.com", "Vic")
    join(ann, vic, "viewer")
    stage_id = board(ann)["stage_ids"][0]

    response = client.post(_url(ann["org_id"], "leads"), json={"stageId": stage_id, "name": "Acme"}, headers=vic["headers"])

    assert response.status_code == 403


def test_update_is_partial_and_refreshes_updated_at(client: TestClient, signup, board) -> None:
    ann = signup("ann@x.com", "Ann")
    lead = _create_lead(client, ann, board(ann)["stage_ids"][0])
    time.sleep(0.01)

    response = client.patch(
        _url(ann["org_id"], f"leads/{lead['id']}"), json={"notes": "Call back Tuesday"}, headers=ann["headers"]
    )

    assert response.status_code == 200
    updated = response.json()
    assert updated["notes"] == "Call back Tuesday"
    assert updated["name"] == "Acme"
    assert updated["source"] == "web"
    assert updated["updatedAt"] > lead["updatedAt"]


def test_leads_list_most_recently_updated_first(client: TestClient, signup, board) -> None:
    ann = signup("ann@x.com", "Ann")
    stage_id = board(ann)["stage_ids"][0]
    first = _create_lead(client, ann, stage_id, "First")
    time.sleep(0.01)
    _create_lead(client, ann, stage_id, "Second")
    time.sleep(0.01)
    client.patch(_url(ann["org_id"], f"leads/{first['id']}"), json={"notes": "bump"}, headers=ann["headers"])

    leads = client.get(_url(ann["org_id"], "leads"), params={"stageId": stage_id}, headers=ann["headers"]).json()

    assert [lead["name"] for lead in leads] == ["First", "Second"]


def test_move_lead_between_stages(client: TestClient, signup, board, store: Store) -> None:
    ann = signup("ann@x.com", "Ann")
    stage_new, stage_won = board(ann)["stage_ids"]
    lead = _create_lead(client, ann, stage_new)

    response = client.post(_url(ann["org_id"], f"leads/{lead['id']}/move"), json={"stageId": stage_won}, headers=ann["headers"])

    assert response.status_code == 200
    assert response.json()["stageId"] == stage_won
    assert [l.id for l in store.list_leads(stage_won, ann["org_id"])] == [lead["id"]]
    assert store.list_leads(stage_new, ann["org_id"]) == []

    logs = client.get(_url(ann["org_id"], "audit-logs"), headers=ann["headers"]).json()
    move = next(log for log in logs if log["action"] == "move")
    assert move["entityId"] == lead["id"]
    assert move["metadata"] == {"fromStageId": stage_new, "toStageId": stage_won}


def test_move_to_stage_of_another_organization_is_404(client: TestClient, signup, board, store: Store) -> None:
    ann = signup("ann@x.com", "Ann")
    bob = signup("bob@x.com", "Bob")
    ann_stage = board(ann)["stage_ids"][0]
    bob_stage = board(bob)["stage_ids"][0]
    lead = _create_lead(client, ann, ann_stage)

    response = client.post(_url(ann["org_id"], f"leads/{lead['id']}/move"), json={"stageId": bob_stage}, headers=ann["headers"])

    assert response.status_code == 404
    assert store.get_lead(lead["id"], ann["org_id"]).stage_id == ann_stage


def test_update_cannot_reparent_into_another_organization(client: TestClient, signup, board) -> None:
    ann = signup("ann@x.com", "Ann")
    bob = signup("bob@x.com", "Bob")
    lead = _create_lead(client, ann, board(ann)["stage_ids"][0])
    bob_stage = board(bob)["stage_ids"][0]

    response = client.patch(_url(ann["org_id"], f"leads/{lead['id']}"), json={"stageId": bob_stage}, headers=ann["headers"])

    assert response.status_code == 404


def test_lead_of_another_organization_is_not_found(client: TestClient, signup, board) -> None:
    ann = signup("ann@x.com", "Ann")
    bob = signup("bob@x.com", "Bob")
    lead = _create_lead(client, ann, board(ann)["stage_ids"][0])

    assert client.get(_url(bob["org_id"], f"leads/{lead['id']}"), headers=bob["headers"]).status_code == 404
    assert client.delete(_url(bob["org_id"], f"leads/{lead['id']}"), headers=bob["headers"]).status_code == 404


def test_delete_lead_removes_its_comments(client: TestClient, signup, board, store: Store) -> None:
    ann = signup("ann@x.com", "Ann")
    lead = _create_lead(client, ann, board(ann)["stage_ids"][0])
    client.post(_url(ann["org_id"], f"leads/{lead['id']}/comments"), json={"body": "hello"}, headers=ann["headers"])

    response = client.delete(_url(ann["org_id"], f"leads/{lead['id']}"), headers=ann["headers"])

    assert response.status_code == 200
    assert store.get_lead(lead["id"], ann["org_id"]) is None
    assert store.list_comments(lead["id"], ann["org_id"]) == []
