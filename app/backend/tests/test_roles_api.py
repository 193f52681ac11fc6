from __future__ import annotations

from fastapi.testclient import TestClient


def _headers(user_id: str = "engagement-lead", email: str = "engagement.lead@proserv.local") -> dict[str, str]:
    return {
        "X-Proserv-User-Id": user_id,
        "X-Proserv-User-Email": email,
        "X-Proserv-User-Name": "Engagement Lead",
    }


def test_role_lifecycle_via_api(client: TestClient) -> None:
    headers = _headers()

    created = client.post(
        "/api/v1/roles",
        headers=headers,
        json={"code": " eng-m ", "name": "Engagement Manager", "description": "Owns   governance"},
    )
    assert created.status_code == 201
    role = created.json()
    assert role["code"] == "ENG-M"
    assert role["description"] == "Owns governance"
    assert role["lifecycle"] == "active"
    assert role["archived_at"] is None

    renamed = client.patch(f"/api/v1/roles/{role['id']}", headers=headers, json={"name": "Engagement Director"})
    assert renamed.status_code == 200
    assert renamed.json()["name"] == "Engagement Director"
    assert renamed.json()["description"] == "Owns governance"

    archived = client.post(f"/api/v1/roles/{role['id']}/archive", headers=headers)
    assert archived.status_code == 200
    assert archived.json()["lifecycle"] == "archived"

    active = client.get("/api/v1/roles", headers=headers)
    assert active.status_code == 200
    assert active.json()["data"] == []
    assert active.json()["meta"] == {"total": 0, "active_count": 0, "archived_count": 1}

    everything = client.get("/api/v1/roles", headers=headers, params={"include_archived": "true"})
    assert [item["code"] for item in everything.json()["data"]] == ["ENG-M"]


def test_role_code_validation_and_conflict(client: TestClient) -> None:
    headers = _headers()

    invalid = client.post("/api/v1/roles", headers=headers, json={"code": "a b", "name": "Bad"})
    assert invalid.status_code == 422

    too_short = client.post("/api/v1/roles", headers=headers, json={"code": "A", "name": "Short"})
    assert too_short.status_code == 422

    first = client.post("/api/v1/roles", headers=headers, json={"code": "QA", "name": "Quality"})
    assert first.status_code == 201

    duplicate = client.post("/api/v1/roles", headers=headers, json={"code": "qa", "name": "Quality"})
    assert duplicate.status_code == 409
    assert duplicate.json()["detail"] == "A role with this code already exists for the organization."

    other = client.post("/api/v1/roles", headers=headers, json={"code": "OPS", "name": "Operations"})
    clash = client.patch(f"/api/v1/roles/{other.json()['id']}", headers=headers, json={"code": "QA"})
    assert clash.status_code == 409


def test_missing_role_returns_404(client: TestClient) -> None:
    response = client.post(
        "/api/v1/roles/00000000-0000-0000-0000-000000000000/archive",
        headers=_headers(),
    )

    assert response.status_code == 404
    assert response.json()["detail"] == "Role not found"
