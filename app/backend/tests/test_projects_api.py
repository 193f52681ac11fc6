from __future__ import annotations

import uuid
from datetime import date, datetime, timedelta
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.auth import build_caller_identity
from app.core.errors import ValidationError
from app.models.entities import (
    Assignment,
    AssignmentPlan,
    EstimateVersion,
    Organization,
    Project,
    ProjectStatus,
    RateCard,
    VersionStatus,
    WorkItem,
)
from app.services.portfolio_service import PortfolioService, ProjectUpdateData


def _headers(
    user_id: str = "engagement-lead",
    email: str = "engagement.lead@proserv.local",
    display_name: str = "Engagement Lead",
) -> dict[str, str]:
    return {
        "X-Proserv-User-Id": user_id,
        "X-Proserv-User-Email": email,
        "X-Proserv-User-Name": display_name,
    }


def _create_project(
    client: TestClient,
    name: str,
    *,
    client_name: str = "Acme",
    headers: dict[str, str] | None = None,
    **overrides: object,
) -> dict[str, object]:
    payload = {
        "name": name,
        "client_name": client_name,
        "base_currency": "usd",
        "billing_model": "TIME_AND_MATERIAL",
        "start_date": "2026-01-01",
        **overrides,
    }
    response = client.post("/api/v1/projects", headers=headers or _headers(), json=payload)
    assert response.status_code == 201, response.text
    return response.json()


def _set_status(db: Session, project_id: str, status: ProjectStatus) -> None:
    project = db.get(Project, uuid.UUID(project_id))
    project.status = status
    db.commit()


def _add_version(db: Session, project_id: str, number: int, status: VersionStatus) -> EstimateVersion:
    version = EstimateVersion(
        project_id=uuid.UUID(project_id),
        name=f"Version {number}",
        version_number=number,
        status=status,
    )
    db.add(version)
    db.commit()
    return version


def test_create_project_returns_summary_with_baseline(client: TestClient, db_session: Session) -> None:
    summary = _create_project(client, "Data Platform", end_date="2026-06-30")

    assert summary["name"] == "Data Platform"
    assert summary["client"] == "Acme"
    assert summary["owner"] == "Engagement Lead"
    assert summary["status"] == "planning"
    assert summary["currency"] == "USD"
    assert summary["start_date"] == "2026-01-01"
    assert summary["end_date"] == "2026-06-30"
    assert summary["total_value"] == 0.0
    assert summary["margin"] == 0.0
    assert summary["assignment_count"] == 0

    organization = db_session.scalar(select(Organization))
    assert organization.currency == "USD"
    baseline = db_session.scalar(
        select(EstimateVersion).where(EstimateVersion.project_id == uuid.UUID(summary["id"]))
    )
    assert baseline.version_number == 1
    assert baseline.name == "Baseline"


def test_create_project_uses_earliest_rate_card(client: TestClient) -> None:
    headers = _headers()
    first = client.post("/api/v1/rate-cards", headers=headers, json={"name": "First", "currency": "USD"}).json()
    client.post("/api/v1/rate-cards", headers=headers, json={"name": "Second", "currency": "EUR"})

    summary = _create_project(client, "Rated", baseline_version_name="Initial")
    workspace = client.get(f"/api/v1/projects/{summary['id']}", headers=headers).json()

    assert workspace["baseline"]["name"] == "Initial"
    assert workspace["baseline"]["rate_card_id"] == first["id"]
    assert workspace["baseline"]["rate_card_name"] == "First"


def test_listing_counts_pagination_and_search(client: TestClient, db_session: Session) -> None:
    planning = [_create_project(client, f"Planning {index}") for index in range(7)]
    estimating = _create_project(client, "Estimating One", client_name="Globex")
    in_flight = _create_project(client, "Running One", client_name="Initech")
    _add_version(db_session, estimating["id"], 2, VersionStatus.IN_REVIEW)
    _set_status(db_session, in_flight["id"], ProjectStatus.ACTIVE)
    archived = _create_project(client, "Archived One")
    _set_status(db_session, archived["id"], ProjectStatus.ARCHIVED)

    first_page = client.get("/api/v1/projects", headers=_headers()).json()
    assert first_page["meta"] == {
        "page": 1,
        "page_size": 6,
        "total_items": 9,
        "total_pages": 2,
        "total_matching_search": 9,
        "total_all": 9,
    }
    assert first_page["counts"] == {"planning": 7, "estimating": 1, "in-flight": 1}
    assert len(first_page["data"]) == 6
    assert first_page["last_updated"] is not None

    clamped = client.get("/api/v1/projects", headers=_headers(), params={"page": 99}).json()
    assert clamped["meta"]["page"] == 2
    assert len(clamped["data"]) == 3
    seen = {item["id"] for item in first_page["data"]} | {item["id"] for item in clamped["data"]}
    assert seen == {item["id"] for item in planning} | {estimating["id"], in_flight["id"]}

    filtered = client.get("/api/v1/projects", headers=_headers(), params={"status": "estimating"}).json()
    assert [item["id"] for item in filtered["data"]] == [estimating["id"]]
    assert filtered["data"][0]["status"] == "estimating"
    assert filtered["meta"]["total_items"] == 1
    assert filtered["meta"]["total_matching_search"] == 9
    assert filtered["counts"] == first_page["counts"]

    searched = client.get("/api/v1/projects", headers=_headers(), params={"search": "  initech "}).json()
    assert [item["status"] for item in searched["data"]] == ["in-flight"]
    assert searched["meta"]["total_matching_search"] == 1
    assert searched["meta"]["total_all"] == 9
    assert searched["counts"] == {"planning": 0, "estimating": 0, "in-flight": 1}

    by_owner = client.get("/api/v1/projects", headers=_headers(), params={"search": "lead"}).json()
    assert by_owner["meta"]["total_matching_search"] == 9

    wildcard = client.get("/api/v1/projects", headers=_headers(), params={"search": "%"}).json()
    assert wildcard["meta"]["total_items"] == 0

    sized = client.get("/api/v1/projects", headers=_headers(), params={"page_size": 500}).json()
    assert sized["meta"]["page_size"] == 50
    assert sized["meta"]["total_pages"] == 1


def test_empty_listing_reports_first_page(client: TestClient) -> None:
    response = client.get("/api/v1/projects", headers=_headers(), params={"page": 4})

    assert response.status_code == 200
    body = response.json()
    assert body["data"] == []
    assert body["meta"]["page"] == 1
    assert body["meta"]["total_pages"] == 0
    assert body["counts"] == {"planning": 0, "estimating": 0, "in-flight": 0}
    assert body["last_updated"] is None


def test_listing_orders_by_most_recent_update(client: TestClient, db_session: Session) -> None:
    older = _create_project(client, "Older")
    newer = _create_project(client, "Newer")
    stale = db_session.get(Project, uuid.UUID(newer["id"]))
    stale.updated_at = datetime.utcnow() - timedelta(days=3)
    db_session.commit()

    body = client.get("/api/v1/projects", headers=_headers()).json()

    assert [item["id"] for item in body["data"]] == [older["id"], newer["id"]]


def test_projects_are_isolated_by_owner(client: TestClient) -> None:
    mine = _create_project(client, "Mine")
    other_headers = _headers(user_id="someone-else", email="someone@proserv.local", display_name="Some One")

    listing = client.get("/api/v1/projects", headers=other_headers).json()
    assert listing["data"] == []
    assert listing["meta"]["total_all"] == 0

    assert client.get(f"/api/v1/projects/{mine['id']}", headers=other_headers).status_code == 404
    assert client.get(f"/api/v1/projects/{mine['id']}/summary", headers=other_headers).status_code == 404
    response = client.patch(f"/api/v1/projects/{mine['id']}", headers=other_headers, json={"name": "Stolen"})
    assert response.status_code == 404
    assert response.json()["detail"] == "Project not found"


def test_update_project_requires_fields(client: TestClient) -> None:
    project = _create_project(client, "Unchanged")

    response = client.patch(f"/api/v1/projects/{project['id']}", headers=_headers(), json={})

    assert response.status_code == 422
    assert response.json()["detail"] == "No fields provided to update"


def test_update_project_fields_and_baseline(client: TestClient, db_session: Session) -> None:
    headers = _headers()
    card = client.post("/api/v1/rate-cards", headers=headers, json={"name": "Card", "currency": "USD"}).json()
    project = _create_project(client, "Before", end_date="2026-12-31")

    response = client.patch(
        f"/api/v1/projects/{project['id']}",
        headers=headers,
        json={
            "name": "After",
            "billing_model": "FIXED_PRICE",
            "end_date": None,
            "baseline_version_name": "Baseline v2",
            "baseline_rate_card_id": card["id"],
        },
    )

    assert response.status_code == 200
    summary = response.json()
    assert summary["name"] == "After"
    assert summary["billing_model"] == "FIXED_PRICE"
    assert summary["end_date"] is None

    workspace = client.get(f"/api/v1/projects/{project['id']}", headers=headers).json()
    assert workspace["baseline"]["name"] == "Baseline v2"
    assert workspace["baseline"]["rate_card_id"] == card["id"]

    cleared = client.patch(f"/api/v1/projects/{project['id']}", headers=headers, json={"baseline_rate_card_id": "  "})
    assert cleared.status_code == 200
    stored = db_session.get(Project, uuid.UUID(project["id"]))
    db_session.refresh(stored)
    assert stored.baseline_rate_card_id is None
    workspace = client.get(f"/api/v1/projects/{project['id']}", headers=headers).json()
    assert workspace["baseline"]["rate_card"] is None


def test_update_project_rejects_foreign_rate_card(client: TestClient, db_session: Session) -> None:
    project = _create_project(client, "Guarded")
    foreign_org = Organization(name="Foreign", currency="EUR", timezone="UTC")
    db_session.add(foreign_org)
    db_session.flush()
    foreign_card = RateCard(organization_id=foreign_org.id, name="Foreign card", currency="EUR")
    db_session.add(foreign_card)
    db_session.commit()

    for candidate in (str(foreign_card.id), str(uuid.uuid4()), "not-a-uuid"):
        response = client.patch(
            f"/api/v1/projects/{project['id']}",
            headers=_headers(),
            json={"name": "Should not stick", "baseline_rate_card_id": candidate},
        )
        assert response.status_code == 422
        assert response.json()["detail"] == "Rate card not found"

    summary = client.get(f"/api/v1/projects/{project['id']}/summary", headers=_headers()).json()
    assert summary["name"] == "Guarded"


def test_workspace_reports_baseline_financials(client: TestClient, db_session: Session) -> None:
    headers = _headers()
    arch = client.post("/api/v1/roles", headers=headers, json={"code": "ARCH", "name": "Architect"}).json()
    client.post("/api/v1/rate-cards", headers=headers, json={"name": "Card", "currency": "USD"})
    project = _create_project(client, "Costed")

    baseline = db_session.scalar(
        select(EstimateVersion).where(EstimateVersion.project_id == uuid.UUID(project["id"]))
    )
    work_item = WorkItem(version_id=baseline.id, name="Build", sequence_no=1)
    db_session.add(work_item)
    db_session.flush()
    assignment = Assignment(work_item_id=work_item.id, role_id=uuid.UUID(arch["id"]))
    db_session.add(assignment)
    db_session.flush()
    db_session.add(
        AssignmentPlan(
            assignment_id=assignment.id,
            period_start=date(2026, 1, 1),
            bill=Decimal("1000.00"),
            cost=Decimal("250.00"),
        )
    )
    db_session.commit()

    workspace = client.get(f"/api/v1/projects/{project['id']}", headers=headers)

    assert workspace.status_code == 200
    body = workspace.json()
    assert body["baseline"]["total_value"] == 1000.0
    assert body["baseline"]["total_cost"] == 250.0
    assert body["baseline"]["margin"] == 0.75
    assert body["baseline"]["assignment_count"] == 1
    assert [entry["role"]["code"] for entry in body["baseline"]["rate_card"]["entries"]] == ["ARCH"]
    assert body["summary"]["total_value"] == 1000.0
    assert body["summary"]["margin"] == 0.75


def test_status_filter_ignores_review_versions_outside_recent_window(client: TestClient, db_session: Session) -> None:
    project = _create_project(client, "Many versions")
    baseline = db_session.scalar(
        select(EstimateVersion).where(EstimateVersion.project_id == uuid.UUID(project["id"]))
    )
    baseline.status = VersionStatus.IN_REVIEW
    db_session.commit()
    for number in range(2, 8):
        _add_version(db_session, project["id"], number, VersionStatus.DRAFT)

    estimating = client.get("/api/v1/projects", headers=_headers(), params={"status": "estimating"}).json()
    planning = client.get("/api/v1/projects", headers=_headers(), params={"status": "planning"}).json()

    assert estimating["data"] == []
    assert estimating["counts"] == {"planning": 1, "estimating": 0, "in-flight": 0}
    assert [(item["name"], item["status"]) for item in planning["data"]] == [("Many versions", "planning")]


def test_caller_with_reissued_id_keeps_access_by_email(client: TestClient, db_session: Session) -> None:
    email = "churned.lead@proserv.local"
    first = _create_project(client, "First", headers=_headers(user_id="old-subject", email=email))

    response = client.post(
        "/api/v1/projects",
        headers=_headers(user_id="new-subject", email=email),
        json={
            "name": "Second",
            "client_name": "Acme",
            "base_currency": "USD",
            "billing_model": "RETAINER",
            "start_date": "2026-02-01",
        },
    )

    assert response.status_code == 201, response.text
    second = response.json()
    assert second["name"] == "Second"
    stored = db_session.get(Project, uuid.UUID(second["id"]))
    assert stored.created_by_id == "old-subject"

    listing = client.get("/api/v1/projects", headers=_headers(user_id="new-subject", email=email)).json()
    assert {item["id"] for item in listing["data"]} == {first["id"], second["id"]}
    workspace = client.get(f"/api/v1/projects/{first['id']}", headers=_headers(user_id="new-subject", email=email))
    assert workspace.status_code == 200


def test_update_with_only_blank_text_is_rejected(client: TestClient, db_session: Session) -> None:
    project = _create_project(client, "Untouched")
    stored = db_session.get(Project, uuid.UUID(project["id"]))
    before = stored.updated_at
    caller = build_caller_identity(
        user_id="engagement-lead",
        email="engagement.lead@proserv.local",
        display_name="Engagement Lead",
    )

    with pytest.raises(ValidationError) as exc_info:
        PortfolioService(db_session).update_project(
            caller=caller,
            project_id=stored.id,
            data=ProjectUpdateData(name="   ", client_name="\t", base_currency=" "),
        )

    assert exc_info.value.detail == "No fields provided to update"
    db_session.refresh(stored)
    assert stored.updated_at == before
    assert stored.name == "Untouched"
