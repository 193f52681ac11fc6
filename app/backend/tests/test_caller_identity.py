from __future__ import annotations

import pytest
from fastapi import HTTPException
from fastapi.testclient import TestClient

from app.core.auth import build_caller_identity, get_current_caller
from app.core.config import get_settings


def test_build_caller_identity_splits_display_name_and_roles() -> None:
    caller = build_caller_identity(
        user_id="  user-1 ",
        email=" Jane.Doe@Example.COM ",
        display_name="Jane van Doe",
        roles="lead, analyst,,",
    )

    assert caller.id == "user-1"
    assert caller.email == "jane.doe@example.com"
    assert caller.given_name == "Jane"
    assert caller.family_name == "van Doe"
    assert caller.roles == ("lead", "analyst")
    assert caller.display_name == "Jane van Doe"


def test_build_caller_identity_falls_back_to_generated_email() -> None:
    caller = build_caller_identity(user_id="svc|robot")

    assert caller.email == "svc.robot@proserv.local"
    assert caller.given_name is None
    assert caller.family_name is None
    assert caller.display_name == "svc.robot@proserv.local"


def test_get_current_caller_prefers_headers() -> None:
    caller = get_current_caller(
        x_user_id="user-2",
        x_user_email="user2@test.local",
        x_user_name="Second User",
        x_user_roles=None,
    )

    assert caller.id == "user-2"
    assert caller.email == "user2@test.local"


def test_get_current_caller_uses_development_principal() -> None:
    caller = get_current_caller(x_user_id=None, x_user_email=None, x_user_name=None, x_user_roles=None)

    assert caller.id == "engagement-lead"
    assert caller.given_name == "Engagement"
    assert caller.family_name == "Lead"


def test_get_current_caller_rejects_missing_headers_without_dev_principal(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setattr(get_settings(), "auth_allow_dev_principal", False)

    with pytest.raises(HTTPException) as exc_info:
        get_current_caller(x_user_id="  ", x_user_email=None, x_user_name=None, x_user_roles=None)

    assert exc_info.value.status_code == 401


def test_me_endpoint_reports_organization_context(client: TestClient) -> None:
    headers = {
        "X-Proserv-User-Id": "consultant-7",
        "X-Proserv-User-Email": "Consultant7@Proserv.local",
        "X-Proserv-User-Name": "Casey Quinn",
        "X-Proserv-User-Roles": "editor",
    }

    first = client.get("/api/v1/me", headers=headers)
    second = client.get("/api/v1/me", headers=headers)

    assert first.status_code == 200
    body = first.json()
    assert body["id"] == "consultant-7"
    assert body["email"] == "consultant7@proserv.local"
    assert body["display_name"] == "Casey Quinn"
    assert body["roles"] == ["editor"]
    assert body["member_id"] == "consultant-7"
    assert body["organization"]["currency"] == "USD"
    assert second.json()["organization"] == body["organization"]
