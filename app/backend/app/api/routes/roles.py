"""Role catalog endpoints."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.orm import Session

from app.core.auth import CallerIdentity, get_current_caller
from app.db.dependencies import get_db_session
from app.services.fields import UNSET
from app.services.rate_governance_service import RateGovernanceService, RoleCreateData, RoleUpdateData

router = APIRouter(prefix="/roles", tags=["roles"])

ROLE_CODE_PATTERN = r"^[A-Z0-9_-]+$"


def _normalize_code(value: object) -> object:
    return value.strip().upper() if isinstance(value, str) else value


class RoleCreatePayload(BaseModel):
    code: str = Field(min_length=2, max_length=20, pattern=ROLE_CODE_PATTERN)
    name: str = Field(min_length=1, max_length=140)
    description: str | None = Field(default=None, max_length=280)

    @field_validator("code", mode="before")
    @classmethod
    def normalize_code(cls, value: object) -> object:
        return _normalize_code(value)

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, value: object) -> object:
        return value.strip() if isinstance(value, str) else value


class RoleUpdatePayload(BaseModel):
    code: str | None = Field(default=None, min_length=2, max_length=20, pattern=ROLE_CODE_PATTERN)
    name: str | None = Field(default=None, min_length=1, max_length=140)
    description: str | None = Field(default=None, max_length=280)

    @field_validator("code", mode="before")
    @classmethod
    def normalize_code(cls, value: object) -> object:
        return _normalize_code(value)


def _rate_governance_service(db: Session) -> RateGovernanceService:
    return RateGovernanceService(db)


@router.get("")
def list_roles(
    include_archived: bool = Query(default=False),
    caller: CallerIdentity = Depends(get_current_caller),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _rate_governance_service(db)
    listing = service.list_roles(caller=caller, include_archived=include_archived)
    return {
        "data": [service.serialize_role(role) for role in listing.roles],
        "meta": {
            "total": len(listing.roles),
            "active_count": listing.active_count,
            "archived_count": listing.archived_count,
        },
    }


@router.post("", status_code=status.HTTP_201_CREATED)
def create_role(
    payload: RoleCreatePayload,
    caller: CallerIdentity = Depends(get_current_caller),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _rate_governance_service(db)
    role = service.create_role(
        caller=caller,
        data=RoleCreateData(code=payload.code, name=payload.name, description=payload.description),
    )
    return service.serialize_role(role)


@router.patch("/{role_id}")
def update_role(
    role_id: UUID,
    payload: RoleUpdatePayload,
    caller: CallerIdentity = Depends(get_current_caller),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _rate_governance_service(db)
    role = service.update_role(
        caller=caller,
        role_id=role_id,
        data=RoleUpdateData(
            code=payload.code,
            name=payload.name,
            description=payload.description if "description" in payload.model_fields_set else UNSET,
        ),
    )
    return service.serialize_role(role)


@router.post("/{role_id}/archive")
def archive_role(
    role_id: UUID,
    caller: CallerIdentity = Depends(get_current_caller),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _rate_governance_service(db)
    role = service.archive_role(caller=caller, role_id=role_id)
    return service.serialize_role(role)
