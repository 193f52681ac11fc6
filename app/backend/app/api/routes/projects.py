"""Project portfolio endpoints."""

from __future__ import annotations

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.orm import Session

from app.core.auth import CallerIdentity, get_current_caller
from app.core.config import get_settings
from app.db.dependencies import get_db_session
from app.models.entities import BillingModel
from app.services.fields import UNSET
from app.services.pipeline import PipelineStatus
from app.services.portfolio_service import (
    PortfolioService,
    ProjectCreateData,
    ProjectListQuery,
    ProjectUpdateData,
)

router = APIRouter(prefix="/projects", tags=["projects"])


def _strip(value: object) -> object:
    return value.strip() if isinstance(value, str) else value


class ProjectCreatePayload(BaseModel):
    name: str = Field(min_length=1, max_length=140)
    client_name: str = Field(min_length=1, max_length=140)
    base_currency: str = Field(min_length=3, max_length=3)
    billing_model: BillingModel
    start_date: date
    end_date: date | None = None
    baseline_version_name: str | None = Field(default=None, max_length=120)

    @field_validator("name", "client_name", "baseline_version_name", mode="before")
    @classmethod
    def strip_text(cls, value: object) -> object:
        return _strip(value)

    @field_validator("base_currency", mode="before")
    @classmethod
    def normalize_currency(cls, value: object) -> object:
        return value.strip().upper() if isinstance(value, str) else value

    @field_validator("end_date", mode="before")
    @classmethod
    def blank_end_date(cls, value: object) -> object:
        return None if value == "" else value


class ProjectUpdatePayload(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=140)
    client_name: str | None = Field(default=None, min_length=1, max_length=140)
    base_currency: str | None = Field(default=None, min_length=3, max_length=3)
    billing_model: BillingModel | None = None
    start_date: date | None = None
    end_date: date | None = None
    baseline_version_name: str | None = Field(default=None, max_length=120)
    baseline_rate_card_id: str | None = None

    @field_validator("name", "client_name", "baseline_version_name", mode="before")
    @classmethod
    def strip_text(cls, value: object) -> object:
        return _strip(value)

    @field_validator("base_currency", mode="before")
    @classmethod
    def normalize_currency(cls, value: object) -> object:
        return value.strip().upper() if isinstance(value, str) else value

    @field_validator("end_date", mode="before")
    @classmethod
    def blank_end_date(cls, value: object) -> object:
        return None if value == "" else value


def _portfolio_service(db: Session) -> PortfolioService:
    return PortfolioService(db)


def _clamp_page_size(page_size: int | None) -> int:
    settings = get_settings()
    if page_size is None:
        return settings.projects_default_page_size
    return min(max(page_size, 1), settings.projects_max_page_size)


@router.get("")
def list_projects(
    page: int = Query(default=1),
    page_size: int | None = Query(default=None),
    search: str | None = Query(default=None),
    pipeline_status: PipelineStatus | None = Query(default=None, alias="status"),
    caller: CallerIdentity = Depends(get_current_caller),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    query = ProjectListQuery(
        page=page if page > 0 else 1,
        page_size=_clamp_page_size(page_size),
        search=search.strip() if search and search.strip() else None,
        status=pipeline_status,
    )
    return _portfolio_service(db).get_project_summaries(caller=caller, query=query)


@router.post("", status_code=status.HTTP_201_CREATED)
def create_project(
    payload: ProjectCreatePayload,
    caller: CallerIdentity = Depends(get_current_caller),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    return _portfolio_service(db).create_project(
        caller=caller,
        data=ProjectCreateData(
            name=payload.name,
            client_name=payload.client_name,
            base_currency=payload.base_currency,
            billing_model=payload.billing_model,
            start_date=payload.start_date,
            end_date=payload.end_date,
            baseline_version_name=payload.baseline_version_name,
        ),
    )


@router.get("/{project_id}")
def get_project_workspace(
    project_id: UUID,
    caller: CallerIdentity = Depends(get_current_caller),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    return _portfolio_service(db).get_project_workspace(caller=caller, project_id=project_id)


@router.get("/{project_id}/summary")
def get_project_summary(
    project_id: UUID,
    caller: CallerIdentity = Depends(get_current_caller),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    return _portfolio_service(db).get_project_summary(caller=caller, project_id=project_id)


@router.patch("/{project_id}")
def update_project(
    project_id: UUID,
    payload: ProjectUpdatePayload,
    caller: CallerIdentity = Depends(get_current_caller),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    provided = payload.model_fields_set
    return _portfolio_service(db).update_project(
        caller=caller,
        project_id=project_id,
        data=ProjectUpdateData(
            name=payload.name,
            client_name=payload.client_name,
            base_currency=payload.base_currency,
            billing_model=payload.billing_model,
            start_date=payload.start_date,
            end_date=payload.end_date if "end_date" in provided else UNSET,
            baseline_version_name=payload.baseline_version_name,
            baseline_rate_card_id=(
                payload.baseline_rate_card_id if "baseline_rate_card_id" in provided else UNSET
            ),
        ),
    )
