"""Application service for the project portfolio.

Listing computes every facet count in one statement, loads the recent version
window and owners for the page in one query each, and rolls up financials only
for the latest version of each project on the page.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import and_
from sqlalchemy.orm import Session

from app.core.auth import CallerIdentity
from app.core.errors import NotFoundError, ValidationError
from app.db.session import atomic
from app.models.entities import BillingModel, EstimateVersion, Member, Project, VersionStatus
from app.repositories.organization_repository import OrganizationRepository
from app.repositories.portfolio_repository import (
    BASELINE_VERSION_NUMBER,
    PortfolioRepository,
    owned_projects_predicate,
    project_search_predicate,
)
from app.repositories.rate_governance_repository import RateGovernanceRepository
from app.services.fields import UNSET, Unset
from app.services.invariants import rate_card_belongs_to_organization
from app.services.organization_context import OrganizationContextService
from app.services.pipeline import (
    RECENT_VERSIONS_WINDOW,
    PipelineStatus,
    derive_pipeline_status,
    pipeline_status_predicate,
)
from app.services.rate_governance_service import map_rate_card

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")
DEFAULT_BASELINE_VERSION_NAME = "Baseline"
UNASSIGNED_OWNER = "Unassigned"
PROJECT_NOT_FOUND = "Project not found"
RATE_CARD_NOT_FOUND = "Rate card not found"
NO_FIELDS_TO_UPDATE = "No fields provided to update"


@dataclass(slots=True)
class ProjectListQuery:
    page: int = 1
    page_size: int = 6
    search: str | None = None
    status: PipelineStatus | None = None


@dataclass(slots=True)
class ProjectCreateData:
    name: str
    client_name: str
    base_currency: str
    billing_model: BillingModel
    start_date: date
    end_date: date | None = None
    baseline_version_name: str | None = None


@dataclass(slots=True)
class ProjectUpdateData:
    name: str | None = None
    client_name: str | None = None
    base_currency: str | None = None
    billing_model: BillingModel | None = None
    start_date: date | None = None
    end_date: date | None | Unset = UNSET
    baseline_version_name: str | None = None
    # Blank or None clears the baseline rate card.
    baseline_rate_card_id: str | None | Unset = UNSET


@dataclass(frozen=True, slots=True)
class FinancialAggregate:
    bill: Decimal = ZERO
    cost: Decimal = ZERO
    assignment_count: int = 0

    @property
    def margin(self) -> float:
        return compute_margin(self.bill, self.cost)


@dataclass(frozen=True, slots=True)
class PageWindow:
    page: int
    total_pages: int
    skip: int


def compute_margin(bill: Decimal, cost: Decimal) -> float:
    """``(bill - cost) / bill``, or 0 when nothing is billed."""

    if bill <= 0:
        return 0.0
    return float((bill - cost) / bill)


def paginate(total_items: int, *, page: int, page_size: int) -> PageWindow:
    """Clamp the requested page into ``[1, total_pages]``; an empty result is page 1 of 0."""

    if total_items <= 0:
        return PageWindow(page=1, total_pages=0, skip=0)
    total_pages = math.ceil(total_items / page_size)
    current = min(max(page, 1), total_pages)
    return PageWindow(page=current, total_pages=total_pages, skip=max((current - 1) * page_size, 0))


def owner_display_name(member: Member | None) -> str:
    if member is None:
        return UNASSIGNED_OWNER
    if member.given_name or member.family_name:
        return f"{member.given_name or ''} {member.family_name or ''}".strip()
    return member.email or UNASSIGNED_OWNER


def _isoformat(value: date | datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


class PortfolioService:
    def __init__(self, db: Session) -> None:
        self.db = db
        self.repo = PortfolioRepository(db)
        self.members = OrganizationRepository(db)
        self.rate_cards = RateGovernanceRepository(db)
        self.organizations = OrganizationContextService(db)

    # ---------- Reads ----------
    def get_project_summaries(self, *, caller: CallerIdentity, query: ProjectListQuery) -> dict[str, object]:
        base = owned_projects_predicate(self.organizations.member_id_for(caller))
        search_term = (query.search or "").strip()
        search = and_(base, project_search_predicate(search_term)) if search_term else base
        listing = and_(search, pipeline_status_predicate(query.status)) if query.status else search

        counts = self.repo.count_projects(
            base=base,
            filters={
                "search": search,
                "listing": listing,
                **{status.value: and_(search, pipeline_status_predicate(status)) for status in PipelineStatus},
            },
        )
        total_items = counts["listing"]
        window = paginate(total_items, page=query.page, page_size=query.page_size)

        projects = self.repo.list_projects(listing, skip=window.skip, limit=query.page_size)
        summaries = self._build_summaries(projects)
        last_updated = self.repo.latest_updated_at(listing)

        return {
            "data": summaries,
            "meta": {
                "page": window.page,
                "page_size": query.page_size,
                "total_items": total_items,
                "total_pages": window.total_pages,
                "total_matching_search": counts["search"],
                "total_all": counts["total"],
            },
            "counts": {status.value: counts[status.value] for status in PipelineStatus},
            "last_updated": _isoformat(last_updated),
        }

    def get_project_summary(self, *, caller: CallerIdentity, project_id: UUID) -> dict[str, object]:
        project = self._get_owned_project(caller, project_id)
        return self._build_summaries([project])[0]

    def get_project_workspace(self, *, caller: CallerIdentity, project_id: UUID) -> dict[str, object]:
        project = self._get_owned_project(caller, project_id)
        summary = self._build_summaries([project])[0]

        baseline = self.repo.get_baseline_version(project.id)
        if baseline is None:
            return {"summary": summary, "baseline": None}

        financials = self.collect_financials([baseline.id]).get(baseline.id, FinancialAggregate())
        rate_card = None
        if baseline.rate_card_id is not None:
            card = self.rate_cards.get_rate_card_by_id(baseline.rate_card_id)
            if card is not None:
                rate_card = map_rate_card(card, self.rate_cards.list_entries_with_roles([card.id]))

        return {
            "summary": summary,
            "baseline": {
                "id": str(baseline.id),
                "name": baseline.name,
                "version_number": baseline.version_number,
                "status": baseline.status.value,
                "updated_at": baseline.updated_at.isoformat(),
                "rate_card_id": str(baseline.rate_card_id) if baseline.rate_card_id else None,
                "rate_card_name": rate_card["name"] if rate_card else None,
                "rate_card": rate_card,
                "total_value": float(financials.bill),
                "total_cost": float(financials.cost),
                "margin": financials.margin,
                "currency": project.base_currency,
                "assignment_count": financials.assignment_count,
            },
        }

    # ---------- Writes ----------
    def create_project(self, *, caller: CallerIdentity, data: ProjectCreateData) -> dict[str, object]:
        base_currency = data.base_currency.strip().upper()
        version_name = (data.baseline_version_name or "").strip() or DEFAULT_BASELINE_VERSION_NAME

        with atomic(self.db):
            context = self.organizations.resolve(caller, default_currency=base_currency)
            rate_card_id = self.rate_cards.earliest_rate_card_id(context.organization_id)
            project = self.repo.add_project(
                Project(
                    organization_id=context.organization_id,
                    name=data.name.strip(),
                    client_name=data.client_name.strip(),
                    created_by_id=context.member_id,
                    base_currency=base_currency,
                    billing_model=data.billing_model,
                    start_date=data.start_date,
                    end_date=data.end_date,
                    baseline_rate_card_id=rate_card_id,
                )
            )
            self.repo.add_version(
                EstimateVersion(
                    project_id=project.id,
                    name=version_name,
                    version_number=BASELINE_VERSION_NUMBER,
                    status=VersionStatus.DRAFT,
                    rate_card_id=rate_card_id,
                )
            )
            logger.info(
                "Created project %s with baseline version %s.",
                project.name,
                version_name,
                extra={"organization_id": str(context.organization_id), "project_id": str(project.id)},
            )

        return self.get_project_summary(caller=caller, project_id=project.id)

    def update_project(
        self,
        *,
        caller: CallerIdentity,
        project_id: UUID,
        data: ProjectUpdateData,
    ) -> dict[str, object]:
        text_changes = [value.strip() for value in (data.name, data.client_name, data.base_currency) if value is not None]
        has_project_changes = (
            any(text_changes)
            or data.billing_model is not None
            or data.start_date is not None
            or data.end_date is not UNSET
        )
        version_name = (data.baseline_version_name or "").strip() or None
        wants_rate_card = data.baseline_rate_card_id is not UNSET

        if not has_project_changes and version_name is None and not wants_rate_card:
            raise ValidationError(NO_FIELDS_TO_UPDATE)

        with atomic(self.db):
            project = self._get_owned_project(caller, project_id)
            rate_card_id = self._resolve_rate_card_id(project, data.baseline_rate_card_id) if wants_rate_card else None

            if data.name is not None and data.name.strip():
                project.name = data.name.strip()
            if data.client_name is not None and data.client_name.strip():
                project.client_name = data.client_name.strip()
            if data.base_currency is not None and data.base_currency.strip():
                project.base_currency = data.base_currency.strip().upper()
            if data.billing_model is not None:
                project.billing_model = data.billing_model
            if data.start_date is not None:
                project.start_date = data.start_date
            if data.end_date is not UNSET:
                project.end_date = data.end_date
            if wants_rate_card:
                project.baseline_rate_card_id = rate_card_id
            project.updated_at = datetime.utcnow()
            self.db.flush()

            if version_name is not None:
                self.repo.update_baseline_version(project.id, name=version_name)
            if wants_rate_card:
                self.repo.update_baseline_version(project.id, rate_card_id=rate_card_id)

        return self.get_project_summary(caller=caller, project_id=project_id)

    # ---------- Aggregation ----------
    def collect_financials(self, version_ids: list[UUID]) -> dict[UUID, FinancialAggregate]:
        return {
            version_id: FinancialAggregate(bill=bill, cost=cost, assignment_count=assignment_count)
            for version_id, (bill, cost, assignment_count) in self.repo.version_financials(version_ids).items()
        }

    def _build_summaries(self, projects: list[Project]) -> list[dict[str, object]]:
        if not projects:
            return []

        versions_by_project = self.repo.recent_versions(
            [project.id for project in projects],
            limit=RECENT_VERSIONS_WINDOW,
        )
        owners = self.members.list_members({project.created_by_id for project in projects})
        latest_version_ids = [versions[0].id for versions in versions_by_project.values() if versions]
        financials = self.collect_financials(latest_version_ids)

        summaries: list[dict[str, object]] = []
        for project in projects:
            versions = versions_by_project.get(project.id, [])
            latest = versions[0] if versions else None
            aggregate = financials.get(latest.id, FinancialAggregate()) if latest else FinancialAggregate()
            updated_at = max(project.updated_at, latest.updated_at) if latest else project.updated_at
            summaries.append(
                {
                    "id": str(project.id),
                    "name": project.name,
                    "client": project.client_name,
                    "owner": owner_display_name(owners.get(project.created_by_id)),
                    "status": derive_pipeline_status(
                        project.status,
                        [version.status for version in versions],
                    ).value,
                    "start_date": project.start_date.isoformat(),
                    "end_date": _isoformat(project.end_date),
                    "billing_model": project.billing_model.value,
                    "total_value": float(aggregate.bill),
                    "total_cost": float(aggregate.cost),
                    "currency": project.base_currency,
                    "margin": aggregate.margin,
                    "assignment_count": aggregate.assignment_count,
                    "updated_at": updated_at.isoformat(),
                }
            )
        return summaries

    def _get_owned_project(self, caller: CallerIdentity, project_id: UUID) -> Project:
        owner_id = self.organizations.member_id_for(caller)
        project = self.repo.get_project(owned_projects_predicate(owner_id), project_id)
        if project is None:
            raise NotFoundError(PROJECT_NOT_FOUND)
        return project

    def _resolve_rate_card_id(self, project: Project, raw_value: str | None | Unset) -> UUID | None:
        candidate = raw_value.strip() if isinstance(raw_value, str) else ""
        if not candidate:
            return None
        try:
            rate_card_id = UUID(candidate)
        except ValueError as exc:
            raise ValidationError(RATE_CARD_NOT_FOUND) from exc

        card = self.rate_cards.get_rate_card_by_id(rate_card_id)
        if card is None or not rate_card_belongs_to_organization(card.organization_id, project.organization_id):
            raise ValidationError(RATE_CARD_NOT_FOUND)
        return card.id

