"""Repository helpers for project portfolio reads and writes."""

from __future__ import annotations

from collections import defaultdict
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import and_, distinct, exists, func, or_, select, update
from sqlalchemy.orm import Session
from sqlalchemy.sql.elements import ColumnElement

from app.models.entities import (
    Assignment,
    AssignmentPlan,
    EstimateVersion,
    Member,
    Project,
    ProjectStatus,
    WorkItem,
)

BASELINE_VERSION_NUMBER = 1


def owned_projects_predicate(owner_id: str) -> ColumnElement[bool]:
    """Non-archived projects created by ``owner_id``."""

    return and_(Project.created_by_id == owner_id, Project.status != ProjectStatus.ARCHIVED)


def project_search_predicate(term: str) -> ColumnElement[bool]:
    """Case-insensitive substring match on project, client, or owner fields."""

    owner_matches = exists().where(
        Member.id == Project.created_by_id,
        or_(
            Member.given_name.icontains(term, autoescape=True),
            Member.family_name.icontains(term, autoescape=True),
            Member.email.icontains(term, autoescape=True),
        ),
    )
    return or_(
        Project.name.icontains(term, autoescape=True),
        Project.client_name.icontains(term, autoescape=True),
        owner_matches,
    )


class PortfolioRepository:
    """Persistence operations used by portfolio aggregation."""

    def __init__(self, db: Session) -> None:
        self.db = db

    # ---------- Projects ----------
    def count_projects(
        self,
        *,
        base: ColumnElement[bool],
        filters: dict[str, ColumnElement[bool]],
    ) -> dict[str, int]:
        """Count projects matching ``base`` and, per key, ``base AND filter`` in one statement."""

        keys = list(filters)
        columns = [func.count().filter(filters[key]) for key in keys]
        row = self.db.execute(select(func.count(), *columns).select_from(Project).where(base)).one()
        counts = {"total": int(row[0] or 0)}
        for index, key in enumerate(keys, start=1):
            counts[key] = int(row[index] or 0)
        return counts

    def list_projects(self, where: ColumnElement[bool], *, skip: int, limit: int) -> list[Project]:
        return list(
            self.db.scalars(
                select(Project)
                .where(where)
                .order_by(Project.updated_at.desc(), Project.id.asc())
                .offset(skip)
                .limit(limit)
            ).all()
        )

    def latest_updated_at(self, where: ColumnElement[bool]) -> datetime | None:
        return self.db.scalar(select(func.max(Project.updated_at)).where(where))

    def get_project(self, where: ColumnElement[bool], project_id: UUID) -> Project | None:
        return self.db.scalar(select(Project).where(and_(Project.id == project_id, where)))

    def add_project(self, project: Project) -> Project:
        self.db.add(project)
        self.db.flush()
        return project

    # ---------- Versions ----------
    def recent_versions(self, project_ids: list[UUID], *, limit: int) -> dict[UUID, list[EstimateVersion]]:
        """Latest ``limit`` versions per project, newest first."""

        if not project_ids:
            return {}
        rank = (
            func.row_number()
            .over(partition_by=EstimateVersion.project_id, order_by=EstimateVersion.version_number.desc())
            .label("rank")
        )
        ranked = (
            select(EstimateVersion.id.label("version_id"), rank)
            .where(EstimateVersion.project_id.in_(project_ids))
            .subquery()
        )
        rows = self.db.scalars(
            select(EstimateVersion)
            .join(ranked, ranked.c.version_id == EstimateVersion.id)
            .where(ranked.c.rank <= limit)
            .order_by(EstimateVersion.project_id, EstimateVersion.version_number.desc())
        ).all()

        grouped: dict[UUID, list[EstimateVersion]] = defaultdict(list)
        for version in rows:
            grouped[version.project_id].append(version)
        return dict(grouped)

    def get_baseline_version(self, project_id: UUID) -> EstimateVersion | None:
        return self.db.scalar(
            select(EstimateVersion).where(
                and_(
                    EstimateVersion.project_id == project_id,
                    EstimateVersion.version_number == BASELINE_VERSION_NUMBER,
                )
            )
        )

    def add_version(self, version: EstimateVersion) -> EstimateVersion:
        self.db.add(version)
        self.db.flush()
        return version

    def update_baseline_version(self, project_id: UUID, **values: object) -> int:
        result = self.db.execute(
            update(EstimateVersion)
            .where(
                and_(
                    EstimateVersion.project_id == project_id,
                    EstimateVersion.version_number == BASELINE_VERSION_NUMBER,
                )
            )
            .values(updated_at=datetime.utcnow(), **values)
        )
        self.db.flush()
        return result.rowcount or 0

    # ---------- Financials ----------
    def version_financials(self, version_ids: list[UUID]) -> dict[UUID, tuple[Decimal, Decimal, int]]:
        """Return ``{version_id: (bill, cost, assignment_count)}`` for versions with assignments."""

        if not version_ids:
            return {}
        rows = self.db.execute(
            select(
                WorkItem.version_id,
                func.coalesce(func.sum(AssignmentPlan.bill), 0),
                func.coalesce(func.sum(AssignmentPlan.cost), 0),
                func.count(distinct(Assignment.id)),
            )
            .select_from(Assignment)
            .join(WorkItem, WorkItem.id == Assignment.work_item_id)
            .outerjoin(AssignmentPlan, AssignmentPlan.assignment_id == Assignment.id)
            .where(WorkItem.version_id.in_(version_ids))
            .group_by(WorkItem.version_id)
        ).all()
        return {
            version_id: (Decimal(str(bill)), Decimal(str(cost)), int(assignment_count or 0))
            for version_id, bill, cost, assignment_count in rows
        }
