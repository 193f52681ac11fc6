"""Pipeline status rules.

Pipeline status is never stored. ``PIPELINE_RULES`` is the single table both
the in-memory derivation and the SQL filter predicate are generated from, so
listing filters and facet counts agree with per-row labels. Both look only at
the ``RECENT_VERSIONS_WINDOW`` highest-numbered versions of a project.
"""

from __future__ import annotations

import enum
from collections.abc import Iterable
from dataclasses import dataclass

from sqlalchemy import and_, exists, func, select
from sqlalchemy.orm import aliased
from sqlalchemy.sql.elements import ColumnElement

from app.models.entities import EstimateVersion, Project, ProjectStatus, VersionStatus

RECENT_VERSIONS_WINDOW = 5
REVIEW_STATUSES: tuple[VersionStatus, ...] = (VersionStatus.IN_REVIEW, VersionStatus.APPROVED)


class PipelineStatus(str, enum.Enum):
    PLANNING = "planning"
    ESTIMATING = "estimating"
    IN_FLIGHT = "in-flight"


@dataclass(frozen=True, slots=True)
class PipelineRule:
    status: PipelineStatus
    project_status: ProjectStatus
    # None: version review state is irrelevant for this rule.
    has_review_version: bool | None

    def matches(self, project_status: ProjectStatus, has_review_version: bool) -> bool:
        if project_status is not self.project_status:
            return False
        return self.has_review_version is None or self.has_review_version == has_review_version


# Evaluated in order; first match wins.
PIPELINE_RULES: tuple[PipelineRule, ...] = (
    PipelineRule(PipelineStatus.IN_FLIGHT, ProjectStatus.ACTIVE, None),
    PipelineRule(PipelineStatus.ESTIMATING, ProjectStatus.DRAFT, True),
    PipelineRule(PipelineStatus.PLANNING, ProjectStatus.DRAFT, False),
)

_RULES_BY_STATUS = {rule.status: rule for rule in PIPELINE_RULES}


def _newer_versions_count() -> ColumnElement[int]:
    """Number of versions of the same project numbered above the correlated ``EstimateVersion`` row."""

    newer = aliased(EstimateVersion)
    return (
        select(func.count())
        .where(
            newer.project_id == EstimateVersion.project_id,
            newer.version_number > EstimateVersion.version_number,
        )
        .correlate(EstimateVersion)
        .scalar_subquery()
    )


def derive_pipeline_status(
    project_status: ProjectStatus,
    version_statuses: Iterable[VersionStatus],
) -> PipelineStatus:
    """Derive the pipeline label from project status and its recent version statuses."""

    has_review_version = any(version_status in REVIEW_STATUSES for version_status in version_statuses)
    for rule in PIPELINE_RULES:
        if rule.matches(project_status, has_review_version):
            return rule.status
    raise ValueError(f"No pipeline status for project status {project_status.value}.")


def pipeline_status_predicate(status: PipelineStatus) -> ColumnElement[bool]:
    """SQL predicate on ``Project`` selecting rows whose derived status is ``status``."""

    rule = _RULES_BY_STATUS[status]
    conditions: list[ColumnElement[bool]] = [Project.status == rule.project_status]
    if rule.has_review_version is not None:
        review_version_exists = exists().where(
            EstimateVersion.project_id == Project.id,
            EstimateVersion.status.in_(REVIEW_STATUSES),
            _newer_versions_count() < RECENT_VERSIONS_WINDOW,
        )
        conditions.append(review_version_exists if rule.has_review_version else ~review_version_exists)
    return and_(*conditions)
