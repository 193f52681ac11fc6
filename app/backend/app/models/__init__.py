"""ORM model package."""

from app.models.entities import (
    Assignment,
    AssignmentPlan,
    BillingModel,
    EstimateVersion,
    Member,
    Organization,
    Project,
    ProjectStatus,
    RateCard,
    RateCardEntry,
    Role,
    RoleLifecycle,
    VersionStatus,
    WorkItem,
)

__all__ = [
    "Assignment",
    "AssignmentPlan",
    "BillingModel",
    "EstimateVersion",
    "Member",
    "Organization",
    "Project",
    "ProjectStatus",
    "RateCard",
    "RateCardEntry",
    "Role",
    "RoleLifecycle",
    "VersionStatus",
    "WorkItem",
]
