"""portfolio and rate governance schema

Revision ID: 20261018_0001
Revises:
Create Date: 2026-10-18
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "20261018_0001"
down_revision = None
branch_labels = None
depends_on = None


project_status = postgresql.ENUM("DRAFT", "ACTIVE", "ARCHIVED", name="project_status", create_type=False)
version_status = postgresql.ENUM(
    "DRAFT", "IN_REVIEW", "APPROVED", "ARCHIVED", name="version_status", create_type=False
)
billing_model = postgresql.ENUM(
    "TIME_AND_MATERIAL",
    "FIXED_PRICE",
    "RETAINER",
    "MANAGED_SERVICE",
    name="billing_model",
    create_type=False,
)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    ]


def upgrade() -> None:
    project_status.create(op.get_bind(), checkfirst=True)
    version_status.create(op.get_bind(), checkfirst=True)
    billing_model.create(op.get_bind(), checkfirst=True)

    op.create_table(
        "organizations",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("currency", sa.String(length=3), nullable=False),
        sa.Column("timezone", sa.String(length=64), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_organizations_created_at", "organizations", ["created_at"])

    op.create_table(
        "members",
        sa.Column("id", sa.String(length=128), primary_key=True, nullable=False),
        sa.Column(
            "organization_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("organizations.id"),
            nullable=False,
        ),
        sa.Column("email", sa.String(length=320), nullable=False),
        sa.Column("given_name", sa.String(length=120), nullable=True),
        sa.Column("family_name", sa.String(length=120), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("organization_id", "email", name="uq_members_organization_email"),
    )
    op.create_index("ix_members_email", "members", ["email"])

    op.create_table(
        "roles",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column(
            "organization_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("organizations.id"),
            nullable=False,
        ),
        sa.Column("code", sa.String(length=20), nullable=False),
        sa.Column("name", sa.String(length=140), nullable=False),
        sa.Column("description", sa.String(length=280), nullable=True),
        sa.Column("archived_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("organization_id", "code", name="uq_roles_organization_code"),
    )
    op.create_index("ix_roles_organization_archived", "roles", ["organization_id", "archived_at"])

    op.create_table(
        "rate_cards",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column(
            "organization_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("organizations.id"),
            nullable=False,
        ),
        sa.Column("name", sa.String(length=140), nullable=False),
        sa.Column("currency", sa.String(length=3), nullable=False),
        sa.Column("valid_from", sa.Date(), nullable=True),
        sa.Column("valid_to", sa.Date(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "valid_from IS NULL OR valid_to IS NULL OR valid_from <= valid_to",
            name="ck_rate_cards_validity_window",
        ),
    )
    op.create_index("ix_rate_cards_organization_created", "rate_cards", ["organization_id", "created_at"])

    op.create_table(
        "rate_card_entries",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("rate_card_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("rate_cards.id"), nullable=False),
        sa.Column("role_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("roles.id"), nullable=False),
        sa.Column("currency", sa.String(length=3), nullable=False),
        sa.Column("bill_rate", sa.Numeric(12, 2), nullable=False),
        sa.Column("cost_rate", sa.Numeric(12, 2), nullable=False),
        sa.CheckConstraint("bill_rate >= 0", name="ck_rate_card_entries_bill_rate_non_negative"),
        sa.CheckConstraint("cost_rate >= 0", name="ck_rate_card_entries_cost_rate_non_negative"),
        sa.UniqueConstraint(
            "rate_card_id",
            "role_id",
            "currency",
            name="uq_rate_card_entries_card_role_currency",
        ),
    )
    op.create_index("ix_rate_card_entries_role_id", "rate_card_entries", ["role_id"])

    op.create_table(
        "projects",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column(
            "organization_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("organizations.id"),
            nullable=False,
        ),
        sa.Column("name", sa.String(length=140), nullable=False),
        sa.Column("client_name", sa.String(length=140), nullable=False),
        sa.Column("created_by_id", sa.String(length=128), sa.ForeignKey("members.id"), nullable=False),
        sa.Column("base_currency", sa.String(length=3), nullable=False),
        sa.Column("billing_model", billing_model, nullable=False),
        sa.Column("status", project_status, nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.Column(
            "baseline_rate_card_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("rate_cards.id"),
            nullable=True,
        ),
        *_timestamps(),
    )
    op.create_index(
        "ix_projects_owner_status_updated",
        "projects",
        ["created_by_id", "status", "updated_at"],
    )
    op.create_index("ix_projects_organization_id", "projects", ["organization_id"])

    op.create_table(
        "estimate_versions",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("project_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("projects.id"), nullable=False),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("version_number", sa.Integer(), nullable=False),
        sa.Column("status", version_status, nullable=False),
        sa.Column("rate_card_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("rate_cards.id"), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("project_id", "version_number", name="uq_estimate_versions_project_number"),
    )
    op.create_index("ix_estimate_versions_project_status", "estimate_versions", ["project_id", "status"])

    op.create_table(
        "work_items",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column(
            "version_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("estimate_versions.id"),
            nullable=False,
        ),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("sequence_no", sa.Integer(), nullable=False, server_default=sa.text("0")),
    )
    op.create_index("ix_work_items_version_id", "work_items", ["version_id"])

    op.create_table(
        "assignments",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("work_item_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("work_items.id"), nullable=False),
        sa.Column("role_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("roles.id"), nullable=True),
    )
    op.create_index("ix_assignments_work_item_id", "assignments", ["work_item_id"])

    op.create_table(
        "assignment_plans",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column(
            "assignment_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("assignments.id"),
            nullable=False,
        ),
        sa.Column("period_start", sa.Date(), nullable=False),
        sa.Column("bill", sa.Numeric(14, 2), nullable=False),
        sa.Column("cost", sa.Numeric(14, 2), nullable=False),
        sa.CheckConstraint("bill >= 0", name="ck_assignment_plans_bill_non_negative"),
        sa.CheckConstraint("cost >= 0", name="ck_assignment_plans_cost_non_negative"),
    )
    op.create_index("ix_assignment_plans_assignment_id", "assignment_plans", ["assignment_id"])


def downgrade() -> None:
    op.drop_index("ix_assignment_plans_assignment_id", table_name="assignment_plans")
    op.drop_table("assignment_plans")
    op.drop_index("ix_assignments_work_item_id", table_name="assignments")
    op.drop_table("assignments")
    op.drop_index("ix_work_items_version_id", table_name="work_items")
    op.drop_table("work_items")
    op.drop_index("ix_estimate_versions_project_status", table_name="estimate_versions")
    op.drop_table("estimate_versions")
    op.drop_index("ix_projects_organization_id", table_name="projects")
    op.drop_index("ix_projects_owner_status_updated", table_name="projects")
    op.drop_table("projects")
    op.drop_index("ix_rate_card_entries_role_id", table_name="rate_card_entries")
    op.drop_table("rate_card_entries")
    op.drop_index("ix_rate_cards_organization_created", table_name="rate_cards")
    op.drop_table("rate_cards")
    op.drop_index("ix_roles_organization_archived", table_name="roles")
    op.drop_table("roles")
    op.drop_index("ix_members_email", table_name="members")
    op.drop_table("members")
    op.drop_index("ix_organizations_created_at", table_name="organizations")
    op.drop_table("organizations")

    billing_model.drop(op.get_bind(), checkfirst=True)
    version_status.drop(op.get_bind(), checkfirst=True)
    project_status.drop(op.get_bind(), checkfirst=True)
