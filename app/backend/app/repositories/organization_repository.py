"""Repository helpers for organizations and members."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import case, or_, select
from sqlalchemy.orm import Session

from app.models.entities import Member, Organization


class OrganizationRepository:
    """Persistence operations used by organization context resolution."""

    def __init__(self, db: Session) -> None:
        self.db = db

    # ---------- Organizations ----------
    def get_organization(self, organization_id: UUID) -> Organization | None:
        return self.db.scalar(select(Organization).where(Organization.id == organization_id))

    def earliest_organization(self) -> Organization | None:
        return self.db.scalar(
            select(Organization).order_by(Organization.created_at.asc(), Organization.id.asc()).limit(1)
        )

    def add_organization(self, organization: Organization) -> Organization:
        self.db.add(organization)
        self.db.flush()
        return organization

    # ---------- Members ----------
    def get_member(self, member_id: str) -> Member | None:
        return self.db.scalar(select(Member).where(Member.id == member_id))

    def find_member(self, *, member_id: str, email: str, organization_id: UUID | None = None) -> Member | None:
        """Member matching id or email; an id match wins over an email match."""

        stmt = select(Member).where(or_(Member.id == member_id, Member.email == email))
        if organization_id is not None:
            stmt = stmt.where(Member.organization_id == organization_id)
        return self.db.scalar(
            stmt.order_by(case((Member.id == member_id, 0), else_=1), Member.created_at.asc()).limit(1)
        )

    def list_members(self, member_ids: set[str]) -> dict[str, Member]:
        if not member_ids:
            return {}
        rows = self.db.scalars(select(Member).where(Member.id.in_(member_ids))).all()
        return {member.id: member for member in rows}

    def add_member(self, member: Member) -> Member:
        self.db.add(member)
        self.db.flush()
        return member
