"""Repository helpers for the role catalog and rate cards."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import and_, delete, func, select
from sqlalchemy.orm import Session

from app.models.entities import RateCard, RateCardEntry, Role
from app.services.invariants import EntryKey


class RateGovernanceRepository:
    """Persistence operations used by role and rate card services."""

    def __init__(self, db: Session) -> None:
        self.db = db

    # ---------- Roles ----------
    def list_active_roles(self, organization_id: UUID) -> list[Role]:
        return list(
            self.db.scalars(
                select(Role)
                .where(and_(Role.organization_id == organization_id, Role.archived_at.is_(None)))
                .order_by(Role.name.asc(), Role.code.asc())
            ).all()
        )

    def list_roles(self, organization_id: UUID, *, include_archived: bool) -> list[Role]:
        conditions = [Role.organization_id == organization_id]
        if not include_archived:
            conditions.append(Role.archived_at.is_(None))
        return list(
            self.db.scalars(
                select(Role)
                .where(and_(*conditions))
                # Active roles (NULL archived_at) first, then by name.
                .order_by(Role.archived_at.is_not(None).asc(), Role.archived_at.asc(), Role.name.asc())
            ).all()
        )

    def role_counts(self, organization_id: UUID) -> tuple[int, int]:
        """Return ``(active_count, archived_count)``."""

        active, archived = self.db.execute(
            select(
                func.count().filter(Role.archived_at.is_(None)),
                func.count().filter(Role.archived_at.is_not(None)),
            ).where(Role.organization_id == organization_id)
        ).one()
        return int(active or 0), int(archived or 0)

    def get_role(self, organization_id: UUID, role_id: UUID) -> Role | None:
        return self.db.scalar(
            select(Role).where(and_(Role.id == role_id, Role.organization_id == organization_id))
        )

    def list_roles_by_code(self, organization_id: UUID, codes: set[str]) -> dict[str, Role]:
        if not codes:
            return {}
        rows = self.db.scalars(
            select(Role).where(and_(Role.organization_id == organization_id, Role.code.in_(codes)))
        ).all()
        return {role.code: role for role in rows}

    def add_role(self, role: Role) -> Role:
        self.db.add(role)
        self.db.flush()
        return role

    # ---------- Rate cards ----------
    def list_rate_cards(self, organization_id: UUID) -> list[RateCard]:
        return list(
            self.db.scalars(
                select(RateCard)
                .where(RateCard.organization_id == organization_id)
                .order_by(RateCard.created_at.asc(), RateCard.id.asc())
            ).all()
        )

    def get_rate_card(self, organization_id: UUID, rate_card_id: UUID) -> RateCard | None:
        return self.db.scalar(
            select(RateCard).where(
                and_(RateCard.id == rate_card_id, RateCard.organization_id == organization_id)
            )
        )

    def get_rate_card_by_id(self, rate_card_id: UUID) -> RateCard | None:
        return self.db.scalar(select(RateCard).where(RateCard.id == rate_card_id))

    def earliest_rate_card_id(self, organization_id: UUID) -> UUID | None:
        return self.db.scalar(
            select(RateCard.id)
            .where(RateCard.organization_id == organization_id)
            .order_by(RateCard.created_at.asc(), RateCard.id.asc())
            .limit(1)
        )

    def add_rate_card(self, rate_card: RateCard) -> RateCard:
        self.db.add(rate_card)
        self.db.flush()
        return rate_card

    # ---------- Rate card entries ----------
    def list_entries(self, rate_card_id: UUID) -> list[RateCardEntry]:
        return list(self.db.scalars(select(RateCardEntry).where(RateCardEntry.rate_card_id == rate_card_id)).all())

    def list_entries_with_roles(self, rate_card_ids: list[UUID]) -> list[tuple[RateCardEntry, Role]]:
        if not rate_card_ids:
            return []
        rows = self.db.execute(
            select(RateCardEntry, Role)
            .join(Role, Role.id == RateCardEntry.role_id)
            .where(RateCardEntry.rate_card_id.in_(rate_card_ids))
        ).all()
        return [(entry, role) for entry, role in rows]

    def entry_keys(self, rate_card_ids: list[UUID]) -> list[EntryKey]:
        if not rate_card_ids:
            return []
        rows = self.db.execute(
            select(RateCardEntry.rate_card_id, RateCardEntry.role_id, RateCardEntry.currency).where(
                RateCardEntry.rate_card_id.in_(rate_card_ids)
            )
        ).all()
        return [(card_id, role_id, currency) for card_id, role_id, currency in rows]

    def organization_entry_keys(self, organization_id: UUID) -> list[EntryKey]:
        rows = self.db.execute(
            select(RateCardEntry.rate_card_id, RateCardEntry.role_id, RateCardEntry.currency)
            .join(RateCard, RateCard.id == RateCardEntry.rate_card_id)
            .where(RateCard.organization_id == organization_id)
        ).all()
        return [(card_id, role_id, currency) for card_id, role_id, currency in rows]

    def add_entry(self, entry: RateCardEntry) -> RateCardEntry:
        self.db.add(entry)
        self.db.flush()
        return entry

    def add_entries(self, entries: list[RateCardEntry]) -> None:
        if not entries:
            return
        self.db.add_all(entries)
        self.db.flush()

    def delete_entries_for_card(self, rate_card_id: UUID) -> int:
        result = self.db.execute(
            delete(RateCardEntry)
            .where(RateCardEntry.rate_card_id == rate_card_id)
        )
        self.db.flush()
        return result.rowcount or 0

    def delete_entries_for_role(self, organization_id: UUID, role_id: UUID) -> int:
        organization_cards = select(RateCard.id).where(RateCard.organization_id == organization_id)
        result = self.db.execute(
            delete(RateCardEntry)
            .where(
                and_(
                    RateCardEntry.role_id == role_id,
                    RateCardEntry.rate_card_id.in_(organization_cards),
                )
            )
        )
        self.db.flush()
        return result.rowcount or 0
