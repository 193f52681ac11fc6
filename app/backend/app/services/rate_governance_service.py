"""Application service for the role catalog and rate cards.

Every active role of an organization must eventually have exactly one entry on
each of the organization's rate cards, at the card's currency. Writes that can
break that rule (role creation, rate card edits) finish with a backfill pass,
and archiving a role removes its entries in the same transaction.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.auth import CallerIdentity
from app.core.errors import ConflictError, NotFoundError, ValidationError
from app.db.session import atomic
from app.models.entities import RateCard, RateCardEntry, Role
from app.repositories.rate_governance_repository import RateGovernanceRepository
from app.services.defaults import default_rates_for_role
from app.services.fields import UNSET, Unset
from app.services.invariants import missing_entry_keys
from app.services.organization_context import OrganizationContext, OrganizationContextService

logger = logging.getLogger(__name__)

DUPLICATE_ROLE_CODE = "A role with this code already exists for the organization."
ROLE_NOT_FOUND = "Role not found"
RATE_CARD_NOT_FOUND = "Rate card not found"
INVERTED_VALIDITY_WINDOW = "valid_from must be before the valid_to date"


@dataclass(slots=True)
class RoleCreateData:
    code: str
    name: str
    description: str | None = None


@dataclass(slots=True)
class RoleUpdateData:
    code: str | None = None
    name: str | None = None
    description: str | None | Unset = UNSET


@dataclass(slots=True)
class RoleListing:
    roles: list[Role]
    active_count: int
    archived_count: int


@dataclass(slots=True)
class RateCardEntryInput:
    role_id: UUID
    bill_rate: Decimal
    cost_rate: Decimal


@dataclass(slots=True)
class RateCardCreateData:
    name: str
    currency: str
    valid_from: date | None = None
    valid_to: date | None = None
    entries: list[RateCardEntryInput] = field(default_factory=list)


@dataclass(slots=True)
class RateCardUpdateData:
    name: str | None = None
    currency: str | None = None
    valid_from: date | None | Unset = UNSET
    valid_to: date | None | Unset = UNSET
    entries: list[RateCardEntryInput] | None = None


@dataclass(slots=True)
class RateCardListing:
    rate_cards: list[dict[str, object]]
    roles: list[Role]


def _normalize_description(value: str | None) -> str | None:
    if value is None:
        return None
    collapsed = " ".join(value.split())
    return collapsed or None


def _validate_window(valid_from: date | None, valid_to: date | None) -> None:
    if valid_from is not None and valid_to is not None and valid_from > valid_to:
        raise ValidationError(INVERTED_VALIDITY_WINDOW)


def _isoformat(value: date | datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def serialize_role_reference(role: Role) -> dict[str, object]:
    return {
        "id": str(role.id),
        "code": role.code,
        "name": role.name,
        "description": role.description,
    }


def map_rate_card(card: RateCard, entries: list[tuple[RateCardEntry, Role]]) -> dict[str, object]:
    """Client view of a rate card.

    Entries of archived roles are hidden, the rest are sorted by role name and
    rates are rendered as floats.
    """

    visible = sorted(
        ((entry, role) for entry, role in entries if role.archived_at is None),
        key=lambda pair: (pair[1].name, pair[1].code),
    )
    return {
        "id": str(card.id),
        "organization_id": str(card.organization_id),
        "name": card.name,
        "currency": card.currency,
        "valid_from": _isoformat(card.valid_from),
        "valid_to": _isoformat(card.valid_to),
        "created_at": card.created_at.isoformat(),
        "updated_at": card.updated_at.isoformat(),
        "entries": [
            {
                "id": str(entry.id),
                "role_id": str(entry.role_id),
                "currency": entry.currency,
                "bill_rate": float(entry.bill_rate),
                "cost_rate": float(entry.cost_rate),
                "role": serialize_role_reference(role),
            }
            for entry, role in visible
        ],
    }


class RateGovernanceService:
    def __init__(self, db: Session) -> None:
        self.db = db
        self.repo = RateGovernanceRepository(db)
        self.organizations = OrganizationContextService(db)

    # ---------- Roles ----------
    def list_active_roles(self, organization_id: UUID) -> list[Role]:
        return self.repo.list_active_roles(organization_id)

    def list_roles(self, *, caller: CallerIdentity, include_archived: bool = False) -> RoleListing:
        with atomic(self.db):
            context = self.organizations.resolve(caller)
            roles = self.repo.list_roles(context.organization_id, include_archived=include_archived)
            active_count, archived_count = self.repo.role_counts(context.organization_id)
        return RoleListing(roles=roles, active_count=active_count, archived_count=archived_count)

    def create_role(self, *, caller: CallerIdentity, data: RoleCreateData) -> Role:
        try:
            with atomic(self.db):
                context = self.organizations.resolve(caller)
                role = self.repo.add_role(
                    Role(
                        organization_id=context.organization_id,
                        code=data.code.strip().upper(),
                        name=data.name.strip(),
                        description=_normalize_description(data.description),
                    )
                )
                self.backfill_entries_for_roles(context.organization_id, [role])
        except IntegrityError as exc:
            raise ConflictError(DUPLICATE_ROLE_CODE) from exc
        return role

    def update_role(self, *, caller: CallerIdentity, role_id: UUID, data: RoleUpdateData) -> Role:
        try:
            with atomic(self.db):
                context = self.organizations.resolve(caller)
                role = self._get_role(context, role_id)

                changed = False
                if data.code is not None:
                    code = data.code.strip().upper()
                    if code and code != role.code:
                        role.code = code
                        changed = True
                if data.name is not None:
                    name = data.name.strip()
                    if name and name != role.name:
                        role.name = name
                        changed = True
                if data.description is not UNSET:
                    description = _normalize_description(data.description)
                    if description != role.description:
                        role.description = description
                        changed = True

                if changed:
                    role.updated_at = datetime.utcnow()
                    self.db.flush()
                    if role.archived_at is None:
                        self.backfill_entries_for_roles(context.organization_id, [role])
        except IntegrityError as exc:
            raise ConflictError(DUPLICATE_ROLE_CODE) from exc
        return role

    def archive_role(self, *, caller: CallerIdentity, role_id: UUID) -> Role:
        with atomic(self.db):
            context = self.organizations.resolve(caller)
            role = self._get_role(context, role_id)
            if role.archived_at is not None:
                return role

            now = datetime.utcnow()
            role.archived_at = now
            role.updated_at = now
            self.db.flush()
            deleted = self.repo.delete_entries_for_role(context.organization_id, role.id)
            logger.info(
                "Archived role %s and removed %s rate card entries.",
                role.code,
                deleted,
                extra={"organization_id": str(context.organization_id), "role_id": str(role.id)},
            )
        return role

    # ---------- Rate cards ----------
    def list_rate_cards(self, *, caller: CallerIdentity) -> RateCardListing:
        with atomic(self.db):
            context = self.organizations.resolve(caller)
            roles = self.repo.list_active_roles(context.organization_id)
            self.backfill_entries_for_roles(context.organization_id, roles)
            cards = self.repo.list_rate_cards(context.organization_id)
            rows = self.repo.list_entries_with_roles([card.id for card in cards])

        entries_by_card: dict[UUID, list[tuple[RateCardEntry, Role]]] = {card.id: [] for card in cards}
        for entry, role in rows:
            entries_by_card[entry.rate_card_id].append((entry, role))
        return RateCardListing(
            rate_cards=[map_rate_card(card, entries_by_card[card.id]) for card in cards],
            roles=roles,
        )

    def get_rate_card(self, *, caller: CallerIdentity, rate_card_id: UUID) -> dict[str, object]:
        with atomic(self.db):
            context = self.organizations.resolve(caller)
            roles = self.repo.list_active_roles(context.organization_id)
            self.backfill_entries_for_roles(context.organization_id, roles)
            card = self.repo.get_rate_card(context.organization_id, rate_card_id)
            if card is None:
                raise NotFoundError(RATE_CARD_NOT_FOUND)
            return self.load_mapped_rate_card(card)

    def create_rate_card(self, *, caller: CallerIdentity, data: RateCardCreateData) -> dict[str, object]:
        _validate_window(data.valid_from, data.valid_to)
        currency = data.currency.strip().upper()
        overrides = {entry.role_id: entry for entry in data.entries}

        with atomic(self.db):
            context = self.organizations.resolve(caller)
            roles = self.repo.list_active_roles(context.organization_id)
            card = self.repo.add_rate_card(
                RateCard(
                    organization_id=context.organization_id,
                    name=data.name.strip(),
                    currency=currency,
                    valid_from=data.valid_from,
                    valid_to=data.valid_to,
                )
            )
            entries: list[RateCardEntry] = []
            for role in roles:
                override = overrides.get(role.id)
                if override is not None:
                    bill_rate, cost_rate = override.bill_rate, override.cost_rate
                else:
                    bill_rate, cost_rate = default_rates_for_role(role.code)
                entries.append(
                    RateCardEntry(
                        rate_card_id=card.id,
                        role_id=role.id,
                        currency=currency,
                        bill_rate=bill_rate,
                        cost_rate=cost_rate,
                    )
                )
            self.repo.add_entries(entries)
            logger.info(
                "Created rate card %s with %s entries.",
                card.name,
                len(entries),
                extra={"organization_id": str(context.organization_id), "rate_card_id": str(card.id)},
            )
            return self.load_mapped_rate_card(card)

    def update_rate_card(
        self,
        *,
        caller: CallerIdentity,
        rate_card_id: UUID,
        data: RateCardUpdateData,
    ) -> dict[str, object]:
        with atomic(self.db):
            context = self.organizations.resolve(caller)
            roles = self.repo.list_active_roles(context.organization_id)
            card = self.repo.get_rate_card(context.organization_id, rate_card_id)
            if card is None:
                raise NotFoundError(RATE_CARD_NOT_FOUND)

            next_valid_from = card.valid_from if data.valid_from is UNSET else data.valid_from
            next_valid_to = card.valid_to if data.valid_to is UNSET else data.valid_to
            _validate_window(next_valid_from, next_valid_to)

            previous_currency = card.currency
            next_currency = data.currency.strip().upper() if data.currency else previous_currency

            if data.name is not None and data.name.strip():
                card.name = data.name.strip()
            card.currency = next_currency
            card.valid_from = next_valid_from
            card.valid_to = next_valid_to
            card.updated_at = datetime.utcnow()
            self.db.flush()

            existing = self.repo.list_entries(card.id)
            prior_rates = {entry.role_id: (entry.bill_rate, entry.cost_rate) for entry in existing}
            overrides = {entry.role_id: entry for entry in data.entries or []}

            target_rates: dict[UUID, tuple[Decimal, Decimal]] = {}
            for role in roles:
                override = overrides.get(role.id)
                if override is not None:
                    target_rates[role.id] = (override.bill_rate, override.cost_rate)
                elif role.id in prior_rates:
                    target_rates[role.id] = prior_rates[role.id]
                else:
                    target_rates[role.id] = default_rates_for_role(role.code)

            if next_currency != previous_currency:
                self.repo.delete_entries_for_card(card.id)
                self.repo.add_entries(
                    [
                        RateCardEntry(
                            rate_card_id=card.id,
                            role_id=role_id,
                            currency=next_currency,
                            bill_rate=bill_rate,
                            cost_rate=cost_rate,
                        )
                        for role_id, (bill_rate, cost_rate) in target_rates.items()
                    ]
                )
                logger.info(
                    "Migrated rate card %s from %s to %s.",
                    card.name,
                    previous_currency,
                    next_currency,
                    extra={"organization_id": str(context.organization_id), "rate_card_id": str(card.id)},
                )
            else:
                current = {entry.role_id: entry for entry in existing if entry.currency == next_currency}
                for role_id, (bill_rate, cost_rate) in target_rates.items():
                    entry = current.get(role_id)
                    if entry is None:
                        self.repo.add_entry(
                            RateCardEntry(
                                rate_card_id=card.id,
                                role_id=role_id,
                                currency=next_currency,
                                bill_rate=bill_rate,
                                cost_rate=cost_rate,
                            )
                        )
                    else:
                        entry.bill_rate = bill_rate
                        entry.cost_rate = cost_rate
                self.db.flush()

            self.backfill_entries_for_roles(context.organization_id, roles)
            return self.load_mapped_rate_card(card)

    # ---------- Entry maintenance ----------
    def backfill_entries_for_roles(self, organization_id: UUID, roles: list[Role]) -> int:
        """Create the entries missing for ``roles`` on every rate card of the organization.

        Archived roles are skipped. Missing entries take the default rates for the
        role code. Changes are flushed; the caller owns the transaction. Returns
        the number of entries created.
        """

        active = {role.id: role for role in roles if role.archived_at is None}
        if not active:
            return 0

        cards = self.repo.list_rate_cards(organization_id)
        if not cards:
            return 0

        existing = self.repo.entry_keys([card.id for card in cards])
        missing = missing_entry_keys(
            cards=[(card.id, card.currency) for card in cards],
            active_role_ids=active.keys(),
            existing=existing,
        )
        if not missing:
            return 0

        entries: list[RateCardEntry] = []
        for rate_card_id, role_id, currency in missing:
            bill_rate, cost_rate = default_rates_for_role(active[role_id].code)
            entries.append(
                RateCardEntry(
                    rate_card_id=rate_card_id,
                    role_id=role_id,
                    currency=currency,
                    bill_rate=bill_rate,
                    cost_rate=cost_rate,
                )
            )
        self.repo.add_entries(entries)
        logger.debug(
            "Backfilled %s rate card entries.",
            len(entries),
            extra={"organization_id": str(organization_id)},
        )
        return len(entries)

    def load_mapped_rate_card(self, card: RateCard) -> dict[str, object]:
        return map_rate_card(card, self.repo.list_entries_with_roles([card.id]))

    def _get_role(self, context: OrganizationContext, role_id: UUID) -> Role:
        role = self.repo.get_role(context.organization_id, role_id)
        if role is None:
            raise NotFoundError(ROLE_NOT_FOUND)
        return role

    @staticmethod
    def serialize_role(role: Role) -> dict[str, object]:
        return {
            "id": str(role.id),
            "organization_id": str(role.organization_id),
            "code": role.code,
            "name": role.name,
            "description": role.description,
            "lifecycle": role.lifecycle.value,
            "created_at": role.created_at.isoformat(),
            "updated_at": role.updated_at.isoformat(),
            "archived_at": _isoformat(role.archived_at),
        }
