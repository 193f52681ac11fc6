"""Idempotent seeding of the default organization, owner, roles, and rate card."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from uuid import UUID

from sqlalchemy.orm import Session

from app.core.config import Settings, get_settings
from app.db.session import atomic
from app.models.entities import Member, Organization, RateCard, RateCardEntry, Role
from app.repositories.organization_repository import OrganizationRepository
from app.repositories.rate_governance_repository import RateGovernanceRepository
from app.services.defaults import DEFAULT_ROLE_DEFINITIONS, default_rates_for_role
from app.services.rate_governance_service import RateGovernanceService

logger = logging.getLogger(__name__)

DEFAULT_RATE_CARD_NAME = "Global Delivery Standard"
DEFAULT_OWNER_GIVEN_NAME = "Engagement"
DEFAULT_OWNER_FAMILY_NAME = "Lead"


@dataclass(slots=True)
class BootstrapResult:
    organization_id: UUID
    owner_id: str
    role_codes: list[str]
    rate_card_id: UUID
    created_roles: int
    created_entries: int


class BootstrapService:
    def __init__(self, db: Session, settings: Settings | None = None) -> None:
        self.db = db
        self.settings = settings or get_settings()
        self.organizations = OrganizationRepository(db)
        self.repo = RateGovernanceRepository(db)
        self.rate_governance = RateGovernanceService(db)

    def ensure_defaults(self) -> BootstrapResult:
        with atomic(self.db):
            organization = self._ensure_organization()
            owner = self._ensure_owner(organization.id)
            roles, created_roles = self._ensure_default_roles(organization.id)
            rate_card, created_entries = self._ensure_rate_card(organization, roles)

        result = BootstrapResult(
            organization_id=organization.id,
            owner_id=owner.id,
            role_codes=sorted(role.code for role in roles),
            rate_card_id=rate_card.id,
            created_roles=created_roles,
            created_entries=created_entries,
        )
        logger.info(
            "Seeded defaults: %s roles created, %s rate card entries created.",
            created_roles,
            created_entries,
            extra={"organization_id": str(organization.id), "rate_card_id": str(rate_card.id)},
        )
        return result

    def _ensure_organization(self) -> Organization:
        existing = self.organizations.earliest_organization()
        if existing is not None:
            return existing
        return self.organizations.add_organization(
            Organization(
                name=self.settings.default_organization_name,
                timezone=self.settings.default_organization_timezone,
                currency=self.settings.default_currency,
            )
        )

    def _ensure_owner(self, organization_id: UUID) -> Member:
        existing = self.organizations.find_member(
            member_id=self.settings.auth_dev_user_id,
            email=self.settings.auth_dev_email,
            organization_id=organization_id,
        )
        if existing is not None:
            return existing
        return self.organizations.add_member(
            Member(
                id=self.settings.auth_dev_user_id,
                organization_id=organization_id,
                email=self.settings.auth_dev_email,
                given_name=DEFAULT_OWNER_GIVEN_NAME,
                family_name=DEFAULT_OWNER_FAMILY_NAME,
            )
        )

    def _ensure_default_roles(self, organization_id: UUID) -> tuple[list[Role], int]:
        roles = self.repo.list_active_roles(organization_id)
        # Archived defaults stay archived.
        present = self.repo.list_roles_by_code(
            organization_id, {definition.code for definition in DEFAULT_ROLE_DEFINITIONS}
        )
        created = 0
        for definition in DEFAULT_ROLE_DEFINITIONS:
            if definition.code in present:
                continue
            roles.append(
                self.repo.add_role(
                    Role(
                        organization_id=organization_id,
                        code=definition.code,
                        name=definition.name,
                        description=definition.description,
                    )
                )
            )
            created += 1
        return roles, created

    def _ensure_rate_card(self, organization: Organization, roles: list[Role]) -> tuple[RateCard, int]:
        rate_card_id = self.repo.earliest_rate_card_id(organization.id)
        if rate_card_id is not None:
            created = self.rate_governance.backfill_entries_for_roles(organization.id, roles)
            return self.repo.get_rate_card(organization.id, rate_card_id), created

        card = self.repo.add_rate_card(
            RateCard(
                organization_id=organization.id,
                name=DEFAULT_RATE_CARD_NAME,
                currency=organization.currency,
            )
        )
        entries = []
        for role in roles:
            bill_rate, cost_rate = default_rates_for_role(role.code)
            entries.append(
                RateCardEntry(
                    rate_card_id=card.id,
                    role_id=role.id,
                    currency=card.currency,
                    bill_rate=bill_rate,
                    cost_rate=cost_rate,
                )
            )
        self.repo.add_entries(entries)
        return card, len(entries)
