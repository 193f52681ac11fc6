"""Organization scoping for callers.

Every core operation runs against the organization of the calling member. A
caller seen for the first time is attached to the oldest organization, and the
very first caller of an empty database provisions the default organization.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from uuid import UUID

from sqlalchemy.orm import Session

from app.core.auth import CallerIdentity
from app.core.config import get_settings
from app.db.session import atomic
from app.models.entities import Member, Organization
from app.repositories.organization_repository import OrganizationRepository

logger = logging.getLogger(__name__)

FALLBACK_CURRENCY = "USD"
DEFAULT_GIVEN_NAME = "Engagement"
DEFAULT_FAMILY_NAME = "Lead"


@dataclass(frozen=True, slots=True)
class OrganizationContext:
    organization_id: UUID
    currency: str
    member_id: str


class OrganizationContextService:
    def __init__(self, db: Session) -> None:
        self.db = db
        self.repo = OrganizationRepository(db)

    def resolve(self, caller: CallerIdentity, *, default_currency: str | None = None) -> OrganizationContext:
        """Return the caller's organization context, provisioning records on first sight.

        Writes are flushed, not committed; the calling operation owns the transaction.
        """

        member = self.repo.find_member(member_id=caller.id, email=caller.email)
        if member is not None:
            organization = self.repo.get_organization(member.organization_id)
            currency = organization.currency if organization is not None else FALLBACK_CURRENCY
            return OrganizationContext(
                organization_id=member.organization_id,
                currency=currency,
                member_id=member.id,
            )

        organization = self.repo.earliest_organization()
        if organization is None:
            organization = self._create_default_organization(default_currency)

        member = self.ensure_member(caller, organization.id)
        return OrganizationContext(
            organization_id=organization.id,
            currency=organization.currency,
            member_id=member.id,
        )

    def member_id_for(self, caller: CallerIdentity) -> str:
        """Id of the member row ``resolve`` would pick for ``caller``, without provisioning.

        A caller matched by email under an earlier subject id gets that earlier id.
        """

        member = self.repo.find_member(member_id=caller.id, email=caller.email)
        return member.id if member is not None else caller.id

    def ensure_context(self, caller: CallerIdentity) -> OrganizationContext:
        """``resolve`` as a standalone unit of work."""

        with atomic(self.db):
            return self.resolve(caller)

    def ensure_member(self, caller: CallerIdentity, organization_id: UUID) -> Member:
        """Upsert the caller's member row by id under ``organization_id``."""

        given_name = caller.given_name or DEFAULT_GIVEN_NAME
        family_name = caller.family_name or DEFAULT_FAMILY_NAME

        member = self.repo.get_member(caller.id)
        if member is None:
            member = self.repo.add_member(
                Member(
                    id=caller.id,
                    organization_id=organization_id,
                    email=caller.email,
                    given_name=given_name,
                    family_name=family_name,
                )
            )
            logger.info(
                "Provisioned member %s in organization %s.",
                member.id,
                organization_id,
                extra={"organization_id": str(organization_id), "caller_id": caller.id},
            )
            return member

        member.organization_id = organization_id
        member.email = caller.email
        member.given_name = given_name
        member.family_name = family_name
        self.db.flush()
        return member

    def _create_default_organization(self, default_currency: str | None) -> Organization:
        settings = get_settings()
        currency = (default_currency or settings.default_currency).strip().upper()
        organization = self.repo.add_organization(
            Organization(
                name=settings.default_organization_name,
                timezone=settings.default_organization_timezone,
                currency=currency,
            )
        )
        logger.info(
            "Provisioned default organization %s (%s).",
            organization.name,
            currency,
            extra={"organization_id": str(organization.id)},
        )
        return organization
