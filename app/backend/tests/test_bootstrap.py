from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.core.config import Settings
from app.models.entities import Member, Organization, RateCard, RateCardEntry, Role
from app.services.bootstrap_service import DEFAULT_RATE_CARD_NAME, BootstrapService


def _entry_rates(db: Session, rate_card_id) -> dict[str, tuple[Decimal, Decimal]]:
    rows = db.execute(
        select(Role.code, RateCardEntry.bill_rate, RateCardEntry.cost_rate)
        .join(Role, Role.id == RateCardEntry.role_id)
        .where(RateCardEntry.rate_card_id == rate_card_id)
    ).all()
    return {code: (bill_rate, cost_rate) for code, bill_rate, cost_rate in rows}


def test_ensure_defaults_seeds_empty_database(db_session: Session) -> None:
    settings = Settings(default_currency="eur", default_organization_name="Seeded Org")

    result = BootstrapService(db_session, settings).ensure_defaults()

    organization = db_session.get(Organization, result.organization_id)
    assert organization.name == "Seeded Org"
    assert organization.currency == "EUR"

    owner = db_session.get(Member, result.owner_id)
    assert owner.email == settings.auth_dev_email
    assert (owner.given_name, owner.family_name) == ("Engagement", "Lead")

    assert result.role_codes == ["ANA", "ARCH", "DEL", "ENGM"]
    assert result.created_roles == 4
    assert result.created_entries == 4

    rate_card = db_session.get(RateCard, result.rate_card_id)
    assert rate_card.name == DEFAULT_RATE_CARD_NAME
    assert rate_card.currency == "EUR"
    assert _entry_rates(db_session, rate_card.id)["ARCH"] == (Decimal("325.00"), Decimal("165.00"))


def test_ensure_defaults_is_idempotent(db_session: Session) -> None:
    service = BootstrapService(db_session, Settings())

    first = service.ensure_defaults()
    second = service.ensure_defaults()

    assert second.organization_id == first.organization_id
    assert second.rate_card_id == first.rate_card_id
    assert second.created_roles == 0
    assert second.created_entries == 0
    assert db_session.scalar(select(func.count()).select_from(Organization)) == 1
    assert db_session.scalar(select(func.count()).select_from(Role)) == 4
    assert db_session.scalar(select(func.count()).select_from(RateCardEntry)) == 4


def test_ensure_defaults_backfills_existing_rate_card(db_session: Session) -> None:
    organization = Organization(name="Existing", currency="GBP", timezone="UTC")
    db_session.add(organization)
    db_session.flush()
    card = RateCard(organization_id=organization.id, name="Existing card", currency="GBP")
    custom = Role(organization_id=organization.id, code="QA", name="Quality Analyst")
    db_session.add_all([card, custom])
    db_session.commit()

    result = BootstrapService(db_session, Settings()).ensure_defaults()

    assert result.organization_id == organization.id
    assert result.rate_card_id == card.id
    assert result.created_roles == 4
    assert result.created_entries == 5
    rates = _entry_rates(db_session, card.id)
    assert rates["QA"] == (Decimal("0.00"), Decimal("0.00"))
    assert rates["ANA"] == (Decimal("185.00"), Decimal("95.00"))
    assert db_session.scalar(select(func.count()).select_from(RateCard)) == 1


def test_ensure_defaults_leaves_archived_default_role_alone(db_session: Session) -> None:
    organization = Organization(name="Existing", currency="USD", timezone="UTC")
    db_session.add(organization)
    db_session.flush()
    db_session.add(
        Role(
            organization_id=organization.id,
            code="DEL",
            name="Delivery Lead",
            archived_at=datetime(2026, 1, 1),
        )
    )
    db_session.commit()

    result = BootstrapService(db_session, Settings()).ensure_defaults()

    assert result.role_codes == ["ANA", "ARCH", "ENGM"]
    assert "DEL" not in _entry_rates(db_session, result.rate_card_id)
    assert db_session.scalar(select(func.count()).select_from(Role).where(Role.code == "DEL")) == 1
