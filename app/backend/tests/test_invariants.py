from __future__ import annotations

import uuid

from app.services.invariants import (
    dangling_entry_keys,
    duplicate_entry_keys,
    missing_entry_keys,
    rate_card_belongs_to_organization,
)


def test_missing_entry_keys_lists_each_absent_card_role_pair() -> None:
    card_usd, card_eur = uuid.uuid4(), uuid.uuid4()
    role_a, role_b = uuid.uuid4(), uuid.uuid4()

    missing = missing_entry_keys(
        cards=[(card_usd, "USD"), (card_eur, "EUR")],
        active_role_ids=[role_a, role_b],
        existing=[(card_usd, role_a, "USD"), (card_eur, role_b, "USD")],
    )

    assert missing == [
        (card_usd, role_b, "USD"),
        (card_eur, role_a, "EUR"),
        (card_eur, role_b, "EUR"),
    ]


def test_missing_entry_keys_is_empty_once_all_present() -> None:
    card = uuid.uuid4()
    roles = [uuid.uuid4(), uuid.uuid4()]
    existing = [(card, role_id, "USD") for role_id in roles]

    assert missing_entry_keys(cards=[(card, "USD")], active_role_ids=roles, existing=existing) == []
    assert missing_entry_keys(cards=[(card, "USD")], active_role_ids=[], existing=[]) == []


def test_dangling_entry_keys_only_reports_archived_roles() -> None:
    card = uuid.uuid4()
    active, archived = uuid.uuid4(), uuid.uuid4()
    existing = [(card, active, "USD"), (card, archived, "USD")]

    assert dangling_entry_keys(archived_role_ids=[archived], existing=existing) == [(card, archived, "USD")]


def test_duplicate_entry_keys_reports_each_duplicate_once() -> None:
    key = (uuid.uuid4(), uuid.uuid4(), "USD")
    other = (uuid.uuid4(), uuid.uuid4(), "EUR")

    assert duplicate_entry_keys([key, other, key, key]) == [key]
    assert duplicate_entry_keys([key, other]) == []


def test_rate_card_belongs_to_organization() -> None:
    organization_id = uuid.uuid4()

    assert rate_card_belongs_to_organization(organization_id, organization_id) is True
    assert rate_card_belongs_to_organization(uuid.uuid4(), organization_id) is False
    assert rate_card_belongs_to_organization(None, organization_id) is False
