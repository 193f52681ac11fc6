"""Cross-entity invariants enforced in application code.

The store has no constraint tying roles to rate card entries or project rate
cards to organizations. These checks work on plain keys so they can run
against data loaded from any source.
"""

from __future__ import annotations

from collections.abc import Iterable
from uuid import UUID

EntryKey = tuple[UUID, UUID, str]
"""``(rate_card_id, role_id, currency)``"""


def missing_entry_keys(
    *,
    cards: Iterable[tuple[UUID, str]],
    active_role_ids: Iterable[UUID],
    existing: Iterable[EntryKey],
) -> list[EntryKey]:
    """Entries that must exist for every active role on every card, minus those present.

    ``cards`` yields ``(rate_card_id, currency)``; output keeps card order, then role order.
    """

    role_ids = list(dict.fromkeys(active_role_ids))
    present = set(existing)
    missing: list[EntryKey] = []
    for card_id, currency in cards:
        for role_id in role_ids:
            key = (card_id, role_id, currency)
            if key not in present:
                missing.append(key)
    return missing


def dangling_entry_keys(*, archived_role_ids: Iterable[UUID], existing: Iterable[EntryKey]) -> list[EntryKey]:
    """Entries still referencing an archived role."""

    archived = set(archived_role_ids)
    return [key for key in existing if key[1] in archived]


def duplicate_entry_keys(existing: Iterable[EntryKey]) -> list[EntryKey]:
    seen: set[EntryKey] = set()
    duplicates: list[EntryKey] = []
    for key in existing:
        if key in seen and key not in duplicates:
            duplicates.append(key)
        seen.add(key)
    return duplicates


def rate_card_belongs_to_organization(rate_card_organization_id: UUID | None, organization_id: UUID) -> bool:
    return rate_card_organization_id is not None and rate_card_organization_id == organization_id
