"""Default role catalog and per-role rates used when no override is given."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")


@dataclass(frozen=True, slots=True)
class DefaultRoleDefinition:
    code: str
    name: str
    description: str
    bill_rate: Decimal
    cost_rate: Decimal


DEFAULT_ROLE_DEFINITIONS: tuple[DefaultRoleDefinition, ...] = (
    DefaultRoleDefinition(
        code="ARCH",
        name="Solution Architect",
        description="Design end-to-end solution blueprints and guardrails.",
        bill_rate=Decimal("325.00"),
        cost_rate=Decimal("165.00"),
    ),
    DefaultRoleDefinition(
        code="ENGM",
        name="Engagement Manager",
        description="Own governance, steering cadence, and commercial health.",
        bill_rate=Decimal("285.00"),
        cost_rate=Decimal("155.00"),
    ),
    DefaultRoleDefinition(
        code="DEL",
        name="Delivery Lead",
        description="Coordinate squads, risks, and day-to-day execution.",
        bill_rate=Decimal("245.00"),
        cost_rate=Decimal("135.00"),
    ),
    DefaultRoleDefinition(
        code="ANA",
        name="Business Analyst",
        description="Drive requirements, user stories, and acceptance criteria.",
        bill_rate=Decimal("185.00"),
        cost_rate=Decimal("95.00"),
    ),
)

_DEFAULTS_BY_CODE = {definition.code: definition for definition in DEFAULT_ROLE_DEFINITIONS}


def default_rates_for_role(role_code: str) -> tuple[Decimal, Decimal]:
    """Return ``(bill_rate, cost_rate)`` for a role code, zero when unknown."""

    definition = _DEFAULTS_BY_CODE.get(role_code)
    if definition is None:
        logger.warning("No default rates for role code %s; using zero bill and cost rates.", role_code)
        return ZERO, ZERO
    return definition.bill_rate, definition.cost_rate
