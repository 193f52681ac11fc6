"""Rate card endpoints."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.orm import Session

from app.core.auth import CallerIdentity, get_current_caller
from app.db.dependencies import get_db_session
from app.services.fields import UNSET
from app.services.rate_governance_service import (
    RateCardCreateData,
    RateCardEntryInput,
    RateCardUpdateData,
    RateGovernanceService,
    serialize_role_reference,
)

router = APIRouter(prefix="/rate-cards", tags=["rate-cards"])


def _blank_to_none(value: object) -> object:
    if isinstance(value, str) and not value.strip():
        return None
    return value


class RateCardEntryPayload(BaseModel):
    role_id: UUID
    bill_rate: Decimal = Field(ge=0, decimal_places=2)
    cost_rate: Decimal = Field(ge=0, decimal_places=2)

    def to_input(self) -> RateCardEntryInput:
        return RateCardEntryInput(role_id=self.role_id, bill_rate=self.bill_rate, cost_rate=self.cost_rate)


class RateCardCreatePayload(BaseModel):
    name: str = Field(min_length=1, max_length=140)
    currency: str = Field(min_length=3, max_length=3)
    valid_from: date | None = None
    valid_to: date | None = None
    entries: list[RateCardEntryPayload] = Field(default_factory=list)

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, value: object) -> object:
        return value.strip() if isinstance(value, str) else value

    @field_validator("currency", mode="before")
    @classmethod
    def normalize_currency(cls, value: object) -> object:
        return value.strip().upper() if isinstance(value, str) else value

    @field_validator("valid_from", "valid_to", mode="before")
    @classmethod
    def blank_dates(cls, value: object) -> object:
        return _blank_to_none(value)


class RateCardUpdatePayload(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=140)
    currency: str | None = Field(default=None, min_length=3, max_length=3)
    valid_from: date | None = None
    valid_to: date | None = None
    entries: list[RateCardEntryPayload] | None = None

    @field_validator("currency", mode="before")
    @classmethod
    def normalize_currency(cls, value: object) -> object:
        return value.strip().upper() if isinstance(value, str) else value

    @field_validator("valid_from", "valid_to", mode="before")
    @classmethod
    def blank_dates(cls, value: object) -> object:
        return _blank_to_none(value)


def _rate_governance_service(db: Session) -> RateGovernanceService:
    return RateGovernanceService(db)


@router.get("")
def list_rate_cards(
    caller: CallerIdentity = Depends(get_current_caller),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    listing = _rate_governance_service(db).list_rate_cards(caller=caller)
    return {
        "data": listing.rate_cards,
        "roles": [serialize_role_reference(role) for role in listing.roles],
    }


@router.get("/{rate_card_id}")
def get_rate_card(
    rate_card_id: UUID,
    caller: CallerIdentity = Depends(get_current_caller),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    return _rate_governance_service(db).get_rate_card(caller=caller, rate_card_id=rate_card_id)


@router.post("", status_code=status.HTTP_201_CREATED)
def create_rate_card(
    payload: RateCardCreatePayload,
    caller: CallerIdentity = Depends(get_current_caller),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    return _rate_governance_service(db).create_rate_card(
        caller=caller,
        data=RateCardCreateData(
            name=payload.name,
            currency=payload.currency,
            valid_from=payload.valid_from,
            valid_to=payload.valid_to,
            entries=[entry.to_input() for entry in payload.entries],
        ),
    )


@router.patch("/{rate_card_id}")
def update_rate_card(
    rate_card_id: UUID,
    payload: RateCardUpdatePayload,
    caller: CallerIdentity = Depends(get_current_caller),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    provided = payload.model_fields_set
    return _rate_governance_service(db).update_rate_card(
        caller=caller,
        rate_card_id=rate_card_id,
        data=RateCardUpdateData(
            name=payload.name,
            currency=payload.currency,
            valid_from=payload.valid_from if "valid_from" in provided else UNSET,
            valid_to=payload.valid_to if "valid_to" in provided else UNSET,
            entries=[entry.to_input() for entry in payload.entries] if payload.entries is not None else None,
        ),
    )
