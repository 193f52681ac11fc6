"""Caller identity extraction from trusted proxy headers."""

from __future__ import annotations

import re
from dataclasses import dataclass

from fastapi import Header, HTTPException, status

from app.core.config import get_settings


@dataclass(frozen=True)
class CallerIdentity:
    """Fully-resolved caller supplied by the upstream authenticator."""

    id: str
    email: str
    given_name: str | None = None
    family_name: str | None = None
    roles: tuple[str, ...] = ()

    @property
    def display_name(self) -> str:
        parts = [part for part in (self.given_name, self.family_name) if part]
        return " ".join(parts) if parts else self.email


def _split_display_name(display_name: str | None) -> tuple[str | None, str | None]:
    if not display_name or not display_name.strip():
        return None, None
    first, *rest = display_name.strip().split()
    return first, " ".join(rest) or None


def _parse_roles(raw: str | None) -> tuple[str, ...]:
    if not raw:
        return ()
    return tuple(role.strip() for role in raw.split(",") if role.strip())


def _fallback_email(user_id: str) -> str:
    return f"{re.sub(r'[^a-z0-9]', '.', user_id, flags=re.IGNORECASE)}@proserv.local"


def build_caller_identity(
    *,
    user_id: str,
    email: str | None = None,
    display_name: str | None = None,
    roles: str | None = None,
) -> CallerIdentity:
    """Normalize raw identity claims into a ``CallerIdentity``.

    Utility exported for tests and seed helpers.
    """

    normalized_id = user_id.strip()
    normalized_email = (email or "").strip().lower() or _fallback_email(normalized_id)
    given_name, family_name = _split_display_name(display_name)
    return CallerIdentity(
        id=normalized_id,
        email=normalized_email,
        given_name=given_name,
        family_name=family_name,
        roles=_parse_roles(roles),
    )


def get_current_caller(
    x_user_id: str | None = Header(default=None, alias="X-Proserv-User-Id"),
    x_user_email: str | None = Header(default=None, alias="X-Proserv-User-Email"),
    x_user_name: str | None = Header(default=None, alias="X-Proserv-User-Name"),
    x_user_roles: str | None = Header(default=None, alias="X-Proserv-User-Roles"),
) -> CallerIdentity:
    """Resolve the caller for the current request.

    Header strategy:
    - Trusted headers set by the authenticating proxy / test clients.
    - Development principal fallback when headers are absent and allowed.
    """

    if x_user_id and x_user_id.strip():
        return build_caller_identity(
            user_id=x_user_id,
            email=x_user_email,
            display_name=x_user_name,
            roles=x_user_roles,
        )

    settings = get_settings()
    if settings.auth_allow_dev_principal:
        return build_caller_identity(
            user_id=settings.auth_dev_user_id,
            email=settings.auth_dev_email,
            display_name=settings.auth_dev_display_name,
            roles=x_user_roles,
        )

    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Missing identity headers. Expected X-Proserv-User-Id or enable development principal fallback.",
    )
