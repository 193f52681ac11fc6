"""Current caller endpoint."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.auth import CallerIdentity, get_current_caller
from app.db.dependencies import get_db_session
from app.services.organization_context import OrganizationContextService

router = APIRouter(prefix="/me", tags=["me"])


@router.get("")
def get_me(
    caller: CallerIdentity = Depends(get_current_caller),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    """Return the caller identity and the organization it is scoped to."""

    context = OrganizationContextService(db).ensure_context(caller)
    return {
        "id": caller.id,
        "email": caller.email,
        "given_name": caller.given_name,
        "family_name": caller.family_name,
        "display_name": caller.display_name,
        "roles": list(caller.roles),
        "organization": {
            "id": str(context.organization_id),
            "currency": context.currency,
        },
        "member_id": context.member_id,
    }
