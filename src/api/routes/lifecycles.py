"""
Lifecycle Blueprint Endpoints.
Read-only status tables, so the frontend can render editable fields and
allowed transitions without duplicating the rules.
"""

from typing import Any

from fastapi import APIRouter, Depends

from src.api.deps import get_current_user_id
from src.services.claim_lifecycle import CLAIM_LIFECYCLE_BLUEPRINT
from src.services.invoice_lifecycle import INVOICE_LIFECYCLE_BLUEPRINT
from src.services.lifecycle import LifecycleBlueprint
from src.services.policy_lifecycle import POLICY_LIFECYCLE_BLUEPRINT
from src.utils.errors import NotFoundError

router = APIRouter(
    prefix="/lifecycles",
    tags=["lifecycles"],
    dependencies=[Depends(get_current_user_id)],
)

BLUEPRINTS: dict[str, LifecycleBlueprint[Any]] = {
    "claims": CLAIM_LIFECYCLE_BLUEPRINT,
    "policies": POLICY_LIFECYCLE_BLUEPRINT,
    "invoices": INVOICE_LIFECYCLE_BLUEPRINT,
}


@router.get("/{entity}")
async def get_lifecycle(entity: str) -> dict[str, Any]:
    """Status table of one entity type (claims, policies or invoices)."""
    blueprint = BLUEPRINTS.get(entity)
    if blueprint is None:
        raise NotFoundError(f"Unknown lifecycle: {entity}")
    return blueprint.describe()
