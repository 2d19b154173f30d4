import enum
import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from event_registry.core.errors import coerce_enum
from event_registry.models.claims import Claim, ClaimStatus
from event_registry.models.events import Event, RegistryConfig, RegistryVisibility
from event_registry.services.allocation import compute_remaining
from event_registry.services.registry import get_registry_config, is_organizer, list_materials

logger = logging.getLogger(__name__)


class ViewerRole(str, enum.Enum):
    ORGANIZER = "organizer"
    PARTICIPANT = "participant"


def resolve_viewer_role(event: Event, viewer_id: str | None) -> ViewerRole:
    return ViewerRole.ORGANIZER if is_organizer(event, viewer_id) else ViewerRole.PARTICIPANT


def can_view_claim_details(registry_config: RegistryConfig, viewer_role: ViewerRole | str) -> bool:
    """Whether the viewer may see who claimed what, and their notes."""
    if coerce_enum(ViewerRole, viewer_role, "viewer_role") == ViewerRole.ORGANIZER.value:
        return True
    return registry_config.visibility == RegistryVisibility.PUBLIC.value


def _claim_dict(claim: Claim) -> dict:
    return {
        "id": claim.id,
        "material_id": claim.material_id,
        "user_id": claim.user_id,
        "claim_type": claim.claim_type,
        "quantity": claim.quantity,
        "notes": claim.notes,
        "status": claim.status,
        "created_at": claim.created_at,
        "updated_at": claim.updated_at,
    }


def list_materials_with_claims(
    db: Session, event_id: int, viewer_id: str | None, viewer_role: ViewerRole | str
) -> list[dict]:
    """
    Materials of an event with capacity figures and the claims the viewer may see.

    Capacity figures are always included. Other users' claims (identity and
    notes) only appear when the registry is public or the viewer organizes
    the event; the viewer's own claim is always returned as ``my_claim``.
    """
    config = get_registry_config(db, event_id)
    show_all = can_view_claim_details(config, viewer_role)
    materials = list_materials(db, event_id)
    if not materials:
        return []

    claims = db.scalars(
        select(Claim)
        .where(
            Claim.material_id.in_([material.id for material in materials]),
            Claim.status == ClaimStatus.CLAIMED.value,
        )
        .order_by(Claim.id)
    ).all()
    by_material: dict[int, list[Claim]] = {material.id: [] for material in materials}
    for claim in claims:
        by_material[claim.material_id].append(claim)

    views = []
    for material in materials:
        material_claims = by_material[material.id]
        claimed = sum(claim.quantity for claim in material_claims)
        mine = next((claim for claim in material_claims if claim.user_id == viewer_id), None)
        visible = material_claims if show_all else [mine] if mine is not None else []
        views.append(
            {
                "id": material.id,
                "event_id": material.event_id,
                "item": material.item,
                "quantity_description": material.quantity_description,
                "max_quantity": material.max_quantity,
                "is_required": material.is_required,
                "provider": material.provider,
                "notes": material.notes,
                "registry_type": material.registry_type,
                "visibility": material.visibility,
                "is_template_item": material.is_template_item,
                "claimed_quantity": claimed,
                "remaining_quantity": compute_remaining(material.max_quantity, claimed, material.id),
                "claim_count": len(material_claims),
                "my_claim": _claim_dict(mine) if mine is not None else None,
                "claims": [_claim_dict(claim) for claim in visible],
            }
        )
    logger.debug(
        "Listed %s materials of event %s for %s (details %s)",
        len(views),
        event_id,
        coerce_enum(ViewerRole, viewer_role, "viewer_role"),
        "shown" if show_all else "hidden",
    )
    return views
