import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from event_registry.core.deps import get_current_user_id
from event_registry.database.db import get_db
from event_registry.schemas.claims import ClaimCreate, ClaimOut
from event_registry.schemas.materials import (
    MaterialOut,
    MaterialRemovedOut,
    MaterialUpdate,
    RemainingCapacityOut,
)
from event_registry.services import allocation, registry
from event_registry.tasks import audit_material_capacity_task

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/materials", tags=["materials"])


@router.patch("/{material_id}", response_model=MaterialOut)
def update_material(
    material_id: int,
    payload: MaterialUpdate,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    fields = payload.model_dump(exclude_unset=True)
    material = registry.update_material(db, material_id, fields, user_id)

    if "max_quantity" in fields:
        # a lowered maximum can leave existing claims over capacity; audit it off-request
        try:
            audit_material_capacity_task.delay(material.id)
        except Exception:
            logger.warning("Could not enqueue capacity audit for material %s", material.id, exc_info=True)
    return material


@router.delete("/{material_id}", response_model=MaterialRemovedOut)
def remove_material(
    material_id: int,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    cancelled = registry.remove_material(db, material_id, user_id)
    return {"material_id": material_id, "cancelled_claims": cancelled}


@router.get("/{material_id}/remaining", response_model=RemainingCapacityOut)
def remaining_capacity(material_id: int, db: Session = Depends(get_db)):
    material = registry.get_material(db, material_id, include_archived=True)
    remaining = allocation.get_remaining_capacity(db, material_id)
    return {
        "material_id": material.id,
        "max_quantity": material.max_quantity,
        "remaining": remaining,
        "unlimited": remaining is None,
    }


@router.post("/{material_id}/claims", response_model=ClaimOut, status_code=201)
def claim_material(
    material_id: int,
    payload: ClaimCreate,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    return allocation.claim_material(
        db,
        material_id=material_id,
        user_id=user_id,
        claim_type=payload.claim_type,
        quantity=payload.quantity,
        notes=payload.notes,
    )
