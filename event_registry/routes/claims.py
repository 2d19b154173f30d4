from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from event_registry.core.deps import get_current_user_id
from event_registry.database.db import get_db
from event_registry.schemas.claims import ClaimOut, ClaimUpdate
from event_registry.services import allocation

router = APIRouter(prefix="/claims", tags=["claims"])


@router.patch("/{claim_id}", response_model=ClaimOut)
def update_claim(
    claim_id: int,
    payload: ClaimUpdate,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    return allocation.update_claim(
        db, claim_id=claim_id, user_id=user_id, quantity=payload.quantity, notes=payload.notes
    )


@router.delete("/{claim_id}", status_code=204)
def unclaim(
    claim_id: int,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    allocation.unclaim_material(db, claim_id=claim_id, user_id=user_id)
    return Response(status_code=204)
