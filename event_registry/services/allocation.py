"""
Claim allocation against finite material capacity.

Every claim write runs through ``locking.run_locked``: the material lock is
held and the material version is compare-and-set before the claimed sum is
read, so two claimants can never both see the same remaining capacity.
"""

import logging

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session

from event_registry.core.errors import (
    AlreadyClaimed,
    Busy,
    CapacityExceeded,
    NotFound,
    Unauthorized,
    ValidationError,
)
from event_registry.models.claims import Claim, ClaimStatus, ClaimType
from event_registry.models.materials import Material
from event_registry.services.locking import bump_version, material_lock, run_locked
from event_registry.services.registry import get_event, get_material, is_organizer, reload_material

logger = logging.getLogger(__name__)


# ---------- Capacity arithmetic ----------
def get_claimed_quantity(db: Session, material_id: int, exclude_claim_id: int | None = None) -> int:
    """Sum of quantities over the material's active claims."""
    stmt = select(func.coalesce(func.sum(Claim.quantity), 0)).where(
        Claim.material_id == material_id,
        Claim.status == ClaimStatus.CLAIMED.value,
    )
    if exclude_claim_id is not None:
        stmt = stmt.where(Claim.id != exclude_claim_id)
    return int(db.scalar(stmt) or 0)


def compute_remaining(max_quantity: int | None, claimed: int, material_id: int) -> int | None:
    if max_quantity is None:
        return None
    remaining = max_quantity - claimed
    if remaining < 0:
        logger.warning(
            "Material %s is over-allocated: %s claimed against a maximum of %s",
            material_id,
            claimed,
            max_quantity,
        )
        return 0
    return remaining


def get_remaining_capacity(db: Session, material_id: int) -> int | None:
    """Units still available, or None when the material is unlimited. Never negative."""
    material = get_material(db, material_id, include_archived=True)
    return compute_remaining(material.max_quantity, get_claimed_quantity(db, material.id), material.id)



def _check_capacity(db: Session, material: Material, quantity: int, exclude_claim_id: int | None = None) -> None:
    claimed_by_others = get_claimed_quantity(db, material.id, exclude_claim_id=exclude_claim_id)
    remaining = compute_remaining(material.max_quantity, claimed_by_others, material.id)
    if remaining is not None and quantity > remaining:
        raise CapacityExceeded(remaining, requested=quantity)


def _validate_quantity(quantity) -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
        raise ValidationError("Quantity must be a whole number of at least 1.")
    return quantity


def _clean_notes(notes: str | None) -> str | None:
    if notes is None:
        return None
    if not isinstance(notes, str):
        raise ValidationError("Notes must be text.")
    return notes.strip() or None


def _active_claim(db: Session, material_id: int, user_id: str) -> Claim | None:
    return db.scalar(
        select(Claim).where(
            Claim.material_id == material_id,
            Claim.user_id == user_id,
            Claim.status == ClaimStatus.CLAIMED.value,
        )
    )


# ---------- Claim lifecycle ----------
def claim_material(
    db: Session,
    *,
    material_id: int,
    user_id: str,
    claim_type: ClaimType | str = ClaimType.PERSONAL,
    quantity: int = 1,
    notes: str | None = None,
) -> Claim:
    """Claim ``quantity`` units of a material for ``user_id``."""
    if not user_id:
        raise ValidationError("A user is required to claim an item.")
    quantity = _validate_quantity(quantity)
    notes = _clean_notes(notes)
    try:
        claim_type = ClaimType(claim_type).value
    except ValueError:
        raise ValidationError(f"Invalid claim_type {claim_type!r}.") from None
    get_material(db, material_id)

    claim = run_locked(db, [material_id], _claim_in_transaction, user_id, material_id, claim_type, quantity, notes)
    db.refresh(claim)
    logger.info("User %s claimed %s of material %s (claim %s)", user_id, quantity, material_id, claim.id)
    return claim


def _claim_in_transaction(
    db: Session, user_id: str, material_id: int, claim_type: str, quantity: int, notes: str | None
) -> Claim:
    material = reload_material(db, material_id)
    bump_version(db, material)

    existing = _active_claim(db, material.id, user_id)
    if existing is not None:
        raise AlreadyClaimed(existing.id)
    _check_capacity(db, material, quantity)

    claim = Claim(
        material_id=material.id,
        user_id=user_id,
        claim_type=claim_type,
        quantity=quantity,
        notes=notes,
        status=ClaimStatus.CLAIMED.value,
    )
    db.add(claim)
    try:
        db.flush()  # gets claim.id
    except IntegrityError as exc:
        # Active-claim unique index: a second session of the same user got there first.
        raise AlreadyClaimed() from exc
    return claim


def get_claim(db: Session, claim_id: int) -> Claim:
    claim = db.get(Claim, claim_id)
    if claim is None:
        raise NotFound(f"Claim {claim_id} not found.")
    return claim


def update_claim(
    db: Session,
    *,
    claim_id: int,
    user_id: str,
    quantity: int,
    notes: str | None = None,
) -> Claim:
    """
    Change the quantity (and optionally the notes) of the caller's claim.

    Capacity is re-checked with this claim's own current quantity released,
    so raising 1 -> 2 on a material with two units left for you succeeds.
    ``notes=None`` keeps the current notes; an empty string clears them.
    """
    quantity = _validate_quantity(quantity)
    if notes is not None and not isinstance(notes, str):
        raise ValidationError("Notes must be text.")
    claim = get_claim(db, claim_id)
    if claim.user_id != user_id:
        raise Unauthorized("You can only change your own claim.")
    material_id = claim.material_id

    claim = run_locked(db, [material_id], _update_in_transaction, user_id, claim_id, quantity, notes)
    db.refresh(claim)
    logger.info("User %s changed claim %s to %s", user_id, claim_id, quantity)
    return claim


def _update_in_transaction(db: Session, user_id: str, claim_id: int, quantity: int, notes: str | None) -> Claim:
    claim = db.get(Claim, claim_id, populate_existing=True)
    if claim is None:
        raise NotFound(f"Claim {claim_id} not found.")
    if claim.status != ClaimStatus.CLAIMED.value:
        raise ValidationError("This claim was cancelled; claim the item again instead.")
    material = reload_material(db, claim.material_id)
    bump_version(db, material)
    _check_capacity(db, material, quantity, exclude_claim_id=claim.id)

    claim.quantity = quantity
    if notes is not None:
        claim.notes = notes.strip() or None
    db.flush()
    return claim


def unclaim_material(db: Session, *, claim_id: int, user_id: str) -> None:
    """
    Cancel a claim. The claimant or the event organizer may do this.

    Cancelling an already cancelled claim does nothing.
    """
    claim = get_claim(db, claim_id)
    material = get_material(db, claim.material_id, include_archived=True)
    if claim.user_id != user_id and not is_organizer(material.event, user_id):
        raise Unauthorized("You can only cancel your own claim.")
    if claim.status == ClaimStatus.CANCELLED.value:
        logger.debug("Claim %s already cancelled", claim_id)
        return

    with material_lock(material.id):
        try:
            db.execute(
                update(Claim)
                .where(Claim.id == claim_id, Claim.status == ClaimStatus.CLAIMED.value)
                .values(status=ClaimStatus.CANCELLED.value)
                .execution_options(synchronize_session="fetch")
            )
            db.commit()
        except OperationalError as exc:
            db.rollback()
            raise Busy("Could not cancel the claim right now, please try again.") from exc

    forced = " (by organizer)" if claim.user_id != user_id else ""
    logger.info("Claim %s on material %s cancelled%s", claim_id, material.id, forced)


def get_user_claims(db: Session, event_id: int, user_id: str) -> list[Claim]:
    """The user's active claims on the event's active materials."""
    get_event(db, event_id)
    stmt = (
        select(Claim)
        .join(Material, Material.id == Claim.material_id)
        .where(
            Material.event_id == event_id,
            Material.is_archived.is_(False),
            Claim.user_id == user_id,
            Claim.status == ClaimStatus.CLAIMED.value,
        )
        .order_by(Claim.id)
    )
    return list(db.scalars(stmt))


def audit_material_capacity(db: Session, material_id: int) -> dict:
    """Compare a material's claimed total with its maximum; flags over-allocation."""
    material = db.get(Material, material_id)
    if material is None:
        return {}
    claimed = get_claimed_quantity(db, material.id)
    over_by = 0
    if material.max_quantity is not None and claimed > material.max_quantity:
        over_by = claimed - material.max_quantity
        logger.warning(
            "Material %s (%r) is over-allocated by %s after its maximum changed",
            material.id,
            material.item,
            over_by,
        )
    return {
        "material_id": material.id,
        "max_quantity": material.max_quantity,
        "claimed_quantity": claimed,
        "over_allocated_by": over_by,
    }
