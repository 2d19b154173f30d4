"""
Organizer-side registry management: events, registry settings and materials.

Every mutation checks that the acting user organizes the event. Material
definitions are last-writer-wins, except that a new maximum and archiving
change what can be claimed, so those go through the material locks the same
way claims do.
"""

import logging

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from event_registry.core.errors import NotFound, Unauthorized, ValidationError, coerce_enum
from event_registry.models.claims import Claim, ClaimStatus
from event_registry.models.events import Event, RegistryConfig, RegistryVisibility, VenueType
from event_registry.models.materials import Material, MaterialVisibility, Provider, RegistryType
from event_registry.services.locking import bump_version, run_locked
from event_registry.services.templates import get_template

logger = logging.getLogger(__name__)

MATERIAL_FIELDS = (
    "item",
    "quantity_description",
    "max_quantity",
    "is_required",
    "provider",
    "notes",
    "registry_type",
    "visibility",
    "is_template_item",
)

_MATERIAL_DEFAULTS = {
    "quantity_description": "",
    "max_quantity": None,
    "is_required": False,
    "provider": Provider.PARTICIPANT.value,
    "notes": "",
    "registry_type": RegistryType.REQUIRED.value,
    "visibility": MaterialVisibility.PUBLIC.value,
    "is_template_item": False,
}


# ---------- Events ----------
def create_event(db: Session, *, title: str, organizer_id: str, category: str = "") -> Event:
    """Create an event together with its default registry settings."""
    title = (title or "").strip()
    if not title:
        raise ValidationError("Event title is required.")
    if not organizer_id:
        raise ValidationError("Event organizer is required.")

    event = Event(title=title, category=(category or "").strip(), organizer_id=organizer_id)
    event.registry_config = RegistryConfig(
        enabled=True,
        venue_type=VenueType.HOME.value,
        visibility=RegistryVisibility.PUBLIC.value,
    )
    db.add(event)
    db.commit()
    db.refresh(event)
    logger.info("Created event %s for organizer %s", event.id, organizer_id)
    return event


def get_event(db: Session, event_id: int) -> Event:
    event = db.get(Event, event_id)
    if event is None:
        raise NotFound(f"Event {event_id} not found.")
    return event


def is_organizer(event: Event, user_id: str | None) -> bool:
    return user_id is not None and event.organizer_id == user_id


def require_organizer(event: Event, actor_id: str | None) -> None:
    if not is_organizer(event, actor_id):
        raise Unauthorized("Only the event organizer can change the registry.")


# ---------- Registry settings ----------
def get_registry_config(db: Session, event_id: int) -> RegistryConfig:
    event = get_event(db, event_id)
    config = event.registry_config
    if config is None:
        # Events created before registries existed get defaults lazily.
        config = RegistryConfig(event_id=event.id)
        db.add(config)
        db.commit()
        db.refresh(config)
    return config


def _update_config(db: Session, event_id: int, actor_id: str, **values) -> RegistryConfig:
    event = get_event(db, event_id)
    require_organizer(event, actor_id)
    config = get_registry_config(db, event_id)
    for field, value in values.items():
        setattr(config, field, value)
    db.commit()
    db.refresh(config)
    logger.info("Registry for event %s updated: %s", event_id, values)
    return config


def set_enabled(db: Session, event_id: int, enabled: bool, actor_id: str) -> RegistryConfig:
    if not isinstance(enabled, bool):
        raise ValidationError("enabled must be true or false.")
    return _update_config(db, event_id, actor_id, enabled=enabled)


def set_venue_type(db: Session, event_id: int, venue_type: VenueType | str, actor_id: str) -> RegistryConfig:
    """Change the venue type; existing materials are left as they are."""
    value = coerce_enum(VenueType, venue_type, "venue_type")
    return _update_config(db, event_id, actor_id, venue_type=value)


def set_visibility(
    db: Session, event_id: int, visibility: RegistryVisibility | str, actor_id: str
) -> RegistryConfig:
    value = coerce_enum(RegistryVisibility, visibility, "visibility")
    return _update_config(db, event_id, actor_id, visibility=value)


# ---------- Materials ----------
def validate_material_fields(fields: dict, *, partial: bool = False) -> dict:
    """
    Check and normalize material fields.

    With ``partial`` only the given keys are validated (for updates); otherwise
    missing keys take their defaults and ``item`` is mandatory.
    """
    unknown = set(fields) - set(MATERIAL_FIELDS)
    if unknown:
        raise ValidationError(f"Unknown material fields: {', '.join(sorted(unknown))}.")

    cleaned = dict(fields) if partial else {**_MATERIAL_DEFAULTS, **fields}

    if "item" in cleaned or not partial:
        item = cleaned.get("item")
        item = item.strip() if isinstance(item, str) else ""
        if not item:
            raise ValidationError("Item name is required.")
        if len(item) > 200:
            raise ValidationError("Item name must be at most 200 characters.")
        cleaned["item"] = item

    if "max_quantity" in cleaned:
        max_quantity = cleaned["max_quantity"]
        if max_quantity is not None:
            if isinstance(max_quantity, bool) or not isinstance(max_quantity, int) or max_quantity < 1:
                raise ValidationError("max_quantity must be a positive whole number or empty for unlimited.")

    for field in ("quantity_description", "notes"):
        if field in cleaned:
            value = cleaned[field]
            if value is None:
                cleaned[field] = ""
            elif not isinstance(value, str):
                raise ValidationError(f"{field} must be text.")
            else:
                cleaned[field] = value.strip()

    for field in ("is_required", "is_template_item"):
        if field in cleaned and not isinstance(cleaned[field], bool):
            raise ValidationError(f"{field} must be true or false.")

    if "provider" in cleaned:
        cleaned["provider"] = coerce_enum(Provider, cleaned["provider"], "provider")
    if "registry_type" in cleaned:
        cleaned["registry_type"] = coerce_enum(RegistryType, cleaned["registry_type"], "registry_type")
    if "visibility" in cleaned:
        cleaned["visibility"] = coerce_enum(MaterialVisibility, cleaned["visibility"], "visibility")

    return cleaned


def get_material(db: Session, material_id: int, *, include_archived: bool = False) -> Material:
    material = db.get(Material, material_id)
    if material is None or (material.is_archived and not include_archived):
        raise NotFound(f"Material {material_id} not found.")
    return material


def list_materials(
    db: Session, event_id: int, registry_type: RegistryType | str | None = None
) -> list[Material]:
    """Active materials of an event in creation order, optionally one partition only."""
    get_event(db, event_id)
    stmt = select(Material).where(Material.event_id == event_id, Material.is_archived.is_(False))
    if registry_type is not None:
        stmt = stmt.where(Material.registry_type == coerce_enum(RegistryType, registry_type, "registry_type"))
    return list(db.scalars(stmt.order_by(Material.id)))


def _new_material(event_id: int, fields: dict) -> Material:
    return Material(event_id=event_id, version=0, is_archived=False, **fields)


def add_material(db: Session, event_id: int, fields: dict, actor_id: str) -> Material:
    event = get_event(db, event_id)
    require_organizer(event, actor_id)
    cleaned = validate_material_fields(fields)

    material = _new_material(event.id, cleaned)
    db.add(material)
    db.commit()
    db.refresh(material)
    logger.info("Added material %s (%r) to event %s", material.id, material.item, event.id)
    return material


def update_material(db: Session, material_id: int, fields: dict, actor_id: str) -> Material:
    material = get_material(db, material_id)
    require_organizer(material.event, actor_id)
    cleaned = validate_material_fields(fields, partial=True)

    if "max_quantity" in cleaned and cleaned["max_quantity"] != material.max_quantity:
        # In-flight claimants on the old capacity must re-check.
        material = run_locked(db, [material.id], _update_capacity_in_transaction, material.id, cleaned)
    else:
        for field, value in cleaned.items():
            setattr(material, field, value)
        db.commit()
    db.refresh(material)
    logger.info("Updated material %s: %s", material.id, sorted(cleaned))
    return material


def reload_material(db: Session, material_id: int) -> Material:
    """Re-read an active material inside the transaction, bypassing the identity map."""
    material = db.get(Material, material_id, populate_existing=True)
    if material is None or material.is_archived:
        raise NotFound(f"Material {material_id} not found.")
    return material


def _update_capacity_in_transaction(db: Session, material_id: int, fields: dict) -> Material:
    material = reload_material(db, material_id)
    bump_version(db, material)
    for field, value in fields.items():
        setattr(material, field, value)
    return material


def _archive_in_transaction(db: Session, material_ids: list[int], replacements=()) -> tuple[int, list[Material]]:
    """
    Archive materials, cancel their active claims and add ``replacements``.

    ``replacements`` are ``(event_id, fields)`` pairs. Caller holds the
    material locks and commits.
    """
    for material_id in material_ids:
        bump_version(db, reload_material(db, material_id))
    cancelled = 0
    if material_ids:
        result = db.execute(
            update(Claim)
            .where(Claim.material_id.in_(material_ids), Claim.status == ClaimStatus.CLAIMED.value)
            .values(status=ClaimStatus.CANCELLED.value)
            .execution_options(synchronize_session="fetch")
        )
        cancelled = result.rowcount or 0
        db.execute(
            update(Material)
            .where(Material.id.in_(material_ids))
            .values(is_archived=True)
            .execution_options(synchronize_session="fetch")
        )

    added = [_new_material(event_id, fields) for event_id, fields in replacements]
    db.add_all(added)
    db.flush()
    return cancelled, added


def remove_material(db: Session, material_id: int, actor_id: str) -> int:
    """Remove a material; its active claims are cancelled. Returns the number cancelled."""
    material = get_material(db, material_id)
    require_organizer(material.event, actor_id)

    cancelled, _ = run_locked(db, [material.id], _archive_in_transaction, [material.id])
    logger.info("Removed material %s, cancelled %s active claims", material_id, cancelled)
    return cancelled


def load_template_into(
    db: Session,
    event_id: int,
    actor_id: str,
    category: str | None = None,
    venue_type: VenueType | str | None = None,
) -> list[Material]:
    """
    Replace the event's materials with a template's items.

    This is a "start over" action: manually added materials are removed too.
    Without a matching template the current list is kept and returned.
    """
    event = get_event(db, event_id)
    require_organizer(event, actor_id)
    config = get_registry_config(db, event_id)

    category = event.category if category is None else category
    venue = coerce_enum(VenueType, venue_type if venue_type is not None else config.venue_type, "venue_type")
    template = get_template(category, venue)
    if not template:
        logger.info("No registry template for category %r; keeping event %s materials", category, event_id)
        return list_materials(db, event_id)

    current = list_materials(db, event_id)
    replacements = [
        (event.id, validate_material_fields({**template_item.as_material_fields(), "is_template_item": True}))
        for template_item in template
    ]
    current_ids = [material.id for material in current]
    cancelled, materials = run_locked(db, current_ids, _archive_in_transaction, current_ids, replacements)
    for material in materials:
        db.refresh(material)

    logger.info(
        "Loaded %s template items (%r, %s) into event %s; replaced %s materials, cancelled %s claims",
        len(materials),
        category,
        venue,
        event_id,
        len(current),
        cancelled,
    )
    return materials
