from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from event_registry.core.deps import get_current_user_id
from event_registry.database.db import get_db
from event_registry.models.materials import RegistryType
from event_registry.schemas.claims import ClaimOut
from event_registry.schemas.events import (
    EventCreate,
    EventOut,
    RegistryConfigOut,
    RegistryConfigUpdate,
    TemplateLoadRequest,
)
from event_registry.schemas.materials import MaterialCreate, MaterialOut, MaterialWithClaimsOut
from event_registry.services import allocation, registry
from event_registry.services.visibility import list_materials_with_claims, resolve_viewer_role

router = APIRouter(prefix="/event", tags=["events"])


@router.post("", response_model=EventOut, status_code=201)
def create_event(
    payload: EventCreate,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    return registry.create_event(db, title=payload.title, category=payload.category, organizer_id=user_id)


@router.get("/{event_id}", response_model=EventOut)
def get_event(event_id: int, db: Session = Depends(get_db)):
    return registry.get_event(db, event_id)


@router.get("/{event_id}/registry", response_model=RegistryConfigOut)
def get_registry(event_id: int, db: Session = Depends(get_db)):
    return registry.get_registry_config(db, event_id)


@router.patch("/{event_id}/registry", response_model=RegistryConfigOut)
def update_registry(
    event_id: int,
    payload: RegistryConfigUpdate,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    registry.require_organizer(registry.get_event(db, event_id), user_id)
    config = registry.get_registry_config(db, event_id)
    if payload.enabled is not None:
        config = registry.set_enabled(db, event_id, payload.enabled, user_id)
    if payload.venue_type is not None:
        config = registry.set_venue_type(db, event_id, payload.venue_type, user_id)
    if payload.visibility is not None:
        config = registry.set_visibility(db, event_id, payload.visibility, user_id)
    return config


@router.post("/{event_id}/registry/template", response_model=list[MaterialOut])
def load_template(
    event_id: int,
    payload: TemplateLoadRequest,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    return registry.load_template_into(
        db, event_id, user_id, category=payload.category, venue_type=payload.venue_type
    )


@router.get("/{event_id}/materials", response_model=list[MaterialWithClaimsOut])
def list_materials(
    event_id: int,
    registry_type: RegistryType | None = None,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    role = resolve_viewer_role(registry.get_event(db, event_id), user_id)
    views = list_materials_with_claims(db, event_id, user_id, role)
    if registry_type is not None:
        views = [view for view in views if view["registry_type"] == registry_type.value]
    return views


@router.post("/{event_id}/materials", response_model=MaterialOut, status_code=201)
def add_material(
    event_id: int,
    payload: MaterialCreate,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    return registry.add_material(db, event_id, payload.model_dump(), user_id)


@router.get("/{event_id}/claims/mine", response_model=list[ClaimOut])
def my_claims(
    event_id: int,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    return allocation.get_user_claims(db, event_id, user_id)
