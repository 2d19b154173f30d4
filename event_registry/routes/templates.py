from fastapi import APIRouter

from event_registry.models.events import VenueType
from event_registry.schemas.templates import TemplateItemOut, TemplateMatchOut
from event_registry.services import templates

router = APIRouter(prefix="/templates", tags=["templates"])


@router.get("", response_model=list[TemplateItemOut])
def get_template(category: str, venue_type: VenueType = VenueType.HOME):
    return templates.get_template(category, venue_type)


@router.get("/categories", response_model=list[str])
def template_categories():
    return templates.available_template_categories()


@router.get("/match", response_model=TemplateMatchOut)
def match_template(category: str):
    return {
        "category": category,
        "has_template": templates.has_template(category),
        "matched_key": templates.match_category(category),
    }
