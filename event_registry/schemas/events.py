from datetime import datetime

from pydantic import BaseModel, Field

from event_registry.models.events import RegistryVisibility, VenueType


# ---------- Event ----------
class EventCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    category: str = Field(default="", max_length=100)


class EventOut(BaseModel):
    id: int
    title: str
    category: str
    organizer_id: str
    created_at: datetime | None = None

    class Config:
        from_attributes = True


# ---------- Registry settings ----------
class RegistryConfigOut(BaseModel):
    event_id: int
    enabled: bool
    venue_type: VenueType
    visibility: RegistryVisibility

    class Config:
        from_attributes = True


class RegistryConfigUpdate(BaseModel):
    enabled: bool | None = None
    venue_type: VenueType | None = None
    visibility: RegistryVisibility | None = None


class TemplateLoadRequest(BaseModel):
    # Defaults to the event's category and the registry's venue type.
    category: str | None = Field(default=None, max_length=100)
    venue_type: VenueType | None = None
