from datetime import datetime

from pydantic import BaseModel, Field

from event_registry.models.claims import ClaimType


class ClaimCreate(BaseModel):
    claim_type: ClaimType = ClaimType.PERSONAL
    quantity: int = Field(default=1, ge=1)
    notes: str | None = Field(default=None, max_length=1000)


class ClaimUpdate(BaseModel):
    quantity: int = Field(ge=1)
    notes: str | None = Field(default=None, max_length=1000)


class ClaimOut(BaseModel):
    id: int
    material_id: int
    user_id: str
    claim_type: str
    quantity: int
    notes: str | None
    status: str
    created_at: datetime | None = None
    updated_at: datetime | None = None

    class Config:
        from_attributes = True
