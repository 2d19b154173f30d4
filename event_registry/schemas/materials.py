from pydantic import BaseModel, Field

from event_registry.models.materials import MaterialVisibility, Provider, RegistryType
from event_registry.schemas.claims import ClaimOut


class MaterialCreate(BaseModel):
    item: str = Field(min_length=1, max_length=200)
    quantity_description: str = Field(default="", max_length=200)
    max_quantity: int | None = Field(default=None, ge=1)
    is_required: bool = False
    provider: Provider = Provider.PARTICIPANT
    notes: str = ""
    registry_type: RegistryType = RegistryType.REQUIRED
    visibility: MaterialVisibility = MaterialVisibility.PUBLIC


class MaterialUpdate(BaseModel):
    item: str | None = Field(default=None, min_length=1, max_length=200)
    quantity_description: str | None = Field(default=None, max_length=200)
    # Sending null explicitly makes the material unlimited.
    max_quantity: int | None = Field(default=None, ge=1)
    is_required: bool | None = None
    provider: Provider | None = None
    notes: str | None = None
    registry_type: RegistryType | None = None
    visibility: MaterialVisibility | None = None


class MaterialOut(BaseModel):
    id: int
    event_id: int
    item: str
    quantity_description: str
    max_quantity: int | None
    is_required: bool
    provider: Provider
    notes: str
    registry_type: RegistryType
    visibility: MaterialVisibility
    is_template_item: bool

    class Config:
        from_attributes = True


class MaterialWithClaimsOut(MaterialOut):
    claimed_quantity: int
    remaining_quantity: int | None
    claim_count: int
    my_claim: ClaimOut | None = None
    claims: list[ClaimOut] = []


class RemainingCapacityOut(BaseModel):
    material_id: int
    max_quantity: int | None
    remaining: int | None
    unlimited: bool


class MaterialRemovedOut(BaseModel):
    material_id: int
    cancelled_claims: int
