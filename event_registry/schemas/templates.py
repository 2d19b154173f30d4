from pydantic import BaseModel


class TemplateItemOut(BaseModel):
    item: str
    quantity_description: str
    max_quantity: int | None
    is_required: bool
    provider: str
    notes: str
    registry_type: str

    class Config:
        from_attributes = True


class TemplateMatchOut(BaseModel):
    category: str
    has_template: bool
    matched_key: str | None
