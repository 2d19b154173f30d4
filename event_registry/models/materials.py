import enum
from datetime import datetime

from sqlalchemy import Boolean, CheckConstraint, DateTime, ForeignKey, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from event_registry.database.db import Base


class Provider(str, enum.Enum):
    PARTICIPANT = "participant"
    ORGANIZER = "organizer"
    EITHER = "either"


class RegistryType(str, enum.Enum):
    REQUIRED = "required"
    LENDING = "lending"


class MaterialVisibility(str, enum.Enum):
    PUBLIC = "public"


class Material(Base):
    __tablename__ = "materials"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    event_id: Mapped[int] = mapped_column(ForeignKey("events.id"), nullable=False, index=True)
    item: Mapped[str] = mapped_column(String(200), nullable=False)
    quantity_description: Mapped[str] = mapped_column(String(200), nullable=False, default="")
    # NULL means unlimited.
    max_quantity: Mapped[int | None] = mapped_column(Integer, nullable=True)
    is_required: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    provider: Mapped[str] = mapped_column(String(16), nullable=False, default=Provider.PARTICIPANT.value)
    notes: Mapped[str] = mapped_column(Text, nullable=False, default="")
    registry_type: Mapped[str] = mapped_column(
        String(16), nullable=False, default=RegistryType.REQUIRED.value
    )
    visibility: Mapped[str] = mapped_column(
        String(16), nullable=False, default=MaterialVisibility.PUBLIC.value
    )
    is_template_item: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_archived: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    # Bumped by every capacity-affecting write; claimants compare-and-set on it.
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    event: Mapped["Event"] = relationship(back_populates="materials")
    claims: Mapped[list["Claim"]] = relationship(back_populates="material", order_by="Claim.id")

    __table_args__ = (
        CheckConstraint("max_quantity IS NULL OR max_quantity >= 1", name="ck_materials_max_quantity"),
    )
