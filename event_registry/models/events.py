import enum
from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from event_registry.database.db import Base


class VenueType(str, enum.Enum):
    HOME = "home"
    STUDIO = "studio"


class RegistryVisibility(str, enum.Enum):
    PUBLIC = "public"
    ORGANIZER_ONLY = "organizer_only"


class Event(Base):
    __tablename__ = "events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    category: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    organizer_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    registry_config: Mapped["RegistryConfig"] = relationship(
        back_populates="event", uselist=False, cascade="all, delete-orphan"
    )
    materials: Mapped[list["Material"]] = relationship(back_populates="event", order_by="Material.id")


class RegistryConfig(Base):
    __tablename__ = "registry_configs"

    event_id: Mapped[int] = mapped_column(ForeignKey("events.id"), primary_key=True)
    enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    venue_type: Mapped[str] = mapped_column(String(16), nullable=False, default=VenueType.HOME.value)
    visibility: Mapped[str] = mapped_column(
        String(16), nullable=False, default=RegistryVisibility.PUBLIC.value
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    event: Mapped["Event"] = relationship(back_populates="registry_config")
