import enum
from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, Integer, String, Text, func, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from event_registry.database.db import Base


class ClaimType(str, enum.Enum):
    PERSONAL = "personal"
    LENDING = "lending"


class ClaimStatus(str, enum.Enum):
    CLAIMED = "claimed"
    CANCELLED = "cancelled"


class Claim(Base):
    __tablename__ = "claims"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    material_id: Mapped[int] = mapped_column(ForeignKey("materials.id"), nullable=False, index=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    claim_type: Mapped[str] = mapped_column(String(16), nullable=False, default=ClaimType.PERSONAL.value)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=ClaimStatus.CLAIMED.value)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    material: Mapped["Material"] = relationship(back_populates="claims")

    __table_args__ = (
        CheckConstraint("quantity >= 1", name="ck_claims_quantity_positive"),
        # One active claim per user and material; cancelled rows are kept for history.
        Index(
            "uq_claims_active_material_user",
            "material_id",
            "user_id",
            unique=True,
            sqlite_where=text("status = 'claimed'"),
            postgresql_where=text("status = 'claimed'"),
        ),
    )
