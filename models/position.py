# models/position.py
from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import CheckConstraint, DateTime, Float, ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Position(Base):
    """Current holding of one asset at one custodian."""

    __tablename__ = "positions"
    __table_args__ = (
        UniqueConstraint("asset_id", "custodian_id", name="uq_positions_asset_custodian"),
        CheckConstraint("quantity >= 0", name="ck_positions_quantity_non_negative"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    asset_id: Mapped[int] = mapped_column(ForeignKey("assets.id", ondelete="CASCADE"), index=True)
    custodian_id: Mapped[int] = mapped_column(ForeignKey("custodians.id", ondelete="CASCADE"), index=True)
    quantity: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        onupdate=_utcnow,
        nullable=False,
    )

    asset = relationship("Asset", back_populates="positions")
    custodian = relationship("Custodian", back_populates="positions")
