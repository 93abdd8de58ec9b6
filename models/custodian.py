# models/custodian.py
from __future__ import annotations

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from database import Base


class Custodian(Base):
    __tablename__ = "custodians"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)

    # "wallet", "broker", "bank", ...
    type: Mapped[str] = mapped_column(String(32), nullable=False)

    # custodians with an address are picked up by the wallet sync
    wallet_address: Mapped[str | None] = mapped_column(String(128), nullable=True)

    positions = relationship("Position", back_populates="custodian")
