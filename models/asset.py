# models/asset.py
from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Index, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from database import Base


class Asset(Base):
    __tablename__ = "assets"
    __table_args__ = (
        Index("ix_assets_symbol", "symbol"),
        Index("ix_assets_price_source", "price_source"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, index=True)

    # e.g. "ETH", "AAPL", "USDC"
    symbol: Mapped[str] = mapped_column(String(32), nullable=False)
    name: Mapped[str] = mapped_column(String(128), nullable=False)

    # "Cryptocurrency", "Stock", "Cash", ...
    asset_type: Mapped[str] = mapped_column(String(64), nullable=False)

    # which feed prices/balances this asset: "zapper", "yahoofinance", or None for manual
    price_source: Mapped[str | None] = mapped_column(String(32), nullable=True)

    # token contract address (EVM) or ticker (Yahoo)
    api_identifier: Mapped[str | None] = mapped_column(String(128), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    positions = relationship("Position", back_populates="asset")
