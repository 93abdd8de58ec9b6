# schemas/pnl.py
from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict


class CostBasisOut(BaseModel):
    total_cost_usd: float
    avg_cost_per_unit: float
    total_qty_bought: float


class UnrealizedPnlOut(BaseModel):
    amount_usd: float
    percent: Optional[float] = None


class RealizedPnlOut(BaseModel):
    amount_usd: float
    total_qty_sold: float
    total_proceeds_usd: float


class PerformanceOut(BaseModel):
    apy: Optional[float] = None
    holding_days: Optional[int] = None
    first_buy_date: Optional[str] = None


class PnlPositionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    asset_id: int
    symbol: str
    asset_name: str
    asset_type: str
    current_quantity: float
    current_price_usd: float
    current_value_usd: float
    has_cost_basis: bool
    cost_basis: Optional[CostBasisOut] = None
    unrealized_pnl: Optional[UnrealizedPnlOut] = None
    realized_pnl: Optional[RealizedPnlOut] = None
    performance: Optional[PerformanceOut] = None


class PnlSummaryOut(BaseModel):
    total_cost_basis_usd: float
    total_current_value_usd: float
    total_unrealized_pnl_usd: float
    total_unrealized_pnl_percent: Optional[float] = None
    total_realized_pnl_usd: float
    positions_with_cost_basis: int
    positions_without_cost_basis: int


class PnlResponse(BaseModel):
    summary: PnlSummaryOut
    positions: List[PnlPositionOut]
    generated_at: str
