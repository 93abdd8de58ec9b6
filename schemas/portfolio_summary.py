# schemas/portfolio_summary.py
from __future__ import annotations

from typing import List

from pydantic import BaseModel


class AssetTypeBreakdown(BaseModel):
    type: str
    value_usd: float
    percentage: float


class CustodianBreakdown(BaseModel):
    name: str
    value_usd: float
    percentage: float


class TopHolding(BaseModel):
    symbol: str
    value_usd: float
    percentage: float


class PortfolioSummaryResponse(BaseModel):
    total_value_usd: float
    by_asset_type: List[AssetTypeBreakdown]
    by_custodian: List[CustodianBreakdown]
    top_holdings: List[TopHolding]
    last_updated: str
