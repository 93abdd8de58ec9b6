# schemas/positions.py
from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field, model_validator


class PositionAssetOut(BaseModel):
    id: int
    symbol: str
    name: str
    asset_type: str


class PositionCustodianOut(BaseModel):
    id: int
    name: str
    type: str


class PositionOut(BaseModel):
    id: int
    asset: PositionAssetOut
    custodian: PositionCustodianOut
    quantity: float
    current_price: float
    value_usd: float
    updated_at: str


class PositionsListResponse(BaseModel):
    positions: List[PositionOut]
    total_value_usd: float


class PositionUpsert(BaseModel):
    """Absolute quantity for one asset at one custodian (manual entry)."""

    asset_id: Optional[int] = None
    asset_symbol: Optional[str] = None
    custodian_id: Optional[int] = None
    custodian_name: Optional[str] = None
    quantity: float = Field(..., ge=0)

    @model_validator(mode="after")
    def _needs_identities(self):
        if self.asset_id is None and not (self.asset_symbol or "").strip():
            raise ValueError("Either asset_id or asset_symbol is required")
        if self.custodian_id is None and not (self.custodian_name or "").strip():
            raise ValueError("Either custodian_id or custodian_name is required")
        return self


class PositionWriteOut(BaseModel):
    id: int
    asset_id: int
    custodian_id: int
    quantity: float
    updated_at: str


class PositionUpsertResponse(BaseModel):
    success: bool = True
    position: PositionWriteOut
    action: str


class PositionDeleteResponse(BaseModel):
    success: bool = True
    deleted_id: int


class QuickCashUpdate(BaseModel):
    custodian_id: int
    currency: str = Field("USD", min_length=1)
    amount: float = Field(..., ge=0)
