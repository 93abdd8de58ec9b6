# schemas/assets.py
from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field


class AssetOut(BaseModel):
    id: int
    symbol: str
    name: str
    asset_type: str
    price_source: Optional[str] = None
    api_identifier: Optional[str] = None
    current_price: Optional[float] = None
    price_as_of: Optional[str] = None


class AssetsListResponse(BaseModel):
    assets: List[AssetOut]


class AssetCreate(BaseModel):
    symbol: str = Field(..., min_length=1, max_length=32)
    name: str = Field(..., min_length=1, max_length=128)
    asset_type: str = Field(..., min_length=1, max_length=64)
    price_source: Optional[str] = Field(None, max_length=32)
    api_identifier: Optional[str] = Field(None, max_length=128)


class AssetCreateResponse(BaseModel):
    success: bool = True
    asset: AssetOut


class AssetTypeOut(BaseModel):
    name: str
    asset_count: int


class AssetTypesListResponse(BaseModel):
    asset_types: List[AssetTypeOut]
