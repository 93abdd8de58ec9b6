# schemas/sync.py
# camelCase fields: the sync payloads are consumed as-is by external schedulers.
from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field


class SyncSummary(BaseModel):
    walletsProcessed: int = 0
    positionsUpdated: int = 0
    positionsZeroed: int = 0
    pricesUpdated: int = 0
    errors: List[str] = Field(default_factory=list)


class SyncResponse(BaseModel):
    success: bool
    syncedAt: str
    summary: SyncSummary


class SyncJobAccepted(BaseModel):
    jobId: str
    status: str = "queued"


class StockSyncSummary(BaseModel):
    assetsProcessed: int = 0
    pricesUpdated: int = 0
    errors: List[str] = Field(default_factory=list)


class PriceSyncResult(BaseModel):
    symbol: str
    priceUsd: float
    source: str


class StockSyncResponse(BaseModel):
    success: bool
    syncedAt: str
    summary: StockSyncSummary
    prices: List[PriceSyncResult] = Field(default_factory=list)


class LastSyncResponse(BaseModel):
    jobId: Optional[str] = None
    status: str
    result: Optional[SyncResponse] = None
