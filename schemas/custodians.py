# schemas/custodians.py
from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field


class CustodianOut(BaseModel):
    id: int
    name: str
    type: str
    wallet_address: Optional[str] = None
    total_value_usd: float


class CustodiansListResponse(BaseModel):
    custodians: List[CustodianOut]


class CustodianCreate(BaseModel):
    """A wallet address makes the custodian part of the portfolio sync."""

    name: str = Field(..., min_length=1, max_length=128)
    type: str = Field(..., min_length=1, max_length=32)
    wallet_address: Optional[str] = Field(None, max_length=128)


class CustodianCreateResponse(BaseModel):
    success: bool = True
    custodian: CustodianOut
