# schemas/transactions.py
from __future__ import annotations

from datetime import date
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

TransactionType = Literal["buy", "sell", "transfer_in", "transfer_out", "deposit", "withdrawal"]


class TransactionCreate(BaseModel):
    asset_id: int
    custodian_id: int
    transaction_type: TransactionType
    quantity: float = Field(..., gt=0)
    price_per_unit: Optional[float] = Field(None, ge=0)
    transaction_date: date
    notes: Optional[str] = None

    @field_validator("notes")
    @classmethod
    def _strip_notes(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        return v or None


class TransactionOut(BaseModel):
    id: int
    asset_id: int
    asset_symbol: str
    custodian_id: int
    custodian_name: str
    transaction_type: str
    quantity: float
    price_per_unit: Optional[float] = None
    total_value_usd: Optional[float] = None
    transaction_date: str
    notes: Optional[str] = None


class TransactionsListResponse(BaseModel):
    transactions: List[TransactionOut]


class UpdatedPositionOut(BaseModel):
    id: int
    quantity: float


class TransactionCreateResponse(BaseModel):
    success: bool = True
    transaction: TransactionOut
    updated_position: UpdatedPositionOut
