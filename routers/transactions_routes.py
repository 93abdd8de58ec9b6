# routers/transactions_routes.py
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from database import get_db
from schemas.transactions import TransactionCreate, TransactionCreateResponse, TransactionsListResponse
from services.transactions_service import create_transaction, list_transactions

router = APIRouter()


@router.get("", response_model=TransactionsListResponse)
def get_transactions(
    asset_id: Optional[int] = Query(None),
    custodian_id: Optional[int] = Query(None),
    from_date: Optional[date] = Query(None),
    to_date: Optional[date] = Query(None),
    db: Session = Depends(get_db),
):
    return list_transactions(
        db, asset_id=asset_id, custodian_id=custodian_id, from_date=from_date, to_date=to_date
    )


@router.post("", response_model=TransactionCreateResponse, status_code=status.HTTP_201_CREATED)
def post_transaction(payload: TransactionCreate, db: Session = Depends(get_db)):
    return create_transaction(
        db,
        asset_id=payload.asset_id,
        custodian_id=payload.custodian_id,
        transaction_type=payload.transaction_type,
        quantity=payload.quantity,
        price_per_unit=payload.price_per_unit,
        transaction_date=payload.transaction_date,
        notes=payload.notes,
    )
