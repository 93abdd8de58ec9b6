# routers/positions_routes.py
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from database import get_db
from schemas.positions import (
    PositionDeleteResponse,
    PositionsListResponse,
    PositionUpsert,
    PositionUpsertResponse,
    QuickCashUpdate,
)
from services.positions_service import delete_position, list_positions, quick_cash_update, upsert_position


router = APIRouter()


@router.get("", response_model=PositionsListResponse)
def get_positions(
    custodian_id: Optional[int] = Query(None),
    asset_type: Optional[str] = Query(None),
    db: Session = Depends(get_db),
):
    return list_positions(db, custodian_id=custodian_id, asset_type=asset_type)


@router.put("", response_model=PositionUpsertResponse)
def put_position(payload: PositionUpsert, db: Session = Depends(get_db)):
    return upsert_position(
        db,
        quantity=payload.quantity,
        asset_id=payload.asset_id,
        asset_symbol=payload.asset_symbol,
        custodian_id=payload.custodian_id,
        custodian_name=payload.custodian_name,
    )


@router.post("/cash", response_model=PositionUpsertResponse)
def post_cash(payload: QuickCashUpdate, db: Session = Depends(get_db)):
    return quick_cash_update(
        db, custodian_id=payload.custodian_id, currency=payload.currency, amount=payload.amount
    )


@router.delete("/{position_id}", response_model=PositionDeleteResponse)
def remove_position(position_id: int, db: Session = Depends(get_db)):
    return delete_position(db, position_id)
