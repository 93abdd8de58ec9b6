# services/transactions_service.py
from __future__ import annotations

import logging
from datetime import date
from typing import Any, Dict, Optional

from fastapi import HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from models.asset import Asset
from models.custodian import Custodian
from models.position import Position
from models.transaction import Transaction
from services.ledger.cost_basis import quantity_delta

logger = logging.getLogger(__name__)

# float noise tolerated before a sell is considered to overdraw the position
QUANTITY_EPSILON = 1e-9


def _to_dto(tx: Transaction) -> Dict[str, Any]:
    return {
        "id": tx.id,
        "asset_id": tx.asset_id,
        "asset_symbol": tx.asset.symbol if tx.asset else "",
        "custodian_id": tx.custodian_id,
        "custodian_name": tx.custodian.name if tx.custodian else "",
        "transaction_type": tx.transaction_type,
        "quantity": tx.quantity,
        "price_per_unit": tx.price_per_unit,
        "total_value_usd": tx.total_value_usd,
        "transaction_date": tx.transaction_date.isoformat(),
        "notes": tx.notes,
    }


def list_transactions(
    db: Session,
    asset_id: Optional[int] = None,
    custodian_id: Optional[int] = None,
    from_date: Optional[date] = None,
    to_date: Optional[date] = None,
) -> Dict[str, Any]:
    q = db.query(Transaction).options(joinedload(Transaction.asset), joinedload(Transaction.custodian))
    if asset_id is not None:
        q = q.filter(Transaction.asset_id == asset_id)
    if custodian_id is not None:
        q = q.filter(Transaction.custodian_id == custodian_id)
    if from_date is not None:
        q = q.filter(Transaction.transaction_date >= from_date)
    if to_date is not None:
        q = q.filter(Transaction.transaction_date <= to_date)

    rows = q.order_by(Transaction.transaction_date.desc(), Transaction.id.desc()).all()
    return {"transactions": [_to_dto(t) for t in rows]}


def create_transaction(
    db: Session,
    *,
    asset_id: int,
    custodian_id: int,
    transaction_type: str,
    quantity: float,
    transaction_date: date,
    price_per_unit: Optional[float] = None,
    notes: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Append a ledger entry and apply its signed quantity to the position,
    both in one DB transaction.
    """
    if db.get(Asset, asset_id) is None:
        raise HTTPException(status_code=400, detail=f"Asset with id {asset_id} not found")
    if db.get(Custodian, custodian_id) is None:
        raise HTTPException(status_code=400, detail=f"Custodian with id {custodian_id} not found")

    try:
        delta = quantity_delta(transaction_type, quantity)
    except KeyError:
        raise HTTPException(status_code=400, detail=f"Unknown transaction type: {transaction_type}")

    total_value = quantity * price_per_unit if price_per_unit is not None else None

    try:
        position = db.query(Position).filter_by(asset_id=asset_id, custodian_id=custodian_id).first()
        current = position.quantity if position is not None else 0.0
        new_qty = current + delta
        if new_qty < -QUANTITY_EPSILON:
            raise HTTPException(
                status_code=400,
                detail=f"Insufficient quantity: position holds {current}, {transaction_type} of {quantity}",
            )
        new_qty = max(new_qty, 0.0)

        tx = Transaction(
            asset_id=asset_id,
            custodian_id=custodian_id,
            transaction_type=transaction_type,
            quantity=quantity,
            price_per_unit=price_per_unit,
            total_value_usd=total_value,
            transaction_date=transaction_date,
            notes=notes,
        )
        db.add(tx)

        if position is None:
            position = Position(asset_id=asset_id, custodian_id=custodian_id, quantity=new_qty)
            db.add(position)
        else:
            position.quantity = new_qty

        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Failed to create transaction (asset_id=%s, custodian_id=%s)", asset_id, custodian_id)
        raise

    db.refresh(tx)
    db.refresh(position)
    logger.info(
        "Transaction created: type=%s, asset_id=%s, quantity=%s", transaction_type, asset_id, quantity
    )
    return {
        "success": True,
        "transaction": _to_dto(tx),
        "updated_position": {"id": position.id, "quantity": position.quantity},
    }
