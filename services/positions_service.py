# services/positions_service.py
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import HTTPException
from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from models.asset import Asset
from models.custodian import Custodian
from models.position import Position
from services.price_history_service import get_latest_prices

logger = logging.getLogger(__name__)


def _iso(ts: Optional[datetime]) -> str:
    if ts is None:
        return ""
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts.isoformat()


def list_positions(
    db: Session,
    custodian_id: Optional[int] = None,
    asset_type: Optional[str] = None,
) -> Dict[str, Any]:
    q = (
        db.query(Position)
        .options(joinedload(Position.asset), joinedload(Position.custodian))
        .join(Asset, Position.asset_id == Asset.id)
        .filter(Position.quantity > 0)
    )
    if custodian_id is not None:
        q = q.filter(Position.custodian_id == custodian_id)
    if asset_type:
        q = q.filter(func.lower(Asset.asset_type) == asset_type.strip().lower())

    rows = q.all()
    prices = get_latest_prices(db, {p.asset_id for p in rows})

    positions = []
    for p in rows:
        price = prices.get(p.asset_id, 0.0)
        positions.append({
            "id": p.id,
            "asset": {
                "id": p.asset.id,
                "symbol": p.asset.symbol,
                "name": p.asset.name,
                "asset_type": p.asset.asset_type,
            },
            "custodian": {
                "id": p.custodian.id,
                "name": p.custodian.name,
                "type": p.custodian.type,
            },
            "quantity": p.quantity,
            "current_price": price,
            "value_usd": p.quantity * price,
            "updated_at": _iso(p.updated_at),
        })

    positions.sort(key=lambda x: x["value_usd"], reverse=True)
    return {
        "positions": positions,
        "total_value_usd": sum(x["value_usd"] for x in positions),
    }


def _resolve_asset_id(db: Session, asset_id: Optional[int], asset_symbol: Optional[str]) -> int:
    if asset_id is not None:
        if db.get(Asset, asset_id) is None:
            raise HTTPException(status_code=400, detail=f"Asset with id {asset_id} not found")
        return asset_id
    row = db.query(Asset.id).filter(func.lower(Asset.symbol) == (asset_symbol or "").strip().lower()).first()
    if row is None:
        raise HTTPException(status_code=400, detail=f'Asset with symbol "{asset_symbol}" not found')
    return row[0]


def _resolve_custodian_id(db: Session, custodian_id: Optional[int], custodian_name: Optional[str]) -> int:
    if custodian_id is not None:
        if db.get(Custodian, custodian_id) is None:
            raise HTTPException(status_code=400, detail=f"Custodian with id {custodian_id} not found")
        return custodian_id
    row = (
        db.query(Custodian.id)
        .filter(func.lower(Custodian.name) == (custodian_name or "").strip().lower())
        .first()
    )
    if row is None:
        raise HTTPException(status_code=400, detail=f'Custodian with name "{custodian_name}" not found')
    return row[0]


def upsert_position(
    db: Session,
    quantity: float,
    asset_id: Optional[int] = None,
    asset_symbol: Optional[str] = None,
    custodian_id: Optional[int] = None,
    custodian_name: Optional[str] = None,
) -> Dict[str, Any]:
    """Set an absolute quantity for an (asset, custodian) pair."""
    if quantity < 0:
        raise HTTPException(status_code=400, detail="Quantity must be non-negative")

    aid = _resolve_asset_id(db, asset_id, asset_symbol)
    cid = _resolve_custodian_id(db, custodian_id, custodian_name)

    position = db.query(Position).filter_by(asset_id=aid, custodian_id=cid).first()
    action = "updated" if position is not None else "created"
    if position is None:
        position = Position(asset_id=aid, custodian_id=cid, quantity=quantity)
        db.add(position)
    else:
        position.quantity = quantity
        position.updated_at = datetime.now(timezone.utc)
    db.commit()
    db.refresh(position)

    logger.info("Position %s: asset_id=%s, custodian_id=%s, quantity=%s", action, aid, cid, quantity)
    return {
        "success": True,
        "position": {
            "id": position.id,
            "asset_id": position.asset_id,
            "custodian_id": position.custodian_id,
            "quantity": position.quantity,
            "updated_at": _iso(position.updated_at),
        },
        "action": action,
    }


def quick_cash_update(db: Session, custodian_id: int, currency: str, amount: float) -> Dict[str, Any]:
    """Set the cash balance held at a custodian; the currency must already exist as an asset."""
    row = db.query(Asset.id).filter(func.lower(Asset.symbol) == currency.strip().lower()).first()
    if row is None:
        raise HTTPException(
            status_code=400,
            detail=f'Currency "{currency}" not found in assets. Please create it first.',
        )
    return upsert_position(db, quantity=amount, asset_id=row[0], custodian_id=custodian_id)


def delete_position(db: Session, position_id: int) -> Dict[str, Any]:
    position = db.get(Position, position_id)
    if position is None:
        raise HTTPException(status_code=404, detail=f"Position with id {position_id} not found")
    db.delete(position)
    db.commit()
    logger.info("Position deleted: id=%s", position_id)
    return {"success": True, "deleted_id": position_id}
