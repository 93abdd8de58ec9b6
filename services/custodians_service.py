from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from models.custodian import Custodian
from models.position import Position
from services.price_history_service import get_latest_prices

logger = logging.getLogger(__name__)


def _custodian_out(custodian: Custodian, total_value_usd: float = 0.0) -> Dict[str, Any]:
    return {
        "id": custodian.id,
        "name": custodian.name,
        "type": custodian.type,
        "wallet_address": custodian.wallet_address,
        "total_value_usd": total_value_usd,
    }


def list_custodians(db: Session) -> Dict[str, Any]:
    """Every custodian with the value of its open positions, largest first."""
    custodians = db.query(Custodian).order_by(Custodian.id).all()
    held = db.query(Position.custodian_id, Position.asset_id, Position.quantity).filter(Position.quantity > 0).all()
    prices = get_latest_prices(db, {asset_id for _, asset_id, _ in held})

    totals: Dict[int, float] = {}
    for custodian_id, asset_id, quantity in held:
        totals[custodian_id] = totals.get(custodian_id, 0.0) + quantity * prices.get(asset_id, 0.0)

    out = [_custodian_out(c, totals.get(c.id, 0.0)) for c in custodians]
    out.sort(key=lambda x: x["total_value_usd"], reverse=True)
    return {"custodians": out}


def create_custodian(
    db: Session,
    name: str,
    type: str,
    wallet_address: Optional[str] = None,
) -> Dict[str, Any]:
    custodian = Custodian(
        name=name.strip(),
        type=type.strip(),
        wallet_address=(wallet_address or "").strip().lower() or None,
    )
    db.add(custodian)
    db.commit()
    db.refresh(custodian)

    logger.info("Custodian created: name=%s, id=%s", custodian.name, custodian.id)
    return {"success": True, "custodian": _custodian_out(custodian)}
