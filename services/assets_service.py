from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import HTTPException
from sqlalchemy import func
from sqlalchemy.orm import Session

from models.asset import Asset
from services.price_history_service import get_latest_price_points

logger = logging.getLogger(__name__)


def _asset_out(asset: Asset, point=None) -> Dict[str, Any]:
    price, day = point if point is not None else (None, None)
    return {
        "id": asset.id,
        "symbol": asset.symbol,
        "name": asset.name,
        "asset_type": asset.asset_type,
        "price_source": asset.price_source,
        "api_identifier": asset.api_identifier,
        "current_price": price,
        "price_as_of": day.isoformat() if day is not None else None,
    }


def list_assets(
    db: Session,
    asset_type: Optional[str] = None,
    price_source: Optional[str] = None,
) -> Dict[str, Any]:
    q = db.query(Asset)
    if asset_type:
        q = q.filter(func.lower(Asset.asset_type) == asset_type.strip().lower())
    if price_source:
        q = q.filter(Asset.price_source == price_source.strip())
    assets = q.order_by(Asset.symbol, Asset.id).all()

    points = get_latest_price_points(db, [a.id for a in assets])
    return {"assets": [_asset_out(a, points.get(a.id)) for a in assets]}


def create_asset(
    db: Session,
    symbol: str,
    name: str,
    asset_type: str,
    price_source: Optional[str] = None,
    api_identifier: Optional[str] = None,
) -> Dict[str, Any]:
    symbol = symbol.strip().upper()
    taken = db.query(Asset.id).filter(func.lower(Asset.symbol) == symbol.lower()).first()
    if taken is not None:
        raise HTTPException(status_code=409, detail=f'Asset with symbol "{symbol}" already exists')

    asset = Asset(
        symbol=symbol,
        name=name.strip(),
        asset_type=asset_type.strip(),
        price_source=price_source or None,
        api_identifier=api_identifier or None,
    )
    db.add(asset)
    db.commit()
    db.refresh(asset)

    logger.info("Asset created: symbol=%s, id=%s", asset.symbol, asset.id)
    return {"success": True, "asset": _asset_out(asset)}


def list_asset_types(db: Session) -> Dict[str, Any]:
    """Asset types in use by the catalog, with how many assets carry each."""
    rows = (
        db.query(Asset.asset_type, func.count(Asset.id))
        .group_by(Asset.asset_type)
        .order_by(Asset.asset_type)
        .all()
    )
    return {"asset_types": [{"name": name, "asset_count": count} for name, count in rows]}
