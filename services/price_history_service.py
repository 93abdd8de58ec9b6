from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from typing import Dict, Iterable, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from models.price_history import PriceHistory

logger = logging.getLogger(__name__)


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


def upsert_price_history(
    db: Session,
    asset_id: int,
    price_usd: float,
    source: str,
    price_date: Optional[date] = None,
) -> PriceHistory:
    """One row per (asset, day); a later write on the same day overwrites."""
    day = price_date or utc_today()
    row = db.query(PriceHistory).filter_by(asset_id=asset_id, price_date=day).first()
    if row is None:
        row = PriceHistory(asset_id=asset_id, price_usd=price_usd, price_date=day, source=source)
        db.add(row)
    else:
        row.price_usd = price_usd
        row.source = source
    db.flush()
    return row


def get_latest_price_points(
    db: Session, asset_ids: Optional[Iterable[int]] = None
) -> Dict[int, Tuple[float, date]]:
    """Most recent (price, day) per asset, keyed by asset id. Assets never priced are absent."""
    latest = db.query(
        PriceHistory.asset_id.label("asset_id"),
        func.max(PriceHistory.price_date).label("price_date"),
    )
    ids = list(asset_ids) if asset_ids is not None else None
    if ids is not None:
        if not ids:
            return {}
        latest = latest.filter(PriceHistory.asset_id.in_(ids))
    latest = latest.group_by(PriceHistory.asset_id).subquery()

    rows = (
        db.query(PriceHistory.asset_id, PriceHistory.price_usd, PriceHistory.price_date)
        .join(
            latest,
            (PriceHistory.asset_id == latest.c.asset_id)
            & (PriceHistory.price_date == latest.c.price_date),
        )
        .all()
    )
    return {asset_id: (float(price), day) for asset_id, price, day in rows}


def get_latest_prices(db: Session, asset_ids: Optional[Iterable[int]] = None) -> Dict[int, float]:
    return {asset_id: price for asset_id, (price, _) in get_latest_price_points(db, asset_ids).items()}
