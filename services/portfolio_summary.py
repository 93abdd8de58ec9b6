# services/portfolio_summary.py
from __future__ import annotations

import heapq
from collections import defaultdict
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Tuple

from sqlalchemy.orm import Session

from models.asset import Asset
from models.custodian import Custodian
from models.position import Position
from services.price_history_service import get_latest_prices
from utils.common_helpers import pct_of_total, to_float

TOP_HOLDINGS_LIMIT = 10

# (asset_id, symbol, asset_type, custodian_id, custodian_name, value_usd)
ValuedRow = Tuple[int, str, str, int, str, float]


def _ranked(totals: Dict[Any, float]) -> List[Tuple[Any, float]]:
    return sorted(totals.items(), key=lambda kv: kv[1], reverse=True)


def summarize_positions(rows: Iterable[ValuedRow], top_n: int = TOP_HOLDINGS_LIMIT) -> Dict[str, Any]:
    by_type: Dict[str, float] = defaultdict(float)
    by_custodian: Dict[Tuple[int, str], float] = defaultdict(float)
    by_asset: Dict[Tuple[int, str], float] = defaultdict(float)

    for asset_id, symbol, asset_type, custodian_id, custodian_name, value in rows:
        by_type[asset_type] += value
        by_custodian[(custodian_id, custodian_name)] += value
        by_asset[(asset_id, symbol)] += value

    total = sum(by_type.values())

    top = heapq.nlargest(
        max(1, top_n),
        ((k, v) for k, v in by_asset.items() if v > 0),
        key=lambda kv: kv[1],
    )

    return {
        "total_value_usd": total,
        "by_asset_type": [
            {"type": t, "value_usd": v, "percentage": pct_of_total(v, total)}
            for t, v in _ranked(by_type)
        ],
        "by_custodian": [
            {"name": name, "value_usd": v, "percentage": pct_of_total(v, total)}
            for (_, name), v in _ranked(by_custodian)
            if v > 0
        ],
        "top_holdings": [
            {"symbol": symbol, "value_usd": v, "percentage": pct_of_total(v, total)}
            for (_, symbol), v in top
        ],
        "last_updated": datetime.now(timezone.utc).isoformat(),
    }


def get_portfolio_summary(db: Session) -> Dict[str, Any]:
    rows = (
        db.query(
            Position.asset_id,
            Asset.symbol,
            Asset.asset_type,
            Position.custodian_id,
            Custodian.name,
            Position.quantity,
        )
        .join(Asset, Position.asset_id == Asset.id)
        .join(Custodian, Position.custodian_id == Custodian.id)
        .filter(Position.quantity > 0)
        .all()
    )
    prices = get_latest_prices(db, {r[0] for r in rows})

    valued: List[ValuedRow] = [
        (asset_id, symbol, asset_type, custodian_id, custodian_name, to_float(qty) * prices.get(asset_id, 0.0))
        for asset_id, symbol, asset_type, custodian_id, custodian_name, qty in rows
    ]
    return summarize_positions(valued)
