# services/pnl_service.py
"""
Average-cost P&L per asset.

Quantities are summed across custodians; cost basis comes from the ledger
(services.ledger.cost_basis). All arithmetic runs at full precision and is
rounded only when the response is rendered.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from models.asset import Asset
from models.position import Position
from models.transaction import Transaction
from services.ledger.cost_basis import CostBasisAggregate, aggregate_cost_basis
from services.price_history_service import get_latest_prices
from utils.common_helpers import round_opt, to_float

logger = logging.getLogger(__name__)

DAYS_PER_YEAR = 365


@dataclass
class AssetHolding:
    asset_id: int
    symbol: str
    asset_name: str
    asset_type: str
    current_quantity: float
    current_price_usd: float

    @property
    def current_value_usd(self) -> float:
        return self.current_quantity * self.current_price_usd


@dataclass
class _PositionCalc:
    holding: AssetHolding
    aggregate: Optional[CostBasisAggregate]
    cost_basis_usd: Optional[float] = None
    unrealized_usd: Optional[float] = None
    realized_usd: Optional[float] = None


# -----------------------
# Pure calculations
# -----------------------

def calculate_unrealized_pnl(current_value: float, cost_basis: float) -> Dict[str, Optional[float]]:
    amount = current_value - cost_basis
    percent = (amount / cost_basis) * 100.0 if cost_basis > 0 else None
    return {"amount_usd": amount, "percent": percent}


def calculate_realized_pnl(
    total_qty_sold: float,
    total_proceeds: float,
    avg_cost_per_unit: float,
) -> Dict[str, float]:
    # current average cost is applied to every unit ever sold
    amount = total_proceeds - total_qty_sold * avg_cost_per_unit
    return {
        "amount_usd": amount,
        "total_qty_sold": total_qty_sold,
        "total_proceeds_usd": total_proceeds,
    }


def holding_days_since(first_buy_date: date, now: datetime) -> int:
    start = datetime.combine(first_buy_date, time.min, tzinfo=timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return math.floor((now - start).total_seconds() / 86400)


def calculate_apy(current_value: float, cost_basis: float, holding_days: Optional[int]) -> Optional[float]:
    """Compound the period return to a 365-day basis. None when undefined."""
    if holding_days is None or holding_days < 1:
        return None
    if cost_basis <= 0 or current_value <= 0:
        return None
    try:
        return (math.pow(current_value / cost_basis, DAYS_PER_YEAR / holding_days) - 1.0) * 100.0
    except OverflowError:
        logger.warning("APY overflow: value=%s cost=%s days=%s", current_value, cost_basis, holding_days)
        return None


def calculate_performance(
    current_value: float,
    cost_basis: float,
    first_buy_date: Optional[date],
    now: datetime,
) -> Dict[str, Any]:
    if first_buy_date is None:
        return {"apy": None, "holding_days": None, "first_buy_date": None}

    days = holding_days_since(first_buy_date, now)
    return {
        "apy": calculate_apy(current_value, cost_basis, days),
        "holding_days": days,
        "first_buy_date": first_buy_date.isoformat(),
    }


def build_position(
    holding: AssetHolding,
    aggregate: Optional[CostBasisAggregate],
    now: datetime,
) -> tuple[Dict[str, Any], _PositionCalc]:
    calc = _PositionCalc(holding=holding, aggregate=aggregate)
    current_value = holding.current_value_usd

    out: Dict[str, Any] = {
        "asset_id": holding.asset_id,
        "symbol": holding.symbol,
        "asset_name": holding.asset_name,
        "asset_type": holding.asset_type,
        "current_quantity": holding.current_quantity,
        "current_price_usd": holding.current_price_usd,
        "current_value_usd": current_value,
        "has_cost_basis": False,
        "cost_basis": None,
        "unrealized_pnl": None,
        "realized_pnl": None,
        "performance": None,
    }

    if aggregate is None or not aggregate.has_cost_basis:
        return out, calc

    avg_cost = aggregate.avg_cost_per_unit
    cost_basis = holding.current_quantity * avg_cost
    unrealized = calculate_unrealized_pnl(current_value, cost_basis)
    realized = calculate_realized_pnl(aggregate.total_qty_sold, aggregate.total_proceeds, avg_cost)
    performance = calculate_performance(current_value, cost_basis, aggregate.first_buy_date, now)

    calc.cost_basis_usd = cost_basis
    calc.unrealized_usd = unrealized["amount_usd"]
    calc.realized_usd = realized["amount_usd"]

    out["has_cost_basis"] = True
    out["cost_basis"] = {
        "total_cost_usd": aggregate.total_cost,
        "avg_cost_per_unit": avg_cost,
        "total_qty_bought": aggregate.total_qty_bought,
    }
    out["unrealized_pnl"] = {
        "amount_usd": round(unrealized["amount_usd"], 2),
        "percent": round_opt(unrealized["percent"], 2),
    }
    out["realized_pnl"] = {
        "amount_usd": round(realized["amount_usd"], 2),
        "total_qty_sold": realized["total_qty_sold"],
        "total_proceeds_usd": realized["total_proceeds_usd"],
    }
    out["performance"] = {
        **performance,
        "apy": round_opt(performance["apy"], 2),
    }
    return out, calc


def calculate_summary(calcs: List[_PositionCalc]) -> Dict[str, Any]:
    total_cost_basis = 0.0
    total_current_value = 0.0
    total_unrealized = 0.0
    total_realized = 0.0
    with_cost_basis = 0
    without_cost_basis = 0

    for c in calcs:
        total_current_value += c.holding.current_value_usd
        if c.cost_basis_usd is not None:
            total_cost_basis += c.cost_basis_usd
            total_unrealized += c.unrealized_usd or 0.0
            total_realized += c.realized_usd or 0.0
            with_cost_basis += 1
        else:
            without_cost_basis += 1

    total_pct = (total_unrealized / total_cost_basis) * 100.0 if total_cost_basis > 0 else None

    return {
        "total_cost_basis_usd": round(total_cost_basis, 2),
        "total_current_value_usd": round(total_current_value, 2),
        "total_unrealized_pnl_usd": round(total_unrealized, 2),
        "total_unrealized_pnl_percent": round_opt(total_pct, 2),
        "total_realized_pnl_usd": round(total_realized, 2),
        "positions_with_cost_basis": with_cost_basis,
        "positions_without_cost_basis": without_cost_basis,
    }


def build_pnl_report(
    holdings: List[AssetHolding],
    aggregates: Dict[int, CostBasisAggregate],
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    now = now or datetime.now(timezone.utc)
    ordered = sorted(holdings, key=lambda h: h.current_value_usd, reverse=True)

    positions: List[Dict[str, Any]] = []
    calcs: List[_PositionCalc] = []
    for h in ordered:
        pos, calc = build_position(h, aggregates.get(h.asset_id), now)
        positions.append(pos)
        calcs.append(calc)

    return {
        "summary": calculate_summary(calcs),
        "positions": positions,
        "generated_at": now.isoformat(),
    }


# -----------------------
# Loading
# -----------------------

def load_asset_holdings(
    db: Session,
    asset_id: Optional[int] = None,
    include_zero_positions: bool = False,
) -> List[AssetHolding]:
    total_qty = func.sum(Position.quantity)
    q = (
        db.query(Asset.id, Asset.symbol, Asset.name, Asset.asset_type, total_qty)
        .join(Position, Position.asset_id == Asset.id)
        .group_by(Asset.id, Asset.symbol, Asset.name, Asset.asset_type)
    )
    if asset_id is not None:
        q = q.filter(Asset.id == asset_id)
    if not include_zero_positions:
        q = q.having(total_qty > 0)

    rows = q.all()
    prices = get_latest_prices(db, [r[0] for r in rows])

    return [
        AssetHolding(
            asset_id=aid,
            symbol=symbol,
            asset_name=name,
            asset_type=asset_type,
            current_quantity=to_float(qty),
            current_price_usd=prices.get(aid, 0.0),
        )
        for aid, symbol, name, asset_type, qty in rows
    ]


def get_pnl(
    db: Session,
    asset_id: Optional[int] = None,
    include_zero_positions: bool = False,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    holdings = load_asset_holdings(db, asset_id=asset_id, include_zero_positions=include_zero_positions)

    tx_q = db.query(Transaction).filter(Transaction.transaction_type.in_(("buy", "sell")))
    if asset_id is not None:
        tx_q = tx_q.filter(Transaction.asset_id == asset_id)
    aggregates = aggregate_cost_basis(tx_q.all(), asset_id=asset_id)

    report = build_pnl_report(holdings, aggregates, now=now)
    logger.info(
        "PnL report: positions=%d with_cost_basis=%d",
        len(report["positions"]),
        report["summary"]["positions_with_cost_basis"],
    )
    return report
