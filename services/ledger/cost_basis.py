"""
Average-cost aggregation over the transaction ledger.

Cost basis is always rebuilt from the full ledger; nothing here is cached,
so a late-entered buy is reflected on the very next read.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Dict, Iterable, Optional

from utils.common_helpers import num

# Signed effect of each transaction type on a position's quantity.
QUANTITY_SIGN: Dict[str, int] = {
    "buy": 1,
    "transfer_in": 1,
    "deposit": 1,
    "sell": -1,
    "transfer_out": -1,
    "withdrawal": -1,
}


@dataclass
class CostBasisAggregate:
    asset_id: int
    total_qty_bought: float = 0.0
    total_cost: float = 0.0
    total_qty_sold: float = 0.0
    total_proceeds: float = 0.0
    first_buy_date: Optional[date] = None

    @property
    def has_cost_basis(self) -> bool:
        return self.total_qty_bought > 0

    @property
    def avg_cost_per_unit(self) -> Optional[float]:
        if self.total_qty_bought <= 0:
            return None
        return self.total_cost / self.total_qty_bought


def quantity_delta(transaction_type: str, quantity: float) -> float:
    """Signed quantity change for a ledger entry. Unknown types raise KeyError."""
    return QUANTITY_SIGN[transaction_type] * quantity


def _field(tx: Any, name: str) -> Any:
    if isinstance(tx, dict):
        return tx.get(name)
    return getattr(tx, name, None)


def _as_date(value: Any) -> Optional[date]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def _transaction_value(tx: Any, quantity: float) -> float:
    total = num(_field(tx, "total_value_usd"))
    if total is not None:
        return total
    price = num(_field(tx, "price_per_unit"))
    if price is not None:
        return quantity * price
    return 0.0


def aggregate_cost_basis(
    transactions: Iterable[Any],
    asset_id: Optional[int] = None,
) -> Dict[int, CostBasisAggregate]:
    """
    Group ledger entries by asset and sum buys and sells.

    Accepts ORM rows or plain dicts carrying asset_id, transaction_type,
    quantity, price_per_unit, total_value_usd and transaction_date. Only
    `buy` and `sell` move the cost figures; transfers, deposits and
    withdrawals change quantity but carry no cost.
    """
    out: Dict[int, CostBasisAggregate] = {}

    for tx in transactions:
        tx_asset_id = _field(tx, "asset_id")
        if asset_id is not None and tx_asset_id != asset_id:
            continue

        tx_type = (_field(tx, "transaction_type") or "").lower()
        if tx_type not in ("buy", "sell"):
            continue

        agg = out.get(tx_asset_id)
        if agg is None:
            agg = out[tx_asset_id] = CostBasisAggregate(asset_id=tx_asset_id)

        qty = num(_field(tx, "quantity")) or 0.0
        value = _transaction_value(tx, qty)

        if tx_type == "buy":
            agg.total_qty_bought += qty
            agg.total_cost += value
            tx_date = _as_date(_field(tx, "transaction_date"))
            if tx_date is not None and (agg.first_buy_date is None or tx_date < agg.first_buy_date):
                agg.first_buy_date = tx_date
        else:
            agg.total_qty_sold += qty
            agg.total_proceeds += value

    return out
