from decimal import Decimal
import math
from typing import Any, Optional


def to_float(x: Any) -> float:
    if x is None:
        return 0.0
    if isinstance(x, Decimal):
        return float(x)
    try:
        return float(x)
    except (TypeError, ValueError):
        return 0.0


def num(x: Any) -> Optional[float]:
    """float() that maps None, garbage and NaN to None."""
    try:
        if x is None:
            return None
        f = float(x)
        return None if math.isnan(f) else f
    except (TypeError, ValueError):
        return None


def round_opt(x: Optional[float], d: int = 2) -> Optional[float]:
    return None if x is None else round(float(x), d)


def pct_of_total(value: float, total: float) -> float:
    """Share of total in percent with one decimal; 0 when there is no total."""
    if total <= 0:
        return 0.0
    return round(value / total * 100.0, 1)


def truncate_address(address: str) -> str:
    """0x1234567890abcdef... -> 0x1234...cdef, safe for logs."""
    if not address or len(address) <= 12:
        return address
    return f"{address[:6]}...{address[-4:]}"
