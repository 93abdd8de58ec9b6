# services/yahoo_service.py
"""
Daily prices for listed securities (assets with price_source = "yahoofinance").
"""
from __future__ import annotations

import asyncio
import logging
import math
import time
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple, Type

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from yahooquery import Ticker

from config import settings
from models.asset import Asset
from services.price_history_service import upsert_price_history

logger = logging.getLogger(__name__)

Number = Optional[float]
Json = Dict[str, Any]

QUOTE_TIMEOUT_S = 15.0


# ---------------------------
# Retry helper
# ---------------------------
def retry(
    fn: Callable[[], Any],
    *,
    attempts: int = 3,
    delay: float = 0.4,
    backoff: float = 2.0,
    exceptions: Tuple[Type[BaseException], ...] = (Exception,),
) -> Any:
    """
    Retry a function up to `attempts` times with exponential backoff.
    Raises RuntimeError (chained) if all attempts fail.
    """
    attempts = max(1, attempts)
    err: BaseException | None = None

    for i in range(attempts):
        try:
            return fn()
        except exceptions as e:
            err = e
            if i < attempts - 1:
                time.sleep(delay * (backoff ** i))

    raise RuntimeError(f"retry failed after {attempts} attempts") from err


def _ensure_symbol_dict(obj: Any, sym: str) -> Dict[str, Any]:
    """
    yahooquery can return strings, lists, or dicts not keyed by symbol.
    Normalize to a dict (or {}) for the symbol.
    """
    if isinstance(obj, dict):
        if sym in obj and isinstance(obj[sym], dict):
            return obj[sym]
        if sym in obj:
            return {}
        return obj
    return {}


def _fnum(x: Any) -> Number:
    try:
        if x is None:
            return None
        if isinstance(x, float) and math.isnan(x):
            return None
        return float(x)
    except (TypeError, ValueError):
        return None


class YahooPriceService:
    """Single current price per ticker, via yahooquery."""

    source = settings.YAHOO_SOURCE

    def fetch_price(self, ticker: str) -> Number:
        sym = (ticker or "").upper().strip()
        if not sym:
            return None
        try:
            tq = Ticker(sym, asynchronous=False, formatted=False, validate=False)
            price_data = _ensure_symbol_dict(retry(lambda: tq.price), sym)
        except RuntimeError as e:
            logger.warning("Yahoo Finance error for %s: %s", sym, e.__cause__ or e)
            return None

        price = _fnum(price_data.get("regularMarketPrice"))
        if price is None or price <= 0:
            logger.warning("No valid price for %s", sym)
            return None
        return price


async def sync_stock_prices(
    db: Session,
    service: Optional[YahooPriceService] = None,
    *,
    rate_limit_ms: Optional[int] = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> Json:
    """Fetch today's price for every Yahoo-sourced asset and store it."""
    started = datetime.now(timezone.utc)
    service = service or YahooPriceService()
    delay_ms = settings.YAHOO_RATE_LIMIT_MS if rate_limit_ms is None else rate_limit_ms
    summary: Json = {"assetsProcessed": 0, "pricesUpdated": 0, "errors": []}
    prices: List[Json] = []

    try:
        assets = (
            db.query(Asset.id, Asset.symbol, Asset.api_identifier)
            .filter(Asset.price_source == service.source)
            .order_by(Asset.id)
            .all()
        )
    except SQLAlchemyError as e:
        logger.error("Stock price sync failed during setup: %s", e)
        summary["errors"].append(f"Critical error: Failed to fetch assets from database: {e}")
        return {"success": False, "syncedAt": started.isoformat(), "summary": summary, "prices": prices}

    logger.info("Found %d assets to sync via Yahoo Finance", len(assets))

    for i, (asset_id, symbol, api_identifier) in enumerate(assets):
        ticker = api_identifier or symbol
        summary["assetsProcessed"] += 1

        try:
            price = await asyncio.wait_for(asyncio.to_thread(service.fetch_price, ticker), QUOTE_TIMEOUT_S)
        except asyncio.TimeoutError:
            price = None
            logger.warning("Yahoo Finance timed out for %s", ticker)

        if price is None:
            msg = f"{symbol}: Yahoo Finance returned no data for {ticker}"
            logger.warning(msg)
            summary["errors"].append(msg)
        else:
            try:
                upsert_price_history(db, asset_id, price, service.source)
                db.commit()
                summary["pricesUpdated"] += 1
                prices.append({"symbol": symbol, "priceUsd": price, "source": service.source})
                logger.info("%s: %.2f USD", symbol, price)
            except SQLAlchemyError as e:
                db.rollback()
                msg = f"{symbol}: {e}"
                logger.error(msg)
                summary["errors"].append(msg)

        if i < len(assets) - 1 and delay_ms > 0:
            await sleep(delay_ms / 1000.0)

    logger.info(
        "Yahoo Finance sync completed: %d assets, %d prices updated, %d errors",
        summary["assetsProcessed"],
        summary["pricesUpdated"],
        len(summary["errors"]),
    )
    return {
        "success": not summary["errors"],
        "syncedAt": started.isoformat(),
        "summary": summary,
        "prices": prices,
    }
