"""
Wallet sync run: every custodian with a wallet address, one at a time.

Used by the /api/sync/portfolio route (inline or as a background task).
"""
from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Optional

from sqlalchemy.orm import Session

from config import settings
from services.sync.asset_resolver import AssetResolver
from services.sync.errors import SetupError
from services.sync.position_store import load_asset_catalog, load_custodians_with_wallets
from services.sync.reconciliation import BalanceProvider, WalletSyncState, reconcile_wallet
from services.zapper.zapper_service import ZapperService

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[Any]]


def _empty_summary() -> Dict[str, Any]:
    return {
        "walletsProcessed": 0,
        "positionsUpdated": 0,
        "positionsZeroed": 0,
        "pricesUpdated": 0,
        "errors": [],
    }


def get_balance_provider() -> BalanceProvider:
    return ZapperService()


async def sync_all_wallets(
    db: Session,
    provider: Optional[BalanceProvider] = None,
    *,
    rate_limit_ms: Optional[int] = None,
    fetch_timeout_s: Optional[float] = None,
    sleep: Sleep = asyncio.sleep,
) -> Dict[str, Any]:
    """
    Reconcile every wallet custodian against the balance provider.

    Returns {success, syncedAt, summary}. Partial failures are reported in
    summary.errors; this coroutine itself does not raise for them.
    """
    started = datetime.now(timezone.utc)
    t0 = time.perf_counter()
    summary = _empty_summary()
    delay_ms = settings.SYNC_RATE_LIMIT_MS if rate_limit_ms is None else rate_limit_ms
    timeout_s = settings.ZAPPER_TIMEOUT_S if fetch_timeout_s is None else fetch_timeout_s

    logger.info("Starting portfolio sync")

    try:
        custodians = load_custodians_with_wallets(db)
        resolver = AssetResolver(load_asset_catalog(db))
    except SetupError as e:
        logger.error("Sync failed during setup: %s", e)
        summary["errors"].append(f"Critical error: {e}")
        return {"success": False, "syncedAt": started.isoformat(), "summary": summary}

    provider = provider or get_balance_provider()
    logger.info("Starting sync for %d wallets with %d tracked assets", len(custodians), len(resolver))

    for i, custodian in enumerate(custodians):
        result = await reconcile_wallet(db, custodian, provider, resolver, fetch_timeout_s=timeout_s)

        summary["positionsUpdated"] += result.positions_updated
        summary["positionsZeroed"] += result.positions_zeroed
        summary["pricesUpdated"] += result.prices_updated
        summary["errors"].extend(result.errors)
        if result.state == WalletSyncState.DONE:
            summary["walletsProcessed"] += 1

        # courtesy delay for the upstream API, not needed after the last wallet
        if i < len(custodians) - 1 and delay_ms > 0:
            await sleep(delay_ms / 1000.0)

    logger.info(
        "Sync completed in %.1fs: %d wallets, %d positions, %d zeroed, %d prices, %d errors",
        time.perf_counter() - t0,
        summary["walletsProcessed"],
        summary["positionsUpdated"],
        summary["positionsZeroed"],
        summary["pricesUpdated"],
        len(summary["errors"]),
    )

    return {
        "success": not summary["errors"],
        "syncedAt": started.isoformat(),
        "summary": summary,
    }
