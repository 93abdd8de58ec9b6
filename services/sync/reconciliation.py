"""
Per-wallet reconciliation of a balance snapshot against stored positions.

One call handles one custodian:

    FETCHING -> RESOLVING -> UPSERTING -> ZEROING -> DONE
        \\-> FAILED

Only a fetch failure moves the wallet to FAILED. A failed item write is
recorded and the wallet carries on; items already written stay written.
An asset present in the snapshot is never zeroed, even if its write failed.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, List, Optional, Protocol, Sequence, Set, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from services.sync.asset_resolver import AssetResolver
from services.sync.balances import (
    AppBalances,
    BalanceItem,
    TokenBalances,
    flatten_app_balances,
    flatten_token_balances,
)
from services.sync.errors import PersistenceError, ProviderError, ResolutionMiss
from services.sync.position_store import (
    WalletCustodian,
    get_source_asset_ids_for_custodian,
    record_price,
    replace_position_quantity,
)
from utils.common_helpers import truncate_address

logger = logging.getLogger(__name__)

T = TypeVar("T")

BTC_CHAIN_ID = 6172014
TOKEN_PAGE_SIZE = 100
APP_PAGE_SIZE = 50


class BalanceProvider(Protocol):
    source: str

    async def get_token_balances(
        self, address: str, *, first: int = ..., chain_ids: Optional[Sequence[int]] = ...
    ) -> TokenBalances: ...

    async def get_app_balances(
        self, address: str, *, first: int = ..., chain_ids: Optional[Sequence[int]] = ...
    ) -> AppBalances: ...


class WalletSyncState(str, Enum):
    FETCHING = "fetching"
    RESOLVING = "resolving"
    UPSERTING = "upserting"
    ZEROING = "zeroing"
    DONE = "done"
    FAILED = "failed"


@dataclass
class WalletScope:
    """Provider parameters derived from the address format."""

    chain_ids: Optional[List[int]]
    fetch_app_balances: bool
    label: str


@dataclass
class WalletSyncResult:
    custodian_id: int
    state: WalletSyncState = WalletSyncState.FETCHING
    positions_updated: int = 0
    positions_zeroed: int = 0
    prices_updated: int = 0
    unknown_tokens: int = 0
    found_asset_ids: Set[int] = field(default_factory=set)
    errors: List[str] = field(default_factory=list)


def is_btc_wallet(address: str) -> bool:
    return address.lower().startswith("bc1")


def wallet_scope(address: str) -> WalletScope:
    # Bitcoin addresses cannot hold contracts: one chain, no app balances.
    if is_btc_wallet(address):
        return WalletScope(chain_ids=[BTC_CHAIN_ID], fetch_app_balances=False, label="BTC")
    return WalletScope(chain_ids=None, fetch_app_balances=True, label="EVM")


async def _with_timeout(call: Awaitable[T], timeout_s: Optional[float], what: str) -> T:
    if timeout_s is None:
        return await call
    try:
        return await asyncio.wait_for(call, timeout=timeout_s)
    except asyncio.TimeoutError as e:
        raise ProviderError(f"{what} timed out after {timeout_s:g}s") from e


async def fetch_wallet_snapshot(
    provider: BalanceProvider,
    address: str,
    scope: WalletScope,
    timeout_s: Optional[float] = None,
) -> List[BalanceItem]:
    """Fetch and flatten every balance the provider reports for a wallet."""
    tokens = await _with_timeout(
        provider.get_token_balances(address, first=TOKEN_PAGE_SIZE, chain_ids=scope.chain_ids),
        timeout_s,
        "Token balance fetch",
    )
    items = flatten_token_balances(tokens.by_token)

    if scope.fetch_app_balances:
        apps = await _with_timeout(
            provider.get_app_balances(address, first=APP_PAGE_SIZE, chain_ids=scope.chain_ids),
            timeout_s,
            "App balance fetch",
        )
        items.extend(flatten_app_balances(apps.by_app))
    return items


def _apply_item(
    db: Session,
    item: BalanceItem,
    custodian: WalletCustodian,
    resolver: AssetResolver,
    source: str,
    result: WalletSyncResult,
) -> None:
    try:
        asset = resolver.resolve(item)
    except ResolutionMiss as miss:
        logger.warning("%s - skipping", miss)
        result.unknown_tokens += 1
        return

    # still held, whatever happens to the writes below
    result.found_asset_ids.add(asset.id)
    wallet = truncate_address(custodian.wallet_address)

    # EVM wallets are fetched across all chains; the same asset on two chains
    # resolves to one position and the later item overwrites the earlier one.
    try:
        replace_position_quantity(db, asset.id, custodian.id, item.balance)
        db.commit()
    except (PersistenceError, SQLAlchemyError) as e:
        db.rollback()
        msg = f"Wallet {wallet}: Failed to upsert {item.symbol}: {e}"
        logger.error(msg)
        result.errors.append(msg)
        return
    result.positions_updated += 1

    if item.price is None or item.price <= 0:
        return
    try:
        record_price(db, asset.id, item.price, source)
        db.commit()
    except (PersistenceError, SQLAlchemyError) as e:
        db.rollback()
        msg = f"Wallet {wallet}: Failed to record price for {item.symbol}: {e}"
        logger.error(msg)
        result.errors.append(msg)
        return
    result.prices_updated += 1


def _zero_missing(
    db: Session,
    existing_asset_ids: Set[int],
    custodian: WalletCustodian,
    result: WalletSyncResult,
) -> None:
    for asset_id in sorted(existing_asset_ids - result.found_asset_ids):
        try:
            replace_position_quantity(db, asset_id, custodian.id, 0.0)
            db.commit()
        except (PersistenceError, SQLAlchemyError) as e:
            db.rollback()
            msg = f"Wallet {truncate_address(custodian.wallet_address)}: Failed to zero asset {asset_id}: {e}"
            logger.error(msg)
            result.errors.append(msg)
            continue
        result.positions_zeroed += 1
        logger.info("Zeroed position: asset_id=%s, custodian_id=%s", asset_id, custodian.id)


async def reconcile_wallet(
    db: Session,
    custodian: WalletCustodian,
    provider: BalanceProvider,
    resolver: AssetResolver,
    *,
    fetch_timeout_s: Optional[float] = None,
) -> WalletSyncResult:
    """
    Replace this custodian's `provider.source` positions with a fresh snapshot.

    Never raises: every failure ends up in `result.errors`.
    """
    address = custodian.wallet_address
    truncated = truncate_address(address)
    scope = wallet_scope(address)
    result = WalletSyncResult(custodian_id=custodian.id)

    logger.info("Processing %s wallet: %s", scope.label, truncated)

    try:
        # scope before fetching so this run's own writes are not mistaken for prior holdings
        existing_asset_ids = get_source_asset_ids_for_custodian(db, custodian.id, provider.source)
        items = await fetch_wallet_snapshot(provider, address, scope, timeout_s=fetch_timeout_s)
    except Exception as e:
        db.rollback()
        msg = f"Wallet {truncated}: {e}"
        logger.error(msg)
        result.errors.append(msg)
        result.state = WalletSyncState.FAILED
        return result

    result.state = WalletSyncState.RESOLVING
    logger.info("Wallet %s: %d balances, %d previously tracked", truncated, len(items), len(existing_asset_ids))

    result.state = WalletSyncState.UPSERTING
    for item in items:
        _apply_item(db, item, custodian, resolver, provider.source, result)

    result.state = WalletSyncState.ZEROING
    _zero_missing(db, existing_asset_ids, custodian, result)

    result.state = WalletSyncState.DONE
    logger.info(
        "Completed wallet: %s updated=%d zeroed=%d prices=%d unknown=%d errors=%d",
        truncated,
        result.positions_updated,
        result.positions_zeroed,
        result.prices_updated,
        result.unknown_tokens,
        len(result.errors),
    )
    return result
