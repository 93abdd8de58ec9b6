"""
Persistence used by the wallet sync.

Writes here are absolute (replace, never add) so re-running a sync against
the same snapshot leaves the same rows behind.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Set

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from models.asset import Asset
from models.custodian import Custodian
from models.position import Position
from services.price_history_service import upsert_price_history
from services.sync.asset_resolver import CatalogAsset
from services.sync.errors import PersistenceError, SetupError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WalletCustodian:
    id: int
    name: str
    wallet_address: str


def load_custodians_with_wallets(db: Session) -> List[WalletCustodian]:
    try:
        rows = (
            db.query(Custodian.id, Custodian.name, Custodian.wallet_address)
            .filter(Custodian.wallet_address.isnot(None), Custodian.wallet_address != "")
            .order_by(Custodian.id)
            .all()
        )
    except SQLAlchemyError as e:
        logger.exception("Failed to fetch custodians")
        raise SetupError(f"Failed to fetch custodians from database: {e}") from e

    logger.info("Found %d custodians with wallets", len(rows))
    return [WalletCustodian(id=cid, name=name, wallet_address=addr.strip()) for cid, name, addr in rows]


def load_asset_catalog(db: Session) -> List[CatalogAsset]:
    try:
        rows = db.query(Asset.id, Asset.symbol, Asset.api_identifier, Asset.price_source).all()
    except SQLAlchemyError as e:
        logger.exception("Failed to fetch assets")
        raise SetupError(f"Failed to fetch assets from database: {e}") from e

    logger.info("Found %d assets in database", len(rows))
    return [
        CatalogAsset(id=aid, symbol=symbol, api_identifier=ident, price_source=source)
        for aid, symbol, ident, source in rows
    ]


def get_source_asset_ids_for_custodian(db: Session, custodian_id: int, source: str) -> Set[int]:
    """
    Assets this custodian currently holds (qty > 0) that are fed by `source`.

    Only these rows may be zeroed by that source's sync; manual and
    other-source positions at the same custodian are left alone.
    """
    rows = (
        db.query(Position.asset_id)
        .join(Asset, Position.asset_id == Asset.id)
        .filter(
            Position.custodian_id == custodian_id,
            Asset.price_source == source,
            Position.quantity > 0,
        )
        .all()
    )
    return {r[0] for r in rows}


def replace_position_quantity(db: Session, asset_id: int, custodian_id: int, quantity: float) -> Position:
    if quantity < 0:
        logger.warning(
            "Negative balance clamped to 0 (asset_id=%s, custodian_id=%s, quantity=%s)",
            asset_id, custodian_id, quantity,
        )
        quantity = 0.0

    try:
        position = db.query(Position).filter_by(asset_id=asset_id, custodian_id=custodian_id).first()
        if position is None:
            position = Position(asset_id=asset_id, custodian_id=custodian_id, quantity=quantity)
            db.add(position)
        else:
            position.quantity = quantity
            position.updated_at = datetime.now(timezone.utc)
        db.flush()
    except SQLAlchemyError as e:
        logger.error(
            "Failed to upsert position (asset: %s, custodian: %s): %s", asset_id, custodian_id, e
        )
        raise PersistenceError(f"Failed to upsert position for asset {asset_id}: {e}") from e
    return position


def record_price(db: Session, asset_id: int, price_usd: float, source: str) -> None:
    try:
        upsert_price_history(db, asset_id, price_usd, source)
    except SQLAlchemyError as e:
        logger.error("Failed to upsert price history (asset: %s): %s", asset_id, e)
        raise PersistenceError(f"Failed to upsert price history for asset {asset_id}: {e}") from e
