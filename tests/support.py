"""In-memory SQLite fixtures and fakes shared by the test modules."""
import os

os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

from datetime import date
from typing import Dict, List, Optional, Sequence

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

import models  # noqa: F401
from database import Base
from models import Asset, Custodian, Position, PriceHistory, Transaction
from services.sync.balances import AppBalances, BaseTokenBalance, TokenBalances
from services.sync.errors import ProviderError

WALLET_A = "0x" + "a" * 40
WALLET_B = "0x" + "b" * 40
WALLET_C = "0x" + "c" * 40
BTC_WALLET = "bc1q" + "x" * 38
USDC_ADDRESS = "0xa0b86991c6218b36c1d19d4a2e9eb0ce3606eb48"
NATIVE = "0x0000000000000000000000000000000000000000"


def make_session_factory() -> sessionmaker:
    # one shared connection so every session sees the same in-memory database
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def add_asset(
    db: Session,
    symbol: str,
    asset_type: str = "Cryptocurrency",
    price_source: Optional[str] = "zapper",
    api_identifier: Optional[str] = None,
    name: Optional[str] = None,
) -> Asset:
    asset = Asset(
        symbol=symbol,
        name=name or symbol,
        asset_type=asset_type,
        price_source=price_source,
        api_identifier=api_identifier,
    )
    db.add(asset)
    db.commit()
    return asset


def add_custodian(db: Session, name: str, wallet_address: Optional[str] = None, type: str = "wallet") -> Custodian:
    custodian = Custodian(name=name, type=type, wallet_address=wallet_address)
    db.add(custodian)
    db.commit()
    return custodian


def add_position(db: Session, asset: Asset, custodian: Custodian, quantity: float) -> Position:
    position = Position(asset_id=asset.id, custodian_id=custodian.id, quantity=quantity)
    db.add(position)
    db.commit()
    return position


def add_price(db: Session, asset: Asset, price: float, price_date: Optional[date] = None, source: str = "manual"):
    row = PriceHistory(
        asset_id=asset.id,
        price_usd=price,
        price_date=price_date or date.today(),
        source=source,
    )
    db.add(row)
    db.commit()
    return row


def add_tx(
    db: Session,
    asset: Asset,
    custodian: Custodian,
    transaction_type: str,
    quantity: float,
    price_per_unit: Optional[float] = None,
    transaction_date: date = date(2024, 1, 1),
) -> Transaction:
    tx = Transaction(
        asset_id=asset.id,
        custodian_id=custodian.id,
        transaction_type=transaction_type,
        quantity=quantity,
        price_per_unit=price_per_unit,
        total_value_usd=quantity * price_per_unit if price_per_unit is not None else None,
        transaction_date=transaction_date,
    )
    db.add(tx)
    db.commit()
    return tx


def quantity_of(db: Session, asset: Asset, custodian: Custodian) -> Optional[float]:
    position = db.query(Position).filter_by(asset_id=asset.id, custodian_id=custodian.id).first()
    return None if position is None else position.quantity


def token(symbol: str, address: Optional[str], balance: float, price: Optional[float] = None) -> BaseTokenBalance:
    return BaseTokenBalance(address=address, symbol=symbol, balance=balance, price=price, network="ethereum")


class FakeBalanceProvider:
    """Serves canned snapshots per address; addresses in `failing` raise ProviderError."""

    source = "zapper"

    def __init__(
        self,
        tokens: Optional[Dict[str, List[BaseTokenBalance]]] = None,
        apps: Optional[Dict[str, AppBalances]] = None,
        failing: Sequence[str] = (),
    ):
        self.tokens = tokens or {}
        self.apps = apps or {}
        self.failing = set(failing)
        self.calls: List[tuple] = []

    async def get_token_balances(self, address, *, first=25, chain_ids=None):
        self.calls.append(("tokens", address, chain_ids))
        if address in self.failing:
            raise ProviderError("Failed to fetch portfolio data (HTTP 503)")
        by_token = self.tokens.get(address, [])
        return TokenBalances(total_balance_usd=None, total_count=len(by_token), by_token=list(by_token))

    async def get_app_balances(self, address, *, first=25, chain_ids=None):
        self.calls.append(("apps", address, chain_ids))
        return self.apps.get(address, AppBalances(total_balance_usd=None, by_app=[]))
