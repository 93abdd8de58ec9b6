"""
Wallet balance shapes returned by the balance provider.

Zapper reports three kinds of holdings: plain tokens, app tokens (LP and
vault shares) and contract positions that wrap several tokens. They are
parsed into the variants below and flattened into BalanceItem records
before asset matching, so the resolver only ever sees one shape.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Literal, Optional, Union

from utils.common_helpers import num

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BalanceItem:
    address: Optional[str]
    symbol: str
    balance: float
    price: Optional[float]
    network: Optional[str] = None


@dataclass
class BaseTokenBalance:
    address: Optional[str]
    symbol: str
    balance: float
    price: Optional[float]
    network: Optional[str] = None
    type: Literal["base-token"] = "base-token"


@dataclass
class AppTokenBalance:
    address: Optional[str]
    symbol: str
    balance: float
    price: Optional[float]
    network: Optional[str] = None
    app_id: Optional[str] = None
    tokens: List[BaseTokenBalance] = field(default_factory=list)
    type: Literal["app-token"] = "app-token"


@dataclass
class ContractToken:
    meta_type: Optional[str]  # SUPPLIED, BORROWED, CLAIMABLE, VESTING, LOCKED
    token: Union[BaseTokenBalance, AppTokenBalance]


@dataclass
class ContractPositionBalance:
    address: Optional[str]
    network: Optional[str] = None
    app_id: Optional[str] = None
    balance_usd: Optional[float] = None
    tokens: List[ContractToken] = field(default_factory=list)
    type: Literal["contract-position"] = "contract-position"


PositionBalance = Union[AppTokenBalance, ContractPositionBalance]


@dataclass
class AppBalance:
    app_slug: Optional[str]
    network: Optional[str]
    balance_usd: Optional[float]
    position_balances: List[PositionBalance] = field(default_factory=list)


@dataclass
class TokenBalances:
    total_balance_usd: Optional[float]
    total_count: int
    by_token: List[BaseTokenBalance] = field(default_factory=list)


@dataclass
class AppBalances:
    total_balance_usd: Optional[float]
    by_app: List[AppBalance] = field(default_factory=list)


# -----------------------
# Parsing (raw GraphQL nodes -> variants)
# -----------------------

def _network_name(raw: Any) -> Optional[str]:
    if isinstance(raw, dict):
        return raw.get("slug") or raw.get("name")
    return raw if isinstance(raw, str) else None


def parse_base_token(node: Dict[str, Any]) -> BaseTokenBalance:
    return BaseTokenBalance(
        address=node.get("address") or node.get("tokenAddress"),
        symbol=node.get("symbol") or "",
        balance=num(node.get("balance")) or 0.0,
        price=num(node.get("price")),
        network=_network_name(node.get("network")),
    )


def parse_app_token(node: Dict[str, Any]) -> AppTokenBalance:
    return AppTokenBalance(
        address=node.get("address"),
        symbol=node.get("symbol") or "",
        balance=num(node.get("balance")) or 0.0,
        price=num(node.get("price")),
        network=_network_name(node.get("network")),
        app_id=node.get("appId"),
        tokens=[parse_base_token(t) for t in (node.get("tokens") or []) if isinstance(t, dict)],
    )


def _parse_token_variant(node: Dict[str, Any]) -> Union[BaseTokenBalance, AppTokenBalance]:
    if node.get("type") == "app-token":
        return parse_app_token(node)
    return parse_base_token(node)


def parse_contract_position(node: Dict[str, Any]) -> ContractPositionBalance:
    tokens: List[ContractToken] = []
    for entry in node.get("tokens") or []:
        token = entry.get("token") if isinstance(entry, dict) else None
        if not isinstance(token, dict):
            continue
        tokens.append(ContractToken(meta_type=entry.get("metaType"), token=_parse_token_variant(token)))
    return ContractPositionBalance(
        address=node.get("address"),
        network=_network_name(node.get("network")),
        app_id=node.get("appId"),
        balance_usd=num(node.get("balanceUSD")),
        tokens=tokens,
    )


def parse_position_balance(node: Dict[str, Any]) -> Optional[PositionBalance]:
    kind = node.get("type")
    if kind == "app-token":
        return parse_app_token(node)
    if kind == "contract-position":
        return parse_contract_position(node)
    logger.debug("Ignoring position balance of type %s", kind)
    return None


# -----------------------
# Flattening (variants -> BalanceItem)
# -----------------------

def _item(token: Union[BaseTokenBalance, AppTokenBalance]) -> BalanceItem:
    return BalanceItem(
        address=token.address,
        symbol=token.symbol,
        balance=token.balance,
        price=token.price,
        network=token.network,
    )


def flatten_position_balance(position: PositionBalance) -> List[BalanceItem]:
    """An app token is one item; a contract position yields one item per wrapped token."""
    if isinstance(position, AppTokenBalance):
        return [_item(position)]
    if isinstance(position, ContractPositionBalance):
        return [_item(ct.token) for ct in position.tokens]
    return []


def flatten_token_balances(tokens: Iterable[BaseTokenBalance]) -> List[BalanceItem]:
    return [_item(t) for t in tokens]


def flatten_app_balances(apps: Iterable[AppBalance]) -> List[BalanceItem]:
    items: List[BalanceItem] = []
    for app in apps:
        for position in app.position_balances:
            items.extend(flatten_position_balance(position))
    return items
