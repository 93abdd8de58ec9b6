"""Match external balance items to catalog assets."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, Optional

from services.sync.balances import BalanceItem
from services.sync.errors import ResolutionMiss

logger = logging.getLogger(__name__)

# Every EVM chain reports its native coin (ETH, MATIC, BNB...) under this address.
NATIVE_TOKEN_ADDRESS = "0x0000000000000000000000000000000000000000"


@dataclass(frozen=True)
class CatalogAsset:
    id: int
    symbol: str
    api_identifier: Optional[str] = None
    price_source: Optional[str] = None


class AssetResolver:
    """
    Lookup tables over the asset catalog, built once per sync run.

    Matching order for an item:
      1. native-token placeholder address -> symbol only
      2. api_identifier (case-insensitive)
      3. symbol (case-insensitive)
    When two assets share a key the one with the lower id wins.
    """

    def __init__(self, assets: Iterable[CatalogAsset]):
        self._by_identifier: Dict[str, CatalogAsset] = {}
        self._by_symbol: Dict[str, CatalogAsset] = {}
        for asset in sorted(assets, key=lambda a: a.id):
            if asset.api_identifier:
                self._by_identifier.setdefault(asset.api_identifier.strip().lower(), asset)
            if asset.symbol:
                self._by_symbol.setdefault(asset.symbol.strip().lower(), asset)

    def __len__(self) -> int:
        return len(self._by_symbol)

    def by_symbol(self, symbol: Optional[str]) -> Optional[CatalogAsset]:
        return self._by_symbol.get((symbol or "").strip().lower())

    def by_identifier(self, identifier: Optional[str]) -> Optional[CatalogAsset]:
        return self._by_identifier.get((identifier or "").strip().lower())

    def resolve(self, item: BalanceItem) -> CatalogAsset:
        """Return the matching asset or raise ResolutionMiss."""
        address = (item.address or "").strip().lower()
        if not address:
            raise ResolutionMiss(item.symbol, None)

        if address == NATIVE_TOKEN_ADDRESS:
            asset = self.by_symbol(item.symbol)
        else:
            asset = self.by_identifier(address) or self.by_symbol(item.symbol)

        if asset is None:
            raise ResolutionMiss(item.symbol, address)
        return asset
