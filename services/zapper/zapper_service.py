"""
Zapper portfolioV2 client: token and app balances for one wallet address.

Responses are parsed into services.sync.balances variants. Every failure
surfaces as ProviderError so the sync can fail just that wallet.
"""
from __future__ import annotations

import base64
import json
import logging
import re
import time
from typing import Any, Dict, Optional, Sequence, Tuple

import httpx

from config import settings
from services.sync.balances import (
    AppBalance,
    AppBalances,
    TokenBalances,
    parse_base_token,
    parse_position_balance,
)
from services.sync.errors import ProviderError
from services.zapper.client import ZAPPER_CLIENT
from services.zapper.queries import APP_BALANCES_QUERY, TOKEN_BALANCES_QUERY
from utils.common_helpers import num, truncate_address

logger = logging.getLogger(__name__)

EVM_ADDRESS_RE = re.compile(r"^0x[a-fA-F0-9]{40}$")
BTC_ADDRESS_RE = re.compile(r"^bc1[a-zA-HJ-NP-Z0-9]{25,39}$")

_STATUS_MESSAGES = {
    400: "Invalid address or parameters",
    401: "Invalid API key or unauthorized access",
    403: "Invalid API key or unauthorized access",
    404: "Zapper API endpoint not found. Please check the API URL configuration.",
}


def validate_address(address: str) -> bool:
    return bool(EVM_ADDRESS_RE.match(address or "") or BTC_ADDRESS_RE.match(address or ""))


def _edges(conn: Optional[Dict[str, Any]]) -> list:
    if not isinstance(conn, dict):
        return []
    return [e.get("node") for e in (conn.get("edges") or []) if isinstance(e, dict) and e.get("node")]


class ZapperService:
    source = settings.ZAPPER_SOURCE

    def __init__(
        self,
        api_url: Optional[str] = None,
        api_key: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        cache_ttl_s: Optional[int] = None,
    ):
        self.api_url = api_url or settings.ZAPPER_API_URL
        self.api_key = api_key if api_key is not None else settings.ZAPPER_API_KEY
        self.client = client or ZAPPER_CLIENT
        self.cache_ttl_s = settings.ZAPPER_CACHE_TTL_S if cache_ttl_s is None else cache_ttl_s
        self._cache: Dict[str, Tuple[float, Any]] = {}

        if not self.api_key:
            logger.warning("ZAPPER_API_KEY not configured. Using public endpoint without authentication.")

    # ---------------------------
    # Tiny TTL cache
    # ---------------------------
    @staticmethod
    def _cache_key(method: str, address: str, params: Dict[str, Any]) -> str:
        encoded = base64.b64encode(json.dumps(params, sort_keys=True).encode()).decode()
        return f"portfolio:{method}:{address.lower()}:{encoded}"

    def _cache_get(self, key: str) -> Any:
        hit = self._cache.get(key)
        if not hit:
            return None
        ts, payload = hit
        if time.time() - ts <= self.cache_ttl_s:
            return payload
        self._cache.pop(key, None)
        return None

    def _cache_set(self, key: str, payload: Any) -> None:
        if self.cache_ttl_s > 0:
            self._cache[key] = (time.time(), payload)

    # ---------------------------
    # Transport
    # ---------------------------
    async def _execute(self, query: str, variables: Dict[str, Any]) -> Dict[str, Any]:
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        if self.api_key:
            headers["x-zapper-api-key"] = self.api_key

        try:
            resp = await self.client.post(
                self.api_url,
                json={"query": query, "variables": variables},
                headers=headers,
            )
            resp.raise_for_status()
        except httpx.TimeoutException as e:
            raise ProviderError("Zapper request timed out") from e
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            msg = _STATUS_MESSAGES.get(status, f"Failed to fetch portfolio data (HTTP {status})")
            raise ProviderError(msg) from e
        except httpx.HTTPError as e:
            raise ProviderError(f"Failed to fetch portfolio data: {e}") from e

        try:
            body = resp.json()
        except ValueError as e:
            raise ProviderError("Zapper returned a non-JSON response") from e

        if not isinstance(body, dict):
            raise ProviderError("Zapper returned an unexpected payload")
        if body.get("errors"):
            messages = ", ".join(str(err.get("message", err)) for err in body["errors"] if err)
            raise ProviderError(f"GraphQL errors: {messages}")

        data = body.get("data") or {}
        portfolio = data.get("portfolioV2")
        if not isinstance(portfolio, dict):
            raise ProviderError("Zapper response missing portfolioV2")
        return portfolio

    def _check_address(self, address: str) -> None:
        if not validate_address(address):
            raise ProviderError(f"Invalid address format: {truncate_address(address)}")

    # ---------------------------
    # Public API
    # ---------------------------
    async def get_token_balances(
        self,
        address: str,
        *,
        first: int = 25,
        chain_ids: Optional[Sequence[int]] = None,
    ) -> TokenBalances:
        self._check_address(address)
        params = {"first": first, "chainIds": list(chain_ids) if chain_ids else None}
        key = self._cache_key("tokenBalances", address, params)
        cached = self._cache_get(key)
        if cached is not None:
            logger.debug("Cache hit for token balances: %s", truncate_address(address))
            return cached

        portfolio = await self._execute(TOKEN_BALANCES_QUERY, {"addresses": [address], **params})
        raw = portfolio.get("tokenBalances") or {}
        by_token = raw.get("byToken") or {}

        result = TokenBalances(
            total_balance_usd=num(raw.get("totalBalanceUSD")),
            total_count=int(by_token.get("totalCount") or 0),
            by_token=[parse_base_token(node) for node in _edges(by_token)],
        )
        self._cache_set(key, result)
        return result

    async def get_app_balances(
        self,
        address: str,
        *,
        first: int = 25,
        chain_ids: Optional[Sequence[int]] = None,
    ) -> AppBalances:
        self._check_address(address)
        params = {"first": first, "chainIds": list(chain_ids) if chain_ids else None}
        key = self._cache_key("appBalances", address, params)
        cached = self._cache_get(key)
        if cached is not None:
            logger.debug("Cache hit for app balances: %s", truncate_address(address))
            return cached

        portfolio = await self._execute(APP_BALANCES_QUERY, {"addresses": [address], **params})
        raw = portfolio.get("appBalances") or {}

        apps = []
        for node in _edges(raw.get("byApp")):
            positions = [parse_position_balance(p) for p in _edges(node.get("positionBalances"))]
            network = node.get("network") or {}
            apps.append(
                AppBalance(
                    app_slug=(node.get("app") or {}).get("slug"),
                    network=network.get("slug") or network.get("name"),
                    balance_usd=num(node.get("balanceUSD")),
                    position_balances=[p for p in positions if p is not None],
                )
            )

        result = AppBalances(total_balance_usd=num(raw.get("totalBalanceUSD")), by_app=apps)
        self._cache_set(key, result)
        return result
