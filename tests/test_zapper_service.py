import asyncio
import json
import unittest

import httpx

from services.sync.balances import AppTokenBalance, ContractPositionBalance, flatten_app_balances
from services.sync.errors import ProviderError
from services.zapper.zapper_service import ZapperService, validate_address

ADDRESS = "0x" + "a" * 40


def _token_payload():
    return {
        "data": {
            "portfolioV2": {
                "tokenBalances": {
                    "totalBalanceUSD": 3100.0,
                    "byToken": {
                        "totalCount": 2,
                        "edges": [
                            {"node": {"symbol": "ETH", "tokenAddress": "0x" + "0" * 40, "balance": 1.0, "price": 3000.0, "network": {"name": "Ethereum"}}},
                            {"node": {"symbol": "USDC", "tokenAddress": "0x" + "b" * 40, "balance": "100", "price": 1.0, "network": {"name": "Base"}}},
                        ],
                    },
                }
            }
        }
    }


def _app_payload():
    return {
        "data": {
            "portfolioV2": {
                "appBalances": {
                    "totalBalanceUSD": 500.0,
                    "byApp": {
                        "edges": [
                            {
                                "node": {
                                    "balanceUSD": 500.0,
                                    "app": {"slug": "aave-v3"},
                                    "network": {"slug": "ethereum", "name": "Ethereum"},
                                    "positionBalances": {
                                        "edges": [
                                            {"node": {"type": "app-token", "address": "0x" + "1" * 40, "symbol": "aEthUSDC", "balance": 200, "price": 1.0, "appId": "aave-v3", "tokens": []}},
                                            {
                                                "node": {
                                                    "type": "contract-position",
                                                    "address": "0x" + "2" * 40,
                                                    "appId": "aave-v3",
                                                    "tokens": [
                                                        {"metaType": "SUPPLIED", "token": {"type": "base-token", "address": "0x" + "3" * 40, "symbol": "DAI", "balance": 300, "price": 1.0}},
                                                    ],
                                                }
                                            },
                                            {"node": {"type": "nft", "address": "0x" + "4" * 40}},
                                        ]
                                    },
                                }
                            }
                        ]
                    },
                }
            }
        }
    }


def _service(handler, api_key="test-key", cache_ttl_s=90):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return ZapperService(api_url="https://zapper.test/graphql", api_key=api_key, client=client, cache_ttl_s=cache_ttl_s)


class TestValidateAddress(unittest.TestCase):
    def test_formats(self):
        self.assertTrue(validate_address(ADDRESS))
        self.assertTrue(validate_address("bc1qar0srrr7xfkvy5l643lydnw9re59gtzzwf5mdq"))
        self.assertFalse(validate_address("0x1234"))
        self.assertFalse(validate_address("not-an-address"))
        self.assertFalse(validate_address(""))


class TestZapperService(unittest.TestCase):
    def test_token_balances_are_parsed(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json=_token_payload())

        balances = asyncio.run(_service(handler).get_token_balances(ADDRESS, first=100))

        self.assertEqual(balances.total_count, 2)
        self.assertEqual(balances.total_balance_usd, 3100.0)
        self.assertEqual([t.symbol for t in balances.by_token], ["ETH", "USDC"])
        self.assertEqual(balances.by_token[1].balance, 100.0)
        self.assertEqual(balances.by_token[1].network, "Base")

        body = json.loads(seen[0].content)
        self.assertEqual(body["variables"]["addresses"], [ADDRESS])
        self.assertEqual(body["variables"]["first"], 100)
        self.assertEqual(seen[0].headers["x-zapper-api-key"], "test-key")

    def test_no_api_key_header_without_key(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json=_token_payload())

        asyncio.run(_service(handler, api_key="").get_token_balances(ADDRESS))
        self.assertNotIn("x-zapper-api-key", seen[0].headers)

    def test_app_balances_are_parsed(self):
        apps = asyncio.run(
            _service(lambda r: httpx.Response(200, json=_app_payload())).get_app_balances(ADDRESS)
        )

        self.assertEqual(len(apps.by_app), 1)
        app = apps.by_app[0]
        self.assertEqual(app.app_slug, "aave-v3")
        self.assertEqual(app.network, "ethereum")
        self.assertEqual(len(app.position_balances), 2)
        self.assertIsInstance(app.position_balances[0], AppTokenBalance)
        self.assertIsInstance(app.position_balances[1], ContractPositionBalance)
        self.assertEqual([i.symbol for i in flatten_app_balances(apps.by_app)], ["aEthUSDC", "DAI"])

    def test_responses_are_cached(self):
        hits = []

        def handler(request):
            hits.append(request)
            return httpx.Response(200, json=_token_payload())

        service = _service(handler)

        async def twice():
            await service.get_token_balances(ADDRESS)
            await service.get_token_balances(ADDRESS)
            await service.get_token_balances(ADDRESS, chain_ids=[8453])

        asyncio.run(twice())
        self.assertEqual(len(hits), 2)

    def test_cache_can_be_disabled(self):
        hits = []

        def handler(request):
            hits.append(request)
            return httpx.Response(200, json=_token_payload())

        service = _service(handler, cache_ttl_s=0)

        async def twice():
            await service.get_token_balances(ADDRESS)
            await service.get_token_balances(ADDRESS)

        asyncio.run(twice())
        self.assertEqual(len(hits), 2)

    def test_graphql_errors(self):
        handler = lambda r: httpx.Response(200, json={"errors": [{"message": "Rate limited"}]})
        with self.assertRaises(ProviderError) as ctx:
            asyncio.run(_service(handler).get_token_balances(ADDRESS))
        self.assertEqual(str(ctx.exception), "GraphQL errors: Rate limited")

    def test_http_status_messages(self):
        for status, expected in (
            (401, "Invalid API key or unauthorized access"),
            (404, "Zapper API endpoint not found"),
            (502, "Failed to fetch portfolio data (HTTP 502)"),
        ):
            handler = lambda r, s=status: httpx.Response(s, json={})
            with self.assertRaises(ProviderError) as ctx:
                asyncio.run(_service(handler).get_token_balances(ADDRESS))
            self.assertIn(expected, str(ctx.exception))

    def test_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        with self.assertRaises(ProviderError) as ctx:
            asyncio.run(_service(handler).get_token_balances(ADDRESS))
        self.assertIn("timed out", str(ctx.exception))

    def test_non_json_body(self):
        handler = lambda r: httpx.Response(200, text="<html>maintenance</html>")
        with self.assertRaises(ProviderError):
            asyncio.run(_service(handler).get_token_balances(ADDRESS))

    def test_missing_portfolio(self):
        handler = lambda r: httpx.Response(200, json={"data": {}})
        with self.assertRaises(ProviderError):
            asyncio.run(_service(handler).get_app_balances(ADDRESS))

    def test_invalid_address_never_calls_upstream(self):
        hits = []

        def handler(request):
            hits.append(request)
            return httpx.Response(200, json=_token_payload())

        with self.assertRaises(ProviderError) as ctx:
            asyncio.run(_service(handler).get_token_balances("0xnope"))
        self.assertIn("Invalid address format", str(ctx.exception))
        self.assertEqual(hits, [])


if __name__ == "__main__":
    unittest.main()
