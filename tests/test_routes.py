import os
import unittest
from datetime import date
from unittest.mock import MagicMock, patch

os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

from fastapi.testclient import TestClient

from database import get_db
from main import app
from middleware.rate_limit import limiter
from routers import sync_routes
from services.sync.sync_service import get_balance_provider
from services.yahoo_service import YahooPriceService
from support import (
    NATIVE,
    WALLET_A,
    FakeBalanceProvider,
    add_asset,
    add_custodian,
    add_position,
    add_price,
    make_session_factory,
    quantity_of,
    token,
)


class RouteTestCase(unittest.TestCase):
    def setUp(self):
        self.Session = make_session_factory()
        self.db = self.Session()

        def override_get_db():
            db = self.Session()
            try:
                yield db
            finally:
                db.close()

        app.dependency_overrides[get_db] = override_get_db
        limiter.enabled = False
        sync_routes.reset_last_sync_state()
        self.client = TestClient(app)

        self.eth = add_asset(self.db, "ETH")
        self.aapl = add_asset(self.db, "AAPL", asset_type="Stock", price_source="yahoofinance", name="Apple Inc.")
        self.wallet = add_custodian(self.db, "Hot wallet", WALLET_A)
        self.broker = add_custodian(self.db, "Broker", type="broker")

    def tearDown(self):
        app.dependency_overrides.clear()
        limiter.enabled = True
        self.db.close()

    def refresh(self):
        self.db.expire_all()


class TestPositionRoutes(RouteTestCase):
    def test_list_positions_sorted_by_value(self):
        add_position(self.db, self.eth, self.wallet, 2)
        add_position(self.db, self.aapl, self.broker, 10)
        add_price(self.db, self.eth, 3000)
        add_price(self.db, self.aapl, 200)

        res = self.client.get("/api/positions")
        self.assertEqual(res.status_code, 200)
        body = res.json()
        self.assertEqual([p["asset"]["symbol"] for p in body["positions"]], ["ETH", "AAPL"])
        self.assertEqual(body["total_value_usd"], 8000.0)

        res = self.client.get("/api/positions", params={"asset_type": "stock"})
        self.assertEqual([p["asset"]["symbol"] for p in res.json()["positions"]], ["AAPL"])

        res = self.client.get("/api/positions", params={"custodian_id": self.wallet.id})
        self.assertEqual([p["asset"]["symbol"] for p in res.json()["positions"]], ["ETH"])

    def test_put_creates_then_updates(self):
        res = self.client.put(
            "/api/positions",
            json={"asset_symbol": "aapl", "custodian_name": "broker", "quantity": 5},
        )
        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.json()["action"], "created")

        res = self.client.put(
            "/api/positions",
            json={"asset_id": self.aapl.id, "custodian_id": self.broker.id, "quantity": 7.5},
        )
        self.assertEqual(res.json()["action"], "updated")
        self.refresh()
        self.assertEqual(quantity_of(self.db, self.aapl, self.broker), 7.5)

    def test_put_rejects_unknown_or_incomplete(self):
        res = self.client.put("/api/positions", json={"asset_symbol": "NOPE", "custodian_id": self.broker.id, "quantity": 1})
        self.assertEqual(res.status_code, 400)

        res = self.client.put("/api/positions", json={"custodian_id": self.broker.id, "quantity": 1})
        self.assertEqual(res.status_code, 422)

        res = self.client.put("/api/positions", json={"asset_id": self.aapl.id, "custodian_id": self.broker.id, "quantity": -1})
        self.assertEqual(res.status_code, 422)

    def test_quick_cash_update(self):
        usd = add_asset(self.db, "USD", asset_type="Cash", price_source=None, name="US Dollar")
        res = self.client.post("/api/positions/cash", json={"custodian_id": self.broker.id, "currency": "usd", "amount": 5000})
        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.json()["action"], "created")

        res = self.client.post("/api/positions/cash", json={"custodian_id": self.broker.id, "amount": 4200.5})
        self.assertEqual(res.json()["action"], "updated")
        self.refresh()
        self.assertEqual(quantity_of(self.db, usd, self.broker), 4200.5)

    def test_quick_cash_update_rejects_unknown_currency_or_custodian(self):
        add_asset(self.db, "USD", asset_type="Cash", price_source=None)
        res = self.client.post("/api/positions/cash", json={"custodian_id": self.broker.id, "currency": "ARS", "amount": 1})
        self.assertEqual(res.status_code, 400)
        self.assertIn("Please create it first", res.json()["detail"])

        res = self.client.post("/api/positions/cash", json={"custodian_id": 9999, "amount": 1})
        self.assertEqual(res.status_code, 400)

        res = self.client.post("/api/positions/cash", json={"custodian_id": self.broker.id, "amount": -1})
        self.assertEqual(res.status_code, 422)

    def test_delete(self):
        position = add_position(self.db, self.eth, self.wallet, 1)
        res = self.client.delete(f"/api/positions/{position.id}")
        self.assertEqual(res.json(), {"success": True, "deleted_id": position.id})
        self.assertEqual(self.client.delete(f"/api/positions/{position.id}").status_code, 404)


class TestAssetRoutes(RouteTestCase):
    def test_list_with_latest_price(self):
        add_price(self.db, self.eth, 2000, date(2024, 1, 1))
        add_price(self.db, self.eth, 3100, date(2024, 2, 1))

        res = self.client.get("/api/assets")
        self.assertEqual(res.status_code, 200)
        assets = {a["symbol"]: a for a in res.json()["assets"]}
        self.assertEqual(list(assets), ["AAPL", "ETH"])
        self.assertEqual(assets["ETH"]["current_price"], 3100)
        self.assertEqual(assets["ETH"]["price_as_of"], "2024-02-01")
        self.assertIsNone(assets["AAPL"]["current_price"])
        self.assertIsNone(assets["AAPL"]["price_as_of"])

        res = self.client.get("/api/assets", params={"price_source": "yahoofinance"})
        self.assertEqual([a["symbol"] for a in res.json()["assets"]], ["AAPL"])

        res = self.client.get("/api/assets", params={"asset_type": "cryptocurrency"})
        self.assertEqual([a["symbol"] for a in res.json()["assets"]], ["ETH"])

    def test_create_uppercases_symbol(self):
        res = self.client.post(
            "/api/assets",
            json={"symbol": "msft", "name": "Microsoft", "asset_type": "Stock", "price_source": "yahoofinance", "api_identifier": "MSFT"},
        )
        self.assertEqual(res.status_code, 201)
        asset = res.json()["asset"]
        self.assertEqual(asset["symbol"], "MSFT")
        self.assertEqual(asset["price_source"], "yahoofinance")
        self.assertIsNone(asset["current_price"])

    def test_duplicate_symbol_conflicts(self):
        res = self.client.post("/api/assets", json={"symbol": "eth", "name": "Ether again", "asset_type": "Cryptocurrency"})
        self.assertEqual(res.status_code, 409)
        self.assertEqual(res.json()["detail"], 'Asset with symbol "ETH" already exists')
        self.assertEqual(len(self.client.get("/api/assets").json()["assets"]), 2)

    def test_create_validation(self):
        res = self.client.post("/api/assets", json={"symbol": "", "name": "Nothing", "asset_type": "Stock"})
        self.assertEqual(res.status_code, 422)

    def test_asset_types(self):
        add_asset(self.db, "SOL")
        res = self.client.get("/api/asset-types")
        self.assertEqual(res.status_code, 200)
        self.assertEqual(
            res.json()["asset_types"],
            [{"name": "Cryptocurrency", "asset_count": 2}, {"name": "Stock", "asset_count": 1}],
        )


class TestCustodianRoutes(RouteTestCase):
    def test_list_sorted_by_value(self):
        add_position(self.db, self.eth, self.wallet, 1)
        add_position(self.db, self.aapl, self.broker, 10)
        add_price(self.db, self.eth, 3000)
        add_price(self.db, self.aapl, 200)
        add_custodian(self.db, "Empty bank", type="bank")

        res = self.client.get("/api/custodians")
        self.assertEqual(res.status_code, 200)
        rows = res.json()["custodians"]
        self.assertEqual([(c["name"], c["total_value_usd"]) for c in rows], [("Hot wallet", 3000.0), ("Broker", 2000.0), ("Empty bank", 0.0)])
        self.assertEqual(rows[0]["wallet_address"], WALLET_A)

    def test_create_lowercases_wallet_address(self):
        res = self.client.post(
            "/api/custodians",
            json={"name": "Ledger", "type": "hardware_wallet", "wallet_address": "0x" + "AB" * 20},
        )
        self.assertEqual(res.status_code, 201)
        custodian = res.json()["custodian"]
        self.assertEqual(custodian["wallet_address"], "0x" + "ab" * 20)
        self.assertEqual(custodian["total_value_usd"], 0.0)

        res = self.client.post("/api/custodians", json={"name": "Fidelity", "type": "broker"})
        self.assertIsNone(res.json()["custodian"]["wallet_address"])

    def test_create_validation(self):
        self.assertEqual(self.client.post("/api/custodians", json={"name": "No type"}).status_code, 422)


class TestTransactionRoutes(RouteTestCase):
    def _post(self, **overrides):
        payload = {
            "asset_id": self.aapl.id,
            "custodian_id": self.broker.id,
            "transaction_type": "buy",
            "quantity": 10,
            "price_per_unit": 150,
            "transaction_date": "2024-03-01",
        }
        payload.update(overrides)
        return self.client.post("/api/transactions", json=payload)

    def test_buy_creates_position(self):
        res = self._post(notes="  first lot  ")
        self.assertEqual(res.status_code, 201)
        body = res.json()
        self.assertEqual(body["transaction"]["total_value_usd"], 1500)
        self.assertEqual(body["transaction"]["notes"], "first lot")
        self.assertEqual(body["transaction"]["asset_symbol"], "AAPL")
        self.assertEqual(body["updated_position"]["quantity"], 10)

    def test_sell_reduces_position(self):
        self._post()
        res = self._post(transaction_type="sell", quantity=4, price_per_unit=170, transaction_date="2024-04-01")
        self.assertEqual(res.json()["updated_position"]["quantity"], 6)

    def test_transfer_without_price(self):
        res = self._post(transaction_type="transfer_in", quantity=2, price_per_unit=None)
        self.assertEqual(res.status_code, 201)
        self.assertIsNone(res.json()["transaction"]["total_value_usd"])

    def test_overdraw_is_rejected_atomically(self):
        self._post(quantity=1)
        res = self._post(transaction_type="withdrawal", quantity=5)
        self.assertEqual(res.status_code, 400)
        self.assertEqual(len(self.client.get("/api/transactions").json()["transactions"]), 1)
        self.refresh()
        self.assertEqual(quantity_of(self.db, self.aapl, self.broker), 1)

    def test_validation(self):
        self.assertEqual(self._post(quantity=0).status_code, 422)
        self.assertEqual(self._post(transaction_type="airdrop").status_code, 422)
        self.assertEqual(self._post(asset_id=9999).status_code, 400)

    def test_list_filters_and_order(self):
        self._post(transaction_date="2024-01-01")
        self._post(transaction_date="2024-06-01")
        self._post(asset_id=self.eth.id, custodian_id=self.wallet.id, price_per_unit=3000, quantity=1, transaction_date="2024-03-01")

        rows = self.client.get("/api/transactions").json()["transactions"]
        self.assertEqual([r["transaction_date"] for r in rows], ["2024-06-01", "2024-03-01", "2024-01-01"])

        rows = self.client.get("/api/transactions", params={"asset_id": self.aapl.id, "from_date": "2024-02-01"}).json()["transactions"]
        self.assertEqual([r["transaction_date"] for r in rows], ["2024-06-01"])


class TestPortfolioRoutes(RouteTestCase):
    def test_pnl_and_summary(self):
        self.client.post(
            "/api/transactions",
            json={
                "asset_id": self.aapl.id,
                "custodian_id": self.broker.id,
                "transaction_type": "buy",
                "quantity": 10,
                "price_per_unit": 100,
                "transaction_date": "2024-01-01",
            },
        )
        add_price(self.db, self.aapl, 120, date.today())

        pnl = self.client.get("/api/portfolio/pnl").json()
        self.assertEqual(pnl["summary"]["total_unrealized_pnl_usd"], 200)
        self.assertEqual(pnl["summary"]["total_unrealized_pnl_percent"], 20.0)
        self.assertEqual(pnl["positions"][0]["asset_name"], "Apple Inc.")

        summary = self.client.get("/api/portfolio/summary").json()
        self.assertEqual(summary["total_value_usd"], 1200.0)
        self.assertEqual(summary["by_custodian"], [{"name": "Broker", "value_usd": 1200.0, "percentage": 100.0}])


class TestSyncRoutes(RouteTestCase):
    def _provider(self):
        return FakeBalanceProvider(tokens={WALLET_A: [token("ETH", NATIVE, 3.0, 2500.0)]})

    def test_inline_portfolio_sync(self):
        provider = self._provider()
        app.dependency_overrides[get_balance_provider] = lambda: provider

        with patch("services.sync.sync_service.settings.SYNC_RATE_LIMIT_MS", 0):
            res = self.client.post("/api/sync/portfolio")

        self.assertEqual(res.status_code, 200)
        body = res.json()
        self.assertTrue(body["success"])
        self.assertEqual(body["summary"]["walletsProcessed"], 1)
        self.assertEqual(body["summary"]["positionsUpdated"], 1)

        last = self.client.get("/api/sync/portfolio/last").json()
        self.assertEqual(last["status"], "completed")
        self.assertEqual(last["result"]["summary"]["positionsUpdated"], 1)

    def test_background_portfolio_sync(self):
        provider = self._provider()
        app.dependency_overrides[get_balance_provider] = lambda: provider

        with patch("routers.sync_routes.SessionLocal", self.Session):
            res = self.client.post("/api/sync/portfolio", params={"background": "true"})

        self.assertEqual(res.status_code, 202)
        job_id = res.json()["jobId"]

        last = self.client.get("/api/sync/portfolio/last").json()
        self.assertEqual(last["jobId"], job_id)
        self.assertEqual(last["status"], "completed")
        self.refresh()
        self.assertEqual(quantity_of(self.db, self.eth, self.wallet), 3.0)

    def test_last_before_any_run(self):
        self.assertEqual(
            self.client.get("/api/sync/portfolio/last").json(),
            {"jobId": None, "status": "never_run", "result": None},
        )

    def test_stock_sync(self):
        service = YahooPriceService()
        service.fetch_price = MagicMock(return_value=201.25)
        app.dependency_overrides[sync_routes.get_price_service] = lambda: service

        res = self.client.post("/api/sync/stocks", params={"rate_limit_ms": 0})

        self.assertEqual(res.status_code, 200)
        body = res.json()
        self.assertTrue(body["success"])
        self.assertEqual(body["prices"], [{"symbol": "AAPL", "priceUsd": 201.25, "source": "yahoofinance"}])


if __name__ == "__main__":
    unittest.main()
