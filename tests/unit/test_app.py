"""
Unit Tests for the FastAPI Gateway

The app is built around an in-memory exchange so routes, serialization and
error mapping can be checked without network access.

Run with:
    pytest tests/unit/test_app.py -v
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from app.main import create_app
from core.errors import ConfigurationError, ExchangeProtocolError, NormalizationError, TransportError
from core.exchange_interface import ExchangeInterface
from core.exchange_manager import ExchangeManager
from core.pagination import PageDirection, PaginationDriver
from core.schemas import OrderBook, OrderBookLevel, Ticker, Trade

NOW = datetime(2023, 11, 14, 22, 13, 20, tzinfo=timezone.utc)

FAILURES = {
    "PROTO": ExchangeProtocolError("INVALID_MARKET", "memory"),
    "NET": TransportError("Failed after 3 attempts", "memory", status=503),
    "SHAPE": NormalizationError("missing required field", "memory", "ticker", "bid"),
    "CONF": ConfigurationError("API key is not configured", "memory"),
}


class MemoryExchange(ExchangeInterface):
    name = "memory"
    capabilities = {"symbols": True, "candles": False}

    def __init__(self):
        self.started = False
        self.stopped = False
        self.trade_pages = [
            [self._trade(n) for n in range(0, 3)],
            [self._trade(n) for n in range(3, 6)],
        ]

    @staticmethod
    def _trade(n):
        return Trade(
            exchange="memory", symbol="BTC-LTC", timestamp=NOW + timedelta(seconds=n),
            id=str(n), price=Decimal("0.1"), amount=Decimal("2"), side="buy",
        )

    async def get_ticker(self, symbol):
        if symbol in FAILURES:
            raise FAILURES[symbol]
        return Ticker(
            exchange="memory", symbol=symbol, timestamp=NOW,
            bid=Decimal("0.0123"), ask=Decimal("0.0124"), last=Decimal("0.01235"),
        )

    async def get_order_book(self, symbol, depth=100):
        levels = [OrderBookLevel(price=Decimal(p), amount=Decimal("1")) for p in ("3", "2", "1")]
        return OrderBook(exchange="memory", symbol=symbol, timestamp=NOW, bids=levels[:depth])

    async def get_historical_trades(self, symbol, callback, since=None, cancel_event=None):
        pages = iter(self.trade_pages)

        async def fetch_page(cursor):
            return next(pages, [])

        driver = PaginationDriver(
            fetch_page=fetch_page,
            next_cursor=lambda page: page[-1].id,
            since=since,
            direction=PageDirection.FORWARD,
            page_delay=0,
            cancel_event=cancel_event,
        )
        return await driver.run(callback)

    async def place_order(self, order):
        raise NotImplementedError

    async def get_order_details(self, order_id, symbol=None):
        raise NotImplementedError

    async def cancel_order(self, order_id, symbol=None):
        raise NotImplementedError

    async def withdraw(self, request):
        raise NotImplementedError

    async def get_symbols(self):
        return ["BTC-LTC"]

    async def initialize(self):
        self.started = True

    async def shutdown(self):
        self.stopped = True


@pytest.fixture
def exchange():
    return MemoryExchange()


@pytest.fixture
def client(exchange):
    app = create_app(manager=ExchangeManager({"memory": exchange}))
    with TestClient(app) as test_client:
        yield test_client


class TestSystemRoutes:

    def test_root(self, client):
        body = client.get("/").json()
        assert body["exchanges"] == ["memory"]
        assert body["status"] == "operational"

    def test_health(self, client):
        assert client.get("/health").json() == {"status": "healthy", "exchanges": {"memory": True}}

    def test_exchanges(self, client):
        assert client.get("/exchanges").json() == {"memory": {"symbols": True, "candles": False}}

    def test_lifecycle(self, exchange):
        app = create_app(manager=ExchangeManager({"memory": exchange}))
        with TestClient(app):
            assert exchange.started
        assert exchange.stopped


class TestMarketRoutes:

    def test_ticker_decimals_are_exact(self, client):
        response = client.get("/memory/ticker/BTC-LTC")
        assert response.status_code == 200
        body = response.json()
        assert body["bid"] == "0.0123"
        assert body["last"] == "0.01235"
        assert body["symbol"] == "BTC-LTC"

    def test_unknown_exchange(self, client):
        response = client.get("/kraken/ticker/BTC-LTC")
        assert response.status_code == 404
        assert "not supported" in response.json()["detail"]

    def test_orderbook_depth(self, client):
        body = client.get("/memory/orderbook/BTC-LTC", params={"depth": 2}).json()
        assert [level["price"] for level in body["bids"]] == ["3", "2"]

    def test_orderbook_depth_validated(self, client):
        assert client.get("/memory/orderbook/BTC-LTC", params={"depth": 0}).status_code == 422

    def test_trades_stop_at_limit(self, client):
        body = client.get("/memory/trades/BTC-LTC", params={"limit": 2}).json()
        assert [trade["id"] for trade in body] == ["0", "1"]

    def test_trades_without_since_return_one_page(self, client):
        body = client.get("/memory/trades/BTC-LTC").json()
        assert [trade["id"] for trade in body] == ["0", "1", "2"]

    def test_trades_collect_all_pages(self, client):
        body = client.get("/memory/trades/BTC-LTC", params={"since": "2023-11-14T22:13:20Z"}).json()
        assert len(body) == 6

    def test_naive_since_is_taken_as_utc(self, client):
        response = client.get("/memory/trades/BTC-LTC", params={"since": "2023-11-14T22:13:23"})
        assert response.status_code == 200
        assert [trade["id"] for trade in response.json()] == ["3", "4", "5"]

    def test_trades_are_ascending_when_pages_walk_backward(self, client, exchange):
        exchange.trade_pages.reverse()
        body = client.get(
            "/memory/trades/BTC-LTC", params={"since": "2023-11-14T22:13:20Z", "limit": 4},
        ).json()
        assert [trade["id"] for trade in body] == ["0", "1", "2", "3"]

    def test_unsupported_feature(self, client):
        assert client.get("/memory/candles/BTC-LTC").status_code == 404

    def test_symbols(self, client):
        assert client.get("/memory/symbols").json() == ["BTC-LTC"]


class TestErrorMapping:

    @pytest.mark.parametrize("symbol, status, error", [
        ("PROTO", 502, "ExchangeProtocolError"),
        ("NET", 503, "TransportError"),
        ("SHAPE", 502, "NormalizationError"),
        ("CONF", 400, "ConfigurationError"),
    ])
    def test_error_status(self, client, symbol, status, error):
        response = client.get(f"/memory/ticker/{symbol}")
        assert response.status_code == status
        body = response.json()
        assert body["error"] == error
        assert body["exchange"] == "memory"
