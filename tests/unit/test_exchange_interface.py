"""
Unit Tests for Exchange Interface and Manager

These tests verify that:
- ExchangeInterface is properly defined as an abstract class
- Dummy implementations can inherit and implement the interface
- ExchangeManager correctly manages exchange instances
- Exchange capabilities are properly declared
- Lifecycle methods work as expected

Run with:
    pytest tests/unit/test_exchange_interface.py -v
"""

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from core.config import Settings
from core.exchange_interface import ExchangeInterface
from core.exchange_manager import ExchangeManager
from core.schemas import (
    OrderBook,
    OrderResult,
    OrderStatus,
    Ticker,
    WithdrawalResponse,
)
from exchanges.abucoins import AbucoinsExchange
from exchanges.bittrex import BittrexExchange

NOW = datetime(2023, 11, 14, tzinfo=timezone.utc)


# ============================================
# Dummy Exchange for Testing
# ============================================

class DummyExchange(ExchangeInterface):
    """
    Minimal implementation of ExchangeInterface for testing purposes.

    Implements the required operations with canned values; optional
    operations keep the base class behaviour.
    """

    name = "dummy"
    capabilities = {
        "symbols": True,
        "candles": False,
        "market_orders": False,
    }

    def __init__(self, healthy=True, fail_init=False):
        self.healthy = healthy
        self.fail_init = fail_init
        self.initialized = False
        self.shut_down = False

    async def get_ticker(self, symbol):
        return Ticker(
            exchange=self.name, symbol=symbol, timestamp=NOW,
            bid=Decimal("1"), ask=Decimal("2"), last=Decimal("1.5"),
        )

    async def get_order_book(self, symbol, depth=100):
        return OrderBook(exchange=self.name, symbol=symbol, timestamp=NOW)

    async def get_historical_trades(self, symbol, callback, since=None, cancel_event=None):
        return 0

    async def place_order(self, order):
        return OrderResult(
            exchange=self.name, symbol=order.symbol, timestamp=NOW,
            order_id="1", side=order.side, amount=order.amount, status=OrderStatus.PENDING,
        )

    async def get_order_details(self, order_id, symbol=None):
        return OrderResult(
            exchange=self.name, symbol=symbol or "X", timestamp=NOW,
            order_id=order_id, side="buy", status=OrderStatus.FILLED,
        )

    async def cancel_order(self, order_id, symbol=None):
        return None

    async def withdraw(self, request):
        return WithdrawalResponse(id="w1")

    async def get_symbols(self):
        return ["BTC-LTC", "BTC-ETH"]

    async def initialize(self):
        if self.fail_init:
            raise RuntimeError("cannot connect")
        self.initialized = True

    async def shutdown(self):
        self.shut_down = True

    async def health_check(self):
        if self.healthy is None:
            raise RuntimeError("boom")
        return self.healthy


# ============================================
# Tests for ExchangeInterface
# ============================================

class TestExchangeInterface:
    """Test the ExchangeInterface abstract class"""

    def test_cannot_instantiate_abstract_interface(self):
        with pytest.raises(TypeError):
            ExchangeInterface()

    def test_incomplete_subclass_cannot_be_instantiated(self):
        class Incomplete(ExchangeInterface):
            name = "incomplete"

            async def get_ticker(self, symbol):
                return None

        with pytest.raises(TypeError):
            Incomplete()

    def test_supports(self):
        exchange = DummyExchange()
        assert exchange.supports("symbols")
        assert not exchange.supports("candles")
        assert not exchange.supports("no_such_feature")

    @pytest.mark.asyncio
    async def test_optional_operations_raise_not_implemented(self):
        exchange = DummyExchange()
        with pytest.raises(NotImplementedError, match="dummy does not support candles"):
            await exchange.get_candles("BTC-LTC")
        with pytest.raises(NotImplementedError):
            await exchange.get_deposit_history("BTC")

    @pytest.mark.asyncio
    async def test_base_lifecycle_defaults(self):
        class Minimal(DummyExchange):
            initialize = ExchangeInterface.initialize
            health_check = ExchangeInterface.health_check

        exchange = Minimal()
        await exchange.initialize()
        assert await exchange.health_check() is True

    def test_repr(self):
        assert repr(DummyExchange()) == "<DummyExchange(name='dummy')>"


# ============================================
# Tests for ExchangeManager
# ============================================

class TestExchangeManager:

    def test_get_exchange_is_case_insensitive(self):
        dummy = DummyExchange()
        manager = ExchangeManager({"Dummy": dummy})
        assert manager.get_exchange("DUMMY") is dummy
        assert manager.has_exchange("dummy")
        assert len(manager) == 1

    def test_unknown_exchange_raises(self):
        manager = ExchangeManager({"dummy": DummyExchange()})
        with pytest.raises(ValueError, match="not supported"):
            manager.get_exchange("kraken")

    @pytest.mark.asyncio
    async def test_initialize_all_tolerates_failures(self):
        good, bad = DummyExchange(), DummyExchange(fail_init=True)
        manager = ExchangeManager({"good": good, "bad": bad})

        await manager.initialize_all()

        assert good.initialized
        assert not bad.initialized

    @pytest.mark.asyncio
    async def test_shutdown_all(self):
        exchanges = {"a": DummyExchange(), "b": DummyExchange()}
        await ExchangeManager(exchanges).shutdown_all()
        assert all(exchange.shut_down for exchange in exchanges.values())

    @pytest.mark.asyncio
    async def test_health_check_all(self):
        manager = ExchangeManager({
            "up": DummyExchange(healthy=True),
            "down": DummyExchange(healthy=False),
            "broken": DummyExchange(healthy=None),
        })
        assert await manager.health_check_all() == {"up": True, "down": False, "broken": False}

    def test_capability_queries(self):
        manager = ExchangeManager({
            "dummy": DummyExchange(),
            "abucoins": AbucoinsExchange(),
        })
        assert manager.get_exchanges_with_feature("candles") == ["abucoins"]
        assert manager.get_exchange_capabilities("dummy")["symbols"] is True

    def test_from_settings_builds_enabled_exchanges(self):
        config = Settings(_env_file=None, enabled_exchanges="bittrex,abucoins")
        manager = ExchangeManager.from_settings(config)
        assert manager.list_exchanges() == ["bittrex", "abucoins"]
        assert isinstance(manager.get_exchange("bittrex"), BittrexExchange)

    def test_from_settings_rejects_unknown(self):
        config = Settings(_env_file=None, enabled_exchanges="kraken")
        with pytest.raises(ValueError):
            ExchangeManager.from_settings(config)
