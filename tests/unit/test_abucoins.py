"""
Unit Tests for the Abucoins Client

Run with:
    pytest tests/unit/test_abucoins.py -v
"""

import base64
import hashlib
import hmac
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from core.auth import Credential
from core.errors import ConfigurationError, ExchangeProtocolError
from core.schemas import OrderRequest, OrderStatus, OrderType, TransactionStatus, WithdrawalRequest
from exchanges.abucoins import AbucoinsExchange, normalize_symbol

SECRET = "c2VjcmV0LWtleQ=="
ACCOUNTS_SIGNATURE = "xFeu6Q9/lzFekCgulmRK2AMhW8tPWo2qbQi9zmLXpKA="


@pytest.fixture
def abucoins(make_client):
    return make_client(
        AbucoinsExchange,
        credential=Credential(api_key="abu-key", secret=SECRET, passphrase="abu-pass"),
    )


def trade(trade_id, time):
    return {"trade_id": trade_id, "price": "0.0512", "size": "1.2", "side": "sell", "time": time}


class TestMarketData:

    def test_normalize_symbol(self):
        assert normalize_symbol("eth_btc") == "ETH-BTC"

    @pytest.mark.asyncio
    async def test_ticker(self, abucoins, transport):
        transport.reply({
            "trade_id": "553794", "price": "0.0512", "size": "0.5", "bid": "0.0511",
            "ask": "0.0513", "volume": "120.5", "time": "2017-11-02T10:21:03Z",
        })

        ticker = await abucoins.get_ticker("eth_btc")

        assert transport.last.url == "https://api.abucoins.com/products/ETH-BTC/ticker"
        assert ticker.last == Decimal("0.0512")
        assert ticker.base_volume == Decimal("120.5")

    @pytest.mark.asyncio
    async def test_http_error_raises(self, abucoins, transport):
        transport.reply({"message": "Invalid product"}, status=404)

        with pytest.raises(ExchangeProtocolError) as exc_info:
            await abucoins.get_ticker("NOPE-BTC")

        assert exc_info.value.exchange_message == "Invalid product"

    @pytest.mark.parametrize("depth, level", [(10, 2), (50, 2), (51, 0)])
    @pytest.mark.asyncio
    async def test_book_level(self, abucoins, transport, depth, level):
        transport.reply({"bids": [["0.0511", "3", 1]], "asks": [["0.0513", "2", 1]]})

        book = await abucoins.get_order_book("ETH-BTC", depth=depth)

        assert dict(transport.last.params)["level"] == level
        assert book.best_bid.price == Decimal("0.0511")

    @pytest.mark.asyncio
    async def test_candles_default_window(self, abucoins, transport):
        transport.reply([
            [1699999200, "1.0", "2.0", "1.2", "1.5", "10"],
            [1699995600, "0.9", "1.9", "1.0", "1.2", "8"],
        ])

        candles = await abucoins.get_candles("ETH-BTC", "1h")

        params = dict(transport.last.params)
        assert params["granularity"] == 3600
        assert params["end"] == "2023-11-14T22:13:20+00:00"
        assert params["start"] == "2023-11-13T22:13:20+00:00"
        assert [candle.open for candle in candles] == [Decimal("1.0"), Decimal("1.2")]

    @pytest.mark.asyncio
    async def test_history_walks_before_cursor(self, abucoins, transport):
        transport.reply([trade(10, "2017-11-02T10:10:00Z"), trade(9, "2017-11-02T10:09:00Z")])
        transport.reply([trade(8, "2017-11-02T10:08:00Z"), trade(7, "2017-11-02T10:07:00Z")])
        received = []

        emitted = await abucoins.get_historical_trades(
            "ETH-BTC",
            lambda page: received.extend(t.id for t in page),
            since=datetime(2017, 11, 2, 10, 8, tzinfo=timezone.utc),
        )

        assert emitted == 3
        assert received == ["9", "10", "8"]
        assert transport.sent[0].query == ""
        assert transport.sent[1].query == "before=9"


class TestSigning:

    @pytest.mark.asyncio
    async def test_accounts_signature(self, abucoins, transport):
        transport.reply([{"currency": "BTC", "balance": "1.5", "available": "1.0"}])

        amounts = await abucoins.get_amounts()

        request = transport.last
        assert request.header("AC-ACCESS-SIGN") == ACCOUNTS_SIGNATURE
        assert request.header("AC-ACCESS-KEY") == "abu-key"
        assert request.header("AC-ACCESS-TIMESTAMP") == "1700000000"
        assert request.header("AC-ACCESS-PASSPHRASE") == "abu-pass"
        assert amounts == {"BTC": Decimal("1.5")}

    @pytest.mark.asyncio
    async def test_post_body_is_signed(self, abucoins, transport):
        transport.reply({
            "id": "4050-1", "product_id": "ETH-BTC", "side": "buy", "size": "2", "filled_size": "0",
            "price": "0.05", "status": "pending", "created_at": "2017-11-02T10:21:03Z",
        })

        order = await abucoins.place_order(OrderRequest(
            symbol="ETH-BTC", side="buy", amount=Decimal("2"), price=Decimal("0.05"),
        ))

        request = transport.last
        assert request.body == '{"product_id":"ETH-BTC","side":"buy","size":"2","price":"0.05"}'
        message = f"1700000000POST/orders{request.body}".encode("utf-8")
        digest = hmac.new(base64.b64decode(SECRET), message, hashlib.sha256).digest()
        assert request.header("AC-ACCESS-SIGN") == base64.b64encode(digest).decode("ascii")
        assert order.status == OrderStatus.PENDING

    @pytest.mark.asyncio
    async def test_passphrase_required(self, make_client, transport):
        client = make_client(AbucoinsExchange, credential=Credential(api_key="k", secret=SECRET))

        with pytest.raises(ConfigurationError, match="passphrase"):
            await client.get_amounts()

        assert transport.sent == []


class TestOrders:

    @pytest.mark.asyncio
    async def test_market_order_body(self, abucoins, transport):
        transport.reply({
            "id": "4050-2", "product_id": "ETH-BTC", "side": "sell", "size": "1",
            "filled_size": "1", "price": "0", "status": "done", "created_at": "2017-11-02T10:21:03Z",
        })

        order = await abucoins.place_order(OrderRequest(
            symbol="ETH-BTC", side="sell", amount=Decimal("1"), order_type=OrderType.MARKET,
        ))

        assert transport.last.body == '{"product_id":"ETH-BTC","side":"sell","size":"1","type":"market"}'
        assert order.status == OrderStatus.FILLED

    @pytest.mark.asyncio
    async def test_rejected_order(self, abucoins, transport):
        transport.reply({
            "id": "4050-3", "product_id": "ETH-BTC", "side": "buy", "size": "1", "price": "0.05",
            "status": "rejected", "reject_reason": "post only", "created_at": "2017-11-02T10:21:03Z",
        })

        order = await abucoins.get_order_details("4050-3")

        assert transport.last.path == "/orders/4050-3"
        assert order.status == OrderStatus.ERROR
        assert order.message == "post only"

    @pytest.mark.asyncio
    async def test_unknown_status_is_unknown(self, abucoins, transport):
        transport.reply({
            "id": "4050-4", "product_id": "ETH-BTC", "side": "buy", "size": "1", "price": "0.05",
            "status": "frozen", "created_at": "2017-11-02T10:21:03Z",
        })

        order = await abucoins.get_order_details("4050-4")

        assert order.status == OrderStatus.UNKNOWN

    @pytest.mark.asyncio
    async def test_open_orders_filtered_by_symbol(self, abucoins, transport):
        transport.reply([
            {"id": "1", "product_id": "ETH-BTC", "side": "buy", "size": "1", "price": "0.05", "status": "open"},
            {"id": "2", "product_id": "LTC-BTC", "side": "buy", "size": "1", "price": "0.01", "status": "open"},
        ])

        orders = await abucoins.get_open_orders("eth_btc")

        assert transport.last.query == "status=open"
        assert [order.order_id for order in orders] == ["1"]

    @pytest.mark.asyncio
    async def test_cancel_uses_delete(self, abucoins, transport):
        transport.reply("")

        await abucoins.cancel_order("4050-1")

        assert transport.last.method == "DELETE"
        assert transport.last.path == "/orders/4050-1"


class TestFunding:

    @pytest.mark.asyncio
    async def test_withdraw_looks_up_payment_method(self, abucoins, transport):
        transport.reply([{"id": "eth-1", "currency": "ETH"}, {"id": "btc-1", "currency": "BTC"}])
        transport.reply({"payoutId": 9001, "status": 0, "message": "Withdrawal accepted"})

        response = await abucoins.withdraw(WithdrawalRequest(symbol="btc", address="1Addr", amount=Decimal("0.5")))

        assert transport.sent[0].path == "/payment-methods"
        assert transport.last.body == '{"amount":"0.5","currency":"BTC","method":"btc-1","address":"1Addr"}'
        assert response.id == "9001"
        assert response.success

    @pytest.mark.asyncio
    async def test_withdraw_rejected(self, abucoins, transport):
        transport.reply([{"id": "btc-1", "currency": "BTC"}])
        transport.reply({"payoutId": None, "status": 1, "message": "Daily limit exceeded"})

        response = await abucoins.withdraw(WithdrawalRequest(symbol="BTC", address="1Addr", amount=Decimal("5")))

        assert not response.success
        assert response.message == "Daily limit exceeded"

    @pytest.mark.asyncio
    async def test_missing_payment_method(self, abucoins, transport):
        transport.reply([{"id": "eth-1", "currency": "ETH"}])

        with pytest.raises(ConfigurationError, match="no payment method for XRP"):
            await abucoins.get_deposit_address("xrp")

        assert len(transport.sent) == 1

    @pytest.mark.asyncio
    async def test_deposit_address(self, abucoins, transport):
        transport.reply([{"id": "xrp-1", "currency": "XRP"}])
        transport.reply({"address": "rAddress", "tag": "4242"})

        details = await abucoins.get_deposit_address("XRP")

        assert details.symbol == "XRP"
        assert details.address == "rAddress"
        assert details.address_tag == "4242"

    @pytest.mark.asyncio
    async def test_deposit_history(self, abucoins, transport):
        transport.reply([
            {"deposit_id": 1, "currency": "BTC", "amount": "0.5", "date": "2017-11-02T10:00:00Z",
             "status": "complete", "url": "https://blockchain.info/tx/abc"},
            {"deposit_id": 2, "currency": "BTC", "amount": "0.1", "date": "2017-11-03T10:00:00Z",
             "status": "awaiting-email-confirmation"},
        ])

        deposits = await abucoins.get_deposit_history("btc")

        assert transport.last.query == "currency=BTC&limit=1000"
        assert [deposit.status for deposit in deposits] == [
            TransactionStatus.COMPLETE, TransactionStatus.AWAITING_APPROVAL,
        ]
        assert deposits[0].notes == "https://blockchain.info/tx/abc"
