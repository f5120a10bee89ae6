"""
Binance Exchange Client

Implements the ExchangeInterface for Binance spot.

API Documentation:
    https://binance-docs.github.io/apidocs/spot/en/

Endpoints Used:
    Public:
        - GET /api/v3/ticker/24hr - Ticker(s)
        - GET /api/v3/depth - Order book
        - GET /api/v3/aggTrades - Trade history (one-hour windows, walked backwards)
        - GET /api/v3/klines - Candles
        - GET /api/v3/exchangeInfo - Markets
        - GET /api/v3/ticker/price - Symbols

    Private (signed query string):
        - GET/POST/DELETE /api/v3/order - Order details / place / cancel
        - GET /api/v3/myTrades - Fees of an order
        - GET /api/v3/openOrders, /api/v3/allOrders
        - GET /api/v3/account - Balances
        - POST /wapi/v3/withdraw.html
        - GET /wapi/v3/depositAddress.html, /wapi/v3/depositHistory.html

Usage:
    async with BinanceExchange(credential=credential) as binance:
        book = await binance.get_order_book("BTCUSDT", depth=20)
"""

import asyncio
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from core.errors import ConfigurationError
from core.normalizer import ShapeHint, to_decimal
from core.pagination import PageDirection, PaginationDriver
from core.request import BodyFormat
from core.rest_exchange import RestExchange
from core.schemas import (
    Candle,
    DepositDetails,
    MarketInfo,
    OrderBook,
    OrderRequest,
    OrderResult,
    OrderType,
    Ticker,
    Transaction,
    WithdrawalRequest,
    WithdrawalResponse,
)
from core.utils.time import datetime_to_timestamp
from exchanges.binance.fields import CONVENTION, ENVELOPE, ORDER_STATUSES, TABLES, TRANSACTION_STATUSES

HOUR_MS = 60 * 60 * 1000

# /api/v3/depth only accepts these limits
DEPTH_LIMITS = (5, 10, 20, 50, 100, 500, 1000, 5000)


def normalize_symbol(symbol: str) -> str:
    """
    Binance symbols have no separator.

    Example:
        >>> normalize_symbol("eth-btc")
        'ETHBTC'
    """
    return symbol.replace("-", "").replace("_", "").replace("/", "").upper()


class BinanceExchange(RestExchange):
    """
    Binance spot client.

    Notes:
        - Order details and cancellation need the symbol
        - Fees of a new order come from its fills; fees of an existing order
          are summed from the account's trade list
    """

    name = "binance"
    BASE_URL = "https://api.binance.com"
    convention = CONVENTION
    envelope = ENVELOPE
    field_tables = TABLES
    order_statuses = ORDER_STATUSES
    transaction_statuses = TRANSACTION_STATUSES
    body_format = BodyFormat.FORM
    health_path = "/api/v3/ping"

    capabilities = {
        "symbols": True,
        "markets": True,
        "tickers": True,
        "candles": True,
        "amounts": True,
        "open_orders": True,
        "completed_orders": True,
        "deposit_address": True,
        "deposit_history": True,
        "market_orders": True,
    }

    # ============================================
    # Market Data
    # ============================================

    async def get_ticker(self, symbol: str) -> Ticker:
        symbol = normalize_symbol(symbol)
        raw = await self._request("/api/v3/ticker/24hr", {"symbol": symbol})
        return self._normalize(raw, ShapeHint.TICKER, symbol=symbol)

    async def get_tickers(self) -> Dict[str, Ticker]:
        raw = await self._request("/api/v3/ticker/24hr")
        return {ticker.symbol: ticker for ticker in self._normalize_many(raw, ShapeHint.TICKER)}

    async def get_order_book(self, symbol: str, depth: int = 100) -> OrderBook:
        symbol = normalize_symbol(symbol)
        limit = next((limit for limit in DEPTH_LIMITS if limit >= depth), DEPTH_LIMITS[-1])
        raw = await self._request("/api/v3/depth", {"symbol": symbol, "limit": limit})
        return self.normalizer.order_book(symbol, raw.get("bids"), raw.get("asks"), depth)

    async def get_candles(
        self,
        symbol: str,
        interval: str = "1h",
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> List[Candle]:
        symbol = normalize_symbol(symbol)
        params = {
            "symbol": symbol,
            "interval": interval,
            "startTime": datetime_to_timestamp(start, milliseconds=True) if start else None,
            "endTime": datetime_to_timestamp(end, milliseconds=True) if end else None,
            "limit": limit,
        }
        raw = await self._request("/api/v3/klines", params)
        return self._normalize_many(raw, ShapeHint.CANDLE, symbol=symbol, interval=interval)

    async def get_markets(self) -> List[MarketInfo]:
        raw = await self._request("/api/v3/exchangeInfo")
        markets = []
        for entry in raw.get("symbols") or []:
            for market in self._normalize_many([entry], ShapeHint.MARKET):
                markets.append(market.model_copy(update=self._filters(entry.get("filters") or [])))
        return markets

    @staticmethod
    def _filters(filters: List[Dict[str, Any]]) -> Dict[str, Decimal]:
        update = {}
        for entry in filters:
            if entry.get("filterType") == "LOT_SIZE":
                update["min_trade_size"] = to_decimal(entry.get("minQty"), Decimal("0"))
                update["quantity_step"] = to_decimal(entry.get("stepSize"), Decimal("0"))
            elif entry.get("filterType") == "PRICE_FILTER":
                update["price_step"] = to_decimal(entry.get("tickSize"), Decimal("0"))
        return update

    async def _fetch_symbols(self) -> List[str]:
        raw = await self._request("/api/v3/ticker/price")
        # the listing contains a few numeric placeholder entries
        return [entry["symbol"] for entry in raw if entry.get("symbol") and not entry["symbol"].isdigit()]

    # ============================================
    # Trade History
    # ============================================

    def _trade_history(
        self,
        symbol: str,
        since: Optional[datetime],
        cancel_event: Optional[asyncio.Event],
    ) -> PaginationDriver:
        symbol = normalize_symbol(symbol)

        async def fetch_page(end_ms: Optional[int]):
            params = {"symbol": symbol}
            if end_ms is not None:
                params.update(startTime=end_ms - HOUR_MS, endTime=end_ms)
            raw = await self._request("/api/v3/aggTrades", params)
            return self._normalize_many(raw, ShapeHint.TRADE, symbol=symbol)

        return PaginationDriver(
            fetch_page=fetch_page,
            # next window ends just before the oldest trade seen
            next_cursor=lambda page: datetime_to_timestamp(page[0].timestamp, milliseconds=True) - 1,
            since=since,
            direction=PageDirection.BACKWARD,
            page_delay=self.page_delay,
            cancel_event=cancel_event,
        )

    # ============================================
    # Account
    # ============================================

    async def _account_balances(self) -> List[Dict[str, Any]]:
        raw = await self._request("/api/v3/account", private=True)
        return raw.get("balances") or []

    async def get_amounts(self) -> Dict[str, Decimal]:
        balances = await self._account_balances()
        return self._balances(
            (entry["asset"], to_decimal(entry.get("free"), Decimal("0")) + to_decimal(entry.get("locked"), Decimal("0")))
            for entry in balances
        )

    async def get_amounts_available_to_trade(self) -> Dict[str, Decimal]:
        balances = await self._account_balances()
        return self._balances((entry["asset"], to_decimal(entry.get("free"), Decimal("0"))) for entry in balances)

    # ============================================
    # Orders
    # ============================================

    def _parse_order(self, raw: Dict[str, Any], symbol: Optional[str] = None) -> OrderResult:
        order = self._normalize(raw, ShapeHint.ORDER, symbol=symbol)
        update: Dict[str, Any] = {}

        quote_filled = to_decimal(raw.get("cummulativeQuoteQty"), Decimal("0"))
        if quote_filled > 0 and order.amount_filled > 0:
            update["average_price"] = quote_filled / order.amount_filled

        fills = raw.get("fills") or []
        if fills:
            update["fees"] = sum((to_decimal(fill.get("commission"), Decimal("0")) for fill in fills), Decimal("0"))
            update["fees_currency"] = fills[0].get("commissionAsset")

        return order.model_copy(update=update) if update else order

    async def place_order(self, order: OrderRequest) -> OrderResult:
        self._require_supported_order_type(order)
        symbol = normalize_symbol(order.symbol)

        params = [
            ("symbol", symbol),
            ("side", order.side.upper()),
            ("type", order.order_type.value.upper()),
            ("quantity", order.amount),
            ("newOrderRespType", "FULL"),
        ]
        if order.order_type != OrderType.MARKET:
            params += [("timeInForce", "GTC"), ("price", order.price)]
        params += list(order.extra_parameters.items())

        raw = await self._request("/api/v3/order", params, method="POST", private=True)
        return self._parse_order(raw, symbol)

    async def get_order_details(self, order_id: str, symbol: Optional[str] = None) -> OrderResult:
        if not symbol:
            raise ConfigurationError("order details request requires symbol", self.name)
        symbol = normalize_symbol(symbol)

        raw = await self._request("/api/v3/order", [("symbol", symbol), ("orderId", order_id)], private=True)
        order = self._parse_order(raw, symbol)

        trades = await self._request("/api/v3/myTrades", {"symbol": symbol}, private=True)
        own = [trade for trade in trades or [] if str(trade.get("orderId")) == order.order_id]
        if not own:
            return order
        return order.model_copy(update={
            "fees": sum((to_decimal(trade.get("commission"), Decimal("0")) for trade in own), Decimal("0")),
            "fees_currency": own[0].get("commissionAsset"),
        })

    async def get_open_orders(self, symbol: Optional[str] = None) -> List[OrderResult]:
        params = {"symbol": normalize_symbol(symbol)} if symbol else None
        raw = await self._request("/api/v3/openOrders", params, private=True)
        return self._normalize_many(raw, ShapeHint.ORDER)

    async def get_completed_orders(
        self, symbol: Optional[str] = None, after: Optional[datetime] = None
    ) -> List[OrderResult]:
        if not symbol:
            raise ConfigurationError("completed orders request requires symbol", self.name)
        raw = await self._request("/api/v3/allOrders", {"symbol": normalize_symbol(symbol)}, private=True)
        orders = [
            order for order in self._normalize_many(raw, ShapeHint.ORDER)
            if after is None or order.timestamp >= after
        ]
        return sorted(orders, key=lambda order: order.timestamp, reverse=True)

    async def cancel_order(self, order_id: str, symbol: Optional[str] = None) -> None:
        if not symbol:
            raise ConfigurationError("cancel order request requires symbol", self.name)
        await self._request(
            "/api/v3/order",
            [("symbol", normalize_symbol(symbol)), ("orderId", order_id)],
            method="DELETE",
            private=True,
        )

    # ============================================
    # Funding
    # ============================================

    async def withdraw(self, request: WithdrawalRequest) -> WithdrawalResponse:
        """Fee is subtracted from the amount by Binance."""
        params = [
            ("asset", request.symbol),
            ("address", request.address),
            ("amount", request.amount),
            # required in practice despite the docs
            ("name", request.description or "apiwithdrawal"),
            ("addressTag", request.address_tag),
        ]
        raw = await self._request("/wapi/v3/withdraw.html", params, method="POST", private=True)
        return self._normalize(raw, ShapeHint.WITHDRAWAL)

    async def get_deposit_address(self, symbol: str) -> DepositDetails:
        raw = await self._request("/wapi/v3/depositAddress.html", {"asset": symbol.upper()}, private=True)
        return self._normalize(raw, ShapeHint.DEPOSIT_ADDRESS, symbol=symbol.upper())

    async def get_deposit_history(self, symbol: str) -> List[Transaction]:
        raw = await self._request("/wapi/v3/depositHistory.html", {"asset": symbol.upper()}, private=True)
        return self._normalize_many(raw.get("depositList"), ShapeHint.TRANSACTION)


__all__ = ["BinanceExchange", "normalize_symbol"]
