"""
Abucoins Exchange Client

Implements the ExchangeInterface on the Abucoins REST API (Coinbase-style).

Endpoints Used:
    Public:
        - GET /products - Markets
        - GET /products/{id}/ticker, /products/ticker
        - GET /products/{id}/book?level=2
        - GET /products/{id}/trades?before= - Trade history (walked backwards by trade id)
        - GET /products/{id}/candles

    Private (AC-ACCESS-* headers, passphrase required):
        - GET /accounts
        - POST /orders, GET /orders, GET/DELETE /orders/{id}
        - GET /payment-methods
        - GET /deposits/history, POST /deposits/make
        - POST /withdrawals/make

Usage:
    credential = Credential(api_key="...", secret="...", passphrase="...")
    async with AbucoinsExchange(credential=credential) as abucoins:
        book = await abucoins.get_order_book("ETH-BTC", depth=10)
"""

import asyncio
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Dict, List, Optional

from core.errors import ConfigurationError
from core.normalizer import ShapeHint, to_decimal
from core.pagination import PageDirection, PaginationDriver
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
from core.utils.time import interval_to_seconds, to_utc_datetime
from exchanges.abucoins.fields import CONVENTION, ENVELOPE, ORDER_STATUSES, TABLES, TRANSACTION_STATUSES


def normalize_symbol(symbol: str) -> str:
    """
    Example:
        >>> normalize_symbol("eth_btc")
        'ETH-BTC'
    """
    return symbol.replace("_", "-").replace("/", "-").upper()


class AbucoinsExchange(RestExchange):
    """
    Abucoins client.

    Notes:
        - The API secret is base64 encoded; a passphrase is mandatory
        - Deposits and withdrawals go through a currency's payment method
    """

    name = "abucoins"
    BASE_URL = "https://api.abucoins.com"
    convention = CONVENTION
    envelope = ENVELOPE
    field_tables = TABLES
    order_statuses = ORDER_STATUSES
    transaction_statuses = TRANSACTION_STATUSES
    health_path = "/products"

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
        raw = await self._request(f"/products/{symbol}/ticker")
        return self._normalize(raw, ShapeHint.TICKER, symbol=symbol)

    async def get_tickers(self) -> Dict[str, Ticker]:
        raw = await self._request("/products/ticker")
        return {ticker.symbol: ticker for ticker in self._normalize_many(raw, ShapeHint.TICKER)}

    async def get_order_book(self, symbol: str, depth: int = 100) -> OrderBook:
        symbol = normalize_symbol(symbol)
        # level 2 is the top 50 aggregated levels; level 0 the full book
        level = 2 if depth <= 50 else 0
        raw = await self._request(f"/products/{symbol}/book", {"level": level}) or {}
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
        end = end or to_utc_datetime(self._now())
        start = start or end - timedelta(days=1)
        params = {
            "granularity": interval_to_seconds(interval),
            "start": start.isoformat(),
            "end": end.isoformat(),
        }
        raw = await self._request(f"/products/{symbol}/candles", params)
        candles = sorted(
            self._normalize_many(raw, ShapeHint.CANDLE, symbol=symbol, interval=interval),
            key=lambda candle: candle.timestamp,
        )
        return candles[-limit:] if limit else candles

    async def get_markets(self) -> List[MarketInfo]:
        raw = await self._request("/products")
        return self._normalize_many(raw, ShapeHint.MARKET)

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

        async def fetch_page(before: Optional[str]):
            raw = await self._request(f"/products/{symbol}/trades", {"before": before})
            return self._normalize_many(raw, ShapeHint.TRADE, symbol=symbol)

        return PaginationDriver(
            fetch_page=fetch_page,
            # older trades come before the oldest id seen
            next_cursor=lambda page: page[0].id,
            since=since,
            direction=PageDirection.BACKWARD,
            page_delay=self.page_delay,
            cancel_event=cancel_event,
        )

    # ============================================
    # Account
    # ============================================

    async def _accounts(self) -> List[Dict[str, Any]]:
        return await self._request("/accounts", private=True) or []

    async def get_amounts(self) -> Dict[str, Decimal]:
        accounts = await self._accounts()
        return self._balances((row["currency"], to_decimal(row.get("balance"), Decimal("0"))) for row in accounts)

    async def get_amounts_available_to_trade(self) -> Dict[str, Decimal]:
        accounts = await self._accounts()
        return self._balances((row["currency"], to_decimal(row.get("available"), Decimal("0"))) for row in accounts)

    # ============================================
    # Orders
    # ============================================

    async def place_order(self, order: OrderRequest) -> OrderResult:
        self._require_supported_order_type(order)
        symbol = normalize_symbol(order.symbol)

        body: Dict[str, Any] = {
            "product_id": symbol,
            "side": order.side,
            "size": order.amount,
        }
        if order.order_type == OrderType.MARKET:
            body["type"] = "market"
        else:
            body["price"] = order.price
        body.update(order.extra_parameters)

        raw = await self._request("/orders", method="POST", private=True, body=body)
        return self._normalize(raw, ShapeHint.ORDER, symbol=symbol)

    async def get_order_details(self, order_id: str, symbol: Optional[str] = None) -> OrderResult:
        raw = await self._request(f"/orders/{order_id}", private=True)
        return self._normalize(raw, ShapeHint.ORDER)

    async def _orders(self, status: str, symbol: Optional[str]) -> List[OrderResult]:
        raw = await self._request("/orders", {"status": status}, private=True)
        orders = self._normalize_many(raw, ShapeHint.ORDER)
        if symbol:
            orders = [order for order in orders if order.symbol == normalize_symbol(symbol)]
        return orders

    async def get_open_orders(self, symbol: Optional[str] = None) -> List[OrderResult]:
        return await self._orders("open", symbol)

    async def get_completed_orders(
        self, symbol: Optional[str] = None, after: Optional[datetime] = None
    ) -> List[OrderResult]:
        orders = [
            order for order in await self._orders("done", symbol)
            if after is None or order.timestamp >= after
        ]
        return sorted(orders, key=lambda order: order.timestamp, reverse=True)

    async def cancel_order(self, order_id: str, symbol: Optional[str] = None) -> None:
        await self._request(f"/orders/{order_id}", method="DELETE", private=True)

    # ============================================
    # Funding
    # ============================================

    async def _payment_method(self, currency: str) -> str:
        methods = await self._request("/payment-methods", private=True) or []
        for method in methods:
            if str(method.get("currency", "")).upper() == currency:
                return method["id"]
        raise ConfigurationError(f"no payment method for {currency}", self.name)

    async def withdraw(self, request: WithdrawalRequest) -> WithdrawalResponse:
        currency = request.symbol.upper()
        body = {
            "amount": request.amount,
            "currency": currency,
            "method": await self._payment_method(currency),
            "address": request.address,
            "tag": request.address_tag,
        }
        raw = await self._request("/withdrawals/make", method="POST", private=True, body=body)
        return self._normalize(raw, ShapeHint.WITHDRAWAL)

    async def get_deposit_address(self, symbol: str) -> DepositDetails:
        currency = symbol.upper()
        body = {"currency": currency, "method": await self._payment_method(currency)}
        raw = await self._request("/deposits/make", method="POST", private=True, body=body)
        return self._normalize(raw, ShapeHint.DEPOSIT_ADDRESS, symbol=currency)

    async def get_deposit_history(self, symbol: str) -> List[Transaction]:
        raw = await self._request(
            "/deposits/history", {"currency": symbol.upper(), "limit": 1000}, private=True
        )
        return self._normalize_many(raw, ShapeHint.TRANSACTION)


__all__ = ["AbucoinsExchange", "normalize_symbol"]
