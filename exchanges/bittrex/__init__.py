"""
Bittrex Exchange Client

Implements the ExchangeInterface on the Bittrex v1.1 REST API.

API Documentation:
    https://bittrex.github.io/api/v1-1

Endpoints Used:
    Public:
        - GET /public/getmarketsummary, /public/getmarketsummaries - Ticker(s)
        - GET /public/getorderbook - Order book
        - GET /public/getmarkethistory - Recent trades (single page)
        - GET /public/getmarkets, /public/getcurrencies
        - GET /pub/market/GetTicks (v2.0) - Candles

    Private (GET, apikey/nonce in the query, signed URL in "apisign"):
        - /account/getbalances
        - /market/buylimit, /market/selllimit, /market/cancel
        - /account/getorder, /market/getopenorders, /account/getorderhistory
        - /account/withdraw, /account/getdepositaddress, /account/getdeposithistory

Usage:
    async with BittrexExchange(credential=credential) as bittrex:
        ticker = await bittrex.get_ticker("BTC-LTC")
"""

import asyncio
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from core.errors import ConfigurationError, ExchangeProtocolError, NormalizationError
from core.logging import get_logger
from core.normalizer import ShapeHint, to_bool, to_decimal
from core.pagination import PaginationDriver
from core.rest_exchange import RestExchange
from core.schemas import (
    Candle,
    DepositDetails,
    MarketInfo,
    OrderBook,
    OrderRequest,
    OrderResult,
    OrderStatus,
    Ticker,
    Transaction,
    WithdrawalRequest,
    WithdrawalResponse,
)
from core.utils.time import to_utc_datetime
from exchanges.bittrex.fields import (
    CONVENTION,
    ENVELOPE,
    TABLES,
    TICK_INTERVALS,
    TRANSACTION_STATUSES,
    TWO_FIELD_COIN_TYPES,
)

logger = get_logger(__name__)


def normalize_symbol(symbol: str) -> str:
    """
    Bittrex names markets QUOTE-BASE with a dash.

    Example:
        >>> normalize_symbol("btc_ltc")
        'BTC-LTC'
    """
    return symbol.replace("_", "-").replace("/", "-").upper()


class BittrexExchange(RestExchange):
    """
    Bittrex v1.1 client.

    Notes:
        - Limit orders only
        - Orders carry no status word; it is derived from the fill and
          the cancel/close markers
        - Trade history is a single page of recent trades
    """

    name = "bittrex"
    BASE_URL = "https://bittrex.com/api/v1.1"
    convention = CONVENTION
    envelope = ENVELOPE
    field_tables = TABLES
    transaction_statuses = TRANSACTION_STATUSES
    health_path = "/public/getmarkets"

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
        "market_orders": False,
    }

    @property
    def v2_base_url(self) -> str:
        return self.base_url.replace("/v1.1", "/v2.0")

    # ============================================
    # Market Data
    # ============================================

    async def get_ticker(self, symbol: str) -> Ticker:
        symbol = normalize_symbol(symbol)
        raw = await self._request("/public/getmarketsummary", {"market": symbol})
        summary = raw[0] if isinstance(raw, list) and raw else raw
        return self._normalize(summary, ShapeHint.TICKER, symbol=symbol)

    async def get_tickers(self) -> Dict[str, Ticker]:
        raw = await self._request("/public/getmarketsummaries")
        return {ticker.symbol: ticker for ticker in self._normalize_many(raw, ShapeHint.TICKER)}

    async def get_order_book(self, symbol: str, depth: int = 100) -> OrderBook:
        symbol = normalize_symbol(symbol)
        raw = await self._request("/public/getorderbook", {"market": symbol, "type": "both"}) or {}
        return self.normalizer.order_book(symbol, raw.get("buy"), raw.get("sell"), depth)

    async def get_candles(
        self,
        symbol: str,
        interval: str = "1h",
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> List[Candle]:
        if interval not in TICK_INTERVALS:
            raise ConfigurationError(
                f"unsupported candle interval {interval!r} (use one of {', '.join(TICK_INTERVALS)})", self.name
            )
        symbol = normalize_symbol(symbol)
        raw = await self._request(
            "/pub/market/GetTicks",
            {"marketName": symbol, "tickInterval": TICK_INTERVALS[interval]},
            base_url=self.v2_base_url,
        )
        candles = [
            candle for candle in self._normalize_many(raw, ShapeHint.CANDLE, symbol=symbol, interval=interval)
            if (start is None or candle.timestamp >= start) and (end is None or candle.timestamp <= end)
        ]
        return candles[-limit:] if limit else candles

    async def get_markets(self) -> List[MarketInfo]:
        raw = await self._request("/public/getmarkets")
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

        async def fetch_page(cursor: Any):
            raw = await self._request("/public/getmarkethistory", {"market": symbol})
            return self._normalize_many(raw, ShapeHint.TRADE, symbol=symbol)

        # getmarkethistory has no cursor: one page, filtered by ``since``
        return PaginationDriver(
            fetch_page=fetch_page,
            next_cursor=lambda page: None,
            since=since,
            page_delay=self.page_delay,
            cancel_event=cancel_event,
        )

    # ============================================
    # Account
    # ============================================

    async def _balance_rows(self) -> List[Dict[str, Any]]:
        return await self._request("/account/getbalances", private=True) or []

    async def get_amounts(self) -> Dict[str, Decimal]:
        rows = await self._balance_rows()
        return self._balances((row["Currency"], to_decimal(row.get("Balance"), Decimal("0"))) for row in rows)

    async def get_amounts_available_to_trade(self) -> Dict[str, Decimal]:
        rows = await self._balance_rows()
        return self._balances((row["Currency"], to_decimal(row.get("Available"), Decimal("0"))) for row in rows)

    # ============================================
    # Orders
    # ============================================

    def _parse_order(self, raw: Dict[str, Any]) -> OrderResult:
        order = self._normalize(raw, ShapeHint.ORDER)
        update: Dict[str, Any] = {}

        # fees are charged in the quote currency, the first half of the market name
        if "-" in order.symbol:
            update["fees_currency"] = order.symbol.split("-", 1)[0]

        cancelled = to_bool(raw.get("CancelInitiated") or False)
        closed_early = raw.get("Closed") is not None and order.amount_filled < order.amount
        if order.status != OrderStatus.FILLED and (cancelled or closed_early):
            update["status"] = OrderStatus.CANCELED

        return order.model_copy(update=update) if update else order

    async def place_order(self, order: OrderRequest) -> OrderResult:
        self._require_supported_order_type(order)
        symbol = normalize_symbol(order.symbol)

        path = "/market/buylimit" if order.is_buy else "/market/selllimit"
        params = [("market", symbol), ("quantity", order.amount), ("rate", order.price)]
        params += list(order.extra_parameters.items())
        raw = await self._request(path, params, private=True) or {}

        return OrderResult(
            exchange=self.name,
            symbol=symbol,
            timestamp=to_utc_datetime(self._now()),
            order_id=str(raw.get("uuid") or ""),
            side=order.side,
            amount=order.amount,
            price=order.price,
            average_price=order.price,
            status=OrderStatus.PENDING,
        )

    async def get_order_details(self, order_id: str, symbol: Optional[str] = None) -> OrderResult:
        raw = await self._request("/account/getorder", {"uuid": order_id}, private=True)
        if not raw:
            raise ExchangeProtocolError(f"order {order_id} not found", self.name)
        return self._parse_order(raw)

    async def _orders(self, path: str, symbol: Optional[str]) -> List[OrderResult]:
        params = {"market": normalize_symbol(symbol)} if symbol else None
        orders = []
        for raw in await self._request(path, params, private=True) or []:
            try:
                orders.append(self._parse_order(raw))
            except NormalizationError as e:
                logger.warning(f"Skipping malformed order: {e}")
        return orders

    async def get_open_orders(self, symbol: Optional[str] = None) -> List[OrderResult]:
        return await self._orders("/market/getopenorders", symbol)

    async def get_completed_orders(
        self, symbol: Optional[str] = None, after: Optional[datetime] = None
    ) -> List[OrderResult]:
        orders = [
            order for order in await self._orders("/account/getorderhistory", symbol)
            if after is None or order.timestamp >= after
        ]
        return sorted(orders, key=lambda order: order.timestamp, reverse=True)

    async def cancel_order(self, order_id: str, symbol: Optional[str] = None) -> None:
        await self._request("/market/cancel", {"uuid": order_id}, private=True)

    # ============================================
    # Funding
    # ============================================

    async def withdraw(self, request: WithdrawalRequest) -> WithdrawalResponse:
        params = [
            ("currency", request.symbol.upper()),
            ("quantity", request.amount),
            ("address", request.address),
            ("paymentid", request.address_tag),
        ]
        raw = await self._request("/account/withdraw", params, private=True)
        return self._normalize(raw or {}, ShapeHint.WITHDRAWAL)

    async def get_deposit_address(self, symbol: str) -> DepositDetails:
        """
        Return the deposit address.

        For tag-based currencies (XRP, XLM, ...) v1.1 returns only the tag;
        the shared address comes from /public/getcurrencies.
        """
        currency = symbol.upper()
        raw = await self._request("/account/getdepositaddress", {"currency": currency}, private=True)
        details = self._normalize(raw, ShapeHint.DEPOSIT_ADDRESS, symbol=currency)

        currencies = await self._request("/public/getcurrencies") or []
        coin = next((entry for entry in currencies if entry.get("Currency") == details.symbol), None)
        if coin is None:
            logger.warning(f"{self.name}: {details.symbol} missing from currency list")
            return details
        if coin.get("CoinType") in TWO_FIELD_COIN_TYPES:
            return details.model_copy(update={"address": coin.get("BaseAddress"), "address_tag": details.address})
        return details

    async def get_deposit_history(self, symbol: str) -> List[Transaction]:
        raw = await self._request("/account/getdeposithistory", {"currency": symbol.upper()}, private=True)
        return self._normalize_many(raw, ShapeHint.TRANSACTION)


__all__ = ["BittrexExchange", "normalize_symbol"]
