"""
Bitfinex Exchange Client

Implements the ExchangeInterface on the Bitfinex v2 REST API.

API Documentation:
    https://docs.bitfinex.com/docs/rest-general

Endpoints Used:
    Public:
        - GET /v2/ticker/tSYM, /v2/tickers
        - GET /v2/book/tSYM/P0 - Order book (sign of AMOUNT gives the side)
        - GET /v2/trades/tSYM/hist - Trade history (walked forward from ``since``)
        - GET /v2/candles/trade:TF:tSYM/hist
        - GET /v2/conf/pub:list:pair:exchange - Symbols

    Private (POST, signed headers):
        - /v2/auth/r/wallets
        - /v2/auth/w/order/submit, /v2/auth/w/order/cancel
        - /v2/auth/r/orders, /v2/auth/r/orders/hist
        - /v2/auth/w/withdraw, /v2/auth/w/deposit/address
        - /v2/auth/r/movements/CUR/hist

Usage:
    async with BitfinexExchange(credential=credential) as bitfinex:
        ticker = await bitfinex.get_ticker("BTCUSD")
"""

import asyncio
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from core.errors import ConfigurationError, ExchangeProtocolError, NormalizationError
from core.normalizer import ShapeHint, to_decimal
from core.pagination import PageDirection, PaginationDriver
from core.rest_exchange import RestExchange
from core.schemas import (
    Candle,
    DepositDetails,
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
from exchanges.bitfinex.fields import (
    CONVENTION,
    ENVELOPE,
    METHODS,
    ORDER_STATUSES,
    TABLES,
    TRANSACTION_STATUSES,
    strip_prefix,
)

TRADES_PAGE_SIZE = 1000

# /v2/book "len" only accepts these values
BOOK_LENGTHS = (1, 25, 100)


def normalize_symbol(symbol: str) -> str:
    """
    Example:
        >>> normalize_symbol("btc-usd")
        'BTCUSD'
    """
    return symbol.replace("-", "").replace("/", "").upper()


class BitfinexExchange(RestExchange):
    """
    Bitfinex v2 client.

    Notes:
        - Every authenticated call is a POST, even reads
        - Sell orders are submitted with a negative amount
        - Write endpoints return notifications whose STATUS must be checked
    """

    name = "bitfinex"
    BASE_URL = "https://api.bitfinex.com"
    convention = CONVENTION
    envelope = ENVELOPE
    field_tables = TABLES
    order_statuses = ORDER_STATUSES
    transaction_statuses = TRANSACTION_STATUSES
    health_path = "/v2/platform/status"

    capabilities = {
        "symbols": True,
        "markets": False,
        "tickers": True,
        "candles": True,
        "amounts": True,
        "open_orders": True,
        "completed_orders": True,
        "deposit_address": True,
        "deposit_history": True,
        "market_orders": True,
    }

    async def _private(self, path: str, body: Optional[Dict[str, Any]] = None) -> Any:
        return await self._request(path, method="POST", private=True, body=body or {})

    def _notification_data(self, raw: Any) -> Any:
        """
        Return DATA of a write notification, raising if STATUS is not SUCCESS.
        """
        if not isinstance(raw, list) or len(raw) < 7:
            raise NormalizationError("expected a notification array", self.name, "notification")
        status = str(raw[6] or "").upper()
        if status not in ("SUCCESS", ""):
            text = raw[7] if len(raw) > 7 and raw[7] else status
            raise ExchangeProtocolError(str(text), self.name, code=raw[5])
        return raw[4]

    # ============================================
    # Market Data
    # ============================================

    async def get_ticker(self, symbol: str) -> Ticker:
        symbol = normalize_symbol(symbol)
        raw = await self._request(f"/v2/ticker/t{symbol}")
        return self._normalize(raw, ShapeHint.TICKER, symbol=symbol)

    async def get_tickers(self) -> Dict[str, Ticker]:
        raw = await self._request("/v2/tickers", {"symbols": "ALL"})
        tickers = {}
        for entry in raw or []:
            # funding tickers ("f...") have a different layout
            if not entry or not str(entry[0]).startswith("t"):
                continue
            symbol = strip_prefix(entry[0])
            for ticker in self._normalize_many([entry[1:]], ShapeHint.TICKER, symbol=symbol):
                tickers[symbol] = ticker
        return tickers

    async def get_order_book(self, symbol: str, depth: int = 100) -> OrderBook:
        symbol = normalize_symbol(symbol)
        length = next((length for length in BOOK_LENGTHS if length >= depth), BOOK_LENGTHS[-1])
        raw = await self._request(f"/v2/book/t{symbol}/P0", {"len": length})

        bids, asks = [], []
        for level in raw or []:
            # [PRICE, COUNT, AMOUNT]; positive amount is a bid
            if not isinstance(level, list) or len(level) < 3:
                continue
            (bids if to_decimal(level[2], Decimal("0")) > 0 else asks).append([level[0], level[2]])
        return self.normalizer.order_book(symbol, bids, asks, depth)

    async def get_candles(
        self,
        symbol: str,
        interval: str = "1h",
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> List[Candle]:
        symbol = normalize_symbol(symbol)
        # Bitfinex spells day/week/month timeframes in upper case
        timeframe = interval.replace("d", "D").replace("w", "W")
        params = {
            "sort": 1,
            "start": datetime_to_timestamp(start, milliseconds=True) if start else None,
            "end": datetime_to_timestamp(end, milliseconds=True) if end else None,
            "limit": limit,
        }
        raw = await self._request(f"/v2/candles/trade:{timeframe}:t{symbol}/hist", params)
        return self._normalize_many(raw, ShapeHint.CANDLE, symbol=symbol, interval=interval)

    async def _fetch_symbols(self) -> List[str]:
        raw = await self._request("/v2/conf/pub:list:pair:exchange")
        pairs = raw[0] if raw and isinstance(raw[0], list) else raw or []
        return [normalize_symbol(pair) for pair in pairs]

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
        initial = datetime_to_timestamp(since, milliseconds=True) if since else None

        async def fetch_page(start_ms: Optional[int]):
            params = {
                "limit": TRADES_PAGE_SIZE,
                # newest first when there is no starting point
                "sort": 1 if start_ms is not None else -1,
                "start": start_ms,
            }
            raw = await self._request(f"/v2/trades/t{symbol}/hist", params)
            return self._normalize_many(raw, ShapeHint.TRADE, symbol=symbol)

        return PaginationDriver(
            fetch_page=fetch_page,
            next_cursor=lambda page: datetime_to_timestamp(page[-1].timestamp, milliseconds=True),
            since=since,
            direction=PageDirection.FORWARD,
            page_delay=self.page_delay,
            cancel_event=cancel_event,
            page_size=TRADES_PAGE_SIZE,
            initial_cursor=initial,
        )

    # ============================================
    # Account
    # ============================================

    async def _exchange_wallets(self) -> List[List[Any]]:
        raw = await self._private("/v2/auth/r/wallets")
        # [TYPE, CURRENCY, BALANCE, UNSETTLED_INTEREST, BALANCE_AVAILABLE]
        return [wallet for wallet in raw or [] if wallet and wallet[0] == "exchange"]

    async def get_amounts(self) -> Dict[str, Decimal]:
        wallets = await self._exchange_wallets()
        return self._balances((wallet[1], to_decimal(wallet[2], Decimal("0"))) for wallet in wallets)

    async def get_amounts_available_to_trade(self) -> Dict[str, Decimal]:
        wallets = await self._exchange_wallets()
        return self._balances(
            (wallet[1], to_decimal(wallet[4] if len(wallet) > 4 else None, Decimal("0")))
            for wallet in wallets
        )

    # ============================================
    # Orders
    # ============================================

    async def place_order(self, order: OrderRequest) -> OrderResult:
        self._require_supported_order_type(order)
        symbol = normalize_symbol(order.symbol)

        body: Dict[str, Any] = {
            "type": "EXCHANGE MARKET" if order.order_type == OrderType.MARKET else "EXCHANGE LIMIT",
            "symbol": f"t{symbol}",
            "amount": order.amount if order.is_buy else -order.amount,
        }
        if order.order_type != OrderType.MARKET:
            body["price"] = order.price
        body.update(order.extra_parameters)

        data = self._notification_data(await self._private("/v2/auth/w/order/submit", body))
        orders = data if data and isinstance(data[0], list) else [data]
        return self._normalize(orders[0], ShapeHint.ORDER, symbol=symbol)

    async def get_order_details(self, order_id: str, symbol: Optional[str] = None) -> OrderResult:
        body = {"id": [int(order_id)]}
        for path in ("/v2/auth/r/orders", "/v2/auth/r/orders/hist"):
            raw = await self._private(path, body)
            if raw:
                return self._normalize(raw[0], ShapeHint.ORDER)
        raise ExchangeProtocolError(f"order {order_id} not found", self.name)

    async def get_open_orders(self, symbol: Optional[str] = None) -> List[OrderResult]:
        path = f"/v2/auth/r/orders/t{normalize_symbol(symbol)}" if symbol else "/v2/auth/r/orders"
        return self._normalize_many(await self._private(path), ShapeHint.ORDER)

    async def get_completed_orders(
        self, symbol: Optional[str] = None, after: Optional[datetime] = None
    ) -> List[OrderResult]:
        path = f"/v2/auth/r/orders/t{normalize_symbol(symbol)}/hist" if symbol else "/v2/auth/r/orders/hist"
        body = {"start": datetime_to_timestamp(after, milliseconds=True)} if after else None
        orders = self._normalize_many(await self._private(path, body), ShapeHint.ORDER)
        return sorted(orders, key=lambda order: order.timestamp, reverse=True)

    async def cancel_order(self, order_id: str, symbol: Optional[str] = None) -> None:
        self._notification_data(await self._private("/v2/auth/w/order/cancel", {"id": int(order_id)}))

    # ============================================
    # Funding
    # ============================================

    def _method(self, currency: str) -> str:
        method = METHODS.get(currency.upper())
        if method is None:
            raise ConfigurationError(f"no transfer method known for {currency}", self.name)
        return method

    async def withdraw(self, request: WithdrawalRequest) -> WithdrawalResponse:
        body = {
            "wallet": "exchange",
            "method": self._method(request.symbol),
            "amount": request.amount,
            "address": request.address,
            "payment_id": request.address_tag,
        }
        raw = await self._private("/v2/auth/w/withdraw", {k: v for k, v in body.items() if v is not None})
        data = self._notification_data(raw)
        response = self._normalize(data, ShapeHint.WITHDRAWAL)
        return response.model_copy(update={"message": raw[7] if len(raw) > 7 else None})

    async def get_deposit_address(self, symbol: str) -> DepositDetails:
        body = {"wallet": "exchange", "method": self._method(symbol), "op_renew": 0}
        data = self._notification_data(await self._private("/v2/auth/w/deposit/address", body))
        details = self._normalize(data, ShapeHint.DEPOSIT_ADDRESS, symbol=symbol.upper())
        if details.address_tag:
            # pooled currencies: POOL_ADDRESS is the address, ADDRESS the tag
            return details.model_copy(update={"address": details.address_tag, "address_tag": details.address})
        return details

    async def get_deposit_history(self, symbol: str) -> List[Transaction]:
        raw = await self._private(f"/v2/auth/r/movements/{symbol.upper()}/hist")
        # movements include withdrawals (negative amounts)
        return [
            movement for movement in self._normalize_many(raw, ShapeHint.TRANSACTION)
            if movement.amount > 0
        ]


__all__ = ["BitfinexExchange", "normalize_symbol"]
