"""
REST Exchange Engine

``RestExchange`` is the one generic client every exchange builds on. A
concrete exchange supplies data (its ``SigningConvention``, ``ErrorEnvelope``,
field tables and status maps) plus thin endpoint methods; the engine does the
rest:

    shape request -> sign (private calls) -> send -> unwrap envelope -> normalize

Each instance owns its credential, nonce generator, HTTP transport and symbol
cache. Nothing is shared between instances, so clients for different
accounts or base URLs run side by side without coordination.

Usage:
    async with BittrexExchange(credential=credential) as bittrex:
        ticker = await bittrex.get_ticker("BTC-LTC")
"""

import asyncio
import time
from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from core.auth import Credential, RequestAuthenticator, SigningConvention
from core.config import Settings
from core.errors import ConfigurationError, ExchangeError, NormalizationError
from core.exchange_interface import ExchangeInterface, TradeCallback
from core.logging import get_logger, log_api_request
from core.normalizer import ErrorEnvelope, FieldTable, ResponseNormalizer, ShapeHint, StatusMap
from core.pagination import PaginationDriver
from core.request import BodyFormat, PreparedRequest
from core.schemas import OrderRequest, OrderType
from core.transport import HttpTransport

logger = get_logger(__name__)

Params = Union[Mapping[str, Any], Iterable[Tuple[str, Any]], None]


def _pairs(params: Params) -> Tuple[Tuple[str, Any], ...]:
    if not params:
        return ()
    items = params.items() if isinstance(params, Mapping) else params
    return tuple((name, value) for name, value in items if value is not None)


class RestExchange(ExchangeInterface):
    """
    Generic signed REST client.

    Class Attributes (set by each exchange):
        name: Exchange identifier
        BASE_URL: Default REST root
        convention: How private requests are signed
        envelope: How errors are reported
        field_tables: Field table per record shape
        order_statuses / transaction_statuses: Status vocabularies
        body_format: Encoding for request bodies
        health_path: Cheap public endpoint for health checks

    Args:
        credential: API credential (empty: public operations only)
        base_url: Override BASE_URL
        transport: HTTP transport (a new HttpTransport by default)
        page_delay: Pause between trade-history pages, seconds
        symbol_cache_ttl: Symbol list lifetime, seconds
        strict_order_status: Unrecognized statuses raise NormalizationError
        clock: Epoch-seconds clock for nonces and the symbol cache
    """

    BASE_URL: str = ""
    convention: SigningConvention
    envelope: ErrorEnvelope = ErrorEnvelope()
    field_tables: Dict[ShapeHint, FieldTable] = {}
    order_statuses: Optional[StatusMap] = None
    transaction_statuses: Optional[StatusMap] = None
    body_format: BodyFormat = BodyFormat.JSON
    health_path: str = "/"

    def __init__(
        self,
        credential: Optional[Credential] = None,
        base_url: Optional[str] = None,
        transport: Optional[HttpTransport] = None,
        page_delay: float = 1.0,
        symbol_cache_ttl: float = 3600,
        strict_order_status: bool = False,
        clock: Callable[[], float] = time.time,
    ):
        self.credential = credential or Credential()
        self.base_url = (base_url or self.BASE_URL).rstrip("/")
        self.transport = transport or HttpTransport(exchange=self.name)
        self.authenticator = RequestAuthenticator(self.convention, self.credential, self.name, clock)
        self.normalizer = ResponseNormalizer(
            self.name,
            self.field_tables,
            order_statuses=self.order_statuses,
            transaction_statuses=self.transaction_statuses,
            strict_status=strict_order_status,
        )
        self.page_delay = page_delay
        self.symbol_cache_ttl = symbol_cache_ttl
        self._clock = clock
        self._symbols: Optional[List[str]] = None
        self._symbols_fetched_at = 0.0

    @classmethod
    def from_settings(cls, config: Settings) -> "RestExchange":
        return cls(
            credential=config.credential_for(cls.name),
            base_url=config.base_url_for(cls.name),
            transport=HttpTransport(
                timeout=config.request_timeout,
                max_retries=config.max_retries,
                retry_backoff=config.retry_backoff,
                exchange=cls.name,
            ),
            page_delay=config.pagination_delay,
            symbol_cache_ttl=config.symbol_cache_ttl,
            strict_order_status=config.strict_order_status,
        )

    # ============================================
    # Context Manager / Lifecycle
    # ============================================

    async def __aenter__(self):
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.shutdown()

    async def initialize(self) -> None:
        await self.transport.open()
        logger.debug(f"{self.name} client ready ({self.base_url})")

    async def shutdown(self) -> None:
        await self.transport.close()

    async def health_check(self) -> bool:
        try:
            await self._request(self.health_path)
            return True
        except ExchangeError as e:
            logger.warning(f"{self.name} health check failed: {e}")
            return False

    # ============================================
    # Request Pipeline
    # ============================================

    def _prepare(
        self,
        path: str,
        params: Params = None,
        method: str = "GET",
        body: Params = None,
        base_url: Optional[str] = None,
    ) -> PreparedRequest:
        return PreparedRequest(
            method=method,
            base_url=base_url or self.base_url,
            path=path,
            params=_pairs(params),
            body_fields=_pairs(body),
            body_format=self.body_format,
        )

    async def _request(
        self,
        path: str,
        params: Params = None,
        method: str = "GET",
        private: bool = False,
        body: Params = None,
        base_url: Optional[str] = None,
    ) -> Any:
        """
        Send a request and return the unwrapped payload.

        Raises:
            ConfigurationError: Private call without credentials (nothing sent)
            TransportError: Network failure after the transport's retries
            ExchangeProtocolError: The exchange reported an error
            NormalizationError: The body is not JSON
        """
        request = self._prepare(path, params, method, body, base_url)
        if private:
            request = self.authenticator.sign(request)

        log_api_request(self.name, request.method, request.path, request.params + request.body_fields)
        response = await self.transport.send(request)

        data = response.data
        if data is None and response.text.strip():
            if response.ok:
                raise NormalizationError("response is not JSON", self.name, path)
            data = {"message": response.text.strip()[:200]}
        return self.envelope.unwrap(data, self.name, response.status)

    # ============================================
    # Shared Helpers
    # ============================================

    def _normalize(self, raw: Any, shape: ShapeHint, **context: Any):
        return self.normalizer.normalize(raw, shape, **context)

    def _normalize_many(self, raws: Any, shape: ShapeHint, **context: Any) -> list:
        return self.normalizer.normalize_many(raws, shape, **context)

    def _now(self) -> float:
        return self._clock()

    def _require_supported_order_type(self, order: OrderRequest) -> None:
        if order.order_type == OrderType.MARKET and not self.supports("market_orders"):
            raise ConfigurationError("market orders are not supported", self.name)

    @staticmethod
    def _balances(rows: Iterable[Tuple[str, Decimal]]) -> Dict[str, Decimal]:
        """Sum per currency, dropping zero balances."""
        totals: Dict[str, Decimal] = {}
        for currency, amount in rows:
            totals[currency] = totals.get(currency, Decimal("0")) + amount
        return {currency: amount for currency, amount in totals.items() if amount > 0}

    # ============================================
    # Symbols (cached)
    # ============================================

    async def get_symbols(self) -> List[str]:
        """
        Return the exchange's symbols, cached for ``symbol_cache_ttl`` seconds.
        """
        now = self._now()
        if self._symbols is not None and now - self._symbols_fetched_at < self.symbol_cache_ttl:
            return list(self._symbols)

        symbols = await self._fetch_symbols()
        self._symbols = list(symbols)
        self._symbols_fetched_at = now
        logger.debug(f"{self.name}: cached {len(self._symbols)} symbols")
        return list(self._symbols)

    def invalidate_symbols_cache(self) -> None:
        self._symbols = None
        self._symbols_fetched_at = 0.0

    async def _fetch_symbols(self) -> List[str]:
        return [market.symbol for market in await self.get_markets()]

    # ============================================
    # Trade History
    # ============================================

    async def get_historical_trades(
        self,
        symbol: str,
        callback: TradeCallback,
        since: Optional[datetime] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> int:
        driver = self._trade_history(symbol, since, cancel_event)
        emitted = await driver.run(callback)
        logger.debug(f"{self.name} {symbol}: emitted {emitted} trades over {driver.pages_fetched} page(s)")
        return emitted

    def _trade_history(
        self,
        symbol: str,
        since: Optional[datetime],
        cancel_event: Optional[asyncio.Event],
    ) -> PaginationDriver:
        """Build the pagination driver for this exchange's history endpoint."""
        raise NotImplementedError
