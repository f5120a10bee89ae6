"""
Exchange Interface - Abstract Contract for All Exchanges

This module defines the abstract base class that all exchange clients must implement.
By enforcing a consistent interface, we ensure:
- All exchanges expose the same operations with the same normalized results
- Easy to add new exchanges without modifying callers
- Graceful handling of unsupported features

Design Philosophy:
    "Program to an interface, not an implementation"

    Callers work with ExchangeInterface, not specific exchange clients:

    exchange = manager.get_exchange("bittrex")  # or "binance"
    ticker = await exchange.get_ticker("BTC-LTC")

Core Operations (every exchange):
    get_ticker, get_order_book, get_historical_trades,
    place_order, get_order_details, cancel_order, withdraw

Capabilities System:
    Each exchange declares which optional operations it supports via the
    ``capabilities`` dict. Unsupported operations raise NotImplementedError.

    Example:
        capabilities = {
            "candles": True,
            "deposit_address": False,  # Not supported by this exchange
        }
"""

import asyncio
from abc import ABC, abstractmethod
from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional

from core.schemas import (
    Candle,
    DepositDetails,
    MarketInfo,
    OrderBook,
    OrderRequest,
    OrderResult,
    Ticker,
    Trade,
    Transaction,
    WithdrawalRequest,
    WithdrawalResponse,
)

TradeCallback = Callable[[List[Trade]], Any]


class ExchangeInterface(ABC):
    """
    Abstract Base Class for Exchange Clients

    Class Attributes:
        name: Unique identifier for the exchange (lowercase, e.g., "binance")
        capabilities: Dictionary indicating which optional operations this
            exchange supports

    Abstract Methods (MUST be implemented by all exchanges):
        - get_ticker: Best bid/ask and last price
        - get_order_book: Price-sorted depth snapshot
        - get_historical_trades: Paged trade history pushed to a callback
        - place_order / get_order_details / cancel_order: Order lifecycle
        - withdraw: Send funds to an external address

    Optional Methods (can be overridden):
        - get_symbols, get_markets, get_tickers, get_candles
        - get_amounts, get_amounts_available_to_trade
        - get_open_orders, get_completed_orders
        - get_deposit_address, get_deposit_history
        - initialize, shutdown, health_check
    """

    # ============================================
    # Class Attributes (must be set by subclasses)
    # ============================================

    name: str
    """Unique exchange identifier (lowercase). Example: "binance", "bitfinex" """

    capabilities: Dict[str, bool] = {
        "symbols": False,
        "markets": False,
        "tickers": False,
        "candles": False,
        "amounts": False,
        "open_orders": False,
        "completed_orders": False,
        "deposit_address": False,
        "deposit_history": False,
        "market_orders": False,
    }
    """Dictionary indicating which optional operations this exchange supports"""

    # ============================================
    # Market Data
    # ============================================

    @abstractmethod
    async def get_ticker(self, symbol: str) -> Ticker:
        """
        Fetch the current ticker for a symbol.

        Args:
            symbol: Market symbol as the exchange names it (e.g., "BTCUSDT", "BTC-LTC")

        Raises:
            ExchangeProtocolError: If the exchange rejects the symbol
        """
        pass

    @abstractmethod
    async def get_order_book(self, symbol: str, depth: int = 100) -> OrderBook:
        """
        Fetch the order book.

        Returns:
            OrderBook with bids sorted by price descending and asks ascending,
            at most ``depth`` levels per side
        """
        pass

    @abstractmethod
    async def get_historical_trades(
        self,
        symbol: str,
        callback: TradeCallback,
        since: Optional[datetime] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> int:
        """
        Walk trade history and push it to ``callback`` page by page.

        Args:
            symbol: Market symbol
            callback: Receives each page in ascending timestamp order. May be
                a coroutine function. Returning False stops the walk.
            since: Only trades at or after this time; None fetches the most
                recent page only
            cancel_event: Setting it stops the walk before the next fetch

        Returns:
            int: Number of trades emitted

        Notes:
            - Errors abort the walk; pages already emitted are not retracted
            - A fixed pause separates consecutive page requests
        """
        pass

    # ============================================
    # Trading
    # ============================================

    @abstractmethod
    async def place_order(self, order: OrderRequest) -> OrderResult:
        """
        Place an order.

        Raises:
            ConfigurationError: Missing credentials, or an order type this
                exchange does not support. Nothing is sent.
        """
        pass

    @abstractmethod
    async def get_order_details(self, order_id: str, symbol: Optional[str] = None) -> OrderResult:
        """
        Fetch one of our orders. Some exchanges need the symbol as well.
        """
        pass

    @abstractmethod
    async def cancel_order(self, order_id: str, symbol: Optional[str] = None) -> None:
        """
        Cancel an order. Success is the absence of an exception.
        """
        pass

    @abstractmethod
    async def withdraw(self, request: WithdrawalRequest) -> WithdrawalResponse:
        """Withdraw funds to an external address."""
        pass

    # ============================================
    # Optional Operations
    # ============================================

    async def get_symbols(self) -> List[str]:
        raise NotImplementedError(f"{self.name} does not support symbols")

    async def get_markets(self) -> List[MarketInfo]:
        raise NotImplementedError(f"{self.name} does not support markets")

    async def get_tickers(self) -> Dict[str, Ticker]:
        raise NotImplementedError(f"{self.name} does not support tickers")

    async def get_candles(
        self,
        symbol: str,
        interval: str = "1h",
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> List[Candle]:
        raise NotImplementedError(f"{self.name} does not support candles")

    async def get_amounts(self) -> Dict[str, Decimal]:
        raise NotImplementedError(f"{self.name} does not support amounts")

    async def get_amounts_available_to_trade(self) -> Dict[str, Decimal]:
        raise NotImplementedError(f"{self.name} does not support amounts")

    async def get_open_orders(self, symbol: Optional[str] = None) -> List[OrderResult]:
        raise NotImplementedError(f"{self.name} does not support open orders")

    async def get_completed_orders(
        self, symbol: Optional[str] = None, after: Optional[datetime] = None
    ) -> List[OrderResult]:
        raise NotImplementedError(f"{self.name} does not support completed orders")

    async def get_deposit_address(self, symbol: str) -> DepositDetails:
        raise NotImplementedError(f"{self.name} does not support deposit addresses")

    async def get_deposit_history(self, symbol: str) -> List[Transaction]:
        raise NotImplementedError(f"{self.name} does not support deposit history")

    # ============================================
    # Optional Lifecycle Methods
    # ============================================

    async def initialize(self) -> None:
        """
        Initialize the exchange client (HTTP session etc.).

        Notes:
            - Default implementation does nothing
            - Called automatically by ExchangeManager
            - Should be idempotent (safe to call multiple times)
        """
        pass

    async def shutdown(self) -> None:
        """
        Release resources.

        Notes:
            - Default implementation does nothing
            - Should handle errors gracefully (don't raise exceptions)
        """
        pass

    async def health_check(self) -> bool:
        """
        Check if the exchange API is accessible.

        Notes:
            - Default implementation returns True
            - Don't raise exceptions; return False on errors
        """
        return True

    # ============================================
    # Helper Methods
    # ============================================

    def supports(self, feature: str) -> bool:
        """
        Check if this exchange supports a specific optional operation.

        Example:
            >>> if exchange.supports("candles"):
            ...     candles = await exchange.get_candles("BTCUSDT", "1h")
        """
        return self.capabilities.get(feature, False)

    def __repr__(self) -> str:
        """String representation of the exchange."""
        return f"<{self.__class__.__name__}(name='{self.name}')>"
