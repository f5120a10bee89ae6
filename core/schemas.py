"""
Normalized Data Schemas

This module defines Pydantic models for every value the exchange clients
hand back to callers. These schemas provide a unified, exchange-agnostic
data format.

Key Principle:
    Regardless of which exchange the data comes from (Binance, Bitfinex,
    Bittrex, Abucoins), it gets normalized into these standardized schemas.
    Callers never see an exchange's raw field names or status words.

Models:
    - Ticker: best bid/ask, last price and volumes
    - OrderBook / OrderBookLevel: price-sorted depth snapshot
    - Trade: one public trade
    - Candle: OHLC bar
    - OrderResult: state of one of our orders
    - Transaction: deposit or withdrawal record
    - WithdrawalResponse, DepositDetails, MarketInfo

Requests built by callers:
    - OrderRequest, WithdrawalRequest

Every numeric quantity is a ``Decimal``. All models are frozen value objects
with no reference back to the client that produced them.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Literal, Optional
from pydantic import BaseModel, Field, field_validator, model_validator, ConfigDict


# ============================================
# Shared Taxonomies
# ============================================

class OrderStatus(str, Enum):
    """Order lifecycle vocabulary shared by all exchanges."""

    PENDING = "Pending"
    PARTIALLY_FILLED = "PartiallyFilled"
    FILLED = "Filled"
    CANCELED = "Canceled"
    ERROR = "Error"
    UNKNOWN = "Unknown"

    @property
    def is_terminal(self) -> bool:
        return self in (OrderStatus.FILLED, OrderStatus.CANCELED, OrderStatus.ERROR)


class TransactionStatus(str, Enum):
    AWAITING_APPROVAL = "AwaitingApproval"
    PROCESSING = "Processing"
    COMPLETE = "Complete"
    FAILURE = "Failure"
    UNKNOWN = "Unknown"


class OrderType(str, Enum):
    LIMIT = "limit"
    MARKET = "market"


Side = Literal["buy", "sell"]


# ============================================
# Base Market Data Model
# ============================================

class BaseMarketModel(BaseModel):
    """
    Base model for all normalized records.

    Defines the fields every record shares:
    - exchange: The source exchange
    - symbol: The market symbol as the exchange names it
    - timestamp: When the record was created, in UTC

    Example:
        class Ticker(BaseMarketModel):
            # Inherits exchange, symbol, timestamp
            bid: Decimal
            ...
    """

    model_config = ConfigDict(frozen=True)

    exchange: str = Field(
        ...,
        description="Source exchange identifier (lowercase)",
        examples=["binance", "bitfinex", "bittrex", "abucoins"]
    )

    symbol: str = Field(
        ...,
        description="Market symbol in uppercase",
        examples=["BTCUSDT", "BTC-LTC", "ETH-BTC"]
    )

    timestamp: datetime = Field(
        ...,
        description="Event timestamp in UTC"
    )

    @field_validator('symbol')
    @classmethod
    def validate_symbol(cls, v: str) -> str:
        """Ensure symbol is uppercase"""
        return v.upper()

    @field_validator('exchange')
    @classmethod
    def validate_exchange(cls, v: str) -> str:
        """Ensure exchange is lowercase"""
        return v.lower()


# ============================================
# Market Data Schemas
# ============================================

class Ticker(BaseMarketModel):
    """
    Ticker Data Model

    Inherits from BaseMarketModel:
        - timestamp: When the ticker was produced (request time when the
          exchange does not report one)

    Additional Attributes:
        bid: Best bid price
        ask: Best ask price
        last: Last traded price
        base_volume: 24h volume in the base asset
        quote_volume: 24h volume in the quote asset (0 if not reported)

    Example:
        >>> Ticker(exchange="bitfinex", symbol="BTCUSD", timestamp=now,
        ...        bid=Decimal("6500.1"), ask=Decimal("6500.2"), last=Decimal("6500.1"),
        ...        base_volume=Decimal("1234.5"))
    """

    bid: Decimal = Field(..., ge=0)
    ask: Decimal = Field(..., ge=0)
    last: Decimal = Field(..., ge=0)
    base_volume: Decimal = Field(default=Decimal("0"), ge=0)
    quote_volume: Decimal = Field(default=Decimal("0"), ge=0)


class OrderBookLevel(BaseModel):
    model_config = ConfigDict(frozen=True)

    price: Decimal = Field(..., ge=0)
    amount: Decimal = Field(..., ge=0)


class OrderBook(BaseMarketModel):
    """
    Depth snapshot.

    bids are sorted by price descending, asks ascending; each side holds at
    most the requested depth.
    """

    bids: List[OrderBookLevel] = Field(default_factory=list)
    asks: List[OrderBookLevel] = Field(default_factory=list)

    @property
    def best_bid(self) -> Optional[OrderBookLevel]:
        return self.bids[0] if self.bids else None

    @property
    def best_ask(self) -> Optional[OrderBookLevel]:
        return self.asks[0] if self.asks else None


class Trade(BaseMarketModel):
    """
    Public trade.

    Attributes:
        id: Exchange trade id (as string; Bittrex/Binance ids are numeric)
        price / amount: Execution price and base quantity (amount always positive)
        side: Taker side
    """

    id: str
    price: Decimal = Field(..., ge=0)
    amount: Decimal = Field(..., ge=0)
    side: Side

    @property
    def notional(self) -> Decimal:
        return self.price * self.amount


class Candle(BaseMarketModel):
    """OHLC bar; timestamp is the bar's opening time."""

    interval: str
    open: Decimal = Field(..., ge=0)
    high: Decimal = Field(..., ge=0)
    low: Decimal = Field(..., ge=0)
    close: Decimal = Field(..., ge=0)
    base_volume: Decimal = Field(default=Decimal("0"), ge=0)
    quote_volume: Decimal = Field(default=Decimal("0"), ge=0)


# ============================================
# Account Schemas
# ============================================

class OrderResult(BaseMarketModel):
    """
    State of one of our orders.

    Inherits from BaseMarketModel:
        - timestamp: Order creation time

    Additional Attributes:
        order_id: Exchange order id
        side: buy or sell
        amount: Ordered quantity
        amount_filled: Executed quantity (never above amount for valid data)
        price: Limit price (0 for market orders)
        average_price: Average execution price (defaults to price)
        fees / fees_currency: Fees charged so far
        status: Shared order status
        message: Exchange text, e.g. a reject reason
    """

    order_id: str
    side: Side
    amount: Decimal = Field(default=Decimal("0"), ge=0)
    amount_filled: Decimal = Field(default=Decimal("0"), ge=0)
    price: Decimal = Field(default=Decimal("0"), ge=0)
    average_price: Decimal = Field(default=Decimal("0"), ge=0)
    fees: Decimal = Field(default=Decimal("0"))
    fees_currency: Optional[str] = None
    status: OrderStatus = OrderStatus.UNKNOWN
    message: Optional[str] = None

    @property
    def is_buy(self) -> bool:
        return self.side == "buy"


class Transaction(BaseMarketModel):
    """Deposit or withdrawal record. ``symbol`` is the currency."""

    id: str
    amount: Decimal
    address: Optional[str] = None
    address_tag: Optional[str] = None
    blockchain_txid: Optional[str] = None
    status: TransactionStatus = TransactionStatus.UNKNOWN
    notes: Optional[str] = None


class WithdrawalResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: Optional[str] = None
    message: Optional[str] = None
    success: bool = True


class DepositDetails(BaseModel):
    model_config = ConfigDict(frozen=True)

    symbol: str
    address: str
    address_tag: Optional[str] = None


class MarketInfo(BaseModel):
    """Tradeable market as listed by the exchange."""

    model_config = ConfigDict(frozen=True)

    symbol: str
    base_currency: Optional[str] = None
    quote_currency: Optional[str] = None
    is_active: bool = True
    min_trade_size: Decimal = Decimal("0")
    price_step: Decimal = Decimal("0")
    quantity_step: Decimal = Decimal("0")


# ============================================
# Caller Requests
# ============================================

class OrderRequest(BaseModel):
    """
    Order to place.

    Example:
        >>> OrderRequest(symbol="BTCUSDT", side="buy", amount=Decimal("0.01"), price=Decimal("25000"))
    """

    model_config = ConfigDict(frozen=True)

    symbol: str
    side: Side
    amount: Decimal = Field(..., gt=0)
    price: Decimal = Field(default=Decimal("0"), ge=0)
    order_type: OrderType = OrderType.LIMIT
    extra_parameters: Dict[str, Any] = Field(default_factory=dict)

    @field_validator('symbol')
    @classmethod
    def symbol_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("symbol is required")
        return v.strip()

    @model_validator(mode="after")
    def limit_needs_price(self) -> "OrderRequest":
        if self.order_type == OrderType.LIMIT and self.price <= 0:
            raise ValueError("limit orders need a positive price")
        return self

    @property
    def is_buy(self) -> bool:
        return self.side == "buy"


class WithdrawalRequest(BaseModel):
    """
    Withdrawal to an external address. ``symbol`` is the currency code.
    """

    model_config = ConfigDict(frozen=True)

    symbol: str
    address: str
    amount: Decimal = Field(..., gt=0)
    address_tag: Optional[str] = None
    description: Optional[str] = None

    @field_validator('symbol', 'address')
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be blank")
        return v.strip()
