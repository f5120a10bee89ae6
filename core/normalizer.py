"""
Response Normalizer

Maps loosely typed exchange payloads onto the models in ``core.schemas``.

Each exchange describes its payloads as data:

- ``FieldTable``: per record shape, which raw key(s) or array position feed
  which normalized attribute, how to convert the value, and whether it is
  required. Alternate names are listed after the primary one.
- ``ErrorEnvelope``: how the exchange signals failure, so an error is never
  mistaken for an empty result.
- ``StatusMap``: the exchange's status words mapped onto the shared taxonomy.

Usage:
    TICKER = FieldTable({
        "bid": field("Bid", "bid", kind=FieldKind.DECIMAL, required=True),
        "last": field("Last", kind=FieldKind.DECIMAL),
    })
    normalizer = ResponseNormalizer("bittrex", {ShapeHint.TICKER: TICKER})
    ticker = normalizer.normalize(raw, ShapeHint.TICKER, symbol="BTC-LTC")

Numbers are parsed to ``Decimal`` from JSON numbers or strings (scientific
notation included). Missing optional fields take their default (zero for
decimals) instead of failing.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Type, Union

from pydantic import BaseModel, ValidationError

from core.errors import ExchangeProtocolError, NormalizationError
from core.logging import get_logger
from core.schemas import (
    Candle,
    DepositDetails,
    MarketInfo,
    OrderBook,
    OrderBookLevel,
    OrderResult,
    OrderStatus,
    Ticker,
    Trade,
    Transaction,
    TransactionStatus,
    WithdrawalResponse,
)
from core.utils.time import current_utc_datetime, parse_iso_datetime, to_utc_datetime

logger = get_logger(__name__)


class _Missing:
    def __repr__(self) -> str:
        return "MISSING"


MISSING = _Missing()

Key = Union[str, int]


# ============================================
# Value Conversion
# ============================================

def to_decimal(value: Any, default: Any = MISSING) -> Decimal:
    """
    Convert a JSON number or numeric string to Decimal.

    Floats go through ``str()`` so 0.1 becomes Decimal("0.1"), not the
    binary expansion. ``None`` and "" return ``default`` when one is given.

    Raises:
        ValueError: On booleans, non-numeric strings, NaN and infinities

    Examples:
        >>> to_decimal("1.5e-3")
        Decimal('0.0015')
        >>> to_decimal(None, default=Decimal("0"))
        Decimal('0')
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        if default is MISSING:
            raise ValueError("value is missing")
        return default

    if isinstance(value, bool):
        raise ValueError(f"boolean is not a number: {value!r}")

    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, int):
        result = Decimal(value)
    elif isinstance(value, float):
        result = Decimal(str(value))
    elif isinstance(value, str):
        try:
            result = Decimal(value.strip())
        except InvalidOperation:
            raise ValueError(f"not a number: {value!r}") from None
    else:
        raise ValueError(f"unsupported numeric type {type(value).__name__}")

    if not result.is_finite():
        raise ValueError(f"not a finite number: {value!r}")
    if "E" in str(result):
        # keep "1.5e-3" readable as 0.0015 in reprs and JSON output
        result = Decimal(format(result, "f"))
    return result


def to_timestamp(value: Any) -> datetime:
    """
    Convert epoch seconds/milliseconds or an ISO-8601 string to UTC datetime.

    Raises:
        ValueError: If the value cannot be interpreted
    """
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, bool):
        raise ValueError(f"boolean is not a timestamp: {value!r}")
    if isinstance(value, (int, float, Decimal)):
        return to_utc_datetime(float(value))
    if isinstance(value, str):
        text = value.strip()
        try:
            return to_utc_datetime(float(text))
        except ValueError:
            return parse_iso_datetime(text)
    raise ValueError(f"unsupported timestamp type {type(value).__name__}")


def to_side(value: Any) -> str:
    """
    Map an exchange side marker to "buy"/"sell".

    Strings are matched by substring ("LIMIT_BUY", "bid", "SELL"); numbers by
    sign (Bitfinex encodes sells as negative amounts).
    """
    if isinstance(value, str):
        lowered = value.lower()
        if "buy" in lowered or "bid" in lowered:
            return "buy"
        if "sell" in lowered or "ask" in lowered:
            return "sell"
        try:
            value = to_decimal(value)
        except ValueError:
            raise ValueError(f"unrecognized side: {value!r}") from None
    if isinstance(value, bool):
        raise ValueError(f"boolean is not a side: {value!r}")
    if isinstance(value, (int, float, Decimal)):
        return "sell" if value < 0 else "buy"
    raise ValueError(f"unrecognized side: {value!r}")


def to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str) and value.strip().lower() in ("true", "1", "yes"):
        return True
    if isinstance(value, str) and value.strip().lower() in ("false", "0", "no"):
        return False
    raise ValueError(f"not a boolean: {value!r}")


# ============================================
# Field Tables
# ============================================

class FieldKind(str, Enum):
    DECIMAL = "decimal"
    INTEGER = "integer"
    STRING = "string"
    BOOLEAN = "boolean"
    TIMESTAMP = "timestamp"
    SIDE = "side"


_CONVERTERS: Dict[FieldKind, Callable[[Any], Any]] = {
    FieldKind.DECIMAL: to_decimal,
    FieldKind.INTEGER: lambda v: int(to_decimal(v)),
    FieldKind.STRING: str,
    FieldKind.BOOLEAN: to_bool,
    FieldKind.TIMESTAMP: to_timestamp,
    FieldKind.SIDE: to_side,
}

_KIND_DEFAULTS: Dict[FieldKind, Any] = {
    FieldKind.DECIMAL: Decimal("0"),
    FieldKind.INTEGER: 0,
    FieldKind.BOOLEAN: False,
}


@dataclass(frozen=True)
class FieldSpec:
    """
    One normalized attribute.

    Attributes:
        keys: Raw keys tried in order (str for objects, int for arrays)
        kind: Conversion applied to the raw value
        required: Missing value raises NormalizationError
        default: Value when missing; MISSING means the kind's default
            (0 for decimals/integers, False for booleans, None otherwise)
        transform: Applied to the converted value (e.g. ``abs``)
    """

    keys: Tuple[Key, ...]
    kind: FieldKind = FieldKind.STRING
    required: bool = False
    default: Any = MISSING
    transform: Optional[Callable[[Any], Any]] = None

    def lookup(self, raw: Any) -> Any:
        for key in self.keys:
            if isinstance(key, int):
                if isinstance(raw, (list, tuple)) and -len(raw) <= key < len(raw):
                    value = raw[key]
                else:
                    continue
            elif isinstance(raw, Mapping):
                value = raw.get(key)
            else:
                continue
            if value is not None and value != "":
                return value
        return None

    def missing_value(self) -> Any:
        if self.default is not MISSING:
            return self.default
        return _KIND_DEFAULTS.get(self.kind)


def field(
    *keys: Key,
    kind: FieldKind = FieldKind.STRING,
    required: bool = False,
    default: Any = MISSING,
    transform: Optional[Callable[[Any], Any]] = None,
) -> FieldSpec:
    if not keys:
        raise ValueError("field needs at least one key")
    return FieldSpec(keys=tuple(keys), kind=kind, required=required, default=default, transform=transform)


class FieldTable:
    """Mapping from normalized attribute name to FieldSpec."""

    def __init__(self, fields: Mapping[str, FieldSpec]):
        self.fields = dict(fields)

    def extract(self, raw: Any, exchange: Optional[str] = None, shape: Optional[str] = None) -> Dict[str, Any]:
        if not isinstance(raw, (Mapping, list, tuple)):
            raise NormalizationError(
                f"expected an object or array, got {type(raw).__name__}", exchange, shape
            )

        values: Dict[str, Any] = {}
        for name, spec in self.fields.items():
            value = spec.lookup(raw)
            if value is None:
                if spec.required:
                    raise NormalizationError(
                        f"missing required field (tried {list(spec.keys)})", exchange, shape, name
                    )
                values[name] = spec.missing_value()
                continue

            try:
                value = _CONVERTERS[spec.kind](value)
                if spec.transform is not None:
                    value = spec.transform(value)
            except (ValueError, TypeError, ArithmeticError) as e:
                raise NormalizationError(str(e), exchange, shape, name) from e
            values[name] = value
        return values


# ============================================
# Error Envelopes
# ============================================

@dataclass(frozen=True)
class ErrorEnvelope:
    """
    How an exchange reports failure.

    Attributes:
        success_field: Boolean flag; false means error (Bittrex "success")
        result_field: Wrapper key holding the payload (Bittrex "result")
        code_field: Error code key (Binance "code")
        success_codes: Codes that do not indicate an error
        message_fields: Keys tried for the error text
        array_marker: First element of an array error (Bitfinex "error")
    """

    success_field: Optional[str] = None
    result_field: Optional[str] = None
    code_field: Optional[str] = None
    success_codes: Tuple[Any, ...] = (0, "0", 200)
    message_fields: Tuple[str, ...] = ("message", "msg", "error")
    array_marker: Optional[str] = None

    def _message(self, data: Mapping, fallback: str) -> str:
        for name in self.message_fields:
            value = data.get(name)
            if value:
                return str(value)
        return fallback

    def check(self, data: Any, exchange: Optional[str] = None, status: int = 200) -> None:
        """Raise ExchangeProtocolError if ``data`` is an error envelope."""
        if self.array_marker is not None and isinstance(data, list) and data and data[0] == self.array_marker:
            code = data[1] if len(data) > 1 else None
            message = str(data[2]) if len(data) > 2 and data[2] else "Unknown error"
            raise ExchangeProtocolError(message, exchange, code=code)

        if isinstance(data, Mapping):
            if self.success_field and self.success_field in data and not data[self.success_field]:
                raise ExchangeProtocolError(
                    self._message(data, "Request failed"), exchange,
                    code=data.get(self.code_field) if self.code_field else None,
                )
            if self.code_field and data.get(self.code_field) is not None \
                    and data[self.code_field] not in self.success_codes and status >= 400:
                raise ExchangeProtocolError(self._message(data, "Request failed"), exchange, code=data[self.code_field])
            if self.code_field and isinstance(data.get(self.code_field), int) \
                    and data[self.code_field] < 0:
                # Binance answers some errors with HTTP 200 and a negative code
                raise ExchangeProtocolError(self._message(data, "Request failed"), exchange, code=data[self.code_field])
            if status >= 400:
                raise ExchangeProtocolError(self._message(data, f"HTTP {status}"), exchange, code=status)

        elif status >= 400:
            raise ExchangeProtocolError(f"HTTP {status}", exchange, code=status)

    def unwrap(self, data: Any, exchange: Optional[str] = None, status: int = 200) -> Any:
        """
        Return the payload inside the envelope.

        A missing or null result is returned as ``None``: a valid empty
        answer, not an error.
        """
        self.check(data, exchange, status)
        if self.result_field and isinstance(data, Mapping):
            return data.get(self.result_field)
        return data


# ============================================
# Status Mapping
# ============================================

class StatusMap:
    """
    Case-insensitive lookup from exchange status words to a taxonomy enum.

    Unrecognized values map to ``unknown`` and are logged as warnings so new
    exchange states surface in logs. With ``strict=True`` they raise
    NormalizationError instead.

    Args:
        mapping: Raw status (any case) -> taxonomy value
        unknown: Value for unrecognized statuses
        strict: Raise instead of falling back
        separators: Text after any of these is ignored
            (Bitfinex: "EXECUTED @ 107.6(-0.2)")
    """

    def __init__(
        self,
        mapping: Mapping[Any, Enum],
        unknown: Enum,
        strict: bool = False,
        separators: Sequence[str] = (),
        exchange: Optional[str] = None,
        shape: str = "status",
    ):
        self.separators = tuple(separators)
        self.mapping = {self._key(k): v for k, v in mapping.items()}
        self.unknown = unknown
        self.strict = strict
        self.exchange = exchange
        self.shape = shape

    def _key(self, raw: Any) -> str:
        text = str(raw).strip().lower()
        for separator in self.separators:
            text = text.split(separator.lower(), 1)[0].strip()
        return text

    def map(self, raw: Any) -> Optional[Enum]:
        """Return the taxonomy value, or None when the exchange gave no status."""
        if raw is None or raw == "":
            return None
        value = self.mapping.get(self._key(raw))
        if value is not None:
            return value
        if self.strict:
            raise NormalizationError(f"unrecognized status {raw!r}", self.exchange, self.shape, "status")
        logger.warning(f"{self.exchange}: unrecognized {self.shape} status {raw!r}, mapping to {self.unknown.value}")
        return self.unknown

    def with_options(self, strict: bool, exchange: Optional[str]) -> "StatusMap":
        return StatusMap(self.mapping, self.unknown, strict, self.separators, exchange, self.shape)


DEFAULT_ORDER_STATUSES: Dict[str, OrderStatus] = {
    "new": OrderStatus.PENDING,
    "open": OrderStatus.PENDING,
    "pending": OrderStatus.PENDING,
    "active": OrderStatus.PENDING,
    "partially_filled": OrderStatus.PARTIALLY_FILLED,
    "partially filled": OrderStatus.PARTIALLY_FILLED,
    "filled": OrderStatus.FILLED,
    "done": OrderStatus.FILLED,
    "executed": OrderStatus.FILLED,
    "canceled": OrderStatus.CANCELED,
    "cancelled": OrderStatus.CANCELED,
    "expired": OrderStatus.CANCELED,
    "rejected": OrderStatus.ERROR,
    "error": OrderStatus.ERROR,
}


def order_status_map(
    mapping: Optional[Mapping[Any, OrderStatus]] = None,
    separators: Sequence[str] = (),
) -> StatusMap:
    """Order status map; ``mapping`` entries override the common defaults."""
    merged: Dict[Any, OrderStatus] = dict(DEFAULT_ORDER_STATUSES)
    merged.update(mapping or {})
    return StatusMap(merged, OrderStatus.UNKNOWN, separators=separators, shape="order")


def transaction_status_map(mapping: Mapping[Any, TransactionStatus]) -> StatusMap:
    return StatusMap(mapping, TransactionStatus.UNKNOWN, shape="transaction")


def resolve_order_status(
    amount: Decimal,
    filled: Decimal,
    explicit: Optional[OrderStatus] = None,
) -> OrderStatus:
    """
    Decide the order status.

    An explicit terminal status (Filled, Canceled, Error) or Unknown from the
    exchange wins. Otherwise the filled amount decides: all filled is Filled,
    some filled is PartiallyFilled, none is the exchange's non-terminal
    status or Pending.

    Examples:
        >>> resolve_order_status(Decimal(10), Decimal(10))
        <OrderStatus.FILLED: 'Filled'>
        >>> resolve_order_status(Decimal(10), Decimal(4), OrderStatus.PENDING)
        <OrderStatus.PARTIALLY_FILLED: 'PartiallyFilled'>
    """
    if explicit is not None and (explicit.is_terminal or explicit == OrderStatus.UNKNOWN):
        return explicit
    if amount > 0 and filled >= amount:
        return OrderStatus.FILLED
    if filled > 0:
        return OrderStatus.PARTIALLY_FILLED
    return explicit or OrderStatus.PENDING


# ============================================
# Normalizer
# ============================================

class ShapeHint(str, Enum):
    TICKER = "ticker"
    ORDER_BOOK_LEVEL = "order_book_level"
    TRADE = "trade"
    CANDLE = "candle"
    ORDER = "order"
    TRANSACTION = "transaction"
    MARKET = "market"
    WITHDRAWAL = "withdrawal"
    DEPOSIT_ADDRESS = "deposit_address"


_MODELS: Dict[ShapeHint, Type[BaseModel]] = {
    ShapeHint.TICKER: Ticker,
    ShapeHint.ORDER_BOOK_LEVEL: OrderBookLevel,
    ShapeHint.TRADE: Trade,
    ShapeHint.CANDLE: Candle,
    ShapeHint.ORDER: OrderResult,
    ShapeHint.TRANSACTION: Transaction,
    ShapeHint.MARKET: MarketInfo,
    ShapeHint.WITHDRAWAL: WithdrawalResponse,
    ShapeHint.DEPOSIT_ADDRESS: DepositDetails,
}

# Shapes whose model carries exchange + timestamp
_MARKET_SHAPES = {
    ShapeHint.TICKER,
    ShapeHint.TRADE,
    ShapeHint.CANDLE,
    ShapeHint.ORDER,
    ShapeHint.TRANSACTION,
}


class ResponseNormalizer:
    """
    Turns raw records into normalized models using per-shape field tables.

    Normalizing the same raw document twice yields equal values; the only
    input besides the document is the clock, used when a record has no
    timestamp of its own.

    Args:
        exchange: Exchange name stamped on every record
        tables: Field table per shape
        order_statuses: Status map for orders
        transaction_statuses: Status map for deposits/withdrawals
        strict_status: Unrecognized statuses raise instead of mapping to Unknown
        clock: Returns "now" for records without a timestamp

    Special attributes in tables:
        ORDER: ``amount_remaining`` lets the filled amount be derived;
            ``status`` holds the raw status word
        TRANSACTION: ``status`` holds the raw status value
    """

    def __init__(
        self,
        exchange: str,
        tables: Mapping[ShapeHint, FieldTable],
        order_statuses: Optional[StatusMap] = None,
        transaction_statuses: Optional[StatusMap] = None,
        strict_status: bool = False,
        clock: Callable[[], datetime] = current_utc_datetime,
    ):
        self.exchange = exchange
        self.tables = dict(tables)
        self.order_statuses = (order_statuses or order_status_map()).with_options(strict_status, exchange)
        self.transaction_statuses = (
            transaction_statuses or transaction_status_map({})
        ).with_options(strict_status, exchange)
        self._clock = clock

    def normalize(self, raw: Any, shape: ShapeHint, **context: Any) -> BaseModel:
        """
        Normalize one record.

        ``context`` supplies values the record does not carry itself (the
        symbol, usually); values found in the record take precedence.

        Raises:
            NormalizationError: Missing required field or unparseable value
        """
        shape = ShapeHint(shape)
        table = self.tables.get(shape)
        if table is None:
            raise NormalizationError("no field table configured", self.exchange, shape.value)

        values = table.extract(raw, self.exchange, shape.value)
        for name, value in context.items():
            if values.get(name) is None:
                values[name] = value

        if shape == ShapeHint.ORDER:
            self._finish_order(values)
        elif shape == ShapeHint.TRANSACTION:
            values["status"] = self.transaction_statuses.map(values.get("status")) or TransactionStatus.UNKNOWN
            if values["status"] == TransactionStatus.UNKNOWN and values.get("notes") is None:
                values["notes"] = f"Unknown transaction status: {raw_value(raw, table, 'status')}"

        if shape in _MARKET_SHAPES:
            values["exchange"] = self.exchange
            if values.get("timestamp") is None:
                values["timestamp"] = self._clock()

        model = _MODELS[shape]
        try:
            return model(**{k: v for k, v in values.items() if v is not None})
        except ValidationError as e:
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
            )
            raise NormalizationError(problems, self.exchange, shape.value) from e

    def normalize_many(self, raws: Optional[Iterable[Any]], shape: ShapeHint, **context: Any) -> List[BaseModel]:
        """
        Normalize a list of records, skipping (and logging) malformed ones.

        ``None`` is an empty result.
        """
        if raws is None:
            return []
        if not isinstance(raws, (list, tuple)):
            raise NormalizationError(
                f"expected a list, got {type(raws).__name__}", self.exchange, ShapeHint(shape).value
            )

        results = []
        for index, raw in enumerate(raws):
            try:
                results.append(self.normalize(raw, shape, **context))
            except NormalizationError as e:
                logger.warning(f"Skipping malformed record #{index}: {e}")
        return results

    def order_book(
        self,
        symbol: str,
        raw_bids: Optional[Iterable[Any]],
        raw_asks: Optional[Iterable[Any]],
        depth: Optional[int] = None,
    ) -> OrderBook:
        """
        Build an order book: bids by price descending, asks ascending, each
        side truncated to ``depth`` levels.
        """
        if depth is not None and depth < 1:
            raise ValueError(f"depth must be positive, got {depth}")

        bids = self.normalize_many(list(raw_bids or []), ShapeHint.ORDER_BOOK_LEVEL)
        asks = self.normalize_many(list(raw_asks or []), ShapeHint.ORDER_BOOK_LEVEL)
        bids.sort(key=lambda level: level.price, reverse=True)
        asks.sort(key=lambda level: level.price)

        return OrderBook(
            exchange=self.exchange,
            symbol=symbol,
            timestamp=self._clock(),
            bids=bids[:depth] if depth else bids,
            asks=asks[:depth] if depth else asks,
        )

    def _finish_order(self, values: Dict[str, Any]) -> None:
        amount = values.get("amount") or Decimal("0")
        remaining = values.pop("amount_remaining", None)
        filled = values.get("amount_filled")
        if filled is None:
            filled = amount - remaining if remaining is not None else Decimal("0")
            filled = max(filled, Decimal("0"))
        values["amount_filled"] = filled

        explicit = self.order_statuses.map(values.get("status"))
        values["status"] = resolve_order_status(amount, filled, explicit)

        if not values.get("average_price"):
            values["average_price"] = values.get("price") or Decimal("0")


def raw_value(raw: Any, table: FieldTable, name: str) -> Any:
    """Raw (unconverted) value a table would read for ``name``."""
    spec = table.fields.get(name)
    return spec.lookup(raw) if spec else None
