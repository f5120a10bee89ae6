"""
Binance Payload Conventions

Signing (api/v3 and wapi/v3):
    - ``timestamp`` (ms) is the first query parameter
    - the whole query string is signed with HMAC-SHA256, hex encoded
    - ``signature`` is appended as the last query parameter
    - the API key travels in the ``X-MBX-APIKEY`` header

Errors: ``{"code": -1121, "msg": "Invalid symbol."}`` (usually HTTP 400);
wapi endpoints answer ``{"success": false, "msg": "..."}``.
"""

from core.auth import DigestAlgorithm, MessagePart, NonceStyle, Placement, SignatureEncoding, SigningConvention
from core.normalizer import (
    ErrorEnvelope,
    FieldKind,
    FieldTable,
    ShapeHint,
    field,
    order_status_map,
    transaction_status_map,
)
from core.schemas import OrderStatus, TransactionStatus

CONVENTION = SigningConvention(
    nonce_style=NonceStyle.UNIX_MILLISECONDS,
    nonce_placement=Placement.QUERY,
    nonce_field="timestamp",
    message_parts=(MessagePart.QUERY,),
    digest=DigestAlgorithm.SHA256,
    signature_encoding=SignatureEncoding.HEX,
    signature_placement=Placement.QUERY,
    signature_field="signature",
    api_key_placement=Placement.HEADER,
    api_key_field="X-MBX-APIKEY",
)

ENVELOPE = ErrorEnvelope(
    success_field="success",
    code_field="code",
    message_fields=("msg", "message"),
)

ORDER_STATUSES = order_status_map({
    "NEW": OrderStatus.PENDING,
    "PARTIALLY_FILLED": OrderStatus.PARTIALLY_FILLED,
    "FILLED": OrderStatus.FILLED,
    "CANCELED": OrderStatus.CANCELED,
    "PENDING_CANCEL": OrderStatus.CANCELED,
    "EXPIRED": OrderStatus.CANCELED,
    "REJECTED": OrderStatus.CANCELED,
})

# depositHistory.html: 0 pending, 1 success
TRANSACTION_STATUSES = transaction_status_map({
    "0": TransactionStatus.PROCESSING,
    "1": TransactionStatus.COMPLETE,
})

ACTIVE_MARKET_STATES = ("TRADING", "PRE_TRADING", "POST_TRADING")

TABLES = {
    # /api/v3/ticker/24hr
    ShapeHint.TICKER: FieldTable({
        "symbol": field("symbol"),
        "bid": field("bidPrice", kind=FieldKind.DECIMAL, required=True),
        "ask": field("askPrice", kind=FieldKind.DECIMAL, required=True),
        "last": field("lastPrice", kind=FieldKind.DECIMAL, required=True),
        "base_volume": field("volume", kind=FieldKind.DECIMAL),
        "quote_volume": field("quoteVolume", kind=FieldKind.DECIMAL),
        "timestamp": field("closeTime", kind=FieldKind.TIMESTAMP),
    }),
    # /api/v3/depth: ["price", "qty"]
    ShapeHint.ORDER_BOOK_LEVEL: FieldTable({
        "price": field(0, kind=FieldKind.DECIMAL, required=True),
        "amount": field(1, kind=FieldKind.DECIMAL, required=True),
    }),
    # /api/v3/aggTrades; "m" is true when the buyer was the maker (taker sold)
    ShapeHint.TRADE: FieldTable({
        "id": field("a", required=True),
        "price": field("p", kind=FieldKind.DECIMAL, required=True),
        "amount": field("q", kind=FieldKind.DECIMAL, required=True),
        "timestamp": field("T", kind=FieldKind.TIMESTAMP, required=True),
        "side": field("m", kind=FieldKind.BOOLEAN, transform=lambda maker: "sell" if maker else "buy"),
    }),
    # /api/v3/klines
    ShapeHint.CANDLE: FieldTable({
        "timestamp": field(0, kind=FieldKind.TIMESTAMP, required=True),
        "open": field(1, kind=FieldKind.DECIMAL, required=True),
        "high": field(2, kind=FieldKind.DECIMAL, required=True),
        "low": field(3, kind=FieldKind.DECIMAL, required=True),
        "close": field(4, kind=FieldKind.DECIMAL, required=True),
        "base_volume": field(5, kind=FieldKind.DECIMAL),
        "quote_volume": field(7, kind=FieldKind.DECIMAL),
    }),
    # /api/v3/order, /openOrders, /allOrders
    ShapeHint.ORDER: FieldTable({
        "order_id": field("orderId", required=True),
        "symbol": field("symbol"),
        "side": field("side", kind=FieldKind.SIDE, required=True),
        "amount": field("origQty", kind=FieldKind.DECIMAL),
        "amount_filled": field("executedQty", kind=FieldKind.DECIMAL, default=None),
        "price": field("price", kind=FieldKind.DECIMAL),
        "timestamp": field("time", "transactTime", kind=FieldKind.TIMESTAMP),
        "status": field("status"),
    }),
    # /api/v3/exchangeInfo "symbols"
    ShapeHint.MARKET: FieldTable({
        "symbol": field("symbol", required=True),
        "base_currency": field("baseAsset"),
        "quote_currency": field("quoteAsset"),
        "is_active": field("status", transform=lambda s: s.upper() in ACTIVE_MARKET_STATES),
    }),
    # /wapi/v3/depositHistory.html "depositList"
    ShapeHint.TRANSACTION: FieldTable({
        "id": field("txId", "insertTime", required=True),
        "symbol": field("asset", required=True),
        "amount": field("amount", kind=FieldKind.DECIMAL, required=True),
        "address": field("address"),
        "address_tag": field("addressTag"),
        "blockchain_txid": field("txId"),
        "timestamp": field("insertTime", kind=FieldKind.TIMESTAMP),
        "status": field("status"),
    }),
    # /wapi/v3/withdraw.html
    ShapeHint.WITHDRAWAL: FieldTable({
        "id": field("id"),
        "message": field("msg"),
        "success": field("success", kind=FieldKind.BOOLEAN, default=True),
    }),
    # /wapi/v3/depositAddress.html
    ShapeHint.DEPOSIT_ADDRESS: FieldTable({
        "symbol": field("asset", required=True),
        "address": field("address", required=True),
        "address_tag": field("addressTag"),
    }),
}
