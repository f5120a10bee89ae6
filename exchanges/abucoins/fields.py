"""
Abucoins Payload Conventions

Signing (Coinbase-style):
    message   = timestamp + METHOD + path_and_query + body (POST only)
    signature = HMAC-SHA256(base64-decoded secret, message), base64
    headers   = AC-ACCESS-KEY, AC-ACCESS-SIGN, AC-ACCESS-TIMESTAMP, AC-ACCESS-PASSPHRASE

The timestamp is in seconds. Errors come back with an HTTP error status and
``{"message": "..."}`` or ``{"error": "..."}``.
"""

from core.auth import (
    DigestAlgorithm,
    MessagePart,
    NonceStyle,
    Placement,
    SecretEncoding,
    SignatureEncoding,
    SigningConvention,
)
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
    nonce_style=NonceStyle.UNIX_SECONDS,
    nonce_placement=Placement.HEADER,
    nonce_field="AC-ACCESS-TIMESTAMP",
    message_parts=(MessagePart.NONCE, MessagePart.METHOD, MessagePart.PATH_AND_QUERY, MessagePart.BODY),
    body_methods=("POST",),
    digest=DigestAlgorithm.SHA256,
    signature_encoding=SignatureEncoding.BASE64,
    secret_encoding=SecretEncoding.BASE64,
    signature_placement=Placement.HEADER,
    signature_field="AC-ACCESS-SIGN",
    api_key_placement=Placement.HEADER,
    api_key_field="AC-ACCESS-KEY",
    passphrase_field="AC-ACCESS-PASSPHRASE",
)

ENVELOPE = ErrorEnvelope(message_fields=("message", "error"))

ORDER_STATUSES = order_status_map({
    "pending": OrderStatus.PENDING,
    "open": OrderStatus.PENDING,
    "done": OrderStatus.FILLED,
    "rejected": OrderStatus.ERROR,
})

TRANSACTION_STATUSES = transaction_status_map({
    "complete": TransactionStatus.COMPLETE,
    "pending": TransactionStatus.PROCESSING,
    "awaiting-email-confirmation": TransactionStatus.AWAITING_APPROVAL,
})

TABLES = {
    # /products/{id}/ticker, /products/ticker
    ShapeHint.TICKER: FieldTable({
        "symbol": field("product_id"),
        "bid": field("bid", kind=FieldKind.DECIMAL, required=True),
        "ask": field("ask", kind=FieldKind.DECIMAL, required=True),
        "last": field("price", kind=FieldKind.DECIMAL, required=True),
        "base_volume": field("volume", "size", kind=FieldKind.DECIMAL),
        "timestamp": field("time", kind=FieldKind.TIMESTAMP),
    }),
    # /products/{id}/book?level=2: [price, size, num_orders]
    ShapeHint.ORDER_BOOK_LEVEL: FieldTable({
        "price": field(0, kind=FieldKind.DECIMAL, required=True),
        "amount": field(1, kind=FieldKind.DECIMAL, required=True),
    }),
    # /products/{id}/trades
    ShapeHint.TRADE: FieldTable({
        "id": field("trade_id", required=True),
        "price": field("price", kind=FieldKind.DECIMAL, required=True),
        "amount": field("size", kind=FieldKind.DECIMAL, required=True),
        "side": field("side", kind=FieldKind.SIDE, required=True),
        "timestamp": field("time", kind=FieldKind.TIMESTAMP, required=True),
    }),
    # /products/{id}/candles: [time, low, high, open, close, volume]
    ShapeHint.CANDLE: FieldTable({
        "timestamp": field(0, kind=FieldKind.TIMESTAMP, required=True),
        "low": field(1, kind=FieldKind.DECIMAL, required=True),
        "high": field(2, kind=FieldKind.DECIMAL, required=True),
        "open": field(3, kind=FieldKind.DECIMAL, required=True),
        "close": field(4, kind=FieldKind.DECIMAL, required=True),
        "base_volume": field(5, kind=FieldKind.DECIMAL),
    }),
    # /orders
    ShapeHint.ORDER: FieldTable({
        "order_id": field("id", required=True),
        "symbol": field("product_id"),
        "side": field("side", kind=FieldKind.SIDE, required=True),
        "amount": field("size", kind=FieldKind.DECIMAL),
        "amount_filled": field("filled_size", kind=FieldKind.DECIMAL, default=None),
        "price": field("price", kind=FieldKind.DECIMAL),
        "fees": field("fill_fees", kind=FieldKind.DECIMAL),
        "timestamp": field("created_at", kind=FieldKind.TIMESTAMP),
        "status": field("status"),
        "message": field("reject_reason"),
    }),
    # /products
    ShapeHint.MARKET: FieldTable({
        "symbol": field("id", required=True),
        "base_currency": field("base_currency"),
        "quote_currency": field("quote_currency"),
        "min_trade_size": field("base_min_size", kind=FieldKind.DECIMAL),
        "price_step": field("quote_increment", kind=FieldKind.DECIMAL),
    }),
    # /deposits/history
    ShapeHint.TRANSACTION: FieldTable({
        "id": field("deposit_id", required=True),
        "symbol": field("currency", required=True),
        "amount": field("amount", kind=FieldKind.DECIMAL, required=True),
        "timestamp": field("date", kind=FieldKind.TIMESTAMP),
        "status": field("status"),
        "notes": field("url"),
    }),
    # /withdrawals/make: status 0 means accepted
    ShapeHint.WITHDRAWAL: FieldTable({
        "id": field("payoutId"),
        "message": field("message"),
        "success": field("status", kind=FieldKind.INTEGER, default=True, transform=lambda status: status == 0),
    }),
    # /deposits/make
    ShapeHint.DEPOSIT_ADDRESS: FieldTable({
        "address": field("address", required=True),
        "address_tag": field("tag"),
    }),
}
