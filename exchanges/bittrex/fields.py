"""
Bittrex v1.1 Payload Conventions

Signing:
    - ``apikey`` and ``nonce`` lead the query string of every private call
    - the full request URL is signed with HMAC-SHA512, hex encoded
    - the signature travels in the ``apisign`` header

Every answer is wrapped: ``{"success": bool, "message": str, "result": ...}``.
"""

from core.auth import DigestAlgorithm, MessagePart, NonceStyle, Placement, SignatureEncoding, SigningConvention
from core.normalizer import ErrorEnvelope, FieldKind, FieldTable, ShapeHint, field, transaction_status_map
from core.schemas import TransactionStatus

CONVENTION = SigningConvention(
    nonce_style=NonceStyle.UNIX_MILLISECONDS_STRING,
    nonce_placement=Placement.QUERY,
    nonce_field="nonce",
    message_parts=(MessagePart.URL,),
    digest=DigestAlgorithm.SHA512,
    signature_encoding=SignatureEncoding.HEX,
    signature_placement=Placement.HEADER,
    signature_field="apisign",
    api_key_placement=Placement.QUERY,
    api_key_field="apikey",
)

ENVELOPE = ErrorEnvelope(
    success_field="success",
    result_field="result",
    message_fields=("message",),
)

# getdeposithistory only lists credited deposits
TRANSACTION_STATUSES = transaction_status_map({
    "complete": TransactionStatus.COMPLETE,
})

# Currencies deposited to a shared base address plus a per-user tag
TWO_FIELD_COIN_TYPES = (
    "BITSHAREX",
    "CRYPTO_NOTE_PAYMENTID",
    "LUMEN",
    "NXT",
    "NXT_MS",
    "RIPPLE",
    "STEEM",
)

# /pub/market/GetTicks tickInterval names
TICK_INTERVALS = {
    "1m": "oneMin",
    "5m": "fiveMin",
    "30m": "thirtyMin",
    "1h": "hour",
    "1d": "day",
}

TABLES = {
    # /public/getmarketsummary; "Volume" is in the market currency
    ShapeHint.TICKER: FieldTable({
        "symbol": field("MarketName"),
        "bid": field("Bid", kind=FieldKind.DECIMAL, required=True),
        "ask": field("Ask", kind=FieldKind.DECIMAL, required=True),
        "last": field("Last", kind=FieldKind.DECIMAL, required=True),
        "base_volume": field("Volume", kind=FieldKind.DECIMAL),
        "quote_volume": field("BaseVolume", kind=FieldKind.DECIMAL),
        "timestamp": field("TimeStamp", kind=FieldKind.TIMESTAMP),
    }),
    # /public/getorderbook "buy" / "sell"
    ShapeHint.ORDER_BOOK_LEVEL: FieldTable({
        "price": field("Rate", kind=FieldKind.DECIMAL, required=True),
        "amount": field("Quantity", kind=FieldKind.DECIMAL, required=True),
    }),
    # /public/getmarkethistory
    ShapeHint.TRADE: FieldTable({
        "id": field("Id", required=True),
        "price": field("Price", kind=FieldKind.DECIMAL, required=True),
        "amount": field("Quantity", kind=FieldKind.DECIMAL, required=True),
        "side": field("OrderType", kind=FieldKind.SIDE, required=True),
        "timestamp": field("TimeStamp", kind=FieldKind.TIMESTAMP, required=True),
    }),
    # /pub/market/GetTicks (v2.0)
    ShapeHint.CANDLE: FieldTable({
        "timestamp": field("T", kind=FieldKind.TIMESTAMP, required=True),
        "open": field("O", kind=FieldKind.DECIMAL, required=True),
        "high": field("H", kind=FieldKind.DECIMAL, required=True),
        "low": field("L", kind=FieldKind.DECIMAL, required=True),
        "close": field("C", kind=FieldKind.DECIMAL, required=True),
        "base_volume": field("V", kind=FieldKind.DECIMAL),
        "quote_volume": field("BV", kind=FieldKind.DECIMAL),
    }),
    # /account/getorder, /market/getopenorders, /account/getorderhistory
    # field names differ slightly between the three
    ShapeHint.ORDER: FieldTable({
        "order_id": field("OrderUuid", required=True),
        "symbol": field("Exchange"),
        "side": field("OrderType", "Type", kind=FieldKind.SIDE, required=True),
        "amount": field("Quantity", kind=FieldKind.DECIMAL),
        "amount_remaining": field("QuantityRemaining", kind=FieldKind.DECIMAL, default=None),
        "price": field("Limit", "PricePerUnit", kind=FieldKind.DECIMAL),
        "average_price": field("PricePerUnit", kind=FieldKind.DECIMAL),
        "fees": field("CommissionPaid", "Commission", kind=FieldKind.DECIMAL),
        "timestamp": field("Opened", "TimeStamp", kind=FieldKind.TIMESTAMP),
    }),
    # /public/getmarkets; MarketName "BTC-LTC" trades LTC priced in BTC
    ShapeHint.MARKET: FieldTable({
        "symbol": field("MarketName", required=True),
        "base_currency": field("MarketCurrency"),
        "quote_currency": field("BaseCurrency"),
        "is_active": field("IsActive", kind=FieldKind.BOOLEAN, default=True),
        "min_trade_size": field("MinTradeSize", kind=FieldKind.DECIMAL),
    }),
    # /account/getdeposithistory
    ShapeHint.TRANSACTION: FieldTable({
        "id": field("Id", required=True),
        "symbol": field("Currency", required=True),
        "amount": field("Amount", kind=FieldKind.DECIMAL, required=True),
        "address": field("CryptoAddress"),
        "blockchain_txid": field("TxId"),
        "timestamp": field("LastUpdated", kind=FieldKind.TIMESTAMP),
        "status": field("Status", default="complete"),
    }),
    # /account/withdraw
    ShapeHint.WITHDRAWAL: FieldTable({
        "id": field("uuid"),
        "message": field("msg"),
    }),
    # /account/getdepositaddress
    ShapeHint.DEPOSIT_ADDRESS: FieldTable({
        "symbol": field("Currency", required=True),
        "address": field("Address", required=True),
    }),
}
