"""
Bitfinex v2 Payload Conventions

Signing (authenticated endpoints, always POST with a JSON body):
    message   = "/api" + path_and_query + nonce + body
    signature = HMAC-SHA384(secret, message), hex
    headers   = bfx-nonce, bfx-apikey, bfx-signature

Payloads are positional arrays. Errors look like ``["error", 10020, "limit: invalid"]``.
Write endpoints answer with a notification array:
``[MTS, TYPE, MESSAGE_ID, null, DATA, CODE, STATUS, TEXT]``.
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


def strip_prefix(symbol: str) -> str:
    """"tBTCUSD" -> "BTCUSD" """
    return symbol[1:] if symbol[:1] in ("t", "f") and len(symbol) > 1 else symbol


CONVENTION = SigningConvention(
    nonce_style=NonceStyle.UNIX_MILLISECONDS_STRING,
    nonce_placement=Placement.HEADER,
    nonce_field="bfx-nonce",
    message_parts=(MessagePart.PATH_AND_QUERY, MessagePart.NONCE, MessagePart.BODY),
    path_prefix="/api",
    digest=DigestAlgorithm.SHA384,
    signature_encoding=SignatureEncoding.HEX,
    signature_placement=Placement.HEADER,
    signature_field="bfx-signature",
    api_key_placement=Placement.HEADER,
    api_key_field="bfx-apikey",
)

ENVELOPE = ErrorEnvelope(array_marker="error")

# Order STATUS carries fill details after "@" and prior state after "was:"
ORDER_STATUSES = order_status_map(
    {
        "ACTIVE": OrderStatus.PENDING,
        "PARTIALLY FILLED": OrderStatus.PARTIALLY_FILLED,
        "EXECUTED": OrderStatus.FILLED,
        "CANCELED": OrderStatus.CANCELED,
        "INSUFFICIENT MARGIN": OrderStatus.ERROR,
        "RSN_DUST": OrderStatus.CANCELED,
        "RSN_PAUSE": OrderStatus.CANCELED,
    },
    separators=(" @", " was:", ","),
)

TRANSACTION_STATUSES = transaction_status_map({
    "COMPLETED": TransactionStatus.COMPLETE,
    "PROCESSING": TransactionStatus.PROCESSING,
    "PENDING": TransactionStatus.PROCESSING,
    "UNCONFIRMED": TransactionStatus.AWAITING_APPROVAL,
    "CANCELED": TransactionStatus.FAILURE,
})

# Withdrawal/deposit "method" per currency
METHODS = {
    "BAT": "bat",
    "BCH": "bcash",
    "BTC": "bitcoin",
    "BTG": "bgold",
    "DASH": "dash",
    "EOS": "eos",
    "ETC": "ethereumc",
    "ETH": "ethereum",
    "LTC": "litecoin",
    "MIOTA": "iota",
    "NEO": "neo",
    "OMG": "omisego",
    "QTUM": "qtum",
    "TRX": "trx",
    "XMR": "monero",
    "XRP": "ripple",
    "ZEC": "zcash",
    "ZRX": "zrx",
}

TABLES = {
    # /v2/ticker/tSYM: [BID, BID_SIZE, ASK, ASK_SIZE, CHANGE, CHANGE_PCT, LAST, VOLUME, HIGH, LOW]
    ShapeHint.TICKER: FieldTable({
        "bid": field(0, kind=FieldKind.DECIMAL, required=True),
        "ask": field(2, kind=FieldKind.DECIMAL, required=True),
        "last": field(6, kind=FieldKind.DECIMAL, required=True),
        "base_volume": field(7, kind=FieldKind.DECIMAL),
    }),
    # book levels are split by side before normalizing: [PRICE, AMOUNT]
    ShapeHint.ORDER_BOOK_LEVEL: FieldTable({
        "price": field(0, kind=FieldKind.DECIMAL, required=True),
        "amount": field(1, kind=FieldKind.DECIMAL, required=True, transform=abs),
    }),
    # /v2/trades/tSYM/hist: [ID, MTS, AMOUNT, PRICE]; sells have negative amounts
    ShapeHint.TRADE: FieldTable({
        "id": field(0, required=True),
        "timestamp": field(1, kind=FieldKind.TIMESTAMP, required=True),
        "amount": field(2, kind=FieldKind.DECIMAL, required=True, transform=abs),
        "side": field(2, kind=FieldKind.SIDE, required=True),
        "price": field(3, kind=FieldKind.DECIMAL, required=True),
    }),
    # /v2/candles/trade:TF:tSYM/hist: [MTS, OPEN, CLOSE, HIGH, LOW, VOLUME]
    ShapeHint.CANDLE: FieldTable({
        "timestamp": field(0, kind=FieldKind.TIMESTAMP, required=True),
        "open": field(1, kind=FieldKind.DECIMAL, required=True),
        "close": field(2, kind=FieldKind.DECIMAL, required=True),
        "high": field(3, kind=FieldKind.DECIMAL, required=True),
        "low": field(4, kind=FieldKind.DECIMAL, required=True),
        "base_volume": field(5, kind=FieldKind.DECIMAL),
    }),
    # order arrays: [ID, GID, CID, SYMBOL, MTS_CREATE, MTS_UPDATE, AMOUNT, AMOUNT_ORIG,
    #                TYPE, TYPE_PREV, MTS_TIF, _, FLAGS, STATUS, _, _, PRICE, PRICE_AVG, ...]
    # AMOUNT is what remains; both amounts are negative for sells
    ShapeHint.ORDER: FieldTable({
        "order_id": field(0, required=True),
        "symbol": field(3, transform=strip_prefix),
        "timestamp": field(4, kind=FieldKind.TIMESTAMP),
        "amount_remaining": field(6, kind=FieldKind.DECIMAL, default=None, transform=abs),
        "amount": field(7, kind=FieldKind.DECIMAL, transform=abs),
        "side": field(7, kind=FieldKind.SIDE, required=True),
        "status": field(13),
        "price": field(16, kind=FieldKind.DECIMAL),
        "average_price": field(17, kind=FieldKind.DECIMAL),
    }),
    # /v2/auth/r/movements/CUR/hist
    ShapeHint.TRANSACTION: FieldTable({
        "id": field(0, required=True),
        "symbol": field(1, required=True),
        "timestamp": field(5, kind=FieldKind.TIMESTAMP),
        "status": field(9),
        "amount": field(12, kind=FieldKind.DECIMAL, required=True),
        "address": field(16),
        "blockchain_txid": field(20),
        "notes": field(21),
    }),
    # notification DATA of /v2/auth/w/withdraw: [WITHDRAWAL_ID, _, METHOD, PAYMENT_ID, WALLET, AMOUNT, ...]
    ShapeHint.WITHDRAWAL: FieldTable({
        "id": field(0),
    }),
    # notification DATA of /v2/auth/w/deposit/address: [_, METHOD, CURRENCY, _, ADDRESS, POOL_ADDRESS]
    ShapeHint.DEPOSIT_ADDRESS: FieldTable({
        "symbol": field(2, required=True),
        "address": field(4, required=True),
        "address_tag": field(5),
    }),
}
