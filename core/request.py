"""
Prepared Requests

``PreparedRequest`` is the immutable description of one HTTP call before it
is handed to the transport. Query parameters, body fields and headers are
ordered sequences of pairs: signing conventions depend on parameter order,
so the rendering of ``query`` and ``body`` must be deterministic.

Usage:
    request = PreparedRequest(method="GET", base_url="https://api.binance.com",
                              path="/api/v3/order", params=(("symbol", "BTCUSDT"),))
    request = request.with_param("timestamp", "1700000000000", first=True)
    request.path_and_query  # "/api/v3/order?timestamp=1700000000000&symbol=BTCUSDT"
"""

import json
from decimal import Decimal
from enum import Enum
from typing import Any, Iterable, Optional, Tuple
from urllib.parse import quote, urlencode

from pydantic import BaseModel, ConfigDict, Field, field_validator

Pair = Tuple[str, Any]

# Methods whose body is never sent
BODYLESS_METHODS = frozenset({"GET", "DELETE", "HEAD"})


class BodyFormat(str, Enum):
    JSON = "json"
    FORM = "form"


def _render_value(value: Any) -> Any:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, Decimal):
        # avoid "1E+1" style renderings in signed payloads
        return format(value, "f")
    if isinstance(value, Enum):
        return value.value
    return value


def encode_query(params: Iterable[Pair]) -> str:
    """URL-encode pairs in the given order. ``None`` values are skipped."""
    return urlencode(
        [(name, _render_value(value)) for name, value in params if value is not None],
        quote_via=quote,
        safe="-_.~,",
    )


def _replace(pairs: Tuple[Pair, ...], name: str, value: Any, first: bool) -> Tuple[Pair, ...]:
    """Set ``name`` to ``value``, replacing an existing entry in place."""
    if any(existing == name for existing, _ in pairs):
        return tuple((n, value if n == name else v) for n, v in pairs)
    if first:
        return ((name, value),) + pairs
    return pairs + ((name, value),)


class PreparedRequest(BaseModel):
    """
    Immutable HTTP request description.

    Attributes:
        method: HTTP verb, upper case
        base_url: Scheme and host (plus any fixed prefix such as "/api/v1.1")
        path: Endpoint path starting with "/"
        params: Ordered query parameters
        body_fields: Ordered body fields (ignored for GET/DELETE)
        body_format: JSON or form encoding for the body
        headers: Ordered header pairs
        signed: Set once credentials and a nonce have been attached
    """

    model_config = ConfigDict(frozen=True)

    method: str = "GET"
    base_url: str
    path: str
    params: Tuple[Pair, ...] = Field(default_factory=tuple)
    body_fields: Tuple[Pair, ...] = Field(default_factory=tuple)
    body_format: BodyFormat = BodyFormat.JSON
    headers: Tuple[Tuple[str, str], ...] = Field(default_factory=tuple)
    signed: bool = False

    @field_validator("method")
    @classmethod
    def normalize_method(cls, v: str) -> str:
        return v.upper()

    @field_validator("path")
    @classmethod
    def normalize_path(cls, v: str) -> str:
        return v if v.startswith("/") else f"/{v}"

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    # ============================================
    # Renderings
    # ============================================

    @property
    def has_body(self) -> bool:
        return self.method not in BODYLESS_METHODS

    @property
    def query(self) -> str:
        return encode_query(self.params)

    @property
    def path_and_query(self) -> str:
        query = self.query
        return f"{self.path}?{query}" if query else self.path

    @property
    def url(self) -> str:
        return f"{self.base_url}{self.path_and_query}"

    @property
    def body(self) -> str:
        """
        Serialized body exactly as it will be sent.

        Empty for bodyless methods. A JSON body with no fields renders as
        "{}" because some exchanges sign that literal.
        """
        if not self.has_body:
            return ""
        fields = [(name, _render_value(value)) for name, value in self.body_fields if value is not None]
        if self.body_format == BodyFormat.FORM:
            return encode_query(fields)
        return json.dumps(dict(fields), separators=(",", ":"))

    @property
    def content_type(self) -> Optional[str]:
        if not self.has_body:
            return None
        if self.body_format == BodyFormat.FORM:
            return "application/x-www-form-urlencoded"
        return "application/json"

    def header(self, name: str) -> Optional[str]:
        for existing, value in self.headers:
            if existing.lower() == name.lower():
                return value
        return None

    # ============================================
    # Copy-on-write helpers
    # ============================================

    def with_param(self, name: str, value: Any, first: bool = False) -> "PreparedRequest":
        return self.model_copy(update={"params": _replace(self.params, name, value, first)})

    def with_body_field(self, name: str, value: Any, first: bool = False) -> "PreparedRequest":
        return self.model_copy(update={"body_fields": _replace(self.body_fields, name, value, first)})

    def with_header(self, name: str, value: str) -> "PreparedRequest":
        return self.model_copy(update={"headers": _replace(self.headers, name, str(value), False)})
