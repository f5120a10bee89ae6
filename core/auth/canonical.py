"""
Canonical Message Builder

Each exchange signs a different concatenation of request parts. The builder
is configured once with the ordered list of parts and renders the message for
any request. It has no side effects, so the same inputs always produce the
same bytes.

Examples of configurations:

    Binance:   [QUERY]                        -> "timestamp=...&symbol=..."
    Bitfinex:  [PATH, NONCE, BODY], "/api"     -> "/api/v2/auth/r/orders1700000000000{}"
    Bittrex:   [URL]                          -> "https://bittrex.com/api/v1.1/...?apikey=...&nonce=..."
    Abucoins:  [NONCE, METHOD, PATH_AND_QUERY, BODY], body on POST only
"""

from enum import Enum
from typing import Any, Iterable, Optional, Sequence

from core.request import PreparedRequest


class MessagePart(str, Enum):
    NONCE = "nonce"
    METHOD = "method"
    PATH = "path"
    QUERY = "query"
    PATH_AND_QUERY = "path_and_query"
    BODY = "body"
    URL = "url"


class CanonicalMessageBuilder:
    """
    Renders the string to sign from request parts.

    Args:
        parts: Ordered parts to concatenate
        path_prefix: Prepended to PATH / PATH_AND_QUERY (Bitfinex signs "/api" + path)
        separator: Placed between parts
        body_methods: If given, BODY only contributes for these methods;
            otherwise it contributes whenever the method carries a body.
            A missing body always contributes an empty string.
    """

    def __init__(
        self,
        parts: Sequence[MessagePart],
        path_prefix: str = "",
        separator: str = "",
        body_methods: Optional[Iterable[str]] = None,
    ):
        if not parts:
            raise ValueError("Canonical message needs at least one part")
        self.parts = tuple(MessagePart(p) for p in parts)
        self.path_prefix = path_prefix
        self.separator = separator
        self.body_methods = frozenset(m.upper() for m in body_methods) if body_methods is not None else None

    def build(
        self,
        method: str,
        path: str,
        query: str = "",
        body: Optional[str] = None,
        nonce: Any = None,
        base_url: str = "",
    ) -> str:
        method = method.upper()
        path_and_query = f"{path}?{query}" if query else path

        rendered = []
        for part in self.parts:
            if part == MessagePart.NONCE:
                rendered.append("" if nonce is None else str(nonce))
            elif part == MessagePart.METHOD:
                rendered.append(method)
            elif part == MessagePart.PATH:
                rendered.append(f"{self.path_prefix}{path}")
            elif part == MessagePart.QUERY:
                rendered.append(query)
            elif part == MessagePart.PATH_AND_QUERY:
                rendered.append(f"{self.path_prefix}{path_and_query}")
            elif part == MessagePart.BODY:
                if self.body_methods is not None and method not in self.body_methods:
                    rendered.append("")
                else:
                    rendered.append(body or "")
            elif part == MessagePart.URL:
                rendered.append(f"{base_url}{path_and_query}")

        return self.separator.join(rendered)

    def build_for(self, request: PreparedRequest, nonce: Any = None) -> str:
        """Render the message for a prepared request."""
        return self.build(
            method=request.method,
            path=request.path,
            query=request.query,
            body=request.body,
            nonce=nonce,
            base_url=request.base_url,
        )
