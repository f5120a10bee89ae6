"""
Exchange Error Taxonomy

Every failure raised by the signing, transport and normalization layers is an
``ExchangeError`` so callers can catch the whole family at once and still tell
the kinds apart:

    ConfigurationError     - missing or invalid credentials/settings, raised
                             before any network call
    ExchangeProtocolError  - the exchange answered, but with an error envelope
    NormalizationError     - a response did not have the expected shape
    TransportError         - the request never produced a usable response

Messages never contain secret material.
"""

from typing import Any, Optional


class ExchangeError(Exception):
    """Base class for all exchange-related errors."""

    def __init__(self, message: str, exchange: Optional[str] = None):
        self.exchange = exchange
        prefix = f"[{exchange}] " if exchange else ""
        super().__init__(f"{prefix}{message}")
        self.message = message


class ConfigurationError(ExchangeError):
    """Credentials or settings are missing/invalid. Raised before sending."""


class ExchangeProtocolError(ExchangeError):
    """
    The exchange reported an error.

    Attributes:
        code: Exchange error code (or HTTP status when no code was given)
        exchange_message: Message text exactly as the exchange reported it
    """

    def __init__(
        self,
        exchange_message: str,
        exchange: Optional[str] = None,
        code: Any = None,
    ):
        self.code = code
        self.exchange_message = exchange_message
        code_str = f" (code {code})" if code is not None else ""
        super().__init__(f"{exchange_message}{code_str}", exchange)


class NormalizationError(ExchangeError):
    """
    A response could not be mapped onto a normalized record.

    Attributes:
        shape: Record shape being normalized (e.g. "order", "ticker")
        field: Attribute that failed, if known
    """

    def __init__(
        self,
        message: str,
        exchange: Optional[str] = None,
        shape: Optional[str] = None,
        field: Optional[str] = None,
    ):
        self.shape = shape
        self.field = field
        where = ".".join(part for part in (shape, field) if part)
        super().__init__(f"{where}: {message}" if where else message, exchange)


class TransportError(ExchangeError):
    """
    Network failure, timeout or exhausted retries.

    Attributes:
        status: Last HTTP status seen, if any
        url: Request URL without query string
    """

    def __init__(
        self,
        message: str,
        exchange: Optional[str] = None,
        status: Optional[int] = None,
        url: Optional[str] = None,
    ):
        self.status = status
        self.url = url
        super().__init__(message, exchange)
