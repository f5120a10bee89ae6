"""
Unified Logging Configuration

Every module logs through a child of the ``exchangekit`` logger so that
signing, transport and normalization output can be filtered per component.

Usage:
    from core.logging import get_logger

    logger = get_logger(__name__)
    logger.info("Fetching order book")

Secrets:
    Request parameters and headers pass through ``redact()`` before they are
    logged. Values whose key looks like an API key, secret, signature or
    passphrase are masked. Nothing in this package logs a raw credential.

Configuration:
    Log level is controlled by the LOG_LEVEL setting in .env file.
"""

import logging
import sys
from typing import Any, Iterable, Mapping, Optional, Tuple, Union

ROOT_LOGGER_NAME = "exchangekit"

# Substrings of parameter/header names whose values are masked in logs
SENSITIVE_MARKERS = ("key", "secret", "sign", "passphrase", "apisign")

REDACTED = "***"


def setup_logging(
    log_level: str = "INFO",
    log_format: Optional[str] = None,
    include_timestamp: bool = True,
    include_module: bool = True
) -> logging.Logger:
    """
    Configure and return the application logger.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Custom log format string (uses default if None)
        include_timestamp: Include timestamp in log messages
        include_module: Include module name in log messages

    Returns:
        logging.Logger: Configured logger instance

    Example:
        >>> logger = setup_logging(log_level="DEBUG")
        >>> logger.info("Gateway started")
        2024-01-01 12:00:00 [INFO] exchangekit: Gateway started
    """
    if log_format is None:
        format_parts = []

        if include_timestamp:
            format_parts.append("%(asctime)s")

        format_parts.append("[%(levelname)s]")

        if include_module:
            format_parts.append("%(name)s:")

        format_parts.append("%(message)s")

        log_format = " ".join(format_parts)

    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.INFO),
        format=log_format,
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout,
        force=True
    )

    root = logging.getLogger(ROOT_LOGGER_NAME)
    root.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    return root


# ============================================
# Initialize Logger with Settings
# ============================================

try:
    from core.config import settings
    log_level = settings.log_level
except ImportError:
    # settings not importable during early bootstrap
    log_level = "INFO"

logger = setup_logging(log_level=log_level)


# ============================================
# Convenience Functions
# ============================================

def get_logger(name: str) -> logging.Logger:
    """
    Get a logger for a specific module or component.

    Args:
        name: Name for the logger (typically __name__)

    Returns:
        logging.Logger: Logger instance named ``exchangekit.<name>``

    Example:
        # In exchanges/bitfinex/__init__.py:
        logger = get_logger(__name__)  # "exchangekit.exchanges.bitfinex"
    """
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


# ============================================
# Log Helper Functions
# ============================================

Pairs = Union[Mapping[str, Any], Iterable[Tuple[str, Any]]]


def is_sensitive(name: str) -> bool:
    lowered = str(name).lower()
    return any(marker in lowered for marker in SENSITIVE_MARKERS)


def redact(params: Optional[Pairs]) -> dict:
    """
    Return a copy of ``params`` safe for logging.

    Accepts a mapping or a sequence of ``(name, value)`` pairs. Values under a
    sensitive name are replaced with ``***``.

    Example:
        >>> redact([("symbol", "BTCUSDT"), ("signature", "abcd")])
        {'symbol': 'BTCUSDT', 'signature': '***'}
    """
    if not params:
        return {}
    items = params.items() if isinstance(params, Mapping) else params
    return {
        name: (REDACTED if is_sensitive(name) else value)
        for name, value in items
    }


def log_api_request(exchange: str, method: str, endpoint: str, params: Optional[Pairs] = None) -> None:
    """
    Log an API request with consistent formatting. Parameters are redacted.

    Example:
        >>> log_api_request("binance", "GET", "/api/v3/order", [("symbol", "BTCUSDT"), ("signature", "ab")])
        [DEBUG] API Request: binance GET /api/v3/order | Params: {'symbol': 'BTCUSDT', 'signature': '***'}
    """
    safe = redact(params)
    if safe:
        logger.debug(f"API Request: {exchange} {method} {endpoint} | Params: {safe}")
    else:
        logger.debug(f"API Request: {exchange} {method} {endpoint}")


def log_api_response(exchange: str, endpoint: str, status: int, response_time: Optional[float] = None) -> None:
    """
    Log an API response with status and timing information.

    Example:
        >>> log_api_response("bittrex", "/public/getticker", 200, 0.342)
        [DEBUG] API Response: bittrex /public/getticker | Status: 200 | Time: 0.342s
    """
    time_str = f" | Time: {response_time:.3f}s" if response_time else ""
    logger.debug(f"API Response: {exchange} {endpoint} | Status: {status}{time_str}")


logger.debug("Logging system initialized")
