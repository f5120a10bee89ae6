"""
Time Utilities

This module provides utilities for handling timestamps from different exchanges.

Different exchanges return timestamps in different formats:
- Binance, Bitfinex: milliseconds since epoch (e.g., 1704110400000)
- Abucoins nonce: seconds since epoch (e.g., 1704110400)
- Bittrex, Abucoins records: ISO-8601 strings, often without a zone
- We need: Python datetime objects in UTC

The utilities in this module normalize all timestamp formats into
consistent UTC datetime objects for use in our Pydantic schemas.
"""

from datetime import datetime, timezone
from typing import Union

from dateutil import parser as date_parser


def to_utc_datetime(timestamp: Union[int, float]) -> datetime:
    """
    Convert a timestamp (seconds or milliseconds) to UTC datetime.

    This function automatically detects whether the timestamp is in
    seconds or milliseconds and converts it to a timezone-aware
    datetime object in UTC.

    Detection Logic:
        - If timestamp > 1e12 (1 trillion): Assumed to be milliseconds
        - Otherwise: Assumed to be seconds

    Args:
        timestamp: Unix timestamp in seconds or milliseconds

    Returns:
        datetime: Timezone-aware datetime object in UTC

    Raises:
        ValueError: If timestamp is negative or invalid

    Examples:
        >>> # Millisecond timestamp (Binance format)
        >>> to_utc_datetime(1704110400000)
        datetime.datetime(2024, 1, 1, 12, 0, tzinfo=datetime.timezone.utc)

        >>> # Second timestamp (some exchanges)
        >>> to_utc_datetime(1704110400)
        datetime.datetime(2024, 1, 1, 12, 0, tzinfo=datetime.timezone.utc)

        >>> # Float timestamp (also supported)
        >>> to_utc_datetime(1704110400.5)
        datetime.datetime(2024, 1, 1, 12, 0, 0, 500000, tzinfo=datetime.timezone.utc)

    Notes:
        - All returned datetimes are timezone-aware (UTC)
        - The threshold 1e12 works because:
          * Seconds: ~1.7 billion (current time)
          * Milliseconds: ~1.7 trillion (current time)
        - This threshold will work until year 2286 (1e12 seconds = Sept 2286)
    """
    # Validate timestamp
    if timestamp < 0:
        raise ValueError(f"Timestamp cannot be negative: {timestamp}")

    # Convert milliseconds to seconds if needed
    # 1e12 = 1,000,000,000,000 (1 trillion)
    # Current time in seconds: ~1.7 billion
    # Current time in milliseconds: ~1.7 trillion
    if timestamp > 1e12:
        timestamp = timestamp / 1000.0

    # Convert to datetime with UTC timezone
    try:
        return datetime.fromtimestamp(timestamp, tz=timezone.utc)
    except (OSError, OverflowError, ValueError) as e:
        raise ValueError(f"Invalid timestamp: {timestamp}. Error: {e}")


def datetime_to_timestamp(dt: datetime, milliseconds: bool = False) -> int:
    """
    Convert a datetime object to Unix timestamp.

    Args:
        dt: Datetime object (can be naive or timezone-aware)
        milliseconds: If True, return milliseconds; if False, return seconds

    Returns:
        int: Unix timestamp in seconds or milliseconds

    Examples:
        >>> dt = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
        >>> datetime_to_timestamp(dt)
        1704110400

        >>> datetime_to_timestamp(dt, milliseconds=True)
        1704110400000

    Notes:
        - If datetime is naive (no timezone), UTC is assumed
        - Seconds are truncated; milliseconds keep sub-second precision
    """
    # If datetime is naive (no timezone), assume UTC
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)

    if milliseconds:
        # keep sub-second precision for millisecond cursors
        return int(round(dt.timestamp() * 1000))

    return int(dt.timestamp())


def current_utc_datetime() -> datetime:
    """
    Get current UTC datetime.

    Returns:
        datetime: Current time as timezone-aware datetime in UTC

    Example:
        >>> current_utc_datetime()
        datetime.datetime(2024, 1, 1, 12, 0, 0, tzinfo=datetime.timezone.utc)

    Notes:
        This is a convenience function equivalent to:
        datetime.now(timezone.utc)
    """
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime) -> datetime:
    """
    Return ``dt`` as an aware UTC datetime. Naive values are taken as UTC.

    Example:
        >>> ensure_utc(datetime(2023, 11, 14))
        datetime.datetime(2023, 11, 14, 0, 0, tzinfo=datetime.timezone.utc)
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_iso_datetime(value: str) -> datetime:
    """
    Parse an ISO-8601 string into a UTC datetime.

    Strings without a zone designator are taken as UTC, which is how
    Bittrex reports "2017-11-02T10:21:03.12" style values.

    Raises:
        ValueError: If the string cannot be parsed

    Examples:
        >>> parse_iso_datetime("2024-01-01T12:00:00")
        datetime.datetime(2024, 1, 1, 12, 0, tzinfo=datetime.timezone.utc)

        >>> parse_iso_datetime("2024-01-01T14:00:00+02:00")
        datetime.datetime(2024, 1, 1, 12, 0, tzinfo=datetime.timezone.utc)
    """
    try:
        parsed = date_parser.isoparse(value)
    except (ValueError, OverflowError) as e:
        raise ValueError(f"Invalid ISO datetime: {value!r}. Error: {e}")

    return ensure_utc(parsed)


_INTERVAL_UNITS = {"s": 1, "m": 60, "h": 3600, "d": 86400, "w": 604800}


def interval_to_seconds(interval: str) -> int:
    """
    Convert a candle interval such as "5m" or "1d" to seconds.

    Raises:
        ValueError: On an unknown unit or a non-positive count

    Examples:
        >>> interval_to_seconds("15m")
        900
        >>> interval_to_seconds("1d")
        86400
    """
    text = interval.strip()
    unit = text[-1:].lower()
    if unit not in _INTERVAL_UNITS or not text[:-1].isdigit() or int(text[:-1]) <= 0:
        raise ValueError(f"Invalid interval: {interval!r}")
    return int(text[:-1]) * _INTERVAL_UNITS[unit]
