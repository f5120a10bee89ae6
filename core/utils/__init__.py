"""
Core Utilities Package

Modules:
    - time: Timestamp conversion and normalization utilities
"""

from core.utils.time import interval_to_seconds, parse_iso_datetime, to_utc_datetime

__all__ = ["interval_to_seconds", "parse_iso_datetime", "to_utc_datetime"]
