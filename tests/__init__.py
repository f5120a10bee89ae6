"""
Test Suite

Structure:
- tests/unit/: Offline tests for signing, normalization, pagination, the
  exchange clients and the HTTP gateway. Network calls go through a recording
  fake transport defined in tests/unit/conftest.py.

Uses pytest with pytest-asyncio for testing async functionality.
"""
