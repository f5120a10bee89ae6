"""
Nonce Generation

Exchanges reject a private request whose nonce is not greater than the last
one they accepted for the same API key. ``NonceGenerator`` therefore never
issues the same value twice and never goes backwards, even when two calls
land on the same clock tick or the wall clock is adjusted.

One generator belongs to one credential; it is safe to share between tasks
and threads.
"""

import threading
import time
from enum import Enum
from typing import Callable, Optional, Union


class NonceStyle(str, Enum):
    """How the nonce is derived from the clock and rendered."""

    UNIX_SECONDS = "unix_seconds"
    UNIX_MILLISECONDS = "unix_milliseconds"
    UNIX_MILLISECONDS_STRING = "unix_milliseconds_string"


class NonceGenerator:
    """
    Strictly increasing nonce source.

    Args:
        style: Clock resolution and rendering
        clock: Callable returning epoch seconds as float (``time.time`` by default)
        offset_seconds: Added to the clock before conversion, for exchanges
            whose clock drifts from ours

    Example:
        >>> gen = NonceGenerator(NonceStyle.UNIX_MILLISECONDS, clock=lambda: 1700000000.0)
        >>> gen.next(), gen.next()
        (1700000000000, 1700000000001)
    """

    def __init__(
        self,
        style: NonceStyle = NonceStyle.UNIX_MILLISECONDS,
        clock: Callable[[], float] = time.time,
        offset_seconds: float = 0.0,
    ):
        self.style = NonceStyle(style)
        self._clock = clock
        self.offset_seconds = offset_seconds
        self._last: Optional[int] = None
        self._lock = threading.Lock()

    def _raw(self) -> int:
        now = self._clock() + self.offset_seconds
        if self.style == NonceStyle.UNIX_SECONDS:
            return int(now)
        return int(now * 1000)

    def next(self) -> Union[int, str]:
        """Return the next nonce, greater than every value issued before."""
        with self._lock:
            value = self._raw()
            if self._last is not None and value <= self._last:
                value = self._last + 1
            self._last = value

        if self.style == NonceStyle.UNIX_MILLISECONDS_STRING:
            return str(value)
        return value

    @property
    def last(self) -> Optional[int]:
        return self._last
