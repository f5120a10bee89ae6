"""
Pagination Driver

Walks an exchange's trade history page by page and hands each page to a
caller callback in ascending timestamp order.

State machine:

    FETCHING   -> a page is requested with the current cursor
    FILTERING  -> records are sorted, de-duplicated and cut at ``since``;
                  the surviving records are emitted to the callback
    CONTINUING -> the cursor advances, the driver pauses, then fetches again
    DONE       -> empty page, bound crossed, short page (forward walks),
                  cursor did not move, callback returned False, or cancelled

Errors from ``fetch_page`` or the callback abort the walk. Pages already
emitted stay emitted.

Usage:
    driver = PaginationDriver(
        fetch_page=lambda cursor: client.fetch_trades(symbol, before=cursor),
        next_cursor=lambda page: page[0].id,
        since=since,
        direction=PageDirection.BACKWARD,
        page_delay=1.0,
    )
    emitted = await driver.run(callback)
"""

import asyncio
import inspect
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable, Hashable, List, Optional, Sequence

from core.logging import get_logger
from core.schemas import Trade
from core.utils.time import ensure_utc

logger = get_logger(__name__)

PageCallback = Callable[[List[Trade]], Any]


class PaginationState(str, Enum):
    FETCHING = "Fetching"
    FILTERING = "Filtering"
    CONTINUING = "Continuing"
    DONE = "Done"


class PageDirection(str, Enum):
    """
    BACKWARD: each page is older than the last (newest first), stop once the
        oldest record is at or before ``since``
    FORWARD: each page is newer than the last, starting at ``since``;
        stop on an empty or short page
    """

    BACKWARD = "backward"
    FORWARD = "forward"


class PaginationDriver:
    """
    Args:
        fetch_page: Coroutine ``fetch_page(cursor) -> records``; the first
            call gets ``initial_cursor``
        next_cursor: Computes the next cursor from the ascending-sorted raw
            page; returning None ends the walk
        since: Inclusive lower bound on record timestamps, naive values taken
            as UTC. Without it only one page is fetched.
        direction: Walk direction, see PageDirection
        page_delay: Seconds to pause between fetches
        cancel_event: Set it to stop promptly; a fetch in flight is abandoned
            and its page is never emitted
        page_size: Expected full page size (forward walks stop on shorter pages)
        initial_cursor: Cursor for the first fetch
        record_key: Identity used to drop records repeated across pages
    """

    def __init__(
        self,
        fetch_page: Callable[[Any], Awaitable[Sequence[Trade]]],
        next_cursor: Callable[[List[Trade]], Any],
        since: Optional[datetime] = None,
        direction: PageDirection = PageDirection.BACKWARD,
        page_delay: float = 1.0,
        cancel_event: Optional[asyncio.Event] = None,
        page_size: Optional[int] = None,
        initial_cursor: Any = None,
        record_key: Callable[[Trade], Hashable] = lambda record: record.id,
    ):
        self.fetch_page = fetch_page
        self.next_cursor = next_cursor
        self.since = ensure_utc(since) if since is not None else None
        self.direction = PageDirection(direction)
        self.page_delay = page_delay
        self.cancel_event = cancel_event or asyncio.Event()
        self.page_size = page_size
        self.initial_cursor = initial_cursor
        self.record_key = record_key

        self.state = PaginationState.DONE
        self.pages_fetched = 0

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    async def run(self, callback: PageCallback) -> int:
        """
        Drive the walk until done.

        ``callback`` may be a function or a coroutine function. It receives
        each non-empty page in ascending timestamp order; returning ``False``
        (not merely falsy) stops the walk.

        Returns:
            Number of records emitted
        """
        cursor = self.initial_cursor
        seen: set = set()
        emitted = 0
        self.pages_fetched = 0

        while True:
            if self.cancelled:
                logger.debug("Pagination cancelled before fetch")
                break

            self.state = PaginationState.FETCHING
            page = await self._fetch(cursor)
            if page is None:
                logger.debug("Pagination cancelled during fetch")
                break
            self.pages_fetched += 1

            self.state = PaginationState.FILTERING
            if not page:
                break

            page.sort(key=lambda record: record.timestamp)
            fresh = [record for record in page if self.record_key(record) not in seen]
            seen = {self.record_key(record) for record in page}

            batch = fresh if self.since is None else [r for r in fresh if r.timestamp >= self.since]
            if batch:
                emitted += len(batch)
                if await self._emit(callback, batch) is False:
                    logger.debug("Pagination stopped by callback")
                    break

            if self._finished(page, fresh):
                break

            new_cursor = self.next_cursor(page)
            if new_cursor is None or new_cursor == cursor:
                break
            cursor = new_cursor

            self.state = PaginationState.CONTINUING
            if await self._pause():
                logger.debug("Pagination cancelled during delay")
                break

        self.state = PaginationState.DONE
        return emitted

    def _finished(self, page: List[Trade], fresh: List[Trade]) -> bool:
        if self.since is None:
            return True
        if not fresh:
            # the exchange returned only records we already saw
            return True
        if self.direction == PageDirection.BACKWARD:
            return page[0].timestamp <= self.since
        return self.page_size is not None and len(page) < self.page_size

    async def _fetch(self, cursor: Any) -> Optional[List[Trade]]:
        """Fetch one page, racing the cancel signal. Returns None if cancelled."""
        fetch = asyncio.ensure_future(self.fetch_page(cursor))
        cancelled = asyncio.ensure_future(self.cancel_event.wait())
        try:
            await asyncio.wait({fetch, cancelled}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            cancelled.cancel()
            if not fetch.done():
                fetch.cancel()
                await asyncio.gather(fetch, return_exceptions=True)

        if self.cancelled:
            if not fetch.cancelled():
                # page arrived alongside the cancel; drop it unseen
                fetch.exception()
            return None
        return list(fetch.result())

    async def _emit(self, callback: PageCallback, batch: List[Trade]) -> Any:
        result = callback(batch)
        if inspect.isawaitable(result):
            result = await result
        return result

    async def _pause(self) -> bool:
        """Sleep ``page_delay`` seconds; return True if cancelled meanwhile."""
        if self.page_delay <= 0:
            return self.cancelled
        try:
            await asyncio.wait_for(self.cancel_event.wait(), timeout=self.page_delay)
        except asyncio.TimeoutError:
            return False
        return True
