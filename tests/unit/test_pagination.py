"""
Unit Tests for the Pagination Driver

Run with:
    pytest tests/unit/test_pagination.py -v
"""

import asyncio
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from core.pagination import PageDirection, PaginationDriver, PaginationState
from core.schemas import Trade

T0 = datetime(2023, 11, 14, tzinfo=timezone.utc)


def trade(n: int) -> Trade:
    return Trade(
        exchange="test",
        symbol="BTC-LTC",
        timestamp=T0 + timedelta(minutes=n),
        id=str(n),
        price=Decimal("1"),
        amount=Decimal("1"),
        side="buy",
    )


def at(n: int) -> datetime:
    return T0 + timedelta(minutes=n)


class PageSource:
    """Answers fetches from a list of pages and records the cursors asked for."""

    def __init__(self, *pages):
        self.pages = [[trade(n) for n in page] for page in pages]
        self.cursors = []

    async def __call__(self, cursor):
        self.cursors.append(cursor)
        if not self.pages:
            return []
        return self.pages.pop(0)


class Collector:
    def __init__(self, stop_after=None):
        self.pages = []
        self.stop_after = stop_after

    def __call__(self, page):
        self.pages.append([int(record.id) for record in page])
        if self.stop_after is not None and len(self.pages) >= self.stop_after:
            return False
        return None


def backward(source, **kwargs):
    kwargs.setdefault("page_delay", 0)
    return PaginationDriver(
        fetch_page=source,
        next_cursor=lambda page: page[0].id,
        direction=PageDirection.BACKWARD,
        **kwargs,
    )


def forward(source, **kwargs):
    kwargs.setdefault("page_delay", 0)
    return PaginationDriver(
        fetch_page=source,
        next_cursor=lambda page: page[-1].timestamp,
        direction=PageDirection.FORWARD,
        **kwargs,
    )


# ============================================
# Backward Walks
# ============================================

class TestBackward:

    @pytest.mark.asyncio
    async def test_since_equal_to_newest_record(self):
        source = PageSource([5, 4, 3], [2, 1])
        collector = Collector()

        emitted = await backward(source, since=at(5)).run(collector)

        assert emitted == 1
        assert collector.pages == [[5]]
        assert source.cursors == [None]

    @pytest.mark.asyncio
    async def test_empty_page_stops_immediately(self):
        source = PageSource()
        collector = Collector()
        driver = backward(source, since=at(0))

        emitted = await driver.run(collector)

        assert emitted == 0
        assert collector.pages == []
        assert driver.pages_fetched == 1
        assert driver.state == PaginationState.DONE

    @pytest.mark.asyncio
    async def test_walks_until_since_is_crossed(self):
        source = PageSource([10, 9, 8], [7, 6, 5], [4, 3])
        collector = Collector()

        emitted = await backward(source, since=at(6)).run(collector)

        assert emitted == 5
        assert collector.pages == [[8, 9, 10], [6, 7]]
        assert source.cursors == [None, "8"]

    @pytest.mark.asyncio
    async def test_naive_since_is_taken_as_utc(self):
        source = PageSource([10, 9, 8], [7, 6, 5], [4, 3])
        collector = Collector()
        driver = backward(source, since=at(6).replace(tzinfo=None))

        emitted = await driver.run(collector)

        assert driver.since == at(6)
        assert driver.since.tzinfo == timezone.utc
        assert emitted == 5
        assert collector.pages == [[8, 9, 10], [6, 7]]

    def test_offset_since_is_converted(self):
        since = at(6).astimezone(timezone(timedelta(hours=2)))

        driver = backward(PageSource(), since=since)

        assert driver.since == at(6)
        assert driver.since.tzinfo == timezone.utc

    @pytest.mark.asyncio
    async def test_without_since_fetches_one_page(self):
        source = PageSource([3, 1, 2], [0])
        collector = Collector()

        emitted = await backward(source).run(collector)

        assert emitted == 3
        assert collector.pages == [[1, 2, 3]]
        assert len(source.cursors) == 1

    @pytest.mark.asyncio
    async def test_pages_are_ascending(self):
        source = PageSource([9, 7, 8], [4, 6, 5])
        collector = Collector()

        await backward(source, since=at(5)).run(collector)

        for page in collector.pages:
            assert page == sorted(page)

    @pytest.mark.asyncio
    async def test_callback_false_stops(self):
        source = PageSource([10, 9], [8, 7], [6, 5])
        collector = Collector(stop_after=1)

        emitted = await backward(source, since=at(0)).run(collector)

        assert emitted == 2
        assert len(source.cursors) == 1

    @pytest.mark.asyncio
    async def test_falsy_non_false_return_continues(self):
        source = PageSource([10, 9], [8, 7])
        pages = []

        def callback(page):
            pages.append(page)
            return 0

        await backward(source, since=at(7)).run(callback)

        assert len(pages) == 2

    @pytest.mark.asyncio
    async def test_async_callback(self):
        source = PageSource([4, 3], [2, 1])
        received = []

        async def callback(page):
            await asyncio.sleep(0)
            received.extend(int(record.id) for record in page)

        emitted = await backward(source, since=at(1)).run(callback)

        assert emitted == 4
        assert received == [3, 4, 1, 2]

    @pytest.mark.asyncio
    async def test_unchanged_cursor_stops(self):
        source = PageSource([10, 9], [8, 7], [6, 5])
        driver = PaginationDriver(
            fetch_page=source,
            next_cursor=lambda page: "same",
            since=at(0),
            page_delay=0,
        )

        emitted = await driver.run(Collector())

        assert emitted == 4
        assert source.cursors == [None, "same"]

    @pytest.mark.asyncio
    async def test_none_cursor_stops(self):
        source = PageSource([10, 9], [8, 7])
        driver = PaginationDriver(
            fetch_page=source, next_cursor=lambda page: None, since=at(0), page_delay=0,
        )

        assert await driver.run(Collector()) == 2
        assert len(source.cursors) == 1


# ============================================
# Forward Walks
# ============================================

class TestForward:

    @pytest.mark.asyncio
    async def test_short_page_stops(self):
        source = PageSource([1, 2, 3], [4], [5, 6, 7])
        collector = Collector()

        emitted = await forward(source, since=at(1), page_size=3).run(collector)

        assert emitted == 4
        assert collector.pages == [[1, 2, 3], [4]]
        assert source.cursors == [None, at(3)]

    @pytest.mark.asyncio
    async def test_repeated_records_are_dropped(self):
        source = PageSource([1, 2], [2, 3], [])
        collector = Collector()

        emitted = await forward(source, since=at(0)).run(collector)

        assert emitted == 3
        assert collector.pages == [[1, 2], [3]]

    @pytest.mark.asyncio
    async def test_page_of_only_seen_records_stops(self):
        source = PageSource([1, 2], [1, 2], [3])
        collector = Collector()

        await forward(source, since=at(0)).run(collector)

        assert collector.pages == [[1, 2]]
        assert len(source.cursors) == 2

    @pytest.mark.asyncio
    async def test_records_before_since_are_filtered(self):
        source = PageSource([1, 2, 3], [])
        collector = Collector()

        await forward(source, since=at(2)).run(collector)

        assert collector.pages == [[2, 3]]

    @pytest.mark.asyncio
    async def test_initial_cursor_is_used(self):
        source = PageSource([])

        await forward(source, since=at(0), initial_cursor=1234).run(Collector())

        assert source.cursors == [1234]


# ============================================
# Cancellation and Errors
# ============================================

class TestCancellation:

    @pytest.mark.asyncio
    async def test_cancel_before_first_fetch(self):
        source = PageSource([2, 1])
        cancel = asyncio.Event()
        cancel.set()

        emitted = await backward(source, since=at(0), cancel_event=cancel).run(Collector())

        assert emitted == 0
        assert source.cursors == []

    @pytest.mark.asyncio
    async def test_cancel_during_delay(self):
        source = PageSource([10, 9], [8, 7])
        cancel = asyncio.Event()

        def callback(page):
            cancel.set()

        driver = backward(source, since=at(0), cancel_event=cancel, page_delay=30)
        emitted = await asyncio.wait_for(driver.run(callback), timeout=5)

        assert emitted == 2
        assert len(source.cursors) == 1
        assert driver.cancelled

    @pytest.mark.asyncio
    async def test_cancel_during_slow_fetch(self):
        cancel = asyncio.Event()
        aborted = asyncio.Event()
        collector = Collector()

        async def slow_fetch(cursor):
            try:
                await asyncio.sleep(30)
            except asyncio.CancelledError:
                aborted.set()
                raise
            return [trade(2), trade(1)]

        async def cancel_soon():
            await asyncio.sleep(0.05)
            cancel.set()

        driver = backward(slow_fetch, since=at(0), cancel_event=cancel)
        canceller = asyncio.ensure_future(cancel_soon())
        emitted = await asyncio.wait_for(driver.run(collector), timeout=5)
        await canceller

        assert emitted == 0
        assert collector.pages == []
        assert aborted.is_set()
        assert driver.pages_fetched == 0
        assert driver.state == PaginationState.DONE

    @pytest.mark.asyncio
    async def test_page_finished_with_cancel_is_not_emitted(self):
        cancel = asyncio.Event()
        collector = Collector()

        async def fetch(cursor):
            cancel.set()
            return [trade(2), trade(1)]

        emitted = await backward(fetch, since=at(0), cancel_event=cancel).run(collector)

        assert emitted == 0
        assert collector.pages == []

    @pytest.mark.asyncio
    async def test_fetch_error_keeps_emitted_pages(self):
        calls = []

        async def fetch(cursor):
            calls.append(cursor)
            if len(calls) > 1:
                raise RuntimeError("connection reset")
            return [trade(9), trade(8)]

        collector = Collector()
        driver = backward(fetch, since=at(0))

        with pytest.raises(RuntimeError):
            await driver.run(collector)

        assert collector.pages == [[8, 9]]

    @pytest.mark.asyncio
    async def test_callback_error_propagates(self):
        source = PageSource([2, 1])

        def callback(page):
            raise ValueError("storage full")

        with pytest.raises(ValueError):
            await backward(source, since=at(0)).run(callback)
