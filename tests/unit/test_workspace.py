"""Tests for the fetch workspace."""

import threading

from ratingtracker.fetch.workspace import FetchWorkspace
from ratingtracker.models import Stock


def _stocks(count: int) -> list[Stock]:
    return [
        Stock(ticker=f"T{i:03d}", name=f"Stock {i}", isin=f"US{i:010d}", country="US")
        for i in range(count)
    ]


class TestFetchWorkspace:
    def test_pop_in_queue_order(self):
        workspace = FetchWorkspace(_stocks(3))
        assert [workspace.pop().ticker for _ in range(3)] == ["T000", "T001", "T002"]
        assert workspace.pop() is None

    def test_partitions(self):
        workspace = FetchWorkspace(_stocks(3))
        workspace.succeed(workspace.pop())
        workspace.fail(workspace.pop())
        workspace.skip(workspace.pop())

        assert [s.ticker for s in workspace.successful] == ["T000"]
        assert [s.ticker for s in workspace.failed] == ["T001"]
        assert [s.ticker for s in workspace.skipped] == ["T002"]
        assert workspace.queued == []

    def test_breaker_trips_once_at_threshold(self):
        workspace = FetchWorkspace(_stocks(10), failure_threshold=3)

        trips = [workspace.fail(workspace.pop()) for _ in range(3)]

        assert trips == [False, False, True]
        assert workspace.tripped
        assert len(workspace.failed) == 3
        assert len(workspace.skipped) == 7
        assert workspace.queued == []
        assert workspace.pop() is None

    def test_failures_after_trip_do_not_trip_again(self):
        workspace = FetchWorkspace(_stocks(5), failure_threshold=1)
        first, second = workspace.pop(), workspace.pop()

        assert workspace.fail(first) is True
        assert workspace.fail(second) is False
        assert len(workspace.failed) == 2

    def test_concurrent_pops_hand_out_each_stock_once(self):
        workspace = FetchWorkspace(_stocks(500))
        seen: list[str] = []
        seen_lock = threading.Lock()

        def worker():
            while True:
                stock = workspace.pop()
                if stock is None:
                    return
                with seen_lock:
                    seen.append(stock.ticker)
                workspace.succeed(stock)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert sorted(seen) == [f"T{i:03d}" for i in range(500)]
        assert len(workspace.successful) == 500

    def test_threshold_reached_with_empty_queue_does_not_trip(self):
        workspace = FetchWorkspace(_stocks(3), failure_threshold=3)

        trips = [workspace.fail(workspace.pop()) for _ in range(3)]

        assert trips == [False, False, False]
        assert not workspace.tripped
        assert len(workspace.failed) == 3
        assert workspace.skipped == []
