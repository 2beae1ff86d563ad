"""Tests for the named-operation timing monitor."""

from __future__ import annotations

import logging
import threading

import pytest

from blog_api.monitoring.timing import TimingMonitor

from tests.conftest import FakeClock

LOGGER = "blog_api.monitoring.timing"


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(now=50.0)


@pytest.fixture
def monitor(clock: FakeClock) -> TimingMonitor:
    return TimingMonitor(slow_threshold_ms=100.0, clock=clock)


class TestStartStop:
    """Tests for start/stop pairs."""

    def test_stop_returns_elapsed_milliseconds(self, monitor: TimingMonitor, clock: FakeClock):
        monitor.start("load-posts")
        clock.advance(0.25)

        assert monitor.stop("load-posts") == pytest.approx(250.0)
        assert monitor.active_count == 0

    def test_stop_without_start_returns_none(self, monitor: TimingMonitor, caplog):
        with caplog.at_level(logging.WARNING, logger=LOGGER):
            assert monitor.stop("never-started") is None
        assert "No timing started for operation: never-started" in caplog.text

    def test_second_stop_returns_none(self, monitor: TimingMonitor):
        monitor.start("op")
        assert monitor.stop("op") is not None
        assert monitor.stop("op") is None

    def test_restart_overwrites_start_time(self, monitor: TimingMonitor, clock: FakeClock):
        monitor.start("op")
        clock.advance(10)
        monitor.start("op")
        clock.advance(0.005)

        assert monitor.stop("op") == pytest.approx(5.0)
        assert monitor.active_count == 0

    def test_operations_are_tracked_independently(
        self, monitor: TimingMonitor, clock: FakeClock
    ):
        monitor.start("a")
        clock.advance(0.01)
        monitor.start("b")
        assert monitor.active_operations() == ("a", "b")

        clock.advance(0.01)
        assert monitor.stop("a") == pytest.approx(20.0)
        assert monitor.stop("b") == pytest.approx(10.0)


class TestSlowOperationLogging:
    """Tests for slow threshold reporting."""

    def test_slow_operation_logs_warning(self, monitor: TimingMonitor, clock: FakeClock, caplog):
        monitor.start("query")
        clock.advance(0.15)

        with caplog.at_level(logging.DEBUG, logger=LOGGER):
            monitor.stop("query", table="posts")

        record = caplog.records[-1]
        assert record.levelno == logging.WARNING
        assert "Slow operation detected: query took 150.00ms" in record.getMessage()
        assert record.details == {"table": "posts"}

    def test_fast_operation_logs_debug(self, monitor: TimingMonitor, clock: FakeClock, caplog):
        monitor.start("query")
        clock.advance(0.05)

        with caplog.at_level(logging.DEBUG, logger=LOGGER):
            monitor.stop("query")

        assert caplog.records[-1].levelno == logging.DEBUG

    def test_threshold_override(self, monitor: TimingMonitor, clock: FakeClock, caplog):
        monitor.start("request")
        clock.advance(0.5)

        with caplog.at_level(logging.DEBUG, logger=LOGGER):
            monitor.stop("request", slow_threshold_ms=1000.0)

        assert caplog.records[-1].levelno == logging.DEBUG

    def test_duration_equal_to_threshold_is_not_slow(
        self, monitor: TimingMonitor, clock: FakeClock, caplog
    ):
        monitor.start("op")
        clock.advance(0.125)

        with caplog.at_level(logging.DEBUG, logger=LOGGER):
            monitor.stop("op", slow_threshold_ms=125.0)

        assert caplog.records[-1].levelno == logging.DEBUG


class TestOperationTimer:
    """Tests for caller-owned timers."""

    def test_stop_returns_elapsed_milliseconds(self, monitor: TimingMonitor, clock: FakeClock):
        timer = monitor.begin("render")
        assert monitor.active_count == 1

        clock.advance(0.04)

        assert timer.stop() == pytest.approx(40.0)
        assert timer.stopped is True
        assert monitor.active_count == 0

    def test_second_stop_returns_none_and_warns(self, monitor: TimingMonitor, caplog):
        timer = monitor.begin("render")
        timer.stop()

        with caplog.at_level(logging.WARNING, logger=LOGGER):
            assert timer.stop() is None

        assert "No timing started for operation: render" in caplog.text
        assert monitor.active_count == 0

    def test_same_label_does_not_collide(self, monitor: TimingMonitor, clock: FakeClock):
        first = monitor.begin("request-GET-/")
        clock.advance(0.01)
        second = monitor.begin("request-GET-/")
        clock.advance(0.01)

        assert first.stop() == pytest.approx(20.0)
        assert second.stop() == pytest.approx(10.0)

    def test_not_listed_in_registry(self, monitor: TimingMonitor):
        monitor.begin("scoped")
        assert monitor.active_operations() == ()
        assert monitor.stop("scoped") is None


class TestTimedHelpers:
    """Tests for the context manager and awaitable helper."""

    def test_timed_stops_on_success(self, monitor: TimingMonitor):
        with monitor.timed("block"):
            assert monitor.active_count == 1
        assert monitor.active_count == 0

    def test_timed_stops_on_error(self, monitor: TimingMonitor, clock: FakeClock, caplog):
        with (
            caplog.at_level(logging.DEBUG, logger=LOGGER),
            pytest.raises(ValueError, match="bad"),
            monitor.timed("block"),
        ):
            clock.advance(0.2)
            raise ValueError("bad")

        assert monitor.active_count == 0
        assert caplog.records[-1].details == {"error": "ValueError"}

    @pytest.mark.asyncio
    async def test_time_call_returns_result(self, monitor: TimingMonitor):
        async def load() -> str:
            return "loaded"

        assert await monitor.time_call("load", load) == "loaded"
        assert monitor.active_count == 0

    @pytest.mark.asyncio
    async def test_time_call_propagates_errors(self, monitor: TimingMonitor):
        async def fail() -> None:
            raise LookupError("missing")

        with pytest.raises(LookupError):
            await monitor.time_call("fail", fail)
        assert monitor.active_count == 0


class TestConcurrency:
    """Tests for parallel use from many threads."""

    def test_parallel_start_stop_leaves_no_entries(self):
        monitor = TimingMonitor()

        def worker(n: int) -> None:
            for i in range(200):
                op = f"worker-{n}-{i}"
                monitor.start(op)
                assert monitor.stop(op) is not None

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert monitor.active_count == 0
