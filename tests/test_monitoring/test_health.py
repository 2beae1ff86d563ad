"""Tests for request statistics and the performance monitor."""

from __future__ import annotations

import threading
from types import SimpleNamespace
from unittest.mock import MagicMock

import psutil
import pytest

from blog_api.config import MonitoringConfig
from blog_api.monitoring.health import HealthMetrics, PerformanceMonitor, RequestStats


def _process() -> MagicMock:
    process = MagicMock(spec=psutil.Process)
    process.memory_info.return_value = SimpleNamespace(rss=100, vms=1000, shared=7)
    process.create_time.return_value = 0.0
    return process


class TestRequestStats:
    """Tests for the running mean."""

    def test_empty(self):
        assert RequestStats().snapshot() == (0, 0.0)

    def test_running_mean(self):
        stats = RequestStats()
        for duration in (10.0, 20.0, 30.0, 40.0):
            stats.record(duration)

        count, average = stats.snapshot()
        assert count == 4
        assert average == pytest.approx(25.0)

    def test_concurrent_records_are_all_counted(self):
        stats = RequestStats()

        def worker() -> None:
            for _ in range(1000):
                stats.record(12.5)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert stats.snapshot() == (8000, 12.5)


class TestHealthMetrics:
    """Tests for the metrics payload."""

    def test_to_dict_without_sample(self):
        metrics = HealthMetrics(
            request_count=3, average_response_time_ms=1.23456, active_operations=1, sample=None
        )
        assert metrics.to_dict() == {
            "requestCount": 3,
            "averageResponseTimeMs": 1.235,
            "activeOperations": 1,
            "uptimeSeconds": None,
            "memory": None,
        }


class TestPerformanceMonitor:
    """Tests for the composed monitor."""

    def test_snapshot_samples_on_demand(self):
        monitor = PerformanceMonitor(MonitoringConfig(sampling_enabled=False), process=_process())
        assert monitor.sampler.latest is None

        metrics = monitor.get_health_snapshot()

        assert metrics.sample is not None
        assert metrics.sample.rss == 100
        assert metrics.to_dict()["memory"]["external"] == 7

    def test_snapshot_reuses_latest_sample(self):
        monitor = PerformanceMonitor(MonitoringConfig(sampling_enabled=False), process=_process())
        first = monitor.get_health_snapshot().sample

        assert monitor.get_health_snapshot().sample is first

    def test_snapshot_includes_request_stats(self):
        monitor = PerformanceMonitor(MonitoringConfig(sampling_enabled=False), process=_process())
        monitor.record_request(100.0)
        monitor.record_request(300.0)

        metrics = monitor.get_health_snapshot()

        assert metrics.request_count == 2
        assert metrics.average_response_time_ms == pytest.approx(200.0)

    def test_active_operations_reported(self):
        monitor = PerformanceMonitor(MonitoringConfig(sampling_enabled=False), process=_process())
        monitor.timing.start("in-flight")

        assert monitor.get_health_snapshot().active_operations == 1
        assert monitor.sampler.sample_now().active_operations == 1

    def test_sampling_failure_yields_no_sample(self):
        process = _process()
        process.memory_info.side_effect = psutil.NoSuchProcess(pid=1)
        monitor = PerformanceMonitor(MonitoringConfig(sampling_enabled=False), process=process)

        assert monitor.get_health_snapshot().sample is None

    @pytest.mark.asyncio
    async def test_start_and_shutdown(self):
        monitor = PerformanceMonitor(MonitoringConfig(sample_interval_ms=10), process=_process())

        await monitor.start()
        assert monitor.sampler.latest is not None

        await monitor.shutdown()
        await monitor.shutdown()

    @pytest.mark.asyncio
    async def test_start_with_sampling_disabled_takes_no_sample(self):
        monitor = PerformanceMonitor(MonitoringConfig(sampling_enabled=False), process=_process())

        await monitor.start()

        assert monitor.sampler.latest is None
        await monitor.shutdown()
