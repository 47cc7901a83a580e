from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor

import pytest
from hypothesis import given, strategies as st

from hlsim.config import RunConfig
from hlsim.loadgen.events import AfterResponse, AfterStop, BeforeStart, notify
from hlsim.metrics import StatsAggregator


def _config(rate: float = 10, duration: float = 1) -> RunConfig:
    return RunConfig.build(rate=rate, duration_sec=duration, uri="http://127.0.0.1:8080/")


def test_fresh_aggregator_is_empty() -> None:
    stats = StatsAggregator(_config())
    snap = stats.snapshot()
    assert snap.requests_issued == snap.requests_failed == 0
    assert snap.responses_received == snap.responses_failed == 0
    assert snap.min_latency is None and snap.max_latency is None
    assert stats.response_rate == 0.0
    assert stats.average_latency is None
    assert stats.total_duration is None
    assert stats.elapsed_seconds == 0.0


def test_response_rate_without_issued_requests_is_defined() -> None:
    stats = StatsAggregator(_config())
    for i in range(1, 11):
        stats.record_request_failed(i, 0.0)
    assert stats.response_rate == 0.0


def test_latency_extrema_and_average_use_configured_count() -> None:
    stats = StatsAggregator(_config(rate=4, duration=1))
    for i, latency in enumerate([0.5, 0.25, 1.0], start=1):
        stats.record_request_issued(i, 0.0)
        stats.record_response_received(200, i, 10.0, 10.0 + latency)
    stats.record_request_issued(4, 0.0)
    stats.record_response_failed(4, 10.0, 12.0)

    assert stats.min_latency == 0.25
    assert stats.max_latency == 1.0
    assert stats.sum_latency == 1.75
    # Four configured requests, three completed.
    assert stats.average_latency == pytest.approx(1.75 / 4)
    assert stats.response_rate == 0.75
    assert stats.responses_failed == 1


def test_failed_responses_do_not_touch_latency() -> None:
    stats = StatsAggregator(_config())
    stats.record_request_issued(1, 0.0)
    stats.record_response_failed(1, 0.0, 30.0)
    assert stats.min_latency is None
    assert stats.max_latency is None
    assert stats.sum_latency == 0.0


def test_start_and_stop_are_set_once() -> None:
    stats = StatsAggregator(_config())
    stats.record_run_start(100.0)
    stats.record_run_start(200.0)
    assert stats.total_duration is None
    stats.record_run_stop(104.5)
    stats.record_run_stop(300.0)
    assert stats.total_duration == 4.5


def test_elapsed_uses_clock() -> None:
    now = [50.0]
    stats = StatsAggregator(_config(), clock=lambda: now[0])
    notify([stats], BeforeStart(42.0))
    assert stats.elapsed_seconds == 8.0
    now[0] = 60.0
    assert stats.elapsed_seconds == 18.0


def test_observer_hooks_feed_counters() -> None:
    stats = StatsAggregator(_config())
    notify([stats], BeforeStart(1.0))
    notify([stats], AfterResponse(503, 1, 1.0, 1.5))
    notify([stats], AfterStop(3.0))
    assert stats.responses_received == 1
    assert stats.max_latency == 0.5
    assert stats.total_duration == 2.0


def test_read_accessors_are_idempotent() -> None:
    stats = StatsAggregator(_config())
    stats.record_run_start(0.0)
    stats.record_request_issued(1, 0.0)
    stats.record_response_received(200, 1, 0.0, 0.125)
    stats.record_run_stop(1.0)
    first = (stats.response_rate, stats.average_latency, stats.total_duration, stats.snapshot())
    second = (stats.response_rate, stats.average_latency, stats.total_duration, stats.snapshot())
    assert first == second


def test_concurrent_recording_loses_no_updates() -> None:
    n = 2000
    stats = StatsAggregator(_config(rate=n, duration=1))
    # Multiples of 1/4 add up exactly in any order.
    latencies = [k * 0.25 for k in range(1, n + 1)]

    def record(k: int) -> None:
        stats.record_request_issued(k, 0.0)
        stats.record_response_received(200, k, 0.0, latencies[k - 1])

    with ThreadPoolExecutor(max_workers=16) as pool:
        list(pool.map(record, range(1, n + 1)))

    snap = stats.snapshot()
    assert snap.responses_received == n
    assert snap.requests_issued == n
    assert snap.sum_latency == sum(latencies)
    assert snap.min_latency == 0.25
    assert snap.max_latency == n * 0.25


@given(st.lists(st.floats(min_value=0.0, max_value=120.0), min_size=1, max_size=50))
def test_average_between_extrema_when_every_response_arrives(latencies: list[float]) -> None:
    stats = StatsAggregator(_config(rate=len(latencies), duration=1))
    for i, latency in enumerate(latencies, start=1):
        stats.record_request_issued(i, 0.0)
        stats.record_response_received(200, i, 0.0, latency)
    snap = stats.snapshot()
    assert snap.average_latency is not None
    assert snap.min_latency <= snap.average_latency + 1e-9
    assert snap.average_latency <= snap.max_latency + 1e-9
