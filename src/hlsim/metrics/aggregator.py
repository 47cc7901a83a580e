from __future__ import annotations

import threading
import time
from typing import Callable

from hlsim.config import RunConfig
from hlsim.loadgen.events import (
    AfterRequestIssued,
    AfterResponse,
    AfterStop,
    BeforeStart,
    RequestFailed,
    ResponseFailed,
    RunObserver,
)
from hlsim.metrics.models import StatsSnapshot


class StatsAggregator(RunObserver):
    """Run-wide counters and latency extrema, safe for concurrent callers.

    A single lock guards every field so the min/max/sum triple is always
    updated and read as one group.
    """

    def __init__(self, config: RunConfig, clock: Callable[[], float] = time.perf_counter) -> None:
        self.config = config
        self._clock = clock
        self._lock = threading.Lock()
        self._requests_issued = 0
        self._requests_failed = 0
        self._responses_received = 0
        self._responses_failed = 0
        self._min_latency: float | None = None
        self._max_latency: float | None = None
        self._sum_latency = 0.0
        self._started_at: float | None = None
        self._stopped_at: float | None = None

    def record_run_start(self, t: float) -> None:
        with self._lock:
            if self._started_at is None:
                self._started_at = t

    def record_request_issued(self, index: int, t: float) -> None:
        with self._lock:
            self._requests_issued += 1

    def record_request_failed(self, index: int, t: float) -> None:
        with self._lock:
            self._requests_failed += 1

    def record_response_received(self, status: int, index: int, start: float, end: float) -> None:
        latency = end - start
        with self._lock:
            self._responses_received += 1
            if self._min_latency is None or latency < self._min_latency:
                self._min_latency = latency
            if self._max_latency is None or latency > self._max_latency:
                self._max_latency = latency
            self._sum_latency += latency

    def record_response_failed(self, index: int, start: float, end: float) -> None:
        with self._lock:
            self._responses_failed += 1

    def record_run_stop(self, t: float) -> None:
        with self._lock:
            if self._stopped_at is None:
                self._stopped_at = t

    def snapshot(self) -> StatsSnapshot:
        with self._lock:
            return StatsSnapshot(
                request_count=self.config.request_count,
                requests_issued=self._requests_issued,
                requests_failed=self._requests_failed,
                responses_received=self._responses_received,
                responses_failed=self._responses_failed,
                min_latency=self._min_latency,
                max_latency=self._max_latency,
                sum_latency=self._sum_latency,
                started_at=self._started_at,
                stopped_at=self._stopped_at,
            )

    @property
    def requests_issued(self) -> int:
        with self._lock:
            return self._requests_issued

    @property
    def requests_failed(self) -> int:
        with self._lock:
            return self._requests_failed

    @property
    def responses_received(self) -> int:
        with self._lock:
            return self._responses_received

    @property
    def responses_failed(self) -> int:
        with self._lock:
            return self._responses_failed

    @property
    def min_latency(self) -> float | None:
        with self._lock:
            return self._min_latency

    @property
    def max_latency(self) -> float | None:
        with self._lock:
            return self._max_latency

    @property
    def sum_latency(self) -> float:
        with self._lock:
            return self._sum_latency

    @property
    def response_rate(self) -> float:
        return self.snapshot().response_rate

    @property
    def average_latency(self) -> float | None:
        return self.snapshot().average_latency

    @property
    def total_duration(self) -> float | None:
        return self.snapshot().total_duration

    @property
    def elapsed_seconds(self) -> float:
        with self._lock:
            started_at = self._started_at
        if started_at is None:
            return 0.0
        return self._clock() - started_at

    # RunObserver hooks

    def before_start(self, event: BeforeStart) -> None:
        self.record_run_start(event.time)

    def after_request(self, event: AfterRequestIssued) -> None:
        self.record_request_issued(event.index, event.time)

    def request_failed(self, event: RequestFailed) -> None:
        self.record_request_failed(event.index, event.time)

    def after_response(self, event: AfterResponse) -> None:
        self.record_response_received(event.status_code, event.index, event.start_time, event.end_time)

    def response_failed(self, event: ResponseFailed) -> None:
        self.record_response_failed(event.index, event.start_time, event.end_time)

    def after_stop(self, event: AfterStop) -> None:
        self.record_run_stop(event.time)
