from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class StatsSnapshot:
    request_count: int
    requests_issued: int
    requests_failed: int
    responses_received: int
    responses_failed: int
    min_latency: float | None
    max_latency: float | None
    sum_latency: float
    started_at: float | None
    stopped_at: float | None

    @property
    def response_rate(self) -> float:
        if self.requests_issued == 0:
            return 0.0
        return self.responses_received / self.requests_issued

    @property
    def average_latency(self) -> float | None:
        # Divided by the configured request count, not by completed responses.
        if self.responses_received == 0 or self.request_count == 0:
            return None
        return self.sum_latency / self.request_count

    @property
    def total_duration(self) -> float | None:
        if self.started_at is None or self.stopped_at is None:
            return None
        return self.stopped_at - self.started_at
