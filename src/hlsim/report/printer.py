from __future__ import annotations

import sys
from datetime import datetime
from typing import TextIO

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
from hlsim.metrics import StatsAggregator


class ProgressPrinter(RunObserver):
    """Console rendering of a run. Subscribe it after the aggregator."""

    def __init__(self, config: RunConfig, stats: StatsAggregator, out: TextIO | None = None) -> None:
        self.config = config
        self.stats = stats
        self.out = out or sys.stdout
        self._header_used = False
        self._request_failure_seen = False
        self._response_failure_seen = False

    def progress(self) -> str:
        line = ""
        if not self._header_used:
            line += "   Res/Req    = Completion, Elapsed(s)\n"
            self._header_used = True
        snap = self.stats.snapshot()
        line += (
            f"{snap.responses_received:>6}/{snap.requests_issued:<6} = "
            f"{snap.response_rate:5.3f}, {int(self.stats.elapsed_seconds):>6} "
        )
        return line

    def before_start(self, event: BeforeStart) -> None:
        target = self.config.target
        self._write(
            f"{self.config.request_count:>5} : requests to run",
            f"{self.config.inter_request_delay:.3f} : delay between requests, seconds",
            f"{self.config.rate:>5g} : request rate, per second",
            f"{self.config.duration_sec:>5g} : duration, seconds",
            "",
            f"Uri : {target.raw}",
            f"Host: {target.host}",
            f"Port: {target.port}",
            f"Path: {target.path}",
            "",
            f"Started: {datetime.now().astimezone().isoformat(timespec='seconds')}",
            "",
            "Please wait, this may take a while...",
        )

    def after_request(self, event: AfterRequestIssued) -> None:
        if self._due(self.stats.requests_issued):
            self._write(self.progress())

    def after_response(self, event: AfterResponse) -> None:
        if event.status_code != 200:
            self._write(f"[{event.status_code}] for response #{event.index}")
        if self._due(self.stats.responses_received):
            self._write(self.progress())

    def request_failed(self, event: RequestFailed) -> None:
        if not self._request_failure_seen:
            self._request_failure_seen = True
            self._write(f"First request {event.index} - failed, at {int(self.stats.elapsed_seconds)}")

    def response_failed(self, event: ResponseFailed) -> None:
        if not self._response_failure_seen:
            self._response_failure_seen = True
            self._write(f"First response {event.index} - failed, at {int(self.stats.elapsed_seconds)}")

    def after_stop(self, event: AfterStop) -> None:
        snap = self.stats.snapshot()
        self._write(
            "",
            self.progress(),
            "",
            f"Requests  failed: {snap.requests_failed}",
            f"Responses failed: {snap.responses_failed}",
            "",
            "Response timings(s):",
            f"min: {_seconds(snap.min_latency)}",
            f"avg: {_seconds(snap.average_latency)}",
            f"max: {_seconds(snap.max_latency)}",
            "",
            f"Completed in {_seconds(snap.total_duration)}s",
        )

    def _due(self, count: int) -> bool:
        every = self.config.verbose_every
        return bool(every) and count > 0 and count % every == 0

    def _write(self, *lines: str) -> None:
        for line in lines:
            print(line, file=self.out)
        self.out.flush()


def _seconds(value: float | None) -> str:
    if value is None:
        return "    n/a"
    return f"{value:5.5f}"
