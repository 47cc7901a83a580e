"""Lifecycle events emitted by the dispatcher and the observer interface.

Every event knows which observer handler receives it (``dispatch``), so an
observer only overrides the handlers it cares about and inherits no-op
defaults for the rest.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable


class ErrorType(str, Enum):
    TIMEOUT = "timeout"
    CONNECT = "connect"
    READ = "read"
    OTHER = "other"


class RunObserver:
    def before_start(self, event: BeforeStart) -> None:
        pass

    def before_request(self, event: BeforeRequest) -> None:
        pass

    def after_request(self, event: AfterRequestIssued) -> None:
        pass

    def request_failed(self, event: RequestFailed) -> None:
        pass

    def after_response(self, event: AfterResponse) -> None:
        pass

    def response_failed(self, event: ResponseFailed) -> None:
        pass

    def after_stop(self, event: AfterStop) -> None:
        pass


@dataclass(frozen=True, slots=True)
class BeforeStart:
    time: float

    def dispatch(self, observer: RunObserver) -> None:
        observer.before_start(self)


@dataclass(frozen=True, slots=True)
class BeforeRequest:
    index: int
    time: float

    def dispatch(self, observer: RunObserver) -> None:
        observer.before_request(self)


@dataclass(frozen=True, slots=True)
class AfterRequestIssued:
    index: int
    time: float

    def dispatch(self, observer: RunObserver) -> None:
        observer.after_request(self)


@dataclass(frozen=True, slots=True)
class RequestFailed:
    index: int
    time: float

    def dispatch(self, observer: RunObserver) -> None:
        observer.request_failed(self)


@dataclass(frozen=True, slots=True)
class AfterResponse:
    status_code: int
    index: int
    start_time: float
    end_time: float

    @property
    def latency(self) -> float:
        return self.end_time - self.start_time

    def dispatch(self, observer: RunObserver) -> None:
        observer.after_response(self)


@dataclass(frozen=True, slots=True)
class ResponseFailed:
    index: int
    start_time: float
    end_time: float
    error_type: ErrorType = ErrorType.OTHER

    def dispatch(self, observer: RunObserver) -> None:
        observer.response_failed(self)


@dataclass(frozen=True, slots=True)
class AfterStop:
    time: float

    def dispatch(self, observer: RunObserver) -> None:
        observer.after_stop(self)


LifecycleEvent = (
    BeforeStart
    | BeforeRequest
    | AfterRequestIssued
    | RequestFailed
    | AfterResponse
    | ResponseFailed
    | AfterStop
)


def notify(observers: Iterable[RunObserver], event: LifecycleEvent) -> None:
    # Synchronous fan-out in registration order.
    for observer in observers:
        event.dispatch(observer)
