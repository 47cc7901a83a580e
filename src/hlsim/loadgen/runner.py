from __future__ import annotations

import asyncio
import contextlib
import time
from enum import Enum
from typing import Awaitable, Callable

import httpx
import structlog

from hlsim.config import RunConfig, TargetURI
from hlsim.errors import InterruptedRun
from hlsim.loadgen.client import Connector, TcpConnector, resolve_target, send_request
from hlsim.loadgen.events import (
    AfterRequestIssued,
    AfterResponse,
    AfterStop,
    BeforeRequest,
    BeforeStart,
    LifecycleEvent,
    RequestFailed,
    ResponseFailed,
    RunObserver,
    notify,
)

logger = structlog.get_logger()

Resolver = Callable[[TargetURI], Awaitable[None]]


class DispatcherState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    DRAINING = "draining"
    STOPPED = "stopped"
    CANCELLED = "cancelled"


class Dispatcher:
    """Issues ``config.request_count`` GET requests at ``config.rate`` per second.

    Each issued request runs as its own task with a private client. Every
    lifecycle transition is delivered synchronously to the subscribed
    observers in subscription order.
    """

    def __init__(
        self,
        config: RunConfig,
        connector: Connector | None = None,
        resolver: Resolver = resolve_target,
    ) -> None:
        self.config = config
        self.state = DispatcherState.IDLE
        self._connector = connector or TcpConnector(
            connect_timeout_sec=config.connect_timeout_sec,
            response_timeout_sec=config.response_timeout_sec,
        )
        self._resolver = resolver
        self._observers: list[RunObserver] = []
        self._tasks: list[asyncio.Task[None]] = []
        # Clients whose task has not started yet; closed here if it never does.
        self._unstarted: dict[int, httpx.AsyncClient] = {}
        self._cancel_requested = asyncio.Event()
        self._issued = 0

    def subscribe(self, observer: RunObserver) -> None:
        self._observers.append(observer)

    @property
    def outstanding(self) -> int:
        return sum(1 for task in self._tasks if not task.done())

    def cancel(self) -> None:
        if self.state in (DispatcherState.STOPPED, DispatcherState.CANCELLED):
            return
        logger.info("run_cancel_requested", issued=self._issued, outstanding=self.outstanding)
        self._cancel_requested.set()
        for task in self._tasks:
            task.cancel()

    async def run(self) -> None:
        if self.state is not DispatcherState.IDLE:
            msg = f"Dispatcher already {self.state.value}"
            raise RuntimeError(msg)
        target = self.config.target
        try:
            await self._resolver(target)
        except Exception:
            logger.error("target_resolution_failed", host=target.host, port=target.port)
            raise

        self.state = DispatcherState.RUNNING
        logger.info(
            "run_starting",
            uri=target.raw,
            request_count=self.config.request_count,
            delay_sec=self.config.inter_request_delay,
        )
        try:
            await self._issue_all()
            if self._cancel_requested.is_set():
                await self._abort()
            self.state = DispatcherState.DRAINING
            results = await asyncio.gather(*self._tasks, return_exceptions=True)
            if self._cancel_requested.is_set():
                await self._abort()
        except asyncio.CancelledError:
            await self._cancel_outstanding()
            self.state = DispatcherState.CANCELLED
            raise
        for result in results:
            if isinstance(result, Exception):
                logger.error("request_task_crashed", exc_info=result)

        self.state = DispatcherState.STOPPED
        self._emit(AfterStop(time.perf_counter()))
        logger.info("run_stopped", issued=self._issued, request_count=self.config.request_count)

    async def _issue_all(self) -> None:
        self._emit(BeforeStart(time.perf_counter()))
        delay = self.config.inter_request_delay
        loop_start = time.perf_counter()
        for index in range(1, self.config.request_count + 1):
            if self._cancel_requested.is_set():
                return
            await self._issue(index)
            await self._pace(loop_start + index * delay)

    async def _issue(self, index: int) -> None:
        start = time.perf_counter()
        self._emit(BeforeRequest(index, start))
        try:
            client = await self._connector.open(self.config.target)
        except Exception as exc:
            logger.debug("request_setup_failed", index=index, error=str(exc))
            self._emit(RequestFailed(index, start))
            return
        self._emit(AfterRequestIssued(index, start))
        self._issued += 1
        self._unstarted[index] = client
        task = asyncio.create_task(self._execute(client, index, start), name=f"hlsim-request-{index}")
        self._tasks.append(task)

    async def _execute(self, client: httpx.AsyncClient, index: int, start: float) -> None:
        self._unstarted.pop(index, None)
        async with client:
            response = await send_request(client, self.config.target, self.config.response_timeout_sec)
            end = time.perf_counter()
        if response.status_code is not None:
            self._emit(AfterResponse(response.status_code, index, start, end))
            return
        logger.debug("response_failed", index=index, error_type=response.error_type)
        self._emit(ResponseFailed(index, start, end, response.error_type))

    async def _pace(self, deadline: float) -> None:
        delay = deadline - time.perf_counter()
        if delay <= 0:
            return
        with contextlib.suppress(asyncio.TimeoutError):
            await asyncio.wait_for(self._cancel_requested.wait(), timeout=delay)

    async def _abort(self) -> None:
        await self._cancel_outstanding()
        self.state = DispatcherState.CANCELLED
        logger.info("run_cancelled", issued=self._issued, request_count=self.config.request_count)
        raise InterruptedRun(self._issued, self.config.request_count)

    async def _cancel_outstanding(self) -> None:
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        for client in self._unstarted.values():
            await client.aclose()
        self._unstarted.clear()

    def _emit(self, event: LifecycleEvent) -> None:
        notify(self._observers, event)
