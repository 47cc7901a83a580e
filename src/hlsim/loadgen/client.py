from __future__ import annotations

import asyncio
import socket
from dataclasses import dataclass
from typing import Iterable, Protocol

import httpcore
import httpx
import structlog

from hlsim.config import TargetURI
from hlsim.errors import RequestSetupError, TargetResolutionError
from hlsim.loadgen.events import ErrorType

logger = structlog.get_logger()


@dataclass(frozen=True, slots=True)
class ClientResponse:
    status_code: int | None
    error_type: ErrorType | None


class Connector(Protocol):
    async def open(self, target: TargetURI) -> httpx.AsyncClient:
        ...


class EstablishedBackend(httpcore.AsyncNetworkBackend):
    """Hands an already connected stream to the first connection the pool makes."""

    def __init__(self, stream: httpcore.AsyncNetworkStream, fallback: httpcore.AsyncNetworkBackend) -> None:
        self._stream: httpcore.AsyncNetworkStream | None = stream
        self._fallback = fallback

    async def connect_tcp(
        self,
        host: str,
        port: int,
        timeout: float | None = None,
        local_address: str | None = None,
        socket_options: Iterable[httpcore.SOCKET_OPTION] | None = None,
    ) -> httpcore.AsyncNetworkStream:
        if self._stream is not None:
            stream, self._stream = self._stream, None
            return stream
        return await self._fallback.connect_tcp(
            host,
            port,
            timeout=timeout,
            local_address=local_address,
            socket_options=socket_options,
        )

    async def connect_unix_socket(
        self,
        path: str,
        timeout: float | None = None,
        socket_options: Iterable[httpcore.SOCKET_OPTION] | None = None,
    ) -> httpcore.AsyncNetworkStream:
        return await self._fallback.connect_unix_socket(path, timeout=timeout, socket_options=socket_options)

    async def sleep(self, seconds: float) -> None:
        await self._fallback.sleep(seconds)

    async def aclose(self) -> None:
        # Only set when the stream was never handed to the pool.
        if self._stream is not None:
            stream, self._stream = self._stream, None
            await stream.aclose()


class EstablishedTransport(httpx.AsyncBaseTransport):
    def __init__(self, backend: EstablishedBackend) -> None:
        self._backend = backend
        self._pool = httpcore.AsyncConnectionPool(max_connections=1, network_backend=backend)

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        try:
            resp = await self._pool.request(
                request.method,
                str(request.url),
                headers=request.headers.raw,
                extensions=request.extensions,
            )
        except httpcore.TimeoutException as exc:
            raise httpx.TimeoutException(str(exc), request=request) from exc
        except httpcore.ConnectError as exc:
            raise httpx.ConnectError(str(exc), request=request) from exc
        except httpcore.ReadError as exc:
            raise httpx.ReadError(str(exc), request=request) from exc
        except httpcore.NetworkError as exc:
            raise httpx.NetworkError(str(exc), request=request) from exc
        except httpcore.ProtocolError as exc:
            raise httpx.ProtocolError(str(exc), request=request) from exc
        return httpx.Response(
            resp.status,
            headers=resp.headers,
            content=resp.content,
            extensions=resp.extensions,
        )

    async def aclose(self) -> None:
        await self._pool.aclose()
        await self._backend.aclose()


@dataclass(frozen=True, slots=True)
class TcpConnector:
    """Connects to the target and wraps that connection in a private client."""

    connect_timeout_sec: float = 5.0
    response_timeout_sec: float = 120.0

    async def open(self, target: TargetURI) -> httpx.AsyncClient:
        network = httpcore.AnyIOBackend()
        try:
            stream = await network.connect_tcp(target.host, target.port, timeout=self.connect_timeout_sec)
        except (httpcore.ConnectError, httpcore.ConnectTimeout, OSError) as exc:
            msg = f"Cannot connect to {target.host}:{target.port}: {exc!r}"
            raise RequestSetupError(msg) from exc
        transport = EstablishedTransport(EstablishedBackend(stream, fallback=network))
        timeout = httpx.Timeout(self.response_timeout_sec, connect=self.connect_timeout_sec)
        return httpx.AsyncClient(transport=transport, timeout=timeout)


async def resolve_target(target: TargetURI) -> None:
    loop = asyncio.get_running_loop()
    try:
        await loop.getaddrinfo(target.host, target.port, type=socket.SOCK_STREAM)
    except OSError as exc:
        msg = f"Cannot resolve {target.host}:{target.port}: {exc}"
        raise TargetResolutionError(msg) from exc


async def send_request(
    client: httpx.AsyncClient,
    target: TargetURI,
    timeout_sec: float,
) -> ClientResponse:
    try:
        resp = await asyncio.wait_for(client.get(target.url), timeout=timeout_sec)
        return ClientResponse(status_code=resp.status_code, error_type=None)
    except (asyncio.TimeoutError, httpx.TimeoutException):
        err = ErrorType.TIMEOUT
    except httpx.ConnectError:
        err = ErrorType.CONNECT
    except httpx.ReadError:
        err = ErrorType.READ
    except httpx.HTTPError:
        err = ErrorType.OTHER
    except Exception:
        logger.warning("unexpected_request_error", url=target.url, exc_info=True)
        err = ErrorType.OTHER
    return ClientResponse(status_code=None, error_type=err)
