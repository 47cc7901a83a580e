from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any

import httpx

from hlsim.errors import InvalidConfiguration

_DEFAULT_PORTS = {"http": 80, "https": 443}


@dataclass(frozen=True, slots=True)
class TargetURI:
    raw: str
    scheme: str
    host: str
    port: int
    path: str

    @classmethod
    def parse(cls, raw: str) -> TargetURI:
        try:
            url = httpx.URL(raw)
        except httpx.InvalidURL as exc:
            msg = f"Invalid URI {raw!r}: {exc}"
            raise InvalidConfiguration(msg) from exc
        if url.scheme not in _DEFAULT_PORTS:
            msg = f"URI must use http:// or https://, got {raw!r}"
            raise InvalidConfiguration(msg)
        if not url.host:
            msg = f"URI has no host: {raw!r}"
            raise InvalidConfiguration(msg)
        path = url.raw_path.decode("ascii") or "/"
        return cls(
            raw=raw,
            scheme=url.scheme,
            host=url.host,
            port=url.port or _DEFAULT_PORTS[url.scheme],
            path=path,
        )

    @property
    def origin(self) -> str:
        host = f"[{self.host}]" if ":" in self.host else self.host
        return f"{self.scheme}://{host}:{self.port}"

    @property
    def url(self) -> str:
        return self.origin + self.path


@dataclass(frozen=True, slots=True)
class RunConfig:
    rate: float
    duration_sec: float
    target: TargetURI
    verbose_every: int | None = None
    response_timeout_sec: float = 120.0
    connect_timeout_sec: float = 5.0
    request_count: int = field(init=False)
    inter_request_delay: float = field(init=False)

    def __post_init__(self) -> None:
        _require_positive("rate", self.rate)
        _require_positive("duration", self.duration_sec)
        _require_positive("response timeout", self.response_timeout_sec)
        _require_positive("connect timeout", self.connect_timeout_sec)
        if self.verbose_every is not None and self.verbose_every <= 0:
            msg = f"verbose count must be a positive integer, got {self.verbose_every}"
            raise InvalidConfiguration(msg)
        total = self.rate * self.duration_sec
        if not math.isfinite(total):
            msg = f"rate * duration is too large: {self.rate} * {self.duration_sec}"
            raise InvalidConfiguration(msg)
        object.__setattr__(self, "request_count", round(total))
        object.__setattr__(self, "inter_request_delay", 1.0 / self.rate)

    @classmethod
    def build(
        cls,
        rate: float,
        duration_sec: float,
        uri: str,
        verbose_every: int | None = None,
        **tunables: Any,
    ) -> RunConfig:
        return cls(
            rate=rate,
            duration_sec=duration_sec,
            target=TargetURI.parse(uri),
            verbose_every=verbose_every,
            **tunables,
        )


def _require_positive(name: str, value: float) -> None:
    if not (math.isfinite(value) and value > 0):
        msg = f"{name} must be a positive finite number, got {value}"
        raise InvalidConfiguration(msg)
