from __future__ import annotations

import pytest
from hypothesis import given, strategies as st

from hlsim.config import RunConfig, TargetURI
from hlsim.errors import InvalidConfiguration

URI = "http://127.0.0.1:3000/user/login"


@given(
    rate=st.floats(min_value=0.1, max_value=5000.0),
    duration=st.floats(min_value=0.1, max_value=600.0),
)
def test_derived_values(rate: float, duration: float) -> None:
    config = RunConfig.build(rate=rate, duration_sec=duration, uri=URI)
    assert config.request_count == round(rate * duration)
    assert config.inter_request_delay == 1 / rate
    assert config.request_count == config.request_count
    assert config.inter_request_delay == config.inter_request_delay


def test_scenario_rate_ten_for_one_second() -> None:
    config = RunConfig.build(rate=10, duration_sec=1, uri=URI)
    assert config.request_count == 10
    assert config.inter_request_delay == pytest.approx(0.1)


@pytest.mark.parametrize(
    "kwargs",
    [
        {"rate": 0, "duration_sec": 1},
        {"rate": -5, "duration_sec": 1},
        {"rate": 10, "duration_sec": 0},
        {"rate": 10, "duration_sec": -1},
        {"rate": float("nan"), "duration_sec": 1},
        {"rate": float("inf"), "duration_sec": 1},
        {"rate": 10, "duration_sec": float("inf")},
        {"rate": 1e308, "duration_sec": 1e10},
        {"rate": 10, "duration_sec": 1, "verbose_every": 0},
        {"rate": 10, "duration_sec": 1, "response_timeout_sec": 0},
        {"rate": 10, "duration_sec": 1, "response_timeout_sec": float("inf")},
        {"rate": 10, "duration_sec": 1, "connect_timeout_sec": -1},
    ],
)
def test_rejects_invalid_values(kwargs: dict[str, float]) -> None:
    with pytest.raises(InvalidConfiguration):
        RunConfig.build(uri=URI, **kwargs)


def test_invalid_configuration_is_a_value_error() -> None:
    with pytest.raises(ValueError):
        RunConfig.build(rate=0, duration_sec=1, uri=URI)


def test_config_is_frozen() -> None:
    config = RunConfig.build(rate=10, duration_sec=1, uri=URI)
    with pytest.raises(AttributeError):
        config.rate = 20  # type: ignore[misc]


def test_target_parsing() -> None:
    target = TargetURI.parse("http://localhost:3000/user/login?next=home")
    assert target.scheme == "http"
    assert target.host == "localhost"
    assert target.port == 3000
    assert target.path == "/user/login?next=home"
    assert target.url == "http://localhost:3000/user/login?next=home"


def test_target_defaults() -> None:
    http = TargetURI.parse("http://example.com")
    assert http.port == 80
    assert http.path == "/"
    https = TargetURI.parse("https://example.com/health")
    assert https.port == 443
    assert https.path == "/health"


@pytest.mark.parametrize("raw", ["localhost:3000", "ftp://example.com/", "http:///path", "/just/a/path"])
def test_target_rejects_unusable_uris(raw: str) -> None:
    with pytest.raises(InvalidConfiguration):
        TargetURI.parse(raw)
