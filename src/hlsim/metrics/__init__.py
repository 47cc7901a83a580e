from __future__ import annotations

from hlsim.metrics.aggregator import StatsAggregator
from hlsim.metrics.models import StatsSnapshot

__all__ = ["StatsAggregator", "StatsSnapshot"]
