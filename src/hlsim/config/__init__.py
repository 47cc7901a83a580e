from __future__ import annotations

from hlsim.config.models import RunConfig, TargetURI

__all__ = ["RunConfig", "TargetURI"]
