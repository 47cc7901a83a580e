from __future__ import annotations


class HlsimError(Exception):
    pass


class InvalidConfiguration(HlsimError, ValueError):
    pass


class TargetResolutionError(HlsimError):
    """The target host could not be resolved before the run started."""


class RequestSetupError(HlsimError):
    """A client handle for one request could not be established."""


class InterruptedRun(HlsimError):
    def __init__(self, issued: int, total: int) -> None:
        super().__init__(f"Run interrupted after {issued} of {total} requests")
        self.issued = issued
        self.total = total
