from __future__ import annotations

from hlsim.report.printer import ProgressPrinter

__all__ = ["ProgressPrinter"]
