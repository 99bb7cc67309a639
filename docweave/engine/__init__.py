"""External engine invocation and log classification."""

from .diagnostics import Diagnostics, Outcome, classify, scan_diagnostics
from .runner import EngineRequest, EngineResult, EngineRunner

__all__ = [
    "Diagnostics",
    "EngineRequest",
    "EngineResult",
    "EngineRunner",
    "Outcome",
    "classify",
    "scan_diagnostics",
]
