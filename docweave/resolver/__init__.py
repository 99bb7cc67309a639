"""Cross-module resolution of documentation parameters."""

from .graph import ModuleGraph
from .registry import ProducerRegistry
from .resolver import CrossModuleResolver, ResolutionResult, merge_classpath

__all__ = [
    "CrossModuleResolver",
    "ModuleGraph",
    "ProducerRegistry",
    "ResolutionResult",
    "merge_classpath",
]
