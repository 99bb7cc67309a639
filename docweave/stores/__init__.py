"""Persistent stores for incremental generation."""

from .build_cache import BuildCache
from .state import IncrementalStateStore, UnitState

__all__ = ["BuildCache", "IncrementalStateStore", "UnitState"]
