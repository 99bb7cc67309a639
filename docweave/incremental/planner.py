"""Decides whether a generation unit must run, can be restored or skipped."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Mapping, Optional

from ..logging import get_logger
from ..models import GlobalConfiguration
from ..stores.build_cache import BuildCache
from ..stores.state import IncrementalStateStore
from .fingerprint import Fingerprinter


class Action(str, Enum):
    SKIP = "skip"
    RESTORE = "restore"
    RUN = "run"


@dataclass(frozen=True)
class Plan:
    unit: str
    fingerprint: str
    action: Action
    reason: str


class IncrementalPlanner:
    """Compares a unit's current fingerprint against its last successful generation."""

    def __init__(
        self,
        state_store: IncrementalStateStore,
        *,
        fingerprinter: Fingerprinter | None = None,
        build_cache: Optional[BuildCache] = None,
        rerun: bool = False,
    ) -> None:
        self.state_store = state_store
        self.fingerprinter = fingerprinter or Fingerprinter()
        self.build_cache = build_cache
        self.rerun = rerun
        self.logger = get_logger("incremental.planner")

    def plan(
        self,
        unit: str,
        configuration: GlobalConfiguration,
        extra: Mapping[str, str] | None = None,
    ) -> Plan:
        fingerprint = self.fingerprinter.compute(configuration, extra)
        if self.rerun:
            return self._plan(unit, fingerprint, Action.RUN, "rerun requested")

        state = self.state_store.load(unit)
        output_dir = configuration.output_dir
        if state is not None and state.fingerprint == fingerprint:
            if state.output_dir == output_dir and output_dir.is_dir():
                return self._plan(unit, fingerprint, Action.SKIP, "inputs unchanged")
        if self.build_cache is not None and self.build_cache.has(fingerprint):
            return self._plan(unit, fingerprint, Action.RESTORE, "output available in build cache")
        if state is None:
            reason = "no previous generation"
        elif state.fingerprint != fingerprint:
            reason = "inputs changed"
        else:
            reason = "previous output missing"
        return self._plan(unit, fingerprint, Action.RUN, reason)

    def _plan(self, unit: str, fingerprint: str, action: Action, reason: str) -> Plan:
        self.logger.debug("Plan for %s: %s (%s, %s)", unit, action.value, reason, fingerprint[:12])
        return Plan(unit=unit, fingerprint=fingerprint, action=action, reason=reason)


__all__ = ["Action", "IncrementalPlanner", "Plan"]
