"""Module-level consumption graph with cycle detection."""

from __future__ import annotations

from typing import Dict, List, Optional, Sequence, Set, Tuple

from ..errors import CyclicModuleDependency
from ..models import ModuleParameters


class ModuleGraph:
    """Nodes are in-run modules; edges point from a consumer to its in-run producers."""

    def __init__(self, modules: Sequence[ModuleParameters]) -> None:
        self._modules: Dict[str, ModuleParameters] = {module.module_path: module for module in modules}
        self._edges: Dict[str, Tuple[str, ...]] = {}
        for module in modules:
            producers = [
                dependency.module
                for dependency in module.dependencies
                if not dependency.is_external and dependency.module in self._modules
            ]
            self._edges[module.module_path] = tuple(dict.fromkeys(producers))

    def __contains__(self, module_path: str) -> bool:
        return module_path in self._modules

    @property
    def module_paths(self) -> Tuple[str, ...]:
        return tuple(self._modules)

    def module(self, module_path: str) -> ModuleParameters:
        return self._modules[module_path]

    def producers_of(self, module_path: str) -> Tuple[str, ...]:
        return self._edges.get(module_path, ())

    def find_cycle(self) -> Optional[List[str]]:
        """Return the first consumption cycle found by depth-first traversal, if any."""
        visiting: Set[str] = set()
        done: Set[str] = set()
        trail: List[str] = []

        def _visit(module_path: str) -> Optional[List[str]]:
            if module_path in done:
                return None
            if module_path in visiting:
                return trail[trail.index(module_path):] + [module_path]
            visiting.add(module_path)
            trail.append(module_path)
            for producer in self._edges[module_path]:
                cycle = _visit(producer)
                if cycle is not None:
                    return cycle
            trail.pop()
            visiting.discard(module_path)
            done.add(module_path)
            return None

        for module_path in self._modules:
            cycle = _visit(module_path)
            if cycle is not None:
                return cycle
        return None

    def check(self) -> None:
        cycle = self.find_cycle()
        if cycle is not None:
            raise CyclicModuleDependency(cycle)

    def ordered(self) -> List[str]:
        """Producer-first ordering that otherwise keeps discovery order."""
        self.check()
        ordered: List[str] = []
        placed: Set[str] = set()

        def _place(module_path: str) -> None:
            if module_path in placed:
                return
            for producer in self._edges[module_path]:
                _place(producer)
            placed.add(module_path)
            ordered.append(module_path)

        for module_path in self._modules:
            _place(module_path)
        return ordered


__all__ = ["ModuleGraph"]
