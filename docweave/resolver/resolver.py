"""Resolves consumption edges between modules and merges producer classpaths."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field, replace
from typing import Callable, Dict, FrozenSet, Iterable, List, Mapping, Sequence, Set, Tuple

from ..errors import SkippedTask, UnresolvedDependency
from ..logging import get_logger
from ..models import ClasspathEntry, ModuleParameters, SourceSetID, SourceSetSpec, dedupe_classpath
from ..scheduler import TaskGraph
from .graph import ModuleGraph
from .registry import ProducerRegistry


@dataclass
class ResolutionResult:
    """Resolved in-run modules (discovery order) plus the external producers they used."""

    modules: Tuple[ModuleParameters, ...]
    external: Dict[str, ModuleParameters] = field(default_factory=dict)
    order: Tuple[str, ...] = ()

    def module(self, module_path: str) -> ModuleParameters:
        for module in self.modules:
            if module.module_path == module_path:
                return module
        raise KeyError(module_path)


def merge_classpath(
    producer_entries: Iterable[ClasspathEntry], consumer_entries: Iterable[ClasspathEntry]
) -> Tuple[ClasspathEntry, ...]:
    """Producer entries first; a consumer entry with the same identity is dropped."""
    return dedupe_classpath([*producer_entries, *consumer_entries])


class CrossModuleResolver:
    """Runs one resolution task per module, producers before their consumers."""

    def __init__(
        self,
        *,
        registry_factory: Callable[[], ProducerRegistry] | None = None,
        max_workers: int | None = None,
    ) -> None:
        self._registry_factory = registry_factory or ProducerRegistry
        self._max_workers = max_workers
        self.logger = get_logger("resolver")

    def resolve(self, modules: Sequence[ModuleParameters]) -> ResolutionResult:
        graph = ModuleGraph(modules)
        order = graph.ordered()
        registry = self._registry_factory()
        for module in modules:
            registry.expect(module.module_path)
        for module in modules:
            for dependency in module.dependencies:
                if not dependency.is_external and dependency.module not in graph:
                    raise UnresolvedDependency(
                        module.module_path,
                        dependency.module,
                        "no module with this path is part of the build",
                    )

        tasks = TaskGraph(
            max_workers=self._max_workers,
            cancel_event=threading.Event(),
            fail_fast=True,
            name="docweave-resolve",
        )
        for module in modules:
            tasks.add(
                module.module_path,
                _bind(self._resolve_module, module, registry),
                depends_on=graph.producers_of(module.module_path),
            )
        outcomes = tasks.run()

        for module_path in order:
            outcome = outcomes[module_path]
            if outcome.error is not None and not isinstance(outcome.error, SkippedTask):
                raise outcome.error

        resolved = tuple(outcomes[module.module_path].result for module in modules)
        self.logger.info("Resolved %d module(s)", len(resolved))
        return ResolutionResult(modules=resolved, external=registry.external(), order=tuple(order))

    def _resolve_module(self, module: ModuleParameters, registry: ProducerRegistry) -> ModuleParameters:
        producers: List[ModuleParameters] = [
            registry.resolve(module.module_path, dependency) for dependency in module.dependencies
        ]
        own: Set[SourceSetID] = set(module.source_set_ids())
        consumed: Set[SourceSetID] = set()
        for producer in producers:
            consumed.update(producer.source_set_ids())
            consumed.update(producer.consumed_source_sets)
        consumed -= own

        specs = []
        for spec in module.source_sets:
            producer_entries: List[ClasspathEntry] = []
            for dependency, producer in zip(module.dependencies, producers):
                if dependency.applies_to(spec.name):
                    producer_entries.extend(producer.runtime_classpath())
            specs.append(spec.with_classpath(merge_classpath(producer_entries, spec.classpath)))

        _check_dependent_edges(module.module_path, specs, own, consumed)
        resolved = replace(module, source_sets=tuple(specs), consumed_source_sets=frozenset(consumed))
        registry.publish(resolved)
        self.logger.debug(
            "Resolved %s: %d producer(s), %d consumed source set(s)",
            module.module_path,
            len(producers),
            len(consumed),
        )
        return resolved


def _check_dependent_edges(
    module_path: str,
    specs: Iterable[SourceSetSpec],
    own: Set[SourceSetID],
    consumed: Set[SourceSetID] | FrozenSet[SourceSetID],
) -> None:
    for spec in specs:
        for target in sorted(spec.dependent_source_sets):
            if target in own or target in consumed:
                continue
            raise UnresolvedDependency(
                module_path,
                str(target),
                f"source set '{spec.source_set_id}' depends on a source set that is neither "
                "declared by the module nor consumed from a producer",
            )


def _bind(
    fn: Callable[[ModuleParameters, ProducerRegistry], ModuleParameters],
    module: ModuleParameters,
    registry: ProducerRegistry,
) -> Callable[[Mapping[str, object]], ModuleParameters]:
    def _task(_inputs: Mapping[str, object]) -> ModuleParameters:
        return fn(module, registry)

    return _task


__all__ = ["CrossModuleResolver", "ResolutionResult", "merge_classpath"]
