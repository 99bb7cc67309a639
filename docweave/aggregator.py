"""Merges resolved module parameters into one global configuration."""

from __future__ import annotations

from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Sequence, Set

from .errors import AggregationError, DuplicateSourceSetID
from .logging import get_logger
from .models import (
    ClasspathEntry,
    FailurePolicy,
    GlobalConfiguration,
    ModuleDescriptor,
    ModuleParameters,
    SourceSetID,
    SourceSetSpec,
    dedupe_classpath,
    sorted_mapping,
)


class Aggregator:
    """Produces :class:`GlobalConfiguration` values independent of module input order."""

    def __init__(self) -> None:
        self.logger = get_logger("aggregator")

    def aggregate(
        self,
        modules: Sequence[ModuleParameters],
        *,
        name: str,
        output_dir: Path,
        cache_key: Mapping[str, str] | None = None,
    ) -> GlobalConfiguration:
        if not modules:
            raise AggregationError(f"Nothing to aggregate for '{name}': no modules were given")
        ordered = sorted(modules, key=lambda module: module.module_path)

        specs: Dict[SourceSetID, SourceSetSpec] = {}
        owners: Dict[SourceSetID, str] = {}
        descriptors: Dict[str, ModuleDescriptor] = {}
        plugins: List[ClasspathEntry] = []
        consumed: Set[SourceSetID] = set()
        for module in ordered:
            if module.module_path in descriptors:
                raise AggregationError(f"Module '{module.module_path}' was passed to the aggregator twice")
            for spec in module.source_sets:
                owner = owners.get(spec.source_set_id)
                if owner is not None:
                    raise DuplicateSourceSetID(spec.source_set_id, owner, module.module_path)
                specs[spec.source_set_id] = spec
                owners[spec.source_set_id] = module.module_path
            descriptors[module.module_path] = ModuleDescriptor.from_parameters(module)
            plugins.extend(module.plugins_classpath)
            consumed.update(module.consumed_source_sets)

        output_format = _single_format(ordered, name)
        external = frozenset(consumed - set(specs))
        _check_dependent_edges(specs, external)

        configuration = GlobalConfiguration(
            name=name,
            source_sets=sorted_mapping(specs),
            owners={key: owners[key] for key in sorted(owners)},
            modules=descriptors,
            output_dir=output_dir,
            output_format=output_format,
            plugins_classpath=dedupe_classpath(plugins),
            failure_policy=FailurePolicy.strictest(module.failure_policy for module in ordered),
            suppress_inherited_members=any(module.suppress_inherited_members for module in ordered),
            external_source_sets=external,
            cache_key=dict(sorted((cache_key or {}).items())),
        )
        self.logger.debug(
            "Aggregated '%s': %d module(s), %d source set(s), %d external",
            name,
            len(descriptors),
            len(specs),
            len(external),
        )
        return configuration

    def aggregate_module(
        self,
        module: ModuleParameters,
        *,
        output_dir: Path,
        cache_key: Mapping[str, str] | None = None,
    ) -> GlobalConfiguration:
        """Configuration documenting a single module; consumed source sets stay external."""
        return self.aggregate([module], name=module.module_name, output_dir=output_dir, cache_key=cache_key)


def _single_format(modules: Iterable[ModuleParameters], name: str) -> str:
    formats: Dict[str, str] = {}
    for module in modules:
        formats.setdefault(module.output_format, module.module_path)
    if len(formats) > 1:
        described = ", ".join(f"{fmt} ({path})" for fmt, path in sorted(formats.items()))
        raise AggregationError(f"Modules aggregated into '{name}' disagree on output format: {described}")
    return next(iter(formats))


def _check_dependent_edges(specs: Mapping[SourceSetID, SourceSetSpec], external: Set[SourceSetID] | frozenset) -> None:
    for source_set_id in sorted(specs):
        for target in sorted(specs[source_set_id].dependent_source_sets):
            if target not in specs and target not in external:
                raise AggregationError(
                    f"Source set '{source_set_id}' depends on '{target}', which is neither aggregated "
                    "nor consumed from an external module"
                )


__all__ = ["Aggregator"]
