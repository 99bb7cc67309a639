"""Pipeline orchestration for generate and plan runs."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from . import __version__
from .aggregator import Aggregator
from .config import WorkspaceConfig, load_config
from .driver import STATUS_CANCELLED, STATUS_FAILED, GenerationDriver, GenerationResult, GenerationUnit
from .engine.runner import EngineFn, EngineRunner
from .errors import ConfigError, GenerationError, SkippedTask
from .incremental.fingerprint import Fingerprinter
from .incremental.hashing import FileHasher
from .incremental.planner import IncrementalPlanner, Plan
from .logging import get_logger
from .models import GlobalConfiguration, ModuleParameters
from .parameters.conventions import ConventionProvider, LayoutConventions
from .parameters.serialization import FORMAT_VERSION, write_module_parameters
from .resolver import CrossModuleResolver
from .scheduler import TaskGraph
from .stores.build_cache import BuildCache
from .stores.state import IncrementalStateStore, unit_slug

ARTIFACT_PATH = Path("build") / "docweave" / "module-parameters.json"


@dataclass
class RunReport:
    """Outcome of a generate or plan run."""

    configuration: GlobalConfiguration
    units: List[GenerationUnit] = field(default_factory=list)
    plans: List[Plan] = field(default_factory=list)
    results: List[GenerationResult] = field(default_factory=list)
    artifacts: Dict[str, Path] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return all(result.ok for result in self.results)

    @property
    def failed(self) -> List[GenerationResult]:
        return [result for result in self.results if not result.ok]

    def result_for(self, unit: str) -> Optional[GenerationResult]:
        for result in self.results:
            if result.unit == unit:
                return result
        return None


@dataclass
class _Prepared:
    config: WorkspaceConfig
    configuration: GlobalConfiguration
    units: List[GenerationUnit]
    modules: List[ModuleParameters]
    hasher: FileHasher


class Orchestrator:
    """Coordinates construction, resolution, aggregation and generation."""

    def __init__(
        self,
        *,
        engine_runner: EngineFn | None = None,
        conventions: Sequence[ConventionProvider] | None = None,
        cancel_event: threading.Event | None = None,
    ) -> None:
        self._engine_runner = engine_runner
        self._conventions = list(conventions) if conventions is not None else None
        self.cancel_event = cancel_event or threading.Event()
        self.aggregator = Aggregator()
        self.logger = get_logger("orchestrator")

    def run_generate(self, path: str | Path, *, fail_fast: bool | None = None, rerun: bool = False) -> RunReport:
        """Generate documentation for every unit of the workspace at ``path``."""
        self.cancel_event.clear()
        prepared = self._prepare(path)
        config = prepared.config
        effective_fail_fast = config.fail_fast if fail_fast is None else fail_fast
        artifacts = self._publish_artifacts(prepared.modules)
        driver = self._build_driver(config, prepared.hasher, rerun=rerun)
        self.logger.info(
            "Generating %d unit(s) for %s", len(prepared.units), config.root
        )

        tasks = TaskGraph(
            max_workers=config.max_workers,
            cancel_event=self.cancel_event,
            fail_fast=effective_fail_fast,
            name="docweave-generate",
        )
        for unit in prepared.units:
            tasks.add(unit.name, self._generation_task(driver, unit, effective_fail_fast))
        outcomes = tasks.run()
        prepared.hasher.persist()

        results: List[GenerationResult] = []
        for unit in prepared.units:
            outcome = outcomes[unit.name]
            if outcome.ok:
                results.append(outcome.result)
            elif isinstance(outcome.error, SkippedTask):
                results.append(
                    GenerationResult(
                        unit=unit.name,
                        status=STATUS_CANCELLED,
                        output_dir=unit.output_dir,
                        error=GenerationError(unit.name, outcome.error.reason),
                    )
                )
            else:
                error = outcome.error
                if not isinstance(error, GenerationError):
                    error = GenerationError(unit.name, f"unexpected error: {error}")
                results.append(
                    GenerationResult(unit=unit.name, status=STATUS_FAILED, output_dir=unit.output_dir, error=error)
                )

        report = RunReport(
            configuration=prepared.configuration,
            units=prepared.units,
            results=results,
            artifacts=artifacts,
        )
        self.logger.info(
            "Run finished: %d unit(s), %d failed", len(results), len(report.failed)
        )
        return report

    def run_plan(self, path: str | Path, *, rerun: bool = False) -> RunReport:
        """Report what ``run_generate`` would do without invoking the engine."""
        prepared = self._prepare(path)
        driver = self._build_driver(prepared.config, prepared.hasher, rerun=rerun)
        plans = [driver.plan(unit) for unit in prepared.units]
        prepared.hasher.persist()
        return RunReport(
            configuration=prepared.configuration,
            units=prepared.units,
            plans=plans,
        )

    def build_modules(self, config: WorkspaceConfig) -> List[ModuleParameters]:
        conventions = self._conventions
        if conventions is None:
            conventions = [LayoutConventions()] if config.layout_conventions else []
        return [builder.finalize(conventions) for builder in config.modules]

    # ------------------------------------------------------------------
    # Internal helpers

    def _prepare(self, path: str | Path) -> _Prepared:
        root = Path(path).expanduser().resolve()
        config = load_config(root)
        modules = self.build_modules(config)
        self.logger.debug("Built parameters for %d module(s)", len(modules))

        resolution = CrossModuleResolver(max_workers=config.max_workers).resolve(modules)
        resolved = list(resolution.modules)
        cache_key = self._cache_key(config)
        publication = self.aggregator.aggregate(
            resolved,
            name=config.publication.name,
            output_dir=config.output_dir / config.publication.name,
            cache_key=cache_key,
        )
        units: List[GenerationUnit] = []
        for module in resolved:
            units.append(
                GenerationUnit(
                    name=module.module_path,
                    configuration=self.aggregator.aggregate_module(
                        module,
                        output_dir=config.output_dir / "modules" / unit_slug(module.module_path),
                        cache_key=cache_key,
                    ),
                )
            )
        if config.publication.enabled:
            units.append(GenerationUnit(name=config.publication.name, configuration=publication, kind="publication"))
        _check_output_dirs(units)

        hasher = FileHasher(config.work_dir / "file-hashes.json")
        return _Prepared(
            config=config,
            configuration=publication,
            units=units,
            modules=resolved,
            hasher=hasher,
        )

    def _build_driver(self, config: WorkspaceConfig, hasher: FileHasher, *, rerun: bool) -> GenerationDriver:
        build_cache = BuildCache(config.work_dir / "build-cache")
        planner = IncrementalPlanner(
            IncrementalStateStore(config.work_dir / "state"),
            fingerprinter=Fingerprinter(hasher, root=config.root),
            build_cache=build_cache,
            rerun=rerun,
        )
        engine = EngineRunner(
            config.engine.command,
            timeout=config.engine.timeout,
            env=config.engine.env,
            runner=self._engine_runner,
        )
        return GenerationDriver(
            engine,
            planner,
            work_dir=config.work_dir,
            build_cache=build_cache,
            cancel_event=self.cancel_event,
        )

    def _generation_task(self, driver: GenerationDriver, unit: GenerationUnit, fail_fast: bool):
        def _task(_inputs: object) -> GenerationResult:
            result = driver.generate(unit)
            if fail_fast and not result.ok:
                self.logger.info("Fail-fast: cancelling remaining units after %s", unit.name)
                self.cancel_event.set()
            return result

        return _task

    def _publish_artifacts(self, modules: Sequence[ModuleParameters]) -> Dict[str, Path]:
        artifacts: Dict[str, Path] = {}
        for module in modules:
            if module.module_dir is None:
                continue
            artifacts[module.module_path] = write_module_parameters(module, module.module_dir / ARTIFACT_PATH)
            self.logger.debug("Published %s to %s", module.module_path, artifacts[module.module_path])
        return artifacts

    @staticmethod
    def _cache_key(config: WorkspaceConfig) -> Dict[str, str]:
        return {
            "docweave": __version__,
            "engine": " ".join(config.engine.command),
            "format_version": str(FORMAT_VERSION),
        }


def _check_output_dirs(units: Sequence[GenerationUnit]) -> None:
    """Reject units whose output directories coincide or nest inside each other."""
    claimed: Dict[Path, str] = {}
    for unit in units:
        output_dir = unit.output_dir
        for other_dir, other in claimed.items():
            if output_dir == other_dir or other_dir in output_dir.parents or output_dir in other_dir.parents:
                raise ConfigError(
                    f"Units '{other}' and '{unit.name}' write to overlapping output directories "
                    f"{other_dir} and {output_dir}"
                )
        claimed[output_dir] = unit.name


__all__ = ["ARTIFACT_PATH", "Orchestrator", "RunReport"]
