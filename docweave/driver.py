"""Runs one generation unit: plan, stage, render, promote."""

from __future__ import annotations

import os
import shutil
import tempfile
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional
from uuid import uuid4

from .engine.diagnostics import Diagnostics, Outcome, classify, scan_diagnostics
from .engine.runner import EngineRunner
from .errors import GenerationError, GenerationWarning
from .incremental.planner import Action, IncrementalPlanner, Plan
from .logging import get_logger, log_exception
from .models import GlobalConfiguration
from .parameters.serialization import dump_global_configuration, write_text_atomic
from .stores.build_cache import BuildCache
from .stores.state import unit_slug

STATUS_GENERATED = "generated"
STATUS_RESTORED = "restored"
STATUS_SKIPPED = "skipped"
STATUS_FAILED = "failed"
STATUS_CANCELLED = "cancelled"


@dataclass(frozen=True)
class GenerationUnit:
    """A configuration rendered into its own output directory.

    ``kind`` is ``"module"`` for a single module's documentation and
    ``"publication"`` for the aggregate of every module in the workspace.
    """

    name: str
    configuration: GlobalConfiguration
    kind: str = "module"

    @property
    def output_dir(self) -> Path:
        return self.configuration.output_dir


@dataclass
class GenerationResult:
    unit: str
    status: str
    output_dir: Path
    fingerprint: Optional[str] = None
    diagnostics: Diagnostics = field(default_factory=Diagnostics)
    error: Optional[GenerationError] = None
    log_path: Optional[Path] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class GenerationDriver:
    """Generates units incrementally.

    Output is rendered into a staging directory beside the final output and only
    promoted when the engine run is classified as successful. A failed or
    cancelled run leaves the previous output and its stored fingerprint intact.
    """

    def __init__(
        self,
        engine: EngineRunner,
        planner: IncrementalPlanner,
        *,
        work_dir: Path,
        build_cache: Optional[BuildCache] = None,
        cancel_event: threading.Event | None = None,
    ) -> None:
        self.engine = engine
        self.planner = planner
        self.work_dir = work_dir
        self.build_cache = build_cache
        self.cancel_event = cancel_event or threading.Event()
        self.logger = get_logger("driver")

    def plan(self, unit: GenerationUnit) -> Plan:
        return self.planner.plan(unit.name, unit.configuration)

    def unit_dir(self, unit: GenerationUnit) -> Path:
        return self.work_dir / "units" / unit_slug(unit.name)

    def generate(self, unit: GenerationUnit) -> GenerationResult:
        plan = self.plan(unit)
        if plan.action is Action.SKIP:
            self.logger.info("%s is up to date", unit.name)
            return GenerationResult(
                unit=unit.name,
                status=STATUS_SKIPPED,
                output_dir=unit.output_dir,
                fingerprint=plan.fingerprint,
            )
        if self.cancel_event.is_set():
            return self._cancelled(unit, plan, "run was cancelled before the unit started")

        unit.output_dir.parent.mkdir(parents=True, exist_ok=True)
        staging = Path(
            tempfile.mkdtemp(prefix=f".{unit.output_dir.name}.staging-", dir=unit.output_dir.parent)
        )
        try:
            return self._generate(unit, plan, staging)
        except GenerationError as exc:
            return self._failed(unit, plan, exc)
        except OSError as exc:
            return self._failed(unit, plan, GenerationError(unit.name, f"I/O error: {exc}"))
        finally:
            shutil.rmtree(staging, ignore_errors=True)

    def _generate(self, unit: GenerationUnit, plan: Plan, staging: Path) -> GenerationResult:
        if plan.action is Action.RESTORE and self.build_cache is not None:
            if self.build_cache.restore(plan.fingerprint, staging):
                self._commit(unit, plan, staging)
                self.logger.info("%s restored from build cache", unit.name)
                return GenerationResult(
                    unit=unit.name,
                    status=STATUS_RESTORED,
                    output_dir=unit.output_dir,
                    fingerprint=plan.fingerprint,
                )
            self.logger.debug("Build cache entry for %s disappeared; running engine", unit.name)

        unit_dir = self.unit_dir(unit)
        config_path = unit_dir / "configuration.json"
        log_path = unit_dir / "engine.log"
        write_text_atomic(config_path, dump_global_configuration(unit.configuration.with_output_dir(staging)))

        self.logger.info("Generating %s", unit.name)
        result = self.engine.run(
            unit.name,
            config_path,
            output_dir=staging,
            working_dir=unit_dir,
            log_path=log_path,
            cancel_event=self.cancel_event,
        )
        diagnostics = _read_diagnostics(log_path)
        if result.cancelled:
            return self._cancelled(unit, plan, "engine was cancelled", log_path=log_path, diagnostics=diagnostics)
        if result.timed_out:
            raise GenerationError(unit.name, "engine timed out", log_path=log_path)

        outcome = classify(result.exit_code, diagnostics, unit.configuration.failure_policy)
        if outcome is Outcome.FAILURE:
            detail = f"exit code {result.exit_code}" if result.exit_code else diagnostics.summary()
            error = GenerationError(unit.name, f"engine failed ({detail})", log_path=log_path)
            return self._failed(unit, plan, error, diagnostics=diagnostics)
        if outcome is Outcome.WARNING_AS_FAILURE:
            error = GenerationWarning(
                unit.name,
                f"engine reported {diagnostics.warnings} warning(s) and fail_on_warning is enabled",
                log_path=log_path,
            )
            return self._failed(unit, plan, error, diagnostics=diagnostics)

        self._commit(unit, plan, staging)
        if self.build_cache is not None:
            self.build_cache.store(plan.fingerprint, unit.output_dir)
        self.logger.info("Generated %s (%s)", unit.name, diagnostics.summary())
        return GenerationResult(
            unit=unit.name,
            status=STATUS_GENERATED,
            output_dir=unit.output_dir,
            fingerprint=plan.fingerprint,
            diagnostics=diagnostics,
            log_path=log_path,
        )

    def _commit(self, unit: GenerationUnit, plan: Plan, staging: Path) -> None:
        promote(staging, unit.output_dir)
        self.planner.state_store.save(unit.name, fingerprint=plan.fingerprint, output_dir=unit.output_dir)

    def _failed(
        self,
        unit: GenerationUnit,
        plan: Plan,
        error: GenerationError,
        *,
        diagnostics: Diagnostics | None = None,
    ) -> GenerationResult:
        log_exception(self.logger, f"Generation of {unit.name} failed", error)
        return GenerationResult(
            unit=unit.name,
            status=STATUS_FAILED,
            output_dir=unit.output_dir,
            fingerprint=plan.fingerprint,
            diagnostics=diagnostics or Diagnostics(),
            error=error,
            log_path=error.log_path,  # type: ignore[arg-type]
        )

    def _cancelled(
        self,
        unit: GenerationUnit,
        plan: Plan,
        message: str,
        *,
        log_path: Path | None = None,
        diagnostics: Diagnostics | None = None,
    ) -> GenerationResult:
        self.logger.info("%s cancelled", unit.name)
        return GenerationResult(
            unit=unit.name,
            status=STATUS_CANCELLED,
            output_dir=unit.output_dir,
            fingerprint=plan.fingerprint,
            diagnostics=diagnostics or Diagnostics(),
            error=GenerationError(unit.name, message, log_path=log_path),
            log_path=log_path,
        )


def promote(staging: Path, output_dir: Path) -> None:
    """Replace ``output_dir`` with ``staging`` using renames only."""
    backup: Optional[Path] = None
    if output_dir.exists():
        backup = output_dir.with_name(f".{output_dir.name}.old-{uuid4().hex[:8]}")
        os.rename(output_dir, backup)
    try:
        os.rename(staging, output_dir)
    except OSError:
        if backup is not None:
            os.rename(backup, output_dir)
        raise
    if backup is not None:
        shutil.rmtree(backup, ignore_errors=True)


def _read_diagnostics(log_path: Path) -> Diagnostics:
    if not log_path.is_file():
        return Diagnostics()
    with log_path.open("r", encoding="utf-8", errors="replace") as handle:
        return scan_diagnostics(handle)


__all__ = [
    "GenerationDriver",
    "GenerationResult",
    "GenerationUnit",
    "promote",
]
