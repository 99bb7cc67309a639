"""Exception taxonomy for configuration, resolution, aggregation and generation."""

from __future__ import annotations

from typing import TYPE_CHECKING, Sequence

if TYPE_CHECKING:  # pragma: no cover - typing aid
    from .models import SourceSetID


class DocweaveError(RuntimeError):
    """Base class for every error raised by docweave."""


class ConfigError(DocweaveError):
    """Raised when the workspace configuration cannot be parsed."""


class MissingRequiredField(DocweaveError):
    """A required source set option has neither a declared nor a convention value."""

    def __init__(self, field: str, source_set_id: "SourceSetID | str") -> None:
        super().__init__(
            f"Source set '{source_set_id}' is missing required option '{field}' "
            "and no convention provides a default"
        )
        self.field = field
        self.source_set_id = source_set_id


class InvalidPackagePattern(DocweaveError):
    """A per-package option declares a pattern that is not a valid regular expression."""

    def __init__(self, pattern: str, source_set_id: "SourceSetID | str", reason: str) -> None:
        super().__init__(
            f"Source set '{source_set_id}' declares invalid package pattern {pattern!r}: {reason}"
        )
        self.pattern = pattern
        self.source_set_id = source_set_id
        self.reason = reason


class UnresolvedDependency(DocweaveError):
    """A declared consumption edge or dependent source set cannot be satisfied."""

    def __init__(self, consumer: str, target: str, detail: str | None = None) -> None:
        message = f"Module '{consumer}' depends on '{target}', which cannot be resolved"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
        self.consumer = consumer
        self.target = target
        self.detail = detail


class CyclicModuleDependency(DocweaveError):
    """Module-level consumption edges form a cycle."""

    def __init__(self, cycle: Sequence[str]) -> None:
        path = " -> ".join(cycle)
        super().__init__(f"Cyclic module dependency detected: {path}")
        self.cycle = list(cycle)


class DuplicateSourceSetID(DocweaveError):
    """Two source sets with the same identity were declared."""

    def __init__(self, source_set_id: "SourceSetID", first_module: str, second_module: str) -> None:
        if first_module == second_module:
            origin = f"twice by module '{first_module}'"
        else:
            origin = f"by both '{first_module}' and '{second_module}'"
        super().__init__(
            f"Source set ID '{source_set_id}' is declared {origin}; source set IDs must be unique"
        )
        self.source_set_id = source_set_id
        self.first_module = first_module
        self.second_module = second_module


class AggregationError(DocweaveError):
    """Module parameters cannot be merged into one global configuration."""


class ArtifactFormatError(DocweaveError):
    """A serialized module parameters payload is unreadable or malformed."""


class SchedulerError(DocweaveError):
    """The task graph is invalid (unknown dependency, cycle, duplicate task)."""


class SkippedTask(DocweaveError):
    """A task was not run because a dependency failed or the run was cancelled."""

    def __init__(self, task: str, reason: str) -> None:
        super().__init__(f"Task '{task}' was skipped: {reason}")
        self.task = task
        self.reason = reason


class GenerationError(DocweaveError):
    """The rendering engine failed for one generation unit."""

    def __init__(self, unit: str, message: str, *, log_path: object | None = None) -> None:
        detail = f"Documentation generation for '{unit}' failed: {message}"
        if log_path is not None:
            detail = f"{detail} (see {log_path})"
        super().__init__(detail)
        self.unit = unit
        self.log_path = log_path


class GenerationWarning(GenerationError):
    """The engine emitted warnings and the failure policy escalates them."""


__all__ = [
    "AggregationError",
    "ArtifactFormatError",
    "ConfigError",
    "CyclicModuleDependency",
    "DocweaveError",
    "DuplicateSourceSetID",
    "GenerationError",
    "GenerationWarning",
    "InvalidPackagePattern",
    "MissingRequiredField",
    "SchedulerError",
    "SkippedTask",
    "UnresolvedDependency",
]
