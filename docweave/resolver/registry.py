"""Producer registry shared by the resolution tasks of one run."""

from __future__ import annotations

import threading
from pathlib import Path
from typing import Callable, Dict

from ..errors import ArtifactFormatError, UnresolvedDependency
from ..logging import get_logger
from ..models import ModuleDependency, ModuleParameters
from ..parameters.serialization import read_module_parameters

ArtifactReader = Callable[[Path], ModuleParameters]


class ProducerRegistry:
    """Hands out producer parameters keyed by module identity.

    In-run producers are announced with :meth:`expect` and become available once
    their resolution task calls :meth:`publish`. External producers are read from
    their serialized artifact the first time they are requested and memoised.
    """

    def __init__(self, reader: ArtifactReader | None = None, *, wait_timeout: float | None = None) -> None:
        self._reader = reader or read_module_parameters
        self._wait_timeout = wait_timeout
        self._lock = threading.Lock()
        self._events: Dict[str, threading.Event] = {}
        self._published: Dict[str, ModuleParameters] = {}
        self._external: Dict[Path, ModuleParameters] = {}
        self.logger = get_logger("resolver.registry")

    def expect(self, module_path: str) -> None:
        with self._lock:
            self._events.setdefault(module_path, threading.Event())

    def publish(self, module: ModuleParameters) -> None:
        with self._lock:
            self._published[module.module_path] = module
            event = self._events.setdefault(module.module_path, threading.Event())
        event.set()
        self.logger.debug("Published parameters for %s", module.module_path)

    def external(self) -> Dict[str, ModuleParameters]:
        with self._lock:
            return {module.module_path: module for module in self._external.values()}

    def resolve(self, consumer: str, dependency: ModuleDependency) -> ModuleParameters:
        if dependency.artifact is not None:
            return self._load_external(consumer, dependency)
        return self._wait_for(consumer, dependency.module)

    def _wait_for(self, consumer: str, module_path: str) -> ModuleParameters:
        with self._lock:
            event = self._events.get(module_path)
        if event is None:
            raise UnresolvedDependency(consumer, module_path, "no module with this path is part of the build")
        if not event.wait(self._wait_timeout):
            raise UnresolvedDependency(
                consumer, module_path, f"producer did not publish within {self._wait_timeout}s"
            )
        with self._lock:
            return self._published[module_path]

    def _load_external(self, consumer: str, dependency: ModuleDependency) -> ModuleParameters:
        artifact = dependency.artifact
        assert artifact is not None
        with self._lock:
            cached = self._external.get(artifact)
        if cached is not None:
            return cached
        if not artifact.is_file():
            raise UnresolvedDependency(consumer, dependency.module, f"artifact {artifact} does not exist")
        try:
            module = self._reader(artifact)
        except ArtifactFormatError as exc:
            raise UnresolvedDependency(consumer, dependency.module, str(exc)) from exc
        if module.module_path != dependency.module:
            self.logger.warning(
                "Artifact %s describes module '%s' but was declared as '%s'",
                artifact,
                module.module_path,
                dependency.module,
            )
        with self._lock:
            module = self._external.setdefault(artifact, module)
        self.logger.debug("Loaded external producer %s from %s", module.module_path, artifact)
        return module


__all__ = ["ArtifactReader", "ProducerRegistry"]
