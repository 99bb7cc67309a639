"""Dependency-aware parallel execution of named tasks."""

from __future__ import annotations

import os
import threading
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Set, Tuple

from .errors import SchedulerError, SkippedTask
from .logging import get_logger

TaskFn = Callable[[Mapping[str, Any]], Any]


@dataclass
class TaskOutcome:
    """Result of one task: either ``result`` or the raised ``error``."""

    name: str
    result: Any = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def skipped(self) -> bool:
        return isinstance(self.error, SkippedTask)


class TaskGraph:
    """Runs tasks on a thread pool once all of their dependencies have succeeded.

    Each task receives a mapping of its dependencies' results. A task whose
    dependency failed (or that had not started when ``cancel_event`` was set) is
    recorded with a :class:`SkippedTask` error instead of being run. The graph is
    meant to be built once per run and discarded.
    """

    def __init__(
        self,
        *,
        max_workers: int | None = None,
        cancel_event: threading.Event | None = None,
        fail_fast: bool = False,
        name: str = "docweave",
    ) -> None:
        self._tasks: Dict[str, TaskFn] = {}
        self._dependencies: Dict[str, Tuple[str, ...]] = {}
        self._max_workers = max_workers or min(32, (os.cpu_count() or 1) + 4)
        self.cancel_event = cancel_event or threading.Event()
        self._fail_fast = fail_fast
        self._name = name
        self.logger = get_logger("scheduler")

    def __contains__(self, name: str) -> bool:
        return name in self._tasks

    def add(self, name: str, fn: TaskFn, depends_on: Sequence[str] = ()) -> None:
        if name in self._tasks:
            raise SchedulerError(f"Task '{name}' is already registered")
        self._tasks[name] = fn
        self._dependencies[name] = tuple(dict.fromkeys(depends_on))

    def validate(self) -> None:
        """Reject unknown dependencies and dependency cycles."""
        for name, dependencies in self._dependencies.items():
            for dependency in dependencies:
                if dependency not in self._tasks:
                    raise SchedulerError(f"Task '{name}' depends on unknown task '{dependency}'")
        visiting: Set[str] = set()
        done: Set[str] = set()

        def _visit(name: str, trail: List[str]) -> None:
            if name in done:
                return
            if name in visiting:
                cycle = trail[trail.index(name):] + [name]
                raise SchedulerError(f"Task graph contains a cycle: {' -> '.join(cycle)}")
            visiting.add(name)
            trail.append(name)
            for dependency in self._dependencies[name]:
                _visit(dependency, trail)
            trail.pop()
            visiting.discard(name)
            done.add(name)

        for name in self._tasks:
            _visit(name, [])

    def run(self) -> Dict[str, TaskOutcome]:
        """Execute every task and return outcomes keyed by task name."""
        self.validate()
        outcomes: Dict[str, TaskOutcome] = {}
        pending: Dict[str, Set[str]] = {name: set(deps) for name, deps in self._dependencies.items()}
        dependents: Dict[str, List[str]] = {name: [] for name in self._tasks}
        for name, deps in self._dependencies.items():
            for dependency in deps:
                dependents[dependency].append(name)

        running: Dict[Future[Any], str] = {}
        with ThreadPoolExecutor(max_workers=self._max_workers, thread_name_prefix=self._name) as executor:

            def _submit_ready() -> None:
                for name in self._tasks:
                    if len(running) >= self._max_workers:
                        return
                    if name in outcomes or name in running.values() or pending[name]:
                        continue
                    if self.cancel_event.is_set():
                        self._skip(name, "run was cancelled", outcomes, dependents)
                        continue
                    inputs = {dep: outcomes[dep].result for dep in self._dependencies[name]}
                    self.logger.debug("Starting task %s", name)
                    running[executor.submit(self._tasks[name], inputs)] = name

            _submit_ready()
            while running:
                finished, _ = wait(list(running), return_when=FIRST_COMPLETED)
                for future in finished:
                    name = running.pop(future)
                    error = future.exception()
                    if error is None:
                        outcomes[name] = TaskOutcome(name=name, result=future.result())
                        self.logger.debug("Task %s completed", name)
                        for dependent in dependents[name]:
                            pending[dependent].discard(name)
                        continue
                    outcomes[name] = TaskOutcome(name=name, error=error)
                    self.logger.debug("Task %s failed: %s", name, error)
                    if self._fail_fast:
                        self.cancel_event.set()
                    for dependent in dependents[name]:
                        self._skip(dependent, f"dependency '{name}' failed", outcomes, dependents)
                _submit_ready()

        for name in self._tasks:
            if name not in outcomes:
                self._skip(name, "run was cancelled", outcomes, dependents)
        return {name: outcomes[name] for name in self._tasks}

    def _skip(
        self,
        name: str,
        reason: str,
        outcomes: Dict[str, TaskOutcome],
        dependents: Mapping[str, List[str]],
    ) -> None:
        if name in outcomes:
            return
        outcomes[name] = TaskOutcome(name=name, error=SkippedTask(name, reason))
        for dependent in dependents[name]:
            self._skip(dependent, f"dependency '{name}' was skipped", outcomes, dependents)


__all__ = ["TaskGraph", "TaskOutcome"]
