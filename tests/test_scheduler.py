"""Tests for docweave.scheduler."""

from __future__ import annotations

import threading

import pytest

from docweave.errors import SchedulerError, SkippedTask
from docweave.scheduler import TaskGraph


def test_tasks_receive_dependency_results() -> None:
    graph = TaskGraph(max_workers=4)
    graph.add("core", lambda inputs: 1)
    graph.add("lib", lambda inputs: inputs["core"] + 1, depends_on=["core"])
    graph.add("app", lambda inputs: inputs["lib"] * 10, depends_on=["lib", "core"])

    outcomes = graph.run()

    assert [name for name in outcomes] == ["core", "lib", "app"]
    assert outcomes["app"].result == 20
    assert all(outcome.ok for outcome in outcomes.values())


def test_dependents_of_failed_task_are_skipped() -> None:
    graph = TaskGraph()

    def boom(_inputs):
        raise ValueError("boom")

    graph.add("core", boom)
    graph.add("lib", lambda inputs: "lib", depends_on=["core"])
    graph.add("app", lambda inputs: "app", depends_on=["lib"])
    graph.add("tools", lambda inputs: "tools")

    outcomes = graph.run()

    assert isinstance(outcomes["core"].error, ValueError)
    assert outcomes["lib"].skipped
    assert outcomes["app"].skipped
    assert isinstance(outcomes["app"].error, SkippedTask)
    assert outcomes["tools"].result == "tools"


def test_fail_fast_cancels_pending_tasks() -> None:
    cancel = threading.Event()
    graph = TaskGraph(max_workers=1, cancel_event=cancel, fail_fast=True)

    def boom(_inputs):
        raise RuntimeError("first failure")

    graph.add("first", boom)
    graph.add("second", lambda inputs: "never")

    outcomes = graph.run()

    assert cancel.is_set()
    assert outcomes["second"].skipped


def test_preset_cancel_event_skips_everything() -> None:
    cancel = threading.Event()
    cancel.set()
    graph = TaskGraph(cancel_event=cancel)
    graph.add("only", lambda inputs: "ran")

    assert graph.run()["only"].skipped


def test_duplicate_task_is_rejected() -> None:
    graph = TaskGraph()
    graph.add("a", lambda inputs: None)

    with pytest.raises(SchedulerError):
        graph.add("a", lambda inputs: None)


def test_unknown_dependency_is_rejected() -> None:
    graph = TaskGraph()
    graph.add("a", lambda inputs: None, depends_on=["missing"])

    with pytest.raises(SchedulerError):
        graph.run()


def test_cycle_is_rejected() -> None:
    graph = TaskGraph()
    graph.add("a", lambda inputs: None, depends_on=["b"])
    graph.add("b", lambda inputs: None, depends_on=["a"])

    with pytest.raises(SchedulerError):
        graph.validate()
