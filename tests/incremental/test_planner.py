"""Tests for incremental planning."""

from __future__ import annotations

from pathlib import Path

from docweave.aggregator import Aggregator
from docweave.incremental import Action, IncrementalPlanner
from docweave.stores import BuildCache, IncrementalStateStore
from tests._fixtures.modules import make_module, make_spec


def _setup(tmp_path: Path):
    source = tmp_path / "src" / "Api.kt"
    source.parent.mkdir(parents=True)
    source.write_text("class Api\n", encoding="utf-8")
    module = make_module(":lib", make_spec(":lib", roots=[tmp_path / "src"]))
    configuration = Aggregator().aggregate_module(module, output_dir=tmp_path / "out")
    state = IncrementalStateStore(tmp_path / "state")
    cache = BuildCache(tmp_path / "cache")
    return configuration, state, cache, source


def test_first_plan_runs(tmp_path: Path) -> None:
    configuration, state, cache, _ = _setup(tmp_path)

    plan = IncrementalPlanner(state, build_cache=cache).plan(":lib", configuration)

    assert plan.action is Action.RUN
    assert plan.reason == "no previous generation"


def test_unchanged_inputs_skip(tmp_path: Path) -> None:
    configuration, state, cache, _ = _setup(tmp_path)
    planner = IncrementalPlanner(state, build_cache=cache)
    first = planner.plan(":lib", configuration)
    configuration.output_dir.mkdir()
    state.save(":lib", fingerprint=first.fingerprint, output_dir=configuration.output_dir)

    second = planner.plan(":lib", configuration)

    assert second.action is Action.SKIP
    assert second.fingerprint == first.fingerprint


def test_missing_output_forces_run(tmp_path: Path) -> None:
    configuration, state, cache, _ = _setup(tmp_path)
    planner = IncrementalPlanner(state, build_cache=cache)
    first = planner.plan(":lib", configuration)
    state.save(":lib", fingerprint=first.fingerprint, output_dir=configuration.output_dir)

    plan = planner.plan(":lib", configuration)

    assert plan.action is Action.RUN
    assert plan.reason == "previous output missing"


def test_changed_file_runs(tmp_path: Path) -> None:
    configuration, state, cache, source = _setup(tmp_path)
    planner = IncrementalPlanner(state, build_cache=cache)
    first = planner.plan(":lib", configuration)
    configuration.output_dir.mkdir()
    state.save(":lib", fingerprint=first.fingerprint, output_dir=configuration.output_dir)

    source.write_text("class Api { val changed = true }\n", encoding="utf-8")
    plan = planner.plan(":lib", configuration)

    assert plan.action is Action.RUN
    assert plan.reason == "inputs changed"
    assert plan.fingerprint != first.fingerprint


def test_cached_output_is_restored(tmp_path: Path) -> None:
    configuration, state, cache, _ = _setup(tmp_path)
    planner = IncrementalPlanner(state, build_cache=cache)
    fingerprint = planner.plan(":lib", configuration).fingerprint
    produced = tmp_path / "produced"
    produced.mkdir()
    (produced / "index.html").write_text("<h1>lib</h1>", encoding="utf-8")
    cache.store(fingerprint, produced)

    assert planner.plan(":lib", configuration).action is Action.RESTORE


def test_rerun_ignores_state(tmp_path: Path) -> None:
    configuration, state, cache, _ = _setup(tmp_path)
    first = IncrementalPlanner(state).plan(":lib", configuration)
    configuration.output_dir.mkdir()
    state.save(":lib", fingerprint=first.fingerprint, output_dir=configuration.output_dir)

    plan = IncrementalPlanner(state, rerun=True).plan(":lib", configuration)

    assert plan.action is Action.RUN
