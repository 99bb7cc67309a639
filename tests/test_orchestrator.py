"""Tests for docweave.orchestrator."""

from __future__ import annotations

import json

import pytest

from docweave.errors import ConfigError, CyclicModuleDependency, DuplicateSourceSetID, UnresolvedDependency
from docweave.orchestrator import ARTIFACT_PATH, Orchestrator
from docweave.parameters import read_module_parameters
from tests._fixtures.workspace_builder import FakeEngine, WorkspaceBuilder


def _two_module_workspace(builder: WorkspaceBuilder) -> WorkspaceBuilder:
    builder.kotlin_source("core", "com.example.core", "Core")
    builder.kotlin_source("lib", "com.example.lib", "Lib")
    builder.write({"core/libs/core-dep.jar": "core-dep"})
    builder.module(":core", source_sets=[{"name": "main", "classpath": ["libs/core-dep.jar"]}])
    builder.module(":lib", consumes=[":core"])
    builder.save()
    return builder


def test_generate_builds_every_unit(workspace_builder: WorkspaceBuilder, fake_engine: FakeEngine) -> None:
    root = _two_module_workspace(workspace_builder).path()

    report = Orchestrator(engine_runner=fake_engine).run_generate(root)

    assert report.ok
    assert [(result.unit, result.status) for result in report.results] == [
        (":core", "generated"),
        (":lib", "generated"),
        ("publication", "generated"),
    ]
    publication = (root / "build" / "docweave" / "publication" / "index.html").read_text(encoding="utf-8")
    assert ":core/main" in publication and ":lib/main" in publication
    lib_output = report.result_for(":lib").output_dir  # type: ignore[union-attr]
    assert lib_output.parent == root / "build" / "docweave" / "modules"
    assert (lib_output / "index.html").is_file()


def test_consumer_configuration_carries_producer_classpath(
    workspace_builder: WorkspaceBuilder, fake_engine: FakeEngine
) -> None:
    root = _two_module_workspace(workspace_builder).path()

    Orchestrator(engine_runner=fake_engine).run_generate(root)

    (lib_request,) = [request for request in fake_engine.requests if request.unit == ":lib"]
    configuration = json.loads(lib_request.config_path.read_text(encoding="utf-8"))
    (source_set,) = configuration["source_sets"]
    assert source_set["classpath"][0]["path"].endswith("core/libs/core-dep.jar")
    assert configuration["external_source_sets"] == [{"scope": ":core", "name": "main"}]


def test_module_artifacts_are_published(workspace_builder: WorkspaceBuilder, fake_engine: FakeEngine) -> None:
    root = _two_module_workspace(workspace_builder).path()

    report = Orchestrator(engine_runner=fake_engine).run_generate(root)

    artifact = root / "lib" / ARTIFACT_PATH
    assert report.artifacts[":lib"] == artifact
    published = read_module_parameters(artifact)
    assert published.module_path == ":lib"
    assert [str(item) for item in published.consumed_source_sets] == [":core/main"]


def test_second_run_skips_and_changes_rerun_affected_units(
    workspace_builder: WorkspaceBuilder, fake_engine: FakeEngine
) -> None:
    builder = _two_module_workspace(workspace_builder)
    orchestrator = Orchestrator(engine_runner=fake_engine)
    orchestrator.run_generate(builder.path())

    unchanged = orchestrator.run_generate(builder.path())
    builder.write({"lib/src/main/kotlin/com/example/lib/Lib.kt": "package com.example.lib\n\nclass Lib(val x: Int)\n"})
    changed = orchestrator.run_generate(builder.path())

    assert {result.status for result in unchanged.results} == {"skipped"}
    assert [(result.unit, result.status) for result in changed.results] == [
        (":core", "skipped"),
        (":lib", "generated"),
        ("publication", "generated"),
    ]
    assert sorted(fake_engine.units) == sorted([":core", ":lib", "publication", ":lib", "publication"])


def test_rerun_ignores_stored_state(workspace_builder: WorkspaceBuilder, fake_engine: FakeEngine) -> None:
    root = _two_module_workspace(workspace_builder).path()
    orchestrator = Orchestrator(engine_runner=fake_engine)
    orchestrator.run_generate(root)

    report = orchestrator.run_generate(root, rerun=True)

    assert {result.status for result in report.results} == {"generated"}
    assert len(fake_engine.requests) == 6


def test_failing_unit_does_not_stop_siblings(workspace_builder: WorkspaceBuilder) -> None:
    root = _two_module_workspace(workspace_builder).path()
    engine = FakeEngine(failing_units=[":core"])

    report = Orchestrator(engine_runner=engine).run_generate(root)

    assert not report.ok
    assert [result.unit for result in report.failed] == [":core"]
    assert report.result_for(":lib").status == "generated"  # type: ignore[union-attr]
    assert report.result_for("publication").status == "generated"  # type: ignore[union-attr]


def test_fail_fast_cancels_remaining_units(workspace_builder: WorkspaceBuilder) -> None:
    workspace_builder.settings["max_workers"] = 1
    root = _two_module_workspace(workspace_builder).path()
    engine = FakeEngine(failing_units=[":core"])

    report = Orchestrator(engine_runner=engine).run_generate(root, fail_fast=True)

    assert [(result.unit, result.status) for result in report.results] == [
        (":core", "failed"),
        (":lib", "cancelled"),
        ("publication", "cancelled"),
    ]
    assert engine.units == [":core"]


def test_plan_reports_actions_without_running_engine(
    workspace_builder: WorkspaceBuilder, fake_engine: FakeEngine
) -> None:
    root = _two_module_workspace(workspace_builder).path()
    orchestrator = Orchestrator(engine_runner=fake_engine)

    before = orchestrator.run_plan(root)
    orchestrator.run_generate(root)
    after = orchestrator.run_plan(root)

    assert [plan.action.value for plan in before.plans] == ["run", "run", "run"]
    assert [plan.action.value for plan in after.plans] == ["skip", "skip", "skip"]
    assert len(fake_engine.requests) == 3


def test_publication_can_be_disabled(workspace_builder: WorkspaceBuilder, fake_engine: FakeEngine) -> None:
    workspace_builder.settings["publication"] = {"enabled": False}
    root = _two_module_workspace(workspace_builder).path()

    report = Orchestrator(engine_runner=fake_engine).run_generate(root)

    assert [result.unit for result in report.results] == [":core", ":lib"]


def test_duplicate_source_set_aborts_before_generation(
    workspace_builder: WorkspaceBuilder, fake_engine: FakeEngine
) -> None:
    workspace_builder.kotlin_source("a", "com.example.a", "A")
    workspace_builder.kotlin_source("b", "com.example.b", "B")
    workspace_builder.module(":a", scope=":shared")
    workspace_builder.module(":b", scope=":shared")
    workspace_builder.save()

    with pytest.raises(DuplicateSourceSetID):
        Orchestrator(engine_runner=fake_engine).run_generate(workspace_builder.path())
    assert fake_engine.requests == []


def test_unresolved_consumption_aborts(workspace_builder: WorkspaceBuilder, fake_engine: FakeEngine) -> None:
    workspace_builder.kotlin_source("app", "com.example.app", "App")
    workspace_builder.module(":app", consumes=[":missing"])
    workspace_builder.save()

    with pytest.raises(UnresolvedDependency):
        Orchestrator(engine_runner=fake_engine).run_generate(workspace_builder.path())


def test_cyclic_consumption_aborts(workspace_builder: WorkspaceBuilder, fake_engine: FakeEngine) -> None:
    workspace_builder.kotlin_source("a", "com.example.a", "A")
    workspace_builder.kotlin_source("b", "com.example.b", "B")
    workspace_builder.module(":a", consumes=[":b"])
    workspace_builder.module(":b", consumes=[":a"])
    workspace_builder.save()

    with pytest.raises(CyclicModuleDependency):
        Orchestrator(engine_runner=fake_engine).run_generate(workspace_builder.path())


def test_similar_module_paths_get_distinct_output_dirs(
    workspace_builder: WorkspaceBuilder, fake_engine: FakeEngine
) -> None:
    workspace_builder.kotlin_source("feature-auth", "com.example.flat", "Flat")
    workspace_builder.kotlin_source("feature/auth", "com.example.nested", "Nested")
    workspace_builder.module(":feature-auth")
    workspace_builder.module(":feature:auth")
    workspace_builder.settings["publication"] = {"enabled": False}
    workspace_builder.save()

    report = Orchestrator(engine_runner=fake_engine).run_generate(workspace_builder.path())

    flat = report.result_for(":feature-auth")
    nested = report.result_for(":feature:auth")
    assert flat is not None and nested is not None
    assert flat.status == nested.status == "generated"
    assert flat.output_dir != nested.output_dir
    assert ":feature-auth/main" in (flat.output_dir / "index.html").read_text(encoding="utf-8")
    assert ":feature:auth/main" in (nested.output_dir / "index.html").read_text(encoding="utf-8")


def test_overlapping_output_dirs_are_rejected(workspace_builder: WorkspaceBuilder, fake_engine: FakeEngine) -> None:
    workspace_builder.settings["publication"] = {"name": "modules"}
    root = _two_module_workspace(workspace_builder).path()

    with pytest.raises(ConfigError, match="overlapping output directories"):
        Orchestrator(engine_runner=fake_engine).run_generate(root)
    assert fake_engine.requests == []
