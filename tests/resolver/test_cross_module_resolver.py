"""Tests for cross-module resolution."""

from __future__ import annotations

from pathlib import Path

import pytest

from docweave.errors import CyclicModuleDependency, UnresolvedDependency
from docweave.models import ClasspathEntry, ModuleDependency, SourceSetID
from docweave.parameters.serialization import write_module_parameters
from docweave.resolver import CrossModuleResolver, merge_classpath
from tests._fixtures.modules import jar, make_module, make_spec


def test_producer_classpath_precedes_and_wins() -> None:
    shared_a = ClasspathEntry(path=Path("/repo/shared-1.0.jar"), coordinate="org.shared:shared")
    shared_b = ClasspathEntry(path=Path("/repo/shared-1.1.jar"), coordinate="org.shared:shared")
    lib_a = make_module(":libA", make_spec(":libA", classpath=[jar("a", "org.a:a"), shared_a]))
    lib_b = make_module(
        ":libB",
        make_spec(":libB", classpath=[shared_b, jar("b", "org.b:b")]),
        consumes=[ModuleDependency(module=":libA")],
    )

    result = CrossModuleResolver().resolve([lib_b, lib_a])

    resolved_b = result.module(":libB")
    (spec,) = resolved_b.source_sets
    assert spec.classpath == (jar("a", "org.a:a"), shared_a, jar("b", "org.b:b"))
    assert resolved_b.consumed_source_sets == frozenset({SourceSetID(":libA", "main")})
    assert [module.module_path for module in result.modules] == [":libB", ":libA"]
    assert result.order == (":libA", ":libB")


def test_identical_paths_without_coordinates_are_deduplicated() -> None:
    merged = merge_classpath([jar("x")], [jar("x"), jar("y")])

    assert merged == (jar("x"), jar("y"))


def test_transitive_producers_flow_through() -> None:
    core = make_module(":core", make_spec(":core", classpath=[jar("core-dep", "org:core-dep")]))
    lib = make_module(":lib", make_spec(":lib", classpath=[jar("lib-dep")]), consumes=[ModuleDependency(":core")])
    app = make_module(
        ":app",
        make_spec(":app", depends_on=[SourceSetID(":core", "main")]),
        consumes=[ModuleDependency(":lib")],
    )

    result = CrossModuleResolver(max_workers=2).resolve([app, lib, core])

    (spec,) = result.module(":app").source_sets
    assert spec.classpath == (jar("core-dep", "org:core-dep"), jar("lib-dep"))
    assert result.module(":app").consumed_source_sets == frozenset(
        {SourceSetID(":lib", "main"), SourceSetID(":core", "main")}
    )


def test_consumption_limited_to_named_source_sets() -> None:
    producer = make_module(":core", make_spec(":core", classpath=[jar("core-dep")]))
    consumer = make_module(
        ":lib",
        make_spec(":lib", "jvmMain"),
        make_spec(":lib", "jsMain"),
        consumes=[ModuleDependency(":core", source_sets=("jvmMain",))],
    )

    result = CrossModuleResolver().resolve([producer, consumer])

    jvm, js = result.module(":lib").source_sets
    assert jvm.classpath == (jar("core-dep"),)
    assert js.classpath == ()


def test_external_producer_is_loaded_from_artifact(tmp_path: Path) -> None:
    external = make_module(":ext", make_spec(":ext", "commonMain", classpath=[jar("ext-dep", "org:ext-dep")]))
    artifact = write_module_parameters(external, tmp_path / "ext.json")
    consumer = make_module(
        ":app",
        make_spec(":app", depends_on=[SourceSetID(":ext", "commonMain")]),
        consumes=[ModuleDependency(":ext", artifact=artifact)],
    )

    result = CrossModuleResolver().resolve([consumer])

    (spec,) = result.module(":app").source_sets
    assert spec.classpath == (jar("ext-dep", "org:ext-dep"),)
    assert result.module(":app").consumed_source_sets == frozenset({SourceSetID(":ext", "commonMain")})
    assert list(result.external) == [":ext"]


def test_unknown_in_run_producer_is_unresolved() -> None:
    consumer = make_module(":app", consumes=[ModuleDependency(":missing")])

    with pytest.raises(UnresolvedDependency) as excinfo:
        CrossModuleResolver().resolve([consumer])

    assert excinfo.value.consumer == ":app"
    assert excinfo.value.target == ":missing"


def test_missing_artifact_is_unresolved(tmp_path: Path) -> None:
    consumer = make_module(":app", consumes=[ModuleDependency(":ext", artifact=tmp_path / "nope.json")])

    with pytest.raises(UnresolvedDependency) as excinfo:
        CrossModuleResolver().resolve([consumer])

    assert excinfo.value.target == ":ext"


def test_corrupt_artifact_is_unresolved(tmp_path: Path) -> None:
    artifact = tmp_path / "ext.json"
    artifact.write_text("{broken", encoding="utf-8")
    consumer = make_module(":app", consumes=[ModuleDependency(":ext", artifact=artifact)])

    with pytest.raises(UnresolvedDependency):
        CrossModuleResolver().resolve([consumer])


def test_dependent_source_set_must_be_declared_or_consumed() -> None:
    module = make_module(":lib", make_spec(":lib", "jvmMain", depends_on=[SourceSetID(":other", "commonMain")]))

    with pytest.raises(UnresolvedDependency) as excinfo:
        CrossModuleResolver().resolve([module])

    assert excinfo.value.target == ":other/commonMain"


def test_dependent_source_set_within_module_is_accepted() -> None:
    module = make_module(
        ":lib",
        make_spec(":lib", "jvmMain", depends_on=[SourceSetID(":lib", "commonMain")]),
        make_spec(":lib", "commonMain"),
    )

    result = CrossModuleResolver().resolve([module])

    assert result.module(":lib").consumed_source_sets == frozenset()


def test_cycle_aborts_resolution() -> None:
    a = make_module(":a", consumes=[ModuleDependency(":b")])
    b = make_module(":b", consumes=[ModuleDependency(":a")])

    with pytest.raises(CyclicModuleDependency):
        CrossModuleResolver().resolve([a, b])


def test_inputs_are_not_mutated() -> None:
    producer = make_module(":core", make_spec(":core", classpath=[jar("core-dep")]))
    consumer = make_module(":lib", consumes=[ModuleDependency(":core")])

    CrossModuleResolver().resolve([producer, consumer])

    assert consumer.source_sets[0].classpath == ()
    assert consumer.consumed_source_sets == frozenset()
