"""Tests for the incremental state store."""

from __future__ import annotations

from pathlib import Path

from docweave.stores import IncrementalStateStore
from docweave.stores.state import unit_slug


def test_state_round_trip(tmp_path: Path) -> None:
    store = IncrementalStateStore(tmp_path / "state")
    saved = store.save(":lib:core", fingerprint="abc123", output_dir=tmp_path / "out")

    loaded = IncrementalStateStore(tmp_path / "state").load(":lib:core")

    assert loaded == saved
    assert loaded is not None
    assert loaded.updated_at.endswith("Z")


def test_missing_state_loads_as_none(tmp_path: Path) -> None:
    assert IncrementalStateStore(tmp_path).load(":lib") is None


def test_corrupt_or_foreign_state_is_ignored(tmp_path: Path) -> None:
    store = IncrementalStateStore(tmp_path)
    store.path_for(":a").write_text("{broken", encoding="utf-8")
    store.path_for(":b").write_text('{"version": 99, "fingerprint": "x", "output_dir": "/o"}', encoding="utf-8")

    assert store.load(":a") is None
    assert store.load(":b") is None


def test_save_leaves_no_temporary_files(tmp_path: Path) -> None:
    store = IncrementalStateStore(tmp_path / "state")
    store.save(":lib", fingerprint="one", output_dir=tmp_path / "out")
    store.save(":lib", fingerprint="two", output_dir=tmp_path / "out")

    assert [path.name for path in (tmp_path / "state").iterdir()] == [store.path_for(":lib").name]
    assert store.load(":lib").fingerprint == "two"  # type: ignore[union-attr]


def test_clear_removes_state(tmp_path: Path) -> None:
    store = IncrementalStateStore(tmp_path)
    store.save(":lib", fingerprint="one", output_dir=tmp_path / "out")

    store.clear(":lib")

    assert store.load(":lib") is None


def test_unit_slugs_are_distinct_for_similar_names() -> None:
    assert unit_slug(":lib:core") != unit_slug(":lib-core")
    assert unit_slug(":").startswith("root-")
