"""Tests for the content-addressed build cache."""

from __future__ import annotations

from pathlib import Path

from docweave.stores import BuildCache


def _output(root: Path) -> Path:
    (root / "nested").mkdir(parents=True)
    (root / "index.html").write_text("<h1>docs</h1>", encoding="utf-8")
    (root / "nested" / "page.html").write_text("<p>page</p>", encoding="utf-8")
    return root


def test_store_and_restore(tmp_path: Path) -> None:
    cache = BuildCache(tmp_path / "cache")
    fingerprint = "ab" + "0" * 62

    assert not cache.has(fingerprint)
    stored = cache.store(fingerprint, _output(tmp_path / "produced"))
    restored = tmp_path / "restored"
    restored.mkdir()

    assert stored == cache.entry_path(fingerprint)
    assert cache.has(fingerprint)
    assert cache.restore(fingerprint, restored) is True
    assert (restored / "nested" / "page.html").read_text(encoding="utf-8") == "<p>page</p>"


def test_store_is_idempotent(tmp_path: Path) -> None:
    cache = BuildCache(tmp_path / "cache")
    produced = _output(tmp_path / "produced")

    first = cache.store("cd" + "1" * 62, produced)
    second = cache.store("cd" + "1" * 62, produced)

    assert first == second
    bucket = cache.entry_path("cd" + "1" * 62).parent
    assert [path.name for path in bucket.iterdir()] == ["cd" + "1" * 62]


def test_restore_unknown_fingerprint(tmp_path: Path) -> None:
    cache = BuildCache(tmp_path / "cache")

    assert cache.restore("ef" + "2" * 62, tmp_path / "target") is False
