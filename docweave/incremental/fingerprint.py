"""Relocatable fingerprints of everything that influences a generation unit."""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any, Mapping

from ..models import ClasspathEntry, GlobalConfiguration
from ..parameters.serialization import configuration_to_payload
from .hashing import FileHasher, iter_files

MISSING = "missing"

# Compared by the planner (output_dir) or identified by coordinate and content (classpath path).
_IGNORED_KEYS = frozenset({"output_dir", "path"})
# Locations that reach the engine; digested relative to the workspace root.
_LOCATION_KEYS = frozenset({"includes", "local_directory", "samples", "source_roots", "suppressed_files"})


class Fingerprinter:
    """Digests input file contents, classpath contents and option values.

    Input locations enter the digest relative to ``root`` (the workspace root),
    so moving a workspace to a different directory keeps fingerprints stable.
    Locations outside ``root`` are digested as absolute paths.
    """

    def __init__(self, hasher: FileHasher | None = None, *, root: Path | None = None) -> None:
        self.hasher = hasher or FileHasher()
        self.root = root

    def compute(self, configuration: GlobalConfiguration, extra: Mapping[str, str] | None = None) -> str:
        digest = hashlib.sha256()
        for spec in configuration.source_sets.values():
            label = str(spec.source_set_id)
            for group, paths in (
                ("source_roots", spec.source_roots),
                ("samples", spec.samples),
                ("includes", spec.includes),
                ("suppressed_files", spec.suppressed_files),
            ):
                for index, path in enumerate(paths):
                    self._update_path(digest, f"{label}|{group}|{index}", path)
            for index, entry in enumerate(spec.classpath):
                self._update_classpath(digest, f"{label}|classpath|{index}", entry)
        for index, entry in enumerate(configuration.plugins_classpath):
            self._update_classpath(digest, f"plugins|{index}", entry)

        options = _relocatable(configuration_to_payload(configuration).model_dump(mode="json"), self.root)
        _update(digest, "options", _json_digest(options))
        _update(digest, "extra", _json_digest(dict(sorted((extra or {}).items()))))
        return digest.hexdigest()

    def _update_path(self, digest: Any, label: str, path: Path) -> None:
        if path.is_file():
            _update(digest, label, f"{path.name}={self.hasher.hash(path)}")
            return
        if not path.is_dir():
            _update(digest, label, MISSING)
            return
        _update(digest, label, "dir")
        for rel_path, file_path in iter_files(path):
            _update(digest, f"{label}|{rel_path}", self.hasher.hash(file_path))

    def _update_classpath(self, digest: Any, label: str, entry: ClasspathEntry) -> None:
        identity = entry.coordinate or entry.path.name
        _update(digest, f"{label}|id", identity)
        self._update_path(digest, f"{label}|content", entry.path)


def _update(digest: Any, label: str, value: str) -> None:
    digest.update(label.encode("utf-8"))
    digest.update(b"\0")
    digest.update(value.encode("utf-8"))
    digest.update(b"\n")


def _json_digest(data: object) -> str:
    text = json.dumps(data, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def _relocatable(data: Any, root: Path | None) -> Any:
    if isinstance(data, dict):
        result = {}
        for key, value in data.items():
            if key in _IGNORED_KEYS:
                continue
            if key in _LOCATION_KEYS:
                result[key] = _relative_locations(value, root)
            else:
                result[key] = _relocatable(value, root)
        return result
    if isinstance(data, list):
        return [_relocatable(item, root) for item in data]
    return data


def _relative_locations(value: Any, root: Path | None) -> Any:
    if isinstance(value, list):
        return [_relative_locations(item, root) for item in value]
    if not isinstance(value, str) or root is None:
        return value
    try:
        return Path(value).relative_to(root).as_posix()
    except ValueError:
        return value


__all__ = ["Fingerprinter", "MISSING"]
