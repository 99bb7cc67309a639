"""Content hashing of input files with a persisted stat cache."""

from __future__ import annotations

import hashlib
import json
import os
import threading
from pathlib import Path
from typing import Dict, Iterator, Tuple

from ..logging import get_logger

_CACHE_VERSION = 1
_CHUNK_SIZE = 1024 * 1024


def hash_file(path: Path) -> str:
    digest = hashlib.sha256()
    with path.open("rb") as handle:
        for chunk in iter(lambda: handle.read(_CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()


def iter_files(root: Path) -> Iterator[Tuple[str, Path]]:
    """Yield ``(relative posix path, path)`` for every file under ``root`` in sorted order."""
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames.sort()
        current_dir = Path(dirpath)
        for filename in sorted(filenames):
            path = current_dir / filename
            yield path.relative_to(root).as_posix(), path


class FileHasher:
    """SHA-256 hashes keyed by path, reused while a file's size and mtime are unchanged."""

    def __init__(self, cache_path: Path | None = None) -> None:
        self._cache_path = cache_path
        self._lock = threading.Lock()
        self._entries: Dict[str, Dict[str, object]] = {}
        self._dirty = False
        self.logger = get_logger("incremental.hashing")
        if cache_path is not None:
            self._entries = _load_cache(cache_path)

    def hash(self, path: Path) -> str:
        key = path.resolve().as_posix()
        stat_result = path.stat()
        size = stat_result.st_size
        mtime_ns = stat_result.st_mtime_ns
        with self._lock:
            cached = self._entries.get(key)
        if cached and cached.get("size") == size and cached.get("mtime_ns") == mtime_ns:
            return cached["hash"]  # type: ignore[return-value]
        file_hash = hash_file(path)
        with self._lock:
            self._entries[key] = {"size": size, "mtime_ns": mtime_ns, "hash": file_hash}
            self._dirty = True
        return file_hash

    def persist(self) -> None:
        with self._lock:
            if not self._dirty or self._cache_path is None:
                return
            entries = dict(self._entries)
            self._dirty = False
        try:
            self._cache_path.parent.mkdir(parents=True, exist_ok=True)
            payload = {"version": _CACHE_VERSION, "files": entries}
            self._cache_path.write_text(json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8")
        except OSError as exc:
            self.logger.warning("Unable to persist hash cache %s: %s", self._cache_path, exc)


def _load_cache(cache_path: Path) -> Dict[str, Dict[str, object]]:
    try:
        payload = json.loads(cache_path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return {}
    except (OSError, ValueError):
        return {}

    if not isinstance(payload, dict) or payload.get("version") != _CACHE_VERSION:
        return {}

    files = payload.get("files")
    if not isinstance(files, dict):
        return {}

    valid: Dict[str, Dict[str, object]] = {}
    for key, entry in files.items():
        if not isinstance(entry, dict):
            continue
        size = entry.get("size")
        mtime_ns = entry.get("mtime_ns")
        file_hash = entry.get("hash")
        if (
            isinstance(key, str)
            and isinstance(size, int)
            and isinstance(mtime_ns, int)
            and isinstance(file_hash, str)
        ):
            valid[key] = {"size": size, "mtime_ns": mtime_ns, "hash": file_hash}
    return valid


__all__ = ["FileHasher", "hash_file", "iter_files"]
