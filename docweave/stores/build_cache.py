"""Content-addressed store of generated output directories."""

from __future__ import annotations

import os
import shutil
import tempfile
from pathlib import Path
from typing import Optional

from ..logging import get_logger


class BuildCache:
    """Output directories keyed by the fingerprint that produced them.

    Entries are written to a temporary directory and renamed into place. Two
    writers racing on the same fingerprint produce identical content, so the
    loser simply discards its copy.
    """

    def __init__(self, root: Path) -> None:
        self._root = root
        self.logger = get_logger("stores.build_cache")

    def entry_path(self, fingerprint: str) -> Path:
        return self._root / fingerprint[:2] / fingerprint

    def has(self, fingerprint: str) -> bool:
        return self.entry_path(fingerprint).is_dir()

    def store(self, fingerprint: str, source_dir: Path) -> Optional[Path]:
        target = self.entry_path(fingerprint)
        if target.is_dir():
            return target
        target.parent.mkdir(parents=True, exist_ok=True)
        temp_dir = Path(tempfile.mkdtemp(prefix=f".{fingerprint[:12]}.", dir=target.parent))
        try:
            shutil.copytree(source_dir, temp_dir, dirs_exist_ok=True)
            os.rename(temp_dir, target)
        except OSError as exc:
            shutil.rmtree(temp_dir, ignore_errors=True)
            if target.is_dir():
                return target
            self.logger.warning("Unable to store %s in the build cache: %s", fingerprint[:12], exc)
            return None
        self.logger.debug("Cached output for %s", fingerprint[:12])
        return target

    def restore(self, fingerprint: str, destination: Path) -> bool:
        source = self.entry_path(fingerprint)
        if not source.is_dir():
            return False
        shutil.copytree(source, destination, dirs_exist_ok=True)
        self.logger.debug("Restored output for %s", fingerprint[:12])
        return True


__all__ = ["BuildCache"]
