"""Persistent per-unit incremental state."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from datetime import UTC, datetime
from hashlib import sha256
from pathlib import Path
from typing import Optional

from ..logging import get_logger
from ..parameters.serialization import write_text_atomic

_STATE_VERSION = 1
_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def unit_slug(unit: str) -> str:
    """Filesystem-safe, collision-resistant name for a unit such as ':lib:core'."""
    slug = _UNSAFE_CHARS.sub("_", unit).strip("_") or "root"
    digest = sha256(unit.encode("utf-8")).hexdigest()[:8]
    return f"{slug}-{digest}"


@dataclass(frozen=True)
class UnitState:
    """Fingerprint of the last successful generation of a unit."""

    fingerprint: str
    output_dir: Path
    updated_at: str


class IncrementalStateStore:
    """One JSON document per generation unit, replaced atomically on every save."""

    def __init__(self, root: Path) -> None:
        self._root = root
        self.logger = get_logger("stores.state")

    def path_for(self, unit: str) -> Path:
        return self._root / f"{unit_slug(unit)}.json"

    def load(self, unit: str) -> Optional[UnitState]:
        path = self.path_for(unit)
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as exc:
            self.logger.warning("Ignoring unreadable state for %s (%s): %s", unit, path, exc)
            return None
        if not isinstance(data, dict) or data.get("version") != _STATE_VERSION:
            return None
        fingerprint = data.get("fingerprint")
        output_dir = data.get("output_dir")
        if not isinstance(fingerprint, str) or not isinstance(output_dir, str):
            return None
        updated_at = data.get("updated_at")
        return UnitState(
            fingerprint=fingerprint,
            output_dir=Path(output_dir),
            updated_at=updated_at if isinstance(updated_at, str) else "",
        )

    def save(self, unit: str, *, fingerprint: str, output_dir: Path) -> UnitState:
        state = UnitState(
            fingerprint=fingerprint,
            output_dir=output_dir,
            updated_at=datetime.now(UTC).isoformat().replace("+00:00", "Z"),
        )
        payload = {
            "version": _STATE_VERSION,
            "unit": unit,
            "fingerprint": state.fingerprint,
            "output_dir": state.output_dir.as_posix(),
            "updated_at": state.updated_at,
        }
        write_text_atomic(self.path_for(unit), json.dumps(payload, indent=2, sort_keys=True) + "\n")
        self.logger.debug("Stored fingerprint %s for %s", fingerprint[:12], unit)
        return state

    def clear(self, unit: str) -> None:
        self.path_for(unit).unlink(missing_ok=True)


__all__ = ["IncrementalStateStore", "UnitState", "unit_slug"]
