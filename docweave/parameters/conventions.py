"""Convention providers that supply default source set options."""

from __future__ import annotations

from pathlib import Path
from typing import Dict, Mapping, Optional, Protocol, Sequence

from ..models import Platform

_SOURCE_DIR_NAMES = ("kotlin", "java")
_GENERATED_DIR = Path("build") / "generated"


class ConventionProvider(Protocol):
    """Supplies default option values for a source set that did not declare them.

    Keys use the option names of :class:`docweave.parameters.builder.SourceSetSpecBuilder`
    (``scope``, ``display_name``, ``analysis_platform``, ``source_roots`` ...) plus
    ``generated_sources`` for directories that are suppressed when
    ``suppress_generated_files`` is enabled.
    """

    def defaults_for(
        self, module_path: str, module_dir: Optional[Path], source_set_name: str
    ) -> Mapping[str, object]:
        """Return defaults for ``source_set_name`` of ``module_path``."""


class StaticConventions:
    """Fixed defaults, optionally specialised per source set name."""

    def __init__(
        self,
        defaults: Mapping[str, object] | None = None,
        *,
        source_sets: Mapping[str, Mapping[str, object]] | None = None,
    ) -> None:
        self._defaults = dict(defaults or {})
        self._source_sets = {name: dict(values) for name, values in (source_sets or {}).items()}

    def defaults_for(
        self, module_path: str, module_dir: Optional[Path], source_set_name: str
    ) -> Mapping[str, object]:
        values = dict(self._defaults)
        values.update(self._source_sets.get(source_set_name, {}))
        return values


class LayoutConventions:
    """Derives defaults from the conventional ``src/<sourceSet>/<lang>`` project layout."""

    def defaults_for(
        self, module_path: str, module_dir: Optional[Path], source_set_name: str
    ) -> Mapping[str, object]:
        values: Dict[str, object] = {
            "scope": module_path,
            "display_name": _display_name(source_set_name),
        }
        platform = Platform.from_source_set_name(source_set_name)
        if platform is not None:
            values["analysis_platform"] = platform
        if module_dir is not None:
            roots = [
                module_dir / "src" / source_set_name / dir_name
                for dir_name in _SOURCE_DIR_NAMES
                if (module_dir / "src" / source_set_name / dir_name).is_dir()
            ]
            if roots:
                values["source_roots"] = roots
            values["generated_sources"] = [module_dir / _GENERATED_DIR]
        return values


def collect_defaults(
    providers: Sequence[ConventionProvider],
    module_path: str,
    module_dir: Optional[Path],
    source_set_name: str,
) -> Dict[str, object]:
    """Merge provider defaults; the first provider supplying a key wins."""
    merged: Dict[str, object] = {}
    for provider in providers:
        for key, value in provider.defaults_for(module_path, module_dir, source_set_name).items():
            if value is None:
                continue
            merged.setdefault(key, value)
    return merged


def _display_name(source_set_name: str) -> str:
    if source_set_name.endswith("Main") and len(source_set_name) > len("Main"):
        return source_set_name[: -len("Main")]
    return source_set_name


__all__ = [
    "ConventionProvider",
    "LayoutConventions",
    "StaticConventions",
    "collect_defaults",
]
