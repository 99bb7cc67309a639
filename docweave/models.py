"""Core data models shared across docweave components."""

from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Dict, FrozenSet, Iterable, List, Mapping, Optional, Tuple


class Visibility(str, Enum):
    """Declaration visibilities that may be documented."""

    PUBLIC = "public"
    PROTECTED = "protected"
    INTERNAL = "internal"
    PRIVATE = "private"

    @classmethod
    def parse(cls, value: str) -> "Visibility":
        return cls(value.strip().lower())


class Platform(str, Enum):
    """Analysis platform used to set up code analysis and samples."""

    COMMON = "common"
    JVM = "jvm"
    JS = "js"
    WASM = "wasm"
    NATIVE = "native"

    @classmethod
    def parse(cls, value: str) -> "Platform":
        lowered = value.strip().lower()
        if lowered in {"android", "androidjvm"}:
            return cls.JVM
        return cls(lowered)

    @classmethod
    def from_source_set_name(cls, name: str) -> Optional["Platform"]:
        """Guess the platform from conventional source set names (``jvmMain``, ``linuxX64Main``)."""
        lowered = name.lower()
        for prefix, platform in _PLATFORM_PREFIXES:
            if lowered.startswith(prefix):
                return platform
        return None


_PLATFORM_PREFIXES: Tuple[Tuple[str, Platform], ...] = (
    ("common", Platform.COMMON),
    ("jvm", Platform.JVM),
    ("android", Platform.JVM),
    ("main", Platform.JVM),
    ("javascript", Platform.JS),
    ("java", Platform.JVM),
    ("wasm", Platform.WASM),
    ("js", Platform.JS),
    ("linux", Platform.NATIVE),
    ("macos", Platform.NATIVE),
    ("mingw", Platform.NATIVE),
    ("ios", Platform.NATIVE),
    ("tvos", Platform.NATIVE),
    ("watchos", Platform.NATIVE),
    ("native", Platform.NATIVE),
)

DEFAULT_VISIBILITIES: FrozenSet[Visibility] = frozenset({Visibility.PUBLIC})


@dataclass(frozen=True, order=True)
class SourceSetID:
    """Stable identity of one documentable unit, comparable across modules."""

    scope: str
    name: str

    def __str__(self) -> str:
        return f"{self.scope}/{self.name}"

    @classmethod
    def parse(cls, value: str, *, default_scope: str) -> "SourceSetID":
        """Parse ``scope/name`` or a bare ``name`` that inherits ``default_scope``."""
        scope, sep, name = value.strip().rpartition("/")
        if not sep:
            return cls(scope=default_scope, name=name)
        return cls(scope=scope, name=name)


@dataclass(frozen=True)
class ClasspathEntry:
    """One classpath element; ``coordinate`` is ``group:artifact`` when known."""

    path: Path
    coordinate: Optional[str] = None

    @property
    def key(self) -> str:
        """Identity used to detect overlapping entries."""
        if self.coordinate:
            return f"coordinate:{self.coordinate}"
        return f"path:{self.path.as_posix()}"


def dedupe_classpath(entries: Iterable[ClasspathEntry]) -> Tuple[ClasspathEntry, ...]:
    """Drop entries whose identity was already seen, preserving first-seen order."""
    seen: set[str] = set()
    result: List[ClasspathEntry] = []
    for entry in entries:
        if entry.key in seen:
            continue
        seen.add(entry.key)
        result.append(entry)
    return tuple(result)


@dataclass(frozen=True)
class PackageOptions:
    """Partial override of source set options for packages matching ``matching_regex``."""

    matching_regex: str = ".*"
    suppress: Optional[bool] = None
    documented_visibilities: Optional[FrozenSet[Visibility]] = None
    skip_deprecated: Optional[bool] = None
    report_undocumented: Optional[bool] = None

    def matches(self, package: str) -> bool:
        return re.fullmatch(self.matching_regex, package) is not None


@dataclass(frozen=True)
class PackageSettings:
    """Effective options for a single package after applying overrides."""

    suppress: bool
    documented_visibilities: FrozenSet[Visibility]
    skip_deprecated: bool
    report_undocumented: bool


@dataclass(frozen=True)
class ExternalDocumentationLink:
    """Documentation hosted elsewhere that declarations may link to."""

    url: str
    package_list_url: Optional[str] = None

    @property
    def effective_package_list_url(self) -> str:
        if self.package_list_url:
            return self.package_list_url
        return f"{self.url.rstrip('/')}/package-list"


@dataclass(frozen=True)
class SourceLink:
    """Maps a local source directory to a browsable remote location."""

    local_directory: Path
    remote_url: str
    remote_line_suffix: Optional[str] = "#L"


@dataclass(frozen=True)
class SourceSetSpec:
    """Fully resolved documentation parameters for one source set.

    Instances are produced by :class:`docweave.parameters.builder.SourceSetSpecBuilder`
    and are never mutated afterwards; the resolver derives new instances with
    :func:`dataclasses.replace` when it merges producer classpaths.
    """

    source_set_id: SourceSetID
    display_name: str
    analysis_platform: Platform
    source_roots: Tuple[Path, ...]
    samples: Tuple[Path, ...] = ()
    includes: Tuple[Path, ...] = ()
    classpath: Tuple[ClasspathEntry, ...] = ()
    suppressed_files: Tuple[Path, ...] = ()
    suppress: bool = False
    suppress_generated_files: bool = True
    documented_visibilities: FrozenSet[Visibility] = DEFAULT_VISIBILITIES
    per_package_options: Tuple[PackageOptions, ...] = ()
    external_documentation_links: Tuple[ExternalDocumentationLink, ...] = ()
    source_links: Tuple[SourceLink, ...] = ()
    skip_empty_packages: bool = True
    skip_deprecated: bool = False
    report_undocumented: bool = False
    jdk_version: int = 8
    language_version: Optional[str] = None
    api_version: Optional[str] = None
    no_stdlib_link: bool = False
    no_jdk_link: bool = False
    no_android_sdk_link: bool = False
    dependent_source_sets: FrozenSet[SourceSetID] = frozenset()

    @property
    def name(self) -> str:
        return self.source_set_id.name

    def package_settings(self, package: str) -> PackageSettings:
        """Resolve options for ``package``; the first matching override wins."""
        for options in self.per_package_options:
            if not options.matches(package):
                continue
            return PackageSettings(
                suppress=_pick(options.suppress, self.suppress),
                documented_visibilities=(
                    options.documented_visibilities
                    if options.documented_visibilities is not None
                    else self.documented_visibilities
                ),
                skip_deprecated=_pick(options.skip_deprecated, self.skip_deprecated),
                report_undocumented=_pick(options.report_undocumented, self.report_undocumented),
            )
        return PackageSettings(
            suppress=self.suppress,
            documented_visibilities=self.documented_visibilities,
            skip_deprecated=self.skip_deprecated,
            report_undocumented=self.report_undocumented,
        )

    def with_classpath(self, classpath: Iterable[ClasspathEntry]) -> "SourceSetSpec":
        return replace(self, classpath=tuple(classpath))


def _pick(override: Optional[bool], default: bool) -> bool:
    return default if override is None else override


@dataclass(frozen=True)
class FailurePolicy:
    """Controls which engine diagnostics fail a generation unit."""

    fail_on_warning: bool = False
    fail_on_error: bool = True

    @classmethod
    def strictest(cls, policies: Iterable["FailurePolicy"]) -> "FailurePolicy":
        collected = list(policies)
        if not collected:
            return cls()
        return cls(
            fail_on_warning=any(policy.fail_on_warning for policy in collected),
            fail_on_error=any(policy.fail_on_error for policy in collected),
        )


@dataclass(frozen=True)
class ModuleDependency:
    """A consumption edge from one module to a producer of documentation parameters."""

    module: str
    artifact: Optional[Path] = None
    source_sets: Tuple[str, ...] = ()

    @property
    def is_external(self) -> bool:
        return self.artifact is not None

    def applies_to(self, source_set_name: str) -> bool:
        return not self.source_sets or source_set_name in self.source_sets


@dataclass(frozen=True)
class ModuleParameters:
    """All documentation parameters owned by one module."""

    module_path: str
    module_name: str
    source_sets: Tuple[SourceSetSpec, ...] = ()
    module_version: Optional[str] = None
    output_format: str = "html"
    plugins_classpath: Tuple[ClasspathEntry, ...] = ()
    suppress_inherited_members: bool = False
    failure_policy: FailurePolicy = field(default_factory=FailurePolicy)
    dependencies: Tuple[ModuleDependency, ...] = ()
    consumed_source_sets: FrozenSet[SourceSetID] = frozenset()
    module_dir: Optional[Path] = None

    def source_set_ids(self) -> Tuple[SourceSetID, ...]:
        return tuple(spec.source_set_id for spec in self.source_sets)

    def runtime_classpath(self) -> Tuple[ClasspathEntry, ...]:
        """Ordered union of the classpaths of every source set of this module."""
        entries: List[ClasspathEntry] = []
        for spec in self.source_sets:
            entries.extend(spec.classpath)
        return dedupe_classpath(entries)


@dataclass(frozen=True)
class ModuleDescriptor:
    """Module-level metadata carried into the global configuration."""

    module_path: str
    module_name: str
    module_version: Optional[str]
    source_set_ids: Tuple[SourceSetID, ...]
    consumed_source_sets: FrozenSet[SourceSetID] = frozenset()

    @classmethod
    def from_parameters(cls, module: ModuleParameters) -> "ModuleDescriptor":
        return cls(
            module_path=module.module_path,
            module_name=module.module_name,
            module_version=module.module_version,
            source_set_ids=tuple(sorted(module.source_set_ids())),
            consumed_source_sets=module.consumed_source_sets,
        )


@dataclass(frozen=True)
class GlobalConfiguration:
    """Merged, deduplicated configuration handed to the rendering engine.

    ``source_sets`` is keyed by :class:`SourceSetID` and iterates in sorted key
    order. The value is rebuilt on every run and never persisted directly.
    """

    name: str
    source_sets: Mapping[SourceSetID, SourceSetSpec]
    owners: Mapping[SourceSetID, str]
    modules: Mapping[str, ModuleDescriptor]
    output_dir: Path
    output_format: str = "html"
    plugins_classpath: Tuple[ClasspathEntry, ...] = ()
    failure_policy: FailurePolicy = field(default_factory=FailurePolicy)
    suppress_inherited_members: bool = False
    external_source_sets: FrozenSet[SourceSetID] = frozenset()
    cache_key: Mapping[str, str] = field(default_factory=dict)

    def owner_of(self, source_set_id: SourceSetID) -> Optional[str]:
        return self.owners.get(source_set_id)

    def with_output_dir(self, output_dir: Path) -> "GlobalConfiguration":
        return replace(self, output_dir=output_dir)


def sorted_mapping(items: Mapping[SourceSetID, SourceSetSpec]) -> Dict[SourceSetID, SourceSetSpec]:
    return {key: items[key] for key in sorted(items)}


__all__ = [
    "ClasspathEntry",
    "DEFAULT_VISIBILITIES",
    "ExternalDocumentationLink",
    "FailurePolicy",
    "GlobalConfiguration",
    "ModuleDependency",
    "ModuleDescriptor",
    "ModuleParameters",
    "PackageOptions",
    "PackageSettings",
    "Platform",
    "SourceLink",
    "SourceSetID",
    "SourceSetSpec",
    "Visibility",
    "dedupe_classpath",
    "sorted_mapping",
]
