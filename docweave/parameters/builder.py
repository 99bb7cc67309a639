"""Two-phase construction of source set and module parameters."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Mapping, Optional, Sequence, Set
from urllib.parse import urlparse

from ..errors import ConfigError, InvalidPackagePattern, MissingRequiredField
from ..logging import get_logger
from ..models import (
    DEFAULT_VISIBILITIES,
    ClasspathEntry,
    ExternalDocumentationLink,
    FailurePolicy,
    ModuleDependency,
    ModuleParameters,
    PackageOptions,
    Platform,
    SourceLink,
    SourceSetID,
    SourceSetSpec,
    Visibility,
    dedupe_classpath,
)
from .conventions import ConventionProvider, StaticConventions, collect_defaults

_LINK_SCHEMES = {"http", "https", "file"}

logger = get_logger("parameters")


@dataclass
class SourceSetSpecBuilder:
    """Mutable collection of raw declarations for one source set.

    Options left as ``None`` are filled from convention providers (and then from
    documented defaults) when :meth:`finalize` produces the immutable spec.
    """

    name: str
    scope: Optional[str] = None
    display_name: Optional[str] = None
    analysis_platform: Optional[Platform] = None
    source_roots: Optional[List[Path]] = None
    samples: List[Path] = field(default_factory=list)
    includes: List[Path] = field(default_factory=list)
    classpath: List[ClasspathEntry] = field(default_factory=list)
    suppressed_files: List[Path] = field(default_factory=list)
    suppress: Optional[bool] = None
    suppress_generated_files: Optional[bool] = None
    documented_visibilities: Optional[Set[Visibility]] = None
    per_package_options: List[PackageOptions] = field(default_factory=list)
    external_documentation_links: List[ExternalDocumentationLink] = field(default_factory=list)
    source_links: List[SourceLink] = field(default_factory=list)
    skip_empty_packages: Optional[bool] = None
    skip_deprecated: Optional[bool] = None
    report_undocumented: Optional[bool] = None
    jdk_version: Optional[int] = None
    language_version: Optional[str] = None
    api_version: Optional[str] = None
    no_stdlib_link: Optional[bool] = None
    no_jdk_link: Optional[bool] = None
    no_android_sdk_link: Optional[bool] = None
    depends_on: List[str] = field(default_factory=list)

    def depends(self, *source_sets: str) -> "SourceSetSpecBuilder":
        """Append dependent source sets (``name`` or ``scope/name``)."""
        self.depends_on.extend(source_sets)
        return self

    def package_option(self, matching_regex: str = ".*", **overrides: object) -> "SourceSetSpecBuilder":
        visibilities = overrides.pop("documented_visibilities", None)
        self.per_package_options.append(
            PackageOptions(
                matching_regex=matching_regex,
                documented_visibilities=(
                    frozenset(visibilities) if visibilities is not None else None  # type: ignore[arg-type]
                ),
                **overrides,  # type: ignore[arg-type]
            )
        )
        return self

    def external_documentation_link(
        self, url: str, package_list_url: str | None = None
    ) -> "SourceSetSpecBuilder":
        self.external_documentation_links.append(
            ExternalDocumentationLink(url=url, package_list_url=package_list_url)
        )
        return self

    def finalize(
        self,
        conventions: Sequence[ConventionProvider] = (),
        *,
        module_path: str = "",
        module_dir: Optional[Path] = None,
    ) -> SourceSetSpec:
        """Fill unset options from ``conventions`` and return the immutable spec."""
        defaults = collect_defaults(conventions, module_path, module_dir, self.name)

        scope = self.scope if self.scope is not None else _as_optional_str(defaults.get("scope"))
        if not scope:
            raise MissingRequiredField("scope", self.name)
        source_set_id = SourceSetID(scope=scope, name=self.name)

        display_name = self.display_name or _as_optional_str(defaults.get("display_name"))
        if not display_name:
            raise MissingRequiredField("display_name", source_set_id)

        platform = self.analysis_platform or _coerce_platform(defaults.get("analysis_platform"))
        if platform is None:
            raise MissingRequiredField("analysis_platform", source_set_id)

        roots: Optional[Iterable[Path]] = self.source_roots
        if roots is None:
            roots = _as_paths(defaults.get("source_roots"))
        if roots is None:
            raise MissingRequiredField("source_roots", source_set_id)

        package_options = tuple(
            _validated_package_options(option, source_set_id) for option in self.per_package_options
        )
        for link in self.external_documentation_links:
            _validate_link(link, source_set_id)

        suppress_generated = _flag(self.suppress_generated_files, defaults, "suppress_generated_files", True)
        suppressed: List[Path] = list(self.suppressed_files)
        if suppress_generated:
            suppressed.extend(_as_paths(defaults.get("generated_sources")) or [])

        visibilities = self.documented_visibilities
        if visibilities is None:
            default_visibilities = defaults.get("documented_visibilities")
            visibilities = set(default_visibilities) if default_visibilities else set(DEFAULT_VISIBILITIES)  # type: ignore[call-overload]

        jdk_version = self.jdk_version if self.jdk_version is not None else defaults.get("jdk_version", 8)
        if not isinstance(jdk_version, int) or isinstance(jdk_version, bool) or jdk_version < 1:
            raise ConfigError(f"Source set '{source_set_id}' declares invalid jdk_version {jdk_version!r}")

        dependent = frozenset(SourceSetID.parse(raw, default_scope=scope) for raw in self.depends_on)
        if source_set_id in dependent:
            raise ConfigError(f"Source set '{source_set_id}' cannot depend on itself")

        spec = SourceSetSpec(
            source_set_id=source_set_id,
            display_name=display_name,
            analysis_platform=platform,
            source_roots=_path_set(roots),
            samples=_path_set(self.samples),
            includes=_path_set(self.includes),
            classpath=tuple(self.classpath),
            suppressed_files=_path_set(suppressed),
            suppress=_flag(self.suppress, defaults, "suppress", False),
            suppress_generated_files=suppress_generated,
            documented_visibilities=frozenset(visibilities),
            per_package_options=package_options,
            external_documentation_links=tuple(self.external_documentation_links),
            source_links=tuple(self.source_links),
            skip_empty_packages=_flag(self.skip_empty_packages, defaults, "skip_empty_packages", True),
            skip_deprecated=_flag(self.skip_deprecated, defaults, "skip_deprecated", False),
            report_undocumented=_flag(self.report_undocumented, defaults, "report_undocumented", False),
            jdk_version=jdk_version,
            language_version=self.language_version or _as_optional_str(defaults.get("language_version")),
            api_version=self.api_version or _as_optional_str(defaults.get("api_version")),
            no_stdlib_link=_flag(self.no_stdlib_link, defaults, "no_stdlib_link", False),
            no_jdk_link=_flag(self.no_jdk_link, defaults, "no_jdk_link", False),
            no_android_sdk_link=_flag(self.no_android_sdk_link, defaults, "no_android_sdk_link", False),
            dependent_source_sets=dependent,
        )
        logger.debug("Finalized source set %s (%d roots)", source_set_id, len(spec.source_roots))
        return spec


@dataclass
class ModuleParametersBuilder:
    """Collects a module's declarations before producing :class:`ModuleParameters`."""

    module_path: str
    module_dir: Optional[Path] = None
    module_name: Optional[str] = None
    module_version: Optional[str] = None
    source_set_scope_default: Optional[str] = None
    output_format: str = "html"
    plugins_classpath: List[ClasspathEntry] = field(default_factory=list)
    suppress_inherited_members: bool = False
    fail_on_warning: bool = False
    fail_on_error: bool = True
    dependencies: List[ModuleDependency] = field(default_factory=list)
    source_sets: List[SourceSetSpecBuilder] = field(default_factory=list)

    def source_set(self, name: str) -> SourceSetSpecBuilder:
        """Return the builder registered under ``name``, creating it on first use."""
        for builder in self.source_sets:
            if builder.name == name:
                return builder
        builder = SourceSetSpecBuilder(name=name)
        self.source_sets.append(builder)
        return builder

    def consumes(
        self,
        module: str,
        *,
        artifact: Path | None = None,
        source_sets: Sequence[str] = (),
    ) -> "ModuleParametersBuilder":
        self.dependencies.append(
            ModuleDependency(module=module, artifact=artifact, source_sets=tuple(source_sets))
        )
        return self

    def finalize(self, conventions: Sequence[ConventionProvider] = ()) -> ModuleParameters:
        if not self.module_path.strip():
            raise ConfigError("Module path must not be empty")
        scope_default = self.source_set_scope_default or self.module_path
        providers = [StaticConventions({"scope": scope_default}), *conventions]
        specs = [
            builder.finalize(providers, module_path=self.module_path, module_dir=self.module_dir)
            for builder in self.source_sets
        ]
        return ModuleParameters(
            module_path=self.module_path,
            module_name=self.module_name or _module_name(self.module_path, self.module_dir),
            module_version=self.module_version,
            source_sets=tuple(specs),
            output_format=self.output_format,
            plugins_classpath=dedupe_classpath(self.plugins_classpath),
            suppress_inherited_members=self.suppress_inherited_members,
            failure_policy=FailurePolicy(
                fail_on_warning=self.fail_on_warning,
                fail_on_error=self.fail_on_error,
            ),
            dependencies=tuple(self.dependencies),
            module_dir=self.module_dir,
        )


def _validated_package_options(option: PackageOptions, source_set_id: SourceSetID) -> PackageOptions:
    pattern = option.matching_regex
    if not pattern or not pattern.strip():
        raise InvalidPackagePattern(pattern, source_set_id, "pattern is empty")
    try:
        re.compile(pattern)
    except re.error as exc:
        raise InvalidPackagePattern(pattern, source_set_id, str(exc)) from exc
    return option


def _validate_link(link: ExternalDocumentationLink, source_set_id: SourceSetID) -> None:
    for url in (link.url, link.package_list_url):
        if url is None:
            continue
        parsed = urlparse(url)
        if parsed.scheme not in _LINK_SCHEMES or not (parsed.netloc or parsed.path):
            raise ConfigError(
                f"Source set '{source_set_id}' declares invalid external documentation URL {url!r}"
            )


def _flag(value: Optional[bool], defaults: Mapping[str, object], key: str, fallback: bool) -> bool:
    if value is not None:
        return value
    default = defaults.get(key)
    if isinstance(default, bool):
        return default
    return fallback


def _path_set(paths: Iterable[Path]) -> tuple[Path, ...]:
    return tuple(sorted({Path(path) for path in paths}, key=lambda path: path.as_posix()))


def _as_paths(value: object) -> Optional[List[Path]]:
    if value is None:
        return None
    if isinstance(value, (str, Path)):
        return [Path(value)]
    if isinstance(value, Iterable):
        return [Path(item) for item in value]  # type: ignore[arg-type]
    return None


def _as_optional_str(value: object) -> Optional[str]:
    return value if isinstance(value, str) and value else None


def _coerce_platform(value: object) -> Optional[Platform]:
    if isinstance(value, Platform):
        return value
    if isinstance(value, str):
        try:
            return Platform.parse(value)
        except ValueError:
            return None
    return None


def _module_name(module_path: str, module_dir: Optional[Path]) -> str:
    segments = [segment for segment in module_path.split(":") if segment]
    if segments:
        return segments[-1]
    if module_dir is not None and module_dir.name:
        return module_dir.name
    return "root"


__all__ = ["ModuleParametersBuilder", "SourceSetSpecBuilder"]
