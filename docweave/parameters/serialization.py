"""Versioned JSON payloads for module artifacts and engine input.

Module parameters published by a producer module are read back by consumers,
possibly built with a different docweave release. Payload models therefore
ignore unknown fields, and output is canonical (sorted keys, sorted sets) so
equal values always serialise to identical bytes.
"""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..errors import ArtifactFormatError
from ..logging import get_logger
from ..models import (
    ClasspathEntry,
    ExternalDocumentationLink,
    FailurePolicy,
    GlobalConfiguration,
    ModuleDependency,
    ModuleParameters,
    PackageOptions,
    Platform,
    SourceLink,
    SourceSetID,
    SourceSetSpec,
    Visibility,
)

FORMAT_VERSION = 1

logger = get_logger("serialization")


class _Payload(BaseModel):
    model_config = ConfigDict(extra="ignore")


class SourceSetIDPayload(_Payload):
    scope: str
    name: str


class ClasspathEntryPayload(_Payload):
    path: str
    coordinate: Optional[str] = None


class PackageOptionsPayload(_Payload):
    matching_regex: str = ".*"
    suppress: Optional[bool] = None
    documented_visibilities: Optional[List[str]] = None
    skip_deprecated: Optional[bool] = None
    report_undocumented: Optional[bool] = None


class ExternalDocumentationLinkPayload(_Payload):
    url: str
    package_list_url: Optional[str] = None


class SourceLinkPayload(_Payload):
    local_directory: str
    remote_url: str
    remote_line_suffix: Optional[str] = "#L"


class SourceSetPayload(_Payload):
    source_set_id: SourceSetIDPayload
    display_name: str
    analysis_platform: str
    source_roots: List[str] = Field(default_factory=list)
    samples: List[str] = Field(default_factory=list)
    includes: List[str] = Field(default_factory=list)
    classpath: List[ClasspathEntryPayload] = Field(default_factory=list)
    suppressed_files: List[str] = Field(default_factory=list)
    suppress: bool = False
    suppress_generated_files: bool = True
    documented_visibilities: List[str] = Field(default_factory=lambda: ["public"])
    per_package_options: List[PackageOptionsPayload] = Field(default_factory=list)
    external_documentation_links: List[ExternalDocumentationLinkPayload] = Field(default_factory=list)
    source_links: List[SourceLinkPayload] = Field(default_factory=list)
    skip_empty_packages: bool = True
    skip_deprecated: bool = False
    report_undocumented: bool = False
    jdk_version: int = 8
    language_version: Optional[str] = None
    api_version: Optional[str] = None
    no_stdlib_link: bool = False
    no_jdk_link: bool = False
    no_android_sdk_link: bool = False
    dependent_source_sets: List[SourceSetIDPayload] = Field(default_factory=list)


class ModuleDependencyPayload(_Payload):
    module: str
    artifact: Optional[str] = None
    source_sets: List[str] = Field(default_factory=list)


class ModuleParametersPayload(_Payload):
    format_version: int = FORMAT_VERSION
    module_path: str
    module_name: str
    module_version: Optional[str] = None
    output_format: str = "html"
    source_sets: List[SourceSetPayload] = Field(default_factory=list)
    plugins_classpath: List[ClasspathEntryPayload] = Field(default_factory=list)
    suppress_inherited_members: bool = False
    fail_on_warning: bool = False
    fail_on_error: bool = True
    dependencies: List[ModuleDependencyPayload] = Field(default_factory=list)
    consumed_source_sets: List[SourceSetIDPayload] = Field(default_factory=list)


class ModuleDescriptorPayload(_Payload):
    module_path: str
    module_name: str
    module_version: Optional[str] = None
    source_set_ids: List[SourceSetIDPayload] = Field(default_factory=list)
    consumed_source_sets: List[SourceSetIDPayload] = Field(default_factory=list)


class GlobalConfigurationPayload(_Payload):
    format_version: int = FORMAT_VERSION
    name: str
    output_dir: str
    output_format: str = "html"
    source_sets: List[SourceSetPayload] = Field(default_factory=list)
    owners: Dict[str, str] = Field(default_factory=dict)
    modules: List[ModuleDescriptorPayload] = Field(default_factory=list)
    plugins_classpath: List[ClasspathEntryPayload] = Field(default_factory=list)
    fail_on_warning: bool = False
    fail_on_error: bool = True
    suppress_inherited_members: bool = False
    external_source_sets: List[SourceSetIDPayload] = Field(default_factory=list)
    cache_key: Dict[str, str] = Field(default_factory=dict)


# ----------------------------------------------------------------------
# Domain -> payload


def _id_payload(source_set_id: SourceSetID) -> SourceSetIDPayload:
    return SourceSetIDPayload(scope=source_set_id.scope, name=source_set_id.name)


def _ids_payload(ids: Any) -> List[SourceSetIDPayload]:
    return [_id_payload(item) for item in sorted(ids)]


def _classpath_payload(entries: Any) -> List[ClasspathEntryPayload]:
    return [ClasspathEntryPayload(path=entry.path.as_posix(), coordinate=entry.coordinate) for entry in entries]


def _visibilities_payload(visibilities: Any) -> List[str]:
    return sorted(visibility.value for visibility in visibilities)


def source_set_to_payload(spec: SourceSetSpec) -> SourceSetPayload:
    return SourceSetPayload(
        source_set_id=_id_payload(spec.source_set_id),
        display_name=spec.display_name,
        analysis_platform=spec.analysis_platform.value,
        source_roots=[path.as_posix() for path in spec.source_roots],
        samples=[path.as_posix() for path in spec.samples],
        includes=[path.as_posix() for path in spec.includes],
        classpath=_classpath_payload(spec.classpath),
        suppressed_files=[path.as_posix() for path in spec.suppressed_files],
        suppress=spec.suppress,
        suppress_generated_files=spec.suppress_generated_files,
        documented_visibilities=_visibilities_payload(spec.documented_visibilities),
        per_package_options=[
            PackageOptionsPayload(
                matching_regex=option.matching_regex,
                suppress=option.suppress,
                documented_visibilities=(
                    _visibilities_payload(option.documented_visibilities)
                    if option.documented_visibilities is not None
                    else None
                ),
                skip_deprecated=option.skip_deprecated,
                report_undocumented=option.report_undocumented,
            )
            for option in spec.per_package_options
        ],
        external_documentation_links=[
            ExternalDocumentationLinkPayload(url=link.url, package_list_url=link.effective_package_list_url)
            for link in spec.external_documentation_links
        ],
        source_links=[
            SourceLinkPayload(
                local_directory=link.local_directory.as_posix(),
                remote_url=link.remote_url,
                remote_line_suffix=link.remote_line_suffix,
            )
            for link in spec.source_links
        ],
        skip_empty_packages=spec.skip_empty_packages,
        skip_deprecated=spec.skip_deprecated,
        report_undocumented=spec.report_undocumented,
        jdk_version=spec.jdk_version,
        language_version=spec.language_version,
        api_version=spec.api_version,
        no_stdlib_link=spec.no_stdlib_link,
        no_jdk_link=spec.no_jdk_link,
        no_android_sdk_link=spec.no_android_sdk_link,
        dependent_source_sets=_ids_payload(spec.dependent_source_sets),
    )


def module_to_payload(module: ModuleParameters) -> ModuleParametersPayload:
    return ModuleParametersPayload(
        module_path=module.module_path,
        module_name=module.module_name,
        module_version=module.module_version,
        output_format=module.output_format,
        source_sets=[source_set_to_payload(spec) for spec in module.source_sets],
        plugins_classpath=_classpath_payload(module.plugins_classpath),
        suppress_inherited_members=module.suppress_inherited_members,
        fail_on_warning=module.failure_policy.fail_on_warning,
        fail_on_error=module.failure_policy.fail_on_error,
        dependencies=[
            ModuleDependencyPayload(
                module=dependency.module,
                artifact=dependency.artifact.as_posix() if dependency.artifact else None,
                source_sets=list(dependency.source_sets),
            )
            for dependency in module.dependencies
        ],
        consumed_source_sets=_ids_payload(module.consumed_source_sets),
    )


def configuration_to_payload(configuration: GlobalConfiguration) -> GlobalConfigurationPayload:
    return GlobalConfigurationPayload(
        name=configuration.name,
        output_dir=configuration.output_dir.as_posix(),
        output_format=configuration.output_format,
        source_sets=[source_set_to_payload(configuration.source_sets[key]) for key in sorted(configuration.source_sets)],
        owners={str(key): configuration.owners[key] for key in sorted(configuration.owners)},
        modules=[
            ModuleDescriptorPayload(
                module_path=descriptor.module_path,
                module_name=descriptor.module_name,
                module_version=descriptor.module_version,
                source_set_ids=_ids_payload(descriptor.source_set_ids),
                consumed_source_sets=_ids_payload(descriptor.consumed_source_sets),
            )
            for _, descriptor in sorted(configuration.modules.items())
        ],
        plugins_classpath=_classpath_payload(configuration.plugins_classpath),
        fail_on_warning=configuration.failure_policy.fail_on_warning,
        fail_on_error=configuration.failure_policy.fail_on_error,
        suppress_inherited_members=configuration.suppress_inherited_members,
        external_source_sets=_ids_payload(configuration.external_source_sets),
        cache_key=dict(sorted(configuration.cache_key.items())),
    )


# ----------------------------------------------------------------------
# Payload -> domain


def _id_from(payload: SourceSetIDPayload) -> SourceSetID:
    return SourceSetID(scope=payload.scope, name=payload.name)


def _classpath_from(entries: List[ClasspathEntryPayload]) -> tuple[ClasspathEntry, ...]:
    return tuple(ClasspathEntry(path=Path(entry.path), coordinate=entry.coordinate) for entry in entries)


def source_set_from_payload(payload: SourceSetPayload) -> SourceSetSpec:
    try:
        platform = Platform.parse(payload.analysis_platform)
        visibilities = frozenset(Visibility.parse(value) for value in payload.documented_visibilities)
        package_options = tuple(
            PackageOptions(
                matching_regex=option.matching_regex,
                suppress=option.suppress,
                documented_visibilities=(
                    frozenset(Visibility.parse(value) for value in option.documented_visibilities)
                    if option.documented_visibilities is not None
                    else None
                ),
                skip_deprecated=option.skip_deprecated,
                report_undocumented=option.report_undocumented,
            )
            for option in payload.per_package_options
        )
    except ValueError as exc:
        raise ArtifactFormatError(
            f"Source set '{payload.source_set_id.scope}/{payload.source_set_id.name}' has an invalid value: {exc}"
        ) from exc
    return SourceSetSpec(
        source_set_id=_id_from(payload.source_set_id),
        display_name=payload.display_name,
        analysis_platform=platform,
        source_roots=tuple(Path(path) for path in payload.source_roots),
        samples=tuple(Path(path) for path in payload.samples),
        includes=tuple(Path(path) for path in payload.includes),
        classpath=_classpath_from(payload.classpath),
        suppressed_files=tuple(Path(path) for path in payload.suppressed_files),
        suppress=payload.suppress,
        suppress_generated_files=payload.suppress_generated_files,
        documented_visibilities=visibilities,
        per_package_options=package_options,
        external_documentation_links=tuple(
            ExternalDocumentationLink(url=link.url, package_list_url=link.package_list_url)
            for link in payload.external_documentation_links
        ),
        source_links=tuple(
            SourceLink(
                local_directory=Path(link.local_directory),
                remote_url=link.remote_url,
                remote_line_suffix=link.remote_line_suffix,
            )
            for link in payload.source_links
        ),
        skip_empty_packages=payload.skip_empty_packages,
        skip_deprecated=payload.skip_deprecated,
        report_undocumented=payload.report_undocumented,
        jdk_version=payload.jdk_version,
        language_version=payload.language_version,
        api_version=payload.api_version,
        no_stdlib_link=payload.no_stdlib_link,
        no_jdk_link=payload.no_jdk_link,
        no_android_sdk_link=payload.no_android_sdk_link,
        dependent_source_sets=frozenset(_id_from(item) for item in payload.dependent_source_sets),
    )


def module_from_payload(payload: ModuleParametersPayload, *, module_dir: Path | None = None) -> ModuleParameters:
    return ModuleParameters(
        module_path=payload.module_path,
        module_name=payload.module_name,
        module_version=payload.module_version,
        source_sets=tuple(source_set_from_payload(item) for item in payload.source_sets),
        output_format=payload.output_format,
        plugins_classpath=_classpath_from(payload.plugins_classpath),
        suppress_inherited_members=payload.suppress_inherited_members,
        failure_policy=FailurePolicy(
            fail_on_warning=payload.fail_on_warning,
            fail_on_error=payload.fail_on_error,
        ),
        dependencies=tuple(
            ModuleDependency(
                module=item.module,
                artifact=Path(item.artifact) if item.artifact else None,
                source_sets=tuple(item.source_sets),
            )
            for item in payload.dependencies
        ),
        consumed_source_sets=frozenset(_id_from(item) for item in payload.consumed_source_sets),
        module_dir=module_dir,
    )


# ----------------------------------------------------------------------
# Text and file helpers


def canonical_json(data: object) -> str:
    return json.dumps(data, indent=2, sort_keys=True, ensure_ascii=False) + "\n"


def dump_module_parameters(module: ModuleParameters) -> str:
    return canonical_json(module_to_payload(module).model_dump(mode="json"))


def dump_global_configuration(configuration: GlobalConfiguration) -> str:
    return canonical_json(configuration_to_payload(configuration).model_dump(mode="json"))


def load_module_parameters(text: str, *, source: str = "<payload>") -> ModuleParameters:
    """Parse a serialized module payload, ignoring fields this release does not know."""
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ArtifactFormatError(f"{source} is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise ArtifactFormatError(f"{source} must contain a JSON object at the root")
    version = data.get("format_version")
    if not isinstance(version, int) or isinstance(version, bool) or version < 1:
        raise ArtifactFormatError(f"{source} has missing or invalid format_version {version!r}")
    if version > FORMAT_VERSION:
        logger.warning(
            "%s uses format_version %d (newer than %d); unknown fields are ignored",
            source,
            version,
            FORMAT_VERSION,
        )
    try:
        payload = ModuleParametersPayload.model_validate(data)
    except ValidationError as exc:
        raise ArtifactFormatError(f"{source} is not a valid module parameters payload: {exc}") from exc
    return module_from_payload(payload)


def read_module_parameters(path: Path) -> ModuleParameters:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ArtifactFormatError(f"Unable to read module artifact {path}: {exc}") from exc
    return load_module_parameters(text, source=str(path))


def write_text_atomic(path: Path, text: str) -> None:
    """Write ``text`` to a sibling temp file and rename it over ``path``."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, temp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(text)
        os.replace(temp_name, path)
    except BaseException:
        Path(temp_name).unlink(missing_ok=True)
        raise


def write_module_parameters(module: ModuleParameters, path: Path) -> Path:
    write_text_atomic(path, dump_module_parameters(module))
    return path


__all__ = [
    "FORMAT_VERSION",
    "GlobalConfigurationPayload",
    "ModuleParametersPayload",
    "canonical_json",
    "configuration_to_payload",
    "dump_global_configuration",
    "dump_module_parameters",
    "load_module_parameters",
    "module_from_payload",
    "module_to_payload",
    "read_module_parameters",
    "source_set_from_payload",
    "source_set_to_payload",
    "write_module_parameters",
    "write_text_atomic",
]
