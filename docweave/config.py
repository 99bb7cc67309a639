"""Configuration loading for docweave workspaces (.docweave.yml)."""

from __future__ import annotations

import os
import shlex
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import yaml

from .errors import ConfigError
from .models import ClasspathEntry, PackageOptions, Platform, SourceLink, Visibility
from .parameters.builder import ModuleParametersBuilder, SourceSetSpecBuilder

CONFIG_FILENAME = ".docweave.yml"

ENV_ENGINE = "DOCWEAVE_ENGINE"
ENV_MAX_WORKERS = "DOCWEAVE_MAX_WORKERS"


@dataclass
class EngineConfig:
    """How the external rendering engine is launched."""

    command: List[str] = field(default_factory=list)
    timeout: Optional[float] = None
    env: Dict[str, str] = field(default_factory=dict)


@dataclass
class PublicationConfig:
    """Aggregated publication covering every module of the workspace."""

    enabled: bool = True
    name: str = "publication"


@dataclass
class WorkspaceConfig:
    """Represents the settings and module declarations defined in .docweave.yml."""

    root: Path
    output_dir: Path
    work_dir: Path
    fail_fast: bool = False
    max_workers: Optional[int] = None
    layout_conventions: bool = True
    engine: EngineConfig = field(default_factory=EngineConfig)
    publication: PublicationConfig = field(default_factory=PublicationConfig)
    modules: List[ModuleParametersBuilder] = field(default_factory=list)


def load_config(config_path: Path) -> WorkspaceConfig:
    """Load the workspace configuration from disk."""
    config_file = _resolve_config_path(config_path)
    root = config_file.parent.resolve()

    if not config_file.exists():
        config = WorkspaceConfig(root=root, output_dir=root / "build" / "docweave", work_dir=root / ".docweave")
        _apply_environment(config)
        return config

    data = _read_config(config_file)
    if not isinstance(data, dict):
        raise ConfigError(f"{CONFIG_FILENAME} must contain a mapping at the root")

    engine_data = _as_dict(data.get("engine"))
    engine = EngineConfig(
        command=_as_command(engine_data.get("command")),
        timeout=_as_float(engine_data.get("timeout")),
        env={str(key): str(value) for key, value in _as_dict(engine_data.get("env")).items()},
    )

    publication_data = data.get("publication")
    publication = PublicationConfig()
    if isinstance(publication_data, bool):
        publication.enabled = publication_data
    elif isinstance(publication_data, dict):
        enabled = _as_bool(publication_data.get("enabled"))
        publication.enabled = True if enabled is None else enabled
        publication.name = _as_str(publication_data.get("name")) or publication.name

    modules_data = data.get("modules")
    if modules_data is not None and not isinstance(modules_data, list):
        raise ConfigError("'modules' must be a list of module declarations")
    modules = [_parse_module(item, root, index) for index, item in enumerate(modules_data or [])]

    seen: set[str] = set()
    for module in modules:
        if module.module_path in seen:
            raise ConfigError(f"Module '{module.module_path}' is declared more than once")
        seen.add(module.module_path)

    config = WorkspaceConfig(
        root=root,
        output_dir=_resolve_path(root, _as_str(data.get("output_dir")) or "build/docweave"),
        work_dir=_resolve_path(root, _as_str(data.get("work_dir")) or ".docweave"),
        fail_fast=_as_bool(data.get("fail_fast")) or False,
        max_workers=_as_int(data.get("max_workers")),
        layout_conventions=_default_true(data.get("layout_conventions")),
        engine=engine,
        publication=publication,
        modules=modules,
    )
    _apply_environment(config)
    return config


def _apply_environment(config: WorkspaceConfig) -> None:
    command = os.getenv(ENV_ENGINE)
    if command:
        config.engine.command = shlex.split(command)
    workers = _as_int(os.getenv(ENV_MAX_WORKERS))
    if workers is not None:
        config.max_workers = workers
    if config.max_workers is not None and config.max_workers < 1:
        raise ConfigError("max_workers must be a positive integer")


def _parse_module(data: Any, root: Path, index: int) -> ModuleParametersBuilder:
    if not isinstance(data, dict):
        raise ConfigError(f"Module declaration #{index + 1} must be a mapping")
    module_path = _as_str(data.get("path")) or _as_str(data.get("name"))
    if not module_path:
        raise ConfigError(f"Module declaration #{index + 1} is missing 'path'")
    directory = _as_str(data.get("dir"))
    module_dir = _resolve_path(root, directory) if directory else _default_module_dir(root, module_path)

    builder = ModuleParametersBuilder(
        module_path=module_path,
        module_dir=module_dir,
        module_name=_as_str(data.get("display_name")),
        module_version=_as_str(data.get("version")),
        source_set_scope_default=_as_str(data.get("scope")),
        output_format=_as_str(data.get("format")) or "html",
        plugins_classpath=[_parse_classpath_entry(item, module_dir, module_path) for item in _as_list(data.get("plugins"))],
        suppress_inherited_members=_as_bool(data.get("suppress_inherited_members")) or False,
        fail_on_warning=_as_bool(data.get("fail_on_warning")) or False,
        fail_on_error=_default_true(data.get("fail_on_error")),
    )

    for item in _as_list(data.get("consumes")):
        if isinstance(item, str):
            builder.consumes(item)
            continue
        if not isinstance(item, dict):
            raise ConfigError(f"Module '{module_path}' has an invalid 'consumes' entry: {item!r}")
        artifact = _as_str(item.get("artifact"))
        target = _as_str(item.get("module")) or (Path(artifact).stem if artifact else None)
        if not target:
            raise ConfigError(f"Module '{module_path}' has a 'consumes' entry without 'module'")
        builder.consumes(
            target,
            artifact=_resolve_path(root, artifact) if artifact else None,
            source_sets=_as_str_list(item.get("source_sets")),
        )

    source_sets = data.get("source_sets")
    if isinstance(source_sets, dict):
        source_sets = [{"name": name, **(_as_dict(body))} for name, body in source_sets.items()]
    for item in _as_list(source_sets):
        _parse_source_set(item, builder, module_dir)
    return builder


def _parse_source_set(data: Any, module: ModuleParametersBuilder, module_dir: Path) -> SourceSetSpecBuilder:
    if not isinstance(data, dict):
        raise ConfigError(f"Module '{module.module_path}' has a source set that is not a mapping")
    name = _as_str(data.get("name"))
    if not name:
        raise ConfigError(f"Module '{module.module_path}' has a source set without 'name'")
    label = f"{module.module_path}/{name}"
    builder = module.source_set(name)

    builder.scope = _as_str(data.get("scope")) or builder.scope
    builder.display_name = _as_str(data.get("display_name")) or builder.display_name
    platform = _as_str(data.get("platform") or data.get("analysis_platform"))
    if platform:
        try:
            builder.analysis_platform = Platform.parse(platform)
        except ValueError as exc:
            raise ConfigError(f"Source set '{label}' declares unknown platform {platform!r}") from exc
    if "source_roots" in data:
        builder.source_roots = _as_paths(data.get("source_roots"), module_dir)
    builder.samples.extend(_as_paths(data.get("samples"), module_dir))
    builder.includes.extend(_as_paths(data.get("includes"), module_dir))
    builder.suppressed_files.extend(_as_paths(data.get("suppressed_files"), module_dir))
    builder.classpath.extend(
        _parse_classpath_entry(item, module_dir, label) for item in _as_list(data.get("classpath"))
    )
    if "documented_visibilities" in data:
        builder.documented_visibilities = set(_as_visibilities(data.get("documented_visibilities"), label))

    for flag in (
        "suppress",
        "suppress_generated_files",
        "skip_empty_packages",
        "skip_deprecated",
        "report_undocumented",
        "no_stdlib_link",
        "no_jdk_link",
        "no_android_sdk_link",
    ):
        value = _as_bool(data.get(flag))
        if value is not None:
            setattr(builder, flag, value)

    if data.get("jdk_version") is not None:
        jdk_version = _as_int(data.get("jdk_version"))
        if jdk_version is None:
            raise ConfigError(f"Source set '{label}' declares invalid jdk_version {data.get('jdk_version')!r}")
        builder.jdk_version = jdk_version
    builder.language_version = _as_str(data.get("language_version")) or builder.language_version
    builder.api_version = _as_str(data.get("api_version")) or builder.api_version

    for option in _as_list(data.get("per_package_options")):
        builder.per_package_options.append(_parse_package_options(option, label))
    for link in _as_list(data.get("external_documentation_links")):
        if isinstance(link, str):
            builder.external_documentation_link(link)
        elif isinstance(link, dict) and _as_str(link.get("url")):
            builder.external_documentation_link(
                _as_str(link.get("url")) or "",
                _as_str(link.get("package_list_url")),
            )
        else:
            raise ConfigError(f"Source set '{label}' has an invalid external documentation link: {link!r}")
    for link in _as_list(data.get("source_links")):
        link_data = _as_dict(link)
        local = _as_str(link_data.get("local_directory"))
        remote = _as_str(link_data.get("remote_url"))
        if not local or not remote:
            raise ConfigError(f"Source set '{label}' has a source link without local_directory/remote_url")
        builder.source_links.append(
            SourceLink(
                local_directory=_resolve_path(module_dir, local),
                remote_url=remote,
                remote_line_suffix=(
                    _as_str(link_data.get("remote_line_suffix"))
                    if "remote_line_suffix" in link_data
                    else "#L"
                ),
            )
        )
    builder.depends_on.extend(_as_str_list(data.get("depends_on")))
    return builder


def _parse_package_options(data: Any, label: str) -> PackageOptions:
    if not isinstance(data, dict):
        raise ConfigError(f"Source set '{label}' has a per-package option that is not a mapping")
    pattern = data.get("matching_regex", data.get("pattern", ".*"))
    visibilities = data.get("documented_visibilities")
    return PackageOptions(
        matching_regex=str(pattern) if pattern is not None else "",
        suppress=_as_bool(data.get("suppress")),
        documented_visibilities=(
            frozenset(_as_visibilities(visibilities, label)) if visibilities is not None else None
        ),
        skip_deprecated=_as_bool(data.get("skip_deprecated")),
        report_undocumented=_as_bool(data.get("report_undocumented")),
    )


def _parse_classpath_entry(item: Any, base: Path, label: str) -> ClasspathEntry:
    if isinstance(item, str):
        return ClasspathEntry(path=_resolve_path(base, item))
    if isinstance(item, dict) and _as_str(item.get("path")):
        coordinate = _as_str(item.get("coordinate"))
        return ClasspathEntry(
            path=_resolve_path(base, _as_str(item.get("path")) or ""),
            coordinate=_strip_version(coordinate) if coordinate else None,
        )
    raise ConfigError(f"'{label}' has an invalid classpath entry: {item!r}")


def _strip_version(coordinate: str) -> str:
    parts = coordinate.split(":")
    return ":".join(parts[:2]) if len(parts) > 2 else coordinate


def _as_visibilities(value: Any, label: str) -> List[Visibility]:
    result: List[Visibility] = []
    for item in _as_str_list(value):
        try:
            result.append(Visibility.parse(item))
        except ValueError as exc:
            raise ConfigError(f"Source set '{label}' declares unknown visibility {item!r}") from exc
    return result


def _default_module_dir(root: Path, module_path: str) -> Path:
    segments = [segment for segment in module_path.split(":") if segment]
    return root.joinpath(*segments) if segments else root


def _resolve_config_path(config_path: Path) -> Path:
    config_path = config_path.expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILENAME).resolve()
    if config_path.suffix not in {".yml", ".yaml"}:
        return (config_path.parent / CONFIG_FILENAME).resolve()
    return config_path.resolve()


def _read_config(path: Path) -> Dict[str, Any]:
    text = path.read_text(encoding="utf-8")
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    return loaded or {}


def _resolve_path(base: Path, value: str) -> Path:
    path = Path(value).expanduser()
    if not path.is_absolute():
        path = base / path
    return Path(os.path.normpath(path))


def _as_paths(value: Any, base: Path) -> List[Path]:
    return [_resolve_path(base, item) for item in _as_str_list(value)]


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_list(value: Any) -> List[Any]:
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


def _as_str(value: Any) -> Optional[str]:
    return str(value) if isinstance(value, (str, int, float)) and not isinstance(value, bool) else None


def _as_command(value: Any) -> List[str]:
    if isinstance(value, str):
        return shlex.split(value)
    return _as_str_list(value)


def _as_float(value: Any) -> Optional[float]:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return None
    return None


def _as_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "yes", "1"}:
            return True
        if lowered in {"false", "no", "0"}:
            return False
    return None


def _default_true(value: Any) -> bool:
    parsed = _as_bool(value)
    return True if parsed is None else parsed


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, Sequence):
        return [str(item) for item in value if isinstance(item, (str, int, float)) and not isinstance(item, bool)]
    return []


__all__ = [
    "CONFIG_FILENAME",
    "EngineConfig",
    "PublicationConfig",
    "WorkspaceConfig",
    "load_config",
]
