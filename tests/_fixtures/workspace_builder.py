"""Helper utilities for constructing temporary docweave workspaces in tests."""

from __future__ import annotations

import json
import textwrap
from pathlib import Path
from typing import Any, Dict, List, Mapping, Sequence

import yaml

from docweave.engine.runner import EngineRequest, EngineResult


class WorkspaceBuilder:
    """Writes module sources and a .docweave.yml into a throwaway workspace."""

    def __init__(self, tmp_path: Path) -> None:
        self.root = tmp_path / "workspace"
        self.root.mkdir()
        self.settings: Dict[str, Any] = {}
        self.modules: List[Dict[str, Any]] = []

    def write(self, files: Mapping[str, str]) -> None:
        """Write `path -> contents` entries into the workspace."""
        for relative, content in files.items():
            path = self.root / relative
            path.parent.mkdir(parents=True, exist_ok=True)
            normalised = textwrap.dedent(content).lstrip("\n")
            path.write_text(normalised, encoding="utf-8")

    def module(self, path: str, **declaration: Any) -> Dict[str, Any]:
        """Declare a module; source sets default to a single `main` source set."""
        module: Dict[str, Any] = {"path": path}
        module.update(declaration)
        module.setdefault("source_sets", [{"name": "main"}])
        self.modules.append(module)
        return module

    def kotlin_source(self, module_dir: str, package: str, name: str, source_set: str = "main") -> Path:
        relative = f"{module_dir}/src/{source_set}/kotlin/{package.replace('.', '/')}/{name}.kt"
        self.write({relative: f"package {package}\n\nclass {name}\n"})
        return self.root / relative

    def save(self) -> Path:
        payload: Dict[str, Any] = dict(self.settings)
        payload["modules"] = self.modules
        config_path = self.root / ".docweave.yml"
        config_path.write_text(yaml.safe_dump(payload, sort_keys=False), encoding="utf-8")
        return config_path

    def path(self) -> Path:
        """Return the workspace root path."""
        return self.root


class FakeEngine:
    """Engine double that records requests and writes a page per configuration."""

    def __init__(
        self,
        *,
        exit_code: int = 0,
        log_lines: Sequence[str] = (),
        failing_units: Sequence[str] = (),
    ) -> None:
        self.exit_code = exit_code
        self.log_lines = list(log_lines)
        self.failing_units = set(failing_units)
        self.requests: List[EngineRequest] = []

    def __call__(self, request: EngineRequest) -> EngineResult:
        self.requests.append(request)
        configuration = json.loads(request.config_path.read_text(encoding="utf-8"))
        lines = list(self.log_lines)
        exit_code = self.exit_code
        if request.unit in self.failing_units:
            lines.append("[ERROR] engine crashed")
            exit_code = 1
        request.log_path.write_text("".join(f"{line}\n" for line in lines), encoding="utf-8")
        output_dir = Path(configuration["output_dir"])
        output_dir.mkdir(parents=True, exist_ok=True)
        source_sets = ", ".join(
            f"{item['source_set_id']['scope']}/{item['source_set_id']['name']}"
            for item in configuration["source_sets"]
        )
        (output_dir / "index.html").write_text(
            f"<h1>{configuration['name']}</h1><p>{source_sets}</p>\n", encoding="utf-8"
        )
        return EngineResult(exit_code=exit_code, log_path=request.log_path)

    @property
    def units(self) -> List[str]:
        return [request.unit for request in self.requests]


__all__ = ["FakeEngine", "WorkspaceBuilder"]
