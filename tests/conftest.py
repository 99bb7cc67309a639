from __future__ import annotations

from pathlib import Path

import pytest

from tests._fixtures.workspace_builder import FakeEngine, WorkspaceBuilder


@pytest.fixture
def workspace_builder(tmp_path: Path) -> WorkspaceBuilder:
    """Provide a reusable workspace builder rooted at the pytest tmp_path."""
    return WorkspaceBuilder(tmp_path)


@pytest.fixture
def fake_engine() -> FakeEngine:
    """Engine runner double that succeeds and writes one page per unit."""
    return FakeEngine()
