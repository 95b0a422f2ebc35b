from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Callable, Optional

import pytest

# Keep the repository free of Python bytecode and __pycache__ artifacts during tests.
sys.dont_write_bytecode = True

TESTS_ROOT = Path(__file__).resolve().parent
REPO_ROOT = TESTS_ROOT.parent
SRC_ROOT = REPO_ROOT / "src"

# Make src/ importable as 'worldstack' and tests/ as 'helpers'
for p in (SRC_ROOT, TESTS_ROOT):
    if str(p) not in sys.path:
        sys.path.insert(0, str(p))


from worldstack.core.logging_config import reset_logging_for_tests
from worldstack.core.utils.paths import ENV_APP_DATA_DIR
from worldstack.core.world import LayoutRepoOrder, WorldDefinitionFile, WorldName
from helpers.stacks import FakeStack


@pytest.fixture(autouse=True)
def isolated_app_data_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Every test gets its own application data directory (registry, locks, user config)."""
    for key in list(os.environ):
        if key.startswith("WORLDSTACK_"):
            monkeypatch.delenv(key, raising=False)
    app_dir = tmp_path / "app-data"
    monkeypatch.setenv(ENV_APP_DATA_DIR, str(app_dir))
    return app_dir


@pytest.fixture(autouse=True)
def _reset_process_state():
    yield
    WorldDefinitionFile.repo_order = LayoutRepoOrder.DEFINITION_FILE
    reset_logging_for_tests()


@pytest.fixture
def fake_stack() -> FakeStack:
    return FakeStack()


@pytest.fixture
def make_world(tmp_path: Path, fake_stack: FakeStack) -> Callable[..., WorldName]:
    """Write a definition file in a stack folder and return its World."""

    def _make(content: str, name: str = "MyWorld", stack: Optional[FakeStack] = None) -> WorldName:
        stack_dir = tmp_path / "stack"
        stack_dir.mkdir(parents=True, exist_ok=True)
        definition = stack_dir / f"{name}.xml"
        definition.write_text(content, encoding="utf-8")
        return WorldName(
            name=name,
            world_root=tmp_path / "worlds" / name,
            definition_file_path=definition,
            stack=stack if stack is not None else fake_stack,
        )

    return _make
