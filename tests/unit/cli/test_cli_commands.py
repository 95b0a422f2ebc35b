from __future__ import annotations

import json
import shutil
import subprocess
from pathlib import Path

import pytest

from helpers.stacks import make_stack_dir
from worldstack.cli._dispatcher import build_parser, discover_commands, discover_domains, main
from worldstack.core.registry import StackRegistry

WORLD = """<MyWorld>
  <Plugins>
    <Builder />
  </Plugins>
  <Folder Name="Zeta"><Repository Url="https://example.com/org/A" /></Folder>
  <Repository Url="https://example.com/org/B" />
</MyWorld>
"""


def _write_world(folder: Path, content: str = WORLD) -> Path:
    folder.mkdir(parents=True, exist_ok=True)
    path = folder / "MyWorld.xml"
    path.write_text(content, encoding="utf-8")
    return path


def test_discovery() -> None:
    assert set(discover_domains()) == {"plugin", "stack", "world"}
    assert set(discover_commands("stack")) == {"clear", "list"}
    assert set(discover_commands("plugin")) == {"disable", "enable"}
    assert build_parser().prog == "worldstack"


def test_no_arguments_prints_help(capsys: pytest.CaptureFixture[str]) -> None:
    assert main([]) == 0
    assert "domains" in capsys.readouterr().out


def test_stack_list_empty(capsys: pytest.CaptureFixture[str]) -> None:
    assert main(["stack", "list", "--json"]) == 0
    assert json.loads(capsys.readouterr().out)["stacks"] == []


def test_stack_list_and_clear(
    tmp_path: Path, isolated_app_data_dir: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    registry = StackRegistry(isolated_app_data_dir)
    registry.register_new_stack(make_stack_dir(tmp_path, "Zulu", public=False), "https://example.com/org/Zulu")
    registry.register_new_stack(make_stack_dir(tmp_path, "alpha"), "https://example.com/org/alpha")

    assert main(["stack", "list", "--json"]) == 0
    stacks = json.loads(capsys.readouterr().out)["stacks"]
    assert [(s["name"], s["public"]) for s in stacks] == [("alpha", True), ("Zulu", False)]

    assert main(["stack", "list"]) == 0
    out = capsys.readouterr().out
    assert "Zulu (Private)" in out
    assert "url: https://example.com/org/alpha" in out

    assert main(["stack", "clear"]) == 0
    assert not registry.file_path.exists()


def test_stack_list_marks_duplicates(
    tmp_path: Path, isolated_app_data_dir: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    registry = StackRegistry(isolated_app_data_dir)
    registry.register_new_stack(make_stack_dir(tmp_path / "a", "CKt"), "https://example.com/org/CKt")
    registry.register_new_stack(make_stack_dir(tmp_path / "b", "DuplicateOf-CKt"), "https://example.com/org/CKt")

    assert main(["stack", "list", "--json"]) == 0
    stacks = json.loads(capsys.readouterr().out)["stacks"]
    assert [(s["name"], s["duplicate"]) for s in stacks] == [("CKt", False), ("CKt", True)]

    assert main(["stack", "list"]) == 0
    out = capsys.readouterr().out
    assert "CKt (duplicate) (Public)" in out


def test_world_layout(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    definition = _write_world(tmp_path / "stack")

    assert main(["world", "layout", str(definition), "--order", "Path", "--json"]) == 0
    data = json.loads(capsys.readouterr().out)
    assert [r["name"] for r in data["repositories"]] == ["B", "A"]
    assert data["world"] == "MyWorld"

    assert main(["world", "layout", str(definition), "--world-root", str(tmp_path / "w")]) == 0
    out = capsys.readouterr().out
    assert "Zeta/A: https://example.com/org/A" in out


def test_world_layout_errors(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    definition = _write_world(tmp_path / "stack", "<MyWorld><Repository Url='NotAnUrl' /></MyWorld>")

    assert main(["world", "layout", str(definition)]) == 1
    assert "is not a valid url" in capsys.readouterr().err

    assert main(["world", "layout", str(tmp_path / "Missing.xml")]) == 1


def test_invalid_configuration_is_reported(
    isolated_app_data_dir: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    config_dir = isolated_app_data_dir / "config"
    config_dir.mkdir(parents=True)
    (config_dir / "layout.yaml").write_text("layout:\n  repo_order: Random\n", encoding="utf-8")

    assert main(["stack", "list"]) == 1
    assert "layout.repo_order" in capsys.readouterr().err


def test_plugin_enable_already_enabled(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    definition = _write_world(tmp_path / "stack")

    assert main(["plugin", "enable", "builder", "--definition", str(definition)]) == 0
    assert "enabled" in capsys.readouterr().out


def test_plugin_unknown(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    definition = _write_world(tmp_path / "stack")

    assert main(["plugin", "disable", "Unknown", "--definition", str(definition)]) == 1
    assert "Unable to find Plugin configuration" in capsys.readouterr().err


@pytest.mark.skipif(shutil.which("git") is None, reason="git is not installed")
def test_plugin_disable_commits(tmp_path: Path) -> None:
    stack = tmp_path / "stack"
    definition = _write_world(stack)
    for args in (["init", "-q"], ["config", "user.email", "dev@example.com"], ["config", "user.name", "Dev"]):
        subprocess.run(["git", *args], cwd=stack, check=True, capture_output=True)

    assert main(["plugin", "disable", "Builder", "--definition", str(definition)]) == 0

    assert 'Disabled="true"' in definition.read_text(encoding="utf-8")
    log = subprocess.run(["git", "log", "--format=%s"], cwd=stack, check=True, capture_output=True, text=True)
    assert "Disabling 'Builder' plugin." in log.stdout
