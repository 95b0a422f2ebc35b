from __future__ import annotations

from pathlib import Path

import pytest
from lxml import etree

from helpers.stacks import FakeStack
from worldstack.core.diagnostics import Diagnostics
from worldstack.core.exceptions import ContractViolationError, DefinitionFileError
from worldstack.core.repository_url import file_url
from worldstack.core.world import ElementView, WorldDefinitionFile, WorldName

SIMPLE = """<MyWorld>
  <Plugins />
  <Folder Name="Alpha">
    <Repository Url="https://example.com/org/First" />
  </Folder>
  <Folder Name="Gamma">
    <Repository Url="https://example.com/org/Third" />
  </Folder>
</MyWorld>
"""


def _reload(world: WorldName) -> WorldDefinitionFile:
    return WorldDefinitionFile.load(world)


def _folder_names(definition: WorldDefinitionFile) -> list:
    return [f.get("Name") for f in definition.xml_root.children("Folder")]


# Loading ---------------------------------------------------------------------


def test_load_inserts_missing_plugins_without_dirtying(make_world) -> None:
    world = make_world("<MyWorld><Repository Url='https://example.com/org/A' /></MyWorld>")
    definition = WorldDefinitionFile.load(world)

    assert definition.xml_root.children()[0].tag == "Plugins"
    assert definition.plugins.tag == "Plugins"
    assert definition.is_dirty is False
    assert definition.save_file() is True
    assert "Plugins" not in world.definition_file_path.read_text(encoding="utf-8")


def test_load_rejects_foreign_root(make_world) -> None:
    world = make_world("<OtherWorld />")
    with pytest.raises(DefinitionFileError):
        WorldDefinitionFile.load(world)


def test_load_rejects_malformed_xml(make_world) -> None:
    world = make_world("<MyWorld><Folder></MyWorld>")
    with pytest.raises(DefinitionFileError):
        WorldDefinitionFile.load(world)


def test_load_missing_file(make_world) -> None:
    world = make_world(SIMPLE)
    world.definition_file_path.unlink()
    with pytest.raises(OSError):
        WorldDefinitionFile.load(world)


def test_url_hook_rewrites_without_dirtying(make_world) -> None:
    world = make_world(SIMPLE)
    definition = WorldDefinitionFile.load(world, url_hook=lambda url: url.replace("example.com", "mirror.local"))

    assert [r.url for r in definition.read_layout()] == [
        "https://mirror.local/org/First",
        "https://mirror.local/org/Third",
    ]
    assert definition.is_dirty is False


def test_create_from_element(tmp_path: Path, fake_stack: FakeStack) -> None:
    world = WorldName("MyWorld", tmp_path / "w", tmp_path / "MyWorld.xml", fake_stack)
    definition = WorldDefinitionFile.create(world, etree.Element("MyWorld"))

    assert definition.plugins.tag == "Plugins"
    assert definition.read_layout() == []


# Guard and transactions -----------------------------------------------------


def test_views_are_read_only(make_world) -> None:
    definition = WorldDefinitionFile.load(make_world(SIMPLE))
    root = definition.xml_root

    assert isinstance(root, ElementView)
    for name in ("set", "append", "remove", "insert", "attrib_set"):
        assert not hasattr(root, name)
    with pytest.raises(TypeError):
        root.attrib["Name"] = "x"  # type: ignore[index]


def test_transactions_do_not_nest(make_world) -> None:
    definition = WorldDefinitionFile.load(make_world(SIMPLE))
    with definition.start_edit():
        assert definition.is_editing
        with pytest.raises(ContractViolationError):
            with definition.start_edit():
                pass
    assert definition.is_editing is False


def test_edit_flag_is_reset_on_error(make_world) -> None:
    definition = WorldDefinitionFile.load(make_world(SIMPLE))
    with pytest.raises(KeyError):
        with definition.start_edit():
            raise KeyError("boom")
    assert definition.is_editing is False


def test_save_inside_edit_is_forbidden(make_world) -> None:
    definition = WorldDefinitionFile.load(make_world(SIMPLE))
    with definition.start_edit():
        with pytest.raises(ContractViolationError):
            definition.save_file()


def test_remove_empty_folders_requires_edit(make_world) -> None:
    definition = WorldDefinitionFile.load(make_world(SIMPLE))
    with pytest.raises(ContractViolationError):
        definition.remove_empty_folders()


def test_nested_mutations_are_saved_once_by_the_caller(make_world) -> None:
    world = make_world(SIMPLE)
    definition = WorldDefinitionFile.load(world)
    before = world.definition_file_path.read_text(encoding="utf-8")

    with definition.start_edit():
        assert definition.add_repository(world.world_root / "Beta" / "Second", ["Beta"], "https://example.com/org/Second")
        assert definition.ensure_plugin_configuration("Builder")
        assert definition.is_dirty

    # Nothing written until the caller saves.
    assert world.definition_file_path.read_text(encoding="utf-8") == before
    assert definition.save_file() is True
    assert definition.is_dirty is False

    reloaded = _reload(world)
    assert _folder_names(reloaded) == ["Alpha", "Beta", "Gamma"]
    assert "builder" in reloaded.read_plugins_configuration()


def test_saved_file_has_no_xml_declaration(make_world) -> None:
    world = make_world('<?xml version="1.0" encoding="utf-8"?>\n' + SIMPLE)
    definition = WorldDefinitionFile.load(world)
    assert definition.ensure_plugin_configuration("Builder")

    content = world.definition_file_path.read_text(encoding="utf-8")
    assert content.startswith("<MyWorld>")
    assert "<Builder/>" in content


def test_clean_save_does_not_write(make_world) -> None:
    world = make_world(SIMPLE)
    definition = WorldDefinitionFile.load(world)
    before = world.definition_file_path.stat().st_ino

    assert definition.save_file() is True
    assert world.definition_file_path.stat().st_ino == before


def test_failed_save_keeps_the_file_dirty(make_world) -> None:
    world = make_world(SIMPLE)
    definition = WorldDefinitionFile.load(world)
    world.definition_file_path.unlink()
    world.definition_file_path.mkdir()

    diagnostics = Diagnostics()
    with definition.start_edit():
        definition.add_repository(world.world_root / "Second", [], "https://example.com/org/Second")
    assert definition.save_file(diagnostics) is False
    assert definition.is_dirty is True
    assert "While saving" in diagnostics.errors[0]

    world.definition_file_path.rmdir()
    assert definition.save_file() is True
    assert definition.is_dirty is False
    assert "Second" in world.definition_file_path.read_text(encoding="utf-8")


# Repositories ---------------------------------------------------------------


def test_add_repository_creates_folders_in_order(make_world) -> None:
    world = make_world(SIMPLE)
    definition = WorldDefinitionFile.load(world)

    assert definition.add_repository(
        world.world_root / "beta" / "Deep" / "Second", ["beta", "Deep"], "https://example.com/org/Second.git"
    )
    assert definition.is_dirty is False

    reloaded = _reload(world)
    assert _folder_names(reloaded) == ["Alpha", "beta", "Gamma"]
    layout = {r.name: r for r in reloaded.read_layout()}
    assert layout["Second"].path == world.world_root / "beta" / "Deep" / "Second"
    assert layout["Second"].url == "https://example.com/org/Second"


def test_add_repository_reuses_folders_case_insensitively(make_world) -> None:
    world = make_world(SIMPLE)
    definition = WorldDefinitionFile.load(world)

    assert definition.add_repository(world.world_root / "alpha" / "Second", ["alpha"], "https://example.com/org/Second")

    reloaded = _reload(world)
    assert _folder_names(reloaded) == ["Alpha", "Gamma"]
    alpha = reloaded.xml_root.children("Folder")[0]
    assert [r.get("Url") for r in alpha.children("Repository")] == [
        "https://example.com/org/First",
        "https://example.com/org/Second",
    ]


def test_add_repository_contract(make_world) -> None:
    world = make_world(SIMPLE)
    definition = WorldDefinitionFile.load(world)

    with pytest.raises(ContractViolationError):
        definition.add_repository(world.world_root / "Wrong" / "Second", ["Beta"], "https://example.com/org/Second")
    with pytest.raises(ContractViolationError):
        definition.add_repository(world.world_root / "a" / "Second", ["a/b"], "https://example.com/org/Second")
    with pytest.raises(ValueError):
        definition.add_repository(world.world_root / "Second", [], "Second")
    assert definition.is_dirty is False


def test_add_repository_stores_proxy_name(make_world, tmp_path: Path) -> None:
    proxy = tmp_path / "proxy"
    (proxy / "Local").mkdir(parents=True)
    world = make_world(SIMPLE, stack=FakeStack(proxy))
    definition = WorldDefinitionFile.load(world)

    assert definition.add_repository(world.world_root / "Local", [], file_url(proxy / "Local"))

    repos = _reload(world).xml_root.children("Repository")
    assert [r.get("Url") for r in repos] == ["Local"]


def test_remove_repository_prunes_empty_folders(make_world) -> None:
    world = make_world(SIMPLE)
    definition = WorldDefinitionFile.load(world)
    original = definition.to_xml()

    assert definition.add_repository(
        world.world_root / "Beta" / "Deep" / "Second", ["Beta", "Deep"], "https://example.com/org/Second"
    )
    assert definition.remove_repository("https://Example.com/org/Second.git", remove_empty_folders=True)

    assert definition.to_xml() == original
    assert _reload(world).to_xml() == original


def test_remove_repository_keeps_empty_folder(make_world) -> None:
    world = make_world(SIMPLE)
    definition = WorldDefinitionFile.load(world)

    assert definition.remove_repository("https://example.com/org/Third", remove_empty_folders=False)

    reloaded = _reload(world)
    assert _folder_names(reloaded) == ["Alpha", "Gamma"]
    assert reloaded.xml_root.children("Folder")[1].has_elements is False


def test_remove_unknown_repository(make_world) -> None:
    definition = WorldDefinitionFile.load(make_world(SIMPLE))
    diagnostics = Diagnostics()

    assert definition.remove_repository("https://example.com/org/Unknown", True, diagnostics) is False
    assert "Unable to find" in diagnostics.errors[0]
    assert definition.is_dirty is False


def test_remove_proxy_repository(make_world, tmp_path: Path) -> None:
    proxy = tmp_path / "proxy"
    (proxy / "Local").mkdir(parents=True)
    world = make_world("<MyWorld><Repository Url='Local' /></MyWorld>", stack=FakeStack(proxy))
    definition = WorldDefinitionFile.load(world)

    assert definition.remove_repository(file_url(proxy / "Local"), True)
    assert _reload(world).xml_root.children("Repository") == []


def test_remove_empty_folders(make_world) -> None:
    world = make_world(
        """<MyWorld>
  <Folder Name="Outer"><Folder Name="Inner" /></Folder>
  <Folder Name="Kept"><Repository Url="https://example.com/org/A" /></Folder>
</MyWorld>"""
    )
    definition = WorldDefinitionFile.load(world)
    with definition.start_edit():
        definition.remove_empty_folders()
    assert definition.save_file()

    assert _folder_names(_reload(world)) == ["Kept"]


def test_cached_layout_is_refreshed_in_place_after_save(make_world) -> None:
    world = make_world(SIMPLE)
    definition = WorldDefinitionFile.load(world)
    layout = definition.read_layout()

    assert definition.add_repository(world.world_root / "Second", [], "https://example.com/org/Second")

    assert definition.read_layout() is layout
    assert [r.name for r in layout] == ["First", "Third", "Second"]


def test_save_reports_invalid_layout(make_world) -> None:
    world = make_world(SIMPLE)
    definition = WorldDefinitionFile.load(world)
    layout = definition.read_layout()
    diagnostics = Diagnostics()

    with definition.start_edit():
        definition.add_repository(world.world_root / "Other" / "First", ["Other"], "https://example.com/org/First")
    assert definition.save_file(diagnostics) is False

    # Written anyway: only the layout refresh failed.
    assert definition.is_dirty is False
    assert diagnostics.has_errors
    # The stale layout is not served anymore.
    assert layout == []
    assert definition.read_layout() is None
