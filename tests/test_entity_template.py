"""Tests for entity template generation from a model and its sockets."""

import re

import pytest

from autosocket.core.repository import InMemoryRepository
from autosocket.errors import MalformedMetadataError, MetadataNotFoundError
from autosocket.generators import (
    build_et_meta_text,
    create_entity_template,
    create_entity_template_with_meta,
    render_entity_template,
    resolve_save_path,
)
from autosocket.generators.entity_template import (
    META_CONFIGURATIONS,
    build_child_entities_block,
    group_by_prefab,
)
from autosocket.metadata import extract_guid, parse_name_field
from autosocket.prefab_index import PrefabIndex, PrefabIndexStore
from autosocket.resolver import SocketResolver

from conftest import make_model

OBJECT = "{0000000000000ABC}Assets/Props/Cabinet.xob"
HANDLE = "{AAAA000000000001}Prefabs/Props/Handle.et"
KNOB = "{BBBB000000000002}Prefabs/Props/Knob.et"
_RE_BRACED_ID = re.compile(r'"\{([0-9A-F]{16})\}"')


@pytest.fixture
def index(tmp_path):
    idx = PrefabIndex(svn_root=str(tmp_path))
    idx.upsert("handle.et", str(tmp_path / "Prefabs" / "Handle.et"), HANDLE)
    idx.upsert("knob.et", "/ext/Props/Knob.et", KNOB)
    return idx


# ---------------------------------------------------------------------------
# Text rendering
# ---------------------------------------------------------------------------


class TestRenderEntityTemplate:
    def test_no_mappings(self):
        text = render_entity_template(OBJECT, [])
        lines = text.splitlines()
        assert lines[0] == "GenericEntity {"
        assert re.fullmatch(r' ID "[0-9A-F]{16}"', lines[1])
        assert f'   Object "{OBJECT}"' in lines
        assert " coords 0 0 0" in lines
        assert "WB_SlotBoneMappingsComponent" not in text
        assert "Hierarchy" not in text
        assert text.endswith("}\n")

    def test_no_blank_lines(self):
        text = render_entity_template(OBJECT, [("socket_handle", HANDLE)])
        assert all(line.strip() for line in text.splitlines())

    def test_slot_component_inside_components_block(self):
        text = render_entity_template(OBJECT, [("socket_handle", HANDLE), ("socket_knob", KNOB)])
        components_at = text.index(" components {")
        slot_at = text.index("WB_SlotBoneMappingsComponent")
        coords_at = text.index(" coords 0 0 0")
        assert components_at < slot_at < coords_at
        assert '     BonePrefix "socket_handle"' in text
        assert f'     Prefab "{KNOB}"' in text

    def test_children_after_root_coords(self):
        text = render_entity_template(OBJECT, [("socket_handle", HANDLE)])
        root_coords = text.index("\n coords 0 0 0\n")
        assert text.index(f'GenericEntity : "{HANDLE}"') > root_coords
        assert 'PivotID "socket_handle"' in text

    def test_identifiers_are_distinct(self):
        text = render_entity_template(OBJECT, [("socket_a", HANDLE), ("socket_b", KNOB)])
        ids = _RE_BRACED_ID.findall(text)
        hierarchy_ids = re.findall(r'Hierarchy "\{([0-9A-F]{16})\}"', text)
        # Every child shares the one hierarchy id; everything else is unique
        assert len(set(hierarchy_ids)) == 1
        others = [i for i in ids if i not in hierarchy_ids]
        assert len(others) == len(set(others))

    def test_shared_prefab_becomes_group(self):
        mappings = [
            ("socket_AAAA000000000001", HANDLE),
            ("socket_AAAA000000000001_dup", HANDLE),
        ]
        block = build_child_entities_block(mappings, "0000000000000001")
        assert block.count("$grp GenericEntity") == 1
        assert block.count('PivotID "socket_AAAA000000000001"') == 1
        assert block.count('PivotID "socket_AAAA000000000001_dup"') == 1
        assert block.count("   {\n") == 2

    def test_single_use_prefab_is_plain_child(self):
        block = build_child_entities_block([("socket_knob", KNOB)], "0000000000000001")
        assert "$grp" not in block
        assert f'  GenericEntity : "{KNOB}" {{' in block

    def test_group_by_prefab_sorted_and_ordered(self):
        grouped = group_by_prefab([("s2", KNOB), ("s1", HANDLE), ("s3", KNOB)])
        assert list(grouped) == sorted([KNOB, HANDLE])
        assert grouped[KNOB] == ["s2", "s3"]


class TestMetaText:
    def test_structure(self):
        text = build_et_meta_text("{0123456789ABCDEF}Prefabs/Cabinet_test_prefab.et")
        assert text.startswith("MetaFileClass {\n")
        assert parse_name_field(text) == "{0123456789ABCDEF}Prefabs/Cabinet_test_prefab.et"
        for config in META_CONFIGURATIONS:
            assert f"  EntityTemplateResourceClass {config} {{" in text


# ---------------------------------------------------------------------------
# Save path
# ---------------------------------------------------------------------------


class TestResolveSavePath:
    def test_beside_model(self, tmp_path):
        assert resolve_save_path(tmp_path / "Cabinet.xob") == tmp_path / "Cabinet_test_prefab.et"

    def test_existing_save_dir(self, tmp_path):
        out = tmp_path / "out"
        out.mkdir()
        assert resolve_save_path(tmp_path / "Cabinet.xob", str(out)) == out / "Cabinet_test_prefab.et"

    def test_invalid_save_dir_ignored(self, tmp_path):
        path = resolve_save_path(tmp_path / "Cabinet.xob", str(tmp_path / "missing"))
        assert path == tmp_path / "Cabinet_test_prefab.et"


# ---------------------------------------------------------------------------
# File generation
# ---------------------------------------------------------------------------


class TestCreateEntityTemplate:
    def test_writes_template(self, tmp_path, index):
        model = make_model(
            tmp_path / "Assets" / "Props", "Cabinet", "0000000000000ABC",
            rel_dir="Assets/Props",
            sockets=["socket_handle_01", "socket_handle_02", "socket_knob", "socket_window"],
        )
        result = create_entity_template(model, index, svn_root=str(tmp_path))

        assert result.sockets == 4
        assert result.matched == 3
        assert result.unmatched == 1
        text = (tmp_path / "Assets" / "Props" / "Cabinet_test_prefab.et").read_text(encoding="utf-8")
        assert f'Object "{OBJECT}"' in text
        assert text.count("$grp GenericEntity") == 1
        assert "socket_window" not in text
        assert result.suggested_extra_dirs == ["/ext/Props"]

    def test_no_sockets_sidecar(self, tmp_path, index):
        model = make_model(tmp_path, "Bare", "0000000000000001")
        result = create_entity_template(model, index)
        assert result.sockets == 0
        assert "WB_SlotBoneMappingsComponent" not in open(result.et_path, encoding="utf-8").read()

    def test_hints_used(self, tmp_path, index):
        model = make_model(tmp_path, "Cabinet", "0000000000000ABC", sockets=["socket_mystery"])
        result = create_entity_template(model, index, hints={"socket_mystery": "BBBB000000000002"})
        assert result.mappings == [("socket_mystery", KNOB)]

    def test_missing_model(self, tmp_path, index):
        with pytest.raises(FileNotFoundError):
            create_entity_template(tmp_path / "Nope.xob", index)

    def test_missing_model_meta(self, tmp_path, index):
        model = tmp_path / "NoMeta.xob"
        model.write_bytes(b"")
        with pytest.raises(MetadataNotFoundError):
            create_entity_template(model, index)
        assert not (tmp_path / "NoMeta_test_prefab.et").exists()

    def test_malformed_model_meta(self, tmp_path, index):
        model = tmp_path / "Bad.xob"
        model.write_bytes(b"")
        (tmp_path / "Bad.xob.meta").write_text('Name "{XYZ}Assets/Bad.xob"', encoding="utf-8")
        with pytest.raises(MalformedMetadataError):
            create_entity_template(model, index)

    def test_with_meta_registers_in_cache(self, tmp_path, index):
        model = make_model(
            tmp_path / "Mod" / "Prefabs" / "Props", "Cabinet", "0000000000000ABC",
            sockets=["socket_handle"],
        )
        store = PrefabIndexStore(InMemoryRepository())
        result = create_entity_template_with_meta(model, index, store=store)

        meta_text = open(result.meta_path, encoding="utf-8").read()
        name_value = parse_name_field(meta_text)
        assert name_value.endswith("}Prefabs/Props/Cabinet_test_prefab.et")
        guid = extract_guid(name_value)
        assert guid

        cached = store.load()
        assert cached.name_index["cabinet_test_prefab.et"] == name_value
        assert cached.guid_path_index[guid] == result.et_path

        # The new template resolves straight away
        resolver = SocketResolver(cached)
        assert resolver.resolve("socket_cabinet_test_prefab") == name_value

    def test_with_meta_survives_cache_failure(self, tmp_path, index):
        model = make_model(tmp_path, "Cabinet", "0000000000000ABC")

        class BrokenStore:
            def register(self, *args):
                raise OSError("disk full")

        events = []
        result = create_entity_template_with_meta(
            model, index, store=BrokenStore(), progress=lambda *a: events.append(a)
        )
        assert open(result.meta_path, encoding="utf-8").read().startswith("MetaFileClass")
        assert any(level == "warn" and "disk full" in msg for level, msg, _, _ in events)
