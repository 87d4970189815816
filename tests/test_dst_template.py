"""Tests for template-style destructible presets (phase models in a dst folder)."""

import pytest

from autosocket.errors import MetadataNotFoundError
from autosocket.generators import parse_preset, render_dst_template, scan_phases
from autosocket.generators.dst_template import fill_placeholders, find_phase_dir
from autosocket.ids import is_identifier
from autosocket.naming_profile import load_profile

from conftest import make_model

TEMPLATE = """generator: dst_template

SCR_DestructibleEntity {{ENTITY_ID}} {
 Part1 {{ID_1}}
 Part2 {{ID_2}}
 Again {{ID_1}}
 First "{{FIRST_PHASE_MODEL}}"
 Last "{{LAST_PHASE_MODEL}}"
 FirstDebris { {{FIRST_PHASE_DEBRIS}} }
 LastDebris { {{LAST_PHASE_DEBRIS}} }
 Phases { {{PHASE_MODELS}} }
 Object "{{OBJECT_FROM_XOB}}"
}
"""


def _field(text, key):
    for line in text.splitlines():
        line = line.strip()
        if line.startswith(key + " "):
            return line[len(key) + 1:]
    raise AssertionError(f"{key} not in output")


@pytest.fixture
def wall(tmp_path):
    """Wall.xob with two phases; phase 1 has two debris pieces."""
    models = tmp_path / "Assets" / "Models"
    model = make_model(models, "Wall", "AAAA000000000001")
    dst = models / "dst"
    make_model(dst, "Wall_dst_2", "BBBB000000000002", rel_dir="Assets/Models/dst")
    make_model(dst, "Wall_dst_1", "BBBB000000000001", rel_dir="Assets/Models/dst")
    make_model(dst, "Wall_dst_1_dbr_2", "CCCC000000000002", rel_dir="Assets/Models/dst")
    make_model(dst, "Wall_dst_1_dbr_1", "CCCC000000000001", rel_dir="Assets/Models/dst")
    return model


# ---------------------------------------------------------------------------
# Phase discovery
# ---------------------------------------------------------------------------


class TestScanPhases:
    def test_phases_sorted_with_debris(self, wall):
        phases = scan_phases(wall)
        assert [p.number for p in phases] == [1, 2]
        assert phases[0].model.guid == "BBBB000000000001"
        assert [n for n, _ in phases[0].debris] == [1, 2]
        assert phases[1].debris == []

    def test_no_phase_dir(self, tmp_path):
        model = make_model(tmp_path, "Crate", "AAAA000000000001")
        assert scan_phases(model) == []

    def test_phase_dir_case_insensitive(self, tmp_path):
        model = make_model(tmp_path, "Crate", "AAAA000000000001")
        make_model(tmp_path / "DST", "Crate_dst_1", "BBBB000000000001")
        assert find_phase_dir(model, load_profile()).name == "DST"
        assert [p.number for p in scan_phases(model)] == [1]

    def test_other_stems_ignored(self, wall):
        make_model(wall.parent / "dst", "Fence_dst_1", "DDDD000000000001")
        assert [p.model.guid for p in scan_phases(wall)] == [
            "BBBB000000000001",
            "BBBB000000000002",
        ]

    def test_phase_without_meta_skipped(self, wall):
        (wall.parent / "dst" / "Wall_dst_3.xob").write_bytes(b"XOB")
        assert [p.number for p in scan_phases(wall)] == [1, 2]


# ---------------------------------------------------------------------------
# Placeholders
# ---------------------------------------------------------------------------


class TestFillPlaceholders:
    def test_numbered_ids_reused(self, wall):
        text = fill_placeholders(parse_preset(TEMPLATE).body, scan_phases(wall), "{X}base")
        id1 = _field(text, "Part1")
        assert is_identifier(id1)
        assert _field(text, "Again") == id1
        assert _field(text, "Part2") != id1

    def test_phase_fields(self, wall):
        text = fill_placeholders(parse_preset(TEMPLATE).body, scan_phases(wall), "{X}base")
        assert _field(text, "First") == '"{BBBB000000000001}Assets/Models/dst/Wall_dst_1.xob"'
        assert _field(text, "Last") == '"{BBBB000000000002}Assets/Models/dst/Wall_dst_2.xob"'
        assert _field(text, "FirstDebris") == (
            '{ "{CCCC000000000001}Assets/Models/dst/Wall_dst_1_dbr_1.xob" '
            '"{CCCC000000000002}Assets/Models/dst/Wall_dst_1_dbr_2.xob" }'
        )
        assert _field(text, "LastDebris") == '{ "" }'
        assert _field(text, "Phases").count("Wall_dst_") == 2

    def test_no_phases_uses_base(self):
        text = fill_placeholders(parse_preset(TEMPLATE).body, [], "{AAAA000000000001}base.xob")
        assert _field(text, "First") == '"{AAAA000000000001}base.xob"'
        assert _field(text, "Last") == '"{AAAA000000000001}base.xob"'
        assert _field(text, "FirstDebris") == '{ "" }'
        assert _field(text, "Phases") == '{ "" }'


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------


class TestRenderDstTemplate:
    def test_render(self, wall):
        out = render_dst_template(parse_preset(TEMPLATE), wall)
        assert "{{" not in out
        assert _field(out, "Object") == '"{AAAA000000000001}Assets/Models/Wall.xob"'

    def test_crlf_preserved(self, wall):
        preset = parse_preset(TEMPLATE.replace("\n", "\r\n"))
        out = render_dst_template(preset, wall)
        assert "\r\n" in out
        assert "\n" not in out.replace("\r\n", "")

    def test_lf_stays_lf(self, wall):
        out = render_dst_template(parse_preset(TEMPLATE), wall)
        assert "\r\n" not in out

    def test_fallback_warns(self, tmp_path):
        model = make_model(tmp_path, "Crate", "AAAA000000000001")
        events = []
        out = render_dst_template(
            parse_preset(TEMPLATE), model, progress=lambda level, msg, *a, **k: events.append(level)
        )
        assert _field(out, "First") == '"{AAAA000000000001}Assets/Models/Crate.xob"'
        assert "warn" in events

    def test_missing_model(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            render_dst_template(parse_preset(TEMPLATE), tmp_path / "nope.xob")

    def test_model_without_meta(self, tmp_path):
        model = tmp_path / "Bare.xob"
        model.write_bytes(b"XOB")
        with pytest.raises(MetadataNotFoundError):
            render_dst_template(parse_preset(TEMPLATE), model)
