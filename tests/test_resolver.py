"""Tests for socket resolution and the Blender hint adapter."""

import subprocess
from unittest.mock import MagicMock, patch

import pytest

from autosocket.prefab_index import PrefabIndex
from autosocket.resolver import (
    TIER_GUID,
    TIER_HINT,
    TIER_NAME,
    SocketResolver,
    extract_guid_from_socket_name,
    normalize_hints,
    normalize_socket_key,
    prefab_candidates_from_socket,
    resolve,
    resolve_path,
)
from autosocket.resolver import blender

DOOR = "{AAAA000000000001}Prefabs/Doors/Door_Frame.et"
LAMP = "{BBBB000000000002}Prefabs/Lights/Lamp.et"


@pytest.fixture
def index():
    idx = PrefabIndex(svn_root="/svn")
    idx.upsert("door_frame.et", "/svn/Prefabs/Doors/Door_Frame.et", DOOR)
    idx.upsert("lamp.et", "/ext/Lights/Lamp.et", LAMP)
    return idx


# ---------------------------------------------------------------------------
# Name helpers
# ---------------------------------------------------------------------------


class TestSocketNames:
    @pytest.mark.parametrize(
        "name,expected",
        [
            ("socket_door_frame_02", ["door_frame_02", "door_frame"]),
            ("socket_Door.Frame__02", ["door_frame_02", "door_frame"]),
            ("socket_lamp", ["lamp"]),
            ("socket_lamp.et", ["lamp"]),
            ("socket__lamp__", ["lamp"]),
            ("socket_street lamp", ["street_lamp"]),
            ("mesh_lamp", []),
            ("socket_", []),
        ],
    )
    def test_candidates(self, name, expected):
        assert prefab_candidates_from_socket(name) == expected

    def test_embedded_guid(self):
        assert extract_guid_from_socket_name("socket_aaaa000000000001_dup") == "AAAA000000000001"

    @pytest.mark.parametrize("name", ["socket_door", "socket_AAAA00000000000", "lamp_AAAA000000000001"])
    def test_no_embedded_guid(self, name):
        assert extract_guid_from_socket_name(name) is None

    def test_normalize_key(self):
        assert normalize_socket_key("  Socket-Door Frame ") == "socket_door_frame"

    def test_normalize_hints(self):
        assert normalize_hints({"Socket-Lamp": " bbbb000000000002 ", "empty": ""}) == {
            "socket_lamp": "BBBB000000000002"
        }


# ---------------------------------------------------------------------------
# Tiered resolution
# ---------------------------------------------------------------------------


class TestResolve:
    def test_name_tier_strips_numeric_suffix(self, index):
        assert resolve("socket_door_frame_02", None, index.guid_index, index.name_index) == DOOR

    def test_embedded_guid_tier(self, index):
        assert resolve("socket_AAAA000000000001", None, index.guid_index, index.name_index) == DOOR

    def test_hint_beats_embedded_guid(self, index):
        hints = {"socket_AAAA000000000001": "BBBB000000000002"}
        assert resolve("socket_AAAA000000000001", hints, index.guid_index, index.name_index) == LAMP

    def test_hint_keys_are_normalized(self, index):
        hints = {"SOCKET-AAAA000000000001": "bbbb000000000002"}
        assert resolve("socket_AAAA000000000001", hints, index.guid_index, index.name_index) == LAMP

    def test_unindexed_hint_falls_through(self, index):
        hints = {"socket_door_frame": "FFFF00000000000F"}
        assert resolve("socket_door_frame", hints, index.guid_index, index.name_index) == DOOR

    def test_unmatched(self, index):
        assert resolve("socket_window", None, index.guid_index, index.name_index) is None

    def test_custom_candidate_fn(self, index):
        result = resolve(
            "socket_anything", None, index.guid_index, index.name_index,
            candidate_fn=lambda s: ["lamp"],
        )
        assert result == LAMP

    def test_resolve_path(self, index):
        path = resolve_path(
            "socket_lamp_1", None, index.guid_path_index, index.et_path_index
        )
        assert path == "/ext/Lights/Lamp.et"


class TestSocketResolver:
    def test_match_report(self, index):
        resolver = SocketResolver(index, hints={"socket_x": "BBBB000000000002"})
        report = resolver.match(
            ["socket_AAAA000000000001", "socket_door_frame_02", "socket_x", "socket_window"]
        )
        assert report.total == 4
        assert report.matched == 3
        assert report.unmatched == 1
        assert report.mappings == [
            ("socket_AAAA000000000001", DOOR),
            ("socket_door_frame_02", DOOR),
            ("socket_x", LAMP),
        ]
        assert [d.tier for d in report.details] == [TIER_GUID, TIER_NAME, TIER_HINT, None]
        assert report.to_dict()["sockets"][3] == {"socket": "socket_window", "prefab": None, "tier": None}

    def test_suggest_source_directories(self, index):
        resolver = SocketResolver(index)
        dirs = resolver.suggest_source_directories(["socket_lamp", "socket_lamp_2", "socket_door_frame"])
        assert dirs == sorted({"/ext/Lights", "/svn/Prefabs/Doors"})

    def test_suggest_excludes_svn_root_and_known(self, index):
        resolver = SocketResolver(index)
        assert resolver.suggest_source_directories(
            ["socket_lamp", "socket_door_frame"], svn_root="/svn"
        ) == ["/ext/Lights"]
        assert resolver.suggest_source_directories(
            ["socket_lamp", "socket_door_frame"], extra_dirs=["/EXT/lights"], svn_root="/svn"
        ) == []

    def test_suggest_skips_unmatched(self, index):
        assert SocketResolver(index).suggest_source_directories(["socket_window"]) == []


# ---------------------------------------------------------------------------
# Blender adapter
# ---------------------------------------------------------------------------


class TestBlender:
    def test_parse_last_json_line(self):
        out = 'Blender 4.1\nimport done\n{"socket_a": "AAAA000000000001"}\n'
        assert blender.parse_guid_output(out) == {"socket_a": "AAAA000000000001"}

    def test_parse_no_json(self):
        assert blender.parse_guid_output("Blender quit\n") is None

    def test_parse_bad_json(self):
        assert blender.parse_guid_output("{not json}") is None

    def test_configured_path_wins(self, tmp_path, monkeypatch):
        exe = tmp_path / "blender"
        exe.write_text("")
        monkeypatch.setenv("BLENDER_PATH", "/nowhere")
        assert blender.resolve_blender_path(str(exe)) == str(exe)

    def test_env_path(self, tmp_path, monkeypatch):
        exe = tmp_path / "blender"
        exe.write_text("")
        monkeypatch.delenv("AUTOSOCKET_BLENDER_PATH", raising=False)
        monkeypatch.setenv("BLENDER_PATH", str(exe))
        assert blender.resolve_blender_path(None) == str(exe)

    def test_not_found(self, monkeypatch):
        monkeypatch.delenv("AUTOSOCKET_BLENDER_PATH", raising=False)
        monkeypatch.delenv("BLENDER_PATH", raising=False)
        with patch("autosocket.resolver.blender.shutil.which", return_value=None), \
                patch.object(blender, "_WINDOWS_CANDIDATES", ()):
            assert blender.resolve_blender_path(None) is None

    def test_no_fbx_returns_none(self, tmp_path):
        with patch("autosocket.resolver.blender.subprocess.run") as run:
            assert blender.extract_socket_guids(tmp_path / "Model.xob", "/usr/bin/blender") is None
        run.assert_not_called()

    def test_no_blender_returns_none(self, tmp_path):
        (tmp_path / "Model.fbx").write_text("")
        with patch.object(blender, "resolve_blender_path", return_value=None):
            assert blender.extract_socket_guids(tmp_path / "Model.xob") is None

    def test_runs_blender_with_fbx(self, tmp_path):
        fbx = tmp_path / "Model.fbx"
        fbx.write_text("")
        completed = MagicMock(stdout='{"socket_a": "AAAA000000000001"}\n', stderr="")
        with patch.object(blender, "resolve_blender_path", return_value="/opt/blender"), \
                patch("autosocket.resolver.blender.subprocess.run", return_value=completed) as run:
            result = blender.extract_socket_guids(tmp_path / "Model.xob", timeout=5)

        assert result == {"socket_a": "AAAA000000000001"}
        cmd = run.call_args[0][0]
        assert cmd[0] == "/opt/blender"
        assert "--background" in cmd
        assert cmd[-2:] == ["--", str(fbx)]
        assert run.call_args[1]["timeout"] == 5

    def test_timeout_returns_none(self, tmp_path):
        (tmp_path / "Model.fbx").write_text("")
        with patch.object(blender, "resolve_blender_path", return_value="/opt/blender"), \
                patch(
                    "autosocket.resolver.blender.subprocess.run",
                    side_effect=subprocess.TimeoutExpired("blender", 5),
                ):
            assert blender.extract_socket_guids(tmp_path / "Model.xob", timeout=5) is None

    def test_start_failure_returns_none(self, tmp_path):
        (tmp_path / "Model.fbx").write_text("")
        with patch.object(blender, "resolve_blender_path", return_value="/opt/blender"), \
                patch("autosocket.resolver.blender.subprocess.run", side_effect=OSError("denied")):
            assert blender.extract_socket_guids(tmp_path / "Model.xob") is None
