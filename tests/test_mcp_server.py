"""Tests for the MCP server's tool schema and dispatch."""

import asyncio
import json
from unittest.mock import patch

import pytest

from autosocket import mcp_server
from autosocket.mcp_server import CACHE_STATUS_URI, _dispatch_tool, _input_schema
from autosocket.tools import TOOLS

from conftest import make_prefab


class TestInputSchema:
    def test_required_and_optional(self):
        schema = _input_schema({
            "model_path": {"type": "string"},
            "save_dir": {"type": "string", "optional": True},
            "use_blender": {"type": "boolean", "default": True},
        })
        assert schema["type"] == "object"
        assert schema["required"] == ["model_path"]
        assert "optional" not in schema["properties"]["save_dir"]
        assert schema["properties"]["use_blender"]["default"] is True

    def test_no_required(self):
        schema = _input_schema({"root": {"type": "string", "optional": True}})
        assert "required" not in schema

    def test_registry_schemas(self):
        by_name = {t["name"]: _input_schema(t["parameters"]) for t in TOOLS}
        assert by_name["generate_destructibles"]["required"] == ["models", "preset"]
        assert by_name["resolve_sockets"]["required"] == ["model_path"]
        assert "required" not in by_name["scan_prefab_index"]


class TestDispatchTool:
    def test_unknown_tool(self):
        assert _dispatch_tool("nope", {}) == {"error": "Unknown tool: nope"}

    def test_unknown_argument(self):
        result = _dispatch_tool("resolve_sockets", {"model_path": "a.xob", "colour": "red"})
        assert result["error"].startswith("Unknown arguments for resolve_sockets")

    def test_missing_argument(self):
        result = _dispatch_tool("generate_destructibles", {"models": ["a.xob"]})
        assert result == {"error": "Missing required arguments for generate_destructibles: preset"}

    def test_exception_becomes_error(self, tmp_path):
        result = _dispatch_tool("resolve_sockets", {"model_path": str(tmp_path / "nope.xob")})
        assert "Invalid model path" in result["error"]

    def test_non_dict_result_wrapped(self):
        tool = {"name": "fake", "function": lambda: ["x"], "parameters": {}}
        with patch.dict(mcp_server._TOOLS_BY_NAME, {"fake": tool}):
            assert _dispatch_tool("fake", {}) == {"result": ["x"]}

    def test_success(self, tmp_path):
        make_prefab(tmp_path / "svn" / "Prefabs", "Crate.et", "AAAA000000000001")
        result = _dispatch_tool("scan_prefab_index", {"root": str(tmp_path / "svn")})
        assert result["entry_count"] == 1


class TestHandlers:
    def test_list_tools(self):
        tools = asyncio.run(mcp_server.list_tools())
        assert [t.name for t in tools] == [t["name"] for t in TOOLS]

    def test_call_tool_returns_json_text(self):
        content = asyncio.run(mcp_server.call_tool("nope", {}))
        assert json.loads(content[0].text) == {"error": "Unknown tool: nope"}

    def test_cache_status_resource(self):
        text = asyncio.run(mcp_server.read_resource(CACHE_STATUS_URI))
        assert json.loads(text)["has_cache"] is False

    @pytest.mark.parametrize("uri", ["autosocket://other", "file:///x"])
    def test_unknown_resource(self, uri):
        text = asyncio.run(mcp_server.read_resource(uri))
        assert "Unknown resource" in json.loads(text)["error"]
