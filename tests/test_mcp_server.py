"""
Tests for the MCP server tool registration and execution.
"""

from pathlib import Path

import pytest
from mcp.server.fastmcp.exceptions import ToolError

from memory_mcp.api import operations
from memory_mcp.api.operations import OperationsContext
from memory_mcp.mcp.server import create_server, execute
from memory_mcp.types.commands import InsertCommand, ViewCommand

TOOL_NAMES = {
    "memory_view",
    "memory_create",
    "memory_str_replace",
    "memory_insert",
    "memory_delete",
    "memory_rename",
}


def _text(result) -> str:
    # call_tool returns content blocks, paired with structured output on newer SDKs
    if isinstance(result, tuple):
        result = result[0]
    return result[0].text


@pytest.fixture
def memory_root(tmp_path: Path) -> Path:
    root = tmp_path / "memories"
    root.mkdir()
    return root


@pytest.fixture
def context(memory_root: Path) -> OperationsContext:
    return OperationsContext(memory_root)


@pytest.fixture
def mcp(context: OperationsContext):
    return create_server(context)


class TestExecute:
    """Argument validation and error mapping."""

    @pytest.mark.asyncio
    async def test_success_passes_through(self, context, memory_root):
        (memory_root / "a.txt").write_text("Hello\n")

        result = await execute(operations.view, ViewCommand, context, path="/memories/a.txt", view_range=None)
        assert result == "   1: Hello"

    @pytest.mark.asyncio
    async def test_memory_error_becomes_tool_error(self, context):
        with pytest.raises(ToolError, match="Path not found: /memories/missing.txt"):
            await execute(operations.view, ViewCommand, context, path="/memories/missing.txt")

    @pytest.mark.asyncio
    async def test_invalid_arguments(self, context):
        with pytest.raises(ToolError, match="Invalid arguments"):
            await execute(operations.insert, InsertCommand, context, path="/memories/a.txt")

    @pytest.mark.asyncio
    async def test_unexpected_errors_propagate(self, context):
        async def _broken(command, ctx):
            raise RuntimeError("disk on fire")

        with pytest.raises(RuntimeError, match="disk on fire"):
            await execute(_broken, ViewCommand, context, path="/memories")


class TestToolRegistration:
    """The six tools are exposed with their argument schemas."""

    @pytest.mark.asyncio
    async def test_tool_names(self, mcp):
        tools = await mcp.list_tools()
        assert {tool.name for tool in tools} == TOOL_NAMES

    @pytest.mark.asyncio
    async def test_tool_arguments(self, mcp):
        tools = {tool.name: tool for tool in await mcp.list_tools()}

        assert set(tools["memory_view"].inputSchema["properties"]) == {"path", "view_range"}
        assert tools["memory_view"].inputSchema["required"] == ["path"]
        assert set(tools["memory_insert"].inputSchema["required"]) == {"path", "insert_line", "insert_text"}
        assert set(tools["memory_rename"].inputSchema["required"]) == {"old_path", "new_path"}

    @pytest.mark.asyncio
    async def test_tools_have_descriptions(self, mcp):
        for tool in await mcp.list_tools():
            assert tool.description


class TestToolCalls:
    """Calls through the FastMCP tool manager."""

    @pytest.mark.asyncio
    async def test_create_and_view(self, mcp, memory_root):
        created = await mcp.call_tool("memory_create", {"path": "/memories/a.txt", "file_text": "Hello"})
        assert _text(created) == "File created successfully at /memories/a.txt"
        assert (memory_root / "a.txt").read_text() == "Hello"

        viewed = await mcp.call_tool("memory_view", {"path": "/memories/a.txt"})
        assert _text(viewed) == "   1: Hello"

    @pytest.mark.asyncio
    async def test_view_range(self, mcp, memory_root):
        (memory_root / "a.txt").write_text("one\ntwo\nthree\n")

        viewed = await mcp.call_tool("memory_view", {"path": "/memories/a.txt", "view_range": [2, -1]})
        assert _text(viewed) == "   2: two\n   3: three"

    @pytest.mark.asyncio
    async def test_edit_cycle(self, mcp, memory_root):
        await mcp.call_tool("memory_create", {"path": "/memories/notes.md", "file_text": "alpha\ngamma\n"})
        await mcp.call_tool(
            "memory_insert", {"path": "/memories/notes.md", "insert_line": 1, "insert_text": "beta"}
        )
        await mcp.call_tool(
            "memory_str_replace", {"path": "/memories/notes.md", "old_str": "gamma", "new_str": "delta"}
        )
        renamed = await mcp.call_tool(
            "memory_rename", {"old_path": "/memories/notes.md", "new_path": "/memories/archive/notes.md"}
        )
        assert _text(renamed) == "Renamed /memories/notes.md to /memories/archive/notes.md"
        assert (memory_root / "archive" / "notes.md").read_text() == "alpha\nbeta\ndelta\n"

        deleted = await mcp.call_tool("memory_delete", {"path": "/memories/archive"})
        assert _text(deleted) == "Directory deleted: /memories/archive"

    @pytest.mark.asyncio
    async def test_not_unique_text_reaches_caller(self, mcp, memory_root):
        (memory_root / "b.txt").write_text("x x")

        with pytest.raises(ToolError) as exc_info:
            await mcp.call_tool("memory_str_replace", {"path": "/memories/b.txt", "old_str": "x", "new_str": "y"})
        assert "appears 2 times" in str(exc_info.value)
        assert "Must be unique" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_escape_attempt_reaches_caller(self, mcp):
        with pytest.raises(ToolError, match="would escape /memories directory"):
            await mcp.call_tool("memory_view", {"path": "/memories/../../etc/passwd"})

    @pytest.mark.asyncio
    async def test_root_delete_refused(self, mcp):
        with pytest.raises(ToolError, match="Cannot delete the /memories directory itself"):
            await mcp.call_tool("memory_delete", {"path": "/memories"})
