"""
Memory MCP Server

Exposes the memory store through six MCP tools
(memory_view, memory_create, memory_str_replace, memory_insert,
memory_delete, memory_rename).

Usage:
    # Run the MCP server (stdio)
    memory-mcp --memory-root-path ./.memory

    # Streamable HTTP on port 3000
    memory-mcp --transport http --port 3000

    # Or in Claude Desktop config:
    {
        "mcpServers": {
            "memory": {
                "command": "memory-mcp",
                "args": ["--memory-root-path", "/path/to/.memory"]
            }
        }
    }
"""

from memory_mcp.mcp.server import create_server, run_server

__all__ = ["create_server", "run_server"]
