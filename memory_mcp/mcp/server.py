"""
Memory MCP Server

Six-tool MCP server over the operations engine:

    memory_view         Show directory contents or numbered file lines
    memory_create       Create or overwrite a file
    memory_str_replace  Replace unique text in a file
    memory_insert       Insert text at a line
    memory_delete       Delete a file or directory
    memory_rename       Rename or move a file or directory

Tool arguments are validated into the pydantic command models. Memory tool
errors are re-raised as ToolError with their literal text so the calling
agent sees e.g. "Must be unique" or "has been modified by another process".
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from mcp.server.fastmcp import FastMCP
from mcp.server.fastmcp.exceptions import ToolError
from pydantic import BaseModel, ValidationError

from memory_mcp import __version__
from memory_mcp.api import operations
from memory_mcp.api.operations import OperationsContext
from memory_mcp.config import MemoryConfig
from memory_mcp.errors import MemoryToolError
from memory_mcp.types.commands import (
    CreateCommand,
    DeleteCommand,
    InsertCommand,
    RenameCommand,
    StrReplaceCommand,
    ViewCommand,
)
from memory_mcp.utils.diagnostics import create_diagnostics

logger = logging.getLogger(__name__)

CommandT = TypeVar("CommandT", bound=BaseModel)


async def execute(
    handler: Callable[[CommandT, OperationsContext], Awaitable[str]],
    model: type[CommandT],
    context: OperationsContext,
    **arguments: Any,
) -> str:
    """Validate tool arguments, run the operation, map failures to ToolError."""
    try:
        command = model(**arguments)
    except ValidationError as e:
        raise ToolError(f"Invalid arguments: {e}") from e

    try:
        return await handler(command, context)
    except MemoryToolError as e:
        raise ToolError(str(e)) from e


# =============================================================================
# MCP Server
# =============================================================================

def create_server(
    context: OperationsContext,
    name: str = "memory-mcp",
    host: str = "127.0.0.1",
    port: int = 3000,
) -> FastMCP:
    """Create the MCP server with the six memory tools bound to context."""
    mcp = FastMCP(
        name,
        host=host,
        port=port,
        stateless_http=True,
        json_response=True,
    )

    @mcp.tool(
        name="memory_view",
        title="View Memory",
        description="Show directory contents or file contents with optional line ranges",
    )
    async def memory_view(path: str, view_range: list[int] | None = None) -> str:
        """
        Args:
            path: Memory path starting with /memories
            view_range: Optional [start, end] (1-based). Use -1 for end to read until EOF
        """
        return await execute(operations.view, ViewCommand, context, path=path, view_range=view_range)

    @mcp.tool(
        name="memory_create",
        title="Create Memory File",
        description="Create or overwrite a file in memory",
    )
    async def memory_create(path: str, file_text: str) -> str:
        return await execute(operations.create, CreateCommand, context, path=path, file_text=file_text)

    @mcp.tool(
        name="memory_str_replace",
        title="Replace Text in Memory File",
        description="Replace unique text in a memory file",
    )
    async def memory_str_replace(path: str, old_str: str, new_str: str) -> str:
        return await execute(
            operations.str_replace,
            StrReplaceCommand,
            context,
            path=path,
            old_str=old_str,
            new_str=new_str,
        )

    @mcp.tool(
        name="memory_insert",
        title="Insert Text in Memory File",
        description="Insert text at a specific line in a memory file (0-based)",
    )
    async def memory_insert(path: str, insert_line: int, insert_text: str) -> str:
        return await execute(
            operations.insert,
            InsertCommand,
            context,
            path=path,
            insert_line=insert_line,
            insert_text=insert_text,
        )

    @mcp.tool(
        name="memory_delete",
        title="Delete Memory File/Directory",
        description="Delete a file or directory from memory",
    )
    async def memory_delete(path: str) -> str:
        return await execute(operations.delete, DeleteCommand, context, path=path)

    @mcp.tool(
        name="memory_rename",
        title="Rename/Move Memory File/Directory",
        description="Rename or move a file or directory in memory",
    )
    async def memory_rename(old_path: str, new_path: str) -> str:
        return await execute(
            operations.rename, RenameCommand, context, old_path=old_path, new_path=new_path
        )

    return mcp


async def _serve_http(mcp: FastMCP, host: str, port: int) -> None:
    """Stateless streamable HTTP at /mcp with permissive CORS."""
    import uvicorn
    from starlette.middleware.cors import CORSMiddleware

    app = mcp.streamable_http_app()
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "DELETE"],
        allow_headers=["Content-Type", "mcp-session-id"],
        expose_headers=["Mcp-Session-Id"],
    )

    server = uvicorn.Server(uvicorn.Config(app, host=host, port=port, log_level="warning"))
    logger.info(
        f"Memory MCP Server running on http://{host}:{port}{mcp.settings.streamable_http_path}"
    )
    await server.serve()


async def run_server(config: MemoryConfig) -> None:
    """Prepare storage and diagnostics, then serve until the transport closes."""
    memory_dir = config.ensure_storage()
    diagnostics = create_diagnostics(config.debug, config.log_dir)
    diagnostics.debug("startup", {
        "version": __version__,
        "memoryRoot": str(config.storage_root),
        "transport": config.transport,
        "port": config.port,
        "lockBackend": config.lock_backend,
    })

    context = OperationsContext.from_config(config, diagnostics)
    mcp = create_server(context, host=config.host, port=config.port)
    logger.debug(f"Serving {memory_dir} as /memories")

    try:
        if config.transport == "http":
            await _serve_http(mcp, config.host, config.port)
        else:
            logger.info("Memory MCP Server running on stdio transport")
            await mcp.run_stdio_async()
    finally:
        context.coordinator.close()
        diagnostics.close()
