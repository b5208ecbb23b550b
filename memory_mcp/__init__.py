"""
memory-mcp - Persistent Memory Store for MCP Clients

A file store exposed through six MCP tools (view, create, str_replace,
insert, delete, rename) under the virtual /memories namespace. Several
server processes may share one storage root: operations on the same file or
directory are serialized across processes, and writes that race a change
made by another process fail with a clear "re-read and retry" error.

Example:
    >>> from memory_mcp import OperationsContext, view, create
    >>> from memory_mcp.types import CreateCommand, ViewCommand
    >>> context = OperationsContext("./.memory/memories")
    >>> await create(CreateCommand(path="/memories/a.txt", file_text="Hello"), context)
    >>> print(await view(ViewCommand(path="/memories/a.txt"), context))
       1: Hello

Main Classes:
    OperationsContext: Storage root + diagnostics + coordinator
    MemoryConfig: Configuration management
    Coordinator: Cross-process locking and conflict detection
"""

__version__ = "0.1.0"

# Public API - lazy imports keep `memory-mcp --version` fast
def __getattr__(name: str):
    """Lazy import public API components."""

    if name == "MemoryConfig":
        from memory_mcp.config.settings import MemoryConfig
        return MemoryConfig

    if name == "Coordinator":
        from memory_mcp.storage.coordinator import Coordinator
        return Coordinator

    if name in ("OperationsContext", "view", "create", "str_replace", "insert", "delete", "rename"):
        from memory_mcp.api import operations
        return getattr(operations, name)

    raise AttributeError(f"module 'memory_mcp' has no attribute {name!r}")


__all__ = [
    # Main classes
    "OperationsContext",
    "MemoryConfig",
    "Coordinator",

    # Operations
    "view",
    "create",
    "str_replace",
    "insert",
    "delete",
    "rename",

    # Version
    "__version__",
]
