"""
Public API

Modules:
    operations: The six memory commands and OperationsContext
"""

from memory_mcp.api.operations import (
    OperationsContext,
    create,
    delete,
    insert,
    rename,
    str_replace,
    view,
)

__all__ = [
    "OperationsContext",
    "view",
    "create",
    "str_replace",
    "insert",
    "delete",
    "rename",
]
