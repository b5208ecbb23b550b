"""
Types

Pydantic models for the memory command inputs.
"""

from memory_mcp.types.commands import (
    CreateCommand,
    DeleteCommand,
    InsertCommand,
    RenameCommand,
    StrReplaceCommand,
    ViewCommand,
)

__all__ = [
    "ViewCommand",
    "CreateCommand",
    "StrReplaceCommand",
    "InsertCommand",
    "DeleteCommand",
    "RenameCommand",
]
