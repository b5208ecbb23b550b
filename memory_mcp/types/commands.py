"""
Command Types

Validated inputs for the six memory commands. The MCP layer builds these
from tool arguments; the operations engine consumes them.

Models:
    - ViewCommand: Directory listing or numbered file content
    - CreateCommand: Create or overwrite a file
    - StrReplaceCommand: Replace a unique substring
    - InsertCommand: Insert a line at a 0-based position
    - DeleteCommand: Remove a file or directory tree
    - RenameCommand: Move a file or directory
"""

from pydantic import BaseModel, Field

_PATH_HELP = "Memory path starting with /memories"


class ViewCommand(BaseModel):
    """
    View a directory or file.

    Attributes:
        path: Virtual path to view
        view_range: Optional 1-based [start, end]; end = -1 reads to EOF
    """

    path: str = Field(description=_PATH_HELP)
    view_range: tuple[int, int] | None = Field(
        default=None,
        description="Optional line range [start, end]. Use -1 for end to read until EOF",
    )


class CreateCommand(BaseModel):
    """Create or overwrite a file, creating parent directories."""

    path: str = Field(description=_PATH_HELP)
    file_text: str = Field(description="File content to write")


class StrReplaceCommand(BaseModel):
    """Replace the single occurrence of old_str with new_str."""

    path: str = Field(description=_PATH_HELP)
    old_str: str = Field(min_length=1, description="Text to find (must be unique in file)")
    new_str: str = Field(description="Replacement text")


class InsertCommand(BaseModel):
    """Insert insert_text as a new line before 0-based line insert_line."""

    path: str = Field(description=_PATH_HELP)
    insert_line: int = Field(description="Line number where text should be inserted (0-based)")
    insert_text: str = Field(description="Text to insert")


class DeleteCommand(BaseModel):
    path: str = Field(description=_PATH_HELP)


class RenameCommand(BaseModel):
    old_path: str = Field(description="Current memory path")
    new_path: str = Field(description="New memory path")
