"""
Memory Operations

The six memory commands. Each one resolves its virtual path(s), then runs
its filesystem work through the Coordinator so that calls touching the same
entity are serialized across processes and writers fail fast on conflicting
modifications.

    view         read    directory listing or numbered file lines
    create       write   create/overwrite a file
    str_replace  write   replace a unique substring
    insert       write   insert a line at a 0-based position
    delete       write   remove a file or directory tree
    rename       write   move a file or directory (source + destination locked)

Every call records one diagnostics event with its duration and outcome.
Errors propagate to the caller unchanged.
"""

from __future__ import annotations

import functools
import os
import shutil
import time
from collections.abc import Coroutine
from pathlib import Path
from typing import Any

from memory_mcp.config import MemoryConfig
from memory_mcp.errors import (
    DestinationExistsError,
    InvalidLineError,
    NotAFileError,
    NotFoundError,
    NotUniqueError,
    NotWithinRootError,
    PathValidationError,
    RootDeletionForbiddenError,
)
from memory_mcp.storage.coordinator import Coordinator, LockMode
from memory_mcp.storage.paths import MEMORY_PREFIX, resolve_path, to_virtual_path
from memory_mcp.types.commands import (
    CreateCommand,
    DeleteCommand,
    InsertCommand,
    RenameCommand,
    StrReplaceCommand,
    ViewCommand,
)
from memory_mcp.utils.diagnostics import Diagnostics, NullDiagnostics


def describe_path(path: Path, memory_root: Path) -> str:
    """Virtual path for messages; lock targets above the root fall back to the raw path."""
    try:
        return to_virtual_path(path, memory_root)
    except NotWithinRootError:
        return str(path)


class OperationsContext:
    """
    Shared, immutable inputs for every operation.

    Attributes:
        memory_root: Physical directory backing /memories
        diagnostics: Debug event sink
        coordinator: Lock/conflict coordinator (defaults to locks in
            ``<memory_root>/../.locks``)
    """

    def __init__(
        self,
        memory_root: Path | str,
        diagnostics: Diagnostics | None = None,
        coordinator: Coordinator | None = None,
    ) -> None:
        self.memory_root = Path(os.path.normpath(os.path.abspath(memory_root)))
        self.diagnostics: Diagnostics = diagnostics or NullDiagnostics()
        self.coordinator = coordinator or Coordinator(
            self.memory_root.parent / ".locks",
            describe=self.virtual,
        )

    @classmethod
    def from_config(cls, config: MemoryConfig, diagnostics: Diagnostics) -> "OperationsContext":
        """Build a context with the configured lock backend and thresholds."""
        memory_dir = config.memory_dir
        coordinator = Coordinator(
            config.lock_dir,
            backend=config.lock_backend,
            read_stale_seconds=config.read_lock_stale_seconds,
            write_stale_seconds=config.write_lock_stale_seconds,
            max_workers=config.lock_workers,
            describe=functools.partial(describe_path, memory_root=memory_dir),
        )
        return cls(memory_dir, diagnostics, coordinator)

    def resolve(self, virtual_path: str) -> Path:
        return resolve_path(virtual_path, self.memory_root)

    def virtual(self, path: Path) -> str:
        return describe_path(path, self.memory_root)


# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------


def _read_text(path: Path) -> str:
    # newline="" keeps \r\n intact through a read-modify-write cycle
    with open(path, encoding="utf-8", newline="") as f:
        return f.read()


def _write_text(path: Path, content: str) -> None:
    with open(path, "w", encoding="utf-8", newline="") as f:
        f.write(content)


def split_lines(content: str) -> tuple[list[str], bool]:
    """
    Split content into lines.

    A single trailing newline ends the last line instead of opening an empty
    one. Empty content has no lines.

    Returns:
        (lines, had_trailing_newline)
    """
    if not content:
        return [], False
    trailing = content.endswith("\n")
    body = content[:-1] if trailing else content
    return body.split("\n"), trailing


def join_lines(lines: list[str], trailing: bool) -> str:
    text = "\n".join(lines)
    return text + "\n" if trailing and lines else text


async def _instrumented(
    context: OperationsContext,
    operation: str,
    data: dict[str, Any],
    call: Coroutine[Any, Any, str],
) -> str:
    """Await the operation and record its timing and outcome."""
    start = time.perf_counter()
    try:
        result = await call
    except Exception as e:
        context.diagnostics.debug(operation, {
            **data,
            "success": False,
            "error": str(e),
            "errorType": type(e).__name__,
            "durationMs": round((time.perf_counter() - start) * 1000, 3),
        })
        raise
    context.diagnostics.debug(operation, {
        **data,
        "success": True,
        "durationMs": round((time.perf_counter() - start) * 1000, 3),
    })
    return result


# -----------------------------------------------------------------------------
# view
# -----------------------------------------------------------------------------


async def view(command: ViewCommand, context: OperationsContext) -> str:
    """
    Show directory contents or file contents with line numbers.

    Directories list immediate children (hidden entries skipped, directories
    suffixed with ``/``). Files are numbered from 1 and may be sliced with
    ``view_range``; an end of -1 reads through EOF.

    Raises:
        NotFoundError: Path does not exist
        InvalidLineError: Malformed view_range
    """
    return await _instrumented(
        context,
        "view",
        {"path": command.path, "viewRange": command.view_range},
        _view(command, context),
    )


async def _view(command: ViewCommand, context: OperationsContext) -> str:
    path = context.resolve(command.path)
    vpath = context.virtual(path)

    def _read() -> str:
        if not path.exists():
            raise NotFoundError(f"Path not found: {vpath}")

        if path.is_dir():
            lines = [f"Directory: {vpath}"]
            for child in sorted(path.iterdir(), key=lambda p: p.name):
                if child.name.startswith("."):
                    continue
                lines.append(f"- {child.name}/" if child.is_dir() else f"- {child.name}")
            return "\n".join(lines) + "\n"

        lines, _ = split_lines(_read_text(path))
        start, stop = 1, len(lines)
        if command.view_range is not None:
            start, end = command.view_range
            if start < 1 or (end != -1 and end < start):
                raise InvalidLineError(
                    f"Invalid view_range [{start}, {end}]. "
                    "Start must be >= 1 and end must be >= start or -1"
                )
            stop = len(lines) if end == -1 else end

        return "\n".join(
            f"{number:>4}: {line}"
            for number, line in enumerate(lines[start - 1:stop], start=start)
        )

    return await context.coordinator.with_coordination(path, LockMode.READ, _read)


# -----------------------------------------------------------------------------
# create
# -----------------------------------------------------------------------------


async def create(command: CreateCommand, context: OperationsContext) -> str:
    """Create or overwrite a file, making parent directories as needed."""
    return await _instrumented(
        context,
        "create",
        {"path": command.path, "size": len(command.file_text)},
        _create(command, context),
    )


async def _create(command: CreateCommand, context: OperationsContext) -> str:
    path = context.resolve(command.path)
    vpath = context.virtual(path)

    def _write() -> str:
        if path.is_dir():
            raise NotAFileError(f"Path is a directory, not a file: {vpath}")
        path.parent.mkdir(parents=True, exist_ok=True)
        _write_text(path, command.file_text)
        return f"File created successfully at {vpath}"

    return await context.coordinator.with_coordination(path, LockMode.WRITE, _write)


# -----------------------------------------------------------------------------
# str_replace
# -----------------------------------------------------------------------------


async def str_replace(command: StrReplaceCommand, context: OperationsContext) -> str:
    """
    Replace the single occurrence of old_str with new_str.

    Raises:
        NotFoundError: File does not exist
        NotAFileError: Path is a directory
        NotUniqueError: old_str occurs zero or several times
    """
    return await _instrumented(
        context,
        "str_replace",
        {"path": command.path, "oldLength": len(command.old_str), "newLength": len(command.new_str)},
        _str_replace(command, context),
    )


async def _str_replace(command: StrReplaceCommand, context: OperationsContext) -> str:
    path = context.resolve(command.path)
    vpath = context.virtual(path)

    def _replace() -> str:
        if not path.exists():
            raise NotFoundError(f"File not found: {vpath}")
        if path.is_dir():
            raise NotAFileError(f"Path is not a file: {vpath}")

        content = _read_text(path)
        count = content.count(command.old_str)
        if count != 1:
            raise NotUniqueError(count, vpath)

        _write_text(path, content.replace(command.old_str, command.new_str, 1))
        return f"File edited successfully: {vpath}"

    return await context.coordinator.with_coordination(path, LockMode.WRITE, _replace)


# -----------------------------------------------------------------------------
# insert
# -----------------------------------------------------------------------------


async def insert(command: InsertCommand, context: OperationsContext) -> str:
    """
    Insert a line before 0-based line ``insert_line``.

    0 prepends; the current line count appends.

    Raises:
        NotFoundError: File does not exist
        NotAFileError: Path is a directory
        InvalidLineError: insert_line outside [0, line count]
    """
    return await _instrumented(
        context,
        "insert",
        {"path": command.path, "insertLine": command.insert_line},
        _insert(command, context),
    )


async def _insert(command: InsertCommand, context: OperationsContext) -> str:
    path = context.resolve(command.path)
    vpath = context.virtual(path)

    def _write() -> str:
        if not path.exists():
            raise NotFoundError(f"File not found: {vpath}")
        if path.is_dir():
            raise NotAFileError(f"Path is not a file: {vpath}")

        lines, trailing = split_lines(_read_text(path))
        if not 0 <= command.insert_line <= len(lines):
            raise InvalidLineError(
                f"Invalid insert_line {command.insert_line}. "
                f"Must be between 0 and {len(lines)}"
            )

        lines.insert(command.insert_line, command.insert_text)
        _write_text(path, join_lines(lines, trailing))
        return f"Text inserted at line {command.insert_line} in {vpath}"

    return await context.coordinator.with_coordination(path, LockMode.WRITE, _write)


# -----------------------------------------------------------------------------
# delete
# -----------------------------------------------------------------------------


async def delete(command: DeleteCommand, context: OperationsContext) -> str:
    """
    Delete a file, or a directory and everything below it.

    Raises:
        RootDeletionForbiddenError: Path is /memories itself
        NotFoundError: Path does not exist
    """
    return await _instrumented(context, "delete", {"path": command.path}, _delete(command, context))


async def _delete(command: DeleteCommand, context: OperationsContext) -> str:
    path = context.resolve(command.path)
    if path == context.memory_root:
        raise RootDeletionForbiddenError(
            f"Cannot delete the {MEMORY_PREFIX} directory itself"
        )
    vpath = context.virtual(path)

    def _remove() -> str:
        if not os.path.lexists(path):
            raise NotFoundError(f"Path not found: {vpath}")
        if path.is_dir() and not path.is_symlink():
            shutil.rmtree(path)
            return f"Directory deleted: {vpath}"
        path.unlink()
        return f"File deleted: {vpath}"

    return await context.coordinator.with_coordination(path, LockMode.WRITE, _remove)


# -----------------------------------------------------------------------------
# rename
# -----------------------------------------------------------------------------


async def rename(command: RenameCommand, context: OperationsContext) -> str:
    """
    Move a file or directory; never overwrites an existing destination.

    Raises:
        PathValidationError: Source is /memories or destination is inside source
        NotFoundError: Source does not exist
        DestinationExistsError: Destination already exists
    """
    return await _instrumented(
        context,
        "rename",
        {"oldPath": command.old_path, "newPath": command.new_path},
        _rename(command, context),
    )


async def _rename(command: RenameCommand, context: OperationsContext) -> str:
    source = context.resolve(command.old_path)
    destination = context.resolve(command.new_path)
    if source == context.memory_root:
        raise PathValidationError(f"Cannot rename the {MEMORY_PREFIX} directory itself")
    if destination != source and destination.is_relative_to(source):
        raise PathValidationError(
            f"Cannot move {command.old_path} into itself ({command.new_path})"
        )
    vsource = context.virtual(source)
    vdestination = context.virtual(destination)

    def _move() -> str:
        if not os.path.lexists(source):
            raise NotFoundError(f"Source path not found: {vsource}")
        if os.path.lexists(destination):
            raise DestinationExistsError(f"Destination already exists: {vdestination}")
        destination.parent.mkdir(parents=True, exist_ok=True)
        source.rename(destination)
        return f"Renamed {vsource} to {vdestination}"

    return await context.coordinator.with_rename_coordination(source, destination, _move)
