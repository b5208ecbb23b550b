"""
Virtual / Physical Path Mapping

Callers only ever see virtual paths rooted at ``/memories``. These two pure
functions translate between that namespace and the on-disk memory root.

Containment is checked lexically on every forward call (no caching). Symbolic
links are NOT followed: a link inside the root that points elsewhere passes
the check. Percent-decoding is the caller's job; backslashes are ordinary
filename characters.
"""

from __future__ import annotations

import os
from pathlib import Path, PurePosixPath

from memory_mcp.errors import NotWithinRootError, PathValidationError

NAMESPACE = "memories"
MEMORY_PREFIX = "/" + NAMESPACE


def _canonical_root(memory_root: str | Path) -> str:
    return os.path.normpath(os.path.abspath(os.fspath(memory_root)))


def _is_within(path: str, root: str) -> bool:
    """Component-wise containment (``/a/memories-evil`` is not in ``/a/memories``)."""
    try:
        return os.path.commonpath([path, root]) == root
    except ValueError:
        return False


def resolve_path(virtual_path: str, memory_root: str | Path) -> Path:
    """
    Resolve a virtual path to an absolute physical path under memory_root.

    Args:
        virtual_path: Caller-supplied path, e.g. ``/memories/notes/todo.md``
        memory_root: Directory backing the ``/memories`` namespace

    Returns:
        Normalized absolute path equal to or below memory_root

    Raises:
        PathValidationError: Missing prefix or traversal outside the root
    """
    if virtual_path != MEMORY_PREFIX and not virtual_path.startswith(MEMORY_PREFIX + "/"):
        raise PathValidationError(
            f"Path must start with {MEMORY_PREFIX}, got: '{virtual_path}'"
        )
    if "\x00" in virtual_path:
        raise PathValidationError(f"Path contains a NUL byte: {virtual_path!r}")

    root = _canonical_root(memory_root)
    relative = virtual_path[len(MEMORY_PREFIX):].lstrip("/")
    resolved = os.path.normpath(os.path.join(root, relative)) if relative else root

    if not _is_within(resolved, root):
        raise PathValidationError(
            f"Invalid path: {virtual_path} would escape {MEMORY_PREFIX} directory"
        )

    return Path(resolved)


def to_virtual_path(physical_path: str | Path, memory_root: str | Path) -> str:
    """
    Map a physical path back into the ``/memories`` namespace.

    Only used to build human-readable messages.

    Raises:
        NotWithinRootError: physical_path is outside memory_root
    """
    root = _canonical_root(memory_root)
    path = os.path.normpath(os.path.abspath(os.fspath(physical_path)))

    if not _is_within(path, root):
        raise NotWithinRootError(f"Path {physical_path} is not within memory root")

    relative = os.path.relpath(path, root)
    if relative == os.curdir:
        return MEMORY_PREFIX
    return str(PurePosixPath(MEMORY_PREFIX, *Path(relative).parts))
