"""
Memory Tool Errors

Every failure surfaced to the caller carries literal, actionable text. The
calling agent parses phrases such as "must be unique" or "has been modified
by another process" to decide whether to re-read and retry.

Hierarchy:
    MemoryToolError
    ├── PathValidationError         - prefix / containment violation
    ├── NotWithinRootError          - reverse mapping outside the root
    ├── NotFoundError               - target does not exist
    ├── NotAFileError               - target is a directory
    ├── NotUniqueError              - str_replace match count != 1
    ├── InvalidLineError            - line number out of range
    ├── DestinationExistsError      - rename would overwrite
    ├── RootDeletionForbiddenError  - delete of /memories itself
    ├── ConflictError               - optimistic check failed
    └── LockTimeoutError            - lock not acquired in time
"""

from __future__ import annotations


class MemoryToolError(Exception):
    """Base class for all memory tool failures."""


class PathValidationError(MemoryToolError):
    """Virtual path is malformed or would escape the memory root."""


class NotWithinRootError(MemoryToolError):
    """Physical path does not live under the memory root."""


class NotFoundError(MemoryToolError):
    """Target path does not exist."""


class NotAFileError(MemoryToolError):
    """Target path is a directory where a file was required."""


class NotUniqueError(MemoryToolError):
    """The search text must occur exactly once."""

    def __init__(self, count: int, path: str) -> None:
        self.count = count
        self.path = path
        if count == 0:
            message = f"Text not found in {path}. old_str must match exactly once."
        else:
            message = (
                f"Text appears {count} times in {path}. "
                "Must be unique - add more surrounding context to old_str."
            )
        super().__init__(message)


class InvalidLineError(MemoryToolError):
    """Line number outside the valid range."""


class DestinationExistsError(MemoryToolError):
    """Rename destination is already present."""


class RootDeletionForbiddenError(MemoryToolError):
    """The /memories directory itself can never be deleted."""


class ConflictError(MemoryToolError):
    """Target changed between the caller's snapshot and lock acquisition."""

    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(
            f"{path} has been modified by another process. "
            "Re-read the file and retry the operation."
        )


class LockTimeoutError(MemoryToolError):
    """Exclusive lock could not be acquired before the stale threshold."""

    def __init__(self, path: str, timeout_seconds: float) -> None:
        self.path = path
        self.timeout_seconds = timeout_seconds
        super().__init__(
            f"Timed out after {timeout_seconds:g}s waiting for lock on {path}. "
            "Another process is using it; retry shortly."
        )
