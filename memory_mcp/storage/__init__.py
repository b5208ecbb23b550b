"""
Storage Layer

Everything that touches the storage root.

Modules:
    paths: Virtual <-> physical path mapping with containment checks
    locking: Cross-process lock backends (marker files, OS locks)
    coordinator: Per-target serialization + optimistic conflict detection

Storage Root Directory Structure:
    <memory-root-path>/
    ├── memories/        # Backs the /memories namespace
    └── .locks/          # One lock file per lock target (digest-named)
"""

from memory_mcp.storage.coordinator import Coordinator, LockMode
from memory_mcp.storage.paths import MEMORY_PREFIX, resolve_path, to_virtual_path

__all__ = [
    "Coordinator",
    "LockMode",
    "MEMORY_PREFIX",
    "resolve_path",
    "to_virtual_path",
]
