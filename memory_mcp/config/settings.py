"""
MemoryConfig - Configuration Management

Sensible defaults with full override capability.

Example:
    >>> # Use defaults (reads from environment)
    >>> config = MemoryConfig()

    >>> # Explicit configuration
    >>> config = MemoryConfig(memory_root_path="/data/.memory", transport="http")

    >>> # From config file
    >>> config = MemoryConfig.from_file("./memory-mcp.toml")

Environment Variables:
    MEMORY_MCP_ROOT_PATH - Storage root (the namespace lives in <root>/memories)
    MEMORY_MCP_TRANSPORT - "stdio" or "http"
    MEMORY_MCP_HOST - HTTP bind address
    MEMORY_MCP_PORT - HTTP port
    MEMORY_MCP_DEBUG - Enable JSON-lines debug log ("1", "true", "yes")
    MEMORY_MCP_LOG_DIR - Directory for debug logs
    MEMORY_MCP_LOCK_BACKEND - "marker" or "os"
    MEMORY_MCP_READ_LOCK_STALE_SECONDS - Lock budget for view
    MEMORY_MCP_WRITE_LOCK_STALE_SECONDS - Lock budget for mutations
    MEMORY_MCP_LOCK_WORKERS - Threads available for lock waits and file I/O
"""

from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Any

from memory_mcp.storage.locking import LOCK_BACKENDS
from memory_mcp.storage.paths import NAMESPACE
from memory_mcp.utils.diagnostics import DEFAULT_LOG_DIR

TRANSPORTS = ("stdio", "http")

_TRUE_VALUES = {"1", "true", "yes", "on"}

OPTIONS = (
    "memory_root_path",
    "transport",
    "host",
    "port",
    "debug",
    "log_dir",
    "lock_backend",
    "read_lock_stale_seconds",
    "write_lock_stale_seconds",
    "lock_workers",
)


class MemoryConfig:
    """Configuration for the memory server."""

    # === Storage ===

    memory_root_path: Path = Path("./.memory")
    """Storage root; the /memories namespace maps to <root>/memories"""

    # === Transport ===

    transport: str = "stdio"
    """Transport: "stdio" or "http" """

    host: str = "127.0.0.1"
    """Bind address for the HTTP transport"""

    port: int = 3000
    """Port for the HTTP transport"""

    # === Logging ===

    debug: bool = False
    """Write JSON-lines debug log per instance"""

    log_dir: Path = DEFAULT_LOG_DIR
    """Directory for <instance-id>.log files"""

    # === Locking ===

    lock_backend: str = "marker"
    """Lock mechanism: "marker" (lock files with stale reclamation) or "os" (flock)"""

    read_lock_stale_seconds: float = 5.0
    """How long a view may wait for a lock, and hold one before it counts as abandoned"""

    write_lock_stale_seconds: float = 10.0
    """How long a mutation may wait for a lock, and hold one before it counts as abandoned"""

    lock_workers: int = 32
    """Worker threads for coordinated calls; a call waiting on a busy lock occupies one"""

    def __init__(self, **kwargs: Any) -> None:
        """
        Initialize configuration.

        Args:
            **kwargs: Override any configuration option
        """
        self._load_from_env()

        for key, value in kwargs.items():
            if key in OPTIONS:
                setattr(self, key, value)
            else:
                raise ValueError(f"Unknown configuration option: {key}")

        self.memory_root_path = Path(self.memory_root_path)
        self.log_dir = Path(self.log_dir)
        self.validate()

    def _load_from_env(self) -> None:
        """Load configuration from environment variables."""
        if root := os.getenv("MEMORY_MCP_ROOT_PATH"):
            self.memory_root_path = Path(root)
        if transport := os.getenv("MEMORY_MCP_TRANSPORT"):
            self.transport = transport
        if host := os.getenv("MEMORY_MCP_HOST"):
            self.host = host
        if port := os.getenv("MEMORY_MCP_PORT"):
            self.port = int(port)
        if debug := os.getenv("MEMORY_MCP_DEBUG"):
            self.debug = debug.strip().lower() in _TRUE_VALUES
        if log_dir := os.getenv("MEMORY_MCP_LOG_DIR"):
            self.log_dir = Path(log_dir)
        if backend := os.getenv("MEMORY_MCP_LOCK_BACKEND"):
            self.lock_backend = backend
        if seconds := os.getenv("MEMORY_MCP_READ_LOCK_STALE_SECONDS"):
            self.read_lock_stale_seconds = float(seconds)
        if seconds := os.getenv("MEMORY_MCP_WRITE_LOCK_STALE_SECONDS"):
            self.write_lock_stale_seconds = float(seconds)
        if workers := os.getenv("MEMORY_MCP_LOCK_WORKERS"):
            self.lock_workers = int(workers)

    def validate(self) -> None:
        """Raise ValueError for out-of-range options."""
        if self.transport not in TRANSPORTS:
            raise ValueError(f"transport must be one of {TRANSPORTS}, got: {self.transport}")
        if not 1 <= int(self.port) <= 65535:
            raise ValueError(f"port must be a valid port number (1-65535), got: {self.port}")
        if self.lock_backend not in LOCK_BACKENDS:
            raise ValueError(f"lock_backend must be one of {LOCK_BACKENDS}, got: {self.lock_backend}")
        if self.read_lock_stale_seconds <= 0 or self.write_lock_stale_seconds <= 0:
            raise ValueError("Lock stale thresholds must be positive")
        if int(self.lock_workers) < 1:
            raise ValueError(f"lock_workers must be at least 1, got: {self.lock_workers}")

    @property
    def storage_root(self) -> Path:
        """Absolute storage root."""
        return Path(os.path.abspath(self.memory_root_path))

    @property
    def memory_dir(self) -> Path:
        """Physical directory backing /memories."""
        return self.storage_root / NAMESPACE

    @property
    def lock_dir(self) -> Path:
        """Lock files live beside, not inside, the namespace."""
        return self.storage_root / ".locks"

    def ensure_storage(self) -> Path:
        """Create the namespace directory if absent and return it."""
        self.memory_dir.mkdir(parents=True, exist_ok=True)
        return self.memory_dir

    @classmethod
    def from_file(cls, path: str | Path) -> "MemoryConfig":
        """
        Load configuration from TOML file.

        Sections are flattened; flat top-level keys are also accepted.

        Example TOML:
            memory_root_path = "/data/.memory"

            [server]
            transport = "http"
            port = 3000

            [locking]
            backend = "os"
            write_stale_seconds = 20

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: Unknown section or option
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

        with open(path, "rb") as f:
            data = tomllib.load(f)

        section_mapping = {
            "server": {"transport": "transport", "host": "host", "port": "port"},
            "storage": {"root_path": "memory_root_path", "memory_root_path": "memory_root_path"},
            "logging": {"debug": "debug", "log_dir": "log_dir"},
            "locking": {
                "backend": "lock_backend",
                "read_stale_seconds": "read_lock_stale_seconds",
                "write_stale_seconds": "write_lock_stale_seconds",
                "workers": "lock_workers",
            },
        }

        for key, value in data.items():
            if isinstance(value, dict) and key not in section_mapping:
                raise ValueError(
                    f"Unknown configuration section: [{key}]. "
                    f"Use one of: {', '.join(section_mapping)}"
                )

        flat_config: dict[str, Any] = {}
        for section, keys in section_mapping.items():
            for key, value in data.get(section, {}).items():
                if key not in keys:
                    raise ValueError(f"Unknown configuration option: {section}.{key}")
                flat_config[keys[key]] = value

        for key, value in data.items():
            if key not in section_mapping and not isinstance(value, dict):
                flat_config[key] = value

        return cls(**flat_config)

    @classmethod
    def from_env(cls) -> "MemoryConfig":
        """Load configuration from environment variables only."""
        return cls()

    def with_overrides(self, **kwargs: Any) -> "MemoryConfig":
        """Return new config with specified overrides (None values are ignored)."""
        for key in kwargs:
            if key not in OPTIONS:
                raise ValueError(f"Unknown configuration option: {key}")
        new_config = MemoryConfig.__new__(MemoryConfig)
        for key in OPTIONS:
            setattr(new_config, key, getattr(self, key))
        for key, value in kwargs.items():
            if value is not None:
                setattr(new_config, key, value)
        new_config.memory_root_path = Path(new_config.memory_root_path)
        new_config.log_dir = Path(new_config.log_dir)
        new_config.validate()
        return new_config
