"""
Tests for MemoryConfig loading and validation.
"""

import os
from pathlib import Path

import pytest

from memory_mcp.config import MemoryConfig

ENV_VARS = [
    "MEMORY_MCP_ROOT_PATH",
    "MEMORY_MCP_TRANSPORT",
    "MEMORY_MCP_HOST",
    "MEMORY_MCP_PORT",
    "MEMORY_MCP_DEBUG",
    "MEMORY_MCP_LOG_DIR",
    "MEMORY_MCP_LOCK_BACKEND",
    "MEMORY_MCP_READ_LOCK_STALE_SECONDS",
    "MEMORY_MCP_WRITE_LOCK_STALE_SECONDS",
    "MEMORY_MCP_LOCK_WORKERS",
]


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


class TestDefaults:
    """Defaults without environment or file."""

    def test_values(self):
        config = MemoryConfig()
        assert config.memory_root_path == Path("./.memory")
        assert config.transport == "stdio"
        assert config.host == "127.0.0.1"
        assert config.port == 3000
        assert config.debug is False
        assert config.lock_backend == "marker"
        assert config.read_lock_stale_seconds == 5.0
        assert config.write_lock_stale_seconds == 10.0
        assert config.lock_workers == 32

    def test_derived_paths(self, tmp_path):
        config = MemoryConfig(memory_root_path=tmp_path / "store")
        assert config.storage_root == tmp_path / "store"
        assert config.memory_dir == tmp_path / "store" / "memories"
        assert config.lock_dir == tmp_path / "store" / ".locks"

    def test_relative_root_is_absolutized(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        assert MemoryConfig(memory_root_path="data").storage_root == tmp_path / "data"

    def test_ensure_storage(self, tmp_path):
        config = MemoryConfig(memory_root_path=tmp_path / "store")
        assert config.ensure_storage() == tmp_path / "store" / "memories"
        assert config.memory_dir.is_dir()
        # Idempotent
        config.ensure_storage()


class TestEnvironment:
    """MEMORY_MCP_* variables."""

    def test_loaded(self, monkeypatch, tmp_path):
        monkeypatch.setenv("MEMORY_MCP_ROOT_PATH", str(tmp_path))
        monkeypatch.setenv("MEMORY_MCP_TRANSPORT", "http")
        monkeypatch.setenv("MEMORY_MCP_PORT", "8080")
        monkeypatch.setenv("MEMORY_MCP_DEBUG", "true")
        monkeypatch.setenv("MEMORY_MCP_LOCK_BACKEND", "os")
        monkeypatch.setenv("MEMORY_MCP_WRITE_LOCK_STALE_SECONDS", "2.5")
        monkeypatch.setenv("MEMORY_MCP_LOCK_WORKERS", "8")

        config = MemoryConfig.from_env()
        assert config.memory_root_path == tmp_path
        assert config.transport == "http"
        assert config.port == 8080
        assert config.debug is True
        assert config.lock_backend == "os"
        assert config.write_lock_stale_seconds == 2.5
        assert config.lock_workers == 8

    @pytest.mark.parametrize("value", ["0", "false", "no", ""])
    def test_debug_falsey(self, monkeypatch, value):
        monkeypatch.setenv("MEMORY_MCP_DEBUG", value)
        assert MemoryConfig().debug is False

    def test_kwargs_beat_environment(self, monkeypatch):
        monkeypatch.setenv("MEMORY_MCP_PORT", "8080")
        assert MemoryConfig(port=9000).port == 9000

    def test_invalid_environment_value(self, monkeypatch):
        monkeypatch.setenv("MEMORY_MCP_TRANSPORT", "carrier-pigeon")
        with pytest.raises(ValueError, match="transport must be one of"):
            MemoryConfig()


class TestValidation:
    """Out-of-range options are rejected."""

    @pytest.mark.parametrize(
        ("option", "value", "message"),
        [
            ("transport", "sse", "transport must be one of"),
            ("port", 0, "port must be a valid port number"),
            ("port", 70000, "port must be a valid port number"),
            ("lock_backend", "redis", "lock_backend must be one of"),
            ("read_lock_stale_seconds", 0, "must be positive"),
            ("write_lock_stale_seconds", -1, "must be positive"),
            ("lock_workers", 0, "lock_workers must be at least 1"),
        ],
    )
    def test_rejected(self, option, value, message):
        with pytest.raises(ValueError, match=message):
            MemoryConfig(**{option: value})

    def test_unknown_option(self):
        with pytest.raises(ValueError, match="Unknown configuration option"):
            MemoryConfig(memory_path="/x")


class TestFromFile:
    """TOML configuration files."""

    def test_sections(self, tmp_path):
        config_file = tmp_path / "memory-mcp.toml"
        config_file.write_text(
            'memory_root_path = "/data/.memory"\n'
            "\n"
            "[server]\n"
            'transport = "http"\n'
            "port = 4000\n"
            "\n"
            "[logging]\n"
            "debug = true\n"
            "\n"
            "[locking]\n"
            'backend = "os"\n'
            "write_stale_seconds = 20\n"
            "workers = 4\n"
        )

        config = MemoryConfig.from_file(config_file)
        assert config.memory_root_path == Path("/data/.memory")
        assert config.transport == "http"
        assert config.port == 4000
        assert config.debug is True
        assert config.lock_backend == "os"
        assert config.write_lock_stale_seconds == 20
        assert config.lock_workers == 4

    def test_storage_section(self, tmp_path):
        config_file = tmp_path / "memory-mcp.toml"
        config_file.write_text('[storage]\nroot_path = "/srv/memory"\n')

        assert MemoryConfig.from_file(config_file).memory_root_path == Path("/srv/memory")

    def test_unknown_section_key(self, tmp_path):
        config_file = tmp_path / "memory-mcp.toml"
        config_file.write_text("[server]\nworkers = 4\n")

        with pytest.raises(ValueError, match="server.workers"):
            MemoryConfig.from_file(config_file)

    def test_unknown_section(self, tmp_path):
        config_file = tmp_path / "memory-mcp.toml"
        config_file.write_text('[servr]\ntransport = "http"\nport = 4000\n')

        with pytest.raises(ValueError, match=r"Unknown configuration section: \[servr\]"):
            MemoryConfig.from_file(config_file)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError, match="Config file not found"):
            MemoryConfig.from_file(tmp_path / "nope.toml")


class TestOverrides:
    """with_overrides returns a validated copy."""

    def test_applies_values(self):
        base = MemoryConfig()
        updated = base.with_overrides(transport="http", port=8000)
        assert updated.transport == "http"
        assert updated.port == 8000
        assert base.transport == "stdio"

    def test_none_is_ignored(self):
        base = MemoryConfig(port=4321)
        assert base.with_overrides(port=None, host=None).port == 4321

    def test_paths_are_coerced(self):
        updated = MemoryConfig().with_overrides(memory_root_path=os.path.join("a", "b"))
        assert updated.memory_root_path == Path("a") / "b"

    def test_validated(self):
        with pytest.raises(ValueError, match="port must be a valid port number"):
            MemoryConfig().with_overrides(port=99999)

    def test_unknown_option(self):
        with pytest.raises(ValueError, match="Unknown configuration option"):
            MemoryConfig().with_overrides(colour="blue")
