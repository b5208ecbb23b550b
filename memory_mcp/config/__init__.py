"""
Configuration System

Configuration Priority (highest to lowest):
    1. Programmatic / CLI flags (MemoryConfig(...), with_overrides)
    2. Config file (--config memory-mcp.toml)
    3. Environment variables (MEMORY_MCP_* prefix, .env supported)
    4. Built-in defaults

Modules:
    settings: MemoryConfig class
"""

from memory_mcp.config.settings import MemoryConfig

__all__ = ["MemoryConfig"]
