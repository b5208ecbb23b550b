"""
Command-Line Interface

Starts the memory MCP server.

Usage:
    # stdio transport (default)
    memory-mcp

    # stdio with custom root path
    memory-mcp --memory-root-path /my/data/.memory

    # HTTP transport on port 3000
    memory-mcp --transport http --port 3000

    # With debug logging to <tempdir>/memory-mcp/<instance-id>.log
    memory-mcp --debug --transport http

Options may also come from MEMORY_MCP_* environment variables, a .env file,
or a TOML file passed with --config. Flags win.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from pathlib import Path
from typing import Optional

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler

from memory_mcp import __version__

__all__ = ["main", "app"]

app = typer.Typer(
    name="memory-mcp",
    help="MCP server providing a persistent, concurrency-safe /memories file store",
    add_completion=False,
    context_settings={"help_option_names": ["-h", "--help"]},
)
# stdout carries the MCP protocol on stdio; everything human-facing goes to stderr
console = Console(stderr=True)


class Transport(str, Enum):
    stdio = "stdio"
    http = "http"


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"memory-mcp version {__version__}")
        raise typer.Exit()


def _configure_logging(debug: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )


@app.command()
def serve(
    memory_root_path: Optional[Path] = typer.Option(
        None,
        "--memory-root-path", "-m",
        help="Memory storage root path (default: ./.memory)",
    ),
    transport: Optional[Transport] = typer.Option(
        None,
        "--transport", "-t",
        help="Transport type (default: stdio)",
    ),
    port: Optional[int] = typer.Option(
        None,
        "--port", "-p",
        min=1,
        max=65535,
        help="HTTP server port (default: 3000, http transport only)",
    ),
    host: Optional[str] = typer.Option(
        None,
        "--host",
        help="HTTP bind address (default: 127.0.0.1)",
    ),
    debug: bool = typer.Option(
        False,
        "--debug", "-d",
        help="Enable debug logging to <tempdir>/memory-mcp/<instance-id>.log",
    ),
    config_file: Optional[Path] = typer.Option(
        None,
        "--config", "-c",
        exists=True,
        dir_okay=False,
        help="TOML configuration file",
    ),
    version: bool = typer.Option(
        False,
        "--version", "-v",
        callback=_version_callback,
        is_eager=True,
        help="Show version",
    ),
) -> None:
    """Run the memory MCP server."""
    from memory_mcp.config import MemoryConfig
    from memory_mcp.mcp.server import run_server

    load_dotenv()

    try:
        config = MemoryConfig.from_file(config_file) if config_file else MemoryConfig()
        config = config.with_overrides(
            memory_root_path=memory_root_path,
            transport=transport.value if transport else None,
            port=port,
            host=host,
            debug=True if debug else None,
        )
    except ValueError as e:
        console.print(f"[red]Error:[/] {e}")
        raise typer.Exit(1)

    _configure_logging(config.debug)

    try:
        asyncio.run(run_server(config))
    except KeyboardInterrupt:
        console.print("\nShutting down...")


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
