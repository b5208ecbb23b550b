"""
Debug diagnostics sink.

When debug mode is on, every operation records a JSON line in
``<log_dir>/<instance-id>.log``. Events are pushed onto a queue by a
QueueHandler and drained by a single QueueListener thread, so lines from
concurrent calls never interleave and emitters never wait on file I/O.

Logging is best-effort: a failure here never reaches the operation that
emitted the event.
"""

from __future__ import annotations

import json
import logging
import queue
import tempfile
from datetime import datetime, timezone
from logging.handlers import QueueHandler, QueueListener
from pathlib import Path
from typing import Any, Protocol
from uuid import uuid4

logger = logging.getLogger(__name__)

DEFAULT_LOG_DIR = Path(tempfile.gettempdir()) / "memory-mcp"


def generate_instance_id() -> str:
    """Timestamp plus random suffix, e.g. ``20251015-143022-a3f9``."""
    return f"{datetime.now().strftime('%Y%m%d-%H%M%S')}-{uuid4().hex[:4]}"


# One per process; distinguishes logs of concurrently running servers.
INSTANCE_ID = generate_instance_id()


class Diagnostics(Protocol):
    """Fire-and-forget sink for operation events."""

    def debug(self, operation: str, data: dict[str, Any]) -> None:
        ...

    def close(self) -> None:
        ...


class NullDiagnostics:
    """Used when debug logging is disabled."""

    def debug(self, operation: str, data: dict[str, Any]) -> None:
        pass

    def close(self) -> None:
        pass


class JsonLineFormatter(logging.Formatter):
    """Render a record as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname.lower(),
        }
        fields = getattr(record, "fields", None)
        if fields:
            entry.update(fields)
        else:
            entry["message"] = record.getMessage()
        return json.dumps(entry, default=str)


class FileDiagnostics:
    """
    Sequential JSON-lines debug log for one server instance.

    Attributes:
        log_file: ``<log_dir>/<instance_id>.log``
        instance_id: Correlation token written into the first line
    """

    def __init__(self, log_dir: Path | str = DEFAULT_LOG_DIR, instance_id: str = INSTANCE_ID) -> None:
        self.instance_id = instance_id
        self.log_file = Path(log_dir) / f"{instance_id}.log"
        self.log_file.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(self.log_file, mode="w", encoding="utf-8")
        file_handler.setFormatter(JsonLineFormatter())

        self._queue: queue.Queue[logging.LogRecord] = queue.Queue()
        self._listener = QueueListener(self._queue, file_handler)
        self._file_handler = file_handler
        self._closed = False

        self._logger = logging.getLogger(f"memory_mcp.debug.{instance_id}")
        self._logger.setLevel(logging.DEBUG)
        self._logger.propagate = False
        self._logger.addHandler(QueueHandler(self._queue))

        self._listener.start()
        self._logger.info(
            "Debug logging started",
            extra={"fields": {"message": "Debug logging started", "instanceId": instance_id}},
        )

    def debug(self, operation: str, data: dict[str, Any]) -> None:
        if self._closed:
            return
        try:
            self._logger.debug(operation, extra={"fields": {"operation": operation, **data}})
        except Exception as e:
            logger.warning(f"Failed to write to debug log: {e}")

    def close(self) -> None:
        """Drain pending events and close the file. Safe to call twice."""
        if self._closed:
            return
        self._closed = True
        for handler in list(self._logger.handlers):
            self._logger.removeHandler(handler)
        self._listener.stop()
        self._file_handler.close()


def create_diagnostics(debug: bool, log_dir: Path | str = DEFAULT_LOG_DIR) -> Diagnostics:
    """
    Create a diagnostics sink.

    Args:
        debug: Whether debug logging is enabled
        log_dir: Directory for ``<instance-id>.log``

    Returns:
        FileDiagnostics if debug, NullDiagnostics otherwise
    """
    if not debug:
        return NullDiagnostics()
    return FileDiagnostics(log_dir)
