"""Persistence engine interface for the pipeline registry."""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List

from loguru import logger

from ..atomic import write_atomic
from ..errors import StorageError

EMPTY_REGISTRY = "{}\n"


def entry_line(pipeline_id: str, data: Dict[str, Any]) -> str:
    """One registry entry as a single ``  "id": {compact json}`` line."""
    return f"  {json.dumps(pipeline_id)}: {json.dumps(data)}"


def render_lines(lines: List[str]) -> str:
    """Close entry lines into the registry object, commas between entries only."""
    if not lines:
        return EMPTY_REGISTRY
    body = [line.rstrip().rstrip(",") for line in lines]
    return "{\n" + ",\n".join(body) + "\n}\n"


def render_entries(entries: Dict[str, Dict[str, Any]]) -> str:
    """Serialize the id -> record map in the layout both engines read and write."""
    return render_lines([entry_line(pipeline_id, data) for pipeline_id, data in entries.items()])


class RegistryEngine(ABC):
    """Stores the id -> record map of the registry in a single JSON file.

    Both engines write one entry per line, so either can take over a file the
    other wrote. Every mutation replaces the file atomically, so the file is valid JSON
    after each completed operation. A missing file is created empty.
    """

    name = "base"

    def __init__(self, path: Path):
        """Initialize engine.

        Args:
            path: Registry file location
        """
        self.path = Path(path)

    def ensure_exists(self) -> None:
        """Create an empty registry file if there is none."""
        if not self.path.exists():
            write_atomic(self.path, EMPTY_REGISTRY)
            logger.info(f"Created empty pipelines file: {self.path}")

    def read_text(self) -> str:
        self.ensure_exists()
        try:
            return self.path.read_text(encoding="utf-8")
        except OSError as e:
            raise StorageError(f"Failed to read {self.path}: {e}") from e

    def write_text(self, text: str) -> None:
        write_atomic(self.path, text)

    @abstractmethod
    def read_all(self) -> Dict[str, Dict[str, Any]]:
        """Return every stored entry keyed by pipeline id."""

    @abstractmethod
    def upsert(self, pipeline_id: str, data: Dict[str, Any]) -> None:
        """Insert or overwrite one entry."""

    @abstractmethod
    def delete(self, pipeline_id: str) -> None:
        """Remove one entry; absent ids are a no-op."""

    @abstractmethod
    def replace(self, entries: Dict[str, Dict[str, Any]]) -> None:
        """Replace the whole registry content."""
