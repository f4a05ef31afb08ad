"""Line-oriented registry engine.

Compatibility fallback for setups without a structured JSON parser. The file
keeps one entry per line::

    {
      "p-1": {"id": "p-1", "type": "WorkZone", ...},
      "p-2": {"id": "p-2", "type": "WorkZone", ...}
    }

A file in any other layout (pretty-printed by hand or by another tool) is
normalized to this layout when read; the next write persists it.

Known limitation: deleting (and overwriting) an id drops every line that
contains the quoted id, so an entry whose values contain another pipeline's
id verbatim is removed along with it.
"""

from __future__ import annotations

import json
from typing import Any, Dict, List, Optional

from loguru import logger

from ..errors import ParseError
from .base import RegistryEngine, entry_line, render_lines


def _parse_entry_line(line: str) -> Optional[Dict[str, Any]]:
    try:
        entry = json.loads("{" + line.strip().rstrip(",") + "}")
    except ValueError:
        return None
    return entry if isinstance(entry, dict) else None


class TextRegistryEngine(RegistryEngine):
    """Registry engine that edits the file as text lines."""

    name = "text"

    def read_all(self) -> Dict[str, Dict[str, Any]]:
        entries: Dict[str, Dict[str, Any]] = {}

        # Every line returned by _entry_lines parses
        for line in self._entry_lines():
            entries.update(_parse_entry_line(line))

        return entries

    def upsert(self, pipeline_id: str, data: Dict[str, Any]) -> None:
        new_line = entry_line(pipeline_id, data)

        # Drop any previous entry for this id first
        lines = self._without(pipeline_id)

        if not lines:
            self._write_checked(render_lines([new_line]))
            return

        # Strip the trailing comma from the last entry, then append and close
        lines[-1] = lines[-1].rstrip().rstrip(",")
        self._write_checked(render_lines(lines + [new_line]))

    def delete(self, pipeline_id: str) -> None:
        lines = self._entry_lines()
        kept = self._without(pipeline_id, lines)

        if len(lines) - len(kept) > 1:
            logger.warning(f"Removing {pipeline_id} dropped {len(lines) - len(kept)} registry lines")

        if len(kept) != len(lines):
            self._write_checked(render_lines(kept))

    def replace(self, entries: Dict[str, Dict[str, Any]]) -> None:
        self._write_checked(render_lines([entry_line(pipeline_id, data) for pipeline_id, data in entries.items()]))

    def _entry_lines(self) -> List[str]:
        """Return the entry lines between the opening and closing braces."""
        text = self.read_text().strip()
        if text in ("", "{}"):
            return []

        lines = text.splitlines()
        body = [line for line in lines[1:-1] if line.strip()]

        if lines[0].strip() == "{" and lines[-1].strip() == "}" and all(_parse_entry_line(line) is not None for line in body):
            return body

        return self._normalized_lines(text)

    def _normalized_lines(self, text: str) -> List[str]:
        """Re-split a registry written in another layout into entry lines."""
        try:
            data = json.loads(text)
        except ValueError as e:
            raise ParseError(f"Registry file {self.path} is neither in one-entry-per-line layout nor valid JSON") from e

        if not isinstance(data, dict):
            raise ParseError(f"Registry file {self.path} must contain a JSON object")

        logger.info(f"Normalizing {self.path} to one entry per line")
        return [entry_line(pipeline_id, entry) for pipeline_id, entry in data.items()]

    def _without(self, pipeline_id: str, lines: Optional[List[str]] = None) -> List[str]:
        quoted = json.dumps(pipeline_id)
        if lines is None:
            lines = self._entry_lines()
        return [line for line in lines if quoted not in line]

    def _write_checked(self, text: str) -> None:
        """Write ``text`` only if it is valid JSON."""
        try:
            json.loads(text)
        except ValueError as e:
            raise ParseError(f"Refusing to write invalid registry content to {self.path}: {e}") from e
        self.write_text(text)
