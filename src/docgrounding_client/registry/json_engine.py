"""Structured registry engine: parse, mutate the map, serialize."""

from __future__ import annotations

import json
from typing import Any, Dict

from ..errors import ParseError
from .base import RegistryEngine, render_entries


class JsonRegistryEngine(RegistryEngine):
    """Registry engine backed by a full JSON parse of the file."""

    name = "json"

    def read_all(self) -> Dict[str, Dict[str, Any]]:
        text = self.read_text()
        if not text.strip():
            return {}

        try:
            data = json.loads(text)
        except ValueError as e:
            raise ParseError(f"Registry file {self.path} is not valid JSON: {e}") from e

        if not isinstance(data, dict):
            raise ParseError(f"Registry file {self.path} must contain a JSON object")

        return data

    def upsert(self, pipeline_id: str, data: Dict[str, Any]) -> None:
        entries = self.read_all()
        entries[pipeline_id] = data
        self._dump(entries)

    def delete(self, pipeline_id: str) -> None:
        entries = self.read_all()
        if pipeline_id in entries:
            del entries[pipeline_id]
            self._dump(entries)

    def replace(self, entries: Dict[str, Dict[str, Any]]) -> None:
        self._dump(entries)

    def _dump(self, entries: Dict[str, Dict[str, Any]]) -> None:
        # Line layout shared with the text engine
        self.write_text(render_entries(entries))
