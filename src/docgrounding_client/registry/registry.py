"""Local durable registry of pipeline records."""

from __future__ import annotations

import importlib.util
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Set, Union

from loguru import logger
from pydantic import ValidationError as ModelValidationError

from ..errors import NotFoundError, ParseError, ValidationError
from .base import RegistryEngine
from .json_engine import JsonRegistryEngine
from .models import PipelineRecord, utc_timestamp
from .text_engine import TextRegistryEngine

ENGINES = {
    JsonRegistryEngine.name: JsonRegistryEngine,
    TextRegistryEngine.name: TextRegistryEngine,
}


def structured_parser_available() -> bool:
    """Capability probe for the structured engine.

    ``json`` ships with every interpreter, so ``auto`` always resolves to the
    JSON engine; the text engine is only used when selected explicitly.
    """
    return importlib.util.find_spec("json") is not None


def select_engine(path: Path, preference: str = "auto") -> RegistryEngine:
    """Pick the persistence engine for the registry file.

    Args:
        path: Registry file location
        preference: ``auto``, ``json`` or ``text``

    Returns:
        Engine instance bound to ``path``
    """
    if preference == "auto":
        preference = JsonRegistryEngine.name if structured_parser_available() else TextRegistryEngine.name

    engine_class = ENGINES.get(preference)
    if engine_class is None:
        raise ValidationError(f"Unknown registry engine: {preference}")

    logger.debug(f"Using {preference} registry engine for {path}")
    return engine_class(path)


class PipelineRegistry:
    """Id -> PipelineRecord map persisted through a registry engine."""

    def __init__(self, engine: RegistryEngine):
        self.engine = engine

    @property
    def path(self) -> Path:
        return self.engine.path

    def put(self, pipeline_id: str, record: Union[PipelineRecord, Dict[str, Any]]) -> PipelineRecord:
        """Insert or overwrite the record stored under ``pipeline_id``."""
        if not pipeline_id:
            raise ValidationError("Invalid pipeline ID for saving")

        if isinstance(record, dict):
            record = self._validate(pipeline_id, record)

        if record.id != pipeline_id:
            record = record.model_copy(update={"id": pipeline_id})

        self.engine.upsert(pipeline_id, record.to_storage_dict())
        logger.info(f"Pipeline {pipeline_id} saved to {self.path}")
        return record

    def remove(self, pipeline_id: str) -> None:
        """Remove ``pipeline_id``; absent ids are not an error."""
        if not pipeline_id:
            raise ValidationError("Invalid pipeline ID for removal")

        self.engine.delete(pipeline_id)
        logger.info(f"Pipeline {pipeline_id} removed from {self.path}")

    def get(self, pipeline_id: str) -> PipelineRecord:
        """Return the record for ``pipeline_id``.

        Raises:
            NotFoundError: If the id is not registered
        """
        entries = self.engine.read_all()
        if pipeline_id not in entries:
            raise NotFoundError(f"Pipeline {pipeline_id} not found in {self.path}")
        return self._validate(pipeline_id, entries[pipeline_id])

    def list(self) -> Set[str]:
        return set(self.engine.read_all())

    def records(self) -> Dict[str, PipelineRecord]:
        return {pipeline_id: self._validate(pipeline_id, data) for pipeline_id, data in self.engine.read_all().items()}

    def replace_all(self, remote_objects: Iterable[Dict[str, Any]], when: Optional[datetime] = None) -> Dict[str, PipelineRecord]:
        """Replace the registry with a remote listing.

        Each object must carry its own ``id``. Records are stamped with
        ``fetchedAt`` and the ``FETCHED`` status.

        Raises:
            ValidationError: If an object has no id; nothing is written then
        """
        fetched_at = utc_timestamp(when)
        records: Dict[str, PipelineRecord] = {}

        for index, data in enumerate(remote_objects):
            pipeline_id = data.get("id") if isinstance(data, dict) else None
            if not pipeline_id:
                raise ValidationError(f"Remote pipeline at position {index} has no id")
            try:
                records[str(pipeline_id)] = PipelineRecord.from_remote({**data, "id": str(pipeline_id)}, fetched_at)
            except ModelValidationError as e:
                raise ValidationError(f"Remote pipeline {pipeline_id} is malformed: {e}") from e

        self.engine.replace({pipeline_id: record.to_storage_dict() for pipeline_id, record in records.items()})
        logger.info(f"{self.path} refreshed with {len(records)} pipelines")
        return records

    def mark_triggered(self, pipeline_id: str, when: Optional[datetime] = None) -> Optional[PipelineRecord]:
        """Stamp ``lastTriggered`` on a registered pipeline.

        Returns:
            The updated record, or None when the pipeline is not registered
        """
        try:
            record = self.get(pipeline_id)
        except NotFoundError:
            logger.warning(f"Pipeline {pipeline_id} is not in {self.path}, trigger timestamp not recorded")
            return None

        return self.put(pipeline_id, record.model_copy(update={"last_triggered": utc_timestamp(when)}))

    def _validate(self, pipeline_id: str, data: Dict[str, Any]) -> PipelineRecord:
        if not isinstance(data, dict):
            raise ParseError(f"Registry entry {pipeline_id} is not an object")
        try:
            return PipelineRecord.from_storage(pipeline_id, data)
        except ModelValidationError as e:
            raise ParseError(f"Registry entry {pipeline_id} is malformed: {e}") from e


def create_registry(path: Path, engine: str = "auto") -> PipelineRegistry:
    """Create a registry bound to ``path`` with the selected engine."""
    return PipelineRegistry(select_engine(Path(path), engine))
