"""Local pipeline registry with interchangeable persistence engines."""

from .base import RegistryEngine
from .json_engine import JsonRegistryEngine
from .models import PipelineRecord, PipelineStatus, utc_timestamp
from .registry import PipelineRegistry, create_registry, select_engine, structured_parser_available
from .text_engine import TextRegistryEngine

__all__ = [
    "PipelineRecord",
    "PipelineRegistry",
    "PipelineStatus",
    "RegistryEngine",
    "JsonRegistryEngine",
    "TextRegistryEngine",
    "create_registry",
    "select_engine",
    "structured_parser_available",
    "utc_timestamp",
]
