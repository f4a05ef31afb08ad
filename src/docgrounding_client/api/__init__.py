"""Pipeline management API client."""

from .client import PIPELINE_PATH, TRIGGER_RATE_LIMIT_PER_MINUTE, PipelineAPIClient, extract_pipeline_id
from .models import CreatePipelineResponse, CreateStatus, DeleteResponse, DeleteStatus, TriggerResponse, TriggerStatus

__all__ = [
    "PipelineAPIClient",
    "PIPELINE_PATH",
    "TRIGGER_RATE_LIMIT_PER_MINUTE",
    "extract_pipeline_id",
    "CreatePipelineResponse",
    "CreateStatus",
    "TriggerResponse",
    "TriggerStatus",
    "DeleteResponse",
    "DeleteStatus",
]
