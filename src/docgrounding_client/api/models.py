"""Response models for pipeline API calls with classified outcomes."""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel


class CreateStatus(Enum):
    """Outcome of a create call that reached the server successfully."""

    CREATED = "created"
    ID_MISSING = "id_missing"  # HTTP success, but neither id nor pipelineId in body


class CreatePipelineResponse(BaseModel):
    """Response model for pipeline creation."""

    status: CreateStatus
    pipeline_id: Optional[str] = None
    status_code: int
    body: str = ""


class TriggerStatus(Enum):
    """Enum representing trigger outcomes."""

    ACCEPTED = "accepted"
    RATE_LIMITED = "rate_limited"
    NOT_FOUND = "not_found"
    SERVER_ERROR = "server_error"


class TriggerResponse(BaseModel):
    """Response model for pipeline triggers."""

    status: TriggerStatus
    status_code: int
    message: str
    body: str = ""


class DeleteStatus(Enum):
    """Enum representing delete outcomes."""

    DELETED = "deleted"
    ALREADY_GONE = "already_gone"  # 404, treated as success
    FAILED = "failed"


class DeleteResponse(BaseModel):
    """Response model for pipeline deletion."""

    status: DeleteStatus
    status_code: int
    message: str
    body: str = ""

    @property
    def succeeded(self) -> bool:
        return self.status in (DeleteStatus.DELETED, DeleteStatus.ALREADY_GONE)
