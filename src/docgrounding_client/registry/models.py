"""Pydantic models for locally registered pipelines."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

PIPELINE_TYPE = "WorkZone"


class PipelineStatus(str, Enum):
    """Local bookkeeping status of a registry entry."""

    CREATED = "CREATED"  # Created through this client
    FETCHED = "FETCHED"  # Imported from a remote listing


def utc_timestamp(when: Optional[datetime] = None) -> str:
    """Format a timestamp as ``YYYY-MM-DDTHH:MM:SSZ`` in UTC."""
    when = when or datetime.now(timezone.utc)
    if when.tzinfo is not None:
        when = when.astimezone(timezone.utc)
    return when.strftime("%Y-%m-%dT%H:%M:%SZ")


class PipelineRecord(BaseModel):
    """One pipeline entry of the local registry.

    Unknown fields from remote listings are kept as extras so a refresh does
    not lose information.
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: str = Field(..., min_length=1, description="Pipeline identifier")
    type: str = Field(default=PIPELINE_TYPE, description="Pipeline type")
    configuration: Optional[Dict[str, Any]] = Field(None, description="Pipeline configuration, carries the destination")
    metadata: Optional[Dict[str, Any]] = Field(None, description="Pipeline metadata, carries the destination")
    created_at: Optional[str] = Field(None, alias="createdAt", description="Creation timestamp")
    status: Optional[str] = Field(None, description="CREATED or FETCHED")
    last_triggered: Optional[str] = Field(None, alias="lastTriggered", description="Last successful trigger")
    fetched_at: Optional[str] = Field(None, alias="fetchedAt", description="Last refresh from the remote listing")

    @field_validator("status", mode="before")
    @classmethod
    def plain_status(cls, v: Any) -> Any:
        """Store enum members as their plain string value."""
        if isinstance(v, Enum):
            return v.value
        return v

    @property
    def destination(self) -> Optional[str]:
        for section in (self.configuration, self.metadata):
            if section and section.get("destination"):
                return section["destination"]
        return None

    @classmethod
    def created(cls, pipeline_id: str, destination: str, when: Optional[datetime] = None) -> PipelineRecord:
        """Record for a pipeline this client just created."""
        return cls(
            id=pipeline_id,
            type=PIPELINE_TYPE,
            configuration={"destination": destination},
            metadata={"destination": destination},
            created_at=utc_timestamp(when),
            status=PipelineStatus.CREATED,
        )

    @classmethod
    def from_remote(cls, data: Dict[str, Any], fetched_at: str) -> PipelineRecord:
        """Record for a remote listing entry, stamped as fetched."""
        return cls.model_validate({**data, "fetchedAt": fetched_at, "status": PipelineStatus.FETCHED.value})

    @classmethod
    def from_storage(cls, pipeline_id: str, data: Dict[str, Any]) -> PipelineRecord:
        """Rebuild a record from its stored form; the registry key is the id."""
        return cls.model_validate({**data, "id": pipeline_id})

    def to_storage_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for storage with camelCase keys."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
