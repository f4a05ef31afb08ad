"""Client for the document grounding pipeline API.

Every call presents the bearer token together with the client certificate and
key. Read and create calls raise classified errors on non-success statuses;
trigger and delete return an outcome model instead, because the caller acts on
each outcome differently.
"""

from __future__ import annotations

import json
from typing import Any, Dict, List, Optional
from urllib.parse import quote, urlencode

from loguru import logger

from ..auth import AccessToken
from ..errors import NotFoundError, ParseError, RateLimitedError, ServerError, ValidationError
from ..registry.models import PIPELINE_TYPE
from ..transport import HttpResponse, HttpTransport
from .models import CreatePipelineResponse, CreateStatus, DeleteResponse, DeleteStatus, TriggerResponse, TriggerStatus

PIPELINE_PATH = "/pipeline/api/v1/pipeline"

# Advertised server-side limit for the trigger endpoint
TRIGGER_RATE_LIMIT_PER_MINUTE = 5

DEFAULT_TOP = 100
DEFAULT_SKIP = 0


def extract_pipeline_id(data: Any) -> Optional[str]:
    """Read the new pipeline id from a create response, ``id`` before ``pipelineId``."""
    if not isinstance(data, dict):
        return None

    for field in ("id", "pipelineId"):
        value = data.get(field)
        if value:
            return str(value)

    return None


class PipelineAPIClient:
    """Authenticated REST client for pipeline management."""

    def __init__(self, base_url: str, token: AccessToken, transport: HttpTransport):
        """Initialize the client.

        Args:
            base_url: Document grounding service binding URL
            token: Bearer token for this call sequence
            transport: mTLS transport presenting the client certificate
        """
        if not base_url:
            raise ValidationError("Document grounding service URL is required")

        self.base_url = base_url.rstrip("/")
        self.token = token
        self.transport = transport

    def list_pipelines(self) -> List[Dict[str, Any]]:
        """List remote pipelines; an empty list is normal for a new service."""
        data = self._get(PIPELINE_PATH)

        if data is None:
            return []

        if isinstance(data, dict) and isinstance(data.get("resources"), list):
            return data["resources"]

        if not isinstance(data, list):
            raise ParseError(f"Unexpected pipeline listing: {json.dumps(data)[:200]}")

        if not data:
            logger.info("Empty pipeline list received (expected for new setup)")

        return data

    def create_pipeline(self, destination: str) -> CreatePipelineResponse:
        """Create a WorkZone pipeline for ``destination``.

        Returns:
            CREATED with the id, or ID_MISSING with the raw body when the
            response names neither ``id`` nor ``pipelineId``
        """
        if not destination:
            raise ValidationError("Destination name is required")

        payload = {"type": PIPELINE_TYPE, "metadata": {"destination": destination}}
        response = self._send("POST", PIPELINE_PATH, payload=payload)
        self._raise_for_status(response, "create pipeline")

        try:
            data = response.json()
        except ParseError:
            data = None

        pipeline_id = extract_pipeline_id(data)
        if pipeline_id is None:
            logger.warning(f"Pipeline ID not found in response, tried 'id' and 'pipelineId': {response.body}")
            return CreatePipelineResponse(status=CreateStatus.ID_MISSING, status_code=response.status, body=response.body)

        logger.info(f"Pipeline created successfully with ID: {pipeline_id}")
        return CreatePipelineResponse(status=CreateStatus.CREATED, pipeline_id=pipeline_id, status_code=response.status, body=response.body)

    def get_pipeline_status(self, pipeline_id: str) -> Any:
        return self._get(f"{PIPELINE_PATH}/{self._segment(pipeline_id)}/status")

    def list_executions(self, pipeline_id: str, top: int = DEFAULT_TOP, skip: int = DEFAULT_SKIP) -> Any:
        return self._get(f"{PIPELINE_PATH}/{self._segment(pipeline_id)}/executions", self._page(top, skip))

    def get_execution(self, pipeline_id: str, execution_id: str) -> Any:
        return self._get(f"{PIPELINE_PATH}/{self._segment(pipeline_id)}/executions/{self._segment(execution_id)}")

    def list_documents(self, pipeline_id: str, top: int = DEFAULT_TOP, skip: int = DEFAULT_SKIP) -> Any:
        return self._get(f"{PIPELINE_PATH}/{self._segment(pipeline_id)}/documents", self._page(top, skip))

    def list_execution_documents(self, pipeline_id: str, execution_id: str, top: int = DEFAULT_TOP, skip: int = DEFAULT_SKIP) -> Any:
        path = f"{PIPELINE_PATH}/{self._segment(pipeline_id)}/executions/{self._segment(execution_id)}/documents"
        return self._get(path, self._page(top, skip))

    def get_document(self, pipeline_id: str, document_id: str, execution_id: Optional[str] = None) -> Any:
        """Fetch one document, scoped to an execution when ``execution_id`` is given."""
        path = f"{PIPELINE_PATH}/{self._segment(pipeline_id)}"
        if execution_id:
            path += f"/executions/{self._segment(execution_id)}"
        return self._get(f"{path}/documents/{self._segment(document_id)}")

    def trigger_pipeline(self, pipeline_id: str) -> TriggerResponse:
        """Start a content update run for ``pipeline_id``.

        The server allows TRIGGER_RATE_LIMIT_PER_MINUTE calls per tenant.
        """
        if not pipeline_id:
            raise ValidationError("Pipeline ID is required")

        response = self._send("POST", f"{PIPELINE_PATH}/trigger", payload={"pipelineId": pipeline_id})

        if response.status in (200, 202):
            logger.info(f"Pipeline {pipeline_id} triggered successfully (HTTP {response.status})")
            return TriggerResponse(status=TriggerStatus.ACCEPTED, status_code=response.status, message="Pipeline triggered successfully", body=response.body)

        if response.status == 429:
            message = f"Too many requests. Rate limit exceeded ({TRIGGER_RATE_LIMIT_PER_MINUTE} calls per minute per tenant)"
            logger.error(message)
            return TriggerResponse(status=TriggerStatus.RATE_LIMITED, status_code=429, message=message, body=response.body)

        if response.status == 404:
            message = f"Pipeline {pipeline_id} not found"
            logger.error(message)
            return TriggerResponse(status=TriggerStatus.NOT_FOUND, status_code=404, message=message, body=response.body)

        message = f"Failed to trigger pipeline. HTTP Status: {response.status}"
        logger.error(f"{message}: {response.body}")
        return TriggerResponse(status=TriggerStatus.SERVER_ERROR, status_code=response.status, message=message, body=response.body)

    def delete_pipeline(self, pipeline_id: str) -> DeleteResponse:
        """Delete ``pipeline_id``; a 404 means it is already gone."""
        if not pipeline_id:
            raise ValidationError("Pipeline ID is required")

        response = self._send("DELETE", f"{PIPELINE_PATH}/{self._segment(pipeline_id)}")

        if response.status in (200, 204):
            logger.info(f"Pipeline {pipeline_id} deleted successfully")
            return DeleteResponse(status=DeleteStatus.DELETED, status_code=response.status, message="Pipeline deleted successfully", body=response.body)

        if response.status == 404:
            logger.warning(f"Pipeline {pipeline_id} not found (404). It may have been already deleted.")
            return DeleteResponse(status=DeleteStatus.ALREADY_GONE, status_code=404, message="Pipeline already deleted", body=response.body)

        message = f"Failed to delete pipeline. HTTP Status: {response.status}"
        logger.error(f"{message}: {response.body}")
        return DeleteResponse(status=DeleteStatus.FAILED, status_code=response.status, message=message, body=response.body)

    def _get(self, path: str, query: Optional[Dict[str, int]] = None) -> Any:
        response = self._send("GET", path, query=query)
        self._raise_for_status(response, f"GET {path}")

        if not response.body.strip():
            return None
        return response.json()

    def _send(self, method: str, path: str, payload: Optional[Dict[str, Any]] = None, query: Optional[Dict[str, int]] = None) -> HttpResponse:
        url = f"{self.base_url}{path}"
        if query:
            url += f"?{urlencode(query)}"

        headers = {
            "Accept": "application/json",
            "Authorization": self.token.to_header(),
        }

        data = None
        if payload is not None:
            headers["Content-Type"] = "application/json"
            data = json.dumps(payload).encode("utf-8")

        return self.transport.request(method, url, headers=headers, data=data)

    @staticmethod
    def _raise_for_status(response: HttpResponse, operation: str) -> None:
        if response.ok:
            return

        if response.status == 404:
            raise NotFoundError(f"{operation}: not found", status_code=404, body=response.body)

        if response.status == 429:
            raise RateLimitedError(f"{operation}: rate limited", status_code=429, body=response.body)

        raise ServerError(f"{operation} failed", status_code=response.status, body=response.body)

    @staticmethod
    def _page(top: int, skip: int) -> Optional[Dict[str, int]]:
        """Pagination query, only when either value differs from its default."""
        if top == DEFAULT_TOP and skip == DEFAULT_SKIP:
            return None
        return {"top": top, "skip": skip}

    @staticmethod
    def _segment(value: str) -> str:
        if not value:
            raise ValidationError("Path identifier must not be empty")
        return quote(str(value), safe="")
