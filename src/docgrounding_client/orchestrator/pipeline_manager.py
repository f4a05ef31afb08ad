"""Pipeline manager coordinating token, API client and local registry.

Each public operation is one call sequence:
Credential → fresh Token → API call → Registry update

The registry is kept in step with the remote outcome: created pipelines are
recorded, triggered ones stamped, deleted (or already gone) ones removed.
"""

from __future__ import annotations

from dataclasses import replace
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from loguru import logger

from ..api import CreatePipelineResponse, CreateStatus, DeleteResponse, PipelineAPIClient, TriggerResponse, TriggerStatus
from ..auth import AccessToken, TokenManager
from ..config import ConfigStore, GroundingConfig
from ..credential import Credential, CredentialStore
from ..errors import ValidationError
from ..registry import PipelineRecord, PipelineRegistry, create_registry
from ..transport import HttpTransport, TransportConfig


class PipelineManager:
    """Runs pipeline operations and keeps the local registry in sync."""

    def __init__(
        self,
        config: GroundingConfig,
        registry: Optional[PipelineRegistry] = None,
        config_store: Optional[ConfigStore] = None,
        transport_factory: Optional[Callable[[Credential], HttpTransport]] = None,
    ):
        """Initialize the pipeline manager.

        Args:
            config: Client configuration
            registry: Local registry (defaults to one built from the config)
            config_store: Where session values (token, pipeline id) are persisted
            transport_factory: Builds the mTLS transport for a credential
        """
        self.config = config
        self.registry = registry or create_registry(config.pipelines_file, config.registry_engine)
        self.config_store = config_store
        self.credential_store = CredentialStore(config.credentials_dir)

        transport_config = TransportConfig(
            timeout_seconds=config.timeout_seconds,
            max_retries=config.max_retries,
            retry_backoff_base=config.retry_backoff_base,
            retry_backoff_max=config.retry_backoff_max,
        )
        self._transport_factory = transport_factory or (lambda credential: HttpTransport(credential, transport_config))
        self.token_manager = TokenManager(transport_config, self._transport_factory)

    def credential(self) -> Credential:
        """Load and check the configured certificate files."""
        if not self.config.cert_file or not self.config.key_file:
            raise ValidationError("Certificate files not configured. Please store the certificate first.")
        return self.credential_store.load(Path(self.config.cert_file), Path(self.config.key_file))

    def acquire_token(self) -> AccessToken:
        """Get a fresh access token and persist it to the config file."""
        is_valid, errors = self.config.validate()
        if not is_valid:
            raise ValidationError(f"Missing required configuration: {'; '.join(errors)}")

        token = self.token_manager.acquire(self.config.effective_token_endpoint, self.config.client_id, self.credential())
        self._update_config(access_token=token.value)
        return token

    def list_pipelines(self) -> List[Dict[str, Any]]:
        return self._client().list_pipelines()

    def refresh_registry(self) -> Dict[str, PipelineRecord]:
        """Replace the local registry with the current remote listing."""
        pipelines = self._client().list_pipelines()
        return self.registry.replace_all(pipelines)

    def create_pipeline(self, destination: Optional[str] = None) -> CreatePipelineResponse:
        """Create a pipeline and record it locally.

        Args:
            destination: Destination name (defaults to the configured one)
        """
        destination = destination or self.config.destination_name
        if not destination:
            raise ValidationError("Destination name is required")

        response = self._client().create_pipeline(destination)

        if response.status == CreateStatus.CREATED:
            self.registry.put(response.pipeline_id, PipelineRecord.created(response.pipeline_id, destination))
            self._update_config(destination_name=destination, pipeline_id=response.pipeline_id)

        return response

    def get_pipeline_status(self, pipeline_id: str) -> Any:
        return self._client().get_pipeline_status(pipeline_id)

    def list_executions(self, pipeline_id: str, top: int = 100, skip: int = 0) -> Any:
        return self._client().list_executions(pipeline_id, top=top, skip=skip)

    def get_execution(self, pipeline_id: str, execution_id: str) -> Any:
        return self._client().get_execution(pipeline_id, execution_id)

    def list_documents(self, pipeline_id: str, top: int = 100, skip: int = 0, execution_id: Optional[str] = None) -> Any:
        client = self._client()
        if execution_id:
            return client.list_execution_documents(pipeline_id, execution_id, top=top, skip=skip)
        return client.list_documents(pipeline_id, top=top, skip=skip)

    def get_document(self, pipeline_id: str, document_id: str, execution_id: Optional[str] = None) -> Any:
        return self._client().get_document(pipeline_id, document_id, execution_id=execution_id)

    def check_all(self, pipeline_id: str, top: int = 100, skip: int = 0) -> Dict[str, Any]:
        """Status, executions and documents of one pipeline with a single token."""
        client = self._client()
        logger.info(f"Checking all statuses for pipeline: {pipeline_id}")

        return {
            "status": client.get_pipeline_status(pipeline_id),
            "executions": client.list_executions(pipeline_id, top=top, skip=skip),
            "documents": client.list_documents(pipeline_id, top=top, skip=skip),
        }

    def summary(self) -> Dict[str, Any]:
        """Configuration overview and locally registered pipelines; no network calls.

        The access token is never included.
        """
        config = self.config
        pipelines = sorted(self.registry.list())

        return {
            "doc_grounding_instance": config.doc_grounding_instance_name,
            "doc_grounding_service_binding": config.doc_grounding_service_binding_name,
            "service_url": config.service_url,
            "cloud_identity_instance": config.cloud_identity_instance_name,
            "cloud_identity_service_binding": config.cloud_identity_service_binding_name,
            "client_id": config.client_id,
            "token_endpoint": config.effective_token_endpoint,
            "cert_file": config.cert_file,
            "key_file": config.key_file,
            "destination_name": config.destination_name,
            "pipeline_id": config.pipeline_id,
            "pipelines_file": str(self.registry.path),
            "pipeline_count": len(pipelines),
            "pipelines": pipelines,
            "config_file": str(self.config_store.path) if self.config_store is not None else None,
        }

    def trigger_pipeline(self, pipeline_id: str) -> TriggerResponse:
        """Trigger a pipeline; only an accepted trigger touches the registry."""
        response = self._client().trigger_pipeline(pipeline_id)

        if response.status == TriggerStatus.ACCEPTED:
            self.registry.mark_triggered(pipeline_id)

        return response

    def delete_pipeline(self, pipeline_id: str) -> DeleteResponse:
        """Delete a pipeline; the registry entry goes on success or 404."""
        response = self._client().delete_pipeline(pipeline_id)

        if response.succeeded:
            self.registry.remove(pipeline_id)
            if self.config.pipeline_id == pipeline_id:
                self._update_config(pipeline_id="")

        return response

    def _client(self) -> PipelineAPIClient:
        """API client for one call sequence, with a freshly acquired token."""
        token = self.acquire_token()
        return PipelineAPIClient(self.config.service_url, token, self._transport_factory(self.credential()))

    def _update_config(self, **changes: str) -> None:
        if self.config_store is not None:
            self.config = self.config_store.update(self.config, **changes)
        else:
            self.config = replace(self.config, **changes)
        logger.debug(f"Configuration updated: {', '.join(changes)}")
