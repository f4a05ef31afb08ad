"""Configuration management for the document grounding client.

The configuration is an immutable value passed into every component. It is
persisted as a ``KEY="value"`` properties file and can be overridden from
``DOCGROUNDING_*`` environment variables.
"""

from __future__ import annotations

import os
import stat
from dataclasses import dataclass, fields, replace
from datetime import datetime
from pathlib import Path
from typing import Dict, Optional

from loguru import logger

from ..atomic import write_atomic
from ..errors import StorageError, ValidationError

AUTHORIZE_SUFFIX = "/oauth2/authorize"
TOKEN_SUFFIX = "/oauth2/token"

DEFAULT_CONFIG_FILE = Path("joule_config.properties")
DEFAULT_PIPELINES_FILE = Path("pipelines.json")
DEFAULT_CREDENTIALS_DIR = Path("credentials_adjusted")

# Properties file key -> GroundingConfig attribute
PROPERTY_KEYS: Dict[str, str] = {
    "DOC_GROUNDING_INSTANCE_NAME": "doc_grounding_instance_name",
    "DOC_GROUNDING_SERVICE_BINDING_NAME": "doc_grounding_service_binding_name",
    "DOC_GROUNDING_SERVICE_BINDING_URL": "service_url",
    "CLOUD_IDENTITY_INSTANCE_NAME": "cloud_identity_instance_name",
    "CLOUD_IDENTITY_SERVICE_BINDING_NAME": "cloud_identity_service_binding_name",
    "CLIENT_ID": "client_id",
    "AUTHORIZATION_ENDPOINT": "authorization_endpoint",
    "TOKEN_ENDPOINT": "token_endpoint",
    "CERT_FILE": "cert_file",
    "KEY_FILE": "key_file",
    "ACCESS_TOKEN": "access_token",
    "DESTINATION_NAME": "destination_name",
    "PIPELINE_ID": "pipeline_id",
}

SECTIONS = (
    ("Document Grounding Instance", ("DOC_GROUNDING_INSTANCE_NAME", "DOC_GROUNDING_SERVICE_BINDING_NAME", "DOC_GROUNDING_SERVICE_BINDING_URL")),
    ("Cloud Identity Services Instance", ("CLOUD_IDENTITY_INSTANCE_NAME", "CLOUD_IDENTITY_SERVICE_BINDING_NAME")),
    ("Authentication Details", ("CLIENT_ID", "AUTHORIZATION_ENDPOINT", "TOKEN_ENDPOINT")),
    ("Certificate Files", ("CERT_FILE", "KEY_FILE")),
    ("Session", ("ACCESS_TOKEN", "DESTINATION_NAME", "PIPELINE_ID")),
)


def derive_token_endpoint(authorization_endpoint: str) -> str:
    """Turn an ``.../oauth2/authorize`` endpoint into the matching token endpoint."""
    base = authorization_endpoint.strip()
    if base.endswith(AUTHORIZE_SUFFIX):
        base = base[: -len(AUTHORIZE_SUFFIX)]
    return f"{base}{TOKEN_SUFFIX}"


@dataclass(frozen=True)
class GroundingConfig:
    """Complete client configuration."""

    # Document grounding instance
    doc_grounding_instance_name: str = ""
    doc_grounding_service_binding_name: str = ""
    service_url: str = ""

    # Cloud identity services instance
    cloud_identity_instance_name: str = ""
    cloud_identity_service_binding_name: str = ""

    # Authentication
    client_id: str = ""
    authorization_endpoint: str = ""
    token_endpoint: str = ""
    cert_file: str = ""
    key_file: str = ""
    access_token: str = ""

    # Pipeline settings
    destination_name: str = ""
    pipeline_id: str = ""

    # Local storage
    pipelines_file: Path = DEFAULT_PIPELINES_FILE
    credentials_dir: Path = DEFAULT_CREDENTIALS_DIR
    registry_engine: str = "auto"  # auto, json or text

    # HTTP settings
    timeout_seconds: float = 30.0
    max_retries: int = 3
    retry_backoff_base: float = 1.0
    retry_backoff_max: float = 30.0

    # Logging
    log_level: str = "INFO"
    log_file: Optional[Path] = None

    @property
    def effective_token_endpoint(self) -> str:
        """Explicit token endpoint, or one derived from the authorization endpoint."""
        if self.token_endpoint:
            return self.token_endpoint
        if self.authorization_endpoint:
            return derive_token_endpoint(self.authorization_endpoint)
        return ""

    def with_env_overrides(self) -> GroundingConfig:
        """Return a copy with ``DOCGROUNDING_*`` environment overrides applied."""
        changes: Dict[str, object] = {}

        string_overrides = {
            "DOCGROUNDING_SERVICE_URL": "service_url",
            "DOCGROUNDING_CLIENT_ID": "client_id",
            "DOCGROUNDING_AUTHORIZATION_ENDPOINT": "authorization_endpoint",
            "DOCGROUNDING_TOKEN_ENDPOINT": "token_endpoint",
            "DOCGROUNDING_CERT_FILE": "cert_file",
            "DOCGROUNDING_KEY_FILE": "key_file",
            "DOCGROUNDING_DESTINATION_NAME": "destination_name",
            "DOCGROUNDING_REGISTRY_ENGINE": "registry_engine",
            "DOCGROUNDING_LOG_LEVEL": "log_level",
        }
        for env_name, attr in string_overrides.items():
            if value := os.getenv(env_name):
                changes[attr] = value

        # Paths
        if pipelines_file := os.getenv("DOCGROUNDING_PIPELINES_FILE"):
            changes["pipelines_file"] = Path(pipelines_file)

        if credentials_dir := os.getenv("DOCGROUNDING_CREDENTIALS_DIR"):
            changes["credentials_dir"] = Path(credentials_dir)

        if log_file := os.getenv("DOCGROUNDING_LOG_FILE"):
            changes["log_file"] = Path(log_file)

        # HTTP settings
        if timeout := os.getenv("DOCGROUNDING_TIMEOUT"):
            try:
                changes["timeout_seconds"] = float(timeout)
            except ValueError:
                logger.warning(f"Invalid timeout: {timeout}")

        if max_retries := os.getenv("DOCGROUNDING_MAX_RETRIES"):
            try:
                changes["max_retries"] = int(max_retries)
            except ValueError:
                logger.warning(f"Invalid max retries: {max_retries}")

        return replace(self, **changes) if changes else self

    def validate(self) -> tuple[bool, list[str]]:
        """Validate the fields needed to talk to the pipeline API.

        Returns:
            Tuple of (is_valid, error_messages)
        """
        errors = []

        if not self.service_url:
            errors.append("Document grounding service binding URL is required")

        if not self.client_id:
            errors.append("Client ID is required")

        if not self.effective_token_endpoint:
            errors.append("Token endpoint or authorization endpoint is required")

        if not self.cert_file or not self.key_file:
            errors.append("Certificate and key files are required")

        if self.registry_engine not in ("auto", "json", "text"):
            errors.append(f"Unknown registry engine: {self.registry_engine}")

        if self.timeout_seconds <= 0:
            errors.append("Timeout must be positive")

        if self.max_retries < 0:
            errors.append("Max retries must not be negative")

        return len(errors) == 0, errors


def _unquote(value: str) -> str:
    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ('"', "'"):
        value = value[1:-1]
        value = value.replace('\\"', '"').replace("\\\\", "\\")
    return value


def _quote(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


class ConfigStore:
    """Reads and writes the ``KEY="value"`` properties file."""

    def __init__(self, path: Optional[Path] = None):
        """Initialize config store.

        Args:
            path: Properties file location (defaults to ./joule_config.properties)
        """
        self.path = Path(path) if path is not None else DEFAULT_CONFIG_FILE

    def read_properties(self) -> Dict[str, str]:
        """Parse the properties file; later duplicate keys win."""
        if not self.path.exists():
            logger.warning(f"Configuration file {self.path} not found, using defaults")
            return {}

        try:
            text = self.path.read_text(encoding="utf-8")
        except OSError as e:
            raise StorageError(f"Failed to read {self.path}: {e}") from e

        properties: Dict[str, str] = {}
        for line in text.splitlines():
            line = line.strip()
            if not line or line.startswith("#") or "=" not in line:
                continue
            key, value = line.split("=", 1)
            properties[key.strip()] = _unquote(value)

        return properties

    def load(self, base: Optional[GroundingConfig] = None) -> GroundingConfig:
        """Load configuration from the properties file on top of ``base``."""
        base = base or GroundingConfig()
        properties = self.read_properties()

        changes = {attr: properties[key] for key, attr in PROPERTY_KEYS.items() if key in properties}
        if changes:
            logger.info(f"Loaded configuration from {self.path}")

        return replace(base, **changes)

    def save(self, config: GroundingConfig) -> None:
        """Write the persisted subset of ``config`` with owner-only permissions."""
        lines = [
            "# SAP Joule Document Grounding Configuration",
            f"# Generated on {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}",
        ]

        for title, keys in SECTIONS:
            lines.append("")
            lines.append(f"# {title}")
            for key in keys:
                lines.append(f"{key}={_quote(str(getattr(config, PROPERTY_KEYS[key])))}")

        write_atomic(self.path, "\n".join(lines) + "\n", mode=stat.S_IRUSR | stat.S_IWUSR)
        logger.info(f"Configuration saved to {self.path}")

    def update(self, config: GroundingConfig, **changes: str) -> GroundingConfig:
        """Return ``config`` with ``changes`` applied and persist only ``changes``.

        The file is rewritten from its own content plus ``changes``, so
        environment overrides carried by ``config`` never end up on disk.

        Raises:
            ValidationError: If a change names an unknown field
        """
        known = {f.name for f in fields(GroundingConfig)}
        unknown = set(changes) - known
        if unknown:
            raise ValidationError(f"Unknown configuration fields: {', '.join(sorted(unknown))}")

        self.save(replace(self.load(), **changes))
        return replace(config, **changes)
