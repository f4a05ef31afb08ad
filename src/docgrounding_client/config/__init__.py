"""Configuration module for the document grounding client."""

from .logger_config import setup_logging
from .settings import ConfigStore, GroundingConfig, derive_token_endpoint

__all__ = ["GroundingConfig", "ConfigStore", "derive_token_endpoint", "setup_logging"]
