"""Document grounding client - mTLS token acquisition, pipeline API and local pipeline registry."""

from .config import ConfigStore, GroundingConfig
from .orchestrator import PipelineManager

__version__ = "1.0.0"

__all__ = ["ConfigStore", "GroundingConfig", "PipelineManager"]
