"""Orchestration of pipeline operations."""

from .pipeline_manager import PipelineManager

__all__ = ["PipelineManager"]
