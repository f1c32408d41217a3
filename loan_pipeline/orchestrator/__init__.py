"""Workflow orchestration for fetching, categorizing, and updating pipeline leads."""

from .refresh import PipelineRefresher
from .service import PipelineOrchestrator

__all__ = ["PipelineOrchestrator", "PipelineRefresher"]
