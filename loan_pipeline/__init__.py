"""Top-level package for the loan pipeline lead categorization toolkit."""

from . import models  # noqa: F401
from .categorize import (
    categorize_contacts,
    empty_buckets,
    normalize_contact,
    resolve_stage,
    sanitize_tags,
    with_stage_tag,
)
from .metrics import calculate_detailed_metrics, calculate_pipeline_metrics
from .models import (
    CanonicalLead,
    LeadDraft,
    OperationResult,
    OverallMetrics,
    PipelineMetrics,
    PipelineSnapshot,
    PipelineStage,
    StageMetrics,
)
from .stages import DEFAULT_CATALOG, DEFAULT_STAGES, StageCatalog

__all__ = [
    "CanonicalLead",
    "LeadDraft",
    "OperationResult",
    "OverallMetrics",
    "PipelineMetrics",
    "PipelineSnapshot",
    "PipelineStage",
    "StageMetrics",
    "StageCatalog",
    "DEFAULT_CATALOG",
    "DEFAULT_STAGES",
    "categorize_contacts",
    "empty_buckets",
    "normalize_contact",
    "resolve_stage",
    "sanitize_tags",
    "with_stage_tag",
    "calculate_pipeline_metrics",
    "calculate_detailed_metrics",
    "crm",
    "ingestion",
    "orchestrator",
]
