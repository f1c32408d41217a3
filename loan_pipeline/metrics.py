"""
Metrics aggregation over categorized lead buckets.

Per-stage lead counts and the overall loan totals are real aggregations. The
time-in-stage figure is selectable: ``"placeholder"`` keeps the dashboard's
stub value, ``"elapsed"`` averages ``updatedAt - createdAt``. Conversion rates
come from the stage catalog's fixed table and are not computed from data.
"""
from __future__ import annotations

import logging
from typing import Callable, Dict, Mapping, Optional, Sequence

import pandas as pd

from .categorize import iter_leads, utc_timestamp
from .models import CanonicalLead, OverallMetrics, PipelineMetrics, StageMetrics
from .stages import DEFAULT_CATALOG, StageCatalog

LOGGER = logging.getLogger(__name__)

AverageTimeFunction = Callable[[Sequence[CanonicalLead]], str]


def format_duration(total_minutes: float) -> str:
    """Format a number of minutes as ``H:MM``."""

    minutes = max(int(round(total_minutes)), 0)
    hours, remainder = divmod(minutes, 60)
    return f"{hours}:{remainder:02d}"


def placeholder_average_time(leads: Sequence[CanonicalLead]) -> str:
    """Stub time-in-stage value; always ``0:00`` until real tracking exists."""

    return format_duration(0)


def elapsed_average_time(leads: Sequence[CanonicalLead]) -> str:
    """Average ``updated_at - created_at`` across leads with parseable timestamps."""

    if not leads:
        return format_duration(0)

    frame = pd.DataFrame(
        {
            "created": [lead.created_at for lead in leads],
            "updated": [lead.updated_at for lead in leads],
        }
    )
    created = pd.to_datetime(frame["created"], errors="coerce", utc=True, format="ISO8601")
    updated = pd.to_datetime(frame["updated"], errors="coerce", utc=True, format="ISO8601")
    elapsed = (updated - created).dropna()
    if elapsed.empty:
        return format_duration(0)
    return format_duration(elapsed.mean().total_seconds() / 60)


AVERAGE_TIME_STRATEGIES: Dict[str, AverageTimeFunction] = {
    "placeholder": placeholder_average_time,
    "elapsed": elapsed_average_time,
}


def get_average_time_strategy(name: str) -> AverageTimeFunction:
    try:
        return AVERAGE_TIME_STRATEGIES[name]
    except KeyError as exc:
        raise ValueError(
            f"Unknown average time strategy '{name}'. Choose from {sorted(AVERAGE_TIME_STRATEGIES)}"
        ) from exc


def calculate_pipeline_metrics(
    buckets: Mapping[str, Sequence[CanonicalLead]],
    catalog: StageCatalog = DEFAULT_CATALOG,
    *,
    average_time: AverageTimeFunction = placeholder_average_time,
    now: Optional[str] = None,
) -> PipelineMetrics:
    """Compute count, time-in-stage and conversion for every catalog stage."""

    now = now or utc_timestamp()
    stages: Dict[str, StageMetrics] = {}
    for title in catalog.titles:
        leads = list(buckets.get(title) or [])
        stages[title] = StageMetrics(
            leads=len(leads),
            avg_time=average_time(leads),
            conversion=catalog.conversion_rate(title),
            last_updated=now,
        )
    return PipelineMetrics(stages=stages)


def calculate_overall_metrics(
    buckets: Mapping[str, Sequence[CanonicalLead]],
    *,
    now: Optional[str] = None,
) -> OverallMetrics:
    leads = list(iter_leads(buckets))
    total_leads = len(leads)
    total_value = sum(lead.loan_amount or 0 for lead in leads)
    unrecognized = sum(1 for lead in leads if lead.unrecognized_stage is not None)
    return OverallMetrics(
        total_leads=total_leads,
        total_value=total_value,
        average_loan_amount=total_value / total_leads if total_leads > 0 else 0,
        last_updated=now or utc_timestamp(),
        unrecognized_stages=unrecognized,
    )


def calculate_detailed_metrics(
    buckets: Mapping[str, Sequence[CanonicalLead]],
    catalog: StageCatalog = DEFAULT_CATALOG,
    *,
    average_time: AverageTimeFunction = placeholder_average_time,
    now: Optional[str] = None,
) -> PipelineMetrics:
    """Per-stage metrics plus the ``overall`` summary."""

    now = now or utc_timestamp()
    metrics = calculate_pipeline_metrics(buckets, catalog, average_time=average_time, now=now)
    metrics.overall = calculate_overall_metrics(buckets, now=now)
    LOGGER.debug(
        "Pipeline metrics: %s leads, total value %s",
        metrics.overall.total_leads,
        metrics.overall.total_value,
    )
    return metrics


__all__ = [
    "AverageTimeFunction",
    "AVERAGE_TIME_STRATEGIES",
    "format_duration",
    "placeholder_average_time",
    "elapsed_average_time",
    "get_average_time_strategy",
    "calculate_pipeline_metrics",
    "calculate_overall_metrics",
    "calculate_detailed_metrics",
]
