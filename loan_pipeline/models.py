"""Unified data models for the lead pipeline, its metrics, and CRM operations."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple


# --- Stage configuration ---

@dataclass(frozen=True)
class PipelineStage:
    """One column of the loan pipeline board."""

    title: str
    color: str
    icon: str
    tags: Tuple[str, ...] = ()

    @property
    def stage_tag(self) -> str:
        """Return the canonical tag that marks a lead as being in this stage."""
        return self.tags[0] if self.tags else self.title

    def as_dict(self) -> Dict[str, Any]:
        return {"title": self.title, "color": self.color, "icon": self.icon}


# --- Core lead record ---

@dataclass(slots=True)
class CanonicalLead:
    """Normalized lead produced from an arbitrarily shaped CRM contact."""

    id: str
    name: str = "Unknown"
    email: str = ""
    phone: str = ""
    address: str = ""
    loan_type: str = "Conventional"
    loan_amount: float = 0
    close_date: str = ""
    status: str = "On Track"
    tags: List[str] = field(default_factory=list)
    notes: str = ""
    stage: str = "New Lead"
    created_at: str = ""
    updated_at: str = ""
    unrecognized_stage: Optional[str] = None

    def as_dict(self) -> Dict[str, Any]:
        """Return the camelCase representation consumed by dashboards."""
        row: Dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "address": self.address,
            "loanType": self.loan_type,
            "loanAmount": self.loan_amount,
            "closeDate": self.close_date,
            "status": self.status,
            "tags": list(self.tags),
            "notes": self.notes,
            "stage": self.stage,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }
        if self.unrecognized_stage is not None:
            row["unrecognizedStage"] = self.unrecognized_stage
        return row


# --- Metrics ---

@dataclass(slots=True)
class StageMetrics:
    leads: int
    avg_time: str
    conversion: float
    last_updated: str

    def as_dict(self) -> Dict[str, Any]:
        return {
            "leads": self.leads,
            "avgTime": self.avg_time,
            "conversion": self.conversion,
            "lastUpdated": self.last_updated,
        }


@dataclass(slots=True)
class OverallMetrics:
    """Pipeline-wide totals across every stage bucket."""

    total_leads: int
    total_value: float
    average_loan_amount: float
    last_updated: str
    unrecognized_stages: int = 0

    def as_dict(self) -> Dict[str, Any]:
        return {
            "totalLeads": self.total_leads,
            "totalValue": self.total_value,
            "averageLoanAmount": self.average_loan_amount,
            "lastUpdated": self.last_updated,
            "unrecognizedStages": self.unrecognized_stages,
        }


@dataclass(slots=True)
class PipelineMetrics:
    """Per-stage metrics plus an optional overall summary."""

    stages: Dict[str, StageMetrics] = field(default_factory=dict)
    overall: Optional[OverallMetrics] = None

    def __getitem__(self, stage: str) -> StageMetrics:
        return self.stages[stage]

    def as_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {title: metrics.as_dict() for title, metrics in self.stages.items()}
        if self.overall is not None:
            payload["overall"] = self.overall.as_dict()
        return payload


# --- Orchestrator results ---

LeadBuckets = Dict[str, List[CanonicalLead]]


@dataclass(slots=True)
class PipelineSnapshot:
    """Categorized leads and metrics computed from one fetch."""

    leads: LeadBuckets
    metrics: PipelineMetrics
    stages: Tuple[PipelineStage, ...]
    fetched_at: str

    @property
    def total_leads(self) -> int:
        return sum(len(bucket) for bucket in self.leads.values())

    def as_dict(self) -> Dict[str, Any]:
        return {
            "leads": {title: [lead.as_dict() for lead in bucket] for title, bucket in self.leads.items()},
            "metrics": self.metrics.as_dict(),
            "stages": [stage.as_dict() for stage in self.stages],
            "fetchedAt": self.fetched_at,
        }


@dataclass(slots=True)
class OperationResult:
    """Explicit success/failure value returned across the orchestrator boundary."""

    success: bool
    data: Any = None
    error: Optional[str] = None

    @classmethod
    def ok(cls, data: Any = None) -> "OperationResult":
        return cls(success=True, data=data)

    @classmethod
    def failure(cls, error: str, data: Any = None) -> "OperationResult":
        return cls(success=False, data=data, error=error)


@dataclass(slots=True)
class LeadDraft:
    """Fields accepted when creating a lead through the CRM."""

    name: str
    email: str
    phone: str = ""
    address: str = ""
    loan_type: str = "Conventional"
    loan_amount: float = 0
    close_date: str = ""
    stage: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    notes: str = ""

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "LeadDraft":
        """Build a draft from a camelCase or snake_case mapping."""

        def pick(*keys: str, default: Any = "") -> Any:
            for key in keys:
                value = data.get(key)
                if value:
                    return value
            return default

        tags = data.get("tags") or []
        return cls(
            name=str(pick("name")),
            email=str(pick("email")),
            phone=str(pick("phone")),
            address=str(pick("address")),
            loan_type=str(pick("loanType", "loan_type", default="Conventional")),
            loan_amount=pick("loanAmount", "loan_amount", default=0),
            close_date=str(pick("closeDate", "close_date")),
            stage=pick("stage", default=None),
            tags=[str(tag) for tag in tags] if isinstance(tags, list) else [],
            notes=str(pick("notes")),
        )


__all__ = [
    "PipelineStage",
    "CanonicalLead",
    "StageMetrics",
    "OverallMetrics",
    "PipelineMetrics",
    "LeadBuckets",
    "PipelineSnapshot",
    "OperationResult",
    "LeadDraft",
]
