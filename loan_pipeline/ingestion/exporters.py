"""Export utilities for categorized pipeline snapshots."""
from __future__ import annotations

import json
from pathlib import Path
from typing import Iterable, List, MutableMapping, Optional, Union

import pandas as pd

from ..models import CanonicalLead, PipelineSnapshot
from .loaders import UnsupportedFileTypeError

PathLike = Union[str, Path]

LEAD_COLUMNS = [
    "stage",
    "id",
    "name",
    "email",
    "phone",
    "address",
    "loan_type",
    "loan_amount",
    "close_date",
    "status",
    "tags",
    "notes",
    "created_at",
    "updated_at",
    "unrecognized_stage",
]


def export_snapshot(
    snapshot: PipelineSnapshot,
    path: PathLike,
    *,
    sheet_name: str = "Pipeline",
    exporter_kwargs: Optional[MutableMapping[str, object]] = None,
) -> Path:
    """Write a snapshot to JSON, CSV/TSV, or an Excel workbook based on the suffix."""

    output_path = Path(path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    if output_path.suffix.lower() == ".json":
        export_snapshot_json(snapshot, output_path)
        return output_path

    dataframe = snapshot_to_dataframe(snapshot)
    _write_dataframe(
        dataframe,
        output_path,
        sheet_name=sheet_name,
        exporter_kwargs=exporter_kwargs,
        metrics=metrics_to_dataframe(snapshot),
    )
    return output_path


def export_snapshot_json(snapshot: PipelineSnapshot, path: PathLike) -> Path:
    output_path = Path(path)
    output_path.write_text(json.dumps(snapshot.as_dict(), ensure_ascii=False, indent=2), encoding="utf-8")
    return output_path


def snapshot_to_dataframe(snapshot: PipelineSnapshot) -> pd.DataFrame:
    """One row per lead, in stage order then source order."""

    records = [
        _lead_to_row(lead)
        for title in snapshot.leads
        for lead in snapshot.leads[title]
    ]
    return pd.DataFrame(records, columns=LEAD_COLUMNS)


def metrics_to_dataframe(snapshot: PipelineSnapshot) -> pd.DataFrame:
    rows = [
        {"stage": title, **metrics.as_dict()}
        for title, metrics in snapshot.metrics.stages.items()
    ]
    return pd.DataFrame(rows, columns=["stage", "leads", "avgTime", "conversion", "lastUpdated"])


def _lead_to_row(lead: CanonicalLead) -> MutableMapping[str, object]:
    return {
        "stage": lead.stage,
        "id": lead.id,
        "name": lead.name,
        "email": lead.email,
        "phone": lead.phone,
        "address": lead.address,
        "loan_type": lead.loan_type,
        "loan_amount": lead.loan_amount,
        "close_date": lead.close_date,
        "status": lead.status,
        "tags": _join_list(lead.tags),
        "notes": lead.notes,
        "created_at": lead.created_at,
        "updated_at": lead.updated_at,
        "unrecognized_stage": lead.unrecognized_stage or "",
    }


def _join_list(values: Iterable[Optional[str]]) -> str:
    cleaned: List[str] = []
    for value in values:
        if not value:
            continue
        text = str(value).strip()
        if text:
            cleaned.append(text)
    return "; ".join(cleaned)


def _write_dataframe(
    dataframe: pd.DataFrame,
    path: Path,
    *,
    sheet_name: str,
    exporter_kwargs: Optional[MutableMapping[str, object]],
    metrics: Optional[pd.DataFrame] = None,
) -> None:
    exporter_kwargs = dict(exporter_kwargs or {})
    suffix = path.suffix.lower()

    if suffix in {".csv", ".tsv"}:
        if suffix == ".tsv":
            exporter_kwargs.setdefault("sep", "\t")
        dataframe.to_csv(path, index=False, **exporter_kwargs)
        return

    if suffix in {".xlsx", ".xlsm"}:
        engine = exporter_kwargs.pop("engine", None) or "openpyxl"
        with pd.ExcelWriter(path, engine=engine) as writer:
            dataframe.to_excel(writer, index=False, sheet_name=sheet_name, **exporter_kwargs)
            if metrics is not None:
                metrics.to_excel(writer, index=False, sheet_name="Metrics")
        return

    raise UnsupportedFileTypeError(f"Unsupported export file extension: {suffix}")


__all__ = [
    "LEAD_COLUMNS",
    "export_snapshot",
    "export_snapshot_json",
    "snapshot_to_dataframe",
    "metrics_to_dataframe",
]
