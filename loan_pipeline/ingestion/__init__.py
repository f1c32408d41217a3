"""Utilities for importing contact exports and exporting categorized pipelines."""
from __future__ import annotations

from .exporters import export_snapshot, export_snapshot_json, metrics_to_dataframe, snapshot_to_dataframe
from .loaders import UnsupportedFileTypeError, load_contacts

__all__ = [
    "export_snapshot",
    "export_snapshot_json",
    "load_contacts",
    "metrics_to_dataframe",
    "snapshot_to_dataframe",
    "UnsupportedFileTypeError",
]
