"""Utilities for loading raw CRM contacts from exported files."""
from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any, Dict, List, MutableMapping, Optional, Union

import pandas as pd

from ..crm.payloads import extract_contacts
from ..fields import CUSTOM_FIELD_KEYS

PathLike = Union[str, Path]

_TABULAR_SUFFIXES = {".csv", ".tsv"}
_EXCEL_SUFFIXES = {".xls", ".xlsx", ".xlsm", ".xlsb"}
_TAG_SEPARATORS = re.compile(r"[;,]")


class UnsupportedFileTypeError(ValueError):
    """Raised when an unsupported file format is passed to the loader or exporter."""


def load_contacts(
    path: PathLike,
    *,
    sheet_name: Union[str, int, None] = 0,
    loader_kwargs: Optional[MutableMapping[str, Any]] = None,
) -> List[Any]:
    """Load raw contact records from a JSON export or a spreadsheet.

    JSON files may hold a bare list or any listing shape the CRM returns.
    Spreadsheet rows become one contact each. Columns named
    ``customField.<name>`` are nested under ``customField`` and a ``tags``
    column is split on commas or semicolons.
    """

    path_obj = Path(path)
    suffix = path_obj.suffix.lower()

    if suffix == ".json":
        with path_obj.open(encoding="utf-8") as handle:
            return extract_contacts(json.load(handle))

    dataframe = _read_dataframe(path_obj, sheet_name=sheet_name, loader_kwargs=loader_kwargs)
    contacts: List[Dict[str, Any]] = []
    for _, row in dataframe.iterrows():
        if _row_is_empty(row):
            continue
        contacts.append(_row_to_contact(row))
    return contacts


def _read_dataframe(
    path: Path,
    *,
    sheet_name: Union[str, int, None] = 0,
    loader_kwargs: Optional[MutableMapping[str, Any]] = None,
) -> pd.DataFrame:
    loader_kwargs = dict(loader_kwargs or {})
    loader_kwargs.setdefault("dtype", str)
    suffix = path.suffix.lower()

    if suffix in _TABULAR_SUFFIXES:
        if suffix == ".tsv":
            loader_kwargs.setdefault("sep", "\t")
        return pd.read_csv(path, **loader_kwargs)

    if suffix in _EXCEL_SUFFIXES:
        engine = loader_kwargs.pop("engine", None) or "openpyxl"
        return pd.read_excel(path, sheet_name=sheet_name, engine=engine, **loader_kwargs)

    raise UnsupportedFileTypeError(f"Unsupported file extension: {path.suffix}")


def _row_is_empty(row: pd.Series) -> bool:
    return all(_clean_text(value) is None for value in row.values)


def _row_to_contact(row: pd.Series) -> Dict[str, Any]:
    contact: Dict[str, Any] = {}
    for column, value in row.items():
        text = _clean_text(value)
        if text is None:
            continue
        key = str(column).strip()
        prefix, _, nested_key = key.partition(".")
        if nested_key and prefix in CUSTOM_FIELD_KEYS:
            target = contact.setdefault(prefix, {})
            target[nested_key] = _split_tags(text) if nested_key == "tags" else text
        elif key == "tags":
            contact[key] = _split_tags(text)
        else:
            contact[key] = text
    return contact


def _split_tags(text: str) -> List[str]:
    return [part.strip() for part in _TAG_SEPARATORS.split(text) if part.strip()]


def _clean_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, (list, dict)) and pd.isna(value):
        return None
    text = str(value).strip()
    return text or None


__all__ = ["load_contacts", "UnsupportedFileTypeError"]
