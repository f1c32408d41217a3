"""Ordered-fallback lookups over loosely shaped CRM contact records."""
from __future__ import annotations

import logging
import math
import re
from typing import Any, List, Mapping, Optional, Sequence

LOGGER = logging.getLogger(__name__)

CUSTOM_FIELD_KEYS: Sequence[str] = ("customField", "customFields")

_AMOUNT_JUNK = re.compile(r"[\s$,]")


def custom_fields(contact: Mapping[str, Any]) -> Mapping[str, Any]:
    """Return the nested custom-field bag of ``contact`` (empty when absent)."""

    for key in CUSTOM_FIELD_KEYS:
        value = contact.get(key)
        if isinstance(value, Mapping):
            return value
    return {}


def first_present(source: Mapping[str, Any], keys: Sequence[str]) -> Any:
    """Return the first truthy value found under ``keys`` or ``None``."""

    for key in keys:
        value = source.get(key)
        if value:
            return value
    return None


def nested_then_top(contact: Mapping[str, Any], keys: Sequence[str], default: Any = None) -> Any:
    """Prefer the custom-field value, then the top-level value, then ``default``."""

    value = first_present(custom_fields(contact), keys)
    if value:
        return value
    value = first_present(contact, keys)
    if value:
        return value
    return default


def text_field(contact: Mapping[str, Any], keys: Sequence[str], default: str = "") -> str:
    value = nested_then_top(contact, keys)
    if value is None:
        return default
    return str(value)


def resolve_id(contact: Mapping[str, Any], index: int) -> str:
    value = first_present(contact, ("_id", "id", "contactId"))
    if value:
        return str(value)
    return f"lead-{index}"


def resolve_name(contact: Mapping[str, Any]) -> str:
    first_name = contact.get("firstName")
    last_name = contact.get("lastName")
    if first_name and last_name:
        return f"{first_name} {last_name}"
    value = first_present(contact, ("name", "fullName", "displayName"))
    if value:
        return str(value)
    return "Unknown"


def coerce_amount(value: Any) -> float:
    """Interpret a loan amount as a number; anything unreadable counts as 0."""

    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return value if math.isfinite(value) else 0
    if isinstance(value, str):
        cleaned = _AMOUNT_JUNK.sub("", value)
        if not cleaned:
            return 0
        try:
            number = float(cleaned)
        except ValueError:
            LOGGER.debug("Ignoring non-numeric loan amount %r", value)
            return 0
        if not math.isfinite(number):
            LOGGER.debug("Ignoring non-finite loan amount %r", value)
            return 0
        return int(number) if number.is_integer() else number
    LOGGER.debug("Ignoring loan amount of type %s", type(value).__name__)
    return 0


def resolve_loan_amount(contact: Mapping[str, Any]) -> float:
    return coerce_amount(nested_then_top(contact, ("loanAmount",), default=0))


def resolve_timestamp(contact: Mapping[str, Any], camel_key: str, snake_key: str, now: str) -> str:
    value = custom_fields(contact).get(camel_key) or contact.get(camel_key) or contact.get(snake_key)
    if value:
        return str(value)
    return now


def raw_tags(contact: Mapping[str, Any]) -> Any:
    """Return the unfiltered tag value: custom-field tags first, then top-level tags."""

    return custom_fields(contact).get("tags") or contact.get("tags") or []


def explicit_stage(contact: Mapping[str, Any]) -> Optional[str]:
    """Return the first explicit stage-like field, in priority order."""

    nested = custom_fields(contact).get("stage")
    if nested:
        return str(nested)
    value = first_present(contact, ("stage", "status", "pipelineStage", "stageName"))
    if value:
        return str(value)
    return None


def as_tag_list(value: Any) -> List[Any]:
    if isinstance(value, list):
        return value
    return []


__all__ = [
    "CUSTOM_FIELD_KEYS",
    "custom_fields",
    "first_present",
    "nested_then_top",
    "text_field",
    "resolve_id",
    "resolve_name",
    "coerce_amount",
    "resolve_loan_amount",
    "resolve_timestamp",
    "raw_tags",
    "explicit_stage",
    "as_tag_list",
]
