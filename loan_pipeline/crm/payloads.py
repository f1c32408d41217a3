"""Request and response payload helpers for the CRM contacts API."""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional, Tuple

from ..models import LeadDraft
from ..stages import DEFAULT_CATALOG, StageCatalog

LOGGER = logging.getLogger(__name__)

CONTACT_LIST_KEYS: Tuple[str, ...] = ("contacts", "data", "results")


def extract_contacts(payload: Any) -> List[Any]:
    """Pull the contact list out of a listing response.

    Accepts a bare list or a mapping holding the list under one of
    ``contacts``/``data``/``results``. Any other shape yields an empty list.
    """

    if isinstance(payload, list):
        return payload
    if isinstance(payload, Mapping):
        for key in CONTACT_LIST_KEYS:
            value = payload.get(key)
            if isinstance(value, list):
                return value
    LOGGER.warning("Unexpected contacts payload of type %s; treating as empty", type(payload).__name__)
    return []


def split_name(name: Optional[str]) -> Tuple[str, str]:
    """Split a display name into CRM first/last name fields."""

    parts = (name or "").split(" ")
    first = parts[0] if parts else ""
    last = " ".join(parts[1:])
    return first, last


def contact_tags(contact: Any) -> List[Any]:
    """Current tags on a contact read back from the CRM."""

    if not isinstance(contact, Mapping):
        return []
    if isinstance(contact.get("contact"), Mapping):
        contact = contact["contact"]
    nested = contact.get("customField")
    tags = (nested.get("tags") if isinstance(nested, Mapping) else None) or contact.get("tags") or []
    return list(tags) if isinstance(tags, list) else []


def build_create_payload(
    draft: LeadDraft,
    *,
    now: str,
    catalog: StageCatalog = DEFAULT_CATALOG,
) -> Dict[str, Any]:
    if not draft.name or not draft.email:
        raise ValueError("Name and email are required")

    stage = draft.stage or catalog.default_stage
    stage_tag = catalog.stage_tag(stage)  # type: ignore[arg-type]
    first_name, last_name = split_name(draft.name)

    return {
        "firstName": first_name,
        "lastName": last_name,
        "email": draft.email,
        "phone": draft.phone or "",
        "address": draft.address or "",
        "customField": {
            "stage": stage,
            "loanType": draft.loan_type or "Conventional",
            "loanAmount": draft.loan_amount or 0,
            "closeDate": draft.close_date or "",
            "tags": [*draft.tags, stage_tag],
            "notes": draft.notes or "",
            "status": "On Track",
            "createdAt": now,
            "updatedAt": now,
        },
    }


def build_update_payload(updates: Mapping[str, Any], *, now: str) -> Dict[str, Any]:
    if not updates:
        raise ValueError("Lead ID and updates are required")

    first_name, last_name = split_name(updates.get("name"))
    return {
        "firstName": first_name,
        "lastName": last_name,
        "email": updates.get("email"),
        "phone": updates.get("phone"),
        "address": updates.get("address"),
        "customField": {**updates, "updatedAt": now},
    }


def build_move_payload(
    current_tags: List[Any],
    to_stage: str,
    from_stage: Optional[str],
    *,
    now: str,
    catalog: StageCatalog = DEFAULT_CATALOG,
) -> Dict[str, Any]:
    """Swap the old stage tag for the new one and set the explicit stage field."""

    new_tag = catalog.stage_tag(to_stage)
    old_stage = catalog.get(from_stage) if from_stage else None
    old_tag = old_stage.stage_tag if old_stage else None
    tags = [tag for tag in current_tags if tag != old_tag]
    tags.append(new_tag)
    return {"customField": {"stage": to_stage, "tags": tags, "updatedAt": now}}


def build_tags_payload(tags: List[str]) -> Dict[str, Any]:
    return {"customField": {"tags": list(tags)}}


__all__ = [
    "CONTACT_LIST_KEYS",
    "extract_contacts",
    "split_name",
    "contact_tags",
    "build_create_payload",
    "build_update_payload",
    "build_move_payload",
    "build_tags_payload",
]
