"""Stage resolution, tag hygiene, and categorization of CRM contacts into pipeline buckets."""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Iterable, List, Mapping, Optional

from . import fields
from .models import CanonicalLead, LeadBuckets
from .stages import DEFAULT_CATALOG, StageCatalog

LOGGER = logging.getLogger(__name__)


def utc_timestamp(moment: Optional[datetime] = None) -> str:
    """Return an ISO-8601 UTC timestamp with millisecond precision and a ``Z`` suffix."""

    moment = moment or datetime.now(timezone.utc)
    return moment.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def resolve_stage(contact: Mapping[str, Any], catalog: StageCatalog = DEFAULT_CATALOG) -> str:
    """Return the stage a contact belongs to.

    Explicit stage fields win over tags. An explicit value is returned verbatim
    even when it is not a catalog stage; :func:`categorize_contacts` decides
    where such leads end up.
    """

    stage = fields.explicit_stage(contact)
    if stage is not None:
        return stage

    for tag in fields.as_tag_list(fields.raw_tags(contact)):
        matched = catalog.match_tag(tag)
        if matched:
            LOGGER.debug("Mapped tag %r to stage %r", tag, matched)
            return matched

    return catalog.default_stage  # type: ignore[return-value]


def sanitize_tags(tags: Any, catalog: StageCatalog = DEFAULT_CATALOG) -> List[str]:
    """Keep only exact matches from the stage tag vocabulary, preserving order."""

    if not isinstance(tags, list):
        return []
    vocabulary = set(catalog.vocabulary)
    return [tag for tag in tags if isinstance(tag, str) and tag in vocabulary]


def with_stage_tag(tags: List[str], stage: str, catalog: StageCatalog = DEFAULT_CATALOG) -> List[str]:
    stage_tag = catalog.stage_tag(stage)
    if stage_tag in tags:
        return list(tags)
    return [*tags, stage_tag]


def normalize_contact(
    contact: Mapping[str, Any],
    index: int,
    *,
    catalog: StageCatalog = DEFAULT_CATALOG,
    now: Optional[str] = None,
) -> CanonicalLead:
    """Map one raw contact onto the canonical lead shape."""

    now = now or utc_timestamp()
    resolved = resolve_stage(contact, catalog)
    unrecognized: Optional[str] = None
    stage = resolved
    if not catalog.has_stage(resolved):
        unrecognized = resolved
        stage = catalog.default_stage  # type: ignore[assignment]

    tags = with_stage_tag(sanitize_tags(fields.raw_tags(contact), catalog), stage, catalog)

    return CanonicalLead(
        id=fields.resolve_id(contact, index),
        name=fields.resolve_name(contact),
        email=fields.text_field(contact, ("email", "emailAddress")),
        phone=fields.text_field(contact, ("phone", "phoneNumber", "mobile")),
        address=fields.text_field(contact, ("address",)),
        loan_type=fields.text_field(contact, ("loanType",), default="Conventional"),
        loan_amount=fields.resolve_loan_amount(contact),
        close_date=fields.text_field(contact, ("closeDate",)),
        status=fields.text_field(contact, ("status",), default="On Track"),
        tags=tags,
        notes=fields.text_field(contact, ("notes",)),
        stage=stage,
        created_at=fields.resolve_timestamp(contact, "createdAt", "created_at", now),
        updated_at=fields.resolve_timestamp(contact, "updatedAt", "updated_at", now),
        unrecognized_stage=unrecognized,
    )


def empty_buckets(catalog: StageCatalog = DEFAULT_CATALOG) -> LeadBuckets:
    return {title: [] for title in catalog.titles}


def categorize_contacts(
    contacts: Any,
    catalog: StageCatalog = DEFAULT_CATALOG,
    *,
    now: Optional[str] = None,
) -> LeadBuckets:
    """Group raw contacts into one ordered bucket per catalog stage.

    Every stage key is present in the result, even for empty or malformed
    input. Contacts whose explicit stage is unknown land in the default stage.
    """

    buckets = empty_buckets(catalog)
    if not isinstance(contacts, list):
        if contacts is not None:
            LOGGER.warning("Expected a list of contacts, got %s; treating as empty", type(contacts).__name__)
        return buckets

    now = now or utc_timestamp()
    LOGGER.debug("Categorizing %s contacts", len(contacts))

    for index, contact in enumerate(contacts):
        if not isinstance(contact, Mapping):
            LOGGER.warning("Skipping contact %s: expected a mapping, got %s", index, type(contact).__name__)
            continue
        lead = normalize_contact(contact, index, catalog=catalog, now=now)
        if lead.unrecognized_stage is not None:
            LOGGER.warning(
                "Unknown stage %r on lead %s, adding to %r",
                lead.unrecognized_stage,
                lead.id,
                lead.stage,
            )
        buckets[lead.stage].append(lead)

    return buckets


def iter_leads(buckets: Mapping[str, Iterable[CanonicalLead]]) -> Iterable[CanonicalLead]:
    for bucket in buckets.values():
        yield from bucket


__all__ = [
    "utc_timestamp",
    "resolve_stage",
    "sanitize_tags",
    "with_stage_tag",
    "normalize_contact",
    "empty_buckets",
    "categorize_contacts",
    "iter_leads",
]
