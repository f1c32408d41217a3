"""Tests for stage resolution, tag sanitizing, and categorization."""
from __future__ import annotations

import logging

import pytest

from loan_pipeline.categorize import (
    categorize_contacts,
    empty_buckets,
    normalize_contact,
    resolve_stage,
    sanitize_tags,
    utc_timestamp,
    with_stage_tag,
)
from loan_pipeline.models import PipelineStage
from loan_pipeline.stages import DEFAULT_CATALOG, StageCatalog

STAGE_TITLES = [
    "New Lead",
    "Contacted",
    "Application Started",
    "Pre-Approved",
    "In Underwriting",
    "Closed",
]

NOW = "2025-01-01T00:00:00.000Z"


def _comparable(buckets):
    return {
        title: [
            {key: value for key, value in lead.as_dict().items() if key not in {"createdAt", "updatedAt"}}
            for lead in leads
        ]
        for title, leads in buckets.items()
    }


def test_categorize_empty_input_has_every_stage() -> None:
    assert categorize_contacts([]) == {title: [] for title in STAGE_TITLES}
    assert list(categorize_contacts([]).keys()) == STAGE_TITLES


@pytest.mark.parametrize("payload", [None, {}, "contacts", 42, {"contacts": "nope"}])
def test_categorize_non_list_input_yields_empty_buckets(payload) -> None:
    assert categorize_contacts(payload) == empty_buckets()


def test_jane_doe_scenario() -> None:
    contacts = [
        {
            "id": "c1",
            "customField": {"stage": "Pre-Approved", "loanAmount": 250000},
            "firstName": "Jane",
            "lastName": "Doe",
        }
    ]

    buckets = categorize_contacts(contacts, now=NOW)

    assert len(buckets["Pre-Approved"]) == 1
    lead = buckets["Pre-Approved"][0]
    assert lead.id == "c1"
    assert lead.name == "Jane Doe"
    assert lead.loan_amount == 250000
    assert "Pre-Approved" in lead.tags
    assert all(not buckets[title] for title in STAGE_TITLES if title != "Pre-Approved")


def test_nested_stage_beats_tags() -> None:
    contact = {"customField": {"stage": "Closed"}, "tags": ["new lead"]}
    assert resolve_stage(contact) == "Closed"


def test_first_matching_tag_wins() -> None:
    assert resolve_stage({"tags": ["closed", "new lead"]}) == "Closed"


def test_tag_matching_is_case_insensitive_and_skips_unknown_tags() -> None:
    contact = {"tags": ["VIP", "Pre Approved", "Contacted"]}
    assert resolve_stage(contact) == "Pre-Approved"


def test_custom_field_tags_take_precedence_over_top_level_tags() -> None:
    contact = {"customField": {"tags": ["In Underwriting"]}, "tags": ["Closed"]}
    assert resolve_stage(contact) == "In Underwriting"


@pytest.mark.parametrize(
    "contact, expected",
    [
        ({"stage": "Contacted", "status": "Closed"}, "Contacted"),
        ({"status": "Closed", "pipelineStage": "Contacted"}, "Closed"),
        ({"pipelineStage": "Contacted", "stageName": "Closed"}, "Contacted"),
        ({"stageName": "Closed", "tags": ["contacted"]}, "Closed"),
        ({"stage": "", "tags": ["contacted"]}, "Contacted"),
        ({}, "New Lead"),
        ({"tags": "closed"}, "New Lead"),
        ({"tags": [None, 7, "closed"]}, "Closed"),
    ],
)
def test_stage_resolution_priority(contact, expected) -> None:
    assert resolve_stage(contact) == expected


def test_explicit_stage_is_returned_verbatim() -> None:
    assert resolve_stage({"customField": {"stage": "Mystery Stage"}}) == "Mystery Stage"


def test_unknown_explicit_stage_falls_back_to_new_lead(caplog: pytest.LogCaptureFixture) -> None:
    contacts = [
        {"id": "a", "customField": {"stage": "Mystery Stage"}},
        {"id": "b", "tags": ["closed"]},
        {"id": "c"},
    ]

    with caplog.at_level(logging.WARNING, logger="loan_pipeline.categorize"):
        buckets = categorize_contacts(contacts, now=NOW)

    assert [lead.id for lead in buckets["New Lead"]] == ["a", "c"]
    assert sum(len(leads) for leads in buckets.values()) == len(contacts)
    mystery = buckets["New Lead"][0]
    assert mystery.stage == "New Lead"
    assert mystery.unrecognized_stage == "Mystery Stage"
    assert mystery.tags == ["New Lead"]
    assert "Mystery Stage" in caplog.text


def test_sanitize_tags_is_exact_and_order_preserving() -> None:
    tags = ["Closed", "closed", "VIP", "Contacted", "Closed", " Contacted"]
    assert sanitize_tags(tags) == ["Closed", "Contacted", "Closed"]


@pytest.mark.parametrize("value", [None, "Closed", {"tags": ["Closed"]}, ("Closed",)])
def test_sanitize_tags_non_list_is_empty(value) -> None:
    assert sanitize_tags(value) == []


def test_with_stage_tag_appends_only_when_missing() -> None:
    assert with_stage_tag(["Contacted"], "Closed") == ["Contacted", "Closed"]
    assert with_stage_tag(["Closed", "Contacted"], "Closed") == ["Closed", "Contacted"]


def test_every_lead_carries_its_stage_tag() -> None:
    contacts = [
        {},
        {"tags": []},
        {"stage": "Contacted", "tags": ["Closed"]},
        {"customField": {"stage": "Bogus"}, "tags": ["Closed"]},
        {"tags": ["pre-approved", "Random"]},
    ]

    buckets = categorize_contacts(contacts, now=NOW)

    for title, leads in buckets.items():
        for lead in leads:
            assert lead.stage == title
            assert DEFAULT_CATALOG.stage_tag(lead.stage) in lead.tags
            assert set(lead.tags) <= set(DEFAULT_CATALOG.vocabulary)


def test_pipeline_is_idempotent_apart_from_timestamps() -> None:
    contacts = [
        {"_id": "x1", "name": "Ada", "tags": ["closed", "contacted"], "loanAmount": 100},
        {"displayName": "Grace", "status": "Contacted"},
        {"customField": {"stage": "Mystery"}},
    ]

    first = categorize_contacts(contacts)
    second = categorize_contacts(contacts)

    assert _comparable(first) == _comparable(second)


def test_normalize_contact_defaults() -> None:
    lead = normalize_contact({}, 3, now=NOW)

    assert lead.id == "lead-3"
    assert lead.name == "Unknown"
    assert (lead.email, lead.phone, lead.address, lead.close_date, lead.notes) == ("", "", "", "", "")
    assert lead.loan_type == "Conventional"
    assert lead.loan_amount == 0
    assert lead.status == "On Track"
    assert lead.stage == "New Lead"
    assert lead.tags == ["New Lead"]
    assert lead.created_at == NOW
    assert lead.updated_at == NOW


def test_normalize_contact_prefers_nested_values() -> None:
    contact = {
        "contactId": "cid",
        "emailAddress": "top@example.com",
        "mobile": "555-0000",
        "address": "1 Top St",
        "loanType": "VA",
        "notes": "top",
        "created_at": "2024-01-01T00:00:00Z",
        "updatedAt": "2024-02-01T00:00:00Z",
        "customField": {
            "email": "nested@example.com",
            "address": "2 Nested Ave",
            "loanType": "FHA",
            "closeDate": "2025-07-25",
            "status": "Delayed",
            "updatedAt": "2024-03-01T00:00:00Z",
        },
    }

    lead = normalize_contact(contact, 0, now=NOW)

    assert lead.id == "cid"
    assert lead.email == "nested@example.com"
    assert lead.phone == "555-0000"
    assert lead.address == "2 Nested Ave"
    assert lead.loan_type == "FHA"
    assert lead.close_date == "2025-07-25"
    assert lead.status == "Delayed"
    assert lead.notes == "top"
    assert lead.created_at == "2024-01-01T00:00:00Z"
    assert lead.updated_at == "2024-03-01T00:00:00Z"


def test_source_order_is_preserved_within_buckets() -> None:
    contacts = [{"id": str(index), "tags": ["contacted"]} for index in range(5)]
    buckets = categorize_contacts(contacts, now=NOW)
    assert [lead.id for lead in buckets["Contacted"]] == ["0", "1", "2", "3", "4"]


def test_non_mapping_contacts_are_skipped_but_keep_positions() -> None:
    buckets = categorize_contacts(["junk", {"name": "Real"}], now=NOW)
    leads = buckets["New Lead"]
    assert [lead.id for lead in leads] == ["lead-1"]


def test_alternate_catalog() -> None:
    catalog = StageCatalog(
        stages=(
            PipelineStage("Inbox", "gray", "*", ("inbox",)),
            PipelineStage("Won", "green", "+", ("won", "closed-won")),
        ),
        conversion_rates={"Won": 50},
    )

    buckets = categorize_contacts(
        [{"tags": ["Closed-Won"]}, {"stage": "Lost"}, {}],
        catalog,
        now=NOW,
    )

    assert list(buckets) == ["Inbox", "Won"]
    assert len(buckets["Won"]) == 1
    assert buckets["Won"][0].tags == ["won"]
    assert [lead.unrecognized_stage for lead in buckets["Inbox"]] == ["Lost", None]


def test_utc_timestamp_format() -> None:
    stamp = utc_timestamp()
    assert stamp.endswith("Z")
    assert len(stamp) == len("2025-01-01T00:00:00.000Z")
