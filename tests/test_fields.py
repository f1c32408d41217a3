import pytest

from loan_pipeline import fields


def test_resolve_id_precedence() -> None:
    assert fields.resolve_id({"_id": "a", "id": "b", "contactId": "c"}, 0) == "a"
    assert fields.resolve_id({"id": "b", "contactId": "c"}, 0) == "b"
    assert fields.resolve_id({"contactId": "c"}, 0) == "c"
    assert fields.resolve_id({"id": ""}, 4) == "lead-4"
    assert fields.resolve_id({"id": 17}, 0) == "17"


@pytest.mark.parametrize(
    "contact, expected",
    [
        ({"firstName": "Jane", "lastName": "Doe", "name": "Ignored"}, "Jane Doe"),
        ({"firstName": "Jane", "name": "Jane D."}, "Jane D."),
        ({"fullName": "Grace Hopper", "displayName": "Admiral"}, "Grace Hopper"),
        ({"displayName": "Ada Lovelace"}, "Ada Lovelace"),
        ({"lastName": "Doe"}, "Unknown"),
        ({}, "Unknown"),
    ],
)
def test_resolve_name_fallback_chain(contact, expected) -> None:
    assert fields.resolve_name(contact) == expected


@pytest.mark.parametrize(
    "value, expected",
    [
        (250000, 250000),
        (1234.5, 1234.5),
        ("300000", 300000),
        ("$1,250.50", 1250.5),
        ("", 0),
        ("n/a", 0),
        (None, 0),
        (True, 0),
        ([100], 0),
        ("NaN", 0),
        ("inf", 0),
        ("-Infinity", 0),
        ("1e400", 0),
        (float("nan"), 0),
        (float("inf"), 0),
    ],
)
def test_coerce_amount(value, expected) -> None:
    assert fields.coerce_amount(value) == expected


def test_nested_then_top_skips_falsy_values() -> None:
    contact = {"loanType": "VA", "customField": {"loanType": ""}}
    assert fields.nested_then_top(contact, ("loanType",)) == "VA"
    assert fields.nested_then_top({}, ("loanType",), default="Conventional") == "Conventional"


def test_custom_fields_accepts_either_key() -> None:
    assert fields.custom_fields({"customFields": {"stage": "Closed"}}) == {"stage": "Closed"}
    assert fields.custom_fields({"customField": [{"id": "x", "value": 1}]}) == {}


def test_explicit_stage_order() -> None:
    assert fields.explicit_stage({"customField": {"stage": "Closed"}, "stage": "Contacted"}) == "Closed"
    assert fields.explicit_stage({"stageName": "Closed"}) == "Closed"
    assert fields.explicit_stage({"tags": ["closed"]}) is None


def test_resolve_timestamp_cascade() -> None:
    now = "2025-01-01T00:00:00.000Z"
    assert fields.resolve_timestamp({"createdAt": "a", "created_at": "b"}, "createdAt", "created_at", now) == "a"
    assert fields.resolve_timestamp({"created_at": "b"}, "createdAt", "created_at", now) == "b"
    assert fields.resolve_timestamp({}, "createdAt", "created_at", now) == now
