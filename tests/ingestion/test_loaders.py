import json

import pandas as pd
import pytest

from loan_pipeline.categorize import categorize_contacts
from loan_pipeline.ingestion.loaders import UnsupportedFileTypeError, load_contacts


@pytest.fixture()
def sample_dataframe():
    return pd.DataFrame(
        [
            {
                "id": "c1",
                "firstName": "Ada",
                "lastName": "Lovelace",
                "email": "ada@example.com",
                "customField.stage": "Pre-Approved",
                "customField.loanAmount": "250000",
                "tags": "VIP; Pre-Approved",
            },
            {
                "id": "",
                "firstName": "",
                "lastName": "",
                "email": "",
                "customField.stage": "",
                "customField.loanAmount": "",
                "tags": "",
            },
            {
                "id": "c2",
                "firstName": "Grace",
                "lastName": "",
                "email": "",
                "customField.stage": "",
                "customField.loanAmount": "",
                "tags": "closed,hot",
            },
        ]
    )


def test_load_contacts_from_csv(sample_dataframe, tmp_path):
    csv_path = tmp_path / "contacts.csv"
    sample_dataframe.to_csv(csv_path, index=False)

    contacts = load_contacts(csv_path)

    assert contacts == [
        {
            "id": "c1",
            "firstName": "Ada",
            "lastName": "Lovelace",
            "email": "ada@example.com",
            "customField": {"stage": "Pre-Approved", "loanAmount": "250000"},
            "tags": ["VIP", "Pre-Approved"],
        },
        {"id": "c2", "firstName": "Grace", "tags": ["closed", "hot"]},
    ]


def test_loaded_rows_categorize(sample_dataframe, tmp_path):
    excel_path = tmp_path / "contacts.xlsx"
    sample_dataframe.to_excel(excel_path, index=False)

    buckets = categorize_contacts(load_contacts(excel_path), now="2025-01-01T00:00:00.000Z")

    pre_approved = buckets["Pre-Approved"][0]
    assert pre_approved.name == "Ada Lovelace"
    assert pre_approved.loan_amount == 250000
    assert [lead.id for lead in buckets["Closed"]] == ["c2"]


def test_load_contacts_from_tsv(tmp_path):
    tsv_path = tmp_path / "contacts.tsv"
    tsv_path.write_text("id\tstage\nc9\tContacted\n", encoding="utf-8")

    assert load_contacts(tsv_path) == [{"id": "c9", "stage": "Contacted"}]


@pytest.mark.parametrize(
    "payload",
    [
        [{"id": "a"}],
        {"contacts": [{"id": "a"}]},
        {"data": [{"id": "a"}]},
    ],
)
def test_load_contacts_from_json(tmp_path, payload):
    json_path = tmp_path / "contacts.json"
    json_path.write_text(json.dumps(payload), encoding="utf-8")

    assert load_contacts(json_path) == [{"id": "a"}]


def test_unsupported_extension(tmp_path):
    path = tmp_path / "contacts.txt"
    path.write_text("id\n1\n", encoding="utf-8")

    with pytest.raises(UnsupportedFileTypeError):
        load_contacts(path)
