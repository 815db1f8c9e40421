from __future__ import annotations

import json

import pytest
from pydantic import ValidationError

from kernelgov.registry import SNAPSHOT_VERSION, RegistrySnapshot, ValueRecord

pytestmark = pytest.mark.unit

_EXPORTED_AT = "2026-01-05T10:00:00.000Z"


def test_snapshot_normalizes_identifiers_to_sorted_unique_tuples() -> None:
    snapshot = RegistrySnapshot(
        concepts=["CONCEPT_VENDOR", "CONCEPT_BANK", "CONCEPT_VENDOR"],
        value_sets=("VALUESET_GLOBAL_RISK_FLAG", "VALUESET_GLOBAL_COUNTRIES"),
        values_by_set={
            "VALUESET_GLOBAL_RISK_FLAG": ["RISK_LOW", "RISK_HIGH", "RISK_LOW"],
            "VALUESET_GLOBAL_COUNTRIES": ["COUNTRY_SG"],
        },
        exported_at=_EXPORTED_AT,
    )

    assert snapshot.concepts == ("CONCEPT_BANK", "CONCEPT_VENDOR")
    assert snapshot.value_sets == ("VALUESET_GLOBAL_COUNTRIES", "VALUESET_GLOBAL_RISK_FLAG")
    assert list(snapshot.values_by_set) == [
        "VALUESET_GLOBAL_COUNTRIES",
        "VALUESET_GLOBAL_RISK_FLAG",
    ]
    assert snapshot.values_by_set["VALUESET_GLOBAL_RISK_FLAG"] == ("RISK_HIGH", "RISK_LOW")
    assert snapshot.snapshot_version == SNAPSHOT_VERSION
    assert snapshot.value_count == 3


def test_snapshot_payload_uses_wire_field_names_in_contract_order() -> None:
    snapshot = RegistrySnapshot(
        concepts=("CONCEPT_BANK",),
        value_sets=("VALUESET_GLOBAL_COUNTRIES",),
        values_by_set={"VALUESET_GLOBAL_COUNTRIES": ("COUNTRY_MY",)},
        exported_at=_EXPORTED_AT,
    )

    payload = json.loads(snapshot.to_json())

    assert list(payload) == ["concepts", "valueSets", "valuesBySet", "exportedAt", "snapshotVersion"]
    assert payload["valuesBySet"] == {"VALUESET_GLOBAL_COUNTRIES": ["COUNTRY_MY"]}
    assert "exportedAt" not in snapshot.content_payload()


def test_snapshot_ignores_unknown_top_level_keys() -> None:
    snapshot = RegistrySnapshot.model_validate(
        {
            "concepts": ["CONCEPT_BANK"],
            "valueSets": [],
            "exportedAt": _EXPORTED_AT,
            "snapshotVersion": "1.2.0",
            "generator": "future-exporter",
            "counts": {"concepts": 1},
        }
    )

    assert snapshot.concepts == ("CONCEPT_BANK",)
    assert snapshot.values_by_set == {}
    assert snapshot.major_version == "1"


@pytest.mark.parametrize(
    "payload",
    [
        {"concepts": "CONCEPT_BANK", "valueSets": [], "exportedAt": _EXPORTED_AT},
        {"concepts": [""], "valueSets": [], "exportedAt": _EXPORTED_AT},
        {"concepts": [], "valueSets": [], "exportedAt": "yesterday"},
        {"concepts": [], "valueSets": [], "valuesBySet": ["x"], "exportedAt": _EXPORTED_AT},
        {"concepts": [], "valueSets": []},
    ],
)
def test_snapshot_rejects_malformed_payloads(payload: dict[str, object]) -> None:
    with pytest.raises(ValidationError):
        RegistrySnapshot.model_validate(payload)


def test_value_record_key_is_compound() -> None:
    record = ValueRecord(value_set_id="VALUESET_GLOBAL_CURRENCY", value_code="USD")
    assert record.key == ("VALUESET_GLOBAL_CURRENCY", "USD")
    assert record.is_active
