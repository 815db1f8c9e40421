from __future__ import annotations

import json
from pathlib import Path

import pytest

from kernelgov.drift import EMPTY_ALLOWLIST, Allowlist, load_allowlist, parse_allowlist
from kernelgov.registry import ConfigurationError

pytestmark = pytest.mark.unit


def test_flat_array_is_split_by_namespace() -> None:
    allowlist = parse_allowlist(["CONCEPT_LEGACY", "VALUESET_GLOBAL_OLD", " CONCEPT_PADDED "])

    assert allowlist.concepts == frozenset({"CONCEPT_LEGACY", "CONCEPT_PADDED"})
    assert allowlist.value_sets == frozenset({"VALUESET_GLOBAL_OLD"})
    assert allowlist.tokens == ("CONCEPT_LEGACY", "CONCEPT_PADDED", "VALUESET_GLOBAL_OLD")
    assert "CONCEPT_LEGACY" in allowlist
    assert len(allowlist) == 3


def test_object_form_keeps_declared_namespaces() -> None:
    allowlist = parse_allowlist({"concepts": ["CONCEPT_LEGACY"], "valueSets": []})

    assert allowlist == Allowlist(concepts=frozenset({"CONCEPT_LEGACY"}))


@pytest.mark.parametrize(
    "payload",
    ["CONCEPT_LEGACY", 7, [3], [""], {"concepts": "CONCEPT_LEGACY"}, {"valueSets": [None]}],
)
def test_malformed_allowlist_is_rejected(payload: object) -> None:
    with pytest.raises(ConfigurationError) as exc_info:
        parse_allowlist(payload)

    assert exc_info.value.code == "E_ALLOWLIST_INVALID"


def test_missing_allowlist_file_is_empty(tmp_path: Path) -> None:
    assert load_allowlist(tmp_path / "drift.ignore.json") is EMPTY_ALLOWLIST
    assert load_allowlist(None) is EMPTY_ALLOWLIST


def test_allowlist_file_round_trip(tmp_path: Path) -> None:
    path = tmp_path / "drift.ignore.json"
    path.write_text(json.dumps(["CONCEPT_LEGACY"]), encoding="utf-8")

    assert load_allowlist(path).concepts == frozenset({"CONCEPT_LEGACY"})


def test_unparseable_allowlist_file_is_configuration_error(tmp_path: Path) -> None:
    path = tmp_path / "drift.ignore.json"
    path.write_text("[CONCEPT_LEGACY", encoding="utf-8")

    with pytest.raises(ConfigurationError) as exc_info:
        load_allowlist(path)

    assert exc_info.value.detail.witness == (path.as_posix(),)


@pytest.mark.parametrize(
    "payload",
    [
        ["CONCEPT_LEGACY", "concept_legacy_typo"],
        ["LEGACY_WIDGET"],
        {"concepts": ["VALUESET_GLOBAL_OLD"]},
        {"valueSets": ["CONCEPT_LEGACY"]},
    ],
)
def test_entries_outside_their_namespace_are_rejected(payload: object) -> None:
    with pytest.raises(ConfigurationError) as exc_info:
        parse_allowlist(payload, source="scripts/drift.ignore.json")

    assert exc_info.value.code == "E_ALLOWLIST_INVALID"
    assert "must start with" in exc_info.value.detail.message
