from __future__ import annotations

import json
from datetime import datetime
from typing import Final, cast

from pydantic import BaseModel, ConfigDict, Field, field_validator

SNAPSHOT_VERSION: Final[str] = "1.0.0"
VOLATILE_SNAPSHOT_KEYS: frozenset[str] = frozenset(("exportedAt",))


def _sorted_unique_strings(value: object, *, field_name: str) -> tuple[str, ...]:
    if not isinstance(value, list | tuple | set | frozenset):
        raise ValueError(f"{field_name} must be a list of strings")
    entries: set[str] = set()
    for item in cast(list[object], list(value)):
        if not isinstance(item, str) or not item:
            raise ValueError(f"{field_name} entries must be non-empty strings")
        entries.add(item)
    return tuple(sorted(entries))


class ConceptRecord(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    concept_id: str = Field(min_length=1)
    is_active: bool = True
    category: str | None = None


class ValueSetRecord(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    value_set_id: str = Field(min_length=1)
    is_active: bool = True


class ValueRecord(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    value_set_id: str = Field(min_length=1)
    value_code: str = Field(min_length=1)
    display_label: str | None = None
    is_active: bool = True

    @property
    def key(self) -> tuple[str, str]:
        return (self.value_set_id, self.value_code)


class RegistrySnapshot(BaseModel):
    """Point-in-time export of the active registry.

    Identifier collections are normalized to sorted, duplicate-free tuples on
    construction, so two snapshots of the same registry state compare equal in
    every field except ``exported_at``. Unknown top-level keys in a persisted
    snapshot are ignored.
    """

    model_config = ConfigDict(extra="ignore", frozen=True, populate_by_name=True)

    concepts: tuple[str, ...] = ()
    value_sets: tuple[str, ...] = Field(default=(), alias="valueSets")
    values_by_set: dict[str, tuple[str, ...]] = Field(default_factory=dict, alias="valuesBySet")
    exported_at: str = Field(alias="exportedAt", min_length=1)
    snapshot_version: str = Field(default=SNAPSHOT_VERSION, alias="snapshotVersion", min_length=1)

    @field_validator("concepts", "value_sets", mode="before")
    @classmethod
    def _normalize_identifiers(cls, value: object) -> tuple[str, ...]:
        return _sorted_unique_strings(value, field_name="registry identifiers")

    @field_validator("values_by_set", mode="before")
    @classmethod
    def _normalize_values_by_set(cls, value: object) -> dict[str, tuple[str, ...]]:
        if not isinstance(value, dict):
            raise ValueError("valuesBySet must be a mapping of value set id to codes")
        raw = cast(dict[object, object], value)
        normalized: dict[str, tuple[str, ...]] = {}
        for key in sorted(raw, key=str):
            if not isinstance(key, str) or not key:
                raise ValueError("valuesBySet keys must be non-empty strings")
            normalized[key] = _sorted_unique_strings(raw[key], field_name=f"valuesBySet[{key}]")
        return normalized

    @field_validator("exported_at")
    @classmethod
    def _validate_exported_at(cls, value: str) -> str:
        try:
            datetime.fromisoformat(value)
        except ValueError as exc:
            raise ValueError(f"exportedAt must be an ISO-8601 timestamp: {value!r}") from exc
        return value

    @property
    def major_version(self) -> str:
        return self.snapshot_version.split(".", 1)[0]

    @property
    def value_count(self) -> int:
        return sum(len(codes) for codes in self.values_by_set.values())

    def to_payload(self) -> dict[str, object]:
        return cast(dict[str, object], self.model_dump(mode="json", by_alias=True))

    def content_payload(self) -> dict[str, object]:
        return {
            key: value
            for key, value in self.to_payload().items()
            if key not in VOLATILE_SNAPSHOT_KEYS
        }

    def to_json(self) -> str:
        return json.dumps(self.to_payload(), indent=2, ensure_ascii=True) + "\n"
