from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Final, cast

from kernelgov.registry.errors import GovernanceErrorCode, build_configuration_error

from .scanner import CONCEPT_PREFIX, VALUESET_PREFIX


@dataclass(frozen=True, slots=True)
class Allowlist:
    concepts: frozenset[str] = frozenset()
    value_sets: frozenset[str] = frozenset()

    @classmethod
    def from_tokens(cls, tokens: list[str] | tuple[str, ...]) -> Allowlist:
        return cls(
            concepts=frozenset(token for token in tokens if token.startswith(CONCEPT_PREFIX)),
            value_sets=frozenset(token for token in tokens if token.startswith(VALUESET_PREFIX)),
        )

    @property
    def tokens(self) -> tuple[str, ...]:
        return tuple(sorted(self.concepts | self.value_sets))

    def __contains__(self, token: object) -> bool:
        return token in self.concepts or token in self.value_sets

    def __len__(self) -> int:
        return len(self.concepts) + len(self.value_sets)


EMPTY_ALLOWLIST: Final[Allowlist] = Allowlist()


def _coerce_tokens(
    value: object,
    *,
    field_name: str,
    source: str,
    prefixes: tuple[str, ...],
) -> tuple[str, ...]:
    if not isinstance(value, list):
        raise build_configuration_error(
            GovernanceErrorCode.E_ALLOWLIST_INVALID,
            f"{source}: {field_name} must be a list of tokens",
        )
    tokens: list[str] = []
    for item in cast(list[object], value):
        if not isinstance(item, str) or not item.strip():
            raise build_configuration_error(
                GovernanceErrorCode.E_ALLOWLIST_INVALID,
                f"{source}: {field_name} entries must be non-empty strings",
            )
        token = item.strip()
        if not token.startswith(prefixes):
            raise build_configuration_error(
                GovernanceErrorCode.E_ALLOWLIST_INVALID,
                f"{source}: {field_name} entry {token!r} must start with {' or '.join(prefixes)}",
                witness=(token,),
            )
        tokens.append(token)
    return tuple(tokens)


def parse_allowlist(payload: object, *, source: str = "allowlist") -> Allowlist:
    """Accept either a flat token array or ``{"concepts": [...], "valueSets": [...]}``."""
    if isinstance(payload, list):
        tokens = _coerce_tokens(
            payload,
            field_name="tokens",
            source=source,
            prefixes=(CONCEPT_PREFIX, VALUESET_PREFIX),
        )
        return Allowlist.from_tokens(tokens)
    if not isinstance(payload, dict):
        raise build_configuration_error(
            GovernanceErrorCode.E_ALLOWLIST_INVALID,
            f"{source}: allowlist must be a JSON array or object",
        )
    mapping = cast(dict[str, object], payload)
    concepts = _coerce_tokens(
        mapping.get("concepts", []),
        field_name="concepts",
        source=source,
        prefixes=(CONCEPT_PREFIX,),
    )
    value_sets = _coerce_tokens(
        mapping.get("valueSets", []),
        field_name="valueSets",
        source=source,
        prefixes=(VALUESET_PREFIX,),
    )
    return Allowlist(concepts=frozenset(concepts), value_sets=frozenset(value_sets))


def load_allowlist(path: Path | None) -> Allowlist:
    if path is None or not path.exists():
        return EMPTY_ALLOWLIST
    source = path.as_posix()
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise build_configuration_error(
            GovernanceErrorCode.E_ALLOWLIST_INVALID,
            f"cannot load allowlist {source}: {exc}",
            witness=(source,),
        ) from exc
    return parse_allowlist(payload, source=source)
