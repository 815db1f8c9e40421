from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from types import TracebackType
from typing import Final, Protocol, Self, cast, runtime_checkable

import httpx
from pydantic import BaseModel, ValidationError

from .constants import CONCEPT, CONCEPT_CATEGORY, VALUE, VALUESET
from .errors import GovernanceErrorCode, build_configuration_error
from .models import ConceptRecord, ValueRecord, ValueSetRecord

logger = logging.getLogger(__name__)

ENV_REGISTRY_URL: Final[str] = "NEXT_PUBLIC_SUPABASE_URL"
ENV_REGISTRY_KEY: Final[str] = "NEXT_PUBLIC_SUPABASE_ANON_KEY"
REQUIRED_ENV_KEYS: Final[tuple[str, ...]] = (ENV_REGISTRY_URL, ENV_REGISTRY_KEY)

CONCEPT_TABLE: Final[str] = "kernel_concept_registry"
VALUE_SET_TABLE: Final[str] = "kernel_value_set_registry"
VALUE_TABLE: Final[str] = "kernel_value_set_values"
DEFAULT_PAGE_SIZE: Final[int] = 1000


@dataclass(frozen=True, slots=True)
class SourceSettings:
    url: str
    api_key: str

    @classmethod
    def from_env(cls, environ: Mapping[str, str]) -> SourceSettings:
        missing = tuple(key for key in REQUIRED_ENV_KEYS if not environ.get(key, "").strip())
        if missing:
            raise build_configuration_error(
                GovernanceErrorCode.E_CONFIG_SOURCE_MISSING,
                f"missing registry source credentials; set {' and '.join(REQUIRED_ENV_KEYS)}",
                witness=missing,
            )
        return cls(
            url=environ[ENV_REGISTRY_URL].strip().rstrip("/"),
            api_key=environ[ENV_REGISTRY_KEY].strip(),
        )


@runtime_checkable
class RegistrySource(Protocol):
    def fetch_concepts(self) -> tuple[ConceptRecord, ...]: ...

    def fetch_value_sets(self) -> tuple[ValueSetRecord, ...]: ...

    def fetch_values(self) -> tuple[ValueRecord, ...]: ...

    def close(self) -> None: ...


class StaticRegistrySource:
    """Registry source backed by in-memory rows."""

    def __init__(
        self,
        *,
        concepts: Iterable[ConceptRecord] = (),
        value_sets: Iterable[ValueSetRecord] = (),
        values: Iterable[ValueRecord] = (),
    ) -> None:
        self._concepts = tuple(concepts)
        self._value_sets = tuple(value_sets)
        self._values = tuple(values)

    @classmethod
    def from_constants(cls) -> StaticRegistrySource:
        return cls(
            concepts=(
                ConceptRecord(concept_id=concept_id, category=CONCEPT_CATEGORY[concept_id])
                for concept_id in CONCEPT.values()
            ),
            value_sets=(ValueSetRecord(value_set_id=set_id) for set_id in VALUESET.values()),
            values=(
                ValueRecord(value_set_id=VALUESET[set_key], value_code=code, display_label=label)
                for set_key, members in VALUE.items()
                for label, code in members.items()
            ),
        )

    def fetch_concepts(self) -> tuple[ConceptRecord, ...]:
        return self._concepts

    def fetch_value_sets(self) -> tuple[ValueSetRecord, ...]:
        return self._value_sets

    def fetch_values(self) -> tuple[ValueRecord, ...]:
        return self._values

    def close(self) -> None:
        return None

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()


class SupabaseRegistrySource:
    """Reads active registry rows through the PostgREST endpoint of a Supabase project.

    Each collection is fetched in ``page_size`` slices ordered by its key so
    pagination is stable. Any transport, HTTP status or payload problem is
    raised as a configuration error; nothing is retried.
    """

    def __init__(
        self,
        settings: SourceSettings,
        *,
        transport: httpx.BaseTransport | None = None,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> None:
        if page_size <= 0:
            raise ValueError("page_size must be positive")
        self._page_size = page_size
        self._client = httpx.Client(
            base_url=f"{settings.url}/rest/v1",
            headers={
                "apikey": settings.api_key,
                "Authorization": f"Bearer {settings.api_key}",
                "Accept": "application/json",
            },
            transport=transport,
        )

    def fetch_concepts(self) -> tuple[ConceptRecord, ...]:
        return self._fetch_records(
            CONCEPT_TABLE,
            select="concept_id,is_active",
            order="concept_id.asc",
            model=ConceptRecord,
        )

    def fetch_value_sets(self) -> tuple[ValueSetRecord, ...]:
        return self._fetch_records(
            VALUE_SET_TABLE,
            select="value_set_id,is_active",
            order="value_set_id.asc",
            model=ValueSetRecord,
        )

    def fetch_values(self) -> tuple[ValueRecord, ...]:
        return self._fetch_records(
            VALUE_TABLE,
            select="value_set_id,value_code,is_active",
            order="value_set_id.asc,value_code.asc",
            model=ValueRecord,
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def _fetch_records[R: BaseModel](
        self,
        table: str,
        *,
        select: str,
        order: str,
        model: type[R],
    ) -> tuple[R, ...]:
        rows = self._fetch_rows(table, select=select, order=order)
        try:
            records = tuple(model.model_validate(row) for row in rows)
        except ValidationError as exc:
            raise build_configuration_error(
                GovernanceErrorCode.E_SOURCE_FETCH_FAILED,
                f"registry table '{table}' returned malformed rows: {exc.error_count()} error(s)",
                witness=(table,),
            ) from exc
        logger.info("fetched %d row(s) from %s", len(records), table)
        return records

    def _fetch_rows(self, table: str, *, select: str, order: str) -> list[object]:
        rows: list[object] = []
        offset = 0
        while True:
            page = self._fetch_page(table, select=select, order=order, offset=offset)
            rows.extend(page)
            if len(page) < self._page_size:
                return rows
            offset += self._page_size

    def _fetch_page(self, table: str, *, select: str, order: str, offset: int) -> list[object]:
        params = {
            "select": select,
            "is_active": "eq.true",
            "order": order,
            "limit": str(self._page_size),
            "offset": str(offset),
        }
        try:
            response = self._client.get(f"/{table}", params=params)
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as exc:
            raise build_configuration_error(
                GovernanceErrorCode.E_SOURCE_FETCH_FAILED,
                f"failed to fetch '{table}': HTTP {exc.response.status_code}",
                witness=(table, str(exc.response.status_code)),
            ) from exc
        except httpx.HTTPError as exc:
            raise build_configuration_error(
                GovernanceErrorCode.E_SOURCE_FETCH_FAILED,
                f"failed to fetch '{table}': {exc}",
                witness=(table, type(exc).__name__),
            ) from exc
        except ValueError as exc:
            raise build_configuration_error(
                GovernanceErrorCode.E_SOURCE_FETCH_FAILED,
                f"registry table '{table}' returned a non-JSON payload",
                witness=(table,),
            ) from exc

        if not isinstance(payload, list):
            raise build_configuration_error(
                GovernanceErrorCode.E_SOURCE_FETCH_FAILED,
                f"registry table '{table}' must return a JSON array",
                witness=(table,),
            )
        return cast(list[object], payload)
