from __future__ import annotations

import httpx
import pytest

from kernelgov.registry import (
    ConfigurationError,
    RegistrySource,
    SourceSettings,
    StaticRegistrySource,
    SupabaseRegistrySource,
    build_snapshot,
)
from kernelgov.registry.sources import ENV_REGISTRY_KEY, ENV_REGISTRY_URL

pytestmark = pytest.mark.unit

_SETTINGS = SourceSettings(url="https://registry.example.test", api_key="anon-key")


def _json_transport(tables: dict[str, list[dict[str, object]]], seen: list[httpx.Request]):
    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        table = request.url.path.rsplit("/", 1)[-1]
        rows = tables.get(table, [])
        offset = int(request.url.params["offset"])
        limit = int(request.url.params["limit"])
        return httpx.Response(200, json=rows[offset : offset + limit])

    return httpx.MockTransport(handler)


def test_settings_require_both_environment_variables() -> None:
    with pytest.raises(ConfigurationError) as exc_info:
        SourceSettings.from_env({ENV_REGISTRY_URL: "https://registry.example.test"})

    assert exc_info.value.code == "E_CONFIG_SOURCE_MISSING"
    assert exc_info.value.detail.witness == (ENV_REGISTRY_KEY,)


def test_settings_treat_blank_values_as_missing() -> None:
    with pytest.raises(ConfigurationError) as exc_info:
        SourceSettings.from_env({ENV_REGISTRY_URL: "  ", ENV_REGISTRY_KEY: ""})

    assert exc_info.value.detail.witness == (ENV_REGISTRY_URL, ENV_REGISTRY_KEY)


def test_settings_strip_trailing_slash() -> None:
    settings = SourceSettings.from_env(
        {ENV_REGISTRY_URL: "https://registry.example.test/", ENV_REGISTRY_KEY: " key "}
    )

    assert settings == SourceSettings(url="https://registry.example.test", api_key="key")


def test_sources_satisfy_protocol() -> None:
    assert isinstance(StaticRegistrySource(), RegistrySource)
    transport = httpx.MockTransport(lambda _: httpx.Response(200, json=[]))
    with SupabaseRegistrySource(_SETTINGS, transport=transport) as source:
        assert isinstance(source, RegistrySource)


def test_supabase_source_requests_active_rows_with_credentials() -> None:
    seen: list[httpx.Request] = []
    transport = _json_transport(
        {
            "kernel_concept_registry": [
                {"concept_id": "CONCEPT_BANK", "is_active": True, "description": "ignored"},
            ],
        },
        seen,
    )

    with SupabaseRegistrySource(_SETTINGS, transport=transport) as source:
        concepts = source.fetch_concepts()

    assert [record.concept_id for record in concepts] == ["CONCEPT_BANK"]
    request = seen[0]
    assert request.url.path == "/rest/v1/kernel_concept_registry"
    assert request.url.params["is_active"] == "eq.true"
    assert request.url.params["order"] == "concept_id.asc"
    assert request.headers["apikey"] == "anon-key"
    assert request.headers["Authorization"] == "Bearer anon-key"


def test_supabase_source_paginates_until_short_page() -> None:
    seen: list[httpx.Request] = []
    rows = [{"value_set_id": f"VALUESET_GLOBAL_{index:02d}", "is_active": True} for index in range(5)]
    transport = _json_transport({"kernel_value_set_registry": rows}, seen)

    with SupabaseRegistrySource(_SETTINGS, transport=transport, page_size=2) as source:
        value_sets = source.fetch_value_sets()

    assert len(value_sets) == 5
    assert [request.url.params["offset"] for request in seen] == ["0", "2", "4"]


def test_supabase_source_builds_snapshot_end_to_end() -> None:
    seen: list[httpx.Request] = []
    transport = _json_transport(
        {
            "kernel_concept_registry": [{"concept_id": "CONCEPT_VENDOR", "is_active": True}],
            "kernel_value_set_registry": [
                {"value_set_id": "VALUESET_GLOBAL_CURRENCY", "is_active": True},
            ],
            "kernel_value_set_values": [
                {"value_set_id": "VALUESET_GLOBAL_CURRENCY", "value_code": "USD", "is_active": True},
                {"value_set_id": "VALUESET_GLOBAL_CURRENCY", "value_code": "USD", "is_active": True},
            ],
        },
        seen,
    )

    with SupabaseRegistrySource(_SETTINGS, transport=transport) as source:
        snapshot = build_snapshot(source, clock=lambda: "2026-02-02T00:00:00.000Z")

    assert snapshot.concepts == ("CONCEPT_VENDOR",)
    assert snapshot.values_by_set == {"VALUESET_GLOBAL_CURRENCY": ("USD",)}


@pytest.mark.parametrize(
    ("response", "fragment"),
    [
        (httpx.Response(401, json={"message": "bad key"}), "HTTP 401"),
        (httpx.Response(200, text="<html>"), "non-JSON"),
        (httpx.Response(200, json={"rows": []}), "JSON array"),
        (httpx.Response(200, json=[{"is_active": True}]), "malformed rows"),
    ],
)
def test_supabase_source_failures_are_configuration_errors(
    response: httpx.Response, fragment: str
) -> None:
    transport = httpx.MockTransport(lambda _: response)

    with SupabaseRegistrySource(_SETTINGS, transport=transport) as source:
        with pytest.raises(ConfigurationError) as exc_info:
            source.fetch_concepts()

    assert exc_info.value.code == "E_SOURCE_FETCH_FAILED"
    assert fragment in exc_info.value.detail.message


def test_supabase_source_transport_error_is_not_retried() -> None:
    calls: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        raise httpx.ConnectError("connection refused", request=request)

    with SupabaseRegistrySource(_SETTINGS, transport=httpx.MockTransport(handler)) as source:
        with pytest.raises(ConfigurationError) as exc_info:
            source.fetch_values()

    assert exc_info.value.detail.witness == ("kernel_value_set_values", "ConnectError")
    assert len(calls) == 1


def test_page_size_must_be_positive() -> None:
    with pytest.raises(ValueError):
        SupabaseRegistrySource(_SETTINGS, page_size=0)
