from __future__ import annotations

from collections.abc import Callable, Sequence
from enum import StrEnum
from typing import Final

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from kernelgov.registry.exporter import utc_timestamp
from kernelgov.registry.models import SNAPSHOT_VERSION, RegistrySnapshot

from .allowlist import EMPTY_ALLOWLIST, Allowlist
from .scanner import ScanResult

EXIT_CLEAN: Final[int] = 0
EXIT_DRIFT: Final[int] = 1
EXIT_CONFIGURATION_ERROR: Final[int] = 2
EXIT_SNAPSHOT_MISSING: Final[int] = 3

# Orphans whose name contains one of these markers are grouped as P1 registry candidates.
P1_CANDIDATE_GROUPS: Final[tuple[tuple[str, ...], ...]] = (
    ("CLAIM",),
    ("CASE",),
    ("APPROVAL",),
    ("STATEMENT", "RECONCIL", "MATCHING"),
)
_DEFAULT_ALLOWLIST_HINT: Final[str] = "the profile allowlist file"


class Namespace(StrEnum):
    CONCEPT = "concept"
    VALUESET = "valueset"


class RegistryMode(StrEnum):
    SNAPSHOT = "snapshot"
    LIVE = "live"


class WarningCode(StrEnum):
    W_SCAN_FILE_UNREADABLE = "W_SCAN_FILE_UNREADABLE"
    W_ALLOWLIST_STALE = "W_ALLOWLIST_STALE"
    W_SNAPSHOT_VERSION_UNKNOWN = "W_SNAPSHOT_VERSION_UNKNOWN"


class _ReportModel(BaseModel):
    model_config = ConfigDict(
        extra="forbid",
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


class ReportWarning(_ReportModel):
    code: WarningCode
    subject: str = Field(min_length=1)
    message: str = Field(min_length=1)


class OrphanDetail(_ReportModel):
    namespace: Namespace
    token: str = Field(min_length=1)
    files: tuple[str, ...] = ()


class DriftReport(_ReportModel):
    source: RegistryMode
    snapshot_version: str
    snapshot_exported_at: str
    checked_at: str = Field(min_length=1)
    files_scanned: int = Field(ge=0)
    referenced_concepts: tuple[str, ...]
    referenced_value_sets: tuple[str, ...]
    orphan_concepts: tuple[str, ...]
    orphan_value_sets: tuple[str, ...]
    suppressed_tokens: tuple[str, ...] = ()
    details: tuple[OrphanDetail, ...] = ()
    warnings: tuple[ReportWarning, ...] = ()
    recommendations: tuple[str, ...] = ()
    has_drift: bool

    @model_validator(mode="after")
    def _validate_has_drift(self) -> DriftReport:
        if self.has_drift != bool(self.orphan_concepts or self.orphan_value_sets):
            raise ValueError("has_drift must be true exactly when orphan tokens exist")
        return self

    @property
    def orphan_count(self) -> int:
        return len(self.orphan_concepts) + len(self.orphan_value_sets)


def _partition_missing(
    tokens: frozenset[str],
    *,
    registered: frozenset[str],
    allowlist: Allowlist,
) -> tuple[tuple[str, ...], tuple[str, ...]]:
    missing = tokens - registered
    suppressed = frozenset(token for token in missing if token in allowlist)
    return (tuple(sorted(missing - suppressed)), tuple(sorted(suppressed)))


def _stale_allowlist_warnings(
    allowlist: Allowlist,
    *,
    snapshot: RegistrySnapshot,
    scan: ScanResult,
) -> list[ReportWarning]:
    registered = frozenset(snapshot.concepts) | frozenset(snapshot.value_sets)
    referenced = scan.concept_tokens | scan.valueset_tokens
    warnings: list[ReportWarning] = []
    for token in allowlist.tokens:
        if token in registered:
            reason = "is registered; the allowlist entry is redundant"
        elif token not in referenced:
            reason = "is not referenced by any scanned file"
        else:
            continue
        warnings.append(
            ReportWarning(
                code=WarningCode.W_ALLOWLIST_STALE,
                subject=token,
                message=f"allowlisted token {token} {reason}",
            )
        )
    return warnings


def build_recommendations(
    orphan_concepts: Sequence[str],
    orphan_value_sets: Sequence[str],
    *,
    allowlist_hint: str = _DEFAULT_ALLOWLIST_HINT,
) -> tuple[str, ...]:
    if not orphan_concepts and not orphan_value_sets:
        return ("All references are valid. No drift detected.",)

    recommendations: list[str] = []
    if orphan_concepts:
        recommendations.append(f"Drift detected: {len(orphan_concepts)} missing concept(s).")
    if orphan_value_sets:
        recommendations.append(f"Drift detected: {len(orphan_value_sets)} missing value set(s).")

    orphans = (*orphan_concepts, *orphan_value_sets)
    for markers in P1_CANDIDATE_GROUPS:
        grouped = [token for token in orphans if any(marker in token for marker in markers)]
        if grouped:
            recommendations.append(f"P1 candidate: {', '.join(grouped)} - add via migration.")
    recommendations.append(
        f"To intentionally allow a token, add it to {allowlist_hint} (with review)."
    )
    return tuple(recommendations)


def check(
    snapshot: RegistrySnapshot,
    scan: ScanResult,
    allowlist: Allowlist | None = None,
    *,
    source: RegistryMode = RegistryMode.SNAPSHOT,
    allowlist_hint: str = _DEFAULT_ALLOWLIST_HINT,
    clock: Callable[[], str] = utc_timestamp,
) -> DriftReport:
    """Cross-reference scanned tokens against the registry snapshot.

    Membership is exact string equality. Allowlisted tokens are removed before
    drift is decided and are reported only as ``suppressed_tokens``.
    ``allowlist_hint`` names the allowlist file in the recommendations.
    """
    active_allowlist = allowlist if allowlist is not None else EMPTY_ALLOWLIST
    orphan_concepts, suppressed_concepts = _partition_missing(
        scan.concept_tokens,
        registered=frozenset(snapshot.concepts),
        allowlist=active_allowlist,
    )
    orphan_value_sets, suppressed_value_sets = _partition_missing(
        scan.valueset_tokens,
        registered=frozenset(snapshot.value_sets),
        allowlist=active_allowlist,
    )

    details = [
        OrphanDetail(namespace=Namespace.CONCEPT, token=token, files=scan.files_for(token))
        for token in orphan_concepts
    ] + [
        OrphanDetail(namespace=Namespace.VALUESET, token=token, files=scan.files_for(token))
        for token in orphan_value_sets
    ]

    warnings = [
        ReportWarning(
            code=WarningCode.W_SCAN_FILE_UNREADABLE,
            subject=item.path,
            message=f"file could not be read ({item.reason}); its tokens were not checked",
        )
        for item in scan.unreadable_files
    ]
    warnings.extend(_stale_allowlist_warnings(active_allowlist, snapshot=snapshot, scan=scan))
    if snapshot.major_version != SNAPSHOT_VERSION.split(".", 1)[0]:
        warnings.append(
            ReportWarning(
                code=WarningCode.W_SNAPSHOT_VERSION_UNKNOWN,
                subject=snapshot.snapshot_version,
                message=(
                    f"snapshot version {snapshot.snapshot_version} differs from supported "
                    f"{SNAPSHOT_VERSION}; unknown fields were ignored"
                ),
            )
        )

    return DriftReport(
        source=source,
        snapshot_version=snapshot.snapshot_version,
        snapshot_exported_at=snapshot.exported_at,
        checked_at=clock(),
        files_scanned=scan.files_scanned,
        referenced_concepts=tuple(sorted(scan.concept_tokens)),
        referenced_value_sets=tuple(sorted(scan.valueset_tokens)),
        orphan_concepts=orphan_concepts,
        orphan_value_sets=orphan_value_sets,
        suppressed_tokens=tuple(sorted(suppressed_concepts + suppressed_value_sets)),
        details=tuple(details),
        warnings=tuple(warnings),
        recommendations=build_recommendations(
            orphan_concepts,
            orphan_value_sets,
            allowlist_hint=allowlist_hint,
        ),
        has_drift=bool(orphan_concepts or orphan_value_sets),
    )


def derive_exit_code(report: DriftReport, *, strict: bool = False) -> int:
    """Map a completed check to its exit code.

    Strict mode leaves orphan classification untouched and fails on any report
    warning as well.
    """
    if report.has_drift:
        return EXIT_DRIFT
    if strict and report.warnings:
        return EXIT_DRIFT
    return EXIT_CLEAN
