from __future__ import annotations

import json
import logging
import os
import sys
from collections.abc import Mapping, Sequence
from contextlib import closing
from enum import StrEnum
from pathlib import Path
from typing import Final

import typer

from kernelgov.config import DriftProfile, load_profile
from kernelgov.drift import (
    EXIT_CONFIGURATION_ERROR,
    EXIT_SNAPSHOT_MISSING,
    DriftReport,
    RegistryMode,
    check,
    derive_exit_code,
    load_allowlist,
    scan_profile,
)
from kernelgov.registry import (
    GovernanceError,
    GovernanceErrorCode,
    RegistrySnapshot,
    RegistrySource,
    SnapshotMissingError,
    SourceSettings,
    StaticRegistrySource,
    SupabaseRegistrySource,
    build_snapshot,
    export_snapshot,
    load_snapshot,
    snapshot_content_id,
)
from kernelgov.registry.constants import validate_constant_counts
from kernelgov.registry.errors import build_configuration_error

logger = logging.getLogger(__name__)

app = typer.Typer(help="Kernel registry snapshot export and drift governance CLI")

_REPORT_SCHEMA_ID: Final[str] = "kernelgov/drift_report_v1"
_REPORT_SCHEMA_VERSION: Final[int] = 1
_LOG_FORMAT: Final[str] = "%(levelname)s %(name)s: %(message)s"

_PROFILE_OPTION = typer.Option("root", "--profile", help="Drift profile: root|portal")
_REPO_ROOT_OPTION = typer.Option(
    Path("."),
    "--repo-root",
    help="Project root that profile paths are relative to",
    show_default=True,
)
_CONFIG_OPTION = typer.Option(None, "--config", help="Profile configuration file (YAML)")


class ExportSource(StrEnum):
    LIVE = "live"
    CONSTANTS = "constants"


def _read_environment() -> Mapping[str, str]:
    return os.environ


def _open_live_source(settings: SourceSettings) -> RegistrySource:
    return SupabaseRegistrySource(settings)


def _open_constants_source() -> RegistrySource:
    errors = validate_constant_counts()
    if errors:
        raise build_configuration_error(
            GovernanceErrorCode.E_CONFIG_INVALID,
            "registry constant tables are inconsistent: " + "; ".join(errors),
        )
    return StaticRegistrySource.from_constants()


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format=_LOG_FORMAT,
        stream=sys.stderr,
    )
    logging.getLogger("kernelgov").setLevel(logging.INFO if verbose else logging.WARNING)


@app.callback()
def main_callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log progress to stderr"),
) -> None:
    """Kernel registry drift governance."""
    _configure_logging(verbose)


@app.command("export-snapshot")
def export_snapshot_command(
    source: ExportSource = typer.Option(
        ExportSource.LIVE,
        "--source",
        help="Registry source: live|constants",
        show_default=True,
    ),
    profile: str = _PROFILE_OPTION,
    output: Path | None = typer.Option(None, "--output", help="Snapshot path override"),
    repo_root: Path = _REPO_ROOT_OPTION,
    config: Path | None = _CONFIG_OPTION,
) -> None:
    """Export the active registry to a snapshot file."""
    try:
        drift_profile = load_profile(profile, repo_root=repo_root, config_path=config)
        target = output if output is not None else drift_profile.resolve_snapshot_path(repo_root)
        if source is ExportSource.LIVE:
            settings = SourceSettings.from_env(_read_environment())
            registry_source = _open_live_source(settings)
        else:
            registry_source = _open_constants_source()
        with closing(registry_source):
            snapshot = export_snapshot(registry_source, target)
    except GovernanceError as exc:
        _emit_error(exc, json_output=False)
        raise typer.Exit(code=_error_exit_code(exc)) from exc

    typer.echo(
        "SNAPSHOT"
        f" path={target.as_posix()}"
        f" snapshot_id={snapshot_content_id(snapshot)}"
        f" concepts={len(snapshot.concepts)}"
        f" value_sets={len(snapshot.value_sets)}"
        f" values={snapshot.value_count}"
        f" exported_at={snapshot.exported_at}"
    )


@app.command("check-drift")
def check_drift_command(
    snapshot_mode: bool = typer.Option(
        False,
        "--snapshot",
        help="Check against a snapshot file (default mode)",
    ),
    live: bool = typer.Option(False, "--live", help="Check against the live registry source"),
    snapshot_path: Path | None = typer.Option(
        None,
        "--snapshot-path",
        help="Snapshot file override for snapshot mode",
    ),
    strict: bool = typer.Option(False, "--strict", help="Fail on report warnings too"),
    json_output: bool = typer.Option(False, "--json", help="Emit a machine-readable report"),
    profile: str = _PROFILE_OPTION,
    allowlist: Path | None = typer.Option(None, "--allowlist", help="Allowlist file override"),
    repo_root: Path = _REPO_ROOT_OPTION,
    config: Path | None = _CONFIG_OPTION,
) -> None:
    """Scan application source for registry tokens that have no registry entry."""
    try:
        mode = _resolve_mode(live=live, snapshot_mode=snapshot_mode, snapshot_path=snapshot_path)
        drift_profile = load_profile(profile, repo_root=repo_root, config_path=config)
        allowlist_path = (
            allowlist if allowlist is not None else drift_profile.resolve_allowlist_path(repo_root)
        )
        allowed = load_allowlist(allowlist_path)
        registry_snapshot = _load_registry(
            mode,
            profile=drift_profile,
            repo_root=repo_root,
            snapshot_path=snapshot_path,
        )
        scan_result = scan_profile(drift_profile, repo_root=repo_root)
        logger.info(
            "scanned %d file(s): %d concept token(s), %d value set token(s)",
            scan_result.files_scanned,
            len(scan_result.concept_tokens),
            len(scan_result.valueset_tokens),
        )
        report = check(
            registry_snapshot,
            scan_result,
            allowed,
            source=mode,
            allowlist_hint=_allowlist_hint(allowlist, drift_profile),
        )
    except GovernanceError as exc:
        _emit_error(exc, json_output=json_output)
        raise typer.Exit(code=_error_exit_code(exc)) from exc

    exit_code = derive_exit_code(report, strict=strict)
    if json_output:
        typer.echo(_build_report_json(report, strict=strict, exit_code=exit_code))
    else:
        _print_report(report, exit_code=exit_code)
    raise typer.Exit(code=exit_code)


def _resolve_mode(*, live: bool, snapshot_mode: bool, snapshot_path: Path | None) -> RegistryMode:
    if live and (snapshot_mode or snapshot_path is not None):
        raise build_configuration_error(
            GovernanceErrorCode.E_CONFIG_MODE_CONFLICT,
            "--live cannot be combined with --snapshot or --snapshot-path",
        )
    return RegistryMode.LIVE if live else RegistryMode.SNAPSHOT


def _load_registry(
    mode: RegistryMode,
    *,
    profile: DriftProfile,
    repo_root: Path,
    snapshot_path: Path | None,
) -> RegistrySnapshot:
    if mode is RegistryMode.LIVE:
        settings = SourceSettings.from_env(_read_environment())
        with closing(_open_live_source(settings)) as registry_source:
            return build_snapshot(registry_source)

    path = snapshot_path if snapshot_path is not None else profile.resolve_snapshot_path(repo_root)
    snapshot = load_snapshot(path)
    logger.info("loaded snapshot %s (exported %s)", path.as_posix(), snapshot.exported_at)
    return snapshot


def _allowlist_hint(override: Path | None, profile: DriftProfile) -> str:
    if override is not None:
        return override.as_posix()
    if profile.allowlist_path is not None:
        return profile.allowlist_path
    return "an allowlist file (--allowlist)"


def _error_exit_code(exc: GovernanceError) -> int:
    if isinstance(exc, SnapshotMissingError):
        return EXIT_SNAPSHOT_MISSING
    return EXIT_CONFIGURATION_ERROR


def _emit_error(exc: GovernanceError, *, json_output: bool) -> None:
    exit_code = _error_exit_code(exc)
    if json_output:
        payload: dict[str, object] = {
            "schema": _REPORT_SCHEMA_ID,
            "schemaVersion": _REPORT_SCHEMA_VERSION,
            "status": "error",
            "exitCode": exit_code,
            "error": {"code": exc.detail.code, "message": exc.detail.message},
        }
        typer.echo(json.dumps(payload, ensure_ascii=True, separators=(",", ":")))
        return
    typer.echo(f"ERROR code={exc.detail.code} message={exc.detail.message}", err=True)


def _report_status(report: DriftReport, *, exit_code: int) -> str:
    if report.has_drift:
        return "drift"
    if exit_code != 0:
        return "strict_warnings"
    return "clean"


def _build_report_json(report: DriftReport, *, strict: bool, exit_code: int) -> str:
    payload: dict[str, object] = {
        "schema": _REPORT_SCHEMA_ID,
        "schemaVersion": _REPORT_SCHEMA_VERSION,
        "status": _report_status(report, exit_code=exit_code),
        "exitCode": exit_code,
        "strict": strict,
        **report.model_dump(mode="json", by_alias=True),
    }
    return json.dumps(payload, ensure_ascii=True, separators=(",", ":"))


def _format_files(files: Sequence[str]) -> str:
    return ",".join(files) or "none"


def _print_report(report: DriftReport, *, exit_code: int) -> None:
    for detail in report.details:
        typer.echo(
            "ORPHAN"
            f" namespace={detail.namespace}"
            f" token={detail.token}"
            f" files={_format_files(detail.files)}"
        )
    for warning in report.warnings:
        typer.echo(
            "WARN"
            f" code={warning.code}"
            f" subject={warning.subject}"
            f" message={warning.message}"
        )
    for recommendation in report.recommendations:
        typer.echo(f"RECOMMEND {recommendation}")
    typer.echo(
        "SUMMARY"
        f" status={_report_status(report, exit_code=exit_code)}"
        f" source={report.source}"
        f" orphans={report.orphan_count}"
        f" orphan_concepts={len(report.orphan_concepts)}"
        f" orphan_value_sets={len(report.orphan_value_sets)}"
        f" suppressed={len(report.suppressed_tokens)}"
        f" warnings={len(report.warnings)}"
        f" files_scanned={report.files_scanned}"
        f" checked_at={report.checked_at}"
    )


def main() -> None:
    app()
