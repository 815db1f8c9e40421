from __future__ import annotations

from pathlib import Path
from typing import Final, cast

import yaml  # type: ignore[import-untyped]
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from kernelgov.registry.errors import GovernanceErrorCode, build_configuration_error
from kernelgov.registry.exporter import DEFAULT_SNAPSHOT_PATH

CONFIG_FILE_NAME: Final[str] = ".kernelgov.yaml"
SOURCE_EXTENSIONS: Final[tuple[str, ...]] = (".ts", ".tsx", ".js", ".jsx")
_CONFIG_ALLOWED_KEYS: Final[tuple[str, ...]] = ("profiles",)


class DriftProfile(BaseModel):
    """Where to scan and which registry artifacts to use for one drift check.

    Paths are project-relative POSIX strings. ``scan_dirs`` narrows the scan to
    sub-directories of ``scan_root``; an empty tuple scans all of it.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    name: str = Field(min_length=1)
    scan_root: str = "."
    scan_dirs: tuple[str, ...] = ()
    extensions: tuple[str, ...] = SOURCE_EXTENSIONS
    exclude_dirs: tuple[str, ...] = ()
    exclude_globs: tuple[str, ...] = ()
    skip_hidden_dirs: bool = False
    snapshot_path: str = DEFAULT_SNAPSHOT_PATH
    allowlist_path: str | None = None

    @field_validator("extensions")
    @classmethod
    def _validate_extensions(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        if not value:
            raise ValueError("extensions must not be empty")
        for extension in value:
            if not extension.startswith("."):
                raise ValueError(f"extension must start with '.': {extension!r}")
        return value

    def resolve_scan_root(self, repo_root: Path) -> Path:
        return (repo_root / self.scan_root).resolve()

    def resolve_snapshot_path(self, repo_root: Path) -> Path:
        return repo_root / self.snapshot_path

    def resolve_allowlist_path(self, repo_root: Path) -> Path | None:
        if self.allowlist_path is None:
            return None
        return repo_root / self.allowlist_path


ROOT_PROFILE: Final[DriftProfile] = DriftProfile(
    name="root",
    exclude_dirs=("node_modules", ".next", "dist", "build", ".git", "coverage"),
    exclude_globs=(
        "**/audit-kernel-drift.ts",
        "**/check-l0-drift.ts",
        "**/*.test.ts",
        "**/*.test.tsx",
        "**/*.spec.ts",
        "**/*.spec.tsx",
        "docs/**",
    ),
    allowlist_path="scripts/drift.ignore.json",
)

PORTAL_PROFILE: Final[DriftProfile] = DriftProfile(
    name="portal",
    scan_root="apps/portal",
    scan_dirs=("app", "components", "lib"),
    exclude_dirs=("node_modules", ".next", "dist", ".turbo"),
    exclude_globs=(
        "**/check-l0-drift.ts",
        "**/*.test.ts",
        "**/*.test.tsx",
        "**/*.spec.ts",
        "**/*.spec.tsx",
    ),
    skip_hidden_dirs=True,
    allowlist_path="apps/portal/scripts/drift.ignore.json",
)

BUILTIN_PROFILES: Final[dict[str, DriftProfile]] = {
    ROOT_PROFILE.name: ROOT_PROFILE,
    PORTAL_PROFILE.name: PORTAL_PROFILE,
}


def _load_config_mapping(path: Path) -> dict[str, object]:
    try:
        payload = yaml.safe_load(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise build_configuration_error(
            GovernanceErrorCode.E_CONFIG_INVALID,
            f"cannot read configuration {path.as_posix()}: {exc}",
        ) from exc
    except yaml.YAMLError as exc:
        raise build_configuration_error(
            GovernanceErrorCode.E_CONFIG_INVALID,
            f"invalid YAML payload: {path.as_posix()}: {exc}",
        ) from exc

    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise build_configuration_error(
            GovernanceErrorCode.E_CONFIG_INVALID,
            f"configuration must be a mapping: {path.as_posix()}",
        )
    extras = sorted(str(key) for key in payload if key not in _CONFIG_ALLOWED_KEYS)
    if extras:
        raise build_configuration_error(
            GovernanceErrorCode.E_CONFIG_INVALID,
            f"configuration has unsupported keys: {', '.join(extras)}",
        )
    return cast(dict[str, object], payload)


def _profile_overrides(config: dict[str, object], name: str) -> dict[str, object] | None:
    profiles = config.get("profiles", {})
    if not isinstance(profiles, dict):
        raise build_configuration_error(
            GovernanceErrorCode.E_CONFIG_INVALID,
            "configuration 'profiles' must be a mapping of profile name to settings",
        )
    overrides = profiles.get(name)
    if overrides is None:
        return None
    if not isinstance(overrides, dict):
        raise build_configuration_error(
            GovernanceErrorCode.E_CONFIG_INVALID,
            f"profile '{name}' settings must be a mapping",
        )
    return cast(dict[str, object], overrides)


def load_profile(
    name: str,
    *,
    repo_root: Path,
    config_path: Path | None = None,
) -> DriftProfile:
    target = config_path if config_path is not None else repo_root / CONFIG_FILE_NAME
    if config_path is not None and not target.is_file():
        raise build_configuration_error(
            GovernanceErrorCode.E_CONFIG_INVALID,
            f"configuration file not found: {target.as_posix()}",
        )
    config = _load_config_mapping(target) if target.is_file() else {}
    overrides = _profile_overrides(config, name)
    base = BUILTIN_PROFILES.get(name)

    if overrides is None:
        if base is None:
            configured = cast(dict[str, object], config.get("profiles", {}))
            known = sorted(set(BUILTIN_PROFILES) | set(configured))
            raise build_configuration_error(
                GovernanceErrorCode.E_CONFIG_INVALID,
                f"unknown drift profile '{name}'; choose from: {', '.join(known)}",
            )
        return base

    merged: dict[str, object] = base.model_dump() if base is not None else {}
    merged.update(overrides)
    merged["name"] = name
    try:
        return DriftProfile.model_validate(merged)
    except ValidationError as exc:
        raise build_configuration_error(
            GovernanceErrorCode.E_CONFIG_INVALID,
            f"profile '{name}' in {target.as_posix()} is invalid: {exc.error_count()} error(s)",
        ) from exc
