from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class GovernanceErrorCode(StrEnum):
    E_CONFIG_SOURCE_MISSING = "E_CONFIG_SOURCE_MISSING"
    E_CONFIG_INVALID = "E_CONFIG_INVALID"
    E_CONFIG_MODE_CONFLICT = "E_CONFIG_MODE_CONFLICT"
    E_ALLOWLIST_INVALID = "E_ALLOWLIST_INVALID"
    E_SOURCE_FETCH_FAILED = "E_SOURCE_FETCH_FAILED"
    E_SNAPSHOT_WRITE_FAILED = "E_SNAPSHOT_WRITE_FAILED"
    E_SNAPSHOT_MISSING = "E_SNAPSHOT_MISSING"
    E_SNAPSHOT_INVALID = "E_SNAPSHOT_INVALID"


@dataclass(frozen=True, slots=True)
class GovernanceErrorDetail:
    code: str
    message: str
    witness: tuple[str, ...] | None = None


class GovernanceError(Exception):
    def __init__(self, detail: GovernanceErrorDetail) -> None:
        super().__init__(f"{detail.code}: {detail.message}")
        self.detail = detail

    @property
    def code(self) -> str:
        return self.detail.code


class ConfigurationError(GovernanceError):
    """The check could not run: credentials, connectivity or local configuration."""


class SnapshotMissingError(GovernanceError):
    """Snapshot mode was requested but no usable snapshot file exists."""


def build_configuration_error(
    code: GovernanceErrorCode,
    message: str,
    witness: tuple[str, ...] | None = None,
) -> ConfigurationError:
    return ConfigurationError(
        GovernanceErrorDetail(code=code.value, message=message, witness=witness)
    )


def build_snapshot_missing_error(
    code: GovernanceErrorCode,
    message: str,
    witness: tuple[str, ...] | None = None,
) -> SnapshotMissingError:
    return SnapshotMissingError(
        GovernanceErrorDetail(code=code.value, message=message, witness=witness)
    )
