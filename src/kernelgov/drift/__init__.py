from .allowlist import EMPTY_ALLOWLIST, Allowlist, load_allowlist, parse_allowlist
from .checker import (
    EXIT_CLEAN,
    EXIT_CONFIGURATION_ERROR,
    EXIT_DRIFT,
    EXIT_SNAPSHOT_MISSING,
    DriftReport,
    Namespace,
    OrphanDetail,
    RegistryMode,
    ReportWarning,
    WarningCode,
    build_recommendations,
    check,
    derive_exit_code,
)
from .scanner import (
    CONCEPT_PATTERN,
    VALUESET_PATTERN,
    ScanResult,
    UnreadableFile,
    extract_tokens,
    scan,
    scan_profile,
)

__all__ = [
    "Allowlist",
    "CONCEPT_PATTERN",
    "DriftReport",
    "EMPTY_ALLOWLIST",
    "EXIT_CLEAN",
    "EXIT_CONFIGURATION_ERROR",
    "EXIT_DRIFT",
    "EXIT_SNAPSHOT_MISSING",
    "Namespace",
    "OrphanDetail",
    "RegistryMode",
    "ReportWarning",
    "ScanResult",
    "UnreadableFile",
    "VALUESET_PATTERN",
    "WarningCode",
    "build_recommendations",
    "check",
    "derive_exit_code",
    "extract_tokens",
    "load_allowlist",
    "parse_allowlist",
    "scan",
    "scan_profile",
]
