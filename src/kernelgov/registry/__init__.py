from .errors import (
    ConfigurationError,
    GovernanceError,
    GovernanceErrorCode,
    GovernanceErrorDetail,
    SnapshotMissingError,
)
from .exporter import (
    DEFAULT_SNAPSHOT_PATH,
    build_snapshot,
    export_snapshot,
    load_snapshot,
    snapshot_content_id,
    write_snapshot,
)
from .models import (
    SNAPSHOT_VERSION,
    ConceptRecord,
    RegistrySnapshot,
    ValueRecord,
    ValueSetRecord,
)
from .sources import (
    RegistrySource,
    SourceSettings,
    StaticRegistrySource,
    SupabaseRegistrySource,
)

__all__ = [
    "ConceptRecord",
    "ConfigurationError",
    "DEFAULT_SNAPSHOT_PATH",
    "GovernanceError",
    "GovernanceErrorCode",
    "GovernanceErrorDetail",
    "RegistrySnapshot",
    "RegistrySource",
    "SNAPSHOT_VERSION",
    "SnapshotMissingError",
    "SourceSettings",
    "StaticRegistrySource",
    "SupabaseRegistrySource",
    "ValueRecord",
    "ValueSetRecord",
    "build_snapshot",
    "export_snapshot",
    "load_snapshot",
    "snapshot_content_id",
    "write_snapshot",
]
