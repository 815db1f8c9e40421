from __future__ import annotations

import json
import logging
import os
import tempfile
from collections.abc import Callable
from datetime import UTC, datetime
from hashlib import sha256
from pathlib import Path
from typing import Final

from pydantic import ValidationError

from .errors import (
    GovernanceErrorCode,
    build_configuration_error,
    build_snapshot_missing_error,
)
from .models import SNAPSHOT_VERSION, RegistrySnapshot
from .sources import RegistrySource

logger = logging.getLogger(__name__)

DEFAULT_SNAPSHOT_PATH: Final[str] = "docs/kernel/registry.snapshot.json"
_SNAPSHOT_ID_PREFIX: Final[str] = "snapshot"


def utc_timestamp() -> str:
    now = datetime.now(UTC)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def build_snapshot(
    source: RegistrySource,
    *,
    clock: Callable[[], str] = utc_timestamp,
) -> RegistrySnapshot:
    """Fetch the three registry collections and assemble an in-memory snapshot.

    All fetches complete before anything is assembled; a failing fetch
    propagates and no snapshot exists. Rows flagged inactive are dropped even
    when the source already filtered them, and value codes are deduplicated per
    value set in case the source's compound-key constraint was not enforced.
    """
    concept_rows = source.fetch_concepts()
    value_set_rows = source.fetch_value_sets()
    value_rows = source.fetch_values()

    concepts = {row.concept_id for row in concept_rows if row.is_active}
    value_sets = {row.value_set_id for row in value_set_rows if row.is_active}

    values_by_set: dict[str, set[str]] = {}
    for row in value_rows:
        if not row.is_active:
            continue
        if row.value_set_id not in value_sets:
            logger.warning(
                "dropping value %s: value set %s is not active",
                row.value_code,
                row.value_set_id,
            )
            continue
        codes = values_by_set.setdefault(row.value_set_id, set())
        if row.value_code in codes:
            logger.warning(
                "duplicate registry value (%s, %s) collapsed",
                row.value_set_id,
                row.value_code,
            )
        codes.add(row.value_code)

    return RegistrySnapshot(
        concepts=tuple(sorted(concepts)),
        value_sets=tuple(sorted(value_sets)),
        values_by_set={key: tuple(sorted(codes)) for key, codes in sorted(values_by_set.items())},
        exported_at=clock(),
        snapshot_version=SNAPSHOT_VERSION,
    )


def _default_file_mode() -> int:
    umask = os.umask(0)
    os.umask(umask)
    return 0o666 & ~umask


def write_snapshot(snapshot: RegistrySnapshot, path: Path) -> Path:
    text = snapshot.to_json()
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{path.name}.", suffix=".tmp", dir=path.parent
        )
    except OSError as exc:
        raise build_configuration_error(
            GovernanceErrorCode.E_SNAPSHOT_WRITE_FAILED,
            f"cannot create snapshot location {path.as_posix()}: {exc}",
            witness=(path.as_posix(),),
        ) from exc

    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(text)
        # mkstemp creates 0600; published snapshots get the usual umask-derived mode.
        os.chmod(tmp_path, _default_file_mode())
        os.replace(tmp_path, path)
    except OSError as exc:
        tmp_path.unlink(missing_ok=True)
        raise build_configuration_error(
            GovernanceErrorCode.E_SNAPSHOT_WRITE_FAILED,
            f"cannot write snapshot {path.as_posix()}: {exc}",
            witness=(path.as_posix(),),
        ) from exc
    return path


def export_snapshot(
    source: RegistrySource,
    output_path: Path,
    *,
    clock: Callable[[], str] = utc_timestamp,
) -> RegistrySnapshot:
    snapshot = build_snapshot(source, clock=clock)
    write_snapshot(snapshot, output_path)
    logger.info(
        "exported snapshot to %s (%d concepts, %d value sets, %d values)",
        output_path.as_posix(),
        len(snapshot.concepts),
        len(snapshot.value_sets),
        snapshot.value_count,
    )
    return snapshot


def load_snapshot(path: Path) -> RegistrySnapshot:
    if not path.is_file():
        raise build_snapshot_missing_error(
            GovernanceErrorCode.E_SNAPSHOT_MISSING,
            f"registry snapshot not found at {path.as_posix()}; run 'kernelgov export-snapshot' first",
            witness=(path.as_posix(),),
        )
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise build_snapshot_missing_error(
            GovernanceErrorCode.E_SNAPSHOT_INVALID,
            f"cannot load registry snapshot {path.as_posix()}: {exc}",
            witness=(path.as_posix(),),
        ) from exc
    if not isinstance(payload, dict):
        raise build_snapshot_missing_error(
            GovernanceErrorCode.E_SNAPSHOT_INVALID,
            f"registry snapshot must be a JSON object: {path.as_posix()}",
            witness=(path.as_posix(),),
        )
    try:
        return RegistrySnapshot.model_validate(payload)
    except ValidationError as exc:
        raise build_snapshot_missing_error(
            GovernanceErrorCode.E_SNAPSHOT_INVALID,
            f"registry snapshot {path.as_posix()} is malformed: {exc.error_count()} error(s)",
            witness=(path.as_posix(),),
        ) from exc


def snapshot_content_id(snapshot: RegistrySnapshot) -> str:
    canonical = json.dumps(
        snapshot.content_payload(),
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=True,
    )
    digest = sha256(canonical.encode("utf-8")).hexdigest()
    return f"{_SNAPSHOT_ID_PREFIX}:{snapshot.snapshot_version}:{digest[:16]}"
