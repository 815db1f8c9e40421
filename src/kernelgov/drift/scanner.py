"""Lexical scan of application source for registry tokens.

The scan is deliberately regex based: a token inside a comment or an
unrelated string literal counts as a reference. It never parses the source
language. Word boundaries are ASCII-only, so a token directly followed by a
non-ASCII letter still matches.
"""

from __future__ import annotations

import logging
import os
import re
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from fnmatch import fnmatch
from pathlib import Path
from typing import Final

from kernelgov.config import SOURCE_EXTENSIONS, DriftProfile

logger = logging.getLogger(__name__)

CONCEPT_PREFIX: Final[str] = "CONCEPT_"
VALUESET_PREFIX: Final[str] = "VALUESET_"
CONCEPT_PATTERN: Final[re.Pattern[str]] = re.compile(r"\bCONCEPT_[A-Z0-9_]+\b", re.ASCII)
VALUESET_PATTERN: Final[re.Pattern[str]] = re.compile(r"\bVALUESET_[A-Z0-9_]+\b", re.ASCII)
_RECURSIVE_PREFIX: Final[str] = "**/"


@dataclass(frozen=True, slots=True)
class UnreadableFile:
    path: str
    reason: str


@dataclass(frozen=True, slots=True)
class ScanResult:
    concept_tokens: frozenset[str]
    valueset_tokens: frozenset[str]
    references: Mapping[str, tuple[str, ...]] = field(default_factory=dict)
    files_scanned: int = 0
    unreadable_files: tuple[UnreadableFile, ...] = ()

    def files_for(self, token: str) -> tuple[str, ...]:
        return self.references.get(token, ())


def extract_tokens(text: str) -> tuple[frozenset[str], frozenset[str]]:
    concepts = frozenset(match.group(0) for match in CONCEPT_PATTERN.finditer(text))
    valuesets = frozenset(match.group(0) for match in VALUESET_PATTERN.finditer(text))
    return (concepts, valuesets)


def path_matches_glob(rel_path: str, pattern: str) -> bool:
    if fnmatch(rel_path, pattern):
        return True
    if pattern.startswith(_RECURSIVE_PREFIX):
        return fnmatch(rel_path, pattern[len(_RECURSIVE_PREFIX) :])
    return False


def _is_excluded_file(rel_path: str, exclude_patterns: Iterable[str]) -> bool:
    return any(path_matches_glob(rel_path, pattern) for pattern in exclude_patterns)


def iter_source_files(
    root: Path,
    *,
    exclude_patterns: Iterable[str] = (),
    exclude_dirs: Iterable[str] = (),
    extensions: Iterable[str] = SOURCE_EXTENSIONS,
    skip_hidden_dirs: bool = False,
    base: Path | None = None,
) -> Iterator[tuple[Path, str]]:
    """Yield ``(path, relative_posix_path)`` for every candidate file under ``root``.

    Traversal is sorted so results are stable across platforms. Relative paths
    are computed against ``base`` (defaults to ``root``) and are what exclude
    globs are matched against.
    """
    anchor = base if base is not None else root
    patterns = tuple(exclude_patterns)
    pruned = frozenset(exclude_dirs)
    suffixes = tuple(extensions)

    def _on_walk_error(exc: OSError) -> None:
        logger.warning("skipping unreadable directory %s: %s", exc.filename, exc.strerror)

    for current, dirnames, filenames in os.walk(root, onerror=_on_walk_error):
        dirnames[:] = sorted(
            name
            for name in dirnames
            if name not in pruned and not (skip_hidden_dirs and name.startswith("."))
        )
        for filename in sorted(filenames):
            if not filename.endswith(suffixes):
                continue
            path = Path(current) / filename
            rel_path = path.relative_to(anchor).as_posix()
            if _is_excluded_file(rel_path, patterns):
                continue
            yield (path, rel_path)


def scan(
    root: Path,
    exclude_patterns: Iterable[str] = (),
    *,
    exclude_dirs: Iterable[str] = (),
    extensions: Iterable[str] = SOURCE_EXTENSIONS,
    skip_hidden_dirs: bool = False,
    scan_dirs: Iterable[str] = (),
) -> ScanResult:
    roots = tuple(root / sub_dir for sub_dir in scan_dirs) or (root,)
    concept_tokens: set[str] = set()
    valueset_tokens: set[str] = set()
    references: dict[str, set[str]] = {}
    unreadable: list[UnreadableFile] = []
    files_scanned = 0

    for scan_root in roots:
        if not scan_root.is_dir():
            logger.info("scan directory %s does not exist; skipping", scan_root.as_posix())
            continue
        for path, rel_path in iter_source_files(
            scan_root,
            exclude_patterns=exclude_patterns,
            exclude_dirs=exclude_dirs,
            extensions=extensions,
            skip_hidden_dirs=skip_hidden_dirs,
            base=root,
        ):
            try:
                text = path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as exc:
                logger.warning("skipping unreadable file %s: %s", rel_path, exc)
                unreadable.append(UnreadableFile(path=rel_path, reason=type(exc).__name__))
                continue

            files_scanned += 1
            concepts, valuesets = extract_tokens(text)
            concept_tokens.update(concepts)
            valueset_tokens.update(valuesets)
            for token in concepts | valuesets:
                references.setdefault(token, set()).add(rel_path)

    return ScanResult(
        concept_tokens=frozenset(concept_tokens),
        valueset_tokens=frozenset(valueset_tokens),
        references={token: tuple(sorted(paths)) for token, paths in sorted(references.items())},
        files_scanned=files_scanned,
        unreadable_files=tuple(sorted(unreadable, key=lambda item: item.path)),
    )


def scan_profile(profile: DriftProfile, *, repo_root: Path) -> ScanResult:
    return scan(
        profile.resolve_scan_root(repo_root),
        profile.exclude_globs,
        exclude_dirs=profile.exclude_dirs,
        extensions=profile.extensions,
        skip_hidden_dirs=profile.skip_hidden_dirs,
        scan_dirs=profile.scan_dirs,
    )
