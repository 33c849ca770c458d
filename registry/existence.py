# registry/existence.py
"""
Resource Existence Validator - two-directional drift check.

1. Every enabled entry must name an existing, readable file under the
   resource root (else a MissingResourceError record).
2. Every file under the resource root must be referenced by some entry,
   enabled or disabled (else an OrphanedResourceWarning record).
3. No two entries may resolve to the same file on disk (symlinks, hard
   links, case aliases), else a DuplicateResourceRecord.

Validation is exhaustive: all problems are collected in one pass and
returned as a ValidationReport. Nothing here raises for resource problems.

Case policy: identifiers are matched case-sensitively unless the validator
is built with case_sensitive=False, in which case a file differing only in
case satisfies the entry and is not reported as an orphan. With the
case-sensitive policy such a file does not satisfy the entry, even on
case-insensitive file systems.
"""

import fnmatch
import logging
import os
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple, Union

from .manifests.model import Entry, Manifest
from .validation import (
    DuplicateResourceRecord,
    MissingResourceError,
    OrphanedResourceWarning,
    ValidationReport,
)

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


class ResourceExistenceValidator:
    """
    Checks a manifest against a resource directory.

    Usage:
        validator = ResourceExistenceValidator(ignore_patterns=["README.md"])
        report = validator.validate(manifest, "guides/")
        if not report.ok:
            sys.exit(report.exit_code)
    """

    def __init__(
        self,
        case_sensitive: bool = True,
        ignore_patterns: Optional[Sequence[str]] = None,
        skip_hidden: bool = True,
    ):
        """
        Args:
            case_sensitive: Identifier/file name comparison policy
            ignore_patterns: fnmatch globs (relative POSIX paths) never reported as orphans
            skip_hidden: Skip dot-files and dot-directories during the orphan scan
        """
        self.case_sensitive = case_sensitive
        self.ignore_patterns = list(ignore_patterns or [])
        self.skip_hidden = skip_hidden

    def validate(
        self,
        manifest: Manifest,
        resource_root: PathLike,
        exclude: Iterable[PathLike] = (),
    ) -> ValidationReport:
        """
        Run one exhaustive validation pass.

        Args:
            manifest: Manifest snapshot to check
            resource_root: Directory holding the resources
            exclude: Extra files (e.g. the manifest itself) left out of the orphan scan

        Returns:
            ValidationReport with every discrepancy found
        """
        root = Path(resource_root)
        report = ValidationReport(
            manifest_checksum=manifest.checksum,
            resource_root=str(root),
        )

        if not root.is_dir():
            for entry in manifest.enabled_entries():
                report.add(MissingResourceError(
                    identifier=entry.identifier,
                    category=entry.category,
                    message=f"Resource root does not exist: {root}",
                ))
            logger.warning(f"Resource root {root} does not exist")
            return report

        on_disk = self.scan(root, exclude=exclude)
        folded_disk: Dict[str, List[str]] = {}
        for rel in on_disk:
            folded_disk.setdefault(rel.casefold(), []).append(rel)

        # 1. Missing resources, in manifest order
        for entry in manifest.enabled_entries():
            problem = self._check_entry(root, entry, folded_disk)
            if problem:
                report.add(MissingResourceError(
                    identifier=entry.identifier,
                    category=entry.category,
                    message=problem,
                ))

        # 2. Entries aliasing the same file
        for record in self._find_aliases(root, manifest.entries()):
            report.add(record)

        # 3. Orphans, in sorted path order
        referenced = {self._key(identifier) for identifier in manifest.identifiers()}
        for rel in on_disk:
            if self._key(rel) not in referenced:
                report.add(OrphanedResourceWarning(
                    identifier=rel,
                    message="Resource is not referenced by the manifest",
                ))

        counts = report.counts()
        logger.info(
            f"Validated {len(manifest)} entries against {root}: "
            f"{counts['missing']} missing, {counts['orphaned']} orphaned, "
            f"{counts['duplicate']} duplicate"
        )
        return report

    # ==========================================================================
    # Resource store scan
    # ==========================================================================

    def scan(self, root: PathLike, exclude: Iterable[PathLike] = ()) -> List[str]:
        """List resource files under root as sorted relative POSIX paths."""
        root = Path(root)
        excluded = self._excluded(root, exclude)
        found = []

        for dirpath, dirnames, filenames in os.walk(root):
            if self.skip_hidden:
                dirnames[:] = [d for d in dirnames if not d.startswith(".")]
            dirnames.sort()

            rel_dir = Path(dirpath).relative_to(root)
            for name in filenames:
                if self.skip_hidden and name.startswith("."):
                    continue
                full = Path(dirpath) / name
                if not full.is_file():
                    continue
                rel = (rel_dir / name).as_posix()
                if rel in excluded or self._ignored(rel):
                    continue
                found.append(rel)

        return sorted(found)

    def _excluded(self, root: Path, exclude: Iterable[PathLike]) -> Set[str]:
        result = set()
        resolved_root = root.resolve()
        for item in exclude:
            try:
                rel = Path(item).resolve().relative_to(resolved_root)
            except ValueError:
                continue  # outside the resource root
            result.add(rel.as_posix())
        return result

    def _ignored(self, rel: str) -> bool:
        name = rel.rsplit("/", 1)[-1]
        for pattern in self.ignore_patterns:
            if fnmatch.fnmatchcase(rel, pattern):
                return True
            if "/" not in pattern and fnmatch.fnmatchcase(name, pattern):
                return True
        return False

    # ==========================================================================
    # Entry checks
    # ==========================================================================

    def _key(self, identifier: str) -> str:
        return identifier if self.case_sensitive else identifier.casefold()

    def _check_entry(
        self,
        root: Path,
        entry: Entry,
        folded_disk: Dict[str, List[str]],
    ) -> Optional[str]:
        """Return a problem description, or None if the entry is satisfied."""
        path = root / entry.identifier

        if not path.exists() and not self.case_sensitive:
            aliases = folded_disk.get(entry.identifier.casefold())
            if aliases:
                path = root / aliases[0]

        if not path.exists():
            return "Resource file not found" + self._near_match_hint(entry, folded_disk)
        if not path.is_file():
            return "Resource is not a regular file"
        if self.case_sensitive and not _exact_case_exists(root, entry.identifier):
            return "Resource file not found" + self._near_match_hint(entry, folded_disk)
        if not os.access(path, os.R_OK):
            return "Resource file is not readable"
        return None

    def _near_match_hint(self, entry: Entry, folded_disk: Dict[str, List[str]]) -> str:
        candidates = [
            rel for rel in folded_disk.get(entry.identifier.casefold(), [])
            if rel != entry.identifier
        ]
        if not candidates:
            return ""
        return f" (differs only in case from '{candidates[0]}')"

    def _find_aliases(self, root: Path, entries: List[Entry]) -> List[DuplicateResourceRecord]:
        """Entries whose files share one inode with an earlier entry."""
        claimed: Dict[Tuple[int, int], str] = {}
        records = []
        for entry in entries:
            try:
                stat = (root / entry.identifier).stat()
            except OSError:
                continue
            identity = (stat.st_dev, stat.st_ino)
            if identity in claimed:
                records.append(DuplicateResourceRecord(
                    identifier=entry.identifier,
                    category=entry.category,
                    message=f"Resolves to the same file as '{claimed[identity]}'",
                    duplicate_of=claimed[identity],
                ))
            else:
                claimed[identity] = entry.identifier
        return records


def _exact_case_exists(root: Path, identifier: str) -> bool:
    """True if every path component exists with exactly this spelling."""
    current = root
    for part in identifier.split("/"):
        try:
            if part not in os.listdir(current):
                return False
        except OSError:
            return False
        current = current / part
    return True


def validate(
    manifest: Manifest,
    resource_root: PathLike,
    case_sensitive: bool = True,
    ignore_patterns: Optional[Sequence[str]] = None,
) -> ValidationReport:
    """Convenience function for a one-off validation pass."""
    validator = ResourceExistenceValidator(
        case_sensitive=case_sensitive,
        ignore_patterns=ignore_patterns,
    )
    return validator.validate(manifest, resource_root)
