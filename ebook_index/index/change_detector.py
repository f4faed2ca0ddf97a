"""
Change detection for incremental indexing.

Compares the manifest against the indexed_files map stored in the index
metadata and classifies every file as added, modified, deleted or
unchanged.
"""

from dataclasses import dataclass, field
from typing import List, Optional

from ..core import get_logger
from ..utils import parse_timestamp, resolve_path
from .manifest import ManifestContent, ManifestEntry
from .models import IndexMetadata

logger = get_logger(__name__)


@dataclass
class ChangeSet:
    """
    Result of comparing a manifest with the previous index state.

    Attributes:
        added: Entries not present in the index.
        modified: Entries newer than their indexed timestamp.
        deleted: Indexed paths no longer in the manifest, as stored.
        unchanged: Number of entries needing no work.
    """
    added: List[ManifestEntry] = field(default_factory=list)
    modified: List[ManifestEntry] = field(default_factory=list)
    deleted: List[str] = field(default_factory=list)
    unchanged: int = 0

    @property
    def total_changes(self) -> int:
        return len(self.added) + len(self.modified) + len(self.deleted)

    @property
    def has_changes(self) -> bool:
        return self.total_changes > 0

    def limit(self, max_files: Optional[int]) -> "ChangeSet":
        """
        Bound the amount of work to max_files items.

        Added files take priority, then modified, then deleted. Work beyond
        the bound is left for the next run. The unchanged count is kept.

        Args:
            max_files: Maximum total changes, None or <= 0 for no bound.

        Returns:
            A new, possibly trimmed ChangeSet.
        """
        if not max_files or max_files <= 0 or self.total_changes <= max_files:
            return ChangeSet(
                added=list(self.added),
                modified=list(self.modified),
                deleted=list(self.deleted),
                unchanged=self.unchanged,
            )

        remaining = max_files
        added = self.added[:remaining]
        remaining -= len(added)
        modified = self.modified[:remaining]
        remaining -= len(modified)
        deleted = self.deleted[:remaining]

        logger.info(
            f"Limiting changes to {max_files} files "
            f"({self.total_changes - max_files} deferred to next run)"
        )

        return ChangeSet(added=added, modified=modified, deleted=deleted, unchanged=self.unchanged)


class ChangeDetector:
    """Classifies manifest entries against an index's indexed_files map."""

    def detect_changes(
        self,
        manifest: ManifestContent,
        previous_metadata: Optional[IndexMetadata]
    ) -> ChangeSet:
        """
        Classify every manifest entry and every previously indexed path.

        A file is modified only when its manifest timestamp is strictly
        later than the indexed one. Timestamps that cannot be parsed never
        compare as later, so such entries stay unchanged.

        Args:
            manifest: Current manifest.
            previous_metadata: Metadata of the existing index, or None.

        Returns:
            ChangeSet with added, modified, deleted and unchanged.
        """
        indexed_files = previous_metadata.indexed_files if previous_metadata else {}
        indexed_by_path = {resolve_path(path): stamp for path, stamp in indexed_files.items()}

        changes = ChangeSet()
        manifest_paths = set()

        for entry in manifest.entries:
            manifest_paths.add(entry.path)

            if entry.path not in indexed_by_path:
                changes.added.append(entry)
            elif self._is_newer(entry.modified, indexed_by_path[entry.path]):
                changes.modified.append(entry)
            else:
                changes.unchanged += 1

        for stored_path in indexed_files:
            if resolve_path(stored_path) not in manifest_paths:
                changes.deleted.append(stored_path)

        logger.info(
            f"Detected changes: {len(changes.added)} added, {len(changes.modified)} modified, "
            f"{len(changes.deleted)} deleted, {changes.unchanged} unchanged"
        )
        return changes

    def has_data_file_changed(
        self,
        manifest: ManifestContent,
        previous_metadata: Optional[IndexMetadata]
    ) -> bool:
        """True when there is no stored hash or it differs from the manifest's."""
        if previous_metadata is None or not previous_metadata.data_file_hash:
            return True
        return previous_metadata.data_file_hash != manifest.hash

    @staticmethod
    def _is_newer(manifest_modified, indexed_modified) -> bool:
        current = parse_timestamp(manifest_modified)
        previous = parse_timestamp(indexed_modified)
        if current is None or previous is None:
            logger.debug(
                f"Unparseable timestamp ({manifest_modified!r} vs {indexed_modified!r}), "
                "treating as unchanged"
            )
            return False
        return current > previous
