"""
File scanner for recursive ebook discovery.

Walks nested library folders lazily and filters by extension, an optional
glob pattern on the file name, and an optional size cap.
"""

import fnmatch
from pathlib import Path
from typing import Iterator, List, Union

from ..core import load_config_or_default, get_logger
from ..utils import get_file_size_mb

logger = get_logger(__name__)


class FileScanner:
    """
    Recursively discovers PDF and EPUB files in a directory tree.

    Uses generator-based iteration so large collections are not listed
    up front.
    """

    def __init__(
        self,
        root_directory: Union[str, Path],
        extensions: List[str] = None,
        pattern: str = None,
        max_file_size_mb: float = None
    ):
        """
        Initialize the file scanner.

        Args:
            root_directory: Directory to scan.
            extensions: File extensions to include. Defaults to config value.
            pattern: Optional glob matched against file names, e.g. "*python*".
            max_file_size_mb: Skip files larger than this size. None keeps all.
        """
        config = load_config_or_default()

        self.root_directory = Path(root_directory)
        self.extensions = [ext.lower() for ext in (extensions or config.extraction.supported_extensions)]
        self.pattern = pattern
        self.max_file_size_mb = max_file_size_mb

    def scan(self) -> Iterator[Path]:
        """
        Yield matching file paths in sorted directory order.

        Logs:
            Progress every 1000 files discovered.
        """
        if not self.root_directory.is_dir():
            logger.error(f"Root directory does not exist: {self.root_directory}")
            return

        logger.info(f"Scanning directory: {self.root_directory}")

        file_count = 0
        skipped_size = 0

        for filepath in sorted(self.root_directory.rglob("*")):
            if not filepath.is_file() or filepath.suffix.lower() not in self.extensions:
                continue

            if self.pattern and not fnmatch.fnmatch(filepath.name.lower(), self.pattern.lower()):
                continue

            if self.max_file_size_mb is not None:
                try:
                    size_mb = get_file_size_mb(filepath)
                except OSError as e:
                    logger.warning(f"Cannot access file {filepath}: {e}")
                    continue
                if size_mb > self.max_file_size_mb:
                    logger.debug(f"Skipping large file ({size_mb}MB): {filepath.name}")
                    skipped_size += 1
                    continue

            file_count += 1

            if file_count % 1000 == 0:
                logger.info(f"Discovered {file_count} files...")

            yield filepath

        logger.info(
            f"Scan complete: {file_count} files found, {skipped_size} skipped (too large)"
        )

    def count(self) -> int:
        """Count matching files without keeping the paths."""
        return sum(1 for _ in self.scan())

    def list_all(self) -> List[Path]:
        return list(self.scan())
