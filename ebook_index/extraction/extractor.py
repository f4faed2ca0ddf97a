"""
Unified ebook text extraction with resource guards.

Dispatches PDFs to the configured primary backend with automatic fallback,
and EPUBs to the ebooklib backend. File size, process memory and page
count are checked before any text is handed to the index. Per-file
problems are reported in the ExtractionResult instead of being raised.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

import psutil

from ..core import load_config_or_default, get_logger, ExtractionError
from ..utils import clean_text, count_words, get_file_size_mb
from .epub_backend import EpubBackend
from .pdf_backends import BACKENDS

logger = get_logger(__name__)


@dataclass
class ExtractionResult:
    """
    Outcome of extracting one file.

    Attributes:
        text: Extracted, cleaned text ("" when skipped or failed).
        word_count: Words in text.
        error: Failure description, None on success.
        skipped: True when a guard deliberately skipped the file.
        reason: Why the file was skipped.
    """
    text: str = ""
    word_count: int = 0
    error: Optional[str] = None
    skipped: bool = False
    reason: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None and not self.skipped


def current_memory_mb() -> float:
    """Resident set size of this process in MB."""
    return psutil.Process().memory_info().rss / (1024 * 1024)


class TextExtractor:
    """
    Extracts plain text from PDF and EPUB files.

    Guards, in order: file size (skip or warn), process memory before
    starting, page cap for PDFs, memory between EPUB chapters.
    """

    def __init__(
        self,
        primary_backend: str = None,
        fallback_backend: str = None,
        max_file_size_mb: float = None,
        max_memory_mb: float = None,
        skip_large_files: bool = None,
        extract_partial_content: bool = None,
        max_pages: int = None
    ):
        """
        Initialize the extractor. Unset arguments come from the extraction
        config section.

        Raises:
            ExtractionError: If the primary backend name is unknown.
        """
        config = load_config_or_default().extraction

        primary_name = primary_backend or config.primary_backend
        fallback_name = fallback_backend or config.fallback_backend

        if primary_name not in BACKENDS:
            raise ExtractionError(f"Unknown backend: {primary_name}")

        self.primary = BACKENDS[primary_name]()
        fallback_cls = BACKENDS.get(fallback_name)
        self.fallback = fallback_cls() if fallback_cls and fallback_name != primary_name else None
        self.epub = EpubBackend()

        self.max_file_size_mb = config.max_file_size_mb if max_file_size_mb is None else max_file_size_mb
        self.max_memory_mb = config.max_memory_mb if max_memory_mb is None else max_memory_mb
        self.skip_large_files = config.skip_large_files if skip_large_files is None else skip_large_files
        self.extract_partial_content = (
            config.extract_partial_content if extract_partial_content is None else extract_partial_content
        )
        self.max_pages = config.max_pages if max_pages is None else max_pages

        logger.debug(
            f"Initialized extractor: primary={primary_name}, fallback={fallback_name}, "
            f"max_file_size={self.max_file_size_mb}MB, max_memory={self.max_memory_mb}MB"
        )

    def _memory_too_high(self) -> bool:
        return bool(self.max_memory_mb) and current_memory_mb() > self.max_memory_mb

    def extract(self, filepath: Union[str, Path]) -> ExtractionResult:
        """
        Extract text from an ebook.

        Args:
            filepath: Path to a .pdf or .epub file.

        Returns:
            ExtractionResult; check .error and .skipped.
        """
        filepath = Path(filepath)
        suffix = filepath.suffix.lower()

        if suffix not in (".pdf", ".epub"):
            return ExtractionResult(error=f"Unsupported file type: {suffix or '(none)'}")

        try:
            size_mb = get_file_size_mb(filepath)
        except OSError as e:
            return ExtractionResult(error=f"Cannot access file: {e}")

        if self.max_file_size_mb and size_mb > self.max_file_size_mb:
            if self.skip_large_files:
                reason = f"File too large ({size_mb}MB > {self.max_file_size_mb}MB limit)"
                logger.info(f"Skipping {filepath.name}: {reason}")
                return ExtractionResult(skipped=True, reason=reason)
            logger.warning(f"Processing large file ({size_mb}MB): {filepath.name}")

        if self._memory_too_high():
            return ExtractionResult(
                error=f"Memory usage too high ({current_memory_mb():.0f}MB), skipping file"
            )

        try:
            if suffix == ".pdf":
                text = self._extract_pdf(filepath)
            else:
                text = self._extract_epub(filepath)
        except ExtractionError as e:
            logger.warning(f"Failed to extract {filepath.name}: {e.message}")
            return ExtractionResult(error=e.message)
        except MemoryError:
            logger.error(f"Out of memory extracting {filepath.name}")
            return ExtractionResult(error="Out of memory during extraction")

        if text is None:
            reason = f"More than {self.max_pages} pages and partial extraction disabled"
            return ExtractionResult(skipped=True, reason=reason)

        text = clean_text(text)
        return ExtractionResult(text=text, word_count=count_words(text))

    def _extract_pdf(self, filepath: Path) -> Optional[str]:
        """Primary backend, then fallback. None when the page guard skips the file."""
        if self.max_pages and not self.extract_partial_content:
            if self.primary.count_pages(filepath) > self.max_pages:
                return None

        primary_error = None

        try:
            pages = self.primary.extract(filepath, self.max_pages)
            if pages:
                return "\n\n".join(text for _, text in pages)
            logger.debug(f"Primary backend returned empty results: {filepath.name}")
        except ExtractionError as e:
            primary_error = e
            logger.debug(f"Primary backend failed: {e.message}")

        if self.fallback:
            try:
                logger.debug(f"Trying fallback backend for: {filepath.name}")
                pages = self.fallback.extract(filepath, self.max_pages)
                if pages:
                    return "\n\n".join(text for _, text in pages)
            except ExtractionError as e:
                logger.debug(f"Fallback backend also failed: {e.message}")

        if primary_error:
            raise primary_error

        raise ExtractionError("All backends returned empty results", filepath=str(filepath))

    def _extract_epub(self, filepath: Path) -> str:
        stopped = []

        def should_stop() -> bool:
            if self._memory_too_high():
                stopped.append(True)
                return True
            return False

        chapters = self.epub.extract(filepath, should_stop=should_stop)

        if stopped and not self.extract_partial_content:
            raise ExtractionError(
                "Memory limit reached during EPUB extraction",
                filepath=str(filepath)
            )

        return "\n\n".join(chapters)
