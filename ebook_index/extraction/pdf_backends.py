"""
PDF text extraction backends.

pypdf is fast and handles most standard PDFs. pdfplumber copes better with
complex layouts and multi-column pages, at the cost of speed. Both return
a list of (page_number, text) tuples and wrap failures in ExtractionError.
"""

from pathlib import Path
from typing import List, Tuple, Union

import pdfplumber
from pypdf import PdfReader

from ..core import get_logger, ExtractionError

logger = get_logger(__name__)


class PyPDFBackend:
    """PDF text extraction using pypdf, with empty-password decryption."""

    name = "pypdf"

    def _open(self, filepath: Path) -> PdfReader:
        reader = PdfReader(filepath)

        if reader.is_encrypted:
            try:
                reader.decrypt("")
            except Exception:
                raise ExtractionError(
                    "PDF is encrypted and cannot be decrypted",
                    filepath=str(filepath)
                )

        return reader

    def count_pages(self, filepath: Union[str, Path]) -> int:
        """Number of pages in the PDF."""
        filepath = Path(filepath)
        try:
            return len(self._open(filepath).pages)
        except ExtractionError:
            raise
        except Exception as e:
            raise ExtractionError(f"Cannot read PDF: {e}", filepath=str(filepath))

    def extract(self, filepath: Union[str, Path], max_pages: int = 0) -> List[Tuple[int, str]]:
        """
        Extract text page by page.

        Args:
            filepath: Path to the PDF file.
            max_pages: Stop after this many pages, 0 for all.

        Returns:
            List of (page_number, text) tuples for non-empty pages.
            Page numbers are 1-indexed.

        Raises:
            ExtractionError: If the file cannot be read at all.
        """
        filepath = Path(filepath)
        results = []

        try:
            reader = self._open(filepath)

            total_pages = len(reader.pages)
            logger.debug(f"Processing {total_pages} pages: {filepath.name}")

            for page_num, page in enumerate(reader.pages, start=1):
                if max_pages and page_num > max_pages:
                    logger.warning(
                        f"Extracted only first {max_pages} pages of {total_pages} from {filepath.name}"
                    )
                    break

                try:
                    text = page.extract_text() or ""
                except Exception as e:
                    logger.warning(f"Failed to extract page {page_num} from {filepath.name}: {e}")
                    continue

                if text.strip():
                    results.append((page_num, text))

        except ExtractionError:
            raise
        except Exception as e:
            raise ExtractionError(f"pypdf extraction failed: {e}", filepath=str(filepath))

        return results


class PDFPlumberBackend:
    """PDF text extraction using pdfplumber."""

    name = "pdfplumber"

    def count_pages(self, filepath: Union[str, Path]) -> int:
        filepath = Path(filepath)
        try:
            with pdfplumber.open(filepath) as pdf:
                return len(pdf.pages)
        except Exception as e:
            raise ExtractionError(f"Cannot read PDF: {e}", filepath=str(filepath))

    def extract(self, filepath: Union[str, Path], max_pages: int = 0) -> List[Tuple[int, str]]:
        """Extract text page by page. See PyPDFBackend.extract."""
        filepath = Path(filepath)
        results = []

        try:
            with pdfplumber.open(filepath) as pdf:
                pages = pdf.pages
                if max_pages and len(pages) > max_pages:
                    logger.warning(
                        f"Extracted only first {max_pages} pages of {len(pages)} from {filepath.name}"
                    )
                    pages = pages[:max_pages]

                for page_num, page in enumerate(pages, start=1):
                    try:
                        text = page.extract_text() or ""
                    except Exception as e:
                        logger.warning(f"Failed to extract page {page_num} from {filepath.name}: {e}")
                        continue

                    if text.strip():
                        results.append((page_num, text))

        except Exception as e:
            raise ExtractionError(f"pdfplumber extraction failed: {e}", filepath=str(filepath))

        return results


BACKENDS = {
    PyPDFBackend.name: PyPDFBackend,
    PDFPlumberBackend.name: PDFPlumberBackend
}
