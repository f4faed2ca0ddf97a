"""
EPUB text extraction backend.

Reads the package with ebooklib and strips each XHTML document to plain
text with BeautifulSoup, chapter by chapter.
"""

from pathlib import Path
from typing import Callable, List, Optional, Union

import ebooklib
from bs4 import BeautifulSoup
from ebooklib import epub

from ..core import get_logger, ExtractionError

logger = get_logger(__name__)


def html_to_text(content: bytes) -> str:
    """Strip markup, scripts and styles from an XHTML document."""
    soup = BeautifulSoup(content, "html.parser")
    for element in soup(["script", "style"]):
        element.decompose()
    return soup.get_text(separator="\n")


def reading_order(book) -> list:
    """
    Document items in spine order.

    Documents missing from the spine are appended in package order.
    """
    documents = [item for item in book.get_items() if item.get_type() == ebooklib.ITEM_DOCUMENT]

    ordered = []
    for entry in book.spine:
        idref = entry[0] if isinstance(entry, tuple) else entry
        item = book.get_item_with_id(idref)
        if item is not None and item in documents and item not in ordered:
            ordered.append(item)

    ordered.extend(item for item in documents if item not in ordered)
    return ordered


class EpubBackend:
    """EPUB text extraction using ebooklib and BeautifulSoup."""

    name = "ebooklib"

    def extract(
        self,
        filepath: Union[str, Path],
        should_stop: Optional[Callable[[], bool]] = None
    ) -> List[str]:
        """
        Extract the text of every document item in spine reading order.

        Args:
            filepath: Path to the EPUB file.
            should_stop: Checked before each chapter. Extraction ends early
                (returning what was read so far) when it returns True.

        Returns:
            Non-empty chapter texts.

        Raises:
            ExtractionError: If the package cannot be read.
        """
        filepath = Path(filepath)
        chapters = []

        try:
            book = epub.read_epub(str(filepath))
        except Exception as e:
            raise ExtractionError(f"Cannot read EPUB: {e}", filepath=str(filepath))

        items = reading_order(book)
        logger.debug(f"Processing {len(items)} document sections: {filepath.name}")

        for position, item in enumerate(items, start=1):
            if should_stop is not None and should_stop():
                logger.warning(
                    f"Stopped after {position - 1} of {len(items)} sections of {filepath.name}"
                )
                break

            try:
                text = html_to_text(item.get_content())
            except Exception as e:
                logger.warning(f"Failed to read section {position} of {filepath.name}: {e}")
                continue

            if text.strip():
                chapters.append(text)

        return chapters
