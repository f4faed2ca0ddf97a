"""
Tests for the EPUB extraction backend.

ebooklib is mocked so the tests do not depend on building real EPUB
packages.
"""

import pytest
from unittest.mock import patch, Mock

import ebooklib

from ebook_index.extraction.epub_backend import EpubBackend, html_to_text, reading_order
from ebook_index.core.exceptions import ExtractionError


def _item(html: bytes, item_type=ebooklib.ITEM_DOCUMENT):
    item = Mock()
    item.get_type.return_value = item_type
    item.get_content.return_value = html
    return item


def _book(items, spine=()):
    book = Mock()
    book.get_items.return_value = items
    book.spine = list(spine)
    by_id = {f"item{position}": item for position, item in enumerate(items)}
    book.get_item_with_id.side_effect = by_id.get
    return book


class TestHtmlToText:
    """Tests for html_to_text."""

    def test_strips_markup(self):
        """Test that tags are removed and text kept."""
        text = html_to_text(b"<html><body><h1>Moby Dick</h1><p>Call me Ishmael.</p></body></html>")

        assert "Moby Dick" in text
        assert "Call me Ishmael." in text
        assert "<p>" not in text

    def test_drops_scripts_and_styles(self):
        """Test that script and style contents are removed."""
        text = html_to_text(b"<html><head><style>p {color: red}</style></head>"
                            b"<body><script>alert(1)</script><p>Visible</p></body></html>")

        assert "Visible" in text
        assert "color" not in text
        assert "alert" not in text


class TestReadingOrder:
    """Tests for reading_order."""

    def test_follows_spine(self):
        """Test that spine order wins over package order."""
        intro, body, cover = _item(b"intro"), _item(b"body"), _item(b"cover", item_type=ebooklib.ITEM_IMAGE)
        book = _book([body, intro, cover], spine=[("item1", "yes"), ("item0", "yes")])

        assert reading_order(book) == [intro, body]

    def test_documents_outside_spine_appended(self):
        """Test that unlisted documents are still read, after the spine."""
        first, extra, second = _item(b"a"), _item(b"b"), _item(b"c")
        book = _book([first, extra, second], spine=["item2", ("item0", "yes"), ("missing", "yes")])

        assert reading_order(book) == [second, first, extra]


class TestEpubBackend:
    """Tests for EpubBackend.extract."""

    @patch("ebook_index.extraction.epub_backend.epub.read_epub")
    def test_extracts_document_items_in_order(self, mock_read, temp_dir):
        """Test that only document items are read, in order."""
        mock_read.return_value = _book([
            _item(b"<p>Chapter one</p>"),
            _item(b"binary", item_type=ebooklib.ITEM_IMAGE),
            _item(b"<p>Chapter two</p>"),
            _item(b"<p>   </p>"),
        ])

        chapters = EpubBackend().extract(temp_dir / "book.epub")

        assert [c.strip() for c in chapters] == ["Chapter one", "Chapter two"]

    @patch("ebook_index.extraction.epub_backend.epub.read_epub")
    def test_unreadable_package_raises(self, mock_read, temp_dir):
        """Test that library failures become ExtractionError."""
        mock_read.side_effect = Exception("Bad zip file")

        with pytest.raises(ExtractionError) as exc_info:
            EpubBackend().extract(temp_dir / "book.epub")

        assert exc_info.value.filepath.endswith("book.epub")

    @patch("ebook_index.extraction.epub_backend.epub.read_epub")
    def test_should_stop_ends_early(self, mock_read, temp_dir):
        """Test that the stop callback is checked before each chapter."""
        mock_read.return_value = _book([_item(b"<p>One</p>"), _item(b"<p>Two</p>")])
        answers = iter([False, True])

        chapters = EpubBackend().extract(temp_dir / "book.epub", should_stop=lambda: next(answers))

        assert [c.strip() for c in chapters] == ["One"]

    @patch("ebook_index.extraction.epub_backend.epub.read_epub")
    def test_bad_section_skipped(self, mock_read, temp_dir):
        """Test that one unreadable section does not stop extraction."""
        broken = _item(b"")
        broken.get_content.side_effect = KeyError("missing")
        mock_read.return_value = _book([broken, _item(b"<p>Fine</p>")])

        chapters = EpubBackend().extract(temp_dir / "book.epub")

        assert [c.strip() for c in chapters] == ["Fine"]

    def test_real_invalid_file_raises(self, temp_dir):
        """Test that a non-EPUB file raises ExtractionError."""
        path = temp_dir / "fake.epub"
        path.write_bytes(b"PK not really a zip")

        with pytest.raises(ExtractionError):
            EpubBackend().extract(path)
