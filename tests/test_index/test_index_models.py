"""
Tests for index data models.

Tests type resolution and the persisted camelCase document and metadata
shapes.
"""

import pytest

from ebook_index.index.models import (
    DocumentType,
    SearchDocument,
    IndexMetadata,
    SearchResult
)


class TestDocumentType:
    """Tests for DocumentType.from_value."""

    @pytest.mark.parametrize("value,expected", [
        ("pdf", DocumentType.PDF),
        ("PDF", DocumentType.PDF),
        (".pdf", DocumentType.PDF),
        ("epub", DocumentType.EPUB),
    ])
    def test_explicit_values(self, value, expected):
        """Test recognized type strings."""
        assert DocumentType.from_value(value) == expected

    def test_falls_back_to_extension(self):
        """Test that an unknown value uses the file extension."""
        assert DocumentType.from_value(None, "/books/a.PDF") == DocumentType.PDF
        assert DocumentType.from_value("mobi", "/books/a.pdf") == DocumentType.PDF

    def test_unknown_defaults_to_epub(self):
        """Test that anything not recognizably PDF is EPUB."""
        assert DocumentType.from_value("mobi", "/books/a.mobi") == DocumentType.EPUB


class TestSearchDocument:
    """Tests for SearchDocument serialization."""

    def test_to_dict_uses_camel_case(self):
        """Test the persisted key names."""
        doc = SearchDocument(
            id="abc", file_path="/books/a.pdf", type=DocumentType.PDF,
            title="A", author="B", excerpt="text", word_count=10, token_count=4
        )

        data = doc.to_dict()

        assert data == {
            "id": "abc",
            "title": "A",
            "author": "B",
            "excerpt": "text",
            "filePath": "/books/a.pdf",
            "type": "pdf",
            "wordCount": 10,
            "tokenCount": 4,
        }

    def test_to_dict_drops_none(self):
        """Test that missing optional fields are omitted."""
        doc = SearchDocument(id="abc", file_path="/books/a.epub", type=DocumentType.EPUB)

        assert doc.to_dict() == {"id": "abc", "filePath": "/books/a.epub", "type": "epub"}

    def test_from_dict(self):
        """Test parsing a persisted record."""
        doc = SearchDocument.from_dict({
            "id": "abc", "filePath": "/books/a.pdf", "type": "pdf", "wordCount": 3
        })

        assert doc.id == "abc"
        assert doc.type == DocumentType.PDF
        assert doc.word_count == 3
        assert doc.title is None

    def test_from_dict_requires_id(self):
        """Test that a record without id is rejected."""
        with pytest.raises(KeyError):
            SearchDocument.from_dict({"filePath": "/books/a.pdf"})

    def test_is_immutable(self):
        """Test that documents are frozen."""
        doc = SearchDocument(id="abc", file_path="/a.pdf", type=DocumentType.PDF)

        with pytest.raises(AttributeError):
            doc.title = "changed"


class TestIndexMetadata:
    """Tests for IndexMetadata serialization."""

    def test_to_dict_without_hash(self):
        """Test that a missing hash is omitted."""
        metadata = IndexMetadata(last_updated="2024-01-01T00:00:00.000Z", total_files=1,
                                 indexed_files={"/a.pdf": "2024-01-01T00:00:00.000Z"})

        data = metadata.to_dict()

        assert "dataFileHash" not in data
        assert data["totalFiles"] == 1
        assert data["indexedFiles"] == {"/a.pdf": "2024-01-01T00:00:00.000Z"}

    def test_from_dict(self):
        """Test parsing persisted metadata."""
        metadata = IndexMetadata.from_dict({
            "lastUpdated": "x", "totalFiles": 2, "dataFileHash": "h", "indexedFiles": {"/a": "t"}
        })

        assert metadata.data_file_hash == "h"
        assert metadata.indexed_files == {"/a": "t"}

    def test_from_dict_empty(self):
        """Test that missing metadata parses to None."""
        assert IndexMetadata.from_dict(None) is None
        assert IndexMetadata.from_dict({}) is None


class TestSearchResult:
    """Tests for SearchResult."""

    def test_filename(self):
        """Test the filename convenience property."""
        result = SearchResult(id="a", file_path="/books/deep.pdf", type=DocumentType.PDF, score=1.0)

        assert result.filename == "deep.pdf"
