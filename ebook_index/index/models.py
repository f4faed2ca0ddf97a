"""
Data models for the inverted index.

Defines the indexed document, the index metadata used for change
detection, ranked results and index statistics. Documents and metadata
serialize to the camelCase JSON shape of the persisted index format.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional


class DocumentType(str, Enum):
    """Supported ebook formats."""
    PDF = "pdf"
    EPUB = "epub"

    @classmethod
    def from_value(cls, value: Optional[str], filepath: str = "") -> "DocumentType":
        """
        Resolve a type from a manifest value, falling back to the extension.

        Anything that is not recognizably PDF is treated as EPUB.
        """
        if value:
            normalized = str(value).lower().lstrip(".")
            if normalized == cls.PDF.value:
                return cls.PDF
            if normalized == cls.EPUB.value:
                return cls.EPUB
        if Path(filepath).suffix.lower() == ".pdf":
            return cls.PDF
        return cls.EPUB


@dataclass(frozen=True)
class SearchDocument:
    """
    One indexed ebook.

    Attributes:
        id: Stable id derived from the absolute file path.
        file_path: Absolute path to the ebook file.
        type: PDF or EPUB.
        title: Title from metadata, or filename stem.
        author: Author from metadata, if any.
        excerpt: Stored (truncated) text used for result excerpts.
        word_count: Words in the extracted text.
        token_count: Distinct content terms after tokenization.
    """
    id: str
    file_path: str
    type: DocumentType
    title: Optional[str] = None
    author: Optional[str] = None
    excerpt: Optional[str] = None
    word_count: Optional[int] = None
    token_count: Optional[int] = None

    def to_dict(self) -> dict:
        """Serialize using the persisted camelCase keys."""
        data = {
            "id": self.id,
            "title": self.title,
            "author": self.author,
            "excerpt": self.excerpt,
            "filePath": self.file_path,
            "type": self.type.value,
            "wordCount": self.word_count,
            "tokenCount": self.token_count,
        }
        return {key: value for key, value in data.items() if value is not None}

    @classmethod
    def from_dict(cls, data: dict) -> "SearchDocument":
        """Deserialize a persisted document record."""
        file_path = data.get("filePath", "")
        return cls(
            id=data["id"],
            file_path=file_path,
            type=DocumentType.from_value(data.get("type"), file_path),
            title=data.get("title"),
            author=data.get("author"),
            excerpt=data.get("excerpt"),
            word_count=data.get("wordCount"),
            token_count=data.get("tokenCount"),
        )


@dataclass
class IndexMetadata:
    """
    Bookkeeping stored alongside the index.

    Attributes:
        last_updated: ISO-8601 time of the last metadata refresh.
        total_files: Number of documents at that time.
        data_file_hash: Hash of the manifest the index was built from.
        indexed_files: Absolute path -> modification timestamp at indexing.
    """
    last_updated: str
    total_files: int
    data_file_hash: Optional[str] = None
    indexed_files: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict:
        data = {
            "lastUpdated": self.last_updated,
            "totalFiles": self.total_files,
            "indexedFiles": dict(self.indexed_files),
        }
        if self.data_file_hash is not None:
            data["dataFileHash"] = self.data_file_hash
        return data

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> Optional["IndexMetadata"]:
        if not data:
            return None
        return cls(
            last_updated=data.get("lastUpdated", ""),
            total_files=data.get("totalFiles", 0),
            data_file_hash=data.get("dataFileHash"),
            indexed_files=dict(data.get("indexedFiles") or {}),
        )


@dataclass
class SearchResult:
    """
    A ranked document returned by a search.

    Attributes:
        id: Document id.
        file_path: Absolute path to the ebook.
        type: PDF or EPUB.
        score: Number of query terms present (scaled down for fuzzy hits).
        title: Document title.
        author: Document author.
        excerpt: Display excerpt around the first query match.
        word_count: Words in the extracted text.
        token_count: Distinct content terms.
    """
    id: str
    file_path: str
    type: DocumentType
    score: float
    title: Optional[str] = None
    author: Optional[str] = None
    excerpt: str = ""
    word_count: Optional[int] = None
    token_count: Optional[int] = None

    @property
    def filename(self) -> str:
        return Path(self.file_path).name


@dataclass
class TermFrequency:
    """A term and the number of documents containing it."""
    term: str
    frequency: int
    percentage: float = 0.0


@dataclass
class Percentiles:
    """25th, 50th and 75th percentiles of a distribution."""
    p25: float = 0.0
    p50: float = 0.0
    p75: float = 0.0


@dataclass
class IndexStatistics:
    """Summary of an index's size and term distribution."""
    total_documents: int
    total_terms: int
    total_tokens: int
    average_document_size: int
    average_term_frequency: float
    average_term_frequency_without_singletons: float
    singleton_terms_count: int
    singleton_terms_percentage: float
    percentiles: Percentiles
    percentiles_without_singletons: Percentiles
    top_terms: List[TermFrequency] = field(default_factory=list)
