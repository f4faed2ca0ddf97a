"""
Index module: tokenization, document models, manifest reading, change
detection and the persisted inverted index.
"""

from .tokenizer import Tokenizer, ENGLISH_STOPWORDS
from .models import (
    DocumentType,
    SearchDocument,
    SearchResult,
    IndexMetadata,
    IndexStatistics,
    Percentiles,
    TermFrequency
)
from .manifest import (
    ManifestReader,
    ManifestContent,
    ManifestEntry,
    PdfMetadata,
    EpubMetadata,
    parse_book_metadata
)
from .change_detector import ChangeDetector, ChangeSet
from .inverted_index import InvertedIndex, SPLIT_INDEX_TYPE

__all__ = [
    "Tokenizer",
    "ENGLISH_STOPWORDS",
    "DocumentType",
    "SearchDocument",
    "SearchResult",
    "IndexMetadata",
    "IndexStatistics",
    "Percentiles",
    "TermFrequency",
    "ManifestReader",
    "ManifestContent",
    "ManifestEntry",
    "PdfMetadata",
    "EpubMetadata",
    "parse_book_metadata",
    "ChangeDetector",
    "ChangeSet",
    "InvertedIndex",
    "SPLIT_INDEX_TYPE"
]
