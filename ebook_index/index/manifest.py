"""
Manifest (data file) reading for incremental indexing.

The manifest is a JSON array of file records, or an object with an
"entries" array, produced by an upstream cataloguing step. Each record
carries the file path, its modification time and optional book metadata.
The MD5 of the raw bytes is used to decide whether a full rebuild is needed.
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from ..core import get_logger, ManifestError
from ..utils import get_content_hash, get_file_mtime, resolve_path
from .models import DocumentType

logger = get_logger(__name__)


def _optional_str(value) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


@dataclass
class PdfMetadata:
    """Document information dictionary of a PDF."""
    title: Optional[str] = None
    author: Optional[str] = None
    subject: Optional[str] = None
    creator: Optional[str] = None
    producer: Optional[str] = None
    pages: Optional[int] = None
    extra: Dict[str, Any] = field(default_factory=dict)
    kind: str = field(default="pdf", init=False)

    _KNOWN = ("title", "author", "subject", "creator", "producer", "pages")

    @property
    def display_title(self) -> Optional[str]:
        return self.title

    @property
    def display_author(self) -> Optional[str]:
        return self.author

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PdfMetadata":
        pages = data.get("pages")
        try:
            pages = int(pages) if pages is not None else None
        except (TypeError, ValueError):
            pages = None
        return cls(
            title=_optional_str(data.get("title")),
            author=_optional_str(data.get("author")),
            subject=_optional_str(data.get("subject")),
            creator=_optional_str(data.get("creator")),
            producer=_optional_str(data.get("producer")),
            pages=pages,
            extra={k: v for k, v in data.items() if k not in cls._KNOWN},
        )


@dataclass
class EpubMetadata:
    """Dublin Core metadata of an EPUB package."""
    title: Optional[str] = None
    creator: Optional[str] = None
    description: Optional[str] = None
    language: Optional[str] = None
    date: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)
    kind: str = field(default="epub", init=False)

    _KNOWN = ("title", "creator", "description", "language", "date")

    @property
    def display_title(self) -> Optional[str]:
        return self.title

    @property
    def display_author(self) -> Optional[str]:
        return self.creator

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EpubMetadata":
        return cls(
            title=_optional_str(data.get("title")),
            creator=_optional_str(data.get("creator")),
            description=_optional_str(data.get("description")),
            language=_optional_str(data.get("language")),
            date=_optional_str(data.get("date")),
            extra={k: v for k, v in data.items() if k not in cls._KNOWN},
        )


BookMetadata = Union[PdfMetadata, EpubMetadata]


def parse_book_metadata(raw, doc_type: DocumentType) -> Optional[BookMetadata]:
    """
    Build the typed metadata variant for a document type.

    Args:
        raw: The entry's "metadata" value.
        doc_type: Document type deciding the variant.

    Returns:
        PdfMetadata or EpubMetadata, or None when raw is not an object.
    """
    if not isinstance(raw, dict):
        return None
    if doc_type == DocumentType.PDF:
        return PdfMetadata.from_dict(raw)
    return EpubMetadata.from_dict(raw)


@dataclass
class ManifestEntry:
    """
    One source file listed in the manifest.

    Attributes:
        file: File name as listed.
        type: Document type.
        path: Absolute, resolved file path.
        modified: Modification timestamp as recorded upstream.
        size: File size in bytes, if known.
        metadata: Typed book metadata, if any.
        tokens: Pre-extracted tokens, if the producer supplied them.
    """
    file: str
    type: DocumentType
    path: str
    modified: Any = None
    size: Optional[int] = None
    metadata: Optional[BookMetadata] = None
    tokens: Optional[List[str]] = None

    @property
    def title(self) -> str:
        """Metadata title, or the filename stem."""
        if self.metadata is not None and self.metadata.display_title:
            return self.metadata.display_title
        return Path(self.path).stem

    @property
    def author(self) -> Optional[str]:
        if self.metadata is None:
            return None
        return self.metadata.display_author

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ManifestEntry":
        """
        Parse a raw manifest record.

        Raises:
            ValueError: If the record has no usable path.
        """
        if not isinstance(data, dict):
            raise ValueError("manifest entry is not an object")

        file_meta = data.get("fileMetadata") or {}
        raw_path = file_meta.get("path") or data.get("path")
        if not raw_path:
            raise ValueError("manifest entry has no fileMetadata.path")

        path = resolve_path(raw_path)
        doc_type = DocumentType.from_value(data.get("type"), path)
        tokens = data.get("tokens")

        return cls(
            file=data.get("file") or Path(path).name,
            type=doc_type,
            path=path,
            modified=file_meta.get("modified"),
            size=file_meta.get("size"),
            metadata=parse_book_metadata(data.get("metadata"), doc_type),
            tokens=list(tokens) if isinstance(tokens, list) else None,
        )


@dataclass
class ManifestContent:
    """Parsed manifest with its content hash."""
    entries: List[ManifestEntry]
    hash: str
    last_modified: Optional[str] = None

    def __len__(self) -> int:
        return len(self.entries)

    def by_path(self) -> Dict[str, ManifestEntry]:
        """Entries keyed by resolved absolute path."""
        return {entry.path: entry for entry in self.entries}


class ManifestReader:
    """
    Loads the manifest data file.

    Malformed individual records are skipped with a warning. A missing file
    or a document that is not valid JSON is fatal.
    """

    def __init__(self, data_file: Union[str, Path]):
        self.data_file = Path(data_file)

    def exists(self) -> bool:
        return self.data_file.is_file()

    def load(self) -> ManifestContent:
        """
        Read, hash and parse the manifest.

        Returns:
            ManifestContent with parsed entries.

        Raises:
            ManifestError: If the file is missing, unreadable or not valid JSON.
        """
        if not self.exists():
            raise ManifestError(
                f"Data file not found: {self.data_file}",
                path=str(self.data_file)
            )

        try:
            raw = self.data_file.read_bytes()
        except OSError as e:
            raise ManifestError(
                f"Cannot read data file: {e}",
                path=str(self.data_file)
            )

        try:
            data = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise ManifestError(
                f"Invalid JSON in data file: {e}",
                path=str(self.data_file)
            )

        if isinstance(data, list):
            records = data
        elif isinstance(data, dict):
            records = data.get("entries") or []
        else:
            raise ManifestError(
                "Data file must contain a JSON array or an object with 'entries'",
                path=str(self.data_file)
            )

        entries = []
        for position, record in enumerate(records):
            try:
                entries.append(ManifestEntry.from_dict(record))
            except ValueError as e:
                logger.warning(f"Skipping manifest entry {position}: {e}")

        logger.debug(f"Loaded {len(entries)} manifest entries from {self.data_file}")

        return ManifestContent(
            entries=entries,
            hash=get_content_hash(raw),
            last_modified=get_file_mtime(self.data_file),
        )
