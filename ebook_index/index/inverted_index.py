"""
In-memory inverted index over ebook documents.

Maps each normalized term to the set of document ids containing it and
keeps the stored document records alongside. Supports incremental
add/update/remove, term-overlap ranked search, statistics, merging, and
persistence as one (optionally gzip-compressed) JSON file or, for very
large indexes, as a directory of chunk files described by a manifest.
"""

import gzip
import json
import os
from collections import Counter
from dataclasses import replace
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Set, Tuple, Union

import numpy as np

from ..core import get_logger, IndexCorruptedError, IndexNotFoundError, IndexStoreError
from ..utils import create_excerpt, get_file_mtime, resolve_path, utc_now
from .models import (
    IndexMetadata,
    IndexStatistics,
    Percentiles,
    SearchDocument,
    SearchResult,
    TermFrequency,
)
from .tokenizer import Tokenizer

logger = get_logger(__name__)

SPLIT_INDEX_TYPE = "split-index"
DEFAULT_SPLIT_DIRECTORY = "search-indexes"
# Largest string length the index format has to stay loadable under.
MAX_SINGLE_FILE_CHARS = 536870888

_GZIP_MAGIC = b"\x1f\x8b"


def _round2(value: float) -> float:
    return round(float(value), 2)


def _percentiles(values: List[int]) -> Percentiles:
    """p25/p50/p75 with linear interpolation, zeros for an empty list."""
    if not values:
        return Percentiles()
    p25, p50, p75 = np.percentile(np.asarray(values, dtype=float), [25, 50, 75])
    return Percentiles(p25=_round2(p25), p50=_round2(p50), p75=_round2(p75))


class InvertedIndex:
    """
    Term to document-id index with document storage.

    The tokenizer is injected and must be the same instance (or the same
    configuration) used by whoever queries the index.
    """

    def __init__(
        self,
        tokenizer: Optional[Tokenizer] = None,
        compress: bool = True,
        document_chunk_size: int = 1000,
        index_chunk_size: int = 10000,
        max_single_file_chars: int = MAX_SINGLE_FILE_CHARS,
        split_directory: Optional[Union[str, Path]] = None,
        excerpt_context: int = 100
    ):
        """
        Initialize an empty index.

        Args:
            tokenizer: Tokenizer for documents and queries.
            compress: Gzip persisted files.
            document_chunk_size: Documents per chunk in split format.
            index_chunk_size: Terms per chunk in split format.
            max_single_file_chars: Serialized size above which export splits.
            split_directory: Directory for split files. Defaults to
                "search-indexes" beside the index file.
            excerpt_context: Characters of context around a match in results.
        """
        self.tokenizer = tokenizer or Tokenizer()
        self.compress = compress
        self.document_chunk_size = document_chunk_size
        self.index_chunk_size = index_chunk_size
        self.max_single_file_chars = max_single_file_chars
        self.split_directory = Path(split_directory) if split_directory else None
        self.excerpt_context = excerpt_context

        self.metadata: Optional[IndexMetadata] = None
        self.last_load_skipped = 0

        self._documents: Dict[str, SearchDocument] = {}
        self._postings: Dict[str, Set[str]] = {}

    @classmethod
    def from_config(cls, config, tokenizer: Optional[Tokenizer] = None) -> "InvertedIndex":
        """Build an empty index using the indexing, paths and search sections."""
        return cls(
            tokenizer=tokenizer or Tokenizer.from_config(config.tokenization),
            compress=config.indexing.compress,
            document_chunk_size=config.indexing.document_chunk_size,
            index_chunk_size=config.indexing.index_chunk_size,
            max_single_file_chars=config.indexing.max_single_file_chars,
            split_directory=config.paths.split_directory,
            excerpt_context=config.search.excerpt_context
        )

    def spawn(self) -> "InvertedIndex":
        """Create an empty index sharing this index's settings."""
        return InvertedIndex(
            tokenizer=self.tokenizer,
            compress=self.compress,
            document_chunk_size=self.document_chunk_size,
            index_chunk_size=self.index_chunk_size,
            max_single_file_chars=self.max_single_file_chars,
            split_directory=self.split_directory,
            excerpt_context=self.excerpt_context
        )

    # Mutation

    def add_document(self, doc: SearchDocument, text_for_indexing: Optional[str] = None) -> None:
        """
        Store a document and index its terms.

        Content terms come from text_for_indexing when given, else from the
        stored excerpt. Title and author are tokenized through the metadata
        path. Adding an id that is already present does not clear its old
        terms; use update_document for replacement.

        Args:
            doc: Document record to store.
            text_for_indexing: Full extracted text, used only transiently.
        """
        text = text_for_indexing if text_for_indexing is not None else (doc.excerpt or "")
        content_terms = self.tokenizer.tokenize(text)

        if doc.token_count is None:
            doc = replace(doc, token_count=len(content_terms))

        terms = (
            content_terms
            + self.tokenizer.tokenize_metadata(doc.title)
            + self.tokenizer.tokenize_metadata(doc.author)
        )

        self._documents[doc.id] = doc
        for term in terms:
            self._postings.setdefault(term, set()).add(doc.id)

    def remove_document(self, doc_id: str) -> bool:
        """
        Remove a document and every posting referring to it.

        Returns:
            True if the document was present.
        """
        if doc_id not in self._documents:
            return False

        del self._documents[doc_id]

        emptied = []
        for term, doc_ids in self._postings.items():
            doc_ids.discard(doc_id)
            if not doc_ids:
                emptied.append(term)
        for term in emptied:
            del self._postings[term]

        return True

    def update_document(self, doc: SearchDocument, text_for_indexing: Optional[str] = None) -> None:
        """Replace a document: remove, then add."""
        self.remove_document(doc.id)
        self.add_document(doc, text_for_indexing)

    def add_documents_batch(self, items: Iterable[Tuple[SearchDocument, Optional[str]]]) -> int:
        """Add (document, text) pairs in order. Returns the number added."""
        count = 0
        for doc, text in items:
            self.add_document(doc, text)
            count += 1
        return count

    def update_documents_batch(self, items: Iterable[Tuple[SearchDocument, Optional[str]]]) -> int:
        """Update (document, text) pairs in order. Returns the number updated."""
        count = 0
        for doc, text in items:
            self.update_document(doc, text)
            count += 1
        return count

    def remove_documents_batch(self, doc_ids: Iterable[str]) -> int:
        """Remove documents by id. Returns the number actually removed."""
        return sum(1 for doc_id in doc_ids if self.remove_document(doc_id))

    def clear(self) -> None:
        """Drop all documents, postings and metadata."""
        self._documents.clear()
        self._postings.clear()
        self.metadata = None

    # Inspection

    def has_document(self, doc_id: str) -> bool:
        return doc_id in self._documents

    def get_document(self, doc_id: str) -> Optional[SearchDocument]:
        return self._documents.get(doc_id)

    @property
    def document_count(self) -> int:
        return len(self._documents)

    @property
    def term_count(self) -> int:
        return len(self._postings)

    def document_ids(self) -> List[str]:
        return list(self._documents)

    def all_documents(self) -> List[SearchDocument]:
        return list(self._documents.values())

    def postings_for(self, term: str) -> Set[str]:
        """Copy of the posting set for an already normalized term."""
        return set(self._postings.get(term, ()))

    def terms(self) -> List[str]:
        return list(self._postings)

    # Search

    def search(self, query: str, limit: Optional[int] = 20) -> List[SearchResult]:
        """
        Rank documents by how many distinct query terms they contain.

        Args:
            query: Raw query text.
            limit: Maximum number of results, None for all.

        Returns:
            Results sorted by score, highest first.
        """
        terms = self.tokenizer.tokenize(query)
        if not terms:
            return []
        return self.search_terms(terms, query, limit)

    def search_terms(self, terms: List[str], query: str, limit: Optional[int] = 20) -> List[SearchResult]:
        """
        Score documents over already tokenized terms.

        Args:
            terms: Normalized query terms.
            query: Raw query, used only to cut the display excerpt.
            limit: Maximum number of results, None for all.

        Returns:
            Results sorted by score descending. Ties keep discovery order.
        """
        scores: Counter = Counter()
        for term in dict.fromkeys(terms):
            for doc_id in self._postings.get(term, ()):
                scores[doc_id] += 1

        ranked = sorted(scores.items(), key=lambda item: item[1], reverse=True)
        if limit is not None:
            ranked = ranked[:limit]

        results = []
        for doc_id, score in ranked:
            doc = self._documents.get(doc_id)
            if doc is None:
                logger.debug(f"Posting refers to missing document {doc_id}")
                continue
            results.append(SearchResult(
                id=doc.id,
                file_path=doc.file_path,
                type=doc.type,
                score=float(score),
                title=doc.title,
                author=doc.author,
                excerpt=create_excerpt(doc.excerpt or "", query, self.excerpt_context),
                word_count=doc.word_count,
                token_count=doc.token_count
            ))

        return results

    # Statistics

    def get_top_frequent_terms(self, k: int = 10) -> List[TermFrequency]:
        """Terms with the largest posting sets, most frequent first."""
        ranked = sorted(
            ((term, len(doc_ids)) for term, doc_ids in self._postings.items()),
            key=lambda item: item[1],
            reverse=True
        )
        return [TermFrequency(term=term, frequency=freq) for term, freq in ranked[:k]]

    def get_index_statistics(self, top_k: int = 10) -> IndexStatistics:
        """
        Summarize index size and term distribution.

        Term frequency here is the number of documents containing a term.
        A singleton term occurs in exactly one document.
        """
        total_documents = len(self._documents)
        total_terms = len(self._postings)
        total_tokens = sum(doc.token_count or 0 for doc in self._documents.values())

        frequencies = sorted(len(doc_ids) for doc_ids in self._postings.values())
        non_singletons = [freq for freq in frequencies if freq > 1]
        singleton_count = len(frequencies) - len(non_singletons)

        top_terms = self.get_top_frequent_terms(top_k)
        for entry in top_terms:
            entry.percentage = _round2(entry.frequency / total_documents * 100) if total_documents else 0.0

        return IndexStatistics(
            total_documents=total_documents,
            total_terms=total_terms,
            total_tokens=total_tokens,
            average_document_size=round(total_tokens / total_documents) if total_documents else 0,
            average_term_frequency=_round2(np.mean(frequencies)) if frequencies else 0.0,
            average_term_frequency_without_singletons=(
                _round2(np.mean(non_singletons)) if non_singletons else 0.0
            ),
            singleton_terms_count=singleton_count,
            singleton_terms_percentage=_round2(singleton_count / total_terms * 100) if total_terms else 0.0,
            percentiles=_percentiles(frequencies),
            percentiles_without_singletons=_percentiles(non_singletons),
            top_terms=top_terms
        )

    # Metadata and merging

    def update_metadata(
        self,
        data_file_hash: Optional[str] = None,
        indexed_files: Optional[Dict[str, str]] = None
    ) -> IndexMetadata:
        """
        Rebuild metadata from the current documents.

        Timestamps already recorded (or passed in indexed_files, which take
        precedence) are kept for documents still in the index. Documents
        without one get their file's mtime, or the current time when the
        file no longer exists. Entries for documents no longer present are
        dropped.

        Args:
            data_file_hash: Manifest hash to record. Keeps the previous hash
                when None.
            indexed_files: Path -> modified timestamp for files just indexed.

        Returns:
            The new metadata.
        """
        known: Dict[str, str] = {}
        if self.metadata is not None:
            known.update({resolve_path(p): t for p, t in self.metadata.indexed_files.items()})
        if indexed_files:
            known.update({resolve_path(p): t for p, t in indexed_files.items()})

        files: Dict[str, str] = {}
        for doc in self._documents.values():
            path = doc.file_path
            stamp = known.get(path)
            if stamp is None:
                stamp = get_file_mtime(path) or utc_now()
            files[path] = stamp

        if data_file_hash is None and self.metadata is not None:
            data_file_hash = self.metadata.data_file_hash

        self.metadata = IndexMetadata(
            last_updated=utc_now(),
            total_files=len(self._documents),
            data_file_hash=data_file_hash,
            indexed_files=files
        )
        return self.metadata

    def merge_index(self, other: "InvertedIndex") -> None:
        """
        Union another index into this one.

        Documents from other overwrite same-id documents here. Metadata is
        taken from other only when this index has none.
        """
        self._documents.update(other._documents)
        for term, doc_ids in other._postings.items():
            self._postings.setdefault(term, set()).update(doc_ids)

        if self.metadata is None and other.metadata is not None:
            self.metadata = replace(other.metadata, indexed_files=dict(other.metadata.indexed_files))

    # Persistence

    def _split_paths(self, path: Path) -> Tuple[Path, str, str]:
        """Return (split directory, base name, extension) for an index path."""
        extension = path.suffix or ".json"
        base = path.stem if path.suffix else path.name
        directory = self.split_directory or (path.parent / DEFAULT_SPLIT_DIRECTORY)
        return directory, base, extension

    def split_manifest_path(self, path: Union[str, Path]) -> Path:
        directory, base, extension = self._split_paths(Path(path))
        return directory / f"{base}.manifest{extension}"

    def has_split_manifest(self, path: Union[str, Path]) -> bool:
        return self.split_manifest_path(path).is_file()

    def exists(self, path: Union[str, Path]) -> bool:
        """True if a split manifest or a single index file exists for path."""
        return self.has_split_manifest(path) or Path(path).is_file()

    def persisted_size(self, path: Union[str, Path]) -> int:
        """Bytes on disk of the persisted index in whichever format is present."""
        path = Path(path)
        if self.has_split_manifest(path):
            directory, base, extension = self._split_paths(path)
            return sum(
                chunk.stat().st_size
                for chunk in directory.glob(f"{base}.*{extension}")
                if chunk.is_file()
            )
        if path.is_file():
            return path.stat().st_size
        return 0

    def delete_files(self, path: Union[str, Path]) -> None:
        """Remove a persisted index in either format."""
        path = Path(path)
        path.unlink(missing_ok=True)
        self._remove_split_files(path)

    def _to_dict(self) -> dict:
        data = {}
        if self.metadata is not None:
            data["metadata"] = self.metadata.to_dict()
        data["documents"] = [doc.to_dict() for doc in self._documents.values()]
        data["invertedIndex"] = [[term, list(doc_ids)] for term, doc_ids in self._postings.items()]
        return data

    def _write(self, path: Path, text: str) -> None:
        """Write text through a temp file and rename, gzip when enabled."""
        payload = text.encode("utf-8")
        if self.compress:
            payload = gzip.compress(payload)

        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_name(path.name + ".tmp")
        try:
            with open(tmp_path, "wb") as f:
                f.write(payload)
            os.replace(tmp_path, path)
        except OSError as e:
            tmp_path.unlink(missing_ok=True)
            raise IndexStoreError(f"Cannot write index file {path}: {e}", path=str(path))

    @staticmethod
    def _read(path: Path) -> str:
        """Read a plain or gzip-compressed file as text."""
        raw = path.read_bytes()
        if raw[:2] == _GZIP_MAGIC:
            raw = gzip.decompress(raw)
        return raw.decode("utf-8")

    def export_to_file(self, path: Union[str, Path]) -> bool:
        """
        Persist the index.

        Writes a single JSON file unless the serialized form is larger than
        max_single_file_chars (or cannot be built in memory), in which case
        the split format is written instead.

        Args:
            path: Index file path.

        Returns:
            True if the split format was used.

        Raises:
            IndexStoreError: If writing fails.
        """
        path = Path(path)

        try:
            text = json.dumps(self._to_dict(), ensure_ascii=False)
        except (MemoryError, OverflowError) as e:
            logger.info(f"Index too large to serialize in one piece ({type(e).__name__}), splitting")
            text = None

        if text is None or len(text) > self.max_single_file_chars:
            del text
            self._export_split(path)
            return True

        self._write(path, text)
        self._remove_split_files(path)
        logger.info(
            f"Exported index to {path}: {self.document_count} documents, {self.term_count} terms"
        )
        return False

    def _remove_split_files(self, path: Path) -> int:
        directory, base, extension = self._split_paths(path)
        if not directory.is_dir():
            return 0

        removed = 0
        for pattern in (
            f"{base}.manifest{extension}",
            f"{base}.metadata{extension}",
            f"{base}.docs.*{extension}",
            f"{base}.index.*{extension}",
        ):
            for stale in directory.glob(pattern):
                stale.unlink()
                removed += 1

        if removed:
            logger.debug(f"Removed {removed} stale split files from {directory}")
        return removed

    def _export_split(self, path: Path) -> None:
        directory, base, extension = self._split_paths(path)
        directory.mkdir(parents=True, exist_ok=True)
        self._remove_split_files(path)

        if self.metadata is None:
            logger.warning("Index metadata is missing, writing minimal metadata")
            self.metadata = IndexMetadata(last_updated=utc_now(), total_files=len(self._documents))

        metadata_name = f"{base}.metadata{extension}"
        self._write(directory / metadata_name, json.dumps({
            "metadata": self.metadata.to_dict(),
            "documentCount": len(self._documents),
            "invertedIndexSize": len(self._postings),
        }))

        documents = list(self._documents.values())
        doc_chunks = 0
        for start in range(0, len(documents), self.document_chunk_size):
            chunk = [doc.to_dict() for doc in documents[start:start + self.document_chunk_size]]
            self._write(
                directory / f"{base}.docs.{doc_chunks:05d}{extension}",
                json.dumps(chunk, ensure_ascii=False)
            )
            doc_chunks += 1

        postings = list(self._postings.items())
        index_chunks = 0
        for start in range(0, len(postings), self.index_chunk_size):
            chunk = [[term, list(doc_ids)] for term, doc_ids in postings[start:start + self.index_chunk_size]]
            self._write(
                directory / f"{base}.index.{index_chunks:05d}{extension}",
                json.dumps(chunk, ensure_ascii=False)
            )
            index_chunks += 1

        manifest = {
            "type": SPLIT_INDEX_TYPE,
            "metadataFile": metadata_name,
            "documentChunks": doc_chunks,
            "indexChunks": index_chunks,
            "totalDocuments": len(self._documents),
            "totalTerms": len(self._postings),
            "indexDirectory": str(directory),
        }
        self._write(directory / f"{base}.manifest{extension}", json.dumps(manifest, indent=2))

        logger.info(
            f"Index exported as {doc_chunks + index_chunks + 2} split files in {directory}"
        )

    def import_from_file(self, path: Union[str, Path]) -> None:
        """
        Load an index, replacing the current contents.

        The split format is used when its manifest exists, otherwise the
        single file. Gzip is detected automatically. Unreadable split chunks
        are skipped with a warning and counted in last_load_skipped.

        Raises:
            IndexNotFoundError: If neither format exists.
            IndexCorruptedError: If the single file or split manifest is unreadable.
        """
        path = Path(path)
        self.last_load_skipped = 0

        if self.has_split_manifest(path):
            self._import_split(path)
        elif path.is_file():
            self._import_single(path)
        else:
            raise IndexNotFoundError(f"Index file not found: {path}", path=str(path))

        logger.info(
            f"Loaded index from {path}: {self.document_count} documents, {self.term_count} terms"
        )

    def _import_single(self, path: Path) -> None:
        try:
            data = json.loads(self._read(path))
            documents = [SearchDocument.from_dict(doc) for doc in data.get("documents", [])]
            postings = {term: set(doc_ids) for term, doc_ids in data.get("invertedIndex", [])}
            metadata = IndexMetadata.from_dict(data.get("metadata"))
        except (OSError, EOFError, gzip.BadGzipFile, UnicodeDecodeError,
                ValueError, TypeError, KeyError, AttributeError) as e:
            raise IndexCorruptedError(f"Cannot load index file {path}: {e}", path=str(path))

        self._documents = {doc.id: doc for doc in documents}
        self._postings = postings
        self.metadata = metadata

    def _read_chunk(self, chunk_path: Path, label: str):
        """Parse one split file, or return None (and count it) if unusable."""
        try:
            text = self._read(chunk_path)
            if not text.strip():
                logger.warning(f"Skipping empty {label} file: {chunk_path}")
                self.last_load_skipped += 1
                return None
            return json.loads(text)
        except (OSError, EOFError, gzip.BadGzipFile, UnicodeDecodeError, ValueError) as e:
            logger.warning(f"Skipping corrupted {label} file {chunk_path}: {e}")
            self.last_load_skipped += 1
            return None

    def _import_split(self, path: Path) -> None:
        directory, base, extension = self._split_paths(path)
        manifest_path = directory / f"{base}.manifest{extension}"

        try:
            manifest = json.loads(self._read(manifest_path))
            doc_chunks = int(manifest["documentChunks"])
            index_chunks = int(manifest["indexChunks"])
        except (OSError, EOFError, gzip.BadGzipFile, UnicodeDecodeError,
                ValueError, TypeError, KeyError) as e:
            raise IndexCorruptedError(
                f"Failed to load split index manifest {manifest_path}: {e}",
                path=str(manifest_path)
            )

        self._documents = {}
        self._postings = {}
        self.metadata = None

        logger.info(
            f"Loading split index: {manifest.get('totalDocuments')} documents, "
            f"{manifest.get('totalTerms')} terms"
        )

        metadata_name = manifest.get("metadataFile") or f"{base}.metadata{extension}"
        metadata_data = self._read_chunk(directory / metadata_name, "metadata")
        if isinstance(metadata_data, dict):
            self.metadata = IndexMetadata.from_dict(metadata_data.get("metadata"))

        for number in range(doc_chunks):
            chunk_path = directory / f"{base}.docs.{number:05d}{extension}"
            docs = self._read_chunk(chunk_path, "document")
            if docs is None:
                continue
            try:
                parsed = [SearchDocument.from_dict(doc) for doc in docs]
            except (TypeError, KeyError, AttributeError) as e:
                logger.warning(f"Skipping corrupted document file {chunk_path}: {e}")
                self.last_load_skipped += 1
                continue
            for doc in parsed:
                self._documents[doc.id] = doc

        for number in range(index_chunks):
            chunk_path = directory / f"{base}.index.{number:05d}{extension}"
            entries = self._read_chunk(chunk_path, "index")
            if entries is None:
                continue
            try:
                parsed = [(term, set(doc_ids)) for term, doc_ids in entries]
            except (TypeError, ValueError) as e:
                logger.warning(f"Skipping corrupted index file {chunk_path}: {e}")
                self.last_load_skipped += 1
                continue
            for term, doc_ids in parsed:
                self._postings[term] = doc_ids

        if self.last_load_skipped:
            logger.warning(f"Skipped {self.last_load_skipped} unreadable split files")
