"""
Indexing pipeline for the ebook index.

Reads the manifest, decides between a full rebuild and an incremental
update, extracts text for the files that need work, feeds documents into
the inverted index and persists it. Both modes have a batched variant that
extracts a fixed number of files into a throwaway index, writes it to a
batch file, and merges the batch files into the main index at the end.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Tuple, Union

from ..core import load_config_or_default, get_logger, ExtractionError
from ..extraction import TextExtractor
from ..index import (
    ChangeDetector,
    ChangeSet,
    DocumentType,
    InvertedIndex,
    ManifestContent,
    ManifestEntry,
    ManifestReader,
    SearchDocument,
    TermFrequency,
    Tokenizer,
)
from ..utils import compute_document_id, get_file_mtime, iter_batches, resolve_path

logger = get_logger(__name__)

BATCH_FILE_PREFIX = "batch-"


@dataclass
class BuildOptions:
    """
    Options for one update run. Unset values come from config.

    Attributes:
        data_file: Manifest path.
        force: Always do a full rebuild, ignoring any existing index.
        use_batch_processing: Use the batched variants.
        batch_size: Files per batch.
        batch_dir: Directory for intermediate batch files.
        max_files: Upper bound on files processed in this run.
        rebuild_on_manifest_change: Full rebuild when the manifest hash changed.
    """
    data_file: Optional[Union[str, Path]] = None
    force: bool = False
    use_batch_processing: Optional[bool] = None
    batch_size: Optional[int] = None
    batch_dir: Optional[Union[str, Path]] = None
    max_files: Optional[int] = None
    rebuild_on_manifest_change: Optional[bool] = None


@dataclass
class BuildResult:
    """Counts and summary of one build or update run."""
    added: int = 0
    modified: int = 0
    deleted: int = 0
    unchanged: int = 0
    total_processed: int = 0
    failed: int = 0
    skipped: int = 0
    is_full_rebuild: bool = False
    failed_files: List[str] = field(default_factory=list)
    term_count: int = 0
    top_terms: List[TermFrequency] = field(default_factory=list)


class IndexBuilder:
    """
    Orchestrates full and incremental index builds.

    Per-file failures are counted and logged and never abort a run. Only
    a missing or unparseable manifest is fatal.
    """

    def __init__(
        self,
        index_path: Union[str, Path] = None,
        tokenizer: Optional[Tokenizer] = None,
        extractor: Optional[TextExtractor] = None,
        config=None,
        progress_callback: Callable[[int, int, str], None] = None
    ):
        """
        Initialize the index builder.

        Args:
            index_path: Index file path. Defaults to config paths.index_file.
            tokenizer: Tokenizer shared with the index.
            extractor: Text extraction collaborator.
            config: Config instance. Defaults to the global config or defaults.
            progress_callback: Optional callback(current, total, filename)
                              called before each file is extracted.
        """
        self.config = config or load_config_or_default()
        self.index_path = Path(index_path or self.config.paths.index_file)
        self.tokenizer = tokenizer or Tokenizer.from_config(self.config.tokenization)
        self.extractor = extractor or TextExtractor()
        self.progress_callback = progress_callback

        self.index = InvertedIndex.from_config(self.config, tokenizer=self.tokenizer)
        self.change_detector = ChangeDetector()

        self.excerpt_length = self.config.indexing.excerpt_length
        self.log_every = self.config.indexing.log_progress_every

    # Entry points

    def load(self) -> bool:
        """Load the existing index if there is one. Returns True if loaded."""
        if not self.index.exists(self.index_path):
            return False
        self.index.import_from_file(self.index_path)
        return True

    def save(self) -> bool:
        """Persist the index. Returns True if the split format was used."""
        return self.index.export_to_file(self.index_path)

    def build_incremental(self, options: Optional[BuildOptions] = None) -> BuildResult:
        """
        Bring the index in line with the manifest and save it.

        A full rebuild happens when forced, when no index exists, or when
        the manifest hash changed and rebuild_on_manifest_change is set.
        Otherwise only added, modified and deleted files are processed.

        Args:
            options: Run options.

        Returns:
            BuildResult for the run.

        Raises:
            ManifestError: If the manifest is missing or unparseable.
        """
        options = options or BuildOptions()
        indexing = self.config.indexing

        manifest = ManifestReader(options.data_file or self.config.paths.data_file).load()

        index_exists = False
        if not options.force:
            index_exists = self.load()

        rebuild_on_change = (
            indexing.rebuild_on_manifest_change
            if options.rebuild_on_manifest_change is None
            else options.rebuild_on_manifest_change
        )
        use_batches = (
            indexing.use_batch_processing
            if options.use_batch_processing is None
            else options.use_batch_processing
        )

        is_full_rebuild = (
            options.force
            or not index_exists
            or (rebuild_on_change and self.change_detector.has_data_file_changed(manifest, self.index.metadata))
        )

        mode = "full rebuild" if is_full_rebuild else "incremental update"
        logger.info(f"Starting {mode}{' with batch processing' if use_batches else ''}")

        if is_full_rebuild:
            if use_batches:
                result = self.full_rebuild_batched(manifest, options)
            else:
                result = self.full_rebuild(manifest, options)
        elif use_batches:
            result = self.incremental_update_batched(manifest, options)
        else:
            result = self.incremental_update(manifest, options)

        self.save()
        self._summarize(result)
        return result

    def full_rebuild(self, manifest: ManifestContent, options: Optional[BuildOptions] = None) -> BuildResult:
        """Clear the index and index the first max_files manifest entries."""
        options = options or BuildOptions()
        result = BuildResult(is_full_rebuild=True)

        self.index.clear()
        entries = self._limit_entries(manifest, options)

        documents: List[Tuple[SearchDocument, str]] = []
        indexed_files: Dict[str, str] = {}

        for doc, text, entry in self._extract_entries(entries, result):
            documents.append((doc, text))
            indexed_files[entry.path] = self._indexed_stamp(entry)

        result.added = self.index.add_documents_batch(documents)
        result.total_processed = result.added

        self.index.update_metadata(data_file_hash=manifest.hash, indexed_files=indexed_files)

        logger.info(f"Full rebuild completed: {result.added} documents indexed")
        return result

    def incremental_update(self, manifest: ManifestContent, options: Optional[BuildOptions] = None) -> BuildResult:
        """Process only the files that changed since the last run."""
        options = options or BuildOptions()
        changes = self._detect_changes(manifest, options)
        result = BuildResult(unchanged=changes.unchanged)

        indexed_files: Dict[str, str] = {}

        for doc, text, entry in self._extract_entries(changes.added, result):
            self.index.add_document(doc, text)
            indexed_files[entry.path] = self._indexed_stamp(entry)
            result.added += 1

        for doc, text, entry in self._extract_entries(changes.modified, result):
            self.index.update_document(doc, text)
            indexed_files[entry.path] = self._indexed_stamp(entry)
            result.modified += 1

        result.deleted = self._remove_deleted(changes.deleted)
        result.total_processed = result.added + result.modified + result.deleted

        self.index.update_metadata(data_file_hash=manifest.hash, indexed_files=indexed_files)

        logger.info(f"Incremental update completed: {result.total_processed} files processed")
        return result

    def full_rebuild_batched(self, manifest: ManifestContent, options: Optional[BuildOptions] = None) -> BuildResult:
        """Full rebuild through batch files."""
        options = options or BuildOptions()
        result = BuildResult(is_full_rebuild=True)

        self.index.clear()
        entries = self._limit_entries(manifest, options)

        indexed_files, added, _ = self._run_batches(entries, set(), options, result)
        result.added = added
        result.total_processed = added

        self.index.update_metadata(data_file_hash=manifest.hash, indexed_files=indexed_files)

        logger.info(f"Batch rebuild completed: {result.added} documents indexed")
        return result

    def incremental_update_batched(
        self,
        manifest: ManifestContent,
        options: Optional[BuildOptions] = None
    ) -> BuildResult:
        """Incremental update through batch files."""
        options = options or BuildOptions()
        changes = self._detect_changes(manifest, options)
        result = BuildResult(unchanged=changes.unchanged)

        result.deleted = self._remove_deleted(changes.deleted)

        modified_paths = {entry.path for entry in changes.modified}
        indexed_files, added, modified = self._run_batches(
            changes.added + changes.modified, modified_paths, options, result
        )
        result.added = added
        result.modified = modified
        result.total_processed = added + modified + result.deleted

        self.index.update_metadata(data_file_hash=manifest.hash, indexed_files=indexed_files)

        logger.info(f"Batch incremental update completed: {result.total_processed} files processed")
        return result

    def build_from_files(self, paths: Iterable[Union[str, Path]]) -> BuildResult:
        """
        Add or replace documents for an explicit list of files.

        The existing index, if any, is loaded first. Titles come from the
        file names. The index is saved at the end.
        """
        self.load()
        result = BuildResult()
        indexed_files: Dict[str, str] = {}

        entries = []
        for path in paths:
            resolved = resolve_path(path)
            entries.append(ManifestEntry(
                file=Path(resolved).name,
                type=DocumentType.from_value(None, resolved),
                path=resolved,
                modified=get_file_mtime(resolved)
            ))

        logger.info(f"Building search index from {len(entries)} files")

        for doc, text, entry in self._extract_entries(entries, result):
            if self.index.has_document(doc.id):
                result.modified += 1
            else:
                result.added += 1
            self.index.update_document(doc, text)
            indexed_files[entry.path] = self._indexed_stamp(entry)

        result.total_processed = result.added + result.modified
        self.index.update_metadata(indexed_files=indexed_files)

        self.save()
        self._summarize(result)
        return result

    # Internals

    def _limit_entries(self, manifest: ManifestContent, options: BuildOptions) -> List[ManifestEntry]:
        max_files = self._max_files(options)
        entries = manifest.entries[:max_files] if max_files else list(manifest.entries)
        logger.info(f"Processing {len(entries)} files (limited from {len(manifest.entries)} total)")
        return entries

    def _max_files(self, options: BuildOptions) -> int:
        return self.config.indexing.max_files if options.max_files is None else options.max_files

    def _detect_changes(self, manifest: ManifestContent, options: BuildOptions) -> ChangeSet:
        changes = self.change_detector.detect_changes(manifest, self.index.metadata)
        return changes.limit(self._max_files(options))

    @staticmethod
    def _indexed_stamp(entry: ManifestEntry) -> str:
        """Timestamp recorded in indexed_files for a processed entry."""
        if entry.modified is not None:
            return entry.modified
        return get_file_mtime(entry.path)

    def _remove_deleted(self, deleted_paths: List[str]) -> int:
        if not deleted_paths:
            return 0
        removed = self.index.remove_documents_batch(compute_document_id(path) for path in deleted_paths)
        logger.info(f"Removed {removed} deleted files from index")
        return len(deleted_paths)

    def _build_document(self, entry: ManifestEntry, text: str, word_count: int) -> SearchDocument:
        return SearchDocument(
            id=compute_document_id(entry.path),
            file_path=entry.path,
            type=entry.type,
            title=entry.title,
            author=entry.author,
            excerpt=text[:self.excerpt_length],
            word_count=word_count
        )

    def _extract_entries(self, entries: List[ManifestEntry], result: BuildResult):
        """
        Extract entries one by one.

        Yields:
            (document, full_text, entry) for each successfully extracted file.
            Failures and skips are recorded on result.
        """
        total = len(entries)

        for position, entry in enumerate(entries, start=1):
            filename = Path(entry.path).name

            if self.progress_callback:
                self.progress_callback(position, total, filename)

            try:
                extraction = self.extractor.extract(entry.path)
            except ExtractionError as e:
                self._record_failure(result, entry, e.message)
                continue
            except Exception as e:
                logger.error(f"Unexpected error processing {filename}: {e}")
                self._record_failure(result, entry, str(e))
                continue

            if extraction.skipped:
                result.skipped += 1
                logger.info(f"Skipped {filename}: {extraction.reason}")
            elif extraction.error:
                self._record_failure(result, entry, extraction.error)
            else:
                logger.debug(f"Indexed {extraction.word_count} words from {filename}")
                yield self._build_document(entry, extraction.text, extraction.word_count), extraction.text, entry

            if self.log_every and position % self.log_every == 0:
                logger.info(
                    f"Progress: {position}/{total} files "
                    f"({result.failed} failed, {result.skipped} skipped)"
                )

    @staticmethod
    def _record_failure(result: BuildResult, entry: ManifestEntry, message: str) -> None:
        result.failed += 1
        result.failed_files.append(entry.path)
        logger.warning(f"Failed to extract text from {entry.path}: {message}")

    def _batch_dir(self, options: BuildOptions) -> Path:
        return Path(options.batch_dir or self.config.paths.batch_directory)

    def _clear_batch_files(self, batch_dir: Path) -> None:
        if not batch_dir.is_dir():
            return
        scratch = self.index.spawn()
        for stale in sorted(batch_dir.glob(f"{BATCH_FILE_PREFIX}*")):
            if stale.is_file() and stale.suffix == ".json":
                scratch.delete_files(stale)

    def _run_batches(
        self,
        entries: List[ManifestEntry],
        modified_paths: set,
        options: BuildOptions,
        result: BuildResult
    ) -> Tuple[Dict[str, str], int, int]:
        """
        Extract entries batch by batch into batch files, then merge them.

        Documents already in the main index are removed before their batch
        is merged, so replaced documents leave no stale postings.

        Returns:
            (indexed_files, added count, modified count)
        """
        batch_size = options.batch_size or self.config.indexing.batch_size
        batch_dir = self._batch_dir(options)
        batch_dir.mkdir(parents=True, exist_ok=True)
        self._clear_batch_files(batch_dir)

        batches = iter_batches(entries, batch_size)
        logger.info(f"Processing {len(entries)} files in {len(batches)} batches of up to {batch_size}")

        indexed_files: Dict[str, str] = {}
        batch_files: List[Path] = []
        added = 0
        modified = 0

        for number, batch in enumerate(batches):
            batch_index = self.index.spawn()

            for doc, text, entry in self._extract_entries(batch, result):
                batch_index.add_document(doc, text)
                indexed_files[entry.path] = self._indexed_stamp(entry)
                if entry.path in modified_paths:
                    modified += 1
                else:
                    added += 1

            batch_file = batch_dir / f"{BATCH_FILE_PREFIX}{number:03d}.json"
            batch_index.export_to_file(batch_file)
            batch_files.append(batch_file)
            logger.info(
                f"Batch {number + 1}/{len(batches)} written: {batch_index.document_count} documents"
            )

        for batch_file in batch_files:
            batch_index = self.index.spawn()
            batch_index.import_from_file(batch_file)
            self.index.remove_documents_batch(batch_index.document_ids())
            self.index.merge_index(batch_index)
            batch_index.delete_files(batch_file)

        logger.info(f"Merged {len(batch_files)} batch files into the main index")
        return indexed_files, added, modified

    def _summarize(self, result: BuildResult) -> None:
        result.term_count = self.index.term_count
        result.top_terms = self.index.get_top_frequent_terms(self.config.search.top_terms)

        logger.info(
            f"Index now has {self.index.document_count} documents and {result.term_count} terms "
            f"(+{result.added} ~{result.modified} -{result.deleted} ={result.unchanged}, "
            f"{result.failed} failed, {result.skipped} skipped)"
        )


def progress_printer(current: int, total: int, filename: str) -> None:
    """Simple progress callback that prints to console."""
    percent = (current / total) * 100 if total > 0 else 0
    print(f"\r[{percent:5.1f}%] {current}/{total} - {filename[:50]:<50}", end="", flush=True)
