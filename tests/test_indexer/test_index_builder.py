"""
Tests for the index builder.

Tests full rebuilds, incremental updates, their batched variants and the
per-file failure accounting. Extraction is faked with canned book texts.

SAFETY NOTE: All tests use the `config` fixture which points every path
at a temporary directory that is removed after the test.
"""

import pytest
from pathlib import Path
from unittest.mock import Mock

from ebook_index.core.exceptions import ManifestError
from ebook_index.index import InvertedIndex
from ebook_index.indexer.index_builder import (
    IndexBuilder,
    BuildOptions,
    BuildResult,
    progress_printer
)
from ebook_index.utils import compute_document_id

T1 = "2024-01-01T00:00:00.000Z"
T2 = "2024-06-01T00:00:00.000Z"
ALL_BOOKS = ["deep_learning.pdf", "cooking_basics.epub", "graph_theory.pdf"]


@pytest.fixture
def builder(config, book_extractor) -> IndexBuilder:
    """Builder over the temporary config with faked extraction."""
    return IndexBuilder(config=config, extractor=book_extractor)


@pytest.fixture
def library_manifest(write_manifest, manifest_entry, book_files):
    """Write a manifest listing the given books at the given timestamps."""
    def _write(stamps=None):
        stamps = stamps or {name: T1 for name in ALL_BOOKS}
        return write_manifest([manifest_entry(book_files[name], stamp) for name, stamp in stamps.items()])
    return _write


def _reload(config) -> InvertedIndex:
    index = InvertedIndex.from_config(config)
    index.import_from_file(config.paths.index_file)
    return index


class TestBuildResult:
    """Tests for BuildResult dataclass."""

    def test_result_defaults(self):
        """Test that a fresh result has zero counts."""
        result = BuildResult()

        assert result.added == 0
        assert result.failed == 0
        assert result.failed_files == []
        assert result.is_full_rebuild is False


class TestIndexBuilderCreation:
    """Tests for IndexBuilder construction."""

    def test_defaults_from_config(self, builder: IndexBuilder, config):
        """Test that paths and settings come from config."""
        assert builder.index_path == config.paths.index_file
        assert builder.excerpt_length == 1000
        assert builder.index.tokenizer is builder.tokenizer

    def test_explicit_index_path(self, config, book_extractor, temp_dir: Path):
        """Test that an explicit index path wins over config."""
        builder = IndexBuilder(index_path=temp_dir / "custom.json", config=config, extractor=book_extractor)

        assert builder.index_path == temp_dir / "custom.json"

    def test_load_without_index(self, builder: IndexBuilder):
        """Test that load reports a missing index."""
        assert builder.load() is False


class TestFullRebuild:
    """Tests for full rebuilds."""

    def test_first_run_is_full_rebuild(self, builder: IndexBuilder, library_manifest, config, book_files):
        """Test that a missing index triggers a full rebuild of every file."""
        library_manifest()

        result = builder.build_incremental()

        assert result.is_full_rebuild is True
        assert result.added == 3
        assert result.total_processed == 3
        assert result.failed == 0
        assert result.term_count > 0
        assert 0 < len(result.top_terms) <= 5

        index = _reload(config)
        assert index.document_count == 3
        assert index.metadata.data_file_hash is not None
        assert index.metadata.indexed_files[str(book_files["deep_learning.pdf"])] == T1

        top = index.search("neural networks")[0]
        assert top.filename == "deep_learning.pdf"
        assert top.score == 2.0

    def test_force_rebuilds(self, builder: IndexBuilder, library_manifest, config, book_extractor):
        """Test that force ignores the existing index."""
        library_manifest()
        builder.build_incremental()

        result = IndexBuilder(config=config, extractor=book_extractor).build_incremental(BuildOptions(force=True))

        assert result.is_full_rebuild is True
        assert result.added == 3

    def test_manifest_change_triggers_rebuild(self, builder: IndexBuilder, library_manifest, config,
                                              book_extractor):
        """Test that a changed manifest hash rebuilds by default."""
        library_manifest()
        builder.build_incremental()

        library_manifest({"deep_learning.pdf": T1, "cooking_basics.epub": T1})
        result = IndexBuilder(config=config, extractor=book_extractor).build_incremental()

        assert result.is_full_rebuild is True
        assert result.added == 2
        assert _reload(config).document_count == 2

    def test_failures_and_skips_counted(self, config, fake_extractor_cls, book_files, book_texts,
                                        library_manifest):
        """Test that failed and skipped files are counted and not indexed."""
        extractor = fake_extractor_cls(
            {book_files[name]: text for name, text in book_texts.items()},
            errors=[book_files["cooking_basics.epub"]],
            skipped=[book_files["graph_theory.pdf"]]
        )
        library_manifest()

        result = IndexBuilder(config=config, extractor=extractor).build_incremental()

        assert result.added == 1
        assert result.failed == 1
        assert result.skipped == 1
        assert result.failed_files == [str(book_files["cooking_basics.epub"])]
        assert str(book_files["cooking_basics.epub"]) not in _reload(config).metadata.indexed_files

    def test_failed_files_retried_next_run(self, config, fake_extractor_cls, book_files, book_texts,
                                           library_manifest):
        """Test that files without an indexed timestamp are attempted again."""
        cooking = book_files["cooking_basics.epub"]
        extractor = fake_extractor_cls(
            {book_files[name]: text for name, text in book_texts.items()},
            errors=[cooking]
        )
        library_manifest()
        IndexBuilder(config=config, extractor=extractor).build_incremental()

        extractor.errors.clear()
        result = IndexBuilder(config=config, extractor=extractor).build_incremental()

        assert result.is_full_rebuild is False
        assert result.added == 1
        assert result.unchanged == 2
        assert _reload(config).has_document(compute_document_id(cooking))

    def test_unexpected_exception_does_not_abort(self, config, fake_extractor_cls, book_files, book_texts,
                                                 library_manifest):
        """Test that a crashing extractor only fails that file."""
        extractor = fake_extractor_cls(
            {book_files[name]: text for name, text in book_texts.items()},
            crash=[book_files["deep_learning.pdf"]]
        )
        library_manifest()

        result = IndexBuilder(config=config, extractor=extractor).build_incremental()

        assert result.failed == 1
        assert result.added == 2

    def test_max_files_limits_rebuild(self, builder: IndexBuilder, library_manifest, config, book_extractor):
        """Test that max_files bounds a rebuild and the rest follows next run."""
        library_manifest()

        first = builder.build_incremental(BuildOptions(max_files=2))
        second = IndexBuilder(config=config, extractor=book_extractor).build_incremental()

        assert first.added == 2
        assert second.is_full_rebuild is False
        assert second.added == 1
        assert second.unchanged == 2
        assert _reload(config).document_count == 3

    def test_progress_callback(self, config, book_extractor, library_manifest):
        """Test that the callback sees every file in order."""
        callback = Mock()
        library_manifest()

        IndexBuilder(config=config, extractor=book_extractor, progress_callback=callback).build_incremental()

        assert callback.call_count == 3
        callback.assert_any_call(1, 3, "deep_learning.pdf")
        callback.assert_any_call(3, 3, "graph_theory.pdf")

    def test_missing_manifest_raises(self, builder: IndexBuilder):
        """Test that a missing data file is fatal."""
        with pytest.raises(ManifestError):
            builder.build_incremental()


class TestIncrementalUpdate:
    """Tests for incremental updates."""

    def test_unchanged_manifest_does_no_work(self, builder: IndexBuilder, library_manifest, config,
                                             book_extractor):
        """Test that re-running with the same manifest extracts nothing."""
        library_manifest()
        builder.build_incremental()
        calls_before = len(book_extractor.calls)

        result = IndexBuilder(config=config, extractor=book_extractor).build_incremental()

        assert result.is_full_rebuild is False
        assert result.total_processed == 0
        assert result.unchanged == 3
        assert len(book_extractor.calls) == calls_before

    @pytest.mark.parametrize("batched", [False, True])
    def test_modify_delete_unchanged(self, builder: IndexBuilder, library_manifest, config,
                                     book_extractor, book_files, batched):
        """Test one modified, one deleted and one unchanged file."""
        library_manifest()
        builder.build_incremental()

        book_extractor.texts[str(book_files["deep_learning.pdf"])] = "Quantum computing with qubits"
        library_manifest({"deep_learning.pdf": T2, "cooking_basics.epub": T1})

        result = IndexBuilder(config=config, extractor=book_extractor).build_incremental(
            BuildOptions(rebuild_on_manifest_change=False, use_batch_processing=batched)
        )

        assert result.is_full_rebuild is False
        assert result.added == 0
        assert result.modified == 1
        assert result.deleted == 1
        assert result.unchanged == 1
        assert result.total_processed == 2

        index = _reload(config)
        assert index.document_count == 2
        assert index.search("spanning") == []
        assert index.search("neural") == []
        assert index.search("quantum")[0].filename == "deep_learning.pdf"
        assert index.metadata.indexed_files[str(book_files["deep_learning.pdf"])] == T2
        assert str(book_files["graph_theory.pdf"]) not in index.metadata.indexed_files

    def test_added_file(self, builder: IndexBuilder, library_manifest, config, book_extractor):
        """Test that a new manifest entry is added."""
        library_manifest({"deep_learning.pdf": T1, "cooking_basics.epub": T1})
        builder.build_incremental()

        library_manifest()
        result = IndexBuilder(config=config, extractor=book_extractor).build_incremental(
            BuildOptions(rebuild_on_manifest_change=False)
        )

        assert result.added == 1
        assert result.unchanged == 2
        assert _reload(config).search("spanning")[0].filename == "graph_theory.pdf"

    def test_failed_modification_keeps_old_version(self, builder: IndexBuilder, library_manifest, config,
                                                   book_extractor, book_files):
        """Test that a modified file failing extraction stays searchable and is retried."""
        library_manifest()
        builder.build_incremental()

        book_extractor.errors.add(str(book_files["deep_learning.pdf"]))
        library_manifest({name: (T2 if name == "deep_learning.pdf" else T1) for name in ALL_BOOKS})
        result = IndexBuilder(config=config, extractor=book_extractor).build_incremental(
            BuildOptions(rebuild_on_manifest_change=False)
        )

        assert result.failed == 1
        assert result.modified == 0
        index = _reload(config)
        assert index.search("neural")[0].filename == "deep_learning.pdf"
        assert index.metadata.indexed_files[str(book_files["deep_learning.pdf"])] == T1

    def test_entry_without_modified_time_settles(self, builder: IndexBuilder, write_manifest, manifest_entry,
                                                 config, book_extractor, book_files):
        """Test that an entry lacking a modified time is not re-indexed on every run."""
        write_manifest([
            manifest_entry(book_files["deep_learning.pdf"], T1),
            manifest_entry(book_files["cooking_basics.epub"], None),
            manifest_entry(book_files["graph_theory.pdf"], T1),
        ])
        builder.build_incremental()
        calls_before = len(book_extractor.calls)

        for _ in range(2):
            result = IndexBuilder(config=config, extractor=book_extractor).build_incremental(
                BuildOptions(rebuild_on_manifest_change=False)
            )

            assert (result.added, result.modified, result.deleted, result.unchanged) == (0, 0, 0, 3)

        assert len(book_extractor.calls) == calls_before
        assert _reload(config).search("yeast")[0].filename == "cooking_basics.epub"


class TestBatchProcessing:
    """Tests for the batched build variants."""

    def test_batched_full_rebuild(self, builder: IndexBuilder, library_manifest, config):
        """Test that batching produces the same index and cleans up."""
        library_manifest()
        batch_dir = config.paths.batch_directory
        batch_dir.mkdir(parents=True, exist_ok=True)
        (batch_dir / "batch-099.json").write_text("stale")

        result = builder.build_incremental(BuildOptions(use_batch_processing=True, batch_size=2))

        assert result.is_full_rebuild is True
        assert result.added == 3
        assert list(batch_dir.glob("batch-*")) == []

        index = _reload(config)
        assert index.document_count == 3
        assert index.search("neural networks")[0].filename == "deep_learning.pdf"

    def test_batched_matches_direct(self, config, book_extractor, library_manifest, temp_dir: Path):
        """Test that batched and direct builds index the same postings."""
        library_manifest()

        direct = IndexBuilder(index_path=temp_dir / "direct.json", config=config, extractor=book_extractor)
        direct.build_incremental(BuildOptions(use_batch_processing=False))
        batched = IndexBuilder(index_path=temp_dir / "batched.json", config=config, extractor=book_extractor)
        batched.build_incremental(BuildOptions(use_batch_processing=True, batch_size=1))

        assert sorted(direct.index.terms()) == sorted(batched.index.terms())
        for term in direct.index.terms():
            assert direct.index.postings_for(term) == batched.index.postings_for(term)

    def test_custom_batch_dir(self, builder: IndexBuilder, library_manifest, temp_dir: Path):
        """Test that batch files go to the requested directory."""
        library_manifest()
        batch_dir = temp_dir / "scratch"

        builder.build_incremental(BuildOptions(use_batch_processing=True, batch_dir=batch_dir))

        assert batch_dir.is_dir()
        assert list(batch_dir.glob("batch-*")) == []


class TestBuildFromFiles:
    """Tests for indexing an explicit list of files."""

    def test_build_from_files(self, builder: IndexBuilder, book_files, config):
        """Test adding files directly, without a manifest."""
        result = builder.build_from_files(book_files.values())

        assert result.added == 3
        assert result.total_processed == 3

        index = _reload(config)
        assert index.document_count == 3
        doc = index.get_document(compute_document_id(book_files["graph_theory.pdf"]))
        assert doc.title == "graph_theory"
        assert set(index.metadata.indexed_files) == {str(p) for p in book_files.values()}

    def test_rebuilding_same_files_counts_modified(self, builder: IndexBuilder, book_files, config,
                                                   book_extractor):
        """Test that files already indexed are replaced, not duplicated."""
        builder.build_from_files(book_files.values())

        result = IndexBuilder(config=config, extractor=book_extractor).build_from_files(
            [book_files["deep_learning.pdf"]]
        )

        assert result.added == 0
        assert result.modified == 1
        assert _reload(config).document_count == 3


class TestPersistedFormat:
    """Tests for what the builder writes."""

    def test_index_file_is_compressed(self, builder: IndexBuilder, library_manifest, config):
        """Test that the saved index is gzip-compressed per config."""
        library_manifest()
        builder.build_incremental()

        assert config.paths.index_file.read_bytes()[:2] == b"\x1f\x8b"

    def test_manifest_hash_recorded(self, builder: IndexBuilder, library_manifest, config):
        """Test that the manifest hash is stored for the next run."""
        from ebook_index.utils import get_content_hash
        manifest_path = library_manifest()
        builder.build_incremental()

        assert _reload(config).metadata.data_file_hash == get_content_hash(manifest_path.read_bytes())


class TestProgressPrinter:
    """Tests for the console progress callback."""

    def test_prints_percentage(self, capsys):
        """Test the printed progress line."""
        progress_printer(1, 4, "deep_learning.pdf")

        captured = capsys.readouterr()
        assert "25.0%" in captured.out
        assert "deep_learning.pdf" in captured.out
