"""
Pytest fixtures and configuration for the test suite.

Provides temporary directories, sample ebooks, manifest helpers, a fake
text extractor and temporary configurations so tests are isolated and
never touch real libraries or index files.
"""

import json
import pytest
import tempfile
import shutil
from pathlib import Path
from typing import Dict, Generator, Iterable, Optional

import sys
_project_root = Path(__file__).parent.parent
if str(_project_root) not in sys.path:
    sys.path.insert(0, str(_project_root))

from ebook_index.extraction.extractor import ExtractionResult
from ebook_index.utils import count_words


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """
    Create a temporary directory for test files.

    Yields:
        Path to temporary directory, cleaned up after test.
    """
    tmp = tempfile.mkdtemp(prefix="ebook_index_test_")
    yield Path(tmp)
    shutil.rmtree(tmp, ignore_errors=True)


@pytest.fixture
def temp_config(temp_dir: Path) -> Generator[Path, None, None]:
    """
    Create a temporary config.json for testing.

    Args:
        temp_dir: Temporary directory fixture.

    Yields:
        Path to temporary config file.
    """
    config_dir = temp_dir / "config"
    config_dir.mkdir()

    output_dir = temp_dir / "output"
    output_dir.mkdir()

    logs_dir = output_dir / "logs"
    logs_dir.mkdir()

    config_data = {
        "paths": {
            "index_file": str(output_dir / "search-index.json"),
            "data_file": str(output_dir / "data.json"),
            "batch_directory": str(output_dir / "batch-indexes"),
            "split_directory": str(output_dir / "search-indexes"),
            "logs_directory": str(logs_dir)
        },
        "extraction": {
            "primary_backend": "pypdf",
            "fallback_backend": "pdfplumber",
            "max_file_size_mb": 100,
            "max_memory_mb": 0,
            "supported_extensions": [".pdf", ".epub"]
        },
        "indexing": {
            "compress": True,
            "use_batch_processing": False,
            "batch_size": 2,
            "max_files": 100,
            "excerpt_length": 1000,
            "log_progress_every": 5
        },
        "tokenization": {
            "min_token_length": 3,
            "remove_stopwords": True,
            "use_stemming": True
        },
        "search": {
            "default_limit": 10,
            "fuzzy_penalty": 0.5,
            "excerpt_context": 100,
            "top_terms": 5
        },
        "logging": {
            "level": "DEBUG",
            "format": "%(levelname)s - %(message)s",
            "max_file_size_mb": 1,
            "backup_count": 1
        }
    }

    config_path = config_dir / "config.json"
    with open(config_path, "w", encoding="utf-8") as f:
        json.dump(config_data, f)

    yield config_path


@pytest.fixture
def reset_config_singleton():
    """
    Reset the config singleton between tests.

    This ensures each test gets a fresh config instance.
    """
    from ebook_index.core import config_loader
    config_loader._config_instance = None
    yield
    config_loader._config_instance = None


@pytest.fixture
def reset_logger_singleton():
    """
    Reset the logger initialization flag between tests.
    """
    from ebook_index.core import logger
    logger._logger_initialized = False
    yield
    logger._logger_initialized = False


@pytest.fixture
def config(temp_config, reset_config_singleton):
    """Load the temporary config as the global config instance."""
    from ebook_index.core.config_loader import get_config
    return get_config(temp_config)


@pytest.fixture
def tokenizer():
    """Default tokenizer."""
    from ebook_index.index import Tokenizer
    return Tokenizer()


@pytest.fixture
def sample_pdf_content() -> bytes:
    """
    Create minimal valid PDF content for testing.

    Returns:
        Bytes representing a minimal PDF with text.
    """
    pdf_content = b"""%PDF-1.4
1 0 obj
<< /Type /Catalog /Pages 2 0 R >>
endobj
2 0 obj
<< /Type /Pages /Kids [3 0 R] /Count 1 >>
endobj
3 0 obj
<< /Type /Page /Parent 2 0 R /MediaBox [0 0 612 792]
   /Contents 4 0 R /Resources << /Font << /F1 5 0 R >> >> >>
endobj
4 0 obj
<< /Length 44 >>
stream
BT /F1 12 Tf 100 700 Td (Hello World) Tj ET
endstream
endobj
5 0 obj
<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica >>
endobj
xref
0 6
0000000000 65535 f
0000000009 00000 n
0000000058 00000 n
0000000115 00000 n
0000000266 00000 n
0000000359 00000 n
trailer
<< /Size 6 /Root 1 0 R >>
startxref
434
%%EOF"""
    return pdf_content


@pytest.fixture
def sample_pdf(temp_dir: Path, sample_pdf_content: bytes) -> Path:
    """Create a sample PDF file for testing."""
    pdf_path = temp_dir / "sample.pdf"
    pdf_path.write_bytes(sample_pdf_content)
    return pdf_path


@pytest.fixture
def sample_library(temp_dir: Path, sample_pdf_content: bytes) -> Path:
    """
    Create a nested directory of ebook files.

    Returns:
        Path to the library root.
    """
    library = temp_dir / "library"
    (library / "programming").mkdir(parents=True)
    (library / "fiction" / "classics").mkdir(parents=True)

    (library / "root_book.pdf").write_bytes(sample_pdf_content)
    (library / "programming" / "python_tricks.pdf").write_bytes(sample_pdf_content)
    (library / "programming" / "rust_book.epub").write_bytes(b"PK fake epub")
    (library / "fiction" / "classics" / "moby_dick.epub").write_bytes(b"PK fake epub")
    (library / "notes.txt").write_text("Not an ebook")

    return library


class FakeExtractor:
    """
    Stand-in for TextExtractor returning canned text per path.

    Paths in `errors` fail, paths in `skipped` are skipped by a guard, and
    paths in `crash` raise an unexpected exception.
    """

    def __init__(
        self,
        texts: Optional[Dict[str, str]] = None,
        errors: Iterable[str] = (),
        skipped: Iterable[str] = (),
        crash: Iterable[str] = ()
    ):
        self.texts = {str(Path(k).resolve()): v for k, v in (texts or {}).items()}
        self.errors = {str(Path(p).resolve()) for p in errors}
        self.skipped = {str(Path(p).resolve()) for p in skipped}
        self.crash = {str(Path(p).resolve()) for p in crash}
        self.calls = []

    def extract(self, filepath) -> ExtractionResult:
        key = str(Path(filepath).resolve())
        self.calls.append(key)

        if key in self.crash:
            raise RuntimeError("extractor exploded")
        if key in self.errors:
            return ExtractionResult(error="Corrupted file")
        if key in self.skipped:
            return ExtractionResult(skipped=True, reason="File too large")

        text = self.texts.get(key, "")
        return ExtractionResult(text=text, word_count=count_words(text))


@pytest.fixture
def fake_extractor_cls():
    """The FakeExtractor class, for tests that build their own instance."""
    return FakeExtractor


def make_entry(path, modified: str, title: str = None, author: str = None, doc_type: str = None) -> dict:
    """Build a raw manifest record in the upstream data-file shape."""
    path = Path(path)
    entry = {
        "file": path.name,
        "type": doc_type or path.suffix.lstrip(".").lower(),
        "fileMetadata": {
            "path": str(path),
            "size": 1024,
            "created": "2024-01-01T00:00:00.000Z",
            "modified": modified,
            "accessed": modified
        },
        "metadata": None
    }
    if title or author:
        key = "author" if entry["type"] == "pdf" else "creator"
        entry["metadata"] = {"title": title, key: author}
    return entry


@pytest.fixture
def manifest_entry():
    """Factory for raw manifest records."""
    return make_entry


@pytest.fixture
def write_manifest(temp_dir: Path):
    """
    Factory writing a list of raw records as the data file.

    Returns:
        Callable(entries, path=None) -> Path of the written manifest.
    """
    def _write(entries, path: Path = None) -> Path:
        path = path or temp_dir / "output" / "data.json"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(entries), encoding="utf-8")
        return path

    return _write


BOOK_TEXTS = {
    "deep_learning.pdf": (
        "Neural networks learn representations from data. Deep learning stacks "
        "many layers of neural networks trained with gradient descent."
    ),
    "cooking_basics.epub": (
        "Bread baking needs flour, water, salt and yeast. Knead the dough and "
        "let it rise before baking in a hot oven."
    ),
    "graph_theory.pdf": (
        "Graph algorithms explore vertices and edges. Shortest path search and "
        "spanning trees are classic network problems."
    ),
}


@pytest.fixture
def book_files(temp_dir: Path) -> Dict[str, Path]:
    """
    Create three ebook files on disk, keyed by file name.

    Their content is irrelevant because extraction is faked with BOOK_TEXTS.
    """
    books_dir = temp_dir / "books"
    books_dir.mkdir()

    paths = {}
    for name in BOOK_TEXTS:
        path = books_dir / name
        path.write_bytes(b"placeholder")
        paths[name] = path.resolve()
    return paths


@pytest.fixture
def book_extractor(book_files):
    """FakeExtractor serving BOOK_TEXTS for book_files."""
    return FakeExtractor({book_files[name]: text for name, text in BOOK_TEXTS.items()})


@pytest.fixture
def book_texts() -> Dict[str, str]:
    """Canned extracted text per book file name."""
    return dict(BOOK_TEXTS)
