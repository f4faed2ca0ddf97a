"""
Text extraction module for the ebook index.

Provides file discovery and text extraction for PDF (pypdf with pdfplumber
fallback) and EPUB (ebooklib + BeautifulSoup) files, with size, memory and
page-count guards.
"""

from .file_scanner import FileScanner
from .pdf_backends import PyPDFBackend, PDFPlumberBackend
from .epub_backend import EpubBackend
from .extractor import TextExtractor, ExtractionResult

__all__ = [
    "FileScanner",
    "PyPDFBackend",
    "PDFPlumberBackend",
    "EpubBackend",
    "TextExtractor",
    "ExtractionResult"
]
