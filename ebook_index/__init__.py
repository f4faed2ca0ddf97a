"""
Ebook Index Package.

Catalogs a personal PDF/EPUB collection into a compressed inverted index
with incremental updates, queryable from the command line.
"""

__version__ = "1.0.0"
