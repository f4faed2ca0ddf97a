"""
Indexer module for building and maintaining the search index.

Orchestrates manifest reading, change detection, text extraction and
index persistence, in full or incremental, batched or direct mode.
"""

from .index_builder import IndexBuilder, BuildOptions, BuildResult, progress_printer

__all__ = [
    "IndexBuilder",
    "BuildOptions",
    "BuildResult",
    "progress_printer"
]
