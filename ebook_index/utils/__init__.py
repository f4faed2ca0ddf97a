"""
Utility module providing shared helper functions.

Contains file operations, timestamp handling, text processing and batching
utilities used across the application. Depends only on the standard library.
"""

from .file_utils import (
    get_content_hash,
    resolve_path,
    compute_document_id,
    get_file_size_mb,
    get_file_mtime,
    utc_now,
    format_timestamp,
    parse_timestamp,
    ensure_directory
)
from .text_utils import (
    clean_text,
    truncate_text,
    count_words,
    create_excerpt
)
from .batching import BatchIterator, iter_batches

__all__ = [
    "get_content_hash",
    "resolve_path",
    "compute_document_id",
    "get_file_size_mb",
    "get_file_mtime",
    "utc_now",
    "format_timestamp",
    "parse_timestamp",
    "ensure_directory",
    "clean_text",
    "truncate_text",
    "count_words",
    "create_excerpt",
    "BatchIterator",
    "iter_batches"
]
