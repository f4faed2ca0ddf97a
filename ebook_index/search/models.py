"""
Data models for search functionality.

SearchResult is shared with the index. SearchStats and IndexSummary
describe a query execution and the summary report.
"""

from dataclasses import dataclass

from ..index.models import IndexStatistics, SearchResult


@dataclass
class SearchStats:
    """
    Statistics about a search execution.

    Attributes:
        query: The original query text.
        total_documents: Documents in the index.
        search_time_ms: Query execution time in milliseconds.
        results_found: Number of results returned.
        fuzzy_used: Whether the fuzzy fallback produced the results.
    """
    query: str
    total_documents: int
    search_time_ms: float
    results_found: int
    fuzzy_used: bool = False


@dataclass
class IndexSummary:
    """Index statistics together with the on-disk size of the index."""
    statistics: IndexStatistics
    index_path: str
    file_size_bytes: int = 0
    is_split: bool = False


__all__ = ["SearchResult", "SearchStats", "IndexSummary"]
