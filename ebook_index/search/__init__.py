"""
Search module: query execution over the persisted inverted index with an
optional fuzzy fallback.
"""

from .models import SearchResult, SearchStats, IndexSummary
from .query_service import QueryService

__all__ = [
    "SearchResult",
    "SearchStats",
    "IndexSummary",
    "QueryService"
]
