"""
Query execution against a persisted inverted index.

Loads the index lazily, runs term-overlap searches and, when asked,
falls back to per-term fuzzy matching with a score penalty when the exact
search finds nothing.
"""

import time
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

from ..core import load_config_or_default, get_logger, SearchError
from ..index import InvertedIndex, SearchResult, Tokenizer
from .models import IndexSummary, SearchStats

logger = get_logger(__name__)


class QueryService:
    """
    Search front end over an InvertedIndex.

    The tokenizer must match the one the index was built with.
    """

    def __init__(
        self,
        index_path: Union[str, Path] = None,
        tokenizer: Optional[Tokenizer] = None,
        index: Optional[InvertedIndex] = None,
        config=None
    ):
        """
        Initialize the query service.

        Args:
            index_path: Index file path. Defaults to config paths.index_file.
            tokenizer: Tokenizer for queries.
            index: Pre-built index to query instead of loading from disk.
            config: Config instance. Defaults to the global config or defaults.
        """
        self.config = config or load_config_or_default()
        self.index_path = Path(index_path or self.config.paths.index_file)
        self.tokenizer = tokenizer or Tokenizer.from_config(self.config.tokenization)
        self.index = index if index is not None else InvertedIndex.from_config(self.config, self.tokenizer)

        self._loaded = False

        self.default_limit = self.config.search.default_limit
        self.fuzzy_penalty = self.config.search.fuzzy_penalty

    def ensure_loaded(self) -> None:
        """
        Load the index from disk once, if it holds no documents.

        Raises:
            IndexNotFoundError: If no index exists at index_path.
        """
        if self._loaded:
            return
        if self.index.document_count == 0:
            self.index.import_from_file(self.index_path)
        self._loaded = True

    def search(
        self,
        query: str,
        limit: Optional[int] = None,
        fuzzy: bool = False
    ) -> Tuple[List[SearchResult], SearchStats]:
        """
        Run a ranked search.

        Args:
            query: Raw query text.
            limit: Maximum results. Defaults to search.default_limit.
            fuzzy: Fall back to per-term matching when nothing matches exactly.

        Returns:
            Tuple of (results, SearchStats).

        Raises:
            IndexNotFoundError: If the index has to be loaded and does not exist.
            SearchError: If query execution fails.
        """
        start_time = time.perf_counter()
        limit = limit or self.default_limit

        self.ensure_loaded()

        fuzzy_used = False
        try:
            results = self.index.search(query, limit)

            if fuzzy and not results:
                results = self._fuzzy_search(query, limit)
                fuzzy_used = bool(results)
        except (TypeError, ValueError) as e:
            logger.error(f"Search failed: {e}")
            raise SearchError(f"Search execution failed: {e}", query=query)

        search_time = (time.perf_counter() - start_time) * 1000

        stats = SearchStats(
            query=query,
            total_documents=self.index.document_count,
            search_time_ms=round(search_time, 2),
            results_found=len(results),
            fuzzy_used=fuzzy_used
        )

        logger.debug(f"Search '{query}': {len(results)} results in {search_time:.1f}ms")

        return results, stats

    def _fuzzy_search(self, query: str, limit: int) -> List[SearchResult]:
        """
        Search each query term on its own and union the hits.

        The first hit for a document wins and its score is multiplied by
        the fuzzy penalty.
        """
        merged: Dict[str, SearchResult] = {}

        for term in self.tokenizer.tokenize(query):
            for result in self.index.search_terms([term], query, limit * 2):
                if result.id not in merged:
                    result.score *= self.fuzzy_penalty
                    merged[result.id] = result

        ranked = sorted(merged.values(), key=lambda result: result.score, reverse=True)
        return ranked[:limit]

    def summary(self, top_k: Optional[int] = None) -> IndexSummary:
        """
        Statistics for the loaded index plus its size on disk.

        Raises:
            IndexNotFoundError: If the index does not exist.
        """
        self.ensure_loaded()

        statistics = self.index.get_index_statistics(top_k or self.config.search.top_terms)
        return IndexSummary(
            statistics=statistics,
            index_path=str(self.index_path),
            file_size_bytes=self.index.persisted_size(self.index_path),
            is_split=self.index.has_split_manifest(self.index_path)
        )
