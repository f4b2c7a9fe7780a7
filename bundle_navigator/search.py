"""
Search Indexer
==============

Case-insensitive substring search over a bundle's page text.

The index is the PageText rows written at bundle creation, so search works
regardless of chunk processing progress.
"""

import logging
from typing import Iterable, List, Tuple

from .errors import ValidationError
from .schemas import SearchResponse, SearchResult

logger = logging.getLogger(__name__)

MIN_QUERY_LEN = 2


def make_snippet(text: str, position: int, length: int, radius: int = 60) -> str:
    """Text around a match, with ellipses where truncated"""
    start = max(0, position - radius)
    end = min(len(text), position + length + radius)
    snippet = " ".join(text[start:end].split())
    if start > 0:
        snippet = "..." + snippet
    if end < len(text):
        snippet = snippet + "..."
    return snippet


class SearchIndexer:
    """Ranks pages by number of query occurrences"""

    def __init__(self, snippet_radius: int = 60, max_results: int = 50):
        self.snippet_radius = snippet_radius
        self.max_results = max_results

    def search(self, pages: Iterable[Tuple[int, str]], query: str) -> SearchResponse:
        needle = (query or "").strip()
        if len(needle) < MIN_QUERY_LEN:
            raise ValidationError(
                f"Search query must be at least {MIN_QUERY_LEN} characters",
                details={"query": query},
            )

        lowered_needle = needle.lower()
        results: List[SearchResult] = []
        for page_no, text in pages:
            text = text or ""
            lowered = text.lower()
            count = lowered.count(lowered_needle)
            if not count:
                continue
            first = lowered.find(lowered_needle)
            results.append(SearchResult(
                page=page_no,
                count=count,
                snippet=make_snippet(text, first, len(needle), self.snippet_radius),
            ))

        results.sort(key=lambda r: (-r.count, r.page))
        total = sum(r.count for r in results)
        logger.debug(f"Search '{needle}': {len(results)} pages, {total} matches")
        return SearchResponse(query=needle, results=results[:self.max_results], total_matches=total)
