"""
Tests for Search Indexer
========================
"""

import pytest
from pathlib import Path

# Add parent to path for imports
import sys
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from bundle_navigator.errors import ValidationError
from bundle_navigator.search import SearchIndexer, make_snippet


@pytest.fixture
def indexer():
    return SearchIndexer(snippet_radius=20, max_results=50)


@pytest.fixture
def pages():
    return [
        (1, "The claimant alleges negligence by the landlord."),
        (2, "Negligence is denied. The landlord says there was no negligence at all."),
        (3, "Schedule of loss attached."),
    ]


class TestQueryValidation:
    """Queries shorter than two characters are rejected"""

    def test_one_character_rejected(self, indexer, pages):
        with pytest.raises(ValidationError):
            indexer.search(pages, "a")

    def test_whitespace_padding_does_not_count(self, indexer, pages):
        with pytest.raises(ValidationError):
            indexer.search(pages, "  a  ")

    def test_two_characters_accepted(self, indexer, pages):
        response = indexer.search(pages, "zz")
        assert response.results == []
        assert response.total_matches == 0


class TestRanking:
    """Count descending, ties by page"""

    def test_case_insensitive_counts(self, indexer, pages):
        response = indexer.search(pages, "NEGLIGENCE")
        assert [(r.page, r.count) for r in response.results] == [(2, 2), (1, 1)]
        assert response.total_matches == 3

    def test_ties_by_page_number(self, indexer, pages):
        response = indexer.search(pages, "landlord")
        assert [r.page for r in response.results] == [1, 2]

    def test_result_cap(self, pages):
        many = [(i, "loss") for i in range(1, 80)]
        response = SearchIndexer(max_results=50).search(many, "loss")
        assert len(response.results) == 50
        assert response.total_matches == 79


class TestSnippet:
    """Snippet around the first match with ellipses"""

    def test_ellipses_when_truncated(self):
        text = "a" * 100 + "needle" + "b" * 100
        snippet = make_snippet(text, 100, 6, radius=10)
        assert snippet == "..." + "a" * 10 + "needle" + "b" * 10 + "..."

    def test_no_ellipses_for_short_text(self):
        assert make_snippet("short needle text", 6, 6, radius=60) == "short needle text"
