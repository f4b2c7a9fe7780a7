"""
Tests for Phase A Summariser
============================
"""

from pathlib import Path

# Add parent to path for imports
import sys
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from bundle_navigator.phase_a import (
    PhaseASummariser,
    first_paragraph,
    infer_page_count,
    split_text_into_pages,
)

BUNDLE_TEXT = """TRIAL BUNDLE

Particulars of Claim served on behalf of the claimant following the accident at the depot in March 2021.

Witness Statement of John Smith. Expert Report of Dr Jones on causation.

Page 3 of 12
"""


class TestSummarise:
    """Section detection and summary text"""

    def test_detects_sections(self):
        output = PhaseASummariser().summarise("Smith v Acme", BUNDLE_TEXT)
        assert output.detected_sections == ["Particulars Of Claim", "Witness Statement", "Expert Report"]
        assert "Detected sections: Particulars Of Claim, Witness Statement, Expert Report." in output.summary
        assert 'This bundle "Smith v Acme"' in output.summary

    def test_includes_first_paragraph(self):
        output = PhaseASummariser().summarise("Smith v Acme", BUNDLE_TEXT)
        assert "Document Summary: Particulars of Claim served" in output.summary

    def test_page_count_inferred(self):
        output = PhaseASummariser().summarise("Smith v Acme", BUNDLE_TEXT)
        assert output.page_count == 12

    def test_explicit_page_count_wins(self):
        output = PhaseASummariser().summarise("Smith v Acme", BUNDLE_TEXT, page_count=40)
        assert output.page_count == 40

    def test_short_text_placeholder(self):
        output = PhaseASummariser().summarise("Smith v Acme", "too short", page_count=5)
        assert output.summary == 'Bundle "Smith v Acme" uploaded. Contains 5 pages. Full content analysis not yet available.'
        assert output.detected_sections == []

    def test_no_text(self):
        output = PhaseASummariser().summarise("Smith v Acme", None)
        assert output.page_count == 0
        assert "Full content analysis not yet available" in output.summary


class TestHelpers:
    def test_infer_page_count_last_marker(self):
        assert infer_page_count("page 1 ... page 2 ... page 7") == 7
        assert infer_page_count("no markers") is None

    def test_first_paragraph_truncated(self):
        paragraph = first_paragraph("short\n\n" + "x" * 300)
        assert paragraph == "x" * 200 + "..."

    def test_split_on_markers(self):
        pages = split_text_into_pages("--- Page 1 ---\nfirst\n--- Page 2 ---\nsecond")
        assert pages == {1: "first", 2: "second"}

    def test_repeated_marker_keeps_all_text(self):
        text = "--- Page 1 ---\nalpha zebra\n--- Page 1 ---\nsecond text\n--- Page 2 ---\nlast"
        pages = split_text_into_pages(text)
        assert pages == {1: "alpha zebra\n\nsecond text", 2: "last"}

    def test_preamble_joins_first_page(self):
        pages = split_text_into_pages("Cover sheet okapi\n--- Page 1 ---\nfirst")
        assert pages == {1: "Cover sheet okapi\n\nfirst"}

    def test_split_on_form_feed(self):
        assert split_text_into_pages("one\ftwo") == {1: "one", 2: "two"}

    def test_single_page_fallback(self):
        assert split_text_into_pages("just text") == {1: "just text"}
