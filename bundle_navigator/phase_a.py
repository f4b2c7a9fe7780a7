"""
Phase A Summariser
==================

Fast single-pass preview of a whole bundle: detected section names, the first
substantive paragraph and an inferred page count. No extractor calls.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .extraction.base import PAGE_MARKER, split_pages

logger = logging.getLogger(__name__)

PHASE_A_SECTIONS = [
    "letter of claim", "particulars of claim", "defence", "witness statement",
    "expert report", "medical report", "schedule of loss", "chronology",
    "court order", "disclosure", "bundle index", "tenancy agreement",
]

MIN_TEXT_LEN = 100
MIN_PARAGRAPH_LEN = 50
PARAGRAPH_PREVIEW_LEN = 200
MAX_LISTED_SECTIONS = 6

_PAGE_OF = re.compile(r"(?:page|p\.?)\s*(\d+)\s*(?:of|/)\s*(\d+)", re.IGNORECASE)
_PAGE_N = re.compile(r"page\s+(\d+)", re.IGNORECASE)


@dataclass
class PhaseAOutput:
    summary: str
    page_count: int
    detected_sections: List[str] = field(default_factory=list)


def infer_page_count(text: str) -> Optional[int]:
    """Page count from "Page X of Y", else the last "Page N" marker"""
    if not text:
        return None
    page_of = _PAGE_OF.search(text)
    if page_of:
        return int(page_of.group(2))
    pages = _PAGE_N.findall(text)
    if pages:
        return int(pages[-1])
    return None


def detect_sections(text: str) -> List[str]:
    lowered = (text or "").lower()
    sections = []
    for pattern in PHASE_A_SECTIONS:
        if pattern in lowered:
            label = " ".join(w.capitalize() for w in pattern.split())
            if label not in sections:
                sections.append(label)
    return sections


def first_paragraph(text: str) -> Optional[str]:
    for paragraph in re.split(r"\n\s*\n", text or ""):
        paragraph = paragraph.strip()
        if len(paragraph) > MIN_PARAGRAPH_LEN:
            if len(paragraph) > PARAGRAPH_PREVIEW_LEN:
                return paragraph[:PARAGRAPH_PREVIEW_LEN] + "..."
            return paragraph
    return None


def split_text_into_pages(text: str) -> Dict[int, str]:
    """Page map for the search index: page markers, form feeds, or one page"""
    if not text:
        return {}
    marked = split_pages(text)
    if marked:
        pages: Dict[int, str] = {}
        # Text before the first marker belongs to the first page
        preamble = text[:PAGE_MARKER.search(text).start()].strip()
        if preamble:
            pages[marked[0][0]] = preamble
        for page_no, page_text in marked:
            parts = [p for p in (pages.get(page_no), page_text) if p]
            pages[page_no] = "\n\n".join(parts)
        return pages
    if "\f" in text:
        return {i + 1: page for i, page in enumerate(text.split("\f"))}
    return {1: text}


class PhaseASummariser:
    """Single-pass summary used by phase_a bundles"""

    def summarise(
        self,
        bundle_name: str,
        text_content: Optional[str],
        page_count: Optional[int] = None,
    ) -> PhaseAOutput:
        if page_count is None and text_content:
            page_count = infer_page_count(text_content)

        if not text_content or len(text_content) < MIN_TEXT_LEN:
            pages = f"Contains {page_count} pages. " if page_count else ""
            summary = f'Bundle "{bundle_name}" uploaded. {pages}Full content analysis not yet available.'
            return PhaseAOutput(summary=summary, page_count=page_count or 0)

        sections = detect_sections(text_content)
        lines = [f'This bundle "{bundle_name}" appears to contain legal documentation.']
        if sections:
            lines.append(f"Detected sections: {', '.join(sections[:MAX_LISTED_SECTIONS])}.")
        lines.append("Note: This is a Phase A preview. Start Full Analysis for complete bundle navigation.")
        summary = "\n".join(lines)

        paragraph = first_paragraph(text_content)
        if paragraph and paragraph not in summary:
            summary = f"{summary}\n\nDocument Summary: {paragraph}"

        logger.info(f"Phase A summary for '{bundle_name}': {len(sections)} sections, {page_count or 0} pages")
        return PhaseAOutput(summary=summary, page_count=page_count or 0, detected_sections=sections)
