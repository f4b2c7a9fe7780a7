"""
Chunk Extractor Base Types
==========================

Interface every extraction backend implements, plus helpers for the
`--- Page N ---` chunk text format.
"""

import re
from abc import ABC, abstractmethod
from typing import List, Tuple

from ..schemas import ChunkExtractionResult

PAGE_MARKER = re.compile(r"^--- Page (\d+) ---$", re.MULTILINE)


class ChunkExtractor(ABC):
    """
    Extraction capability for one chunk.

    Implementations raise TransientExtractionError for failures worth
    retrying and ExtractionError for anything else.
    """

    name: str = "base"

    @abstractmethod
    async def extract(self, chunk_text: str, page_start: int, page_end: int) -> ChunkExtractionResult:
        """Extract headings, events, issues and candidate contradictions"""
        pass

    async def close(self) -> None:
        """Release any held resources"""
        return None


def split_pages(chunk_text: str) -> List[Tuple[int, str]]:
    """Split chunk text back into (page_no, text) pairs using page markers"""
    markers = list(PAGE_MARKER.finditer(chunk_text or ""))
    pages = []
    for i, marker in enumerate(markers):
        end = markers[i + 1].start() if i + 1 < len(markers) else len(chunk_text)
        pages.append((int(marker.group(1)), chunk_text[marker.end():end].strip()))
    return pages


def clamp_pages(result: ChunkExtractionResult, page_start: int, page_end: int) -> ChunkExtractionResult:
    """Force every page reference into the chunk's own range"""

    def clamp(page):
        if page is None:
            return None
        return min(max(page, page_start), page_end)

    for heading in result.headings:
        heading.page = clamp(heading.page)
    for event in result.timeline_events:
        event.page = clamp(event.page)
    for issue in result.issues:
        issue.page = clamp(issue.page)
    for candidate in result.candidate_contradictions:
        candidate.page_a = clamp(candidate.page_a)
        candidate.page_b = clamp(candidate.page_b)
    return result
