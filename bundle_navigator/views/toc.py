"""
TOC Builder
===========

Table of contents from the headings of completed chunk extractions.
"""

from typing import List, Sequence

from ..dedup import normalize_text
from ..schemas import TOCEntry, TOCResponse


def build_toc(bundle_id: str, extractions: Sequence, page_count: int) -> TOCResponse:
    """
    Headings sorted by (page, chunk order, order within chunk).

    A heading identical to the one immediately before it (ignoring case and
    whitespace) is dropped. Each entry runs up to the page before the next
    entry; the last one runs to the end of the bundle.
    """
    ordered = []
    for extraction in extractions:
        for position, heading in enumerate(extraction.headings or []):
            title = (heading.get("title") or "").strip()
            if not title:
                continue
            ordered.append((heading.get("page") or extraction.page_start, extraction.chunk_index, position, title))
    ordered.sort(key=lambda item: item[:3])

    collapsed = []
    previous = None
    for page, chunk_index, _, title in ordered:
        key = normalize_text(title)
        if key == previous:
            continue
        previous = key
        collapsed.append((page, chunk_index, title))

    entries: List[TOCEntry] = []
    for i, (page, chunk_index, title) in enumerate(collapsed):
        if i + 1 < len(collapsed):
            page_end = max(page, collapsed[i + 1][0] - 1)
        else:
            page_end = max(page, page_count or page)
        entries.append(TOCEntry(title=title, page_start=page, page_end=page_end, chunk_index=chunk_index))

    return TOCResponse(bundle_id=bundle_id, entries=entries)
