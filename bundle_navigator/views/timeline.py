"""
Timeline Builder
================

Merged chronological timeline across completed chunks.

Dated events are sorted by normalized date, then page. Events with no
recognisable date follow in page order. Near-identical descriptions from the
same or adjacent chunks collapse into one entry when their normalized dates
agree; the merged entry keeps every source page.
"""

import logging
from typing import List, Optional, Sequence

from ..dates import parse_date
from ..dedup import calculate_similarity
from ..schemas import TimelineEntry, TimelineResponse

logger = logging.getLogger(__name__)


class _Event:
    __slots__ = ("parsed", "date_text", "description", "pages", "chunks")

    def __init__(self, date_text: Optional[str], description: str, page: int, chunk_index: int):
        self.date_text = date_text
        self.parsed = parse_date(date_text)
        self.description = description
        self.pages = [page]
        self.chunks = [chunk_index]

    @property
    def iso(self) -> Optional[str]:
        return self.parsed.iso if self.parsed else None

    def is_adjacent(self, chunk_index: int) -> bool:
        return any(abs(chunk_index - c) <= 1 for c in self.chunks)

    def to_entry(self) -> TimelineEntry:
        return TimelineEntry(
            date=self.iso,
            date_text=self.date_text,
            precision=self.parsed.precision if self.parsed else None,
            description=self.description,
            pages=sorted(set(self.pages)),
            chunk_indices=sorted(set(self.chunks)),
        )


def build_timeline(
    bundle_id: str,
    extractions: Sequence,
    similarity_threshold: float = 0.85,
) -> TimelineResponse:
    events: List[_Event] = []
    merged = 0

    for extraction in extractions:
        for raw in extraction.timeline_events or []:
            description = (raw.get("description") or "").strip()
            if not description:
                continue
            event = _Event(
                raw.get("date"), description,
                raw.get("page") or extraction.page_start, extraction.chunk_index,
            )

            duplicate = None
            for existing in events:
                if existing.iso != event.iso or not existing.is_adjacent(extraction.chunk_index):
                    continue
                if calculate_similarity(existing.description, description) >= similarity_threshold:
                    duplicate = existing
                    break

            if duplicate:
                duplicate.pages.extend(event.pages)
                duplicate.chunks.extend(event.chunks)
                merged += 1
            else:
                events.append(event)

    dated = [e for e in events if e.parsed]
    undated = [e for e in events if not e.parsed]
    dated.sort(key=lambda e: (e.parsed.sort_key, min(e.pages)))
    undated.sort(key=lambda e: min(e.pages))

    if merged:
        logger.debug(f"Timeline {bundle_id}: merged {merged} duplicate events")

    return TimelineResponse(
        bundle_id=bundle_id,
        entries=[e.to_entry() for e in dated + undated],
        undated_count=len(undated),
    )
