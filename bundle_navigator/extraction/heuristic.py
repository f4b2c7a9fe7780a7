"""
Rule-Based Chunk Extractor
==========================

Deterministic extraction used when LLM_MODE=none.

- Headings: known legal section names and short upper-case lines
- Timeline: sentences containing a recognisable date
- Issues: keyword categories (liability, causation, quantum, procedure)
- Open claims: every dated sentence, keyed by its wording without the date,
  so the same event reported with different dates in different chunks
  surfaces as a contradiction
"""

import logging
import re
from typing import List, Optional

from ..dates import find_dates
from ..schemas import (
    CandidateContradiction,
    ChunkExtractionResult,
    Heading,
    IssueCategory,
    IssueRef,
    TimelineEvent,
)
from .base import ChunkExtractor, split_pages

logger = logging.getLogger(__name__)

SECTION_NAMES = [
    "letter of claim", "particulars of claim", "defence", "witness statement",
    "expert report", "medical report", "schedule of loss", "chronology",
    "court order", "disclosure", "bundle index", "tenancy agreement",
    "inspection report", "correspondence",
]

# (category, label, keywords)
ISSUE_RULES = [
    (IssueCategory.LIABILITY, "Breach/negligence allegation", ("breach", "negligen", "duty of care")),
    (IssueCategory.CAUSATION, "Causation discussed", ("caused", "result of", "causation")),
    (IssueCategory.QUANTUM, "Quantum/losses mentioned", ("loss", "damage", "£")),
    (IssueCategory.PROCEDURE, "Procedural step", ("strike out", "directions", "extension of time", "case management")),
]

MAX_EVENTS_PER_CHUNK = 10
MAX_HEADING_LEN = 80
MAX_DESCRIPTION_LEN = 200
MIN_FACT_LEN = 10

_SENTENCE_SPLIT = re.compile(r"(?<=[.!?])\s+|\n+")
_NON_WORD = re.compile(r"[^a-z0-9]+")


def _heading_for_line(line: str) -> Optional[str]:
    stripped = line.strip()
    if not stripped or len(stripped) > MAX_HEADING_LEN:
        return None

    lowered = stripped.lower().rstrip(":")
    for name in SECTION_NAMES:
        if lowered == name or lowered.startswith(name + " "):
            return stripped.rstrip(":")

    letters = [c for c in stripped if c.isalpha()]
    if len(letters) >= 4 and stripped.upper() == stripped and not stripped.endswith("."):
        return stripped.rstrip(":")
    return None


def fact_key(sentence: str, date_texts: List[str]) -> str:
    """Sentence wording with the dates removed, normalized"""
    text = sentence
    for date_text in date_texts:
        text = text.replace(date_text, " ")
    return _NON_WORD.sub(" ", text.lower()).strip()


class HeuristicChunkExtractor(ChunkExtractor):
    """Keyword and regex extraction. Never fails on well-formed chunk text."""

    name = "heuristic"

    async def extract(self, chunk_text: str, page_start: int, page_end: int) -> ChunkExtractionResult:
        result = ChunkExtractionResult()

        pages = split_pages(chunk_text)
        if not pages and chunk_text:
            pages = [(page_start, chunk_text)]

        for page_no, text in pages:
            self._extract_headings(result, page_no, text)
            self._extract_events(result, page_no, text)
            self._extract_issues(result, page_no, text)

        logger.debug(
            "Heuristic extraction pages %s-%s: %d headings, %d events, %d issues",
            page_start, page_end, len(result.headings),
            len(result.timeline_events), len(result.issues),
        )
        return result

    def _extract_headings(self, result: ChunkExtractionResult, page_no: int, text: str):
        for line in text.splitlines():
            title = _heading_for_line(line)
            if title:
                result.headings.append(Heading(title=title, page=page_no))

    def _extract_events(self, result: ChunkExtractionResult, page_no: int, text: str):
        for sentence in _SENTENCE_SPLIT.split(text):
            if len(result.timeline_events) >= MAX_EVENTS_PER_CHUNK:
                return
            sentence = sentence.strip()
            if not sentence:
                continue
            dates = find_dates(sentence)
            if not dates:
                continue

            description = sentence[:MAX_DESCRIPTION_LEN]
            result.timeline_events.append(
                TimelineEvent(date=dates[0].text, description=description, page=page_no)
            )

            fact = fact_key(sentence, [d.text for d in dates])
            if len(fact) >= MIN_FACT_LEN:
                result.candidate_contradictions.append(CandidateContradiction(
                    statement_a=description,
                    page_a=page_no,
                    reason="Different dates given for the same event",
                    fact=fact,
                ))

    def _extract_issues(self, result: ChunkExtractionResult, page_no: int, text: str):
        lowered = text.lower()
        for category, label, keywords in ISSUE_RULES:
            if any(keyword in lowered for keyword in keywords):
                result.issues.append(IssueRef(label=label, category=category.value, page=page_no))

