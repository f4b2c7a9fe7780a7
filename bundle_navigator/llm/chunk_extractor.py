"""
LLM Chunk Extractor
===================

Chunk extraction through an OpenRouter chat model (LLM_MODE=openrouter).

The model is asked for one JSON object with four arrays. Items that fail
validation are dropped individually; a response that is not JSON at all is
an ExtractionError. Rate limits, 5xx and transport failures are transient.
"""

import logging
from typing import Any, Dict, List, Optional, Type

from pydantic import BaseModel, ValidationError as PydanticValidationError

from ..errors import ExtractionError, TransientExtractionError
from ..extraction.base import ChunkExtractor, clamp_pages
from ..schemas import (
    CandidateContradiction,
    ChunkExtractionResult,
    Heading,
    IssueCategory,
    IssueRef,
    TimelineEvent,
)
from .openrouter_base import OpenRouterBaseClient
from .parsing import parse_json_robust, safe_log_content

logger = logging.getLogger(__name__)


EXTRACTION_SYSTEM_PROMPT = """You analyse excerpts of UK litigation bundles.

The excerpt is split into pages, each starting with a line "--- Page N ---".
Return ONE JSON object with exactly these keys:

{
  "headings": [{"title": str, "page": int}],
  "timeline_events": [{"date": str or null, "description": str, "page": int}],
  "issues": [{"label": str, "category": "liability|causation|quantum|procedure|other", "page": int}],
  "candidate_contradictions": [{
    "statement_a": str, "page_a": int,
    "statement_b": str or null, "page_b": int or null,
    "reason": str, "confidence": float 0-1,
    "fact": short key naming the fact in dispute
  }]
}

Rules:
1. Only use page numbers that appear in the excerpt markers.
2. Quote dates exactly as written.
3. If a statement may conflict with something outside this excerpt, return it
   with statement_b null and a "fact" key.
4. Do not invent facts. Empty arrays are fine.
"""

USER_PROMPT_TEMPLATE = """Pages {page_start}-{page_end}:

{chunk_text}"""

_CATEGORIES = {c.value for c in IssueCategory}


def _coerce_items(raw: Any, model: Type[BaseModel]) -> List[BaseModel]:
    items = []
    if not isinstance(raw, list):
        return items
    for entry in raw:
        if not isinstance(entry, dict):
            continue
        try:
            items.append(model.model_validate(entry))
        except PydanticValidationError as e:
            logger.debug(f"Dropping invalid {model.__name__}: {e.errors()[:1]}")
    return items


def result_from_payload(data: Dict[str, Any]) -> ChunkExtractionResult:
    """Build a ChunkExtractionResult from a parsed model response"""
    issues = _coerce_items(data.get("issues"), IssueRef)
    for issue in issues:
        category = (issue.category or "").strip().lower()
        issue.category = category if category in _CATEGORIES else IssueCategory.OTHER.value

    return ChunkExtractionResult(
        headings=_coerce_items(data.get("headings"), Heading),
        timeline_events=_coerce_items(data.get("timeline_events"), TimelineEvent),
        issues=issues,
        candidate_contradictions=_coerce_items(data.get("candidate_contradictions"), CandidateContradiction),
    )


class LLMChunkExtractor(ChunkExtractor):
    """OpenRouter-backed extractor"""

    name = "openrouter"

    def __init__(self, client: OpenRouterBaseClient, max_tokens: int = 4096):
        self.client = client
        self.max_tokens = max_tokens

    async def extract(self, chunk_text: str, page_start: int, page_end: int) -> ChunkExtractionResult:
        messages = [
            {"role": "system", "content": EXTRACTION_SYSTEM_PROMPT},
            {"role": "user", "content": USER_PROMPT_TEMPLATE.format(
                page_start=page_start, page_end=page_end, chunk_text=chunk_text,
            )},
        ]

        result = await self.client.call(
            messages=messages,
            response_format={"type": "json_object"},
            temperature=0,
            max_tokens=self.max_tokens,
        )

        if not result.success:
            if result.transient:
                raise TransientExtractionError(
                    result.error or "Transient LLM failure",
                    details={"status_code": result.status_code},
                )
            raise ExtractionError(
                result.error or "LLM call failed",
                details={"status_code": result.status_code},
            )

        data, ok, error = parse_json_robust(result.content)
        if not ok or data is None:
            logger.warning(f"Unparseable extraction for pages {page_start}-{page_end}: "
                           f"{safe_log_content(result.content)}")
            raise ExtractionError(f"Model returned invalid JSON: {error}")

        extraction = clamp_pages(result_from_payload(data), page_start, page_end)
        logger.info(
            f"LLM extraction pages {page_start}-{page_end}: "
            f"{len(extraction.headings)} headings, {len(extraction.timeline_events)} events, "
            f"{len(extraction.issues)} issues, {len(extraction.candidate_contradictions)} candidates "
            f"(tokens in={result.input_tokens} out={result.output_tokens})"
        )
        return extraction

    async def close(self) -> None:
        await self.client.close()
