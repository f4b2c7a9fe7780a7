"""
Extractor selection by LLM mode.
"""

import logging
from typing import Optional

from ..config import Settings, get_settings
from ..schemas import LLMMode
from .base import ChunkExtractor
from .heuristic import HeuristicChunkExtractor

logger = logging.getLogger(__name__)


def get_extractor(settings: Optional[Settings] = None) -> ChunkExtractor:
    """Build the extractor configured by LLM_MODE"""
    settings = settings or get_settings()

    if settings.llm_mode == LLMMode.OPENROUTER:
        if not settings.openrouter_api_key:
            logger.warning("LLM_MODE=openrouter without OPENROUTER_API_KEY, using heuristic extractor")
            return HeuristicChunkExtractor()

        from ..llm import LLMChunkExtractor, OpenRouterBaseClient

        client = OpenRouterBaseClient(
            api_key=settings.openrouter_api_key,
            model=settings.openrouter_model,
            base_url=settings.openrouter_base_url,
            timeout=settings.llm_timeout,
        )
        return LLMChunkExtractor(client)

    return HeuristicChunkExtractor()
