"""
Chunk Extraction
================

Pluggable per-chunk extraction: rule-based by default, OpenRouter when
LLM_MODE=openrouter.
"""

from .base import ChunkExtractor, split_pages, clamp_pages
from .heuristic import HeuristicChunkExtractor
from .factory import get_extractor

__all__ = [
    "ChunkExtractor",
    "split_pages",
    "clamp_pages",
    "HeuristicChunkExtractor",
    "get_extractor",
]
