"""
LLM Module
==========

OpenRouter-backed chunk extraction.

Environment Variables:
- OPENROUTER_API_KEY: Required when LLM_MODE=openrouter
- OPENROUTER_MODEL: Extraction model (default: deepseek/deepseek-chat)
- LLM_TIMEOUT: Request timeout in seconds (default: 60)
"""

from .openrouter_base import OpenRouterBaseClient, LLMCallResult
from .chunk_extractor import LLMChunkExtractor, result_from_payload
from .parsing import parse_json_robust, safe_log_content

__all__ = [
    "OpenRouterBaseClient",
    "LLMCallResult",
    "LLMChunkExtractor",
    "result_from_payload",
    "parse_json_robust",
    "safe_log_content",
]
