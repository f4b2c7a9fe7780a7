"""
Configuration for Bundle Navigator
==================================

Environment variables:
- LLM_MODE: none|openrouter (default: none)
- OPENROUTER_API_KEY: API key for OpenRouter
- OPENROUTER_MODEL: Model used for chunk extraction (default: deepseek/deepseek-chat)
- CHUNK_SIZE: Pages per chunk (default: 3)
- EXTRACTION_MAX_ATTEMPTS: Attempts per chunk before the bundle fails (default: 3)
- PROCESSING_LEASE_SECONDS: How long a processing run holds a bundle (default: 300)
- SERVE_PARTIAL_VIEWS: Serve TOC/timeline/issues before completion (default: false)
"""

from typing import Optional, List
from pydantic_settings import BaseSettings
from functools import lru_cache

from .schemas import LLMMode


class Settings(BaseSettings):
    """Application settings from environment variables"""

    # LLM Configuration
    llm_mode: LLMMode = LLMMode.NONE

    # OpenRouter (chunk extraction)
    openrouter_api_key: Optional[str] = None
    openrouter_model: str = "deepseek/deepseek-chat"
    openrouter_base_url: str = "https://openrouter.ai/api/v1"
    llm_timeout: int = 60

    # Chunking
    chunk_size: int = 3
    default_max_chunks: int = 3
    max_chunks_limit: int = 20
    bootstrap_chunks: int = 1

    # Retry policy for a single chunk
    extraction_max_attempts: int = 3
    extraction_backoff_base: float = 1.0
    extraction_backoff_max: float = 30.0

    # Per-bundle processing lease
    processing_lease_seconds: int = 300

    # Views
    contradiction_confidence_threshold: float = 0.6
    timeline_similarity_threshold: float = 0.85
    overview_max_chars: int = 2000
    serve_partial_views: bool = False

    # Search
    search_snippet_radius: int = 60
    search_max_results: int = 50

    # Service info
    service_version: str = "1.0.0"

    class Config:
        env_prefix = ""
        case_sensitive = False
        env_file = ".env"
        env_file_encoding = "utf-8"

    def validate_llm_config(self) -> List[str]:
        """Validate LLM configuration, return list of warnings"""
        warnings = []

        if self.llm_mode == LLMMode.OPENROUTER and not self.openrouter_api_key:
            warnings.append("LLM_MODE=openrouter but OPENROUTER_API_KEY not set")

        if self.chunk_size < 1:
            warnings.append(f"CHUNK_SIZE={self.chunk_size} is invalid, must be >= 1")

        if self.extraction_max_attempts < 1:
            warnings.append("EXTRACTION_MAX_ATTEMPTS must be >= 1")

        return warnings


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


def get_llm_mode() -> LLMMode:
    """Get current LLM mode"""
    return get_settings().llm_mode
