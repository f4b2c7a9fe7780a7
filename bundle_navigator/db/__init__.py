"""
Database Package - SQLAlchemy
=============================

Persistence for bundles, page text and chunk extractions.
"""

from .models import Base, Bundle, PageText, ChunkExtraction
from .session import get_db, get_db_session, init_db, get_engine, reset_engine

__all__ = [
    # Base
    "Base",
    # Bundles
    "Bundle", "PageText", "ChunkExtraction",
    # Session
    "get_db", "get_db_session", "init_db", "get_engine", "reset_engine",
]
