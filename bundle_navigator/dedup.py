"""
Deduplication Utils
===================

Text similarity and near-duplicate merging for timeline events and
contradiction pairs.
"""

import logging
import re
from difflib import SequenceMatcher

logger = logging.getLogger(__name__)

_WS = re.compile(r"\s+")


def normalize_text(text: str) -> str:
    """Lowercase and collapse whitespace"""
    return _WS.sub(" ", (text or "").strip().lower())


def calculate_similarity(text1: str, text2: str) -> float:
    """
    Calculate similarity between two texts (0-1)
    """
    if not text1 or not text2:
        return 0.0

    text1 = normalize_text(text1)
    text2 = normalize_text(text2)

    if text1 == text2:
        return 1.0

    return SequenceMatcher(None, text1, text2).ratio()


def pair_key(text1: str, text2: str) -> tuple:
    """Order-independent key for a pair of statements (A/B == B/A)."""
    a, b = normalize_text(text1), normalize_text(text2)
    return (a, b) if a <= b else (b, a)
