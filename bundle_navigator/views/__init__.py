"""
View Aggregators
================

Pure functions over completed ChunkExtraction rows. Nothing here is
persisted; every view is recomputed on request.
"""

from .toc import build_toc
from .timeline import build_timeline
from .issues import build_issues_map
from .contradictions import find_contradictions
from .overview import build_overview, coverage_for

__all__ = [
    "build_toc",
    "build_timeline",
    "build_issues_map",
    "find_contradictions",
    "build_overview",
    "coverage_for",
]
