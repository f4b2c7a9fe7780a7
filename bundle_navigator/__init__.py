"""
Bundle Navigator - Legal Bundle Analysis Service
================================================

Turns multi-page legal bundles into navigational artefacts:
1. Phase A: quick single-pass summary
2. Full analysis: resumable, chunked extraction processed in bounded batches
3. Views: TOC, timeline, issues map, overview, contradictions, search
"""

__version__ = "1.0.0"
