"""
Analysis Gate
=============

Decides whether a view may be served for a bundle's (analysis_level, status).

- TOC, timeline, issues, contradictions: full analysis, completed
- Overview, search: always served
- serve_partial_views relaxes TOC/timeline/issues to "full" only
"""

from typing import Optional

from .errors import GateError
from .schemas import AnalysisLevel, BundleStatus, BundleView, GateRejection

UNGATED_VIEWS = {BundleView.OVERVIEW, BundleView.SEARCH}
PARTIAL_VIEWS = {BundleView.TOC, BundleView.TIMELINE, BundleView.ISSUES}


def check_view(
    analysis_level: AnalysisLevel,
    status: BundleStatus,
    view: BundleView,
    serve_partial_views: bool = False,
) -> Optional[GateRejection]:
    """Return None when the view may be served, else the rejection reason"""
    if view in UNGATED_VIEWS:
        return None
    if analysis_level != AnalysisLevel.FULL:
        return GateRejection.REQUIRES_FULL_ANALYSIS
    if serve_partial_views and view in PARTIAL_VIEWS:
        return None
    if status != BundleStatus.COMPLETED:
        return GateRejection.REQUIRES_COMPLETION
    return None


def require_view(
    analysis_level: AnalysisLevel,
    status: BundleStatus,
    view: BundleView,
    serve_partial_views: bool = False,
) -> None:
    """Raise GateError unless the view may be served"""
    rejection = check_view(analysis_level, status, view, serve_partial_views)
    if rejection is None:
        return
    if rejection == GateRejection.REQUIRES_FULL_ANALYSIS:
        message = f"The {view.value} view requires a full bundle analysis"
    else:
        message = f"The {view.value} view is available once full analysis completes (status: {status.value})"
    raise GateError(rejection.value, view.value, message)
