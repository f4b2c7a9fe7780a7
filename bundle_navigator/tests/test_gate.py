"""
Tests for Analysis Gate
=======================

Which views may be served for each (analysis_level, status).
"""

import pytest
from pathlib import Path

# Add parent to path for imports
import sys
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from bundle_navigator.errors import GateError
from bundle_navigator.gate import check_view, require_view
from bundle_navigator.schemas import AnalysisLevel, BundleStatus, BundleView, GateRejection

GATED = [BundleView.TOC, BundleView.TIMELINE, BundleView.ISSUES, BundleView.CONTRADICTIONS]


class TestGateDefaults:
    """Default rules: gated views need full + completed"""

    def test_full_completed_serves_everything(self):
        for view in BundleView:
            assert check_view(AnalysisLevel.FULL, BundleStatus.COMPLETED, view) is None

    def test_phase_a_requires_full_analysis(self):
        for view in GATED:
            rejection = check_view(AnalysisLevel.PHASE_A, BundleStatus.COMPLETED, view)
            assert rejection == GateRejection.REQUIRES_FULL_ANALYSIS

    def test_unfinished_full_requires_completion(self):
        for status in (BundleStatus.PENDING, BundleStatus.PROCESSING, BundleStatus.FAILED):
            for view in GATED:
                assert check_view(AnalysisLevel.FULL, status, view) == GateRejection.REQUIRES_COMPLETION

    def test_overview_and_search_never_gated(self):
        for level in AnalysisLevel:
            for status in BundleStatus:
                assert check_view(level, status, BundleView.OVERVIEW) is None
                assert check_view(level, status, BundleView.SEARCH) is None


class TestPartialViews:
    """serve_partial_views relaxes TOC/timeline/issues only"""

    def test_partial_views_served_while_processing(self):
        for view in (BundleView.TOC, BundleView.TIMELINE, BundleView.ISSUES):
            assert check_view(AnalysisLevel.FULL, BundleStatus.PROCESSING, view, serve_partial_views=True) is None

    def test_contradictions_still_need_completion(self):
        rejection = check_view(
            AnalysisLevel.FULL, BundleStatus.PROCESSING, BundleView.CONTRADICTIONS, serve_partial_views=True
        )
        assert rejection == GateRejection.REQUIRES_COMPLETION

    def test_phase_a_still_rejected(self):
        rejection = check_view(AnalysisLevel.PHASE_A, BundleStatus.COMPLETED, BundleView.TOC, serve_partial_views=True)
        assert rejection == GateRejection.REQUIRES_FULL_ANALYSIS


class TestRequireView:
    """GateError carries the rejection reason and view"""

    def test_raises_with_reason(self):
        with pytest.raises(GateError) as exc_info:
            require_view(AnalysisLevel.PHASE_A, BundleStatus.COMPLETED, BundleView.TOC)
        assert exc_info.value.code == "GATE_ERROR"
        assert exc_info.value.status_code == 400
        assert exc_info.value.details == {"reason": "REQUIRES_FULL_ANALYSIS", "view": "toc"}

    def test_passes_silently(self):
        require_view(AnalysisLevel.FULL, BundleStatus.COMPLETED, BundleView.TIMELINE)
