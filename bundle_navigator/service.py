"""
Bundle Service
==============

Orchestration used by the HTTP layer. Validates input before any side effect,
scopes every lookup by (case_id, org_id) and wires store, processor,
summariser, gate, views and search together.
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from .config import Settings, get_settings
from .db.models import Bundle
from .errors import ValidationError
from .extraction.base import ChunkExtractor
from .gate import require_view
from .phase_a import PhaseASummariser, split_text_into_pages
from .processor import ChunkProcessor
from .schemas import (
    AnalysisLevel,
    BundleOut,
    BundleStatus,
    BundleStatusResponse,
    BundleView,
    ContradictionReport,
    DeleteBundlesResponse,
    IssuesMapResponse,
    OverviewResponse,
    PhaseAResponse,
    PhaseASummary,
    ProcessingResult,
    SearchResponse,
    StartFullRequest,
    StartPhaseARequest,
    TimelineResponse,
    TOCResponse,
)
from .search import SearchIndexer
from .store import BundleStore
from .views import (
    build_issues_map,
    build_overview,
    build_timeline,
    build_toc,
    find_contradictions,
)

logger = logging.getLogger(__name__)


def _require_name(name: Optional[str]) -> str:
    name = (name or "").strip()
    if not name:
        raise ValidationError("bundle_name is required", details={"field": "bundle_name"})
    return name


class BundleService:
    """Facade over one database session"""

    def __init__(
        self,
        db: Session,
        extractor: Optional[ChunkExtractor] = None,
        settings: Optional[Settings] = None,
    ):
        self.db = db
        self.settings = settings or get_settings()
        self.store = BundleStore(db)
        self.extractor = extractor
        self.summariser = PhaseASummariser()
        self.search_indexer = SearchIndexer(
            snippet_radius=self.settings.search_snippet_radius,
            max_results=self.settings.search_max_results,
        )

    def _processor(self) -> ChunkProcessor:
        if self.extractor is None:
            from .extraction import get_extractor
            self.extractor = get_extractor(self.settings)
        return ChunkProcessor(self.db, self.extractor, self.settings)

    def _validate_batch(self, value: Optional[int], field: str, minimum: int) -> int:
        if value is None:
            value = self.settings.default_max_chunks
        limit = self.settings.max_chunks_limit
        if not minimum <= value <= limit:
            raise ValidationError(
                f"{field} must be between {minimum} and {limit}",
                details={"field": field, "value": value},
            )
        return value

    # -------------------------------------------------------------------------
    # Start / continue
    # -------------------------------------------------------------------------

    def start_phase_a(self, case_id: str, org_id: str, request: StartPhaseARequest) -> PhaseAResponse:
        name = _require_name(request.bundle_name)
        if request.page_count is not None and request.page_count < 0:
            raise ValidationError("page_count must be >= 0", details={"field": "page_count"})

        output = self.summariser.summarise(name, request.text_content, request.page_count)
        now = datetime.utcnow()
        bundle = self.store.create_bundle(
            case_id=case_id,
            org_id=org_id,
            name=name,
            analysis_level=AnalysisLevel.PHASE_A,
            page_count=output.page_count,
            chunk_size=self.settings.chunk_size,
            status=BundleStatus.COMPLETED,
            phase_a_summary=output.summary,
            detected_sections=output.detected_sections,
            started_at=now,
            completed_at=now,
        )
        self.store.add_pages(bundle, split_text_into_pages(request.text_content or ""))
        self.db.commit()
        logger.info(f"Phase A bundle {bundle.id} created for case {case_id}")

        return PhaseAResponse(
            summary=PhaseASummary(
                bundle_id=bundle.id,
                bundle_name=bundle.name,
                page_count=bundle.page_count,
                summary=output.summary,
                detected_sections=output.detected_sections,
                is_partial_analysis=True,
            ),
            bundle=BundleOut.model_validate(bundle),
        )

    async def start_full(self, case_id: str, org_id: str, request: StartFullRequest) -> ProcessingResult:
        name = _require_name(request.bundle_name)
        page_count = request.page_count
        if page_count is None or page_count < 1:
            raise ValidationError("page_count must be >= 1", details={"field": "page_count"})
        outside = sorted(p for p in request.text_content_by_page if not 1 <= p <= page_count)
        if outside:
            raise ValidationError(
                "text_content_by_page has pages outside 1..page_count",
                details={"pages": outside[:20]},
            )
        initial = request.initial_batch
        if initial is None:
            initial = self.settings.bootstrap_chunks
        initial = self._validate_batch(initial, "initial_batch", minimum=0)

        bundle = self.store.create_bundle(
            case_id=case_id,
            org_id=org_id,
            name=name,
            analysis_level=AnalysisLevel.FULL,
            page_count=page_count,
            chunk_size=self.settings.chunk_size,
            status=BundleStatus.PENDING,
            detected_sections=[],
        )
        self.store.add_pages(bundle, request.text_content_by_page)
        self.db.commit()
        logger.info(
            f"Full bundle {bundle.id} created for case {case_id}: "
            f"{page_count} pages, {bundle.total_chunks} chunks"
        )

        processor = self._processor()
        if initial == 0:
            return processor.result_for(bundle, processed=0)
        return await processor.process(bundle, initial)

    async def continue_processing(
        self, case_id: str, org_id: str, bundle_id: str, max_chunks: Optional[int] = None
    ) -> ProcessingResult:
        max_chunks = self._validate_batch(max_chunks, "max_chunks", minimum=1)
        bundle = self.store.get_bundle(bundle_id, case_id, org_id)
        return await self._processor().process(bundle, max_chunks)

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def get_status(self, case_id: str, org_id: str) -> BundleStatusResponse:
        bundle = self.store.latest_bundle(case_id, org_id)
        return BundleStatusResponse(bundle=BundleOut.model_validate(bundle) if bundle else None)

    def _gated(self, case_id: str, org_id: str, bundle_id: str, view: BundleView) -> Bundle:
        bundle = self.store.get_bundle(bundle_id, case_id, org_id)
        require_view(bundle.analysis_level, bundle.status, view, self.settings.serve_partial_views)
        return bundle

    def get_toc(self, case_id: str, org_id: str, bundle_id: str) -> TOCResponse:
        bundle = self._gated(case_id, org_id, bundle_id, BundleView.TOC)
        return build_toc(bundle.id, self.store.completed_extractions(bundle), bundle.page_count)

    def get_timeline(self, case_id: str, org_id: str, bundle_id: str) -> TimelineResponse:
        bundle = self._gated(case_id, org_id, bundle_id, BundleView.TIMELINE)
        return build_timeline(
            bundle.id, self.store.completed_extractions(bundle),
            self.settings.timeline_similarity_threshold,
        )

    def get_issues(self, case_id: str, org_id: str, bundle_id: str) -> IssuesMapResponse:
        bundle = self._gated(case_id, org_id, bundle_id, BundleView.ISSUES)
        return build_issues_map(bundle.id, self.store.completed_extractions(bundle))

    def get_contradictions(self, case_id: str, org_id: str, bundle_id: str) -> ContradictionReport:
        bundle = self._gated(case_id, org_id, bundle_id, BundleView.CONTRADICTIONS)
        return find_contradictions(
            bundle.id, self.store.completed_extractions(bundle),
            self.settings.contradiction_confidence_threshold,
        )

    def get_overview(self, case_id: str, org_id: str, bundle_id: str) -> OverviewResponse:
        bundle = self.store.get_bundle(bundle_id, case_id, org_id)
        overview = build_overview(
            bundle,
            self.store.completed_extractions(bundle),
            max_chars=self.settings.overview_max_chars,
            similarity_threshold=self.settings.timeline_similarity_threshold,
        )
        return OverviewResponse(overview=overview)

    def search(self, case_id: str, org_id: str, bundle_id: str, query: Optional[str]) -> SearchResponse:
        bundle = self.store.get_bundle(bundle_id, case_id, org_id)
        pages = [(p.page_no, p.text) for p in self.store.list_pages(bundle.id)]
        return self.search_indexer.search(pages, query or "")

    def delete_case_bundles(self, case_id: str, org_id: str) -> DeleteBundlesResponse:
        deleted = self.store.delete_case_bundles(case_id, org_id)
        logger.info(f"Deleted {deleted} bundle(s) for case {case_id}")
        return DeleteBundlesResponse(deleted=deleted)
