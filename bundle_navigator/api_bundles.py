"""
Bundle API Endpoints
====================

FastAPI router for bundle analysis, views and search. Mounted under /api/v1.

The calling org is taken from the X-Org-Id header; every bundle lookup is
scoped by (case_id, org_id).
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query
from sqlalchemy.orm import Session

from .config import get_settings
from .db.session import get_db
from .extraction import ChunkExtractor, get_extractor
from .schemas import (
    BundleStatusResponse,
    ContinueRequest,
    ContradictionReport,
    DeleteBundlesResponse,
    ErrorResponse,
    IssuesMapResponse,
    OverviewResponse,
    PhaseAResponse,
    ProcessingResult,
    SearchResponse,
    StartFullRequest,
    StartPhaseARequest,
    TimelineResponse,
    TOCResponse,
)
from .service import BundleService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["bundles"])

_extractor: Optional[ChunkExtractor] = None

ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Validation or gate error"},
    401: {"model": ErrorResponse, "description": "Missing X-Org-Id"},
    404: {"model": ErrorResponse, "description": "Bundle not found"},
}


# =============================================================================
# DEPENDENCIES
# =============================================================================

async def get_org_id(x_org_id: Optional[str] = Header(None, alias="X-Org-Id")) -> str:
    """Org of the caller. Session resolution happens upstream."""
    if not x_org_id or not x_org_id.strip():
        raise HTTPException(status_code=401, detail="X-Org-Id header required")
    return x_org_id.strip()


def get_chunk_extractor() -> ChunkExtractor:
    """Process-wide extractor for the configured LLM mode"""
    global _extractor
    if _extractor is None:
        _extractor = get_extractor(get_settings())
    return _extractor


async def close_chunk_extractor() -> None:
    """Close the process-wide extractor, if one was created"""
    global _extractor
    if _extractor is not None:
        await _extractor.close()
        _extractor = None


def get_bundle_service(
    db: Session = Depends(get_db),
    extractor: ChunkExtractor = Depends(get_chunk_extractor),
) -> BundleService:
    return BundleService(db, extractor=extractor, settings=get_settings())


# =============================================================================
# START / CONTINUE
# =============================================================================

@router.post(
    "/cases/{case_id}/bundles/phase-a",
    response_model=PhaseAResponse,
    responses=ERROR_RESPONSES,
    summary="Run a phase A (quick preview) analysis",
)
async def start_phase_a(
    case_id: str,
    request: StartPhaseARequest,
    org_id: str = Depends(get_org_id),
    service: BundleService = Depends(get_bundle_service),
):
    return service.start_phase_a(case_id, org_id, request)


@router.post(
    "/cases/{case_id}/bundles/full",
    response_model=ProcessingResult,
    responses=ERROR_RESPONSES,
    summary="Start a full chunked analysis",
)
async def start_full(
    case_id: str,
    request: StartFullRequest,
    org_id: str = Depends(get_org_id),
    service: BundleService = Depends(get_bundle_service),
):
    """
    Create a full-analysis bundle and process an initial batch of chunks.

    Remaining chunks are processed by calling the continue endpoint.
    """
    return await service.start_full(case_id, org_id, request)


@router.post(
    "/cases/{case_id}/bundles/{bundle_id}/continue",
    response_model=ProcessingResult,
    responses=ERROR_RESPONSES,
    summary="Process the next batch of chunks",
)
async def continue_processing(
    case_id: str,
    bundle_id: str,
    request: Optional[ContinueRequest] = None,
    org_id: str = Depends(get_org_id),
    service: BundleService = Depends(get_bundle_service),
):
    max_chunks = request.max_chunks if request else None
    return await service.continue_processing(case_id, org_id, bundle_id, max_chunks)


# =============================================================================
# STATUS / LIFECYCLE
# =============================================================================

@router.get(
    "/cases/{case_id}/bundle",
    response_model=BundleStatusResponse,
    responses=ERROR_RESPONSES,
    summary="Latest bundle of a case",
)
async def get_bundle_status(
    case_id: str,
    org_id: str = Depends(get_org_id),
    service: BundleService = Depends(get_bundle_service),
):
    return service.get_status(case_id, org_id)


@router.delete(
    "/cases/{case_id}/bundles",
    response_model=DeleteBundlesResponse,
    responses=ERROR_RESPONSES,
    summary="Delete all bundles of a case",
)
async def delete_case_bundles(
    case_id: str,
    org_id: str = Depends(get_org_id),
    service: BundleService = Depends(get_bundle_service),
):
    return service.delete_case_bundles(case_id, org_id)


# =============================================================================
# VIEWS
# =============================================================================

@router.get("/cases/{case_id}/bundles/{bundle_id}/toc", response_model=TOCResponse, responses=ERROR_RESPONSES)
async def get_toc(
    case_id: str,
    bundle_id: str,
    org_id: str = Depends(get_org_id),
    service: BundleService = Depends(get_bundle_service),
):
    return service.get_toc(case_id, org_id, bundle_id)


@router.get("/cases/{case_id}/bundles/{bundle_id}/timeline", response_model=TimelineResponse, responses=ERROR_RESPONSES)
async def get_timeline(
    case_id: str,
    bundle_id: str,
    org_id: str = Depends(get_org_id),
    service: BundleService = Depends(get_bundle_service),
):
    return service.get_timeline(case_id, org_id, bundle_id)


@router.get("/cases/{case_id}/bundles/{bundle_id}/issues", response_model=IssuesMapResponse, responses=ERROR_RESPONSES)
async def get_issues(
    case_id: str,
    bundle_id: str,
    org_id: str = Depends(get_org_id),
    service: BundleService = Depends(get_bundle_service),
):
    return service.get_issues(case_id, org_id, bundle_id)


@router.get(
    "/cases/{case_id}/bundles/{bundle_id}/contradictions",
    response_model=ContradictionReport,
    responses=ERROR_RESPONSES,
)
async def get_contradictions(
    case_id: str,
    bundle_id: str,
    org_id: str = Depends(get_org_id),
    service: BundleService = Depends(get_bundle_service),
):
    return service.get_contradictions(case_id, org_id, bundle_id)


@router.get("/cases/{case_id}/bundles/{bundle_id}/overview", response_model=OverviewResponse, responses=ERROR_RESPONSES)
async def get_overview(
    case_id: str,
    bundle_id: str,
    org_id: str = Depends(get_org_id),
    service: BundleService = Depends(get_bundle_service),
):
    """Available for every bundle state, including partial and failed runs."""
    return service.get_overview(case_id, org_id, bundle_id)


@router.get("/cases/{case_id}/bundles/{bundle_id}/search", response_model=SearchResponse, responses=ERROR_RESPONSES)
async def search_bundle(
    case_id: str,
    bundle_id: str,
    q: Optional[str] = Query(None, description="Search text, at least 2 characters"),
    org_id: str = Depends(get_org_id),
    service: BundleService = Depends(get_bundle_service),
):
    return service.search(case_id, org_id, bundle_id, q)
