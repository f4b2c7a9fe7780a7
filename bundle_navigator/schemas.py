"""
Pydantic Schemas for Bundle Navigator
=====================================

Stable, minimal schemas for input/output.
All outputs are guaranteed valid JSON.

Groups:
- Extraction payloads (what a ChunkExtractor returns for one chunk)
- Requests (phase A, full, continue)
- Bundle state and processing results
- Derived views (TOC, timeline, issues, contradictions, overview, search)
- Health / errors
"""

from typing import List, Optional, Dict, Any
from pydantic import BaseModel, ConfigDict, Field
from enum import Enum
from datetime import datetime


# =============================================================================
# ENUMS
# =============================================================================

class LLMMode(str, Enum):
    """LLM usage mode"""
    NONE = "none"           # Rule-based extraction only
    OPENROUTER = "openrouter"


class AnalysisLevel(str, Enum):
    """Depth of analysis for a bundle"""
    PHASE_A = "phase_a"
    FULL = "full"


class BundleStatus(str, Enum):
    """Bundle lifecycle status"""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class BundleView(str, Enum):
    """Views a caller can request for a bundle"""
    TOC = "toc"
    TIMELINE = "timeline"
    ISSUES = "issues"
    CONTRADICTIONS = "contradictions"
    OVERVIEW = "overview"
    SEARCH = "search"


class GateRejection(str, Enum):
    """Why a view was refused"""
    REQUIRES_FULL_ANALYSIS = "REQUIRES_FULL_ANALYSIS"
    REQUIRES_COMPLETION = "REQUIRES_COMPLETION"


class IssueCategory(str, Enum):
    """Issue categories produced by the extractors"""
    LIABILITY = "liability"
    CAUSATION = "causation"
    QUANTUM = "quantum"
    PROCEDURE = "procedure"
    OTHER = "other"


# =============================================================================
# EXTRACTION PAYLOADS
# =============================================================================

class Heading(BaseModel):
    """Section heading found in a chunk"""
    title: str = Field(..., min_length=1)
    page: int = Field(..., ge=1)


class TimelineEvent(BaseModel):
    """Dated (or undated) event found in a chunk"""
    date: Optional[str] = Field(None, description="Date as written in the source")
    description: str = Field(..., min_length=1)
    page: int = Field(..., ge=1)


class IssueRef(BaseModel):
    """Legal issue raised in a chunk"""
    label: str = Field(..., min_length=1)
    category: str = Field(IssueCategory.OTHER.value)
    page: int = Field(..., ge=1)


class CandidateContradiction(BaseModel):
    """
    Possible contradiction proposed by the extractor.

    When statement_b is missing the candidate is an open claim about `fact`
    that may be paired with a claim from another chunk.
    """
    statement_a: str = Field(..., min_length=1)
    page_a: int = Field(..., ge=1)
    statement_b: Optional[str] = None
    page_b: Optional[int] = Field(None, ge=1)
    reason: str = ""
    confidence: float = Field(0.6, ge=0.0, le=1.0)
    fact: Optional[str] = None

    @property
    def is_open(self) -> bool:
        return not self.statement_b


class ChunkExtractionResult(BaseModel):
    """Everything extracted from one chunk"""
    headings: List[Heading] = Field(default_factory=list)
    timeline_events: List[TimelineEvent] = Field(default_factory=list)
    issues: List[IssueRef] = Field(default_factory=list)
    candidate_contradictions: List[CandidateContradiction] = Field(default_factory=list)


# =============================================================================
# REQUESTS
# =============================================================================

class StartPhaseARequest(BaseModel):
    """Start a phase A (single pass) bundle"""
    bundle_name: Optional[str] = Field(None, description="Display name of the bundle")
    text_content: Optional[str] = Field(None, description="Whole bundle text")
    page_count: Optional[int] = Field(None, description="Page count if known")


class StartFullRequest(BaseModel):
    """Start a full (chunked) bundle"""
    bundle_name: Optional[str] = None
    page_count: Optional[int] = None
    text_content_by_page: Dict[int, str] = Field(default_factory=dict)
    initial_batch: Optional[int] = Field(
        None, description="Chunks to process immediately (default from settings, 0 = none)"
    )


class ContinueRequest(BaseModel):
    """Continue processing request body (accepts empty JSON {})"""
    max_chunks: Optional[int] = None


# =============================================================================
# BUNDLE STATE
# =============================================================================

class BundleOut(BaseModel):
    """Bundle state as returned to callers"""
    model_config = ConfigDict(from_attributes=True)

    id: str
    case_id: str
    org_id: str
    name: str
    analysis_level: AnalysisLevel
    status: BundleStatus
    page_count: int
    chunk_size: int
    total_chunks: int
    processed_chunks: int
    progress: int = Field(0, description="Percent of chunks processed")
    last_error: Optional[str] = None
    detected_sections: List[str] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


class PhaseASummary(BaseModel):
    """Phase A quick summary"""
    bundle_id: str
    bundle_name: str
    page_count: int
    summary: str
    detected_sections: List[str] = Field(default_factory=list)
    is_partial_analysis: bool = True


class PhaseAResponse(BaseModel):
    summary: PhaseASummary
    bundle: BundleOut


class ErrorDetail(BaseModel):
    """Structured error detail"""
    code: str = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Human-readable error message")
    details: Optional[Any] = Field(None, description="Optional error details")


class ErrorResponse(BaseModel):
    """Structured error response"""
    error: ErrorDetail


class ProcessingResult(BaseModel):
    """Result of starting or continuing a full bundle"""
    bundle: BundleOut
    processed: int = 0
    remaining: int = 0
    is_complete: bool = False
    busy: bool = Field(False, description="Another run holds the bundle; nothing was processed")
    error: Optional[ErrorDetail] = None


class BundleStatusResponse(BaseModel):
    bundle: Optional[BundleOut] = None


class DeleteBundlesResponse(BaseModel):
    deleted: int


# =============================================================================
# VIEWS
# =============================================================================

class TOCEntry(BaseModel):
    title: str
    page_start: int
    page_end: int
    chunk_index: int


class TOCResponse(BaseModel):
    bundle_id: str
    entries: List[TOCEntry] = Field(default_factory=list)


class TimelineEntry(BaseModel):
    date: Optional[str] = Field(None, description="Normalized ISO date (YYYY, YYYY-MM or YYYY-MM-DD)")
    date_text: Optional[str] = Field(None, description="Date as written in the source")
    precision: Optional[str] = Field(None, description="day | month | year")
    description: str
    pages: List[int] = Field(default_factory=list)
    chunk_indices: List[int] = Field(default_factory=list)


class TimelineResponse(BaseModel):
    bundle_id: str
    entries: List[TimelineEntry] = Field(default_factory=list)
    undated_count: int = 0


class IssueEntry(BaseModel):
    label: str
    count: int
    pages: List[int] = Field(default_factory=list)


class IssueGroup(BaseModel):
    category: str
    count: int
    issues: List[IssueEntry] = Field(default_factory=list)


class IssuesMapResponse(BaseModel):
    bundle_id: str
    categories: List[IssueGroup] = Field(default_factory=list)
    total_issues: int = 0


class ContradictionEntry(BaseModel):
    statement_a: str
    page_a: int
    statement_b: str
    page_b: Optional[int] = None
    reason: str = ""
    confidence: float
    fact: Optional[str] = None
    corroborations: int = 1
    chunk_indices: List[int] = Field(default_factory=list)


class ContradictionReport(BaseModel):
    bundle_id: str
    contradictions: List[ContradictionEntry] = Field(default_factory=list)
    candidates_considered: int = 0
    threshold: float


class Coverage(BaseModel):
    analysed_chunks: int
    total_chunks: int
    label: str
    is_partial: bool


class Overview(BaseModel):
    bundle_id: str
    bundle_name: str
    analysis_level: AnalysisLevel
    status: BundleStatus
    page_count: int
    summary: str
    coverage: Optional[Coverage] = None
    detected_sections: List[str] = Field(default_factory=list)
    issue_count: int = 0
    key_dates_count: int = 0
    heading_count: int = 0
    last_error: Optional[str] = None
    last_updated: Optional[datetime] = None


class OverviewResponse(BaseModel):
    overview: Overview


class SearchResult(BaseModel):
    page: int
    count: int
    snippet: str


class SearchResponse(BaseModel):
    query: str
    results: List[SearchResult] = Field(default_factory=list)
    total_matches: int = 0


# =============================================================================
# HEALTH
# =============================================================================

class HealthResponse(BaseModel):
    """Health check response"""
    status: str = Field(..., description="Service status")
    version: str = Field(..., description="Service version")
    llm_mode: LLMMode = Field(..., description="Current LLM mode")
    timestamp: datetime = Field(..., description="Current timestamp")
