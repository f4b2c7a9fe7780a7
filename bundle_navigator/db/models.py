"""
SQLAlchemy Models for Database
==============================

Schema for bundle analysis:
- Bundles (one analysis run over a document set, scoped by case + org)
- Page text (immutable, doubles as the search index)
- Chunk extractions (append-only, one row per processed chunk)

Supports both PostgreSQL and SQLite via SQLAlchemy.
"""

import math
import uuid
from datetime import datetime
from sqlalchemy import (
    Column, String, Text, Integer, DateTime, Enum, ForeignKey,
    UniqueConstraint, Index, JSON, CheckConstraint
)
from sqlalchemy.orm import relationship, declarative_base

from ..schemas import AnalysisLevel, BundleStatus

# Use JSON for cross-database compatibility (works with both PostgreSQL and SQLite)
JSONB = JSON

Base = declarative_base()


def generate_uuid():
    return str(uuid.uuid4())


# =============================================================================
# BUNDLES
# =============================================================================

class Bundle(Base):
    """Analysis run over one legal bundle"""
    __tablename__ = "bundles"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    case_id = Column(String(36), nullable=False)
    org_id = Column(String(36), nullable=False)
    name = Column(String(255), nullable=False)

    analysis_level = Column(Enum(AnalysisLevel), nullable=False)
    status = Column(Enum(BundleStatus), default=BundleStatus.PENDING, nullable=False)

    # Chunk bookkeeping
    page_count = Column(Integer, nullable=False, default=0)
    chunk_size = Column(Integer, nullable=False, default=3)
    processed_chunks = Column(Integer, nullable=False, default=0)
    last_error = Column(Text, nullable=True)

    # Phase A output
    phase_a_summary = Column(Text, nullable=True)
    detected_sections = Column(JSONB, default=list)

    # Processing lease (compare-and-set mutual exclusion)
    lease_token = Column(String(36), nullable=True)
    lease_expires_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    started_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)

    __table_args__ = (
        CheckConstraint("processed_chunks >= 0", name="ck_bundle_processed_non_negative"),
        Index("ix_bundle_case_org", "case_id", "org_id", "created_at"),
    )

    # Relationships
    pages = relationship(
        "PageText", back_populates="bundle", cascade="all, delete-orphan",
        order_by="PageText.page_no",
    )
    extractions = relationship(
        "ChunkExtraction", back_populates="bundle", cascade="all, delete-orphan",
        order_by="ChunkExtraction.chunk_index",
    )

    @property
    def total_chunks(self) -> int:
        if self.analysis_level != AnalysisLevel.FULL or not self.page_count:
            return 0
        return math.ceil(self.page_count / max(1, self.chunk_size or 1))

    @property
    def remaining_chunks(self) -> int:
        return max(0, self.total_chunks - (self.processed_chunks or 0))

    @property
    def progress(self) -> int:
        if self.analysis_level == AnalysisLevel.PHASE_A:
            return 100 if self.status == BundleStatus.COMPLETED else 0
        total = self.total_chunks
        if not total:
            return 0
        return round((self.processed_chunks or 0) * 100 / total)


class PageText(Base):
    """Raw text of one page. Written once at bundle creation."""
    __tablename__ = "bundle_pages"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    bundle_id = Column(String(36), ForeignKey("bundles.id", ondelete="CASCADE"), nullable=False)
    org_id = Column(String(36), nullable=False)
    page_no = Column(Integer, nullable=False)
    text = Column(Text, nullable=False, default="")
    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("bundle_id", "page_no", name="uq_bundle_page_no"),
        Index("ix_bundle_page_bundle", "bundle_id"),
    )

    bundle = relationship("Bundle", back_populates="pages")


class ChunkExtraction(Base):
    """Extraction result for one successfully processed chunk"""
    __tablename__ = "chunk_extractions"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    bundle_id = Column(String(36), ForeignKey("bundles.id", ondelete="CASCADE"), nullable=False)
    org_id = Column(String(36), nullable=False)
    chunk_index = Column(Integer, nullable=False)
    page_start = Column(Integer, nullable=False)
    page_end = Column(Integer, nullable=False)

    headings = Column(JSONB, default=list)  # [{title, page}]
    timeline_events = Column(JSONB, default=list)  # [{date, description, page}]
    issues = Column(JSONB, default=list)  # [{label, category, page}]
    candidate_contradictions = Column(JSONB, default=list)  # [{statement_a, page_a, ...}]

    attempts = Column(Integer, default=1)
    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("bundle_id", "chunk_index", name="uq_extraction_bundle_chunk"),
        Index("ix_extraction_bundle", "bundle_id", "chunk_index"),
    )

    bundle = relationship("Bundle", back_populates="extractions")
