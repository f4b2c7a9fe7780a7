"""
Bundle Store
============

Tenant-scoped persistence for bundles, page text and chunk extractions.

Every lookup is filtered by (case_id, org_id); a bundle that exists under a
different case or org is reported exactly like a missing one.

The only shared mutable state is Bundle.status / Bundle.processed_chunks.
Both are advanced through conditional UPDATEs (compare-and-set) so concurrent
processing runs cannot interleave.
"""

import logging
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from sqlalchemy import and_, delete, or_, update
from sqlalchemy.orm import Session

from .db.models import Bundle, ChunkExtraction, PageText
from .errors import NotFoundError
from .schemas import AnalysisLevel, BundleStatus, ChunkExtractionResult

logger = logging.getLogger(__name__)


class BundleStore:
    """Repository over a SQLAlchemy session."""

    def __init__(self, db: Session):
        self.db = db

    # -------------------------------------------------------------------------
    # Bundles
    # -------------------------------------------------------------------------

    def create_bundle(
        self,
        case_id: str,
        org_id: str,
        name: str,
        analysis_level: AnalysisLevel,
        page_count: int,
        chunk_size: int,
        status: BundleStatus = BundleStatus.PENDING,
        **fields,
    ) -> Bundle:
        bundle = Bundle(
            case_id=case_id,
            org_id=org_id,
            name=name,
            analysis_level=analysis_level,
            status=status,
            page_count=page_count,
            chunk_size=chunk_size,
            processed_chunks=0,
            **fields,
        )
        self.db.add(bundle)
        self.db.flush()
        return bundle

    def get_bundle(self, bundle_id: str, case_id: str, org_id: str) -> Bundle:
        bundle = (
            self.db.query(Bundle)
            .filter(
                Bundle.id == bundle_id,
                Bundle.case_id == case_id,
                Bundle.org_id == org_id,
            )
            .first()
        )
        if not bundle:
            raise NotFoundError("Bundle not found", details={"bundle_id": bundle_id})
        return bundle

    def latest_bundle(self, case_id: str, org_id: str) -> Optional[Bundle]:
        return (
            self.db.query(Bundle)
            .filter(Bundle.case_id == case_id, Bundle.org_id == org_id)
            .order_by(Bundle.created_at.desc())
            .first()
        )

    def refresh(self, bundle: Bundle) -> Bundle:
        self.db.refresh(bundle)
        return bundle

    def delete_case_bundles(self, case_id: str, org_id: str) -> int:
        """Delete every bundle of a case (pages and extractions cascade)."""
        bundles = (
            self.db.query(Bundle)
            .filter(Bundle.case_id == case_id, Bundle.org_id == org_id)
            .all()
        )
        for bundle in bundles:
            self.db.delete(bundle)
        self.db.commit()
        return len(bundles)

    # -------------------------------------------------------------------------
    # Page text (immutable once written)
    # -------------------------------------------------------------------------

    def add_pages(self, bundle: Bundle, pages: Dict[int, str]) -> int:
        for page_no in sorted(pages):
            self.db.add(PageText(
                bundle_id=bundle.id,
                org_id=bundle.org_id,
                page_no=page_no,
                text=pages[page_no] or "",
            ))
        self.db.flush()
        return len(pages)

    def get_page_texts(self, bundle_id: str, page_start: int, page_end: int) -> Dict[int, str]:
        rows = (
            self.db.query(PageText)
            .filter(
                PageText.bundle_id == bundle_id,
                PageText.page_no >= page_start,
                PageText.page_no <= page_end,
            )
            .order_by(PageText.page_no.asc())
            .all()
        )
        return {row.page_no: row.text for row in rows}

    def list_pages(self, bundle_id: str) -> List[PageText]:
        return (
            self.db.query(PageText)
            .filter(PageText.bundle_id == bundle_id)
            .order_by(PageText.page_no.asc())
            .all()
        )

    # -------------------------------------------------------------------------
    # Extractions
    # -------------------------------------------------------------------------

    def completed_extractions(self, bundle: Bundle) -> List[ChunkExtraction]:
        """Extractions for the contiguous completed prefix, in chunk order."""
        return (
            self.db.query(ChunkExtraction)
            .filter(
                ChunkExtraction.bundle_id == bundle.id,
                ChunkExtraction.chunk_index < (bundle.processed_chunks or 0),
            )
            .order_by(ChunkExtraction.chunk_index.asc())
            .all()
        )

    def completed_chunk_indices(self, bundle_id: str) -> List[int]:
        rows = (
            self.db.query(ChunkExtraction.chunk_index)
            .filter(ChunkExtraction.bundle_id == bundle_id)
            .order_by(ChunkExtraction.chunk_index.asc())
            .all()
        )
        return [row[0] for row in rows]

    # -------------------------------------------------------------------------
    # Lease (per-bundle mutual exclusion)
    # -------------------------------------------------------------------------

    def try_acquire_lease(self, bundle_id: str, token: str, ttl_seconds: int) -> bool:
        """
        Claim the bundle for one processing run.

        Succeeds only when no unexpired lease is held. Commits immediately so
        other sessions observe the claim before any extraction starts.
        """
        now = datetime.utcnow()
        result = self.db.execute(
            update(Bundle)
            .where(
                Bundle.id == bundle_id,
                or_(Bundle.lease_token.is_(None), Bundle.lease_expires_at < now),
            )
            .values(lease_token=token, lease_expires_at=now + timedelta(seconds=ttl_seconds))
            .execution_options(synchronize_session=False)
        )
        self.db.commit()
        return result.rowcount == 1

    def release_lease(self, bundle_id: str, token: str) -> None:
        self.db.execute(
            update(Bundle)
            .where(Bundle.id == bundle_id, Bundle.lease_token == token)
            .values(lease_token=None, lease_expires_at=None)
            .execution_options(synchronize_session=False)
        )
        self.db.commit()

    def set_status(self, bundle_id: str, token: str, status: BundleStatus, **values) -> bool:
        """Update status while holding the lease."""
        if status == BundleStatus.COMPLETED:
            values.setdefault("completed_at", datetime.utcnow())
        result = self.db.execute(
            update(Bundle)
            .where(Bundle.id == bundle_id, Bundle.lease_token == token)
            .values(status=status, **values)
            .execution_options(synchronize_session=False)
        )
        self.db.commit()
        return result.rowcount == 1

    def commit_chunk(
        self,
        bundle_id: str,
        org_id: str,
        token: str,
        chunk_index: int,
        page_start: int,
        page_end: int,
        result: ChunkExtractionResult,
        attempts: int,
        ttl_seconds: int,
    ) -> bool:
        """
        Persist one chunk and advance processed_chunks in one transaction.

        The counter only moves from chunk_index to chunk_index + 1 while this
        run still holds the lease, so chunks are committed strictly in order.
        Any earlier row for the same index is replaced.
        """
        advanced = self.db.execute(
            update(Bundle)
            .where(
                and_(
                    Bundle.id == bundle_id,
                    Bundle.lease_token == token,
                    Bundle.processed_chunks == chunk_index,
                )
            )
            .values(
                processed_chunks=chunk_index + 1,
                last_error=None,
                lease_expires_at=datetime.utcnow() + timedelta(seconds=ttl_seconds),
            )
            .execution_options(synchronize_session=False)
        )
        if advanced.rowcount != 1:
            self.db.rollback()
            logger.warning(
                "Chunk %s of bundle %s not committed: lease lost or counter moved",
                chunk_index, bundle_id,
            )
            return False

        self.db.execute(
            delete(ChunkExtraction)
            .where(
                ChunkExtraction.bundle_id == bundle_id,
                ChunkExtraction.chunk_index == chunk_index,
            )
            .execution_options(synchronize_session=False)
        )
        payload = result.model_dump()
        self.db.add(ChunkExtraction(
            bundle_id=bundle_id,
            org_id=org_id,
            chunk_index=chunk_index,
            page_start=page_start,
            page_end=page_end,
            headings=payload["headings"],
            timeline_events=payload["timeline_events"],
            issues=payload["issues"],
            candidate_contradictions=payload["candidate_contradictions"],
            attempts=attempts,
        ))
        self.db.commit()
        return True
