"""
Chunk Processor
===============

Advances a full bundle by processing its next unprocessed chunks in order.

One run:
1. Claim the bundle lease (conditional UPDATE). If another run holds it,
   return the current state with processed=0, busy=True.
2. For each of the next min(max_chunks, remaining) chunks:
   - build the chunk text from stored pages
   - call the extractor, retrying any extractor failure with bounded
     exponential backoff up to extraction_max_attempts
   - commit the extraction and processed_chunks + 1 together
3. On retry exhaustion: record last_error, move the bundle to FAILED, stop.
4. Release the lease.

Every chunk is committed before the next extractor call, so nothing is held
open across external calls and an interrupted run loses at most the chunk in
flight.
"""

import asyncio
import logging
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from .config import Settings, get_settings
from .db.models import Bundle
from .errors import ExtractionError, FatalProcessingError, TransientExtractionError
from .extraction.base import ChunkExtractor
from .planner import build_chunk_text, chunk_bounds
from .schemas import (
    AnalysisLevel,
    BundleOut,
    BundleStatus,
    ChunkExtractionResult,
    ErrorDetail,
    ProcessingResult,
)
from .store import BundleStore

logger = logging.getLogger(__name__)


class LeaseLostError(Exception):
    """The run's lease expired and another run took the bundle over."""
    pass


class ChunkProcessor:
    """Resumable, mutually exclusive chunk processing for one bundle at a time"""

    def __init__(
        self,
        db: Session,
        extractor: ChunkExtractor,
        settings: Optional[Settings] = None,
        sleep=asyncio.sleep,
    ):
        self.db = db
        self.store = BundleStore(db)
        self.extractor = extractor
        self.settings = settings or get_settings()
        self._sleep = sleep

    def backoff_delay(self, attempt: int) -> float:
        """Delay before retry number `attempt` (1-based)"""
        delay = self.settings.extraction_backoff_base * (2 ** (attempt - 1))
        return min(self.settings.extraction_backoff_max, delay)

    async def process(self, bundle: Bundle, max_chunks: int) -> ProcessingResult:
        """Process up to max_chunks chunks of an already scoped bundle"""
        if bundle.analysis_level != AnalysisLevel.FULL:
            return self.result_for(bundle, processed=0)

        self.store.refresh(bundle)
        if bundle.remaining_chunks == 0 and bundle.status == BundleStatus.COMPLETED:
            return self.result_for(bundle, processed=0)

        token = str(uuid.uuid4())
        ttl = self.settings.processing_lease_seconds
        if not self.store.try_acquire_lease(bundle.id, token, ttl):
            logger.info(f"Bundle {bundle.id} is busy, skipping continue")
            self.store.refresh(bundle)
            return self.result_for(bundle, processed=0, busy=True)

        processed = 0
        error: Optional[ErrorDetail] = None
        try:
            self.store.refresh(bundle)
            if bundle.status in (BundleStatus.PENDING, BundleStatus.FAILED):
                values = {}
                if bundle.started_at is None:
                    values["started_at"] = datetime.utcnow()
                self.store.set_status(bundle.id, token, BundleStatus.PROCESSING, **values)
                self.store.refresh(bundle)

            batch = min(max_chunks, bundle.remaining_chunks)
            for _ in range(batch):
                chunk_index = bundle.processed_chunks
                try:
                    await self._process_chunk(bundle, token, chunk_index)
                except FatalProcessingError as e:
                    logger.error(f"Bundle {bundle.id} failed: {e.message}")
                    self.store.set_status(
                        bundle.id, token, BundleStatus.FAILED, last_error=e.last_error,
                    )
                    error = ErrorDetail(**e.to_dict())
                    break
                except LeaseLostError:
                    break
                processed += 1
                self.store.refresh(bundle)

            self.store.refresh(bundle)
            if bundle.remaining_chunks == 0 and bundle.status != BundleStatus.COMPLETED:
                self.store.set_status(bundle.id, token, BundleStatus.COMPLETED)
                logger.info(f"Bundle {bundle.id} completed ({bundle.total_chunks} chunks)")
        except Exception:
            logger.exception(f"Unexpected failure while processing bundle {bundle.id}")
            self.db.rollback()
            raise
        finally:
            self.store.release_lease(bundle.id, token)

        self.store.refresh(bundle)
        return self.result_for(bundle, processed=processed, error=error)

    async def _process_chunk(self, bundle: Bundle, token: str, chunk_index: int) -> None:
        chunk = chunk_bounds(chunk_index, bundle.page_count, bundle.chunk_size)
        pages = self.store.get_page_texts(bundle.id, chunk.page_start, chunk.page_end)
        text = build_chunk_text(chunk, pages)
        # Release the read transaction before the external call
        self.db.commit()

        extraction, attempts = await self._extract_with_retry(
            bundle.id, chunk_index, text, chunk.page_start, chunk.page_end
        )

        committed = self.store.commit_chunk(
            bundle_id=bundle.id,
            org_id=bundle.org_id,
            token=token,
            chunk_index=chunk_index,
            page_start=chunk.page_start,
            page_end=chunk.page_end,
            result=extraction,
            attempts=attempts,
            ttl_seconds=self.settings.processing_lease_seconds,
        )
        if not committed:
            raise LeaseLostError(f"Lease lost on bundle {bundle.id} at chunk {chunk_index}")

        logger.info(
            f"Bundle {bundle.id}: chunk {chunk_index} (pages {chunk.page_start}-{chunk.page_end}) "
            f"committed after {attempts} attempt(s)"
        )

    async def _extract_with_retry(
        self, bundle_id: str, chunk_index: int, text: str, page_start: int, page_end: int
    ) -> tuple:
        max_attempts = max(1, self.settings.extraction_max_attempts)
        last_error = ""

        for attempt in range(1, max_attempts + 1):
            try:
                extraction = await self.extractor.extract(text, page_start, page_end)
                if not isinstance(extraction, ChunkExtractionResult):
                    raise ExtractionError("Extractor returned an invalid result")
                return extraction, attempt
            except ExtractionError as e:
                last_error = e.message
                kind = "transient failure" if isinstance(e, TransientExtractionError) else "extraction failed"
                logger.warning(
                    f"Bundle {bundle_id} chunk {chunk_index}: {kind} "
                    f"(attempt {attempt}/{max_attempts}): {e.message}"
                )
            except Exception as e:
                # Extractor bugs and SDK errors count as failed attempts
                last_error = f"{e.__class__.__name__}: {e}"
                logger.warning(
                    f"Bundle {bundle_id} chunk {chunk_index}: unexpected extractor error "
                    f"(attempt {attempt}/{max_attempts}): {last_error}"
                )

            if attempt < max_attempts:
                await self._sleep(self.backoff_delay(attempt))

        raise FatalProcessingError(chunk_index, max_attempts, last_error)

    def result_for(
        self,
        bundle: Bundle,
        processed: int,
        busy: bool = False,
        error: Optional[ErrorDetail] = None,
    ) -> ProcessingResult:
        if bundle.analysis_level == AnalysisLevel.FULL:
            remaining = bundle.remaining_chunks
        else:
            remaining = 0
        return ProcessingResult(
            bundle=BundleOut.model_validate(bundle),
            processed=processed,
            remaining=remaining,
            is_complete=bundle.status == BundleStatus.COMPLETED,
            busy=busy,
            error=error,
        )
