"""
Tests for Chunk Processor
=========================

Resumable, ordered, mutually exclusive chunk processing against a fresh
SQLite database per test.

Scenarios:
- A: 10 pages / chunk size 3, continue(3) then continue(3)
- C: chunk 2 fails every attempt, bundle fails, resumes later
- D: two concurrent continue calls, only one advances
"""

import asyncio
import os
from datetime import datetime, timedelta
from pathlib import Path

import pytest

# Add parent to path for imports
import sys
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from bundle_navigator.config import Settings
from bundle_navigator.errors import ExtractionError, NotFoundError, TransientExtractionError, ValidationError
from bundle_navigator.extraction.base import ChunkExtractor
from bundle_navigator.schemas import (
    BundleStatus,
    ChunkExtractionResult,
    Heading,
    IssueRef,
    StartFullRequest,
    StartPhaseARequest,
)

CASE_ID = "case-1"
ORG_ID = "org-1"


@pytest.fixture
def sqlalchemy_db(tmp_path):
    """Configure a fresh SQLAlchemy SQLite DB for tests."""
    from bundle_navigator.db.session import reset_engine, init_db

    old_db_url = os.environ.get("DATABASE_URL")
    db_path = tmp_path / "processor.db"
    os.environ["DATABASE_URL"] = f"sqlite:///{db_path}"
    reset_engine()
    init_db()

    yield

    if old_db_url is not None:
        os.environ["DATABASE_URL"] = old_db_url
    else:
        os.environ.pop("DATABASE_URL", None)
    reset_engine()


@pytest.fixture
def settings():
    return Settings(
        chunk_size=3,
        extraction_max_attempts=3,
        extraction_backoff_base=0.0,
        extraction_backoff_max=0.0,
    )


class StubExtractor(ChunkExtractor):
    """Records calls; fails chunks starting at given pages a set number of times"""

    def __init__(self, failures=None, error=TransientExtractionError):
        self.calls = []
        self.failures = dict(failures or {})
        self.error = error

    async def extract(self, chunk_text, page_start, page_end):
        self.calls.append((page_start, page_end))
        remaining = self.failures.get(page_start, 0)
        if remaining:
            self.failures[page_start] = remaining - 1
            raise self.error("upstream 503")
        return ChunkExtractionResult(
            headings=[Heading(title=f"Section {page_start}", page=page_start)],
            issues=[IssueRef(label="Breach", category="liability", page=page_start)],
        )


def pages(count):
    return {i: f"Page {i} text" for i in range(1, count + 1)}


def make_service(db, extractor, settings):
    from bundle_navigator.service import BundleService
    return BundleService(db, extractor=extractor, settings=settings)


async def create_full(extractor, settings, page_count=10, initial_batch=0):
    from bundle_navigator.db.session import get_db_session

    with get_db_session() as db:
        result = await make_service(db, extractor, settings).start_full(
            CASE_ID, ORG_ID,
            StartFullRequest(
                bundle_name="Trial Bundle",
                page_count=page_count,
                text_content_by_page=pages(page_count),
                initial_batch=initial_batch,
            ),
        )
    return result


async def continue_(extractor, settings, bundle_id, max_chunks, org_id=ORG_ID):
    from bundle_navigator.db.session import get_db_session

    with get_db_session() as db:
        return await make_service(db, extractor, settings).continue_processing(
            CASE_ID, org_id, bundle_id, max_chunks
        )


def completed_indices(bundle_id):
    from bundle_navigator.db.session import get_db_session
    from bundle_navigator.store import BundleStore

    with get_db_session() as db:
        return BundleStore(db).completed_chunk_indices(bundle_id)


# =============================================================================
# Scenario A and basic progress
# =============================================================================

class TestProgress:
    """Batches advance processed_chunks in order"""

    @pytest.mark.asyncio
    async def test_scenario_a(self, sqlalchemy_db, settings):
        extractor = StubExtractor()
        created = await create_full(extractor, settings)
        bundle_id = created.bundle.id
        assert created.bundle.status == BundleStatus.PENDING
        assert created.bundle.total_chunks == 4
        assert created.remaining == 4

        first = await continue_(extractor, settings, bundle_id, 3)
        assert first.processed == 3
        assert first.remaining == 1
        assert first.is_complete is False
        assert first.bundle.status == BundleStatus.PROCESSING

        second = await continue_(extractor, settings, bundle_id, 3)
        assert second.processed == 1
        assert second.remaining == 0
        assert second.is_complete is True
        assert second.bundle.status == BundleStatus.COMPLETED
        assert second.bundle.progress == 100

        assert extractor.calls == [(1, 3), (4, 6), (7, 9), (10, 10)]

    @pytest.mark.asyncio
    async def test_bootstrap_batch(self, sqlalchemy_db, settings):
        created = await create_full(StubExtractor(), settings, initial_batch=1)
        assert created.processed == 1
        assert created.remaining == 3
        assert created.bundle.status == BundleStatus.PROCESSING

    @pytest.mark.asyncio
    async def test_idempotent_when_complete(self, sqlalchemy_db, settings):
        extractor = StubExtractor()
        created = await create_full(extractor, settings, page_count=3, initial_batch=1)
        assert created.is_complete is True

        for _ in range(3):
            again = await continue_(extractor, settings, created.bundle.id, 3)
            assert again.processed == 0
            assert again.remaining == 0
            assert again.is_complete is True
        assert len(extractor.calls) == 1

    @pytest.mark.asyncio
    async def test_prefix_and_monotonic(self, sqlalchemy_db, settings):
        extractor = StubExtractor()
        created = await create_full(extractor, settings, page_count=14)
        bundle_id = created.bundle.id

        previous = 0
        for batch in (1, 2, 1, 3):
            result = await continue_(extractor, settings, bundle_id, batch)
            processed_chunks = result.bundle.processed_chunks
            assert previous <= processed_chunks <= result.bundle.total_chunks
            assert completed_indices(bundle_id) == list(range(processed_chunks))
            previous = processed_chunks
        assert previous == 5

    @pytest.mark.asyncio
    async def test_max_chunks_validated(self, sqlalchemy_db, settings):
        created = await create_full(StubExtractor(), settings)
        for bad in (0, 21):
            with pytest.raises(ValidationError):
                await continue_(StubExtractor(), settings, created.bundle.id, bad)

    @pytest.mark.asyncio
    async def test_cross_tenant_not_found(self, sqlalchemy_db, settings):
        created = await create_full(StubExtractor(), settings)
        with pytest.raises(NotFoundError):
            await continue_(StubExtractor(), settings, created.bundle.id, 1, org_id="org-2")

    @pytest.mark.asyncio
    async def test_phase_a_continue_is_noop(self, sqlalchemy_db, settings):
        from bundle_navigator.db.session import get_db_session

        with get_db_session() as db:
            response = make_service(db, StubExtractor(), settings).start_phase_a(
                CASE_ID, ORG_ID, StartPhaseARequest(bundle_name="Preview", text_content="short"),
            )
        extractor = StubExtractor()
        result = await continue_(extractor, settings, response.bundle.id, 3)
        assert result.processed == 0
        assert result.remaining == 0
        assert result.is_complete is True
        assert extractor.calls == []


# =============================================================================
# Scenario C: retry exhaustion and resume
# =============================================================================

class TestFailure:
    """A chunk that exhausts its retries fails the bundle without losing progress"""

    @pytest.mark.asyncio
    async def test_scenario_c(self, sqlalchemy_db, settings):
        from bundle_navigator.db.session import get_db_session

        extractor = StubExtractor(failures={7: 3})
        created = await create_full(extractor, settings)
        bundle_id = created.bundle.id

        result = await continue_(extractor, settings, bundle_id, 4)
        assert result.processed == 2
        assert result.bundle.status == BundleStatus.FAILED
        assert result.bundle.last_error == "upstream 503"
        assert result.error.code == "FATAL_PROCESSING"
        assert result.error.details["chunk_index"] == 2
        assert extractor.calls.count((7, 9)) == 3
        assert completed_indices(bundle_id) == [0, 1]

        with get_db_session() as db:
            overview = make_service(db, extractor, settings).get_overview(CASE_ID, ORG_ID, bundle_id).overview
        assert overview.coverage.label == "2/4 chunks analysed"
        assert overview.last_error == "upstream 503"

    @pytest.mark.asyncio
    async def test_retry_then_success(self, sqlalchemy_db, settings):
        extractor = StubExtractor(failures={1: 2})
        created = await create_full(extractor, settings)
        result = await continue_(extractor, settings, created.bundle.id, 1)
        assert result.processed == 1
        assert result.error is None
        assert extractor.calls == [(1, 3), (1, 3), (1, 3)]

    @pytest.mark.asyncio
    async def test_non_transient_errors_also_retried(self, sqlalchemy_db, settings):
        extractor = StubExtractor(failures={1: 1}, error=ExtractionError)
        created = await create_full(extractor, settings)
        result = await continue_(extractor, settings, created.bundle.id, 1)
        assert result.processed == 1

    @pytest.mark.asyncio
    async def test_failed_bundle_resumes_failed_chunk(self, sqlalchemy_db, settings):
        extractor = StubExtractor(failures={7: 3})
        created = await create_full(extractor, settings)
        bundle_id = created.bundle.id
        await continue_(extractor, settings, bundle_id, 4)

        extractor.calls.clear()
        resumed = await continue_(extractor, settings, bundle_id, 4)
        assert resumed.processed == 2
        assert resumed.is_complete is True
        assert resumed.bundle.last_error is None
        assert extractor.calls == [(7, 9), (10, 10)]

    @pytest.mark.asyncio
    async def test_backoff_is_bounded(self, settings):
        from bundle_navigator.processor import ChunkProcessor

        processor = ChunkProcessor(
            db=None,
            extractor=StubExtractor(),
            settings=Settings(extraction_backoff_base=1.0, extraction_backoff_max=3.0),
        )
        assert [processor.backoff_delay(n) for n in (1, 2, 3, 4)] == [1.0, 2.0, 3.0, 3.0]

    @pytest.mark.asyncio
    async def test_unexpected_extractor_error_fails_bundle(self, sqlalchemy_db, settings):
        from bundle_navigator.db.models import Bundle
        from bundle_navigator.db.session import get_db_session

        class Exploding(ChunkExtractor):
            def __init__(self):
                self.calls = 0

            async def extract(self, chunk_text, page_start, page_end):
                self.calls += 1
                raise RuntimeError("boom")

        extractor = Exploding()
        created = await create_full(StubExtractor(), settings)
        result = await continue_(extractor, settings, created.bundle.id, 2)

        assert extractor.calls == 3
        assert result.processed == 0
        assert result.bundle.status == BundleStatus.FAILED
        assert result.bundle.last_error == "RuntimeError: boom"
        assert result.error.code == "FATAL_PROCESSING"

        with get_db_session() as db:
            bundle = db.query(Bundle).filter(Bundle.id == created.bundle.id).one()
            assert bundle.lease_token is None
            assert bundle.status == BundleStatus.FAILED

        resumed = await continue_(StubExtractor(), settings, created.bundle.id, 2)
        assert resumed.processed == 2

    @pytest.mark.asyncio
    async def test_unexpected_error_releases_lease(self, sqlalchemy_db, settings, monkeypatch):
        from bundle_navigator.db.models import Bundle
        from bundle_navigator.db.session import get_db_session
        from bundle_navigator.store import BundleStore

        def broken_commit(self, **kwargs):
            raise RuntimeError("disk full")

        created = await create_full(StubExtractor(), settings)
        monkeypatch.setattr(BundleStore, "commit_chunk", broken_commit)
        with pytest.raises(RuntimeError):
            await continue_(StubExtractor(), settings, created.bundle.id, 2)
        monkeypatch.undo()

        with get_db_session() as db:
            bundle = db.query(Bundle).filter(Bundle.id == created.bundle.id).one()
            assert bundle.lease_token is None
            assert bundle.processed_chunks == 0

        result = await continue_(StubExtractor(), settings, created.bundle.id, 2)
        assert result.processed == 2


# =============================================================================
# Scenario D: mutual exclusion
# =============================================================================

class TestMutualExclusion:
    """At most one processing run per bundle"""

    @pytest.mark.asyncio
    async def test_scenario_d(self, sqlalchemy_db, settings):
        entered = asyncio.Event()
        release = asyncio.Event()

        class BlockingExtractor(StubExtractor):
            async def extract(self, chunk_text, page_start, page_end):
                self.calls.append((page_start, page_end))
                entered.set()
                await release.wait()
                return ChunkExtractionResult()

        extractor = BlockingExtractor()
        created = await create_full(extractor, settings)
        bundle_id = created.bundle.id

        first = asyncio.create_task(continue_(extractor, settings, bundle_id, 2))
        await entered.wait()

        second = await continue_(extractor, settings, bundle_id, 2)
        assert second.busy is True
        assert second.processed == 0

        release.set()
        result = await first
        assert result.processed == 2
        assert result.busy is False
        assert extractor.calls == [(1, 3), (4, 6)]
        assert completed_indices(bundle_id) == [0, 1]

    @pytest.mark.asyncio
    async def test_held_lease_reports_busy(self, sqlalchemy_db, settings):
        from bundle_navigator.db.models import Bundle
        from bundle_navigator.db.session import get_db_session

        created = await create_full(StubExtractor(), settings)
        with get_db_session() as db:
            bundle = db.query(Bundle).filter(Bundle.id == created.bundle.id).one()
            bundle.lease_token = "other-run"
            bundle.lease_expires_at = datetime.utcnow() + timedelta(minutes=5)

        extractor = StubExtractor()
        result = await continue_(extractor, settings, created.bundle.id, 2)
        assert result.busy is True
        assert extractor.calls == []

    @pytest.mark.asyncio
    async def test_expired_lease_taken_over(self, sqlalchemy_db, settings):
        from bundle_navigator.db.models import Bundle
        from bundle_navigator.db.session import get_db_session

        created = await create_full(StubExtractor(), settings)
        with get_db_session() as db:
            bundle = db.query(Bundle).filter(Bundle.id == created.bundle.id).one()
            bundle.lease_token = "crashed-run"
            bundle.lease_expires_at = datetime.utcnow() - timedelta(minutes=1)

        result = await continue_(StubExtractor(), settings, created.bundle.id, 2)
        assert result.busy is False
        assert result.processed == 2


# =============================================================================
# Extraction rows
# =============================================================================

class TestExtractionRows:
    """One row per chunk index"""

    @pytest.mark.asyncio
    async def test_stale_row_replaced_not_duplicated(self, sqlalchemy_db, settings):
        from bundle_navigator.db.models import ChunkExtraction
        from bundle_navigator.db.session import get_db_session

        created = await create_full(StubExtractor(), settings)
        bundle_id = created.bundle.id
        with get_db_session() as db:
            db.add(ChunkExtraction(
                bundle_id=bundle_id, org_id=ORG_ID, chunk_index=0,
                page_start=1, page_end=3, headings=[{"title": "Stale", "page": 1}],
            ))

        await continue_(StubExtractor(), settings, bundle_id, 1)

        with get_db_session() as db:
            rows = db.query(ChunkExtraction).filter(ChunkExtraction.bundle_id == bundle_id).all()
            assert len(rows) == 1
            assert rows[0].headings == [{"title": "Section 1", "page": 1}]

    @pytest.mark.asyncio
    async def test_views_after_completion(self, sqlalchemy_db, settings):
        from bundle_navigator.db.session import get_db_session

        extractor = StubExtractor()
        created = await create_full(extractor, settings)
        await continue_(extractor, settings, created.bundle.id, 4)

        with get_db_session() as db:
            service = make_service(db, extractor, settings)
            toc = service.get_toc(CASE_ID, ORG_ID, created.bundle.id)
            issues = service.get_issues(CASE_ID, ORG_ID, created.bundle.id)
        assert [e.title for e in toc.entries] == ["Section 1", "Section 4", "Section 7", "Section 10"]
        assert issues.categories[0].issues[0].pages == [1, 4, 7, 10]
