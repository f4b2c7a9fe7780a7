"""
Contradiction Finder
====================

Cross-references candidate contradictions from all completed chunks.

- Explicit candidates (both statements given) are kept as proposed.
- Open claims (one statement plus a `fact` key) are paired with open claims
  about the same fact from other chunks whose statement differs.
- A/B and B/A are the same pair. Each repeat adds 0.1 confidence, up to 1.0.
- Pairs below the confidence threshold are dropped.
"""

import logging
from itertools import combinations
from typing import Dict, List, Sequence, Tuple

from pydantic import ValidationError as PydanticValidationError

from ..dedup import normalize_text, pair_key
from ..schemas import CandidateContradiction, ContradictionEntry, ContradictionReport

logger = logging.getLogger(__name__)

CORROBORATION_BOOST = 0.1


def _candidates(extraction) -> List[CandidateContradiction]:
    """Stored candidate payloads as models; malformed entries are skipped"""
    candidates = []
    for raw in extraction.candidate_contradictions or []:
        try:
            candidate = CandidateContradiction.model_validate(raw)
        except PydanticValidationError:
            logger.warning(f"Skipping malformed candidate in chunk {extraction.chunk_index}")
            continue
        candidate.statement_a = candidate.statement_a.strip()
        candidate.statement_b = (candidate.statement_b or "").strip() or None
        if candidate.statement_a:
            candidates.append(candidate)
    return candidates


def find_contradictions(
    bundle_id: str,
    extractions: Sequence,
    threshold: float = 0.6,
) -> ContradictionReport:
    pairs: Dict[Tuple[str, str], ContradictionEntry] = {}
    open_claims: Dict[str, List[Tuple[int, CandidateContradiction]]] = {}
    considered = 0

    def add_pair(entry: ContradictionEntry):
        key = pair_key(entry.statement_a, entry.statement_b)
        existing = pairs.get(key)
        if existing is None:
            pairs[key] = entry
            return
        existing.corroborations += 1
        existing.confidence = min(1.0, max(existing.confidence, entry.confidence) + CORROBORATION_BOOST)
        existing.chunk_indices = sorted(set(existing.chunk_indices) | set(entry.chunk_indices))

    for extraction in extractions:
        for candidate in _candidates(extraction):
            considered += 1

            if not candidate.is_open:
                add_pair(ContradictionEntry(
                    statement_a=candidate.statement_a,
                    page_a=candidate.page_a,
                    statement_b=candidate.statement_b,
                    page_b=candidate.page_b,
                    reason=candidate.reason,
                    confidence=candidate.confidence,
                    fact=candidate.fact,
                    chunk_indices=[extraction.chunk_index],
                ))
                continue

            fact = normalize_text(candidate.fact or "")
            if fact:
                open_claims.setdefault(fact, []).append((extraction.chunk_index, candidate))

    for fact, claims in open_claims.items():
        for (chunk_a, claim_a), (chunk_b, claim_b) in combinations(claims, 2):
            if chunk_a == chunk_b:
                continue
            if normalize_text(claim_a.statement_a) == normalize_text(claim_b.statement_a):
                continue
            add_pair(ContradictionEntry(
                statement_a=claim_a.statement_a,
                page_a=claim_a.page_a,
                statement_b=claim_b.statement_a,
                page_b=claim_b.page_a,
                reason=claim_a.reason or claim_b.reason or "Conflicting statements about the same fact",
                confidence=min(claim_a.confidence, claim_b.confidence),
                fact=claim_a.fact,
                chunk_indices=sorted({chunk_a, chunk_b}),
            ))

    kept = []
    for entry in pairs.values():
        entry.confidence = round(entry.confidence, 2)
        if entry.confidence >= threshold:
            kept.append(entry)
    kept.sort(key=lambda e: (-e.confidence, e.page_a))

    logger.info(
        f"Contradictions {bundle_id}: {considered} candidates, {len(pairs)} pairs, "
        f"{len(kept)} above threshold {threshold}"
    )
    return ContradictionReport(
        bundle_id=bundle_id,
        contradictions=kept,
        candidates_considered=considered,
        threshold=threshold,
    )
