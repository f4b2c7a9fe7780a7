"""
Overview Builder
================

Phase A bundles return their stored summary. Full bundles get a bounded
narrative synthesized from the issues map and timeline, with a coverage
indicator so partial results are never mistaken for complete ones.
"""

from typing import List, Optional, Sequence

from ..schemas import AnalysisLevel, BundleStatus, Coverage, Overview
from .issues import build_issues_map
from .timeline import build_timeline
from .toc import build_toc

MAX_LISTED_EVENTS = 5
MAX_LISTED_SECTIONS = 5


def coverage_for(analysed: int, total: int) -> Coverage:
    return Coverage(
        analysed_chunks=analysed,
        total_chunks=total,
        label=f"{analysed}/{total} chunks analysed",
        is_partial=analysed < total,
    )


def truncate(text: str, max_chars: int) -> str:
    if len(text) <= max_chars:
        return text
    return text[:max(0, max_chars - 3)].rstrip() + "..."


def _narrative(bundle, coverage: Coverage, issues, timeline, toc) -> str:
    parts: List[str] = [
        f'Bundle "{bundle.name}" ({bundle.page_count} pages). '
        f"{coverage.analysed_chunks} of {coverage.total_chunks} chunks analysed."
    ]

    if bundle.status == BundleStatus.COMPLETED:
        parts.append("Full analysis complete.")
    elif bundle.status == BundleStatus.FAILED:
        parts.append(f"Analysis stopped after an error: {bundle.last_error or 'unknown error'}.")
    else:
        parts.append("Analysis in progress; figures below cover analysed pages only.")

    if toc.entries:
        titles = [e.title for e in toc.entries[:MAX_LISTED_SECTIONS]]
        parts.append(f"Sections: {', '.join(titles)}.")

    if issues.categories:
        summary = ", ".join(f"{g.category.capitalize()} ({g.count})" for g in issues.categories)
        parts.append(f"Issues identified: {summary}.")

    dated = [e for e in timeline.entries if e.date]
    if dated:
        parts.append(f"Key dates: {dated[0].date} to {dated[-1].date} ({len(dated)} dated events).")
        for entry in dated[:MAX_LISTED_EVENTS]:
            parts.append(f"- {entry.date_text or entry.date}: {entry.description}")

    return "\n".join(parts)


def build_overview(
    bundle,
    extractions: Sequence,
    max_chars: int = 2000,
    similarity_threshold: float = 0.85,
) -> Overview:
    """Overview for any bundle state. Never gated."""
    common = dict(
        bundle_id=bundle.id,
        bundle_name=bundle.name,
        analysis_level=bundle.analysis_level,
        status=bundle.status,
        page_count=bundle.page_count or 0,
        detected_sections=list(bundle.detected_sections or []),
        last_error=bundle.last_error,
        last_updated=bundle.updated_at,
    )

    if bundle.analysis_level == AnalysisLevel.PHASE_A:
        return Overview(summary=truncate(bundle.phase_a_summary or "", max_chars), **common)

    coverage = coverage_for(bundle.processed_chunks or 0, bundle.total_chunks)
    issues = build_issues_map(bundle.id, extractions)
    timeline = build_timeline(bundle.id, extractions, similarity_threshold)
    toc = build_toc(bundle.id, extractions, bundle.page_count)

    return Overview(
        summary=truncate(_narrative(bundle, coverage, issues, timeline, toc), max_chars),
        coverage=coverage,
        issue_count=issues.total_issues,
        key_dates_count=len(timeline.entries) - timeline.undated_count,
        heading_count=len(toc.entries),
        **common,
    )
