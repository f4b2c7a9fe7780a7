"""
Issues Map Builder
==================

Issues grouped by category with occurrence counts and source pages.
"""

from collections import OrderedDict
from typing import Dict, Sequence

from ..schemas import IssueCategory, IssueEntry, IssueGroup, IssuesMapResponse

_CATEGORY_ORDER = {c.value: i for i, c in enumerate(IssueCategory)}


def build_issues_map(bundle_id: str, extractions: Sequence) -> IssuesMapResponse:
    # category -> label -> {"count", "pages"}
    grouped: Dict[str, Dict[str, dict]] = {}
    total = 0

    for extraction in extractions:
        for issue in extraction.issues or []:
            label = (issue.get("label") or "").strip()
            if not label:
                continue
            category = (issue.get("category") or IssueCategory.OTHER.value).strip().lower()
            labels = grouped.setdefault(category, OrderedDict())
            item = labels.setdefault(label, {"count": 0, "pages": set()})
            item["count"] += 1
            item["pages"].add(issue.get("page") or extraction.page_start)
            total += 1

    groups = []
    for category in sorted(grouped, key=lambda c: (_CATEGORY_ORDER.get(c, len(_CATEGORY_ORDER)), c)):
        issues = [
            IssueEntry(label=label, count=item["count"], pages=sorted(item["pages"]))
            for label, item in grouped[category].items()
        ]
        issues.sort(key=lambda e: (-e.count, e.label))
        groups.append(IssueGroup(
            category=category,
            count=sum(e.count for e in issues),
            issues=issues,
        ))

    return IssuesMapResponse(bundle_id=bundle_id, categories=groups, total_issues=total)
