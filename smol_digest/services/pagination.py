from __future__ import annotations

import math
from collections.abc import Iterable, Sequence

from smol_digest.models.issue import UNKNOWN_DAY_KEY, Issue, IssueGroup, IssuePage
from smol_digest.services.dates import UNKNOWN_DATE_LABEL, format_day_label

PAGE_SIZE = 20


def sort_issues(issues: Iterable[Issue]) -> list[Issue]:
    """Newest first; undated issues sort as if published at the epoch."""
    return sorted(issues, key=_timestamp, reverse=True)


def total_pages(item_count: int, page_size: int = PAGE_SIZE) -> int:
    return max(1, math.ceil(item_count / page_size))


def paginate(issues: Sequence[Issue], page: int, page_size: int = PAGE_SIZE) -> IssuePage:
    """Slice one 1-based page; out-of-range pages yield an empty slice."""
    start = (page - 1) * page_size
    window = tuple(issues[start : start + page_size]) if page >= 1 else ()
    return IssuePage(
        issues=window,
        page=page,
        total_pages=total_pages(len(issues), page_size),
        page_size=page_size,
        total_items=len(issues),
    )


def group_issues_by_day(issues: Iterable[Issue]) -> list[IssueGroup]:
    order: list[str] = []
    members: dict[str, list[Issue]] = {}
    for issue in issues:
        bucket = members.get(issue.day_key)
        if bucket is None:
            order.append(issue.day_key)
            members[issue.day_key] = [issue]
        else:
            bucket.append(issue)

    groups: list[IssueGroup] = []
    for day_key in order:
        items = members[day_key]
        label = (
            UNKNOWN_DATE_LABEL if day_key == UNKNOWN_DAY_KEY else format_day_label(items[0].date)
        )
        groups.append(IssueGroup(day_key=day_key, day_label=label, items=tuple(items)))
    return groups


def _timestamp(issue: Issue) -> float:
    if issue.date is None:
        return 0.0
    return issue.date.timestamp()
