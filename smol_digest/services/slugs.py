"""Slug generation and tolerant slug lookup for issues.

Slugs are assigned once per fetched collection. Lookups accept the current
slug as well as the formats older permalinks used (two-digit years, bare day
keys, title slugs), because the upstream feed can shift between fetches.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from dataclasses import replace
from urllib.parse import unquote, urlparse

from smol_digest.models.issue import Issue

MAX_SLUG_LENGTH = 80
FALLBACK_SLUG = "issue"

_SCHEME_RE = re.compile(r"https?://")
_NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")
_SHORT_DATE_SLUG_RE = re.compile(r"^(\d{2})-(\d{2})-(\d{2})(-.+)?$")
_LONG_DATE_PREFIX_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})")
_SHORT_DATE_PREFIX_RE = re.compile(r"^(\d{2})-(\d{2})-(\d{2})")


def slugify(value: str) -> str:
    slug = _SCHEME_RE.sub("", value.lower())
    slug = _NON_ALNUM_RE.sub("-", slug).strip("-")
    return slug[:MAX_SLUG_LENGTH].strip("-")


def slug_from_link(link: str | None) -> str | None:
    """Slug from the last path segment of a well-formed URL, else None."""
    if not link:
        return None
    parsed = urlparse(link.strip())
    if not parsed.scheme or not parsed.netloc:
        return None
    segments = [segment for segment in parsed.path.split("/") if segment]
    if not segments:
        return None
    return slugify(segments[-1].lower()) or None


def build_slug(issue: Issue) -> str:
    from_link = slug_from_link(issue.link)
    if from_link:
        return from_link
    if issue.date is not None:
        return issue.day_key
    return slugify(issue.title or FALLBACK_SLUG)


def assign_unique_slugs(issues: Iterable[Issue]) -> tuple[Issue, ...]:
    """Return copies of `issues` carrying collection-unique slugs.

    The first issue with a given base slug keeps it; the Nth one gets `-N`.
    """
    counts: dict[str, int] = {}
    assigned: list[Issue] = []
    for issue in issues:
        base = build_slug(issue) or FALLBACK_SLUG
        count = counts.get(base, 0) + 1
        counts[base] = count
        slug = base if count == 1 else f"{base}-{count}"
        assigned.append(replace(issue, slug=slug))
    return tuple(assigned)


def normalize_slug_input(raw_slug: str) -> str:
    try:
        decoded = unquote(raw_slug, errors="strict")
    except UnicodeDecodeError:
        decoded = raw_slug
    return decoded.lower()


def expand_two_digit_year_slug(slug: str) -> str | None:
    match = _SHORT_DATE_SLUG_RE.match(slug)
    if match is None:
        return None
    yy, mm, dd, rest = match.groups()
    return f"20{yy}-{mm}-{dd}{rest or ''}"


def extract_day_key_from_slug(slug: str) -> str | None:
    match = _LONG_DATE_PREFIX_RE.match(slug)
    if match is not None:
        return "-".join(match.groups())
    short = _SHORT_DATE_PREFIX_RE.match(slug)
    if short is not None:
        yy, mm, dd = short.groups()
        return f"20{yy}-{mm}-{dd}"
    return None


def find_issue_by_slug(issues: Sequence[Issue], raw_slug: str) -> Issue | None:
    # Linear scan over the whole collection.
    normalized = normalize_slug_input(raw_slug)
    expanded = expand_two_digit_year_slug(normalized)
    wanted = {normalized} if expanded is None else {normalized, expanded}
    day_key = extract_day_key_from_slug(normalized)

    for issue in issues:
        if issue.slug in wanted:
            return issue

    for issue in issues:
        candidates = (
            issue.slug,
            issue.day_key,
            slugify(issue.title),
            slug_from_link(issue.link) or "",
        )
        if any(candidate in wanted for candidate in candidates):
            return issue
        if day_key is not None and issue.day_key == day_key:
            return issue
    return None
