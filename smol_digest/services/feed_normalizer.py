"""Conversion of raw feed entries into `Issue` records.

Each field has its own ordered list of candidate sources; `first_present` picks
the first one that carries text. Nothing here raises on missing fields: every
field degrades to a fixed fallback.
"""

from __future__ import annotations

import time
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

from smol_digest.models.issue import Issue, RawFeedItem
from smol_digest.services.dates import format_day_key, parse_feed_date
from smol_digest.services.text import html_to_text, strip_html

EMPTY_SUMMARY = "No summary available."
UNTITLED_ISSUE = "Untitled issue"


def first_present(*candidates: str | None) -> str | None:
    for candidate in candidates:
        if isinstance(candidate, str) and candidate.strip():
            return candidate
    return None


def date_candidate(raw: RawFeedItem) -> str | None:
    return first_present(raw.iso_date, raw.pub_date)


def title_candidate(raw: RawFeedItem) -> str:
    return first_present(raw.title) or UNTITLED_ISSUE


def summary_candidate(raw: RawFeedItem) -> str:
    return first_present(raw.description, raw.content_snippet) or ""


def content_candidate(raw: RawFeedItem) -> str:
    return first_present(raw.content_encoded, raw.content, raw.description) or ""


def id_candidate(raw: RawFeedItem, day_key: str) -> str:
    return first_present(raw.guid, raw.link, raw.title) or f"issue-{day_key}"


def normalize_item(raw: RawFeedItem) -> Issue:
    date = parse_feed_date(date_candidate(raw))
    day_key = format_day_key(date)
    summary = strip_html(summary_candidate(raw)) or EMPTY_SUMMARY

    return Issue(
        id=id_candidate(raw, day_key),
        title=strip_html(title_candidate(raw)),
        link=first_present(raw.link),
        pub_date=raw.pub_date,
        iso_date=raw.iso_date,
        date=date,
        day_key=day_key,
        slug="",
        summary=summary,
        content_html=content_candidate(raw),
    )


def raw_item_from_entry(entry: Mapping[str, Any]) -> RawFeedItem:
    """Map a feedparser entry onto the parser-independent `RawFeedItem`."""
    contents = _content_values(entry)
    html_content = next(
        (value for content_type, value in contents if "html" in content_type),
        None,
    )
    any_content = contents[0][1] if contents else None

    return RawFeedItem(
        title=_text(entry.get("title")),
        link=_text(entry.get("link")),
        pub_date=first_present(_text(entry.get("published")), _text(entry.get("updated"))),
        iso_date=_iso_from_struct(entry.get("published_parsed"))
        or _iso_from_struct(entry.get("updated_parsed")),
        content=any_content,
        content_snippet=html_to_text(any_content) or None,
        guid=_text(entry.get("id")),
        content_encoded=html_content,
        description=_text(entry.get("summary")),
    )


def _content_values(entry: Mapping[str, Any]) -> list[tuple[str, str]]:
    values: list[tuple[str, str]] = []
    raw_contents = entry.get("content")
    if not isinstance(raw_contents, list):
        return values
    for raw_content in raw_contents:
        if not isinstance(raw_content, Mapping):
            continue
        value = raw_content.get("value")
        if not isinstance(value, str) or not value.strip():
            continue
        content_type = str(raw_content.get("type") or "").lower()
        values.append((content_type, value))
    return values


def _iso_from_struct(value: Any) -> str | None:
    # feedparser normalizes dates into UTC `time.struct_time` values.
    if not isinstance(value, time.struct_time):
        return None
    try:
        return datetime(*value[:6], tzinfo=UTC).isoformat().replace("+00:00", "Z")
    except (TypeError, ValueError):
        return None


def _text(value: Any) -> str | None:
    if isinstance(value, str):
        return value
    return None
