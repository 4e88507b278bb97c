from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

UNKNOWN_DAY_KEY = "unknown"


@dataclass(frozen=True)
class RawFeedItem:
    """One feed entry as delivered by the parser, every field optional."""

    title: str | None = None
    link: str | None = None
    pub_date: str | None = None
    iso_date: str | None = None
    content: str | None = None
    content_snippet: str | None = None
    guid: str | None = None
    content_encoded: str | None = None
    description: str | None = None


@dataclass(frozen=True)
class Issue:
    id: str
    title: str
    link: str | None
    pub_date: str | None
    iso_date: str | None
    date: datetime | None
    day_key: str
    slug: str
    summary: str
    content_html: str


@dataclass(frozen=True)
class IssueGroup:
    day_key: str
    day_label: str
    items: tuple[Issue, ...]


@dataclass(frozen=True)
class IssuePage:
    issues: tuple[Issue, ...]
    page: int
    total_pages: int
    page_size: int
    total_items: int

    @property
    def has_previous(self) -> bool:
        return self.page > 1

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages

    @property
    def previous_page(self) -> int | None:
        return self.page - 1 if self.has_previous else None

    @property
    def next_page(self) -> int | None:
        return self.page + 1 if self.has_next else None

    @property
    def in_range(self) -> bool:
        return 1 <= self.page <= self.total_pages
