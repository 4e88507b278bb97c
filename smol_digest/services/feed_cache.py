from __future__ import annotations

import logging
from collections.abc import Callable
from concurrent.futures import Future
from dataclasses import dataclass
from threading import Lock
from time import monotonic

from smol_digest.models.issue import Issue, IssuePage
from smol_digest.services.pagination import PAGE_SIZE, paginate
from smol_digest.services.slugs import find_issue_by_slug

LOGGER = logging.getLogger("smol_digest.feed_cache")

IssueLoader = Callable[[], tuple[Issue, ...]]


@dataclass(frozen=True)
class CachedIssues:
    data: tuple[Issue, ...]
    fetched_at: float


class FeedCache:
    """Time-bounded memo of the fetch/normalize pipeline with single-flight refresh.

    While a refresh is running, every other caller waits on the same future and
    receives the same collection or the same exception. A failed refresh is not
    cached, so the next caller after it triggers a new fetch.
    """

    def __init__(
        self,
        loader: IssueLoader,
        *,
        ttl_seconds: float = 600.0,
        clock: Callable[[], float] = monotonic,
    ) -> None:
        self._loader = loader
        self._ttl_seconds = ttl_seconds
        self._clock = clock
        self._lock = Lock()
        self._entry: CachedIssues | None = None
        self._in_flight: Future[tuple[Issue, ...]] | None = None

    @property
    def entry(self) -> CachedIssues | None:
        return self._entry

    def get_or_refresh(self, now: float | None = None) -> tuple[Issue, ...]:
        current = self._clock() if now is None else now
        with self._lock:
            entry = self._entry
            if entry is not None and current - entry.fetched_at < self._ttl_seconds:
                return entry.data
            pending = self._in_flight
            owner = pending is None
            if pending is None:
                pending = Future()
                self._in_flight = pending

        if not owner:
            return pending.result()

        try:
            data = self._loader()
        except BaseException as exc:
            with self._lock:
                self._in_flight = None
            LOGGER.warning("feed refresh failed error=%s", exc)
            pending.set_exception(exc)
            raise

        fetched_at = self._clock() if now is None else now
        with self._lock:
            self._entry = CachedIssues(data=data, fetched_at=fetched_at)
            self._in_flight = None
        pending.set_result(data)
        return data

    def invalidate(self) -> None:
        with self._lock:
            self._entry = None


class IssueStore:
    def __init__(self, cache: FeedCache, *, page_size: int = PAGE_SIZE) -> None:
        self._cache = cache
        self._page_size = page_size

    @property
    def page_size(self) -> int:
        return self._page_size

    def all_issues(self) -> tuple[Issue, ...]:
        return self._cache.get_or_refresh()

    def paginated(self, page: int) -> IssuePage:
        return paginate(self.all_issues(), page, self._page_size)

    def find_by_slug(self, slug: str) -> Issue | None:
        return find_issue_by_slug(self.all_issues(), slug)
