from __future__ import annotations

import logging
from collections.abc import Iterable
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

import feedparser

from smol_digest.models.issue import Issue, RawFeedItem
from smol_digest.services.feed_normalizer import normalize_item, raw_item_from_entry
from smol_digest.services.pagination import sort_issues
from smol_digest.services.slugs import assign_unique_slugs
from smol_digest.telemetry import TelemetryClient

LOGGER = logging.getLogger("smol_digest.feed")


class FeedUnavailableError(RuntimeError):
    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class FeedClient:
    def __init__(
        self,
        *,
        feed_url: str,
        timeout_seconds: float = 15.0,
        user_agent: str = "smol-digest/0.1",
    ) -> None:
        self._feed_url = feed_url
        self._timeout_seconds = max(1.0, timeout_seconds)
        self._user_agent = user_agent.strip() or "smol-digest/0.1"

    @property
    def feed_url(self) -> str:
        return self._feed_url

    def fetch_xml(self) -> bytes:
        """Raw feed bytes; feedparser sniffs the encoding from the XML prolog."""
        request = Request(
            self._feed_url,
            headers={
                "Accept": "application/rss+xml, application/xml;q=0.9, */*;q=0.8",
                "User-Agent": self._user_agent,
            },
            method="GET",
        )
        try:
            with urlopen(request, timeout=self._timeout_seconds) as response:
                status = getattr(response, "status", 200)
                if status is not None and not 200 <= int(status) < 300:
                    raise FeedUnavailableError(
                        f"Failed to fetch RSS ({status})", status_code=int(status)
                    )
                return response.read()
        except HTTPError as exc:
            status_code = int(exc.code)
            raise FeedUnavailableError(
                f"Failed to fetch RSS ({status_code})", status_code=status_code
            ) from exc
        except (URLError, TimeoutError, OSError) as exc:
            raise FeedUnavailableError(
                f"Failed to fetch RSS (network error: {type(exc).__name__})"
            ) from exc


def parse_feed_items(document: bytes | str) -> list[RawFeedItem]:
    parsed = feedparser.parse(document)
    entries = list(parsed.get("entries") or [])
    if parsed.get("bozo") and not entries and not parsed.get("feed"):
        exception = parsed.get("bozo_exception")
        raise FeedUnavailableError(f"Failed to parse RSS: {exception}")
    if parsed.get("bozo"):
        LOGGER.warning(
            "feed parsed with recoverable errors error=%s", parsed.get("bozo_exception")
        )
    return [raw_item_from_entry(entry) for entry in entries]


def build_issue_collection(raw_items: Iterable[RawFeedItem]) -> tuple[Issue, ...]:
    """Normalize, sort newest-first, then assign slugs in that final order."""
    normalized = [normalize_item(raw) for raw in raw_items]
    return assign_unique_slugs(sort_issues(normalized))


class FeedService:
    def __init__(
        self,
        *,
        client: FeedClient,
        telemetry: TelemetryClient | None = None,
    ) -> None:
        self._client = client
        self._telemetry = telemetry if telemetry is not None else TelemetryClient.disabled()

    def load_issues(self) -> tuple[Issue, ...]:
        with self._telemetry.span("feed.fetch", feed_url=self._client.feed_url) as span:
            document = self._client.fetch_xml()
            issues = build_issue_collection(parse_feed_items(document))
            span["issue_count"] = len(issues)
        LOGGER.info("feed loaded issues=%s url=%s", len(issues), self._client.feed_url)
        return issues
