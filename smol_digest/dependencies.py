from __future__ import annotations

from functools import lru_cache

from smol_digest.config import AppSettings, load_settings
from smol_digest.services.feed_cache import FeedCache, IssueStore
from smol_digest.services.feed_service import FeedClient, FeedService
from smol_digest.services.summary_service import SummaryService
from smol_digest.telemetry import TelemetryClient, build_telemetry_client


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    return load_settings()


@lru_cache(maxsize=1)
def get_telemetry() -> TelemetryClient:
    settings = get_settings()
    return build_telemetry_client(
        enabled=settings.telemetry_enabled,
        sink=settings.telemetry_sink,
    )


@lru_cache(maxsize=1)
def get_feed_service() -> FeedService:
    settings = get_settings()
    return FeedService(
        client=FeedClient(
            feed_url=settings.feed_url,
            timeout_seconds=settings.feed_http_timeout_seconds,
            user_agent=settings.feed_user_agent,
        ),
        telemetry=get_telemetry(),
    )


@lru_cache(maxsize=1)
def get_issue_store() -> IssueStore:
    settings = get_settings()
    cache = FeedCache(
        get_feed_service().load_issues,
        ttl_seconds=settings.feed_cache_ttl_seconds,
    )
    return IssueStore(cache, page_size=settings.page_size)


@lru_cache(maxsize=1)
def get_summary_service() -> SummaryService:
    settings = get_settings()
    return SummaryService.from_api_key(
        settings.openai_api_key,
        base_url=settings.openai_base_url,
        model=settings.summary_model,
        language=settings.summary_language,
        timeout_seconds=settings.summary_timeout_seconds,
        max_content_chars=settings.summary_max_content_chars,
        telemetry=get_telemetry(),
    )


def reset_cached_dependencies() -> None:
    get_summary_service.cache_clear()
    get_issue_store.cache_clear()
    get_feed_service.cache_clear()
    get_telemetry.cache_clear()
    get_settings.cache_clear()
