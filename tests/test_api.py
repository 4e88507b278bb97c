from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Any

import pytest
from fastapi.testclient import TestClient

import smol_digest.main as main_module
from smol_digest.models.issue import Issue
from smol_digest.services.feed_service import FeedUnavailableError
from smol_digest.services.summary_service import SummaryService
from smol_digest.telemetry import TelemetryClient
from tests.issue_factories import (
    FakeResponse,
    FakeSummaryClient,
    build_issues,
    make_issue_raw,
    numbered_issues,
    returning,
)

AppFactory = Callable[..., TestClient]


def _sample_issues() -> tuple[Issue, ...]:
    return build_issues(
        [
            make_issue_raw(
                title="Agents everywhere",
                day="2024-03-05",
                link="https://news.smol.ai/issues/24-03-05-agents",
                content='<h2>Top story</h2><p>Agents shipped.</p><script>alert("x")</script>',
            ),
            make_issue_raw(
                title="Quiet day",
                day="2024-03-04",
                link="https://news.smol.ai/issues/24-03-04-quiet",
                content="<script>tracker()</script>",
            ),
        ]
    )


def _failing_loader() -> tuple[Issue, ...]:
    raise FeedUnavailableError("Failed to fetch RSS (503)", status_code=503)


def test_health(app_factory: AppFactory) -> None:
    client = app_factory(loader=_sample_issues)
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_archive_lists_issues_grouped_by_day(app_factory: AppFactory) -> None:
    client = app_factory(loader=_sample_issues)

    response = client.get("/")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/html")
    body = response.text
    assert "March 5, 2024" in body
    assert "March 4, 2024" in body
    assert 'href="/issues/24-03-05-agents"' in body
    assert "Page 1 of 1" in body
    assert body.index("Agents everywhere") < body.index("Quiet day")


def test_archive_pages_and_out_of_range(app_factory: AppFactory) -> None:
    client = app_factory(loader=lambda: numbered_issues(45))

    first = client.get("/")
    third = client.get("/page/3")
    beyond = client.get("/page/4")

    assert first.status_code == 200
    assert 'href="/page/2"' in first.text
    assert third.status_code == 200
    assert third.text.count('class="issue-title"') == 5
    assert 'href="/page/2"' in third.text
    assert beyond.status_code == 404
    assert "Issue not found" in beyond.text


def test_second_page_links_back_to_root(app_factory: AppFactory) -> None:
    client = app_factory(loader=lambda: numbered_issues(25))

    response = client.get("/page/2")

    assert response.status_code == 200
    assert '<a class="pill" href="/">Previous</a>' in response.text


def test_invalid_page_numbers_are_not_found(app_factory: AppFactory) -> None:
    client = app_factory(loader=_sample_issues)

    for path in ("/page/0", "/page/-1", "/page/abc", "/page/1.5", "/page/%C2%B2"):
        response = client.get(path)
        assert response.status_code == 404, path


def test_empty_feed_renders_placeholder(app_factory: AppFactory) -> None:
    client = app_factory(loader=lambda: ())

    response = client.get("/")

    assert response.status_code == 200
    assert "No issues available yet" in response.text


def test_feed_failure_renders_unavailable_archive(app_factory: AppFactory) -> None:
    client = app_factory(loader=_failing_loader)

    response = client.get("/")

    assert response.status_code == 503
    assert "Feed unavailable" in response.text
    assert "Failed to fetch RSS (503)" in response.text


def test_issue_page_renders_sanitized_content(app_factory: AppFactory) -> None:
    client = app_factory(loader=_sample_issues)

    response = client.get("/issues/24-03-05-agents")

    assert response.status_code == 200
    body = response.text
    assert "<h2>Top story</h2>" in body
    assert 'alert("x")' not in body
    assert "Tuesday, March 5, 2024 at 8:00 AM" in body
    assert 'href="https://news.smol.ai/issues/24-03-05-agents"' in body


def test_issue_page_resolves_legacy_slug(app_factory: AppFactory) -> None:
    client = app_factory(loader=_sample_issues)

    response = client.get("/issues/2024-03-05-agents")

    assert response.status_code == 200
    assert "Agents everywhere" in response.text


def test_issue_page_without_content_shows_placeholder(app_factory: AppFactory) -> None:
    client = app_factory(loader=_sample_issues)

    response = client.get("/issues/24-03-04-quiet")

    assert response.status_code == 200
    assert "No content available for this issue." in response.text


def test_unknown_issue_is_not_found(app_factory: AppFactory) -> None:
    client = app_factory(loader=_sample_issues)

    response = client.get("/issues/does-not-exist")

    assert response.status_code == 404
    assert "Issue not found" in response.text


def test_issue_page_feed_failure_is_service_unavailable(app_factory: AppFactory) -> None:
    client = app_factory(loader=_failing_loader)

    response = client.get("/issues/24-03-05-agents")

    assert response.status_code == 503
    assert "Feed unavailable" in response.text


def test_request_id_is_echoed(app_factory: AppFactory) -> None:
    client = app_factory(loader=_sample_issues)

    response = client.get("/health", headers={"X-Request-ID": "req-123"})

    assert response.headers["X-Request-ID"] == "req-123"


def test_requests_are_reported_through_telemetry(
    app_factory: AppFactory, monkeypatch: pytest.MonkeyPatch
) -> None:
    events: list[tuple[str, dict[str, Any]]] = []

    class _CaptureSink:
        def emit(self, *, event_name: str, attributes: Any) -> None:
            events.append((event_name, dict(attributes)))

    telemetry = TelemetryClient(enabled=True, sink=_CaptureSink())
    monkeypatch.setattr(main_module, "get_telemetry", lambda: telemetry)
    client = app_factory(loader=_sample_issues)

    client.get("/page/9", headers={"X-Request-ID": "req-9"})

    assert [name for name, _ in events] == ["http.request.start", "http.request.finish"]
    _, finish = events[1]
    assert finish["request_id"] == "req-9"
    assert finish["path"] == "/page/9"
    assert finish["status_code"] == 404


def test_summarize_success(app_factory: AppFactory) -> None:
    summary_client = FakeSummaryClient(returning("- key point"))
    service = SummaryService(client=summary_client, model="test-model")  # type: ignore[arg-type]
    client = app_factory(loader=_sample_issues, summary_service=service)

    response = client.post(
        "/api/summarize",
        json={"title": "Agents", "date": "Today", "content": "<p>Agents shipped.</p>"},
    )

    assert response.status_code == 200
    assert response.json() == {"summary": "- key point"}
    assert len(summary_client.responses.calls) == 1


def test_summarize_rejects_missing_fields(app_factory: AppFactory) -> None:
    summary_client = FakeSummaryClient(returning("unused"))
    service = SummaryService(client=summary_client)  # type: ignore[arg-type]
    client = app_factory(loader=_sample_issues, summary_service=service)

    missing = client.post("/api/summarize", json={"title": "Agents", "date": "Today"})
    markup_only = client.post(
        "/api/summarize",
        json={"title": "Agents", "date": "Today", "content": "<p></p>"},
    )
    wrong_type = client.post(
        "/api/summarize",
        json={"title": ["Agents"], "date": "Today", "content": "text"},
    )

    assert missing.status_code == 400
    assert missing.json() == {"error": "Missing title, date, or content."}
    assert markup_only.status_code == 400
    assert markup_only.json() == {"error": "Content is empty after stripping HTML."}
    assert wrong_type.status_code == 400
    assert summary_client.responses.calls == []


def test_summarize_rejects_invalid_json(app_factory: AppFactory) -> None:
    client = app_factory(loader=_sample_issues)

    response = client.post(
        "/api/summarize",
        content=b"{not json",
        headers={"Content-Type": "application/json"},
    )

    assert response.status_code == 400
    assert response.json() == {"error": "Invalid JSON body."}


def test_summarize_timeout_returns_gateway_timeout(app_factory: AppFactory) -> None:
    async def _never_finishes(_: dict[str, Any]) -> FakeResponse:
        await asyncio.sleep(30)
        return FakeResponse("too late")

    service = SummaryService(
        client=FakeSummaryClient(_never_finishes),  # type: ignore[arg-type]
        timeout_seconds=0.05,
    )
    client = app_factory(loader=_sample_issues, summary_service=service)

    response = client.post(
        "/api/summarize",
        json={"title": "Agents", "date": "Today", "content": "<p>Agents shipped.</p>"},
    )

    assert response.status_code == 504
    assert response.json() == {"error": "Summary request timed out. Please try again."}


def test_summarize_without_api_key_is_server_error(app_factory: AppFactory) -> None:
    client = app_factory(loader=_sample_issues)

    response = client.post(
        "/api/summarize",
        json={"title": "Agents", "date": "Today", "content": "<p>Agents shipped.</p>"},
    )

    assert response.status_code == 500
    assert response.json() == {"error": "Summarization is not configured."}


def test_unknown_api_route_returns_json_not_found(app_factory: AppFactory) -> None:
    client = app_factory(loader=_sample_issues)

    response = client.get("/api/unknown")

    assert response.status_code == 404
    assert response.json() == {"detail": "Not Found"}


def test_issue_page_hides_non_http_source_links(app_factory: AppFactory) -> None:
    def _loader() -> tuple[Issue, ...]:
        return build_issues(
            [
                make_issue_raw(
                    title="Scripted link",
                    day="2024-03-05",
                    link="javascript:alert(document.cookie)",
                ),
            ]
        )

    client = app_factory(loader=_loader)

    response = client.get("/issues/2024-03-05")

    assert response.status_code == 200
    assert "javascript:" not in response.text
    assert "View original on smol.ai" not in response.text
