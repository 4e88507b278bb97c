from __future__ import annotations

import logging
from pathlib import Path
from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import HTMLResponse, Response
from fastapi.templating import Jinja2Templates

from smol_digest.dependencies import get_issue_store
from smol_digest.services.dates import format_date_time, format_date_time_short
from smol_digest.services.feed_cache import IssueStore
from smol_digest.services.feed_service import FeedUnavailableError
from smol_digest.services.pagination import group_issues_by_day
from smol_digest.services.text import external_link, sanitize_issue_html

LOGGER = logging.getLogger("smol_digest.pages")

TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "templates"
EMPTY_CONTENT_HTML = "<p>No content available for this issue.</p>"

templates = Jinja2Templates(directory=str(TEMPLATES_DIR))

router = APIRouter(default_response_class=HTMLResponse)


def _render(
    request: Request,
    template_name: str,
    context: dict[str, Any],
    *,
    status_code: int = 200,
) -> Response:
    return templates.TemplateResponse(
        request,
        template_name,
        context,
        status_code=status_code,
    )


def render_not_found(request: Request) -> Response:
    return _render(request, "not_found.html", {}, status_code=404)


def _parse_page_number(raw_page: str) -> int | None:
    value = raw_page.strip()
    if not (value.isascii() and value.isdigit()):
        return None
    page = int(value)
    return page if page >= 1 else None


def _render_archive(request: Request, store: IssueStore, page_number: int) -> Response:
    try:
        issue_page = store.paginated(page_number)
    except FeedUnavailableError as exc:
        LOGGER.warning("archive rendered without feed page=%s error=%s", page_number, exc)
        return _render(
            request,
            "archive.html",
            {
                "page": None,
                "page_number": page_number,
                "page_size": store.page_size,
                "groups": [],
                "last_updated": format_date_time_short(None),
                "error_message": str(exc) or "Unable to load the RSS feed right now.",
            },
            status_code=503,
        )

    if not issue_page.in_range:
        raise HTTPException(status_code=404)

    newest = issue_page.issues[0].date if issue_page.issues else None
    return _render(
        request,
        "archive.html",
        {
            "page": issue_page,
            "page_number": page_number,
            "page_size": issue_page.page_size,
            "groups": group_issues_by_day(issue_page.issues),
            "last_updated": format_date_time_short(newest),
            "error_message": "",
        },
    )


@router.get("/", include_in_schema=False)
def archive_index(
    request: Request,
    store: Annotated[IssueStore, Depends(get_issue_store)],
) -> Response:
    return _render_archive(request, store, 1)


@router.get("/page/{page}", include_in_schema=False)
def archive_page(
    request: Request,
    page: str,
    store: Annotated[IssueStore, Depends(get_issue_store)],
) -> Response:
    page_number = _parse_page_number(page)
    if page_number is None:
        raise HTTPException(status_code=404)
    return _render_archive(request, store, page_number)


@router.get("/issues/{slug}", include_in_schema=False)
def issue_detail(
    request: Request,
    slug: str,
    store: Annotated[IssueStore, Depends(get_issue_store)],
) -> Response:
    try:
        issue = store.find_by_slug(slug)
    except FeedUnavailableError as exc:
        LOGGER.warning("issue page rendered without feed slug=%s error=%s", slug, exc)
        return _render(
            request,
            "feed_unavailable.html",
            {"error_message": str(exc) or "Unable to load the RSS feed right now."},
            status_code=503,
        )

    if issue is None:
        raise HTTPException(status_code=404)

    content = sanitize_issue_html(issue.content_html) if issue.content_html else ""
    return _render(
        request,
        "issue.html",
        {
            "issue": issue,
            "source_link": external_link(issue.link),
            "date_label": format_date_time(issue.date),
            "content_html": content or EMPTY_CONTENT_HTML,
            "content_for_summary": issue.content_html or "",
        },
    )
