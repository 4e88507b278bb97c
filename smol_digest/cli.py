"""Command line entry point for smol-digest."""

import asyncio

import click
from rich.console import Console
from rich.markup import escape

from smol_digest.dependencies import get_issue_store, get_settings, get_summary_service
from smol_digest.services.dates import format_date_time
from smol_digest.services.feed_service import FeedUnavailableError
from smol_digest.services.pagination import group_issues_by_day
from smol_digest.services.summary_service import SummaryError
from smol_digest.services.text import html_to_text

console = Console()


@click.group()
@click.version_option(version="0.1.0")
def main():
    """smol-digest - browse and summarize the daily AI news feed."""
    pass


@main.command()
@click.option("--host", default="127.0.0.1", help="Host to bind to (use 0.0.0.0 for Docker)")
@click.option("--port", default=8000, help="Port to listen on")
def serve(host: str, port: int):
    """Run the web front end."""
    import uvicorn

    uvicorn.run("smol_digest.main:app", host=host, port=port)


@main.command()
@click.option("--page", default=1, type=click.IntRange(min=1), help="1-based archive page")
def issues(page: int):
    """List one archive page grouped by day."""
    store = get_issue_store()
    try:
        issue_page = store.paginated(page)
    except FeedUnavailableError as exc:
        console.print(f"[red]Feed unavailable:[/red] {escape(str(exc))}")
        raise SystemExit(1)

    if not issue_page.in_range:
        console.print(f"[yellow]Page {page} not found ({issue_page.total_pages} pages)[/yellow]")
        raise SystemExit(1)

    if not issue_page.issues:
        console.print("[yellow]No issues available yet[/yellow]")
        return

    for group in group_issues_by_day(issue_page.issues):
        console.print(f"\n[bold cyan]{group.day_label}[/bold cyan]")
        for item in group.items:
            console.print(f"  [bold]{escape(item.title)}[/bold]  [dim]/issues/{item.slug}[/dim]")
            console.print(f"    {escape(item.summary)}")

    console.print(f"\nPage {issue_page.page} of {issue_page.total_pages}")


@main.command()
@click.argument("slug")
@click.option("--summarize", is_flag=True, help="Also request an AI summary of the issue")
def issue(slug: str, summarize: bool):
    """Show a single issue by slug."""
    store = get_issue_store()
    try:
        found = store.find_by_slug(slug)
    except FeedUnavailableError as exc:
        console.print(f"[red]Feed unavailable:[/red] {escape(str(exc))}")
        raise SystemExit(1)

    if found is None:
        console.print(f"[yellow]Issue not found: {escape(slug)}[/yellow]")
        raise SystemExit(1)

    date_label = format_date_time(found.date)
    console.print(f"\n[bold cyan]{escape(found.title)}[/bold cyan]")
    console.print(f"[dim]{date_label}[/dim]")
    if found.link:
        console.print(f"[dim]{escape(found.link)}[/dim]")
    console.print()
    console.print(escape(html_to_text(found.content_html) or "No content available for this issue."))

    if not summarize:
        return

    service = get_summary_service()
    try:
        summary = asyncio.run(
            service.summarize(title=found.title, date=date_label, content=found.content_html)
        )
    except SummaryError as exc:
        console.print(f"\n[red]Summary failed ({exc.status_code}):[/red] {escape(exc.message)}")
        raise SystemExit(1)

    console.print(f"\n[bold]AI summary[/bold] [dim]({get_settings().summary_model})[/dim]")
    console.print(escape(summary))


if __name__ == "__main__":
    main()
