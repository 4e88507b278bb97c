from __future__ import annotations

from collections.abc import Callable, Iterator
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from smol_digest.dependencies import (
    get_issue_store,
    get_summary_service,
    reset_cached_dependencies,
)
from smol_digest.main import create_app
from smol_digest.models.issue import Issue
from smol_digest.services.feed_cache import FeedCache, IssueStore
from smol_digest.services.summary_service import SummaryService


@pytest.fixture(autouse=True)
def _runtime_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:  # pyright: ignore[reportUnusedFunction]
    monkeypatch.setenv("SMOL_DIGEST_DATA_DIR", str(tmp_path / "runtime-data"))
    monkeypatch.setenv("SMOL_DIGEST_TELEMETRY_SINK", "none")
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    monkeypatch.delenv("SMOL_DIGEST_OPENAI_API_KEY", raising=False)
    reset_cached_dependencies()


@pytest.fixture
def app_factory() -> Iterator[Callable[..., TestClient]]:
    clients: list[TestClient] = []

    def _build(
        *,
        loader: Callable[[], tuple[Issue, ...]],
        summary_service: SummaryService | None = None,
        page_size: int = 20,
    ) -> TestClient:
        app = create_app()
        store = IssueStore(FeedCache(loader, ttl_seconds=600), page_size=page_size)
        app.dependency_overrides[get_issue_store] = lambda: store
        if summary_service is not None:
            app.dependency_overrides[get_summary_service] = lambda: summary_service
        test_client = TestClient(app)
        test_client.__enter__()
        clients.append(test_client)
        return test_client

    yield _build

    for test_client in clients:
        test_client.__exit__(None, None, None)
    reset_cached_dependencies()
