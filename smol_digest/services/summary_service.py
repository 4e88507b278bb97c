from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable
from dataclasses import dataclass
from typing import Any, Protocol, TypeVar

from openai import APIError, APIStatusError, APITimeoutError, AsyncOpenAI

from smol_digest.services.text import html_to_text
from smol_digest.telemetry import TelemetryClient

LOGGER = logging.getLogger("smol_digest.summary")

MAX_CONTENT_LENGTH = 25_000
REQUEST_TIMEOUT_SECONDS = 20.0
DEFAULT_MODEL = "gpt-4.1-mini"

T = TypeVar("T")


class SummaryError(Exception):
    default_status_code = 500

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code if status_code is not None else self.default_status_code


class SummaryValidationError(SummaryError):
    default_status_code = 400


class SummaryTimeoutError(SummaryError):
    default_status_code = 504


class SummaryGenerationError(SummaryError):
    default_status_code = 500


class _ResponsesApi(Protocol):
    async def create(self, **kwargs: Any) -> Any:
        ...


class SummaryClient(Protocol):
    @property
    def responses(self) -> _ResponsesApi:
        ...


@dataclass(frozen=True)
class SummaryInput:
    title: str
    date: str
    text: str


def prepare_summary_input(
    *,
    title: str | None,
    date: str | None,
    content: str | None,
    max_content_chars: int = MAX_CONTENT_LENGTH,
) -> SummaryInput:
    """Validate and trim a summary request; raises before any upstream work."""
    clean_title = (title or "").strip()
    clean_date = (date or "").strip()
    clean_content = (content or "").strip()
    if not clean_title or not clean_date or not clean_content:
        raise SummaryValidationError("Missing title, date, or content.")

    text = html_to_text(clean_content)
    if not text:
        raise SummaryValidationError("Content is empty after stripping HTML.")

    return SummaryInput(title=clean_title, date=clean_date, text=text[:max_content_chars])


async def run_with_deadline(operation: Awaitable[T], timeout_seconds: float) -> T:
    """Await `operation`, cancelling it and raising TimeoutError once the deadline passes."""
    return await asyncio.wait_for(operation, timeout=timeout_seconds)


def build_system_prompt(language: str) -> str:
    return (
        "You are an AI assistant that summarizes daily AI news issues for technical readers. "
        f"Respond in {language}. Format: 3-6 bullet points of key information, followed by "
        "one short line that states the overall conclusion. Keep it concise."
    )


def build_user_prompt(summary_input: SummaryInput) -> str:
    return (
        f"Title: {summary_input.title}\n"
        f"Date: {summary_input.date}\n"
        f"Content:\n{summary_input.text}"
    )


class SummaryService:
    def __init__(
        self,
        *,
        client: SummaryClient | None,
        model: str = DEFAULT_MODEL,
        language: str = "Chinese",
        timeout_seconds: float = REQUEST_TIMEOUT_SECONDS,
        max_content_chars: int = MAX_CONTENT_LENGTH,
        telemetry: TelemetryClient | None = None,
    ) -> None:
        self._client = client
        self._model = model
        self._language = language
        self._timeout_seconds = timeout_seconds
        self._max_content_chars = max_content_chars
        self._telemetry = telemetry if telemetry is not None else TelemetryClient.disabled()

    @classmethod
    def from_api_key(
        cls,
        api_key: str | None,
        *,
        base_url: str | None = None,
        **kwargs: Any,
    ) -> SummaryService:
        client: SummaryClient | None = None
        if api_key is not None:
            # Exactly one upstream call per request: the SDK's own retries stay off.
            client = AsyncOpenAI(api_key=api_key, base_url=base_url, max_retries=0)
        return cls(client=client, **kwargs)

    @property
    def configured(self) -> bool:
        return self._client is not None

    async def summarize(
        self,
        *,
        title: str | None,
        date: str | None,
        content: str | None,
    ) -> str:
        summary_input = prepare_summary_input(
            title=title,
            date=date,
            content=content,
            max_content_chars=self._max_content_chars,
        )
        if self._client is None:
            raise SummaryGenerationError("Summarization is not configured.")

        with self._telemetry.span(
            "summary.generate",
            model=self._model,
            text_chars=len(summary_input.text),
        ) as span:
            summary = await self._generate(self._client, summary_input)
            span["summary_chars"] = len(summary)
        return summary

    async def _generate(self, client: SummaryClient, summary_input: SummaryInput) -> str:
        request = client.responses.create(
            model=self._model,
            input=[
                {"role": "system", "content": build_system_prompt(self._language)},
                {"role": "user", "content": build_user_prompt(summary_input)},
            ],
        )
        try:
            response = await run_with_deadline(request, self._timeout_seconds)
        except (TimeoutError, APITimeoutError) as exc:
            LOGGER.warning("summary request timed out timeout_seconds=%s", self._timeout_seconds)
            raise SummaryTimeoutError("Summary request timed out. Please try again.") from exc
        except APIStatusError as exc:
            raise SummaryGenerationError(
                f"OpenAI error: {exc.message}", status_code=exc.status_code
            ) from exc
        except APIError as exc:
            raise SummaryGenerationError(f"OpenAI error: {exc.message}") from exc
        except Exception as exc:
            LOGGER.exception("summary request failed")
            raise SummaryGenerationError(str(exc) or "Failed to generate summary.") from exc

        summary = getattr(response, "output_text", None)
        if not isinstance(summary, str) or not summary.strip():
            raise SummaryGenerationError("Empty summary returned.")
        return summary.strip()
