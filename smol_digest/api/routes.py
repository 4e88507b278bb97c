from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from structlog.contextvars import bind_contextvars, reset_contextvars

from smol_digest.dependencies import get_summary_service
from smol_digest.models.summary_contracts import (
    SummarizeErrorResponse,
    SummarizeRequest,
    SummarizeResponse,
)
from smol_digest.services.summary_service import SummaryError, SummaryService

router = APIRouter(prefix="/api")

_ERROR_RESPONSES: dict[int | str, dict[str, Any]] = {
    400: {"model": SummarizeErrorResponse, "description": "Invalid input."},
    500: {"model": SummarizeErrorResponse, "description": "Summary generation failed."},
    504: {"model": SummarizeErrorResponse, "description": "Upstream model timed out."},
}


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=SummarizeErrorResponse(error=message).model_dump(),
    )


@router.post(
    "/summarize",
    response_model=SummarizeResponse,
    responses=_ERROR_RESPONSES,
    tags=["summary"],
    operation_id="summarize_issue",
)
async def summarize_issue(
    request: Request,
    service: Annotated[SummaryService, Depends(get_summary_service)],
) -> JSONResponse:
    try:
        body = await request.json()
    except ValueError:
        return _error(400, "Invalid JSON body.")

    try:
        payload = SummarizeRequest.model_validate(body)
    except ValidationError:
        return _error(400, "Missing title, date, or content.")

    context_tokens = bind_contextvars(summary_title=(payload.title or "")[:80])
    try:
        summary = await service.summarize(
            title=payload.title,
            date=payload.date,
            content=payload.content,
        )
    except SummaryError as exc:
        return _error(exc.status_code, exc.message)
    finally:
        reset_contextvars(**context_tokens)

    return JSONResponse(content=SummarizeResponse(summary=summary).model_dump())
