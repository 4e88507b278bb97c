from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class SummarizeRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    title: str | None = None
    date: str | None = None
    content: str | None = None


class SummarizeResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    summary: str


class SummarizeErrorResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    error: str
