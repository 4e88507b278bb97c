"""Lightweight operational events for feed loads, summaries and requests.

Events are flat mappings of scalar attributes. Anything that could carry
issue text, prompts or credentials is redacted before it reaches a sink.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from time import perf_counter
from typing import Any, Literal, Protocol
from urllib.parse import urlsplit, urlunsplit

import structlog

TELEMETRY_LOGGER_NAME = "smol_digest.telemetry"

AttributeValue = bool | int | float | str | None

REDACTED = "[redacted]"
MAX_ATTRIBUTE_CHARS = 160

# Substrings of attribute names whose values are never recorded.
_REDACTED_NAME_PARTS: tuple[str, ...] = (
    "api_key",
    "authorization",
    "body",
    "content",
    "cookie",
    "html",
    "prompt",
    "secret",
    "token",
)


class TelemetrySink(Protocol):
    def emit(self, *, event_name: str, attributes: Mapping[str, Any]) -> None:
        ...


class NoOpTelemetrySink:
    def emit(self, *, event_name: str, attributes: Mapping[str, Any]) -> None:
        del event_name, attributes


class StructuredLogTelemetrySink:
    """Writes each event as one record on the `smol_digest.telemetry` logger."""

    def __init__(self) -> None:
        self._logger = structlog.get_logger(TELEMETRY_LOGGER_NAME)

    def emit(self, *, event_name: str, attributes: Mapping[str, Any]) -> None:
        self._logger.info("telemetry", telemetry_event=event_name, **attributes)


_SINK_FACTORIES: dict[str, Callable[[], TelemetrySink]] = {
    "log": StructuredLogTelemetrySink,
}


@dataclass(frozen=True)
class TelemetryClient:
    enabled: bool
    sink: TelemetrySink

    @classmethod
    def disabled(cls) -> TelemetryClient:
        return cls(enabled=False, sink=NoOpTelemetrySink())

    def emit(self, event_name: str, **attributes: Any) -> None:
        if self.enabled:
            self.sink.emit(event_name=event_name, attributes=scrub_attributes(attributes))

    @contextmanager
    def span(self, operation: str, **attributes: Any) -> Iterator[dict[str, Any]]:
        """Time a block, emitting `<operation>.start` then `.finish` or `.error`.

        Values stored in the yielded dict are added to the closing event.
        """
        closing: dict[str, Any] = {}
        started_at = perf_counter()
        self.emit(f"{operation}.start", **attributes)
        try:
            yield closing
        except Exception as exc:
            closing["error_type"] = type(exc).__name__
            self.emit(
                f"{operation}.error",
                **attributes,
                **closing,
                duration_ms=_elapsed_ms(started_at),
            )
            raise
        self.emit(
            f"{operation}.finish",
            **attributes,
            **closing,
            duration_ms=_elapsed_ms(started_at),
        )


def build_telemetry_client(*, enabled: bool, sink: Literal["none", "log"]) -> TelemetryClient:
    if not enabled or sink == "none":
        return TelemetryClient.disabled()
    factory = _SINK_FACTORIES.get(sink)
    if factory is None:
        structlog.get_logger(TELEMETRY_LOGGER_NAME).warning(
            "unknown telemetry sink, telemetry disabled", sink=sink
        )
        return TelemetryClient.disabled()
    return TelemetryClient(enabled=True, sink=factory())


def scrub_attributes(attributes: Mapping[str, Any]) -> dict[str, AttributeValue]:
    scrubbed: dict[str, AttributeValue] = {}
    for raw_name, value in attributes.items():
        name = str(raw_name).strip().lower()
        if not name:
            continue
        if any(part in name for part in _REDACTED_NAME_PARTS):
            scrubbed[name] = REDACTED
        elif name.endswith("_url") and isinstance(value, str):
            scrubbed[name] = _clip(_public_url(value))
        else:
            scrubbed[name] = _scalar(value)
    return scrubbed


def _scalar(value: Any) -> AttributeValue:
    if isinstance(value, Enum):
        return _scalar(value.value)
    if value is None or isinstance(value, bool | int | float):
        return value
    if isinstance(value, datetime | date):
        return value.isoformat()
    if isinstance(value, str):
        return _clip(value)
    return type(value).__name__


def _public_url(url: str) -> str:
    """Drop credentials, query and fragment from a URL."""
    parts = urlsplit(url.strip())
    if not parts.netloc:
        return url
    host = parts.netloc.rpartition("@")[2]
    return urlunsplit((parts.scheme, host, parts.path, "", ""))


def _clip(text: str) -> str:
    compact = " ".join(text.split())
    if len(compact) > MAX_ATTRIBUTE_CHARS:
        return compact[:MAX_ATTRIBUTE_CHARS] + "..."
    return compact


def _elapsed_ms(started_at: float) -> int:
    return int((perf_counter() - started_at) * 1000)
