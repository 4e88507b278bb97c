"""Logging setup for the web app and the CLI.

Application records go to stdout and to a JSON lines file under `log_dir`.
Telemetry events get their own JSON file so they can be shipped or tailed
separately. Records emitted while a request is in flight carry the request
id bound by the HTTP middleware.
"""

from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass
from pathlib import Path
import structlog
from structlog.typing import EventDict, Processor

from smol_digest.config import AppSettings

APP_LOGGER_NAME = "smol_digest"
TELEMETRY_LOGGER_NAME = "smol_digest.telemetry"
LOG_FILE_NAME = "smol-digest.log"
TELEMETRY_LOG_FILE_NAME = "smol-digest-telemetry.log"

# Server and SDK loggers whose records should land next to ours.
SERVER_LOGGER_NAMES: tuple[str, ...] = ("uvicorn", "uvicorn.error")
# Chatty transport loggers: one line per HTTP call to the feed or OpenAI.
QUIET_LOGGER_NAMES: tuple[str, ...] = ("httpx", "httpcore", "openai", "uvicorn.access")

_REQUEST_CONTEXT_KEYS: dict[str, str] = {
    "http_request_id": "request_id",
    "http_method": "method",
    "http_path": "path",
}


@dataclass(frozen=True)
class LogTargets:
    app_log: Path
    telemetry_log: Path

    @classmethod
    def in_directory(cls, log_dir: Path) -> LogTargets:
        return cls(
            app_log=log_dir / LOG_FILE_NAME,
            telemetry_log=log_dir / TELEMETRY_LOG_FILE_NAME,
        )


def configure_application_logging(settings: AppSettings) -> Path:
    """Install handlers for the app, telemetry and server loggers.

    Safe to call more than once: previously installed handlers are closed and
    replaced. Returns the application log file path.
    """
    settings.log_dir.mkdir(parents=True, exist_ok=True)
    targets = LogTargets.in_directory(settings.log_dir)
    console_level = resolve_log_level(settings.log_level)

    _configure_structlog()

    app_file_handler = _file_handler(targets.app_log, _build_app_file_formatter())
    console_handler = logging.StreamHandler(stream=sys.stdout)
    console_handler.setLevel(console_level)
    console_handler.setFormatter(
        _build_console_formatter(enable_colors=console_colors_enabled(sys.stdout))
    )

    _install(
        logging.getLogger(APP_LOGGER_NAME),
        level=logging.DEBUG,
        handlers=(console_handler, app_file_handler),
    )
    _install(
        logging.getLogger(TELEMETRY_LOGGER_NAME),
        level=logging.INFO,
        handlers=(_file_handler(targets.telemetry_log, _build_telemetry_file_formatter()),),
    )
    for name in SERVER_LOGGER_NAMES:
        _install(
            logging.getLogger(name),
            level=console_level,
            handlers=(console_handler, app_file_handler),
            close_previous=False,
        )
    for name in QUIET_LOGGER_NAMES:
        logging.getLogger(name).setLevel(max(console_level, logging.WARNING))

    logging.getLogger(APP_LOGGER_NAME).info(
        "logging configured console_level=%s app_log=%s telemetry_log=%s",
        logging.getLevelName(console_level),
        targets.app_log,
        targets.telemetry_log,
    )
    return targets.app_log


def resolve_log_level(raw_level: str) -> int:
    return logging.getLevelNamesMapping().get(raw_level.strip().upper(), logging.INFO)


def console_colors_enabled(stream: object) -> bool:
    """Colour only on a TTY, and never when `NO_COLOR` is set."""
    if os.environ.get("NO_COLOR"):
        return False
    isatty = getattr(stream, "isatty", None)
    if not callable(isatty):
        return False
    try:
        return bool(isatty())
    except (OSError, ValueError):
        # Closed or detached streams.
        return False


def _install(
    logger: logging.Logger,
    *,
    level: int,
    handlers: tuple[logging.Handler, ...],
    close_previous: bool = True,
) -> None:
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        if close_previous:
            handler.close()
    logger.setLevel(level)
    logger.propagate = False
    for handler in handlers:
        logger.addHandler(handler)


def _file_handler(path: Path, formatter: logging.Formatter) -> logging.FileHandler:
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(formatter)
    return handler


def _configure_structlog() -> None:
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def _pre_chain() -> list[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True, key="timestamp"),
    ]


def _build_console_formatter(*, enable_colors: bool) -> structlog.stdlib.ProcessorFormatter:
    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=_pre_chain(),
        processors=[
            _flatten_request_context,
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.dev.ConsoleRenderer(colors=enable_colors),
        ],
    )


def _build_app_file_formatter() -> structlog.stdlib.ProcessorFormatter:
    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=_pre_chain(),
        processors=[
            _flatten_request_context,
            _add_source_location,
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(sort_keys=True),
        ],
    )


def _build_telemetry_file_formatter() -> structlog.stdlib.ProcessorFormatter:
    # Telemetry records always originate in the sink, so source location is noise.
    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=_pre_chain(),
        processors=[
            _flatten_request_context,
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.JSONRenderer(sort_keys=True),
        ],
    )


def _flatten_request_context(
    _logger: logging.Logger,
    _method_name: str,
    event_dict: EventDict,
) -> EventDict:
    for bound_key, output_key in _REQUEST_CONTEXT_KEYS.items():
        if bound_key in event_dict:
            event_dict.setdefault(output_key, event_dict.pop(bound_key))
    return event_dict


def _add_source_location(
    _logger: logging.Logger,
    _method_name: str,
    event_dict: EventDict,
) -> EventDict:
    record = event_dict.get("_record")
    if isinstance(record, logging.LogRecord):
        event_dict["pathname"] = record.pathname
        event_dict["lineno"] = record.lineno
        event_dict["func_name"] = record.funcName
    return event_dict
