from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

from pydantic import AliasChoices, Field, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_DATA_DIR = ".smol-digest"
DEFAULT_FEED_URL = "https://news.smol.ai/rss.xml"
_DATA_DIR_RELATIVE_DEFAULTS: tuple[tuple[str, Path], ...] = (("log_dir", Path("logs")),)
_PATH_FIELDS: tuple[str, ...] = (
    "data_dir",
    *(field_name for field_name, _ in _DATA_DIR_RELATIVE_DEFAULTS),
)
_BOOLEAN_COERCION_FIELDS: tuple[str, ...] = ("telemetry_enabled",)


def _default_in_data_dir(relative_path: Path) -> Path:
    return Path(DEFAULT_DATA_DIR) / relative_path


def _data_dir_default_note(relative_path: Path) -> str:
    return f"Defaults to `${{SMOL_DIGEST_DATA_DIR}}/{relative_path}` when not explicitly set."


def _resolve_path(value: str | Path) -> Path:
    return Path(value).expanduser().resolve()


def _parse_bool_with_default(value: Any, *, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        if value == 1:
            return True
        if value == 0:
            return False
        return default
    if not isinstance(value, str):
        return default

    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    return default


def _normalize_optional_text(value: Any) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        return None
    normalized = value.strip()
    if normalized:
        return normalized
    return None


class AppSettings(BaseSettings):
    """
    Canonical runtime configuration.

    Every option is read from `SMOL_DIGEST_*` environment variables (or `.env`).
    The OpenAI key additionally honours the SDK's conventional `OPENAI_API_KEY`.
    """

    model_config = SettingsConfigDict(
        env_prefix="SMOL_DIGEST_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
        populate_by_name=True,
    )

    # Runtime paths.
    data_dir: Path = Field(
        default=Path(DEFAULT_DATA_DIR),
        description="Root runtime directory for logs and other local state.",
    )
    log_dir: Path = Field(
        default=_default_in_data_dir(Path("logs")),
        description=f"Directory for application log files. {_data_dir_default_note(Path('logs'))}",
    )
    log_level: str = Field(
        default="INFO",
        description="Console log level (stdout).",
    )

    # Upstream feed.
    feed_url: str = Field(
        default=DEFAULT_FEED_URL,
        description="RSS feed rendered by the archive and issue pages.",
    )
    feed_cache_ttl_seconds: int = Field(
        default=600,
        description="Revalidation window for the fetched issue collection.",
    )
    feed_http_timeout_seconds: float = Field(
        default=15.0,
        description="HTTP timeout for the feed fetch.",
    )
    feed_user_agent: str = Field(
        default="smol-digest/0.1 (+https://news.smol.ai)",
        description="User-Agent header sent with the feed fetch.",
    )
    page_size: int = Field(
        default=20,
        description="Number of issues listed per archive page.",
    )

    # Summarization proxy.
    openai_api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("SMOL_DIGEST_OPENAI_API_KEY", "OPENAI_API_KEY"),
        description="API key for the summarization endpoint. Summaries are disabled when unset.",
    )
    openai_base_url: str | None = Field(
        default=None,
        description="Optional OpenAI-compatible base URL.",
    )
    summary_model: str = Field(
        default="gpt-4.1-mini",
        description="Model used to generate issue summaries.",
    )
    summary_language: str = Field(
        default="Chinese",
        description="Language the generated summary is written in.",
    )
    summary_timeout_seconds: float = Field(
        default=20.0,
        description="Deadline for a single summarization call.",
    )
    summary_max_content_chars: int = Field(
        default=25_000,
        description="Plain-text content is truncated to this many characters before forwarding.",
    )

    # Telemetry.
    telemetry_enabled: bool = Field(
        default=True,
        description="Enable lightweight internal telemetry events.",
    )
    telemetry_sink: Literal["none", "log"] = Field(
        default="log",
        description=(
            "Telemetry sink backend. `log` emits structured telemetry locally; "
            "`none` disables sink output."
        ),
    )

    @field_validator("telemetry_sink", mode="before")
    @classmethod
    def _normalize_telemetry_sink(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("SMOL_DIGEST_TELEMETRY_SINK must be a string.")
        normalized = value.strip().lower()
        if normalized in {"none", "log"}:
            return normalized
        raise ValueError("SMOL_DIGEST_TELEMETRY_SINK must be set to: none, log.")

    @field_validator("feed_url", mode="before")
    @classmethod
    def _normalize_feed_url(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("SMOL_DIGEST_FEED_URL must be a string.")
        normalized = value.strip()
        if not normalized.startswith(("http://", "https://")):
            raise ValueError("SMOL_DIGEST_FEED_URL must be an absolute http/https URL.")
        return normalized

    @field_validator("openai_base_url", mode="before")
    @classmethod
    def _normalize_openai_base_url(cls, value: Any) -> str | None:
        normalized = _normalize_optional_text(value)
        if normalized is None:
            return None
        return normalized.rstrip("/")

    @field_validator("feed_cache_ttl_seconds", "page_size", "summary_max_content_chars")
    @classmethod
    def _require_positive_int(cls, value: int, info: ValidationInfo) -> int:
        if value < 1:
            raise ValueError(f"SMOL_DIGEST_{str(info.field_name).upper()} must be >= 1.")
        return value

    @field_validator("feed_http_timeout_seconds", "summary_timeout_seconds")
    @classmethod
    def _require_positive_float(cls, value: float, info: ValidationInfo) -> float:
        if value <= 0:
            raise ValueError(f"SMOL_DIGEST_{str(info.field_name).upper()} must be > 0.")
        return value

    @field_validator(*_PATH_FIELDS, mode="before")
    @classmethod
    def _normalize_paths(cls, value: Any) -> Any:
        if value is None:
            return None
        return _resolve_path(value)

    @field_validator(*_BOOLEAN_COERCION_FIELDS, mode="before")
    @classmethod
    def _normalize_booleans(cls, value: Any, info: ValidationInfo) -> bool:
        field_name = info.field_name
        assert field_name is not None
        default_value = cls.model_fields[field_name].default
        assert isinstance(default_value, bool)
        return _parse_bool_with_default(value, default=default_value)

    @field_validator("openai_api_key", mode="before")
    @classmethod
    def _normalize_optional_strings(cls, value: Any) -> str | None:
        return _normalize_optional_text(value)


def _apply_path_defaults(settings: AppSettings) -> AppSettings:
    updates: dict[str, Path] = {}
    for field_name, relative_default in _DATA_DIR_RELATIVE_DEFAULTS:
        if field_name in settings.model_fields_set:
            continue
        updates[field_name] = settings.data_dir / relative_default
    if not updates:
        return settings
    return settings.model_copy(update=updates)


def _resolve_path_fields(settings: AppSettings) -> AppSettings:
    resolved_updates = {
        field_name: _resolve_path(getattr(settings, field_name))
        for field_name in _PATH_FIELDS
    }
    return settings.model_copy(update=resolved_updates)


def load_settings() -> AppSettings:
    settings = AppSettings()
    settings = _apply_path_defaults(settings)
    return _resolve_path_fields(settings)
