"""Configuration utilities for the markdown merge service and engine."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Callable, Dict, Literal, Optional, Tuple, Union

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .utils.errors import ConfigurationError


def _env_flag(name: str, default: bool) -> bool:
    """Return a boolean flag derived from environment variables."""

    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


BASE_DIR = Path(__file__).resolve().parent
PROJECT_ROOT = BASE_DIR.parent

DEFAULT_FREEZE_TOKEN = "markdown-merge"
BACKEND_NAMES: Tuple[str, ...] = ("auto", "markdown_it", "commonmark")
PREFERENCE_VALUES: Tuple[str, ...] = ("destination", "template")
WHITESPACE_MODES: Tuple[str, ...] = ("basic", "link_refs", "strict")
CODE_BLOCK_SIGNATURE_MODES: Tuple[str, ...] = ("content", "position")


def _load_environment() -> None:
    """Load environment variables from a ``.env`` file if present."""

    explicit_path = os.getenv("MARKDOWN_MERGE_ENV_FILE")
    candidates = []

    if explicit_path:
        candidates.append(Path(explicit_path))

    candidates.append(PROJECT_ROOT / ".env")

    for candidate in candidates:
        try_path = candidate.expanduser()
        if try_path.exists():
            load_dotenv(try_path, override=False)


_load_environment()


def _split_csv(raw: str | None) -> Tuple[str, ...]:
    if not raw:
        return ()
    return tuple(item.strip() for item in raw.split(",") if item.strip())


class Settings(BaseModel):
    """Service configuration loaded from environment variables."""

    host: str = Field(default_factory=lambda: os.getenv("MARKDOWN_MERGE_HOST", "127.0.0.1"))
    port: int = Field(default_factory=lambda: int(os.getenv("MARKDOWN_MERGE_PORT", "8000")))
    log_level: str = Field(
        default_factory=lambda: os.getenv("MARKDOWN_MERGE_LOG_LEVEL", "info")
    )
    debug: bool = Field(default_factory=lambda: _env_flag("MARKDOWN_MERGE_DEBUG", False))
    backend: str = Field(default_factory=lambda: os.getenv("MARKDOWN_MERGE_BACKEND", "auto"))
    preference: str = Field(
        default_factory=lambda: os.getenv("MARKDOWN_MERGE_PREFERENCE", "destination")
    )
    freeze_token: str = Field(
        default_factory=lambda: os.getenv("MARKDOWN_MERGE_FREEZE_TOKEN", DEFAULT_FREEZE_TOKEN)
    )
    table_match_threshold: float = Field(
        default_factory=lambda: float(os.getenv("MARKDOWN_MERGE_TABLE_THRESHOLD", "0.5"))
    )
    max_document_bytes: int = Field(
        default_factory=lambda: int(
            os.getenv("MARKDOWN_MERGE_MAX_DOCUMENT_BYTES", str(2 * 1024 * 1024))
        )
    )
    cors_allow_origins: Tuple[str, ...] = Field(
        default_factory=lambda: _split_csv(os.getenv("MARKDOWN_MERGE_CORS_ORIGINS"))
    )

    @field_validator("backend", mode="after")
    @classmethod
    def _validate_backend(cls, value: str) -> str:
        value = value.strip().lower() or "auto"
        if value not in BACKEND_NAMES:
            raise ValueError(f"unknown backend {value!r}")
        return value

    @field_validator("preference", mode="after")
    @classmethod
    def _validate_preference(cls, value: str) -> str:
        value = value.strip().lower()
        if value not in PREFERENCE_VALUES:
            raise ValueError(f"unknown preference {value!r}")
        return value

    @field_validator("freeze_token", mode="after")
    @classmethod
    def _normalise_freeze_token(cls, value: str) -> str:
        return value.strip() or DEFAULT_FREEZE_TOKEN

    @field_validator("table_match_threshold", mode="after")
    @classmethod
    def _clamp_threshold(cls, value: float) -> float:
        return max(0.0, min(1.0, value))

    @field_validator("max_document_bytes", mode="after")
    @classmethod
    def _normalise_max_bytes(cls, value: int) -> int:
        return max(1024, value)


class MergeOptions(BaseModel):
    """Validated per-merge options shared by the merger, the API and the CLI."""

    model_config = ConfigDict(arbitrary_types_allowed=True, extra="forbid", frozen=True)

    backend: str = "auto"
    preference: Union[str, Dict[str, str]] = "destination"
    add_template_only_nodes: Union[bool, Callable[..., bool]] = False
    remove_template_missing_nodes: bool = False
    freeze_token: str = DEFAULT_FREEZE_TOKEN
    inner_merge_code_blocks: Any = False
    match_refiner: Optional[Any] = None
    signature_generator: Optional[Callable[..., Any]] = None
    code_block_signature: Literal["content", "position"] = "content"
    repair_input: bool = False
    normalize_whitespace: Union[bool, str] = False
    rehydrate_link_references: bool = False

    @field_validator("backend", mode="after")
    @classmethod
    def _validate_backend(cls, value: str) -> str:
        if value not in BACKEND_NAMES:
            raise ValueError(f"unknown backend {value!r}; expected one of {BACKEND_NAMES}")
        return value

    @field_validator("preference", mode="after")
    @classmethod
    def _validate_preference(cls, value: Union[str, Dict[str, str]]) -> Union[str, Dict[str, str]]:
        if isinstance(value, str):
            if value not in PREFERENCE_VALUES:
                raise ValueError(f"unknown preference {value!r}")
            return value
        for node_type, choice in value.items():
            if choice not in PREFERENCE_VALUES:
                raise ValueError(f"unknown preference {choice!r} for {node_type!r}")
        return dict(value)

    @field_validator("freeze_token", mode="after")
    @classmethod
    def _validate_freeze_token(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("freeze_token must not be blank")
        return value.strip()

    @field_validator("inner_merge_code_blocks", mode="after")
    @classmethod
    def _validate_inner_merge(cls, value: Any) -> Any:
        if isinstance(value, bool) or hasattr(value, "merge_code_blocks"):
            return value
        raise ValueError(
            "inner_merge_code_blocks must be a bool or an object providing merge_code_blocks()"
        )

    @field_validator("match_refiner", mode="after")
    @classmethod
    def _validate_refiner(cls, value: Any) -> Any:
        if value is not None and not callable(value):
            raise ValueError("match_refiner must be callable")
        return value

    @field_validator("normalize_whitespace", mode="after")
    @classmethod
    def _validate_whitespace(cls, value: Union[bool, str]) -> Union[bool, str]:
        if isinstance(value, str) and value not in WHITESPACE_MODES:
            raise ValueError(f"unknown whitespace mode {value!r}")
        return value

    @classmethod
    def build(cls, **options: Any) -> "MergeOptions":
        """Validate ``options``, converting validation failures to ``ConfigurationError``."""

        try:
            return cls(**options)
        except ValidationError as exc:
            errors = [
                {"field": ".".join(str(part) for part in error["loc"]), "message": error["msg"]}
                for error in exc.errors()
            ]
            summary = "; ".join(f"{item['field']}: {item['message']}" for item in errors)
            raise ConfigurationError(
                f"invalid merge options: {summary}", extra={"errors": errors}
            ) from exc


@lru_cache()
def get_settings() -> Settings:
    """Return cached application settings."""

    return Settings()


def reset_settings_cache() -> None:
    """Clear the cached settings so that subsequent calls reload from the environment."""

    get_settings.cache_clear()


__all__ = [
    "BACKEND_NAMES",
    "CODE_BLOCK_SIGNATURE_MODES",
    "DEFAULT_FREEZE_TOKEN",
    "MergeOptions",
    "PREFERENCE_VALUES",
    "Settings",
    "WHITESPACE_MODES",
    "get_settings",
    "reset_settings_cache",
]
