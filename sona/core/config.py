from functools import lru_cache
from typing import List, Literal
from urllib.parse import urlparse

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ConfigurationError


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # API
    api_prefix: str = "/api/v1"
    debug: bool = False
    cors_origins: List[str] = ["http://localhost:3000", "http://localhost:5173"]

    # Database
    database_url: str = "sqlite:///./sona.db"

    # Job change subscriptions (server-sent events)
    subscription_poll_interval_seconds: float = Field(default=1.0, gt=0)
    subscription_timeout_seconds: float = Field(default=600.0, gt=0)

    # Auth (tokens are issued by the external auth system, we only verify them)
    jwt_secret: str = "your-super-secret-key-change-in-production"
    jwt_algorithm: str = "HS256"
    jwt_audience: str | None = None

    # Generation provider
    generation_api_url: str = "https://api.stability.ai/v2beta/stable-audio"
    generation_api_key: str = ""
    generation_request_timeout_seconds: float = Field(default=120.0, gt=0)

    # Worker
    max_concurrent_jobs: int = Field(default=2, ge=1, le=10)
    poll_interval_ms: int = Field(default=5000, ge=1000)
    job_timeout_ms: int = Field(default=300_000, ge=10_000)
    max_retries: int = Field(default=3, ge=0, le=10)
    retry_delay_ms: int = Field(default=2000, ge=0)
    shutdown_grace_seconds: float = Field(default=5.0, ge=0)
    preview_encoder: Literal["copy", "ffmpeg"] = "copy"

    # S3 / MinIO
    s3_endpoint: str | None = None
    s3_public_endpoint: str | None = None  # Base for public artifact URLs
    s3_access_key: str | None = None
    s3_secret_key: str | None = None
    s3_region: str = "us-east-1"
    storage_bucket: str = "audio-files"
    storage_path_prefix: str = "generated"

    # Logging
    log_level: Literal["debug", "info", "warning", "error"] = "info"
    log_json: bool = False

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v):
        if isinstance(v, str):
            v = v.strip().lower()
            if v == "warn":
                return "warning"
        return v

    @field_validator("storage_path_prefix")
    @classmethod
    def strip_prefix_slashes(cls, v: str) -> str:
        return v.strip("/")

    @property
    def poll_interval_seconds(self) -> float:
        return self.poll_interval_ms / 1000

    @property
    def job_timeout_seconds(self) -> float:
        return self.job_timeout_ms / 1000

    @property
    def retry_delay_seconds(self) -> float:
        return self.retry_delay_ms / 1000


class WorkerSettings(Settings):
    """Settings for the worker process, which also needs the provider and a bucket."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        validate_default=True,
    )

    @field_validator("generation_api_url")
    @classmethod
    def validate_api_url(cls, v: str) -> str:
        parsed = urlparse(v)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError("must be a valid http(s) URL")
        return v

    @field_validator("generation_api_key")
    @classmethod
    def validate_api_key(cls, v: str) -> str:
        if len(v) < 20:
            raise ValueError("is missing or too short")
        return v

    @field_validator("storage_bucket")
    @classmethod
    def validate_bucket(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be empty")
        return v


def _describe(error: dict) -> str:
    field = ".".join(str(part) for part in error["loc"]).upper() or "SETTINGS"
    return f"{field}: {error['msg']}"


def load_settings(settings_cls: type[Settings] = Settings, **overrides) -> Settings:
    """Build settings, reporting every invalid field at once."""
    try:
        return settings_cls(**overrides)
    except ValidationError as e:
        raise ConfigurationError([_describe(err) for err in e.errors()]) from e


@lru_cache
def get_settings() -> Settings:
    return load_settings()


def __getattr__(name: str):
    # `settings` is built on first use, so importing this module never validates anything
    if name == "settings":
        return get_settings()
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
