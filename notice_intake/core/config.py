from functools import lru_cache
from secrets import token_urlsafe
from typing import Dict, List

from pydantic import AnyHttpUrl, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    api_v1_prefix: str = "/v1"
    project_name: str = "Notice Intake API"
    cors_origins: List[AnyHttpUrl] = []
    secret_key: str = Field(default_factory=lambda: token_urlsafe(32))
    access_token_expire_minutes: int = 60 * 24 * 365

    database_url: str = Field(
        default="sqlite+aiosqlite:///./notices.db",
        description="Async SQLAlchemy connection string for the notice store",
    )

    submit_roles: List[str] = Field(
        default_factory=lambda: ["submitter", "admin", "super_admin"],
        description="User roles allowed to submit notices through the API",
    )
    restricted_notice_types: Dict[str, List[str]] = Field(
        default_factory=dict,
        description="Notice type values mapped to the roles allowed to submit them",
    )
    original_url_roles: List[str] = Field(
        default_factory=lambda: ["researcher", "admin", "super_admin"],
        description="User roles that see URLs exactly as they were submitted",
    )
    api_documentation_link: str = Field(
        default="/docs",
        description="Link returned to API callers that fail authentication",
    )

    media_root: str = Field(
        default="media",
        description="Directory used for attachments when object storage is not configured",
    )
    s3_endpoint_url: AnyHttpUrl | None = None
    s3_bucket: str | None = None
    s3_access_key: str | None = None
    s3_secret_key: str | None = None
    s3_region: str = "us-east-1"
    s3_secure: bool | None = None

    log_level: str = Field(default="INFO", description="Root log level")
    log_json: bool = Field(
        default=False, description="Render structured logs as JSON lines when true"
    )

    enable_prometheus_metrics: bool = Field(
        default=True, description="Expose Prometheus metrics endpoint when true"
    )
    prometheus_metrics_path: str = Field(
        default="/metrics/prometheus",
        description="Path where scraped Prometheus metrics are served",
    )
    otel_exporter_otlp_endpoint: str | None = Field(
        default=None,
        description="OTLP HTTP endpoint for exporting traces",
    )
    otel_exporter_otlp_headers: str | None = Field(
        default=None,
        description="Comma separated key=value pairs added to OTLP requests",
    )
    otel_service_name: str | None = Field(
        default=None, description="Optional override for OpenTelemetry service.name"
    )


@lru_cache
def get_settings() -> Settings:
    """Return a cached settings instance."""

    return Settings()
