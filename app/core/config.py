"""
Application configuration models and helpers.

Centralizes settings management so the FastAPI app, the scheduled refresh job,
and the operator scripts share a consistent configuration surface.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

import os

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _load_env_file(path: str = ".env") -> None:
    """Best-effort load key=value pairs from a .env file without extra deps."""
    env_path = Path(path)
    if not env_path.exists():
        return
    for raw_line in env_path.read_text().splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        key, sep, value = line.partition("=")
        if not sep:
            continue
        key = key.strip()
        if not key or key in os.environ:
            continue
        cleaned = value.strip().strip('"').strip("'")
        os.environ[key] = cleaned


_load_env_file()


class GitHubSettings(BaseSettings):
    """Configuration required for the GitHub OAuth app and REST API."""

    client_id: str = Field(..., validation_alias="GITHUB_CLIENT_ID")
    client_secret: str = Field(..., validation_alias="GITHUB_CLIENT_SECRET")
    scopes: tuple[str, ...] = Field(
        ("user:email", "repo", "read:org"),
        validation_alias="GITHUB_OAUTH_SCOPES",
    )
    http_timeout_seconds: float = Field(10.0, validation_alias="GITHUB_HTTP_TIMEOUT")
    user_agent: str = Field("Dashboard-for-GitHub", validation_alias="GITHUB_USER_AGENT")

    @field_validator("scopes", mode="before")
    @classmethod
    def _split_scopes(
        cls, value: str | tuple[str, ...] | list[str]
    ) -> tuple[str, ...]:
        """Support providing scopes as a comma or space separated string."""
        if isinstance(value, tuple):
            return value
        if isinstance(value, list):
            return tuple(value)
        return tuple(scope for scope in value.replace(",", " ").split() if scope)

    model_config = SettingsConfigDict(enable_decoding=False)


class StripeSettings(BaseSettings):
    """Stripe credentials and the single payment link sold by this product."""

    secret_key: str = Field(..., validation_alias="STRIPE_SECRET")
    webhook_signing_secret: str = Field(
        ..., validation_alias="STRIPE_WEBHOOK_SIGNING_SECRET"
    )
    payment_link_id: str = Field(..., validation_alias="STRIPE_PAYMENT_LINK_ID")
    payment_link_url: str = Field(..., validation_alias="STRIPE_PAYMENT_LINK")
    api_version: Optional[str] = Field(
        None,
        validation_alias="STRIPE_API_VERSION",
        description="Pin the Stripe API version; the account default is used when omitted.",
    )


class SessionSettings(BaseSettings):
    """Cookie and session lifetime configuration."""

    secret: Optional[str] = Field(
        None,
        validation_alias="SESSION_SECRET",
        description=(
            "Secret used to derive the key sealing session and OAuth state cookies."
        ),
    )
    session_ttl_seconds: int = Field(7 * 24 * 60 * 60, validation_alias="SESSION_TTL_SECONDS")
    state_ttl_seconds: int = Field(600, validation_alias="OAUTH_STATE_TTL")
    secure_cookies: bool = Field(True, validation_alias="SECURE_COOKIES")
    session_cookie_name: str = "session"
    state_cookie_name: str = "oauth_state"


class StorageSettings(BaseSettings):
    """Structured tier and blob tier locations."""

    db_path: str = Field("data/dashboard.db", validation_alias="DASHBOARD_DB_PATH")
    blob_backend: Literal["sqlite", "s3"] = Field("sqlite", validation_alias="BLOB_BACKEND")
    s3_bucket: Optional[str] = Field(None, validation_alias="BLOB_S3_BUCKET")
    s3_prefix: str = Field("dashboards/", validation_alias="BLOB_S3_PREFIX")
    region_name: str = Field("us-east-1", validation_alias="AWS_REGION")


class SyncSettings(BaseSettings):
    """Dashboard synchronization tuning."""

    page_size: int = Field(100, validation_alias="SYNC_PAGE_SIZE")
    max_pages: int = Field(
        50,
        validation_alias="SYNC_MAX_PAGES",
        description="Upper bound on pages fetched per listing in a single refresh.",
    )
    refresh_interval_seconds: int = Field(
        24 * 60 * 60, validation_alias="REFRESH_INTERVAL_SECONDS"
    )


class AppSettings(BaseSettings):
    """Root settings object for the FastAPI application."""

    environment: str = Field("development", validation_alias="APP_ENV")
    log_level: str = Field("INFO", validation_alias="APP_LOG_LEVEL")
    github: GitHubSettings = Field(default_factory=GitHubSettings)
    stripe: StripeSettings = Field(default_factory=StripeSettings)
    session: SessionSettings = Field(default_factory=SessionSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    sync: SyncSettings = Field(default_factory=SyncSettings)

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")


@lru_cache()
def get_settings() -> AppSettings:
    """Return a cached settings object."""
    return AppSettings()  # type: ignore[call-arg]


__all__ = [
    "AppSettings",
    "GitHubSettings",
    "SessionSettings",
    "StorageSettings",
    "StripeSettings",
    "SyncSettings",
    "get_settings",
]
