"""Configuration settings using Pydantic Settings.

Provides typed client configuration with environment variable support.

Usage:
    from datakit.config import ClientSettings

    # Load from environment variables (DATAKIT_*)
    settings = ClientSettings()

    # Or override with explicit values
    settings = ClientSettings(endpoint="https://data.example.com", secret="s3cret")
"""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from datakit.core.query.models import CachePolicy


class ClientSettings(BaseSettings):  # type: ignore[misc]
    """Configuration for the query client.

    Attributes:
        endpoint: Base URL of the DataKit service.
        secret: API secret, sent as the ``x-datakit-secret`` header.
        timeout: Request timeout in seconds, handed to the HTTP client.
        default_cache_policy: Cache policy for queries created by a dispatcher.
        cache_max_entries: Capacity of the in-memory response cache.

    Environment Variables:
        DATAKIT_ENDPOINT
        DATAKIT_SECRET
        DATAKIT_TIMEOUT
        DATAKIT_DEFAULT_CACHE_POLICY
        DATAKIT_CACHE_MAX_ENTRIES
    """

    model_config = SettingsConfigDict(
        env_prefix="DATAKIT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    endpoint: str = "http://localhost:3000"
    secret: str | None = None
    timeout: float = Field(default=30.0, gt=0)
    default_cache_policy: CachePolicy = CachePolicy.IGNORE_CACHE
    cache_max_entries: int = Field(default=256, ge=1)
