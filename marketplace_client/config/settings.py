"""Pydantic Settings for the marketplace client.

All environment variables use the MARKETPLACE_ prefix.
Example: MARKETPLACE_BASE_URL=https://api.example.com/api, MARKETPLACE_AUTH_TOKEN=...
"""

from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings

_BUNDLED_PROFILES = str(Path(__file__).with_name("upload_profiles.yaml"))


class ClientSettings(BaseSettings):
    """Client configuration validated from environment variables."""

    # Backend
    base_url: str  # e.g. "https://api.example.com/api"
    auth_token: str | None = None  # Sent as "Authorization: Bearer <token>"
    accept_language: str = "ar"
    timeout_seconds: float = Field(default=30.0, ge=0.1)

    # Request gateway
    dedupe_get_requests: bool = True

    # Logging
    log_level: str = "INFO"

    # Product catalog
    products_per_page: int = Field(default=12, ge=1, le=100)

    # File uploads
    upload_profiles_path: str = _BUNDLED_PROFILES

    model_config = {"env_prefix": "MARKETPLACE_"}
