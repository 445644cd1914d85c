"""Configuration management for Emoji Maker.

This module provides centralized configuration management using Pydantic Settings.
All configuration is loaded from environment variables with the EMOJIMAKER_ prefix,
allowing easy customization without code changes.

Environment Variable Loading
-----------------------------
Configuration values are loaded in the following priority order:
1. Environment variables (EMOJIMAKER_* prefix)
2. .env file in the project root
3. Default values defined in EmojiMakerConfig

The Replicate token is the one exception to the prefix rule: it is also read
from the plain ``REPLICATE_API_TOKEN`` variable that Replicate's own tooling
uses, so an existing token can be reused as-is.

Example .env file:
    REPLICATE_API_TOKEN=r8_xxxxxxxx
    EMOJIMAKER_STORAGE_BACKEND=supabase
    EMOJIMAKER_SUPABASE_URL=https://project.supabase.co
    EMOJIMAKER_SUPABASE_KEY=service-role-key
    EMOJIMAKER_IDENTITY_BACKEND=clerk
    EMOJIMAKER_CLERK_JWKS_URL=https://clerk.example.com/.well-known/jwks.json

Global Configuration Instance
------------------------------
A global `config` instance is created automatically at module import time.
This ensures a single source of truth for all configuration values across
the application.

Usage Example
-------------
    from emojimaker.core.config import config

    print(config.storage_backend)
    print(config.bucket_dir)

Directory Management
--------------------
The configuration automatically creates required directories on initialization:
- data_dir: SQLite database for the local storage backend
- static_dir: Static files served by FastAPI, including the local bucket
"""

from pathlib import Path
from typing import Literal

from pydantic import AliasChoices, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class EmojiMakerConfig(BaseSettings):
    """Main configuration for Emoji Maker.

    Values are loaded from environment variables with the EMOJIMAKER_ prefix,
    with fallback to defaults defined here.

    Attributes
    ----------
    Provider Settings:
        default_provider : str
            Registered image provider name ("replicate")
        replicate_api_token : SecretStr | None
            API token; absence is reported before any provider call
        replicate_model : str
            Replicate model owner/name
        replicate_version : str
            Pinned model version hash
        prompt_template : str
            Template wrapping the user prompt; must contain ``{prompt}``
        apply_watermark : bool
            Forwarded to the model input (disabled by default)

    Storage Settings:
        storage_backend : Literal["local", "supabase"]
            Which storage backend to instantiate
        bucket_name : str
            Object storage bucket holding generated PNGs
        cache_control : str
            Cache-Control max-age sent with uploads

    Identity Settings:
        identity_backend : Literal["clerk", "header"]
            "header" trusts ``X-User-Id`` and is meant for development only

    Notes
    -----
    - To modify config, set environment variables and restart the application
    - Directories are created automatically if they don't exist
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="EMOJIMAKER_",
        case_sensitive=False,
        populate_by_name=True,
        extra="ignore",
    )

    # Image generation provider
    default_provider: str = Field(
        default="replicate",
        description="Registered image provider used by the generation pipeline",
    )
    replicate_api_token: SecretStr | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "replicate_api_token",
            "EMOJIMAKER_REPLICATE_API_TOKEN",
            "REPLICATE_API_TOKEN",
        ),
        description="Replicate API token",
    )
    replicate_model: str = Field(
        default="fofr/sdxl-emoji",
        description="Replicate model owner/name",
    )
    replicate_version: str = Field(
        default="dee76b5afde21b0f01ed7925f0665b7e879c50ee718c5f78a9d38e04d523cc5e",
        description="Pinned Replicate model version",
    )
    replicate_api_base: str = Field(
        default="https://api.replicate.com/v1",
        description="Replicate HTTP API base URL",
    )
    prompt_template: str = Field(
        default="A TOK emoji of {prompt}",
        description="Trigger-phrase template wrapped around the user prompt",
    )
    apply_watermark: bool = Field(
        default=False,
        description="Ask the model to watermark its output",
    )
    provider_timeout: float = Field(
        default=120.0,
        description="Seconds to wait for a single provider HTTP call",
        gt=0,
    )
    provider_poll_interval: float = Field(
        default=1.0,
        description="Seconds between prediction status polls",
        ge=0,
    )

    # Storage
    storage_backend: Literal["local", "supabase"] = Field(
        default="local",
        description="Storage backend (local SQLite + filesystem, or Supabase)",
    )
    data_dir: Path = Field(
        default=Path("data"),
        description="Directory holding the local SQLite database",
    )
    static_dir: Path = Field(
        default=Path("static"),
        description="Directory served at /static",
    )
    bucket_name: str = Field(
        default="emojis",
        description="Object storage bucket name",
    )
    cache_control: str = Field(
        default="3600",
        description="Cache-Control max-age for uploaded objects",
    )
    public_base_url: str = Field(
        default="",
        description="Absolute URL prefix for locally stored objects (empty = relative)",
    )
    supabase_url: str | None = Field(
        default=None,
        description="Supabase project URL",
    )
    supabase_key: SecretStr | None = Field(
        default=None,
        description="Supabase service role key",
    )

    # Likes
    trust_client_like_state: bool = Field(
        default=True,
        description="Use the client's isLiked as current state instead of the membership rows",
    )

    # Identity
    identity_backend: Literal["clerk", "header"] = Field(
        default="clerk",
        description="Identity provider used to resolve the caller",
    )
    clerk_jwks_url: str | None = Field(
        default=None,
        description="Clerk JWKS endpoint used to verify session tokens",
    )
    clerk_issuer: str | None = Field(
        default=None,
        description="Expected 'iss' claim of Clerk session tokens",
    )
    clerk_authorized_parties: list[str] = Field(
        default_factory=list,
        description="Accepted 'azp' claims (empty = accept any)",
    )

    # Server
    server_host: str = Field(
        default="0.0.0.0",
        description="Server bind address",
    )
    server_port: int = Field(
        default=8000,
        description="Server port",
        ge=1024,
        le=65535,
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Root logging level",
    )
    cors_origins: list[str] = Field(
        default_factory=lambda: ["*"],
        description="Origins allowed by the CORS middleware",
    )

    def __init__(self, **kwargs):
        """Initialize configuration and create required directories.

        Args:
            **kwargs: Configuration overrides (typically from environment variables)
        """
        super().__init__(**kwargs)

        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.static_dir.mkdir(parents=True, exist_ok=True)

    @property
    def database_path(self) -> Path:
        """SQLite database file used by the local storage backend."""
        return self.data_dir / "emojimaker.db"

    @property
    def bucket_dir(self) -> Path:
        """Directory standing in for the object storage bucket."""
        return self.static_dir / self.bucket_name

    def replicate_token(self) -> str | None:
        """Return the Replicate token as plain text, or None when unset/blank."""
        if self.replicate_api_token is None:
            return None
        token = self.replicate_api_token.get_secret_value().strip()
        return token or None


# Global configuration instance
# It loads values from environment variables (EMOJIMAKER_* prefix) and .env file.
config = EmojiMakerConfig()
