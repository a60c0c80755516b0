"""
Configuration management using pydantic-settings.

Loads settings from environment variables and .env files.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Vapi Configuration
    vapi_secret: Optional[str] = Field(
        default=None,
        description="Shared secret Vapi sends with every webhook (x-vapi-secret or Bearer)",
    )
    vapi_api_key: Optional[str] = Field(
        default=None,
        description="Private API key for the Vapi REST API. Falls back to vapi_secret.",
    )
    vapi_api_base_url: str = Field(
        default="https://api.vapi.ai",
        description="Base URL of the Vapi REST API",
    )

    # Gatekeeper Configuration
    transfer_phone_number: str = Field(
        default="+15551234567",
        description="Number known callers are silently transferred to",
    )
    protected_party_name: str = Field(
        default="the owner",
        description="Who the screening assistant protects, as spoken in its prompt",
    )
    screen_first_message: str = Field(
        default="Who is this and what do you want?",
        description="Opening challenge spoken to unknown callers",
    )
    screen_model_provider: str = Field(default="openai", description="LLM provider for the screener")
    screen_model: str = Field(default="gpt-4", description="LLM model for the screener")
    screen_temperature: float = Field(
        default=0.3,
        ge=0.0,
        le=2.0,
        description="Low temperature keeps the screener consistent",
    )
    screen_max_tokens: int = Field(
        default=150,
        gt=0,
        description="Keeps screener replies short and direct",
    )
    screen_voice_provider: str = Field(default="11labs", description="TTS provider for the screener")
    screen_voice_id: str = Field(default="21m00Tcm4TlvDq8ikWAM", description="TTS voice for the screener")
    default_country_code: str = Field(
        default="1",
        description="Country code prefixed to 10-digit numbers during E.164 normalization",
    )
    gatekeeper_lookup_timeout_seconds: float = Field(
        default=1.5,
        gt=0,
        description="Allowlist lookup budget before failing open to the screener",
    )

    # Intake Pipeline Configuration
    address_match_threshold: float = Field(
        default=0.4,
        ge=0.0,
        le=1.0,
        description="Minimum similarity for an address match. Permissive on purpose (voice transcription noise).",
    )
    address_prefilter_enabled: bool = Field(
        default=True,
        description="Restrict match candidates by ZIP code when the spoken address has one",
    )
    claim_dedup_window_hours: float = Field(
        default=24,
        gt=0,
        description="Repeat warranty calls inside this window reuse the open claim",
    )
    fallback_fetch_delay_seconds: float = Field(
        default=2.0,
        ge=0.0,
        description="Wait before the single call-detail fetch when the address is missing",
    )
    fallback_fetch_timeout_seconds: float = Field(
        default=5.0,
        gt=0,
        description="HTTP timeout for the call-detail fetch",
    )
    notification_webhook_url: Optional[str] = Field(
        default=None,
        description="If set, intake notifications are POSTed here as JSON",
    )

    # Storage Configuration
    database_path: Path = Field(
        default=Path("data") / "intake.db",
        description="SQLite database file",
    )
    database_busy_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="How long a connection waits on a locked database",
    )

    # Server Configuration
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port")
    debug: bool = Field(default=False, description="Enable debug mode")

    @property
    def vapi_call_api_key(self) -> Optional[str]:
        """Key used for the call-detail fallback fetch."""
        return self.vapi_api_key or self.vapi_secret


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses LRU cache to avoid re-reading environment on every call.
    """
    return Settings()
