"""Application-wide configuration loading and validation."""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Centralized environment configuration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    log_level: str = Field(default="INFO")

    # Server
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=10000)

    # Twilio (Voice)
    twilio_account_sid: str | None = Field(default=None)
    twilio_auth_token: str | None = Field(default=None)
    twilio_from_number: str | None = Field(default=None, description="E.164, e.g. +1415...")
    public_base_url: str | None = Field(
        default=None,
        description="Public base URL for Twilio webhooks (e.g. https://<ngrok>.ngrok-free.app).",
    )

    # Call handling
    call_strategy: Literal["redirect", "conference"] = Field(
        default="redirect",
        description=(
            "How typed text reaches the far end. 'redirect' replaces the call's TwiML, "
            "'conference' bridges the call into a conference and announces into it."
        ),
    )
    default_country_code: str = Field(
        default="1",
        description="Country code prepended to 10-digit national numbers.",
    )
    say_voice: str = Field(default="alice")
    say_language: str = Field(default="en-US")
    transcription_language: str = Field(default="en-US")
    listen_pause_seconds: int = Field(
        default=3600,
        ge=1,
        description="How long the call idles (listening) after each spoken message.",
    )
    goodbye_message: str = Field(default="Thank you for using TTY service. Goodbye.")

    # Session retention
    session_retention_seconds: int = Field(
        default=900,
        ge=0,
        description="How long an ended session stays queryable before eviction.",
    )
    eviction_interval_seconds: float = Field(default=60.0, gt=0)
    initiated_timeout_seconds: int = Field(
        default=600,
        gt=0,
        description="Sessions still 'initiated' after this long are evicted as abandoned.",
    )

    @field_validator("default_country_code")
    @classmethod
    def digits_only(cls, value: str) -> str:
        value = value.strip().lstrip("+")
        if not value.isdigit():
            raise ValueError("default_country_code must contain digits only")
        return value

    @property
    def twilio_configured(self) -> bool:
        return bool(
            self.twilio_account_sid
            and self.twilio_auth_token
            and self.twilio_from_number
            and self.public_base_url
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached Settings instance."""

    return Settings()
