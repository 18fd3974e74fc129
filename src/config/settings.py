"""Application-wide configuration loading and validation."""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import AliasChoices, BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class TenantConfig(BaseModel):
    """Per-tenant overrides as provided through the TENANTS variable."""

    business_name: str
    city: str
    voice: str | None = None
    greeting: str | None = None
    instructions: str | None = None


class Settings(BaseSettings):
    """Centralized environment configuration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        populate_by_name=True,
    )

    environment: Literal["local", "dev", "prod"] = Field(default="local")
    log_level: str = Field(default="INFO")

    # OpenAI Realtime
    openai_api_key: str | None = Field(default=None)
    openai_realtime_url: str = Field(default="wss://api.openai.com/v1/realtime")
    openai_realtime_model: str = Field(default="gpt-4o-realtime-preview-2024-10-01")
    openai_voice: str = Field(default="alloy")
    openai_temperature: float = Field(default=0.6, ge=0.6, le=1.2)
    ai_output_audio_format: Literal["g711_ulaw", "pcm16"] = Field(
        default="g711_ulaw",
        description="Audio format requested from the AI; pcm16 is decimated to 8 kHz mu-law.",
    )
    ai_output_sample_rate: int = Field(default=24000, description="Sample rate of pcm16 output.")
    vad_create_response: bool = Field(
        default=False,
        description="If true, the AI creates responses itself on end of speech.",
    )
    session_settle_seconds: float = Field(
        default=0.25,
        ge=0.0,
        description="Delay between session configuration and the greeting response.",
    )

    # Booking extraction and delivery
    booking_marker: str = Field(default="BOOKING:")
    booking_webhook_url: str | None = Field(
        default=None,
        validation_alias=AliasChoices("booking_webhook_url", "zapier_hook_url"),
        description="Destination for recognised bookings (e.g. a Zapier catch hook).",
    )
    booking_webhook_api_key: str | None = Field(default=None)
    booking_webhook_timeout: float = Field(default=10.0, gt=0.0)

    # Twilio (Voice)
    twilio_auth_token: str | None = Field(default=None)
    twilio_validate_signatures: bool = Field(
        default=False,
        description="If true, rejects voice webhooks without a valid X-Twilio-Signature.",
    )
    public_base_url: str | None = Field(
        default=None,
        description="Public base URL for Twilio webhooks (e.g. https://<ngrok>.ngrok-free.app).",
    )
    connect_say_text: str = Field(default="Connecting your call. One moment.")
    connect_say_voice: str = Field(default="Polly.Joanna")

    # Media stream behaviour
    stream_start_tone: bool = Field(
        default=False,
        description="If true, plays a short tone to the caller when the stream starts.",
    )
    stream_start_tone_hz: float = Field(default=440.0, gt=0.0)
    stream_start_tone_ms: int = Field(default=200, gt=0)
    barge_in_clear: bool = Field(
        default=True,
        description="If true, clears buffered assistant audio when the caller starts talking.",
    )

    # Tenants
    business_name: str = Field(default="Acme Heating & Cooling")
    business_city: str = Field(default="Fargo, ND")
    greeting_instructions: str = Field(
        default="Thanks for calling. May I have your name and the address for service?",
    )
    tenants: dict[str, TenantConfig] = Field(
        default_factory=dict,
        description="JSON mapping of tenant id to tenant overrides.",
    )

    @field_validator("ai_output_sample_rate")
    @classmethod
    def ensure_decimatable(cls, value: int) -> int:
        if value % 8000 != 0:
            raise ValueError("ai_output_sample_rate must be a multiple of 8000")
        return value

    @property
    def realtime_ws_url(self) -> str:
        return f"{self.openai_realtime_url}?model={self.openai_realtime_model}"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached Settings instance."""

    return Settings()
