"""Runtime configuration for call-bridge."""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-driven runtime settings."""

    model_config = SettingsConfigDict(env_prefix="CALL_BRIDGE_", env_file=".env", extra="ignore")

    app_name: str = "call-bridge"
    log_level: str = "INFO"

    language_a: str = "en"
    language_b: str = "es"
    turn_policy: Literal["manual", "auto_advance"] = "manual"
    continuous_capture: bool = False

    translation_timeout_seconds: float = Field(default=5.0, gt=0)
    playback_timeout_seconds: float = Field(default=60.0, gt=0)
    mymemory_contact_email: str | None = Field(
        default=None,
        description="Optional e-mail sent to MyMemory for a larger free quota.",
    )

    elevenlabs_api_key: str | None = None
    elevenlabs_model: str = "eleven_turbo_v2_5"
    audio_player_command: str = Field(
        default="ffplay -nodisp -autoexit -loglevel quiet",
        description="Command used to play MP3 audio returned by ElevenLabs.",
    )
    infer_voice_gender: bool = False

    phrase_time_limit: float = 10.0
    listen_timeout: float = 10.0

    history_path: str | None = Field(default=None, description="JSONL file receiving completed utterances.")
    daily_session_limit: int | None = Field(default=None, ge=0)


settings = Settings()
