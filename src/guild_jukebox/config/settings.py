"""Application Settings and Configuration

Pydantic-based settings loaded from environment variables (and an optional
``.env`` file) with type validation and defaults. All sub-settings are
frozen after initialization.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..domain.shared.messages import ErrorMessages


class DiscordSettings(BaseModel):
    """Discord bot configuration."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    token: SecretStr = Field(
        default=SecretStr(""), validation_alias=AliasChoices("token", "bot_token", "discord_token")
    )
    command_prefix: str = Field(default="!", min_length=1, max_length=5)
    test_guild_ids: tuple[int, ...] = Field(
        default_factory=tuple, validation_alias=AliasChoices("test_guild_ids", "test_guilds")
    )
    sync_on_startup: bool = True

    @field_validator("test_guild_ids", mode="before")
    @classmethod
    def validate_snowflake_ids(cls, v: tuple[int, ...] | list[int]) -> tuple[int, ...]:
        """Validate Discord snowflake IDs and convert lists to tuples."""
        if isinstance(v, list):
            v = tuple(v)
        for snowflake in v:
            if snowflake <= 0:
                raise ValueError(ErrorMessages.INVALID_SNOWFLAKE)
        return v


class AudioSettings(BaseModel):
    """Download pipeline and audio output configuration."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    default_volume: float = Field(default=0.5, ge=0.0, le=2.0)
    max_queue_size: int = Field(default=500, ge=1, le=5000)
    fetch_executable: str = Field(
        default="yt-dlp", validation_alias=AliasChoices("fetch_executable", "ytdlp_path")
    )
    decode_executable: str = Field(
        default="ffmpeg", validation_alias=AliasChoices("decode_executable", "ffmpeg_path")
    )
    fetch_format: str = "bestaudio"
    decoder_buffer_size: str = "16M"
    first_audio_timeout_seconds: float = Field(default=60.0, gt=0.0)
    progress_log_step: float = Field(default=10.0, gt=0.0, le=100.0)


class PlaybackSettings(BaseModel):
    """Playback state machine timing."""

    model_config = ConfigDict(frozen=True)

    download_retry_delay_seconds: float = Field(default=5.0, ge=0.0)
    engine_retry_delay_seconds: float = Field(default=1.0, ge=0.0)
    ready_timeout_seconds: float = Field(default=30.0, gt=0.0)
    reconnect_timeout_seconds: float = Field(default=5.0, gt=0.0)


class YouTubeSettings(BaseModel):
    """YouTube Data API configuration."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    api_key: SecretStr = Field(
        default=SecretStr(""), validation_alias=AliasChoices("api_key", "youtube_api_key")
    )
    api_base_url: str = "https://www.googleapis.com/youtube/v3"
    playlist_limit: int = Field(default=50, ge=1, le=50)
    request_timeout_seconds: float = Field(default=10.0, gt=0.0)


class SpotifySettings(BaseModel):
    """Spotify Web API configuration."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    client_id: str = Field(
        default="", validation_alias=AliasChoices("client_id", "spotify_client_id")
    )
    client_secret: SecretStr = Field(
        default=SecretStr(""), validation_alias=AliasChoices("client_secret", "spotify_client_secret")
    )
    accounts_url: str = "https://accounts.spotify.com/api/token"
    api_base_url: str = "https://api.spotify.com/v1"
    token_refresh_minutes: float = Field(default=50.0, gt=0.0)
    lookup_delay_seconds: float = Field(default=0.5, ge=0.0)
    playlist_limit: int = Field(default=100, ge=1, le=100)
    request_timeout_seconds: float = Field(default=10.0, gt=0.0)

    @property
    def configured(self) -> bool:
        return bool(self.client_id and self.client_secret.get_secret_value())


class Settings(BaseSettings):
    """Application settings container.

    Environment variable naming:
    - ENVIRONMENT, DEBUG, LOG_LEVEL (top-level)
    - DISCORD__TOKEN, AUDIO__DEFAULT_VOLUME, PLAYBACK__... (nested with ``__``)
    - YOUTUBE__API_KEY, SPOTIFY__CLIENT_ID, SPOTIFY__CLIENT_SECRET
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    environment: Literal["development", "production", "test"] = "development"
    debug: bool = False
    log_level: str = "INFO"

    discord: DiscordSettings = Field(default_factory=DiscordSettings)
    audio: AudioSettings = Field(default_factory=AudioSettings)
    playback: PlaybackSettings = Field(default_factory=PlaybackSettings)
    youtube: YouTubeSettings = Field(default_factory=YouTubeSettings)
    spotify: SpotifySettings = Field(default_factory=SpotifySettings)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(ErrorMessages.INVALID_LOG_LEVEL.format(level=v, valid_levels=valid_levels))
        return v_upper


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached application settings.

    Loaded from, in order of precedence: environment variables, ``.env``,
    defaults.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache (useful for testing)."""
    get_settings.cache_clear()
