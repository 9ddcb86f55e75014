"""Dependency Injection Container

Manages the application's dependency graph with lazy initialization and
lifecycle management. Components are created on demand and cached for reuse
throughout the application.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from ..domain.shared.messages import ErrorMessages

logger = logging.getLogger(__name__)

if TYPE_CHECKING:
    from discord.ext.commands import Bot

    from ..application.interfaces.audio_pipeline import AudioPipeline
    from ..application.interfaces.track_resolver import TrackResolver
    from ..application.interfaces.voice_adapter import VoiceAdapter
    from ..application.services.playback_service import PlaybackApplicationService
    from ..domain.music.repository import SessionRegistry
    from ..infrastructure.audio.spotify_api import SpotifyClient
    from ..infrastructure.audio.youtube_api import YouTubeDataClient
    from .settings import Settings


@dataclass
class Container:
    """Dependency injection container.

    Components are lazily initialized when first accessed.
    """

    settings: Settings
    _bot: Bot | None = None

    # Registry
    _session_registry: SessionRegistry | None = None

    # Infrastructure adapters
    _youtube_client: YouTubeDataClient | None = None
    _spotify_client: SpotifyClient | None = None
    _track_resolver: TrackResolver | None = None
    _audio_pipeline: AudioPipeline | None = None
    _voice_adapter: VoiceAdapter | None = None

    # Application services
    _playback_service: PlaybackApplicationService | None = None

    def set_bot(self, bot: Bot) -> None:
        """Set the Discord bot instance."""
        self._bot = bot

    @property
    def bot(self) -> Bot:
        """Get the Discord bot instance."""
        if self._bot is None:
            raise RuntimeError(ErrorMessages.BOT_NOT_INITIALIZED)
        return self._bot

    # === Registry ===

    @property
    def session_registry(self) -> SessionRegistry:
        """Get the in-memory session registry."""
        if self._session_registry is None:
            from ..infrastructure.registry.session_registry import InMemorySessionRegistry

            self._session_registry = InMemorySessionRegistry(
                max_queue_size=self.settings.audio.max_queue_size
            )
        return self._session_registry

    # === Infrastructure Adapters ===

    @property
    def youtube_client(self) -> YouTubeDataClient:
        """Get the YouTube Data API client."""
        if self._youtube_client is None:
            from ..infrastructure.audio.youtube_api import YouTubeDataClient

            self._youtube_client = YouTubeDataClient(self.settings.youtube)
        return self._youtube_client

    @property
    def spotify_client(self) -> SpotifyClient:
        """Get the Spotify Web API client."""
        if self._spotify_client is None:
            from ..infrastructure.audio.spotify_api import SpotifyClient

            self._spotify_client = SpotifyClient(self.settings.spotify)
        return self._spotify_client

    @property
    def track_resolver(self) -> TrackResolver:
        """Get the track resolver."""
        if self._track_resolver is None:
            from ..infrastructure.audio.track_resolver import YtDlpTrackResolver

            self._track_resolver = YtDlpTrackResolver(
                youtube=self.youtube_client,
                spotify=self.spotify_client,
                youtube_settings=self.settings.youtube,
                spotify_settings=self.settings.spotify,
            )
        return self._track_resolver

    @property
    def audio_pipeline(self) -> AudioPipeline:
        """Get the yt-dlp -> ffmpeg download pipeline."""
        if self._audio_pipeline is None:
            from ..infrastructure.audio.pipeline import SubprocessAudioPipeline

            self._audio_pipeline = SubprocessAudioPipeline(self.settings.audio)
        return self._audio_pipeline

    @property
    def voice_adapter(self) -> VoiceAdapter:
        """Get the voice adapter."""
        if self._voice_adapter is None:
            from ..infrastructure.discord.adapters.voice_adapter import DiscordVoiceAdapter

            self._voice_adapter = DiscordVoiceAdapter(
                self.bot, self.settings.audio, self.settings.playback
            )
        return self._voice_adapter

    # === Application Services ===

    @property
    def playback_service(self) -> PlaybackApplicationService:
        """Get the playback application service."""
        if self._playback_service is None:
            from ..application.services.playback_service import PlaybackApplicationService

            self._playback_service = PlaybackApplicationService(
                session_registry=self.session_registry,
                voice_adapter=self.voice_adapter,
                track_resolver=self.track_resolver,
                audio_pipeline=self.audio_pipeline,
                settings=self.settings.playback,
            )
        return self._playback_service

    # === Lifecycle ===

    async def initialize(self) -> None:
        """Initialize all async resources."""
        self.spotify_client.start_token_refresher()

    async def shutdown(self) -> None:
        """Stop background work and close network clients."""
        if self._playback_service is not None:
            try:
                await self._playback_service.shutdown()
            except Exception as exc:
                logger.warning("Failed stopping playback sessions: %r", exc)

        if self._track_resolver is not None:
            await self._track_resolver.aclose()
        else:
            if self._spotify_client is not None:
                await self._spotify_client.aclose()
            if self._youtube_client is not None:
                await self._youtube_client.aclose()


def create_container(settings: Settings) -> Container:
    """Create a new dependency injection container."""
    return Container(settings)
