"""Audio infrastructure - track resolution and the yt-dlp -> ffmpeg pipeline."""

from guild_jukebox.infrastructure.audio.pipeline import (
    PipelinePCMAudio,
    PipelineStream,
    SubprocessAudioPipeline,
)
from guild_jukebox.infrastructure.audio.spotify_api import SpotifyClient
from guild_jukebox.infrastructure.audio.track_resolver import YtDlpTrackResolver
from guild_jukebox.infrastructure.audio.youtube_api import YouTubeDataClient

__all__ = [
    "PipelinePCMAudio",
    "PipelineStream",
    "SpotifyClient",
    "SubprocessAudioPipeline",
    "YouTubeDataClient",
    "YtDlpTrackResolver",
]
