"""TrackResolver implementation backed by YouTube, Spotify, and yt-dlp."""

from __future__ import annotations

import asyncio
import logging
import re
from typing import Any, Final, cast
from urllib.parse import parse_qs, urlparse

from yt_dlp import YoutubeDL

from guild_jukebox.application.interfaces.track_resolver import TrackResolver
from guild_jukebox.config.settings import SpotifySettings, YouTubeSettings
from guild_jukebox.domain.music.entities import TrackDescriptor
from guild_jukebox.domain.shared.exceptions import ResolutionError
from guild_jukebox.domain.shared.messages import ErrorMessages, LogTemplates
from guild_jukebox.infrastructure.audio.models import YtDlpOpts, YtDlpTrackInfo
from guild_jukebox.infrastructure.audio.spotify_api import SpotifyClient
from guild_jukebox.infrastructure.audio.youtube_api import YouTubeDataClient, watch_url

logger = logging.getLogger(__name__)

MAX_TITLE_LENGTH: Final[int] = 500
UNKNOWN_TITLE: Final[str] = "Unknown Title"

URL_PATTERN: Final[re.Pattern[str]] = re.compile(r"^https?://", re.IGNORECASE)
SPOTIFY_PATTERN: Final[re.Pattern[str]] = re.compile(r"spotify\.com", re.IGNORECASE)
YOUTUBE_PATTERN: Final[re.Pattern[str]] = re.compile(r"youtube\.com|youtu\.be", re.IGNORECASE)


def _clip_title(title: str) -> str:
    title = title.strip() or UNKNOWN_TITLE
    return title[:MAX_TITLE_LENGTH]


class YtDlpTrackResolver(TrackResolver):
    """Resolves URLs and search text to :class:`TrackDescriptor` lists.

    - Spotify track/playlist URLs are matched to videos by search.
    - YouTube playlists are listed through the Data API.
    - Single videos are described by yt-dlp.
    - Free text goes to the Data API search, falling back to yt-dlp.
    """

    def __init__(
        self,
        youtube: YouTubeDataClient | None = None,
        spotify: SpotifyClient | None = None,
        youtube_settings: YouTubeSettings | None = None,
        spotify_settings: SpotifySettings | None = None,
    ) -> None:
        self._youtube_settings = youtube_settings or YouTubeSettings()
        self._spotify_settings = spotify_settings or SpotifySettings()
        self._youtube = youtube or YouTubeDataClient(self._youtube_settings)
        self._spotify = spotify or SpotifyClient(self._spotify_settings)
        self._base_opts = YtDlpOpts()

    # ── classification ─────────────────────────────────────────────────

    @staticmethod
    def is_url(query: str) -> bool:
        return URL_PATTERN.search(query) is not None

    @staticmethod
    def is_spotify(query: str) -> bool:
        return SPOTIFY_PATTERN.search(query) is not None

    @staticmethod
    def is_youtube(query: str) -> bool:
        return YOUTUBE_PATTERN.search(query) is not None

    @staticmethod
    def playlist_id(url: str) -> str | None:
        values = parse_qs(urlparse(url).query).get("list")
        return values[0] if values and values[0] else None

    # ── public API ─────────────────────────────────────────────────────

    async def resolve(self, query: str) -> list[TrackDescriptor]:
        query = query.strip()
        if not query:
            raise ResolutionError(query, ErrorMessages.EMPTY_QUERY)

        logger.info(LogTemplates.RESOLVING, query)
        try:
            if self.is_spotify(query):
                tracks = await self._resolve_spotify(query)
            elif self.is_youtube(query) and "list=" in query:
                tracks = await self._resolve_youtube_playlist(query)
            elif self.is_url(query):
                tracks = await self._resolve_video(query)
            else:
                url = await self.find_video(query)
                if url is None:
                    raise ResolutionError(query, ErrorMessages.NO_VIDEO_FOUND.format(query=query))
                tracks = await self._resolve_video(url)
        except ResolutionError as e:
            logger.warning(LogTemplates.RESOLUTION_FAILED, query, e.message)
            raise

        if not tracks:
            logger.warning(LogTemplates.RESOLUTION_FAILED, query, "no tracks")
            raise ResolutionError(query)

        logger.info(LogTemplates.RESOLVED, query, len(tracks))
        return tracks

    async def find_video(self, query: str) -> str | None:
        """Return the watch URL of the best match for ``query``, or None.

        The Data API is tried first; any failure or an empty result falls
        back to a local yt-dlp search.
        """
        try:
            video_id = await self._youtube.search_video_id(query)
        except Exception as e:
            logger.warning(LogTemplates.YOUTUBE_API_SEARCH_FAILED, query, e)
        else:
            if video_id:
                return watch_url(video_id)
            logger.info(LogTemplates.YOUTUBE_API_SEARCH_EMPTY, query)

        info = await asyncio.to_thread(self._search_sync, query)
        if info is None:
            return None
        return info.watch_url

    async def aclose(self) -> None:
        await self._spotify.aclose()
        await self._youtube.aclose()

    @property
    def spotify(self) -> SpotifyClient:
        return self._spotify

    # ── Spotify ────────────────────────────────────────────────────────

    async def _resolve_spotify(self, url: str) -> list[TrackDescriptor]:
        if not self._spotify.configured:
            raise ResolutionError(url, ErrorMessages.SPOTIFY_NOT_CONFIGURED)

        path = urlparse(url).path.rstrip("/")
        resource_id = path.rsplit("/", 1)[-1]

        if "/playlist/" in path:
            return await self._resolve_spotify_playlist(url, resource_id)
        if "/track/" in path:
            return await self._resolve_spotify_track(url, resource_id)
        raise ResolutionError(url, ErrorMessages.SPOTIFY_UNSUPPORTED_URL)

    async def _resolve_spotify_track(self, url: str, track_id: str) -> list[TrackDescriptor]:
        try:
            track = await self._spotify.get_track(track_id)
        except Exception as e:
            raise ResolutionError(url, str(e)) from e

        if not track.is_matchable:
            raise ResolutionError(url, ErrorMessages.SPOTIFY_INVALID_TRACK)

        video_url = await self.find_video(f"{track.name} {track.primary_artist}")
        if video_url is None:
            return []

        return [
            TrackDescriptor(
                title=_clip_title(track.name),
                source_url=video_url,
                duration_seconds=track.duration_seconds,
                thumbnail_url=track.thumbnail_url,
            )
        ]

    async def _resolve_spotify_playlist(self, url: str, playlist_id: str) -> list[TrackDescriptor]:
        try:
            playlist = await self._spotify.get_playlist(playlist_id)
        except Exception as e:
            raise ResolutionError(url, str(e)) from e

        entries = playlist.track_list()
        if not entries:
            raise ResolutionError(url, ErrorMessages.SPOTIFY_PLAYLIST_EMPTY)

        descriptors: list[TrackDescriptor] = []
        delay = self._spotify_settings.lookup_delay_seconds
        looked_up = 0
        for track in entries:
            if not track.is_matchable:
                continue

            if looked_up and delay:
                await asyncio.sleep(delay)
            looked_up += 1

            try:
                video_url = await self.find_video(f"{track.name} {track.primary_artist} official")
            except Exception as e:
                logger.warning(LogTemplates.SPOTIFY_ITEM_FAILED, track.name, e)
                continue

            if video_url is None:
                logger.info(LogTemplates.SPOTIFY_ITEM_NO_MATCH, track.name)
                continue

            descriptors.append(
                TrackDescriptor(
                    title=_clip_title(f"{track.name} - {track.primary_artist}"),
                    source_url=video_url,
                    duration_seconds=track.duration_seconds,
                    thumbnail_url=track.thumbnail_url,
                )
            )
        return descriptors

    # ── YouTube ────────────────────────────────────────────────────────

    async def _resolve_youtube_playlist(self, url: str) -> list[TrackDescriptor]:
        playlist_id = self.playlist_id(url)
        if playlist_id is None:
            raise ResolutionError(url, ErrorMessages.YOUTUBE_PLAYLIST_ID_MISSING)

        try:
            items = await self._youtube.playlist_items(playlist_id)
        except Exception as e:
            logger.warning(LogTemplates.YOUTUBE_API_SEARCH_FAILED, url, e)
            return await self._resolve_playlist_with_ytdlp(url)

        entries = [item for item in items if item.video_id]
        if not entries:
            raise ResolutionError(url, ErrorMessages.YOUTUBE_PLAYLIST_EMPTY)

        video_ids = [cast(str, item.video_id) for item in entries]
        try:
            durations = await self._youtube.video_durations(video_ids)
        except Exception as e:
            logger.warning(LogTemplates.YOUTUBE_DURATIONS_FAILED, e)
            durations = {}

        return [
            TrackDescriptor(
                title=_clip_title(item.snippet.title),
                source_url=watch_url(video_id),
                duration_seconds=durations.get(video_id, 0),
                thumbnail_url=item.snippet.default_thumbnail,
            )
            for item, video_id in zip(entries, video_ids)
        ]

    async def _resolve_playlist_with_ytdlp(self, url: str) -> list[TrackDescriptor]:
        infos = await asyncio.to_thread(self._extract_playlist_sync, url)
        descriptors = [
            self._info_to_descriptor(info)
            for info in infos[: self._youtube_settings.playlist_limit]
        ]
        tracks = [d for d in descriptors if d is not None]
        if not tracks:
            raise ResolutionError(url, ErrorMessages.YOUTUBE_PLAYLIST_EMPTY)
        return tracks

    async def _resolve_video(self, url: str) -> list[TrackDescriptor]:
        info = await asyncio.to_thread(self._extract_info_sync, url)
        if info is None:
            raise ResolutionError(url)
        descriptor = self._info_to_descriptor(info, fallback_url=url)
        return [descriptor] if descriptor else []

    # ── yt-dlp (blocking; run in a worker thread) ──────────────────────

    def _opts(self, **overrides: Any) -> dict[str, Any]:
        opts = self._base_opts.model_copy(update=overrides) if overrides else self._base_opts
        return opts.model_dump()

    def _extract_info_sync(self, url: str) -> YtDlpTrackInfo | None:
        try:
            with YoutubeDL(params=cast(Any, self._opts())) as ydl:
                data = ydl.extract_info(url, download=False)
        except Exception:
            logger.exception(LogTemplates.YTDLP_FAILED_EXTRACT_INFO, url)
            return None
        if not isinstance(data, dict):
            return None
        return YtDlpTrackInfo.model_validate(dict(data))

    def _search_sync(self, query: str) -> YtDlpTrackInfo | None:
        try:
            with YoutubeDL(params=cast(Any, self._opts())) as ydl:
                data = ydl.extract_info(f"ytsearch1:{query}", download=False)
        except Exception:
            logger.exception(LogTemplates.YTDLP_FAILED_SEARCH, query)
            return None
        entries = _entries(data)
        return entries[0] if entries else None

    def _extract_playlist_sync(self, url: str) -> list[YtDlpTrackInfo]:
        try:
            with YoutubeDL(params=cast(Any, self._opts(noplaylist=False, extract_flat="in_playlist"))) as ydl:
                data = ydl.extract_info(url, download=False)
        except Exception:
            logger.exception(LogTemplates.YTDLP_FAILED_EXTRACT_INFO, url)
            return []
        return _entries(data)

    @staticmethod
    def _info_to_descriptor(info: YtDlpTrackInfo, fallback_url: str | None = None) -> TrackDescriptor | None:
        url = info.watch_url or fallback_url
        if not url:
            return None
        return TrackDescriptor(
            title=_clip_title(info.title),
            source_url=url,
            duration_seconds=info.duration,
            thumbnail_url=info.thumbnail,
        )


def _entries(data: Any) -> list[YtDlpTrackInfo]:
    if not isinstance(data, dict):
        return []
    entries = data.get("entries", [])
    if not isinstance(entries, list):
        return []
    return [YtDlpTrackInfo.model_validate(dict(e)) for e in entries if e]
