"""Minimal async client for the YouTube Data API v3."""

from __future__ import annotations

import logging

import httpx

from guild_jukebox.config.settings import YouTubeSettings
from guild_jukebox.domain.shared.messages import ErrorMessages
from guild_jukebox.infrastructure.audio.models import (
    YouTubePlaylistItem,
    YouTubePlaylistResponse,
    YouTubeSearchResponse,
    YouTubeVideosResponse,
)

logger = logging.getLogger(__name__)

WATCH_URL = "https://www.youtube.com/watch?v={video_id}"


def watch_url(video_id: str) -> str:
    return WATCH_URL.format(video_id=video_id)


class YouTubeAPIKeyMissingError(RuntimeError):
    """Raised when a request is attempted without an API key."""


class YouTubeDataClient:
    """Wraps ``search``, ``playlistItems`` and ``videos`` endpoints.

    HTTP and quota errors propagate as :class:`httpx.HTTPError`; callers
    decide whether to fall back.
    """

    def __init__(
        self, settings: YouTubeSettings | None = None, client: httpx.AsyncClient | None = None
    ) -> None:
        self._settings = settings or YouTubeSettings()
        self._client = client
        self._owns_client = client is None

    @property
    def configured(self) -> bool:
        return bool(self._settings.api_key.get_secret_value())

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._settings.api_base_url,
                timeout=self._settings.request_timeout_seconds,
            )
        return self._client

    async def _get(self, path: str, params: dict[str, str | int]) -> dict:
        key = self._settings.api_key.get_secret_value()
        if not key:
            raise YouTubeAPIKeyMissingError(ErrorMessages.YOUTUBE_API_KEY_MISSING)

        response = await self._get_client().get(path, params={**params, "key": key})
        response.raise_for_status()
        return response.json()

    async def search_video_id(self, query: str) -> str | None:
        """Return the id of the top video match for ``query``."""
        data = await self._get(
            "/search",
            {"part": "id", "q": query, "type": "video", "maxResults": 1},
        )
        return YouTubeSearchResponse.model_validate(data).first_video_id()

    async def playlist_items(self, playlist_id: str) -> list[YouTubePlaylistItem]:
        """Fetch the first batch of playlist entries (one request, no paging)."""
        data = await self._get(
            "/playlistItems",
            {
                "part": "snippet",
                "playlistId": playlist_id,
                "maxResults": self._settings.playlist_limit,
            },
        )
        return YouTubePlaylistResponse.model_validate(data).items

    async def video_durations(self, video_ids: list[str]) -> dict[str, int]:
        """Map video id to whole-second duration with a single batched call."""
        if not video_ids:
            return {}
        data = await self._get(
            "/videos",
            {"part": "contentDetails", "id": ",".join(video_ids)},
        )
        return YouTubeVideosResponse.model_validate(data).durations()

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None
