"""Spotify Web API client using the client-credentials grant."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Any

import httpx

from guild_jukebox.config.settings import SpotifySettings
from guild_jukebox.domain.shared.messages import ErrorMessages, LogTemplates
from guild_jukebox.infrastructure.audio.models import SpotifyPlaylist, SpotifyToken, SpotifyTrack

logger = logging.getLogger(__name__)


class SpotifyNotConfiguredError(RuntimeError):
    """Raised when Spotify credentials are missing."""


class SpotifyClient:
    """Fetches tracks and playlists from Spotify.

    The access token is fetched on first use and then refreshed by a
    background task started with :meth:`start_token_refresher`.
    """

    def __init__(
        self, settings: SpotifySettings | None = None, client: httpx.AsyncClient | None = None
    ) -> None:
        self._settings = settings or SpotifySettings()
        self._client = client
        self._owns_client = client is None
        self._token: str | None = None
        self._token_lock = asyncio.Lock()
        self._refresher: asyncio.Task[None] | None = None

    @property
    def configured(self) -> bool:
        return self._settings.configured

    @property
    def has_token(self) -> bool:
        return self._token is not None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._settings.request_timeout_seconds)
        return self._client

    async def refresh_token(self) -> str:
        if not self.configured:
            raise SpotifyNotConfiguredError(ErrorMessages.SPOTIFY_NOT_CONFIGURED)

        response = await self._get_client().post(
            self._settings.accounts_url,
            data={"grant_type": "client_credentials"},
            auth=(self._settings.client_id, self._settings.client_secret.get_secret_value()),
        )
        response.raise_for_status()
        token = SpotifyToken.model_validate(response.json())
        self._token = token.access_token
        logger.info(LogTemplates.SPOTIFY_TOKEN_REFRESHED, token.expires_in)
        return self._token

    async def _ensure_token(self) -> str:
        async with self._token_lock:
            if self._token is None:
                await self.refresh_token()
            assert self._token is not None
            return self._token

    async def _get(self, path: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        token = await self._ensure_token()
        response = await self._get_client().get(
            f"{self._settings.api_base_url}{path}",
            params=params,
            headers={"Authorization": f"Bearer {token}"},
        )
        response.raise_for_status()
        return response.json()

    async def get_track(self, track_id: str) -> SpotifyTrack:
        return SpotifyTrack.model_validate(await self._get(f"/tracks/{track_id}"))

    async def get_playlist(self, playlist_id: str) -> SpotifyPlaylist:
        """Fetch a playlist with the first page of its tracks."""
        data = await self._get(
            f"/playlists/{playlist_id}",
            params={
                "fields": "name,tracks.items(track(name,duration_ms,artists(name),album(images)))",
                "limit": self._settings.playlist_limit,
            },
        )
        playlist = SpotifyPlaylist.model_validate(data)
        limit = self._settings.playlist_limit
        if len(playlist.tracks.items) > limit:
            playlist = playlist.model_copy(
                update={"tracks": playlist.tracks.model_copy(update={"items": playlist.tracks.items[:limit]})}
            )
        return playlist

    # ── token refresher ────────────────────────────────────────────────

    def start_token_refresher(self) -> None:
        if not self.configured or self._refresher is not None:
            return
        self._refresher = asyncio.create_task(self._refresh_loop(), name="spotify-token-refresher")
        logger.info(LogTemplates.SPOTIFY_REFRESHER_STARTED, self._settings.token_refresh_minutes)

    async def _refresh_loop(self) -> None:
        interval = self._settings.token_refresh_minutes * 60
        while True:
            try:
                async with self._token_lock:
                    await self.refresh_token()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(LogTemplates.SPOTIFY_TOKEN_REFRESH_FAILED, e)
            await asyncio.sleep(interval)

    async def stop_token_refresher(self) -> None:
        task, self._refresher = self._refresher, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        logger.info(LogTemplates.SPOTIFY_REFRESHER_STOPPED)

    async def aclose(self) -> None:
        await self.stop_token_refresher()
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None
