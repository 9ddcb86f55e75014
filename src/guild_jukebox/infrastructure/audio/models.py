"""Pydantic models for data coming back from yt-dlp and the web APIs.

External payloads are parsed into these models at the edge so the
resolver only ever sees typed, coerced values. Unknown fields are dropped.
"""

from __future__ import annotations

import re
from typing import Any, Final

from pydantic import BaseModel, ConfigDict, Field, field_validator

from guild_jukebox.domain.music.value_objects import floor_seconds
from guild_jukebox.domain.shared.types import NonEmptyStr, NonNegativeInt, PositiveInt

DEFAULT_RETRIES: Final[int] = 3
DEFAULT_SOCKET_TIMEOUT: Final[int] = 10

ISO8601_DURATION: Final[re.Pattern[str]] = re.compile(
    r"^P(?:(?P<days>\d+)D)?(?:T(?:(?P<hours>\d+)H)?(?:(?P<minutes>\d+)M)?(?:(?P<seconds>\d+(?:\.\d+)?)S)?)?$"
)


def parse_iso8601_duration(value: str | None) -> int:
    """Convert a YouTube ``contentDetails.duration`` (``PT3M5S``) to seconds.

    Unparseable values yield 0.
    """
    if not value:
        return 0
    match = ISO8601_DURATION.match(value.strip())
    if match is None:
        return 0
    parts = {k: float(v) for k, v in match.groupdict().items() if v}
    total = (
        parts.get("days", 0) * 86400
        + parts.get("hours", 0) * 3600
        + parts.get("minutes", 0) * 60
        + parts.get("seconds", 0)
    )
    return floor_seconds(total)


def _none_if_blank(v: Any) -> str | None:
    if not isinstance(v, str) or not v.strip():
        return None
    return v


# ── yt-dlp ─────────────────────────────────────────────────────────────


class YtDlpTrackInfo(BaseModel):
    """Trimmed yt-dlp extraction result.

    Before-validators coerce garbage from external yt-dlp data gracefully.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: NonEmptyStr | None = None
    webpage_url: NonEmptyStr | None = None
    url: NonEmptyStr | None = None
    title: NonEmptyStr = "Unknown Title"
    duration: NonNegativeInt = 0
    thumbnail: str = ""

    @field_validator("id", "webpage_url", "url", mode="before")
    @classmethod
    def _coerce_empty_to_none(cls, v: Any) -> str | None:
        return _none_if_blank(v)

    @field_validator("title", mode="before")
    @classmethod
    def _coerce_title(cls, v: Any) -> str:
        """Fall back to default when yt-dlp sends empty or non-string title."""
        if not isinstance(v, str) or not v.strip():
            return "Unknown Title"
        return v

    @field_validator("thumbnail", mode="before")
    @classmethod
    def _coerce_thumbnail(cls, v: Any) -> str:
        return v if isinstance(v, str) else ""

    @field_validator("duration", mode="before")
    @classmethod
    def _coerce_duration(cls, v: Any) -> int:
        """Floor to whole seconds; garbage becomes 0."""
        return floor_seconds(v)

    @property
    def watch_url(self) -> str | None:
        """Best page URL for the entry, rebuilt from the id for flat results."""
        for candidate in (self.webpage_url, self.url):
            if candidate and candidate.startswith(("http://", "https://")):
                return candidate
        if self.id:
            return f"https://www.youtube.com/watch?v={self.id}"
        return None


class YtDlpOpts(BaseModel):
    """Typed yt-dlp configuration options passed to YoutubeDL."""

    model_config = ConfigDict(frozen=True)

    quiet: bool = True
    no_warnings: bool = True
    noprogress: bool = True
    noplaylist: bool = True
    skip_download: bool = True
    retries: PositiveInt = DEFAULT_RETRIES
    socket_timeout: PositiveInt = DEFAULT_SOCKET_TIMEOUT
    extract_flat: NonEmptyStr | bool = False


# ── YouTube Data API v3 ────────────────────────────────────────────────


class YouTubeSearchId(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    video_id: str | None = Field(default=None, alias="videoId")


class YouTubeSearchItem(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    id: YouTubeSearchId = Field(default_factory=YouTubeSearchId)


class YouTubeSearchResponse(BaseModel):
    """``search.list`` response."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    items: list[YouTubeSearchItem] = Field(default_factory=list)

    def first_video_id(self) -> str | None:
        for item in self.items:
            if item.id.video_id:
                return item.id.video_id
        return None


class YouTubeThumbnail(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    url: str = ""


class YouTubeResourceId(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    video_id: str | None = Field(default=None, alias="videoId")


class YouTubePlaylistSnippet(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    title: str = ""
    thumbnails: dict[str, YouTubeThumbnail] = Field(default_factory=dict)
    resource_id: YouTubeResourceId = Field(default_factory=YouTubeResourceId, alias="resourceId")

    @property
    def default_thumbnail(self) -> str:
        thumb = self.thumbnails.get("default")
        return thumb.url if thumb else ""


class YouTubePlaylistItem(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    snippet: YouTubePlaylistSnippet = Field(default_factory=YouTubePlaylistSnippet)

    @property
    def video_id(self) -> str | None:
        return self.snippet.resource_id.video_id


class YouTubePlaylistResponse(BaseModel):
    """``playlistItems.list`` response."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    items: list[YouTubePlaylistItem] = Field(default_factory=list)


class YouTubeContentDetails(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    duration: str = ""


class YouTubeVideo(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    id: str
    content_details: YouTubeContentDetails = Field(
        default_factory=YouTubeContentDetails, alias="contentDetails"
    )

    @property
    def duration_seconds(self) -> int:
        return parse_iso8601_duration(self.content_details.duration)


class YouTubeVideosResponse(BaseModel):
    """``videos.list`` response."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    items: list[YouTubeVideo] = Field(default_factory=list)

    def durations(self) -> dict[str, int]:
        return {video.id: video.duration_seconds for video in self.items}


# ── Spotify Web API ────────────────────────────────────────────────────


class SpotifyToken(BaseModel):
    """Client-credentials grant response."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    access_token: NonEmptyStr
    token_type: str = "Bearer"
    expires_in: NonNegativeInt = 3600


class SpotifyArtist(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    name: str = ""


class SpotifyImage(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    url: str = ""


class SpotifyAlbum(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    images: list[SpotifyImage] = Field(default_factory=list)


class SpotifyTrack(BaseModel):
    """The subset of a Spotify track object used for matching."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    name: str = ""
    artists: list[SpotifyArtist] = Field(default_factory=list)
    duration_ms: NonNegativeInt = 0
    album: SpotifyAlbum | None = None

    @property
    def primary_artist(self) -> str | None:
        if self.artists and self.artists[0].name:
            return self.artists[0].name
        return None

    @property
    def is_matchable(self) -> bool:
        return bool(self.name) and self.primary_artist is not None

    @property
    def duration_seconds(self) -> int:
        return floor_seconds(self.duration_ms / 1000)

    @property
    def thumbnail_url(self) -> str:
        if self.album and self.album.images:
            return self.album.images[0].url
        return ""


class SpotifyPlaylistEntry(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    track: SpotifyTrack | None = None


class SpotifyPlaylistTracks(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    items: list[SpotifyPlaylistEntry] = Field(default_factory=list)


class SpotifyPlaylist(BaseModel):
    """``GET /playlists/{id}``: only the first page of tracks is used."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    name: str = ""
    tracks: SpotifyPlaylistTracks = Field(default_factory=SpotifyPlaylistTracks)

    def track_list(self) -> list[SpotifyTrack]:
        return [entry.track for entry in self.tracks.items if entry.track is not None]
