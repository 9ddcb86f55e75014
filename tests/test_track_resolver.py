"""
Unit Tests for YtDlpTrackResolver

The Data API and Spotify are served by ``httpx.MockTransport``; yt-dlp
calls are patched at the resolver's blocking helpers.
"""

from unittest.mock import AsyncMock, call, patch

import httpx
import pytest

from guild_jukebox.config.settings import SpotifySettings, YouTubeSettings
from guild_jukebox.domain.shared.exceptions import ResolutionError
from guild_jukebox.infrastructure.audio.models import YtDlpTrackInfo
from guild_jukebox.infrastructure.audio.spotify_api import SpotifyClient
from guild_jukebox.infrastructure.audio.track_resolver import YtDlpTrackResolver
from guild_jukebox.infrastructure.audio.youtube_api import YouTubeDataClient, watch_url

YOUTUBE_BASE = "https://www.googleapis.com/youtube/v3"


def _youtube(handler, api_key: str = "yt-key") -> YouTubeDataClient:
    settings = YouTubeSettings(api_key=api_key)
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url=YOUTUBE_BASE)
    return YouTubeDataClient(settings, client=client)


def _spotify(
    handler, configured: bool = True, lookup_delay: float = 0
) -> tuple[SpotifyClient, SpotifySettings]:
    if configured:
        settings = SpotifySettings(client_id="id", client_secret="secret", lookup_delay_seconds=lookup_delay)
    else:
        settings = SpotifySettings()
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return SpotifyClient(settings, client=client), settings


def _unreachable(request: httpx.Request) -> httpx.Response:
    raise AssertionError(f"unexpected request to {request.url}")


def _resolver(
    youtube_handler=_unreachable, spotify_handler=_unreachable, spotify_configured=True, lookup_delay=0
):
    spotify, spotify_settings = _spotify(spotify_handler, spotify_configured, lookup_delay)
    return YtDlpTrackResolver(
        youtube=_youtube(youtube_handler),
        spotify=spotify,
        youtube_settings=YouTubeSettings(api_key="yt-key"),
        spotify_settings=spotify_settings,
    )


def _spotify_track(name: str, artist: str | None = "Artist", duration_ms: int = 200_500) -> dict:
    return {
        "name": name,
        "duration_ms": duration_ms,
        "artists": [{"name": artist}] if artist else [],
        "album": {"images": [{"url": "https://i.scdn.co/image/x"}]},
    }


def _spotify_handler(resources: dict[str, dict]):
    def handler(request: httpx.Request) -> httpx.Response:
        if request.method == "POST":
            return httpx.Response(200, json={"access_token": "tok", "expires_in": 3600})
        assert request.headers["Authorization"] == "Bearer tok"
        return httpx.Response(200, json=resources[request.url.path])

    return handler


# =============================================================================
# Classification and validation
# =============================================================================


class TestClassification:
    """Tests for the URL helpers."""

    def test_playlist_id(self):
        assert YtDlpTrackResolver.playlist_id("https://www.youtube.com/playlist?list=PL123") == "PL123"
        assert YtDlpTrackResolver.playlist_id("https://www.youtube.com/watch?v=abc") is None

    def test_source_detection(self):
        assert YtDlpTrackResolver.is_spotify("https://open.spotify.com/track/1")
        assert YtDlpTrackResolver.is_youtube("https://youtu.be/abc")
        assert not YtDlpTrackResolver.is_url("never gonna give you up")

    @pytest.mark.asyncio
    async def test_empty_query_is_rejected(self):
        with pytest.raises(ResolutionError):
            await _resolver().resolve("   ")


# =============================================================================
# Free text and single videos
# =============================================================================


class TestSearch:
    """Tests for free-text search and single-video resolution."""

    @pytest.mark.asyncio
    async def test_search_uses_data_api(self):
        def handler(request):
            assert request.url.path.endswith("/search")
            assert request.url.params["q"] == "daft punk"
            assert request.url.params["key"] == "yt-key"
            return httpx.Response(200, json={"items": [{"id": {"videoId": "vid1"}}]})

        resolver = _resolver(youtube_handler=handler)
        info = YtDlpTrackInfo(id="vid1", webpage_url=watch_url("vid1"), title="One More Time", duration=320)

        with patch.object(resolver, "_extract_info_sync", return_value=info) as extract:
            tracks = await resolver.resolve("daft punk")

        extract.assert_called_once_with(watch_url("vid1"))
        assert len(tracks) == 1
        assert tracks[0].title == "One More Time"
        assert tracks[0].duration_seconds == 320
        assert tracks[0].source_url == watch_url("vid1")

    @pytest.mark.asyncio
    async def test_api_failure_falls_back_to_ytdlp_search(self):
        def handler(request):
            return httpx.Response(403, json={"error": {"message": "quotaExceeded"}})

        resolver = _resolver(youtube_handler=handler)
        found = YtDlpTrackInfo(id="vid2")
        info = YtDlpTrackInfo(id="vid2", title="Fallback", duration=60)

        with (
            patch.object(resolver, "_search_sync", return_value=found) as search,
            patch.object(resolver, "_extract_info_sync", return_value=info),
        ):
            tracks = await resolver.resolve("obscure song")

        search.assert_called_once_with("obscure song")
        assert tracks[0].source_url == watch_url("vid2")

    @pytest.mark.asyncio
    async def test_missing_api_key_falls_back_without_request(self):
        spotify, _ = _spotify(_unreachable, configured=False)
        resolver = YtDlpTrackResolver(youtube=_youtube(_unreachable, api_key=""), spotify=spotify)

        with (
            patch.object(resolver, "_search_sync", return_value=YtDlpTrackInfo(id="vid3")),
            patch.object(resolver, "_extract_info_sync", return_value=YtDlpTrackInfo(id="vid3")),
        ):
            tracks = await resolver.resolve("anything")

        assert tracks[0].source_url == watch_url("vid3")

    @pytest.mark.asyncio
    async def test_no_match_anywhere(self):
        def handler(request):
            return httpx.Response(200, json={"items": []})

        resolver = _resolver(youtube_handler=handler)

        with patch.object(resolver, "_search_sync", return_value=None):
            with pytest.raises(ResolutionError):
                await resolver.resolve("zzzz")

    @pytest.mark.asyncio
    async def test_direct_url_uses_ytdlp(self):
        resolver = _resolver()
        url = "https://soundcloud.com/artist/track"
        info = YtDlpTrackInfo(webpage_url=url, title="Cloud", duration=99.9)

        with patch.object(resolver, "_extract_info_sync", return_value=info):
            tracks = await resolver.resolve(url)

        assert tracks[0].source_url == url
        assert tracks[0].duration_seconds == 99

    @pytest.mark.asyncio
    async def test_unextractable_url(self):
        resolver = _resolver()

        with patch.object(resolver, "_extract_info_sync", return_value=None):
            with pytest.raises(ResolutionError):
                await resolver.resolve("https://www.youtube.com/watch?v=gone")

    @pytest.mark.asyncio
    async def test_long_titles_are_clipped(self):
        resolver = _resolver()
        info = YtDlpTrackInfo(id="long", title="x" * 800)

        with patch.object(resolver, "_extract_info_sync", return_value=info):
            tracks = await resolver.resolve("https://www.youtube.com/watch?v=long")

        assert len(tracks[0].title) == 500


# =============================================================================
# YouTube playlists
# =============================================================================


def _playlist_item(video_id: str | None, title: str) -> dict:
    snippet = {"title": title, "thumbnails": {"default": {"url": f"https://i.ytimg.com/{title}.jpg"}}}
    if video_id:
        snippet["resourceId"] = {"kind": "youtube#video", "videoId": video_id}
    return {"snippet": snippet}


class TestYouTubePlaylist:
    """Tests for playlist listing and duration lookup."""

    URL = "https://www.youtube.com/playlist?list=PL1"

    @pytest.mark.asyncio
    async def test_playlist_with_batched_durations(self):
        calls = []

        def handler(request):
            calls.append(request.url.path)
            if request.url.path.endswith("/playlistItems"):
                assert request.url.params["playlistId"] == "PL1"
                assert request.url.params["maxResults"] == "50"
                return httpx.Response(
                    200,
                    json={
                        "items": [
                            _playlist_item("v1", "First"),
                            _playlist_item(None, "Deleted video"),
                            _playlist_item("v2", "Second"),
                        ]
                    },
                )
            assert request.url.params["id"] == "v1,v2"
            return httpx.Response(
                200,
                json={
                    "items": [
                        {"id": "v1", "contentDetails": {"duration": "PT3M5S"}},
                        {"id": "v2", "contentDetails": {"duration": "PT1H2M"}},
                    ]
                },
            )

        tracks = await _resolver(youtube_handler=handler).resolve(self.URL)

        assert [t.title for t in tracks] == ["First", "Second"]
        assert [t.duration_seconds for t in tracks] == [185, 3720]
        assert tracks[0].source_url == watch_url("v1")
        assert tracks[0].thumbnail_url == "https://i.ytimg.com/First.jpg"
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_duration_failure_yields_zero(self):
        def handler(request):
            if request.url.path.endswith("/playlistItems"):
                return httpx.Response(200, json={"items": [_playlist_item("v1", "First")]})
            return httpx.Response(500)

        tracks = await _resolver(youtube_handler=handler).resolve(self.URL)

        assert tracks[0].duration_seconds == 0

    @pytest.mark.asyncio
    async def test_api_failure_falls_back_to_flat_extraction(self):
        def handler(request):
            return httpx.Response(403)

        resolver = _resolver(youtube_handler=handler)
        entries = [YtDlpTrackInfo(id="v1", title="One"), YtDlpTrackInfo(id="v2")]

        with patch.object(resolver, "_extract_playlist_sync", return_value=entries) as extract:
            tracks = await resolver.resolve(self.URL)

        extract.assert_called_once_with(self.URL)
        assert [t.title for t in tracks] == ["One", "Unknown Title"]

    @pytest.mark.asyncio
    async def test_empty_playlist(self):
        def handler(request):
            return httpx.Response(200, json={"items": []})

        with pytest.raises(ResolutionError):
            await _resolver(youtube_handler=handler).resolve(self.URL)


# =============================================================================
# Spotify
# =============================================================================


class TestSpotify:
    """Tests for matching Spotify tracks and playlists to videos."""

    @pytest.mark.asyncio
    async def test_not_configured(self):
        resolver = _resolver(spotify_configured=False)

        with pytest.raises(ResolutionError):
            await resolver.resolve("https://open.spotify.com/track/abc")

    @pytest.mark.asyncio
    async def test_unsupported_url(self):
        resolver = _resolver(spotify_handler=_spotify_handler({}))

        with pytest.raises(ResolutionError):
            await resolver.resolve("https://open.spotify.com/album/abc")

    @pytest.mark.asyncio
    async def test_track(self):
        handler = _spotify_handler({"/v1/tracks/abc": _spotify_track("Harder Better", "Daft Punk")})
        resolver = _resolver(spotify_handler=handler)

        with patch.object(
            resolver, "find_video", new=AsyncMock(return_value=watch_url("hb"))
        ) as find:
            tracks = await resolver.resolve("https://open.spotify.com/track/abc?si=123")

        find.assert_awaited_once_with("Harder Better Daft Punk")
        assert tracks[0].title == "Harder Better"
        assert tracks[0].duration_seconds == 200
        assert tracks[0].thumbnail_url == "https://i.scdn.co/image/x"

    @pytest.mark.asyncio
    async def test_playlist_skips_unmatched_items(self):
        playlist = {
            "name": "Mix",
            "tracks": {
                "items": [
                    {"track": _spotify_track("Good", "Band")},
                    {"track": _spotify_track("No Artist", None)},
                    {"track": None},
                    {"track": _spotify_track("Lost", "Nobody")},
                ]
            },
        }
        resolver = _resolver(spotify_handler=_spotify_handler({"/v1/playlists/pl": playlist}))

        async def find(query):
            return watch_url("good") if query.startswith("Good") else None

        with patch.object(resolver, "find_video", new=AsyncMock(side_effect=find)) as finder:
            tracks = await resolver.resolve("https://open.spotify.com/playlist/pl")

        assert finder.await_count == 2
        finder.assert_any_await("Good Band official")
        assert [t.title for t in tracks] == ["Good - Band"]
        assert tracks[0].source_url == watch_url("good")

    @pytest.mark.asyncio
    async def test_playlist_lookups_are_spaced_out(self):
        playlist = {
            "tracks": {
                "items": [
                    {"track": _spotify_track("A", "X")},
                    {"track": _spotify_track("No Artist", None)},
                    {"track": _spotify_track("B", "Y")},
                    {"track": _spotify_track("C", "Z")},
                ]
            }
        }
        resolver = _resolver(
            spotify_handler=_spotify_handler({"/v1/playlists/pl": playlist}),
            lookup_delay=SpotifySettings().lookup_delay_seconds,
        )

        with (
            patch.object(resolver, "find_video", new=AsyncMock(return_value=watch_url("v"))) as finder,
            patch(
                "guild_jukebox.infrastructure.audio.track_resolver.asyncio.sleep", new=AsyncMock()
            ) as sleep,
        ):
            tracks = await resolver.resolve("https://open.spotify.com/playlist/pl")

        assert len(tracks) == 3
        assert finder.await_count == 3
        assert sleep.await_args_list == [call(0.5), call(0.5)]

    @pytest.mark.asyncio
    async def test_playlist_lookup_errors_are_skipped(self):
        playlist = {"tracks": {"items": [{"track": _spotify_track("A", "X")}, {"track": _spotify_track("B", "Y")}]}}
        resolver = _resolver(spotify_handler=_spotify_handler({"/v1/playlists/pl": playlist}))

        with patch.object(
            resolver,
            "find_video",
            new=AsyncMock(side_effect=[RuntimeError("boom"), watch_url("b")]),
        ):
            tracks = await resolver.resolve("https://open.spotify.com/playlist/pl")

        assert [t.title for t in tracks] == ["B - Y"]

    @pytest.mark.asyncio
    async def test_api_error_is_a_resolution_error(self):
        def handler(request):
            if request.method == "POST":
                return httpx.Response(200, json={"access_token": "tok"})
            return httpx.Response(404)

        resolver = _resolver(spotify_handler=handler)

        with pytest.raises(ResolutionError):
            await resolver.resolve("https://open.spotify.com/track/missing")
