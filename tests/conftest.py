import asyncio

import pytest

from guild_jukebox.application.interfaces.audio_pipeline import AudioPipeline
from guild_jukebox.application.interfaces.track_resolver import TrackResolver
from guild_jukebox.application.interfaces.voice_adapter import ConnectionState, VoiceAdapter
from guild_jukebox.application.services.playback_service import PlaybackApplicationService
from guild_jukebox.config.settings import PlaybackSettings
from guild_jukebox.domain.music.entities import PlaybackSession, TrackDescriptor
from guild_jukebox.domain.shared.exceptions import DownloadError, ResolutionError
from guild_jukebox.infrastructure.registry.session_registry import InMemorySessionRegistry

GUILD_ID = 111111111111111111
CHANNEL_ID = 222222222222222222


# ============================================================================
# Helpers
# ============================================================================


def make_track(name: str, duration: int = 185, temp_file_path: str | None = None) -> TrackDescriptor:
    return TrackDescriptor(
        title=name,
        source_url=f"https://www.youtube.com/watch?v={name.replace(' ', '_')}",
        duration_seconds=duration,
        temp_file_path=temp_file_path,
    )


async def settle(rounds: int = 25) -> None:
    """Let scheduled tasks and thread-safe callbacks run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


# ============================================================================
# Fakes
# ============================================================================


class FakeStream:
    def __init__(self, source_url: str) -> None:
        self.source_url = source_url
        self.close_calls = 0

    @property
    def closed(self) -> bool:
        return self.close_calls > 0

    def read(self, size: int = -1) -> bytes:
        return b"" if self.closed else b"\x00" * 3840

    def close(self) -> None:
        self.close_calls += 1


class FakePipeline(AudioPipeline):
    """Opens a :class:`FakeStream` unless the URL is marked as failing.

    Setting ``gate`` makes every ``open`` wait until the event is set;
    ``errors`` maps a URL to an arbitrary exception to raise instead.
    """

    def __init__(self) -> None:
        self.opened: list[str] = []
        self.streams: list[FakeStream] = []
        self.failing: set[str] = set()
        self.errors: dict[str, Exception] = {}
        self.gate: asyncio.Event | None = None

    async def open(self, source_url, progress=None):
        self.opened.append(source_url)
        if self.gate is not None:
            await self.gate.wait()
        if source_url in self.failing:
            raise DownloadError(source_url, "simulated failure", stage="fetch")
        if source_url in self.errors:
            raise self.errors[source_url]
        stream = FakeStream(source_url)
        self.streams.append(stream)
        return stream


class FakeVoiceAdapter(VoiceAdapter):
    """Records calls; ``stop_audio`` fires the pending ``after`` like discord.py."""

    def __init__(self) -> None:
        self.ensure_result = True
        self.recover_result = False
        self.connected = False
        self.play_error: Exception | None = None
        self.played: list[str] = []
        self.after = None
        self.disconnects = 0
        self.stop_calls = 0

    async def ensure(self, guild_id, channel_id):
        self.connected = self.ensure_result
        return self.ensure_result

    def state(self, guild_id):
        return ConnectionState.READY if self.connected else ConnectionState.UNCONNECTED

    def is_connected(self, guild_id):
        return self.connected

    def play(self, guild_id, stream, after):
        if self.play_error is not None:
            raise self.play_error
        self.played.append(stream.source_url)
        self.after = after

    def stop_audio(self, guild_id):
        self.stop_calls += 1
        after, self.after = self.after, None
        if after is None:
            return False
        after(None)
        return True

    def finish(self, error: Exception | None = None) -> None:
        """Simulate the audio source ending on its own."""
        after, self.after = self.after, None
        assert after is not None
        after(error)

    async def disconnect(self, guild_id):
        self.disconnects += 1
        self.connected = False
        self.after = None
        return True

    async def handle_disconnect(self, guild_id):
        return self.recover_result


class FakeResolver(TrackResolver):
    def __init__(self) -> None:
        self.results: dict[str, list[TrackDescriptor]] = {}
        self.gate: asyncio.Event | None = None

    async def resolve(self, query):
        if self.gate is not None:
            await self.gate.wait()
        tracks = self.results.get(query)
        if not tracks:
            raise ResolutionError(query)
        return tracks


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def sample_track():
    """A three-minute track with no artifact."""
    return make_track("Song A")


@pytest.fixture
def session():
    """An idle session for the test guild."""
    return PlaybackSession(guild_id=GUILD_ID)


@pytest.fixture
def registry():
    return InMemorySessionRegistry()


@pytest.fixture
def voice():
    return FakeVoiceAdapter()


@pytest.fixture
def pipeline():
    return FakePipeline()


@pytest.fixture
def resolver():
    return FakeResolver()


@pytest.fixture
def playback_service(registry, voice, resolver, pipeline):
    """Playback service wired to fakes with zero retry delays."""
    return PlaybackApplicationService(
        session_registry=registry,
        voice_adapter=voice,
        track_resolver=resolver,
        audio_pipeline=pipeline,
        settings=PlaybackSettings(download_retry_delay_seconds=0.0, engine_retry_delay_seconds=0.0),
    )
