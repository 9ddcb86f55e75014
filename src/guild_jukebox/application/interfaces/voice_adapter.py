"""Port interface for the per-guild voice connection."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .audio_pipeline import AudioStream

AfterPlayback = Callable[[Exception | None], None]
"""Called from the audio thread when a source ends, with the error if any."""


class ConnectionState(Enum):
    """Lifecycle of one guild's voice connection.

    unconnected -> connecting -> ready
    ready -> connecting -> ready            (transient drop recovered)
    ready/connecting -> unconnected         (readiness timed out)
    """

    UNCONNECTED = "unconnected"
    CONNECTING = "connecting"
    READY = "ready"


class VoiceAdapter(ABC):
    """Owns voice sessions and the audio attached to them."""

    @abstractmethod
    async def ensure(self, guild_id: int, channel_id: int) -> bool:
        """Make sure a ready voice session exists in ``channel_id``."""
        ...

    @abstractmethod
    def state(self, guild_id: int) -> ConnectionState:
        ...

    @abstractmethod
    def is_connected(self, guild_id: int) -> bool:
        ...

    @abstractmethod
    def play(self, guild_id: int, stream: "AudioStream", after: AfterPlayback) -> None:
        """Attach ``stream`` as the active audio source.

        Raises:
            VoiceConnectionError: If there is no ready session.
            PlaybackEngineError: If the audio engine rejects the source.
        """
        ...

    @abstractmethod
    def stop_audio(self, guild_id: int) -> bool:
        """End the current audio source; its ``after`` callback still fires."""
        ...

    @abstractmethod
    async def disconnect(self, guild_id: int) -> bool:
        """Tear down the voice session and return to unconnected."""
        ...

    @abstractmethod
    async def handle_disconnect(self, guild_id: int) -> bool:
        """Give a dropped session a bounded chance to recover.

        Returns:
            True if the session became ready again.
        """
        ...
