"""Port interface for the fetch-and-decode audio pipeline."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Protocol

ProgressSink = Callable[[float], None]
"""Receives fetch progress as a percentage in [0, 100]."""


class AudioStream(Protocol):
    """Live raw PCM stream (s16le, 48 kHz, stereo)."""

    source_url: str

    def read(self, size: int = -1) -> bytes: ...

    def close(self) -> None: ...

    @property
    def closed(self) -> bool: ...


class AudioPipeline(ABC):
    """Opens a raw PCM stream for a source URL."""

    @abstractmethod
    async def open(self, source_url: str, progress: ProgressSink | None = None) -> AudioStream:
        """Start fetching and decoding ``source_url``.

        Returns once decoded audio is flowing.

        Raises:
            DownloadError: If either stage cannot start or produces no audio.
        """
        ...
