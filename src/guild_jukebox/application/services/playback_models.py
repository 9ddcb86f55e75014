"""DTOs for the playback application service."""

from __future__ import annotations

from pydantic import BaseModel

from ...domain.music.entities import TrackDescriptor
from ...domain.shared.types import NonNegativeInt


class PlayResult(BaseModel):
    tracks: list[TrackDescriptor]
    queue_length: NonNegativeInt = 0
    started: bool = False
    # Set when a stop or disconnect overtook the request while it resolved
    cancelled: bool = False

    @property
    def count(self) -> int:
        return len(self.tracks)

    @property
    def first(self) -> TrackDescriptor | None:
        return self.tracks[0] if self.tracks else None
