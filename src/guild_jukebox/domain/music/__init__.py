"""
Music Bounded Context

Track descriptors, the per-guild queue, and the playback state machine.
"""

from guild_jukebox.domain.music.entities import PlaybackSession, QueueInfo, TrackDescriptor
from guild_jukebox.domain.music.repository import SessionRegistry
from guild_jukebox.domain.music.state_machine import PlaybackStateMachine, Transition
from guild_jukebox.domain.music.value_objects import (
    Effect,
    PlaybackEvent,
    PlaybackState,
    RepeatMode,
    format_duration,
)

__all__ = [
    "Effect",
    "PlaybackEvent",
    "PlaybackSession",
    "PlaybackState",
    "PlaybackStateMachine",
    "QueueInfo",
    "RepeatMode",
    "SessionRegistry",
    "TrackDescriptor",
    "Transition",
    "format_duration",
]
