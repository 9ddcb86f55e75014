"""Immutable value objects for the music bounded context."""

from __future__ import annotations

import math
from enum import Enum


class RepeatMode(Enum):
    """How the queue advances after a track finishes."""

    OFF = "off"
    SINGLE = "single"  # Replay the current track
    ALL = "all"  # Cycle the whole queue

    @classmethod
    def parse(cls, value: str) -> RepeatMode:
        try:
            return cls(value.strip().lower())
        except ValueError:
            valid = ", ".join(m.value for m in cls)
            raise ValueError(f"Unknown repeat mode {value!r}; expected one of {valid}") from None


class PlaybackState(Enum):
    """States of the per-session playback state machine."""

    IDLE = "idle"
    DOWNLOADING = "downloading"
    PLAYING = "playing"
    ERROR_RECOVERY = "error_recovery"

    @property
    def is_active(self) -> bool:
        return self in {PlaybackState.DOWNLOADING, PlaybackState.PLAYING}


class PlaybackEvent(Enum):
    """Inputs accepted by the playback state machine."""

    ENQUEUED = "enqueued"
    STREAM_READY = "stream_ready"
    DOWNLOAD_FAILED = "download_failed"
    TRACK_FINISHED = "track_finished"
    ENGINE_ERROR = "engine_error"
    RETRY_DUE = "retry_due"
    STOPPED = "stopped"


class Effect(Enum):
    """Side effects the playback service performs after a transition."""

    START_DOWNLOAD = "start_download"
    ATTACH_STREAM = "attach_stream"
    DROP_CURRENT = "drop_current"
    DELETE_ARTIFACT = "delete_artifact"
    SCHEDULE_DOWNLOAD_RETRY = "schedule_download_retry"
    SCHEDULE_ENGINE_RETRY = "schedule_engine_retry"
    CLEAR_QUEUE = "clear_queue"
    RELEASE_CONNECTION = "release_connection"


def floor_seconds(value: float | int | None) -> int:
    """Floor a provider duration to whole, non-negative seconds."""
    if value is None:
        return 0
    try:
        seconds = math.floor(float(value))
    except (TypeError, ValueError, OverflowError):
        return 0
    return max(seconds, 0)


def format_duration(seconds: int) -> str:
    """Render whole seconds as ``minutes:seconds`` with zero-padded seconds."""
    minutes, secs = divmod(floor_seconds(seconds), 60)
    return f"{minutes}:{secs:02d}"
