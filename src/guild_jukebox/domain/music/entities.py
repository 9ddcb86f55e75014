"""Core domain entities for the music bounded context."""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable

from pydantic import BaseModel, ConfigDict, Field

from guild_jukebox.domain.music.value_objects import PlaybackState, RepeatMode, format_duration
from guild_jukebox.domain.shared.exceptions import BusinessRuleViolationError
from guild_jukebox.domain.shared.messages import ErrorMessages, LogTemplates
from guild_jukebox.domain.shared.types import (
    DiscordSnowflake,
    DurationSeconds,
    HttpUrlStr,
    NonNegativeInt,
    PositiveInt,
    TrackTitleStr,
    UtcDatetimeField,
    utcnow,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_QUEUE_SIZE = 500


class TrackDescriptor(BaseModel):
    """Resolved, playable representation of a track."""

    model_config = ConfigDict(frozen=True, strict=True)

    title: TrackTitleStr
    source_url: HttpUrlStr
    duration_seconds: DurationSeconds = 0
    thumbnail_url: str = ""
    temp_file_path: str | None = None

    @property
    def duration_formatted(self) -> str:
        return format_duration(self.duration_seconds)

    @property
    def display_title(self) -> str:
        return f"{self.title} [{self.duration_formatted}]"

    def with_temp_file(self, path: str) -> TrackDescriptor:
        return self.model_copy(update={"temp_file_path": path})

    def without_temp_file(self) -> TrackDescriptor:
        if self.temp_file_path is None:
            return self
        return self.model_copy(update={"temp_file_path": None})


def delete_artifact(track: TrackDescriptor | None) -> bool:
    """Delete a descriptor's temporary artifact, if any.

    Failures are logged and swallowed; a leftover file must never take
    playback down with it.
    """
    if track is None or not track.temp_file_path:
        return False
    try:
        os.remove(track.temp_file_path)
    except FileNotFoundError:
        return False
    except OSError as exc:
        logger.warning(LogTemplates.ARTIFACT_DELETE_FAILED, track.temp_file_path, exc)
        return False
    logger.debug(LogTemplates.ARTIFACT_DELETED, track.temp_file_path)
    return True


class QueueInfo(BaseModel):
    """Read-only view of a session's queue."""

    model_config = ConfigDict(frozen=True)

    current_track: TrackDescriptor | None
    upcoming_tracks: list[TrackDescriptor]
    repeat_mode: RepeatMode

    @property
    def total_tracks(self) -> int:
        return len(self.upcoming_tracks) + (1 if self.current_track else 0)

    @property
    def total_duration_seconds(self) -> int:
        total = sum(t.duration_seconds for t in self.upcoming_tracks)
        if self.current_track:
            total += self.current_track.duration_seconds
        return total


class PlaybackSession(BaseModel):
    """Aggregate managing queue and playback state for a single guild.

    The queue is FIFO. ``current_track`` is the descriptor whose audio is
    attached to the voice session; it is replaced only once the next
    download yields a stream.
    """

    model_config = ConfigDict(strict=True)

    guild_id: DiscordSnowflake
    queue: list[TrackDescriptor] = Field(default_factory=list)
    current_track: TrackDescriptor | None = None
    downloading: bool = False
    repeat_mode: RepeatMode = RepeatMode.OFF
    state: PlaybackState = PlaybackState.IDLE
    max_queue_size: PositiveInt = DEFAULT_MAX_QUEUE_SIZE

    # Incremented whenever a new audio source is attached or the session is
    # stopped; completion callbacks carry the token they were issued with.
    playback_token: NonNegativeInt = 0

    created_at: UtcDatetimeField = Field(default_factory=utcnow)
    last_activity: UtcDatetimeField = Field(default_factory=utcnow)

    @property
    def queue_length(self) -> int:
        return len(self.queue)

    @property
    def has_tracks(self) -> bool:
        return self.current_track is not None or bool(self.queue)

    def touch(self) -> None:
        self.last_activity = utcnow()

    def enqueue(self, items: Iterable[TrackDescriptor]) -> int:
        """Append descriptors in order and return the new queue length."""
        batch = list(items)
        if len(self.queue) + len(batch) > self.max_queue_size:
            raise BusinessRuleViolationError(
                rule="MAX_QUEUE_SIZE",
                message=ErrorMessages.QUEUE_FULL.format(max_size=self.max_queue_size),
            )
        self.queue.extend(batch)
        self.touch()
        return len(self.queue)

    def dequeue_next(self) -> TrackDescriptor | None:
        """Pick the next descriptor to play according to the repeat mode.

        ``single`` hands back the current descriptor without touching the
        queue. Otherwise the head is removed; under ``all`` it comes back
        to the tail through :meth:`start_playing`.
        """
        if self.repeat_mode == RepeatMode.SINGLE and self.current_track is not None:
            return self.current_track

        if not self.queue:
            return None

        track = self.queue.pop(0)
        self.touch()
        return track

    def peek_current(self) -> TrackDescriptor | None:
        return self.current_track

    def start_playing(self, track: TrackDescriptor) -> None:
        """Mark ``track`` as current; under ``all`` append a copy to the tail."""
        replaying = self.current_track is track
        self.current_track = track
        if self.repeat_mode == RepeatMode.ALL and not replaying:
            self.queue.append(track.without_temp_file())
        self.playback_token += 1
        self.touch()

    def finish_current(self) -> TrackDescriptor | None:
        """End the current track, deleting its temporary artifact.

        Under ``single`` the descriptor stays current (minus the deleted
        artifact) so the next dequeue replays it.
        """
        finished = self.current_track
        if finished is None:
            return None

        delete_artifact(finished)
        if self.repeat_mode == RepeatMode.SINGLE:
            self.current_track = finished.without_temp_file()
        else:
            self.current_track = None
        self.touch()
        return finished

    def drop_current(self) -> TrackDescriptor | None:
        """Forget the current track after a failure (its artifact is deleted)."""
        dropped = self.current_track
        delete_artifact(dropped)
        self.current_track = None
        self.touch()
        return dropped

    def clear(self) -> int:
        """Clear the queue and return the count removed."""
        count = len(self.queue)
        for track in self.queue:
            delete_artifact(track)
        self.queue.clear()
        self.touch()
        return count

    def reset(self) -> int:
        """Return to the unconnected baseline: empty queue, nothing current.

        The playback token is advanced so callbacks from the torn-down
        source are recognised as stale.
        """
        removed = self.clear()
        self.drop_current()
        self.downloading = False
        self.state = PlaybackState.IDLE
        self.playback_token += 1
        return removed

    def set_repeat_mode(self, mode: RepeatMode) -> None:
        self.repeat_mode = mode
        self.touch()

    def snapshot(self) -> QueueInfo:
        return QueueInfo(
            current_track=self.current_track,
            upcoming_tracks=list(self.queue),
            repeat_mode=self.repeat_mode,
        )
