"""Playback Application Service - drives the per-guild playback state machine."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from ...config.settings import PlaybackSettings
from ...domain.music.entities import QueueInfo, TrackDescriptor, delete_artifact
from ...domain.music.state_machine import PlaybackStateMachine, Transition
from ...domain.music.value_objects import Effect, PlaybackEvent, PlaybackState, RepeatMode
from ...domain.shared.exceptions import (
    DownloadError,
    PlaybackEngineError,
    VoiceConnectionError,
)
from ...domain.shared.messages import LogTemplates
from ..interfaces.voice_adapter import ConnectionState
from .playback_models import PlayResult

if TYPE_CHECKING:
    from ...domain.music.entities import PlaybackSession
    from ...domain.music.repository import SessionRegistry
    from ..interfaces.audio_pipeline import AudioPipeline, AudioStream
    from ..interfaces.track_resolver import TrackResolver
    from ..interfaces.voice_adapter import AfterPlayback, VoiceAdapter

logger = logging.getLogger(__name__)


class PlaybackApplicationService:
    """Orchestrates resolution, download, and voice playback per guild.

    Every state change goes through :meth:`PlaybackStateMachine.advance`;
    this class only carries out the effects each transition returns.
    """

    def __init__(
        self,
        *,
        session_registry: SessionRegistry,
        voice_adapter: VoiceAdapter,
        track_resolver: TrackResolver,
        audio_pipeline: AudioPipeline,
        settings: PlaybackSettings | None = None,
    ) -> None:
        self._registry = session_registry
        self._voice = voice_adapter
        self._resolver = track_resolver
        self._pipeline = audio_pipeline
        self._settings = settings or PlaybackSettings()

        self._downloads: dict[int, asyncio.Task[None]] = {}
        self._retries: dict[int, asyncio.Task[None]] = {}
        # Descriptor whose download is in flight (or failed) for a guild
        self._pending: dict[int, TrackDescriptor] = {}
        # Stream opened by a finished download, waiting to be attached
        self._ready: dict[int, AudioStream] = {}
        # Bumped by every stop so an in-flight /play can tell it was overtaken
        self._stop_generations: dict[int, int] = {}

    # ── public operations ──────────────────────────────────────────────

    async def play(self, guild_id: int, channel_id: int, query: str) -> PlayResult:
        """Join the requester's channel, resolve ``query`` and enqueue the result.

        If the guild is stopped or loses its connection while ``query``
        resolves, nothing is enqueued and ``PlayResult.cancelled`` is set.

        Raises:
            VoiceConnectionError: If the voice session cannot be made ready.
            ResolutionError: If nothing playable matches ``query``.
            BusinessRuleViolationError: If the queue would overflow.
        """
        generation = self._stop_generations.get(guild_id, 0)
        if not await self._voice.ensure(guild_id, channel_id):
            raise VoiceConnectionError(guild_id, channel_id)

        tracks = await self._resolver.resolve(query)

        overtaken = self._stop_generations.get(guild_id, 0) != generation
        if overtaken or not self._voice.is_connected(guild_id):
            logger.info(LogTemplates.QUEUE_ABANDONED, len(tracks), guild_id)
            return PlayResult(tracks=tracks, cancelled=True)

        session = self._registry.get_or_create(guild_id)
        queue_length = session.enqueue(tracks)
        logger.info(LogTemplates.QUEUE_ENQUEUED, len(tracks), guild_id, queue_length)

        transition = await self._dispatch(guild_id, PlaybackEvent.ENQUEUED)
        return PlayResult(
            tracks=tracks,
            queue_length=queue_length,
            started=transition.accepted,
        )

    def skip(self, guild_id: int) -> TrackDescriptor | None:
        """End the current track; the completion advances the queue.

        Returns:
            The skipped descriptor, or None if nothing was playing.
        """
        session = self._registry.get(guild_id)
        if session is None or session.state != PlaybackState.PLAYING or session.current_track is None:
            return None

        skipped = session.current_track
        if not self._voice.stop_audio(guild_id):
            return None

        logger.info(LogTemplates.TRACK_SKIPPED, skipped.title, guild_id)
        return skipped

    async def stop(self, guild_id: int) -> bool:
        """Clear the queue, cancel pending work, and release the connection."""
        self._stop_generations[guild_id] = self._stop_generations.get(guild_id, 0) + 1
        session = self._registry.get(guild_id)
        self._cancel_background(guild_id)
        if session is None:
            await self._voice.disconnect(guild_id)
            return False

        await self._dispatch(guild_id, PlaybackEvent.STOPPED)
        logger.info(LogTemplates.PLAYBACK_STOPPED, guild_id)
        return True

    async def disconnect(self, guild_id: int) -> bool:
        """Stop playback and forget the guild's session entirely."""
        stopped = await self.stop(guild_id)
        self._registry.remove(guild_id)
        return stopped

    def get_queue(self, guild_id: int) -> QueueInfo:
        session = self._registry.get(guild_id)
        if session is None:
            return QueueInfo(current_track=None, upcoming_tracks=[], repeat_mode=RepeatMode.OFF)
        return session.snapshot()

    def now_playing(self, guild_id: int) -> TrackDescriptor | None:
        session = self._registry.get(guild_id)
        if session is None or session.state != PlaybackState.PLAYING:
            return None
        return session.peek_current()

    def set_repeat(self, guild_id: int, mode: RepeatMode) -> RepeatMode:
        session = self._registry.get_or_create(guild_id)
        session.set_repeat_mode(mode)
        logger.info(LogTemplates.REPEAT_MODE_CHANGED, mode.value, guild_id)
        return mode

    def state(self, guild_id: int) -> PlaybackState:
        session = self._registry.get(guild_id)
        return session.state if session else PlaybackState.IDLE

    def download_task(self, guild_id: int) -> asyncio.Task[None] | None:
        return self._downloads.get(guild_id)

    def retry_task(self, guild_id: int) -> asyncio.Task[None] | None:
        return self._retries.get(guild_id)

    async def handle_voice_drop(self, guild_id: int) -> None:
        """Give a dropped voice session a chance to recover, else stop."""
        if self._voice.state(guild_id) == ConnectionState.UNCONNECTED:
            logger.debug(LogTemplates.PLAYBACK_VOICE_DROP_IGNORED, guild_id)
            return
        if await self._voice.handle_disconnect(guild_id):
            return
        await self.stop(guild_id)

    async def shutdown(self) -> None:
        for session in self._registry.all():
            await self.disconnect(session.guild_id)

    # ── state machine plumbing ─────────────────────────────────────────

    def _machine(self, guild_id: int) -> PlaybackStateMachine:
        return PlaybackStateMachine(self._registry.get_or_create(guild_id))

    async def _dispatch(self, guild_id: int, event: PlaybackEvent) -> Transition:
        machine = self._machine(guild_id)
        transition = machine.advance(event)
        for effect in transition.effects:
            await self._apply(guild_id, machine, effect)
        return transition

    async def _dispatch_safely(self, guild_id: int, event: PlaybackEvent) -> None:
        """Dispatch from a background task, where nobody awaits the outcome."""
        try:
            await self._dispatch(guild_id, event)
        except Exception:
            logger.exception(LogTemplates.PLAYBACK_DISPATCH_ERROR, event.name, guild_id)

    async def _apply(self, guild_id: int, machine: PlaybackStateMachine, effect: Effect) -> None:
        session = machine.session
        if effect == Effect.START_DOWNLOAD:
            self._start_download(guild_id, machine)
        elif effect == Effect.ATTACH_STREAM:
            await self._attach_stream(guild_id, session)
        elif effect == Effect.DELETE_ARTIFACT:
            if session.state == PlaybackState.DOWNLOADING:
                finished = session.finish_current()
                if finished is not None:
                    logger.info(LogTemplates.TRACK_FINISHED, finished.title, guild_id)
            else:
                delete_artifact(session.current_track)
        elif effect == Effect.DROP_CURRENT:
            self._drop_failed(guild_id, session)
        elif effect == Effect.SCHEDULE_DOWNLOAD_RETRY:
            self._schedule_retry(guild_id, self._settings.download_retry_delay_seconds)
        elif effect == Effect.SCHEDULE_ENGINE_RETRY:
            self._schedule_retry(guild_id, self._settings.engine_retry_delay_seconds)
        elif effect == Effect.CLEAR_QUEUE:
            removed = session.reset()
            self._discard_pending(guild_id)
            logger.debug(LogTemplates.QUEUE_CLEARED, removed, guild_id)
        elif effect == Effect.RELEASE_CONNECTION:
            self._voice.stop_audio(guild_id)
            await self._voice.disconnect(guild_id)

    # ── effects ────────────────────────────────────────────────────────

    def _start_download(self, guild_id: int, machine: PlaybackStateMachine) -> None:
        session = machine.session
        track = session.dequeue_next()
        if track is None:
            logger.info(LogTemplates.QUEUE_EMPTY, guild_id)
            machine.settle_idle()
            return

        self._pending[guild_id] = track
        task = asyncio.create_task(
            self._download(guild_id, session, track), name=f"download-{guild_id}"
        )
        self._downloads[guild_id] = task
        task.add_done_callback(lambda t, gid=guild_id: self._forget(self._downloads, gid, t))

    async def _download(self, guild_id: int, session: PlaybackSession, track: TrackDescriptor) -> None:
        token = session.playback_token
        logger.info(LogTemplates.PLAYBACK_DOWNLOADING, track.title, guild_id)
        try:
            stream = await self._pipeline.open(track.source_url)
        except DownloadError as e:
            if self._is_stale(guild_id, session, token):
                return
            logger.warning(LogTemplates.PIPELINE_FAILED, track.source_url, e.reason)
            await self._dispatch_safely(guild_id, PlaybackEvent.DOWNLOAD_FAILED)
            return
        except Exception:
            if self._is_stale(guild_id, session, token):
                return
            logger.exception(LogTemplates.PIPELINE_UNEXPECTED_ERROR, track.source_url)
            await self._dispatch_safely(guild_id, PlaybackEvent.DOWNLOAD_FAILED)
            return

        if self._is_stale(guild_id, session, token):
            stream.close()
            return

        self._ready[guild_id] = stream
        await self._dispatch_safely(guild_id, PlaybackEvent.STREAM_READY)

    def _is_stale(self, guild_id: int, session: PlaybackSession, token: int) -> bool:
        return (
            self._registry.get(guild_id) is not session
            or session.playback_token != token
            or session.state != PlaybackState.DOWNLOADING
        )

    async def _attach_stream(self, guild_id: int, session: PlaybackSession) -> None:
        stream = self._ready.pop(guild_id)
        track = self._pending.pop(guild_id)

        session.start_playing(track)
        after = self._make_after(guild_id, session.playback_token)
        try:
            self._voice.play(guild_id, stream, after)
        except (VoiceConnectionError, PlaybackEngineError) as e:
            stream.close()
            logger.error(LogTemplates.PLAYBACK_ATTACH_FAILED, guild_id, e)
            await self._dispatch(guild_id, PlaybackEvent.ENGINE_ERROR)
            return
        except Exception as e:
            stream.close()
            logger.exception(LogTemplates.PLAYBACK_ATTACH_FAILED, guild_id, e)
            await self._dispatch(guild_id, PlaybackEvent.ENGINE_ERROR)
            return

        logger.info(LogTemplates.PLAYBACK_STARTED, track.title, guild_id)

    def _drop_failed(self, guild_id: int, session: PlaybackSession) -> None:
        failed = self._pending.pop(guild_id, None)
        if failed is None or session.current_track is failed:
            failed = session.drop_current() or failed
        else:
            delete_artifact(failed)
        if failed is not None:
            logger.warning(LogTemplates.TRACK_DROPPED, failed.title, guild_id)

    def _schedule_retry(self, guild_id: int, delay: float) -> None:
        previous = self._retries.pop(guild_id, None)
        if previous is not None and not previous.done():
            previous.cancel()

        logger.info(LogTemplates.PLAYBACK_RETRY_SCHEDULED, guild_id, delay)
        task = asyncio.create_task(self._retry_after(guild_id, delay), name=f"retry-{guild_id}")
        self._retries[guild_id] = task
        task.add_done_callback(lambda t, gid=guild_id: self._forget(self._retries, gid, t))

    async def _retry_after(self, guild_id: int, delay: float) -> None:
        await asyncio.sleep(delay)
        await self._dispatch_safely(guild_id, PlaybackEvent.RETRY_DUE)

    # ── completion callbacks ───────────────────────────────────────────

    def _make_after(self, guild_id: int, token: int) -> AfterPlayback:
        """Build the voice ``after`` hook for the source issued with ``token``.

        The hook runs on the audio thread and hands off to the event loop.
        """
        loop = asyncio.get_running_loop()

        def after_callback(error: Exception | None = None) -> None:
            asyncio.run_coroutine_threadsafe(self._on_track_end(guild_id, token, error), loop)

        return after_callback

    async def _on_track_end(self, guild_id: int, token: int, error: Exception | None) -> None:
        session = self._registry.get(guild_id)
        if session is None:
            return
        if session.playback_token != token:
            logger.debug(LogTemplates.PLAYBACK_STALE_CALLBACK, guild_id, token, session.playback_token)
            return

        if error is not None:
            logger.error(LogTemplates.PLAYBACK_ENGINE_ERROR, guild_id, error)
            event = PlaybackEvent.ENGINE_ERROR
        else:
            event = PlaybackEvent.TRACK_FINISHED

        try:
            await self._dispatch(guild_id, event)
        except Exception:
            logger.exception(LogTemplates.PLAYBACK_CALLBACK_ERROR, guild_id)

    # ── housekeeping ───────────────────────────────────────────────────

    def _cancel_background(self, guild_id: int) -> None:
        for tasks in (self._retries, self._downloads):
            task = tasks.pop(guild_id, None)
            if task is not None and not task.done() and task is not asyncio.current_task():
                task.cancel()
                if tasks is self._retries:
                    logger.debug(LogTemplates.PLAYBACK_RETRY_CANCELLED, guild_id)

    def _discard_pending(self, guild_id: int) -> None:
        self._pending.pop(guild_id, None)
        stream = self._ready.pop(guild_id, None)
        if stream is not None:
            stream.close()

    @staticmethod
    def _forget(tasks: dict[int, asyncio.Task[None]], guild_id: int, task: asyncio.Task[None]) -> None:
        if tasks.get(guild_id) is task:
            del tasks[guild_id]
