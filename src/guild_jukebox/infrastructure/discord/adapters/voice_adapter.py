"""Discord voice adapter: per-guild connection manager and audio attachment."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

import discord

from guild_jukebox.application.interfaces.voice_adapter import (
    AfterPlayback,
    ConnectionState,
    VoiceAdapter,
)
from guild_jukebox.config.settings import AudioSettings, PlaybackSettings
from guild_jukebox.domain.shared.exceptions import PlaybackEngineError, VoiceConnectionError
from guild_jukebox.domain.shared.messages import ErrorMessages, LogTemplates
from guild_jukebox.infrastructure.audio.pipeline import PipelinePCMAudio

if TYPE_CHECKING:
    from guild_jukebox.application.interfaces.audio_pipeline import AudioStream

logger = logging.getLogger(__name__)

RECOVERY_POLL_INTERVAL: float = 0.25


class DiscordVoiceAdapter(VoiceAdapter):
    """Tracks one voice session per guild.

    ``unconnected -> connecting -> ready``; a session that does not become
    ready in time is force-disconnected and forgotten.
    """

    def __init__(
        self,
        bot: discord.Client,
        audio_settings: AudioSettings | None = None,
        playback_settings: PlaybackSettings | None = None,
    ) -> None:
        self._bot = bot
        self._audio = audio_settings or AudioSettings()
        self._timing = playback_settings or PlaybackSettings()
        self._states: dict[int, ConnectionState] = {}
        self._recoveries: dict[int, asyncio.Task[bool]] = {}

    def _get_guild(self, guild_id: int) -> discord.Guild | None:
        return self._bot.get_guild(guild_id)

    def _get_voice_client(self, guild_id: int) -> discord.VoiceClient | None:
        guild = self._get_guild(guild_id)
        if not guild:
            return None

        vc = guild.voice_client
        return vc if isinstance(vc, discord.VoiceClient) else None

    def _get_voice_channel(
        self, guild_id: int, channel_id: int
    ) -> discord.VoiceChannel | discord.StageChannel | None:
        guild = self._get_guild(guild_id)
        if not guild:
            logger.warning(LogTemplates.GUILD_NOT_FOUND, guild_id)
            return None

        channel = guild.get_channel(channel_id)
        if not isinstance(channel, discord.VoiceChannel | discord.StageChannel):
            logger.warning(LogTemplates.CHANNEL_NOT_VOICE, channel_id)
            return None
        return channel

    def _set_state(self, guild_id: int, new: ConnectionState) -> None:
        old = self._states.get(guild_id, ConnectionState.UNCONNECTED)
        if new == ConnectionState.UNCONNECTED:
            self._states.pop(guild_id, None)
        else:
            self._states[guild_id] = new
        if old != new:
            logger.debug(LogTemplates.VOICE_STATE_CHANGED, guild_id, old.value, new.value)

    def state(self, guild_id: int) -> ConnectionState:
        return self._states.get(guild_id, ConnectionState.UNCONNECTED)

    def is_connected(self, guild_id: int) -> bool:
        vc = self._get_voice_client(guild_id)
        return vc is not None and vc.is_connected()

    # ── connection lifecycle ───────────────────────────────────────────

    async def ensure(self, guild_id: int, channel_id: int) -> bool:
        """Connect if not connected, move if in a different channel."""
        vc = self._get_voice_client(guild_id)

        if vc and not vc.is_connected():
            logger.warning(LogTemplates.VOICE_STALE_CLEANUP, guild_id)
            await self._destroy(guild_id)
            vc = None

        if vc and vc.channel:
            if vc.channel.id == channel_id:
                self._set_state(guild_id, ConnectionState.READY)
                return True
            return await self._move(guild_id, vc, channel_id)

        return await self._connect(guild_id, channel_id)

    async def _connect(self, guild_id: int, channel_id: int) -> bool:
        channel = self._get_voice_channel(guild_id, channel_id)
        if channel is None:
            return False

        timeout = self._timing.ready_timeout_seconds
        self._set_state(guild_id, ConnectionState.CONNECTING)
        logger.info(LogTemplates.VOICE_CONNECTING, channel_id, guild_id)
        try:
            async with asyncio.timeout(timeout):
                await channel.connect(self_deaf=True, timeout=timeout)
        except TimeoutError:
            logger.error(LogTemplates.VOICE_CONNECTION_TIMEOUT, channel_id)
        except discord.Forbidden:
            logger.error(LogTemplates.VOICE_NO_PERMISSION, channel_id)
        except discord.ClientException as e:
            logger.error(LogTemplates.VOICE_CLIENT_ERROR, e)
        except Exception as e:
            logger.exception(LogTemplates.VOICE_CLIENT_ERROR, e)
        else:
            self._set_state(guild_id, ConnectionState.READY)
            logger.info(LogTemplates.VOICE_CONNECTED, channel.name, channel.guild.name)
            return True

        await self._destroy(guild_id)
        return False

    async def _move(self, guild_id: int, vc: discord.VoiceClient, channel_id: int) -> bool:
        channel = self._get_voice_channel(guild_id, channel_id)
        if channel is None:
            return False

        self._set_state(guild_id, ConnectionState.CONNECTING)
        try:
            async with asyncio.timeout(self._timing.ready_timeout_seconds):
                await vc.move_to(channel)
        except TimeoutError:
            logger.error(LogTemplates.VOICE_MOVE_TIMEOUT, channel_id)
        except Exception as e:
            logger.exception(LogTemplates.VOICE_CLIENT_ERROR, e)
        else:
            self._set_state(guild_id, ConnectionState.READY)
            logger.info(LogTemplates.VOICE_MOVED, channel.name)
            return True

        await self._destroy(guild_id)
        return False

    async def _destroy(self, guild_id: int) -> None:
        """Force-disconnect and forget the guild's voice client."""
        vc = self._get_voice_client(guild_id)
        if vc is not None:
            try:
                if vc.is_playing() or vc.is_paused():
                    vc.stop()
                await vc.disconnect(force=True)
            except Exception as e:
                logger.error(LogTemplates.VOICE_CLEANUP_ERROR, guild_id, e)
        self._set_state(guild_id, ConnectionState.UNCONNECTED)

    async def disconnect(self, guild_id: int) -> bool:
        recovery = self._recoveries.pop(guild_id, None)
        if recovery is not None and not recovery.done():
            recovery.cancel()

        had_client = self._get_voice_client(guild_id) is not None
        await self._destroy(guild_id)
        if had_client:
            logger.info(LogTemplates.VOICE_DISCONNECTED, guild_id)
        return True

    async def handle_disconnect(self, guild_id: int) -> bool:
        """Single-flight recovery: concurrent callers share one attempt."""
        task = self._recoveries.get(guild_id)
        if task is not None and not task.done():
            logger.debug(LogTemplates.VOICE_RECOVERY_IN_FLIGHT, guild_id)
        else:
            task = asyncio.create_task(self._recover(guild_id), name=f"voice-recovery-{guild_id}")
            self._recoveries[guild_id] = task
            task.add_done_callback(lambda t, gid=guild_id: self._forget_recovery(gid, t))
        return await asyncio.shield(task)

    def _forget_recovery(self, guild_id: int, task: asyncio.Task[bool]) -> None:
        if self._recoveries.get(guild_id) is task:
            del self._recoveries[guild_id]

    async def _recover(self, guild_id: int) -> bool:
        timeout = self._timing.reconnect_timeout_seconds
        self._set_state(guild_id, ConnectionState.CONNECTING)
        logger.warning(LogTemplates.VOICE_RECOVERY_STARTED, guild_id, timeout)
        try:
            async with asyncio.timeout(timeout):
                while not self.is_connected(guild_id):
                    await asyncio.sleep(RECOVERY_POLL_INTERVAL)
        except TimeoutError:
            logger.warning(LogTemplates.VOICE_RECOVERY_FAILED, guild_id)
            await self._destroy(guild_id)
            return False

        self._set_state(guild_id, ConnectionState.READY)
        logger.info(LogTemplates.VOICE_RECOVERED, guild_id)
        return True

    # ── audio ──────────────────────────────────────────────────────────

    def play(self, guild_id: int, stream: AudioStream, after: AfterPlayback) -> None:
        vc = self._get_voice_client(guild_id)
        if vc is None or not vc.is_connected():
            logger.warning(LogTemplates.VOICE_NOT_CONNECTED, guild_id)
            raise VoiceConnectionError(guild_id, message=ErrorMessages.NOT_CONNECTED.format(guild_id=guild_id))

        if vc.is_playing() or vc.is_paused():
            vc.stop()

        source = discord.PCMVolumeTransformer(PipelinePCMAudio(stream), volume=self._audio.default_volume)
        try:
            vc.play(source, after=after)
        except Exception as e:
            source.cleanup()
            logger.error(LogTemplates.PLAYBACK_ATTACH_FAILED, guild_id, e)
            raise PlaybackEngineError(guild_id, e) from e

    def stop_audio(self, guild_id: int) -> bool:
        vc = self._get_voice_client(guild_id)
        if vc is None:
            return False

        if vc.is_playing() or vc.is_paused():
            vc.stop()
            return True
        return False

    def get_current_channel_id(self, guild_id: int) -> int | None:
        vc = self._get_voice_client(guild_id)
        if vc and vc.channel:
            return vc.channel.id
        return None

    async def disconnect_all(self) -> int:
        guild_ids = [vc.guild.id for vc in self._bot.voice_clients if isinstance(vc, discord.VoiceClient)]
        for guild_id in guild_ids:
            await self.disconnect(guild_id)
        return len(guild_ids)
