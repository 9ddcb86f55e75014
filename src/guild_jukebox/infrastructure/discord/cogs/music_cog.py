"""Slash-command music cog delegating to the playback application service."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import discord
from discord import app_commands
from discord.ext import commands

from guild_jukebox.domain.music.entities import QueueInfo, TrackDescriptor
from guild_jukebox.domain.music.value_objects import RepeatMode, format_duration
from guild_jukebox.domain.shared.exceptions import (
    BusinessRuleViolationError,
    ResolutionError,
    VoiceConnectionError,
)
from guild_jukebox.domain.shared.messages import DiscordUIMessages, EmojiConstants
from guild_jukebox.utils.reply import truncate

if TYPE_CHECKING:
    from ....config.container import Container

logger = logging.getLogger(__name__)

QUEUE_PREVIEW = 10

REPEAT_EMOJI: dict[RepeatMode, str] = {
    RepeatMode.OFF: EmojiConstants.REPEAT_OFF,
    RepeatMode.SINGLE: EmojiConstants.REPEAT_SINGLE,
    RepeatMode.ALL: EmojiConstants.REPEAT_ALL,
}

HELP_LINES: tuple[tuple[str, str], ...] = (
    ("/play <query>", "Play a YouTube/Spotify URL or search YouTube"),
    ("/skip", "Skip the current track"),
    ("/stop", "Stop playback and clear the queue"),
    ("/disconnect", "Leave the voice channel"),
    ("/queue", "Show the queue"),
    ("/np", "Show the track that is playing"),
    ("/repeat <off|single|all>", "Set the repeat mode"),
)


class MusicCog(commands.Cog):
    def __init__(self, bot: commands.Bot, container: Container) -> None:
        self.bot = bot
        self.container = container

    async def _send_ephemeral(self, interaction: discord.Interaction, message: str) -> None:
        if interaction.response.is_done():
            await interaction.followup.send(message, ephemeral=True)
        else:
            await interaction.response.send_message(message, ephemeral=True)

    async def _get_voice_channel_id(self, interaction: discord.Interaction) -> int | None:
        if not interaction.guild:
            await self._send_ephemeral(interaction, DiscordUIMessages.STATE_SERVER_ONLY)
            return None

        user = interaction.user
        if not isinstance(user, discord.Member) or not user.voice or not user.voice.channel:
            await self._send_ephemeral(interaction, DiscordUIMessages.STATE_NEED_TO_BE_IN_VOICE)
            return None

        return user.voice.channel.id

    async def _require_guild(self, interaction: discord.Interaction) -> int | None:
        if not interaction.guild:
            await self._send_ephemeral(interaction, DiscordUIMessages.STATE_SERVER_ONLY)
            return None
        return interaction.guild.id

    # ── commands ───────────────────────────────────────────────────────

    @app_commands.command(name="play", description="Play a song by URL or search query.")
    @app_commands.describe(query="YouTube/Spotify URL or search query")
    async def play(self, interaction: discord.Interaction, query: str) -> None:
        channel_id = await self._get_voice_channel_id(interaction)
        if channel_id is None:
            return
        assert interaction.guild is not None

        # Resolution and joining voice can exceed the 3-second interaction deadline
        await interaction.response.defer()

        try:
            result = await self.container.playback_service.play(
                interaction.guild.id, channel_id, query
            )
        except VoiceConnectionError:
            await interaction.followup.send(DiscordUIMessages.ERROR_COULD_NOT_JOIN_VOICE, ephemeral=True)
            return
        except ResolutionError:
            await interaction.followup.send(
                DiscordUIMessages.ERROR_TRACK_NOT_FOUND.format(query=truncate(query, 100)),
                ephemeral=True,
            )
            return
        except BusinessRuleViolationError as e:
            await interaction.followup.send(e.message, ephemeral=True)
            return

        if result.cancelled:
            await interaction.followup.send(DiscordUIMessages.ACTION_PLAY_CANCELLED, ephemeral=True)
            return

        first = result.first
        assert first is not None
        if result.count == 1:
            content = DiscordUIMessages.ACTION_QUEUED_ONE.format(
                title=truncate(first.title, 80), duration=first.duration_formatted
            )
        else:
            content = DiscordUIMessages.ACTION_QUEUED_MANY.format(
                count=result.count, title=truncate(first.title, 80)
            )
        await interaction.followup.send(content)

    @app_commands.command(name="skip", description="Skip the current track.")
    async def skip(self, interaction: discord.Interaction) -> None:
        guild_id = await self._require_guild(interaction)
        if guild_id is None:
            return

        skipped = self.container.playback_service.skip(guild_id)
        if skipped is None:
            await self._send_ephemeral(interaction, DiscordUIMessages.STATE_NOTHING_PLAYING)
            return

        await interaction.response.send_message(
            DiscordUIMessages.ACTION_SKIPPED.format(title=truncate(skipped.title, 80))
        )

    @app_commands.command(name="stop", description="Stop playback and clear the queue.")
    async def stop(self, interaction: discord.Interaction) -> None:
        guild_id = await self._require_guild(interaction)
        if guild_id is None:
            return

        await self.container.playback_service.stop(guild_id)
        await interaction.response.send_message(DiscordUIMessages.ACTION_STOPPED)

    @app_commands.command(name="disconnect", description="Leave the voice channel.")
    async def disconnect(self, interaction: discord.Interaction) -> None:
        guild_id = await self._require_guild(interaction)
        if guild_id is None:
            return

        await self.container.playback_service.disconnect(guild_id)
        await interaction.response.send_message(DiscordUIMessages.ACTION_DISCONNECTED)

    @app_commands.command(name="queue", description="Show the current queue.")
    async def queue(self, interaction: discord.Interaction) -> None:
        guild_id = await self._require_guild(interaction)
        if guild_id is None:
            return

        info = self.container.playback_service.get_queue(guild_id)
        if info.total_tracks == 0:
            await self._send_ephemeral(interaction, DiscordUIMessages.STATE_QUEUE_EMPTY)
            return

        await interaction.response.send_message(embed=self._build_queue_embed(info))

    @app_commands.command(name="np", description="Show the track that is playing.")
    async def now_playing(self, interaction: discord.Interaction) -> None:
        guild_id = await self._require_guild(interaction)
        if guild_id is None:
            return

        track = self.container.playback_service.now_playing(guild_id)
        if track is None:
            await self._send_ephemeral(interaction, DiscordUIMessages.STATE_NOTHING_PLAYING)
            return

        info = self.container.playback_service.get_queue(guild_id)
        await interaction.response.send_message(
            embed=self._build_now_playing_embed(track, info.repeat_mode)
        )

    @app_commands.command(name="repeat", description="Set the repeat mode.")
    @app_commands.describe(mode="off, single, or all")
    @app_commands.choices(
        mode=[app_commands.Choice(name=m.value, value=m.value) for m in RepeatMode]
    )
    async def repeat(self, interaction: discord.Interaction, mode: str) -> None:
        guild_id = await self._require_guild(interaction)
        if guild_id is None:
            return

        try:
            repeat_mode = RepeatMode.parse(mode)
        except ValueError as e:
            await self._send_ephemeral(interaction, DiscordUIMessages.ERROR_OCCURRED.format(error=e))
            return

        self.container.playback_service.set_repeat(guild_id, repeat_mode)
        await interaction.response.send_message(
            DiscordUIMessages.ACTION_REPEAT_SET.format(
                emoji=REPEAT_EMOJI[repeat_mode], mode=repeat_mode.value
            )
        )

    @app_commands.command(name="help", description="List the music commands.")
    async def help_command(self, interaction: discord.Interaction) -> None:
        embed = discord.Embed(title=DiscordUIMessages.EMBED_HELP, color=discord.Color.blurple())
        for name, description in HELP_LINES:
            embed.add_field(name=name, value=description, inline=False)
        await interaction.response.send_message(embed=embed, ephemeral=True)

    # ── embeds ─────────────────────────────────────────────────────────

    def _build_now_playing_embed(self, track: TrackDescriptor, repeat_mode: RepeatMode) -> discord.Embed:
        embed = discord.Embed(
            title=DiscordUIMessages.EMBED_NOW_PLAYING,
            description=f"[{track.title}]({track.source_url})",
            color=discord.Color.green(),
        )
        if track.thumbnail_url:
            embed.set_thumbnail(url=track.thumbnail_url)
        embed.add_field(name=DiscordUIMessages.FIELD_DURATION, value=track.duration_formatted, inline=True)
        embed.add_field(
            name=DiscordUIMessages.FIELD_REPEAT,
            value=f"{REPEAT_EMOJI[repeat_mode]} {repeat_mode.value}",
            inline=True,
        )
        return embed

    def _build_queue_embed(self, info: QueueInfo) -> discord.Embed:
        lines: list[str] = []
        if info.current_track is not None:
            lines.append(
                f"{EmojiConstants.MUSIC_NOTE} **{truncate(info.current_track.title, 80)}** "
                f"[{info.current_track.duration_formatted}]"
            )

        for index, track in enumerate(info.upcoming_tracks[:QUEUE_PREVIEW], start=1):
            lines.append(f"`{index}.` {truncate(track.title, 80)} [{track.duration_formatted}]")

        remaining = len(info.upcoming_tracks) - QUEUE_PREVIEW
        if remaining > 0:
            lines.append(DiscordUIMessages.QUEUE_MORE.format(count=remaining))

        embed = discord.Embed(
            title=DiscordUIMessages.EMBED_QUEUE.format(count=info.total_tracks),
            description="\n".join(lines),
            color=discord.Color.blue(),
        )
        embed.set_footer(
            text=f"{REPEAT_EMOJI[info.repeat_mode]} {info.repeat_mode.value} | "
            f"{format_duration(info.total_duration_seconds)}"
        )
        return embed


async def setup(bot: commands.Bot) -> None:
    container = getattr(bot, "container", None)
    if container is None:
        raise RuntimeError("Container not found on bot instance")

    await bot.add_cog(MusicCog(bot, container))
