"""
Unit Tests for MusicCog

Slash-command callbacks are invoked directly with mocked interactions and
a mocked DI container.
"""

from unittest.mock import AsyncMock, MagicMock

import discord
import pytest

from conftest import CHANNEL_ID, GUILD_ID, make_track
from guild_jukebox.application.services.playback_models import PlayResult
from guild_jukebox.domain.music.entities import QueueInfo
from guild_jukebox.domain.music.value_objects import RepeatMode
from guild_jukebox.domain.shared.exceptions import (
    BusinessRuleViolationError,
    ResolutionError,
    VoiceConnectionError,
)
from guild_jukebox.domain.shared.messages import DiscordUIMessages
from guild_jukebox.infrastructure.discord.cogs.music_cog import MusicCog, setup

# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def mock_container():
    """Create a mock DI container with a mocked playback service."""
    container = MagicMock()
    service = MagicMock()
    service.play = AsyncMock()
    service.stop = AsyncMock(return_value=True)
    service.disconnect = AsyncMock(return_value=True)
    service.skip = MagicMock(return_value=None)
    service.now_playing = MagicMock(return_value=None)
    service.get_queue = MagicMock(
        return_value=QueueInfo(current_track=None, upcoming_tracks=[], repeat_mode=RepeatMode.OFF)
    )
    container.playback_service = service
    return container


@pytest.fixture
def cog(mock_container):
    return MusicCog(MagicMock(), mock_container)


@pytest.fixture
def interaction():
    """Interaction from a member sitting in a voice channel."""
    interaction = MagicMock()
    interaction.guild = MagicMock()
    interaction.guild.id = GUILD_ID

    member = MagicMock(spec=discord.Member)
    member.voice = MagicMock()
    member.voice.channel = MagicMock()
    member.voice.channel.id = CHANNEL_ID
    interaction.user = member

    interaction.response.is_done = MagicMock(return_value=False)
    interaction.response.defer = AsyncMock()
    interaction.response.send_message = AsyncMock()
    interaction.followup.send = AsyncMock()
    return interaction


# =============================================================================
# /play
# =============================================================================


class TestPlayCommand:
    """Tests for /play."""

    @pytest.mark.asyncio
    async def test_queues_single_track(self, cog, mock_container, interaction):
        track = make_track("Song A")
        mock_container.playback_service.play.return_value = PlayResult(
            tracks=[track], queue_length=1, started=True
        )

        await cog.play.callback(cog, interaction, "song a")

        interaction.response.defer.assert_awaited_once()
        mock_container.playback_service.play.assert_awaited_once_with(GUILD_ID, CHANNEL_ID, "song a")
        message = interaction.followup.send.await_args.args[0]
        assert "Song A" in message
        assert "3:05" in message

    @pytest.mark.asyncio
    async def test_queues_playlist(self, cog, mock_container, interaction):
        mock_container.playback_service.play.return_value = PlayResult(
            tracks=[make_track("A"), make_track("B")], queue_length=2, started=True
        )

        await cog.play.callback(cog, interaction, "playlist")

        assert "2 tracks" in interaction.followup.send.await_args.args[0]

    @pytest.mark.asyncio
    async def test_stopped_while_resolving(self, cog, mock_container, interaction):
        mock_container.playback_service.play.return_value = PlayResult(
            tracks=[make_track("Song A")], cancelled=True
        )

        await cog.play.callback(cog, interaction, "song a")

        interaction.followup.send.assert_awaited_once_with(
            DiscordUIMessages.ACTION_PLAY_CANCELLED, ephemeral=True
        )

    @pytest.mark.asyncio
    async def test_requires_voice_channel(self, cog, mock_container, interaction):
        interaction.user.voice = None

        await cog.play.callback(cog, interaction, "song")

        mock_container.playback_service.play.assert_not_called()
        interaction.response.send_message.assert_awaited_once_with(
            DiscordUIMessages.STATE_NEED_TO_BE_IN_VOICE, ephemeral=True
        )

    @pytest.mark.asyncio
    async def test_requires_guild(self, cog, interaction):
        interaction.guild = None

        await cog.play.callback(cog, interaction, "song")

        interaction.response.send_message.assert_awaited_once_with(
            DiscordUIMessages.STATE_SERVER_ONLY, ephemeral=True
        )

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("error", "expected"),
        [
            (VoiceConnectionError(GUILD_ID), DiscordUIMessages.ERROR_COULD_NOT_JOIN_VOICE),
            (ResolutionError("song"), DiscordUIMessages.ERROR_TRACK_NOT_FOUND.format(query="song")),
            (BusinessRuleViolationError("MAX_QUEUE_SIZE", "Queue is full"), "Queue is full"),
        ],
    )
    async def test_errors_are_reported_ephemerally(self, cog, mock_container, interaction, error, expected):
        mock_container.playback_service.play.side_effect = error

        await cog.play.callback(cog, interaction, "song")

        interaction.followup.send.assert_awaited_once_with(expected, ephemeral=True)


# =============================================================================
# Other commands
# =============================================================================


class TestControlCommands:
    """Tests for /skip, /stop, /disconnect and /repeat."""

    @pytest.mark.asyncio
    async def test_skip_nothing_playing(self, cog, interaction):
        await cog.skip.callback(cog, interaction)

        interaction.response.send_message.assert_awaited_once_with(
            DiscordUIMessages.STATE_NOTHING_PLAYING, ephemeral=True
        )

    @pytest.mark.asyncio
    async def test_skip(self, cog, mock_container, interaction):
        mock_container.playback_service.skip.return_value = make_track("Song A")

        await cog.skip.callback(cog, interaction)

        assert "Song A" in interaction.response.send_message.await_args.args[0]

    @pytest.mark.asyncio
    async def test_stop(self, cog, mock_container, interaction):
        await cog.stop.callback(cog, interaction)

        mock_container.playback_service.stop.assert_awaited_once_with(GUILD_ID)
        interaction.response.send_message.assert_awaited_once_with(DiscordUIMessages.ACTION_STOPPED)

    @pytest.mark.asyncio
    async def test_disconnect(self, cog, mock_container, interaction):
        await cog.disconnect.callback(cog, interaction)

        mock_container.playback_service.disconnect.assert_awaited_once_with(GUILD_ID)

    @pytest.mark.asyncio
    async def test_repeat(self, cog, mock_container, interaction):
        await cog.repeat.callback(cog, interaction, "single")

        mock_container.playback_service.set_repeat.assert_called_once_with(GUILD_ID, RepeatMode.SINGLE)
        assert "single" in interaction.response.send_message.await_args.args[0]

    @pytest.mark.asyncio
    async def test_repeat_rejects_unknown_mode(self, cog, mock_container, interaction):
        await cog.repeat.callback(cog, interaction, "shuffle")

        mock_container.playback_service.set_repeat.assert_not_called()
        assert interaction.response.send_message.await_args.kwargs["ephemeral"] is True


class TestInfoCommands:
    """Tests for /queue, /np and /help."""

    @pytest.mark.asyncio
    async def test_queue_empty(self, cog, interaction):
        await cog.queue.callback(cog, interaction)

        interaction.response.send_message.assert_awaited_once_with(
            DiscordUIMessages.STATE_QUEUE_EMPTY, ephemeral=True
        )

    @pytest.mark.asyncio
    async def test_queue_embed(self, cog, mock_container, interaction):
        upcoming = [make_track(f"T{i}", duration=60) for i in range(12)]
        mock_container.playback_service.get_queue.return_value = QueueInfo(
            current_track=make_track("Now", duration=120),
            upcoming_tracks=upcoming,
            repeat_mode=RepeatMode.ALL,
        )

        await cog.queue.callback(cog, interaction)

        embed = interaction.response.send_message.await_args.kwargs["embed"]
        assert embed.title == DiscordUIMessages.EMBED_QUEUE.format(count=13)
        assert "Now" in embed.description
        assert "`10.` T9" in embed.description
        assert "T10" not in embed.description
        assert "14:00" in embed.footer.text

    @pytest.mark.asyncio
    async def test_now_playing(self, cog, mock_container, interaction):
        mock_container.playback_service.now_playing.return_value = make_track("Song A")

        await cog.now_playing.callback(cog, interaction)

        embed = interaction.response.send_message.await_args.kwargs["embed"]
        assert "Song A" in embed.description
        assert embed.fields[0].value == "3:05"

    @pytest.mark.asyncio
    async def test_now_playing_nothing(self, cog, interaction):
        await cog.now_playing.callback(cog, interaction)

        interaction.response.send_message.assert_awaited_once_with(
            DiscordUIMessages.STATE_NOTHING_PLAYING, ephemeral=True
        )

    @pytest.mark.asyncio
    async def test_help(self, cog, interaction):
        await cog.help_command.callback(cog, interaction)

        embed = interaction.response.send_message.await_args.kwargs["embed"]
        assert any(field.name.startswith("/play") for field in embed.fields)


class TestSetup:
    """Tests for extension loading."""

    @pytest.mark.asyncio
    async def test_setup_adds_cog(self, mock_container):
        bot = MagicMock()
        bot.container = mock_container
        bot.add_cog = AsyncMock()

        await setup(bot)

        assert isinstance(bot.add_cog.await_args.args[0], MusicCog)

    @pytest.mark.asyncio
    async def test_setup_without_container(self):
        bot = MagicMock(spec=["add_cog"])

        with pytest.raises(RuntimeError):
            await setup(bot)
