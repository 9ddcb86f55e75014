"""
Tests for main.py - Main Entry Point

Tests for:
- Logging configuration
- Token validation
- Bot start and error handling
"""

import json
import logging
from unittest.mock import MagicMock, mock_open, patch

import pytest
from pydantic import SecretStr

from guild_jukebox.config.settings import AudioSettings
from guild_jukebox.main import cli, main, missing_executables, setup_logging


class TestLoggingSetup:
    """Tests for logging configuration."""

    @pytest.fixture(autouse=True)
    def restore_root_logger(self):
        root = logging.getLogger()
        level, handlers = root.level, root.handlers[:]
        yield
        root.setLevel(level)
        root.handlers[:] = handlers

    def _make_valid_config(self) -> dict:
        return {
            "version": 1,
            "disable_existing_loggers": False,
            "handlers": {},
            "loggers": {"discord": {"level": "WARNING"}, "httpx": {"level": "WARNING"}},
            "root": {"level": "INFO", "handlers": []},
        }

    def test_dictconfig_called_when_json_exists(self):
        """Should call dictConfig when logging_config.json exists."""
        config = self._make_valid_config()
        m = mock_open(read_data=json.dumps(config))
        with (
            patch("builtins.open", m),
            patch("logging.config.dictConfig") as mock_dc,
        ):
            setup_logging()

            mock_dc.assert_called_once_with(config)

    def test_fallback_to_basicconfig_when_json_missing(self, tmp_path):
        """Should fall back to basicConfig when the file does not exist."""
        with patch("logging.basicConfig") as mock_bc:
            setup_logging("DEBUG", config_path=tmp_path / "missing.json")

            mock_bc.assert_called_once()
            assert mock_bc.call_args.kwargs["level"] == logging.DEBUG

    def test_fallback_on_invalid_json(self, tmp_path):
        """Should fall back to basicConfig on a malformed file."""
        path = tmp_path / "logging_config.json"
        path.write_text("{not json")
        with patch("logging.basicConfig") as mock_bc:
            setup_logging(config_path=path)

            mock_bc.assert_called_once()

    def test_root_level_is_applied(self):
        config = self._make_valid_config()
        with (
            patch("builtins.open", mock_open(read_data=json.dumps(config))),
            patch("logging.config.dictConfig"),
        ):
            setup_logging("WARNING")

        assert logging.getLogger().level == logging.WARNING

    def test_repository_config_is_loadable(self):
        """The shipped logging_config.json must be accepted by dictConfig."""
        with patch("logging.basicConfig") as mock_bc:
            setup_logging("INFO")

        mock_bc.assert_not_called()


def _settings(token: str = "token") -> MagicMock:
    settings = MagicMock()
    settings.discord.token = SecretStr(token)
    settings.log_level = "INFO"
    settings.environment = "test"
    return settings


class TestMain:
    """Tests for the main() flow."""

    @pytest.fixture(autouse=True)
    def no_logging_setup(self):
        with (
            patch("guild_jukebox.main.setup_logging"),
            patch("guild_jukebox.main.missing_executables", return_value=[]),
        ):
            yield

    def test_missing_token_exits_with_error(self):
        with patch("guild_jukebox.config.settings.get_settings", return_value=_settings("")):
            assert main() == 1

    def test_runs_bot(self):
        bot = MagicMock()
        with (
            patch("guild_jukebox.config.settings.get_settings", return_value=_settings()),
            patch("guild_jukebox.config.container.create_container") as create_container,
            patch("guild_jukebox.infrastructure.discord.bot.create_bot", return_value=bot),
        ):
            assert main() == 0

        create_container.assert_called_once()
        bot.run_with_graceful_shutdown.assert_called_once_with("token")

    def test_keyboard_interrupt_is_clean(self):
        bot = MagicMock()
        bot.run_with_graceful_shutdown.side_effect = KeyboardInterrupt
        with (
            patch("guild_jukebox.config.settings.get_settings", return_value=_settings()),
            patch("guild_jukebox.config.container.create_container"),
            patch("guild_jukebox.infrastructure.discord.bot.create_bot", return_value=bot),
        ):
            assert main() == 0

    def test_fatal_error(self):
        bot = MagicMock()
        bot.run_with_graceful_shutdown.side_effect = RuntimeError("boom")
        with (
            patch("guild_jukebox.config.settings.get_settings", return_value=_settings()),
            patch("guild_jukebox.config.container.create_container"),
            patch("guild_jukebox.infrastructure.discord.bot.create_bot", return_value=bot),
        ):
            assert main() == 1

    def test_cli_exits_with_main_status(self):
        with patch("guild_jukebox.main.main", return_value=3):
            with pytest.raises(SystemExit) as exc_info:
                cli()

        assert exc_info.value.code == 3

    def test_missing_executable_aborts_before_bot(self):
        with (
            patch("guild_jukebox.config.settings.get_settings", return_value=_settings()),
            patch("guild_jukebox.main.missing_executables", return_value=[("decode", "ffmpeg")]),
            patch("guild_jukebox.infrastructure.discord.bot.create_bot") as create_bot,
        ):
            assert main() == 1

        create_bot.assert_not_called()


class TestExecutableCheck:
    """Tests for the yt-dlp / ffmpeg availability check."""

    def test_all_found(self):
        with patch("guild_jukebox.main.shutil.which", side_effect=lambda exe: f"/usr/bin/{exe}"):
            assert missing_executables(AudioSettings()) == []

    def test_reports_missing_stage(self):
        audio = AudioSettings(fetch_executable="yt-dlp", decode_executable="/opt/missing/ffmpeg")

        with patch(
            "guild_jukebox.main.shutil.which",
            side_effect=lambda exe: None if exe.startswith("/opt/missing") else f"/usr/bin/{exe}",
        ):
            assert missing_executables(audio) == [("decode", "/opt/missing/ffmpeg")]
