"""
Download Pipeline

Chains the ``yt-dlp`` executable into ``ffmpeg`` and exposes the decoder's
stdout as a raw PCM stream (s16le, 48 kHz, stereo) ready for discord.py.
"""

from __future__ import annotations

import asyncio
import logging
import re
import subprocess
import threading
from collections import deque
from collections.abc import Callable
from typing import IO, Any

import discord

from guild_jukebox.application.interfaces.audio_pipeline import AudioPipeline, AudioStream, ProgressSink
from guild_jukebox.config.settings import AudioSettings
from guild_jukebox.domain.shared.exceptions import DownloadError
from guild_jukebox.domain.shared.messages import ErrorMessages, LogTemplates

logger = logging.getLogger(__name__)

PROGRESS_PATTERN = re.compile(r"\[download\]\s+(\d+(?:\.\d+)?)%")

# Lines of stderr kept for error reports
DIAGNOSTICS_TAIL = 20


def parse_progress(line: str) -> float | None:
    """Extract the percentage from a ``[download]  42.0% of ...`` line."""
    match = PROGRESS_PATTERN.search(line)
    if match is None:
        return None
    return min(float(match.group(1)), 100.0)


class LoggingProgressSink:
    """Default progress sink: logs each time progress crosses another step."""

    def __init__(self, label: str, step: float = 10.0) -> None:
        self._label = label
        self._step = step
        self._next = step

    def __call__(self, percent: float) -> None:
        if percent < self._next:
            return
        logger.info(LogTemplates.PIPELINE_PROGRESS, self._label, percent)
        while self._next <= percent:
            self._next += self._step


class PipelineStream:
    """Live PCM output of a fetch -> decode process pair.

    Closing the stream kills both processes. Safe to call more than once.
    """

    def __init__(
        self,
        source_url: str,
        fetch: subprocess.Popen[bytes],
        decode: subprocess.Popen[bytes],
        diagnostics: deque[str],
    ) -> None:
        self.source_url = source_url
        self._fetch = fetch
        self._decode = decode
        self._diagnostics = diagnostics
        self._closed = False
        self._lock = threading.Lock()

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def fetch_returncode(self) -> int | None:
        return self._fetch.poll()

    @property
    def diagnostics(self) -> list[str]:
        return list(self._diagnostics)

    def read(self, size: int = -1) -> bytes:
        if self._closed or self._decode.stdout is None:
            return b""
        try:
            return self._decode.stdout.read(size)
        except (OSError, ValueError):
            return b""

    def peek(self) -> bytes:
        """Block until the decoder has output (or hit EOF) without consuming it."""
        stdout = self._decode.stdout
        if stdout is None:
            return b""
        return stdout.peek(1)  # type: ignore[attr-defined]

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True

        for name, process in (("fetch", self._fetch), ("decode", self._decode)):
            _terminate(name, process)
        logger.debug(LogTemplates.PIPELINE_CLOSED, self.source_url)

    def __enter__(self) -> PipelineStream:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    async def __aenter__(self) -> PipelineStream:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self.close()


class PipelinePCMAudio(discord.PCMAudio):
    """PCM audio source that tears the pipeline down with the player."""

    def __init__(self, stream: AudioStream) -> None:
        super().__init__(stream)  # type: ignore[arg-type]
        self.pipeline = stream

    def cleanup(self) -> None:
        self.pipeline.close()


def _terminate(name: str, process: subprocess.Popen[bytes]) -> None:
    try:
        if process.poll() is None:
            process.kill()
        process.wait(timeout=1.0)
    except Exception as e:
        logger.debug(LogTemplates.PIPELINE_KILL_ERROR, name, e)
    for pipe in (process.stdin, process.stdout, process.stderr):
        if pipe is not None:
            try:
                pipe.close()
            except OSError:
                pass


def _drain_fetch_stderr(
    source_url: str,
    pipe: IO[bytes],
    diagnostics: deque[str],
    progress: ProgressSink | None,
) -> None:
    for raw in iter(pipe.readline, b""):
        line = raw.decode("utf-8", errors="replace").strip()
        if not line:
            continue
        percent = parse_progress(line)
        if percent is None:
            diagnostics.append(line)
            continue
        if progress is not None:
            try:
                progress(percent)
            except Exception:
                logger.exception(LogTemplates.PIPELINE_PROGRESS_SINK_ERROR, source_url)


def _start_reader(target: Callable[..., Any], *args: Any) -> None:
    threading.Thread(target=target, args=args, daemon=True).start()


def _drain_decode_stderr(pipe: IO[bytes], diagnostics: deque[str]) -> None:
    for raw in iter(pipe.readline, b""):
        line = raw.decode("utf-8", errors="replace").strip()
        if line:
            diagnostics.append(line)


class SubprocessAudioPipeline(AudioPipeline):
    """Spawns ``yt-dlp`` piped into ``ffmpeg`` for each track."""

    def __init__(self, settings: AudioSettings | None = None) -> None:
        self._settings = settings or AudioSettings()

    def fetch_args(self, source_url: str) -> list[str]:
        return [
            self._settings.fetch_executable,
            "-f",
            self._settings.fetch_format,
            "--no-playlist",
            "--progress",
            "--newline",
            "-o",
            "-",
            source_url,
        ]

    def decode_args(self) -> list[str]:
        return [
            self._settings.decode_executable,
            "-i",
            "pipe:0",
            "-f",
            "s16le",
            "-ar",
            "48000",
            "-ac",
            "2",
            "-loglevel",
            "error",
            "-buffer_size",
            self._settings.decoder_buffer_size,
            "pipe:1",
        ]

    async def open(self, source_url: str, progress: ProgressSink | None = None) -> PipelineStream:
        """Start the pipeline and wait for the first decoded bytes.

        Args:
            source_url: Page URL understood by ``yt-dlp``.
            progress: Receives fetch progress percentages. Defaults to a
                sink that logs every ``progress_log_step`` percent.

        Raises:
            DownloadError: If a stage fails to start or no audio arrives.
        """
        logger.info(LogTemplates.PIPELINE_OPENING, source_url)
        if progress is None:
            progress = LoggingProgressSink(source_url, self._settings.progress_log_step)

        stream = self._spawn(source_url, progress)
        timeout = self._settings.first_audio_timeout_seconds
        try:
            first = await asyncio.wait_for(asyncio.to_thread(stream.peek), timeout=timeout)
        except asyncio.TimeoutError:
            stream.close()
            logger.warning(LogTemplates.PIPELINE_FAILED, source_url, "timeout")
            raise DownloadError(source_url, ErrorMessages.FIRST_AUDIO_TIMEOUT.format(timeout=timeout))
        except BaseException:
            stream.close()
            raise

        if not first:
            stream.close()
            code = stream.fetch_returncode
            diagnostics = " | ".join(stream.diagnostics[-5:]) or "no output"
            logger.warning(LogTemplates.PIPELINE_FAILED, source_url, diagnostics)
            raise DownloadError(
                source_url, ErrorMessages.NO_AUDIO_PRODUCED.format(code=code, diagnostics=diagnostics)
            )

        logger.info(LogTemplates.PIPELINE_READY, source_url)
        return stream

    def _spawn(self, source_url: str, progress: ProgressSink | None) -> PipelineStream:
        fetch_args = self.fetch_args(source_url)
        try:
            fetch = subprocess.Popen(
                fetch_args, stdin=subprocess.DEVNULL, stdout=subprocess.PIPE, stderr=subprocess.PIPE
            )
        except OSError as e:
            logger.error(LogTemplates.PIPELINE_FAILED, source_url, e)
            raise DownloadError(
                source_url,
                ErrorMessages.FETCH_SPAWN_FAILED.format(executable=fetch_args[0], error=e),
                stage="fetch",
            ) from e

        decode_args = self.decode_args()
        try:
            decode = subprocess.Popen(
                decode_args, stdin=fetch.stdout, stdout=subprocess.PIPE, stderr=subprocess.PIPE
            )
        except OSError as e:
            _terminate("fetch", fetch)
            logger.error(LogTemplates.PIPELINE_FAILED, source_url, e)
            raise DownloadError(
                source_url,
                ErrorMessages.DECODE_SPAWN_FAILED.format(executable=decode_args[0], error=e),
                stage="decode",
            ) from e

        # The decoder owns the read end now; close ours so it sees EOF.
        if fetch.stdout is not None:
            fetch.stdout.close()

        diagnostics: deque[str] = deque(maxlen=DIAGNOSTICS_TAIL)
        if fetch.stderr is not None:
            _start_reader(_drain_fetch_stderr, source_url, fetch.stderr, diagnostics, progress)
        if decode.stderr is not None:
            _start_reader(_drain_decode_stderr, decode.stderr, diagnostics)
        return PipelineStream(source_url, fetch, decode, diagnostics)

