"""Exception taxonomy for playback, resolution, and voice errors."""

from __future__ import annotations


class DomainError(Exception):
    """Base exception for all domain-level errors."""

    def __init__(self, message: str, code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.__class__.__name__


class BusinessRuleViolationError(DomainError):
    """Raised when a queue or session rule is violated."""

    def __init__(self, rule: str, message: str | None = None) -> None:
        msg = message or f"Business rule violated: {rule}"
        super().__init__(msg, code="BUSINESS_RULE_VIOLATION")
        self.rule = rule


class ResolutionError(DomainError):
    """No playable match exists for a query.

    Reported to the requester; never fatal to the session.
    """

    def __init__(self, query: str, message: str | None = None) -> None:
        msg = message or f"Couldn't find anything playable for: {query}"
        super().__init__(msg, code="RESOLUTION_ERROR")
        self.query = query


class DownloadError(DomainError):
    """The fetch or decode stage of the download pipeline failed."""

    def __init__(self, source_url: str, reason: str, stage: str | None = None) -> None:
        prefix = f"{stage} stage" if stage else "pipeline"
        super().__init__(f"Download failed ({prefix}) for {source_url}: {reason}", code="DOWNLOAD_ERROR")
        self.source_url = source_url
        self.reason = reason
        self.stage = stage


class VoiceConnectionError(DomainError):
    """Joining a voice channel or waiting for readiness failed."""

    def __init__(self, guild_id: int, channel_id: int | None = None, message: str | None = None) -> None:
        msg = message or f"Could not establish a voice connection in guild {guild_id}"
        super().__init__(msg, code="VOICE_CONNECTION_ERROR")
        self.guild_id = guild_id
        self.channel_id = channel_id


class PlaybackEngineError(DomainError):
    """Unexpected fault raised by the audio engine while a track was playing."""

    def __init__(self, guild_id: int, cause: BaseException | None = None) -> None:
        super().__init__(
            f"Playback engine error in guild {guild_id}: {cause!r}", code="PLAYBACK_ENGINE_ERROR"
        )
        self.guild_id = guild_id
        self.cause = cause
