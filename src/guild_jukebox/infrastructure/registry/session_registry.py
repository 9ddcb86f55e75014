"""In-memory session registry."""

from __future__ import annotations

import logging

from guild_jukebox.domain.music.entities import DEFAULT_MAX_QUEUE_SIZE, PlaybackSession
from guild_jukebox.domain.music.repository import SessionRegistry
from guild_jukebox.domain.shared.messages import LogTemplates

logger = logging.getLogger(__name__)


class InMemorySessionRegistry(SessionRegistry):
    def __init__(self, max_queue_size: int = DEFAULT_MAX_QUEUE_SIZE) -> None:
        self._sessions: dict[int, PlaybackSession] = {}
        self._max_queue_size = max_queue_size

    def get(self, guild_id: int) -> PlaybackSession | None:
        return self._sessions.get(guild_id)

    def get_or_create(self, guild_id: int) -> PlaybackSession:
        session = self._sessions.get(guild_id)
        if session is None:
            session = PlaybackSession(guild_id=guild_id, max_queue_size=self._max_queue_size)
            self._sessions[guild_id] = session
            logger.debug(LogTemplates.SESSION_CREATED, guild_id)
        return session

    def remove(self, guild_id: int) -> bool:
        removed = self._sessions.pop(guild_id, None) is not None
        if removed:
            logger.debug(LogTemplates.SESSION_REMOVED, guild_id)
        return removed

    def all(self) -> list[PlaybackSession]:
        return list(self._sessions.values())

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, guild_id: object) -> bool:
        return guild_id in self._sessions
