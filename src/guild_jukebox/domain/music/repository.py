"""
Session Registry Interface

Abstract contract for looking up per-guild playback sessions. Sessions live
for the lifetime of the process; nothing is persisted.
"""

from abc import ABC, abstractmethod

from guild_jukebox.domain.music.entities import PlaybackSession


class SessionRegistry(ABC):
    """Registry of playback sessions keyed by guild ID."""

    @abstractmethod
    def get(self, guild_id: int) -> PlaybackSession | None:
        """Return the session for a guild, or None if none was created."""
        ...

    @abstractmethod
    def get_or_create(self, guild_id: int) -> PlaybackSession:
        """Return the existing session or create an idle one."""
        ...

    @abstractmethod
    def remove(self, guild_id: int) -> bool:
        """Forget a guild's session.

        Returns:
            True if a session was removed.
        """
        ...

    @abstractmethod
    def all(self) -> list[PlaybackSession]:
        """Return every live session."""
        ...
