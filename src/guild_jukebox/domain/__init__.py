"""
Domain Layer

Pure playback logic, free of Discord and subprocess concerns:
- shared/: exceptions, constrained types, message templates
- music/: track descriptors, queue, state machine
"""

from guild_jukebox.domain.shared.exceptions import DomainError

__all__ = ["DomainError"]
