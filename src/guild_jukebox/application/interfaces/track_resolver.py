"""Port interface for resolving user queries to track descriptors."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ...domain.music.entities import TrackDescriptor


class TrackResolver(ABC):
    """Turns a URL or free-text query into playable descriptors."""

    @abstractmethod
    async def resolve(self, query: str) -> list["TrackDescriptor"]:
        """Resolve a query to one or more descriptors.

        Raises:
            ResolutionError: If nothing playable matches.
        """
        ...

    async def aclose(self) -> None:
        """Release network resources held by the resolver."""
        return None
