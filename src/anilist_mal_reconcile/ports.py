"""Interfaces the reconciler and sync driver use to talk to list platforms."""

import logging
from typing import Optional, Protocol, runtime_checkable

from .constants import MediaKind
from .models import CanonicalEntry, SearchHit

logger = logging.getLogger(__name__)


@runtime_checkable
class ListProvider(Protocol):
    """Reads a user's list from one platform."""

    async def fetch_list(self, username: str, kind: MediaKind) -> list[CanonicalEntry]:
        """Return the user's entries; an empty list when the user has none.

        May raise AuthRequired, NotFound or RateLimited.
        """
        ...


@runtime_checkable
class ListMutator(Protocol):
    """Creates or updates entries on one platform."""

    supports_search: bool

    async def upsert_entry(self, target_id: int, entry: CanonicalEntry, kind: MediaKind) -> None:
        ...

    async def search_by_title(self, title: str, kind: MediaKind) -> Optional[SearchHit]:
        """Best match for ``title`` or None. Only called when ``supports_search`` is set."""
        ...


class FallbackListProvider:
    """Reads from ``primary`` and retries on ``fallback`` when that fails."""

    def __init__(self, primary: ListProvider, fallback: ListProvider, name: str = "list"):
        self.primary = primary
        self.fallback = fallback
        self.name = name

    async def fetch_list(self, username: str, kind: MediaKind) -> list[CanonicalEntry]:
        try:
            return await self.primary.fetch_list(username, kind)
        except Exception as e:
            logger.warning(f"Primary {self.name} provider failed ({e}), trying fallback")
            return await self.fallback.fetch_list(username, kind)

    def close(self) -> None:
        for provider in (self.primary, self.fallback):
            close = getattr(provider, "close", None)
            if callable(close):
                close()
