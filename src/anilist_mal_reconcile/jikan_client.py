"""Read-only MyAnimeList list access through the public Jikan API."""

import logging
from datetime import date
from typing import Optional

from .base_client import BaseAPIClient
from .constants import DEFAULT_HTTP_TIMEOUT_SECONDS, RATE_KEY_JIKAN, MediaKind, Platform
from .models import CanonicalEntry
from .rate_limiter import RateLimiter
from .status import parse_status

logger = logging.getLogger(__name__)

# Per-kind field names in Jikan list items
_FIELDS = {
    MediaKind.ANIME: {
        "media": "anime",
        "progress": "episodes_watched",
        "total": "episodes",
        "start": "watch_start_date",
        "finish": "watch_end_date",
    },
    MediaKind.MANGA: {
        "media": "manga",
        "progress": "chapters_read",
        "total": "chapters",
        "start": "read_start_date",
        "finish": "read_end_date",
    },
}


class JikanClient(BaseAPIClient):
    """Fallback provider for public MAL lists; needs no credentials."""

    BASE_URL = "https://api.jikan.moe/v4"
    service_name = "Jikan"
    platform = Platform.MAL.value
    rate_key = RATE_KEY_JIKAN

    def __init__(
        self,
        rate_limiter: Optional[RateLimiter] = None,
        timeout: float = DEFAULT_HTTP_TIMEOUT_SECONDS,
        max_retries: int = 3,
    ):
        super().__init__(
            base_url=self.BASE_URL,
            headers={"Accept": "application/json"},
            rate_limiter=rate_limiter,
            timeout=timeout,
            max_retries=max_retries,
        )

    async def fetch_list(self, username: str, kind: MediaKind = MediaKind.ANIME) -> list[CanonicalEntry]:
        """Fetch a public MAL list page by page."""
        kind = MediaKind(kind)
        url = f"{self.base_url}/users/{username}/{kind.value}list"
        entries = []
        page = 1

        while True:
            response = await self._request("GET", url, params={"page": page})
            data = response.json()

            for item in data.get("data") or []:
                parsed = self._parse_entry(item, kind)
                if parsed is not None:
                    entries.append(parsed)

            if not (data.get("pagination") or {}).get("has_next_page"):
                break
            page += 1

        logger.info(f"Fetched {len(entries)} {kind.value} entries from MAL via Jikan")
        return entries

    def _parse_entry(self, item: dict, kind: MediaKind) -> Optional[CanonicalEntry]:
        fields = _FIELDS[kind]
        media = item.get(fields["media"]) or {}
        if not (media.get("title") or "").strip():
            return None

        return CanonicalEntry(
            title=media["title"],
            source_id=media.get("mal_id"),
            origin=Platform.MAL,
            status=parse_status(item.get("status")),
            score=item.get("score"),
            progress=item.get(fields["progress"]),
            progress_volumes=item.get("volumes_read") if kind == MediaKind.MANGA else 0,
            total_units=media.get(fields["total"]),
            start_date=_parse_date(item.get(fields["start"])),
            finish_date=_parse_date(item.get(fields["finish"])),
        )


def _parse_date(value: Optional[str]) -> Optional[date]:
    if not value:
        return None
    try:
        return date.fromisoformat(value[:10])
    except ValueError:
        return None
