"""MyAnimeList API client."""

import logging
from datetime import date
from typing import Optional

from .base_client import BaseAPIClient
from .constants import DEFAULT_HTTP_TIMEOUT_SECONDS, RATE_KEY_MAL, MediaKind, Platform
from .errors import SearchUnsupported
from .models import CanonicalEntry, SearchHit
from .rate_limiter import RateLimiter
from .status import from_mal, to_mal

logger = logging.getLogger(__name__)

LIST_FIELDS = {
    MediaKind.ANIME: "list_status{comments},num_episodes",
    MediaKind.MANGA: "list_status{comments},num_chapters",
}


class MALClient(BaseAPIClient):
    """Client for MyAnimeList API v2."""

    BASE_URL = "https://api.myanimelist.net/v2"
    service_name = "MyAnimeList"
    platform = Platform.MAL.value
    rate_key = RATE_KEY_MAL
    supports_search = False

    def __init__(
        self,
        access_token: Optional[str] = None,
        client_id: Optional[str] = None,
        rate_limiter: Optional[RateLimiter] = None,
        timeout: float = DEFAULT_HTTP_TIMEOUT_SECONDS,
        max_retries: int = 3,
    ):
        """
        Initialize MAL client.

        A bearer token allows reads and writes; a client ID alone is enough
        for reading public lists.
        """
        headers = {}
        if not access_token and client_id:
            headers["X-MAL-CLIENT-ID"] = client_id
        super().__init__(
            base_url=self.BASE_URL,
            access_token=access_token,
            headers=headers,
            rate_limiter=rate_limiter,
            timeout=timeout,
            max_retries=max_retries,
        )

    async def fetch_list(self, username: str = "@me", kind: MediaKind = MediaKind.ANIME) -> list[CanonicalEntry]:
        """Fetch a user's anime or manga list from MyAnimeList."""
        kind = MediaKind(kind)
        entries = []
        url = f"{self.base_url}/users/{username}/{kind.value}list"
        params = {
            "fields": LIST_FIELDS[kind],
            "limit": 1000,
            "nsfw": "true",
        }

        while url:
            response = await self._request("GET", url, params=params)
            data = response.json()

            for item in data.get("data", []):
                parsed = self._parse_entry(item, kind)
                if parsed is not None:
                    entries.append(parsed)

            # Pagination
            url = data.get("paging", {}).get("next")
            params = {}  # Next URL already contains params

        logger.info(f"Fetched {len(entries)} {kind.value} entries from MyAnimeList")
        return entries

    async def search_by_title(self, title: str, kind: MediaKind = MediaKind.ANIME) -> Optional[SearchHit]:
        raise SearchUnsupported("Title search is not supported on MyAnimeList")

    async def upsert_entry(self, target_id: int, entry: CanonicalEntry, kind: MediaKind = MediaKind.ANIME) -> None:
        """Create or update the list entry for MAL ID ``target_id``."""
        kind = MediaKind(kind)
        url = f"{self.base_url}/{kind.value}/{int(target_id)}/my_list_status"
        data = {"status": to_mal(entry.status, kind)}

        if entry.score:
            data["score"] = min(entry.score, 10)
        if kind == MediaKind.ANIME:
            if entry.progress:
                data["num_watched_episodes"] = entry.progress
        else:
            if entry.progress:
                data["num_chapters_read"] = entry.progress
            if entry.progress_volumes:
                data["num_volumes_read"] = entry.progress_volumes
        if entry.start_date:
            data["start_date"] = entry.start_date.isoformat()
        if entry.finish_date:
            data["finish_date"] = entry.finish_date.isoformat()
        if entry.notes:
            data["comments"] = entry.notes

        await self._request("PATCH", url, data=data)
        logger.debug(f"Saved MAL entry {target_id}")

    def _parse_entry(self, item: dict, kind: MediaKind) -> Optional[CanonicalEntry]:
        """Parse MAL entry to common model."""
        node = item.get("node", {})
        list_status = item.get("list_status", {})
        if not (node.get("title") or "").strip():
            logger.warning(f"Skipping MAL entry without a title (id {node.get('id')})")
            return None

        if kind == MediaKind.ANIME:
            progress = list_status.get("num_episodes_watched")
            total = node.get("num_episodes")
        else:
            progress = list_status.get("num_chapters_read")
            total = node.get("num_chapters")

        return CanonicalEntry(
            title=node["title"],
            source_id=node.get("id"),
            origin=Platform.MAL,
            status=from_mal(list_status.get("status")),
            score=list_status.get("score"),
            progress=progress,
            progress_volumes=list_status.get("num_volumes_read"),
            total_units=total,
            start_date=_parse_date(list_status.get("start_date")),
            finish_date=_parse_date(list_status.get("finish_date")),
            notes=list_status.get("comments"),
        )


def _parse_date(value: Optional[str]) -> Optional[date]:
    """MAL dates may be partial (``2020`` or ``2020-05``)."""
    if not value:
        return None
    parts = value[:10].split("-")
    try:
        year = int(parts[0])
        month = int(parts[1]) if len(parts) > 1 else 1
        day = int(parts[2]) if len(parts) > 2 else 1
        return date(year, month, day)
    except ValueError:
        return None
