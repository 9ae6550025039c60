"""AniList API client."""

import logging
from datetime import date
from typing import Optional

from .base_client import BaseAPIClient
from .constants import DEFAULT_HTTP_TIMEOUT_SECONDS, RATE_KEY_ANILIST, MediaKind, Platform
from .errors import NotFound, PlatformError
from .models import CanonicalEntry, SearchHit
from .rate_limiter import RateLimiter
from .status import from_anilist, to_anilist

logger = logging.getLogger(__name__)

LIST_QUERY = """
query ($userName: String, $type: MediaType) {
  MediaListCollection(userName: $userName, type: $type) {
    lists {
      entries {
        status
        score(format: POINT_10)
        progress
        progressVolumes
        notes
        startedAt { year month day }
        completedAt { year month day }
        media {
          id
          idMal
          title { romaji english native }
          episodes
          chapters
        }
      }
    }
  }
}
"""

SEARCH_QUERY = """
query ($search: String, $type: MediaType) {
  Media(search: $search, type: $type) {
    id
    title { romaji english native }
  }
}
"""

SAVE_MUTATION = """
mutation ($mediaId: Int, $status: MediaListStatus, $scoreRaw: Int, $progress: Int,
          $progressVolumes: Int, $startedAt: FuzzyDateInput, $completedAt: FuzzyDateInput,
          $notes: String) {
  SaveMediaListEntry(mediaId: $mediaId, status: $status, scoreRaw: $scoreRaw, progress: $progress,
                     progressVolumes: $progressVolumes, startedAt: $startedAt,
                     completedAt: $completedAt, notes: $notes) {
    id
  }
}
"""


class AniListClient(BaseAPIClient):
    """Client for AniList GraphQL API."""

    BASE_URL = "https://graphql.anilist.co"
    service_name = "AniList"
    platform = Platform.ANILIST.value
    rate_key = RATE_KEY_ANILIST
    supports_search = True

    def __init__(
        self,
        access_token: Optional[str] = None,
        rate_limiter: Optional[RateLimiter] = None,
        timeout: float = DEFAULT_HTTP_TIMEOUT_SECONDS,
        max_retries: int = 3,
    ):
        """Initialize AniList client; reads work without a token, writes need one."""
        super().__init__(
            base_url=self.BASE_URL,
            access_token=access_token,
            headers={
                "Content-Type": "application/json",
                "Accept": "application/json",
            },
            rate_limiter=rate_limiter,
            timeout=timeout,
            max_retries=max_retries,
        )

    async def _query(self, query: str, variables: Optional[dict] = None) -> dict:
        """Execute a GraphQL query."""
        payload = {"query": query}
        if variables:
            payload["variables"] = variables

        response = await self._request("POST", self.base_url, json=payload)

        data = response.json()
        if data.get("errors"):
            messages = ", ".join(str(e.get("message", e)) for e in data["errors"])
            logger.error(f"GraphQL errors: {messages}")
            raise PlatformError(f"GraphQL errors: {messages}", platform=self.platform)

        return data.get("data") or {}

    async def fetch_list(self, username: str, kind: MediaKind = MediaKind.ANIME) -> list[CanonicalEntry]:
        """Fetch a user's anime or manga list from AniList."""
        kind = MediaKind(kind)
        data = await self._query(LIST_QUERY, {"userName": username, "type": kind.value.upper()})

        entries = []
        collection = data.get("MediaListCollection") or {}
        for list_group in collection.get("lists") or []:
            for entry in list_group.get("entries") or []:
                parsed = self._parse_entry(entry, kind)
                if parsed is not None:
                    entries.append(parsed)

        logger.info(f"Fetched {len(entries)} {kind.value} entries from AniList")
        return entries

    async def search_by_title(self, title: str, kind: MediaKind = MediaKind.ANIME) -> Optional[SearchHit]:
        """Best AniList match for ``title``, or None when AniList has none."""
        kind = MediaKind(kind)
        try:
            data = await self._query(SEARCH_QUERY, {"search": title, "type": kind.value.upper()})
        except NotFound:
            logger.debug(f"AniList search found nothing for '{title}'")
            return None

        media = data.get("Media")
        if not media or media.get("id") is None:
            return None
        return SearchHit(id=media["id"], title=_pick_title(media.get("title")))

    async def upsert_entry(self, target_id: int, entry: CanonicalEntry, kind: MediaKind = MediaKind.ANIME) -> None:
        """Create or update the list entry for media ``target_id``."""
        kind = MediaKind(kind)
        variables = {
            "mediaId": int(target_id),
            "status": to_anilist(entry.status),
        }
        # AniList ignores absent variables, so only send what we know
        if entry.score:
            variables["scoreRaw"] = entry.score * 10
        if entry.progress:
            variables["progress"] = entry.progress
        if kind == MediaKind.MANGA and entry.progress_volumes:
            variables["progressVolumes"] = entry.progress_volumes
        if entry.start_date:
            variables["startedAt"] = _to_fuzzy_date(entry.start_date)
        if entry.finish_date:
            variables["completedAt"] = _to_fuzzy_date(entry.finish_date)
        if entry.notes:
            variables["notes"] = entry.notes

        await self._query(SAVE_MUTATION, variables)
        logger.debug(f"Saved AniList entry {target_id}")

    def _parse_entry(self, entry: dict, kind: MediaKind) -> Optional[CanonicalEntry]:
        """Parse AniList entry to common model."""
        media = entry.get("media") or {}
        title = _pick_title(media.get("title"))
        if not title:
            logger.warning(f"Skipping AniList entry without a title (media {media.get('id')})")
            return None

        total = media.get("episodes") if kind == MediaKind.ANIME else media.get("chapters")
        return CanonicalEntry(
            title=title,
            source_id=media.get("id"),
            direct_target_id=media.get("idMal"),
            origin=Platform.ANILIST,
            status=from_anilist(entry.get("status")),
            score=round(entry.get("score") or 0),
            progress=entry.get("progress"),
            progress_volumes=entry.get("progressVolumes"),
            total_units=total,
            start_date=_from_fuzzy_date(entry.get("startedAt")),
            finish_date=_from_fuzzy_date(entry.get("completedAt")),
            notes=entry.get("notes"),
        )


def _pick_title(title_data: Optional[dict]) -> Optional[str]:
    title_data = title_data or {}
    return title_data.get("romaji") or title_data.get("english") or title_data.get("native")


def _from_fuzzy_date(value: Optional[dict]) -> Optional[date]:
    """AniList FuzzyDate to a date; a missing month or day counts as the first."""
    if not value or not value.get("year"):
        return None
    try:
        return date(value["year"], value.get("month") or 1, value.get("day") or 1)
    except ValueError:
        return None


def _to_fuzzy_date(value: date) -> dict:
    return {"year": value.year, "month": value.month, "day": value.day}
