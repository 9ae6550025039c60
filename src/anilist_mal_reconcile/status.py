"""Mapping between platform status vocabularies and ListStatus."""

from typing import Optional

from .constants import MediaKind, Platform
from .models import ListStatus

MAL_TO_STATUS = {
    "watching": ListStatus.WATCHING,
    "reading": ListStatus.WATCHING,
    "completed": ListStatus.COMPLETED,
    "on_hold": ListStatus.ON_HOLD,
    "dropped": ListStatus.DROPPED,
    "plan_to_watch": ListStatus.PLANNING,
    "plan_to_read": ListStatus.PLANNING,
}

ANILIST_TO_STATUS = {
    "CURRENT": ListStatus.WATCHING,
    "REPEATING": ListStatus.WATCHING,
    "COMPLETED": ListStatus.COMPLETED,
    "PAUSED": ListStatus.ON_HOLD,
    "DROPPED": ListStatus.DROPPED,
    "PLANNING": ListStatus.PLANNING,
}

STATUS_TO_ANILIST = {
    ListStatus.WATCHING: "CURRENT",
    ListStatus.COMPLETED: "COMPLETED",
    ListStatus.ON_HOLD: "PAUSED",
    ListStatus.DROPPED: "DROPPED",
    ListStatus.PLANNING: "PLANNING",
}

STATUS_TO_MAL = {
    MediaKind.ANIME: {
        ListStatus.WATCHING: "watching",
        ListStatus.COMPLETED: "completed",
        ListStatus.ON_HOLD: "on_hold",
        ListStatus.DROPPED: "dropped",
        ListStatus.PLANNING: "plan_to_watch",
    },
    MediaKind.MANGA: {
        ListStatus.WATCHING: "reading",
        ListStatus.COMPLETED: "completed",
        ListStatus.ON_HOLD: "on_hold",
        ListStatus.DROPPED: "dropped",
        ListStatus.PLANNING: "plan_to_read",
    },
}

# Spellings seen in hand-made exports
_ALIASES = {
    "on-hold": ListStatus.ON_HOLD,
    "on hold": ListStatus.ON_HOLD,
    "onhold": ListStatus.ON_HOLD,
    "paused": ListStatus.ON_HOLD,
    "current": ListStatus.WATCHING,
    "repeating": ListStatus.WATCHING,
    "plan to watch": ListStatus.PLANNING,
    "plan to read": ListStatus.PLANNING,
    "plantowatch": ListStatus.PLANNING,
    "plantoread": ListStatus.PLANNING,
}

# MAL XML export codes
_MAL_NUMERIC = {
    1: ListStatus.WATCHING,
    2: ListStatus.COMPLETED,
    3: ListStatus.ON_HOLD,
    4: ListStatus.DROPPED,
    6: ListStatus.PLANNING,
}


def from_mal(value: Optional[str]) -> ListStatus:
    """MAL status to ListStatus; unknown values become PLANNING."""
    return MAL_TO_STATUS.get((value or "").lower(), ListStatus.PLANNING)


def from_anilist(value: Optional[str]) -> ListStatus:
    """AniList status to ListStatus; unknown values become PLANNING."""
    return ANILIST_TO_STATUS.get((value or "").upper(), ListStatus.PLANNING)


def to_mal(status: ListStatus, kind: MediaKind = MediaKind.ANIME) -> str:
    return STATUS_TO_MAL[MediaKind(kind)][status]


def to_anilist(status: ListStatus) -> str:
    return STATUS_TO_ANILIST[status]


def to_platform(status: ListStatus, platform: Platform, kind: MediaKind = MediaKind.ANIME) -> str:
    """Outbound status value for a target platform."""
    if platform == Platform.MAL:
        return to_mal(status, kind)
    if platform == Platform.ANILIST:
        return to_anilist(status)
    raise ValueError(f"No status vocabulary for platform: {platform}")


def parse_status(value) -> ListStatus:
    """
    Read a status written in any known vocabulary.

    Accepts canonical names, MAL and AniList values (any case) and a few
    common spellings. MAL's numeric codes (1-4, 6) are understood too.
    Anything else becomes PLANNING.
    """
    if isinstance(value, ListStatus):
        return value
    if isinstance(value, int) and not isinstance(value, bool):
        return _MAL_NUMERIC.get(value, ListStatus.PLANNING)
    if not isinstance(value, str):
        return ListStatus.PLANNING

    text = value.strip()
    if text.isdigit():
        return _MAL_NUMERIC.get(int(text), ListStatus.PLANNING)
    lowered = text.lower()
    for candidate in (
        _lookup_canonical(lowered),
        MAL_TO_STATUS.get(lowered),
        ANILIST_TO_STATUS.get(text.upper()),
        _ALIASES.get(lowered),
    ):
        if candidate is not None:
            return candidate
    return ListStatus.PLANNING


def _lookup_canonical(value: str) -> Optional[ListStatus]:
    try:
        return ListStatus(value)
    except ValueError:
        return None
