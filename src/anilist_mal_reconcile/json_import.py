"""Reading list entries from a JSON import file.

Two layouts are accepted, both as a top-level JSON array:

* URL based: ``[{"name": "Title", "mal": "https://myanimelist.net/anime/1/", "al": ""}]``.
  An empty URL means the title is missing on that platform. The ID for the
  sync target becomes ``direct_target_id`` so the sync needs no search.
* Metadata based: ``[{"title": "Title", "status": "completed", "score": 9}]``
  with the field aliases MAL and AniList exports commonly use.
"""

import json
import logging
import math
import re
from datetime import date, datetime
from pathlib import Path
from typing import Any, Literal, Optional, Sequence, Union

from .constants import DEFAULT_MAX_IMPORT_BYTES, MediaKind, Platform
from .errors import InvalidFormat
from .models import CanonicalEntry, EventType, ListStatus
from .progress import ProgressChannel
from .status import parse_status

logger = logging.getLogger(__name__)

ImportFormat = Literal["url", "metadata"]

TITLE_FIELDS = ("title", "name", "series_title", "anime_title", "manga_title")
URL_TITLE_FIELDS = ("name", "title", "series_title", "anime_title", "manga_title")
STATUS_FIELDS = ("status", "my_status")
SCORE_FIELDS = ("score", "my_score", "rating")
PROGRESS_FIELDS = ("progress", "watched_episodes", "read_chapters", "progress_chapters")
VOLUME_FIELDS = ("progress_volumes", "read_volumes")
TOTAL_FIELDS = ("total_episodes", "num_episodes", "total_chapters", "num_chapters")
START_FIELDS = ("start_date", "started_date")
FINISH_FIELDS = ("finish_date", "finished_date")
NOTES_FIELDS = ("notes", "comments")
ID_FIELDS = ("id", "mal_id", "anilist_id")

URL_PATTERNS = {
    Platform.MAL: re.compile(r"myanimelist\.net/(anime|manga)/(\d+)"),
    Platform.ANILIST: re.compile(r"anilist\.co/(anime|manga)/(\d+)"),
}

_PLATFORM_NAMES = {
    "mal": Platform.MAL,
    "myanimelist": Platform.MAL,
    "anilist": Platform.ANILIST,
    "al": Platform.ANILIST,
}


def has_title(item: Any) -> bool:
    """True when the item is an object with a non-blank title field."""
    if not isinstance(item, dict):
        return False
    return any(isinstance(item.get(f), str) and item[f].strip() for f in TITLE_FIELDS)


def detect_import_format(sample: Any) -> ImportFormat:
    """
    Tell the URL layout from the metadata layout.

    An item carrying a ``mal`` or ``al`` key at all is URL based, even when
    it also has metadata fields.
    """
    if isinstance(sample, dict) and ("mal" in sample or "al" in sample):
        return "url"
    return "metadata"


def extract_id_from_url(url: Any, platform: Union[Platform, str]) -> Optional[int]:
    """Numeric media ID from a MAL or AniList URL, or None."""
    if not url or not isinstance(url, str):
        return None
    pattern = URL_PATTERNS.get(_resolve_platform(platform))
    if pattern is None:
        return None
    match = pattern.search(url)
    return int(match.group(2)) if match else None


def process_json_import(
    data: Any,
    target: Union[Platform, str],
    kind: Union[MediaKind, str] = MediaKind.ANIME,
    channel: Optional[ProgressChannel] = None,
) -> list[CanonicalEntry]:
    """
    Turn parsed import JSON into canonical entries for a sync to ``target``.

    Raises:
        InvalidFormat: ``data`` is not an array, is empty, or has no titled item.
    """
    target = _require_target(target)
    kind = MediaKind(kind)

    if not isinstance(data, list):
        raise InvalidFormat("Invalid JSON data format. Expected an array of items.")
    if not data:
        raise InvalidFormat("JSON import is empty")

    items = [item for item in data if has_title(item)]
    if not items:
        raise InvalidFormat("No valid entries found. Each entry needs a title or name field.")

    _emit(channel, EventType.STATUS, "Processing JSON import data...", 0)

    skipped = len(data) - len(items)
    if skipped:
        logger.warning(f"Skipping {skipped} import item(s) without a title")
        _emit(channel, EventType.WARNING, f"Skipped {skipped} item(s) without a title")

    import_format = detect_import_format(items[0])
    logger.info(
        f"Detected {import_format} import format ({len(items)} {kind.value} items, target={target.value})"
    )

    if import_format == "url":
        entries = [_parse_url_item(item, target) for item in items]
    else:
        entries = [_parse_metadata_item(item) for item in items]

    _emit(channel, EventType.STATUS, f"Processed {len(entries)} items from JSON", 100)
    return entries


def parse_json_text(
    content: Union[str, bytes],
    target: Union[Platform, str],
    kind: Union[MediaKind, str] = MediaKind.ANIME,
    max_bytes: int = DEFAULT_MAX_IMPORT_BYTES,
    channel: Optional[ProgressChannel] = None,
) -> list[CanonicalEntry]:
    """Size-check, decode and parse raw import content."""
    raw = content.encode("utf-8") if isinstance(content, str) else content
    _check_size(len(raw), max_bytes)
    try:
        data = json.loads(raw.decode("utf-8"))
    except UnicodeDecodeError as e:
        raise InvalidFormat(f"Import file is not valid UTF-8: {e}") from e
    except json.JSONDecodeError as e:
        raise InvalidFormat(f"Invalid JSON format: {e}") from e
    return process_json_import(data, target, kind, channel)


def load_json_import(
    path: Union[Path, str],
    target: Union[Platform, str],
    kind: Union[MediaKind, str] = MediaKind.ANIME,
    max_bytes: int = DEFAULT_MAX_IMPORT_BYTES,
    channel: Optional[ProgressChannel] = None,
) -> list[CanonicalEntry]:
    """Read an import file from disk; oversize files are rejected before reading."""
    path = Path(path)
    try:
        _check_size(path.stat().st_size, max_bytes)
        raw = path.read_bytes()
    except OSError as e:
        raise InvalidFormat(f"Cannot read import file {path}: {e}") from e
    logger.info(f"Loaded import file {path} ({len(raw)} bytes)")
    return parse_json_text(raw, target, kind, max_bytes, channel)


def _parse_url_item(item: dict, target: Platform) -> CanonicalEntry:
    mal_url = _as_text(item.get("mal")).strip()
    al_url = _as_text(item.get("al")).strip()
    mal_id = extract_id_from_url(item.get("mal"), Platform.MAL)
    al_id = extract_id_from_url(item.get("al"), Platform.ANILIST)
    if target == Platform.ANILIST:
        direct_id, source_id = al_id, mal_id
    else:
        direct_id, source_id = mal_id, al_id

    return CanonicalEntry(
        title=_first_title(item, URL_TITLE_FIELDS),
        source_id=source_id,
        direct_target_id=direct_id,
        origin=Platform.JSON_IMPORT,
        status=ListStatus.PLANNING,
        notes=f"Imported from JSON - Original MAL: {mal_url}, AniList: {al_url}",
    )


def _parse_metadata_item(item: dict) -> CanonicalEntry:
    return CanonicalEntry(
        title=_first_title(item),
        source_id=_as_optional_int(_first(item, ID_FIELDS)),
        origin=Platform.JSON_IMPORT,
        status=parse_status(_first(item, STATUS_FIELDS)),
        score=_as_score(_first(item, SCORE_FIELDS)),
        progress=_as_int(_first(item, PROGRESS_FIELDS)),
        progress_volumes=_as_int(_first(item, VOLUME_FIELDS)),
        total_units=_as_int(_first(item, TOTAL_FIELDS)),
        start_date=_as_date(_first(item, START_FIELDS)),
        finish_date=_as_date(_first(item, FINISH_FIELDS)),
        notes=_as_text(_first(item, NOTES_FIELDS)),
    )


def _first(item: dict, fields: Sequence[str]) -> Any:
    for field in fields:
        value = item.get(field)
        if value is not None and value != "":
            return value
    return None


def _first_title(item: dict, fields: Sequence[str] = TITLE_FIELDS) -> str:
    for field in fields:
        value = item.get(field)
        if isinstance(value, str) and value.strip():
            return value
    return ""


def _as_int(value: Any) -> int:
    """Non-negative int, 0 for anything unreadable."""
    if isinstance(value, bool) or value is None:
        return 0
    try:
        number = int(round(float(value)))
    except (TypeError, ValueError, OverflowError):
        return 0
    return max(number, 0)


def _as_optional_int(value: Any) -> Optional[int]:
    number = _as_int(value)
    return number or None


def _as_score(value: Any) -> int:
    """Score on the 0-10 scale; 100-point scores are scaled down."""
    if isinstance(value, bool) or value is None:
        return 0
    try:
        score = float(value)
    except (TypeError, ValueError):
        return 0
    if not math.isfinite(score):
        return 0
    if score > 10:
        score = score / 10.0
    return max(int(round(score)), 0)


def _as_date(value: Any) -> Optional[date]:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None
    try:
        return date.fromisoformat(value.strip()[:10])
    except ValueError:
        return None


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (list, tuple)):
        return ", ".join(str(v) for v in value)
    return str(value)


def _check_size(size: int, max_bytes: int) -> None:
    if size > max_bytes:
        raise InvalidFormat(f"File size ({size} bytes) exceeds maximum allowed size ({max_bytes} bytes)")


def _resolve_platform(platform: Union[Platform, str]) -> Optional[Platform]:
    if isinstance(platform, Platform):
        return platform
    return _PLATFORM_NAMES.get(str(platform).lower())


def _require_target(target: Union[Platform, str]) -> Platform:
    resolved = _resolve_platform(target)
    if resolved not in (Platform.MAL, Platform.ANILIST):
        raise ValueError(f"Unsupported sync target: {target}")
    return resolved


def _emit(channel: Optional[ProgressChannel], type: EventType, message: str, progress: Optional[float] = None) -> None:
    if channel is not None:
        channel.emit(type, message=message, progress=progress)
