"""Constants used throughout the application."""

from enum import Enum


class Platform(str, Enum):
    """Where an entry came from or is being pushed to."""

    MAL = "mal"
    ANILIST = "anilist"
    JSON_IMPORT = "json"


class MediaKind(str, Enum):
    """List type."""

    ANIME = "anime"
    MANGA = "manga"


# Rate limiter keys (Jikan is read-only, so it is not a Platform)
RATE_KEY_MAL = Platform.MAL.value
RATE_KEY_ANILIST = Platform.ANILIST.value
RATE_KEY_JIKAN = "jikan"

# HTTP Status Codes
HTTP_UNAUTHORIZED = 401
HTTP_FORBIDDEN = 403
HTTP_NOT_FOUND = 404
HTTP_TOO_MANY_REQUESTS = 429

# Default values
DEFAULT_MATCH_THRESHOLD = 0.85
DEFAULT_INTER_REQUEST_DELAY_SECONDS = 1.0
DEFAULT_MAX_IMPORT_BYTES = 10 * 1024 * 1024  # 10 MiB
DEFAULT_MAL_REQUESTS_PER_SECOND = 1.0
DEFAULT_ANILIST_REQUESTS_PER_MINUTE = 90
DEFAULT_JIKAN_REQUESTS_PER_SECOND = 3.0
DEFAULT_WINDOW_BUFFER_SECONDS = 1.0
DEFAULT_HTTP_TIMEOUT_SECONDS = 30.0
DEFAULT_WEB_UI_PORT = 8080
PROGRESS_HISTORY_LIMIT = 500
