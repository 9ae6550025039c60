"""Configuration management using Pydantic models."""

import logging
import os
import shutil
from pathlib import Path
from typing import Mapping, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator

from .constants import (
    DEFAULT_ANILIST_REQUESTS_PER_MINUTE,
    DEFAULT_HTTP_TIMEOUT_SECONDS,
    DEFAULT_INTER_REQUEST_DELAY_SECONDS,
    DEFAULT_JIKAN_REQUESTS_PER_SECOND,
    DEFAULT_MAL_REQUESTS_PER_SECOND,
    DEFAULT_MATCH_THRESHOLD,
    DEFAULT_MAX_IMPORT_BYTES,
    DEFAULT_WINDOW_BUFFER_SECONDS,
    MediaKind,
    Platform,
)

logger = logging.getLogger(__name__)


# Placeholder values that indicate unconfigured credentials
INVALID_PLACEHOLDERS = {
    "YOUR_ANILIST_USERNAME_HERE",
    "YOUR_ANILIST_ACCESS_TOKEN_HERE",
    "YOUR_MAL_CLIENT_ID_HERE",
    "YOUR_MAL_USERNAME_HERE",
    "YOUR_MAL_ACCESS_TOKEN_HERE",
    "",
}


class AniListConfig(BaseModel):
    """AniList account configuration."""
    username: Optional[str] = None
    access_token: Optional[str] = None


class MALConfig(BaseModel):
    """MyAnimeList account configuration."""
    client_id: Optional[str] = None
    username: Optional[str] = None
    access_token: Optional[str] = None


class RateLimitConfig(BaseModel):
    """Request pacing per platform."""
    mal_per_second: float = Field(default=DEFAULT_MAL_REQUESTS_PER_SECOND, gt=0)
    anilist_per_minute: int = Field(default=DEFAULT_ANILIST_REQUESTS_PER_MINUTE, ge=1)
    jikan_per_second: float = Field(default=DEFAULT_JIKAN_REQUESTS_PER_SECOND, gt=0)
    window_buffer_seconds: float = Field(default=DEFAULT_WINDOW_BUFFER_SECONDS, ge=0)


class MatchingConfig(BaseModel):
    """Title matching settings."""
    threshold: float = Field(default=DEFAULT_MATCH_THRESHOLD, ge=0.0, le=1.0)


class SyncConfig(BaseModel):
    """Synchronization settings."""
    source: Platform = Platform.MAL
    target: Platform = Platform.ANILIST
    kind: MediaKind = MediaKind.ANIME
    inter_request_delay_seconds: float = Field(default=DEFAULT_INTER_REQUEST_DELAY_SECONDS, ge=0)
    dry_run: bool = False
    log_level: str = "INFO"

    @field_validator("target")
    @classmethod
    def target_is_platform(cls, v: Platform) -> Platform:
        """A JSON import can only be a source."""
        if v == Platform.JSON_IMPORT:
            raise ValueError("sync target must be mal or anilist")
        return v


class ImportConfig(BaseModel):
    """JSON import settings."""
    path: Optional[str] = None
    max_file_bytes: int = Field(default=DEFAULT_MAX_IMPORT_BYTES, gt=0)


class HttpConfig(BaseModel):
    """HTTP client settings."""
    timeout_seconds: float = Field(default=DEFAULT_HTTP_TIMEOUT_SECONDS, gt=0)
    max_retries: int = Field(default=3, ge=0)


class Config(BaseModel):
    """Root configuration model."""
    model_config = ConfigDict(populate_by_name=True)

    anilist: AniListConfig = Field(default_factory=AniListConfig)
    mal: Optional[MALConfig] = None
    myanimelist: Optional[MALConfig] = None
    rate_limits: RateLimitConfig = Field(default_factory=RateLimitConfig)
    matching: MatchingConfig = Field(default_factory=MatchingConfig)
    sync: SyncConfig = Field(default_factory=SyncConfig)
    import_: ImportConfig = Field(default_factory=ImportConfig, alias="import")
    http: HttpConfig = Field(default_factory=HttpConfig)

    @field_validator("anilist", "mal", "myanimelist", mode="before")
    @classmethod
    def ensure_section(cls, v):
        """An empty YAML section loads as None."""
        return v if v is not None else {}


class Settings:
    """Application settings loaded from config.yaml and the environment."""

    def __init__(self, config_path: Optional[Union[str, Path]] = None, environ: Optional[Mapping[str, str]] = None):
        """Load and validate configuration."""
        self._environ = os.environ if environ is None else environ
        if config_path is None:
            self.config_path = self._get_config_path()
            if not self.config_path.exists():
                self._create_config_template()
        else:
            self.config_path = Path(config_path)

        self._load_config()

    def _get_config_path(self) -> Path:
        """Get config file path based on environment."""
        if os.path.exists("/.dockerenv"):
            return Path("/app/data/config.yaml")
        return Path("data/config.yaml")

    def _create_config_template(self) -> None:
        """Create config template from example."""
        example_path = Path("config.example.yaml")
        if example_path.exists():
            self.config_path.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy(example_path, self.config_path)
            logger.info(f"Created config template: {self.config_path}")
            logger.info("Please edit the config file with your usernames and tokens")

    def _read_raw(self) -> dict:
        if not self.config_path.exists():
            logger.warning(f"Config file {self.config_path} not found, using defaults")
            return {}
        with open(self.config_path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
        if not isinstance(raw, dict):
            raise ValueError(f"{self.config_path} must contain a mapping at the top level")
        return raw

    def _load_config(self) -> None:
        """Load configuration from YAML using Pydantic."""
        try:
            config = Config(**self._read_raw())
        except Exception as e:
            logger.error(f"Failed to load config: {e}")
            raise
        logger.info(f"Loaded configuration from {self.config_path}")
        self.config = config

        env = self._environ
        self.anilist_username = config.anilist.username
        self.anilist_access_token = env.get("ANILIST_ACCESS_TOKEN") or config.anilist.access_token

        # Support both "mal" and "myanimelist" keys
        mal_config = config.myanimelist or config.mal or MALConfig()
        self.mal_username = mal_config.username
        self.mal_client_id = env.get("MAL_CLIENT_ID") or mal_config.client_id
        self.mal_access_token = env.get("MAL_ACCESS_TOKEN") or mal_config.access_token

        self.rate_limits = config.rate_limits
        self.match_threshold = config.matching.threshold

        self.source = config.sync.source
        self.target = config.sync.target
        self.kind = config.sync.kind
        self.inter_request_delay = config.sync.inter_request_delay_seconds
        self.dry_run = config.sync.dry_run
        self.log_level = config.sync.log_level

        self.import_path = config.import_.path
        self.max_import_bytes = config.import_.max_file_bytes

        self.http_timeout = config.http.timeout_seconds
        self.http_max_retries = config.http.max_retries

    def username_for(self, platform: Platform) -> Optional[str]:
        platform = Platform(platform)
        if platform == Platform.ANILIST:
            return _configured(self.anilist_username)
        if platform == Platform.MAL:
            return _configured(self.mal_username)
        return None

    def usernames(self) -> dict[Platform, str]:
        """Configured usernames keyed by platform."""
        names = {}
        for platform in (Platform.MAL, Platform.ANILIST):
            name = self.username_for(platform)
            if name:
                names[platform] = name
        return names

    def missing_credentials(
        self, source: Optional[Platform] = None, target: Optional[Platform] = None, write: bool = True
    ) -> list[str]:
        """
        Names of the settings a source/target pair still needs.

        Placeholder values count as missing. Reading only needs usernames,
        since public MAL lists fall back to Jikan. Writing needs the target
        platform's token, which is only checked when ``write`` is set.
        """
        source = Platform(source or self.source)
        target = Platform(target or self.target)
        missing = []

        for platform in (source, target):
            if platform == Platform.JSON_IMPORT:
                continue
            if not self.username_for(platform):
                missing.append(f"{platform.value}.username")

        if write and target == Platform.MAL and not _configured(self.mal_access_token):
            missing.append("MAL_ACCESS_TOKEN")
        if write and target == Platform.ANILIST and not _configured(self.anilist_access_token):
            missing.append("ANILIST_ACCESS_TOKEN")

        return list(dict.fromkeys(missing))


def _configured(value: Optional[str]) -> Optional[str]:
    if value is None or value.strip() in INVALID_PLACEHOLDERS:
        return None
    return value.strip()


def load_settings(config_path: Optional[Union[str, Path]] = None, environ: Optional[Mapping[str, str]] = None) -> Settings:
    """Load a fresh Settings object; nothing is cached between calls."""
    return Settings(config_path, environ)
