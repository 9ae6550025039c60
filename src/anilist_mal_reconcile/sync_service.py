"""Sync session: wires providers, reconciler and sync driver into one pipeline."""

import asyncio
import logging
from pathlib import Path
from typing import Mapping, Optional, Sequence, Union

from .anilist_client import AniListClient
from .config import Settings
from .constants import (
    DEFAULT_INTER_REQUEST_DELAY_SECONDS,
    DEFAULT_MATCH_THRESHOLD,
    DEFAULT_MAX_IMPORT_BYTES,
    MediaKind,
    Platform,
)
from .errors import InvalidFormat, SyncAlreadyRunning
from .jikan_client import JikanClient
from .json_import import load_json_import
from .mal_client import MALClient
from .models import (
    CanonicalEntry,
    EventType,
    FetchError,
    FetchResult,
    ReconciliationResult,
    SyncOutcome,
    SyncReport,
)
from .ports import FallbackListProvider, ListMutator, ListProvider
from .progress import ProgressChannel, ProgressHistory
from .rate_limiter import RateLimiter
from .reconciler import Reconciler
from .sync_driver import Sleep, SyncDriver

logger = logging.getLogger(__name__)


class SyncSession:
    """
    Owns everything one user session needs: the progress channel and its
    history, the shared rate limiter, the reconciler and the sync driver.

    Nothing here is module-level state, so tests and the web app can build as
    many independent sessions as they like.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        providers: Optional[Mapping[Platform, ListProvider]] = None,
        mutators: Optional[Mapping[Platform, ListMutator]] = None,
        channel: Optional[ProgressChannel] = None,
        rate_limiter: Optional[RateLimiter] = None,
        sleep: Sleep = asyncio.sleep,
    ):
        self.settings = settings
        self.providers = dict(providers or {})
        self.mutators = dict(mutators or {})
        self.channel = channel or ProgressChannel()
        self.history = ProgressHistory()
        self.history.attach(self.channel)

        if rate_limiter is None:
            rate_limiter = RateLimiter.from_config(settings.rate_limits) if settings else RateLimiter()
        self.rate_limiter = rate_limiter

        threshold = settings.match_threshold if settings else DEFAULT_MATCH_THRESHOLD
        delay = settings.inter_request_delay if settings else DEFAULT_INTER_REQUEST_DELAY_SECONDS
        self.reconciler = Reconciler(self.channel, threshold)
        self.driver = SyncDriver(self.mutators, self.channel, delay, sleep)
        self.last_report: Optional[SyncReport] = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "SyncSession":
        """Build a session with the real AniList, MAL and Jikan clients."""
        limiter = RateLimiter.from_config(settings.rate_limits)
        http = {"timeout": settings.http_timeout, "max_retries": settings.http_max_retries}

        anilist = AniListClient(settings.anilist_access_token, rate_limiter=limiter, **http)
        mal = MALClient(settings.mal_access_token, settings.mal_client_id, rate_limiter=limiter, **http)
        jikan = JikanClient(rate_limiter=limiter, **http)

        providers = {
            Platform.ANILIST: anilist,
            Platform.MAL: FallbackListProvider(mal, jikan, name="MAL"),
        }
        mutators = {Platform.ANILIST: anilist, Platform.MAL: mal}
        return cls(settings, providers, mutators, rate_limiter=limiter)

    @property
    def is_running(self) -> bool:
        return self.driver.is_running

    def status(self) -> dict:
        """Driver status plus a summary of the last pipeline run."""
        status = self.driver.status()
        report = self.last_report
        status["last_report"] = None
        if report is not None:
            status["last_report"] = {
                "source": report.source.value,
                "target": report.target.value,
                "dry_run": report.dry_run,
                "success": report.success,
                "skipped_reason": report.skipped_reason,
                "fetch_errors": [e.model_dump(mode="json") for e in report.fetch_errors],
                "stats": report.result.stats if report.result is not None else None,
            }
        return status

    def cancel(self) -> bool:
        return self.driver.cancel()

    async def fetch_lists(self, usernames: Mapping[Platform, Optional[str]], kind: MediaKind) -> FetchResult:
        """
        Fetch every requested list concurrently.

        A failing platform is recorded in ``FetchResult.errors`` and does not
        stop the others.
        """
        kind = MediaKind(kind)
        platforms = [Platform(p) for p in usernames]
        result = FetchResult()
        self.channel.emit(EventType.STATUS, message="Fetching lists...", progress=0)

        async def fetch_one(platform: Platform) -> list[CanonicalEntry]:
            username = usernames.get(platform)
            provider = self.providers.get(platform)
            if not username:
                raise ValueError(f"No {platform.value} username configured")
            if provider is None:
                raise ValueError(f"No list provider configured for {platform.value}")
            self.channel.emit(EventType.STATUS, message=f"Fetching {platform.value} {kind.value} list...")
            return await provider.fetch_list(username, kind)

        outcomes = await asyncio.gather(*(fetch_one(p) for p in platforms), return_exceptions=True)

        for platform, outcome in zip(platforms, outcomes):
            if isinstance(outcome, Exception):
                reason = str(outcome) or outcome.__class__.__name__
                logger.error(f"Failed to fetch {platform.value} list: {reason}")
                result.errors.append(FetchError(platform=platform, error=reason, kind=type(outcome).__name__))
                self.channel.emit(EventType.ERROR, message=f"Failed to fetch {platform.value} list: {reason}")
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                result.lists[platform] = outcome
                self.channel.emit(
                    EventType.STATUS, message=f"Fetched {len(outcome)} entries from {platform.value}"
                )

        self.channel.emit(EventType.STATUS, message="Lists fetched", progress=100)
        return result

    def import_json(
        self,
        path: Union[Path, str],
        target: Platform,
        kind: MediaKind = MediaKind.ANIME,
    ) -> list[CanonicalEntry]:
        """Read a JSON import file; raises InvalidFormat before anything touches the network."""
        max_bytes = self.settings.max_import_bytes if self.settings else DEFAULT_MAX_IMPORT_BYTES
        return load_json_import(path, target, kind, max_bytes=max_bytes, channel=self.channel)

    def compare(self, source: Sequence[CanonicalEntry], target: Sequence[CanonicalEntry]) -> ReconciliationResult:
        return self.reconciler.compare(source, target)

    async def sync_missing(
        self, entries: Sequence[CanonicalEntry], target: Platform, kind: MediaKind = MediaKind.ANIME
    ) -> SyncOutcome:
        return await self.driver.sync_to_target(entries, target, kind)

    async def run(
        self,
        source: Union[Platform, str],
        target: Union[Platform, str],
        kind: Union[MediaKind, str],
        usernames: Mapping[Platform, Optional[str]],
        import_path: Optional[Union[Path, str]] = None,
        dry_run: bool = False,
    ) -> SyncReport:
        """
        Fetch (or import) both lists, compare them and push what the target lacks.

        A list that fails to fetch compares as empty, and the push is skipped
        with ``skipped_reason`` set.

        Raises:
            InvalidFormat: the JSON import is unusable; raised before any request.
            SyncAlreadyRunning: a sync is still in progress.
            ValueError: source and target are the same or the target is not a platform.
        """
        source = Platform(source)
        target = Platform(target)
        kind = MediaKind(kind)
        if target == Platform.JSON_IMPORT:
            raise ValueError("A JSON import can only be used as the source")
        if source == target:
            raise ValueError("Source and target must differ")
        if self.driver.is_running:
            raise SyncAlreadyRunning("A sync is already running")

        imported: Optional[list[CanonicalEntry]] = None
        if source == Platform.JSON_IMPORT:
            path = import_path or (self.settings.import_path if self.settings else None)
            if not path:
                raise InvalidFormat("No JSON import file given")
            imported = self.import_json(path, target, kind)
            wanted = {target: usernames.get(target)}
        else:
            wanted = {source: usernames.get(source), target: usernames.get(target)}

        fetched = await self.fetch_lists(wanted, kind)
        source_entries = imported if imported is not None else fetched.get(source)

        skipped_reason = None
        if fetched.failed(target):
            skipped_reason = f"{target.value} list could not be fetched"
        elif fetched.failed(source):
            skipped_reason = f"{source.value} list could not be fetched"

        # A failed side compares as an empty list
        result = self.compare(source_entries, fetched.get(target))
        outcome = None
        if skipped_reason:
            logger.warning(f"Skipping sync: {skipped_reason}")
            self.channel.emit(EventType.WARNING, message=f"Sync skipped: {skipped_reason}")
        elif dry_run:
            logger.info(f"Dry run: {len(result.source_only)} entries would be added to {target.value}")
            self.channel.emit(
                EventType.STATUS,
                message=f"Dry run: {len(result.source_only)} entries would be added to {target.value}",
                progress=100,
            )
        else:
            outcome = await self.sync_missing(result.source_only, target, kind)

        report = SyncReport(
            source=source,
            target=target,
            fetch_errors=fetched.errors,
            result=result,
            outcome=outcome,
            dry_run=dry_run,
            skipped_reason=skipped_reason,
        )
        self.last_report = report
        return report

    def close(self) -> None:
        """Close HTTP sessions held by the platform clients."""
        for client in [*self.providers.values(), *self.mutators.values()]:
            close = getattr(client, "close", None)
            if callable(close):
                close()
