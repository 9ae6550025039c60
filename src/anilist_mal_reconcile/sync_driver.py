"""Sequential push of missing entries to a target platform."""

import asyncio
import logging
from typing import Awaitable, Callable, Mapping, Optional, Sequence, Union

from .constants import DEFAULT_INTER_REQUEST_DELAY_SECONDS, MediaKind, Platform
from .errors import NotFound, ReconcileError, SearchUnsupported, SyncAlreadyRunning, SyncItemFailed
from .models import CanonicalEntry, EventType, SyncError, SyncOutcome, SyncState
from .ports import ListMutator
from .progress import ProgressChannel

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


class SyncDriver:
    """
    Pushes entries to a target platform one at a time.

    A run goes ``IDLE -> RUNNING -> COMPLETED | CANCELLED``. Only one run may
    be active; a failing entry is recorded and the run moves on to the next
    one. ``cancel()`` is checked before each entry, so the entry being pushed
    when it is called still finishes.
    """

    def __init__(
        self,
        mutators: Mapping[Platform, ListMutator],
        channel: Optional[ProgressChannel] = None,
        inter_request_delay: float = DEFAULT_INTER_REQUEST_DELAY_SECONDS,
        sleep: Sleep = asyncio.sleep,
    ):
        """Initialize with one mutator per target platform."""
        self.mutators = dict(mutators)
        self.channel = channel or ProgressChannel()
        self.inter_request_delay = inter_request_delay
        self._sleep = sleep
        self.state = SyncState.IDLE
        self.outcome: Optional[SyncOutcome] = None
        self.current_operation: Optional[str] = None
        self._cancel_requested = False

    @staticmethod
    def _safe_title(title: str) -> str:
        """Return a console-safe title string (avoid encoding errors on Windows)."""
        if not title:
            return ""
        return title.encode("ascii", "replace").decode("ascii")

    @property
    def is_running(self) -> bool:
        return self.state == SyncState.RUNNING

    def status(self) -> dict:
        """Current state, operation and live counts."""
        return {
            "state": self.state.value,
            "is_running": self.is_running,
            "current_operation": self.current_operation,
            "outcome": self.outcome.model_dump() if self.outcome is not None else None,
        }

    def cancel(self) -> bool:
        """Ask the running sync to stop before its next entry. Returns False when idle."""
        if not self.is_running:
            logger.info("Cancel requested but no sync is running")
            return False
        logger.info("Cancelling sync after the current entry")
        self._cancel_requested = True
        return True

    async def sync_to_target(
        self,
        entries: Sequence[CanonicalEntry],
        target: Union[Platform, str],
        kind: Union[MediaKind, str] = MediaKind.ANIME,
    ) -> SyncOutcome:
        """
        Push ``entries`` to ``target`` in order and return the counts.

        Raises:
            SyncAlreadyRunning: another run has not finished yet.
            ValueError: no mutator is registered for ``target``.
        """
        if self.is_running:
            raise SyncAlreadyRunning("A sync is already running")
        target = Platform(target)
        kind = MediaKind(kind)
        mutator = self.mutators.get(target)
        if mutator is None:
            raise ValueError(f"No list mutator configured for {target.value}")

        entries = list(entries)
        total = len(entries)
        outcome = SyncOutcome()
        self.outcome = outcome
        self.state = SyncState.RUNNING
        self.current_operation = "sync"
        self._cancel_requested = False
        cancelled = False

        try:
            if not entries:
                self.channel.emit(EventType.STATUS, message="No items to sync", progress=100)
            else:
                logger.info(f"Starting sync of {total} {kind.value} entries to {target.value}")
                self.channel.emit(EventType.STATUS, message=f"Starting sync to {target.value}...", progress=0)

            for index, entry in enumerate(entries):
                if self._cancel_requested:
                    cancelled = True
                    break

                progress = (index + 1) / total * 100
                self.channel.emit(
                    EventType.ITEM,
                    message=f"Syncing: {entry.title}",
                    progress=progress,
                    current=index + 1,
                    total=total,
                    title=entry.title,
                )

                try:
                    await self._push(mutator, entry, target, kind)
                except Exception as e:
                    reason = str(e) or e.__class__.__name__
                    logger.error(f"Error syncing {self._safe_title(entry.title)}: {reason}")
                    outcome.failed += 1
                    outcome.errors.append(SyncError(title=entry.title, reason=reason, kind=_error_kind(e)))
                    self.channel.emit(
                        EventType.ERROR,
                        message=f"Failed: {entry.title} - {reason}",
                        progress=progress,
                        title=entry.title,
                    )
                else:
                    outcome.succeeded += 1
                    logger.info(f"Added {self._safe_title(entry.title)} to {target.value}")
                    self.channel.emit(
                        EventType.SUCCESS,
                        message=f"Added: {entry.title}",
                        progress=progress,
                        title=entry.title,
                    )

                if index < total - 1 and self.inter_request_delay > 0 and not self._cancel_requested:
                    await self._sleep(self.inter_request_delay)
        except BaseException:
            # Task cancelled or interpreter shutting down mid-run
            self.state = SyncState.CANCELLED
            raise
        finally:
            self.current_operation = None
            self._cancel_requested = False

        if cancelled:
            self.state = SyncState.CANCELLED
            logger.info(f"Sync cancelled: {outcome.succeeded} succeeded, {outcome.failed} failed")
            self.channel.emit(
                EventType.CANCELLED,
                message="Operation cancelled by user",
                progress=_percent(outcome.processed, total),
                current=outcome.processed,
                total=total,
                outcome=outcome,
            )
            return outcome

        self.state = SyncState.COMPLETED
        logger.info(f"Sync complete: {outcome.succeeded} successful, {outcome.failed} failed")
        self.channel.emit(
            EventType.COMPLETE,
            message=f"Sync complete: {outcome.succeeded} successful, {outcome.failed} failed",
            progress=100,
            current=outcome.processed,
            total=total,
            outcome=outcome,
        )
        return outcome

    async def _push(self, mutator: ListMutator, entry: CanonicalEntry, target: Platform, kind: MediaKind) -> None:
        target_id = entry.direct_target_id
        if target_id is None:
            target_id = await self._resolve_by_search(mutator, entry, target, kind)
        await mutator.upsert_entry(target_id, entry, kind)

    async def _resolve_by_search(
        self, mutator: ListMutator, entry: CanonicalEntry, target: Platform, kind: MediaKind
    ) -> int:
        if not getattr(mutator, "supports_search", False):
            self.channel.emit(
                EventType.WARNING,
                message=f"Search not implemented for {target.value} - cannot add {entry.title}",
                title=entry.title,
            )
            raise SearchUnsupported(f"Title search is not supported on {target.value} and no direct ID is known")

        hit = await mutator.search_by_title(entry.title, kind)
        if hit is None:
            raise NotFound(f"Could not find matching item on {target.value}", platform=target.value)
        logger.debug(f"Resolved {self._safe_title(entry.title)} to {target.value} ID {hit.id}")
        return hit.id


def _error_kind(error: Exception) -> str:
    if isinstance(error, ReconcileError):
        return type(error).__name__
    return SyncItemFailed.__name__


def _percent(done: int, total: int) -> float:
    return done / total * 100 if total else 0.0
