"""Progress reporting: a synchronous publish/subscribe channel and an event history."""

import logging
import threading
from collections import deque
from datetime import datetime, timezone
from typing import Callable, Optional

from .constants import PROGRESS_HISTORY_LIMIT
from .models import EventType, ProgressEvent, SyncOutcome

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[ProgressEvent], None]


class ProgressChannel:
    """Fan-out of progress events to subscribers, in subscription order."""

    def __init__(self):
        self._subscribers: list[ProgressCallback] = []

    def subscribe(self, callback: ProgressCallback) -> Callable[[], None]:
        """Register a callback and return a function that removes it again."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def publish(self, event: ProgressEvent) -> None:
        """Deliver an event to every subscriber; a failing subscriber is logged and skipped."""
        for callback in list(self._subscribers):
            try:
                callback(event)
            except Exception:
                logger.exception(f"Progress subscriber failed on {event.type.value} event")

    def emit(
        self,
        type: EventType,
        message: Optional[str] = None,
        progress: Optional[float] = None,
        current: Optional[int] = None,
        total: Optional[int] = None,
        title: Optional[str] = None,
        outcome: Optional[SyncOutcome] = None,
    ) -> ProgressEvent:
        """Build and publish an event."""
        event = ProgressEvent(
            type=type,
            message=message,
            progress=progress,
            current=current,
            total=total,
            title=title,
            outcome=outcome.model_copy(deep=True) if outcome is not None else None,
        )
        self.publish(event)
        return event

    def __len__(self) -> int:
        return len(self._subscribers)


class ProgressHistory:
    """
    Subscriber that keeps the most recent events with their arrival time.

    Safe to read from another thread while a sync records into it.
    """

    def __init__(self, limit: int = PROGRESS_HISTORY_LIMIT):
        self._entries: deque[tuple[datetime, ProgressEvent]] = deque(maxlen=limit)
        self._unsubscribe: Optional[Callable[[], None]] = None
        self._lock = threading.Lock()

    def attach(self, channel: ProgressChannel) -> None:
        self.detach()
        self._unsubscribe = channel.subscribe(self.record)

    def detach(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def record(self, event: ProgressEvent) -> None:
        with self._lock:
            self._entries.append((datetime.now(timezone.utc), event))

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def _snapshot(self) -> list[tuple[datetime, ProgressEvent]]:
        with self._lock:
            return list(self._entries)

    @property
    def events(self) -> list[ProgressEvent]:
        return [event for _, event in self._snapshot()]

    def as_dicts(self) -> list[dict]:
        """Events as JSON-ready dicts with an ISO timestamp."""
        return [
            {"timestamp": ts.isoformat(), **event.model_dump(mode="json", exclude_none=True)}
            for ts, event in self._snapshot()
        ]

    def export_log(self) -> str:
        """Render the history as plain-text log lines."""
        return "\n".join(
            f"{ts.isoformat()} [{event.type.value.upper()}] {event.message or ''}".rstrip()
            for ts, event in self._snapshot()
        )
