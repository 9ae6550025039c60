"""Data models for list entries, comparison results and sync outcomes."""

from datetime import date
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .constants import Platform


class ListStatus(str, Enum):
    """Platform-neutral list status."""

    WATCHING = "watching"
    COMPLETED = "completed"
    ON_HOLD = "on_hold"
    DROPPED = "dropped"
    PLANNING = "planning"


class SyncState(str, Enum):
    """Lifecycle of a sync run."""

    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class EventType(str, Enum):
    """Progress event tags."""

    STATUS = "status"
    ITEM = "item"
    SUCCESS = "success"
    ERROR = "error"
    WARNING = "warning"
    CANCELLED = "cancelled"
    COMPLETE = "complete"


class CanonicalEntry(BaseModel):
    """Common list entry model shared by every platform and the JSON import."""

    model_config = ConfigDict(frozen=True)

    # Identifiers
    title: str
    source_id: Optional[int] = None
    direct_target_id: Optional[int] = None
    origin: Platform

    # List data
    status: ListStatus = ListStatus.PLANNING
    score: int = Field(default=0, ge=0)
    progress: int = Field(default=0, ge=0)
    progress_volumes: int = Field(default=0, ge=0)
    total_units: int = Field(default=0, ge=0)

    # Dates
    start_date: Optional[date] = None
    finish_date: Optional[date] = None

    notes: str = ""

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, v: str) -> str:
        """Reject empty or whitespace-only titles."""
        v = v.strip()
        if not v:
            raise ValueError("title must not be empty")
        return v

    @field_validator("score", "progress", "progress_volumes", "total_units", mode="before")
    @classmethod
    def none_is_zero(cls, v):
        """APIs send null for unknown counters."""
        return 0 if v is None else v

    @field_validator("notes", mode="before")
    @classmethod
    def none_is_empty(cls, v):
        return "" if v is None else v


class MatchPair(BaseModel):
    """Two entries judged to be the same title."""

    model_config = ConfigDict(frozen=True)

    left: CanonicalEntry
    right: CanonicalEntry
    similarity: float = Field(ge=0.0, le=1.0)


class ReconciliationResult(BaseModel):
    """Outcome of comparing a source list against a target list."""

    model_config = ConfigDict(frozen=True)

    intersection: tuple[MatchPair, ...] = ()
    source_only: tuple[CanonicalEntry, ...] = ()
    target_only: tuple[CanonicalEntry, ...] = ()

    @property
    def stats(self) -> dict[str, int]:
        return {
            "source_total": len(self.intersection) + len(self.source_only),
            "target_total": len(self.intersection) + len(self.target_only),
            "matches": len(self.intersection),
            "source_only": len(self.source_only),
            "target_only": len(self.target_only),
        }


class SearchHit(BaseModel):
    """Result of a title search on a target platform."""

    id: int
    title: Optional[str] = None


class SyncError(BaseModel):
    """One failed entry of a sync run."""

    title: str
    reason: str
    kind: str = "SyncItemFailed"


class SyncOutcome(BaseModel):
    """Result of a sync run."""

    succeeded: int = 0
    failed: int = 0
    errors: list[SyncError] = Field(default_factory=list)

    @property
    def processed(self) -> int:
        return self.succeeded + self.failed

    @property
    def success(self) -> bool:
        return self.failed == 0


class ProgressEvent(BaseModel):
    """Message published on the progress channel."""

    type: EventType
    message: Optional[str] = None
    progress: Optional[float] = Field(default=None, ge=0.0, le=100.0)
    current: Optional[int] = None
    total: Optional[int] = None
    title: Optional[str] = None
    outcome: Optional[SyncOutcome] = None


class FetchError(BaseModel):
    """A platform whose list could not be fetched."""

    platform: Platform
    error: str
    kind: str = "PlatformError"


class FetchResult(BaseModel):
    """Lists fetched from each platform plus per-platform errors."""

    lists: dict[Platform, list[CanonicalEntry]] = Field(default_factory=dict)
    errors: list[FetchError] = Field(default_factory=list)

    def get(self, platform: Platform) -> list[CanonicalEntry]:
        return self.lists.get(platform, [])

    def failed(self, platform: Platform) -> bool:
        return any(e.platform == platform for e in self.errors)


class SyncReport(BaseModel):
    """Everything one fetch, compare and sync pipeline produced."""

    source: Platform
    target: Platform
    fetch_errors: list[FetchError] = Field(default_factory=list)
    result: Optional[ReconciliationResult] = None
    outcome: Optional[SyncOutcome] = None
    dry_run: bool = False
    skipped_reason: Optional[str] = None

    @property
    def success(self) -> bool:
        if self.fetch_errors or self.skipped_reason:
            return False
        return self.outcome is None or self.outcome.success
