"""Unit tests for data models."""

from datetime import date

import pytest
from pydantic import ValidationError

from anilist_mal_reconcile.constants import Platform
from anilist_mal_reconcile.models import (
    CanonicalEntry,
    FetchError,
    FetchResult,
    ListStatus,
    MatchPair,
    ReconciliationResult,
    SyncError,
    SyncOutcome,
    SyncReport,
)


def test_canonical_entry_creation():
    """Test creating a canonical entry."""
    entry = CanonicalEntry(
        title="Test Anime",
        source_id=1,
        origin=Platform.MAL,
        status=ListStatus.WATCHING,
        progress=5,
        start_date=date(2023, 1, 2),
    )

    assert entry.title == "Test Anime"
    assert entry.source_id == 1
    assert entry.direct_target_id is None
    assert entry.status == ListStatus.WATCHING
    assert entry.progress == 5
    assert entry.score == 0
    assert entry.notes == ""


def test_title_is_stripped_and_required():
    """Titles are trimmed; blank titles are rejected."""
    assert CanonicalEntry(title="  Monster  ", origin=Platform.MAL).title == "Monster"

    with pytest.raises(ValidationError):
        CanonicalEntry(title="   ", origin=Platform.MAL)


def test_counters_validation():
    """Null counters read as zero, negative ones are rejected."""
    entry = CanonicalEntry(title="Test", origin=Platform.ANILIST, score=None, progress=None, notes=None)
    assert entry.score == 0
    assert entry.progress == 0
    assert entry.notes == ""

    with pytest.raises(ValidationError):
        CanonicalEntry(title="Test", origin=Platform.ANILIST, score=-1)


def test_entry_is_immutable():
    """Entries are frozen value objects."""
    entry = CanonicalEntry(title="Test", origin=Platform.MAL)
    with pytest.raises(ValidationError):
        entry.title = "Other"


def test_reconciliation_stats():
    """Stats count both sides of the intersection."""
    a = CanonicalEntry(title="A", origin=Platform.MAL)
    b = CanonicalEntry(title="B", origin=Platform.MAL)
    c = CanonicalEntry(title="C", origin=Platform.ANILIST)
    result = ReconciliationResult(
        intersection=(MatchPair(left=a, right=c, similarity=0.9),),
        source_only=(b,),
        target_only=(),
    )

    assert result.stats == {
        "source_total": 2,
        "target_total": 1,
        "matches": 1,
        "source_only": 1,
        "target_only": 0,
    }


def test_sync_outcome_counts():
    """Outcome success means nothing failed."""
    outcome = SyncOutcome(succeeded=2)
    assert outcome.processed == 2
    assert outcome.success

    outcome.failed += 1
    outcome.errors.append(SyncError(title="X", reason="boom"))
    assert outcome.processed == 3
    assert not outcome.success
    assert outcome.errors[0].kind == "SyncItemFailed"


def test_fetch_result_lookup():
    """Missing platforms read as empty lists."""
    result = FetchResult(errors=[FetchError(platform=Platform.MAL, error="down")])
    assert result.get(Platform.ANILIST) == []
    assert result.failed(Platform.MAL)
    assert not result.failed(Platform.ANILIST)


def test_sync_report_success():
    """A skipped or partially failed run is not a success."""
    assert SyncReport(source=Platform.MAL, target=Platform.ANILIST).success
    assert not SyncReport(source=Platform.MAL, target=Platform.ANILIST, skipped_reason="x").success
    assert not SyncReport(
        source=Platform.MAL, target=Platform.ANILIST, outcome=SyncOutcome(succeeded=1, failed=1)
    ).success
