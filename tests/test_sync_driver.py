"""Tests for the sync driver."""

import asyncio

import pytest
from fakes import FakeMutator, SleepRecorder, make_entry

from anilist_mal_reconcile.constants import MediaKind, Platform
from anilist_mal_reconcile.errors import SyncAlreadyRunning
from anilist_mal_reconcile.models import EventType, SyncState
from anilist_mal_reconcile.sync_driver import SyncDriver


def _driver(mutator, channel=None, delay=1.0, target=Platform.ANILIST):
    sleeps = SleepRecorder()
    driver = SyncDriver({target: mutator}, channel=channel, inter_request_delay=delay, sleep=sleeps)
    return driver, sleeps


def _entries(n):
    return [make_entry(f"Title {i}", direct_target_id=100 + i) for i in range(n)]


def test_pushes_every_entry(channel, events):
    """All entries are pushed by their direct target ID."""
    mutator = FakeMutator()
    driver, sleeps = _driver(mutator, channel)

    outcome = asyncio.run(driver.sync_to_target(_entries(3), Platform.ANILIST, MediaKind.ANIME))

    assert outcome.succeeded == 3
    assert outcome.failed == 0
    assert mutator.upserts == [(100, "Title 0"), (101, "Title 1"), (102, "Title 2")]
    assert driver.state == SyncState.COMPLETED
    assert sleeps.delays == [1.0, 1.0]
    assert events[-1].type == EventType.COMPLETE
    assert events[-1].outcome.succeeded == 3
    assert [e.current for e in events if e.type == EventType.ITEM] == [1, 2, 3]


def test_failed_item_does_not_abort_run(events, channel):
    """One failing entry is recorded and the rest still run."""
    mutator = FakeMutator(fail_titles={"Title 2"})
    driver, _ = _driver(mutator, channel)

    outcome = asyncio.run(driver.sync_to_target(_entries(5), Platform.ANILIST))

    assert outcome.succeeded == 4
    assert outcome.failed == 1
    assert outcome.processed == 5
    assert outcome.errors[0].title == "Title 2"
    assert "upsert rejected" in outcome.errors[0].reason
    assert outcome.errors[0].kind == "PlatformError"
    assert driver.state == SyncState.COMPLETED
    assert any(e.type == EventType.ERROR and e.title == "Title 2" for e in events)


def test_cancel_stops_before_next_entry(channel, events):
    """Cancelling during entry j finishes it and stops there."""
    driver = None

    def cancel_on_third(entry):
        if entry.title == "Title 2":
            assert driver.cancel() is True

    mutator = FakeMutator(on_upsert=cancel_on_third)
    driver, sleeps = _driver(mutator, channel)

    outcome = asyncio.run(driver.sync_to_target(_entries(6), Platform.ANILIST))

    assert outcome.processed == 3
    assert outcome.succeeded == 3
    assert driver.state == SyncState.CANCELLED
    assert events[-1].type == EventType.CANCELLED
    assert events[-1].outcome.processed == 3
    # No wait after the entry during which cancel arrived
    assert sleeps.delays == [1.0, 1.0]


def test_timeout_counts_as_item_failure(channel, events):
    """A timed-out upsert is recorded like any other failure and the run goes on."""

    def time_out(entry):
        if entry.title == "Title 1":
            raise TimeoutError("timed out")

    driver, _ = _driver(FakeMutator(on_upsert=time_out), channel)

    outcome = asyncio.run(driver.sync_to_target(_entries(3), Platform.ANILIST))

    assert outcome.succeeded == 2
    assert outcome.failed == 1
    assert outcome.errors[0].title == "Title 1"
    assert outcome.errors[0].reason == "timed out"
    assert outcome.errors[0].kind == "SyncItemFailed"
    assert driver.state == SyncState.COMPLETED
    assert events[-1].type == EventType.COMPLETE


def test_cancel_when_idle_returns_false():
    """Nothing to cancel outside a run."""
    driver, _ = _driver(FakeMutator())
    assert driver.cancel() is False
    assert driver.state == SyncState.IDLE


def test_search_resolves_missing_target_id():
    """Entries without a direct ID are looked up by title."""
    mutator = FakeMutator(search={"Monster": 19})
    driver, _ = _driver(mutator)

    outcome = asyncio.run(driver.sync_to_target([make_entry("Monster")], Platform.ANILIST))

    assert outcome.succeeded == 1
    assert mutator.searches == ["Monster"]
    assert mutator.upserts == [(19, "Monster")]


def test_search_without_hit_is_not_found():
    """No search result means the entry fails with NotFound."""
    driver, _ = _driver(FakeMutator(search={}))

    outcome = asyncio.run(driver.sync_to_target([make_entry("Unknown Show")], Platform.ANILIST))

    assert outcome.failed == 1
    assert outcome.errors[0].kind == "NotFound"


def test_no_search_support_records_failure(channel, events):
    """Without search and without a direct ID the entry fails with SearchUnsupported."""
    mutator = FakeMutator(supports_search=False)
    driver, _ = _driver(mutator, channel, target=Platform.MAL)
    entry = make_entry("X", Platform.JSON_IMPORT, source_id=1)

    outcome = asyncio.run(driver.sync_to_target([entry], Platform.MAL))

    assert outcome.succeeded == 0
    assert outcome.failed == 1
    assert outcome.errors[0].kind == "SearchUnsupported"
    assert mutator.upserts == []
    assert mutator.searches == []
    assert any(e.type == EventType.WARNING for e in events)
    assert driver.state == SyncState.COMPLETED


def test_empty_list(channel, events):
    """An empty run completes immediately."""
    driver, sleeps = _driver(FakeMutator(), channel)

    outcome = asyncio.run(driver.sync_to_target([], Platform.ANILIST))

    assert outcome.processed == 0
    assert driver.state == SyncState.COMPLETED
    assert events[0].message == "No items to sync"
    assert sleeps.delays == []


def test_only_one_run_at_a_time():
    """A second run while one is active is refused."""
    driver, _ = _driver(FakeMutator())
    driver.state = SyncState.RUNNING

    with pytest.raises(SyncAlreadyRunning):
        asyncio.run(driver.sync_to_target(_entries(1), Platform.ANILIST))


def test_unknown_target():
    """A target without a mutator is a programming error."""
    driver, _ = _driver(FakeMutator(), target=Platform.ANILIST)

    with pytest.raises(ValueError):
        asyncio.run(driver.sync_to_target(_entries(1), Platform.MAL))


def test_status_reports_live_counts():
    """Status exposes state and the last outcome."""
    driver, _ = _driver(FakeMutator(), delay=0)
    asyncio.run(driver.sync_to_target(_entries(2), Platform.ANILIST))

    status = driver.status()

    assert status["state"] == "completed"
    assert status["is_running"] is False
    assert status["current_operation"] is None
    assert status["outcome"]["succeeded"] == 2
