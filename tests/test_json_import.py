"""Tests for JSON import parsing."""

import json
from datetime import date

import pytest

from anilist_mal_reconcile.constants import MediaKind, Platform
from anilist_mal_reconcile.errors import InvalidFormat
from anilist_mal_reconcile.json_import import (
    detect_import_format,
    extract_id_from_url,
    load_json_import,
    parse_json_text,
    process_json_import,
)
from anilist_mal_reconcile.models import EventType, ListStatus


def test_extract_id_from_url():
    """IDs come out of MAL and AniList URLs; anything else gives None."""
    assert extract_id_from_url("https://myanimelist.net/anime/16498/", "mal") == 16498
    assert extract_id_from_url("https://myanimelist.net/manga/2/Berserk", Platform.MAL) == 2
    assert extract_id_from_url("https://anilist.co/anime/21/One-Piece/", "anilist") == 21
    assert extract_id_from_url("", "mal") is None
    assert extract_id_from_url(None, "mal") is None
    assert extract_id_from_url("https://anilist.co/anime/21/", "mal") is None
    assert extract_id_from_url("https://myanimelist.net/anime/abc/", "mal") is None
    assert extract_id_from_url("https://myanimelist.net/anime/1/", "kitsu") is None


def test_detect_import_format():
    """Any mal/al key means the URL layout, even next to metadata fields."""
    assert detect_import_format({"name": "X", "mal": "", "al": ""}) == "url"
    assert detect_import_format({"name": "X", "al": "https://anilist.co/anime/1/"}) == "url"
    assert detect_import_format({"title": "X", "status": "completed", "mal": ""}) == "url"
    assert detect_import_format({"title": "X", "status": "completed"}) == "metadata"
    assert detect_import_format("not an object") == "metadata"


def test_url_import_targeting_anilist():
    """The AniList ID becomes the direct target ID, the MAL ID the source ID."""
    data = [
        {"name": "Attack on Titan", "mal": "https://myanimelist.net/anime/16498/", "al": "https://anilist.co/anime/16498/"},
        {"name": "X", "mal": "https://myanimelist.net/anime/1/", "al": ""},
    ]

    entries = process_json_import(data, Platform.ANILIST)

    assert [e.title for e in entries] == ["Attack on Titan", "X"]
    assert entries[0].direct_target_id == 16498
    assert entries[1].direct_target_id is None
    assert entries[1].source_id == 1
    assert all(e.origin == Platform.JSON_IMPORT for e in entries)
    assert all(e.status == ListStatus.PLANNING for e in entries)
    assert entries[1].notes == "Imported from JSON - Original MAL: https://myanimelist.net/anime/1/, AniList: "


def test_url_import_targeting_mal():
    """For a MAL target the MAL URL supplies the direct ID."""
    entries = process_json_import([{"name": "X", "mal": "https://myanimelist.net/anime/1/", "al": ""}], "mal")
    assert entries[0].direct_target_id == 1
    assert entries[0].source_id is None


def test_metadata_import_with_aliases():
    """Common export field names are understood."""
    data = [
        {
            "series_title": "Monster",
            "my_status": "Completed",
            "my_score": 90,
            "watched_episodes": "74",
            "num_episodes": 74,
            "start_date": "2020-01-05",
            "finished_date": "2020-03-01T10:00:00",
            "comments": "great",
            "mal_id": 19,
        },
        {"title": "Berserk", "status": "reading", "score": 9, "read_chapters": 350, "read_volumes": 40},
    ]

    monster, berserk = process_json_import(data, Platform.ANILIST, MediaKind.MANGA)

    assert monster.title == "Monster"
    assert monster.status == ListStatus.COMPLETED
    assert monster.score == 9
    assert monster.progress == 74
    assert monster.total_units == 74
    assert monster.start_date == date(2020, 1, 5)
    assert monster.finish_date == date(2020, 3, 1)
    assert monster.notes == "great"
    assert monster.source_id == 19
    assert monster.direct_target_id is None

    assert berserk.status == ListStatus.WATCHING
    assert berserk.progress == 350
    assert berserk.progress_volumes == 40


@pytest.mark.parametrize("score", [1e400, "inf", "nan"])
def test_non_finite_scores_fall_back_to_zero(score):
    """Infinite or NaN scores are unreadable, not fatal."""
    (entry,) = process_json_import([{"title": "X", "score": score}], Platform.ANILIST)
    assert entry.score == 0


def test_huge_score_literal_in_file_text():
    """``1e400`` parses as infinity and is treated as no score."""
    (entry,) = parse_json_text('[{"title": "X", "score": 1e400}]', "anilist")
    assert entry.score == 0


def test_items_without_title_are_skipped(channel, events):
    """Untitled items are dropped with a warning event."""
    entries = process_json_import([{"title": "Monster"}, {"status": "completed"}, "junk"], Platform.MAL, channel=channel)

    assert [e.title for e in entries] == ["Monster"]
    assert [e.type for e in events] == [EventType.STATUS, EventType.WARNING, EventType.STATUS]
    assert events[-1].message == "Processed 1 items from JSON"
    assert events[-1].progress == 100


@pytest.mark.parametrize("data", ["not an array", {"title": "X"}, [], [{"status": "completed"}], [{"title": "  "}]])
def test_invalid_imports_raise(data):
    """Non-arrays, empty arrays and arrays without titles are rejected."""
    with pytest.raises(InvalidFormat):
        process_json_import(data, Platform.ANILIST)


def test_unsupported_target():
    """A JSON import cannot be its own target."""
    with pytest.raises(ValueError):
        process_json_import([{"title": "X"}], Platform.JSON_IMPORT)


def test_parse_json_text_errors():
    """Broken JSON and oversize content raise InvalidFormat."""
    with pytest.raises(InvalidFormat):
        parse_json_text("[{", Platform.ANILIST)
    with pytest.raises(InvalidFormat):
        parse_json_text(b"\xff\xfe[]", Platform.ANILIST)
    with pytest.raises(InvalidFormat):
        parse_json_text(json.dumps([{"title": "X" * 100}]), Platform.ANILIST, max_bytes=10)


def test_load_json_import(tmp_path):
    """Files are read from disk and parsed."""
    path = tmp_path / "list.json"
    path.write_text(json.dumps([{"title": "Mushishi", "status": "watching"}]), encoding="utf-8")

    entries = load_json_import(path, Platform.ANILIST)

    assert entries[0].title == "Mushishi"
    assert entries[0].status == ListStatus.WATCHING


def test_load_json_import_rejects_large_and_missing_files(tmp_path):
    """Oversize files are rejected before reading; missing files are InvalidFormat too."""
    path = tmp_path / "big.json"
    path.write_text(json.dumps([{"title": "X"}] * 50), encoding="utf-8")

    with pytest.raises(InvalidFormat, match="exceeds maximum"):
        load_json_import(path, Platform.ANILIST, max_bytes=100)
    with pytest.raises(InvalidFormat):
        load_json_import(tmp_path / "missing.json", Platform.ANILIST)
