"""Tests for greedy title matching."""

from fakes import make_entry

from anilist_mal_reconcile.constants import Platform
from anilist_mal_reconcile.matcher import find_matches, match_indices


def _entries(titles, origin=Platform.MAL):
    return [make_entry(t, origin) for t in titles]


def test_punctuation_and_case_do_not_matter():
    """'Attack on Titan' matches 'attack on titan!' exactly."""
    pairs = find_matches(_entries(["Attack on Titan"]), _entries(["attack on titan!"], Platform.ANILIST))

    assert len(pairs) == 1
    assert pairs[0].left.title == "Attack on Titan"
    assert pairs[0].right.title == "attack on titan!"
    assert pairs[0].similarity == 1.0


def test_below_threshold_is_not_matched():
    """Unrelated titles stay unmatched."""
    assert find_matches(_entries(["Monster"]), _entries(["Cowboy Bebop"])) == []


def test_best_candidate_wins():
    """The most similar target is chosen, not the first acceptable one."""
    source = _entries(["Steins Gate 0"])
    target = _entries(["Steins Gate", "Steins;Gate 0"])

    pairs = find_matches(source, target, threshold=0.8)

    assert len(pairs) == 1
    assert pairs[0].right.title == "Steins;Gate 0"


def test_each_target_used_once():
    """Two identical source titles cannot both claim one target."""
    source = _entries(["Naruto", "Naruto"])
    target = _entries(["Naruto"])

    result = match_indices(source, target)

    assert result == [(0, 0, 1.0)]


def test_one_to_one_over_many_entries():
    """No target index appears twice in a single call."""
    source = _entries(["Bleach", "Bleach!", "BLEACH", "One Piece", "One Piece Film", "Monster"])
    target = _entries(["bleach", "one piece", "Bleach: Thousand-Year Blood War", "monster"])

    result = match_indices(source, target, threshold=0.7)
    claimed = [j for _, j, _ in result]

    assert len(claimed) == len(set(claimed))


def test_used_set_is_respected_and_updated():
    """Pre-claimed targets are skipped and new claims are recorded."""
    used = {0}
    result = match_indices(_entries(["Naruto"]), _entries(["Naruto", "Naruto"]), used=used)

    assert result == [(0, 1, 1.0)]
    assert used == {0, 1}


def test_ties_go_to_lowest_index():
    """Equal scores keep the earliest target."""
    result = match_indices(_entries(["Haikyuu"]), _entries(["Haikyuu!!", "haikyuu"]))

    assert result[0][1] == 0
