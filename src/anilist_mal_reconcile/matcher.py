"""Greedy one-to-one title matching between two entry lists."""

import logging
from typing import Optional, Sequence

from .constants import DEFAULT_MATCH_THRESHOLD
from .models import CanonicalEntry, MatchPair
from .normalize import normalize_title
from .similarity import similarity

logger = logging.getLogger(__name__)


def match_indices(
    source: Sequence[CanonicalEntry],
    target: Sequence[CanonicalEntry],
    threshold: float = DEFAULT_MATCH_THRESHOLD,
    used: Optional[set[int]] = None,
) -> list[tuple[int, int, float]]:
    """
    Match entries by normalized title and return ``(source_idx, target_idx, similarity)``.

    Source entries are visited in order; each claims the unused target with
    the highest similarity at or above ``threshold``. Ties go to the lowest
    target index. Claimed target indices are added to ``used``.
    """
    used = set() if used is None else used
    normalized_target = [normalize_title(entry.title) for entry in target]
    matches = []

    for i, entry in enumerate(source):
        title = normalize_title(entry.title)
        best_index = None
        best_similarity = 0.0

        for j, other in enumerate(normalized_target):
            if j in used:
                continue
            score = similarity(title, other)
            if score >= threshold and score > best_similarity:
                best_index = j
                best_similarity = score

        if best_index is not None:
            used.add(best_index)
            matches.append((i, best_index, best_similarity))

    logger.debug(f"Matched {len(matches)} of {len(source)} entries (threshold={threshold})")
    return matches


def find_matches(
    source: Sequence[CanonicalEntry],
    target: Sequence[CanonicalEntry],
    threshold: float = DEFAULT_MATCH_THRESHOLD,
) -> list[MatchPair]:
    """Find best-match pairs between two lists, each target used at most once."""
    return [
        MatchPair(left=source[i], right=target[j], similarity=score)
        for i, j, score in match_indices(source, target, threshold)
    ]
