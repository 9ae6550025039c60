"""Comparison of two entry lists into an intersection and two difference sets."""

import logging
from typing import Optional, Sequence

from .constants import DEFAULT_MATCH_THRESHOLD
from .matcher import match_indices
from .models import CanonicalEntry, EventType, MatchPair, ReconciliationResult
from .progress import ProgressChannel

logger = logging.getLogger(__name__)


class Reconciler:
    """Matches a source list against a target list."""

    def __init__(self, channel: Optional[ProgressChannel] = None, threshold: float = DEFAULT_MATCH_THRESHOLD):
        """Initialize with the progress channel to report on and the match threshold."""
        if not 0.0 <= threshold <= 1.0:
            raise ValueError(f"threshold must be within [0, 1], got {threshold}")
        self.channel = channel
        self.threshold = threshold

    def _emit(self, message: str, progress: float) -> None:
        if self.channel is not None:
            self.channel.emit(EventType.STATUS, message=message, progress=progress)

    def compare(
        self, source: Sequence[CanonicalEntry], target: Sequence[CanonicalEntry]
    ) -> ReconciliationResult:
        """
        Split both lists into matched pairs and entries only one side has.

        Entries whose ``direct_target_id`` equals a target's ``source_id`` are
        paired first, without fuzzy matching. The rest is matched by title in
        both directions: the source-to-target pass first, then the
        target-to-source pass, which can only add pairs between entries that
        are still unmatched. Every entry ends up in exactly one of the
        intersection or its side's difference set.
        """
        self._emit("Comparing lists...", 0)

        source = list(source)
        target = list(target)
        pairs: list[tuple[int, int, float]] = []
        claimed_source: set[int] = set()
        claimed_target: set[int] = set()

        def accept(i: int, j: int, score: float) -> None:
            if i in claimed_source or j in claimed_target:
                return
            claimed_source.add(i)
            claimed_target.add(j)
            pairs.append((i, j, score))

        for i, j in self._direct_id_pairs(source, target):
            accept(i, j, 1.0)
        direct = len(pairs)

        rest_source = [i for i in range(len(source)) if i not in claimed_source]
        rest_target = [j for j in range(len(target)) if j not in claimed_target]
        rs = [source[i] for i in rest_source]
        rt = [target[j] for j in rest_target]

        forward = match_indices(rs, rt, self.threshold)
        backward = match_indices(rt, rs, self.threshold)

        for a, b, score in forward:
            accept(rest_source[a], rest_target[b], score)
        for b, a, score in backward:
            accept(rest_source[a], rest_target[b], score)

        result = ReconciliationResult(
            intersection=tuple(
                MatchPair(left=source[i], right=target[j], similarity=score) for i, j, score in pairs
            ),
            source_only=tuple(e for i, e in enumerate(source) if i not in claimed_source),
            target_only=tuple(e for j, e in enumerate(target) if j not in claimed_target),
        )

        stats = result.stats
        logger.info(
            f"Compared {len(source)} source and {len(target)} target entries: "
            f"matches={stats['matches']} (direct={direct}), "
            f"source_only={stats['source_only']}, target_only={stats['target_only']}"
        )
        self._emit("Comparison complete", 100)
        return result

    @staticmethod
    def _direct_id_pairs(
        source: Sequence[CanonicalEntry], target: Sequence[CanonicalEntry]
    ) -> list[tuple[int, int]]:
        by_id: dict[int, int] = {}
        for j, entry in enumerate(target):
            if entry.source_id is not None:
                by_id.setdefault(entry.source_id, j)

        pairs = []
        used: set[int] = set()
        for i, entry in enumerate(source):
            j = by_id.get(entry.direct_target_id) if entry.direct_target_id is not None else None
            if j is not None and j not in used:
                used.add(j)
                pairs.append((i, j))
        return pairs
